from barbaros.core.errors import ScanError
from barbaros.database.db_manager import DatabaseManager
from barbaros.services.auth_service import AuthService
from barbaros.services.client_service import ClientService
from barbaros.services.image_scan_service import ImageScanService
from barbaros.services.live_scan_service import LiveScanSession
from barbaros.services.visit_service import VisitService


def initialize_database(db_manager: DatabaseManager):
    """
    Create the tables on first run.
    """
    if not db_manager.is_initialized():
        db_manager.initialize_db()
        print("Database initialized successfully.")
    else:
        print("Database connection verified.")


def pause():
    print("\nPress Enter to return to menu...")
    input()


def print_client(client):
    print(f"\n  {client['full_name']} ({client['client_id']})")
    print(f"  Email: {client['email']}")
    print(f"  Phone: {client['phone_number'] or 'N/A'}")
    print(f"  Visits: {client['visit_count']}  Last visit: {client['last_visit'] or 'never'}")


def print_clients(page):
    clients = page['items']
    if not clients:
        print("No clients found.")
        return
    print(f"\n{'Client ID':<12} {'Name':<30} {'Email':<30} {'Visits':>6}")
    print("-" * 82)
    for client in clients:
        print(f"{client['client_id']:<12} {client['full_name']:<30} {client['email']:<30} {client['visit_count']:>6}")
    pagination = page['pagination']
    print(f"\nPage {pagination['page']} of {pagination['pages']} ({pagination['total']} clients)")


def print_loyalty(visit_service: VisitService, client):
    loyalty = visit_service.loyalty_status(client['id'])
    status = loyalty['status']
    print(f"\nLoyalty card for {client['full_name']}:")
    print(f"  {status.visits_toward_next}/{status.visits_per_reward} visits ({status.progress_percent}%)")
    print(f"  Rewards earned: {status.rewards_earned}  redeemed: {status.rewards_redeemed}")
    if status.reward_ready:
        print(f"  {status.rewards_available} reward(s) ready to redeem")
    else:
        print(f"  {status.visits_remaining} more visit(s) to the next reward")
    if loyalty['next']:
        reward = loyalty['next']
        print(f"  Next reward: {reward['name']} at {reward['visits_required']} visits")


def ask_client(client_service: ClientService):
    identifier = input("Enter client ID or email (or 'cancel' to abort): ").strip()
    if not identifier or identifier.lower() == 'cancel':
        print("Cancelled.")
        return None
    client = client_service.get_client(identifier)
    if client is None and '@' in identifier:
        client = client_service.find_by_contact(email=identifier)
    if client is None:
        print(f"Error: Client '{identifier}' not found.")
    return client


def show_scanned_client(client_service: ClientService, visit_service: VisitService, subject_id):
    client = client_service.resolve_scanned(subject_id)
    if client is None:
        print(f"No client matches the scanned code '{subject_id}'. Try the manual search.")
        return
    print_client(client)
    print_loyalty(visit_service, client)


def run_live_scan(client_service: ClientService, visit_service: VisitService):
    session = LiveScanSession(
        on_resolved=lambda subject_id: print(f"\nScanned: {subject_id}"),
        on_rejected=lambda error: print(f"\n{error.message}"),
        on_failed=lambda error: print(f"\nCamera error: {error.message}"),
    )
    try:
        session.start()
    except ScanError as e:
        print(f"Cannot start scanner: {e.message}")
        return

    print(f"Scanning with {session.device.label}. Hold a client's QR code up to the camera.")
    print("Press Ctrl+C to stop.")
    try:
        session.wait()
    except KeyboardInterrupt:
        print("\nStopping scanner...")
    finally:
        session.stop()

    if session.subject_id:
        show_scanned_client(client_service, visit_service, session.subject_id)


def run_image_scan(client_service: ClientService, visit_service: VisitService):
    path = input("Enter path to image file: ").strip().strip('"')
    if not path:
        print("No file given.")
        return
    result = ImageScanService().scan_file(path)
    if not result.ok:
        print(f"Error: {result.error.message}")
        return
    show_scanned_client(client_service, visit_service, result.subject_id)


def register_client(auth_service: AuthService):
    first_name = input("First name: ").strip()
    last_name = input("Last name: ").strip()
    email = input("Email: ").strip()
    phone_number = input("Phone number: ").strip()
    password = input("Password: ").strip()
    try:
        client = auth_service.register_client(first_name, last_name, email, phone_number, password)
    except ValueError as e:
        print(f"Error: {e}")
        return
    print(f"\nRegistered {client['full_name']} with client ID {client['client_id']}")


def generate_badge(client_service: ClientService):
    client = ask_client(client_service)
    if client is None:
        return
    path = client_service.save_badge(client['id'])
    print(f"Badge for {client['full_name']} saved to: {path}")


def record_visit(client_service: ClientService, visit_service: VisitService):
    client = ask_client(client_service)
    if client is None:
        return
    barber = input("Barber name: ").strip()
    service_name = input("Service (e.g. 'Haircut'): ").strip()
    price_input = input("Price: ").strip()
    notes = input("Notes (optional): ").strip() or None
    try:
        price = float(price_input) if price_input else 0.0
    except ValueError:
        print("Error: Price must be a number.")
        return

    redeem_reward_id = None
    loyalty = visit_service.loyalty_status(client['id'])
    if loyalty['status'].reward_ready and loyalty['unlocked']:
        reward = loyalty['unlocked'][-1]
        answer = input(f"Redeem reward '{reward['name']}'? (yes/no): ").strip().lower()
        if answer in ['yes', 'y']:
            redeem_reward_id = reward['id']

    services = [{"name": service_name, "price": price}] if service_name else []
    try:
        visit = visit_service.record_visit(
            client['id'], services, barber, notes=notes, redeem_reward_id=redeem_reward_id
        )
    except (LookupError, ValueError) as e:
        print(f"Error: {e}")
        return
    print(f"Recorded visit #{visit['visit_number']} for {client['full_name']}")
    print_loyalty(visit_service, client_service.get_client(client['id']))


def main():
    db_manager = DatabaseManager().open()
    try:
        initialize_database(db_manager)
        run_menu(db_manager)
    finally:
        db_manager.close()


def run_menu(db_manager: DatabaseManager):
    auth_service = AuthService(db_manager)
    client_service = ClientService(db_manager)
    visit_service = VisitService(db_manager)

    while True:
        print()
        print("=" * 60)
        print("BARBAROS - MAIN MENU")
        print("=" * 60)
        print("1. Register client")
        print("2. List clients")
        print("3. Search clients")
        print("4. Generate QR badge for client")
        print("5. Scan QR code with camera")
        print("6. Scan QR code from image file")
        print("7. Record visit")
        print("8. Show loyalty status")
        print("9. Exit")
        print("=" * 60)
        choice = input("Select option: ").strip()

        if choice == "1":
            register_client(auth_service)
            pause()

        elif choice == "2":
            page = 1
            while True:
                result = client_service.list_clients(page=page)
                print_clients(result)
                if page >= result['pagination']['pages']:
                    break
                if input("Next page? (yes/no): ").strip().lower() not in ['yes', 'y']:
                    break
                page += 1
            pause()

        elif choice == "3":
            query = input("Search (name, email, phone or client ID): ").strip()
            if query:
                print_clients(client_service.search_clients(query))
            else:
                print("Search text is required.")
            pause()

        elif choice == "4":
            generate_badge(client_service)
            pause()

        elif choice == "5":
            run_live_scan(client_service, visit_service)
            pause()

        elif choice == "6":
            run_image_scan(client_service, visit_service)
            pause()

        elif choice == "7":
            record_visit(client_service, visit_service)
            pause()

        elif choice == "8":
            client = ask_client(client_service)
            if client:
                print_client(client)
                print_loyalty(visit_service, client)
            pause()

        elif choice == "9":
            print("\nExiting application...")
            break

        else:
            print("Invalid option. Please try again.")
            print("\nPress Enter to continue...")
            input()


if __name__ == "__main__":
    main()

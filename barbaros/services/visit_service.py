from barbaros.config.settings import DEFAULT_PAGE_SIZE, VISITS_PER_REWARD
from barbaros.core.loyalty import compute_status, next_reward, unlocked_rewards
from barbaros.database.db_manager import DatabaseManager
from barbaros.database.models import Client, Reward, Service, Visit
from barbaros.utils.logging import setup_logger


class VisitService:
    """
    Records visits and keeps the loyalty counters on the client in step.
    """

    def __init__(self, db_manager: DatabaseManager, visits_per_reward: int = VISITS_PER_REWARD):
        self.db_manager = db_manager
        self.logger = setup_logger()
        self.client_model = Client(db_manager)
        self.visit_model = Visit(db_manager)
        self.reward_model = Reward(db_manager)
        self.service_model = Service(db_manager)
        self.visits_per_reward = visits_per_reward

    def _with_catalogue(self, services):
        """
        Fill name and price from the catalogue for entries carrying a known service_id.

        Returns:
            (services, ids of the catalogued services)
        """
        filled, catalogued = [], []
        for entry in services or []:
            entry = dict(entry)
            service = self.service_model.get_by_id(entry.get('service_id'))
            if service:
                entry.setdefault('name', service['name'])
                entry.setdefault('price', service['price'])
                entry.setdefault('duration', service['duration_minutes'])
                catalogued.append(service['id'])
            filled.append(entry)
        return filled, catalogued

    def record_visit(self, client_id: str, services, barber: str, notes: str = None,
                     total_price: float = None, visit_date=None, redeem_reward_id: str = None):
        """
        Record a visit for a client.

        Args:
            client_id: Client primary key
            services: List of dicts with name, price and duration. A service_id
                naming a catalogue entry fills in the missing name and price
                and bumps that service's popularity
            barber: Name of the barber
            notes: Optional notes
            total_price: Defaults to the sum of service prices
            visit_date: Defaults to now
            redeem_reward_id: Reward redeemed during this visit, if any

        Returns:
            The stored visit

        Raises:
            LookupError: client or reward not found
            ValueError: missing barber, or no reward available to redeem
        """
        if not barber or not barber.strip():
            raise ValueError("Barber name is required")
        with self.db_manager.get_connection():
            services, catalogued = self._with_catalogue(services)
            if total_price is None:
                total_price = sum(float(s.get('price', 0)) for s in services)

            client = self.client_model.get_by_id(client_id)
            if not client:
                raise LookupError(f"Client not found: {client_id}")

            if redeem_reward_id:
                reward = self.reward_model.get_by_id(redeem_reward_id)
                if not reward or not reward['is_active']:
                    raise LookupError(f"Reward not found: {redeem_reward_id}")
                if compute_status(client, self.visits_per_reward).rewards_available < 1:
                    raise ValueError("No reward available to redeem")
                self.client_model.update(client['id'], rewards_redeemed=client['rewards_redeemed'] + 1)

            visit = self.visit_model.create(
                client_id=client['id'],
                services=services,
                total_price=total_price,
                barber=barber.strip(),
                visit_number=client['visit_count'] + 1,
                notes=notes,
                visit_date=visit_date,
                reward_redeemed=bool(redeem_reward_id),
                redeemed_reward_id=redeem_reward_id,
            )
            self.client_model.update_visit_count(client["id"], 1, self.visits_per_reward)
            for service_id in catalogued:
                self.service_model.increment_popularity(service_id)

        self.logger.info(f"Recorded visit #{visit['visit_number']} for client {client['client_id']}")
        return visit

    def delete_visit(self, visit_id: str):
        """
        Delete a visit and take it off the client's visit count.

        Raises:
            LookupError: visit not found
        """
        with self.db_manager.get_connection():
            visit = self.visit_model.get_by_id(visit_id)
            if not visit:
                raise LookupError(f"Visit not found: {visit_id}")
            self.client_model.update_visit_count(visit["client_id"], -1, self.visits_per_reward)
            self.visit_model.delete(visit_id)
        self.logger.info(f"Deleted visit {visit_id}")
        return True

    def update_visit(self, visit_id: str, **fields):
        """
        Update a visit. New services are priced from the catalogue
        and the total recomputed unless given.

        Raises:
            LookupError: visit not found
        """
        with self.db_manager.get_connection():
            if 'services' in fields:
                fields['services'], _ = self._with_catalogue(fields['services'])
            visit = self.visit_model.update(visit_id, **fields)
        if not visit:
            raise LookupError(f"Visit not found: {visit_id}")
        self.logger.info(f"Updated visit {visit_id}")
        return visit

    def list_visits(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        return self.visit_model.list(page, limit)

    def client_history(self, client_id: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        return self.visit_model.get_by_client(client_id, page, limit)

    def visits_between(self, start_date, end_date, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        return self.visit_model.get_by_date_range(start_date, end_date, page, limit)

    def loyalty_status(self, client_id: str):
        """
        Loyalty card for a client plus the reward ladder position.

        Returns:
            Dict with status (LoyaltyStatus), unlocked rewards and the next reward
        """
        client = self.client_model.get_by_id(client_id)
        if not client:
            raise LookupError(f"Client not found: {client_id}")
        rewards = self.reward_model.get_active()
        return {
            "status": compute_status(client, self.visits_per_reward),
            "unlocked": unlocked_rewards(rewards, client['visit_count']),
            "next": next_reward(rewards, client['visit_count']),
        }

from werkzeug.security import generate_password_hash

from barbaros.config.settings import DEFAULT_PAGE_SIZE
from barbaros.core.badge_codec import BadgeCodec
from barbaros.database.db_manager import DatabaseManager
from barbaros.database.models import Client
from barbaros.services.auth_service import AuthService, Identity, public_client
from barbaros.utils.logging import setup_logger


class ClientService:
    """
    Client records and their QR badges.

    Badges use a stable identifier: the first badge issued for a client
    stores the identifier it carries (the client id) as qr_code_id, and every
    later render, including an admin regeneration, reuses it.
    """

    def __init__(self, db_manager: DatabaseManager, codec: BadgeCodec = None):
        self.logger = setup_logger()
        self.client_model = Client(db_manager)
        self.codec = codec or BadgeCodec()

    # Records

    def create_client(self, first_name: str, last_name: str, email: str, phone_number: str = '',
                      password: str = None, preferred_services=None):
        """
        Create a client from the front desk.

        Raises:
            ValueError: first name, last name or email missing, or email taken
        """
        if not first_name or not last_name or not email:
            raise ValueError("First name, last name, and email are required")
        client = self.client_model.create(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email,
            phone_number=(phone_number or '').strip(),
            password_hash=generate_password_hash(password) if password else None,
            preferred_services=preferred_services,
        )
        self.logger.info(f"Created client {client['client_id']}")
        return public_client(client)

    def get_client(self, identifier: str):
        """
        Look a client up by primary key, falling back to the client id.
        """
        if not identifier:
            return None
        client = self.client_model.get_by_id(identifier) or self.client_model.get_by_client_id(identifier)
        return public_client(client)

    def update_client(self, record_id: str, **fields):
        if 'password' in fields:
            password = fields.pop('password')
            if password:
                fields['password_hash'] = generate_password_hash(password)
        client = self.client_model.update(record_id, **fields)
        if client:
            self.logger.info(f"Updated client {client['client_id']}")
        return public_client(client)

    def delete_client(self, record_id: str):
        client = self.client_model.get_by_id(record_id)
        if not client:
            return False
        deleted = self.client_model.delete(record_id)
        if deleted:
            self.codec.delete_badge(client['qr_code_id'] or client['client_id'])
            self.logger.info(f"Deleted client {client['client_id']}")
        return deleted

    def list_clients(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        result = self.client_model.list(page, limit)
        result['items'] = [public_client(c) for c in result['items']]
        return result

    def search_clients(self, query: str, page: int = 1, limit: int = DEFAULT_PAGE_SIZE):
        result = self.client_model.search(query, page, limit)
        result['items'] = [public_client(c) for c in result['items']]
        return result

    def find_by_contact(self, email: str = None, phone: str = None):
        """
        First client matching an email or phone number (email wins).

        Raises:
            ValueError: neither email nor phone given
        """
        query = email or phone
        if not query:
            raise ValueError("Email or phone parameter is required")
        result = self.client_model.search(query, page=1, limit=1)
        return result['items'][0] if result['items'] else None

    # Badges

    def _badge_id(self, client):
        return client['qr_code_id'] or client['client_id']

    def issue_badge(self, record_id: str, **options):
        """
        Render the client's badge, caching its identifier on first issue.

        Returns:
            Dict with qr_code (PNG data URL), client_id and qr_code_id

        Raises:
            LookupError: client not found
        """
        client = self.client_model.get_by_id(record_id)
        if not client:
            raise LookupError(f"Client not found: {record_id}")

        qr_code_id = self._badge_id(client)
        qr_code = self.codec.encode(qr_code_id, **options)
        if not client['qr_code_id']:
            self.client_model.update(
                client['id'],
                qr_code_id=qr_code_id,
                qr_code_url=f"/api/clients/qrcode/{client['id']}",
            )
            self.logger.info(f"Issued first badge for client {client['client_id']}")
        return {"qr_code": qr_code, "client_id": client['client_id'], "qr_code_id": qr_code_id}

    def regenerate_badge(self, record_id: str, identity: Identity, **options):
        """
        Re-render a client's badge (staff only). The stable identifier is kept,
        only the embedded timestamp changes.

        Raises:
            PermissionError: identity is not staff
            LookupError: client not found
        """
        AuthService.require_admin(identity)
        badge = self.issue_badge(record_id, **options)
        self.logger.info(f"Badge regenerated for {badge['client_id']} by {identity.user_id}")
        return badge

    def save_badge(self, record_id: str, **options):
        """
        Write the client's badge PNG to the badge directory.
        """
        badge = self.issue_badge(record_id)
        return self.codec.save(badge["qr_code_id"], **options)

    def resolve_scanned(self, subject_id: str):
        """
        Find the client behind a scanned identifier: primary key, then
        client id, then cached badge id.

        Returns:
            The client, or None when the code matches nobody
        """
        if not subject_id:
            return None
        client = (
            self.client_model.get_by_id(subject_id)
            or self.client_model.get_by_client_id(subject_id)
            or self.client_model.get_by_qr_code_id(subject_id)
        )
        if client is None:
            self.logger.warning(f"Scanned code does not match any client: {subject_id}")
        return public_client(client)

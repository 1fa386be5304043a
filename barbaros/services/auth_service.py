import secrets
import sqlite3
from dataclasses import dataclass
from werkzeug.security import check_password_hash, generate_password_hash
from barbaros.database.db_manager import DatabaseManager
from barbaros.database.models import Admin, Client, now_timestamp
from barbaros.utils.logging import setup_logger


@dataclass(frozen=True)
class Identity:
    """
    Who is making a request: the (user id, role) pair the rest of the
    application relies on.
    """
    user_id: str
    role: str
    user_type: str  # 'admin' or 'client'
    name: str = ''
    email: str = ''

    @property
    def is_admin(self):
        return self.user_type == 'admin'


def public_client(client):
    """
    Client record without its password hash.
    """
    if client is None:
        return None
    return {key: value for key, value in client.items() if key != 'password_hash'}


class AuthService:
    """
    Handles registration, login and role checks for staff and clients.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.logger = setup_logger()
        self.client_model = Client(db_manager)
        self.admin_model = Admin(db_manager)

    def _new_client_id(self):
        client_id = f"C{10000000 + secrets.randbelow(90000000)}"
        while self.client_model.get_by_client_id(client_id):
            client_id = f"C{10000000 + secrets.randbelow(90000000)}"
        return client_id

    def register_client(self, first_name: str, last_name: str, email: str, phone_number: str, password: str):
        """
        Self-service client registration.

        Returns:
            The new client without its password hash

        Raises:
            ValueError: missing fields or email already registered
        """
        if not all(v and str(v).strip() for v in (first_name, last_name, email, phone_number, password)):
            raise ValueError("All fields are required")
        if self.client_model.get_by_email(email):
            raise ValueError("Email already in use")

        client = self.client_model.create(
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            email=email,
            phone_number=phone_number.strip(),
            password_hash=generate_password_hash(password),
            client_id=self._new_client_id(),
        )
        self.logger.info(f"Registered client {client['client_id']} ({client['email']})")
        return public_client(client)

    def create_admin(self, username: str, password: str, name: str, role: str, email: str):
        """
        Create a staff account (owner, barber or receptionist).
        """
        if not all(v and str(v).strip() for v in (username, password, name, role, email)):
            raise ValueError("All fields are required")
        admin = self.admin_model.create(
            username=username,
            password_hash=generate_password_hash(password),
            name=name,
            role=role,
            email=email,
        )
        self.logger.info(f"Created {role} account {admin['username']}")
        return {key: value for key, value in admin.items() if key != 'password_hash'}

    def authenticate(self, email: str, password: str, user_type: str = 'client'):
        """
        Check credentials.

        Args:
            email: Login email
            password: Plain-text password
            user_type: 'admin' or 'client'

        Returns:
            Identity if the credentials are valid, None otherwise
        """
        if not email or not password or user_type not in ('admin', 'client'):
            return None

        try:
            if user_type == 'admin':
                admin = self.admin_model.get_by_email(email)
                if not admin or not admin['active']:
                    return None
                if not check_password_hash(admin['password_hash'], password):
                    return None
                self.admin_model.update_last_login(admin['id'])
                self.logger.info(f"Admin login: {admin['email']}")
                return Identity(admin['id'], admin['role'], 'admin', admin['name'], admin['email'])

            client = self.client_model.get_by_email(email)
            if not client or not client['account_active'] or not client['password_hash']:
                return None
            if not check_password_hash(client['password_hash'], password):
                return None
            self.client_model.update(client['id'], last_login=now_timestamp())
            self.logger.info(f"Client login: {client['email']}")
            return Identity(client['id'], 'client', 'client', client['full_name'], client['email'])
        except sqlite3.Error as e:
            self.logger.error(f"Authentication error for {email}: {e}")
            return None

    @staticmethod
    def require_admin(identity: Identity):
        """
        Raises:
            PermissionError: identity is missing or not a staff account
        """
        if identity is None or not identity.is_admin:
            raise PermissionError("Unauthorized")

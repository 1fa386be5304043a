import streamlit as st
import sys
import os
from pathlib import Path
from dataclasses import asdict

# Get the project directory (parent of dashboard)
project_dir = str(Path(__file__).parent.parent)
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

# Change working directory to the project for proper module resolution
os.chdir(project_dir)

from barbaros.database.db_manager import DatabaseManager
from barbaros.services.auth_service import AuthService, Identity
from barbaros.utils.logging import setup_logger


@st.cache_resource
def get_db_manager():
    """
    One open database connection shared by every dashboard page.
    """
    db_manager = DatabaseManager().open()
    if not db_manager.is_initialized():
        db_manager.initialize_db()
    return db_manager


class DashboardAuth:
    """
    Handles login state and role-based access for the dashboard.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.auth_service = AuthService(db_manager)
        self.logger = setup_logger()

    def login(self, email: str, password: str, user_type: str):
        """
        Check credentials and store the identity in the session.

        Returns:
            Identity if authenticated, None otherwise
        """
        identity = self.auth_service.authenticate(email.strip(), password, user_type)
        if identity:
            self.set_user_session(identity)
        else:
            self.logger.warning(f"Dashboard login failed for {email} ({user_type})")
        return identity

    def register(self, first_name, last_name, email, phone_number, password):
        """
        Register a client and log them in.

        Raises:
            ValueError: missing fields or email already in use
        """
        client = self.auth_service.register_client(first_name, last_name, email, phone_number, password)
        return self.login(email, password, 'client') or client

    def get_user_session(self):
        """
        Current identity as a dictionary, or None when logged out.
        """
        if 'user' in st.session_state and st.session_state['user']:
            return st.session_state['user']
        return None

    def get_identity(self):
        user = self.get_user_session()
        return Identity(**user) if user else None

    def set_user_session(self, identity: Identity):
        st.session_state['user'] = asdict(identity)
        st.session_state['authenticated'] = True

    def clear_session(self):
        for key in ('user', 'authenticated', 'scanned_client_id'):
            if key in st.session_state:
                del st.session_state[key]

    def is_authenticated(self):
        return st.session_state.get('authenticated', False)

    def is_admin(self):
        user = self.get_user_session()
        return bool(user) and user.get('user_type') == 'admin'

    def home_page(self):
        """
        Landing page for the logged-in user.
        """
        return "pages/admin_dashboard.py" if self.is_admin() else "pages/client_profile.py"

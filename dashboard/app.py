import streamlit as st
import sys
import os
from pathlib import Path

# Get the project directory (parent of dashboard)
project_dir = str(Path(__file__).parent.parent)
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

# Change working directory to the project for proper module resolution
os.chdir(project_dir)

from dashboard.auth import DashboardAuth, get_db_manager

# Page configuration
st.set_page_config(
    page_title="Barbaros - Login",
    page_icon="💈",
    layout="centered",
    initial_sidebar_state="collapsed"
)

auth = DashboardAuth(get_db_manager())

st.title("💈 Barbaros")
st.markdown("---")

# Check if already authenticated
if auth.is_authenticated():
    user = auth.get_user_session()

    st.success(f"✅ Logged in as: {user.get('name') or user.get('email')} ({user.get('role')})")

    col1, col2 = st.columns(2)

    with col1:
        if st.button("🚪 Go to Dashboard", use_container_width=True):
            st.switch_page(auth.home_page())

    with col2:
        if st.button("🔓 Logout", use_container_width=True):
            auth.clear_session()
            st.rerun()

    st.stop()

login_tab, register_tab = st.tabs(["Login", "Register"])

with login_tab:
    with st.form("login_form"):
        email = st.text_input("Email", placeholder="you@example.com")
        password = st.text_input("Password", type="password")
        user_type = st.radio(
            "Account type",
            ["client", "admin"],
            format_func=lambda t: "Client" if t == "client" else "Staff",
            horizontal=True,
        )
        submitted = st.form_submit_button("Login", use_container_width=True)

        if submitted:
            if not email.strip() or not password:
                st.error("⚠️ Email and password are required")
            else:
                identity = auth.login(email, password, user_type)
                if identity:
                    st.success(f"✅ Login successful! Welcome, {identity.name or identity.email}")
                    st.switch_page(auth.home_page())
                else:
                    st.error("❌ Invalid email or password.")

with register_tab:
    with st.form("register_form"):
        col1, col2 = st.columns(2)
        first_name = col1.text_input("First name")
        last_name = col2.text_input("Last name")
        reg_email = st.text_input("Email", key="register_email")
        phone_number = st.text_input("Phone number")
        reg_password = st.text_input("Password", type="password", key="register_password")
        confirm = st.text_input("Confirm password", type="password")
        submitted = st.form_submit_button("Create account", use_container_width=True)

        if submitted:
            if reg_password != confirm:
                st.error("⚠️ Passwords do not match")
            else:
                try:
                    auth.register(first_name, last_name, reg_email, phone_number, reg_password)
                except ValueError as e:
                    st.error(f"❌ {e}")
                else:
                    st.success("✅ Account created. Your QR code is on your profile page.")
                    st.switch_page("pages/client_profile.py")

# Help section
with st.expander("ℹ️ Need Help?"):
    st.markdown("""
    **Clients:** log in with the email and password you registered with to see
    your QR code, loyalty card and visit history.

    **Staff:** choose *Staff* to manage clients and scan QR codes at the front desk.
    """)

# Footer
st.markdown("---")
st.markdown(
    """
    <div style='text-align: center; color: gray;'>
        <small>Barbaros Client Portal | Secure Access</small>
    </div>
    """,
    unsafe_allow_html=True
)

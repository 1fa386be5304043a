import streamlit as st
import sys
import os
from pathlib import Path

# Get the project directory
project_dir = str(Path(__file__).parent.parent.parent)
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

# Change working directory to the project for proper module resolution
os.chdir(project_dir)

from barbaros.services.client_service import ClientService
from barbaros.services.image_scan_service import ImageScanService
from barbaros.services.visit_service import VisitService
from dashboard.auth import DashboardAuth, get_db_manager

# Page configuration
st.set_page_config(
    page_title="QR Code Scanner",
    page_icon="📷",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_resource
def get_image_scanner():
    return ImageScanService()


db_manager = get_db_manager()
auth = DashboardAuth(db_manager)
clients = ClientService(db_manager)
visits = VisitService(db_manager)
scanner = get_image_scanner()

# Check authentication
if not auth.get_user_session():
    st.error("⚠️ Please log in to use the scanner.")
    st.stop()

if not auth.is_admin():
    st.warning("⚠️ Staff access required. Redirecting to your profile...")
    st.switch_page("pages/client_profile.py")
    st.stop()


def handle_upload(uploaded):
    """
    Scan an uploaded or captured picture and remember the client it names.
    """
    result = scanner.scan(uploaded.getvalue(), uploaded.type, uploaded.size)
    if not result.ok:
        st.error(result.error.message)
        return
    client = clients.resolve_scanned(result.subject_id)
    if client is None:
        st.error(f"No client found for code '{result.subject_id}'. Try the manual search.")
        return
    st.session_state['scanned_client_id'] = client['id']


st.title("📷 Client Check-in")
st.markdown("---")

camera_tab, upload_tab, search_tab = st.tabs(["Camera", "Upload Image", "Manual Search"])

with camera_tab:
    snapshot = st.camera_input("Hold the client's QR code up to the camera")
    if snapshot is not None:
        handle_upload(snapshot)

with upload_tab:
    uploaded = st.file_uploader("Upload a photo or screenshot of the QR code", type=["png", "jpg", "jpeg", "gif", "bmp", "webp"])
    if uploaded is not None:
        handle_upload(uploaded)

with search_tab:
    with st.form("manual_search"):
        email = st.text_input("Email")
        phone = st.text_input("Phone number")
        submitted = st.form_submit_button("Find client")
        if submitted:
            try:
                client = clients.find_by_contact(email=email.strip() or None, phone=phone.strip() or None)
            except ValueError as e:
                st.error(str(e))
            else:
                if client:
                    st.session_state['scanned_client_id'] = client['id']
                else:
                    st.error("No client found with that email or phone number.")

st.markdown("---")

# Client card for the last scan
scanned_id = st.session_state.get('scanned_client_id')
client = clients.get_client(scanned_id) if scanned_id else None

if client:
    st.subheader(f"✅ {client['full_name']}")
    status = visits.loyalty_status(client['id'])['status']

    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Client ID", client['client_id'])
    col2.metric("Visits", status.visit_count)
    col3.metric("Toward Next Reward", f"{status.visits_toward_next}/{status.visits_per_reward}")
    col4.metric("Rewards Available", status.rewards_available)
    st.write(f"**Email:** {client['email']}  |  **Phone:** {client['phone_number'] or 'N/A'}")
    st.write(f"**Last visit:** {client['last_visit'] or 'Never'}")

    col1, col2 = st.columns(2)
    with col1:
        if st.button("✂️ Record Visit", use_container_width=True):
            st.session_state['visit_client_id'] = client['id']
            st.switch_page("pages/admin_dashboard.py")
    with col2:
        if st.button("👤 Open Profile", use_container_width=True):
            st.session_state['profile_client_id'] = client['id']
            st.switch_page("pages/client_profile.py")
else:
    st.info("Scan a client's QR code, upload a picture of it, or search by email or phone.")

import streamlit as st
import pandas as pd
import sys
import os
from pathlib import Path

# Get the project directory
project_dir = str(Path(__file__).parent.parent.parent)
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

# Change working directory to the project for proper module resolution
os.chdir(project_dir)

from barbaros.core.badge_codec import data_url_to_bytes
from barbaros.services.client_service import ClientService
from barbaros.services.visit_service import VisitService
from dashboard.auth import DashboardAuth, get_db_manager

# Page configuration
st.set_page_config(
    page_title="My Barbaros Profile",
    page_icon="👤",
    layout="wide",
    initial_sidebar_state="expanded"
)

db_manager = get_db_manager()
auth = DashboardAuth(db_manager)
clients = ClientService(db_manager)
visits = VisitService(db_manager)

# Check authentication
user = auth.get_user_session()
if not user:
    st.error("⚠️ Please log in to view your profile.")
    st.stop()

# Staff can open any client's profile from the admin dashboard
if auth.is_admin():
    client_id = st.session_state.get('profile_client_id')
    if not client_id:
        st.info("Select a client on the admin dashboard to view their profile.")
        if st.button("⬅️ Back to Admin Dashboard"):
            st.switch_page("pages/admin_dashboard.py")
        st.stop()
else:
    client_id = user['user_id']

client = clients.get_client(client_id)
if not client:
    st.error("Client not found.")
    st.stop()

st.title(f"👤 {client['full_name']}")
st.markdown(f"**Client ID:** {client['client_id']}  |  **Email:** {client['email']}")
st.markdown("---")

col1, col2 = st.columns([1, 2])

with col1:
    st.subheader("🔳 My QR Code")
    badge = clients.issue_badge(client['id'])
    st.image(data_url_to_bytes(badge['qr_code']), width=250)
    st.caption("Show this code at the front desk when you check in.")
    st.download_button(
        "⬇️ Download QR Code",
        data=data_url_to_bytes(badge['qr_code']),
        file_name=f"barbaros-{badge['client_id']}.png",
        mime="image/png",
        use_container_width=True,
    )

with col2:
    st.subheader("⭐ Loyalty Card")
    loyalty = visits.loyalty_status(client['id'])
    status = loyalty['status']

    kpi1, kpi2, kpi3 = st.columns(3)
    kpi1.metric("Total Visits", status.visit_count)
    kpi2.metric("Rewards Earned", status.rewards_earned)
    kpi3.metric("Rewards Available", status.rewards_available)

    st.progress(
        status.progress_percent / 100,
        text=f"{status.visits_toward_next} of {status.visits_per_reward} visits",
    )
    if status.reward_ready:
        st.success("🎉 You have a reward ready! Ask at the front desk to redeem it.")
    else:
        st.info(f"{status.visits_remaining} more visit(s) until your next reward.")

    if loyalty['unlocked']:
        st.markdown("**Unlocked rewards**")
        for reward in loyalty['unlocked']:
            st.markdown(f"- {reward['name']}: {reward['description'] or ''}")
    if loyalty['next']:
        reward = loyalty['next']
        st.markdown(f"**Next reward:** {reward['name']} at {reward['visits_required']} visits")

st.markdown("---")

st.subheader("📋 Visit History")
history = visits.client_history(client['id'], limit=50)

if history['items']:
    history_df = pd.DataFrame(history['items'])
    history_df['services'] = history_df['services'].apply(
        lambda services: ", ".join(s.get('name', '') for s in services)
    )
    history_df['reward_redeemed'] = history_df['reward_redeemed'].map({True: 'Yes', False: 'No'})
    display_df = history_df[['visit_number', 'visit_date', 'services', 'barber', 'total_price', 'reward_redeemed']]
    display_df.columns = ['Visit #', 'Date', 'Services', 'Barber', 'Total', 'Reward Redeemed']
    st.dataframe(display_df, use_container_width=True, hide_index=True)
else:
    st.info("No visits recorded yet.")

# Footer
st.markdown("---")
st.markdown(
    """
    <div style='text-align: center; color: gray;'>
        <small>Barbaros Client Profile | Your Personal Data</small>
    </div>
    """,
    unsafe_allow_html=True
)

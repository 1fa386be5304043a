import streamlit as st
import pandas as pd
import sys
import os
from pathlib import Path
from datetime import datetime

# Get the project directory
project_dir = str(Path(__file__).parent.parent.parent)
if project_dir not in sys.path:
    sys.path.insert(0, project_dir)

# Change working directory to the project for proper module resolution
os.chdir(project_dir)

from barbaros.core.badge_codec import data_url_to_bytes
from barbaros.database.models import Reward
from barbaros.services.client_service import ClientService
from barbaros.services.visit_service import VisitService
from dashboard.auth import DashboardAuth, get_db_manager

# Page configuration
st.set_page_config(
    page_title="Admin Dashboard",
    page_icon="💈",
    layout="wide",
    initial_sidebar_state="expanded"
)

db_manager = get_db_manager()
auth = DashboardAuth(db_manager)
clients = ClientService(db_manager)
visits = VisitService(db_manager)
rewards = Reward(db_manager)

# Check authentication
user = auth.get_user_session()
if not user:
    st.error("⚠️ Please log in to access the admin dashboard.")
    st.stop()

if not auth.is_admin():
    st.warning("⚠️ Staff access required. Redirecting to your profile...")
    st.switch_page("pages/client_profile.py")
    st.stop()

identity = auth.get_identity()

# Main title
st.title("💈 Client Management - Admin View")
st.markdown(f"**Signed in as:** {identity.name} ({identity.role})")
st.markdown("---")

# Navigation links
col1, col2, col3 = st.columns(3)
with col1:
    if st.button("📷 Open Scanner", use_container_width=True):
        st.switch_page("pages/scanner.py")
with col3:
    if st.button("🔓 Logout", use_container_width=True):
        auth.clear_session()
        st.switch_page("app.py")
st.markdown("---")

# Key Performance Indicators (KPIs)
st.subheader("📈 Overview")
today = datetime.now().date()
col1, col2, col3 = st.columns(3)
col1.metric("Clients", clients.client_model.count())
col2.metric("Visits Today", visits.visits_between(today, today)['pagination']['total'])
col3.metric("Total Visits", visits.visit_model.count())

st.markdown("---")

# Sidebar search
st.sidebar.header("🔍 Find Clients")
query = st.sidebar.text_input("Search", placeholder="Name, email, phone or client ID")
page_size = st.sidebar.selectbox("Clients per page", [10, 25, 50], index=0)
page_number = st.sidebar.number_input("Page", min_value=1, value=1, step=1)

if query.strip():
    result = clients.search_clients(query, page=page_number, limit=page_size)
else:
    result = clients.list_clients(page=page_number, limit=page_size)

st.subheader("📋 Clients")
pagination = result['pagination']

if result['items']:
    clients_df = pd.DataFrame(result['items'])
    display_df = clients_df[['client_id', 'full_name', 'email', 'phone_number', 'visit_count',
                             'rewards_earned', 'rewards_redeemed', 'last_visit']].copy()
    display_df.columns = ['Client ID', 'Name', 'Email', 'Phone', 'Visits', 'Rewards Earned',
                          'Rewards Redeemed', 'Last Visit']
    st.info(f"Showing page {pagination['page']} of {max(pagination['pages'], 1)} ({pagination['total']} client(s))")
    st.dataframe(display_df, use_container_width=True, hide_index=True)
    st.download_button(
        "📥 Export Clients (CSV)",
        data=display_df.to_csv(index=False),
        file_name="clients.csv",
        mime="text/csv",
    )
else:
    st.warning("⚠️ No clients match the current search.")

st.markdown("---")

with st.expander("➕ Add Client", expanded=False):
    with st.form("create_client"):
        col1, col2 = st.columns(2)
        first_name = col1.text_input("First name")
        last_name = col2.text_input("Last name")
        email = col1.text_input("Email")
        phone_number = col2.text_input("Phone number")
        if st.form_submit_button("Create client"):
            try:
                created = clients.create_client(first_name, last_name, email, phone_number)
            except ValueError as e:
                st.error(f"❌ {e}")
            else:
                st.success(f"✅ Created {created['full_name']} ({created['client_id']})")
                st.rerun()

# Selected client actions
st.subheader("✂️ Client Actions")
options = {c['id']: f"{c['full_name']} ({c['client_id']})" for c in result['items']}
preselected = st.session_state.pop('visit_client_id', None)
if preselected and preselected not in options:
    selected = clients.get_client(preselected)
    if selected:
        options = {selected['id']: f"{selected['full_name']} ({selected['client_id']})", **options}

if not options:
    st.info("Search for a client to manage them.")
    st.stop()

selected_id = st.selectbox(
    "Client",
    list(options),
    index=list(options).index(preselected) if preselected in options else 0,
    format_func=options.get,
)
client = clients.get_client(selected_id)

visit_tab, edit_tab, badge_tab, delete_tab = st.tabs(["Record Visit", "Edit", "QR Badge", "Delete"])

with visit_tab:
    loyalty = visits.loyalty_status(client['id'])
    status = loyalty['status']
    st.write(
        f"**Visits:** {status.visit_count}  |  "
        f"**Toward next reward:** {status.visits_toward_next}/{status.visits_per_reward}  |  "
        f"**Rewards available:** {status.rewards_available}"
    )
    with st.form("record_visit"):
        barber = st.text_input("Barber", value=identity.name if identity.role == 'barber' else "")
        catalogue = {s['id']: s for s in visits.service_model.list(limit=100, active_only=True)['items']}
        picked = st.multiselect(
            "Menu services", list(catalogue),
            format_func=lambda s: f"{catalogue[s]['name']} (${catalogue[s]['price']:.2f})",
        )
        service_name = st.text_input("Other service", placeholder="Haircut")
        price = st.number_input("Other service price", min_value=0.0, step=1.0)
        notes = st.text_area("Notes")
        redeem = None
        if status.reward_ready and loyalty['unlocked']:
            reward_options = {r['id']: r['name'] for r in loyalty['unlocked']}
            redeem = st.selectbox(
                "Redeem reward", [None] + list(reward_options),
                format_func=lambda r: "No reward" if r is None else reward_options[r],
            )
        if st.form_submit_button("Record visit"):
            services = [{"service_id": s} for s in picked]
            if service_name.strip():
                services.append({"name": service_name, "price": price})
            try:
                visit = visits.record_visit(
                    client['id'], services, barber, notes=notes or None,
                    redeem_reward_id=redeem,
                )
            except (LookupError, ValueError) as e:
                st.error(f"❌ {e}")
            else:
                st.success(f"✅ Recorded visit #{visit['visit_number']} for {client['full_name']}")
                st.rerun()

    history = visits.client_history(client['id'], limit=5)
    if history['items']:
        st.markdown("**Recent visits**")
        recent_df = pd.DataFrame(history['items'])[['visit_number', 'visit_date', 'barber', 'total_price']]
        recent_df.columns = ['Visit #', 'Date', 'Barber', 'Total']
        st.dataframe(recent_df, use_container_width=True, hide_index=True)

with edit_tab:
    with st.form("edit_client"):
        col1, col2 = st.columns(2)
        first_name = col1.text_input("First name", value=client['first_name'])
        last_name = col2.text_input("Last name", value=client['last_name'])
        email = col1.text_input("Email", value=client['email'])
        phone_number = col2.text_input("Phone number", value=client['phone_number'])
        account_active = st.checkbox("Account active", value=client['account_active'])
        if st.form_submit_button("Save changes"):
            try:
                clients.update_client(
                    client['id'], first_name=first_name.strip(), last_name=last_name.strip(),
                    email=email, phone_number=phone_number.strip(), account_active=account_active,
                )
            except ValueError as e:
                st.error(f"❌ {e}")
            else:
                st.success("✅ Client updated")
                st.rerun()

with badge_tab:
    col1, col2 = st.columns([1, 2])
    with col1:
        badge = clients.issue_badge(client['id'])
        st.image(data_url_to_bytes(badge['qr_code']), width=220)
    with col2:
        st.write(f"**Badge ID:** {badge['qr_code_id']}")
        st.download_button(
            "⬇️ Download QR Code",
            data=data_url_to_bytes(badge['qr_code']),
            file_name=f"barbaros-{badge['client_id']}.png",
            mime="image/png",
        )
        if st.button("🔄 Regenerate QR Code"):
            try:
                clients.regenerate_badge(client['id'], identity)
            except PermissionError as e:
                st.error(f"❌ {e}")
            else:
                st.success("✅ QR code regenerated")
        if st.button("👤 Open Profile"):
            st.session_state['profile_client_id'] = client['id']
            st.switch_page("pages/client_profile.py")

with delete_tab:
    st.warning(f"Deleting {client['full_name']} also removes their visit history.")
    confirm = st.checkbox("I understand, delete this client")
    if st.button("🗑️ Delete Client", disabled=not confirm):
        if clients.delete_client(client['id']):
            st.success("✅ Client deleted")
            st.rerun()
        else:
            st.error("❌ Client could not be deleted")

# Reward ladder
st.markdown("---")
with st.expander("🎁 Rewards", expanded=False):
    all_rewards = rewards.get_all()
    if all_rewards:
        rewards_df = pd.DataFrame(all_rewards)[['name', 'description', 'visits_required', 'is_active']]
        rewards_df.columns = ['Name', 'Description', 'Visits Required', 'Active']
        st.dataframe(rewards_df, use_container_width=True, hide_index=True)
    with st.form("create_reward"):
        name = st.text_input("Reward name")
        description = st.text_input("Description")
        visits_required = st.number_input("Visits required", min_value=1, value=10, step=1)
        if st.form_submit_button("Add reward"):
            if not name.strip():
                st.error("❌ Reward name is required")
            else:
                rewards.create(name, description, int(visits_required))
                st.success(f"✅ Added reward {name}")
                st.rerun()

# Footer
st.markdown("---")
st.markdown(
    """
    <div style='text-align: center; color: gray;'>
        <small>Barbaros Admin Dashboard | Staff Only</small>
    </div>
    """,
    unsafe_allow_html=True
)

import streamlit as st
import os
from datetime import datetime

from data_loader import load_sales_history, load_user_entries
from ui_components import render_navigation, render_data_status, render_log_expander
from pages.forecast_page import render_forecast_page
from pages.data_upload_page import render_data_upload_page

# --- Page Configuration ---
st.set_page_config(
    page_title="Demand Forecaster",
    page_icon="📈",
    layout="wide"
)

# --- File Paths ---
# Set env vars to override defaults: e.g., export SALES_FILE_PATH="/path/to/pizza-sales.csv"
SALES_FILE_PATH = os.environ.get("SALES_FILE_PATH", "data/pizza-sales.csv")
USER_SALES_FILE_PATH = os.environ.get("USER_SALES_FILE_PATH", "data/user_sales.json")

# === Data Loading with Caching ===
# Only re-reads the sales file when the path changes or the cache is cleared

@st.cache_data
def get_sales_history(path):
    return load_sales_history(path, file_key='sales')


def init_session_state():
    """Initialize session keys used across pages"""
    if 'uploaded_files' not in st.session_state:
        st.session_state.uploaded_files = {}
    if 'user_entries' not in st.session_state:
        st.session_state.user_entries = load_user_entries(USER_SALES_FILE_PATH)
    if 'data_load_time' not in st.session_state:
        st.session_state.data_load_time = datetime.now()


def render_file_status():
    """Sidebar status of the sales history source"""
    with st.sidebar.expander("File Status", expanded=False):
        if 'sales' in st.session_state.uploaded_files:
            st.success("✓ Using uploaded sales file")
        elif os.path.isfile(os.path.abspath(SALES_FILE_PATH)):
            st.success("✓ Found sales history file")
        else:
            st.warning("✗ NOT FOUND: sales history file")
            st.caption(f"Expected at: {os.path.abspath(SALES_FILE_PATH)}")
            st.caption("Upload one on the Data Management page or set SALES_FILE_PATH.")

        if st.button("🔄 Refresh Data", width='stretch'):
            st.cache_data.clear()
            st.session_state.user_entries = load_user_entries(USER_SALES_FILE_PATH)
            st.session_state.data_load_time = datetime.now()
            st.rerun()


def main():
    init_session_state()
    page = render_navigation()
    render_file_status()

    sales_logs, sales_df = get_sales_history(SALES_FILE_PATH)
    user_df = st.session_state.user_entries

    render_data_status(
        data_load_time=st.session_state.data_load_time,
        record_count=len(sales_df),
        user_count=len(user_df)
    )

    if page == "data_upload":
        render_data_upload_page(user_df, USER_SALES_FILE_PATH)
    else:
        render_forecast_page(sales_df, st.session_state.user_entries)

    with st.sidebar:
        render_log_expander(sales_logs, title="📋 Data Load Log")


if __name__ == "__main__":
    main()

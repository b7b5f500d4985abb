"""
Data Upload & Management Page
Upload a sales history CSV and record daily sales that feed the forecast
"""

import streamlit as st
import pandas as pd
from datetime import datetime, date

from business_rules import DATA_FIELD_DEFINITIONS
from data_loader import add_user_entry, save_user_entries, clear_user_entries
from ui_components import render_page_header, render_info_box, render_data_table

SALES_FIELDS = DATA_FIELD_DEFINITIONS["sales_history"]
USER_FIELDS = DATA_FIELD_DEFINITIONS["user_entries"]

TEMPLATE_SAMPLE = {
    "order_date": ["2024-01-01", "2024-01-01", "2024-01-02"],
    "quantity": [2, 1, 3],
    "total_price": [31.50, 16.75, 48.00],
    "pizza_category": ["Classic", "Veggie", "Supreme"],
}

# ===== VALIDATION =====

def validate_sales_upload(df):
    """
    Check that an uploaded sales file has the columns the loader needs.

    Returns:
        tuple: (is_valid, errors)
    """
    errors = []

    if df.empty:
        errors.append("File is empty")
        return False, errors

    if not any(col in df.columns for col in SALES_FIELDS["date_columns"]):
        errors.append(f"Missing date column (expected one of: {', '.join(SALES_FIELDS['date_columns'])})")
    if not any(col in df.columns for col in SALES_FIELDS["quantity_columns"]):
        errors.append(f"Missing quantity column (expected one of: {', '.join(SALES_FIELDS['quantity_columns'])})")

    return len(errors) == 0, errors

def create_template():
    """Sample sales CSV as bytes for the template download"""
    return pd.DataFrame(TEMPLATE_SAMPLE).to_csv(index=False).encode('utf-8')

# ===== PAGE =====

def _render_sales_upload():
    st.subheader("📥 Sales History")
    st.caption("Order-line CSV with a date and quantity per row; rows are summed per day")

    col1, col2 = st.columns([3, 1])
    with col1:
        uploaded_file = st.file_uploader(
            "Upload sales CSV",
            type=['csv'],
            key="upload_sales",
            label_visibility="collapsed"
        )
    with col2:
        st.download_button(
            label="📥 Template",
            data=create_template(),
            file_name=f"TEMPLATE_{SALES_FIELDS['source_file']}",
            mime="text/csv",
            width='stretch'
        )

    if uploaded_file is None:
        if 'sales' in st.session_state.uploaded_files:
            st.info("ℹ️ Using the uploaded sales file for this session")
        return

    try:
        preview = pd.read_csv(uploaded_file, dtype=str)
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        st.error(f"❌ Error reading file: {str(e)}")
        return

    is_valid, errors = validate_sales_upload(preview)
    if not is_valid:
        st.error("❌ Validation failed:")
        for error in errors:
            st.error(f"  • {error}")
        return

    uploaded_file.seek(0)
    st.session_state.uploaded_files['sales'] = uploaded_file
    # New upload invalidates the cached history
    if st.session_state.get('sales_upload_id') != uploaded_file.file_id:
        st.session_state.sales_upload_id = uploaded_file.file_id
        st.cache_data.clear()
    st.success(f"✅ File validated successfully! Loaded {len(preview):,} rows")
    with st.expander("Preview Data (first 5 rows)", expanded=False):
        st.dataframe(preview.head(), width='stretch')

def _render_entry_form(user_df, user_sales_path):
    st.subheader("➕ Add Daily Sales")
    st.caption("Record a day of sales; zero is allowed for closure days")

    with st.form("daily_sales_entry", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            entry_date = st.date_input("Date", value=date.today())
            quantity = st.number_input("Quantity sold", min_value=0, step=1, value=0)
        with col2:
            category = st.selectbox("Main category", USER_FIELDS["categories"])
            total_price = st.number_input(
                "Total revenue ($)", min_value=0.0, step=1.0, value=0.0,
                help=f"Leave at 0 to estimate as quantity × ${USER_FIELDS['default_unit_price']}"
            )
        submitted = st.form_submit_button("Add Entry")

    if not submitted:
        return user_df

    try:
        updated = add_user_entry(user_df, entry_date, quantity, category, total_price)
    except ValueError as e:
        st.error(f"❌ {str(e)}")
        return user_df

    success, _, message = save_user_entries(updated, user_sales_path)
    if success:
        st.success(f"✅ Added {int(quantity)} units for {entry_date:%Y-%m-%d}")
        st.session_state.user_entries = updated
        return updated
    st.error(message)
    return user_df

def render_data_upload_page(user_df, user_sales_path):
    """
    Main data management page render function

    Args:
        user_df: Current user-entered sales
        user_sales_path: JSON store for user entries
    """
    render_page_header(
        "Data Management",
        icon="📤",
        subtitle="Upload historical sales and record new daily sales"
    )

    if 'uploaded_files' not in st.session_state:
        st.session_state.uploaded_files = {}

    _render_sales_upload()
    st.divider()

    user_df = _render_entry_form(user_df, user_sales_path)
    st.divider()

    st.subheader("🗂️ Recorded Entries")
    if user_df is None or user_df.empty:
        render_info_box("No user entries yet. Add a day above to extend the history.")
        return

    display_df = user_df.copy()
    display_df['date'] = pd.to_datetime(display_df['date']).dt.strftime('%Y-%m-%d')
    render_data_table(
        display_df.sort_values('date', ascending=False),
        download_filename=f"user_sales_{datetime.now().strftime('%Y%m%d')}.csv"
    )

    if st.button("🗑️ Clear All Entries", type="secondary"):
        success, _, message = clear_user_entries(user_sales_path)
        if success:
            st.session_state.user_entries = pd.DataFrame(columns=USER_FIELDS["fields"])
            st.success(message)
            st.rerun()
        else:
            st.error(message)

"""
UI Components Module
Reusable Streamlit widgets for the Demand Forecaster pages
"""

import streamlit as st
import plotly.graph_objects as go

# ===== UI LAYOUT HELPERS =====

def render_page_header(title, icon="📈", subtitle=None):
    """Render consistent page headers"""
    st.title(f"{icon} {title}")
    if subtitle:
        st.caption(subtitle)
    st.divider()

def render_kpi_row(metrics_dict):
    """
    Render a row of KPI metrics

    Args:
        metrics_dict: Dict with format {"Label": {"value": "123", "delta": "+5%", "help": "Help text"}}
    """
    cols = st.columns(len(metrics_dict))
    for idx, (label, data) in enumerate(metrics_dict.items()):
        with cols[idx]:
            raw_value = data.get("value", "N/A")
            if raw_value is None or (isinstance(raw_value, str) and raw_value.strip() == ""):
                display_value = "N/A"
            else:
                display_value = raw_value

            st.metric(
                label=label,
                value=display_value,
                delta=data.get("delta"),
                help=data.get("help")
            )

def render_data_table(df, title=None, max_rows=100, downloadable=True, download_filename="data.csv"):
    """
    Render a data table with optional CSV download

    Args:
        df: Pandas DataFrame
        title: Optional section title
        max_rows: Maximum rows to display
        downloadable: Show download button
        download_filename: Name for downloaded file
    """
    if title:
        st.subheader(title)

    if df.empty:
        st.info("No data available")
        return

    st.dataframe(df.head(max_rows), width='stretch')

    if len(df) > max_rows:
        st.caption(f"Showing first {max_rows} of {len(df)} records")

    if downloadable:
        csv = df.to_csv(index=False).encode('utf-8')
        st.download_button(
            label="📥 Download Full Data",
            data=csv,
            file_name=download_filename,
            mime="text/csv",
            key=f"download_{download_filename}_{id(df)}"
        )

def render_chart(fig, title=None, height=400):
    """Render a Plotly chart with consistent styling"""
    if title:
        st.subheader(title)

    fig.update_layout(
        height=height,
        margin=dict(l=20, r=20, t=40, b=20),
        template="plotly_white"
    )

    st.plotly_chart(fig, width='stretch')

def render_info_box(message, type="info"):
    """
    Render an info/warning/error box

    Args:
        message: Message to display
        type: "info", "warning", "error", "success"
    """
    renderers = {
        "info": st.info,
        "warning": st.warning,
        "error": st.error,
        "success": st.success,
    }
    renderers.get(type, st.info)(message)

def render_log_expander(logs, title="📋 Processing Log"):
    """Show an engine's log lines, expanded when any line is an error"""
    if not logs:
        return
    with st.expander(title, expanded=any(line.startswith("ERROR") for line in logs)):
        st.code("\n".join(logs), language=None)

# ===== CHARTS =====

def build_forecast_chart(history_df, forecast_df, history_days=30):
    """
    History line plus both model forecasts.

    Args:
        history_df: Daily sales with date, quantity
        forecast_df: Forecast points with date, regression_value, arima_value
        history_days: Trailing history shown before the forecast

    Returns:
        plotly Figure
    """
    fig = go.Figure()

    if history_df is not None and not history_df.empty:
        recent = history_df.tail(history_days)
        fig.add_trace(go.Scatter(
            x=recent['date'], y=recent['quantity'],
            mode='lines+markers', name='Historical Sales',
            line=dict(color='#1f77b4')
        ))

    if forecast_df is not None and not forecast_df.empty:
        fig.add_trace(go.Scatter(
            x=forecast_df['date'], y=forecast_df['regression_value'],
            mode='lines+markers', name='Linear Regression',
            line=dict(color='#2ca02c', dash='dash'),
            customdata=forecast_df['regression_explanation'],
            hovertemplate='%{x|%a %Y-%m-%d}<br>%{y} units<br>%{customdata}<extra></extra>'
        ))
        fig.add_trace(go.Scatter(
            x=forecast_df['date'], y=forecast_df['arima_value'],
            mode='lines+markers', name='ARIMA',
            line=dict(color='#ff7f0e', dash='dot'),
            customdata=forecast_df['arima_explanation'],
            hovertemplate='%{x|%a %Y-%m-%d}<br>%{y} units<br>%{customdata}<extra></extra>'
        ))

    fig.update_layout(xaxis_title="Date", yaxis_title="Units", hovermode="x unified")
    return fig

# ===== NAVIGATION HELPERS =====

def get_main_navigation():
    """
    Define main navigation menu structure
    Returns list of menu items with page info
    """
    return [
        {
            "id": "forecasting",
            "label": "📈 Forecasting",
            "description": "7-day demand forecast with model comparison"
        },
        {
            "id": "data_upload",
            "label": "📤 Data Management",
            "description": "Upload sales history and record daily sales"
        },
    ]

def render_navigation():
    """
    Render main navigation menu in sidebar
    Returns selected page ID
    """
    st.sidebar.title("🍕 Demand Forecaster")
    st.sidebar.caption("7-day sales outlook")
    st.sidebar.divider()

    menu_items = get_main_navigation()

    selected = st.sidebar.radio(
        "Navigation",
        options=[item["label"] for item in menu_items],
        key="main_nav"
    )

    selected_page = next((item for item in menu_items if item["label"] == selected), None)

    if selected_page:
        st.sidebar.caption(selected_page["description"])

    st.sidebar.divider()

    return selected_page["id"] if selected_page else "forecasting"

# ===== DATA STATUS INDICATOR =====

def render_data_status(data_load_time=None, record_count=None, user_count=None):
    """Render data status indicator"""
    st.sidebar.divider()
    st.sidebar.caption("📊 Data Status")

    if data_load_time:
        st.sidebar.caption(f"Last Updated: {data_load_time.strftime('%H:%M:%S')}")

    if record_count:
        st.sidebar.caption(f"Historical days: {record_count:,}")

    if user_count:
        st.sidebar.caption(f"User entries: {user_count:,}")

# ===== UTILITY FORMATTERS =====

def format_number(value, format_type="integer"):
    """Format numbers consistently"""
    if value is None:
        return "N/A"

    formats = {
        'integer': '{:,}',
        'currency': '${:,.0f}',
        'percentage': '{:.1f}%',
        'decimal': '{:.2f}'
    }

    try:
        return formats.get(format_type, '{}').format(value)
    except (ValueError, TypeError):
        return str(value)

def format_date(date_value, format_str='%Y-%m-%d'):
    """Format dates consistently"""
    if date_value is None:
        return "N/A"

    if isinstance(date_value, str):
        return date_value
    try:
        return date_value.strftime(format_str)
    except (AttributeError, ValueError):
        return str(date_value)

"""
Demand Forecasting Page
7-day forecast from two models, data continuity warning and backtest accuracy
"""

import streamlit as st
import pandas as pd
from datetime import datetime

from demand_forecasting import generate_forecast, summarize_forecast, merge_sales_observations, aggregate_daily_sales
from forecast_backtest import evaluate_backtest, backtest_summary_frame
from utils import export_forecast_csv, get_filtered_data_as_excel, EXPORT_FILE_NAME
from ui_components import (
    render_page_header,
    render_kpi_row,
    render_chart,
    render_info_box,
    render_log_expander,
    build_forecast_chart,
    format_number,
)

GAP_BOX_TYPES = {
    'critical': 'error',
    'major': 'warning',
    'moderate': 'info',
}

# ===== TABLE BUILDERS =====

def build_comparison_table(forecast_df):
    """Forecast points formatted for display, one row per day"""
    if forecast_df.empty:
        return pd.DataFrame(columns=['Date', 'Day', 'Linear Regression', 'ARIMA', 'Difference'])

    summary = summarize_forecast(forecast_df)
    diffs = summary['daily_differences']
    return pd.DataFrame({
        'Date': pd.to_datetime(forecast_df['date']).dt.strftime('%Y-%m-%d'),
        'Day': forecast_df['day_of_week'],
        'Linear Regression': forecast_df['regression_value'],
        'ARIMA': forecast_df['arima_value'],
        'Difference': [
            f"{d:.0f} ({p:.1f}%)" if pd.notna(d) else "N/A"
            for d, p in zip(diffs['difference'], diffs['percent_difference'])
        ],
    })

def build_explanation_table(forecast_df):
    """Per-day explanations from both models"""
    return pd.DataFrame({
        'Date': pd.to_datetime(forecast_df['date']).dt.strftime('%Y-%m-%d'),
        'Day': forecast_df['day_of_week'],
        'Linear Regression': forecast_df['regression_explanation'],
        'ARIMA': forecast_df['arima_explanation'],
    })

# ===== SECTIONS =====

def _render_backtest(backtest_report):
    st.subheader("🎯 Forecast Reliability")
    if backtest_report['status'] != 'ok':
        render_info_box(f"Performance metrics unavailable. {backtest_report['message']}", "info")
        return

    mape = backtest_report['mape']
    render_kpi_row({
        "Accuracy": {
            "value": backtest_report['accuracy_label'],
            "help": "Graded from MAPE: < 15% Excellent, < 25% Good, < 35% Fair, otherwise Poor"
        },
        "MAPE": {
            "value": format_number(mape, 'percentage'),
            "help": "Mean absolute percentage error on held-out days with sales"
        },
        "MAE": {
            "value": f"{format_number(backtest_report['mae'], 'decimal')} units",
            "help": "Mean absolute error on held-out days"
        },
        "Reliability": {
            "value": backtest_report['reliability'],
            "help": f"Relative error {backtest_report['stability_pct']:.1f}% of the training average"
        },
    })
    st.caption(backtest_report['message'])

def render_forecast_page(sales_df, user_df=None):
    """
    Render the demand forecasting page

    Args:
        sales_df: Historical daily sales (date, quantity, category, total_price)
        user_df: User-entered daily sales
    """
    render_page_header(
        "Demand Forecasting",
        subtitle="7-day demand outlook comparing trend regression and ARIMA"
    )

    logs, forecast_df, gap_report, status = generate_forecast(sales_df, user_df)
    backtest_logs, backtest_report = evaluate_backtest(sales_df, user_df)

    if status != 'ok':
        render_info_box(logs[-1].replace("ERROR: ", ""), "warning")
        render_info_box("Upload sales history or add daily entries on the Data Management page.")
        render_log_expander(logs)
        return

    history_df = aggregate_daily_sales(merge_sales_observations(sales_df, user_df))
    summary = summarize_forecast(forecast_df)

    # ===== KPI ROW =====
    render_kpi_row({
        "Days of History": {
            "value": format_number(len(history_df)),
            "help": "Distinct days with valid sales data"
        },
        "Regression (7 days)": {
            "value": f"{format_number(summary['regression_total'])} units",
        },
        "ARIMA (7 days)": {
            "value": f"{format_number(summary['arima_total'])} units",
        },
        "Avg Daily Difference": {
            "value": f"{summary['average_daily_difference']:.1f} units",
            "help": "Mean absolute difference between the two models"
        },
    })

    # ===== DATA CONTINUITY =====
    if gap_report and gap_report['has_large_gap']:
        render_info_box(gap_report['message'], GAP_BOX_TYPES.get(gap_report['severity'], 'warning'))
    elif gap_report:
        st.caption(gap_report['message'])

    st.divider()

    # ===== CHART =====
    render_chart(build_forecast_chart(history_df, forecast_df), title="📈 History & Forecast", height=450)

    # ===== COMPARISON =====
    st.subheader("📋 Model Comparison")
    st.dataframe(build_comparison_table(forecast_df), width='stretch', hide_index=True)

    with st.expander("💡 Why these numbers?", expanded=False):
        st.dataframe(build_explanation_table(forecast_df), width='stretch', hide_index=True)

    st.divider()
    _render_backtest(backtest_report)

    # ===== EXPORT =====
    st.divider()
    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            label="📥 Download Forecast (CSV)",
            data=export_forecast_csv(forecast_df).encode('utf-8'),
            file_name=EXPORT_FILE_NAME,
            mime="text/csv",
            width='stretch'
        )
    with col2:
        excel_data = get_filtered_data_as_excel({
            "Forecast": (build_comparison_table(forecast_df), False),
            "Explanations": (build_explanation_table(forecast_df), False),
            "Backtest": (backtest_summary_frame(backtest_report), False),
            "History": (history_df, False),
        })
        st.download_button(
            label="📥 Download Report (Excel)",
            data=excel_data,
            file_name=f"demand_forecast_{datetime.now().strftime('%Y%m%d')}.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            width='stretch'
        )

    render_log_expander(logs + backtest_logs)

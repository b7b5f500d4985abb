"""
Pytest configuration and shared fixtures for all tests
Centralized mock sales data and utilities
"""

import pytest
import pandas as pd
import numpy as np
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# ===== SHARED MOCK DATA FIXTURES =====

def make_daily_sales(quantities, start="2024-01-01"):
    """Daily sales frame with one row per consecutive day"""
    dates = pd.date_range(start=start, periods=len(quantities), freq='D')
    return pd.DataFrame({
        'date': dates,
        'quantity': quantities,
        'category': 'Classic',
        'total_price': [q * 15 if isinstance(q, (int, float)) and np.isfinite(q) else 0 for q in quantities],
    })

@pytest.fixture
def steady_sales_df():
    """
    60 days of normal trading:
    - Weekday demand around 120 units, weekends around 140
    - Small deterministic wobble so the series is not constant
    """
    dates = pd.date_range(start="2024-01-01", periods=60, freq='D')
    quantities = [
        (140 if d.dayofweek >= 5 else 120) + (i % 5) - 2
        for i, d in enumerate(dates)
    ]
    return pd.DataFrame({
        'date': dates,
        'quantity': quantities,
        'category': 'Classic',
        'total_price': [q * 15.0 for q in quantities],
    })

@pytest.fixture
def low_sales_df():
    """
    12 days ending in a low-sales stretch with two closure days (2024-01-01 is a Monday)
    """
    return make_daily_sales([20, 22, 19, 21, 23, 0, 0, 18, 20, 19, 21, 22])

@pytest.fixture
def constant_sales_df():
    """14 days of exactly 100 units"""
    return make_daily_sales([100] * 14)

@pytest.fixture
def mock_sales_csv():
    """
    Order-line sales CSV with:
    - Several lines per day (test aggregation)
    - A row with no quantity (skipped)
    - A row with an unparseable price (counted as 0)
    - A row with an invalid date (skipped)
    """
    csv_data = (
        "order_id,order_date,quantity,total_price,pizza_category\n"
        "1,2024-01-01,2,31.50,Classic\n"
        "2,2024-01-01,1,16.75,Veggie\n"
        "3,2024-01-02,3,48.00,Supreme\n"
        "4,2024-01-02,,20.00,Classic\n"
        "5,2024-01-03,4,abc,Chicken\n"
        "6,NOT-A-DATE,5,10.00,Classic\n"
    )
    return csv_data

@pytest.fixture(autouse=True)
def no_uploaded_files(monkeypatch):
    """
    Keep file reads on disk: tests run outside a Streamlit session,
    so uploaded buffers are never consulted.
    """
    import file_loader
    monkeypatch.setattr(file_loader.st, "session_state", {}, raising=False)

# ===== HELPER FUNCTIONS =====

def assert_log_contains(logs, *fragments):
    """Assert that at least one log line contains every fragment"""
    assert any(all(fragment in line for fragment in fragments) for line in logs), \
        f"No log line contains {fragments}. Logs:\n" + "\n".join(logs)

def assert_dataframe_has_columns(df, required_columns):
    """Assert that dataframe has all required columns"""
    missing = set(required_columns) - set(df.columns)
    assert not missing, f"Missing columns: {missing}"

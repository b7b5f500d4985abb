"""
Tests for data_loader module
Sales history loading and the user entry store
"""

import pytest
import pandas as pd
import numpy as np

from data_loader import (
    load_sales_history,
    load_user_entries,
    add_user_entry,
    save_user_entries,
    clear_user_entries,
    USER_ENTRY_COLUMNS,
)
from conftest import assert_log_contains, assert_dataframe_has_columns


@pytest.fixture
def sales_csv_path(tmp_path, mock_sales_csv):
    path = tmp_path / "pizza-sales.csv"
    path.write_text(mock_sales_csv)
    return str(path)


class TestLoadSalesHistory:
    """Order-line CSV aggregated to daily totals"""

    def test_aggregates_per_day(self, sales_csv_path):
        logs, daily = load_sales_history(sales_csv_path)

        assert_dataframe_has_columns(daily, USER_ENTRY_COLUMNS)
        assert list(daily['date']) == list(pd.to_datetime(["2024-01-01", "2024-01-02", "2024-01-03"]))
        assert list(daily['quantity']) == [3, 3, 4]
        assert list(daily['total_price']) == [48.25, 48.00, 0.0]
        assert daily['category'].iloc[0] == "Classic, Veggie"
        assert logs[0] == "--- Sales History Loader ---"

    def test_skipped_rows_logged(self, sales_csv_path):
        logs, _ = load_sales_history(sales_csv_path)

        assert_log_contains(logs, "WARN: Skipped 1 rows with missing date or quantity")
        assert_log_contains(logs, "WARN: Skipped 1 rows with unparseable dates")

    def test_alternative_column_names(self, tmp_path):
        path = tmp_path / "sales.csv"
        path.write_text("Order Date,Quantity,Total Price,Category\n2024-02-01,5,75,Veggie\n2024-02-01,1,15,Veggie\n")

        _, daily = load_sales_history(str(path))

        assert len(daily) == 1
        assert daily['quantity'].iloc[0] == 6
        assert daily['category'].iloc[0] == "Veggie"

    def test_missing_price_and_category_columns(self, tmp_path):
        path = tmp_path / "sales.csv"
        path.write_text("date,quantity\n2024-02-01,5\n")

        _, daily = load_sales_history(str(path))

        assert daily['total_price'].iloc[0] == 0
        assert daily['category'].iloc[0] == "Other"

    def test_zero_quantity_day_is_kept(self, tmp_path):
        path = tmp_path / "sales.csv"
        path.write_text("order_date,quantity\n2024-02-01,0\n2024-02-02,4\n")

        _, daily = load_sales_history(str(path))

        assert list(daily['quantity']) == [0, 4]

    def test_missing_file(self, tmp_path):
        logs, daily = load_sales_history(str(tmp_path / "missing.csv"))

        assert daily.empty
        assert_log_contains(logs, "ERROR: Failed to read sales file")

    def test_missing_required_columns(self, tmp_path):
        path = tmp_path / "sales.csv"
        path.write_text("when,how_many\n2024-02-01,5\n")

        logs, daily = load_sales_history(str(path))

        assert daily.empty
        assert_log_contains(logs, "ERROR: Sales file is missing a date column")


class TestUserEntryStore:
    """JSON-backed user sales entries"""

    def test_add_entry_defaults_price(self):
        entries = add_user_entry(pd.DataFrame(columns=USER_ENTRY_COLUMNS), "2024-02-01", 10, "Classic")

        assert len(entries) == 1
        assert entries['total_price'].iloc[0] == 150
        assert entries['date'].iloc[0] == pd.Timestamp("2024-02-01")

    def test_add_entry_zero_price_uses_estimate(self):
        entries = add_user_entry(None, "2024-02-01", 4, "Veggie", total_price=0)

        assert entries['total_price'].iloc[0] == 60

    def test_add_entry_keeps_explicit_price(self):
        entries = add_user_entry(None, "2024-02-01", 4, "Veggie", total_price=52.5)

        assert entries['total_price'].iloc[0] == 52.5

    def test_entries_stay_date_ordered(self):
        entries = add_user_entry(None, "2024-02-05", 10, "Classic")
        entries = add_user_entry(entries, "2024-02-01", 0, "Classic")

        assert list(entries['date']) == list(pd.to_datetime(["2024-02-01", "2024-02-05"]))

    @pytest.mark.parametrize("quantity", [-1, np.nan, np.inf, "abc"])
    def test_rejects_invalid_quantity(self, quantity):
        with pytest.raises(ValueError):
            add_user_entry(None, "2024-02-01", quantity, "Classic")

    def test_rejects_invalid_date(self):
        with pytest.raises(ValueError):
            add_user_entry(None, "not-a-date", 5, "Classic")

    def test_save_and_load(self, tmp_path):
        path = str(tmp_path / "data" / "user_sales.json")
        entries = add_user_entry(None, "2024-02-01", 10, "Classic")
        entries = add_user_entry(entries, "2024-02-02", 12, "Supreme", total_price=180)

        success, filepath, message = save_user_entries(entries, path)
        loaded = load_user_entries(path)

        assert success is True
        assert filepath == path
        assert "Saved 2 user entries" in message
        assert list(loaded['date']) == list(entries['date'])
        assert list(loaded['quantity']) == [10, 12]
        assert list(loaded['category']) == ["Classic", "Supreme"]

    def test_load_missing_store(self, tmp_path):
        loaded = load_user_entries(str(tmp_path / "none.json"))

        assert loaded.empty
        assert list(loaded.columns) == USER_ENTRY_COLUMNS

    def test_load_corrupt_store(self, tmp_path):
        path = tmp_path / "user_sales.json"
        path.write_text("{not json")

        assert load_user_entries(str(path)).empty

    def test_clear(self, tmp_path):
        path = str(tmp_path / "user_sales.json")
        save_user_entries(add_user_entry(None, "2024-02-01", 10, "Classic"), path)

        success, _, message = clear_user_entries(path)

        assert success is True
        assert message == "User data cleared!"
        assert load_user_entries(path).empty

    def test_clear_without_store(self, tmp_path):
        success, _, _ = clear_user_entries(str(tmp_path / "none.json"))

        assert success is True

import pandas as pd
import numpy as np
import os
import time
from file_loader import safe_read_csv
from business_rules import DATA_FIELD_DEFINITIONS

# === Helper Functions ===

SALES_FIELDS = DATA_FIELD_DEFINITIONS["sales_history"]
USER_FIELDS = DATA_FIELD_DEFINITIONS["user_entries"]
USER_ENTRY_COLUMNS = USER_FIELDS["fields"]
DEFAULT_USER_SALES_PATH = USER_FIELDS["source_file"]


def safe_numeric_column(series: pd.Series, remove_commas: bool = False) -> pd.Series:
    """
    Convert a column to numeric, treating unparseable values as 0.

    Args:
        series: Pandas Series to convert
        remove_commas: If True, remove thousands separators before conversion

    Returns:
        Numeric Series with NaN filled as 0
    """
    if remove_commas:
        series = series.astype(str).str.replace(',', '', regex=False)
    return pd.to_numeric(series, errors='coerce').fillna(0)


def resolve_column(df, candidates):
    """Return the first candidate column present in df, or None."""
    return next((col for col in candidates if col in df.columns), None)


def _is_blank(series: pd.Series) -> pd.Series:
    return series.isna() | (series.astype(str).str.strip() == '')


# === Sales History Loader ===

def load_sales_history(sales_path, file_key='sales'):
    """
    Load order-line sales data and aggregate it to one row per day.

    Rows without a date or quantity are skipped. Quantities and prices that
    cannot be parsed count as 0. Same-day rows are summed (quantity rounded
    to whole units, revenue rounded to cents) and their categories joined.

    Args:
        sales_path: file path to the sales CSV
        file_key: session state key for an uploaded file (default 'sales')

    Returns:
        tuple: (logs, daily_df) where daily_df has columns date, quantity, category, total_price
    """
    logs = []
    start_time = time.time()
    logs.append("--- Sales History Loader ---")
    empty = pd.DataFrame(columns=USER_ENTRY_COLUMNS)

    try:
        df = safe_read_csv(file_key, sales_path, dtype=str, keep_default_na=False)
        logs.append(f"INFO: Loaded {len(df)} rows from sales file.")
    except Exception as e:
        logs.append(f"ERROR: Failed to read sales file '{sales_path}': {e}")
        return logs, empty

    date_col = resolve_column(df, SALES_FIELDS["date_columns"])
    qty_col = resolve_column(df, SALES_FIELDS["quantity_columns"])
    if date_col is None or qty_col is None:
        logs.append(
            f"ERROR: Sales file is missing a date column ({', '.join(SALES_FIELDS['date_columns'])}) "
            f"or quantity column ({', '.join(SALES_FIELDS['quantity_columns'])})."
        )
        return logs, empty

    price_col = resolve_column(df, SALES_FIELDS["price_columns"])
    category_col = resolve_column(df, SALES_FIELDS["category_columns"])

    missing_mask = _is_blank(df[date_col]) | _is_blank(df[qty_col])
    if missing_mask.any():
        logs.append(f"WARN: Skipped {int(missing_mask.sum())} rows with missing date or quantity.")
    df = df[~missing_mask]

    work = pd.DataFrame({
        'date': pd.to_datetime(df[date_col], errors='coerce').dt.normalize(),
        'quantity': safe_numeric_column(df[qty_col], remove_commas=True),
        'total_price': safe_numeric_column(df[price_col], remove_commas=True) if price_col else 0.0,
        'category': df[category_col].replace('', SALES_FIELDS["default_category"]) if category_col
        else SALES_FIELDS["default_category"],
    })

    bad_dates = work['date'].isna()
    if bad_dates.any():
        logs.append(f"WARN: Skipped {int(bad_dates.sum())} rows with unparseable dates.")
        work = work[~bad_dates]

    if work.empty:
        logs.append("ERROR: No usable sales rows after cleaning.")
        return logs, empty

    daily = work.groupby('date', as_index=False, sort=True).agg(
        quantity=('quantity', 'sum'),
        category=('category', lambda s: ", ".join(dict.fromkeys(s.astype(str)))),
        total_price=('total_price', 'sum'),
    )
    daily['quantity'] = np.floor(daily['quantity'] + 0.5)
    daily['total_price'] = daily['total_price'].round(2)

    logs.append(
        f"INFO: Aggregated to {len(daily)} daily records "
        f"({daily['date'].min():%Y-%m-%d} to {daily['date'].max():%Y-%m-%d})."
    )
    logs.append(f"INFO: Sales History Loader finished in {time.time() - start_time:.2f} seconds.")
    return logs, daily[USER_ENTRY_COLUMNS]


# === User Sales Entry Store ===

def load_user_entries(file_path=DEFAULT_USER_SALES_PATH):
    """
    Load user-entered daily sales from the local JSON store.

    Returns:
        pd.DataFrame: Columns date, quantity, category, total_price (empty if none saved)
    """
    if not os.path.exists(file_path):
        return pd.DataFrame(columns=USER_ENTRY_COLUMNS)

    try:
        df = pd.read_json(file_path, orient='records', convert_dates=False)
    except ValueError as e:
        print(f"Warning: Could not load user entries from {file_path}: {str(e)}")
        return pd.DataFrame(columns=USER_ENTRY_COLUMNS)

    if df.empty:
        return pd.DataFrame(columns=USER_ENTRY_COLUMNS)

    df = df.reindex(columns=USER_ENTRY_COLUMNS)
    df['date'] = pd.to_datetime(df['date'], errors='coerce')
    return df.sort_values('date', kind='mergesort').reset_index(drop=True)


def add_user_entry(entries_df, date, quantity, category, total_price=None):
    """
    Append one day of user-entered sales and keep the log date-ordered.

    Args:
        entries_df: Existing user entries (may be empty)
        date: Sales date
        quantity: Units sold (finite, >= 0; zero is a valid closure day)
        category: Main category label
        total_price: Revenue; defaults to quantity x unit price estimate when blank or 0

    Returns:
        pd.DataFrame: New entries frame (input is not modified)

    Raises:
        ValueError: if quantity is not a finite, non-negative number or date is invalid
    """
    quantity = pd.to_numeric(quantity, errors='coerce')
    if pd.isna(quantity) or not np.isfinite(quantity) or quantity < 0:
        raise ValueError(f"Quantity must be a non-negative number, got {quantity!r}")

    entry_date = pd.to_datetime(date, errors='coerce')
    if pd.isna(entry_date):
        raise ValueError(f"Invalid sales date: {date!r}")

    price = pd.to_numeric(total_price, errors='coerce') if total_price is not None else np.nan
    if pd.isna(price) or price == 0:
        price = float(quantity) * USER_FIELDS["default_unit_price"]

    new_row = pd.DataFrame([{
        'date': entry_date.normalize(),
        'quantity': float(quantity),
        'category': category,
        'total_price': float(price),
    }])

    frames = [df for df in (entries_df, new_row) if df is not None and not df.empty]
    updated = pd.concat(frames, ignore_index=True)
    updated['date'] = pd.to_datetime(updated['date'], errors='coerce')
    return updated.sort_values('date', kind='mergesort').reset_index(drop=True)[USER_ENTRY_COLUMNS]


def save_user_entries(entries_df, file_path=DEFAULT_USER_SALES_PATH):
    """
    Persist user entries as JSON records.

    Returns:
        tuple: (success: bool, filepath: str, message: str)
    """
    folder = os.path.dirname(file_path)
    if folder:
        os.makedirs(folder, exist_ok=True)

    try:
        to_save = entries_df.reindex(columns=USER_ENTRY_COLUMNS).copy()
        to_save['date'] = pd.to_datetime(to_save['date'], errors='coerce').dt.strftime('%Y-%m-%d')
        to_save.to_json(file_path, orient='records', indent=2)
        return True, file_path, f"Saved {len(to_save)} user entries to {file_path}"
    except (OSError, ValueError) as e:
        return False, "", f"Error saving user entries: {str(e)}"


def clear_user_entries(file_path=DEFAULT_USER_SALES_PATH):
    """
    Delete the user entry store.

    Returns:
        tuple: (success: bool, filepath: str, message: str)
    """
    if not os.path.exists(file_path):
        return True, file_path, "No user entries to clear."

    try:
        os.remove(file_path)
        return True, file_path, "User data cleared!"
    except OSError as e:
        return False, file_path, f"Error clearing user entries: {str(e)}"

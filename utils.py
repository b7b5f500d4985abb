import pandas as pd
import io # Required for Excel export

from business_rules import DATA_FIELD_DEFINITIONS

# --- Constants ---
EXPORT_COLUMNS = DATA_FIELD_DEFINITIONS["forecast_export"]["columns"]
EXPORT_FILE_NAME = DATA_FIELD_DEFINITIONS["forecast_export"]["file_name"]

# Forecast frame column -> export header
EXPORT_COLUMN_MAP = {
    'date': 'Date',
    'regression_value': 'Linear Regression',
    'arima_value': 'ARIMA',
    'day_of_week': 'Day of Week',
}

# --- Forecast CSV Export ---

def export_forecast_csv(forecast_df: pd.DataFrame) -> str:
    """
    Render the 7-day forecast comparison as CSV text.

    Header is `Date,Linear Regression,ARIMA,Day of Week`; dates are YYYY-MM-DD.
    """
    if forecast_df is None or forecast_df.empty:
        return ",".join(EXPORT_COLUMNS) + "\n"

    export_df = forecast_df[list(EXPORT_COLUMN_MAP)].rename(columns=EXPORT_COLUMN_MAP)
    export_df['Date'] = pd.to_datetime(export_df['Date']).dt.strftime('%Y-%m-%d')
    return export_df[EXPORT_COLUMNS].to_csv(index=False, lineterminator='\n')


def parse_forecast_csv(csv_text: str) -> pd.DataFrame:
    """
    Read an exported forecast CSV back into date / regression_value / arima_value.

    Raises:
        ValueError: if the text does not carry the export header
    """
    df = pd.read_csv(io.StringIO(csv_text))
    missing = [col for col in EXPORT_COLUMNS if col not in df.columns]
    if missing:
        raise ValueError(f"Not a forecast export, missing columns: {missing}")

    return pd.DataFrame({
        'date': pd.to_datetime(df['Date'], format='%Y-%m-%d'),
        'regression_value': pd.to_numeric(df['Linear Regression'], errors='coerce'),
        'arima_value': pd.to_numeric(df['ARIMA'], errors='coerce'),
    })

# --- Data Export Function ---

def get_filtered_data_as_excel(dfs_to_export_dict):
    """
    Processes a dictionary of dataframes
    and returns an Excel file as a bytes object for download.
    The dictionary format is { "sheet_name": (dataframe, include_index_bool) }
    """
    output = io.BytesIO()

    with pd.ExcelWriter(output, engine='xlsxwriter') as writer:
        for sheet_name, (df, include_index) in dfs_to_export_dict.items():

            if not isinstance(df, pd.DataFrame):
                print(f"Skipping {sheet_name}: Not a DataFrame.")
                continue
            if df.empty:
                print(f"Skipping {sheet_name}: DataFrame is empty.")
                continue

            # Only copy when a datetime column needs formatting
            df_to_export = df
            datetime_cols = [col for col in df.columns if pd.api.types.is_datetime64_any_dtype(df[col])]
            if datetime_cols:
                df_to_export = df.copy()
                for col in datetime_cols:
                    if df_to_export[col].dt.tz is not None:
                        df_to_export[col] = df_to_export[col].dt.tz_localize(None)
                    df_to_export[col] = df_to_export[col].dt.strftime('%Y-%m-%d')

            df_to_export.to_excel(writer, sheet_name=sheet_name, index=include_index)

            # Auto-adjust column widths
            worksheet = writer.sheets[sheet_name]
            offset = 1 if include_index else 0
            for idx, col in enumerate(df_to_export.columns):
                series = df_to_export[col]
                max_len = max(
                    series.astype(str).map(len).max(),
                    len(str(series.name))
                ) + 2
                worksheet.set_column(idx + offset, idx + offset, max_len)

    return output.getvalue()

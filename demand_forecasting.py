"""
Demand Forecasting Module

Generates 7-day demand forecasts from a merged historical + user-entered daily sales log.
Two independent models run over the same normalized series:
- Trend-weighted linear regression blended with a moving average
- Fixed-order ARIMA(1,1,1) with an exponential smoothing fallback chain

Key Features:
- Series normalization that keeps legitimate zero-sales (closure) days
- Time gap diagnostics (advisory only, never blocks forecasting)
- Weekend seasonality and output bounding shared by every model
- A human-readable explanation for every predicted day
- Numba JIT kernels for the regression fit and the smoothing recursion
"""

import time
import warnings

import numpy as np
import pandas as pd
from numba import jit
from statsmodels.tsa.arima.model import ARIMA

from business_rules import (
    FORECAST_RULES,
    DAY_NAMES,
    get_seasonal_multiplier,
    get_gap_severity,
)

HORIZON_DAYS = FORECAST_RULES["horizon_days"]
DEFAULT_FORECAST = FORECAST_RULES["default_forecast"]
MAX_PREDICTION = FORECAST_RULES["bounds"]["max_prediction"]

FORECAST_COLUMNS = [
    'date', 'regression_value', 'arima_value',
    'regression_explanation', 'arima_explanation', 'day_of_week'
]
SALES_COLUMNS = ['date', 'quantity', 'category', 'total_price']


# ===== NUMBA JIT-COMPILED FUNCTIONS =====

@jit(nopython=True, cache=True)
def _exp_smooth_jit(values: np.ndarray, alpha: float) -> float:
    """JIT-compiled exponential smoothing seeded with the first value"""
    if len(values) == 0:
        return 0.0
    smoothed = values[0]
    for i in range(1, len(values)):
        smoothed = alpha * values[i] + (1.0 - alpha) * smoothed
    return smoothed


@jit(nopython=True, cache=True)
def _linear_regression_jit(values: np.ndarray) -> tuple:
    """JIT-compiled ordinary least squares of values against their index -> (slope, intercept)"""
    n = len(values)
    if n == 0:
        return 0.0, 0.0
    if n < 2:
        return 0.0, values[0]

    sum_x = 0.0
    sum_y = 0.0
    sum_xy = 0.0
    sum_xx = 0.0

    for i in range(n):
        x = float(i)
        y = values[i]
        sum_x += x
        sum_y += y
        sum_xy += x * y
        sum_xx += x * x

    denominator = n * sum_xx - sum_x * sum_x
    if abs(denominator) < 1e-10:
        return 0.0, sum_y / n

    slope = (n * sum_xy - sum_x * sum_y) / denominator
    intercept = (sum_y - slope * sum_x) / n
    return slope, intercept


# ===== SHARED HELPERS: SEASONALITY & BOUNDING =====

def _round_prediction(value: float):
    """Round half up to whole units; non-finite values pass through for bound_prediction"""
    if not np.isfinite(value):
        return value
    return int(np.floor(value + 0.5))


def _valid_values(time_series) -> np.ndarray:
    """Finite, non-negative quantities as float64 (zeros are kept)"""
    values = pd.to_numeric(pd.Series(list(time_series), dtype=object), errors='coerce').to_numpy(dtype=float)
    return values[np.isfinite(values) & (values >= 0)]


def get_forecast_dates(last_date, horizon_days: int = HORIZON_DAYS) -> list:
    """Consecutive calendar days following the last observed date"""
    last_date = pd.Timestamp(last_date).normalize()
    return [last_date + pd.Timedelta(days=i) for i in range(1, horizon_days + 1)]


def get_prediction_floor(has_recent_zeros: bool) -> int:
    """Lower bound for predictions: 0 during closure periods, otherwise 10"""
    bounds = FORECAST_RULES["bounds"]
    return bounds["min_prediction_with_zeros"] if has_recent_zeros else bounds["min_prediction"]


def bound_prediction(predicted, min_bound: int, fallback: int = DEFAULT_FORECAST) -> tuple:
    """
    Clamp a prediction to [min_bound, MAX_PREDICTION].

    Args:
        predicted: Rounded prediction (non-finite values are replaced by fallback)
        min_bound: Lower bound for this path
        fallback: Value substituted for a non-finite prediction

    Returns:
        tuple: (bounded_value, explanation_suffix)
    """
    note = ""
    if predicted is None or not np.isfinite(predicted):
        note = f" (Invalid value replaced with {fallback})"
        predicted = fallback
    predicted = int(predicted)
    bounded = max(min_bound, min(MAX_PREDICTION, predicted))
    if bounded != predicted:
        note += f" (Bounded from {predicted} to {bounded})"
    return bounded, note


def describe_seasonality(day_name: str, multiplier: float, label: str = "seasonal adjustment") -> str:
    """Explanation fragment for the weekend multiplier applied on a given day"""
    return f"{day_name} gets {(multiplier - 1) * 100:.0f}% {label}"


def _new_result(model: str) -> dict:
    return {
        'model': model,
        'status': 'ok',
        'method': '',
        'forecasts': [],
        'explanations': [],
        'branches': [],
        'warnings': [],
        'reason': '',
    }


def _constant_result(model: str, value: float, explanation: str, status: str, method: str) -> dict:
    result = _new_result(model)
    result['status'] = status
    result['method'] = method
    result['forecasts'] = [_round_prediction(value)] * HORIZON_DAYS
    result['explanations'] = [explanation] * HORIZON_DAYS
    result['branches'] = [method] * HORIZON_DAYS
    return result


# ===== SERIES NORMALIZER =====

def merge_sales_observations(historical_df, user_df=None) -> pd.DataFrame:
    """
    Combine historical and user-entered observations into one date-ordered frame.

    Malformed quantities become NaN (filtered later), malformed dates are dropped.
    Category and price are carried through for display only.

    Args:
        historical_df: DataFrame with at least 'date' and 'quantity'
        user_df: Optional DataFrame of user-entered rows with the same columns

    Returns:
        pd.DataFrame: Columns date, quantity, category, total_price sorted by date
    """
    frames = [df for df in (historical_df, user_df) if df is not None and not df.empty]
    if not frames:
        return pd.DataFrame(columns=SALES_COLUMNS)

    df = pd.concat(frames, ignore_index=True)
    if 'date' not in df.columns or 'quantity' not in df.columns:
        return pd.DataFrame(columns=SALES_COLUMNS)

    if 'category' not in df.columns:
        df['category'] = 'Other'
    if 'total_price' not in df.columns:
        df['total_price'] = 0.0

    df = df[SALES_COLUMNS].copy()
    df['date'] = pd.to_datetime(df['date'], errors='coerce').dt.normalize()
    df['quantity'] = pd.to_numeric(df['quantity'], errors='coerce')
    df['total_price'] = pd.to_numeric(df['total_price'], errors='coerce').fillna(0)
    df['category'] = df['category'].fillna('Other').astype(str)
    df = df[df['date'].notna()]

    # Stable sort keeps historical rows ahead of user rows on the same day
    return df.sort_values('date', kind='mergesort').reset_index(drop=True)


def aggregate_daily_sales(merged_df: pd.DataFrame) -> pd.DataFrame:
    """
    Drop non-finite / negative quantities and sum the rest per calendar day.

    Zero-quantity days are valid business data (closures) and are kept.
    """
    if merged_df.empty:
        return pd.DataFrame(columns=SALES_COLUMNS)

    quantities = merged_df['quantity'].to_numpy(dtype=float)
    valid_mask = np.isfinite(quantities) & (quantities >= 0)
    valid = merged_df[valid_mask]
    if valid.empty:
        return pd.DataFrame(columns=SALES_COLUMNS)

    daily = valid.groupby('date', as_index=False, sort=True).agg(
        quantity=('quantity', 'sum'),
        category=('category', lambda s: ", ".join(dict.fromkeys(s))),
        total_price=('total_price', 'sum'),
    )
    return daily[SALES_COLUMNS]


def normalize_series(historical_df, user_df=None) -> dict:
    """
    Build the modeling series from historical and user observations.

    Never raises on bad data; insufficiency is reported through 'status':
    - 'insufficient_data': fewer than 7 daily records in total
    - 'insufficient_valid_data': fewer than 3 finite, non-negative days remain

    Returns:
        dict: {
            'status': 'ok' | 'insufficient_data' | 'insufficient_valid_data',
            'message': Human-readable status,
            'quantities': np.ndarray of daily quantities (ordered),
            'daily_df': Aggregated daily DataFrame,
            'dates': All observed dates (sorted, used for gap checks),
            'last_date': Last observed date or None,
            'raw_count': Daily records before filtering,
            'valid_count': Valid daily records,
            'invalid_count': Observations dropped as non-finite / negative
        }
    """
    merged = merge_sales_observations(historical_df, user_df)
    daily = aggregate_daily_sales(merged)

    raw_count = int(merged['date'].nunique()) if not merged.empty else 0
    quantities = merged['quantity'].to_numpy(dtype=float) if not merged.empty else np.array([])
    invalid_count = int((~(np.isfinite(quantities) & (quantities >= 0))).sum())

    result = {
        'status': 'ok',
        'message': '',
        'quantities': daily['quantity'].to_numpy(dtype=float),
        'daily_df': daily,
        'dates': merged['date'].reset_index(drop=True),
        'last_date': merged['date'].iloc[-1] if not merged.empty else None,
        'raw_count': raw_count,
        'valid_count': len(daily),
        'invalid_count': invalid_count,
    }

    min_total = FORECAST_RULES["min_total_records"]
    min_valid = FORECAST_RULES["min_valid_records"]

    if raw_count < min_total:
        result['status'] = 'insufficient_data'
        result['message'] = f"Need at least {min_total} days of data for forecasting (have {raw_count})."
    elif len(daily) < min_valid:
        result['status'] = 'insufficient_valid_data'
        result['message'] = (
            f"Not enough valid data points for forecasting ({len(daily)} valid, "
            f"minimum {min_valid}). Please add more data."
        )
    else:
        result['message'] = f"{len(daily)} valid daily records ready for forecasting."

    return result


# ===== TIME GAP VALIDATOR =====

def check_time_gap_validity(dates) -> dict:
    """
    Find the largest gap between consecutive sales dates and classify it.

    Advisory only: only 'critical', 'major' and 'moderate' set has_large_gap,
    which callers surface as a warning.

    Args:
        dates: Iterable of dates (any order; unparseable values are ignored)

    Returns:
        dict: {
            'has_large_gap': bool,
            'max_gap_days': int,
            'severity': 'none' | 'excellent' | 'minor' | 'moderate' | 'major' | 'critical',
            'gap_start': 'YYYY-MM-DD' or None,
            'gap_end': 'YYYY-MM-DD' or None,
            'message': str
        }
    """
    report = {
        'has_large_gap': False,
        'max_gap_days': 0,
        'severity': 'none',
        'gap_start': None,
        'gap_end': None,
        'message': '',
    }

    series = pd.Series(pd.to_datetime(pd.Series(list(dates), dtype=object), errors='coerce'))
    series = series.dropna().dt.normalize().sort_values().reset_index(drop=True)
    if len(series) < 2:
        return report

    gaps = series.diff().dt.days.fillna(0).astype(int)
    max_gap_days = int(gaps.max())
    if max_gap_days > 0:
        gap_idx = int(gaps.idxmax())
        report['gap_start'] = series.iloc[gap_idx - 1].strftime('%Y-%m-%d')
        report['gap_end'] = series.iloc[gap_idx].strftime('%Y-%m-%d')

    severity, has_large_gap = get_gap_severity(max_gap_days)
    span = f"({report['gap_start']} → {report['gap_end']})"

    if severity == 'critical':
        message = (f"⚠️ Critical: {round(max_gap_days / 365)} year gap detected {span}. "
                   f"Predictions may be unreliable due to outdated patterns.")
    elif severity == 'major':
        message = (f"⚠️ Warning: {round(max_gap_days / 365)} year gap detected {span}. "
                   f"Consider using more recent data for better accuracy.")
    elif severity == 'moderate':
        message = (f"ℹ️ Notice: {round(max_gap_days / 30)} month gap detected {span}. "
                   f"Forecast quality is acceptable but recent data would be better.")
    elif severity == 'minor':
        message = f"✓ Good: {max_gap_days} day gap detected. Data continuity is acceptable for forecasting."
    else:
        message = f"✓ Excellent: Continuous data with max {max_gap_days} day gap. Optimal for forecasting."

    report.update({
        'has_large_gap': has_large_gap,
        'max_gap_days': max_gap_days,
        'severity': severity,
        'message': message,
    })
    return report


# ===== MODEL 1: TREND-WEIGHTED LINEAR REGRESSION =====

def generate_linear_regression_forecast(time_series, last_date) -> dict:
    """
    Forecast 7 days with a short-window linear trend blended with a moving average.

    Decision policy per forecast day (first match wins):
    1. Zero sales in the last 7 days, or their mean < 10 -> low-sales prediction
       (7-day mean with the conservative weekend boost)
    2. |slope| > 50 or non-finite slope -> volatile, moving average with weekend boost
    3. Otherwise 0.4 x trend value + 0.6 x moving average, with weekend boost

    Every prediction is clamped to [0 or 10, 1000] and carries an explanation.

    Args:
        time_series: Ordered daily quantities
        last_date: Last observed date (forecast origin)

    Returns:
        dict: Tagged result with status ('ok' | 'insufficient_data' | 'degraded'),
              forecasts (7 ints), explanations (7 strs), branches, warnings
    """
    rules = FORECAST_RULES["linear_regression"]
    result = _new_result('linear_regression')

    try:
        valid = _valid_values(time_series)

        if len(valid) < FORECAST_RULES["min_valid_records"]:
            avg = float(np.mean(valid)) if len(valid) > 0 else DEFAULT_FORECAST
            safe_avg = avg if np.isfinite(avg) else DEFAULT_FORECAST
            result = _constant_result(
                'linear_regression', safe_avg,
                f"⚠️ Insufficient data: Using simple average ({safe_avg:.1f} units) due to lack of trend data",
                status='insufficient_data', method='simple_average'
            )
            result['reason'] = f"Only {len(valid)} valid points"
            return result

        # Give more weight to recent data (last 30 days vs all history)
        recent_series = valid[-rules["history_window"]:]
        recent_mean = float(np.mean(recent_series))

        recent_data = valid[-rules["trend_window"]:]
        very_recent_data = valid[-rules["recent_window"]:]
        very_recent_mean = float(np.mean(very_recent_data))

        slope, intercept = _linear_regression_jit(recent_data.astype(np.float64))
        slope = float(slope) if np.isfinite(slope) else 0.0
        intercept = float(intercept) if np.isfinite(intercept) else float(np.mean(recent_data))

        has_significant_change = abs(very_recent_mean - recent_mean) > rules["significant_change"]
        moving_avg = very_recent_mean if has_significant_change else float(np.mean(recent_data[-rules["recent_window"]:]))

        has_recent_zeros = bool((very_recent_data == 0).any())
        is_recently_low = very_recent_mean < rules["low_sales_threshold"]
        min_bound = get_prediction_floor(has_recent_zeros)

        result['warnings'].append(
            f"INFO: Regression inputs - slope {slope:.3f}, intercept {intercept:.2f}, "
            f"moving average {moving_avg:.2f}, recent zeros: {has_recent_zeros}"
        )

        for i, forecast_date in enumerate(get_forecast_dates(last_date), start=1):
            day_of_week = forecast_date.dayofweek
            day_name = DAY_NAMES[day_of_week]

            if has_recent_zeros or is_recently_low:
                multiplier = get_seasonal_multiplier(day_of_week, conservative=True)
                base_predict = max(0, _round_prediction(very_recent_mean))
                predicted = _round_prediction(base_predict * multiplier)
                branch = 'low_sales'
                explanation = (
                    f"🔻 Low prediction: Recent 7-day average is {very_recent_mean:.1f} units"
                    f"{' with zero sales days' if has_recent_zeros else ''}. "
                    f"{describe_seasonality(day_name, multiplier)}."
                )
            elif not np.isfinite(slope) or abs(slope) > rules["max_abs_slope"]:
                multiplier = get_seasonal_multiplier(day_of_week)
                predicted = _round_prediction(moving_avg * multiplier)
                branch = 'volatile'
                explanation = (
                    f"⚠️ Stable prediction: Trend too volatile (slope: {slope:.2f}), "
                    f"using moving average ({moving_avg:.1f}). "
                    f"{describe_seasonality(day_name, multiplier, 'weekend boost')}."
                )
            else:
                trend_value = slope * (len(recent_data) + i - 1) + intercept
                if np.isfinite(trend_value):
                    combined = rules["trend_weight"] * trend_value + rules["moving_average_weight"] * moving_avg
                else:
                    combined = moving_avg
                multiplier = get_seasonal_multiplier(day_of_week)
                predicted = _round_prediction(combined * multiplier)
                branch = 'trend'
                direction = 'Growing' if slope > 0 else 'Declining' if slope < 0 else 'Stable'
                icon = '📈' if slope > 0 else '📉' if slope < 0 else '➡️'
                explanation = (
                    f"{icon} Trend-based: {direction} trend ({slope:.2f} units/day) + "
                    f"moving average ({moving_avg:.1f}). "
                    f"{describe_seasonality(day_name, multiplier, 'seasonal boost')}."
                )

            predicted, note = bound_prediction(predicted, min_bound)
            result['forecasts'].append(predicted)
            result['explanations'].append(explanation + note)
            result['branches'].append(branch)

        result['method'] = result['branches'][0]
        return result

    except Exception as e:
        finite = pd.to_numeric(pd.Series(list(time_series), dtype=object), errors='coerce').to_numpy(dtype=float)
        finite = finite[np.isfinite(finite)]
        avg = float(np.mean(finite[-7:])) if len(finite) > 0 else DEFAULT_FORECAST
        safe_avg = avg if np.isfinite(avg) else DEFAULT_FORECAST
        result = _constant_result(
            'linear_regression', safe_avg,
            f"⚠️ Fallback: Error in trend calculation, using 7-day average ({safe_avg:.1f} units)",
            status='degraded', method='fallback_average'
        )
        result['reason'] = f"Linear regression error: {e}"
        result['warnings'].append(f"ERROR: Linear regression failed ({e}); using 7-day average {safe_avg:.1f}")
        return result


# ===== MODEL 2: ARIMA WITH FALLBACK CHAIN =====

def _fit_arima_predictions(values: np.ndarray, steps: int) -> np.ndarray:
    """Fit the fixed-order ARIMA model and return raw out-of-sample predictions."""
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        model = ARIMA(np.asarray(values, dtype=float), order=FORECAST_RULES["arima"]["order"])
        fitted = model.fit()
        return np.asarray(fitted.forecast(steps=steps), dtype=float)


def _unavailable(model: str, reason: str) -> dict:
    result = _new_result(model)
    result['status'] = 'insufficient_data'
    result['reason'] = reason
    return result


def _arima_model_strategy(values: np.ndarray, last_date) -> dict:
    """ARIMA(1,1,1) over the last 30 points; near-constant series use the mean instead."""
    rules = FORECAST_RULES["arima"]
    if len(values) < rules["min_points"]:
        return _unavailable('arima', f"{len(values)} valid points, ARIMA needs {rules['min_points']}")

    result = _new_result('arima')

    recent_arima_data = values[-rules["recent_window"]:]
    has_recent_zeros = bool((recent_arima_data == 0).any())
    recent_arima_mean = float(np.mean(recent_arima_data))
    is_low_sales = has_recent_zeros or recent_arima_mean < rules["low_sales_threshold"]

    arima_data = values[-rules["history_window"]:]
    mean = float(np.mean(arima_data))
    variance = float(np.var(arima_data))

    if not np.isfinite(variance) or variance < rules["min_variance"]:
        base_value = mean if np.isfinite(mean) else DEFAULT_FORECAST
        min_bound = FORECAST_RULES["bounds"]["min_prediction"]
        result['warnings'].append(
            f"WARN: Variance {variance:.4f} too low for ARIMA; using mean {base_value:.1f} with seasonality"
        )
        for forecast_date in get_forecast_dates(last_date):
            day_name = DAY_NAMES[forecast_date.dayofweek]
            multiplier = get_seasonal_multiplier(forecast_date.dayofweek)
            predicted, note = bound_prediction(_round_prediction(base_value * multiplier), min_bound)
            result['forecasts'].append(predicted)
            result['explanations'].append(
                f"⚠️ Low variance: Using mean ({base_value:.1f}) + seasonality. "
                f"{describe_seasonality(day_name, multiplier, 'weekend boost')}.{note}"
            )
            result['branches'].append('low_variance_mean')
        result['method'] = 'low_variance_mean'
        return result

    try:
        predictions = _fit_arima_predictions(arima_data, HORIZON_DAYS)
    except Exception as e:
        degraded = _new_result('arima')
        degraded['status'] = 'degraded'
        degraded['reason'] = f"ARIMA fitting failed: {e}"
        return degraded

    min_bound = get_prediction_floor(has_recent_zeros)
    for i, forecast_date in enumerate(get_forecast_dates(last_date)):
        day_name = DAY_NAMES[forecast_date.dayofweek]
        raw_prediction = predictions[i] if i < len(predictions) else np.nan

        if np.isfinite(raw_prediction):
            valid_prediction = float(raw_prediction)
            branch = 'model'
            explanation = (f"🔮 ARIMA model: Autoregressive prediction ({raw_prediction:.1f}) "
                           f"based on time series patterns")
        elif is_low_sales:
            valid_prediction = recent_arima_mean
            branch = 'fallback_recent_mean'
            explanation = (f"⚠️ ARIMA fallback: Invalid prediction, using recent 7-day average "
                           f"({recent_arima_mean:.1f}) due to low sales pattern")
        else:
            valid_prediction = mean
            branch = 'fallback_mean'
            explanation = f"⚠️ ARIMA fallback: Invalid prediction, using overall mean ({mean:.1f}) as baseline"

        if is_low_sales:
            multiplier = get_seasonal_multiplier(forecast_date.dayofweek, conservative=True)
            explanation += ". " + describe_seasonality(
                day_name, multiplier, "conservative seasonal adjustment for low-sales period")
            if branch == 'model':
                branch = 'low_sales_conservative'
        else:
            multiplier = get_seasonal_multiplier(forecast_date.dayofweek)
            explanation += ". " + describe_seasonality(day_name, multiplier, "weekend boost")

        predicted, note = bound_prediction(_round_prediction(valid_prediction * multiplier), min_bound)
        result['forecasts'].append(predicted)
        result['explanations'].append(explanation + note)
        result['branches'].append(branch)

    result['method'] = 'arima_model'
    return result


def _exponential_smoothing_strategy(values: np.ndarray, last_date) -> dict:
    """Simple exponential smoothing (alpha=0.3) over the last 7 points."""
    rules = FORECAST_RULES["exponential_smoothing"]
    if len(values) == 0:
        return _unavailable('exponential_smoothing', "No valid data for exponential smoothing")

    result = _new_result('exponential_smoothing')
    alpha = rules["alpha"]
    recent = values[-rules["recent_window"]:]
    has_recent_zeros = bool((recent == 0).any())
    recent_mean = float(np.mean(recent))
    is_low_sales = has_recent_zeros or recent_mean < rules["low_sales_threshold"]

    smoothed = _exp_smooth_jit(recent.astype(np.float64), alpha)
    base_value = _round_prediction(smoothed) if np.isfinite(smoothed) else DEFAULT_FORECAST
    min_bound = get_prediction_floor(has_recent_zeros)

    for forecast_date in get_forecast_dates(last_date):
        day_name = DAY_NAMES[forecast_date.dayofweek]
        multiplier = get_seasonal_multiplier(forecast_date.dayofweek, conservative=is_low_sales)
        predicted, note = bound_prediction(_round_prediction(base_value * multiplier), min_bound)
        result['forecasts'].append(predicted)
        result['explanations'].append(
            f"📊 Exponential smoothing: Base value {base_value:.1f} (α={alpha}) from recent data"
            f"{' with zero sales' if has_recent_zeros else ''}. "
            f"{describe_seasonality(day_name, multiplier)}.{note}"
        )
        result['branches'].append('exponential_smoothing')

    result['method'] = 'exponential_smoothing'
    return result


def _default_forecast_strategy(values: np.ndarray, last_date) -> dict:
    """Last resort: constant default baseline."""
    return _constant_result(
        'default', DEFAULT_FORECAST,
        f"⚠️ No valid data: Using default {DEFAULT_FORECAST} units as baseline prediction",
        status='ok', method='default'
    )


# Ordered chain: each strategy checks its own precondition, first 'ok' result wins
ARIMA_FALLBACK_CHAIN = (
    ('ARIMA(1,1,1)', _arima_model_strategy),
    ('Exponential smoothing', _exponential_smoothing_strategy),
    ('Constant default', _default_forecast_strategy),
)


def run_fallback_chain(values, last_date, chain=ARIMA_FALLBACK_CHAIN) -> dict:
    """
    Try each forecasting strategy in order and return the first successful result.

    Strategies that cannot run are recorded; when any were skipped the returned
    result is tagged 'degraded' with the reasons joined in 'reason'.

    Args:
        values: Finite, non-negative quantities
        last_date: Forecast origin
        chain: Sequence of (name, strategy) pairs

    Returns:
        dict: Tagged forecast result
    """
    skipped = []
    for name, strategy in chain:
        result = strategy(values, last_date)
        if result['status'] == 'ok':
            if skipped:
                result['status'] = 'degraded'
                result['reason'] = "; ".join(reason for _, reason in skipped)
                result['warnings'] = [f"WARN: {n} skipped - {r}" for n, r in skipped] + result['warnings']
            return result
        skipped.append((name, result['reason']))

    result = _default_forecast_strategy(values, last_date)
    result['status'] = 'degraded'
    result['reason'] = "; ".join(reason for _, reason in skipped)
    return result


def generate_arima_forecast(time_series, last_date) -> dict:
    """
    Forecast 7 days with ARIMA(1,1,1), deferring to exponential smoothing and then
    a constant default when the model cannot run.

    - < 5 valid points: exponential smoothing
    - variance < 0.01: mean with weekend multiplier (model fitting skipped)
    - fitting exception: exponential smoothing over the full valid series

    Args:
        time_series: Ordered daily quantities
        last_date: Last observed date (forecast origin)

    Returns:
        dict: Tagged result (see generate_linear_regression_forecast)
    """
    return run_fallback_chain(_valid_values(time_series), last_date)


def generate_exponential_smoothing_forecast(time_series, last_date) -> dict:
    """
    Exponential smoothing forecast; an empty series yields the default 150 per day
    with a 'no data' explanation.
    """
    return run_fallback_chain(_valid_values(time_series), last_date, chain=ARIMA_FALLBACK_CHAIN[1:])


# ===== FORECAST ASSEMBLY =====

def build_forecast_points(last_date, regression_result: dict, arima_result: dict) -> pd.DataFrame:
    """
    Zip both model results into one row per forecast day.

    Returns:
        pd.DataFrame: Columns date, regression_value, arima_value,
                      regression_explanation, arima_explanation, day_of_week
    """
    dates = get_forecast_dates(last_date)
    return pd.DataFrame({
        'date': dates,
        'regression_value': [int(v) for v in regression_result['forecasts'][:HORIZON_DAYS]],
        'arima_value': [int(v) for v in arima_result['forecasts'][:HORIZON_DAYS]],
        'regression_explanation': regression_result['explanations'][:HORIZON_DAYS],
        'arima_explanation': arima_result['explanations'][:HORIZON_DAYS],
        'day_of_week': [DAY_NAMES[d.dayofweek] for d in dates],
    }, columns=FORECAST_COLUMNS)


def summarize_forecast(forecast_df: pd.DataFrame) -> dict:
    """
    Compare the two models over the forecast horizon.

    Returns:
        dict: {
            'regression_total': Sum of regression predictions,
            'arima_total': Sum of ARIMA predictions,
            'average_daily_difference': Mean |regression - arima|,
            'daily_differences': DataFrame with date, difference, percent_difference
        }
    """
    if forecast_df.empty:
        return {
            'regression_total': 0,
            'arima_total': 0,
            'average_daily_difference': 0.0,
            'daily_differences': pd.DataFrame(columns=['date', 'difference', 'percent_difference'])
        }

    lr = pd.to_numeric(forecast_df['regression_value'], errors='coerce').astype(float)
    arima = pd.to_numeric(forecast_df['arima_value'], errors='coerce').astype(float)
    lr_safe = lr.where(np.isfinite(lr), 0)
    arima_safe = arima.where(np.isfinite(arima), 0)

    both_finite = np.isfinite(lr) & np.isfinite(arima)
    difference = (lr - arima).abs().where(both_finite)
    avg = (lr + arima) / 2
    percent = (difference / avg * 100).where(avg > 0, 0.0)

    return {
        'regression_total': int(lr_safe.sum()),
        'arima_total': int(arima_safe.sum()),
        'average_daily_difference': float(difference.fillna(0).sum() / len(forecast_df)),
        'daily_differences': pd.DataFrame({
            'date': forecast_df['date'].values,
            'difference': difference.values,
            'percent_difference': percent.values,
        })
    }


def generate_forecast(historical_df, user_df=None):
    """
    Generate the 7-day demand forecast with both models.

    Args:
        historical_df: Historical daily sales (columns date, quantity[, category, total_price])
        user_df: Optional user-entered daily sales with the same columns

    Returns:
        tuple: (logs, forecast_df, gap_report, status)
            status is 'ok', 'insufficient_data' or 'insufficient_valid_data';
            forecast_df is empty and gap_report None unless status is 'ok'
    """
    logs = []
    start_time = time.time()
    logs.append("--- Demand Forecasting Engine ---")

    normalized = normalize_series(historical_df, user_df)
    valid_quantities = normalized['quantities']
    logs.append(
        f"INFO: Time series validation - {normalized['raw_count']} daily records, "
        f"{normalized['valid_count']} valid, {normalized['invalid_count']} invalid observations dropped."
    )
    if len(valid_quantities) > 0:
        std = float(np.std(valid_quantities, ddof=1)) if len(valid_quantities) > 1 else 0.0
        logs.append(f"INFO: Series mean {np.mean(valid_quantities):.2f}, standard deviation {std:.2f}.")

    if normalized['status'] != 'ok':
        logs.append(f"ERROR: {normalized['message']}")
        return logs, pd.DataFrame(columns=FORECAST_COLUMNS), None, normalized['status']

    last_date = normalized['last_date']

    # ===== STEP 1: Data continuity check (advisory) =====
    gap_report = check_time_gap_validity(normalized['dates'])
    if gap_report['has_large_gap']:
        logs.append(f"WARN: {gap_report['message']}")
    else:
        logs.append(f"INFO: {gap_report['message']}")

    # ===== STEP 2: Run both models independently =====
    regression_result = generate_linear_regression_forecast(valid_quantities, last_date)
    arima_result = generate_arima_forecast(valid_quantities, last_date)

    for model_result in (regression_result, arima_result):
        logs.extend(model_result['warnings'])
        logs.append(
            f"INFO: {model_result['model']} finished with status '{model_result['status']}' "
            f"(method: {model_result['method']})."
        )

    # ===== STEP 3: Combine =====
    forecast_df = build_forecast_points(last_date, regression_result, arima_result)
    summary = summarize_forecast(forecast_df)
    logs.append(
        f"INFO: Model comparison - regression total {summary['regression_total']}, "
        f"ARIMA total {summary['arima_total']}, "
        f"average daily difference {summary['average_daily_difference']:.1f}."
    )

    logs.append(f"INFO: Forecast generated in {time.time() - start_time:.2f} seconds.")
    return logs, forecast_df, gap_report, 'ok'

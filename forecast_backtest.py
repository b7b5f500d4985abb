"""
Forecast Backtest Module

Estimates how far forecasts can be trusted by replaying a simple baseline on
held-out history:
- Drops closure / crisis days (quantity <= 10) when enough normal days remain
- Chronological 80/20 train/test split
- Linear trend fitted on the training partition, extrapolated over the test partition
- MAE, MAPE (positive actuals only) and a stability percentage with grading
"""

import time

import numpy as np
import pandas as pd

from business_rules import BACKTEST_RULES, get_accuracy_label, get_reliability_class
from demand_forecasting import (
    merge_sales_observations,
    aggregate_daily_sales,
    _linear_regression_jit,
)


def _insufficient_report(message: str, **counts) -> dict:
    report = {
        'status': 'insufficient_data',
        'message': message,
        'mae': None,
        'mape': None,
        'stability_pct': None,
        'reliability': None,
        'accuracy_label': None,
        'normal_days': 0,
        'low_sales_days': 0,
        'train_size': 0,
        'test_size': 0,
    }
    report.update(counts)
    return report


def split_normal_business_days(values: np.ndarray, crisis_threshold: float = BACKTEST_RULES["crisis_threshold"]):
    """
    Separate normal trading days from closure / crisis days.

    Returns:
        tuple: (normal_values, crisis_values) preserving chronological order
    """
    values = np.asarray(values, dtype=float)
    return values[values > crisis_threshold], values[values <= crisis_threshold]


def calculate_backtest_metrics(train_values: np.ndarray, test_values: np.ndarray) -> dict:
    """
    Fit a linear trend on the training partition and score it on the test partition.

    Args:
        train_values: Chronological training quantities (>= 2 points)
        test_values: Chronological test quantities (>= 1 point)

    Returns:
        dict: mae, mape (None when no positive actuals), stability_pct,
              train_mean, test_mean, trend_slope, trend_intercept, predictions
    """
    train_values = np.asarray(train_values, dtype=float)
    test_values = np.asarray(test_values, dtype=float)

    train_mean = float(np.mean(train_values)) if len(train_values) > 0 else 0.0
    train_mean = train_mean if np.isfinite(train_mean) else 0.0
    test_mean = float(np.mean(test_values)) if len(test_values) > 0 else 0.0
    test_mean = test_mean if np.isfinite(test_mean) else 0.0

    slope, intercept = _linear_regression_jit(train_values.astype(np.float64))
    slope = float(slope) if np.isfinite(slope) else 0.0
    intercept = float(intercept) if np.isfinite(intercept) else train_mean

    future_index = len(train_values) + np.arange(len(test_values))
    predictions = np.maximum(BACKTEST_RULES["min_prediction"], intercept + slope * future_index)

    errors = np.abs(test_values - predictions)
    mae = float(np.mean(errors)) if len(errors) > 0 else 0.0
    mae = mae if np.isfinite(mae) else 0.0

    positive = test_values > 0
    mape = None
    if positive.any():
        pct_errors = np.abs((test_values[positive] - predictions[positive]) / test_values[positive]) * 100
        pct_errors = pct_errors[np.isfinite(pct_errors)]
        if len(pct_errors) > 0:
            mape = float(np.mean(pct_errors))

    stability_pct = mae / train_mean * 100 if train_mean > 0 else 0.0
    stability_pct = stability_pct if np.isfinite(stability_pct) else 0.0

    return {
        'mae': mae,
        'mape': mape,
        'stability_pct': float(stability_pct),
        'train_mean': train_mean,
        'test_mean': test_mean,
        'trend_slope': slope,
        'trend_intercept': intercept,
        'predictions': predictions.tolist(),
    }


def evaluate_backtest(historical_df, user_df=None):
    """
    Score a baseline trend model on a held-out tail of the combined sales history.

    Crisis days (<= 10 units) are excluded when at least 10 normal days exist,
    otherwise the full series is used. Requires 10 usable points, then at least
    2 training and 1 test point after the 80/20 chronological split.

    Args:
        historical_df: Historical daily sales (columns date, quantity)
        user_df: Optional user-entered daily sales

    Returns:
        tuple: (logs, report) where report['status'] is 'ok' or 'insufficient_data';
               insufficient reports carry no metrics (all None)
    """
    logs = []
    start_time = time.time()
    logs.append("--- Forecast Backtest ---")

    daily = aggregate_daily_sales(merge_sales_observations(historical_df, user_df))
    all_values = daily['quantity'].to_numpy(dtype=float) if not daily.empty else np.array([])

    normal_values, crisis_values = split_normal_business_days(all_values)
    logs.append(
        f"INFO: {len(all_values)} valid days - {len(normal_values)} normal business days, "
        f"{len(crisis_values)} low-sales days."
    )

    usable = normal_values if len(normal_values) >= BACKTEST_RULES["min_usable_points"] else all_values
    counts = {'normal_days': len(normal_values), 'low_sales_days': len(crisis_values)}

    if len(usable) < BACKTEST_RULES["min_usable_points"]:
        message = (f"Need at least {BACKTEST_RULES['min_usable_points']} days of normal operations "
                   f"for meaningful metrics (have {len(usable)}).")
        logs.append(f"WARN: {message}")
        return logs, _insufficient_report(message, **counts)

    train_size = int(np.floor(len(usable) * BACKTEST_RULES["train_fraction"]))
    train_values = usable[:train_size]
    test_values = usable[train_size:]
    counts.update({'train_size': len(train_values), 'test_size': len(test_values)})

    if len(train_values) < BACKTEST_RULES["min_train_points"] or len(test_values) < BACKTEST_RULES["min_test_points"]:
        message = (f"Need at least {BACKTEST_RULES['min_train_points']} training points and "
                   f"{BACKTEST_RULES['min_test_points']} test point (training: {len(train_values)}, "
                   f"testing: {len(test_values)}).")
        logs.append(f"WARN: {message}")
        return logs, _insufficient_report(message, **counts)

    metrics = calculate_backtest_metrics(train_values, test_values)

    report = {
        'status': 'ok',
        'message': f"Based on {len(train_values)} training days, {len(test_values)} test days",
        'mae': metrics['mae'],
        'mape': metrics['mape'],
        'stability_pct': metrics['stability_pct'],
        'reliability': get_reliability_class(metrics['stability_pct']),
        'accuracy_label': get_accuracy_label(metrics['mape']),
        'train_mean': metrics['train_mean'],
        'test_mean': metrics['test_mean'],
        'trend_slope': metrics['trend_slope'],
        'predictions': metrics['predictions'],
    }
    report.update(counts)

    mape_text = f"{report['mape']:.1f}%" if report['mape'] is not None else "N/A"
    logs.append(
        f"INFO: Backtest MAE {report['mae']:.2f}, MAPE {mape_text} ({report['accuracy_label']}), "
        f"stability {report['stability_pct']:.1f}% ({report['reliability']} reliability)."
    )
    logs.append(f"INFO: Backtest finished in {time.time() - start_time:.2f} seconds.")
    return logs, report


def backtest_summary_frame(report: dict) -> pd.DataFrame:
    """Flatten a backtest report into a two-column table for display / export."""
    if not report or report.get('status') != 'ok':
        return pd.DataFrame(columns=['Metric', 'Value'])

    mape = report['mape']
    rows = [
        ('MAE (units)', f"{report['mae']:.1f}"),
        ('MAPE', f"{mape:.1f}%" if mape is not None else "N/A"),
        ('Accuracy', report['accuracy_label']),
        ('Stability (relative error)', f"{report['stability_pct']:.1f}%"),
        ('Reliability', report['reliability']),
        ('Training days', str(report['train_size'])),
        ('Test days', str(report['test_size'])),
        ('Low-sales days', str(report['low_sales_days'])),
    ]
    return pd.DataFrame(rows, columns=['Metric', 'Value'])

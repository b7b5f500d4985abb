"""
Business Rules Configuration
Centralized definitions for forecasting thresholds, seasonality, and accuracy grading.
This file allows rules to be changed in one place without modifying engine code.
"""

# ===== FORECAST ENGINE RULES =====

FORECAST_RULES = {
    "horizon_days": 7,
    "min_total_records": 7,       # Below this, forecasting is not attempted
    "min_valid_records": 3,       # Finite, non-negative points required after filtering
    "default_forecast": 150,      # Absolute fallback when no usable average exists

    "bounds": {
        "max_prediction": 1000,
        "min_prediction": 10,     # Normal floor
        "min_prediction_with_zeros": 0,  # Floor when the last 7 days contain closures
    },

    "linear_regression": {
        "history_window": 30,     # Points used for the recent mean
        "trend_window": 14,       # Points used for the OLS fit
        "recent_window": 7,       # Points used for low-sales detection
        "low_sales_threshold": 10,
        "max_abs_slope": 50,      # Steeper trends are treated as volatile
        "significant_change": 10,  # Recent vs 30-day mean difference that shifts the baseline
        "trend_weight": 0.4,
        "moving_average_weight": 0.6,
    },

    "arima": {
        "order": (1, 1, 1),       # Fixed (p, d, q); no automatic order selection
        "min_points": 5,
        "history_window": 30,
        "recent_window": 7,
        "low_sales_threshold": 10,
        "min_variance": 0.01,     # Near-constant series skip model fitting
    },

    "exponential_smoothing": {
        "alpha": 0.3,
        "recent_window": 7,
        "low_sales_threshold": 10,
    },
}


# ===== SEASONALITY RULES =====
# Weekend adjustment only; Python weekday() numbering (Saturday=5, Sunday=6)

SEASONALITY_RULES = {
    "weekend_days": (5, 6),
    "standard_weekend_multiplier": 1.15,
    "conservative_weekend_multiplier": 1.05,  # Used during low-sales / closure periods
    "weekday_multiplier": 1.0,
}

DAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']


# ===== DATA CONTINUITY (TIME GAP) RULES =====
# Ordered from most to least severe; first threshold exceeded wins

GAP_SEVERITY_RULES = [
    {"severity": "critical", "min_gap_days": 365 * 5, "has_large_gap": True},
    {"severity": "major", "min_gap_days": 365, "has_large_gap": True},
    {"severity": "moderate", "min_gap_days": 180, "has_large_gap": True},
    {"severity": "minor", "min_gap_days": 30, "has_large_gap": False},
]


# ===== BACKTEST RULES =====

BACKTEST_RULES = {
    "crisis_threshold": 10,       # Days at or below this are closure/crisis days
    "min_usable_points": 10,
    "train_fraction": 0.8,
    "min_train_points": 2,
    "min_test_points": 1,
    "min_prediction": 5,

    # MAPE grading (upper bounds, exclusive)
    "accuracy_labels": [
        (15, "Excellent"),
        (25, "Good"),
        (35, "Fair"),
    ],
    "accuracy_fallback_label": "Poor",

    # Stability (MAE as % of training mean) grading
    "reliability_classes": [
        (20, "High"),
        (35, "Medium"),
    ],
    "reliability_fallback_class": "Low",
}


# ===== DATA FIELD DEFINITIONS =====

DATA_FIELD_DEFINITIONS = {
    "sales_history": {
        "source_file": "pizza-sales.csv",
        "date_columns": ["order_date", "date", "Order Date"],
        "quantity_columns": ["quantity", "Quantity"],
        "price_columns": ["total_price", "Total Price"],
        "category_columns": ["pizza_category", "category", "Category"],
        "default_category": "Other",
    },
    "user_entries": {
        "source_file": "data/user_sales.json",
        "fields": ["date", "quantity", "category", "total_price"],
        "default_unit_price": 15,  # Revenue estimate when the user leaves price blank
        "categories": ["Classic", "Supreme", "Veggie", "Chicken"],
    },
    "forecast_export": {
        "columns": ["Date", "Linear Regression", "ARIMA", "Day of Week"],
        "file_name": "demand-forecast-comparison.csv",
    },
}


# ===== HELPER FUNCTIONS =====

def is_weekend(day_of_week):
    """Return True for Saturday/Sunday (Python weekday numbering)."""
    return day_of_week in SEASONALITY_RULES["weekend_days"]


def get_seasonal_multiplier(day_of_week, conservative=False):
    """
    Weekend demand multiplier for a forecast day.

    Args:
        day_of_week: 0=Monday ... 6=Sunday
        conservative: Use the damped weekend boost for low-sales periods

    Returns:
        float: Multiplier applied to the baseline prediction
    """
    if not is_weekend(day_of_week):
        return SEASONALITY_RULES["weekday_multiplier"]
    if conservative:
        return SEASONALITY_RULES["conservative_weekend_multiplier"]
    return SEASONALITY_RULES["standard_weekend_multiplier"]


def get_gap_severity(gap_days):
    """
    Classify the largest gap between consecutive sales dates.

    Returns:
        tuple: (severity, has_large_gap)
    """
    for rule in GAP_SEVERITY_RULES:
        if gap_days > rule["min_gap_days"]:
            return rule["severity"], rule["has_large_gap"]
    return "excellent", False


def get_accuracy_label(mape):
    """Grade a MAPE value; returns 'N/A' when MAPE is undefined."""
    if mape is None:
        return "N/A"
    for upper_bound, label in BACKTEST_RULES["accuracy_labels"]:
        if mape < upper_bound:
            return label
    return BACKTEST_RULES["accuracy_fallback_label"]


def get_reliability_class(stability_pct):
    """Grade the backtest stability percentage as High / Medium / Low."""
    for upper_bound, label in BACKTEST_RULES["reliability_classes"]:
        if stability_pct < upper_bound:
            return label
    return BACKTEST_RULES["reliability_fallback_class"]

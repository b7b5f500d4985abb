"""
Tests for demand forecasting module
"""

import pytest
import pandas as pd
import numpy as np

import demand_forecasting
from demand_forecasting import (
    generate_forecast,
    generate_linear_regression_forecast,
    generate_arima_forecast,
    generate_exponential_smoothing_forecast,
    normalize_series,
    summarize_forecast,
    bound_prediction,
    get_forecast_dates,
    FORECAST_COLUMNS,
)
from conftest import make_daily_sales, assert_log_contains, assert_dataframe_has_columns


def _fail_fit(values, steps):
    raise AssertionError("ARIMA fitter should not be called")


def _fit_raises(values, steps):
    raise ValueError("LU decomposition error")


class TestGenerateForecast:
    """End-to-end forecast generation"""

    def test_returns_seven_consecutive_days(self, steady_sales_df):
        """Forecast starts the day after the last observation and covers 7 days"""
        logs, forecast_df, gap_report, status = generate_forecast(steady_sales_df)

        assert status == 'ok'
        assert len(forecast_df) == 7
        assert_dataframe_has_columns(forecast_df, FORECAST_COLUMNS)

        last_date = steady_sales_df['date'].max()
        expected = pd.date_range(last_date + pd.Timedelta(days=1), periods=7, freq='D')
        assert list(forecast_df['date']) == list(expected)
        assert list(forecast_df['day_of_week']) == [d.day_name() for d in expected]

    def test_values_bounded_with_normal_floor(self, steady_sales_df):
        """No zero in the last 7 days: every value lies in [10, 1000]"""
        _, forecast_df, _, _ = generate_forecast(steady_sales_df)

        for col in ('regression_value', 'arima_value'):
            assert forecast_df[col].between(10, 1000).all()

    def test_values_bounded_with_recent_zeros(self, low_sales_df):
        _, forecast_df, _, _ = generate_forecast(low_sales_df)

        for col in ('regression_value', 'arima_value'):
            assert forecast_df[col].between(0, 1000).all()

    def test_every_day_has_explanations(self, steady_sales_df):
        _, forecast_df, _, _ = generate_forecast(steady_sales_df)

        assert forecast_df['regression_explanation'].str.len().gt(0).all()
        assert forecast_df['arima_explanation'].str.len().gt(0).all()

    def test_deterministic(self, steady_sales_df):
        """Same input produces identical forecasts"""
        _, first, _, _ = generate_forecast(steady_sales_df)
        _, second, _, _ = generate_forecast(steady_sales_df)

        pd.testing.assert_frame_equal(first, second)

    def test_logs_banner_and_timing(self, steady_sales_df):
        logs, _, _, _ = generate_forecast(steady_sales_df)

        assert logs[0] == "--- Demand Forecasting Engine ---"
        assert_log_contains(logs, "INFO: Forecast generated in")

    def test_user_entries_extend_history(self, steady_sales_df):
        """User rows after the history move the forecast origin"""
        user_df = make_daily_sales([130, 125], start="2024-03-01")
        _, forecast_df, _, status = generate_forecast(steady_sales_df, user_df)

        assert status == 'ok'
        assert forecast_df['date'].iloc[0] == pd.Timestamp("2024-03-03")

    def test_insufficient_data(self):
        """Fewer than 7 days: no forecast, no gap report"""
        logs, forecast_df, gap_report, status = generate_forecast(make_daily_sales([10, 20, 30, 40, 50]))

        assert status == 'insufficient_data'
        assert forecast_df.empty
        assert gap_report is None
        assert_log_contains(logs, "ERROR:", "at least 7 days")

    def test_insufficient_valid_data(self):
        """7 days present but fewer than 3 usable quantities"""
        sales = make_daily_sales([np.nan, -1, 'abc', 5, 6, -3, np.inf])
        logs, forecast_df, _, status = generate_forecast(sales)

        assert status == 'insufficient_valid_data'
        assert forecast_df.empty
        assert_log_contains(logs, "Not enough valid data points")

    def test_empty_input(self):
        _, forecast_df, _, status = generate_forecast(pd.DataFrame(columns=['date', 'quantity']))

        assert status == 'insufficient_data'
        assert forecast_df.empty

    def test_large_gap_logged_as_warning(self):
        history = make_daily_sales([100] * 5, start="2022-01-01")
        recent = make_daily_sales([110, 120, 115, 118, 121], start="2023-06-01")
        logs, _, gap_report, status = generate_forecast(pd.concat([history, recent], ignore_index=True))

        assert status == 'ok'
        assert gap_report['severity'] == 'major'
        assert_log_contains(logs, "WARN:", "year gap detected")


class TestNormalizeSeries:
    """Series normalizer"""

    def test_zero_days_are_kept(self, low_sales_df):
        result = normalize_series(low_sales_df)

        assert result['status'] == 'ok'
        assert result['valid_count'] == 12
        assert (result['quantities'] == 0).sum() == 2

    def test_invalid_quantities_dropped(self):
        sales = make_daily_sales([10, np.nan, 12, -5, 14, 15, 16])
        result = normalize_series(sales)

        assert result['raw_count'] == 7
        assert result['valid_count'] == 5
        assert result['invalid_count'] == 2

    def test_same_day_rows_summed(self):
        sales = pd.DataFrame({
            'date': ['2024-01-01', '2024-01-01', '2024-01-02'],
            'quantity': [5, 7, 3],
        })
        result = normalize_series(sales)

        assert list(result['quantities']) == [12.0, 3.0]
        assert result['daily_df']['category'].iloc[0] == 'Other'

    def test_last_date_includes_invalid_rows(self):
        sales = make_daily_sales([10, 11, 12, 13, 14, 15, np.nan])
        result = normalize_series(sales)

        assert result['last_date'] == pd.Timestamp("2024-01-07")


class TestLinearRegressionForecast:
    """Trend-weighted regression model"""

    def test_low_sales_example(self, low_sales_df):
        """Recent zeros: conservative weekend boost on the rounded 7-day mean, floor 0"""
        last_date = low_sales_df['date'].max()  # Friday
        result = generate_linear_regression_forecast(low_sales_df['quantity'], last_date)

        assert result['status'] == 'ok'
        assert result['branches'] == ['low_sales'] * 7
        # Sat, Sun, Mon .. Fri
        assert result['forecasts'] == [15, 15, 14, 14, 14, 14, 14]
        assert "Low prediction" in result['explanations'][0]
        assert "with zero sales days" in result['explanations'][0]

    def test_constant_series(self, constant_sales_df):
        last_date = constant_sales_df['date'].max()  # Sunday
        result = generate_linear_regression_forecast(constant_sales_df['quantity'], last_date)

        assert result['forecasts'] == [100, 100, 100, 100, 100, 115, 115]

    def test_volatile_trend_uses_moving_average(self):
        series = [10, 400, 20, 800, 30, 1200, 40, 1600, 50, 1800, 60, 1900, 70, 1980]
        result = generate_linear_regression_forecast(series, pd.Timestamp("2024-01-14"))

        assert result['method'] == 'volatile'
        assert "Trend too volatile" in result['explanations'][0]

    def test_growing_trend(self):
        series = [100 + 2 * i for i in range(14)]
        result = generate_linear_regression_forecast(series, pd.Timestamp("2024-01-14"))

        assert result['method'] == 'trend'
        assert "Growing trend" in result['explanations'][0]
        assert result['forecasts'][0] > 100

    def test_insufficient_points_use_average(self):
        result = generate_linear_regression_forecast([10, 20], pd.Timestamp("2024-01-14"))

        assert result['status'] == 'insufficient_data'
        assert result['forecasts'] == [15] * 7
        assert "Insufficient data" in result['explanations'][0]

    def test_no_points_use_default(self):
        result = generate_linear_regression_forecast([], pd.Timestamp("2024-01-14"))

        assert result['forecasts'] == [150] * 7

    def test_upper_bound_applied(self):
        result = generate_linear_regression_forecast([5000] * 14, pd.Timestamp("2024-01-14"))

        assert result['forecasts'] == [1000] * 7
        assert "Bounded from" in result['explanations'][0]


class TestArimaForecast:
    """ARIMA model and its fallback chain"""

    def test_constant_series_skips_model_fit(self, constant_sales_df, monkeypatch):
        """Variance below threshold: mean with standard weekend multiplier, fitter never runs"""
        monkeypatch.setattr(demand_forecasting, "_fit_arima_predictions", _fail_fit)
        last_date = constant_sales_df['date'].max()  # Sunday

        result = generate_arima_forecast(constant_sales_df['quantity'], last_date)

        assert result['status'] == 'ok'
        assert result['method'] == 'low_variance_mean'
        assert result['forecasts'] == [100, 100, 100, 100, 100, 115, 115]
        assert "Low variance" in result['explanations'][0]

    def test_low_sales_uses_conservative_multiplier(self, low_sales_df, monkeypatch):
        monkeypatch.setattr(demand_forecasting, "_fit_arima_predictions",
                            lambda values, steps: np.full(steps, 14.0))
        last_date = low_sales_df['date'].max()  # Friday

        result = generate_arima_forecast(low_sales_df['quantity'], last_date)

        assert result['status'] == 'ok'
        assert result['branches'] == ['low_sales_conservative'] * 7
        assert result['forecasts'] == [15, 15, 14, 14, 14, 14, 14]

    def test_non_finite_prediction_falls_back_to_mean(self, steady_sales_df, monkeypatch):
        monkeypatch.setattr(demand_forecasting, "_fit_arima_predictions",
                            lambda values, steps: np.full(steps, np.nan))
        result = generate_arima_forecast(steady_sales_df['quantity'], steady_sales_df['date'].max())

        assert result['status'] == 'ok'
        assert set(result['branches']) == {'fallback_mean'}
        assert "overall mean" in result['explanations'][0]

    def test_fit_failure_falls_back_to_smoothing(self, steady_sales_df, monkeypatch):
        monkeypatch.setattr(demand_forecasting, "_fit_arima_predictions", _fit_raises)
        result = generate_arima_forecast(steady_sales_df['quantity'], steady_sales_df['date'].max())

        assert result['status'] == 'degraded'
        assert result['method'] == 'exponential_smoothing'
        assert "ARIMA fitting failed" in result['reason']
        assert any(w.startswith("WARN: ARIMA(1,1,1) skipped") for w in result['warnings'])

    def test_short_series_uses_exponential_smoothing(self):
        """Fewer than 5 points: smoothing over what exists"""
        result = generate_arima_forecast([10, 12, 11, 13], pd.Timestamp("2024-01-05"))  # Friday

        assert result['status'] == 'degraded'
        assert result['method'] == 'exponential_smoothing'
        assert result['forecasts'] == [13, 13, 11, 11, 11, 11, 11]

    def test_real_fit_within_bounds(self, steady_sales_df):
        result = generate_arima_forecast(steady_sales_df['quantity'], steady_sales_df['date'].max())

        assert len(result['forecasts']) == 7
        assert all(10 <= v <= 1000 for v in result['forecasts'])


class TestExponentialSmoothingForecast:

    def test_empty_series_uses_default(self):
        result = generate_exponential_smoothing_forecast([], pd.Timestamp("2024-01-05"))

        assert result['forecasts'] == [150] * 7
        assert result['method'] == 'default'
        assert "No valid data" in result['explanations'][0]

    def test_smoothing_with_zero_days(self):
        result = generate_exponential_smoothing_forecast([20, 0, 0, 18, 20], pd.Timestamp("2024-01-05"))

        assert result['status'] == 'ok'
        assert all(0 <= v <= 1000 for v in result['forecasts'])
        assert "with zero sales" in result['explanations'][0]


class TestHelpers:

    def test_bound_prediction_replaces_non_finite(self):
        value, note = bound_prediction(np.nan, 10)

        assert value == 150
        assert "Invalid value replaced" in note

    def test_bound_prediction_clamps(self):
        assert bound_prediction(5, 10) == (10, " (Bounded from 5 to 10)")
        assert bound_prediction(5, 0) == (5, "")

    def test_forecast_dates_cross_month(self):
        dates = get_forecast_dates(pd.Timestamp("2024-02-27"))

        assert dates[0] == pd.Timestamp("2024-02-28")
        assert dates[2] == pd.Timestamp("2024-03-01")


class TestSummarizeForecast:

    def test_totals_and_differences(self, constant_sales_df, monkeypatch):
        monkeypatch.setattr(demand_forecasting, "_fit_arima_predictions", _fail_fit)
        _, forecast_df, _, _ = generate_forecast(constant_sales_df)

        summary = summarize_forecast(forecast_df)

        assert summary['regression_total'] == 730
        assert summary['arima_total'] == 730
        assert summary['average_daily_difference'] == 0.0
        assert len(summary['daily_differences']) == 7

    def test_empty_forecast(self):
        summary = summarize_forecast(pd.DataFrame(columns=FORECAST_COLUMNS))

        assert summary['regression_total'] == 0
        assert summary['daily_differences'].empty

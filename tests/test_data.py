"""
Unit tests for churn table loading and feature preparation.

Tests cover:
- Header normalization and CSV loading
- yes/no encoding
- Aggregate usage columns (exact sums, segmented columns dropped)
- Column selection and ordering
- Standardization and re-application of stored scaling
- Error handling for missing, non-numeric and zero-variance columns
"""

import numpy as np
import pandas as pd
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from src.data.loader import (
    AGGREGATES,
    SELECTED_PREDICTORS,
    ObservationTable,
    add_aggregate_columns,
    encode_binary_columns,
    fit_scaling,
    load_raw_dataset,
    normalize_column_name,
    select_columns,
    transform,
)
from src.utils.exceptions import DataValidationError

from conftest import make_raw


class TestLoading:
    """Tests for CSV loading and header normalization."""

    def test_normalize_column_name(self) -> None:
        assert normalize_column_name("Total day minutes") == "total_day_minutes"
        assert normalize_column_name("International plan") == "international_plan"
        assert normalize_column_name("Customer service calls") == "customer_service_calls"
        assert normalize_column_name("Churn") == "churn"

    def test_load_normalizes_headers(self, tmp_path) -> None:
        raw = make_raw()
        kaggle = raw.rename(columns=lambda c: c.replace("_", " ").capitalize())
        path = tmp_path / "churn.csv"
        kaggle.to_csv(path, index=False)

        df = load_raw_dataset(str(path))
        assert list(df.columns) == list(raw.columns)
        assert len(df) == len(raw)

    def test_missing_file_raises(self, tmp_path) -> None:
        with pytest.raises(DataValidationError, match="not found"):
            load_raw_dataset(str(tmp_path / "absent.csv"))


class TestEncoding:
    """Tests for binary column encoding."""

    def test_yes_no_and_true_false(self, raw) -> None:
        df = encode_binary_columns(raw)
        assert set(df["international_plan"]) <= {0, 1}
        assert set(df["churn"]) == {0, 1}
        assert df["churn"].sum() == 5
        assert_array_equal(df["international_plan"].to_numpy()[:3], [1, 0, 0])

    def test_bool_dtype(self) -> None:
        df = encode_binary_columns(pd.DataFrame({"churn": [True, False, True]}))
        assert_array_equal(df["churn"].to_numpy(), [1, 0, 1])

    def test_unknown_value_raises(self) -> None:
        with pytest.raises(DataValidationError, match="international_plan"):
            encode_binary_columns(pd.DataFrame({"international_plan": ["yes", "maybe"]}))

    def test_input_not_modified(self, raw) -> None:
        before = raw.copy()
        encode_binary_columns(raw)
        pd.testing.assert_frame_equal(raw, before)


class TestAggregates:
    """Tests for day/eve/night aggregation."""

    def test_sums_are_exact(self, raw) -> None:
        df = add_aggregate_columns(raw)
        for total, (day, eve, night) in AGGREGATES.items():
            expected = raw[day] + raw[eve] + raw[night]
            assert (df[total].to_numpy() == expected.to_numpy()).all()

    def test_ten_row_minutes_scenario(self) -> None:
        """total_minutes[i] == day[i] + eve[i] + night[i] for each of 10 rows."""
        raw = make_raw(n=10, seed=7)
        raw["total_day_minutes"] = np.arange(10) * 10.5
        raw["total_eve_minutes"] = np.arange(10) * 0.1 + 100.0
        raw["total_night_minutes"] = np.full(10, 33.3)

        df = add_aggregate_columns(raw)
        assert len(df) == 10
        for i in range(10):
            assert df["total_minutes"].iloc[i] == (
                raw["total_day_minutes"].iloc[i]
                + raw["total_eve_minutes"].iloc[i]
                + raw["total_night_minutes"].iloc[i]
            )

    def test_segmented_columns_dropped(self, raw) -> None:
        df = add_aggregate_columns(raw)
        for parts in AGGREGATES.values():
            for col in parts:
                assert col not in df.columns
        assert "total_intl_minutes" in df.columns

    def test_missing_segment_raises(self, raw) -> None:
        with pytest.raises(DataValidationError, match="total_eve_calls"):
            add_aggregate_columns(raw.drop(columns=["total_eve_calls"]))


class TestSelection:
    """Tests for ordered column selection."""

    def test_order_follows_request(self, raw) -> None:
        df = add_aggregate_columns(encode_binary_columns(raw))
        cols = ["customer_service_calls", "total_minutes", "churn"]
        assert list(select_columns(df, cols).columns) == cols

    def test_absent_column_raises(self, raw) -> None:
        df = add_aggregate_columns(encode_binary_columns(raw))
        with pytest.raises(DataValidationError, match="absent"):
            select_columns(df, ["total_minutes", "tenure"])

    def test_non_numeric_raises(self, raw) -> None:
        df = add_aggregate_columns(encode_binary_columns(raw))
        with pytest.raises(DataValidationError, match="not numeric"):
            select_columns(df, ["state", "total_minutes"])


class TestScaling:
    """Tests for standardization."""

    def test_zero_mean_unit_variance(self, raw) -> None:
        table = transform(raw)
        X = table.matrix()
        assert_allclose(X.mean(axis=0), 0.0, atol=1e-12)
        assert_allclose(X.std(axis=0), 1.0, atol=1e-12)

    def test_outcome_not_scaled(self, raw) -> None:
        table = transform(raw)
        assert set(table.y.tolist()) == {0, 1}
        assert "churn" not in table.X.columns

    def test_reapplying_stored_parameters_is_stable(self, raw) -> None:
        table = transform(raw)
        again = transform(raw, scaling=table.scaling)
        twice = transform(raw, scaling=again.scaling)
        assert_array_equal(table.matrix(), again.matrix())
        assert_array_equal(again.matrix(), twice.matrix())

    def test_stored_means_and_stds(self, raw) -> None:
        df = add_aggregate_columns(encode_binary_columns(raw))
        scaling = fit_scaling(df, SELECTED_PREDICTORS)
        assert scaling.means["total_minutes"] == pytest.approx(df["total_minutes"].mean())
        assert scaling.stds["total_minutes"] == pytest.approx(df["total_minutes"].std(ddof=0))

    def test_zero_variance_raises(self, raw) -> None:
        raw["customer_service_calls"] = 2
        with pytest.raises(DataValidationError, match="customer_service_calls"):
            transform(raw)

    def test_missing_values_reported_as_missing(self, raw) -> None:
        raw["total_intl_calls"] = raw["total_intl_calls"].astype(float)
        raw.loc[3, "total_intl_calls"] = np.nan
        with pytest.raises(DataValidationError, match="missing values") as excinfo:
            transform(raw)
        assert "total_intl_calls" in str(excinfo.value)
        assert "Zero-variance" not in str(excinfo.value)

    def test_stored_scaling_must_match_predictors(self, raw) -> None:
        subset = transform(raw, predictors=["total_charge", "total_minutes"])
        with pytest.raises(DataValidationError, match="Stored scaling"):
            transform(raw, scaling=subset.scaling)

    def test_stored_scaling_order_matters(self, raw) -> None:
        scaling = transform(raw, predictors=["total_charge", "total_minutes"]).scaling
        with pytest.raises(DataValidationError):
            transform(raw, predictors=["total_minutes", "total_charge"], scaling=scaling)


class TestTransform:
    """Tests for the full preparation chain."""

    def test_row_count_and_column_order(self, raw) -> None:
        table = transform(raw)
        assert isinstance(table, ObservationTable)
        assert table.n_obs == len(raw)
        assert table.predictors == SELECTED_PREDICTORS
        assert list(table.X.columns) == list(SELECTED_PREDICTORS)
        assert table.matrix().shape == (len(raw), len(SELECTED_PREDICTORS))

    def test_select_returns_new_table(self, raw) -> None:
        table = transform(raw)
        sub = table.select(["total_charge", "international_plan"])
        assert sub.predictors == ("total_charge", "international_plan")
        assert sub.matrix().shape == (len(raw), 2)
        assert_array_equal(sub.matrix()[:, 0], table.X["total_charge"].to_numpy())
        assert table.n_predictors == len(SELECTED_PREDICTORS)

    def test_select_unknown_raises(self, raw) -> None:
        with pytest.raises(DataValidationError):
            transform(raw).select(["voice_mail_plan"])

    def test_missing_predictor_raises_before_fit(self, raw) -> None:
        with pytest.raises(DataValidationError, match="total_intl_calls"):
            transform(raw.drop(columns=["total_intl_calls"]))

    def test_non_binary_outcome_raises(self, raw) -> None:
        raw["churn"] = 2
        with pytest.raises(DataValidationError, match="churn"):
            transform(raw)

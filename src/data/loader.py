"""
Telecom churn table loading and feature preparation.

Turns the raw per-customer usage table into the observation table used by
every model variant:

    raw CSV → snake_case headers → yes/no encoded as 0/1
            → day/eve/night usage summed into total_minutes,
              total_calls, total_charge (segmented columns dropped)
            → fixed ordered predictor subset + churn
            → predictors standardized to zero mean, unit variance

Column order of the predictor matrix is SELECTED_PREDICTORS (or the caller's
subset, in the caller's order). The outcome column is never scaled.
"""

import os
import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from sklearn.preprocessing import StandardScaler

from src.utils.exceptions import DataValidationError
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

OUTCOME = "churn"

BINARY_COLUMNS: Tuple[str, ...] = ("international_plan", "voice_mail_plan", OUTCOME)

SEGMENTS: Tuple[str, ...] = ("day", "eve", "night")

# aggregate name -> segmented source columns, summed in this order
AGGREGATES: Dict[str, Tuple[str, ...]] = {
    f"total_{quantity}": tuple(f"total_{segment}_{quantity}" for segment in SEGMENTS)
    for quantity in ("minutes", "calls", "charge")
}

SELECTED_PREDICTORS: Tuple[str, ...] = (
    "international_plan",
    "total_minutes",
    "total_calls",
    "total_charge",
    "total_intl_minutes",
    "total_intl_calls",
    "total_intl_charge",
    "customer_service_calls",
)

_TRUE_TOKENS = {"yes", "true", "true.", "1", "1.0"}
_FALSE_TOKENS = {"no", "false", "false.", "0", "0.0"}


def normalize_column_name(name: str) -> str:
    """'Total day minutes' -> 'total_day_minutes'."""
    return re.sub(r"[^0-9a-z]+", "_", str(name).strip().lower()).strip("_")


@dataclass(frozen=True)
class ScalingParameters:
    """
    Fitted standardization for a fixed, ordered set of predictor columns.

    Attributes
    ----------
    columns : Tuple[str, ...]
        Predictor names, in matrix order.
    scaler : StandardScaler
        Fitted scaler holding per-column mean_ and scale_.
    """

    columns: Tuple[str, ...]
    scaler: StandardScaler

    @property
    def means(self) -> Dict[str, float]:
        return dict(zip(self.columns, map(float, self.scaler.mean_)))

    @property
    def stds(self) -> Dict[str, float]:
        return dict(zip(self.columns, map(float, self.scaler.scale_)))

    def apply(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Standardize ``df`` with the stored means and standard deviations.

        Only the fitted columns are returned, in fitted order. Re-applying to
        the same unscaled frame always yields the same values.
        """
        missing = [c for c in self.columns if c not in df.columns]
        if missing:
            raise DataValidationError(f"Cannot scale, columns absent: {missing}")
        values = self.scaler.transform(df[list(self.columns)].to_numpy(dtype=np.float64))
        return pd.DataFrame(values, columns=list(self.columns), index=df.index)


@dataclass(frozen=True)
class ObservationTable:
    """
    Standardized predictors and binary outcome, one row per customer.

    Attributes
    ----------
    predictors : Tuple[str, ...]
        Predictor column names in matrix order.
    X : pd.DataFrame
        Standardized predictors, shape (n_obs, n_predictors).
    y : NDArray[np.int64]
        Churn outcome (0/1), shape (n_obs,).
    scaling : ScalingParameters
        Scaling fitted on the full predictor set this table came from.
    """

    predictors: Tuple[str, ...]
    X: pd.DataFrame
    y: NDArray[np.int64]
    scaling: ScalingParameters

    @property
    def n_obs(self) -> int:
        return len(self.y)

    @property
    def n_predictors(self) -> int:
        return len(self.predictors)

    def matrix(self) -> NDArray[np.float64]:
        """Predictor matrix as a float array, columns in ``predictors`` order."""
        return self.X[list(self.predictors)].to_numpy(dtype=np.float64)

    def select(self, columns: Sequence[str]) -> "ObservationTable":
        """Return a new table restricted to ``columns`` (in the given order)."""
        columns = tuple(columns)
        missing = [c for c in columns if c not in self.predictors]
        if missing:
            raise DataValidationError(f"Predictors not in table: {missing}")
        if len(set(columns)) != len(columns):
            raise DataValidationError(f"Duplicate predictors requested: {list(columns)}")
        return ObservationTable(
            predictors=columns,
            X=self.X[list(columns)].copy(),
            y=self.y,
            scaling=self.scaling,
        )


def load_raw_dataset(path: str) -> pd.DataFrame:
    """
    Read the raw churn CSV and normalize its headers to snake_case.

    Raises
    ------
    DataValidationError
        If the file does not exist.
    """
    if not os.path.exists(path):
        raise DataValidationError(f"Dataset not found: {path}")

    df = pd.read_csv(path)
    df.columns = [normalize_column_name(c) for c in df.columns]
    logger.info(f"Loaded {len(df)} rows, {len(df.columns)} columns from {path}")
    return df


def _encode_series(series: pd.Series) -> pd.Series:
    if series.dtype == bool:
        return series.astype(np.int64)

    tokens = series.astype(str).str.strip().str.lower()
    unknown = sorted(set(tokens) - _TRUE_TOKENS - _FALSE_TOKENS)
    if unknown:
        raise DataValidationError(
            f"Column '{series.name}' has values that are not yes/no: {unknown[:5]}"
        )
    return tokens.isin(_TRUE_TOKENS).astype(np.int64)


def encode_binary_columns(
    df: pd.DataFrame,
    columns: Sequence[str] = BINARY_COLUMNS,
) -> pd.DataFrame:
    """Encode yes/no (or true/false) columns as 0/1. Absent columns are skipped."""
    out = df.copy()
    for col in columns:
        if col in out.columns:
            out[col] = _encode_series(out[col])
    return out


def add_aggregate_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Sum day, evening and night usage into total_minutes, total_calls and
    total_charge, then drop the nine segmented columns.

    Raises
    ------
    DataValidationError
        If any segmented source column is missing.
    """
    sources = [c for parts in AGGREGATES.values() for c in parts]
    missing = [c for c in sources if c not in df.columns]
    if missing:
        raise DataValidationError(f"Missing usage columns: {missing}")

    out = df.copy()
    for total, (day, eve, night) in AGGREGATES.items():
        out[total] = out[day] + out[eve] + out[night]
    return out.drop(columns=sources)


def select_columns(df: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """
    Keep exactly ``columns``, in order.

    Raises
    ------
    DataValidationError
        If a column is absent or not numeric.
    """
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise DataValidationError(f"Required columns absent: {missing}")

    out = df[list(columns)]
    non_numeric = [c for c in columns if not pd.api.types.is_numeric_dtype(out[c])]
    if non_numeric:
        raise DataValidationError(f"Columns are not numeric after encoding: {non_numeric}")
    return out.copy()


def fit_scaling(df: pd.DataFrame, columns: Sequence[str]) -> ScalingParameters:
    """
    Fit standardization parameters on ``columns``.

    Raises
    ------
    DataValidationError
        If any column has missing values or zero variance.
    """
    missing = [c for c in columns if df[c].isna().any()]
    if missing:
        raise DataValidationError(f"Columns contain missing values: {missing}")

    values = df[list(columns)].to_numpy(dtype=np.float64)
    stds = values.std(axis=0)
    constant = [c for c, s in zip(columns, stds) if not s > 0]
    if constant:
        raise DataValidationError(f"Zero-variance columns cannot be scaled: {constant}")

    scaler = StandardScaler().fit(values)
    return ScalingParameters(columns=tuple(columns), scaler=scaler)


def transform(
    raw: pd.DataFrame,
    predictors: Sequence[str] = SELECTED_PREDICTORS,
    scaling: Optional[ScalingParameters] = None,
) -> ObservationTable:
    """
    Full preparation of a raw churn table.

    Parameters
    ----------
    raw : pd.DataFrame
        Raw table with snake_case headers (see load_raw_dataset).
    predictors : Sequence[str]
        Ordered predictor subset. Default SELECTED_PREDICTORS.
    scaling : ScalingParameters, optional
        Previously fitted scaling to re-apply. If None, fit on ``raw``.
        Its columns must equal ``predictors``, in order.

    Returns
    -------
    table : ObservationTable
        Same row count as ``raw``.
    """
    predictors = tuple(predictors)
    df = encode_binary_columns(raw)
    df = add_aggregate_columns(df)
    df = select_columns(df, predictors + (OUTCOME,))

    y = df[OUTCOME].to_numpy()
    if not np.all(np.isin(y, (0, 1))):
        raise DataValidationError("Outcome column 'churn' must be strictly 0/1")

    if scaling is None:
        scaling = fit_scaling(df, predictors)
    elif tuple(scaling.columns) != predictors:
        raise DataValidationError(
            f"Stored scaling covers {list(scaling.columns)}, predictors are {list(predictors)}"
        )
    X = scaling.apply(df)

    logger.info(
        f"Prepared {len(df)} rows with predictors {list(predictors)} "
        f"(churn rate {y.mean():.3f})"
    )
    return ObservationTable(
        predictors=predictors,
        X=X,
        y=y.astype(np.int64),
        scaling=scaling,
    )

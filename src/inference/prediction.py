"""Posterior churn probabilities for new customers."""

from typing import Sequence

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.special import expit

from src.data.loader import ScalingParameters, add_aggregate_columns, encode_binary_columns, select_columns


def predict_churn_probability(
    summary,
    scaling: ScalingParameters,
    raw: pd.DataFrame,
    predictors: Sequence[str],
) -> NDArray[np.float64]:
    """
    Posterior-mean churn probability for rows of a raw table.

    New rows are scaled with the stored training means and standard
    deviations, never refitted.

    Parameters
    ----------
    summary : InferenceSummary
        Fitted variant
    scaling : ScalingParameters
        Scaling from the training ObservationTable
    raw : pd.DataFrame
        Raw rows in the training schema (snake_case headers)
    predictors : Sequence[str]
        The variant's predictors, in model order

    Returns
    -------
    probs : NDArray[np.float64]
        Shape (len(raw),)
    """
    df = select_columns(add_aggregate_columns(encode_binary_columns(raw)), scaling.columns)
    X = scaling.apply(df)[list(predictors)].to_numpy(dtype=np.float64)

    posterior = summary.idata.posterior
    alpha = posterior["alpha"].values.reshape(-1)
    beta = posterior["beta"].sel(predictor=list(predictors)).values.reshape(alpha.size, -1)

    return expit(alpha[:, None] + beta @ X.T).mean(axis=0)

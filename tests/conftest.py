"""Shared fixtures: synthetic raw tables and InferenceData without sampling."""

import numpy as np
import pandas as pd
import pytest
import arviz as az

from src.inference.sampler import InferenceSummary

PREDICTORS = ("international_plan", "total_charge", "customer_service_calls")


def make_idata(
    n_chains: int = 4,
    n_draws: int = 400,
    predictors=PREDICTORS,
    n_obs: int = 40,
    chain_offsets=None,
    n_divergent: int = 0,
    n_treedepth: int = 0,
    seed: int = 0,
):
    """
    InferenceData shaped like a PyMC churn fit, drawn from known normals.

    ``chain_offsets`` shifts alpha per chain to simulate non-convergence.
    """
    rng = np.random.default_rng(seed)
    k = len(predictors)

    alpha = rng.normal(-1.5, 0.1, size=(n_chains, n_draws))
    if chain_offsets is not None:
        alpha = alpha + np.asarray(chain_offsets)[:, None]
    true_beta = np.linspace(0.8, -0.4, k)
    beta = true_beta + rng.normal(0.0, 0.1, size=(n_chains, n_draws, k))

    X = rng.normal(size=(n_obs, k))
    y = rng.binomial(1, 0.3, size=n_obs)
    logit = alpha[..., None] + np.einsum("cdk,nk->cdn", beta, X)
    loglik = -np.logaddexp(0.0, np.where(y == 1, -logit, logit))

    diverging = np.zeros((n_chains, n_draws), dtype=bool)
    diverging.ravel()[:n_divergent] = True
    reached = np.zeros((n_chains, n_draws), dtype=bool)
    if n_treedepth:
        reached.ravel()[-n_treedepth:] = True

    return az.from_dict(
        posterior={"alpha": alpha, "beta": beta},
        sample_stats={"diverging": diverging, "reached_max_treedepth": reached},
        log_likelihood={"churn": loglik},
        observed_data={"churn": y},
        coords={"predictor": list(predictors), "obs_id": np.arange(n_obs)},
        dims={"beta": ["predictor"], "churn": ["obs_id"]},
    )


def make_summary(idata, sampling_time: float = 2.5) -> InferenceSummary:
    return InferenceSummary(
        idata=idata,
        n_draws=idata.posterior.sizes["draw"],
        n_tune=idata.posterior.sizes["draw"],
        n_chains=idata.posterior.sizes["chain"],
        sampling_time=sampling_time,
    )


def make_raw(n: int = 10, seed: int = 1) -> pd.DataFrame:
    """Small raw table in the snake_case churn schema."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        "state": ["KS"] * n,
        "international_plan": ["yes", "no", "no"] * (n // 3) + ["no"] * (n % 3),
        "voice_mail_plan": ["no", "yes"] * (n // 2) + ["no"] * (n % 2),
    })
    for segment in ("day", "eve", "night"):
        df[f"total_{segment}_minutes"] = rng.uniform(50, 300, n).round(1)
        df[f"total_{segment}_calls"] = rng.integers(50, 150, n)
        df[f"total_{segment}_charge"] = rng.uniform(5, 50, n).round(2)
    df["total_intl_minutes"] = rng.uniform(0, 20, n).round(1)
    df["total_intl_calls"] = rng.integers(0, 10, n)
    df["total_intl_charge"] = rng.uniform(0, 5, n).round(2)
    df["customer_service_calls"] = np.arange(n) % 6
    df["churn"] = ["True.", "False."] * (n // 2) + ["False."] * (n % 2)
    return df


@pytest.fixture
def idata():
    return make_idata()


@pytest.fixture
def summary(idata):
    return make_summary(idata)


@pytest.fixture
def raw():
    return make_raw()

"""
Synthetic telecom churn datasets with known logistic coefficients.

Generates raw tables in the same schema as the real dataset (segmented
day/eve/night usage, yes/no plan flags, churn outcome) so that the whole
preparation → fit → diagnose path can be exercised against known truth.

Generative model:
    usage_{segment} ~ Normal(mean_segment, sd_segment)      # minutes, calls
    charge_{segment} = rate_segment * minutes_{segment}
    international_plan ~ Bernoulli(p_intl)
    customer_service_calls ~ Poisson(λ_cs)
    z = standardized predictors (same order as SELECTED_PREDICTORS)
    churn ~ Bernoulli(logistic(α + z · β))

Key components:
- Raw table generation (generate_raw)
- Repeated base vs. LASSO fits measuring shrinkage (shrinkage_study)
"""

from typing import Dict, Optional, Sequence
import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.special import expit

from src.data.loader import SELECTED_PREDICTORS

# (minutes mean, minutes sd, calls mean, calls sd, charge per minute)
SEGMENT_PROFILES: Dict[str, tuple] = {
    "day": (180.0, 54.0, 100.0, 20.0, 0.17),
    "eve": (200.0, 50.0, 100.0, 20.0, 0.085),
    "night": (200.0, 50.0, 100.0, 20.0, 0.045),
}
INTL_PROFILE = (10.0, 2.8, 4.5, 2.4, 0.27)


class ChurnDataSimulator:
    """
    Simulator for raw churn tables with known coefficients.

    Attributes
    ----------
    n_customers : int
        Number of rows per generated table
    intercept : float
        True intercept α on the logit scale
    coefficients : NDArray[np.float64]
        True coefficients β for standardized SELECTED_PREDICTORS, shape (8,)
    p_international : float
        Probability a customer has the international plan
    service_call_rate : float
        Poisson rate of customer service calls
    """

    def __init__(
        self,
        n_customers: int = 500,
        intercept: float = -2.0,
        coefficients: Optional[NDArray[np.float64]] = None,
        p_international: float = 0.1,
        service_call_rate: float = 1.5,
    ) -> None:
        """
        Initialize simulator.

        Parameters
        ----------
        n_customers : int
            Rows per generated table. Default 500.
        intercept : float
            True intercept. Default -2.0 (roughly 15% churn).
        coefficients : NDArray[np.float64], optional
            True standardized coefficients, one per SELECTED_PREDICTORS entry.
            If None, a sparse default with three active predictors.
        p_international : float
            International plan prevalence. Default 0.1.
        service_call_rate : float
            Mean customer service calls. Default 1.5.
        """
        if n_customers <= 0:
            raise ValueError(f"n_customers must be positive. Got {n_customers}")
        if not (0.0 < p_international < 1.0):
            raise ValueError(f"p_international must be in (0, 1). Got {p_international}")
        if service_call_rate <= 0:
            raise ValueError(f"service_call_rate must be positive. Got {service_call_rate}")

        if coefficients is None:
            coefficients = np.zeros(len(SELECTED_PREDICTORS))
            coefficients[0] = 0.8   # international_plan
            coefficients[3] = 0.7   # total_charge
            coefficients[7] = 0.9   # customer_service_calls
        coefficients = np.asarray(coefficients, dtype=np.float64)
        if coefficients.shape != (len(SELECTED_PREDICTORS),):
            raise ValueError(
                f"coefficients must have shape ({len(SELECTED_PREDICTORS)},). "
                f"Got {coefficients.shape}"
            )

        self.n_customers = n_customers
        self.intercept = intercept
        self.coefficients = coefficients
        self.p_international = p_international
        self.service_call_rate = service_call_rate

    def generate_raw(self, random_seed: Optional[int] = None) -> pd.DataFrame:
        """
        Generate one raw table in the real dataset's (snake_case) schema.

        Parameters
        ----------
        random_seed : int, optional
            Random seed for reproducibility.

        Returns
        -------
        raw : pd.DataFrame
            Columns: international_plan / voice_mail_plan / churn as "yes"/"no",
            segmented usage, international usage, customer_service_calls.
        """
        rng = np.random.default_rng(random_seed)
        n = self.n_customers

        data = {
            "international_plan": rng.binomial(1, self.p_international, n),
            "voice_mail_plan": rng.binomial(1, 0.25, n),
        }

        for segment, (m_mu, m_sd, c_mu, c_sd, rate) in SEGMENT_PROFILES.items():
            minutes = np.clip(rng.normal(m_mu, m_sd, n), 0.0, None).round(1)
            data[f"total_{segment}_minutes"] = minutes
            data[f"total_{segment}_calls"] = np.clip(rng.normal(c_mu, c_sd, n), 0, None).round().astype(np.int64)
            data[f"total_{segment}_charge"] = (minutes * rate).round(2)

        m_mu, m_sd, c_mu, c_sd, rate = INTL_PROFILE
        intl_minutes = np.clip(rng.normal(m_mu, m_sd, n), 0.0, None).round(1)
        data["total_intl_minutes"] = intl_minutes
        data["total_intl_calls"] = np.clip(rng.normal(c_mu, c_sd, n), 0, None).round().astype(np.int64)
        data["total_intl_charge"] = (intl_minutes * rate).round(2)
        data["customer_service_calls"] = rng.poisson(self.service_call_rate, n)

        raw = pd.DataFrame(data)
        design = self._standardized_design(raw)
        p = expit(self.intercept + design @ self.coefficients)
        churn = rng.binomial(1, p)

        yes_no = np.array(["no", "yes"])
        raw["international_plan"] = yes_no[raw["international_plan"].to_numpy()]
        raw["voice_mail_plan"] = yes_no[raw["voice_mail_plan"].to_numpy()]
        raw["churn"] = yes_no[churn]
        return raw

    @staticmethod
    def _standardized_design(raw: pd.DataFrame) -> NDArray[np.float64]:
        columns = {}
        for quantity in ("minutes", "calls", "charge"):
            columns[f"total_{quantity}"] = sum(
                raw[f"total_{segment}_{quantity}"] for segment in SEGMENT_PROFILES
            )
        for col in SELECTED_PREDICTORS:
            if col not in columns:
                columns[col] = raw[col]
        X = np.column_stack([np.asarray(columns[c], dtype=np.float64) for c in SELECTED_PREDICTORS])
        sd = X.std(axis=0)
        sd[sd == 0] = 1.0
        return (X - X.mean(axis=0)) / sd

    def shrinkage_study(
        self,
        n_runs: int,
        weak_predictors: Sequence[str],
        laplace_scale: float = 0.1,
        chains: int = 2,
        iterations: int = 1000,
        random_seed: int = 0,
    ) -> pd.DataFrame:
        """
        Fit the flat-prior and Laplace-prior models on the same data repeatedly.

        Parameters
        ----------
        n_runs : int
            Number of independent synthetic datasets.
        weak_predictors : Sequence[str]
            Predictors whose coefficient magnitudes are compared.
        laplace_scale : float
            Laplace prior scale λ for the LASSO fit. Default 0.1.
        chains, iterations : int
            Sampler settings per fit.
        random_seed : int
            Base seed; run i uses random_seed + i.

        Returns
        -------
        study : pd.DataFrame
            One row per run: run, base_abs_beta, lasso_abs_beta (posterior
            mean |β| averaged over ``weak_predictors``).
        """
        from src.data.loader import transform
        from src.inference.model_builder import PriorSpec
        from src.inference.sampler import SamplerConfig
        from src.inference.variants import ModelVariant
        from src.inference.workflow import fit_variant

        if n_runs <= 0:
            raise ValueError(f"n_runs must be positive. Got {n_runs}")

        config = SamplerConfig(chains=chains, iterations=iterations, cores=1, progressbar=False)
        variants = [
            ModelVariant("base", SELECTED_PREDICTORS, PriorSpec("flat"), config),
            ModelVariant("lasso", SELECTED_PREDICTORS, PriorSpec("laplace", laplace_scale), config),
        ]

        rows = []
        for run in range(n_runs):
            table = transform(self.generate_raw(random_seed=random_seed + run))
            magnitudes = {}
            for variant in variants:
                seeded = variant.with_seed(random_seed + run)
                result = fit_variant(seeded, table)
                beta = result.summary.idata.posterior["beta"].sel(predictor=list(weak_predictors))
                magnitudes[variant.name] = float(np.abs(beta.mean(dim=("chain", "draw"))).mean())
            rows.append({
                "run": run,
                "base_abs_beta": magnitudes["base"],
                "lasso_abs_beta": magnitudes["lasso"],
            })

        return pd.DataFrame(rows)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ChurnDataSimulator(n_customers={self.n_customers}, "
            f"intercept={self.intercept}, coefficients={self.coefficients.tolist()})"
        )

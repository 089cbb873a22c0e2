"""
Convergence diagnostics and cross-validation for fitted churn models.

Turns posterior draws into a DiagnosticRecord: per-parameter summaries and
whole-model scalars. Sampling problems are recorded, never raised.

Key diagnostics:
- R-hat (split, rank-normalized potential scale reduction): <1.01 indicates convergence
- Bulk / tail ESS (rank-normalized effective sample size): >400 recommended
- Divergences and max-tree-depth hits: counted over all chains
- PSIS-LOO: elpd_loo, p_loo, looic = -2 * elpd_loo; Pareto k > 0.7 flags
  observations where the importance-sampling approximation is unreliable
"""

import re
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import arviz as az
from numpy.typing import NDArray

from src.utils.exceptions import ConvergenceStatisticError, ParameterNotFoundError
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

# split-R-hat estimates of a converged chain scatter slightly below 1
RHAT_TOLERANCE = 1e-2
RHAT_THRESHOLD = 1.01
ESS_THRESHOLD = 400.0
PARETO_K_THRESHOLD = 0.7
HDI_PROB = 0.94

_INDEXED_NAME = re.compile(r"^(?P<var>[^\[\]]+)\[(?P<label>[^\[\]]+)\]$")


@dataclass(frozen=True)
class ParameterDiagnostics:
    """Posterior summary of one scalar parameter."""

    name: str
    mean: float
    sd: float
    hdi_low: float
    hdi_high: float
    ess_bulk: float
    ess_tail: float
    r_hat: float


@dataclass(frozen=True)
class DiagnosticRecord:
    """
    Diagnostics for one fitted model variant.

    Attributes
    ----------
    variant_name : str
        Model variant the record belongs to
    parameters : Tuple[ParameterDiagnostics, ...]
        One entry per requested parameter, in request order
    elpd_loo, elpd_loo_se, p_loo, looic : float
        PSIS-LOO expected log predictive density, its standard error,
        effective number of parameters, and information criterion
    n_high_pareto_k : int
        Observations with Pareto k above PARETO_K_THRESHOLD
    n_divergences : int
        Divergent transitions, all chains
    n_max_treedepth : int
        Transitions that hit the tree-depth limit, all chains
    sampling_time : float
        Wall-clock fit time (seconds)
    n_draws : int
        Post-warm-up draws pooled over chains
    """

    variant_name: str
    parameters: Tuple[ParameterDiagnostics, ...]
    elpd_loo: float
    elpd_loo_se: float
    p_loo: float
    looic: float
    n_high_pareto_k: int
    n_divergences: int
    n_max_treedepth: int
    sampling_time: float
    n_draws: int
    pareto_k: NDArray[np.float64] = field(default=None, repr=False, compare=False)

    @property
    def parameter_names(self) -> List[str]:
        return [p.name for p in self.parameters]

    def __getitem__(self, name: str) -> ParameterDiagnostics:
        for p in self.parameters:
            if p.name == name:
                return p
        raise ParameterNotFoundError(name, self.parameter_names)

    def coefficients(self) -> List[ParameterDiagnostics]:
        """Entries for beta[...] only (intercept excluded)."""
        return [p for p in self.parameters if p.name.startswith("beta[")]

    def to_frame(self) -> pd.DataFrame:
        """Per-parameter table indexed by parameter name."""
        return pd.DataFrame([asdict(p) for p in self.parameters]).set_index("name")

    def as_dict(self) -> Dict:
        """Model-level scalars as a plain dict."""
        return {
            "variant": self.variant_name,
            "elpd_loo": self.elpd_loo,
            "elpd_loo_se": self.elpd_loo_se,
            "p_loo": self.p_loo,
            "looic": self.looic,
            "n_high_pareto_k": self.n_high_pareto_k,
            "n_divergences": self.n_divergences,
            "n_max_treedepth": self.n_max_treedepth,
            "sampling_time": self.sampling_time,
            "n_draws": self.n_draws,
        }

    def warnings(
        self,
        rhat_threshold: float = RHAT_THRESHOLD,
        ess_threshold: float = ESS_THRESHOLD,
    ) -> List[str]:
        """
        Sampling-quality problems worth an operator's attention.

        Returns
        -------
        messages : List[str]
            Empty for a clean fit.
        """
        messages = []
        if self.n_divergences > 0:
            messages.append(f"{self.n_divergences} divergent transitions")
        if self.n_max_treedepth > 0:
            messages.append(f"{self.n_max_treedepth} transitions hit max tree depth")
        for p in self.parameters:
            if p.r_hat > rhat_threshold:
                messages.append(f"{p.name}: r_hat {p.r_hat:.3f} > {rhat_threshold}")
            if p.ess_bulk < ess_threshold:
                messages.append(f"{p.name}: ess_bulk {p.ess_bulk:.0f} < {ess_threshold:.0f}")
        if self.n_high_pareto_k > 0:
            messages.append(
                f"{self.n_high_pareto_k} observations with Pareto k > {PARETO_K_THRESHOLD}"
            )
        return messages


class DiagnosticsComputer:
    """
    Compute convergence diagnostics from posterior samples.

    Includes: R-hat, ESS, divergence and tree-depth tallies, PSIS-LOO.
    """

    @staticmethod
    def rhat(posterior_samples: NDArray[np.float64], name: str = "parameter") -> float:
        """
        Split rank-normalized R-hat (Vehtari et al. 2021).

        Parameters
        ----------
        posterior_samples : NDArray[np.float64]
            Draws of one scalar parameter, shape (chains, draws). A single
            chain is split in halves.
        name : str
            Parameter name used in error messages.

        Returns
        -------
        rhat : float
            Potential scale reduction factor, >= 1.

        Raises
        ------
        ConvergenceStatisticError
            If there are fewer than 4 draws per chain, or the estimate is NaN
            or falls below 1 by more than RHAT_TOLERANCE.
        """
        samples = np.atleast_2d(np.asarray(posterior_samples, dtype=np.float64))
        if samples.shape[1] < 4:
            raise ConvergenceStatisticError(
                f"{name}: need at least 4 draws per chain for R-hat. Got {samples.shape[1]}"
            )

        if np.ptp(samples) == 0:
            # constant draws: chains agree exactly
            return 1.0

        value = float(az.rhat(samples, method="rank"))
        if not np.isfinite(value) or value < 1.0 - RHAT_TOLERANCE:
            raise ConvergenceStatisticError(f"{name}: R-hat estimate out of range: {value}")
        return max(value, 1.0)

    @staticmethod
    def ess(posterior_samples: NDArray[np.float64], method: str = "bulk") -> float:
        """
        Rank-normalized effective sample size.

        Parameters
        ----------
        posterior_samples : NDArray[np.float64]
            Draws of one scalar parameter, shape (chains, draws).
        method : str
            "bulk" or "tail". Default "bulk".

        Returns
        -------
        ess : float
            Effective sample size pooled over chains.
        """
        samples = np.atleast_2d(np.asarray(posterior_samples, dtype=np.float64))
        if np.ptp(samples) == 0:
            return float(samples.size)
        return float(az.ess(samples, method=method))

    @staticmethod
    def divergence_count(idata) -> int:
        """Divergent transitions summed over all chains."""
        if "sample_stats" not in idata.groups() or "diverging" not in idata.sample_stats:
            return 0
        return int(idata.sample_stats["diverging"].sum().item())

    @staticmethod
    def treedepth_hits(idata, max_treedepth: int) -> int:
        """Transitions that saturated the tree-depth limit, all chains."""
        if "sample_stats" not in idata.groups():
            return 0
        stats = idata.sample_stats
        if "reached_max_treedepth" in stats:
            return int(stats["reached_max_treedepth"].sum().item())
        if "tree_depth" in stats:
            return int((stats["tree_depth"] >= max_treedepth).sum().item())
        return 0

    @staticmethod
    def divergence_rate(idata) -> float:
        """Fraction of post-warm-up draws that diverged [0, 1]."""
        n_total = idata.posterior.sizes["draw"] * idata.posterior.sizes["chain"]
        return DiagnosticsComputer.divergence_count(idata) / n_total

    @staticmethod
    def loo(idata):
        """
        Pareto-smoothed importance-sampling LOO.

        Parameters
        ----------
        idata : arviz.InferenceData
            Must contain a log_likelihood group (one variable, per observation).

        Returns
        -------
        loo : arviz.ELPDData
            elpd_loo, se, p_loo, pareto_k, ...
        """
        if "log_likelihood" not in idata.groups():
            raise ValueError(
                "InferenceData has no log_likelihood group; sample with "
                "idata_kwargs={'log_likelihood': True}"
            )
        return az.loo(idata, pointwise=True)


def parameter_draws(idata, name: str) -> NDArray[np.float64]:
    """
    Draws of one scalar parameter, shape (chains, draws).

    Parameters
    ----------
    idata : arviz.InferenceData
        Posterior inference data
    name : str
        "alpha" for scalar variables, "beta[total_charge]" for an entry of a
        vector variable with a single labelled dimension.

    Raises
    ------
    ParameterNotFoundError
        If the variable or coordinate label is not in the posterior.
    """
    posterior = idata.posterior
    available = available_parameter_names(idata)

    match = _INDEXED_NAME.match(name)
    if match is None:
        if name not in posterior.data_vars:
            raise ParameterNotFoundError(name, available)
        da = posterior[name]
        if set(da.dims) != {"chain", "draw"}:
            raise ParameterNotFoundError(name, available)
        return da.transpose("chain", "draw").values

    var, label = match.group("var"), match.group("label")
    if var not in posterior.data_vars:
        raise ParameterNotFoundError(name, available)
    da = posterior[var]
    extra = [d for d in da.dims if d not in ("chain", "draw")]
    if len(extra) != 1:
        raise ParameterNotFoundError(name, available)
    dim = extra[0]
    labels = [str(v) for v in da[dim].values]
    if label not in labels:
        raise ParameterNotFoundError(name, available)
    return da.isel({dim: labels.index(label)}).transpose("chain", "draw").values


def available_parameter_names(idata) -> List[str]:
    """Every scalar parameter name addressable through parameter_draws."""
    names = []
    for var, da in idata.posterior.data_vars.items():
        extra = [d for d in da.dims if d not in ("chain", "draw")]
        if not extra:
            names.append(var)
        elif len(extra) == 1:
            names.extend(f"{var}[{v}]" for v in da[extra[0]].values)
    return names


def summarize_parameter(name: str, samples: NDArray[np.float64]) -> ParameterDiagnostics:
    """Pooled mean/sd/HDI plus ESS and R-hat for one parameter."""
    r_hat = DiagnosticsComputer.rhat(samples, name=name)
    flat = samples.reshape(-1)
    hdi_low, hdi_high = az.hdi(flat, hdi_prob=HDI_PROB)
    return ParameterDiagnostics(
        name=name,
        mean=float(np.mean(flat)),
        sd=float(np.std(flat, ddof=1)) if flat.size > 1 else 0.0,
        hdi_low=float(hdi_low),
        hdi_high=float(hdi_high),
        ess_bulk=DiagnosticsComputer.ess(samples, method="bulk"),
        ess_tail=DiagnosticsComputer.ess(samples, method="tail"),
        r_hat=r_hat,
    )


def extract_diagnostics(
    summary,
    parameter_names: Sequence[str],
    variant_name: str = "model",
) -> DiagnosticRecord:
    """
    Build the diagnostic record of one fitted variant.

    Parameters
    ----------
    summary : InferenceSummary
        Result of NUTSSampler.sample()
    parameter_names : Sequence[str]
        Parameters to summarize (e.g. ModelBuilder.parameter_names()).
    variant_name : str
        Name stored on the record.

    Returns
    -------
    record : DiagnosticRecord
        One ParameterDiagnostics per requested name plus model scalars.

    Raises
    ------
    ParameterNotFoundError
        If any requested name is not in the draws.
    """
    idata = summary.idata

    # resolve every name first so a bad request fails before any computation
    draws = [(name, parameter_draws(idata, name)) for name in parameter_names]
    parameters = tuple(summarize_parameter(name, samples) for name, samples in draws)

    loo = DiagnosticsComputer.loo(idata)
    pareto_k = np.asarray(loo.pareto_k, dtype=np.float64)
    elpd = float(loo.elpd_loo)

    record = DiagnosticRecord(
        variant_name=variant_name,
        parameters=parameters,
        elpd_loo=elpd,
        elpd_loo_se=float(loo.se),
        p_loo=float(loo.p_loo),
        looic=-2.0 * elpd,
        n_high_pareto_k=int(np.sum(pareto_k > PARETO_K_THRESHOLD)),
        n_divergences=DiagnosticsComputer.divergence_count(idata),
        n_max_treedepth=DiagnosticsComputer.treedepth_hits(idata, summary.max_treedepth),
        sampling_time=float(summary.sampling_time),
        n_draws=int(idata.posterior.sizes["chain"] * idata.posterior.sizes["draw"]),
        pareto_k=pareto_k,
    )

    for message in record.warnings():
        logger.warning(f"[{variant_name}] {message}")

    return record


class PosteriorPredictiveCheck:
    """
    Posterior predictive checks for the churn model.

    Compares the observed churn rate to churn rates replicated from the
    posterior to see whether the model reproduces the base rate.
    """

    @staticmethod
    def churn_probabilities(idata, X: NDArray[np.float64]) -> NDArray[np.float64]:
        """
        Per-draw churn probabilities.

        Parameters
        ----------
        idata : arviz.InferenceData
            Posterior with alpha and beta
        X : NDArray[np.float64]
            Standardized predictors, columns in beta's predictor order

        Returns
        -------
        probs : NDArray[np.float64]
            Shape (chain * draw, n_obs)
        """
        from scipy.special import expit

        alpha = idata.posterior["alpha"].values.reshape(-1)
        beta = idata.posterior["beta"].values.reshape(alpha.size, -1)
        if beta.shape[1] != X.shape[1]:
            raise ValueError(
                f"X has {X.shape[1]} columns but the posterior has {beta.shape[1]} coefficients"
            )
        return expit(alpha[:, None] + beta @ X.T)

    @staticmethod
    def churn_rate_pvalue(
        idata,
        X: NDArray[np.float64],
        y: NDArray[np.int64],
        random_seed: Optional[int] = None,
    ) -> Dict[str, float]:
        """
        Posterior predictive p-value of the observed churn rate.

        Returns
        -------
        ppc_stats : Dict[str, float]
            - observed_rate: mean of y
            - replicated_mean: mean replicated churn rate
            - pvalue: P(replicated rate >= observed rate); ~0.5 for a
              well-calibrated base rate
        """
        rng = np.random.default_rng(random_seed)
        probs = PosteriorPredictiveCheck.churn_probabilities(idata, X)
        replicated = rng.binomial(1, probs).mean(axis=1)
        observed = float(np.mean(y))
        return {
            "observed_rate": observed,
            "replicated_mean": float(replicated.mean()),
            "pvalue": float(np.mean(replicated >= observed)),
        }

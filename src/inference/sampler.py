"""
NUTS sampler invocation for churn model variants.

Orchestrates PyMC sampling for one model and records what the caller needs
afterwards: the posterior (with pointwise log-likelihood for LOO), sampler
statistics (divergences, tree depth) and wall-clock fit time.

Sampling problems are not failures here:
- Divergent transitions are counted in sample_stats, never raised
- Tree-depth saturation is counted in sample_stats, never raised
- Poor convergence shows up later in R-hat / ESS
Only hard errors (bad shapes, non-finite initial point) propagate.
"""

import os
import time
from dataclasses import dataclass, field, replace
from typing import Optional

import pymc as pm

from src.utils.exceptions import ModelConfigurationError
from src.utils.logger import setup_logger

logger = setup_logger(__name__)

# fewest post-warm-up draws per chain the R-hat and ESS estimators accept
MIN_DRAWS = 4


@dataclass(frozen=True)
class SamplerConfig:
    """
    Sampler settings for one variant.

    Attributes
    ----------
    chains : int
        Number of independent chains (>= 1)
    iterations : int
        Total iterations per chain, warm-up included
    warmup : int, optional
        Warm-up (tuning) iterations per chain, discarded. Default iterations // 2.
    cores : int, optional
        Worker processes. Bounded by chains; default min(chains, cpu count).
    target_accept : float
        NUTS acceptance rate target
    max_treedepth : int
        Maximum NUTS tree depth
    random_seed : int, optional
        Random seed for reproducibility
    progressbar : bool
        Show PyMC progress bar
    """

    chains: int = 4
    iterations: int = 2000
    warmup: Optional[int] = None
    cores: Optional[int] = None
    target_accept: float = 0.85
    max_treedepth: int = 10
    random_seed: Optional[int] = None
    progressbar: bool = field(default=True, compare=False)

    def __post_init__(self) -> None:
        if self.chains < 1:
            raise ModelConfigurationError(f"chains must be >= 1. Got {self.chains}")
        if self.warmup is not None and self.warmup < 0:
            raise ModelConfigurationError(f"warmup must be >= 0. Got {self.warmup}")
        if self.iterations <= self.n_warmup:
            raise ModelConfigurationError(
                f"iterations must exceed warm-up. Got iterations={self.iterations}, "
                f"warmup={self.n_warmup}"
            )
        if self.n_draws < MIN_DRAWS:
            raise ModelConfigurationError(
                f"Need at least {MIN_DRAWS} post-warm-up draws per chain. "
                f"Got iterations={self.iterations}, warmup={self.n_warmup}"
            )
        if self.cores is not None and self.cores < 1:
            raise ModelConfigurationError(f"cores must be >= 1. Got {self.cores}")
        if not (0.5 < self.target_accept < 0.99):
            raise ModelConfigurationError(f"target_accept must be in (0.5, 0.99). Got {self.target_accept}")
        if self.max_treedepth < 5:
            raise ModelConfigurationError(f"max_treedepth must be >= 5. Got {self.max_treedepth}")

    @property
    def n_warmup(self) -> int:
        return self.iterations // 2 if self.warmup is None else self.warmup

    @property
    def n_draws(self) -> int:
        return self.iterations - self.n_warmup

    @property
    def n_cores(self) -> int:
        cores = self.cores if self.cores is not None else (os.cpu_count() or 1)
        return max(1, min(cores, self.chains))

    def with_seed(self, random_seed: Optional[int]) -> "SamplerConfig":
        return replace(self, random_seed=random_seed)


class InferenceSummary:
    """Posterior draws and timing from one sampler run."""

    def __init__(
        self,
        idata,  # arviz.InferenceData
        n_draws: int,
        n_tune: int,
        n_chains: int,
        sampling_time: float,
        max_treedepth: int = 10,
    ) -> None:
        """
        Initialize inference summary.

        Parameters
        ----------
        idata : arviz.InferenceData
            Posterior, sample_stats and log_likelihood groups from PyMC
        n_draws : int
            Number of post-warm-up draws per chain
        n_tune : int
            Number of warm-up steps per chain
        n_chains : int
            Number of chains
        sampling_time : float
            Wall-clock sampling time (seconds)
        max_treedepth : int
            Tree depth limit the sampler ran with
        """
        self.idata = idata
        self.n_draws = n_draws
        self.n_tune = n_tune
        self.n_chains = n_chains
        self.sampling_time = sampling_time
        self.max_treedepth = max_treedepth
        self.total_samples = n_draws * n_chains

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"InferenceSummary(draws={self.n_draws}, tune={self.n_tune}, "
            f"chains={self.n_chains}, time={self.sampling_time:.1f}s)"
        )


class NUTSSampler:
    """
    NUTS sampler for churn models.

    Blocks until every chain has finished and returns a single combined
    InferenceSummary. Chains may run in parallel worker processes; that
    is internal to PyMC.
    """

    def sample(
        self,
        model: pm.Model,
        config: Optional[SamplerConfig] = None,
    ) -> InferenceSummary:
        """
        Run NUTS sampling on a PyMC model.

        Parameters
        ----------
        model : pm.Model
            PyMC model (from ModelBuilder.build())
        config : SamplerConfig, optional
            Chains, iterations, parallelism. Default SamplerConfig().

        Returns
        -------
        summary : InferenceSummary
            Posterior with log-likelihood, sampler stats, timing.
        """
        config = config or SamplerConfig()

        logger.info(
            f"Sampling {config.chains} chain(s) x {config.iterations} iterations "
            f"({config.n_warmup} warm-up) on {config.n_cores} core(s)"
        )

        start_time = time.perf_counter()

        with model:
            step = pm.NUTS(
                target_accept=config.target_accept,
                max_treedepth=config.max_treedepth,
            )
            idata = pm.sample(
                draws=config.n_draws,
                tune=config.n_warmup,
                chains=config.chains,
                cores=config.n_cores,
                step=step,
                random_seed=config.random_seed,
                progressbar=config.progressbar,
                discard_tuned_samples=True,
                return_inferencedata=True,
                idata_kwargs={"log_likelihood": True},
            )

        sampling_time = time.perf_counter() - start_time
        logger.info(f"Sampling finished in {sampling_time:.1f}s")

        return InferenceSummary(
            idata=idata,
            n_draws=config.n_draws,
            n_tune=config.n_warmup,
            n_chains=config.chains,
            sampling_time=sampling_time,
            max_treedepth=config.max_treedepth,
        )

    def __repr__(self) -> str:
        """String representation."""
        return "NUTSSampler()"

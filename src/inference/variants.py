"""
Model variants: named, immutable (predictors, prior, sampler settings) bundles.

Each fit gets its own variant object, so nothing (predictor count, prior
scale, seed) leaks from one fit into the next.
"""

from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from src.inference.model_builder import PriorSpec
from src.inference.sampler import SamplerConfig


@dataclass(frozen=True)
class ModelVariant:
    """
    One model configuration to fit.

    Attributes
    ----------
    name : str
        Label used in logs, reports and file names
    predictors : Tuple[str, ...]
        Ordered predictor subset
    prior : PriorSpec
        Coefficient priors
    sampler : SamplerConfig
        Chains, iterations, parallelism
    """

    name: str
    predictors: Tuple[str, ...]
    prior: PriorSpec
    sampler: SamplerConfig = SamplerConfig()

    def __post_init__(self) -> None:
        # accept any sequence, store a tuple
        object.__setattr__(self, "predictors", tuple(self.predictors))
        if not self.name:
            raise ValueError("Variant name must be non-empty")
        if not self.predictors:
            raise ValueError(f"Variant '{self.name}' has no predictors")
        if len(set(self.predictors)) != len(self.predictors):
            raise ValueError(f"Variant '{self.name}' repeats predictors: {list(self.predictors)}")

    @property
    def parameter_names(self) -> Tuple[str, ...]:
        return ("alpha",) + tuple(f"beta[{p}]" for p in self.predictors)

    def without(self, *columns: str, name: Optional[str] = None) -> "ModelVariant":
        """
        Same prior and sampler settings over fewer predictors.

        Raises
        ------
        ValueError
            If a column is not one of the variant's predictors.
        """
        unknown = [c for c in columns if c not in self.predictors]
        if unknown:
            raise ValueError(f"Variant '{self.name}' has no predictors {unknown}")
        kept = tuple(p for p in self.predictors if p not in columns)
        return replace(self, name=name or f"{self.name}_reduced", predictors=kept)

    def with_prior(self, prior: PriorSpec, name: Optional[str] = None) -> "ModelVariant":
        return replace(self, name=name or self.name, prior=prior)

    def with_seed(self, random_seed: Optional[int]) -> "ModelVariant":
        return replace(self, sampler=self.sampler.with_seed(random_seed))


def default_variants(
    predictors: Sequence[str],
    sampler: SamplerConfig,
    laplace_scale: float = 1.0,
    dropped: Sequence[str] = ("total_minutes", "total_intl_minutes"),
) -> Tuple[ModelVariant, ModelVariant, ModelVariant]:
    """
    The three variants fitted in order: base, lasso, simplified.

    - base: every predictor, flat priors
    - lasso: every predictor, Laplace(0, laplace_scale) priors
    - simplified: lasso without ``dropped``. The default drops the two usage
      predictors whose posterior sd exceeded their mean on the full data;
      see reporting.comparison.unreliable_predictors.
    """
    base = ModelVariant("base", tuple(predictors), PriorSpec("flat"), sampler)
    lasso = base.with_prior(PriorSpec("laplace", laplace_scale), name="lasso")
    simplified = lasso.without(*[c for c in dropped if c in lasso.predictors], name="simplified")
    return base, lasso, simplified

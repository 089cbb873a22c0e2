"""
Bayesian inference module for churn regression.

This module provides complete PyMC-based inference pipeline:
1. ModelBuilder: Bernoulli-logit model with flat or Laplace priors
2. NUTSSampler: NUTS sampling with timing
3. DiagnosticsComputer: R-hat, ESS, divergences, tree depth, PSIS-LOO
4. PosteriorPredictiveCheck: Churn-rate check

**Usage:**
```python
from src.inference.model_builder import ModelBuilder, PriorSpec
from src.inference.sampler import NUTSSampler, SamplerConfig
from src.inference.diagnostics import extract_diagnostics

# 1. Define and build model
mb = ModelBuilder(predictors=table.predictors, n_obs=table.n_obs,
                  prior_spec=PriorSpec("laplace", laplace_scale=1.0))
model = mb.build(table.matrix(), table.y)

# 2. Sample with NUTS
summary = NUTSSampler().sample(model, SamplerConfig(chains=4, iterations=2000))

# 3. Diagnostics
record = extract_diagnostics(summary, mb.parameter_names(), variant_name="lasso")
print(record.to_frame())
```

**Key Classes:**
- PriorSpec: Coefficient prior (flat or Laplace with scale λ)
- ModelBuilder: PyMC model assembly
- SamplerConfig / NUTSSampler: Sampling orchestration
- InferenceSummary: Posterior draws and timing
- DiagnosticsComputer / DiagnosticRecord: Per-parameter and model diagnostics
- ModelVariant: Immutable (predictors, prior, sampler) bundle
"""

from src.inference.model_builder import ModelBuilder, PriorSpec
from src.inference.sampler import NUTSSampler, SamplerConfig, InferenceSummary
from src.inference.diagnostics import (
    DiagnosticsComputer,
    DiagnosticRecord,
    ParameterDiagnostics,
    PosteriorPredictiveCheck,
    extract_diagnostics,
    parameter_draws,
)
from src.inference.variants import ModelVariant, default_variants
from src.inference.workflow import VariantResult, fit_variant, run_variants
from src.inference.prediction import predict_churn_probability

__all__ = [
    "ModelBuilder",
    "PriorSpec",
    "NUTSSampler",
    "SamplerConfig",
    "InferenceSummary",
    "DiagnosticsComputer",
    "DiagnosticRecord",
    "ParameterDiagnostics",
    "PosteriorPredictiveCheck",
    "extract_diagnostics",
    "parameter_draws",
    "ModelVariant",
    "default_variants",
    "VariantResult",
    "fit_variant",
    "run_variants",
    "predict_churn_probability",
]

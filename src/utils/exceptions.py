"""
Error types for the churn workflow.

Data and configuration errors stop the pipeline. Sampling-quality problems
(divergences, high R-hat, low ESS) are not exceptions: they are recorded in
the diagnostic record of the variant.
"""


class ChurnModelError(Exception):
    """Base class for all errors raised by this package."""


class DataValidationError(ChurnModelError, ValueError):
    """Missing, malformed or zero-variance columns in the input table."""


class ModelConfigurationError(ChurnModelError, ValueError):
    """Predictor count or data shapes do not match the model definition."""


class VariantFitError(ChurnModelError, RuntimeError):
    """Sampling a model variant failed; carries the variant name."""

    def __init__(self, variant_name: str, cause: BaseException) -> None:
        self.variant_name = variant_name
        self.cause = cause
        super().__init__(
            f"Model variant '{variant_name}' failed: {type(cause).__name__}: {cause}"
        )


class ParameterNotFoundError(ChurnModelError, KeyError):
    """A requested parameter name is not present in the posterior draws."""

    def __init__(self, name: str, available=None) -> None:
        self.name = name
        self.available = list(available) if available is not None else []
        super().__init__(name)

    def __str__(self) -> str:
        msg = f"Parameter '{self.name}' not found in posterior draws"
        if self.available:
            msg += f". Available: {', '.join(self.available)}"
        return msg


class ConvergenceStatisticError(ChurnModelError, ValueError):
    """R-hat estimator returned a value outside its valid range."""

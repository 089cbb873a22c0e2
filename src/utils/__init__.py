"""Configuration, logging and error types shared across the package."""

from src.utils.config import Settings, settings
from src.utils.logger import setup_logger
from src.utils.exceptions import (
    ChurnModelError,
    DataValidationError,
    ModelConfigurationError,
    VariantFitError,
    ParameterNotFoundError,
    ConvergenceStatisticError,
)

__all__ = [
    "Settings",
    "settings",
    "setup_logger",
    "ChurnModelError",
    "DataValidationError",
    "ModelConfigurationError",
    "VariantFitError",
    "ParameterNotFoundError",
    "ConvergenceStatisticError",
]

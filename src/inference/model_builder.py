"""
Bayesian model builder: PyMC Bernoulli-logit regression for churn.

This module assembles the churn model for one predictor subset:
- Intercept with a flat (improper) prior
- One coefficient per predictor, flat or Laplace (LASSO) prior
- Bernoulli likelihood on the logit scale

Mathematical model:
    α ~ Flat                                   # Intercept
    β_j ~ Flat              (base)             # Coefficients
    β_j ~ Laplace(0, λ)     (LASSO)
    churn_i ~ Bernoulli(logit⁻¹(α + x_i · β))

The observed node is named "churn"; sampling with log_likelihood enabled
stores its pointwise log-likelihood (one value per customer and draw), which
is the input to PSIS-LOO.
"""

from typing import List, Optional, Sequence
import numpy as np
from numpy.typing import NDArray
import pymc as pm

from src.utils.exceptions import ModelConfigurationError

PRIOR_KINDS = ("flat", "laplace")


class PriorSpec:
    """Specification of coefficient priors."""

    def __init__(
        self,
        kind: str = "flat",
        laplace_scale: float = 1.0,
    ) -> None:
        """
        Initialize prior specification.

        Parameters
        ----------
        kind : str
            "flat" for improper uniform priors on every coefficient, or
            "laplace" for independent Laplace(0, laplace_scale) priors.
            The intercept is flat in both cases.
        laplace_scale : float
            Laplace scale λ. Smaller values shrink harder. Default 1.0.
            Ignored for flat priors.
        """
        if kind not in PRIOR_KINDS:
            raise ModelConfigurationError(f"kind must be one of {PRIOR_KINDS}. Got {kind!r}")
        if laplace_scale <= 0:
            raise ModelConfigurationError(f"laplace_scale must be positive. Got {laplace_scale}")

        self.kind = kind
        self.laplace_scale = float(laplace_scale)

    @property
    def is_lasso(self) -> bool:
        return self.kind == "laplace"

    def __eq__(self, other) -> bool:
        if not isinstance(other, PriorSpec):
            return NotImplemented
        return (self.kind, self.laplace_scale) == (other.kind, other.laplace_scale)

    def __hash__(self) -> int:
        return hash((self.kind, self.laplace_scale))

    def __repr__(self) -> str:
        """String representation."""
        if self.is_lasso:
            return f"PriorSpec(kind='laplace', λ={self.laplace_scale})"
        return "PriorSpec(kind='flat')"


class ModelBuilder:
    """
    Bayesian logistic regression model builder.

    The same builder serves every variant; a reduced predictor set is just a
    shorter ``predictors`` sequence.

    Attributes
    ----------
    predictors : Tuple[str, ...]
        Predictor names, in design-matrix column order
    n_obs : int
        Number of observations (customers)
    prior_spec : PriorSpec
        Prior specification
    model : pm.Model or None
        PyMC model (None until built)
    """

    def __init__(
        self,
        predictors: Sequence[str],
        n_obs: int,
        prior_spec: Optional[PriorSpec] = None,
    ) -> None:
        """
        Initialize model builder.

        Parameters
        ----------
        predictors : Sequence[str]
            Predictor names (K = len(predictors)).
        n_obs : int
            Number of observations.
        prior_spec : PriorSpec, optional
            Prior specification. If None, flat priors.
        """
        predictors = tuple(predictors)
        if len(predictors) == 0 or n_obs <= 0:
            raise ModelConfigurationError(
                f"Need at least one predictor and one observation. Got "
                f"n_predictors={len(predictors)}, n_obs={n_obs}"
            )
        if len(set(predictors)) != len(predictors):
            raise ModelConfigurationError(f"Predictor names must be unique. Got {list(predictors)}")

        self.predictors = predictors
        self.n_obs = n_obs
        self.prior_spec = prior_spec or PriorSpec()
        self.model: Optional[pm.Model] = None

    @property
    def n_predictors(self) -> int:
        return len(self.predictors)

    def parameter_names(self) -> List[str]:
        """
        Names of the sampled parameters: "alpha" then "beta[<predictor>]".
        """
        return ["alpha"] + [f"beta[{p}]" for p in self.predictors]

    def _build_coefficients(self):
        """
        Build intercept and coefficient priors.

        Returns
        -------
        alpha : pm.TensorVariable
            Intercept, scalar
        beta : pm.TensorVariable
            Coefficients, shape (n_predictors,), dim "predictor"
        """
        alpha = pm.Flat("alpha")

        if self.prior_spec.is_lasso:
            beta = pm.Laplace(
                "beta",
                mu=0.0,
                b=self.prior_spec.laplace_scale,
                dims="predictor",
            )
        else:
            beta = pm.Flat("beta", dims="predictor")

        return alpha, beta

    def _validate(self, X: NDArray[np.float64], y: NDArray[np.int64]) -> None:
        if X.ndim != 2 or X.shape != (self.n_obs, self.n_predictors):
            raise ModelConfigurationError(
                f"X must have shape ({self.n_obs}, {self.n_predictors}) for predictors "
                f"{list(self.predictors)}. Got {X.shape}"
            )
        if y.shape != (self.n_obs,):
            raise ModelConfigurationError(
                f"y must have shape ({self.n_obs},). Got {y.shape}"
            )
        if not np.all((y == 0) | (y == 1)):
            raise ModelConfigurationError("y must contain only 0/1 outcomes")
        if not np.all(np.isfinite(X)):
            raise ModelConfigurationError("X contains non-finite values")

    def build(
        self,
        X: NDArray[np.float64],
        y: NDArray[np.int64],
        include_probability: bool = False,
    ) -> pm.Model:
        """
        Build the full PyMC model.

        Parameters
        ----------
        X : NDArray[np.float64]
            Standardized predictors, shape (n_obs, n_predictors).
        y : NDArray[np.int64]
            Churn outcome (0/1), shape (n_obs,).
        include_probability : bool
            Also track per-customer churn probability as a deterministic.
            Default False (it multiplies the stored draws by n_obs).

        Returns
        -------
        model : pm.Model
            PyMC model ready for inference.

        Raises
        ------
        ModelConfigurationError
            If X or y do not match (n_obs, n_predictors).
        """
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y)
        self._validate(X, y)

        coords = {
            "predictor": list(self.predictors),
            "obs_id": np.arange(self.n_obs),
        }

        with pm.Model(coords=coords) as model:
            X_data = pm.Data("X", X, dims=("obs_id", "predictor"))
            alpha, beta = self._build_coefficients()

            logit_p = alpha + pm.math.dot(X_data, beta)
            if include_probability:
                pm.Deterministic("churn_probability", pm.math.invlogit(logit_p), dims="obs_id")

            pm.Bernoulli("churn", logit_p=logit_p, observed=y.astype(np.int64), dims="obs_id")

        self.model = model
        return model

    def get_model(self) -> pm.Model:
        """
        Get the built model.

        Raises
        ------
        RuntimeError
            If model has not been built yet.
        """
        if self.model is None:
            raise RuntimeError("Model has not been built. Call .build() first.")
        return self.model

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ModelBuilder(predictors={list(self.predictors)}, n_obs={self.n_obs}, "
            f"prior_spec={self.prior_spec})"
        )

"""
Bayesian logistic regression for telecom customer churn.

Subpackages:
- data: raw table loading, aggregate features, standardization
- simulation: synthetic churn datasets with known coefficients
- inference: PyMC model variants, NUTS sampling, diagnostics
- reporting: cross-variant comparison tables
- visualization: posterior plots
"""

__version__ = "0.1.0"

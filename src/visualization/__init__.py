"""Posterior plots (trace, histogram, autocorrelation, pairs, correlation heatmap)."""

from src.visualization.plots import (
    plot_trace,
    plot_histograms,
    plot_autocorr,
    plot_pairs,
    plot_correlation_heatmap,
    plot_loo_comparison,
    plot_all,
    coefficient_correlation,
)

__all__ = [
    "plot_trace",
    "plot_histograms",
    "plot_autocorr",
    "plot_pairs",
    "plot_correlation_heatmap",
    "plot_loo_comparison",
    "plot_all",
    "coefficient_correlation",
]

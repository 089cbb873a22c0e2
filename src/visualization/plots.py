"""
Posterior plots for a fitted churn variant.

Presentation only: every function reads draws or diagnostic tables and
writes one figure to ``outdir``, returning its path. Histograms use the raw
pooled draws (no kernel smoothing).
"""

import os
from typing import List, Optional, Sequence, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns
import arviz as az

from src.inference.diagnostics import parameter_draws
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


def _save(fig, outdir: str, filename: str) -> str:
    os.makedirs(outdir, exist_ok=True)
    outpath = os.path.join(outdir, filename)
    fig.tight_layout()
    fig.savefig(outpath)
    plt.close(fig)
    logger.info(f"Plot saved to {outpath}")
    return outpath


def _draws_by_name(idata, names: Sequence[str]) -> dict:
    """{name: (chain, draw) array} for scalar parameter names."""
    return {name: parameter_draws(idata, name) for name in names}


def _default_names(idata) -> List[str]:
    names = ["alpha"]
    if "beta" in idata.posterior:
        names += [f"beta[{p}]" for p in idata.posterior["beta"]["predictor"].values]
    return names


def plot_trace(idata, outdir: str, stem: str, names: Optional[Sequence[str]] = None,
               fmt: str = "png") -> str:
    """
    Trace plot (value vs. iteration, one line per chain) with marginal density.

    Saves ``{stem}_trace.{fmt}``.
    """
    names = list(names) if names is not None else _default_names(idata)
    data = _draws_by_name(idata, names)
    axes = az.plot_trace(az.from_dict(posterior=data), compact=False,
                         figsize=(10, 1.8 * len(data)))
    fig = np.asarray(axes).ravel()[0].get_figure()
    return _save(fig, outdir, f"{stem}_trace.{fmt}")


def plot_histograms(idata, outdir: str, stem: str, names: Optional[Sequence[str]] = None,
                    bins: int = 40, fmt: str = "png") -> str:
    """
    Histogram of pooled draws per parameter, posterior mean marked.

    Saves ``{stem}_hist.{fmt}``.
    """
    names = list(names) if names is not None else _default_names(idata)
    if not names:
        raise ValueError("No parameters to plot")
    data = _draws_by_name(idata, names)

    ncols = min(3, len(data))
    nrows = int(np.ceil(len(data) / ncols))
    fig, axes = plt.subplots(nrows, ncols, figsize=(4 * ncols, 3 * nrows), squeeze=False)
    for ax, (name, draws) in zip(axes.ravel(), data.items()):
        flat = draws.reshape(-1)
        ax.hist(flat, bins=bins, color="steelblue", alpha=0.8)
        ax.axvline(flat.mean(), color="black", linestyle="--", linewidth=1)
        ax.set_title(name, fontsize=9)
    for ax in axes.ravel()[len(data):]:
        ax.set_visible(False)
    return _save(fig, outdir, f"{stem}_hist.{fmt}")


def plot_autocorr(idata, outdir: str, stem: str, names: Optional[Sequence[str]] = None,
                  max_lag: int = 50, fmt: str = "png") -> str:
    """
    Autocorrelation vs. lag, chains combined.

    Saves ``{stem}_autocorr.{fmt}``.
    """
    names = list(names) if names is not None else _default_names(idata)
    data = _draws_by_name(idata, names)
    axes = az.plot_autocorr(az.from_dict(posterior=data), max_lag=max_lag,
                            combined=True, figsize=(10, 1.5 * len(data)))
    fig = np.asarray(axes).ravel()[0].get_figure()
    return _save(fig, outdir, f"{stem}_autocorr.{fmt}")


def plot_pairs(idata, outdir: str, stem: str, pairs: Sequence[Tuple[str, str]],
               fmt: str = "png") -> str:
    """
    Joint scatter of flagged parameter pairs, divergent draws in red.

    Saves ``{stem}_pairs.{fmt}``.
    """
    if not pairs:
        raise ValueError("pairs must name at least one (parameter, parameter) pair")

    diverging = None
    if "sample_stats" in idata.groups() and "diverging" in idata.sample_stats:
        diverging = idata.sample_stats["diverging"].values.reshape(-1).astype(bool)

    fig, axes = plt.subplots(1, len(pairs), figsize=(4.5 * len(pairs), 4), squeeze=False)
    for ax, (x_name, y_name) in zip(axes.ravel(), pairs):
        x = parameter_draws(idata, x_name).reshape(-1)
        y = parameter_draws(idata, y_name).reshape(-1)
        ax.scatter(x, y, s=6, alpha=0.4, color="steelblue")
        if diverging is not None and diverging.any():
            ax.scatter(x[diverging], y[diverging], s=12, color="red", label="divergent")
            ax.legend(loc="best", fontsize=8)
        ax.set_xlabel(x_name)
        ax.set_ylabel(y_name)
    return _save(fig, outdir, f"{stem}_pairs.{fmt}")


def coefficient_correlation(idata) -> pd.DataFrame:
    """Correlation matrix of the pooled beta draws, labelled by predictor."""
    beta = idata.posterior["beta"]
    labels = [str(p) for p in beta["predictor"].values]
    flat = beta.values.reshape(-1, len(labels))
    return pd.DataFrame(np.corrcoef(flat, rowvar=False), index=labels, columns=labels)


def plot_correlation_heatmap(idata, outdir: str, stem: str, fmt: str = "png") -> str:
    """
    Heatmap of posterior correlations between coefficients.

    Saves ``{stem}_beta_corr.{fmt}``.
    """
    corr = coefficient_correlation(idata)
    size = max(5, 0.8 * len(corr))
    fig, ax = plt.subplots(figsize=(size, size * 0.85))
    sns.heatmap(corr, annot=True, fmt=".2f", cmap="coolwarm", vmin=-1, vmax=1,
                square=True, ax=ax)
    ax.set_title("Posterior correlation of coefficients")
    return _save(fig, outdir, f"{stem}_beta_corr.{fmt}")


def plot_loo_comparison(comparison: pd.DataFrame, outdir: str, stem: str = "comparison",
                        fmt: str = "png") -> str:
    """
    elpd_loo ± se per variant, in fit order.

    Saves ``{stem}_loo.{fmt}``.
    """
    if comparison.empty:
        raise ValueError("comparison table is empty")

    fig, ax = plt.subplots(figsize=(6, 1 + 0.6 * len(comparison)))
    y = np.arange(len(comparison))
    ax.errorbar(comparison["elpd_loo"], y, xerr=comparison["elpd_loo_se"],
                fmt="o", color="black", capsize=3)
    ax.set_yticks(y)
    ax.set_yticklabels(comparison["variant"])
    ax.invert_yaxis()
    ax.set_xlabel("elpd_loo")
    ax.grid(alpha=0.2, axis="x")
    return _save(fig, outdir, f"{stem}_loo.{fmt}")


def plot_all(idata, outdir: str, stem: str, pairs: Optional[Sequence[Tuple[str, str]]] = None,
             fmt: str = "png") -> List[str]:
    """Trace, histogram, autocorrelation, heatmap (and pairs if given)."""
    paths = [
        plot_trace(idata, outdir, stem, fmt=fmt),
        plot_histograms(idata, outdir, stem, fmt=fmt),
        plot_autocorr(idata, outdir, stem, fmt=fmt),
        plot_correlation_heatmap(idata, outdir, stem, fmt=fmt),
    ]
    if pairs:
        paths.append(plot_pairs(idata, outdir, stem, pairs, fmt=fmt))
    return paths

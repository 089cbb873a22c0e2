"""
End-to-end churn analysis.

    load → transform → for each variant (base, lasso, simplified):
        define → fit → diagnose → compare
    → plots of the final variant

Writes per-variant diagnostics CSVs, comparison.csv and figures to the
output directory, and prints the tables to stdout.
"""

import argparse
import os
import sys
from itertools import combinations
from typing import List, Optional

from src.data.loader import SELECTED_PREDICTORS, load_raw_dataset, transform
from src.inference.diagnostics import PosteriorPredictiveCheck
from src.inference.sampler import SamplerConfig
from src.inference.variants import default_variants
from src.inference.workflow import VariantResult, run_variants
from src.reporting.comparison import ComparisonTable, format_record, format_table, unreliable_predictors
from src.utils.config import Settings, settings as default_settings
from src.utils.exceptions import ChurnModelError
from src.utils.logger import set_level, setup_logger
from src.visualization import plots

logger = setup_logger(__name__)

# |posterior correlation| above this marks a coefficient pair for the pair plot
PAIR_CORRELATION_THRESHOLD = 0.5


def _flagged_pairs(idata, threshold: float = PAIR_CORRELATION_THRESHOLD):
    corr = plots.coefficient_correlation(idata)
    return [
        (f"beta[{a}]", f"beta[{b}]")
        for a, b in combinations(corr.columns, 2)
        if abs(corr.loc[a, b]) > threshold
    ]


def run_pipeline(config: Settings, show: bool = True):
    """
    Run the full analysis.

    Parameters
    ----------
    config : Settings
        Paths, sampler and prior settings.
    show : bool
        Print tables to stdout. Default True.

    Returns
    -------
    results : List[VariantResult]
        One per variant, in fit order.
    comparison : ComparisonTable
        One row per variant, in fit order.
    """
    table = transform(load_raw_dataset(config.RAW_DATA_PATH), SELECTED_PREDICTORS)

    sampler = SamplerConfig(
        chains=config.CHAINS,
        iterations=config.ITERATIONS,
        warmup=config.WARMUP,
        cores=config.CORES,
        target_accept=config.TARGET_ACCEPT,
        max_treedepth=config.MAX_TREEDEPTH,
        random_seed=config.RANDOM_SEED,
    )
    variants = default_variants(table.predictors, sampler, laplace_scale=config.LAPLACE_SCALE)

    comparison = ComparisonTable()
    results: List[VariantResult] = run_variants(variants, table, comparison=comparison)

    os.makedirs(config.OUTPUT_DIR, exist_ok=True)
    for result in results:
        record = result.record
        record.to_frame().to_csv(
            os.path.join(config.OUTPUT_DIR, f"{record.variant_name}_diagnostics.csv"),
            float_format="%.4f",
        )
        flagged = unreliable_predictors(record)
        if flagged:
            logger.info(f"[{record.variant_name}] posterior sd exceeds |mean| for: {flagged}")
        if show:
            print(format_record(record))
            print()

    comparison.to_csv(os.path.join(config.OUTPUT_DIR, "comparison.csv"))
    if show:
        print(format_table(comparison))

    final = results[-1]
    ppc = PosteriorPredictiveCheck.churn_rate_pvalue(
        final.summary.idata, final.table.matrix(), final.table.y, random_seed=config.RANDOM_SEED,
    )
    logger.info(
        f"[{final.variant.name}] observed churn rate {ppc['observed_rate']:.3f}, "
        f"replicated {ppc['replicated_mean']:.3f} (p={ppc['pvalue']:.2f})"
    )

    idata = final.summary.idata
    plots.plot_all(
        idata,
        config.OUTPUT_DIR,
        final.variant.name,
        pairs=_flagged_pairs(idata),
        fmt=config.PLOT_FORMAT,
    )
    plots.plot_loo_comparison(comparison.to_frame(), config.OUTPUT_DIR, fmt=config.PLOT_FORMAT)

    return results, comparison


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bayesian logistic regression for telecom churn")
    parser.add_argument("--data", help="raw churn CSV (default: settings RAW_DATA_PATH)")
    parser.add_argument("--output-dir", help="directory for tables and figures")
    parser.add_argument("--chains", type=int)
    parser.add_argument("--iterations", type=int, help="iterations per chain, warm-up included")
    parser.add_argument("--warmup", type=int)
    parser.add_argument("--cores", type=int)
    parser.add_argument("--laplace-scale", type=float, help="Laplace prior scale for LASSO variants")
    parser.add_argument("--seed", type=int)
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def settings_from_args(args: argparse.Namespace, base: Settings = default_settings) -> Settings:
    """Copy of ``base`` with every flag that was given applied on top."""
    overrides = {
        "RAW_DATA_PATH": args.data,
        "OUTPUT_DIR": args.output_dir,
        "CHAINS": args.chains,
        "ITERATIONS": args.iterations,
        "WARMUP": args.warmup,
        "CORES": args.cores,
        "LAPLACE_SCALE": args.laplace_scale,
        "RANDOM_SEED": args.seed,
        "LOG_LEVEL": args.log_level,
    }
    return base.model_copy(update={k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[List[str]] = None) -> int:
    config = settings_from_args(parse_args(argv))
    set_level(config.LOG_LEVEL)

    try:
        run_pipeline(config)
    except ChurnModelError as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

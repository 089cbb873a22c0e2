"""
Fit → diagnose loop over model variants.

Variants run one after another; each is fully sampled and diagnosed before
the next starts, and each owns its own InferenceData.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

from src.data.loader import ObservationTable
from src.inference.diagnostics import DiagnosticRecord, extract_diagnostics
from src.inference.model_builder import ModelBuilder
from src.inference.sampler import InferenceSummary, NUTSSampler
from src.inference.variants import ModelVariant
from src.utils.exceptions import ModelConfigurationError, VariantFitError
from src.utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass(frozen=True)
class VariantResult:
    """Everything produced for one variant."""

    variant: ModelVariant
    table: ObservationTable
    summary: InferenceSummary
    record: DiagnosticRecord


def fit_variant(
    variant: ModelVariant,
    table: ObservationTable,
    sampler: Optional[NUTSSampler] = None,
) -> VariantResult:
    """
    Build, sample and diagnose one variant.

    Parameters
    ----------
    variant : ModelVariant
        Variant to fit; its predictors must be a subset of the table's.
    table : ObservationTable
        Prepared observations. Not modified.
    sampler : NUTSSampler, optional
        Sampler to use. Default NUTSSampler().

    Raises
    ------
    ModelConfigurationError
        If the variant's predictors do not match the data.
    VariantFitError
        If sampling or diagnostics fail; the message names the variant.
    """
    sampler = sampler or NUTSSampler()
    logger.info(f"Fitting variant '{variant.name}' ({len(variant.predictors)} predictors, {variant.prior})")

    missing = [p for p in variant.predictors if p not in table.predictors]
    if missing:
        raise ModelConfigurationError(
            f"Variant '{variant.name}' needs predictors absent from the data: {missing}"
        )
    data = table.select(variant.predictors)

    builder = ModelBuilder(variant.predictors, n_obs=data.n_obs, prior_spec=variant.prior)
    model = builder.build(data.matrix(), data.y)

    try:
        summary = sampler.sample(model, variant.sampler)
    except Exception as e:
        logger.error(f"Sampling failed for variant '{variant.name}': {e}")
        raise VariantFitError(variant.name, e) from e

    try:
        record = extract_diagnostics(summary, builder.parameter_names(), variant_name=variant.name)
    except Exception as e:
        logger.error(f"Diagnostics failed for variant '{variant.name}': {e}")
        raise VariantFitError(variant.name, e) from e

    logger.info(
        f"Variant '{variant.name}': elpd_loo={record.elpd_loo:.1f}, "
        f"divergences={record.n_divergences}, time={record.sampling_time:.1f}s"
    )
    return VariantResult(variant=variant, table=data, summary=summary, record=record)


def run_variants(
    variants: Sequence[ModelVariant],
    table: ObservationTable,
    comparison=None,
    sampler: Optional[NUTSSampler] = None,
) -> List[VariantResult]:
    """
    Fit variants in order, appending each record to ``comparison`` if given.

    Parameters
    ----------
    variants : Sequence[ModelVariant]
        Variants, processed in this order.
    table : ObservationTable
        Prepared observations shared read-only by all variants.
    comparison : ComparisonTable, optional
        Table receiving one row per finished variant.
    sampler : NUTSSampler, optional
        Sampler to use for every variant.
    """
    names = [v.name for v in variants]
    if len(set(names)) != len(names):
        raise ValueError(f"Variant names must be unique. Got {names}")

    results = []
    for variant in variants:
        result = fit_variant(variant, table, sampler=sampler)
        if comparison is not None:
            comparison.append_record(result.record)
        results.append(result)
    return results

"""
Tests for NUTS sampling and the variant fit loop.

Progressive sizing:
- Small: summary objects and error wrapping (instant, no sampling)
- Large (slow): real sampling on simulated churn data
- Statistical (slow): LASSO shrinkage over repeated synthetic datasets
"""

import arviz as az
import numpy as np
import pytest

from src.data.loader import SELECTED_PREDICTORS, transform
from src.inference.model_builder import ModelBuilder, PriorSpec
from src.inference.sampler import InferenceSummary, NUTSSampler, SamplerConfig
from src.inference.variants import ModelVariant
from src.inference.workflow import fit_variant, run_variants
from src.reporting.comparison import ComparisonTable
from src.simulation.simulator import ChurnDataSimulator
from src.utils.exceptions import ModelConfigurationError, VariantFitError


class _FailingSampler(NUTSSampler):
    def sample(self, model, config=None):
        raise RuntimeError("mass matrix contains zeros")


class _ShortRunSampler(NUTSSampler):
    """Returns one chain of three draws without sampling."""

    def sample(self, model, config=None):
        rng = np.random.default_rng(0)
        predictors = list(model.coords["predictor"])
        idata = az.from_dict(
            posterior={
                "alpha": rng.normal(size=(1, 3)),
                "beta": rng.normal(size=(1, 3, len(predictors))),
            },
            coords={"predictor": predictors},
            dims={"beta": ["predictor"]},
        )
        return InferenceSummary(idata=idata, n_draws=3, n_tune=0, n_chains=1, sampling_time=0.1)


def _table(n_customers=200, seed=0):
    return transform(ChurnDataSimulator(n_customers=n_customers).generate_raw(random_seed=seed))


# ============================================================================
# SMALL TESTS: no sampling
# ============================================================================

def test_small_inference_summary():
    summary = InferenceSummary(idata=None, n_draws=500, n_tune=500, n_chains=4, sampling_time=3.21)
    assert summary.total_samples == 2000
    assert "draws=500" in repr(summary)
    assert "time=3.2s" in repr(summary)


def test_small_sampler_error_names_variant():
    variant = ModelVariant("lasso", SELECTED_PREDICTORS, PriorSpec("laplace", 1.0),
                           SamplerConfig(chains=1, iterations=20))
    with pytest.raises(VariantFitError) as excinfo:
        fit_variant(variant, _table(), sampler=_FailingSampler())
    assert excinfo.value.variant_name == "lasso"
    assert "lasso" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_small_diagnostics_error_names_variant():
    variant = ModelVariant("lasso", SELECTED_PREDICTORS, PriorSpec("laplace", 1.0))
    with pytest.raises(VariantFitError) as excinfo:
        fit_variant(variant, _table(), sampler=_ShortRunSampler())
    assert excinfo.value.variant_name == "lasso"
    assert "lasso" in str(excinfo.value)
    assert "R-hat" in str(excinfo.value)


def test_small_unknown_predictor_is_configuration_error():
    variant = ModelVariant("bad", ("total_charge", "tenure"), PriorSpec())
    with pytest.raises(ModelConfigurationError, match="tenure"):
        fit_variant(variant, _table(), sampler=_FailingSampler())


def test_small_run_variants_rejects_duplicate_names():
    v = ModelVariant("base", SELECTED_PREDICTORS, PriorSpec())
    with pytest.raises(ValueError):
        run_variants([v, v], _table(), sampler=_FailingSampler())


def test_small_failure_stops_later_variants():
    first = ModelVariant("base", SELECTED_PREDICTORS, PriorSpec())
    second = first.with_prior(PriorSpec("laplace", 1.0), name="lasso")
    comparison = ComparisonTable()
    with pytest.raises(VariantFitError, match="base"):
        run_variants([first, second], _table(), comparison=comparison, sampler=_FailingSampler())
    assert len(comparison) == 0


# ============================================================================
# LARGE TESTS: real sampling
# ============================================================================

@pytest.mark.slow
def test_large_sample_records_draws_and_time():
    table = _table(n_customers=300, seed=1)
    mb = ModelBuilder(table.predictors, table.n_obs, PriorSpec("laplace", 1.0))
    model = mb.build(table.matrix(), table.y)

    config = SamplerConfig(chains=2, iterations=600, cores=1, random_seed=5, progressbar=False)
    summary = NUTSSampler().sample(model, config)

    assert summary.n_chains == 2
    assert summary.n_draws == 300
    assert summary.sampling_time > 0
    idata = summary.idata
    assert idata.posterior.sizes["chain"] == 2
    assert idata.posterior.sizes["draw"] == 300
    assert idata.posterior["beta"].shape == (2, 300, len(SELECTED_PREDICTORS))
    assert idata.log_likelihood["churn"].shape == (2, 300, 300)
    assert "diverging" in idata.sample_stats


@pytest.mark.slow
def test_large_fit_variants_are_independent():
    table = _table(n_customers=300, seed=2)
    config = SamplerConfig(chains=2, iterations=500, cores=1, random_seed=3, progressbar=False)
    full = ModelVariant("lasso", SELECTED_PREDICTORS, PriorSpec("laplace", 1.0), config)
    reduced = full.without("total_minutes", "total_intl_minutes", name="simplified")

    comparison = ComparisonTable()
    results = run_variants([full, reduced], table, comparison=comparison)

    assert [row.variant for row in comparison.rows] == ["lasso", "simplified"]
    assert results[0].summary.idata is not results[1].summary.idata
    assert results[0].summary.idata.posterior["beta"].shape[-1] == 8
    assert results[1].summary.idata.posterior["beta"].shape[-1] == 6
    assert results[1].record.parameter_names == list(reduced.parameter_names)
    assert table.n_predictors == 8


@pytest.mark.slow
def test_large_recovers_strong_effect_sign():
    table = _table(n_customers=800, seed=4)
    config = SamplerConfig(chains=2, iterations=600, cores=1, random_seed=9, progressbar=False)
    variant = ModelVariant("lasso", SELECTED_PREDICTORS, PriorSpec("laplace", 1.0), config)
    record = fit_variant(variant, table).record
    assert record["beta[customer_service_calls]"].mean > 0
    assert record["beta[international_plan]"].mean > 0


# ============================================================================
# STATISTICAL TESTS: shrinkage over repeated synthetic runs
# ============================================================================

@pytest.mark.slow
def test_statistical_lasso_shrinks_weak_predictors():
    sim = ChurnDataSimulator(n_customers=400)
    study = sim.shrinkage_study(
        n_runs=4,
        weak_predictors=["total_calls", "total_intl_calls", "total_intl_minutes"],
        laplace_scale=0.05,
        chains=2,
        iterations=600,
        random_seed=100,
    )
    assert len(study) == 4
    assert study["lasso_abs_beta"].mean() < study["base_abs_beta"].mean()
    assert (study["lasso_abs_beta"] <= study["base_abs_beta"]).mean() >= 0.75

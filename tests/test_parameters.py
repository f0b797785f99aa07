"""
Tests for input distributions: sampling, CDFs, parsing and YAML loading.
"""

import numpy as np
import pytest
import yaml
from scipy import stats

from brownham_mc.errors import ConfigurationError, InvalidInputError
from brownham_mc.models import Constant, Gaussian, Mixture, Uniform
from brownham_mc.parameters import (
    default_sources,
    distribution_from_dict,
    load_params_file,
    parse_distribution,
    reference_sources,
    sample,
    sample_array,
    sample_inputs,
    sources_to_yaml_dict,
    validate_sources,
)

RS_MIXTURE = Mixture(Gaussian(1e-8, 2e-9), Gaussian(3e-8, 2e-9), 0.5)


def mixture_cdf(dist, x):
    """Weighted blend of the two component CDFs (Gaussian components)."""
    return (dist.weight * stats.norm.cdf(x, dist.first.mean, dist.first.sigma)
            + (1.0 - dist.weight) * stats.norm.cdf(x, dist.second.mean, dist.second.sigma))


# =============================================================================
# SCALAR SAMPLING
# =============================================================================

def test_constant_always_returns_value():
    rng = np.random.default_rng(1)
    assert all(sample(Constant(2.54e-10), rng) == 2.54e-10 for _ in range(100))


def test_uniform_draws_in_half_open_range():
    """100,000 uniform draws stay in [lo, hi) and average to the midpoint."""
    rng = np.random.default_rng(42)
    lo, hi = 0.15, 0.25
    draws = np.array([sample(Uniform(lo, hi), rng) for _ in range(100_000)])
    assert np.all(draws >= lo)
    assert np.all(draws < hi)
    assert draws.mean() == pytest.approx((lo + hi) / 2, abs=0.005 * (hi - lo))


def test_gaussian_moments():
    rng = np.random.default_rng(7)
    draws = np.array([sample(Gaussian(3e-8, 2e-9), rng) for _ in range(20_000)])
    assert draws.mean() == pytest.approx(3e-8, rel=0.01)
    assert draws.std() == pytest.approx(2e-9, rel=0.05)


def test_gaussian_zero_sigma_is_degenerate():
    rng = np.random.default_rng(3)
    assert sample(Gaussian(5.0, 0.0), rng) == 5.0


def test_mixture_matches_blend_cdf():
    """Equal-weight mixture draws pass a KS test against the blended CDF."""
    rng = np.random.default_rng(2024)
    draws = np.array([sample(RS_MIXTURE, rng) for _ in range(20_000)])
    result = stats.kstest(draws, lambda x: mixture_cdf(RS_MIXTURE, x))
    assert result.pvalue > 1e-3


def test_mixture_is_bimodal():
    """About half of the draws come from each component."""
    rng = np.random.default_rng(11)
    draws = np.array([sample(RS_MIXTURE, rng) for _ in range(20_000)])
    assert np.mean(draws < 2e-8) == pytest.approx(0.5, abs=0.02)


def test_mixture_extreme_weights():
    rng = np.random.default_rng(5)
    first_only = Mixture(Constant(1.0), Constant(2.0), 1.0)
    second_only = Mixture(Constant(1.0), Constant(2.0), 0.0)
    assert {sample(first_only, rng) for _ in range(200)} == {1.0}
    assert {sample(second_only, rng) for _ in range(200)} == {2.0}


def test_sample_inputs_covers_all_parameters():
    rng = np.random.default_rng(0)
    inputs = sample_inputs(default_sources(), rng)
    assert set(inputs) == {"gamma", "phi", "Rs", "G", "b", "M"}
    assert inputs["b"] == 2.54e-10
    assert 0.15 <= inputs["gamma"] < 0.25


# =============================================================================
# ARRAY SAMPLING
# =============================================================================

def test_sample_array_shapes_and_ranges():
    rng = np.random.default_rng(8)
    assert np.all(sample_array(Constant(3.0), rng, 10) == 3.0)
    uni = sample_array(Uniform(6e10, 8e10), rng, 10_000)
    assert uni.shape == (10_000,)
    assert uni.min() >= 6e10 and uni.max() < 8e10


def test_sample_array_mixture_matches_blend_cdf():
    rng = np.random.default_rng(99)
    draws = sample_array(RS_MIXTURE, rng, 20_000)
    assert stats.kstest(draws, lambda x: mixture_cdf(RS_MIXTURE, x)).pvalue > 1e-3


# =============================================================================
# VALIDATION
# =============================================================================

@pytest.mark.parametrize("build", [
    lambda: Uniform(2.0, 1.0),
    lambda: Gaussian(0.0, -1.0),
    lambda: Mixture(Constant(1.0), Constant(2.0), 1.5),
    lambda: Mixture(Constant(1.0), Constant(2.0), -0.1),
    lambda: Constant(float("nan")),
    lambda: Uniform(0.0, float("inf")),
])
def test_invalid_distributions_rejected(build):
    with pytest.raises(ConfigurationError):
        build()


def test_degenerate_uniform_allowed():
    rng = np.random.default_rng(0)
    assert sample(Uniform(1.0, 1.0), rng) == 1.0


def test_validate_sources_rejects_zero_burgers_vector():
    sources = dict(default_sources(), b=Constant(0.0))
    with pytest.raises(InvalidInputError):
        validate_sources(sources)


def test_validate_sources_rejects_missing_parameter():
    sources = default_sources()
    del sources["Rs"]
    with pytest.raises(ConfigurationError, match="Rs"):
        validate_sources(sources)


# =============================================================================
# PARSING
# =============================================================================

def test_parse_number():
    assert parse_distribution("2.54e-10") == Constant(2.54e-10)
    assert parse_distribution(" 7E10 ") == Constant(7e10)


def test_parse_expressions():
    assert parse_distribution("Uniform(0.15, 0.25)") == Uniform(0.15, 0.25)
    assert parse_distribution("gauss(3e-8,2e-9)") == Gaussian(3e-8, 2e-9)
    assert parse_distribution("Normal(1, 0.5)") == Gaussian(1.0, 0.5)
    assert parse_distribution("Constant(-1.5)") == Constant(-1.5)
    assert parse_distribution(
        "Mixture(Gaussian(1e-8, 2e-9), Gaussian(3e-8, 2e-9), 0.5)"
    ) == RS_MIXTURE


def test_parse_mixture_with_number_component():
    assert parse_distribution("Mixture(1, Uniform(2, 3), 0.25)") == \
        Mixture(Constant(1.0), Uniform(2.0, 3.0), 0.25)


@pytest.mark.parametrize("text", [
    "",
    "Uniform(1)",
    "Uniform(1, 2",
    "Beta(1, 2)",
    "Uniform(1, 2) extra",
    "Uniform(2, 1)",
    "Mixture(1, 2, Uniform(0, 1))",
    "nan",
    "1.0.0",
    "Uniform(1; 2)",
])
def test_parse_errors(text):
    with pytest.raises(ConfigurationError):
        parse_distribution(text)


def test_distribution_from_dict_variants():
    assert distribution_from_dict(0.2) == Constant(0.2)
    assert distribution_from_dict("Uniform(1, 2)") == Uniform(1.0, 2.0)
    assert distribution_from_dict({"distribution": "constant", "value": 3}) == Constant(3.0)
    assert distribution_from_dict({"low": 1, "high": 2}) == Uniform(1.0, 2.0)
    assert distribution_from_dict(
        {"distribution": "normal", "mean": 0.0, "sigma": 1.0}
    ) == Gaussian(0.0, 1.0)
    assert distribution_from_dict({
        "distribution": "mixture",
        "first": {"distribution": "gaussian", "mean": 1e-8, "sigma": 2e-9},
        "second": "Gaussian(3e-8, 2e-9)",
    }) == RS_MIXTURE


@pytest.mark.parametrize("entry", [
    {"distribution": "uniform", "low": 1},
    {"distribution": "gaussian", "mean": "abc", "sigma": 1},
    {"distribution": "lognormal", "mu": 0, "sigma": 1},
    True,
    [1, 2],
])
def test_distribution_from_dict_errors(entry):
    with pytest.raises(ConfigurationError):
        distribution_from_dict(entry)


def test_params_yaml_round_trip(tmp_path):
    """Sources written as YAML load back unchanged."""
    for sources in (default_sources(), reference_sources()):
        path = tmp_path / "params.yaml"
        with open(path, "w", encoding="utf-8") as fh:
            yaml.dump(sources_to_yaml_dict(sources), fh, sort_keys=False, allow_unicode=True)
        assert load_params_file(str(path)) == sources


def test_params_yaml_partial_and_unknown_keys(tmp_path, caplog):
    path = tmp_path / "params.yaml"
    path.write_text("parameters:\n  M: 3.1\n  nonsense: 1\n")
    sources = load_params_file(str(path))
    assert sources == {"M": Constant(3.1)}
    assert "nonsense" in caplog.text


def test_params_yaml_empty_parameters_block(tmp_path):
    """An empty 'parameters:' block means no overrides."""
    path = tmp_path / "params.yaml"
    path.write_text("parameters:\n")
    assert load_params_file(str(path)) == {}


@pytest.mark.parametrize("content", [
    "- 0.2\n- 0.375\n",
    "parameters:\n  - gamma\n  - phi\n",
    "just a string\n",
])
def test_params_yaml_must_be_a_mapping(tmp_path, content):
    path = tmp_path / "params.yaml"
    path.write_text(content)
    with pytest.raises(ConfigurationError):
        load_params_file(str(path))

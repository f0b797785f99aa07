"""
Tests for the Brown-Ham cutting stress kernel.
"""

import math

import numpy as np
import pytest

from brownham_mc.parameters import mean_taylor_factor
from brownham_mc.runner import cutting_stress, evaluate


REFERENCE = dict(gamma=0.2, phi=0.375, Rs=2e-8, G=7e10, b=2.54e-10)


def _closed_form(gamma, phi, Rs, G, b, M):
    return (M * gamma / (2 * b)) * (math.sqrt((8 * gamma * phi * Rs) / (math.pi * G * b * b)) - phi) / 1e6


# =============================================================================
# KNOWN VALUES
# =============================================================================

def test_mean_taylor_factor():
    """The empirical Taylor-factor table averages to 3.05."""
    assert mean_taylor_factor() == pytest.approx(3.05)


def test_reference_cutting_stress():
    """Reference inputs give roughly 654 MPa."""
    sigma = cutting_stress(M=mean_taylor_factor(), **REFERENCE)
    assert float(sigma) == pytest.approx(654.035, rel=1e-4)


def test_matches_closed_form():
    """Kernel agrees with an independent evaluation of the formula."""
    for M in (1.9, 3.05, 4.1):
        for Rs in (1e-8, 2e-8, 3e-8):
            inputs = dict(REFERENCE, Rs=Rs, M=M)
            assert float(cutting_stress(**inputs)) == pytest.approx(_closed_form(**inputs), rel=1e-12)


def test_deterministic():
    """Identical inputs always yield the identical output."""
    inputs = dict(REFERENCE, M=3.05)
    first = evaluate(inputs)
    assert all(evaluate(inputs) == first for _ in range(10))


def test_evaluate_returns_python_float():
    """evaluate() hands back a plain float."""
    assert isinstance(evaluate(dict(REFERENCE, M=3.05)), float)


# =============================================================================
# ARRAY EVALUATION
# =============================================================================

def test_array_inputs_match_scalar_inputs():
    """The same kernel runs element-wise on particle arrays."""
    rng = np.random.default_rng(0)
    gamma = rng.uniform(0.15, 0.25, 50)
    M = rng.uniform(1.9, 4.1, 50)
    out = cutting_stress(gamma, 0.375, 2e-8, 7e10, 2.54e-10, M)
    assert out.shape == (50,)
    for i in range(50):
        expected = float(cutting_stress(gamma[i], 0.375, 2e-8, 7e10, 2.54e-10, M[i]))
        assert out[i] == pytest.approx(expected, rel=1e-14)


# =============================================================================
# DOMAIN EDGES
# =============================================================================

def test_negative_radicand_gives_nan():
    """A negative APB energy makes the square root undefined → NaN."""
    sigma = cutting_stress(**dict(REFERENCE, gamma=-0.2, M=3.05))
    assert math.isnan(float(sigma))


def test_zero_burgers_vector_gives_inf():
    """b == 0 divides by zero; the kernel returns inf instead of raising."""
    sigma = cutting_stress(**dict(REFERENCE, b=0.0, M=3.05))
    assert math.isinf(float(sigma))

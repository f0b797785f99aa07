"""
Model evaluation and the uncertainty-propagation driver.

The Brown-Ham kernel is a branch-free arithmetic expression, so the same
function runs on scalars (explicit Monte Carlo sampling) and on numpy
particle arrays (delegated distribution tracking).
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import numpy as np

from .constants import KERNEL_ORDER, PASCALS_PER_MEGAPASCAL
from .errors import ConfigurationError, ResourceError
from .io import print_inputs, print_particle_inputs
from .models import (
    RunConfig, RunResult, RunStatistics,
    BACKEND_SAMPLING, BACKEND_PARTICLES,
)
from .parameters import PARAMETERS, sample_array, sample_inputs, validate_sources

log = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Model kernel
# -------------------------------------------------------------------

def cutting_stress(gamma, phi, Rs, G, b, M):
    r"""Cutting stress predicted by the Brown-Ham precipitate model, in MPa.

    .. math::

        \sigma_c = \frac{M\gamma}{2b}
                   \left(\sqrt{\frac{8\gamma\phi R_s}{\pi G b^2}} - \phi\right)
                   / 10^6

    Precondition: ``b != 0`` (checked by the driver for constant inputs;
    otherwise the result is ``inf``).  A negative radicand yields ``nan``.
    Accepts scalars or equally shaped numpy arrays.
    """
    b = np.asarray(b, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return ((M * gamma) / (2.0 * b)) * (
            np.sqrt((8.0 * gamma * phi * Rs) / (np.pi * G * b ** 2)) - phi
        ) / PASCALS_PER_MEGAPASCAL


def evaluate(inputs: dict) -> float:
    """Evaluate the kernel on one sample set (keyed by parameter name)."""
    return float(cutting_stress(*(inputs[name] for name in KERNEL_ORDER)))


# -------------------------------------------------------------------
# Statistics
# -------------------------------------------------------------------

class RunningStatistics:
    """Welford single-pass mean / variance accumulator."""

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0

    def push(self, x: float):
        self.count += 1
        delta = x - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (x - self.mean)

    @property
    def variance(self) -> float:
        """Population variance; 0 for a single sample."""
        if self.count < 2:
            return 0.0
        return self._m2 / self.count

    def result(self) -> RunStatistics:
        return RunStatistics(count=self.count, mean=self.mean, variance=self.variance)


def calculate_mean_and_variance(samples) -> RunStatistics:
    """Mean and variance of a non-empty sample sequence."""
    acc = RunningStatistics()
    for x in samples:
        acc.push(float(x))
    if acc.count == 0:
        raise ValueError("Cannot compute statistics of an empty sample set")
    return acc.result()


# -------------------------------------------------------------------
# Execution strategies
# -------------------------------------------------------------------

class ExplicitMonteCarlo:
    """Draw one sample set per iteration and evaluate the scalar kernel."""

    name = BACKEND_SAMPLING

    def evaluate(self, config: RunConfig, rng: np.random.Generator):
        """Run the iteration loop.

        Returns
        -------
        value : float
            Statistics mean in Monte Carlo mode, else the single output.
        statistics : RunStatistics
        samples : np.ndarray | None
            The output sample buffer (Monte Carlo mode only).
        """
        buffer: Optional[np.ndarray] = None
        if config.monte_carlo:
            try:
                buffer = np.empty(config.iterations, dtype=float)
            except MemoryError:
                raise ResourceError(
                    f"Could not allocate the output buffer for "
                    f"{config.iterations} Monte Carlo iterations"
                ) from None

        output = float("nan")
        for i in range(config.iterations):
            inputs = sample_inputs(config.sources, rng)
            if config.verbose:
                print_inputs(inputs)
            output = evaluate(inputs)
            if buffer is not None:
                buffer[i] = output

        if buffer is not None:
            stats = calculate_mean_and_variance(buffer)
            return stats.mean, stats, buffer

        return output, RunStatistics(count=1, mean=output, variance=0.0), None


class DelegatedDistribution:
    """Track each input as a particle set and evaluate the kernel once.

    Every source becomes ``config.particles`` numpy draws (constants are
    broadcast), and the kernel runs element-wise over the arrays.  The
    reported value is the mean of the output particle set.
    """

    name = BACKEND_PARTICLES

    def evaluate(self, config: RunConfig, rng: np.random.Generator):
        particles = {
            p.name: sample_array(config.sources[p.name], rng, config.particles)
            for p in PARAMETERS
        }
        if config.verbose:
            print_particle_inputs(config.sources, particles)
        output = np.asarray(
            cutting_stress(*(particles[name] for name in KERNEL_ORDER)), dtype=float
        )
        stats = calculate_mean_and_variance(output)
        return stats.mean, stats, output


_STRATEGIES = {
    BACKEND_SAMPLING: ExplicitMonteCarlo,
    BACKEND_PARTICLES: DelegatedDistribution,
}


def get_strategy(backend: str):
    try:
        return _STRATEGIES[backend]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown backend '{backend}'. Must be one of: {', '.join(_STRATEGIES)}"
        ) from None


# -------------------------------------------------------------------
# Driver
# -------------------------------------------------------------------

def validate_config(config: RunConfig):
    """Reject malformed or contradictory settings before the loop starts."""
    if config.iterations < 1:
        raise ConfigurationError(
            f"The number of iterations must be at least 1, got {config.iterations}"
        )
    if config.input_file and config.monte_carlo:
        raise ConfigurationError(
            "Reading from an input file is not supported for Monte Carlo mode."
        )
    if config.iterations > 1 and not config.monte_carlo:
        raise ConfigurationError(
            "Multiple iterations require Monte Carlo mode."
        )
    if config.backend == BACKEND_PARTICLES:
        if config.monte_carlo:
            raise ConfigurationError(
                "The particle backend is not compatible with native Monte Carlo mode."
            )
        if config.particles < 1:
            raise ConfigurationError(
                f"The number of particles must be at least 1, got {config.particles}"
            )
    get_strategy(config.backend)
    validate_sources(config.sources)


def run(config: RunConfig, rng: Optional[np.random.Generator] = None) -> RunResult:
    """Execute one run: validate → loop → statistics (+ timing)."""
    validate_config(config)
    if rng is None:
        rng = np.random.default_rng(config.seed)
    strategy = get_strategy(config.backend)

    if config.monte_carlo:
        log.info("Monte Carlo: %d iterations", config.iterations)
    elif strategy.name == BACKEND_PARTICLES:
        log.info("Particle backend: %d particles per input", config.particles)

    start = time.process_time() if config.timed else None
    value, stats, samples = strategy.evaluate(config, rng)
    elapsed = time.process_time() - start if start is not None else None

    outputs = samples if samples is not None else np.array([value])
    non_finite = int(np.count_nonzero(~np.isfinite(outputs)))
    if non_finite:
        log.warning("%d of %d outputs are not finite (negative radicand or "
                    "zero Burgers vector in the sampled inputs)",
                    non_finite, outputs.size)

    return RunResult(
        value=value,
        statistics=stats,
        samples=samples,
        elapsed_seconds=elapsed,
        non_finite=non_finite,
    )

"""
Data model classes: input distributions, Parameter, run configuration
and run results.
"""

from __future__ import annotations

import math
import types
from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

import numpy as np

from .errors import ConfigurationError


def _check_finite(kind: str, **values: float):
    for name, value in values.items():
        if not math.isfinite(value):
            raise ConfigurationError(f"{kind}: '{name}' must be a finite real number, got {value!r}")


# -------------------------------------------------------------------
# Distribution specifications
# -------------------------------------------------------------------

@dataclass(frozen=True)
class Constant:
    """A fixed scalar input."""

    value: float

    def __post_init__(self):
        _check_finite("Constant", value=self.value)

    def __str__(self) -> str:
        return f"{self.value:g}"

    def to_dict(self) -> dict:
        return {"distribution": "constant", "value": float(self.value)}


@dataclass(frozen=True)
class Uniform:
    """Flat between ``low`` (inclusive) and ``high`` (exclusive)."""

    low: float
    high: float

    def __post_init__(self):
        _check_finite("Uniform", low=self.low, high=self.high)
        if self.low > self.high:
            raise ConfigurationError(
                f"Uniform: low ({self.low:g}) must not exceed high ({self.high:g})"
            )

    def __str__(self) -> str:
        return f"Uniform({self.low:g}, {self.high:g})"

    def to_dict(self) -> dict:
        return {"distribution": "uniform", "low": float(self.low), "high": float(self.high)}


@dataclass(frozen=True)
class Gaussian:
    """Normal distribution with the given mean and standard deviation."""

    mean: float
    sigma: float

    def __post_init__(self):
        _check_finite("Gaussian", mean=self.mean, sigma=self.sigma)
        if self.sigma < 0:
            raise ConfigurationError(f"Gaussian: sigma must be >= 0, got {self.sigma:g}")

    def __str__(self) -> str:
        return f"Gaussian({self.mean:g}, {self.sigma:g})"

    def to_dict(self) -> dict:
        return {"distribution": "gaussian", "mean": float(self.mean), "sigma": float(self.sigma)}


@dataclass(frozen=True)
class Mixture:
    """Draw from ``first`` with probability ``weight``, else from ``second``.

    Models the bimodal particle-radius population.
    """

    first: "Distribution"
    second: "Distribution"
    weight: float

    def __post_init__(self):
        _check_finite("Mixture", weight=self.weight)
        if not 0.0 <= self.weight <= 1.0:
            raise ConfigurationError(f"Mixture: weight must lie in [0, 1], got {self.weight:g}")

    def __str__(self) -> str:
        return f"Mixture({self.first}, {self.second}, {self.weight:g})"

    def to_dict(self) -> dict:
        return {
            "distribution": "mixture",
            "first": self.first.to_dict(),
            "second": self.second.to_dict(),
            "weight": float(self.weight),
        }


Distribution = Union[Constant, Uniform, Gaussian, Mixture]


# -------------------------------------------------------------------
# Parameters
# -------------------------------------------------------------------

class Parameter:
    """One physical input of the Brown-Ham model."""

    def __init__(self, name, symbol, description, units, short_flag, long_flag):
        self.name = name
        self.symbol = symbol
        self.description = description
        self.units = units
        self.short_flag = short_flag
        self.long_flag = long_flag

    def key(self) -> str:
        """Key used in parameter YAML files and input CSV headers."""
        return self.name

    def label(self) -> str:
        return f"{self.description} ({self.symbol})"

    def format_value(self, value: float) -> str:
        unit = f" {self.units}" if self.units else ""
        return f"{self.label()}\t\t= {value:e}{unit}"


# -------------------------------------------------------------------
# Run configuration and results
# -------------------------------------------------------------------

BACKEND_SAMPLING = "sampling"
BACKEND_PARTICLES = "particles"


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one run; built once by the CLI layer."""

    sources: Mapping
    monte_carlo: bool = False
    iterations: int = 1
    benchmarking: bool = False
    timing: bool = False
    verbose: bool = False
    json_output: bool = False
    input_file: Optional[str] = None
    output_file: Optional[str] = None
    backend: str = BACKEND_SAMPLING
    particles: int = 10_000
    seed: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, "sources", types.MappingProxyType(dict(self.sources)))

    @property
    def timed(self) -> bool:
        """Monte Carlo runs are always timed; the sample file records the time."""
        return self.timing or self.benchmarking or self.monte_carlo


@dataclass(frozen=True)
class RunStatistics:
    """Mean and (population) variance of a run's outputs."""

    count: int
    mean: float
    variance: float

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)


@dataclass
class RunResult:
    """Everything a run hands to the output sinks."""

    value: float
    statistics: RunStatistics
    samples: Optional[np.ndarray] = field(default=None, repr=False)
    elapsed_seconds: Optional[float] = None
    non_finite: int = 0

    @property
    def elapsed_microseconds(self) -> int:
        return int((self.elapsed_seconds or 0.0) * 1_000_000)

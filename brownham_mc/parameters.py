"""
Parameter table, input-distribution parsing, and Monte Carlo sampling.
"""

from __future__ import annotations

import logging
import re

import numpy as np
import yaml

from . import constants as C
from .errors import ConfigurationError, InvalidInputError
from .models import Constant, Uniform, Gaussian, Mixture, Distribution, Parameter

log = logging.getLogger(__name__)

# -------------------------------------------------------------------
# Parameter table
# -------------------------------------------------------------------

PARAMETERS = (
    Parameter("gamma", "γ", "Anti-phase boundary energy", "J/m^2", "-g", "--apb-energy"),
    Parameter("phi", "φ", "Precipitate volume fraction", "", "-p", "--precipitate-volume-fraction"),
    Parameter("Rs", "Rs", "Mean particle radius on plane", "m", "-R", "--mean-particle-radius"),
    Parameter("G", "G", "Shear modulus", "Pa", "-G", "--shear-modulus"),
    Parameter("b", "b", "Magnitude of the Burger's vector", "m", "-B", "--burgers-vector"),
    Parameter("M", "M", "Taylor factor", "", "-m", "--taylor-factor"),
)

PARAMETERS_BY_NAME = {p.name: p for p in PARAMETERS}


def default_sources() -> dict[str, Distribution]:
    """Input distributions used when nothing overrides them."""
    return {
        "gamma": Uniform(C.GAMMA_UNIFORM_MIN, C.GAMMA_UNIFORM_MAX),
        "phi": Uniform(C.PHI_UNIFORM_MIN, C.PHI_UNIFORM_MAX),
        "Rs": Mixture(
            Gaussian(C.RS_MIXTURE_FIRST_MEAN, C.RS_MIXTURE_FIRST_STDDEV),
            Gaussian(C.RS_MIXTURE_SECOND_MEAN, C.RS_MIXTURE_SECOND_STDDEV),
            C.RS_MIXTURE_FIRST_WEIGHT,
        ),
        "G": Uniform(C.G_UNIFORM_MIN, C.G_UNIFORM_MAX),
        "b": Constant(C.B_CONSTANT),
        "M": Uniform(C.M_UNIFORM_MIN, C.M_UNIFORM_MAX),
    }


def mean_taylor_factor() -> float:
    """Mean of the empirical Taylor-factor table."""
    return sum(C.EMPIRICAL_TAYLOR_FACTORS) / len(C.EMPIRICAL_TAYLOR_FACTORS)


def reference_sources() -> dict[str, Distribution]:
    """Fixed-value inputs of the reference (no-distribution) variant."""
    return {
        "gamma": Constant(C.REFERENCE_GAMMA),
        "phi": Constant(C.REFERENCE_PHI),
        "Rs": Constant(C.REFERENCE_RS),
        "G": Constant(C.REFERENCE_G),
        "b": Constant(C.REFERENCE_B),
        "M": Constant(mean_taylor_factor()),
    }


def validate_sources(sources: dict[str, Distribution]):
    """Reject incomplete or out-of-domain sources before any sampling."""
    missing = [p.name for p in PARAMETERS if p.name not in sources]
    if missing:
        raise ConfigurationError(f"Missing parameter source(s): {', '.join(missing)}")
    extra = sorted(set(sources) - set(PARAMETERS_BY_NAME))
    if extra:
        raise ConfigurationError(f"Unknown parameter(s): {', '.join(extra)}")

    b = sources["b"]
    if isinstance(b, Constant) and b.value == 0:
        raise InvalidInputError("The Burgers vector magnitude b must be non-zero.")


# -------------------------------------------------------------------
# Sampling
# -------------------------------------------------------------------

def sample(dist: Distribution, rng: np.random.Generator) -> float:
    """Draw one scalar from *dist*.

    * **Constant** → always the value.
    * **Uniform** → flat in ``[low, high)``.
    * **Gaussian** → Normal(mean, sigma).
    * **Mixture** → ``first`` with probability ``weight``, else ``second``.
    """
    if isinstance(dist, Constant):
        return dist.value
    if isinstance(dist, Uniform):
        return float(rng.uniform(dist.low, dist.high))
    if isinstance(dist, Gaussian):
        return float(rng.normal(dist.mean, dist.sigma))
    if isinstance(dist, Mixture):
        if rng.random() < dist.weight:
            return sample(dist.first, rng)
        return sample(dist.second, rng)
    raise TypeError(f"Unsupported distribution: {dist!r}")


def sample_array(dist: Distribution, rng: np.random.Generator, size: int) -> np.ndarray:
    """Draw *size* independent values from *dist* as a float array."""
    if isinstance(dist, Constant):
        return np.full(size, dist.value, dtype=float)
    if isinstance(dist, Uniform):
        return rng.uniform(dist.low, dist.high, size)
    if isinstance(dist, Gaussian):
        return rng.normal(dist.mean, dist.sigma, size)
    if isinstance(dist, Mixture):
        pick_first = rng.random(size) < dist.weight
        return np.where(pick_first,
                        sample_array(dist.first, rng, size),
                        sample_array(dist.second, rng, size))
    raise TypeError(f"Unsupported distribution: {dist!r}")


def sample_inputs(sources: dict[str, Distribution], rng: np.random.Generator) -> dict[str, float]:
    """Draw one sample set: one value per parameter, in table order."""
    return {p.name: sample(sources[p.name], rng) for p in PARAMETERS}


# -------------------------------------------------------------------
# Parsing: command-line expressions and YAML entries
# -------------------------------------------------------------------

_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<number>[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)"
    r"|(?P<name>[A-Za-z_]\w*)"
    r"|(?P<punct>[(),])"
    r")"
)

# name → (constructor, argument kinds); "d" = distribution, "f" = number
_CONSTRUCTORS = {
    "constant": (Constant, "f"),
    "uniform": (Uniform, "ff"),
    "gaussian": (Gaussian, "ff"),
    "gauss": (Gaussian, "ff"),
    "normal": (Gaussian, "ff"),
    "mixture": (Mixture, "ddf"),
}


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    text = text.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise ConfigurationError(
                f"Unexpected character {text[pos:].lstrip()[:1]!r} in '{text}'"
            )
        kind = m.lastgroup
        tokens.append((kind, m.group(kind)))
        pos = m.end()
    return tokens


class _ExpressionParser:
    """Recursive-descent parser for ``Name(arg, ...)`` distribution expressions."""

    def __init__(self, text: str):
        self.text = text
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self):
        return self.tokens[self.pos] if self.pos < len(self.tokens) else (None, None)

    def _next(self):
        tok = self._peek()
        self.pos += 1
        return tok

    def _expect(self, punct: str):
        kind, value = self._next()
        if kind != "punct" or value != punct:
            raise ConfigurationError(f"Expected '{punct}' in '{self.text}'")

    def parse(self) -> Distribution:
        dist = self._distribution()
        if self.pos != len(self.tokens):
            raise ConfigurationError(f"Trailing input in '{self.text}'")
        return dist

    def _number(self) -> float:
        kind, value = self._next()
        if kind != "number":
            raise ConfigurationError(f"Expected a number in '{self.text}'")
        return float(value)

    def _distribution(self) -> Distribution:
        kind, value = self._peek()
        if kind == "number":
            return Constant(self._number())
        if kind != "name":
            raise ConfigurationError(f"Expected a number or distribution in '{self.text}'")
        self._next()
        ctor = _CONSTRUCTORS.get(value.lower())
        if ctor is None:
            raise ConfigurationError(
                f"Unknown distribution '{value}'. Must be one of: "
                "Constant, Uniform, Gaussian, Mixture"
            )
        cls, arg_kinds = ctor
        self._expect("(")
        args = []
        for i, arg_kind in enumerate(arg_kinds):
            if i:
                self._expect(",")
            args.append(self._distribution() if arg_kind == "d" else self._number())
        self._expect(")")
        return cls(*args)


def parse_distribution(text: str) -> Distribution:
    """Parse a number or a distribution expression.

    Examples: ``2.54e-10``, ``Uniform(0.15, 0.25)``,
    ``Mixture(Gaussian(1e-8, 2e-9), Gaussian(3e-8, 2e-9), 0.5)``.
    """
    text = str(text).strip()
    if not text:
        raise ConfigurationError("Empty parameter value")
    try:
        value = float(text)
    except ValueError:
        return _ExpressionParser(text).parse()
    return Constant(value)


def distribution_from_dict(entry) -> Distribution:
    """Build a distribution from one parameter entry of a params YAML file.

    An entry may be a bare number, an expression string, or a mapping
    with a ``distribution`` key (``constant``, ``uniform``, ``gaussian``
    or ``mixture``) and that distribution's fields.
    """
    if isinstance(entry, bool):
        raise ConfigurationError(f"Invalid parameter entry: {entry!r}")
    if isinstance(entry, (int, float)):
        return Constant(float(entry))
    if isinstance(entry, str):
        return parse_distribution(entry)
    if not isinstance(entry, dict):
        raise ConfigurationError(f"Invalid parameter entry: {entry!r}")

    dist = str(entry.get("distribution", "uniform")).lower()
    try:
        if dist == "constant":
            return Constant(float(entry["value"]))
        if dist == "uniform":
            return Uniform(float(entry["low"]), float(entry["high"]))
        if dist in ("gaussian", "normal"):
            return Gaussian(float(entry["mean"]), float(entry["sigma"]))
        if dist == "mixture":
            return Mixture(
                distribution_from_dict(entry["first"]),
                distribution_from_dict(entry["second"]),
                float(entry.get("weight", 0.5)),
            )
    except KeyError as exc:
        raise ConfigurationError(
            f"'{dist}' entry is missing the {exc.args[0]!r} key: {entry!r}"
        ) from None
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid '{dist}' entry {entry!r}: {exc}") from None
    raise ConfigurationError(
        f"Unknown distribution '{dist}'. Must be 'constant', 'uniform', "
        "'gaussian' or 'mixture'."
    )


def load_params_file(path: str) -> dict[str, Distribution]:
    """Read parameter sources from a params YAML file.

    Only the parameters present in the file are returned; the caller
    merges them over the defaults.
    """
    with open(path, "r", encoding="utf-8") as fh:
        params_data = yaml.safe_load(fh) or {}
    if not isinstance(params_data, dict):
        raise ConfigurationError(f"'{path}' must hold a mapping of parameters")
    user_params = params_data.get("parameters", params_data) or {}
    if not isinstance(user_params, dict):
        raise ConfigurationError(f"'parameters' in '{path}' must be a mapping")

    extra = set(user_params) - set(PARAMETERS_BY_NAME)
    if extra:
        log.warning("Params in %s not used by the model (ignored): %s",
                    path, sorted(extra))

    sources = {}
    for p in PARAMETERS:
        if p.key() in user_params:
            sources[p.name] = distribution_from_dict(user_params[p.key()])
    return sources


def sources_to_yaml_dict(sources: dict[str, Distribution]) -> dict:
    """Inverse of :func:`load_params_file`, in table order."""
    entries = {}
    for p in PARAMETERS:
        entry = {"description": p.label()}
        if p.units:
            entry["units"] = p.units
        entry.update(sources[p.name].to_dict())
        entries[p.key()] = entry
    return {"parameters": entries}

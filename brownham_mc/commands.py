"""
High-level sub-command implementations: populate, run, summary.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import numpy as np
import yaml

from . import constants as C
from .errors import ConfigurationError, OutputError
from .io import (
    read_input_csv, read_mc_data, write_mc_data, write_output_csv,
    result_record, format_json, format_benchmark_line,
)
from .models import Constant, RunConfig, RunResult, BACKEND_SAMPLING
from .parameters import (
    PARAMETERS, default_sources, reference_sources, load_params_file,
    parse_distribution, sources_to_yaml_dict,
)
from .runner import run, calculate_mean_and_variance

log = logging.getLogger(__name__)

PRESETS = {
    "default": default_sources,
    "reference": reference_sources,
}


def cmd_populate(setup_out: str, params_out: str, preset: str = "default"):
    """
    Write starter config files.

    * *setup_out*  — run settings (iterations, backend, seed, …)
    * *params_out* — the six input distributions
    """
    try:
        sources = PRESETS[preset]()
    except KeyError:
        raise ConfigurationError(
            f"Unknown preset '{preset}'. Must be one of: {', '.join(PRESETS)}"
        ) from None

    setup_cfg = {
        "monte_carlo": False,
        "iterations": 1,
        "backend": BACKEND_SAMPLING,
        "particles": C.DEFAULT_PARTICLES,
        "seed": 42,
        "timing": False,
        "verbose": False,
        "json": False,
        "benchmarking": False,
        "output_file": None,
        "params_file": params_out,
        "quantiles": C.DEFAULT_QUANTILES,
    }

    try:
        with open(params_out, "w", encoding="utf-8") as fh:
            fh.write("# Brown-Ham cutting stress — input distributions\n")
            fh.write(f"# Preset: {preset}\n")
            fh.write("#\n")
            fh.write("# Each parameter is a number, an expression such as\n")
            fh.write("#   Uniform(0.15, 0.25)\n")
            fh.write("#   Mixture(Gaussian(1e-8, 2e-9), Gaussian(3e-8, 2e-9), 0.5)\n")
            fh.write("# or a mapping with a 'distribution' key:\n")
            fh.write("#   constant   — value\n")
            fh.write("#   uniform    — low, high\n")
            fh.write("#   gaussian   — mean, sigma\n")
            fh.write("#   mixture    — first, second, weight (probability of 'first')\n\n")
            yaml.dump(sources_to_yaml_dict(sources), fh,
                      default_flow_style=False, sort_keys=False, allow_unicode=True)

        with open(setup_out, "w", encoding="utf-8") as fh:
            fh.write("# Brown-Ham cutting stress — run setup\n")
            fh.write("# ------------------------------------\n")
            fh.write("#\n")
            fh.write("# Workflow:\n")
            fh.write("#   1. python -m brownham_mc populate\n")
            fh.write(f"#   2. (edit {params_out} — adjust input distributions)\n")
            fh.write(f"#   3. python -m brownham_mc run -c {setup_out} -M 10000\n")
            fh.write(f"#   4. python -m brownham_mc summary -c {setup_out} "
                     f"-r {C.DEFAULT_MC_OUTPUT_FILE}\n\n")
            yaml.dump(setup_cfg, fh, default_flow_style=False, sort_keys=False)
    except OSError as exc:
        raise OutputError(exc.filename or params_out, exc.strerror or str(exc)) from None

    print(f"Setup     written to {setup_out}")
    print(f"Params    written to {params_out}")
    for p in PARAMETERS:
        print(f"  {p.key():6s} {str(sources[p.name]):60s} | {p.label()}")


def _read_setup(setup_filepath: str) -> dict:
    """Load the setup YAML; it must be a mapping of settings."""
    try:
        with open(setup_filepath, "r", encoding="utf-8") as fh:
            cfg = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read '{exc.filename}': {exc.strerror}") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in '{setup_filepath}': {exc}") from None
    if not isinstance(cfg, dict):
        raise ConfigurationError(
            f"'{setup_filepath}' must hold a mapping of settings, "
            f"not a {type(cfg).__name__}"
        )
    return cfg


def _load_setup(setup_filepath: Optional[str]) -> tuple[dict, dict]:
    """Return (setup cfg, parameter sources from its params_file)."""
    if setup_filepath is None:
        return {}, {}
    cfg = _read_setup(setup_filepath)
    try:
        params_filepath = cfg.get("params_file")
        if not params_filepath:
            return cfg, {}
        if not isinstance(params_filepath, str):
            raise ConfigurationError(
                f"params_file in '{setup_filepath}' must be a path, got {params_filepath!r}"
            )
        # Resolve relative to setup file directory
        if not os.path.isabs(params_filepath):
            params_filepath = os.path.join(
                os.path.dirname(os.path.abspath(setup_filepath)), params_filepath
            )
        return cfg, load_params_file(params_filepath)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read '{exc.filename}': {exc.strerror}") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in setup files: {exc}") from None


def _as_int(name: str, value) -> int:
    """Whole-number setting from the command line or a YAML file."""
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"The {name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"The {name} must be an integer, got {value!r}") from None


def build_run_config(
    setup_filepath: Optional[str] = None,
    parameter_args: Optional[dict[str, str]] = None,
    input_file: Optional[str] = None,
    output_file: Optional[str] = None,
    iterations: Optional[int] = None,
    timing: bool = False,
    verbose: bool = False,
    benchmarking: bool = False,
    json_output: bool = False,
    seed: Optional[int] = None,
    backend: Optional[str] = None,
    particles: Optional[int] = None,
) -> RunConfig:
    """Merge defaults, the setup/params YAML files and command-line values.

    Precedence (lowest first): built-in defaults, YAML files, command
    line.  An input CSV, when given, replaces all six parameters.
    """
    cfg, file_sources = _load_setup(setup_filepath)

    monte_carlo = iterations is not None or bool(cfg.get("monte_carlo", False))
    if iterations is None:
        iterations = cfg.get("iterations", 1)
    iterations = _as_int("number of iterations", iterations)
    if particles is None:
        particles = cfg.get("particles", C.DEFAULT_PARTICLES)
    particles = _as_int("number of particles", particles)
    if seed is None:
        seed = cfg.get("seed", C.DEFAULT_SEED)
    if seed is not None:
        seed = _as_int("seed", seed)
        if seed < 0:
            raise ConfigurationError(f"The seed must be non-negative, got {seed}")
    input_file = input_file or cfg.get("input_file")

    if input_file and monte_carlo:
        raise ConfigurationError(
            "Reading from an input file is not supported for Monte Carlo mode."
        )

    sources = default_sources()
    sources.update(file_sources)
    for name, text in (parameter_args or {}).items():
        if text is None:
            continue
        try:
            sources[name] = parse_distribution(text)
        except ConfigurationError as exc:
            raise ConfigurationError(f"The {name} must be a real number or distribution: {exc}") from None

    if input_file:
        if any(v is not None for v in (parameter_args or {}).values()):
            log.warning("Input file %s overrides parameter flags", input_file)
        for name, value in read_input_csv(input_file).items():
            sources[name] = Constant(value)

    return RunConfig(
        sources=sources,
        monte_carlo=monte_carlo,
        iterations=iterations,
        benchmarking=benchmarking or bool(cfg.get("benchmarking", False)),
        timing=timing or bool(cfg.get("timing", False)),
        verbose=verbose or bool(cfg.get("verbose", False)),
        json_output=json_output or bool(cfg.get("json", False)),
        input_file=input_file,
        output_file=output_file or cfg.get("output_file"),
        backend=backend or cfg.get("backend", BACKEND_SAMPLING),
        particles=particles,
        seed=seed,
    )


def cmd_run(config: RunConfig) -> RunResult:
    """Run the model, print the result, and persist outputs."""
    result = run(config)

    if config.benchmarking:
        sys.stdout.write(format_benchmark_line(result.value, result.elapsed_microseconds))
    else:
        if config.json_output:
            elapsed = result.elapsed_seconds if config.timing else None
            print(format_json(result_record(result.value, elapsed)))
        else:
            print(f"{C.OUTPUT_DESCRIPTION} = {result.value:e} MPa")
            if result.statistics.count > 1:
                print(f"  ({result.statistics.count} samples, "
                      f"variance = {result.statistics.variance:e} MPa^2, "
                      f"std = {result.statistics.std:e} MPa)")
        if config.timing:
            print(f"CPU time used: {result.elapsed_seconds:f} seconds")

    if config.monte_carlo:
        path = config.output_file or C.DEFAULT_MC_OUTPUT_FILE
        write_mc_data(path, result.samples, result.elapsed_microseconds)
        log.info("Saved %d Monte Carlo samples → %s", len(result.samples), path)
    elif config.output_file:
        write_output_csv(config.output_file, {C.OUTPUT_SYMBOL: result.value})
        log.info("Saved output → %s", config.output_file)

    return result


def _quantile_levels(quantiles) -> list[float]:
    if not isinstance(quantiles, (list, tuple)) or not quantiles:
        raise ConfigurationError(f"quantiles must be a non-empty list, got {quantiles!r}")
    try:
        levels = [float(q) for q in quantiles]
    except (TypeError, ValueError):
        raise ConfigurationError(f"quantiles must be numbers, got {quantiles!r}") from None
    bad = [q for q in levels if not 0.0 <= q <= 1.0]
    if bad:
        raise ConfigurationError(f"Quantile levels must lie in [0, 1], got {bad}")
    return levels


def cmd_summary(
    data_file: str,
    quantiles: Optional[list[float]] = None,
    setup_filepath: Optional[str] = None,
):
    """Print summary statistics from a Monte Carlo ``data.out`` file.

    Quantile levels come from *quantiles*, else from the ``quantiles`` key
    of the setup file, else the defaults.
    """
    if quantiles is None and setup_filepath is not None:
        quantiles = _read_setup(setup_filepath).get("quantiles")
    if quantiles is None:
        quantiles = C.DEFAULT_QUANTILES
    quantiles = _quantile_levels(quantiles)

    elapsed_us, samples = read_mc_data(data_file)
    if samples.size == 0:
        raise ConfigurationError(f"'{data_file}' holds no samples")
    stats = calculate_mean_and_variance(samples)
    finite = samples[np.isfinite(samples)]

    print(f"MC samples : {stats.count}")
    print(f"CPU time   : {elapsed_us} us")
    print(f"Mean       : {stats.mean:.6e} MPa")
    print(f"Variance   : {stats.variance:.6e} MPa^2")
    print(f"Std        : {stats.std:.6e} MPa")
    if finite.size:
        print(f"Min / Max  : {finite.min():.6e} / {finite.max():.6e} MPa")
        q_values = np.quantile(finite, quantiles)
        print()
        for q, v in zip(quantiles, q_values):
            print(f"  {f'Q{q * 100:g}%':>8s}  {v:14.6e} MPa")
    if finite.size != samples.size:
        log.warning("%d non-finite samples excluded from min/max/quantiles",
                    samples.size - finite.size)
    return stats

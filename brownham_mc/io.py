"""
I/O helpers: input CSV, result CSV, Monte Carlo ``data.out`` files,
and the JSON / plain / benchmark result formats.
"""

from __future__ import annotations

import csv
import json

import numpy as np

from . import constants as C
from .errors import ConfigurationError, OutputError
from .parameters import PARAMETERS


# -------------------------------------------------------------------
# Read helpers
# -------------------------------------------------------------------

def read_input_csv(filename: str, names=C.INPUT_ORDER) -> dict[str, float]:
    """Read one row of input values from a CSV file with a header row.

    Every name in *names* must appear as a column header.
    """
    try:
        with open(filename, "r", newline="") as fh:
            rows = [row for row in csv.reader(fh) if any(cell.strip() for cell in row)]
    except OSError as exc:
        raise ConfigurationError(f"Could not read input file \"{filename}\": {exc.strerror}") from None

    if len(rows) < 2:
        raise ConfigurationError(
            f"Input file \"{filename}\" needs a header row and a row of values"
        )
    header = [cell.strip() for cell in rows[0]]
    values = rows[1]

    missing = [name for name in names if name not in header]
    if missing:
        raise ConfigurationError(
            f"Input file \"{filename}\" is missing column(s): {', '.join(missing)}"
        )

    result = {}
    for name in names:
        idx = header.index(name)
        try:
            result[name] = float(values[idx])
        except (IndexError, ValueError):
            raise ConfigurationError(
                f"Input file \"{filename}\": the {name} must be a real number"
            ) from None
    return result


def read_mc_data(filename: str) -> tuple[int, np.ndarray]:
    """Read a ``data.out`` file.

    Returns
    -------
    elapsed_us : int
        Header line: elapsed time in microseconds.
    samples : np.ndarray
        One output value per Monte Carlo iteration, in order.
    """
    with open(filename, "r") as fh:
        lines = [line.strip() for line in fh if line.strip()]
    if not lines:
        raise ValueError(f"'{filename}' is empty")
    elapsed_us = int(lines[0])
    samples = np.array([float(line) for line in lines[1:]], dtype=float)
    return elapsed_us, samples


# -------------------------------------------------------------------
# Write helpers
# -------------------------------------------------------------------

def write_mc_data(filename: str, samples, elapsed_us: int):
    """Write Monte Carlo samples: elapsed microseconds, then one value per line."""
    try:
        with open(filename, "w") as fh:
            fh.write(f"{int(elapsed_us)}\n")
            for x in samples:
                fh.write(f"{float(x):.17g}\n")
    except OSError as exc:
        raise OutputError(filename, exc.strerror or str(exc)) from None


def write_output_csv(filename: str, values: dict[str, float]):
    """Write a header row of output names and one row of values."""
    try:
        with open(filename, "w", newline="") as fh:
            writer = csv.writer(fh)
            writer.writerow(list(values))
            writer.writerow([f"{float(v):.17g}" for v in values.values()])
    except OSError as exc:
        raise OutputError(filename, exc.strerror or str(exc)) from None


# -------------------------------------------------------------------
# Result formats
# -------------------------------------------------------------------

def result_record(value: float, elapsed_seconds=None) -> dict:
    """Structured result: the output variable, plus CPU time when timed."""
    results = [{
        "variableSymbol": C.OUTPUT_SYMBOL,
        "variableDescription": C.OUTPUT_DESCRIPTION,
        "values": [float(value)],
        "type": "double",
    }]
    if elapsed_seconds is not None:
        results.append({
            "variableSymbol": C.TIME_SYMBOL,
            "variableDescription": C.TIME_DESCRIPTION,
            "values": [float(elapsed_seconds)],
            "type": "double",
        })
    return {"description": C.MODEL_DESCRIPTION, "results": results}


def format_json(record: dict) -> str:
    return json.dumps(record, indent=2, ensure_ascii=False)


def format_benchmark_line(value: float, elapsed_us: int) -> str:
    """``"%f %d\\n"``: output value, then elapsed microseconds."""
    return "%f %d\n" % (value, elapsed_us)


def print_inputs(inputs: dict[str, float]):
    """Print one sample set (verbose mode)."""
    for p in PARAMETERS:
        print(p.format_value(inputs[p.name]))


def print_particle_inputs(sources: dict, particles: dict[str, np.ndarray]):
    """Print each input's distribution and particle mean (verbose mode)."""
    for p in PARAMETERS:
        unit = f" {p.units}" if p.units else ""
        print(f"{p.label()}\t\t= {sources[p.name]}  "
              f"(particle mean {np.mean(particles[p.name]):e}{unit})")

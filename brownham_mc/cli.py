"""
CLI entry point — argparse setup and dispatch.
"""

from __future__ import annotations

import argparse
import logging
import sys

from . import constants as C
from .commands import build_run_config, cmd_populate, cmd_run, cmd_summary
from .errors import BrownHamError
from .models import BACKEND_SAMPLING, BACKEND_PARTICLES
from .parameters import PARAMETERS, default_sources

log = logging.getLogger(__name__)

_PROG = "brownham-mc"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=_PROG,
        description='Precipitate "cutting" dislocation model from Brown and Ham '
                    "with Monte Carlo uncertainty propagation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""\
Workflow:
  1. {_PROG} populate
  2. (edit params.yaml — adjust input distributions)
  3. {_PROG} run -c setup.yaml -M 10000
  4. {_PROG} summary -c setup.yaml -r {C.DEFAULT_MC_OUTPUT_FILE}

Single evaluation with the particle backend:
  {_PROG} run --backend particles -R "Mixture(Gaussian(1e-8, 2e-9), Gaussian(3e-8, 2e-9), 0.5)"
""",
    )
    sub = parser.add_subparsers(dest="command")

    # ── populate ─────────────────────────────────────────────────────
    pop = sub.add_parser(
        "populate",
        help="Write starter setup.yaml + params.yaml",
    )
    pop.add_argument("--setup-out", default="setup.yaml",
                     help="Output setup file (default: setup.yaml)")
    pop.add_argument("--params-out", default="params.yaml",
                     help="Output parameters file (default: params.yaml)")
    pop.add_argument("--preset", choices=("default", "reference"), default="default",
                     help="'default' distributions or the fixed-value 'reference' inputs")

    # ── run ──────────────────────────────────────────────────────────
    run = sub.add_parser(
        "run",
        help="Evaluate the model (single-shot, Monte Carlo or benchmarking)",
    )
    run.add_argument("-c", "--config", default=None, dest="setup",
                     help="Setup YAML")
    run.add_argument("-i", "--input", default=None, dest="input_file",
                     help="Input CSV with columns " + ",".join(C.INPUT_ORDER))
    run.add_argument("-o", "--output", default=None, dest="output_file",
                     help="Output CSV (single-shot) or sample file "
                          f"(Monte Carlo, default: {C.DEFAULT_MC_OUTPUT_FILE})")
    run.add_argument("-M", "--multiple-executions", type=int, default=None,
                     dest="iterations", metavar="N",
                     help="Monte Carlo mode with N iterations")
    run.add_argument("-T", "--time", action="store_true", dest="timing",
                     help="Time the kernel execution")
    run.add_argument("-v", "--verbose", action="store_true",
                     help="Print the inputs of every evaluation")
    run.add_argument("-b", "--benchmarking", action="store_true",
                     help="Print '<value> <microseconds>' only")
    run.add_argument("-j", "--json", action="store_true", dest="json_output",
                     help="Print output in JSON format")
    run.add_argument("--seed", type=int, default=None,
                     help="Random seed")
    run.add_argument("--backend", choices=(BACKEND_SAMPLING, BACKEND_PARTICLES),
                     default=None,
                     help="Explicit sampling (default) or numpy particle tracking")
    run.add_argument("--particles", type=int, default=None,
                     help=f"Particles per input for the particle backend "
                          f"(default: {C.DEFAULT_PARTICLES})")

    defaults = default_sources()
    for p in PARAMETERS:
        run.add_argument(p.short_flag, p.long_flag, default=None, dest=p.name,
                         metavar=p.name,
                         help=f"{p.label()} (default: {defaults[p.name]})")

    # ── summary ──────────────────────────────────────────────────────
    summ = sub.add_parser(
        "summary",
        help="Print statistics of a Monte Carlo sample file",
    )
    summ.add_argument("-r", "--results", default=C.DEFAULT_MC_OUTPUT_FILE,
                      dest="data_file",
                      help=f"Monte Carlo sample file (default: {C.DEFAULT_MC_OUTPUT_FILE})")
    summ.add_argument("-c", "--config", default=None, dest="setup",
                      help="Setup YAML whose 'quantiles' key is used when -q is not given")
    summ.add_argument("-q", "--quantiles", type=float, nargs="+", default=None,
                      help="Quantile levels (e.g. -q 0.025 0.5 0.975)")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "populate":
            cmd_populate(args.setup_out, args.params_out, args.preset)
        elif args.command == "run":
            config = build_run_config(
                setup_filepath=args.setup,
                parameter_args={p.name: getattr(args, p.name) for p in PARAMETERS},
                input_file=args.input_file,
                output_file=args.output_file,
                iterations=args.iterations,
                timing=args.timing,
                verbose=args.verbose,
                benchmarking=args.benchmarking,
                json_output=args.json_output,
                seed=args.seed,
                backend=args.backend,
                particles=args.particles,
            )
            cmd_run(config)
        elif args.command == "summary":
            _handle_summary(args)
        else:
            parser.print_help()
            sys.exit(0 if args.command is None else 1)
    except BrownHamError as exc:
        log.error("Error: %s", exc)
        sys.exit(1)


# ── helpers ──────────────────────────────────────────────────────────

def _handle_summary(args):
    """Print summary; exit with an error if the file cannot be read."""
    try:
        cmd_summary(args.data_file, args.quantiles, args.setup)
    except (OSError, ValueError) as exc:
        print(f"Error: cannot load '{args.data_file}': {exc}", file=sys.stderr)
        sys.exit(1)

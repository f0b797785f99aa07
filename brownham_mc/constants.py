"""
Model constants: default input distributions, parameter ordering and
output symbols.
"""

from __future__ import annotations

# Default input distributions
GAMMA_UNIFORM_MIN = 0.15
GAMMA_UNIFORM_MAX = 0.25
PHI_UNIFORM_MIN = 0.30
PHI_UNIFORM_MAX = 0.45
RS_MIXTURE_FIRST_MEAN = 1e-8
RS_MIXTURE_FIRST_STDDEV = 2e-9
RS_MIXTURE_SECOND_MEAN = 3e-8
RS_MIXTURE_SECOND_STDDEV = 2e-9
RS_MIXTURE_FIRST_WEIGHT = 0.5
G_UNIFORM_MIN = 6e10
G_UNIFORM_MAX = 8e10
B_CONSTANT = 2.54e-10
M_UNIFORM_MIN = 1.9
M_UNIFORM_MAX = 4.1

# Fixed-value reference variant
REFERENCE_GAMMA = 0.2
REFERENCE_PHI = 0.375
REFERENCE_RS = 2e-8
REFERENCE_G = 7e10
REFERENCE_B = 2.54e-10

# Measured Taylor factors; the reference variant uses their mean for M.
EMPIRICAL_TAYLOR_FACTORS = (
    3.2, 3.9, 4.1, 3.2, 3.8, 3.8, 2.1, 3.0, 1.9, 3.9,
    2.3, 2.2, 3.2, 2.2, 3.9, 2.2, 1.9, 3.2, 3.9, 3.1,
)

# Column order used by input CSV files.
INPUT_ORDER = ("b", "G", "gamma", "M", "phi", "Rs")

# Argument order of the model kernel.
KERNEL_ORDER = ("gamma", "phi", "Rs", "G", "b", "M")

PASCALS_PER_MEGAPASCAL = 1_000_000

OUTPUT_SYMBOL = "sigmaCMpa"
OUTPUT_DESCRIPTION = "Cutting stress (σc)"
TIME_SYMBOL = "cpuTimeUsed"
TIME_DESCRIPTION = "CPU time used (s)"
MODEL_DESCRIPTION = 'Precipitate "cutting" dislocation model from Brown and Ham'

DEFAULT_MC_OUTPUT_FILE = "data.out"
DEFAULT_PARTICLES = 10_000
DEFAULT_SEED = None
DEFAULT_QUANTILES = [0.16, 0.50, 0.84]

"""
Brown-Ham precipitate cutting-stress model with Monte Carlo uncertainty
propagation.

Evaluates the cutting stress of a precipitate-strengthened alloy from six
physical inputs, each a constant or a distribution, either by explicit
Monte Carlo sampling or by tracking every input as a numpy particle set
through a single evaluation.
"""

from __future__ import annotations

import logging

logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

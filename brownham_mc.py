#!/usr/bin/env python3
"""
Brown-Ham cutting stress Monte Carlo tool.

This script is a thin wrapper around the ``brownham_mc`` package.
All logic lives in brownham_mc/ — this file lets the tool run straight
from a checkout as ``python brownham_mc.py <command> ...``.

Preferred invocation:  python -m brownham_mc <command> ...
"""

from brownham_mc.cli import main

if __name__ == "__main__":
    main()

"""
Exception hierarchy for the Brown-Ham Monte Carlo tool.
"""

from __future__ import annotations


class BrownHamError(Exception):
    """Base class for every error the CLI reports and exits on."""


class ConfigurationError(BrownHamError):
    """Invalid or contradictory run settings, or a malformed argument."""


class InvalidInputError(BrownHamError):
    """Input lies outside the model's numeric domain (e.g. ``b == 0``)."""


class ResourceError(BrownHamError):
    """The Monte Carlo output buffer could not be allocated."""


class OutputError(BrownHamError):
    """A result file could not be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not write to output file \"{path}\": {reason}")
        self.path = path

"""Error taxonomy shared by every lossless component."""

from __future__ import annotations


class LosslessError(Exception):
    """Base class for errors raised by lossless."""


class ConfigurationError(LosslessError, ValueError):
    """Invalid network topology, hyperparameters or training inputs."""


class DimensionError(LosslessError, ValueError):
    """Vector or matrix widths do not line up."""


class CorruptFormatError(LosslessError, ValueError):
    """A persisted network could not be parsed or is internally inconsistent."""


__all__ = [
    "LosslessError",
    "ConfigurationError",
    "DimensionError",
    "CorruptFormatError",
]

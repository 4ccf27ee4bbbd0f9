"""Core numerical primitives for lossless."""

from . import layers, tensor, types

__all__ = ["layers", "tensor", "types"]

"""Dense vector and matrix primitives used by the layers."""

from __future__ import annotations

from typing import Callable

import numpy as np

from ..errors import DimensionError
from .types import Array


def as_vector(x: Array | list[float]) -> Array:
    """Return ``x`` as a one-dimensional float64 array."""

    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != 1:
        raise DimensionError(f"Expected a vector, got shape {arr.shape}")
    return arr


def as_matrix(x: Array | list[list[float]]) -> Array:
    """Return ``x`` as a two-dimensional float64 array.

    A single vector is promoted to a one-row matrix.
    """

    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim == 1:
        return arr.reshape(1, -1)
    if arr.ndim != 2:
        raise DimensionError(f"Expected a vector or matrix, got shape {arr.shape}")
    return arr


def dot(a: Array, b: Array) -> float:
    a, b = as_vector(a), as_vector(b)
    if a.shape != b.shape:
        raise DimensionError(f"dot: length {a.shape[0]} does not match {b.shape[0]}")
    return float(a @ b)


def outer(a: Array, b: Array) -> Array:
    """Outer product ``a b^T`` with shape ``(len(a), len(b))``."""

    return np.outer(as_vector(a), as_vector(b))


def matvec(m: Array, v: Array) -> Array:
    """Multiply ``m`` by ``v``.

    ``v`` may be a single vector of length ``m.shape[1]`` or a batch of row
    vectors, in which case every row is multiplied and a batch is returned.
    """

    m = np.asarray(m, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    if m.ndim != 2:
        raise DimensionError(f"matvec: expected a matrix, got shape {m.shape}")
    if v.shape[-1] != m.shape[1]:
        raise DimensionError(
            f"matvec: matrix has {m.shape[1]} columns but vector has {v.shape[-1]} entries"
        )
    return v @ m.T


def transpose_matvec(m: Array, v: Array) -> Array:
    """Multiply ``m^T`` by ``v`` (or by each row of a batch)."""

    m = np.asarray(m, dtype=np.float64)
    v = np.asarray(v, dtype=np.float64)
    if m.ndim != 2:
        raise DimensionError(f"transpose_matvec: expected a matrix, got shape {m.shape}")
    if v.shape[-1] != m.shape[0]:
        raise DimensionError(
            f"transpose_matvec: matrix has {m.shape[0]} rows but vector has {v.shape[-1]} entries"
        )
    return v @ m


def elementwise(fn: Callable[[Array], Array], v: Array) -> Array:
    """Apply a vectorised ``fn`` to every entry of ``v``."""

    v = np.asarray(v, dtype=np.float64)
    out = np.asarray(fn(v), dtype=np.float64)
    if out.shape != v.shape:
        raise DimensionError(f"elementwise: {fn!r} changed shape {v.shape} to {out.shape}")
    return out


def argmax(v: Array) -> Array:
    """Index of the largest entry of a vector, or of every row of a batch."""

    return np.argmax(np.asarray(v), axis=-1)


__all__ = [
    "as_vector",
    "as_matrix",
    "dot",
    "outer",
    "matvec",
    "transpose_matvec",
    "elementwise",
    "argmax",
]

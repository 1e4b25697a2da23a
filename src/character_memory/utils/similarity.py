"""Cosine similarity over embedding vectors."""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray


def cosine_similarity(a: Sequence[float] | NDArray, b: Sequence[float] | NDArray) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    A zero-magnitude vector on either side scores 0.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValueError(f"Vectors must have the same length ({va.shape[0]} != {vb.shape[0]})")

    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


def cosine_similarities(query: Sequence[float] | NDArray, matrix: NDArray) -> NDArray[np.float64]:
    """Cosine similarity of ``query`` against every row of ``matrix``.

    Rows (or a query) with zero magnitude score 0.
    """
    if matrix.size == 0:
        return np.empty((0,), dtype=np.float64)

    q = np.asarray(query, dtype=np.float64)
    q_norm = np.linalg.norm(q)
    if q_norm == 0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    row_norms = np.linalg.norm(matrix, axis=1)
    dots = matrix @ q
    denom = row_norms * q_norm
    return np.divide(dots, denom, out=np.zeros_like(dots, dtype=np.float64), where=denom != 0)

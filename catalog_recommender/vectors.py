"""
Vector math used by the profile builders and the ranker.

Vectors are 1-D float64 numpy arrays in memory and JSON arrays of floats in the
database.
"""

from typing import Iterable, Sequence
import json
import math

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as _pairwise_cosine

from .errors import DimensionMismatch, VectorFormatError

# Cosine is undefined for zero vectors; those pairs rank as the least similar
MIN_SIMILARITY = -1.0


def as_vector(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).ravel()


def _stack(vectors: Sequence) -> np.ndarray:
    arrays = [as_vector(v) for v in vectors]
    dimensions = {a.shape[0] for a in arrays}
    if len(dimensions) > 1:
        raise DimensionMismatch(dimensions)
    return np.vstack(arrays)


def mean_vector(vectors: Sequence) -> np.ndarray:
    """Coordinate-wise arithmetic mean of equally sized vectors."""
    if len(vectors) == 0:
        raise ValueError("Cannot average an empty set of vectors")
    return _stack(vectors).mean(axis=0)


def weighted_sum(vectors: Sequence, weights: Sequence[float]) -> np.ndarray:
    """Coordinate-wise sum of ``weights[j] * vectors[j]``."""
    if len(vectors) == 0:
        raise ValueError("Cannot sum an empty set of vectors")
    if len(vectors) != len(weights):
        raise ValueError(f"Got {len(vectors)} vectors but {len(weights)} weights")
    return np.asarray(weights, dtype=np.float64) @ _stack(vectors)


def degenerate_mask(query, matrix) -> np.ndarray:
    """True for every row whose cosine with ``query`` is undefined."""
    query = as_vector(query)
    matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
    if not np.any(query):
        return np.ones(matrix.shape[0], dtype=bool)
    return ~np.any(matrix, axis=1)


def cosine_similarities(query, matrix) -> np.ndarray:
    """
    Cosine similarity between ``query`` and every row of ``matrix``.

    Rows where either vector is all zeros get MIN_SIMILARITY instead of NaN.
    """
    query = as_vector(query).reshape(1, -1)
    matrix = np.atleast_2d(np.asarray(matrix, dtype=np.float64))
    if matrix.shape[0] == 0:
        return np.empty(0, dtype=np.float64)
    if matrix.shape[1] != query.shape[1]:
        raise DimensionMismatch([query.shape[1], matrix.shape[1]])

    sims = _pairwise_cosine(query, matrix)[0]
    # Rounding can push a parallel pair just past 1
    np.clip(sims, -1.0, 1.0, out=sims)
    sims[degenerate_mask(query, matrix)] = MIN_SIMILARITY
    return sims


def cosine_similarity(a, b) -> float:
    return float(cosine_similarities(a, as_vector(b).reshape(1, -1))[0])


def dumps_vector(vector: Iterable[float]) -> str:
    return json.dumps([float(x) for x in vector])


def loads_vector(text: str) -> np.ndarray:
    """Parse a stored JSON vector, raising VectorFormatError when malformed."""
    try:
        values = json.loads(text)
    except (TypeError, ValueError) as e:
        raise VectorFormatError(f"Stored vector is not valid JSON: {e}") from e

    if not isinstance(values, list) or not values:
        raise VectorFormatError("Stored vector must be a non-empty JSON array")
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise VectorFormatError(f"Stored vector holds a non-numeric value: {value!r}")
    return as_vector(values)

"""Vector serialisation and exhaustive similarity scoring.

Embeddings are persisted as JSON arrays in TEXT columns. Scoring is brute force
over every candidate row; the corpus is small enough that no ANN index is kept.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence

import numpy as np


def serialize_vector(vector: Sequence[float]) -> str:
    """Return *vector* as a compact JSON array string."""
    return json.dumps([float(v) for v in vector], separators=(",", ":"))


def deserialize_vector(raw: str | None) -> list[float] | None:
    """Parse a JSON array string back into a list of floats.

    Returns None for NULL / empty columns.

    Raises:
        ValueError: If *raw* is not a JSON array of numbers.
    """
    if raw is None or raw == "":
        return None
    data = json.loads(raw)
    if not isinstance(data, list) or not all(
        isinstance(v, (int, float)) and not isinstance(v, bool) for v in data
    ):
        raise ValueError(f"Malformed vector column: {raw[:60]!r}")
    return [float(v) for v in data]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity ``dot(a, b) / sqrt(dot(a, a) * dot(b, b))`` in [-1, 1].

    Taking one square root of the product of squared norms makes
    ``cosine_similarity(v, v)`` exactly 1.0 and ``cosine_similarity(v, -v)``
    exactly -1.0. A zero vector, an empty vector or a length mismatch scores
    0.0 instead of NaN so a bad row can never poison ranking.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = math.sqrt(float(np.dot(va, va)) * float(np.dot(vb, vb)))
    if denom == 0.0:
        return 0.0
    score = float(np.dot(va, vb)) / denom
    if math.isnan(score):
        return 0.0
    return max(-1.0, min(1.0, score))


def mean_vector(vectors: Sequence[Sequence[float]]) -> list[float]:
    """Element-wise arithmetic mean of equal-length vectors.

    Raises:
        ValueError: If *vectors* is empty or lengths differ.
    """
    if not vectors:
        raise ValueError("mean_vector() needs at least one vector")
    width = len(vectors[0])
    if any(len(v) != width for v in vectors):
        raise ValueError("mean_vector() got vectors of different lengths")
    total = np.zeros(width, dtype=np.float64)
    for v in vectors:
        total += np.asarray(v, dtype=np.float64)
    return (total / len(vectors)).tolist()

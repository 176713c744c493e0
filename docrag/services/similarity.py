"""Cosine similarity and top-k ranking over chunk vectors.

Pure functions, no I/O.  A candidate without a vector (a chunk whose
embedding failed) scores ``0.0`` and sorts after every embedded candidate.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import numpy as np

_P = TypeVar("_P")


@dataclass(frozen=True)
class RankedItem(Generic[_P]):
    payload: _P
    similarity: float


def cosine_similarity(a: Sequence[float] | None, b: Sequence[float] | None) -> float:
    """Return ``dot(a, b) / (|a| * |b|)``.

    Returns ``0.0`` when either vector is missing, empty, zero-magnitude,
    or the two lengths differ.
    """
    if a is None or b is None or len(a) == 0 or len(a) != len(b):
        return 0.0
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)
    norm = float(np.linalg.norm(vec_a) * np.linalg.norm(vec_b))
    if norm == 0.0:
        return 0.0
    return float(np.dot(vec_a, vec_b) / norm)


def rank(
    query: Sequence[float],
    candidates: Sequence[tuple[Sequence[float] | None, _P]],
    k: int,
) -> list[RankedItem[_P]]:
    """Return the *k* candidates most similar to *query*, best first.

    *candidates* are ``(vector, payload)`` pairs.  Ties keep input order
    (Python's sort is stable).  Callers clamp *k*; ``k <= 0`` returns ``[]``.
    """
    if k <= 0:
        return []
    scored = [
        (vector is None, RankedItem(payload=payload, similarity=cosine_similarity(query, vector)))
        for vector, payload in candidates
    ]
    scored.sort(key=lambda entry: (entry[0], -entry[1].similarity))
    return [item for _, item in scored[:k]]

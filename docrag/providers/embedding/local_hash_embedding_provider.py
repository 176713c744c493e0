"""Deterministic local embedding provider (no network, no model files).

Produces a 384-dimensional hashing embedding so indexing and search keep
working when the remote embedding service is down.  Quality is far below a
trained model -- it captures vocabulary overlap, not meaning -- but the
vectors are unit-normalised and rank exactly like remote ones.

Vector layout:
    bucket ``h(word) % 384``          += 1 / (position + 1) per occurrence
    bucket ``(h(word) + 100) % 384``  += log(count + 1) per distinct word
    slot 0 = log(len(text) + 1) / 10  (overwrites any bucket value)
    slot 1 = log(word_count + 1) / 10 (overwrites any bucket value)

``h`` is blake2b rather than :func:`hash` because Python's string hash is
salted per process and vectors must be identical across runs.
"""

from __future__ import annotations

import hashlib
import math
import re
from collections import Counter
from functools import lru_cache

import numpy as np

from docrag.interfaces.embedding_provider import IEmbeddingProvider

LOCAL_EMBEDDING_DIMENSION = 384
LOCAL_EMBEDDING_MODEL = "local-hash-384"

_FREQUENCY_OFFSET = 100
_WORD_RE = re.compile(r"\w+")


@lru_cache(maxsize=65536)
def _stable_hash(word: str) -> int:
    digest = hashlib.blake2b(word.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


def local_embed(text: str) -> list[float]:
    """Return the hashing embedding of *text*.

    Pure and deterministic.  Empty input yields the all-zero vector, which
    is returned un-normalised.
    """
    words = _WORD_RE.findall(text.lower())
    vector = np.zeros(LOCAL_EMBEDDING_DIMENSION, dtype=np.float64)

    for position, word in enumerate(words):
        vector[_stable_hash(word) % LOCAL_EMBEDDING_DIMENSION] += 1.0 / (position + 1)

    for word, count in Counter(words).items():
        bucket = (_stable_hash(word) + _FREQUENCY_OFFSET) % LOCAL_EMBEDDING_DIMENSION
        vector[bucket] += math.log(count + 1)

    vector[0] = math.log(len(text) + 1) / 10
    vector[1] = math.log(len(words) + 1) / 10

    magnitude = float(np.linalg.norm(vector))
    if magnitude > 0:
        vector /= magnitude
    return vector.tolist()


class LocalHashEmbeddingProvider(IEmbeddingProvider):
    """:class:`IEmbeddingProvider` wrapper around :func:`local_embed`.  Never raises."""

    async def embed(self, text: str, model: str | None = None) -> list[float]:
        return local_embed(text)

    def get_dimension(self) -> int:
        return LOCAL_EMBEDDING_DIMENSION

    def get_provider_name(self) -> str:
        return "local_hash_embedding"

    def is_available(self) -> bool:
        return True

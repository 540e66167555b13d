"""
Embedding generation with content-addressed caching.

Any object with a `dimension` attribute and an `embed(text)` method can act
as the embedding provider. Vectors are cached in the store under the chunk's
content-derived id, so a chunk is embedded at most once over the store's
lifetime.
"""

import logging
import re
from typing import Dict, List, Protocol, Sequence, runtime_checkable

import numpy as np
from sklearn.feature_extraction.text import HashingVectorizer

from .exceptions import ValidationError
from .models import Chunk
from .store import KeyValueStore, get_cached_embedding, store_embeddings

logger = logging.getLogger(__name__)

DEFAULT_HASHING_DIMENSION = 128

_NON_ALNUM = re.compile(r'[^a-z0-9\s]')


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Maps text to a fixed-dimension vector."""

    dimension: int

    def embed(self, text: str) -> List[float]: ...


def _normalize_text(text: str) -> str:
    return _NON_ALNUM.sub('', text.lower())


class HashingEmbeddingProvider:
    """
    Offline bag-of-words embedding using feature hashing.

    Tokens are lower-cased alphanumeric words longer than two characters,
    hashed into `dimension` buckets and L2-normalised. Stateless, so the same
    text always yields the same vector.

    Args:
        dimension: Output vector size (default: 128)
    """

    def __init__(self, dimension: int = DEFAULT_HASHING_DIMENSION):
        if dimension < 1:
            raise ValidationError(f"dimension must be positive, got {dimension}")
        self.dimension = dimension
        self._vectorizer = HashingVectorizer(
            n_features=dimension,
            preprocessor=_normalize_text,
            token_pattern=r'\b[a-z0-9]{3,}\b',
            alternate_sign=False,
            norm='l2'
        )

    def embed(self, text: str) -> List[float]:
        matrix = self._vectorizer.transform([text])
        return [float(x) for x in matrix.toarray()[0]]


def get_chunk_embeddings(
    chunks: Sequence[Chunk],
    store: KeyValueStore,
    model: EmbeddingProvider
) -> Dict[str, List[float]]:
    """
    Get embeddings for chunks, computing only cache misses.

    1. Look up each chunk id in the store
    2. Embed every miss with the model
    3. Persist all new vectors in one atomic batch

    If the model raises for any chunk the error propagates unchanged and
    nothing new is cached.

    Args:
        chunks: Chunks to embed
        store: Store holding the embedding cache
        model: Embedding provider used for misses

    Returns:
        Mapping chunk id -> vector, in chunk order

    Raises:
        ValidationError: If the model returns a vector of the wrong dimension
    """
    cached: Dict[str, List[float]] = {}
    to_compute: List[Chunk] = []
    seen = set()

    for chunk in chunks:
        if chunk.id in seen:
            continue
        seen.add(chunk.id)

        vector = get_cached_embedding(store, chunk.id)
        if vector is not None:
            cached[chunk.id] = vector
        else:
            to_compute.append(chunk)

    expected_dim = getattr(model, 'dimension', None)
    computed: Dict[str, List[float]] = {}
    for chunk in to_compute:
        vector = [float(x) for x in model.embed(chunk.text)]
        if expected_dim is not None and len(vector) != expected_dim:
            raise ValidationError(
                f"Embedding for {chunk.id} has dimension {len(vector)}, expected {expected_dim}"
            )
        computed[chunk.id] = vector

    if computed:
        store_embeddings(store, computed)

    logger.info(
        f"Embeddings ready: {len(cached)} from cache, {len(computed)} computed"
    )

    embeddings: Dict[str, List[float]] = {}
    for chunk in chunks:
        if chunk.id in embeddings:
            continue
        embeddings[chunk.id] = cached[chunk.id] if chunk.id in cached else computed[chunk.id]
    return embeddings


def embedding_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Dot product of two pre-normalised vectors (their cosine similarity).

    Raises:
        ValidationError: If dimensions differ
    """
    if len(a) != len(b):
        raise ValidationError(f"Embedding dimensions must match: {len(a)} != {len(b)}")
    return float(np.dot(np.asarray(a, dtype=float), np.asarray(b, dtype=float)))


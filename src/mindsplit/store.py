"""
Key-value persistence for MindSplit.

Defines the store capability the engine depends on, an in-memory backend
for local use and tests, and the helpers that lay out sessions, chunks and
cached embeddings under string keys:

    session:<session id>
    chunk:<session id>:<chunk id>
    embed:<chunk id>

Every multi-key write goes through batch(), which is all-or-nothing.
"""

import copy
import logging
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

import numpy as np

from .exceptions import StorageError, ValidationError
from .models import Session

logger = logging.getLogger(__name__)

BATCH_OPS = ('set', 'delete')


@dataclass(frozen=True)
class BatchOp:
    """One write inside an atomic batch."""
    op: str
    key: str
    value: Any = None


@dataclass
class SearchResult:
    """Nearest-neighbour hit returned by search()."""
    key: str
    score: float
    value: Any


@runtime_checkable
class KeyValueStore(Protocol):
    """Operations a storage backend must provide."""

    def get(self, key: str) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...

    def has(self, key: str) -> bool: ...

    def batch(self, operations: Iterable[Union[BatchOp, Mapping[str, Any]]]) -> None: ...

    def search(self, query_vector: Sequence[float], top_k: int) -> List[SearchResult]: ...


def normalize_ops(operations: Iterable[Union[BatchOp, Mapping[str, Any]]]) -> List[BatchOp]:
    """
    Coerce batch operations to BatchOp and validate them.

    Raises:
        StorageError: If any operation is malformed (nothing has been written yet)
    """
    normalized = []
    for index, operation in enumerate(operations):
        if isinstance(operation, Mapping):
            operation = BatchOp(
                op=operation.get('op'),
                key=operation.get('key'),
                value=operation.get('value')
            )
        if not isinstance(operation, BatchOp):
            raise StorageError(f"Batch operation {index} has unsupported type {type(operation).__name__}")
        if operation.op not in BATCH_OPS:
            raise StorageError(f"Batch operation {index} has unknown op {operation.op!r}")
        if not isinstance(operation.key, str) or not operation.key:
            raise StorageError(f"Batch operation {index} has invalid key {operation.key!r}")
        normalized.append(operation)
    return normalized


def is_vector(value: Any) -> bool:
    """True for a non-empty list/tuple of real numbers."""
    if not isinstance(value, (list, tuple)) or not value:
        return False
    return all(isinstance(x, Real) and not isinstance(x, bool) for x in value)


def _cosine(a: np.ndarray, b: np.ndarray) -> float:
    magnitude = float(np.linalg.norm(a) * np.linalg.norm(b))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(a, b) / magnitude)


class InMemoryStore:
    """
    Dict-backed store.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store.
    """

    def __init__(self, initial: Optional[Mapping[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def has(self, key: str) -> bool:
        return key in self._data

    def keys(self, prefix: str = '') -> List[str]:
        return [key for key in self._data if key.startswith(prefix)]

    def __len__(self) -> int:
        return len(self._data)

    def batch(self, operations: Iterable[Union[BatchOp, Mapping[str, Any]]]) -> None:
        """
        Apply all operations or none.

        Operations are applied to a staged copy which replaces the live data
        only when every operation succeeded.

        Raises:
            StorageError: If any operation fails; the store is left unchanged
        """
        ops = normalize_ops(operations)
        staged = dict(self._data)

        try:
            for operation in ops:
                if operation.op == 'set':
                    staged[operation.key] = copy.deepcopy(operation.value)
                else:
                    staged.pop(operation.key, None)
        except Exception as e:
            logger.error(f"Batch of {len(ops)} operations failed, rolled back: {e}")
            raise StorageError(f"Batch write failed: {e}") from e

        self._data = staged
        logger.debug(f"Committed batch of {len(ops)} operations")

    def search(self, query_vector: Sequence[float], top_k: int) -> List[SearchResult]:
        """
        Rank stored vectors by cosine similarity to query_vector.

        Vectors of a different dimension are skipped.
        """
        if top_k <= 0:
            return []

        query = np.asarray(query_vector, dtype=float)
        results = []
        for key, value in self._data.items():
            if not is_vector(value):
                continue
            if len(value) != len(query):
                logger.debug(f"Skipping {key}: dimension {len(value)} != {len(query)}")
                continue
            score = _cosine(query, np.asarray(value, dtype=float))
            results.append(SearchResult(key=key, score=score, value=copy.deepcopy(value)))

        results.sort(key=lambda r: r.score, reverse=True)
        return results[:top_k]


# Key layout

def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def chunk_key(session_id: str, chunk_id: str) -> str:
    return f"chunk:{session_id}:{chunk_id}"


def embedding_key(chunk_id: str) -> str:
    return f"embed:{chunk_id}"


# Session and embedding persistence

def store_session(store: KeyValueStore, session: Session) -> None:
    """
    Write the session document and one document per chunk in a single batch.

    Chunk documents of a previously stored version that are no longer in
    the session are deleted in the same batch.
    """
    current_ids = set(session.chunk_ids)
    previous = store.get(session_key(session.id))
    stale_ids = []
    if previous is not None:
        stale_ids = [
            c['id'] for c in previous.get('chunks', []) if c['id'] not in current_ids
        ]

    ops = [BatchOp('set', session_key(session.id), session.to_dict())]
    ops.extend(
        BatchOp('set', chunk_key(session.id, chunk.id), chunk.to_dict())
        for chunk in session.chunks
    )
    ops.extend(BatchOp('delete', chunk_key(session.id, chunk_id)) for chunk_id in stale_ids)
    store.batch(ops)
    if stale_ids:
        logger.info(f"Removed {len(stale_ids)} stale chunk documents from session {session.id}")
    logger.info(f"Stored session {session.id} with {len(session.chunks)} chunks")


def get_session(store: KeyValueStore, session_id: str) -> Optional[Session]:
    """
    Load a session, or None if the id is unknown.

    Embeddings are read back from the embedding cache; chunks without a
    cached vector are left out of session.embeddings.
    """
    data = store.get(session_key(session_id))
    if data is None:
        return None
    session = Session.from_dict(data)

    for chunk in session.chunks:
        vector = get_cached_embedding(store, chunk.id)
        if vector is not None:
            session.embeddings[chunk.id] = vector
    return session


def delete_session(store: KeyValueStore, session_id: str) -> bool:
    """
    Remove a session and its chunk documents atomically.

    Cached embeddings are shared across sessions and are kept.

    Returns:
        False if the session did not exist
    """
    session = get_session(store, session_id)
    if session is None:
        return False

    ops = [BatchOp('delete', session_key(session_id))]
    ops.extend(BatchOp('delete', chunk_key(session_id, chunk.id)) for chunk in session.chunks)
    store.batch(ops)
    logger.info(f"Deleted session {session_id}")
    return True


def store_embeddings(store: KeyValueStore, embeddings: Mapping[str, Sequence[float]]) -> None:
    """Cache vectors keyed by chunk id in one atomic batch."""
    if not embeddings:
        return
    ops = [
        BatchOp('set', embedding_key(chunk_id), [float(x) for x in vector])
        for chunk_id, vector in embeddings.items()
    ]
    store.batch(ops)
    logger.debug(f"Cached {len(ops)} embeddings")


def get_cached_embedding(store: KeyValueStore, chunk_id: str) -> Optional[List[float]]:
    """Cached vector for a chunk id, or None."""
    value = store.get(embedding_key(chunk_id))
    if value is None:
        return None
    if not is_vector(value):
        raise ValidationError(f"Cached value for {chunk_id} is not a vector")
    return [float(x) for x in value]

"""
MindSplit orchestrator.

Turns unstructured text into N workstreams:
1. Parse text into content-addressed chunks
2. Embed chunks (cache-checked)
3. Build the similarity graph
4. Partition with the N-way min-cut
5. Format workstreams and their bleeding edges

Each split is stored as a session so more text can be added later and the
whole set re-split without re-embedding anything seen before.
"""

import logging
import re
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .chunker import parse_to_chunks
from .config import SplitConfig, resolve_config
from .embeddings import EmbeddingProvider, HashingEmbeddingProvider, get_chunk_embeddings
from .exceptions import NotFoundError, ValidationError
from .graph import build_similarity_graph
from .mincut import find_bleeding_edges, min_cut_n_way, partition_index
from .models import (
    BleedingConnection,
    BleedingEdge,
    BleedingReport,
    Chunk,
    Graph,
    MinCutResult,
    Session,
    SplitResult,
    Workstream,
)
from .seeded_random import SeededRandom, deterministic_id
from .store import InMemoryStore, KeyValueStore
from . import store as session_store

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset([
    'the', 'a', 'an', 'is', 'are', 'was', 'were', 'be', 'been',
    'being', 'have', 'has', 'had', 'do', 'does', 'did', 'will',
    'would', 'could', 'should', 'may', 'might', 'must', 'shall',
    'can', 'need', 'to', 'of', 'in', 'for', 'on', 'with', 'at',
    'by', 'from', 'as', 'into', 'through', 'during', 'before',
    'after', 'above', 'below', 'between', 'under', 'again',
    'further', 'then', 'once', 'and', 'but', 'or', 'nor', 'so',
    'yet', 'both', 'each', 'few', 'more', 'most', 'other', 'some',
    'such', 'no', 'not', 'only', 'same', 'than', 'too', 'very',
    'just', 'also', 'now', 'we', 'i', 'you', 'they', 'it', 'this',
    'that', 'these', 'those'
])

_NON_ALPHA = re.compile(r'[^a-z\s]')


def workstream_id(index: int) -> str:
    return f"workstream-{index}"


def generate_workstream_name(chunks: Sequence[Chunk]) -> str:
    """
    Name a workstream after its two most frequent meaningful words.

    Words shorter than four letters and stop words are ignored; ties keep
    first-seen order.
    """
    counts: Counter = Counter()
    for chunk in chunks:
        tokens = _NON_ALPHA.sub('', chunk.text.lower()).split()
        counts.update(t for t in tokens if len(t) > 3 and t not in STOP_WORDS)

    top_words = [word for word, _ in counts.most_common(2)]
    if not top_words:
        return 'Workstream'
    return ' '.join(word.capitalize() for word in top_words)


def _dedupe(chunks: Sequence[Chunk]) -> List[Chunk]:
    """Drop repeated chunk ids, keeping the first occurrence."""
    seen = set()
    unique = []
    for chunk in chunks:
        if chunk.id not in seen:
            seen.add(chunk.id)
            unique.append(chunk)
    return unique


def _append_after(existing: Sequence[Chunk], parsed: Sequence[Chunk]) -> List[Chunk]:
    """
    Chunks of parsed not already in existing, renumbered to follow them.

    source_index continues after the highest index in existing.
    """
    existing_ids = {chunk.id for chunk in existing}
    next_index = max((c.source_index for c in existing), default=-1) + 1

    new_chunks = []
    for chunk in parsed:
        if chunk.id in existing_ids:
            continue
        new_chunks.append(Chunk(id=chunk.id, text=chunk.text, source_index=next_index))
        next_index += 1
    return new_chunks


class MindSplit:
    """
    Splits text into semantically separated workstreams.

    Args:
        store: Key-value store for sessions and the embedding cache
            (default: InMemoryStore)
        model: Embedding provider (default: HashingEmbeddingProvider)
        config: SplitConfig or mapping of overrides (default: SplitConfig())
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        model: Optional[EmbeddingProvider] = None,
        config: Union[SplitConfig, Mapping[str, Any], None] = None
    ):
        self.store = store if store is not None else InMemoryStore()
        self.model = model if model is not None else HashingEmbeddingProvider()
        self.config = resolve_config(config)

        logger.info(
            f"Initialized MindSplit: threshold={self.config.similarity_threshold}, "
            f"seed={self.config.seed}, chunk_method={self.config.chunk_method}, "
            f"algorithm={self.config.algorithm}"
        )

    def split(self, text: str, num_streams: int) -> SplitResult:
        """
        Split text into up to num_streams workstreams.

        Stores the session keyed by the text's content id. If that session
        already exists (it may have grown through add_and_resplit) the parsed
        chunks are merged into it, so its chunk set never shrinks and its
        created_at is kept.

        Args:
            text: Unstructured input
            num_streams: Requested number of workstreams (>= 1)

        Returns:
            SplitResult with workstreams, graph, cut result and stats
        """
        _check_num_streams(num_streams)

        session_id = deterministic_id(text, 'session')
        chunks = _dedupe(parse_to_chunks(text, self.config.chunk_method))

        existing = session_store.get_session(self.store, session_id)
        created_at = None
        if existing is not None:
            chunks = existing.chunks + _append_after(existing.chunks, chunks)
            created_at = existing.created_at
            logger.info(f"Session {session_id} exists, merged into {len(chunks)} chunks")

        logger.info(f"Splitting {len(chunks)} chunks into {num_streams} workstreams")

        embeddings, graph, cut_result = self._partition(chunks, num_streams)
        workstreams = self._format_workstreams(chunks, cut_result)

        session = Session(
            id=session_id,
            chunks=chunks,
            embeddings=embeddings,
            last_result=cut_result
        )
        if created_at is not None:
            session.created_at = created_at
        session_store.store_session(self.store, session)

        return SplitResult(
            session_id=session.id,
            workstreams=workstreams,
            graph=graph,
            cut_result=cut_result,
            stats=_stats(chunks, graph, cut_result)
        )

    def add_and_resplit(self, session_id: str, new_text: str, num_streams: int) -> SplitResult:
        """
        Add text to an existing session and re-split everything.

        Chunks already in the session are skipped, so re-adding the same
        text is a no-op for the chunk set. Embeddings of existing chunks
        come from the cache.

        Raises:
            NotFoundError: If the session does not exist
        """
        _check_num_streams(num_streams)

        existing = self._load_session(session_id)
        parsed = _dedupe(parse_to_chunks(new_text, self.config.chunk_method))
        new_chunks = _append_after(existing.chunks, parsed)

        all_chunks = existing.chunks + new_chunks
        logger.info(
            f"Session {session_id}: {len(existing.chunks)} existing chunks, "
            f"{len(new_chunks)} new, {len(parsed) - len(new_chunks)} duplicates skipped"
        )

        embeddings, graph, cut_result = self._partition(all_chunks, num_streams)
        workstreams = self._format_workstreams(all_chunks, cut_result)

        updated = Session(
            id=existing.id,
            chunks=all_chunks,
            embeddings=embeddings,
            last_result=cut_result,
            created_at=existing.created_at
        )
        session_store.store_session(self.store, updated)

        stats = _stats(all_chunks, graph, cut_result)
        stats['new_chunks'] = len(new_chunks)
        stats['cached_embeddings'] = len(existing.chunks)

        return SplitResult(
            session_id=session_id,
            workstreams=workstreams,
            graph=graph,
            cut_result=cut_result,
            stats=stats
        )

    def get_bleeding_report(self, session_id: str) -> BleedingReport:
        """
        Report every cross-workstream connection of the session's last split.

        Raises:
            NotFoundError: If the session is unknown or has no result
        """
        session = self._load_session(session_id)
        result = session.last_result
        if result is None:
            raise NotFoundError(f"Session has no split result: {session_id}")

        chunk_map = {chunk.id: chunk for chunk in session.chunks}
        bleeding = find_bleeding_edges(
            Graph(nodes=session.chunk_ids, edges=result.cut_edges),
            result.partitions
        )

        connections = [
            BleedingConnection(
                workstream1=p1,
                workstream2=p2,
                edges=[
                    {
                        'edge': edge,
                        'source_chunk': chunk_map[edge.source],
                        'target_chunk': chunk_map[edge.target],
                    }
                    for edge in edges
                ]
            )
            for (p1, p2), edges in sorted(bleeding.items())
        ]

        return BleedingReport(
            session_id=session_id,
            total_bleeding_edges=len(result.cut_edges),
            total_cut_weight=result.cut_weight,
            connections=connections
        )

    def get_session(self, session_id: str) -> Session:
        """Load a stored session. Raises NotFoundError if unknown."""
        return self._load_session(session_id)

    def delete_session(self, session_id: str) -> None:
        """
        Delete a session and its chunks; cached embeddings are kept.

        Raises:
            NotFoundError: If the session is unknown
        """
        if not session_store.delete_session(self.store, session_id):
            raise NotFoundError(f"Session not found: {session_id}")

    def _load_session(self, session_id: str) -> Session:
        session = session_store.get_session(self.store, session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    def _partition(
        self,
        chunks: Sequence[Chunk],
        num_streams: int
    ) -> Tuple[Dict[str, List[float]], Graph, MinCutResult]:
        embeddings = get_chunk_embeddings(chunks, self.store, self.model)
        graph = build_similarity_graph(embeddings, self.config.similarity_threshold)

        if not graph.nodes:
            return embeddings, graph, MinCutResult(partitions=[], cut_edges=[], cut_weight=0.0)

        cut_result = min_cut_n_way(
            graph,
            num_streams,
            rng=SeededRandom(self.config.seed),
            algorithm=self.config.algorithm,
            karger_trials=self.config.karger_trials
        )

        logger.info(
            f"Partitioned into {len(cut_result.partitions)} groups: "
            f"{len(cut_result.cut_edges)} cut edges, cut weight {cut_result.cut_weight:.4f}"
        )
        return embeddings, graph, cut_result

    def _format_workstreams(
        self,
        chunks: Sequence[Chunk],
        cut_result: MinCutResult
    ) -> List[Workstream]:
        """Turn partitions into workstreams with their bleeding edges."""
        chunk_map = {chunk.id: chunk for chunk in chunks}
        index = partition_index(cut_result.partitions)

        workstreams = []
        for i, partition in enumerate(cut_result.partitions):
            stream_chunks = sorted(
                (chunk_map[node] for node in partition if node in chunk_map),
                key=lambda c: c.source_index
            )

            bleeding_edges = []
            for edge in cut_result.cut_edges:
                p_source = index.get(edge.source)
                p_target = index.get(edge.target)
                if p_source != i and p_target != i:
                    continue
                other = p_target if p_source == i else p_source
                bleeding_edges.append(BleedingEdge(
                    edge=edge,
                    connected_to=workstream_id(other),
                    source_chunk=chunk_map[edge.source],
                    target_chunk=chunk_map[edge.target]
                ))

            workstreams.append(Workstream(
                id=workstream_id(i),
                name=generate_workstream_name(stream_chunks),
                chunks=stream_chunks,
                bleeding_edges=bleeding_edges
            ))

        return workstreams


def _check_num_streams(num_streams: int) -> None:
    if isinstance(num_streams, bool) or not isinstance(num_streams, int) or num_streams < 1:
        raise ValidationError(f"num_streams must be an integer >= 1, got {num_streams!r}")


def _stats(chunks: Sequence[Chunk], graph: Graph, cut_result: MinCutResult) -> Dict[str, Any]:
    return {
        'total_chunks': len(chunks),
        'total_edges': len(graph.edges),
        'cut_edges': len(cut_result.cut_edges),
        'cut_weight': cut_result.cut_weight,
    }

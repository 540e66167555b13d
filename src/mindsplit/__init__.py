"""
MindSplit: semantic partitioning of unstructured text.

Splits a block of text into a requested number of coherent, minimally
overlapping workstreams using chunk embeddings, a weighted similarity graph
and minimum-cut algorithms (Stoer-Wagner, Karger).
"""

from .chunker import chunks_to_text, get_chunk_by_id, parse_to_chunks
from .config import SplitConfig
from .embeddings import EmbeddingProvider, HashingEmbeddingProvider, get_chunk_embeddings
from .exceptions import MindSplitError, NotFoundError, StorageError, ValidationError
from .graph import build_similarity_graph, contract_nodes, cosine_similarity
from .mincut import find_bleeding_edges, karger_min_cut, min_cut_n_way, stoer_wagner_min_cut
from .models import (
    BleedingEdge,
    BleedingReport,
    Chunk,
    Edge,
    Graph,
    MinCutResult,
    Session,
    SplitResult,
    Workstream,
)
from .seeded_random import SeededRandom, deterministic_id
from .splitter import MindSplit
from .store import BatchOp, InMemoryStore, KeyValueStore, SearchResult

__all__ = [
    'MindSplit',
    'SplitConfig',
    'parse_to_chunks',
    'chunks_to_text',
    'get_chunk_by_id',
    'EmbeddingProvider',
    'HashingEmbeddingProvider',
    'get_chunk_embeddings',
    'build_similarity_graph',
    'contract_nodes',
    'cosine_similarity',
    'stoer_wagner_min_cut',
    'karger_min_cut',
    'min_cut_n_way',
    'find_bleeding_edges',
    'SeededRandom',
    'deterministic_id',
    'KeyValueStore',
    'InMemoryStore',
    'BatchOp',
    'SearchResult',
    'Chunk',
    'Edge',
    'Graph',
    'MinCutResult',
    'Workstream',
    'BleedingEdge',
    'BleedingReport',
    'Session',
    'SplitResult',
    'MindSplitError',
    'ValidationError',
    'NotFoundError',
    'StorageError',
]

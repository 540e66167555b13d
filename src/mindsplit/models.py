"""
Value types shared across the MindSplit pipeline.

Chunks and edges are immutable; graphs are treated as values and every
algorithm that changes one returns a new Graph. Each type round-trips
through plain dicts so it can be persisted by any store backend.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Chunk:
    """A content-addressed unit of parsed text."""
    id: str
    text: str
    source_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'text': self.text, 'source_index': self.source_index}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Chunk':
        return cls(id=data['id'], text=data['text'], source_index=int(data['source_index']))


@dataclass(frozen=True)
class Edge:
    """Undirected weighted edge; weight is a cosine similarity."""
    source: str
    target: str
    weight: float

    def connects(self, a: str, b: str) -> bool:
        """True if this edge joins a and b, in either direction."""
        return (self.source == a and self.target == b) or (self.source == b and self.target == a)

    def touches(self, node: str) -> bool:
        return self.source == node or self.target == node

    def other(self, node: str) -> str:
        """Endpoint opposite to node."""
        return self.target if self.source == node else self.source

    def to_dict(self) -> Dict[str, Any]:
        return {'source': self.source, 'target': self.target, 'weight': self.weight}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Edge':
        return cls(source=data['source'], target=data['target'], weight=float(data['weight']))


@dataclass
class Graph:
    """Ordered node ids plus undirected edges."""
    nodes: List[str] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'nodes': list(self.nodes),
            'edges': [edge.to_dict() for edge in self.edges],
        }


@dataclass
class MinCutResult:
    """
    Partition of a graph's nodes.

    Every node appears in exactly one partition and cut_weight is the summed
    weight of cut_edges, the edges whose endpoints lie in different partitions.
    """
    partitions: List[List[str]]
    cut_edges: List[Edge] = field(default_factory=list)
    cut_weight: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'partitions': [list(p) for p in self.partitions],
            'cut_edges': [edge.to_dict() for edge in self.cut_edges],
            'cut_weight': self.cut_weight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MinCutResult':
        return cls(
            partitions=[list(p) for p in data.get('partitions', [])],
            cut_edges=[Edge.from_dict(e) for e in data.get('cut_edges', [])],
            cut_weight=float(data.get('cut_weight', 0.0)),
        )


@dataclass
class BleedingEdge:
    """A cut edge seen from one workstream's side."""
    edge: Edge
    connected_to: str
    source_chunk: Chunk
    target_chunk: Chunk

    def to_dict(self) -> Dict[str, Any]:
        return {
            'edge': self.edge.to_dict(),
            'connected_to': self.connected_to,
            'source_chunk': self.source_chunk.to_dict(),
            'target_chunk': self.target_chunk.to_dict(),
        }


@dataclass
class Workstream:
    """Externally visible output group."""
    id: str
    name: str
    chunks: List[Chunk] = field(default_factory=list)
    bleeding_edges: List[BleedingEdge] = field(default_factory=list)

    @property
    def chunk_ids(self) -> List[str]:
        return [chunk.id for chunk in self.chunks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'chunks': [chunk.to_dict() for chunk in self.chunks],
            'bleeding_edges': [be.to_dict() for be in self.bleeding_edges],
        }


@dataclass
class Session:
    """
    State kept between split and add_and_resplit calls.

    The chunk list only grows; embeddings maps chunk id -> vector.
    Embeddings live in the shared embedding cache, so to_dict() leaves
    them out and the store fills them back in on load.
    """
    id: str
    chunks: List[Chunk] = field(default_factory=list)
    embeddings: Dict[str, List[float]] = field(default_factory=dict)
    last_result: Optional[MinCutResult] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def chunk_ids(self) -> List[str]:
        return [chunk.id for chunk in self.chunks]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'chunks': [chunk.to_dict() for chunk in self.chunks],
            'last_result': self.last_result.to_dict() if self.last_result else None,
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        last_result = data.get('last_result')
        created_at = data.get('created_at')
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        elif created_at is None:
            created_at = datetime.now(timezone.utc)

        return cls(
            id=data['id'],
            chunks=[Chunk.from_dict(c) for c in data.get('chunks', [])],
            last_result=MinCutResult.from_dict(last_result) if last_result else None,
            created_at=created_at,
        )


@dataclass
class SplitResult:
    """Return value of split and add_and_resplit."""
    session_id: str
    workstreams: List[Workstream]
    graph: Graph
    cut_result: MinCutResult
    stats: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'workstreams': [ws.to_dict() for ws in self.workstreams],
            'stats': dict(self.stats),
        }


@dataclass
class BleedingConnection:
    """Cut edges between one pair of workstreams (by partition index)."""
    workstream1: int
    workstream2: int
    edges: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'workstream1': self.workstream1,
            'workstream2': self.workstream2,
            'edges': [
                {
                    'edge': entry['edge'].to_dict(),
                    'source_chunk': entry['source_chunk'].to_dict(),
                    'target_chunk': entry['target_chunk'].to_dict(),
                }
                for entry in self.edges
            ],
        }


@dataclass
class BleedingReport:
    """Cross-partition connections of a session's last split."""
    session_id: str
    total_bleeding_edges: int
    total_cut_weight: float
    connections: List[BleedingConnection] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'total_bleeding_edges': self.total_bleeding_edges,
            'total_cut_weight': self.total_cut_weight,
            'connections': [c.to_dict() for c in self.connections],
        }

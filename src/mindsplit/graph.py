"""
Similarity graph construction and graph primitives.

Nodes are chunk ids (strings), never object references. Every function here
is pure: operations that change a graph build and return a new Graph.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine

from .config import DEFAULT_SIMILARITY_THRESHOLD
from .exceptions import ValidationError
from .models import Edge, Graph

logger = logging.getLogger(__name__)


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when either vector has zero magnitude.

    Raises:
        ValidationError: If dimensions differ
    """
    if len(a) != len(b):
        raise ValidationError(f"Vectors must have same dimension: {len(a)} != {len(b)}")

    va = np.asarray(a, dtype=float)
    vb = np.asarray(b, dtype=float)
    magnitude = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if magnitude == 0.0:
        return 0.0
    return float(np.dot(va, vb) / magnitude)


def build_similarity_graph(
    embeddings: Mapping[str, Sequence[float]],
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD
) -> Graph:
    """
    Build a weighted similarity graph from embeddings.

    Compares every unordered pair of ids and adds an edge when their cosine
    similarity is at least threshold.

    Args:
        embeddings: Mapping chunk id -> vector; its order becomes node order
        threshold: Minimum similarity for an edge

    Returns:
        Graph without self-loops and with at most one edge per pair

    Raises:
        ValidationError: If vectors have different dimensions
    """
    nodes = list(embeddings.keys())
    if len(nodes) < 2:
        return Graph(nodes=nodes, edges=[])

    dimensions = {len(embeddings[node]) for node in nodes}
    if len(dimensions) > 1:
        raise ValidationError(f"Embeddings have mixed dimensions: {sorted(dimensions)}")

    matrix = np.array([embeddings[node] for node in nodes], dtype=float)

    # Zero rows normalise to zero, so their similarity is 0
    similarity_matrix = pairwise_cosine(matrix)

    rows, cols = np.triu_indices(len(nodes), k=1)
    similarities = similarity_matrix[rows, cols]
    keep = similarities >= threshold

    edges = [
        Edge(source=nodes[i], target=nodes[j], weight=float(min(sim, 1.0)))
        for i, j, sim in zip(rows[keep], cols[keep], similarities[keep])
    ]

    logger.info(
        f"Built similarity graph: {len(nodes)} nodes, {len(edges)} edges "
        f"(threshold={threshold})"
    )
    return Graph(nodes=nodes, edges=edges)


def get_node_edges(graph: Graph, node_id: str) -> List[Edge]:
    """Edges touching node_id."""
    return [edge for edge in graph.edges if edge.touches(node_id)]


def get_neighbors(graph: Graph, node_id: str) -> List[str]:
    """Distinct neighbours of node_id, in edge order."""
    neighbors: Dict[str, None] = {}
    for edge in get_node_edges(graph, node_id):
        neighbors[edge.other(node_id)] = None
    return list(neighbors)


def contract_nodes(graph: Graph, node_a: str, node_b: str) -> Graph:
    """
    Merge node_a and node_b into the composite node 'node_a+node_b'.

    Edges between the two are dropped. Other edges touching either node are
    redirected to the composite. Parallel edges produced by the redirect are
    kept as separate edges with their original weights; any summation is up
    to the caller.

    Returns:
        New Graph; the input is not modified
    """
    merged_id = f"{node_a}+{node_b}"
    nodes = [n for n in graph.nodes if n != node_a and n != node_b]
    nodes.append(merged_id)

    edges = []
    for edge in graph.edges:
        if edge.connects(node_a, node_b):
            continue

        source = merged_id if edge.source in (node_a, node_b) else edge.source
        target = merged_id if edge.target in (node_a, node_b) else edge.target
        if source == target:
            continue

        edges.append(Edge(source=source, target=target, weight=edge.weight))

    return Graph(nodes=nodes, edges=edges)


def induced_subgraph(graph: Graph, node_ids: Iterable[str]) -> Graph:
    """Subgraph over node_ids (in the given order) with the edges among them."""
    nodes = list(node_ids)
    members = set(nodes)
    edges = [e for e in graph.edges if e.source in members and e.target in members]
    return Graph(nodes=nodes, edges=edges)


def get_connected_components(graph: Graph) -> List[List[str]]:
    """Connected components via iterative DFS, in node order of discovery."""
    adjacency: Dict[str, List[str]] = {node: [] for node in graph.nodes}
    for edge in graph.edges:
        adjacency.setdefault(edge.source, []).append(edge.target)
        adjacency.setdefault(edge.target, []).append(edge.source)

    visited = set()
    components = []

    for node in graph.nodes:
        if node in visited:
            continue

        component = []
        stack = [node]
        while stack:
            current = stack.pop()
            if current in visited:
                continue
            visited.add(current)
            component.append(current)
            stack.extend(n for n in adjacency[current] if n not in visited)

        components.append(component)

    return components


def total_weight(edges: Iterable[Edge]) -> float:
    """Sum of edge weights."""
    return float(sum(edge.weight for edge in edges))

"""
Minimum-cut partitioning of similarity graphs.

Provides:
- Stoer-Wagner: exact, deterministic global minimum 2-way cut
- Karger: randomized edge contraction driven by an explicit SeededRandom
- N-way partitioning by recursive bisection of the larger side
- Bleeding-edge extraction for a finished partition

All functions are pure; contraction always produces new Graph values.
"""

import heapq
import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Set, Tuple, Union

from .exceptions import ValidationError
from .graph import contract_nodes, induced_subgraph, total_weight
from .models import Edge, Graph, MinCutResult
from .seeded_random import SeededRandom

logger = logging.getLogger(__name__)

STOER_WAGNER = 'stoer_wagner'
KARGER = 'karger'


def _single_partition(graph: Graph) -> MinCutResult:
    return MinCutResult(partitions=[list(graph.nodes)], cut_edges=[], cut_weight=0.0)


def _crossing_edges(edges: Sequence[Edge], side: Set[str]) -> List[Edge]:
    return [e for e in edges if (e.source in side) != (e.target in side)]


def _two_way_result(graph: Graph, side: Set[str]) -> MinCutResult:
    """Split graph.nodes into (side, rest), both in original node order."""
    partition_a = [n for n in graph.nodes if n in side]
    partition_b = [n for n in graph.nodes if n not in side]
    cut_edges = _crossing_edges(graph.edges, side)
    return MinCutResult(
        partitions=[partition_a, partition_b],
        cut_edges=cut_edges,
        cut_weight=total_weight(cut_edges)
    )


def _minimum_cut_phase(graph: Graph) -> Tuple[str, str, float]:
    """
    One maximum-adjacency ordering pass.

    Repeatedly adds the node most strongly connected to the added set. Ties
    go to the node listed first in graph.nodes. Parallel edges each add
    their own weight.

    Returns:
        (s, t, cut_of_the_phase): the last two nodes added and the weight of
        the cut separating t from everything else
    """
    order = {node: index for index, node in enumerate(graph.nodes)}
    adjacency: Dict[str, List[Tuple[str, float]]] = defaultdict(list)
    for edge in graph.edges:
        adjacency[edge.source].append((edge.target, edge.weight))
        adjacency[edge.target].append((edge.source, edge.weight))

    weights = {node: 0.0 for node in graph.nodes}
    heap = [(-0.0, order[node], node) for node in graph.nodes]
    heapq.heapify(heap)
    added: Set[str] = set()

    s, t = '', ''
    cut_weight = 0.0

    while heap:
        neg_weight, _, node = heapq.heappop(heap)
        # Skip stale queue entries
        if node in added or -neg_weight != weights[node]:
            continue

        s, t = t, node
        cut_weight = weights[node]
        added.add(node)

        for neighbor, weight in adjacency[node]:
            if neighbor not in added:
                weights[neighbor] += weight
                heapq.heappush(heap, (-weights[neighbor], order[neighbor], neighbor))

    return s, t, cut_weight


def stoer_wagner_min_cut(graph: Graph) -> MinCutResult:
    """
    Exact global minimum 2-way cut (Stoer-Wagner).

    Runs |V|-1 minimum-cut phases, contracting the last two nodes of each
    phase. The lightest cut-of-the-phase, mapped back to original nodes,
    is the global minimum cut. Deterministic.

    Args:
        graph: Weighted undirected graph

    Returns:
        MinCutResult with two partitions (the isolated side first), or a
        single partition with zero weight for graphs with fewer than 2 nodes
    """
    if len(graph.nodes) < 2:
        return _single_partition(graph)

    members: Dict[str, List[str]] = {node: [node] for node in graph.nodes}
    working = Graph(nodes=list(graph.nodes), edges=list(graph.edges))

    best_side: Optional[List[str]] = None
    best_weight = float('inf')
    phase = 0

    while len(working.nodes) > 1:
        s, t, cut_weight = _minimum_cut_phase(working)
        phase += 1
        logger.debug(f"Phase {phase}: s={s}, t={t}, cut-of-the-phase={cut_weight:.4f}")

        if best_side is None or cut_weight < best_weight:
            best_side = list(members[t])
            best_weight = cut_weight

        merged_id = f"{s}+{t}"
        members[merged_id] = members.pop(s) + members.pop(t)
        working = contract_nodes(working, s, t)

    result = _two_way_result(graph, set(best_side))
    logger.debug(f"Stoer-Wagner cut weight {result.cut_weight:.4f} after {phase} phases")
    return result


def _karger_pass(graph: Graph, rng: SeededRandom) -> MinCutResult:
    members: Dict[str, List[str]] = {node: [node] for node in graph.nodes}
    working = Graph(nodes=list(graph.nodes), edges=list(graph.edges))

    while len(working.nodes) > 2 and working.edges:
        edge = rng.pick(working.edges)
        merged_id = f"{edge.source}+{edge.target}"
        members[merged_id] = members.pop(edge.source) + members.pop(edge.target)
        working = contract_nodes(working, edge.source, edge.target)

    # Out of edges with more than two super-nodes left: nothing connects
    # them, so the first super-node against the rest is a zero-weight cut
    return _two_way_result(graph, set(members[working.nodes[0]]))


def karger_min_cut(
    graph: Graph,
    rng: Union[SeededRandom, int],
    trials: int = 1
) -> MinCutResult:
    """
    Randomized 2-way cut by repeated edge contraction (Karger).

    Each pass contracts uniformly picked edges until two super-nodes remain.
    A single pass is a fast heuristic and is not guaranteed to find the
    minimum; with trials > 1 independent passes draw from the same generator
    and the lightest cut is kept.

    Args:
        graph: Weighted undirected graph
        rng: SeededRandom to draw from, or an integer seed
        trials: Number of contraction passes

    Returns:
        MinCutResult with two partitions (single partition for < 2 nodes)
    """
    if trials < 1:
        raise ValidationError(f"trials must be >= 1, got {trials}")
    if isinstance(rng, int):
        rng = SeededRandom(rng)

    if len(graph.nodes) < 2:
        return _single_partition(graph)

    best: Optional[MinCutResult] = None
    for trial in range(trials):
        candidate = _karger_pass(graph, rng)
        logger.debug(f"Karger trial {trial + 1}/{trials}: cut weight {candidate.cut_weight:.4f}")
        if best is None or candidate.cut_weight < best.cut_weight:
            best = candidate

    return best


def two_way_cut(
    graph: Graph,
    algorithm: str = STOER_WAGNER,
    rng: Optional[SeededRandom] = None,
    karger_trials: int = 1
) -> MinCutResult:
    """Dispatch a 2-way cut to the selected algorithm."""
    if algorithm == STOER_WAGNER:
        return stoer_wagner_min_cut(graph)
    if algorithm == KARGER:
        return karger_min_cut(graph, rng if rng is not None else SeededRandom(), karger_trials)
    raise ValidationError(f"Unsupported algorithm: {algorithm}. Choose 'stoer_wagner' or 'karger'")


def min_cut_n_way(
    graph: Graph,
    n: int,
    rng: Optional[SeededRandom] = None,
    algorithm: str = STOER_WAGNER,
    karger_trials: int = 1
) -> MinCutResult:
    """
    Split graph into up to n partitions by recursive bisection.

    Cuts the graph in two, then recursively splits the larger side into
    n-1 groups over its induced subgraph. Cut edges from every level are
    accumulated, so cut_weight covers all edges between final partitions.
    Fewer than n partitions come back when the graph runs out of nodes.

    Args:
        graph: Similarity graph
        n: Requested number of partitions
        rng: Generator for the randomized algorithm (one is created if omitted)
        algorithm: 'stoer_wagner' or 'karger'
        karger_trials: Passes per Karger cut

    Returns:
        MinCutResult
    """
    if n <= 1 or len(graph.nodes) <= 1:
        return _single_partition(graph)

    if algorithm == KARGER and rng is None:
        rng = SeededRandom()

    bisection = two_way_cut(graph, algorithm, rng, karger_trials)
    if n == 2:
        return bisection

    # Split the larger side further; stable sort keeps the cut side first on ties
    larger, smaller = sorted(bisection.partitions, key=len, reverse=True)

    sub_result = min_cut_n_way(
        induced_subgraph(graph, larger),
        n - 1,
        rng=rng,
        algorithm=algorithm,
        karger_trials=karger_trials
    )

    cut_edges = bisection.cut_edges + sub_result.cut_edges
    return MinCutResult(
        partitions=sub_result.partitions + [smaller],
        cut_edges=cut_edges,
        cut_weight=total_weight(cut_edges)
    )


def partition_index(partitions: Sequence[Sequence[str]]) -> Dict[str, int]:
    """Map each node id to the index of its partition."""
    index = {}
    for i, partition in enumerate(partitions):
        for node in partition:
            index[node] = i
    return index


def find_bleeding_edges(
    graph: Graph,
    partitions: Sequence[Sequence[str]]
) -> Dict[Tuple[int, int], List[Edge]]:
    """
    Group edges that cross partitions by the pair of partitions they join.

    Returns:
        Mapping (i, j) with i < j -> edges between partition i and j,
        in graph edge order
    """
    index = partition_index(partitions)
    bleeding: Dict[Tuple[int, int], List[Edge]] = {}

    for edge in graph.edges:
        p_source = index.get(edge.source)
        p_target = index.get(edge.target)
        if p_source is None or p_target is None or p_source == p_target:
            continue
        key = (min(p_source, p_target), max(p_source, p_target))
        bleeding.setdefault(key, []).append(edge)

    return bleeding


def cut_weight_of(graph: Graph, partitions: Sequence[Sequence[str]]) -> float:
    """Total weight of edges whose endpoints fall in different partitions."""
    index = partition_index(partitions)
    return total_weight(
        e for e in graph.edges
        if index.get(e.source) is not None
        and index.get(e.target) is not None
        and index[e.source] != index[e.target]
    )

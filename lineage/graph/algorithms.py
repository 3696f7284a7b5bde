"""Cycle detection and topological ordering for merge selections.

Both functions work on the subgraph induced by the given node ids, run in
O(V+E), and never raise: a cycle is an expected outcome reported as
``True`` / ``None``.

Determinism matters here because the topological order decides the order
in which project contents are concatenated by a merge. Zero-indegree ties
are therefore broken by the caller's iteration order of ``node_ids``
rather than by hashing.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, List, Optional, Sequence, Tuple, Union

import networkx as nx

from lineage.graph.schema import GraphEdge

logger = logging.getLogger("lineage.graph.algorithms")

EdgeLike = Union[GraphEdge, Tuple[str, str]]


def _endpoints(edge: EdgeLike) -> Tuple[str, str]:
    if isinstance(edge, GraphEdge):
        return edge.source, edge.target
    source, target = edge
    return source, target


def _unique(node_ids: Iterable[str]) -> List[str]:
    """Return ``node_ids`` without duplicates, keeping first occurrences."""
    return list(dict.fromkeys(node_ids))


def induced_edges(node_ids: Iterable[str], edges: Iterable[EdgeLike]) -> List[GraphEdge]:
    """Return edges whose endpoints both lie in ``node_ids``.

    Duplicate ``(source, target)`` pairs are collapsed; input order is kept.
    """
    members = set(node_ids)
    seen: set[Tuple[str, str]] = set()
    result: List[GraphEdge] = []
    for edge in edges:
        source, target = _endpoints(edge)
        if source not in members or target not in members:
            continue
        if (source, target) in seen:
            continue
        seen.add((source, target))
        result.append(edge if isinstance(edge, GraphEdge) else GraphEdge(source=source, target=target))
    return result


def build_digraph(node_ids: Sequence[str], edges: Iterable[EdgeLike]) -> nx.DiGraph:
    """Build the induced DiGraph, inserting nodes in caller order.

    networkx keeps insertion order for nodes and adjacency, which is what
    the ordering guarantees below rely on.
    """
    graph: nx.DiGraph = nx.DiGraph()
    graph.add_nodes_from(_unique(node_ids))
    for edge in edges:
        source, target = _endpoints(edge)
        if graph.has_node(source) and graph.has_node(target):
            graph.add_edge(source, target)
    return graph


def has_cycle(node_ids: Sequence[str], edges: Iterable[EdgeLike]) -> bool:
    """Return True if the induced subgraph contains a cycle.

    Depth-first search with an on-path (recursion stack) set; the search
    stops at the first back-edge. A self-loop counts as a cycle. The DFS is
    iterative so deep lineages do not hit the interpreter recursion limit.
    """
    graph = build_digraph(node_ids, edges)

    visited: set[str] = set()
    on_path: set[str] = set()

    for root in graph.nodes:
        if root in visited:
            continue
        visited.add(root)
        on_path.add(root)
        stack = [(root, iter(graph.successors(root)))]

        while stack:
            node, children = stack[-1]
            advanced = False
            for child in children:
                if child in on_path:
                    logger.debug("Back-edge %s -> %s closes a cycle", node, child)
                    return True
                if child not in visited:
                    visited.add(child)
                    on_path.add(child)
                    stack.append((child, iter(graph.successors(child))))
                    advanced = True
                    break
            if not advanced:
                on_path.discard(node)
                stack.pop()

    return False


def topological_sort(
    node_ids: Sequence[str], edges: Iterable[EdgeLike]
) -> Optional[List[str]]:
    """Order ``node_ids`` so every induced edge points forward.

    Kahn's algorithm with a FIFO queue seeded in ``node_ids`` order;
    successors are released in edge insertion order. Disconnected
    components are all included.

    Returns:
        Ordered node ids, or None when the induced subgraph has a cycle.
    """
    edge_list = list(edges)
    if has_cycle(node_ids, edge_list):
        return None

    graph = build_digraph(node_ids, edge_list)
    in_degree = {node: graph.in_degree(node) for node in graph.nodes}
    queue = deque(node for node in graph.nodes if in_degree[node] == 0)

    ordered: List[str] = []
    while queue:
        node = queue.popleft()
        ordered.append(node)
        for child in graph.successors(node):
            in_degree[child] -= 1
            if in_degree[child] == 0:
                queue.append(child)

    return ordered


def find_cycle_path(node_ids: Sequence[str], edges: Iterable[EdgeLike]) -> List[str]:
    """Return one cycle as a closed node path (``A -> B -> A``), or ``[]``.

    Only used for reporting; relies on networkx to extract the edges.
    """
    graph = build_digraph(node_ids, edges)
    try:
        raw_cycle = nx.find_cycle(graph)
    except nx.NetworkXNoCycle:
        return []

    path: List[str] = []
    for u, v in raw_cycle:
        if not path:
            path.append(u)
        path.append(v)
    return path


__all__ = [
    "EdgeLike",
    "build_digraph",
    "find_cycle_path",
    "has_cycle",
    "induced_edges",
    "topological_sort",
]

"""Graph store for the active canvas scope.

GraphStore is the single authoritative owner of the positioned nodes and
lineage edges currently on the canvas. It wraps a ``networkx.DiGraph``
whose node attribute ``node`` holds the :class:`GraphNode` model.

Every mutation notifies subscribed listeners; the runtime uses this to
schedule a debounced write of the graph document.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import networkx as nx

from lineage.errors import ValidationError
from lineage.graph.algorithms import induced_edges
from lineage.graph.schema import EntityType, GraphDocument, GraphEdge, GraphNode, Project
from lineage.layout.engine import LayoutEngine

logger = logging.getLogger("lineage.graph.store")

Listener = Callable[[], None]


@dataclass
class LoadReport:
    """Outcome of :meth:`GraphStore.load_and_prune`."""

    pruned_nodes: List[str] = field(default_factory=list)
    pruned_edges: List[GraphEdge] = field(default_factory=list)
    placed_nodes: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True if the loaded document differs from what was saved."""
        return bool(self.pruned_nodes or self.pruned_edges or self.placed_nodes)


class GraphStore:
    """In-memory ``{nodes, edges}`` of the active scope."""

    def __init__(self, layout: Optional[LayoutEngine] = None) -> None:
        self.layout = layout or LayoutEngine()
        self._graph: nx.DiGraph = nx.DiGraph()
        self._listeners: List[Listener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def graph(self) -> nx.DiGraph:
        """Underlying networkx graph (read-only use)."""
        return self._graph

    @property
    def nodes(self) -> List[GraphNode]:
        return [attrs["node"] for _, attrs in self._graph.nodes(data=True)]

    @property
    def edges(self) -> List[GraphEdge]:
        return [GraphEdge(source=u, target=v) for u, v in self._graph.edges()]

    @property
    def node_ids(self) -> List[str]:
        return list(self._graph.nodes)

    def node_count(self) -> int:
        return self._graph.number_of_nodes()

    def edge_count(self) -> int:
        return self._graph.number_of_edges()

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def has_edge(self, source: str, target: str) -> bool:
        return self._graph.has_edge(source, target)

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        if not self._graph.has_node(node_id):
            return None
        return self._graph.nodes[node_id]["node"]

    def edges_touching(self, node_id: str) -> List[GraphEdge]:
        if not self._graph.has_node(node_id):
            return []
        touching = list(self._graph.in_edges(node_id)) + list(self._graph.out_edges(node_id))
        return [GraphEdge(source=u, target=v) for u, v in dict.fromkeys(touching)]

    def induced_edges(self, node_ids: Iterable[str]) -> List[GraphEdge]:
        """Edges whose endpoints both lie in ``node_ids``."""
        return induced_edges(node_ids, self.edges)

    def to_document(self) -> GraphDocument:
        """Snapshot the store as a persistable document."""
        return GraphDocument(
            nodes=[node.model_copy() for node in self.nodes],
            edges=self.edges,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_node(self, node: GraphNode) -> GraphNode:
        """Add ``node``; an existing node with the same id is kept as is."""
        if self._graph.has_node(node.id):
            logger.debug("Node %s already exists, skipping", node.id)
            return self._graph.nodes[node.id]["node"]
        self._graph.add_node(node.id, node=node)
        logger.debug("Added node: %s (type=%s)", node.id, node.entity_type.value)
        self._notify()
        return node

    def place_node(
        self, node_id: str, entity_type: EntityType = EntityType.PROJECT
    ) -> GraphNode:
        """Add a node at the first free auto-placement position."""
        existing = self.get_node(node_id)
        if existing is not None:
            return existing
        point = self.layout.auto_place(self.nodes)
        return self.add_node(GraphNode(id=node_id, x=point.x, y=point.y, entity_type=entity_type))

    def move_node(self, node_id: str, x: float, y: float) -> None:
        node = self.get_node(node_id)
        if node is None:
            raise ValidationError(f"Unknown node: {node_id}")
        node.x = x
        node.y = y
        self._notify()

    def remove_node(self, node_id: str) -> List[GraphEdge]:
        """Remove a node and every edge touching it.

        Returns:
            The removed edges.
        """
        if not self._graph.has_node(node_id):
            return []
        removed = self.edges_touching(node_id)
        self._graph.remove_node(node_id)
        logger.debug("Removed node %s and %d edge(s)", node_id, len(removed))
        self._notify()
        return removed

    def add_edge(self, source: str, target: str) -> bool:
        """Add a lineage edge.

        Self-loops, duplicates, unknown endpoints and edges across entity
        types (scopes) are rejected.

        Returns:
            True if the edge was added.
        """
        if source == target:
            logger.debug("Rejected self-loop on %s", source)
            return False
        source_node = self.get_node(source)
        target_node = self.get_node(target)
        if source_node is None or target_node is None:
            logger.debug("Rejected edge %s -> %s: unknown endpoint", source, target)
            return False
        if source_node.entity_type != target_node.entity_type:
            logger.debug(
                "Rejected edge %s -> %s: crosses %s/%s scopes",
                source,
                target,
                source_node.entity_type.value,
                target_node.entity_type.value,
            )
            return False
        if self._graph.has_edge(source, target):
            logger.debug("Edge %s -> %s already exists, skipping", source, target)
            return False
        self._graph.add_edge(source, target)
        logger.debug("Added edge: %s -> %s", source, target)
        self._notify()
        return True

    def remove_edge(self, source: str, target: str) -> bool:
        if not self._graph.has_edge(source, target):
            return False
        self._graph.remove_edge(source, target)
        logger.debug("Removed edge: %s -> %s", source, target)
        self._notify()
        return True

    def rename_node(self, old_id: str, new_id: str) -> None:
        """Propagate an id change into the node and every edge touching it."""
        if old_id == new_id:
            return
        node = self.get_node(old_id)
        if node is None:
            raise ValidationError(f"Unknown node: {old_id}")
        if self._graph.has_node(new_id):
            raise ValidationError(f"Node id already in use: {new_id}")

        nx.relabel_nodes(self._graph, {old_id: new_id}, copy=False)
        self._graph.nodes[new_id]["node"] = node.model_copy(update={"id": new_id})
        logger.info("Renamed node %s -> %s", old_id, new_id)
        self._notify()

    def replace(
        self,
        nodes: Sequence[GraphNode],
        edges: Sequence[GraphEdge],
        notify: bool = True,
    ) -> None:
        """Swap in a whole new node/edge set (scope switches, relayout)."""
        graph: nx.DiGraph = nx.DiGraph()
        for node in nodes:
            if not graph.has_node(node.id):
                graph.add_node(node.id, node=node)
        for edge in edges:
            if edge.source == edge.target:
                continue
            if graph.has_node(edge.source) and graph.has_node(edge.target):
                graph.add_edge(edge.source, edge.target)
        self._graph = graph
        if notify:
            self._notify()

    def load_and_prune(
        self,
        document: GraphDocument,
        projects: Sequence[Project],
    ) -> LoadReport:
        """Install a saved document, dropping anything stale.

        Nodes and edges that reference projects which no longer exist are
        pruned (and logged). Projects missing from the saved layout are
        auto-placed. Listeners are notified only when the result differs
        from the saved document so that a clean load does not trigger a
        write.
        """
        report = LoadReport()
        existing = {project.id for project in projects}

        valid_nodes: List[GraphNode] = []
        seen: set[str] = set()
        for node in document.nodes:
            if node.id not in existing:
                report.pruned_nodes.append(node.id)
                continue
            if node.id in seen:
                continue
            seen.add(node.id)
            valid_nodes.append(node.model_copy(update={"entity_type": EntityType.PROJECT}))

        valid_edges: List[GraphEdge] = []
        seen_edges: set[tuple[str, str]] = set()
        for edge in document.edges:
            key = edge.as_tuple()
            if (
                edge.source not in existing
                or edge.target not in existing
                or edge.source == edge.target
                or key in seen_edges
            ):
                report.pruned_edges.append(edge)
                continue
            seen_edges.add(key)
            valid_edges.append(edge)

        for project in projects:
            if project.id in seen:
                continue
            point = self.layout.auto_place(valid_nodes)
            valid_nodes.append(GraphNode(id=project.id, x=point.x, y=point.y))
            seen.add(project.id)
            report.placed_nodes.append(project.id)

        if report.pruned_nodes or report.pruned_edges:
            logger.warning(
                "Pruned %d stale node(s) and %d stale edge(s) from graph document",
                len(report.pruned_nodes),
                len(report.pruned_edges),
            )
        if report.placed_nodes:
            logger.info("Auto-placed %d new project node(s)", len(report.placed_nodes))

        self.replace(valid_nodes, valid_edges, notify=report.changed)
        return report

    def summary(self) -> Dict[str, int]:
        return {"nodes": self.node_count(), "edges": self.edge_count()}


__all__ = ["GraphStore", "LoadReport"]

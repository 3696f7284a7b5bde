"""Node placement: auto-placement, grid relayout and collision avoidance.

All positions are world-space top-left corners of fixed-size node boxes
(``LayoutConfig.node_width`` x ``LayoutConfig.node_height``).
"""

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Collection, Iterable, List, Mapping, Optional, Sequence

from lineage.config.schema import LayoutConfig
from lineage.graph.schema import GraphNode, Project
from lineage.layout.geometry import Point, Rect, rects_overlap

logger = logging.getLogger("lineage.layout.engine")


class SortKey(str, Enum):
    """Ordering used by :meth:`LayoutEngine.relayout`."""

    NAME = "name"
    UPDATED_AT = "updatedAt"


class LayoutEngine:
    """Placement rules for nodes on the canvas."""

    def __init__(self, config: Optional[LayoutConfig] = None) -> None:
        self.config = config or LayoutConfig()

    def node_rect(self, x: float, y: float) -> Rect:
        return Rect(x, y, self.config.node_width, self.config.node_height)

    def rect_of(self, node: GraphNode) -> Rect:
        return self.node_rect(node.x, node.y)

    def _collides(self, candidate: Rect, nodes: Iterable[GraphNode]) -> bool:
        return any(rects_overlap(candidate, self.rect_of(node)) for node in nodes)

    def auto_place(
        self,
        existing_nodes: Sequence[GraphNode],
        spacing_x: Optional[float] = None,
        spacing_y: Optional[float] = None,
        width_bound: Optional[float] = None,
    ) -> Point:
        """Find the first free grid cell, scanning row by row from the origin.

        After ``max_attempts`` rejected candidates the current candidate is
        returned anyway (best effort on a crowded canvas).
        """
        cfg = self.config
        step_x = cfg.spacing_x if spacing_x is None else spacing_x
        step_y = cfg.spacing_y if spacing_y is None else spacing_y
        bound = cfg.width_bound if width_bound is None else width_bound

        x, y = cfg.origin_x, cfg.origin_y
        attempts = 0
        while self._collides(self.node_rect(x, y), existing_nodes):
            if attempts >= cfg.max_attempts:
                logger.debug(
                    "auto_place gave up after %d attempts; placing at (%s, %s)",
                    attempts,
                    x,
                    y,
                )
                break
            x += step_x
            if x > bound:
                x = cfg.origin_x
                y += step_y
            attempts += 1

        return Point(x, y)

    def grid_positions(
        self,
        count: int,
        columns: Optional[int] = None,
        origin: Optional[Point] = None,
    ) -> List[Point]:
        """Positions of ``count`` cells on a grid of ``columns`` columns.

        When ``columns`` is omitted the grid is near-square
        (``ceil(sqrt(count))`` columns).
        """
        if count <= 0:
            return []
        cols = columns or max(1, math.ceil(math.sqrt(count)))
        start = origin or Point(self.config.origin_x, self.config.origin_y)
        return [
            Point(
                start.x + (idx % cols) * self.config.spacing_x,
                start.y + (idx // cols) * self.config.spacing_y,
            )
            for idx in range(count)
        ]

    def relayout(
        self,
        nodes: Sequence[GraphNode],
        sort_key: SortKey | str,
        projects: Mapping[str, Project],
    ) -> List[GraphNode]:
        """Recompute every position on a near-square grid.

        ``name`` sorts case-insensitively ascending; ``updatedAt`` puts the
        most recently updated project first. Nodes without a project sort
        by id after the rest.
        """
        key = SortKey(sort_key)

        def name_of(node: GraphNode) -> tuple:
            project = projects.get(node.id)
            if project is None:
                return (1, node.id.lower(), node.id)
            return (0, project.name.lower(), node.id)

        def recency_of(node: GraphNode) -> tuple:
            project = projects.get(node.id)
            updated = project.updated_at if project is not None else float("-inf")
            return (-updated, node.id)

        ordered = sorted(nodes, key=name_of if key == SortKey.NAME else recency_of)
        positions = self.grid_positions(len(ordered))
        logger.debug("Relayout of %d nodes by %s", len(ordered), key.value)
        return [
            node.model_copy(update={"x": pos.x, "y": pos.y})
            for node, pos in zip(ordered, positions)
        ]

    def resolve_pinned_collision(
        self,
        candidate: Point,
        moving_id: str,
        nodes: Sequence[GraphNode],
        frozen_ids: Collection[str],
    ) -> Point:
        """Push ``candidate`` off frozen node boxes.

        Each step moves right past the overlapped box or down below it,
        whichever is the shorter move (ties move right). The loop is bounded
        by ``len(frozen) + 4`` steps so it always terminates. A moving node
        that is itself frozen is not pushed.
        """
        if moving_id in frozen_ids:
            return candidate

        frozen_rects = [
            self.rect_of(node)
            for node in nodes
            if node.id != moving_id and node.id in frozen_ids
        ]
        return self._push_clear(candidate, frozen_rects)

    def find_free_position(self, start: Point, nodes: Sequence[GraphNode]) -> Point:
        """Resolve ``start`` against every existing node box.

        Used to place a merged node near its sources without covering them.
        """
        return self._push_clear(start, [self.rect_of(node) for node in nodes])

    def _push_clear(self, candidate: Point, obstacles: List[Rect]) -> Point:
        gap = self.config.pinned_gap
        x, y = candidate.x, candidate.y
        for _ in range(len(obstacles) + 4):
            box = self.node_rect(x, y)
            overlap = next((r for r in obstacles if rects_overlap(box, r)), None)
            if overlap is None:
                break
            push_right = overlap.right + gap
            push_down = overlap.bottom + gap
            if abs(push_right - x) <= abs(push_down - y):
                x = push_right
            else:
                y = push_down
        return Point(x, y)

    def hit_test(self, point: Point, nodes: Sequence[GraphNode]) -> Optional[str]:
        """Return the id of the topmost node whose box contains ``point``."""
        for node in reversed(nodes):
            if self.rect_of(node).contains(point):
                return node.id
        return None

    def centroid(self, nodes: Iterable[GraphNode]) -> Optional[Point]:
        """Mean top-left position of ``nodes``, or None when empty."""
        points = [(node.x, node.y) for node in nodes]
        if not points:
            return None
        return Point(
            sum(p[0] for p in points) / len(points),
            sum(p[1] for p in points) / len(points),
        )


__all__ = ["LayoutEngine", "SortKey"]

"""Coordinate spaces and box geometry.

World space is the pan/zoom-invariant system node positions are stored
in. Client space is raw on-screen pixels, used for drop zones and other
chrome that does not move with the canvas.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Rect:
    """Axis-aligned box anchored at its top-left corner."""

    x: float
    y: float
    width: float
    height: float

    @property
    def left(self) -> float:
        return self.x

    @property
    def top(self) -> float:
        return self.y

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, point: Point) -> bool:
        """Inclusive point-in-box test used for hit testing."""
        return self.left <= point.x <= self.right and self.top <= point.y <= self.bottom


def rects_overlap(a: Rect, b: Rect) -> bool:
    """Return True if the boxes overlap; touching edges do not count."""
    return (
        a.x < b.x + b.width
        and a.x + a.width > b.x
        and a.y < b.y + b.height
        and a.y + a.height > b.y
    )


def client_to_world(
    client_x: float,
    client_y: float,
    canvas_rect: Rect,
    offset: Point,
    scale: float,
) -> Point:
    """Map a client-space pointer position into world space."""
    return Point(
        x=(client_x - canvas_rect.left - offset.x) / scale,
        y=(client_y - canvas_rect.top - offset.y) / scale,
    )


def world_to_client(
    world: Point,
    canvas_rect: Rect,
    offset: Point,
    scale: float,
) -> Point:
    """Inverse of :func:`client_to_world`."""
    return Point(
        x=world.x * scale + offset.x + canvas_rect.left,
        y=world.y * scale + offset.y + canvas_rect.top,
    )


__all__ = ["Point", "Rect", "client_to_world", "rects_overlap", "world_to_client"]

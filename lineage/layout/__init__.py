"""Layout engine and coordinate geometry."""

from .engine import LayoutEngine, SortKey
from .geometry import Point, Rect, client_to_world, rects_overlap, world_to_client

__all__ = [
    "LayoutEngine",
    "Point",
    "Rect",
    "SortKey",
    "client_to_world",
    "rects_overlap",
    "world_to_client",
]

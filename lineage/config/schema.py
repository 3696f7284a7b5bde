"""Configuration schema definitions using Pydantic for validation.

Every tunable constant of the layout engine, canvas, persistence and
preview cache lives here so that a bad configuration fails early with a
clear message instead of producing overlapping or off-screen nodes.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class LayoutConfig(BaseModel):
    """Node geometry and placement constants (world-space units).

    Attributes:
        node_width: Width of a node box.
        node_height: Height of a node box.
        gap_x: Horizontal gap between grid cells.
        gap_y: Vertical gap between grid cells.
        origin_x: X of the first auto-placement candidate.
        origin_y: Y of the first auto-placement candidate.
        width_bound: Auto-placement wraps to a new row past this x.
        max_attempts: Auto-placement gives up searching after this many moves.
        pinned_gap: Distance kept from frozen nodes when pushing a dragged node.
        merge_offset_x: Horizontal offset of a merged node from the source centroid.
        merge_offset_y: Vertical offset of a merged node from the source centroid.
        commit_columns: Column count of the commits grid.
    """

    node_width: float = Field(default=200.0, gt=0)
    node_height: float = Field(default=100.0, gt=0)
    gap_x: float = Field(default=20.0, ge=0)
    gap_y: float = Field(default=50.0, ge=0)
    origin_x: float = 50.0
    origin_y: float = 50.0
    width_bound: float = Field(default=800.0, gt=0)
    max_attempts: int = Field(default=100, ge=0, le=10000)
    pinned_gap: float = Field(default=18.0, ge=0)
    merge_offset_x: float = 50.0
    merge_offset_y: float = 50.0
    commit_columns: int = Field(default=4, ge=1, le=64)

    model_config = {"extra": "forbid"}

    @property
    def spacing_x(self) -> float:
        """Horizontal distance between neighbouring grid cells."""
        return self.node_width + self.gap_x

    @property
    def spacing_y(self) -> float:
        """Vertical distance between neighbouring grid cells."""
        return self.node_height + self.gap_y


class CanvasConfig(BaseModel):
    """Pan/zoom limits of the canvas."""

    min_scale: float = Field(default=0.1, gt=0)
    max_scale: float = Field(default=4.0, gt=0)
    zoom_step: float = Field(default=0.001, gt=0)

    model_config = {"extra": "forbid"}

    @model_validator(mode="after")
    def check_scale_bounds(self) -> "CanvasConfig":
        """Ensure the zoom range is not empty."""
        if self.min_scale > self.max_scale:
            raise ValueError(
                f"min_scale ({self.min_scale}) must not exceed max_scale ({self.max_scale})"
            )
        return self


class PersistenceConfig(BaseModel):
    """Where and how often the graph document is written.

    Attributes:
        debounce_seconds: Quiet period after the last change before a write.
        state_dir: Hidden directory under the repository root.
        graph_filename: File name of the graph document inside ``state_dir``.
        commits_filename: File name of a project's commit list.
        content_filename: File name of a project's draft content.
    """

    debounce_seconds: float = Field(default=1.0, ge=0)
    state_dir: str = ".lineage"
    graph_filename: str = "graph.json"
    commits_filename: str = "commits.json"
    content_filename: str = "content.md"

    model_config = {"extra": "forbid"}


class PreviewConfig(BaseModel):
    """Hover preview options."""

    preview_chars: int = Field(default=500, ge=1)
    empty_text: str = "(No content or empty draft)"

    model_config = {"extra": "forbid"}


class LineageConfig(BaseModel):
    """Top-level configuration aggregating every section."""

    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    canvas: CanvasConfig = Field(default_factory=CanvasConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    preview: PreviewConfig = Field(default_factory=PreviewConfig)

    model_config = {"extra": "forbid"}

    @classmethod
    def default(cls) -> "LineageConfig":
        """Return the built-in defaults."""
        return cls()

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LineageConfig":
        """Build a config from a parsed mapping, validating every section."""
        return cls.model_validate(data or {})

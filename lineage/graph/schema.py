"""Canonical lineage graph schema models.

This module is the single source of truth for the entities shown on the
canvas (projects and their commits) and for the persisted graph document.
The JSON field names (``from``/``to``, ``entityType``, ``updatedAt``,
``commitNumber``) are kept stable so that documents written by earlier
versions load unchanged.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger("lineage.graph.schema")


class EntityType(str, Enum):
    """Kind of entity a graph node stands for."""

    REPOSITORY = "repository"
    PROJECT = "project"
    COMMIT = "commit"


def _require_id(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("id must be a non-empty string")
    return value


class Project(BaseModel):
    """Mutable content project; its id is what project nodes reference."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    content: str = ""
    updated_at: Annotated[float, Field(default=0.0, alias="updatedAt")]
    path: Optional[str] = None

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        return _require_id(value)


class Commit(BaseModel):
    """Immutable version snapshot of a project."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    commit_number: Annotated[int, Field(alias="commitNumber", ge=0)]
    timestamp: float = 0.0
    content: str = ""

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        return _require_id(value)


class GraphNode(BaseModel):
    """Positioned node on the canvas.

    Position is UI-owned world-space state and independent of the graph
    structure. ``id`` aliases a Project id in the Projects scope and a
    Commit id in the Commits scope.
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    id: str
    x: float
    y: float
    entity_type: Annotated[
        EntityType,
        Field(default=EntityType.PROJECT, alias="entityType"),
    ]

    @field_validator("id")
    @classmethod
    def check_id(cls, value: str) -> str:
        return _require_id(value)

    @property
    def read_only(self) -> bool:
        """Commit nodes are snapshots and cannot be renamed or wired."""
        return self.entity_type == EntityType.COMMIT


class GraphEdge(BaseModel):
    """Directed "source contributed to target" relation within one scope."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    source: Annotated[str, Field(alias="from")]
    target: Annotated[str, Field(alias="to")]

    def as_tuple(self) -> tuple[str, str]:
        return (self.source, self.target)

    def touches(self, node_id: str) -> bool:
        """Return True if either endpoint is ``node_id``."""
        return self.source == node_id or self.target == node_id


class GraphDocument(BaseModel):
    """Persisted ``{nodes, edges}`` document of one repository."""

    model_config = ConfigDict(populate_by_name=True)

    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "GraphDocument":
        return cls()

    def to_json_dict(self) -> Dict[str, Any]:
        """Return the JSON-ready mapping using the stable field names."""
        return self.model_dump(mode="json", by_alias=True)


__all__ = [
    "Commit",
    "EntityType",
    "GraphDocument",
    "GraphEdge",
    "GraphNode",
    "Project",
]

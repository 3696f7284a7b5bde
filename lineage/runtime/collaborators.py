"""Contracts of the external services the lineage core talks to.

The core never knows whether projects live in a directory tree, a browser
store or a remote service. It only relies on the async call contracts
below. ``lineage.runtime.filesystem`` provides a directory-backed
implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Protocol, runtime_checkable

from lineage.graph.schema import Commit, EntityType, GraphDocument, Project


@runtime_checkable
class ContentLoader(Protocol):
    """Loads and stores project content and commit history by project path."""

    async def load_project_content(self, path: str) -> str: ...

    async def load_project_commits(self, path: str) -> List[Commit]: ...

    async def save_project_commits(self, path: str, commits: List[Commit]) -> None: ...


@runtime_checkable
class GraphPersistence(Protocol):
    """Persists one graph document per repository path."""

    async def load_graph_data(self, repo_path: str) -> GraphDocument: ...

    async def save_graph_data(self, repo_path: str, document: GraphDocument) -> None: ...


@runtime_checkable
class ProjectService(Protocol):
    """Project CRUD.

    ``rename_project`` may return a project with a different id (for
    example when the id is derived from a folder name).
    """

    async def list_projects(self) -> List[Project]: ...

    async def create_project(self, name: str, content: str, open: bool = False) -> Project: ...

    async def delete_project(self, project_id: str) -> None: ...

    async def rename_project(self, project_id: str, new_name: str) -> Project: ...


@dataclass(frozen=True)
class NodeCreationResult:
    """What the node-creation dialog returns on success."""

    name: str
    type: EntityType = EntityType.PROJECT
    path: Optional[str] = None


NodeCreationDialog = Callable[[], Awaitable[Optional[NodeCreationResult]]]
Confirm = Callable[[str], Awaitable[bool]]
DropZoneAction = Callable[[str], Awaitable[None]]
OpenProject = Callable[[str], Awaitable[None]]


async def always_confirm(message: str) -> bool:
    """Confirmation stub for non-interactive callers such as the CLI."""
    return True


__all__ = [
    "Confirm",
    "ContentLoader",
    "DropZoneAction",
    "GraphPersistence",
    "NodeCreationDialog",
    "NodeCreationResult",
    "OpenProject",
    "ProjectService",
    "always_confirm",
]

"""Hierarchical scope switching between projects and one project's commits.

The canvas shows either every project of the repository (with lineage
edges) or the commits of a single project (read-only snapshots, no
edges). Only the projects scope is persisted; the commits scope is
rebuilt from the commit store on every drill-down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Set

from lineage.config.schema import LineageConfig
from lineage.errors import ExternalOperationError, ValidationError
from lineage.graph.persistence import DebouncedGraphWriter
from lineage.graph.schema import Commit, EntityType, GraphNode, Project
from lineage.graph.store import GraphStore, LoadReport
from lineage.runtime.collaborators import ContentLoader, GraphPersistence, ProjectService

logger = logging.getLogger("lineage.runtime.navigation")


class ScopeKind(str, Enum):
    PROJECTS = "projects"
    COMMITS = "commits"


@dataclass(frozen=True)
class ViewScope:
    """Which entity level the canvas currently shows."""

    kind: ScopeKind
    project_id: Optional[str] = None

    @classmethod
    def projects(cls) -> "ViewScope":
        return cls(ScopeKind.PROJECTS)

    @classmethod
    def commits(cls, project_id: str) -> "ViewScope":
        return cls(ScopeKind.COMMITS, project_id)

    @property
    def is_projects(self) -> bool:
        return self.kind == ScopeKind.PROJECTS


class NavigationController:
    """Owns the active scope, the project list and graph persistence.

    Args:
        store: Graph store shared with the interaction controller.
        repo_path: Repository the graph document belongs to.
        projects: Project CRUD service (also lists projects).
        loader: Content loader for commits.
        persistence: Graph document persistence.
        config: Lineage configuration.
        on_reset: Called whenever the scope changes so the owner of the view
            state can reset pan, zoom and selection.
    """

    def __init__(
        self,
        store: GraphStore,
        repo_path: str,
        projects: ProjectService,
        loader: ContentLoader,
        persistence: GraphPersistence,
        config: Optional[LineageConfig] = None,
        on_reset: Optional[Callable[[], None]] = None,
    ) -> None:
        self.store = store
        self.repo_path = repo_path
        self.project_service = projects
        self.loader = loader
        self.persistence = persistence
        self.config = config or LineageConfig()
        self.on_reset = on_reset

        self.scope = ViewScope.projects()
        self.projects: Dict[str, Project] = {}
        self.current_commits: List[Commit] = []

        self.writer = DebouncedGraphWriter(
            persistence,
            repo_path,
            store.to_document,
            delay=self.config.persistence.debounce_seconds,
        )
        store.subscribe(self._on_store_change)

    def _on_store_change(self) -> None:
        if self.scope.is_projects:
            self.writer.schedule()

    def _reset_view(self) -> None:
        if self.on_reset is not None:
            self.on_reset()

    # ------------------------------------------------------------------
    # Project cache
    # ------------------------------------------------------------------

    def project_for(self, node_id: str) -> Optional[Project]:
        return self.projects.get(node_id)

    def project_path(self, project: Project) -> str:
        return project.path or project.id

    def upsert_project(self, project: Project, previous_id: Optional[str] = None) -> None:
        """Record a created or renamed project in the local project list."""
        if previous_id is not None and previous_id != project.id:
            self.projects.pop(previous_id, None)
        self.projects[project.id] = project

    def forget_project(self, project_id: str) -> None:
        self.projects.pop(project_id, None)

    async def refresh_projects(self) -> List[Project]:
        """Reload the project list from the project service."""
        try:
            projects = await self.project_service.list_projects()
        except Exception as e:
            logger.error("Failed to list projects of %s: %s", self.repo_path, e)
            raise ExternalOperationError("list projects", str(e)) from e
        self.projects = {project.id: project for project in projects}
        return projects

    # ------------------------------------------------------------------
    # Scope switching
    # ------------------------------------------------------------------

    async def load_projects_scope(self) -> LoadReport:
        """Standard load-and-prune routine for the projects scope.

        Nothing changes locally unless both the project list and the graph
        document loaded successfully.
        """
        projects = await self.refresh_projects()
        try:
            document = await self.persistence.load_graph_data(self.repo_path)
        except ExternalOperationError:
            raise
        except Exception as e:
            logger.error("Failed to load graph data of %s: %s", self.repo_path, e)
            raise ExternalOperationError("load graph data", str(e)) from e

        self.scope = ViewScope.projects()
        self.current_commits = []
        report = self.store.load_and_prune(document, projects)
        self._reset_view()
        logger.info(
            "Projects scope loaded for %s (%d nodes, %d edges)",
            self.repo_path,
            self.store.node_count(),
            self.store.edge_count(),
        )
        return report

    async def drill_into(self, project_id: str) -> List[Commit]:
        """Show the commits of ``project_id`` as read-only nodes.

        Raises:
            ValidationError: The project is unknown.
            ExternalOperationError: Commits could not be loaded; the current
                scope is kept.
        """
        project = self.projects.get(project_id)
        if project is None:
            raise ValidationError(f"Unknown project: {project_id}")

        try:
            commits = await self.loader.load_project_commits(self.project_path(project))
        except Exception as e:
            logger.error("Failed to load commits of %s: %s", project_id, e)
            raise ExternalOperationError("load commits", str(e)) from e

        if self.scope.is_projects:
            # A pending write must snapshot the projects scope, not the commits.
            await self.writer.flush()

        ordered = sorted(commits, key=lambda c: (c.commit_number, c.timestamp))
        positions = self.store.layout.grid_positions(
            len(ordered), columns=self.config.layout.commit_columns
        )
        nodes = [
            GraphNode(id=commit.id, x=pos.x, y=pos.y, entity_type=EntityType.COMMIT)
            for commit, pos in zip(ordered, positions)
        ]

        self.scope = ViewScope.commits(project_id)
        self.current_commits = ordered
        self.store.replace(nodes, [], notify=False)
        self._reset_view()
        logger.info("Drilled into %s (%d commits)", project_id, len(ordered))
        return ordered

    async def return_to_projects(self) -> LoadReport:
        """Leave the commits scope and restore the projects graph."""
        return await self.load_projects_scope()

    # ------------------------------------------------------------------
    # Commits scope
    # ------------------------------------------------------------------

    def commit_for(self, node_id: str) -> Optional[Commit]:
        if self.scope.is_projects:
            return None
        return next((c for c in self.current_commits if c.id == node_id), None)

    async def delete_commit(self, commit_id: str) -> None:
        """Remove one commit from the drilled-into project.

        The commit list is saved without the commit first; the node is
        removed only after that succeeds.
        """
        if self.scope.is_projects or self.scope.project_id is None:
            raise ValidationError("Commits can only be deleted inside a project")
        if self.commit_for(commit_id) is None:
            raise ValidationError(f"Unknown commit: {commit_id}")

        project = self.projects.get(self.scope.project_id)
        path = self.project_path(project) if project else self.scope.project_id
        remaining = [c for c in self.current_commits if c.id != commit_id]
        try:
            await self.loader.save_project_commits(path, remaining)
        except Exception as e:
            logger.error("Failed to delete commit %s: %s", commit_id, e)
            raise ExternalOperationError("delete commit", str(e)) from e

        self.current_commits = remaining
        self.store.remove_node(commit_id)
        logger.info("Deleted commit %s of %s", commit_id, self.scope.project_id)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search(self, term: str) -> Set[str]:
        """Ids of the nodes in scope matching ``term`` (case-insensitive).

        Projects match on name and content; commits on content only. An
        empty term matches everything.
        """
        node_ids = self.store.node_ids
        query = term.strip().lower()
        if not query:
            return set(node_ids)

        matches: Set[str] = set()
        if self.scope.is_projects:
            for node_id in node_ids:
                project = self.projects.get(node_id)
                if project is None:
                    continue
                if query in project.name.lower() or query in (project.content or "").lower():
                    matches.add(node_id)
        else:
            for commit in self.current_commits:
                if commit.id in node_ids and query in (commit.content or "").lower():
                    matches.add(commit.id)
        return matches


__all__ = ["NavigationController", "ScopeKind", "ViewScope"]

"""Shared fixtures and in-memory collaborators for lineage tests."""

from __future__ import annotations

import asyncio
from typing import Callable, Dict, List, Optional

import pytest

from lineage.config import LineageConfig
from lineage.graph.schema import Commit, GraphDocument, Project
from lineage.graph.store import GraphStore
from lineage.layout.engine import LayoutEngine
from lineage.runtime.navigation import NavigationController


class MemoryProjectService:
    """Project CRUD kept in a dict; ``fail_on`` makes one operation raise."""

    def __init__(self, projects: Optional[List[Project]] = None) -> None:
        self.projects: Dict[str, Project] = {p.id: p for p in projects or []}
        self.fail_on: set[str] = set()
        self.rename_changes_id = False
        self.calls: List[tuple] = []
        self._counter = 0

    async def list_projects(self) -> List[Project]:
        if "list" in self.fail_on:
            raise OSError("listing failed")
        return list(self.projects.values())

    async def create_project(self, name: str, content: str, open: bool = False) -> Project:
        self.calls.append(("create", name, content, open))
        if "create" in self.fail_on:
            raise OSError("disk full")
        self._counter += 1
        project = Project(id=f"new-{self._counter}", name=name, content=content, updated_at=1.0)
        self.projects[project.id] = project
        return project

    async def delete_project(self, project_id: str) -> None:
        self.calls.append(("delete", project_id))
        if "delete" in self.fail_on or f"delete:{project_id}" in self.fail_on:
            raise OSError("permission denied")
        self.projects.pop(project_id)

    async def rename_project(self, project_id: str, new_name: str) -> Project:
        self.calls.append(("rename", project_id, new_name))
        if "rename" in self.fail_on:
            raise OSError("rename failed")
        old = self.projects.pop(project_id)
        new_id = new_name if self.rename_changes_id else project_id
        renamed = old.model_copy(update={"id": new_id, "name": new_name})
        self.projects[new_id] = renamed
        return renamed


class MemoryContentLoader:
    """Content and commits by project path, with optional per-path gates."""

    def __init__(self) -> None:
        self.contents: Dict[str, str] = {}
        self.commits: Dict[str, List[Commit]] = {}
        self.gates: Dict[str, asyncio.Event] = {}
        self.fail_on: set[str] = set()
        self.content_calls: List[str] = []

    async def _wait(self, path: str) -> None:
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()

    async def load_project_content(self, path: str) -> str:
        self.content_calls.append(path)
        await self._wait(path)
        if "content" in self.fail_on:
            raise OSError("unreadable")
        return self.contents.get(path, "")

    async def load_project_commits(self, path: str) -> List[Commit]:
        await self._wait(path)
        if "commits" in self.fail_on:
            raise OSError("unreadable")
        return list(self.commits.get(path, []))

    async def save_project_commits(self, path: str, commits: List[Commit]) -> None:
        if "save_commits" in self.fail_on:
            raise OSError("read-only")
        self.commits[path] = list(commits)


class MemoryGraphPersistence:
    def __init__(self, document: Optional[GraphDocument] = None) -> None:
        self.documents: Dict[str, GraphDocument] = {}
        self.saves: List[GraphDocument] = []
        self.initial = document
        self.fail_on: set[str] = set()

    async def load_graph_data(self, repo_path: str) -> GraphDocument:
        if "load" in self.fail_on:
            raise OSError("corrupt")
        if repo_path in self.documents:
            return self.documents[repo_path]
        return self.initial or GraphDocument()

    async def save_graph_data(self, repo_path: str, document: GraphDocument) -> None:
        if "save" in self.fail_on:
            raise OSError("read-only")
        self.documents[repo_path] = document
        self.saves.append(document)


def _build_project(project_id: str, content: str = "", updated_at: float = 0.0, **extra) -> Project:
    return Project(id=project_id, name=extra.pop("name", project_id), content=content,
                   updated_at=updated_at, **extra)


@pytest.fixture
def make_project() -> Callable[..., Project]:
    return _build_project


@pytest.fixture
def config() -> LineageConfig:
    return LineageConfig.from_dict({"persistence": {"debounce_seconds": 0.01}})


@pytest.fixture
def store(config: LineageConfig) -> GraphStore:
    return GraphStore(LayoutEngine(config.layout))


@pytest.fixture
def project_service() -> MemoryProjectService:
    return MemoryProjectService(
        [
            _build_project("P1", "Intro", updated_at=10.0),
            _build_project("P2", "Body", updated_at=30.0),
            _build_project("P3", "Outro", updated_at=20.0),
        ]
    )


@pytest.fixture
def loader() -> MemoryContentLoader:
    return MemoryContentLoader()


@pytest.fixture
def persistence() -> MemoryGraphPersistence:
    return MemoryGraphPersistence()


@pytest.fixture
def navigation(store, project_service, loader, persistence, config) -> NavigationController:
    return NavigationController(
        store,
        "/repo",
        projects=project_service,
        loader=loader,
        persistence=persistence,
        config=config,
    )

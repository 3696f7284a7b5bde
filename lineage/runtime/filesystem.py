"""Directory-backed repository implementing every collaborator contract.

Layout of a repository directory::

    <repo>/
        .lineage/graph.json           graph document
        <project>/content.md          draft content
        <project>/.lineage/commits.json

A project's id is its folder name, so renaming a project changes its id.
"""

from __future__ import annotations

import json
import logging
import shutil
import time
from pathlib import Path
from typing import List, Optional, Union

from pydantic import TypeAdapter

from lineage.config.schema import PersistenceConfig
from lineage.errors import ValidationError
from lineage.graph.persistence import JsonGraphPersistence
from lineage.graph.schema import Commit, GraphDocument, Project
from lineage.utils.validation import validate_project_name

logger = logging.getLogger("lineage.runtime.filesystem")

_COMMITS = TypeAdapter(List[Commit])


class FileSystemRepository:
    """Projects, commits and the graph document of one repository folder."""

    def __init__(
        self,
        root: Union[str, Path],
        config: Optional[PersistenceConfig] = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.config = config or PersistenceConfig()
        self._graphs = JsonGraphPersistence(self.config)

    @property
    def repo_path(self) -> str:
        return str(self.root)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def project_dir(self, project_id: str) -> Path:
        path = (self.root / project_id).resolve()
        if path.parent != self.root:
            raise ValidationError(f"Project id escapes repository: {project_id!r}")
        return path

    def _content_file(self, project_path: Union[str, Path]) -> Path:
        return Path(project_path) / self.config.content_filename

    def _commits_file(self, project_path: Union[str, Path]) -> Path:
        return Path(project_path) / self.config.state_dir / self.config.commits_filename

    def _read_project(self, folder: Path) -> Project:
        content_file = self._content_file(folder)
        content = content_file.read_text(encoding="utf-8") if content_file.exists() else ""
        stamp_source = content_file if content_file.exists() else folder
        return Project(
            id=folder.name,
            name=folder.name,
            content=content,
            updated_at=stamp_source.stat().st_mtime * 1000,
            path=str(folder),
        )

    def _unique_folder(self, name: str) -> Path:
        candidate = self.root / name
        counter = 2
        while candidate.exists():
            candidate = self.root / f"{name} {counter}"
            counter += 1
        return candidate

    # ------------------------------------------------------------------
    # ProjectService
    # ------------------------------------------------------------------

    async def list_projects(self) -> List[Project]:
        if not self.root.is_dir():
            return []
        folders = sorted(
            p for p in self.root.iterdir() if p.is_dir() and not p.name.startswith(".")
        )
        return [self._read_project(folder) for folder in folders]

    async def get_project(self, project_id: str) -> Optional[Project]:
        folder = self.project_dir(project_id)
        if not folder.is_dir():
            return None
        return self._read_project(folder)

    async def create_project(self, name: str, content: str, open: bool = False) -> Project:
        clean = validate_project_name(name)
        folder = self._unique_folder(clean)
        (folder / self.config.state_dir).mkdir(parents=True)
        self._content_file(folder).write_text(content, encoding="utf-8")
        self._commits_file(folder).write_text("[]", encoding="utf-8")
        logger.info("Created project %s", folder.name)
        return self._read_project(folder)

    async def delete_project(self, project_id: str) -> None:
        folder = self.project_dir(project_id)
        if not folder.is_dir():
            raise FileNotFoundError(f"No such project: {project_id}")
        shutil.rmtree(folder)
        logger.info("Deleted project %s", project_id)

    async def rename_project(self, project_id: str, new_name: str) -> Project:
        clean = validate_project_name(new_name)
        folder = self.project_dir(project_id)
        if not folder.is_dir():
            raise FileNotFoundError(f"No such project: {project_id}")
        if clean == project_id:
            return self._read_project(folder)
        target = self.root / clean
        if target.exists():
            raise FileExistsError(f"Project already exists: {clean}")
        folder.rename(target)
        logger.info("Renamed project %s -> %s", project_id, clean)
        return self._read_project(target)

    async def save_content(self, project_id: str, content: str) -> Project:
        """Overwrite a project's draft content."""
        folder = self.project_dir(project_id)
        self._content_file(folder).write_text(content, encoding="utf-8")
        return self._read_project(folder)

    # ------------------------------------------------------------------
    # ContentLoader
    # ------------------------------------------------------------------

    async def load_project_content(self, path: str) -> str:
        content_file = self._content_file(path)
        if not content_file.exists():
            return ""
        return content_file.read_text(encoding="utf-8")

    async def load_project_commits(self, path: str) -> List[Commit]:
        commits_file = self._commits_file(path)
        if not commits_file.exists():
            return []
        return _COMMITS.validate_json(commits_file.read_bytes())

    async def save_project_commits(self, path: str, commits: List[Commit]) -> None:
        commits_file = self._commits_file(path)
        commits_file.parent.mkdir(parents=True, exist_ok=True)
        payload = _COMMITS.dump_python(commits, mode="json", by_alias=True)
        commits_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        logger.debug("Saved %d commit(s) to %s", len(commits), commits_file)

    async def append_commit(self, project_id: str, content: str) -> Commit:
        """Snapshot ``content`` as the next commit of a project."""
        path = str(self.project_dir(project_id))
        commits = await self.load_project_commits(path)
        number = max((c.commit_number for c in commits), default=0) + 1
        commit = Commit(
            id=f"{project_id}@{number}",
            commit_number=number,
            timestamp=time.time() * 1000,
            content=content,
        )
        await self.save_project_commits(path, commits + [commit])
        return commit

    # ------------------------------------------------------------------
    # GraphPersistence
    # ------------------------------------------------------------------

    async def load_graph_data(self, repo_path: str) -> GraphDocument:
        return await self._graphs.load_graph_data(repo_path)

    async def save_graph_data(self, repo_path: str, document: GraphDocument) -> None:
        await self._graphs.save_graph_data(repo_path, document)


__all__ = ["FileSystemRepository"]

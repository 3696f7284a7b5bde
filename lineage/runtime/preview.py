"""Hover previews of node content.

Previews are fetched asynchronously and may resolve out of order when the
pointer moves quickly across nodes. After every await the cache checks
that the node it is fetching for is still the hovered one; a superseded
result is dropped without being cached or displayed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from lineage.config.schema import PreviewConfig
from lineage.errors import StaleResponseError
from lineage.graph.schema import Commit, Project
from lineage.runtime.collaborators import ContentLoader

logger = logging.getLogger("lineage.runtime.preview")


class PreviewSource(str, Enum):
    DRAFT = "draft"
    COMMIT = "commit"
    EMPTY = "empty"


@dataclass(frozen=True)
class Preview:
    content: str
    source: PreviewSource


Fingerprint = Tuple[float, int]


class HoverPreviewCache:
    """Race-safe preview fetcher with a fingerprint-validated cache.

    Args:
        loader: External content loader.
        project_lookup: Returns the project for a node id, if any.
        commit_lookup: Returns the commit for a node id in the commits scope.
        child_count: Number of children of a node, part of the fingerprint.
        config: Preview options.
    """

    def __init__(
        self,
        loader: ContentLoader,
        project_lookup: Callable[[str], Optional[Project]],
        commit_lookup: Optional[Callable[[str], Optional[Commit]]] = None,
        child_count: Optional[Callable[[str], int]] = None,
        config: Optional[PreviewConfig] = None,
    ) -> None:
        self.loader = loader
        self.config = config or PreviewConfig()
        self._project_lookup = project_lookup
        self._commit_lookup = commit_lookup or (lambda _node_id: None)
        self._child_count = child_count or (lambda _node_id: 0)
        self._cache: Dict[str, Tuple[Fingerprint, Preview]] = {}
        self._current_id: Optional[str] = None
        self.displayed: Optional[Preview] = None

    @property
    def current_id(self) -> Optional[str]:
        """Id of the node currently hovered."""
        return self._current_id

    async def hover(self, node_id: str) -> Optional[Preview]:
        """Mark ``node_id`` as hovered and resolve its preview."""
        self._current_id = node_id
        return await self.get_preview(node_id)

    def clear(self) -> None:
        """Pointer left every node; pending fetches become stale."""
        self._current_id = None
        self.displayed = None

    def invalidate(self, node_id: Optional[str] = None) -> None:
        """Forget one cached preview, or all of them."""
        if node_id is None:
            self._cache.clear()
        else:
            self._cache.pop(node_id, None)

    def cached(self, node_id: str) -> Optional[Preview]:
        entry = self._cache.get(node_id)
        return entry[1] if entry else None

    async def get_preview(self, node_id: str) -> Optional[Preview]:
        """Resolve the preview of the hovered node ``node_id``.

        Returns:
            The preview now displayed, or None when the request was
            superseded by a newer hover.
        """
        try:
            preview = await self._resolve(node_id)
        except StaleResponseError as e:
            logger.debug("Dropped stale preview: %s", e)
            return None
        self.displayed = preview
        return preview

    def _ensure_current(self, node_id: str) -> None:
        if self._current_id != node_id:
            raise StaleResponseError(node_id, self._current_id)

    def _fingerprint(self, node_id: str, project: Optional[Project]) -> Fingerprint:
        updated_at = project.updated_at if project is not None else 0.0
        return (updated_at, self._child_count(node_id))

    def _truncate(self, content: str) -> str:
        limit = self.config.preview_chars
        if len(content) <= limit:
            return content
        return content[:limit] + "..."

    async def _resolve(self, node_id: str) -> Preview:
        self._ensure_current(node_id)

        commit = self._commit_lookup(node_id)
        if commit is not None:
            if commit.content:
                return Preview(self._truncate(commit.content), PreviewSource.COMMIT)
            return Preview(self.config.empty_text, PreviewSource.EMPTY)

        project = self._project_lookup(node_id)
        fingerprint = self._fingerprint(node_id, project)
        entry = self._cache.get(node_id)
        if entry is not None and entry[0] == fingerprint:
            return entry[1]

        preview = await self._load(node_id, project)
        self._ensure_current(node_id)
        self._cache[node_id] = (fingerprint, preview)
        return preview

    async def _load(self, node_id: str, project: Optional[Project]) -> Preview:
        if project is not None and project.content:
            return Preview(self._truncate(project.content), PreviewSource.DRAFT)

        path = project.path if project is not None else None
        if path:
            try:
                content = await self.loader.load_project_content(path)
            except Exception as e:
                logger.warning("Failed to load content of %s: %s", node_id, e)
                content = ""
            self._ensure_current(node_id)
            if content:
                return Preview(self._truncate(content), PreviewSource.DRAFT)

            try:
                commits = await self.loader.load_project_commits(path)
            except Exception as e:
                logger.warning("Failed to load commits of %s: %s", node_id, e)
                commits = []
            self._ensure_current(node_id)
            if commits:
                latest = max(commits, key=lambda c: (c.commit_number, c.timestamp))
                if latest.content:
                    return Preview(self._truncate(latest.content), PreviewSource.COMMIT)

        return Preview(self.config.empty_text, PreviewSource.EMPTY)


__all__ = ["HoverPreviewCache", "Preview", "PreviewSource"]

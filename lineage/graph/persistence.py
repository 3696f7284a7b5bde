"""Graph document persistence.

The graph document (node positions and lineage edges) is stored per
repository. ``JsonGraphPersistence`` keeps it as JSON under the
repository's hidden state directory; ``DebouncedGraphWriter`` coalesces
bursts of edits into a single write.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Callable, Optional, Union

from pydantic import ValidationError as SchemaValidationError

from lineage.config.schema import PersistenceConfig
from lineage.errors import ExternalOperationError
from lineage.graph.schema import GraphDocument
from lineage.runtime.collaborators import GraphPersistence

logger = logging.getLogger("lineage.graph.persistence")

IO_ERRORS = (OSError,)
STATE_ERRORS = IO_ERRORS + (json.JSONDecodeError, SchemaValidationError, ValueError)


class JsonGraphPersistence:
    """Stores one ``graph.json`` per repository path.

    Writes go to a temporary sibling first and are moved into place with
    ``os.replace`` so that a crash mid-write never leaves a truncated
    document behind.
    """

    def __init__(self, config: Optional[PersistenceConfig] = None) -> None:
        self.config = config or PersistenceConfig()

    def graph_file(self, repo_path: Union[str, Path]) -> Path:
        """Return the graph document path for ``repo_path``."""
        return Path(repo_path) / self.config.state_dir / self.config.graph_filename

    async def load_graph_data(self, repo_path: str) -> GraphDocument:
        """Load the graph document; a missing file yields an empty document.

        Raises:
            ExternalOperationError: If the file exists but cannot be read or
                does not match the schema.
        """
        graph_file = self.graph_file(repo_path)
        if not graph_file.exists():
            logger.debug("No graph document found at %s", graph_file)
            return GraphDocument.empty()

        try:
            with open(graph_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            document = GraphDocument.model_validate(data)
        except STATE_ERRORS as e:
            logger.error("Failed to load graph document %s: %s", graph_file, e)
            raise ExternalOperationError("load graph data", str(e)) from e

        logger.info(
            "Loaded graph document from %s (%d nodes, %d edges)",
            graph_file,
            len(document.nodes),
            len(document.edges),
        )
        return document

    async def save_graph_data(self, repo_path: str, document: GraphDocument) -> None:
        """Write the graph document atomically.

        Raises:
            ExternalOperationError: If the file cannot be written.
        """
        graph_file = self.graph_file(repo_path)
        tmp_file = graph_file.with_suffix(graph_file.suffix + ".tmp")
        try:
            graph_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_file, "w", encoding="utf-8") as f:
                json.dump(document.to_json_dict(), f, indent=2)
            os.replace(tmp_file, graph_file)
        except IO_ERRORS as e:
            logger.error("Failed to save graph document %s: %s", graph_file, e)
            raise ExternalOperationError("save graph data", str(e)) from e

        logger.debug("Saved graph document to %s", graph_file)


class DebouncedGraphWriter:
    """Single cancellable deferred-write task for one repository.

    Every ``schedule()`` restarts the timer, so a burst of edits produces
    exactly one write ``delay`` seconds after the last edit. The document is
    snapshotted when the write fires, not when it is scheduled.
    """

    def __init__(
        self,
        persistence: GraphPersistence,
        repo_path: str,
        snapshot: Callable[[], GraphDocument],
        delay: float = 1.0,
    ) -> None:
        self.persistence = persistence
        self.repo_path = repo_path
        self.delay = delay
        self._snapshot = snapshot
        self._task: Optional[asyncio.Task] = None
        self._dirty = False
        self.write_count = 0
        self.last_error: Optional[BaseException] = None

    @property
    def pending(self) -> bool:
        """True while a deferred write is waiting to fire."""
        return self._dirty or (self._task is not None and not self._task.done())

    def schedule(self) -> None:
        """(Re)start the deferred write."""
        self._dirty = True
        self._cancel_task()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; write for %s waits for flush()", self.repo_path)
            return
        self._task = loop.create_task(self._deferred_write())

    def cancel(self) -> None:
        """Drop any pending write without saving."""
        self._dirty = False
        self._cancel_task()

    async def flush(self) -> None:
        """Write immediately if anything is pending."""
        if not self.pending:
            return
        self._cancel_task()
        await self._write()

    def _cancel_task(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _deferred_write(self) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        try:
            await self._write()
        except ExternalOperationError as e:
            # Nobody awaits this task; keep the error for the UI to surface.
            self.last_error = e
            logger.warning("Deferred graph write for %s failed: %s", self.repo_path, e)

    async def _write(self) -> None:
        self._dirty = False
        document = self._snapshot()
        try:
            await self.persistence.save_graph_data(self.repo_path, document)
        except ExternalOperationError:
            raise
        except Exception as e:
            raise ExternalOperationError("save graph data", str(e)) from e
        self.write_count += 1
        self.last_error = None
        logger.debug(
            "Persisted graph for %s (%d nodes, %d edges)",
            self.repo_path,
            len(document.nodes),
            len(document.edges),
        )


__all__ = ["DebouncedGraphWriter", "JsonGraphPersistence"]

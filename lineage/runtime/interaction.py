"""Pointer gesture state machine driving every canvas mutation.

The controller receives plain pointer events (client-space coordinates
plus modifier flags) from whatever UI hosts the canvas and turns them
into graph store mutations. It owns the single :class:`ViewState`
(pan, zoom, selection, hover, menus) so nothing about the view lives in
module globals.

Gesture states::

    IDLE ──node──────────▶ DRAGGING_NODE ──up──▶ IDLE
    IDLE ──node+Shift────▶ DRAWING_EDGE  ──up──▶ IDLE
    IDLE ──empty canvas──▶ DRAGGING_CANVAS ─up─▶ IDLE

Node positions are always world space; drop zones are hit-tested in
client space.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePath
from typing import Dict, FrozenSet, List, Optional, Sequence, Set

from lineage.config.schema import LineageConfig
from lineage.errors import ExternalOperationError, LineageError, ValidationError
from lineage.graph.merge import apply_merge
from lineage.graph.schema import EntityType, Project
from lineage.layout.engine import SortKey
from lineage.layout.geometry import Point, Rect, client_to_world
from lineage.runtime.collaborators import (
    Confirm,
    DropZoneAction,
    NodeCreationDialog,
    OpenProject,
)
from lineage.runtime.navigation import NavigationController
from lineage.runtime.preview import HoverPreviewCache, Preview

logger = logging.getLogger("lineage.runtime.interaction")


class GestureState(str, Enum):
    IDLE = "idle"
    DRAGGING_NODE = "dragging_node"
    DRAGGING_CANVAS = "dragging_canvas"
    DRAWING_EDGE = "drawing_edge"


_TRANSITIONS: Dict[GestureState, FrozenSet[GestureState]] = {
    GestureState.IDLE: frozenset(
        {GestureState.DRAGGING_NODE, GestureState.DRAGGING_CANVAS, GestureState.DRAWING_EDGE}
    ),
    GestureState.DRAGGING_NODE: frozenset({GestureState.IDLE}),
    GestureState.DRAGGING_CANVAS: frozenset({GestureState.IDLE}),
    GestureState.DRAWING_EDGE: frozenset({GestureState.IDLE}),
}


class InvalidTransitionError(LineageError):
    """A gesture tried to move the state machine along an undefined edge."""

    def __init__(self, current: GestureState, target: GestureState) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid gesture transition {current.value} -> {target.value}")


@dataclass(frozen=True)
class PointerEvent:
    """A mouse/pointer event in client space.

    Attributes:
        client_x: Pointer x in client pixels.
        client_y: Pointer y in client pixels.
        node_id: Node under the pointer, or None for empty canvas.
        shift: Shift held.
        ctrl: Ctrl held.
        meta: Cmd/Meta held.
        button: Mouse button (0 = primary).
    """

    client_x: float
    client_y: float
    node_id: Optional[str] = None
    shift: bool = False
    ctrl: bool = False
    meta: bool = False
    button: int = 0

    @property
    def additive(self) -> bool:
        """Ctrl on most platforms, Cmd on macOS."""
        return self.ctrl or self.meta

    @property
    def client(self) -> Point:
        return Point(self.client_x, self.client_y)


@dataclass(frozen=True)
class WheelEvent:
    delta_x: float
    delta_y: float
    ctrl: bool = False


class DropZoneKind(str, Enum):
    MOVE = "move"
    PIN = "pin"
    DELETE = "delete"
    OPEN = "open"


@dataclass
class DropZone:
    """Client-space target a dragged node can be released on."""

    kind: DropZoneKind
    rect: Rect
    action: DropZoneAction
    label: str = ""

    @property
    def name(self) -> str:
        return self.label or self.kind.value


@dataclass
class ContextMenu:
    node_id: str
    position: Point


@dataclass
class EdgeDraft:
    """Wire being drawn from ``source_id`` to the live cursor (world space)."""

    source_id: str
    cursor: Point


@dataclass
class ViewState:
    """Everything about the view that is not part of the graph document."""

    offset: Point = Point(0.0, 0.0)
    scale: float = 1.0
    selection: List[str] = field(default_factory=list)
    frozen_ids: Set[str] = field(default_factory=set)
    hovered_id: Optional[str] = None
    preview: Optional[Preview] = None
    context_menu: Optional[ContextMenu] = None
    drop_highlight: Optional[DropZone] = None
    edge_draft: Optional[EdgeDraft] = None
    merge_in_progress: bool = False
    error: Optional[LineageError] = None

    def reset_viewport(self) -> None:
        self.offset = Point(0.0, 0.0)
        self.scale = 1.0

    def replace_id(self, old_id: str, new_id: str) -> None:
        """Follow an entity id change in selection, pins and hover."""
        self.selection = [new_id if i == old_id else i for i in self.selection]
        if old_id in self.frozen_ids:
            self.frozen_ids.discard(old_id)
            self.frozen_ids.add(new_id)
        if self.hovered_id == old_id:
            self.hovered_id = new_id
        if self.context_menu is not None and self.context_menu.node_id == old_id:
            self.context_menu = ContextMenu(new_id, self.context_menu.position)

    def forget_id(self, node_id: str) -> None:
        if node_id in self.selection:
            self.selection.remove(node_id)
        self.frozen_ids.discard(node_id)
        if self.hovered_id == node_id:
            self.hovered_id = None
            self.preview = None
        if self.context_menu is not None and self.context_menu.node_id == node_id:
            self.context_menu = None


class InteractionController:
    """Gesture FSM and user-driven graph operations.

    Args:
        navigation: Scope controller; also gives access to the store, the
            project list and the collaborators.
        confirm: Interactive confirmation for destructive operations.
        open_project: Opens a project in the editor (optional).
        preview: Hover preview cache; built from the navigation when omitted.
        drop_zones: Client-space drop zones, checked in order.
        canvas_rect: Client-space rectangle of the canvas element.
        config: Lineage configuration.
    """

    def __init__(
        self,
        navigation: NavigationController,
        *,
        confirm: Confirm,
        open_project: Optional[OpenProject] = None,
        preview: Optional[HoverPreviewCache] = None,
        drop_zones: Optional[Sequence[DropZone]] = None,
        canvas_rect: Optional[Rect] = None,
        config: Optional[LineageConfig] = None,
    ) -> None:
        self.navigation = navigation
        self.store = navigation.store
        self.layout = navigation.store.layout
        self.config = config or navigation.config
        self.confirm = confirm
        self.open_project = open_project
        self.drop_zones: List[DropZone] = list(drop_zones or [])
        self.canvas_rect = canvas_rect or Rect(0.0, 0.0, 1280.0, 800.0)
        self.preview = preview or HoverPreviewCache(
            navigation.loader,
            navigation.project_for,
            commit_lookup=navigation.commit_for,
            child_count=self._child_count,
            config=self.config.preview,
        )

        self.view = ViewState()
        self.state = GestureState.IDLE
        self._drag_node_id: Optional[str] = None
        self._drag_offset = Point(0.0, 0.0)
        self._drag_origin: Optional[Point] = None
        self._pan_anchor = Point(0.0, 0.0)

        navigation.on_reset = self.reset_view

    # ------------------------------------------------------------------
    # State machine plumbing
    # ------------------------------------------------------------------

    def _enter(self, target: GestureState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        logger.debug("Gesture %s -> %s", self.state.value, target.value)
        self.state = target

    def _finish_gesture(self) -> None:
        if self.state != GestureState.IDLE:
            self._enter(GestureState.IDLE)
        self._drag_node_id = None
        self._drag_origin = None
        self.view.edge_draft = None
        self.view.drop_highlight = None

    def _child_count(self, node_id: str) -> int:
        if not self.store.has_node(node_id):
            return 0
        return self.store.graph.out_degree(node_id)

    def to_world(self, client_x: float, client_y: float) -> Point:
        return client_to_world(
            client_x, client_y, self.canvas_rect, self.view.offset, self.view.scale
        )

    def drop_zone_at(self, client: Point) -> Optional[DropZone]:
        """First drop zone whose client rect contains ``client``."""
        for zone in self.drop_zones:
            if zone.rect.contains(client):
                return zone
        return None

    def reset_view(self) -> None:
        """Reset pan, zoom, selection and transient UI after a scope change."""
        if self.state != GestureState.IDLE:
            self._finish_gesture()
        self.view.reset_viewport()
        self.view.selection = []
        self.view.context_menu = None
        self.view.hovered_id = None
        self.view.preview = None
        self.preview.clear()

    # ------------------------------------------------------------------
    # Pointer events
    # ------------------------------------------------------------------

    def on_mouse_down(self, event: PointerEvent) -> None:
        if event.button != 0:
            return
        if self.state != GestureState.IDLE:
            logger.debug("Mouse down during %s; abandoning gesture", self.state.value)
            self._finish_gesture()

        self.view.context_menu = None
        world = self.to_world(event.client_x, event.client_y)
        node = self.store.get_node(event.node_id) if event.node_id else None

        if node is None:
            self._enter(GestureState.DRAGGING_CANVAS)
            self._pan_anchor = Point(
                event.client_x - self.view.offset.x, event.client_y - self.view.offset.y
            )
            if not event.additive:
                self.view.selection = []
            return

        if event.shift:
            if node.read_only:
                logger.debug("Commit node %s cannot be wired", node.id)
                return
            self._enter(GestureState.DRAWING_EDGE)
            self.view.edge_draft = EdgeDraft(source_id=node.id, cursor=world)
            return

        if event.additive:
            if node.id in self.view.selection:
                self.view.selection.remove(node.id)
            else:
                self.view.selection.append(node.id)
            return

        if self.view.selection == [node.id]:
            self.view.selection = []
        else:
            self.view.selection = [node.id]
        self._enter(GestureState.DRAGGING_NODE)
        self._drag_node_id = node.id
        self._drag_offset = Point(world.x - node.x, world.y - node.y)
        self._drag_origin = Point(node.x, node.y)

    def on_mouse_move(self, event: PointerEvent) -> None:
        if self.state == GestureState.DRAGGING_NODE and self._drag_node_id is not None:
            world = self.to_world(event.client_x, event.client_y)
            candidate = Point(world.x - self._drag_offset.x, world.y - self._drag_offset.y)
            if self.view.frozen_ids:
                candidate = self.layout.resolve_pinned_collision(
                    candidate, self._drag_node_id, self.store.nodes, self.view.frozen_ids
                )
            self.store.move_node(self._drag_node_id, candidate.x, candidate.y)
            self.view.drop_highlight = self.drop_zone_at(event.client)
        elif self.state == GestureState.DRAGGING_CANVAS:
            self.view.offset = Point(
                event.client_x - self._pan_anchor.x, event.client_y - self._pan_anchor.y
            )
        elif self.state == GestureState.DRAWING_EDGE and self.view.edge_draft is not None:
            self.view.edge_draft.cursor = self.to_world(event.client_x, event.client_y)

    async def on_mouse_up(self, event: PointerEvent) -> None:
        state = self.state
        node_id = self._drag_node_id
        origin = self._drag_origin
        draft = self.view.edge_draft
        self._finish_gesture()

        if state == GestureState.DRAWING_EDGE and draft is not None:
            world = self.to_world(event.client_x, event.client_y)
            target = self.layout.hit_test(world, self.store.nodes)
            if target is None or target == draft.source_id:
                logger.debug("Edge from %s discarded", draft.source_id)
                return
            self.store.add_edge(draft.source_id, target)
            return

        if state == GestureState.DRAGGING_NODE and node_id is not None:
            zone = self.drop_zone_at(event.client)
            if zone is None:
                return
            try:
                await zone.action(node_id)
            except Exception as e:
                error = e if isinstance(e, ExternalOperationError) else ExternalOperationError(
                    f"{zone.name} {node_id}", str(e)
                )
                logger.warning("Drop zone %s failed for %s: %s", zone.name, node_id, e)
                self.view.error = error
                return
            if origin is not None and self.store.has_node(node_id):
                self.store.move_node(node_id, origin.x, origin.y)

    def on_wheel(self, event: WheelEvent) -> None:
        """Ctrl+wheel zooms, plain wheel pans."""
        canvas = self.config.canvas
        if event.ctrl:
            scale = self.view.scale - event.delta_y * canvas.zoom_step
            self.view.scale = min(max(canvas.min_scale, scale), canvas.max_scale)
            if self.state == GestureState.DRAGGING_CANVAS:
                self._finish_gesture()
        else:
            self.view.offset = Point(
                self.view.offset.x - event.delta_x, self.view.offset.y - event.delta_y
            )

    def on_escape(self) -> None:
        """Close any open context menu; the graph is not touched."""
        self.view.context_menu = None

    on_click_outside = on_escape

    def open_context_menu(self, node_id: str, client_x: float, client_y: float) -> None:
        if not self.store.has_node(node_id):
            return
        self.view.context_menu = ContextMenu(node_id, Point(client_x, client_y))

    async def on_hover(self, node_id: str) -> Optional[Preview]:
        """Show the preview of ``node_id`` unless a newer hover supersedes it."""
        self.view.hovered_id = node_id
        preview = await self.preview.hover(node_id)
        if preview is not None and self.view.hovered_id == node_id:
            self.view.preview = preview
        return preview

    def on_hover_end(self) -> None:
        self.view.hovered_id = None
        self.view.preview = None
        self.preview.clear()

    async def on_double_click(self, node_id: str) -> None:
        """Drill into a project's commits; no-op on commit nodes."""
        if self.navigation.scope.is_projects and node_id in self.navigation.projects:
            await self.navigation.drill_into(node_id)

    # ------------------------------------------------------------------
    # Drop zone actions
    # ------------------------------------------------------------------

    def drop_zone(
        self,
        kind: DropZoneKind,
        rect: Rect,
        action: Optional[DropZoneAction] = None,
        label: str = "",
    ) -> DropZone:
        """Register a drop zone; pin/delete/open default to built-in actions."""
        if action is None:
            defaults = {
                DropZoneKind.PIN: self._pin_action,
                DropZoneKind.DELETE: self._delete_action,
                DropZoneKind.OPEN: self.open_node,
            }
            if kind not in defaults:
                raise ValidationError(f"Drop zone {kind.value} needs an explicit action")
            action = defaults[kind]
        zone = DropZone(kind=kind, rect=rect, action=action, label=label)
        self.drop_zones.append(zone)
        return zone

    async def _pin_action(self, node_id: str) -> None:
        self.toggle_pin(node_id)

    async def _delete_action(self, node_id: str) -> None:
        await self.delete_nodes([node_id])

    def toggle_pin(self, node_id: str) -> bool:
        """Freeze or unfreeze a node; dragged nodes are pushed off frozen ones."""
        if node_id in self.view.frozen_ids:
            self.view.frozen_ids.discard(node_id)
            return False
        self.view.frozen_ids.add(node_id)
        return True

    async def open_node(self, node_id: str) -> None:
        if self.open_project is None or not self.navigation.scope.is_projects:
            await self.on_double_click(node_id)
            return
        try:
            await self.open_project(node_id)
        except Exception as e:
            logger.error("Failed to open project %s: %s", node_id, e)
            raise ExternalOperationError("open project", str(e)) from e

    # ------------------------------------------------------------------
    # Graph operations
    # ------------------------------------------------------------------

    def remove_edge(self, source: str, target: str) -> bool:
        return self.store.remove_edge(source, target)

    def relayout(self, sort_key: SortKey | str) -> None:
        """Grid relayout of the scope; resets pan and zoom."""
        nodes = self.layout.relayout(self.store.nodes, sort_key, self.navigation.projects)
        self.store.replace(nodes, self.store.edges)
        self.view.reset_viewport()

    async def merge_selected(self) -> Optional[Project]:
        """Merge the current selection into a new project.

        The selection is cleared once the project exists and the merged
        project is then opened when an opener was injected.

        Raises:
            ValidationError: Fewer than two projects selected, or not in the
                projects scope.
            MergeCycleError: The selection's edges form a cycle.
            ExternalOperationError: The project could not be created, or the
                merged project could not be opened. Graph changes are kept
                in the latter case.
        """
        if self.view.merge_in_progress:
            logger.debug("Merge already in progress")
            return None
        if not self.navigation.scope.is_projects:
            raise ValidationError("Only projects can be merged")

        self.view.merge_in_progress = True
        try:
            created = await apply_merge(
                self.store,
                list(self.view.selection),
                self.navigation.projects,
                self.navigation.project_service,
            )
        finally:
            self.view.merge_in_progress = False

        self.navigation.upsert_project(created)
        self.view.selection = []
        if self.open_project is not None:
            try:
                await self.open_project(created.id)
            except Exception as e:
                logger.error("Failed to open merged project %s: %s", created.id, e)
                raise ExternalOperationError("open project", str(e)) from e
        return created

    async def delete_nodes(self, node_ids: Optional[Sequence[str]] = None) -> bool:
        """Delete projects (or commits) after interactive confirmation.

        Each node is removed locally only after its external delete call
        succeeded.

        Returns:
            False if the user declined, True otherwise.

        Raises:
            ExternalOperationError: At least one delete failed; nodes whose
                delete failed are kept.
        """
        ids = list(dict.fromkeys(node_ids if node_ids is not None else self.view.selection))
        ids = [node_id for node_id in ids if self.store.has_node(node_id)]
        if not ids:
            return False

        in_projects = self.navigation.scope.is_projects
        noun = "project" if in_projects else "commit"
        if len(ids) == 1:
            label = self.navigation.projects[ids[0]].name if ids[0] in self.navigation.projects else ids[0]
            message = f'Delete {noun} "{label}"? This cannot be undone.'
        else:
            message = f"Delete {len(ids)} {noun}s? This cannot be undone."
        if not await self.confirm(message):
            logger.debug("Deletion of %s declined", ", ".join(ids))
            return False

        failed: List[str] = []
        for node_id in ids:
            try:
                if in_projects:
                    await self._delete_project(node_id)
                else:
                    await self.navigation.delete_commit(node_id)
            except ExternalOperationError as e:
                logger.warning("Failed to delete %s %s: %s", noun, node_id, e)
                failed.append(node_id)
                continue
            self.view.forget_id(node_id)
            self.preview.invalidate(node_id)

        if failed:
            raise ExternalOperationError(f"delete {noun}", ", ".join(failed))
        return True

    async def _delete_project(self, project_id: str) -> None:
        try:
            await self.navigation.project_service.delete_project(project_id)
        except Exception as e:
            raise ExternalOperationError("delete project", str(e)) from e
        self.store.remove_node(project_id)
        self.navigation.forget_project(project_id)
        logger.info("Deleted project %s", project_id)

    async def rename_node(self, node_id: str, new_name: str) -> Project:
        """Rename a project, following an id change through the graph.

        Raises:
            ValidationError: Empty name, unknown project or commits scope.
            ExternalOperationError: The rename call failed; nothing changed.
        """
        name = new_name.strip()
        if not name:
            raise ValidationError("Name must not be empty")
        if not self.navigation.scope.is_projects or node_id not in self.navigation.projects:
            raise ValidationError(f"Unknown project: {node_id}")

        try:
            updated = await self.navigation.project_service.rename_project(node_id, name)
        except Exception as e:
            logger.error("Failed to rename project %s: %s", node_id, e)
            raise ExternalOperationError("rename project", str(e)) from e

        if updated.id != node_id:
            self.store.rename_node(node_id, updated.id)
            self.view.replace_id(node_id, updated.id)
        self.navigation.upsert_project(updated, previous_id=node_id)
        self.preview.invalidate(node_id)
        self.preview.invalidate(updated.id)
        return updated

    async def create_node(self, dialog: NodeCreationDialog) -> Optional[Project]:
        """Create a project from the node-creation dialog and place its node.

        The project name comes from the dialog's name, falling back to the
        last component of its path.

        Returns:
            The new project, or None if the dialog was cancelled.

        Raises:
            ValidationError: No usable name, not in the projects scope, or a
                non-project node type.
            ExternalOperationError: The create call failed.
        """
        result = await dialog()
        if result is None:
            return None
        name = (result.name or "").strip()
        if not name and result.path:
            name = PurePath(result.path.rstrip("/\\")).name.strip()
        if not name:
            raise ValidationError("Name must not be empty")
        if not self.navigation.scope.is_projects:
            raise ValidationError("Projects can only be created in the projects scope")
        if result.type != EntityType.PROJECT:
            raise ValidationError(f"Cannot create a {result.type.value} node in the projects scope")

        try:
            project = await self.navigation.project_service.create_project(name, "", open=False)
        except Exception as e:
            logger.error("Failed to create project %r: %s", name, e)
            raise ExternalOperationError("create project", str(e)) from e

        self.navigation.upsert_project(project)
        self.store.place_node(project.id, EntityType.PROJECT)
        return project


__all__ = [
    "ContextMenu",
    "DropZone",
    "DropZoneKind",
    "EdgeDraft",
    "GestureState",
    "InteractionController",
    "InvalidTransitionError",
    "PointerEvent",
    "ViewState",
    "WheelEvent",
]

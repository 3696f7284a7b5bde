"""Merging a selection of projects into a new derived project.

The primary entry point is :func:`merge_selected`, a pure function that
validates a selection, orders it along the lineage edges and builds the
merged content. :func:`apply_merge` is the caller side: it creates the
project through the external service and records provenance in the
graph store. Source projects are never deleted by a merge.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Sequence

from lineage.errors import ExternalOperationError, MergeCycleError, ValidationError
from lineage.graph.algorithms import EdgeLike, induced_edges, topological_sort
from lineage.graph.schema import GraphNode, Project
from lineage.graph.store import GraphStore
from lineage.layout.geometry import Point
from lineage.runtime.collaborators import ProjectService

logger = logging.getLogger("lineage.graph.merge")

SECTION_HEADER = "--- Content from {name} ---"


@dataclass(frozen=True)
class MergeResult:
    """What a merge would produce; nothing has been written yet."""

    ordered_source_ids: List[str]
    merged_content: str
    provisional_name: str


def merge_selected(
    selected_ids: Sequence[str],
    edges: Iterable[EdgeLike],
    project_lookup: Mapping[str, Project],
) -> MergeResult:
    """Validate and order a merge selection.

    Args:
        selected_ids: Selected project ids in selection order; the order
            breaks ties between unrelated projects.
        edges: All lineage edges of the scope; only the induced subset is used.
        project_lookup: Projects by id.

    Raises:
        ValidationError: Fewer than two valid projects are selected.
        MergeCycleError: The edges between the selected projects form a cycle.
    """
    unique_ids = list(dict.fromkeys(selected_ids))
    if len(unique_ids) < 2:
        raise ValidationError("Select at least 2 projects to merge")

    valid_ids = [node_id for node_id in unique_ids if node_id in project_lookup]
    if len(valid_ids) < 2:
        raise ValidationError("Select at least 2 valid projects to merge")

    relevant = induced_edges(valid_ids, edges)
    ordered = topological_sort(valid_ids, relevant)
    if ordered is None:
        raise MergeCycleError(valid_ids)

    sections: List[str] = []
    for node_id in ordered:
        project = project_lookup[node_id]
        sections.append(SECTION_HEADER.format(name=project.name))
        sections.append(project.content or "")
    merged_content = "\n\n".join(sections).strip()

    names = [project_lookup[node_id].name for node_id in ordered]
    return MergeResult(
        ordered_source_ids=ordered,
        merged_content=merged_content,
        provisional_name=f"Merged {'-'.join(names)}",
    )


def merged_node_position(
    store: GraphStore,
    source_ids: Sequence[str],
) -> Point:
    """Centroid of the sources plus the configured offset, kept clear of other nodes."""
    layout = store.layout
    sources: List[GraphNode] = [
        node for node in (store.get_node(node_id) for node_id in source_ids) if node is not None
    ]
    centre = layout.centroid(sources)
    cfg = layout.config
    if centre is None:
        start = Point(cfg.origin_x, cfg.origin_y)
    else:
        start = Point(centre.x + cfg.merge_offset_x, centre.y + cfg.merge_offset_y)
    return layout.find_free_position(start, store.nodes)


async def apply_merge(
    store: GraphStore,
    selected_ids: Sequence[str],
    projects: Mapping[str, Project],
    project_service: ProjectService,
) -> Project:
    """Merge the selection into a new project and record provenance.

    The store is only touched after the project was created: on any error
    the graph is left exactly as it was.

    Raises:
        ValidationError: See :func:`merge_selected`.
        MergeCycleError: See :func:`merge_selected`.
        ExternalOperationError: The project could not be created.
    """
    result = merge_selected(selected_ids, store.edges, projects)

    try:
        created = await project_service.create_project(
            result.provisional_name, result.merged_content, open=False
        )
    except Exception as e:
        logger.error("Failed to create merged project %r: %s", result.provisional_name, e)
        raise ExternalOperationError("create merged project", str(e)) from e

    position = merged_node_position(store, result.ordered_source_ids)
    store.add_node(GraphNode(id=created.id, x=position.x, y=position.y))
    for source_id in result.ordered_source_ids:
        store.add_edge(source_id, created.id)

    logger.info(
        "Merged %d project(s) into %s (%s)",
        len(result.ordered_source_ids),
        created.id,
        " -> ".join(result.ordered_source_ids),
    )
    return created


__all__ = ["MergeResult", "SECTION_HEADER", "apply_merge", "merge_selected", "merged_node_position"]

"""Tests for graph document IO and the debounced writer."""

import asyncio
import json
from pathlib import Path

import pytest

from lineage.config.schema import PersistenceConfig
from lineage.errors import ExternalOperationError
from lineage.graph.persistence import DebouncedGraphWriter, JsonGraphPersistence
from lineage.graph.schema import EntityType, GraphDocument, GraphEdge, GraphNode
from lineage.runtime.collaborators import GraphPersistence


def _document() -> GraphDocument:
    return GraphDocument(
        nodes=[
            GraphNode(id="A", x=10, y=20),
            GraphNode(id="B", x=300, y=20, entity_type=EntityType.PROJECT),
        ],
        edges=[GraphEdge(source="A", target="B")],
    )


@pytest.mark.asyncio
async def test_save_and_load_graph_document(tmp_path: Path) -> None:
    persistence = JsonGraphPersistence()
    await persistence.save_graph_data(str(tmp_path), _document())

    graph_file = tmp_path / ".lineage" / "graph.json"
    assert graph_file.exists()
    raw = json.loads(graph_file.read_text(encoding="utf-8"))
    assert raw["edges"] == [{"from": "A", "to": "B"}]
    assert raw["nodes"][0]["entityType"] == "project"
    assert not list(graph_file.parent.glob("*.tmp"))

    loaded = await persistence.load_graph_data(str(tmp_path))
    assert loaded == _document()


@pytest.mark.asyncio
async def test_missing_document_loads_empty(tmp_path: Path) -> None:
    loaded = await JsonGraphPersistence().load_graph_data(str(tmp_path))
    assert loaded.nodes == [] and loaded.edges == []


@pytest.mark.asyncio
async def test_corrupt_document_raises(tmp_path: Path) -> None:
    state = tmp_path / ".lineage"
    state.mkdir()
    (state / "graph.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(ExternalOperationError) as excinfo:
        await JsonGraphPersistence().load_graph_data(str(tmp_path))
    assert excinfo.value.operation == "load graph data"


@pytest.mark.asyncio
async def test_document_without_entity_type_defaults_to_project(tmp_path: Path) -> None:
    config = PersistenceConfig(state_dir="state", graph_filename="g.json")
    state = tmp_path / "state"
    state.mkdir()
    (state / "g.json").write_text(
        json.dumps({"nodes": [{"id": "A", "x": 1, "y": 2}], "edges": []}),
        encoding="utf-8",
    )

    loaded = await JsonGraphPersistence(config).load_graph_data(str(tmp_path))
    assert loaded.nodes[0].entity_type == EntityType.PROJECT


@pytest.mark.asyncio
async def test_burst_of_changes_writes_once(persistence: GraphPersistence) -> None:
    counter = {"value": 0}

    def snapshot() -> GraphDocument:
        return GraphDocument(nodes=[GraphNode(id=f"n{counter['value']}", x=0, y=0)])

    writer = DebouncedGraphWriter(persistence, "/repo", snapshot, delay=0.05)
    for _ in range(5):
        counter["value"] += 1
        writer.schedule()
        await asyncio.sleep(0.005)

    assert persistence.saves == []
    assert writer.pending

    await asyncio.sleep(0.15)

    assert writer.write_count == 1
    assert len(persistence.saves) == 1
    assert persistence.saves[0].nodes[0].id == "n5", "snapshot is taken when the write fires"
    assert not writer.pending


@pytest.mark.asyncio
async def test_flush_writes_immediately(persistence: GraphPersistence) -> None:
    writer = DebouncedGraphWriter(persistence, "/repo", _document, delay=10)
    writer.schedule()

    await writer.flush()

    assert len(persistence.saves) == 1
    assert not writer.pending
    await writer.flush()
    assert len(persistence.saves) == 1


@pytest.mark.asyncio
async def test_cancel_drops_pending_write(persistence: GraphPersistence) -> None:
    writer = DebouncedGraphWriter(persistence, "/repo", _document, delay=0.01)
    writer.schedule()
    writer.cancel()

    await asyncio.sleep(0.05)
    assert persistence.saves == []


def test_schedule_without_loop_waits_for_flush(persistence: GraphPersistence) -> None:
    writer = DebouncedGraphWriter(persistence, "/repo", _document, delay=0.01)
    writer.schedule()
    assert writer.pending

    asyncio.run(writer.flush())
    assert len(persistence.saves) == 1

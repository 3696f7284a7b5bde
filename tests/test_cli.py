"""Tests for lineage CLI entrypoints."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

import lineage.main as main


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(main, "setup_logging", lambda *a, **k: None)


def _make_repo(root: Path, graph: dict | None = None) -> Path:
    for name, text in (("Alpha", "alpha text"), ("Beta", "beta text")):
        folder = root / name
        (folder / ".lineage").mkdir(parents=True)
        (folder / "content.md").write_text(text, encoding="utf-8")
    if graph is not None:
        (root / ".lineage").mkdir()
        (root / ".lineage" / "graph.json").write_text(json.dumps(graph), encoding="utf-8")
    return root


def _graph(root: Path) -> dict:
    return json.loads((root / ".lineage" / "graph.json").read_text(encoding="utf-8"))


def test_check_places_projects_and_saves(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    repo = _make_repo(tmp_path)

    assert main.main(["check", str(repo)]) == 0

    out = capsys.readouterr().out
    assert "no cycles" in out
    saved = _graph(repo)
    assert sorted(node["id"] for node in saved["nodes"]) == ["Alpha", "Beta"]
    assert saved["edges"] == []


def test_check_reports_cycle(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    repo = _make_repo(
        tmp_path,
        {"nodes": [], "edges": [{"from": "Alpha", "to": "Beta"}, {"from": "Beta", "to": "Alpha"}]},
    )

    assert main.main(["check", str(repo)]) == 0
    assert "Cycle detected" in capsys.readouterr().out
    assert main.main(["check", str(repo), "--fail-on-cycle"]) == 1


def test_check_prunes_stale_nodes(tmp_path: Path) -> None:
    repo = _make_repo(
        tmp_path,
        {
            "nodes": [{"id": "Gone", "x": 0, "y": 0, "entityType": "project"}],
            "edges": [{"from": "Gone", "to": "Alpha"}],
        },
    )

    assert main.main(["check", str(repo)]) == 0

    saved = _graph(repo)
    assert "Gone" not in {node["id"] for node in saved["nodes"]}
    assert saved["edges"] == []


def test_order_follows_edges(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    repo = _make_repo(tmp_path, {"nodes": [], "edges": [{"from": "Beta", "to": "Alpha"}]})

    assert main.main(["order", str(repo), "Alpha", "Beta"]) == 0

    lines = [line.strip() for line in capsys.readouterr().out.splitlines() if line.strip()]
    assert lines == ["1. Beta", "2. Alpha"]


def test_order_unknown_project(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    assert main.main(["order", str(repo), "Alpha", "Nope"]) == 1


def test_merge_creates_project_folder(tmp_path: Path, capsys: pytest.CaptureFixture) -> None:
    repo = _make_repo(tmp_path, {"nodes": [], "edges": [{"from": "Beta", "to": "Alpha"}]})

    assert main.main(["merge", str(repo), "Alpha", "Beta"]) == 0

    merged = repo / "Merged Beta-Alpha"
    content = (merged / "content.md").read_text(encoding="utf-8")
    assert content == (
        "--- Content from Beta ---\n\nbeta text\n\n--- Content from Alpha ---\n\nalpha text"
    )
    assert "Merged Beta-Alpha" in capsys.readouterr().out
    edges = {(e["from"], e["to"]) for e in _graph(repo)["edges"]}
    assert edges == {("Beta", "Alpha"), ("Alpha", "Merged Beta-Alpha"), ("Beta", "Merged Beta-Alpha")}


def test_merge_with_cycle_fails(tmp_path: Path) -> None:
    repo = _make_repo(
        tmp_path,
        {"nodes": [], "edges": [{"from": "Alpha", "to": "Beta"}, {"from": "Beta", "to": "Alpha"}]},
    )

    assert main.main(["merge", str(repo), "Alpha", "Beta"]) == 1
    assert sorted(p.name for p in repo.iterdir() if not p.name.startswith(".")) == ["Alpha", "Beta"]


def test_relayout_by_name(tmp_path: Path) -> None:
    repo = _make_repo(
        tmp_path,
        {
            "nodes": [
                {"id": "Alpha", "x": 900, "y": 900},
                {"id": "Beta", "x": 0, "y": 0},
            ],
            "edges": [],
        },
    )

    assert main.main(["relayout", str(repo), "--sort", "name"]) == 0

    positions = {node["id"]: (node["x"], node["y"]) for node in _graph(repo)["nodes"]}
    assert positions == {"Alpha": (50, 50), "Beta": (270, 50)}


def test_invalid_config_exits_with_2(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    config = tmp_path / "broken.toml"
    config.write_text("layout = [", encoding="utf-8")

    assert main.main(["--config", str(config), "check", str(repo)]) == 2
    assert main.main(["--config", str(tmp_path / "absent.toml"), "check", str(repo)]) == 2


def test_config_file_is_applied(tmp_path: Path) -> None:
    repo = _make_repo(tmp_path)
    config = tmp_path / "lineage.toml"
    config.write_text("[layout]\norigin_x = 0\norigin_y = 0\n", encoding="utf-8")

    assert main.main(["--config", str(config), "relayout", str(repo)]) == 0

    positions = {node["id"]: (node["x"], node["y"]) for node in _graph(repo)["nodes"]}
    assert positions["Alpha"] == (0, 0)

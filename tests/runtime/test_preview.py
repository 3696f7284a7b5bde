"""Tests for hover previews and stale-response handling."""

import asyncio

import pytest

from lineage.config.schema import PreviewConfig
from lineage.graph.schema import Commit
from lineage.runtime.collaborators import ContentLoader
from lineage.runtime.preview import HoverPreviewCache, PreviewSource


@pytest.fixture
def projects(make_project) -> dict:
    return {
        "draft": make_project("draft", "inline draft", updated_at=1),
        "disk": make_project("disk", "", updated_at=1, path="/p/disk"),
        "history": make_project("history", "", updated_at=1, path="/p/history"),
        "blank": make_project("blank", "", updated_at=1, path="/p/blank"),
    }


@pytest.fixture
def cache(loader: ContentLoader, projects: dict) -> HoverPreviewCache:
    loader.contents["/p/disk"] = "content on disk"
    loader.commits["/p/history"] = [
        Commit(id="h1", commit_number=1, content="old"),
        Commit(id="h2", commit_number=2, content="latest"),
    ]
    return HoverPreviewCache(loader, projects.get)


@pytest.mark.asyncio
async def test_preview_fallback_order(cache: HoverPreviewCache) -> None:
    draft = await cache.hover("draft")
    assert (draft.content, draft.source) == ("inline draft", PreviewSource.DRAFT)

    disk = await cache.hover("disk")
    assert (disk.content, disk.source) == ("content on disk", PreviewSource.DRAFT)

    history = await cache.hover("history")
    assert (history.content, history.source) == ("latest", PreviewSource.COMMIT)

    blank = await cache.hover("blank")
    assert blank.content == "(No content or empty draft)"
    assert blank.source == PreviewSource.EMPTY


@pytest.mark.asyncio
async def test_long_content_is_truncated(loader: ContentLoader, make_project) -> None:
    project = make_project("long", "x" * 600)
    cache = HoverPreviewCache(loader, {"long": project}.get, config=PreviewConfig())

    preview = await cache.hover("long")

    assert preview.content == "x" * 500 + "..."


@pytest.mark.asyncio
async def test_cached_preview_is_reused_until_fingerprint_changes(
    cache: HoverPreviewCache, loader: ContentLoader, projects: dict
) -> None:
    await cache.hover("disk")
    await cache.hover("disk")
    assert loader.content_calls == ["/p/disk"]

    loader.contents["/p/disk"] = "edited"
    projects["disk"] = projects["disk"].model_copy(update={"updated_at": 2})

    preview = await cache.hover("disk")
    assert preview.content == "edited"
    assert loader.content_calls == ["/p/disk", "/p/disk"]


@pytest.mark.asyncio
async def test_child_count_is_part_of_fingerprint(loader: ContentLoader, projects: dict) -> None:
    loader.contents["/p/disk"] = "v1"
    children = {"disk": 0}
    cache = HoverPreviewCache(loader, projects.get, child_count=children.get)

    await cache.hover("disk")
    loader.contents["/p/disk"] = "v2"
    children["disk"] = 1

    assert (await cache.hover("disk")).content == "v2"


@pytest.mark.asyncio
async def test_slow_response_for_previous_hover_is_dropped(
    cache: HoverPreviewCache, loader: ContentLoader
) -> None:
    gate = asyncio.Event()
    loader.gates["/p/disk"] = gate

    slow = asyncio.create_task(cache.hover("disk"))
    await asyncio.sleep(0)
    fast = await cache.hover("draft")
    gate.set()
    stale = await slow

    assert stale is None
    assert fast.content == "inline draft"
    assert cache.displayed == fast
    assert cache.cached("disk") is None, "stale results are not cached"


@pytest.mark.asyncio
async def test_clear_discards_in_flight_preview(
    cache: HoverPreviewCache, loader: ContentLoader
) -> None:
    gate = asyncio.Event()
    loader.gates["/p/disk"] = gate

    pending = asyncio.create_task(cache.hover("disk"))
    await asyncio.sleep(0)
    cache.clear()
    gate.set()

    assert await pending is None
    assert cache.displayed is None


@pytest.mark.asyncio
async def test_commit_nodes_preview_their_snapshot(loader: ContentLoader) -> None:
    commits = {
        "c1": Commit(id="c1", commit_number=1, content="snapshot text"),
        "c2": Commit(id="c2", commit_number=2, content=""),
    }
    cache = HoverPreviewCache(loader, lambda _id: None, commit_lookup=commits.get)

    first = await cache.hover("c1")
    assert (first.content, first.source) == ("snapshot text", PreviewSource.COMMIT)
    second = await cache.hover("c2")
    assert second.source == PreviewSource.EMPTY


@pytest.mark.asyncio
async def test_loader_failure_falls_back_to_empty(
    cache: HoverPreviewCache, loader: ContentLoader
) -> None:
    loader.fail_on.update({"content", "commits"})
    preview = await cache.hover("disk")
    assert preview.source == PreviewSource.EMPTY


@pytest.mark.asyncio
async def test_invalidate_forces_reload(cache: HoverPreviewCache, loader: ContentLoader) -> None:
    await cache.hover("disk")
    cache.invalidate("disk")
    await cache.hover("disk")
    assert loader.content_calls == ["/p/disk", "/p/disk"]
    cache.invalidate()
    assert cache.cached("disk") is None

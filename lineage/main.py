"""Main CLI entry point for the lineage graph.

Provides commands: check, order, merge, relayout
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from lineage.config import LineageConfig, load_config
from lineage.errors import LineageError
from lineage.graph.algorithms import find_cycle_path, has_cycle, topological_sort
from lineage.graph.store import GraphStore
from lineage.layout.engine import LayoutEngine, SortKey
from lineage.runtime.collaborators import always_confirm
from lineage.runtime.filesystem import FileSystemRepository
from lineage.runtime.interaction import InteractionController
from lineage.runtime.navigation import NavigationController

logger = logging.getLogger("lineage.cli")

_SORT_CHOICES = {"name": SortKey.NAME, "updated": SortKey.UPDATED_AT}


def setup_logging(verbose: bool = False, console: Optional[Console] = None) -> None:
    """Setup logging configuration with Rich integration.

    Args:
        verbose: Enable verbose logging.
        console: Rich Console instance for coordinated output (optional).
    """
    level = logging.DEBUG if verbose else logging.WARNING

    handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=verbose,
        log_time_format="[%H:%M:%S]",
    )

    logging.basicConfig(
        level=level,
        format="[%(name)s] [%(levelname)s] %(message)s",
        handlers=[handler],
        force=True,
    )


async def _open_repository(
    repo: str, config: LineageConfig
) -> tuple[FileSystemRepository, NavigationController]:
    repository = FileSystemRepository(repo, config.persistence)
    store = GraphStore(LayoutEngine(config.layout))
    navigation = NavigationController(
        store,
        repository.repo_path,
        projects=repository,
        loader=repository,
        persistence=repository,
        config=config,
    )
    report = await navigation.load_projects_scope()
    if report.pruned_nodes:
        logger.warning("Pruned stale nodes: %s", ", ".join(report.pruned_nodes))
    return repository, navigation


async def _check(args: argparse.Namespace, config: LineageConfig, console: Console) -> int:
    _, navigation = await _open_repository(args.repo, config)
    await navigation.writer.flush()
    store = navigation.store

    table = Table(title=f"Lineage graph: {args.repo}")
    table.add_column("Project")
    table.add_column("Position", justify="right")
    table.add_column("Derived from")
    for node in store.nodes:
        project = navigation.project_for(node.id)
        parents = sorted(store.graph.predecessors(node.id))
        table.add_row(
            project.name if project else node.id,
            f"({node.x:.0f}, {node.y:.0f})",
            ", ".join(parents) or "-",
        )
    console.print(table)

    if not has_cycle(store.node_ids, store.edges):
        console.print(f"{store.node_count()} projects, {store.edge_count()} edges, no cycles")
        return 0

    cycle = find_cycle_path(store.node_ids, store.edges)
    logger.warning("Lineage cycle: %s", " -> ".join(cycle))
    console.print(f"[red]Cycle detected:[/red] {' -> '.join(cycle)}")
    return 1 if args.fail_on_cycle else 0


async def _order(args: argparse.Namespace, config: LineageConfig, console: Console) -> int:
    _, navigation = await _open_repository(args.repo, config)
    store = navigation.store
    missing = [pid for pid in args.ids if not store.has_node(pid)]
    if missing:
        console.print(f"[red]Unknown projects:[/red] {', '.join(missing)}")
        return 1

    ordered = topological_sort(args.ids, store.induced_edges(args.ids))
    if ordered is None:
        console.print("[red]Cannot order selection: cycle detected[/red]")
        return 1
    for idx, project_id in enumerate(ordered, start=1):
        console.print(f"{idx}. {project_id}")
    return 0


async def _merge(args: argparse.Namespace, config: LineageConfig, console: Console) -> int:
    _, navigation = await _open_repository(args.repo, config)
    controller = InteractionController(navigation, confirm=always_confirm, config=config)
    controller.view.selection = list(args.ids)
    created = await controller.merge_selected()
    await navigation.writer.flush()
    if created is None:
        return 1
    console.print(f"Created [bold]{created.name}[/bold] from {', '.join(args.ids)}")
    return 0


async def _relayout(args: argparse.Namespace, config: LineageConfig, console: Console) -> int:
    _, navigation = await _open_repository(args.repo, config)
    controller = InteractionController(navigation, confirm=always_confirm, config=config)
    controller.relayout(_SORT_CHOICES[args.sort])
    await navigation.writer.flush()
    console.print(f"Relaid out {navigation.store.node_count()} projects by {args.sort}")
    return 0


_COMMANDS = {
    "check": _check,
    "order": _order,
    "merge": _merge,
    "relayout": _relayout,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lineage",
        description="Lineage - project lineage graph and merge tool",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("--config", default=None, help="Path to a TOML/JSON configuration file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Load, prune and validate the lineage graph")
    check.add_argument("repo", help="Repository directory")
    check.add_argument(
        "--fail-on-cycle",
        action="store_true",
        help="Exit with status 1 when the graph contains a cycle",
    )

    order = subparsers.add_parser("order", help="Print the merge order of a selection")
    order.add_argument("repo", help="Repository directory")
    order.add_argument("ids", nargs="+", help="Project ids in selection order")

    merge = subparsers.add_parser("merge", help="Merge projects into a new derived project")
    merge.add_argument("repo", help="Repository directory")
    merge.add_argument("ids", nargs="+", help="Project ids in selection order")

    relayout = subparsers.add_parser("relayout", help="Arrange projects on a grid")
    relayout.add_argument("repo", help="Repository directory")
    relayout.add_argument("--sort", choices=sorted(_SORT_CHOICES), default="name")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        int: Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    console = Console()
    setup_logging(args.verbose, console=console)

    try:
        config = load_config(args.config)
    except (OSError, ValueError, TypeError) as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        return asyncio.run(_COMMANDS[args.command](args, config, console))
    except LineageError as e:
        logger.error("%s failed: %s", args.command, e)
        console.print(f"[red]{e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())

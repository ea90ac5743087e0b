"""
forge_map/cli.py - Command-line interface for the forge explorer.

Drives the exploration engine against a live forge without a browser:

    python -m forge_map search QUERY [--expand] [--html PATH]
    python -m forge_map topic NAME [--html PATH]
    python -m forge_map restore URL [--html PATH]
    python -m forge_map topics [QUERY] [--explore RANK] [--html PATH]
    python -m forge_map forks [--topic NAME] [--depth N] [--html PATH]

Endpoints default to ForgeMapConfig and can be overridden from a .env file,
the FORGE_REST_URL / FORGE_GRAPHQL_URL / FORGE_SHARE_BASE_URL environment
variables, or the matching flags.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
import time
from pathlib import Path
from typing import Optional

from forge_map.config import DEFAULT_CONFIG, ForgeMapConfig
from forge_map.models import NodeType

ENV_OVERRIDES = {
    "FORGE_REST_URL": "rest_url",
    "FORGE_GRAPHQL_URL": "graphql_url",
    "FORGE_SHARE_BASE_URL": "share_base_url",
}


# ── .env loader ───────────────────────────────────────────────────────────────

def _load_dotenv(env_file: str | None = None) -> dict[str, str]:
    """Load key=value pairs from a .env file into the environment.

    Existing environment values are NOT overwritten. Returns the newly
    loaded values.

    Args:
        env_file: Explicit path. If None, searches for .env starting from the
                  repo root up to the filesystem root.
    """
    if env_file is None:
        start = Path(__file__).parent.parent
        for directory in [start, *start.parents]:
            candidate = directory / ".env"
            if candidate.is_file():
                env_file = str(candidate)
                break

    if not env_file or not Path(env_file).is_file():
        return {}

    loaded: dict[str, str] = {}
    with open(env_file, encoding="utf-8") as fh:
        for raw_line in fh:
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            if key and key not in os.environ:
                os.environ[key] = value
                loaded[key] = value

    return loaded


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str = "INFO") -> None:
    """Configure root logger with timestamps and level names."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s - %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=numeric, format=fmt, datefmt=datefmt, stream=sys.stderr)
    # Per-request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger("forge_map.cli")


def build_config(args: argparse.Namespace, base: ForgeMapConfig = DEFAULT_CONFIG) -> ForgeMapConfig:
    """Apply environment variables, then explicit flags, on top of base."""
    overrides: dict[str, str] = {}
    for env_name, field_name in ENV_OVERRIDES.items():
        if os.environ.get(env_name):
            overrides[field_name] = os.environ[env_name]
    for field_name in ENV_OVERRIDES.values():
        value = getattr(args, field_name, None)
        if value:
            overrides[field_name] = value
    return dataclasses.replace(base, **overrides) if overrides else base


def _prepare(args: argparse.Namespace) -> ForgeMapConfig:
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)
    return build_config(args)


def _write_html(visualizer, path: Optional[str], title: str) -> Optional[str]:
    if not path:
        return None
    from forge_map.viz.plotly_graph import build_exploration_figure, save_figure_html

    try:
        fig = build_exploration_figure(visualizer.graph, title=title)
    except ImportError as exc:
        logger.warning("HTML export skipped: %s", exc)
        return None
    save_figure_html(fig, path)
    return path


def _print_graph_summary(heading: str, explorer, elapsed: float, html_path: Optional[str]) -> None:
    repo = explorer.graph.repository
    print()
    print("=" * 60)
    print(f"  {heading}")
    print("=" * 60)
    print(f"  Elapsed     : {elapsed:.1f}s")
    print(f"  Projects    : {len(repo.ids(NodeType.PROJECT))}")
    print(f"  Users       : {len(repo.ids(NodeType.USER))}")
    print(f"  Groups      : {len(repo.ids(NodeType.GROUP))}")
    print(f"  Edges       : {explorer.visualizer.graph.number_of_edges()}")
    if html_path:
        print(f"  HTML        : {html_path}")
    print("=" * 60)


# ── Subcommand: search ────────────────────────────────────────────────────────

async def _search(config: ForgeMapConfig, args: argparse.Namespace, topic: Optional[str]) -> int:
    from forge_map.ingestion.transport import ForgeTransport
    from forge_map.session import ForgeClients, ProjectsExplorer

    t0 = time.monotonic()
    async with ForgeTransport(config) as transport:
        explorer = ProjectsExplorer(
            ForgeClients.over(transport), config=config, restriction_topic=topic
        )
        handle = explorer.search(getattr(args, "query", "") or "")
        if handle is not None:
            await handle.wait()
        if getattr(args, "expand", False):
            await explorer.expand_all()
        share_url = explorer.actions.copy_link()

    label = f"topic {topic!r}" if topic else f"search {args.query!r}"
    html_path = _write_html(explorer.visualizer, args.html, f"Forge {label}")
    _print_graph_summary(f"FORGE MAP - {label.upper()}", explorer, time.monotonic() - t0, html_path)
    print(f"  Share link  : {share_url}")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Projects matching a query, optionally expanded one level."""
    config = _prepare(args)
    return asyncio.run(_search(config, args, topic=None))


def cmd_topic(args: argparse.Namespace) -> int:
    """Projects carrying one topic."""
    config = _prepare(args)
    return asyncio.run(_search(config, args, topic=args.name))


# ── Subcommand: restore ───────────────────────────────────────────────────────

async def _restore(config: ForgeMapConfig, args: argparse.Namespace, state) -> int:
    from forge_map.ingestion.transport import ForgeTransport
    from forge_map.session import ForgeClients, ProjectsExplorer

    t0 = time.monotonic()
    async with ForgeTransport(config) as transport:
        explorer = ProjectsExplorer(ForgeClients.over(transport), config=config)
        restored = await explorer.restore(state)

    html_path = _write_html(explorer.visualizer, args.html, "Forge shared exploration")
    _print_graph_summary("FORGE MAP - RESTORE COMPLETE", explorer, time.monotonic() - t0, html_path)
    print(f"  Restored    : {restored}/{len(set(state.projects))} project(s)")
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    """Rebuild the graph described by a shared link."""
    config = _prepare(args)

    from forge_map.state.codec import InvalidStateToken, parse_share_url

    try:
        state = parse_share_url(args.url)
    except InvalidStateToken as exc:
        logger.error("Invalid shared link: %s", exc)
        return 2
    if state.is_empty():
        logger.warning("Shared link carries no projects, users or groups.")
    return asyncio.run(_restore(config, args, state))


# ── Subcommand: topics ────────────────────────────────────────────────────────

async def _topics(config: ForgeMapConfig, args: argparse.Namespace) -> int:
    from forge_map.ingestion.transport import ForgeTransport
    from forge_map.session import ForgeClients, TopicsExplorer

    chosen: list[str] = []
    async with ForgeTransport(config) as transport:
        explorer = TopicsExplorer(ForgeClients.over(transport))
        explorer.topic_chosen.subscribe(chosen.append)
        await explorer.search(args.query or "").wait()

    print()
    print("=" * 60)
    print(f"  FORGE MAP - TOPICS ({len(explorer.topics)})")
    print("=" * 60)
    for rank, topic in enumerate(explorer.topics[: args.limit], start=1):
        print(f"  {rank:4d}. {topic.total_projects_count:6d}  {topic.label}")
    print("=" * 60)

    if args.explore is None:
        return 0
    if not 1 <= args.explore <= len(explorer.topics):
        logger.error("No topic at rank %d (%d listed)", args.explore, len(explorer.topics))
        return 2
    explorer.select_topic(explorer.topics[args.explore - 1])
    explorer.explore_selected()
    return await _search(config, args, topic=chosen[-1])


def cmd_topics(args: argparse.Namespace) -> int:
    """List topics by number of projects."""
    config = _prepare(args)
    return asyncio.run(_topics(config, args))


# ── Subcommand: forks ─────────────────────────────────────────────────────────

async def _forks(config: ForgeMapConfig, args: argparse.Namespace) -> int:
    from forge_map.ingestion.transport import ForgeTransport
    from forge_map.session import ForgeClients, ForkLineageExplorer

    topic = args.topic or config.fork_lineage_topic
    t0 = time.monotonic()
    async with ForgeTransport(config) as transport:
        explorer = ForkLineageExplorer(ForgeClients.over(transport), config=config)
        await explorer.load(topic).wait()
        await explorer.expand_forks(args.depth)

    html_path = _write_html(explorer.visualizer, args.html, f"Fork lineage of {topic!r}")
    _print_graph_summary(
        f"FORGE MAP - FORK LINEAGE {topic!r}", explorer, time.monotonic() - t0, html_path
    )
    return 0


def cmd_forks(args: argparse.Namespace) -> int:
    """Projects of the lineage topic and their forks."""
    config = _prepare(args)
    return asyncio.run(_forks(config, args))


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="forge-map",
        description=(
            "Forge map - explore projects, users, groups and topics of a forge as a graph.\n"
            "Reads FORGE_* settings from .env automatically."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Projects matching "math", expanded to their users and groups
  python -m forge_map search math --expand --html math.html

  # Projects of one topic
  python -m forge_map topic "Mathématiques"

  # Rebuild a shared link
  python -m forge_map restore "http://localhost:4200/favoris?projects=..."

  # Most used topics, then the graph of the first one
  python -m forge_map topics --limit 10 --explore 1

  # Fork lineage, two levels deep
  python -m forge_map forks --depth 2 --html forks.html
        """,
    )

    # Global flags
    parser.add_argument(
        "--env-file",
        default=None,
        metavar="PATH",
        help="Path to .env file (default: auto-detect .env in repo root)",
    )
    parser.add_argument("--rest-url", dest="rest_url", default=None, metavar="URL",
                        help="Forge REST v4 root (overrides FORGE_REST_URL)")
    parser.add_argument("--graphql-url", dest="graphql_url", default=None, metavar="URL",
                        help="Forge GraphQL endpoint (overrides FORGE_GRAPHQL_URL)")
    parser.add_argument("--share-base-url", dest="share_base_url", default=None, metavar="URL",
                        help="Origin used in share links (overrides FORGE_SHARE_BASE_URL)")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    def add_html_flag(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--html",
            default=None,
            metavar="PATH",
            help="Write an interactive plotly view of the graph to PATH",
        )

    # search
    p_search = subparsers.add_parser("search", help="Graph of the projects matching a query")
    p_search.add_argument("query", help="Search text")
    p_search.add_argument("--expand", action="store_true",
                          help="Expand every result once (users and groups)")
    add_html_flag(p_search)
    p_search.set_defaults(func=cmd_search)

    # topic
    p_topic = subparsers.add_parser("topic", help="Graph of the projects carrying a topic")
    p_topic.add_argument("name", help="Topic name")
    p_topic.add_argument("--expand", action="store_true", help=argparse.SUPPRESS)
    add_html_flag(p_topic)
    p_topic.set_defaults(func=cmd_topic)

    # restore
    p_restore = subparsers.add_parser("restore", help="Rebuild the graph of a shared link")
    p_restore.add_argument("url", help="Shared link")
    add_html_flag(p_restore)
    p_restore.set_defaults(func=cmd_restore)

    # topics
    p_topics = subparsers.add_parser("topics", help="List topics by project count")
    p_topics.add_argument("query", nargs="?", default="", help="Optional topic search text")
    p_topics.add_argument("--limit", type=int, default=50, help="Rows to print (default: 50)")
    p_topics.add_argument("--explore", type=int, default=None, metavar="RANK",
                          help="Then graph the projects of the topic listed at RANK")
    p_topics.add_argument("--expand", action="store_true", help=argparse.SUPPRESS)
    add_html_flag(p_topics)
    p_topics.set_defaults(func=cmd_topics)

    # forks
    p_forks = subparsers.add_parser("forks", help="Fork lineage of a topic's projects")
    p_forks.add_argument("--topic", default=None, metavar="NAME",
                         help=f"Lineage topic (default: {DEFAULT_CONFIG.fork_lineage_topic!r})")
    p_forks.add_argument("--depth", type=int, default=1, help="Fork levels to expand (default: 1)")
    add_html_flag(p_forks)
    p_forks.set_defaults(func=cmd_forks)

    return parser


# ── Entry point ───────────────────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

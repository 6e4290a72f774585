"""Command-line interface for ctxgraph."""

from __future__ import annotations

import json
import sys
import time
from pathlib import Path

import click

from ctxgraph import __version__
from ctxgraph.config import (
    GRAPH_DB_FILE,
    find_project_root,
    get_ctxgraph_dir,
    load_config,
    save_config,
    set_config_value,
)
from ctxgraph.exceptions import CtxGraphError
from ctxgraph.ui.console import Console, configure_logging

console = Console()

TEXT_SUFFIXES = {".md", ".markdown", ".txt", ".rst", ".py", ".js", ".ts", ".html", ".json", ".yaml", ".yml"}
CODE_SUFFIXES = {".py", ".js", ".ts"}


def _get_project_root(path: str | None = None) -> Path:
    """Find the project root or error."""
    if path:
        root = Path(path).resolve()
        if not root.exists():
            console.error(f"Path does not exist: {path}")
            sys.exit(1)
        return root

    root = find_project_root()
    if root is None:
        console.error(
            "No ctxgraph project found. Run 'ctxgraph init' first, "
            "or specify a path with --path."
        )
        sys.exit(1)
    return root


def _open_engine(root: Path, scope: str | None = None):
    """Engine over the project's graph.db, with `scope` loaded from disk."""
    from ctxgraph.engine import ContextEngine

    config = load_config(root)
    ctx = click.get_current_context(silent=True)
    if not (ctx and ctx.find_root().params.get("verbose")):
        configure_logging(config.logging.level, console.console)
    engine = ContextEngine.from_config(config, db_path=get_ctxgraph_dir(root) / GRAPH_DB_FILE)
    scope = scope or config.default_scope
    engine.load_scope(scope)
    return engine, scope


def _collect_files(paths: tuple[str, ...]) -> list[Path]:
    files: list[Path] = []
    for raw in paths:
        p = Path(raw)
        if p.is_dir():
            files.extend(
                f for f in sorted(p.rglob("*"))
                if f.is_file() and f.suffix.lower() in TEXT_SUFFIXES
                and not any(part.startswith(".") for part in f.relative_to(p).parts)
            )
        elif p.is_file():
            files.append(p)
        else:
            console.warning(f"Skipping missing path: {raw}")
    return files


@click.group()
@click.version_option(version=__version__, prog_name="ctxgraph")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose: bool):
    """ctxgraph - chunk documents, link them into a graph, retrieve budgeted context."""
    configure_logging("DEBUG" if verbose else "WARNING", console.console)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--scope", "-s", default=None, help="Default scope key.")
def init(path: str | None, scope: str | None):
    """Create a .ctxgraph/ directory with a default configuration."""
    root = Path(path or ".").resolve()
    if not root.exists():
        console.error(f"Path does not exist: {root}")
        sys.exit(1)

    console.banner()
    console.info(f"Initializing ctxgraph in: {root}")

    try:
        config = load_config(root)
    except CtxGraphError as e:
        console.error(str(e))
        sys.exit(1)
    config.name = root.name
    config.root_path = str(root)
    if scope:
        config.default_scope = scope

    save_config(root, config)
    console.success("Configuration saved to .ctxgraph/")


@main.command()
@click.argument("paths", nargs=-1, required=True)
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--scope", "-s", default=None, help="Scope key to ingest into.")
@click.option("--type", "content_type", default=None, help="Content type (code, documentation, ...).")
def ingest(paths: tuple[str, ...], path: str | None, scope: str | None, content_type: str | None):
    """Chunk files into context nodes and rebuild the scope's graph."""
    from ctxgraph.nodes.models import SourceContent

    root = _get_project_root(path)
    files = _collect_files(paths)
    if not files:
        console.error("No files to ingest.")
        sys.exit(1)

    try:
        engine, scope = _open_engine(root, scope)
        start_time = time.time()
        total = 0
        for f in files:
            try:
                text = f.read_text()
            except (OSError, UnicodeDecodeError) as e:
                console.warning(f"Could not read {f}: {e}")
                continue
            resolved = f.resolve()
            source = SourceContent(
                id=resolved.relative_to(root).as_posix() if resolved.is_relative_to(root) else f.name,
                title=f.stem,
                content=text,
                type=content_type or ("code" if f.suffix.lower() in CODE_SUFFIXES else "documentation"),
            )
            total += len(engine.ingest(source, scope))

        graph = engine.build_graph(scope, force=True)
    except CtxGraphError as e:
        console.error(str(e))
        sys.exit(1)

    console.success(
        f"Ingested {len(files)} file(s) into {total} nodes in {time.time() - start_time:.1f}s"
    )
    console.show_stats(graph.stats())


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--max-size", "-m", default=None, type=int, help="Max tokens per fragment.")
@click.option("--overlap", default=None, type=int, help="Overlap tokens between fragments.")
def chunk(file: str, max_size: int | None, overlap: int | None):
    """Show how a file would be split into fragments."""
    from ctxgraph.chunking import ChunkingStrategy, ConversationChunker, SemanticChunker
    from ctxgraph.chunking.conversation import looks_like_conversation

    text = Path(file).read_text()
    overrides = {}
    if max_size is not None:
        overrides["max_chunk_size"] = max_size
    if overlap is not None:
        overrides["overlap_tokens"] = overlap
    strategy = ChunkingStrategy(**overrides)

    if looks_like_conversation(text):
        result = ConversationChunker().chunk(text, strategy)
    else:
        result = SemanticChunker().chunk(text, strategy)
    console.show_fragments(result)


@main.command()
@click.option("--path", "-p", default=None, help="Path to the project root.")
def status(path: str | None):
    """Show stored graphs and their statistics."""
    root = _get_project_root(path)
    db_path = get_ctxgraph_dir(root) / GRAPH_DB_FILE
    if not db_path.exists():
        console.info("Nothing ingested yet. Run 'ctxgraph ingest <paths>'.")
        return

    try:
        engine, _ = _open_engine(root)
        scopes = engine.graphs.documents.keys()
    except CtxGraphError as e:
        console.error(str(e))
        sys.exit(1)
    if not scopes:
        console.info("No graphs stored.")
        return
    for scope in scopes:
        graph = engine.get_graph(scope)
        if graph is not None:
            console.show_stats(graph.stats())


@main.command()
@click.argument("query")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--scope", "-s", default=None, help="Scope key to search.")
@click.option("--limit", "-n", default=None, type=int, help="Max results.")
@click.option("--depth", "-d", default=None, type=int, help="Max traversal depth.")
def search(query: str, path: str | None, scope: str | None, limit: int | None, depth: int | None):
    """Search a scope's graph for nodes relevant to QUERY."""
    root = _get_project_root(path)
    try:
        engine, scope = _open_engine(root, scope)
        overrides = {}
        if limit is not None:
            overrides["max_results"] = limit
        if depth is not None:
            overrides["max_depth"] = depth
        results = engine.search(query, scope, engine.search_options(**overrides))
    except CtxGraphError as e:
        console.error(str(e))
        sys.exit(1)

    if not results:
        console.warning(f"No results for: {query}")
        return
    console.info(f"{len(results)} result(s) for: {query}")
    console.show_search_results(results)


@main.command()
@click.argument("query")
@click.option("--path", "-p", default=None, help="Path to the project root.")
@click.option("--scope", "-s", default=None, help="Scope key to retrieve from.")
@click.option("--budget", "-b", default=None, type=int, help="Token budget for the window.")
@click.option(
    "--order",
    type=click.Choice(["original", "relevance"]),
    default=None,
    help="Render order of selected nodes.",
)
@click.option("--all-nodes", is_flag=True, help="Consider every node in the scope, not just search hits.")
def context(
    query: str,
    path: str | None,
    scope: str | None,
    budget: int | None,
    order: str | None,
    all_nodes: bool,
):
    """Assemble a token-budgeted context window for QUERY."""
    from ctxgraph.context.models import WindowOrder

    root = _get_project_root(path)
    try:
        engine, scope = _open_engine(root, scope)
        options = engine.window_options()
        if order:
            options = options.model_copy(update={"order": WindowOrder(order)})
        if all_nodes:
            window = engine.build_window(query, scope, budget, options)
        else:
            window = engine.retrieve(query, scope, budget, options)
    except CtxGraphError as e:
        console.error(str(e))
        sys.exit(1)

    if window.is_empty:
        console.warning("No nodes fit the budget for this query.")
        return
    console.show_window(window)


@main.command("config")
@click.argument("action", type=click.Choice(["set", "get", "show"]))
@click.argument("key", required=False)
@click.argument("value", required=False)
@click.option("--path", "-p", default=None, help="Path to the project root.")
def config_cmd(action: str, key: str | None, value: str | None, path: str | None):
    """Manage ctxgraph configuration."""
    root = _get_project_root(path)
    try:
        config = load_config(root)
    except CtxGraphError as e:
        console.error(str(e))
        sys.exit(1)

    if action == "show":
        console.console.print_json(json.dumps(config.model_dump(mode="json"), indent=2))
    elif action == "get":
        if not key:
            console.error("Usage: ctxgraph config get <key>")
            sys.exit(1)
        data = config.model_dump(mode="json")
        for part in key.split("."):
            if isinstance(data, dict) and part in data:
                data = data[part]
            else:
                console.error(f"Unknown key: {key}")
                sys.exit(1)
        console.console.print(f"{key} = {data}")
    elif action == "set":
        if not key or value is None:
            console.error("Usage: ctxgraph config set <key> <value>")
            sys.exit(1)
        try:
            # JSON first so numbers and booleans keep their type
            try:
                parsed_value = json.loads(value)
            except json.JSONDecodeError:
                parsed_value = value

            config = set_config_value(config, key, parsed_value)
            save_config(root, config)
            console.success(f"Set {key} = {parsed_value}")
        except KeyError:
            console.error(f"Unknown config key: {key}")
            sys.exit(1)
        except ValueError as e:
            console.error(f"Invalid value for {key}: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()

"""Rich-powered console output for ctxgraph."""

from __future__ import annotations

import logging

from rich.console import Console as RichConsole
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ctxgraph import __version__
from ctxgraph.chunking.models import ChunkingResult
from ctxgraph.context.models import ContextWindow
from ctxgraph.search.engine import SearchResult


def configure_logging(level: str = "INFO", console: RichConsole | None = None) -> None:
    """Route ctxgraph loggers through a Rich handler."""
    handler = RichHandler(console=console, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(message)s"))
    root = logging.getLogger("ctxgraph")
    root.handlers = [handler]
    root.setLevel(level.upper())
    root.propagate = False


class Console:
    """Terminal output for ctxgraph using Rich."""

    def __init__(self) -> None:
        self.console = RichConsole()

    def banner(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]ctxgraph[/bold cyan] [dim]v{__version__}[/dim]\n"
                "[dim]Semantic chunks, similarity graphs, budgeted context[/dim]",
                border_style="cyan",
                padding=(1, 2),
            )
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]![/yellow] {message}")

    def info(self, message: str) -> None:
        self.console.print(f"[blue]i[/blue] {message}")

    def show_stats(self, stats: dict) -> None:
        """Display graph statistics in a table."""
        table = Table(title=f"Context Graph: {stats.get('scope', '')}", border_style="cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right", style="cyan")

        table.add_row("Nodes", str(stats.get("total_nodes", 0)))
        table.add_row("Edges", str(stats.get("total_edges", 0)))
        table.add_row("Components", str(stats.get("components", 0)))
        table.add_row("Density", f"{stats.get('density', 0.0):.3f}")
        table.add_row("Tokens", f"{stats.get('total_tokens', 0):,}")

        edge_types = stats.get("edge_types", {})
        if edge_types:
            table.add_section()
            for kind, count in sorted(edge_types.items(), key=lambda x: -x[1]):
                table.add_row(f"  {kind} edges", str(count))

        self.console.print(table)

    def show_fragments(self, result: ChunkingResult) -> None:
        table = Table(
            title=f"{result.count} fragments (~{result.total_tokens:,} tokens)",
            border_style="cyan",
        )
        table.add_column("#", justify="right")
        table.add_column("Type", style="bold")
        table.add_column("Tokens", justify="right", style="cyan")
        table.add_column("Preview", style="dim")
        for fragment in result.fragments:
            preview = fragment.content[:70].replace("\n", " ")
            table.add_row(
                str(fragment.index), fragment.chunk_type.value, str(fragment.token_count), escape(preview)
            )
        self.console.print(table)

    def show_search_results(self, results: list[SearchResult]) -> None:
        for r in results:
            self.console.print(
                f"  [bold]{escape(r.node.id)}[/bold] [dim]({r.node.chunk_type})[/dim] "
                f"relevance=[cyan]{r.relevance:.2f}[/cyan] "
                f"importance={r.node.importance:.2f} path={escape(' → '.join(r.path))}"
            )
            if r.node.summary:
                self.console.print(f"    [dim]{escape(r.node.summary)}[/dim]")

    def show_window(self, window: ContextWindow) -> None:
        self.console.print(window.text, markup=False, highlight=False)
        self.console.print()
        self.console.print(f"[dim]{escape(window.summary())}[/dim]", highlight=False)

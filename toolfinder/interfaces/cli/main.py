"""
CLI Main - Typer-based command-line interface.

Usage:
    toolfinder init
    toolfinder search "react hooks" --category tools --page tools=2
    toolfinder search "react hooks" --type video
    toolfinder suggest "reac"
    toolfinder serve
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from toolfinder.domains.catalog import SubmissionType

if TYPE_CHECKING:
    from toolfinder.domains.enhancement import ResultEnhancer

app = typer.Typer(
    name="toolfinder",
    help="Toolfinder - Hybrid search over tools, submissions, tags, users and lists",
    add_completion=False,
)
console = Console()

_LABEL_FIELDS = ("tool_name", "submission_name", "tag_name", "username", "list_name")
_DETAIL_FIELDS = ("tool_description", "submission_description", "tag_description", "user_bio")


@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Configure logging from settings."""
    from toolfinder.config import get_settings

    level = "DEBUG" if verbose else get_settings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def parse_pages(values: list[str] | None) -> dict[str, str]:
    """Parse ``category=N`` options into page parameters."""
    pages: dict[str, str] = {}
    for value in values or []:
        name, sep, number = value.partition("=")
        if not sep or not name.strip():
            raise typer.BadParameter(f"Expected CATEGORY=N, got {value!r}")
        pages[name.strip().lower()] = number.strip()
    return pages


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    category: list[str] | None = typer.Option(
        None, "--category", "-c", help="Category to search (repeatable)"
    ),
    per_page: int | None = typer.Option(None, "--per-page", "-n", help="Results per category"),
    page: list[str] | None = typer.Option(None, "--page", "-p", help="CATEGORY=N (repeatable)"),
    semantic: bool = typer.Option(True, "--semantic/--keyword-only", help="Use semantic search"),
    fulltext: bool = typer.Option(True, "--fulltext/--no-fulltext", help="Full-text submissions"),
    submission_type: SubmissionType | None = typer.Option(
        None, "--type", "-t", help="Only submissions of this type"
    ),
    enhance: bool = typer.Option(False, "--enhance", "-e", help="AI summaries for submissions"),
) -> None:
    """Search every category (or the selected ones)."""
    pages = parse_pages(page)
    asyncio.run(
        _search_async(
            query, category, per_page, pages, semantic, fulltext, enhance, submission_type
        )
    )


async def _search_async(
    query: str,
    categories: list[str] | None,
    per_page: int | None,
    pages: dict[str, str],
    semantic: bool,
    fulltext: bool,
    enhance: bool,
    submission_type: SubmissionType | None = None,
) -> None:
    """Async search implementation."""
    from toolfinder.domains.search import Category

    repo, service = _build_search()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Searching...", total=None)
            results = await service.search(
                query,
                categories=categories,
                pages=pages,
                per_page=per_page,
                use_semantic=semantic,
                use_fulltext=fulltext,
                submission_type=submission_type,
            )

            enhanced = None
            submissions = results.get(Category.SUBMISSIONS)
            if enhance and submissions is not None and submissions.items:
                progress.update(task, description="Generating summaries...")
                enhanced = await _build_enhancer().enhance(query, submissions.items)
    finally:
        await repo.close()

    console.print(f"\n[yellow]Results for:[/yellow] {query}\n")
    for category, result in results.items():
        console.print(_results_table(category.value, result))

    if enhanced:
        for item in enhanced:
            if not item.enhanced:
                continue
            console.print(
                Panel(
                    f"[bold]Summary:[/bold] {item.summary or 'N/A'}\n"
                    f"[bold]Why it matches:[/bold] {item.relevance_explanation or 'N/A'}",
                    title=_label(item.entity),
                )
            )


@app.command()
def suggest(
    query: str = typer.Argument(..., help="Partial query"),
) -> None:
    """Show type-ahead suggestions (first few results per category)."""
    asyncio.run(_suggest_async(query))


async def _suggest_async(query: str) -> None:
    """Async suggestions implementation."""
    from toolfinder.config import get_settings

    settings = get_settings()
    text = query.strip()
    if len(text) < settings.search_suggestion_min_length:
        console.print(
            f"[dim]Type at least {settings.search_suggestion_min_length} characters.[/dim]"
        )
        return

    repo, service = _build_search()
    try:
        results = await service.search(text, per_page=settings.search_suggestion_per_page)
    finally:
        await repo.close()

    for category, result in results.items():
        names = ", ".join(_label(item) for item in result.items) or "[dim]none[/dim]"
        console.print(f"[cyan]{category.value:<12}[/cyan] {names}")


def _build_search() -> tuple[Any, Any]:
    """Wire the repository, embedder and orchestrator from settings."""
    from toolfinder.adapters import CatalogRepository, SentenceTransformerEmbedder
    from toolfinder.config import get_settings
    from toolfinder.domains.search import GlobalSearchService, SearchConfig, build_adapters

    settings = get_settings()
    if not Path(settings.db_path).exists():
        console.print(f"[red]Error:[/red] Database not found: {settings.db_path}")
        console.print("Run `toolfinder init` and `python tools/build_index.py` first.")
        raise typer.Exit(1)

    repo = CatalogRepository(settings.db_path)
    embedder = SentenceTransformerEmbedder(
        settings.embedding_model,
        timeout_seconds=settings.embedding_timeout_seconds,
        cache_size=settings.embedding_cache_size,
    )
    config = SearchConfig.from_settings(settings)
    return repo, GlobalSearchService(build_adapters(repo, embedder, config), config)


def _build_enhancer() -> ResultEnhancer:
    from toolfinder.adapters import get_llm_service
    from toolfinder.config import get_settings
    from toolfinder.domains.enhancement import RagEnhancer

    settings = get_settings()
    return RagEnhancer(
        get_llm_service(settings),
        top_k=settings.rag_top_k,
        concurrency=settings.rag_concurrency,
    )


def _label(entity: Any) -> str:
    for field in _LABEL_FIELDS:
        value = getattr(entity, field, None)
        if value:
            return str(value)
    return f"#{getattr(entity, 'id', '?')}"


def _detail(entity: Any) -> str:
    for field in _DETAIL_FIELDS:
        value = getattr(entity, field, None)
        if value:
            return str(value)[:80]
    return ""


def _results_table(name: str, result: Any) -> Table:
    table = Table(
        title=f"{name} (page {result.page}, {result.total_count} total)",
        title_justify="left",
    )
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Details", style="green")

    for item in result.items:
        table.add_row(str(getattr(item, "id", "")), _label(item), _detail(item))
    if not result.items:
        table.add_row("", "[dim]no results[/dim]", "")
    return table


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    from toolfinder.config import get_settings

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting Toolfinder API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "toolfinder.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def init(
    db_path: Path | None = typer.Option(None, "--db", "-d", help="Database path"),
) -> None:
    """Create the catalog database schema."""
    asyncio.run(_init_async(db_path))


async def _init_async(db_path: Path | None) -> None:
    """Async initialization."""
    from toolfinder.adapters import CatalogRepository
    from toolfinder.config import get_settings

    path = db_path or Path(get_settings().db_path)
    path.parent.mkdir(parents=True, exist_ok=True)

    repo = CatalogRepository(path)
    try:
        await repo.initialize()
        counts = await repo.counts()
    finally:
        await repo.close()

    table = Table(title="Catalog")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", style="green", justify="right")
    for name, count in counts.items():
        table.add_row(name, str(count))

    console.print("\n[green]Initialization complete![/green]")
    console.print(f"[dim]Database: {path}[/dim]\n")
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from toolfinder import __version__

    console.print(f"Toolfinder v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()

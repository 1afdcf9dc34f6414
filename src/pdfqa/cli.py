"""CLI interface for pdfqa.

Typer-based command-line interface with Rich output formatting.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from pdfqa import __version__
from pdfqa.chat import ConversationHistory
from pdfqa.exceptions import PdfqaError
from pdfqa.ingest import get_parser_for
from pdfqa.manifest import DocumentEntry, compute_hash
from pdfqa.pipeline import Pipeline
from pdfqa.project import ProjectManager
from pdfqa.store import ChromaChunkStore, JsonSummaryStore

if TYPE_CHECKING:
    from pdfqa.config import PdfqaConfig
    from pdfqa.types import (
        ChatAnswer,
        ChunkStoreStats,
        ServiceResponse,
        SummarizationResult,
        SummaryStats,
    )

__all__ = ["app"]

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="pdfqa",
    help="Chunk, summarize and question a PDF document.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_PREVIEW_CHARS = 80


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show log output"),
    ] = False,
) -> None:
    """Chunk, summarize and question a PDF document."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
            force=True,
        )


def _project() -> ProjectManager:
    """Project for the current directory; exits when none is initialized."""
    pm = ProjectManager()
    if not pm.is_initialized:
        console.print("[yellow]No pdfqa project found.[/yellow] Run [bold]pdfqa init[/bold] first.")
        raise typer.Exit(code=1)
    return pm


def _build_pipeline(pm: ProjectManager, config: PdfqaConfig) -> Pipeline:
    """Wire the persistent stores and configured providers into a Pipeline."""
    try:
        chunk_store = ChromaChunkStore(
            persist_path=pm.chroma_path,
            collection_name=config.store.collection_name,
        )
        return Pipeline.from_config(
            config,
            chunk_store=chunk_store,
            summary_cache=JsonSummaryStore(pm.summary_cache_path),
            saved_summaries=JsonSummaryStore(pm.summaries_path),
        )
    except PdfqaError as e:
        console.print(f"[red]Failed to initialize pipeline:[/red] {e}")
        raise typer.Exit(code=1) from e


def _fail(response: ServiceResponse) -> NoReturn:
    console.print(f"[red]Error:[/red] {response.message}")
    if response.requires_api_key:
        console.print("[dim]Check the API key environment variables in .pdfqa/config.toml.[/dim]")
    raise typer.Exit(code=1)


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    return flat if len(flat) <= _PREVIEW_CHARS else flat[: _PREVIEW_CHARS - 3] + "..."


@app.command()
def version() -> None:
    """Show pdfqa version."""
    console.print(f"pdfqa {__version__}")


@app.command()
def init(
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Project name"),
    ] = "",
) -> None:
    """Initialize a new pdfqa project in the current directory."""
    pm = ProjectManager()
    try:
        data_dir = pm.init(name=name)
    except (OSError, PdfqaError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from e

    console.print(f"[green]Initialized pdfqa project[/green] at {data_dir}")
    console.print("\nCreated:")
    console.print(f"  {pm.config_path}")
    console.print(f"  {pm.manifest_path}")

    console.print("\nNext steps:")
    console.print("  pdfqa add <document.pdf>   Index a document")
    console.print("  pdfqa ask \"<question>\"     Ask about it")


@app.command()
def status() -> None:
    """Show project status: indexed document and config."""
    pm = ProjectManager()
    st = pm.status()

    if not st.initialized:
        console.print("[yellow]No pdfqa project found.[/yellow] Run [bold]pdfqa init[/bold] first.")
        raise typer.Exit(code=1)

    console.print(f"[bold]pdfqa project:[/bold] {st.root.name}")

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    if st.document is not None:
        table.add_row("Document", st.document.title or Path(st.document.path).name)
        table.add_row("Pages", str(st.document.pages))
        table.add_row("Chunks", str(st.document.chunks))
        table.add_row("Added", st.document.added)
    if st.config is not None:
        table.add_row("Embedding", f"{st.config.embedding.provider}/{st.config.embedding.model}")
        table.add_row("Chat model", f"{st.config.llm.provider}/{st.config.llm.model}")
    console.print(table)

    if st.document is None:
        console.print(
            "\n[dim]No document indexed yet. Run [bold]pdfqa add <file>[/bold] to start.[/dim]"
        )


@app.command()
def add(
    path: Annotated[str, typer.Argument(help="PDF or text file to index")],
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Re-index even if the file is unchanged"),
    ] = False,
) -> None:
    """Index a document, replacing the previously indexed one."""
    pm = _project()
    file_path = Path(path).resolve()

    if not file_path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(code=1)

    try:
        get_parser_for(file_path)
    except PdfqaError as e:
        console.print(f"[yellow]Unsupported format:[/yellow] {file_path.name} ({e})")
        raise typer.Exit(code=1) from e

    manifest = pm.load_manifest()
    file_hash = compute_hash(file_path)
    if not force and not manifest.is_changed(file_hash):
        console.print(f"[dim]Skipped {file_path.name} (unchanged)[/dim]")
        return

    config = pm.load_config()
    pipeline = _build_pipeline(pm, config)

    console.print(f"Processing [bold]{file_path.name}[/bold] ...")
    response = pipeline.ingest(file_path)
    if not response.success:
        _fail(response)

    document = response.payload
    replaced = manifest.document is not None and manifest.document.path != str(file_path)
    if replaced:
        pipeline.clear_summaries()
        ConversationHistory().save(pm.history_path)

    manifest.document = DocumentEntry(
        id=document.parse.doc_id,
        path=str(file_path),
        title=document.parse.title,
        hash=file_hash,
        added=datetime.now(UTC).isoformat(),
        pages=document.parse.page_count,
        chunks=len(document.chunking.chunks),
    )
    pm.save_manifest(manifest)

    console.print(f"[green]Added {file_path.name}[/green]: {response.message}")


@app.command()
def chunks(
    page: Annotated[int | None, typer.Option("--page", "-p", help="Only this page")] = None,
    level: Annotated[int | None, typer.Option("--level", "-l", help="Only this level")] = None,
    chunk_id: Annotated[str | None, typer.Option("--id", help="A single chunk id")] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Rows to show")] = 20,
) -> None:
    """List stored chunks."""
    pm = _project()
    pipeline = _build_pipeline(pm, pm.load_config())

    response = pipeline.get_chunks(page=page, level=level, chunk_id=chunk_id)
    if not response.success:
        _fail(response)

    found = response.payload or []
    table = Table(title=f"{len(found)} chunks")
    table.add_column("id", style="dim")
    table.add_column("page", justify="right")
    table.add_column("level", justify="right")
    table.add_column("tokens", justify="right")
    table.add_column("title")
    table.add_column("text")
    for chunk in found[:limit]:
        table.add_row(
            chunk.chunk_id,
            str(chunk.page_number),
            str(chunk.level),
            str(chunk.token_count),
            chunk.title,
            _preview(chunk.text),
        )
    console.print(table)


@app.command()
def stats() -> None:
    """Show chunk and saved-summary statistics."""
    pm = _project()
    pipeline = _build_pipeline(pm, pm.load_config())

    chunk_response = pipeline.chunk_stats()
    if not chunk_response.success:
        _fail(chunk_response)
    summary_response = pipeline.summary_stats()
    if not summary_response.success:
        _fail(summary_response)

    chunk_stats: ChunkStoreStats = chunk_response.payload  # type: ignore[assignment]
    summary_stats: SummaryStats = summary_response.payload  # type: ignore[assignment]

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Chunks", str(chunk_stats.total))
    table.add_row("With embeddings", str(chunk_stats.with_embeddings))
    table.add_row(
        "By level",
        ", ".join(f"L{k}: {v}" for k, v in sorted(chunk_stats.chunks_by_level.items())) or "-",
    )
    table.add_row("Pages covered", str(len(chunk_stats.chunks_by_page)))
    table.add_row("Saved summaries", str(summary_stats.total))
    table.add_row("Final summaries", str(summary_stats.final))
    table.add_row("Summary tokens", str(summary_stats.total_tokens))
    console.print(table)


@app.command()
def summarize(
    backend: Annotated[
        str,
        typer.Option("--backend", "-b", help="primary (remote, rate-limited) or local"),
    ] = "",
    save: Annotated[
        bool,
        typer.Option("--save", help="Save the summary tree after summarizing"),
    ] = False,
) -> None:
    """Summarize the indexed document."""
    pm = _project()
    config = pm.load_config()
    pipeline = _build_pipeline(pm, config)

    chosen = backend or config.summarize.backend
    response = pipeline.summarize(backend=chosen)  # type: ignore[arg-type]
    if not response.success:
        _fail(response)

    result: SummarizationResult = response.payload  # type: ignore[assignment]
    if result.final_summary is not None:
        console.print(Panel(result.final_summary.text, title=result.final_summary.title))
    else:
        console.print("[yellow]Summarization did not converge to a final summary.[/yellow]")

    console.print(f"[dim]{response.message}; backend: {result.backend}[/dim]")
    if result.fallback_used:
        console.print("[yellow]Fell back to the local backend during this run.[/yellow]")

    if save:
        saved = pipeline.save_summaries(result.summaries, result.final_summary)
        if not saved.success:
            _fail(saved)
        console.print(f"[green]{saved.message}[/green]")


@app.command()
def ask(
    question: Annotated[str, typer.Argument(help="Question about the document")],
) -> None:
    """Answer a question from the indexed document."""
    pm = _project()
    config = pm.load_config()
    pipeline = _build_pipeline(pm, config)

    history = ConversationHistory.load(pm.history_path)
    response = pipeline.ask(question, history=history.recent(config.chat.history_turns))
    if not response.success:
        _fail(response)

    answer: ChatAnswer = response.payload  # type: ignore[assignment]
    console.print(answer.answer)

    table = Table(title="Sources", show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("page", justify="right")
    table.add_column("score", justify="right")
    table.add_column("title")
    for i, source in enumerate(answer.sources, start=1):
        table.add_row(
            str(i), str(source.chunk.page_number), f"{source.score:.3f}", source.chunk.title
        )
    console.print(table)

    history.add("user", question)
    history.add("assistant", answer.answer)
    history.save(pm.history_path)


@app.command()
def clear(
    summaries: Annotated[
        bool,
        typer.Option("--summaries", "-s", help="Also delete saved and cached summaries"),
    ] = False,
) -> None:
    """Delete stored chunks and forget the indexed document."""
    pm = _project()
    pipeline = _build_pipeline(pm, pm.load_config())

    response = pipeline.clear_chunks()
    if not response.success:
        _fail(response)
    console.print(f"[green]{response.message}[/green]")

    manifest = pm.load_manifest()
    manifest.document = None
    pm.save_manifest(manifest)
    ConversationHistory().save(pm.history_path)

    if summaries:
        cleared = pipeline.clear_summaries()
        if not cleared.success:
            _fail(cleared)
        console.print(f"[green]{cleared.message}[/green]")

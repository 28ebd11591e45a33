"""CLI interface for kbnav.

Typer-based command-line interface with Rich output formatting.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

from kbnav import __version__
from kbnav.config import CONFIG_FILE, KbnavConfig, default_config, load_config, save_config
from kbnav.content import FileContentLoader
from kbnav.exceptions import KbnavError, NotFoundError
from kbnav.index import CodeIndex
from kbnav.index.builder import complexity_analysis
from kbnav.ingest import extract_metadata, render_toc_markdown
from kbnav.processor import DocumentProcessor, collect_samples
from kbnav.search import SearchOptions, search_patterns
from kbnav.search import search as run_search
from kbnav.search.patterns import PATTERN_CATALOG, get_pattern
from kbnav.types import SearchFilter, TOCSection
from kbnav.vocabulary import detect_vocabulary, load_glossary

__all__ = ["app"]

app = typer.Typer(
    name="kbnav",
    help="Knowledge-base navigator: process learning content and search its code examples.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", help=f"Config file (default: ./{CONFIG_FILE} if present)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """Load configuration and set up logging for every command."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        )

    path = config_path or Path(CONFIG_FILE)
    try:
        config = load_config(path) if path.exists() or config_path else default_config()
    except KbnavError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from e
    ctx.obj = config


def _config(ctx: typer.Context) -> KbnavConfig:
    return ctx.obj if isinstance(ctx.obj, KbnavConfig) else default_config()


def _fail(error: KbnavError) -> typer.Exit:
    console.print(f"[red]Error:[/red] {error}")
    return typer.Exit(code=1)


def _read_document(path: Path) -> str:
    if not path.is_file():
        raise NotFoundError(str(path), "file does not exist")
    return FileContentLoader(path.parent, suffix=path.suffix).fetch(path.stem)


def _load_index(ctx: typer.Context, index_path: Path | None) -> CodeIndex:
    path = index_path or Path(_config(ctx).index.output)
    if not path.exists():
        raise NotFoundError(str(path), "run 'kbnav index <dir>' first")
    return CodeIndex.load(path, _config(ctx).index)


def _add_toc_nodes(tree: Tree, sections: tuple[TOCSection, ...]) -> None:
    for section in sections:
        branch = tree.add(f"{section.title} [dim]#{section.id}[/dim]")
        _add_toc_nodes(branch, section.children)


@app.command()
def version() -> None:
    """Show kbnav version."""
    console.print(f"kbnav {__version__}")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file"),
    ] = False,
) -> None:
    """Write a default kbnav.toml in the current directory."""
    path = Path(CONFIG_FILE)
    if path.exists() and not force:
        console.print(f"[yellow]{path} already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(code=1)

    try:
        save_config(default_config(), path)
    except KbnavError as e:
        raise _fail(e) from e
    console.print(f"[green]Wrote default config[/green] to {path}")


@app.command()
def process(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Markdown document")],
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print machine-readable JSON"),
    ] = False,
) -> None:
    """Extract metadata, headings, code blocks and reading time from a document."""
    try:
        doc = DocumentProcessor(_config(ctx)).process(_read_document(path))
    except KbnavError as e:
        raise _fail(e) from e

    if as_json:
        payload = {
            "metadata": doc.metadata.to_dict() if doc.metadata is not None else None,
            "reading_time_minutes": doc.reading_time_minutes,
            "headings": [{"id": h.id, "text": h.text, "level": h.level} for h in doc.headings],
            "code_blocks": [
                {
                    "id": b.id,
                    "language": b.language,
                    "title": b.title,
                    "file_name": b.file_name,
                    "line_count": b.line_count,
                    "is_collapsible": b.is_collapsible,
                    "show_line_numbers": b.show_line_numbers,
                }
                for b in doc.code_blocks
            ],
        }
        typer.echo(json.dumps(payload, indent=2, default=str))
        return

    title = doc.metadata.title if doc.metadata is not None and doc.metadata.title else path.name
    console.print(f"[bold]{title}[/bold]  ({doc.reading_time_minutes} min read)")

    if doc.headings:
        tree = Tree("[dim]Contents[/dim]")
        _add_toc_nodes(tree, doc.toc)
        console.print(tree)

    if doc.code_blocks:
        table = Table(title="Code blocks")
        table.add_column("#", style="dim")
        table.add_column("Title")
        table.add_column("Language")
        table.add_column("Lines", justify="right")
        for block in doc.code_blocks:
            table.add_row(str(block.sequence), block.title or "", block.language, str(block.line_count))
        console.print(table)


@app.command()
def toc(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Markdown document")],
) -> None:
    """Print a document's table of contents as a markdown list."""
    try:
        doc = DocumentProcessor(_config(ctx)).process(_read_document(path))
    except KbnavError as e:
        raise _fail(e) from e
    typer.echo(render_toc_markdown(doc.toc))


@app.command()
def index(
    ctx: typer.Context,
    directory: Annotated[
        Path | None,
        typer.Argument(help="Content root directory (default from config)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Index file (default from config)"),
    ] = None,
) -> None:
    """Build the code index from every document under a directory."""
    config = _config(ctx)
    directory = directory or Path(config.content.root)
    if not directory.is_dir():
        console.print(f"[red]Not a directory:[/red] {directory}")
        raise typer.Exit(code=1)

    loader = FileContentLoader(directory, suffix=config.content.suffix)
    processor = DocumentProcessor(config)
    documents = {}
    for document_id in loader.list_ids():
        try:
            documents[document_id] = processor.process(loader.fetch(document_id))
        except KbnavError as e:
            console.print(f"  [yellow]Skipped {document_id}:[/yellow] {e}")

    code_index = CodeIndex(config.index)
    generation = code_index.rebuild(collect_samples(documents))
    out = output or Path(config.index.output)
    try:
        code_index.save(out)
    except KbnavError as e:
        raise _fail(e) from e

    stats = generation.stats
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("metric", style="dim")
    table.add_column("value", style="bold")
    table.add_row("Documents", str(len(documents)))
    table.add_row("Code examples", str(stats.total_examples))
    table.add_row("Average complexity", f"{stats.average_complexity:.2f}")
    for name, count in stats.most_used_patterns[:3]:
        table.add_row(f"Pattern: {name}", str(count))
    console.print(table)

    for tip in complexity_analysis(generation, config=config.index)["recommendations"]:
        console.print(f"[dim]- {tip}[/dim]")
    console.print(f"[green]Wrote index[/green] to {out}")


@app.command()
def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Search query")],
    index_path: Annotated[
        Path | None,
        typer.Option("--index", "-i", help="Index file (default from config)"),
    ] = None,
    language: Annotated[
        list[str] | None,
        typer.Option("--language", "-l", help="Restrict to a language (repeatable)"),
    ] = None,
    category: Annotated[
        list[str] | None,
        typer.Option("--category", "-c", help="Restrict to a category (repeatable)"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-k", help="Maximum results"),
    ] = 10,
) -> None:
    """Search indexed code examples."""
    config = _config(ctx)
    try:
        code_index = _load_index(ctx, index_path)
    except KbnavError as e:
        raise _fail(e) from e

    filters = SearchFilter(
        query=query,
        languages=tuple(language or ()),
        categories=tuple(category or ()),
    )
    base = SearchOptions.from_config(config.search)
    options = SearchOptions(
        max_results=limit,
        min_score=base.min_score,
        fuzzy_threshold=base.fuzzy_threshold,
        fuzzy_bonus=base.fuzzy_bonus,
    )
    results = run_search(code_index, query, filters, options)

    if not results:
        console.print(f"[dim]No results for {query!r}.[/dim]")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("Score", justify="right")
    table.add_column("Match")
    table.add_column("Title")
    table.add_column("Language")
    table.add_column("Path", style="dim")
    for item in results:
        table.add_row(
            f"{item.relevance_score:.2f}",
            item.match_type.value,
            item.entry.title,
            item.entry.language,
            item.entry.concept_path,
        )
    console.print(table)


@app.command()
def similar(
    ctx: typer.Context,
    entry_id: Annotated[str, typer.Argument(help="Index entry id, e.g. fundamentals/components#code-1")],
    index_path: Annotated[
        Path | None,
        typer.Option("--index", "-i", help="Index file (default from config)"),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-k", help="Maximum results"),
    ] = 5,
) -> None:
    """List code examples similar to an indexed one."""
    config = _config(ctx)
    try:
        code_index = _load_index(ctx, index_path)
    except KbnavError as e:
        raise _fail(e) from e

    target = code_index.get(entry_id)
    if target is None:
        console.print(f"[red]Unknown entry:[/red] {entry_id}")
        raise typer.Exit(code=1)

    related = code_index.similar_examples(target, limit, config.search.related_threshold)
    if not related:
        console.print(f"[dim]No examples similar to {entry_id}.[/dim]")
        return
    for entry in related:
        console.print(f"{entry.id}  [dim]{entry.title}[/dim]")


@app.command()
def patterns(
    ctx: typer.Context,
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Only this catalog pattern"),
    ] = None,
    index_path: Annotated[
        Path | None,
        typer.Option("--index", "-i", help="Index file (default from config)"),
    ] = None,
) -> None:
    """Find structural code patterns in indexed examples."""
    if name is not None and get_pattern(name) is None:
        known = ", ".join(p.name for p in PATTERN_CATALOG)
        console.print(f"[red]Unknown pattern:[/red] {name}. Known patterns: {known}")
        raise typer.Exit(code=1)

    try:
        code_index = _load_index(ctx, index_path)
    except KbnavError as e:
        raise _fail(e) from e

    results = search_patterns(code_index.entries, name)
    if not results:
        console.print("[dim]No pattern matches.[/dim]")
        return

    table = Table(title="Pattern matches")
    table.add_column("Pattern")
    table.add_column("Example")
    table.add_column("Matches", justify="right")
    table.add_column("Score", justify="right")
    for result in results:
        table.add_row(
            result.pattern.name if result.pattern is not None else "",
            result.entry.title,
            str(len(result.matches)),
            f"{result.relevance_score:.0f}",
        )
    console.print(table)


@app.command()
def vocab(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Markdown document")],
    glossary_path: Annotated[
        Path,
        typer.Option("--glossary", "-g", help="Glossary file (JSON or YAML)"),
    ],
    min_confidence: Annotated[
        float | None,
        typer.Option("--min-confidence", help="Confidence threshold (default from config)"),
    ] = None,
) -> None:
    """List glossary terms detected in a document."""
    config = _config(ctx)
    try:
        glossary = load_glossary(glossary_path)
        body = extract_metadata(_read_document(path)).body
    except KbnavError as e:
        raise _fail(e) from e

    references = detect_vocabulary(body, glossary, min_confidence, config.vocabulary)
    if not references:
        console.print("[dim]No glossary terms found.[/dim]")
        return

    table = Table(title=f"Vocabulary in {path.name}")
    table.add_column("Term")
    table.add_column("Concept")
    table.add_column("Line", justify="right")
    table.add_column("Col", justify="right")
    table.add_column("Confidence", justify="right")
    for ref in references:
        table.add_row(
            ref.term,
            ref.concept_id,
            str(ref.position.line),
            str(ref.position.column),
            f"{ref.confidence:.2f}",
        )
    console.print(table)

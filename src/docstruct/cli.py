"""Layout structure pipeline CLI."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from docstruct.config import settings
from docstruct.errors import StatisticsUnavailableError
from docstruct.pipeline import DocumentConverter, FontAnalyzer, MarkdownRenderer, load_pdf

app = typer.Typer(
    name="docstruct",
    help="Recover document structure from PDF page geometry",
    add_completion=False,
)
console = Console(stderr=True)


def setup_logging(level: str) -> None:
    """Route log records through rich at the configured level."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
        force=True,
    )


@app.command()
def convert(
    pdf_path: Path = typer.Argument(..., help="Path to PDF file to convert"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write Markdown here instead of stdout"),
    workers: int = typer.Option(settings.max_workers, help="Number of parallel workers"),
    deadline: Optional[float] = typer.Option(None, help="Seconds allowed for structure analysis"),
) -> None:
    """Convert a PDF document to Markdown."""
    setup_logging(settings.log_level)
    console.print(f"[bold blue]Converting:[/bold blue] {pdf_path}")

    converter = DocumentConverter(max_workers=workers)
    try:
        result = converter.convert_file(pdf_path, deadline=deadline)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    markdown = MarkdownRenderer(result.statistics.fonts).render(result)
    if output is not None:
        output.write_text(markdown, encoding="utf-8")
        console.print(f"[dim]Wrote {output}[/dim]")
    else:
        typer.echo(markdown, nl=False)

    for warning in result.all_warnings:
        page = f"p{warning.page_number} " if warning.page_number else ""
        console.print(f"[yellow]{page}{warning.code.value}:[/yellow] {warning.message}")
    console.print(
        f"[green]Done:[/green] {len(result.pages)} pages, {len(result.elements)} elements, "
        f"{len(result.all_warnings)} warnings"
    )


@app.command()
def fonts(
    pdf_path: Path = typer.Argument(..., help="Path to PDF file to analyze"),
) -> None:
    """Show font size clusters and the heading levels derived from them."""
    setup_logging(settings.log_level)
    try:
        _, pages = load_pdf(pdf_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    try:
        stats = FontAnalyzer().analyze(w for page in pages for w in page.words)
    except StatisticsUnavailableError as e:
        console.print(f"[yellow]{e}[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title=f"Font sizes: {pdf_path.name}")
    table.add_column("Size", justify="right")
    table.add_column("Members")
    table.add_column("Characters", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Role")
    for cluster in stats.clusters:
        if cluster.level is not None:
            role = f"heading {cluster.level}"
        elif cluster.size == stats.body_size:
            role = "body"
        else:
            role = "small"
        table.add_row(
            f"{cluster.size:.1f}",
            ", ".join(f"{s:.1f}" for s in cluster.sizes),
            str(cluster.char_weight),
            str(cluster.word_count),
            role,
        )
    Console().print(table)
    Console().print(f"Dominant font: {stats.dominant_font_name or '-'}")


if __name__ == "__main__":
    app()

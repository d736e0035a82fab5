"""
Command Line Interface for LTVSense
"""

import logging
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn

from .bucketizer import summarize
from .exceptions import LTVSenseError
from .exporter import HeaderPolicy, write_export
from .formatter import ReportFormatter
from .importer import import_customers
from .llm_manager import LLMManager
from .models import Customer
from .orchestrator import EnrichmentOrchestrator
from .store import CustomerStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True)]
)
logger = logging.getLogger("ltvsense")

app = typer.Typer(
    name="ltvsense",
    help="AI-powered customer lifetime value analysis for customer record files",
    no_args_is_help=True,
)
console = Console()


def version_callback(value: bool) -> None:
    """Display version information."""
    if value:
        from . import __version__
        console.print(f"LTVSense version {__version__}")
        raise typer.Exit()


@app.command()
def main(
    input_file: Path = typer.Argument(..., help="Customer record file (id, name, email, total_spent, purchase_count, last_purchase_date)"),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the enriched customers to this file"
    ),
    model: Optional[str] = typer.Option(
        None,
        "--model",
        "-m",
        help="Enrichment model: anthropic, openai or a HuggingFace GGUF repo ID"
    ),
    no_ai: bool = typer.Option(
        False,
        "--no-ai",
        help="Skip value prediction and show the imported customers only"
    ),
    advice: bool = typer.Option(
        False,
        "--advice",
        help="Also fetch retention strategies and marketing ideas for predicted customers"
    ),
    header_policy: HeaderPolicy = typer.Option(
        HeaderPolicy.EMIT_HEADER,
        "--header-policy",
        envvar="LTVSENSE_EXPORT_HEADER",
        help="Whether the export file starts with a header row"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output"
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version information"
    ),
) -> None:

    if verbose:
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose mode enabled")

    try:
        _run_analysis(input_file, output, model, no_ai, advice, header_policy)

    except LTVSenseError as e:
        logger.error(f"LTVSense error: {e}")
        raise typer.Exit(code=1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        if verbose:
            logger.exception("Full traceback:")
        raise typer.Exit(code=1)


def _run_analysis(
    input_file: Path,
    output: Optional[Path],
    model: Optional[str],
    no_ai: bool,
    advice: bool,
    header_policy: HeaderPolicy
) -> None:
    """
    Import, enrich, report and export
    """
    content = _read_input(input_file)

    store = CustomerStore()
    import_customers(content, store)

    if not no_ai:
        llm_manager = LLMManager(model_id=model)
        orchestrator = EnrichmentOrchestrator(store, llm_manager)

        _run_with_progress("Predicting customer value", orchestrator.enrich_all)
        if advice:
            _run_with_progress("Fetching advice", orchestrator.fetch_advice_for_all)

        logger.debug(f"Total tokens used: {llm_manager.total_tokens}")

    formatter = ReportFormatter()
    console.print(formatter.format_report(store, summarize(store), store.notice))

    if advice:
        for customer in store:
            _display_advice(customer)

    if output:
        if write_export(store, output, header_policy):
            console.print(f"[green]✓ Exported {len(store)} customer(s) to {output}[/green]")
        else:
            console.print("[yellow]No customers to export.[/yellow]")


def _run_with_progress(description: str, run: Callable) -> None:
    """Run a sequential orchestrator loop behind a progress bar"""
    with Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(description, total=None)

        def on_progress(current) -> None:
            progress.update(task, completed=current.current, total=current.total)

        run(on_progress=on_progress)


def _display_advice(customer: Customer) -> None:
    """
    Display retention strategies and marketing ideas for one customer
    """
    if not customer.retention_strategies and not customer.marketing_ideas:
        return

    lines = []
    if customer.retention_strategies:
        lines.append("[bold]Retention Strategies[/bold]")
        lines.extend(f"  {i}. {s}" for i, s in enumerate(customer.retention_strategies, 1))
    if customer.marketing_ideas:
        lines.append("[bold]Marketing Ideas[/bold]")
        lines.extend(f"  {i}. {s}" for i, s in enumerate(customer.marketing_ideas, 1))

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]{customer.name}[/bold] ({customer.segment.value})",
        border_style="green"
    ))


def _read_input(file_path: Path) -> str:
    """
    Validate and read the input file as text.
    """
    if not file_path.exists():
        raise LTVSenseError(f"File does not exist: {file_path}")
    if not file_path.is_file():
        raise LTVSenseError(f"Path is not a file: {file_path}")

    try:
        content = file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError:
        raise LTVSenseError(f"File is not a valid text file: {file_path}")
    except PermissionError:
        raise LTVSenseError(f"Permission denied reading file: {file_path}")

    if "\x00" in content:
        raise LTVSenseError(f"Binary file detected: {file_path}")
    if not content.strip():
        raise LTVSenseError(f"File is empty or could not be read: {file_path}")

    return content


if __name__ == "__main__":
    typer.run(main)

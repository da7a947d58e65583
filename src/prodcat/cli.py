"""CLI interface for the product catalog."""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import CatalogConfig, get_config, get_config_unvalidated
from .dependencies import build_app_resources
from .exceptions import ContractError
from .exporter import serialize
from .filtering import classify_stock
from .import_service import CatalogImportService
from .models import FilterSpec
from .pricing import margin
from .session import CatalogSession

app = typer.Typer(
    name="prodcat",
    help="""
    [bold]Product Catalog CLI[/bold]

    Import, browse and export catalog records.

    [cyan]Examples:[/cyan]
      prodcat import products.csv --dry-run
      prodcat list --stock low --sort price-asc
      prodcat export products.xlsx --format xlsx --status published

    [cyan]Getting Started:[/cyan]
      1. Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or pass --mock)
      2. Import a sheet: prodcat import products.csv
      3. View help: prodcat --help
    """,
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)


def _setup(verbose: bool, mock: bool) -> CatalogConfig:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if mock:
        config = get_config_unvalidated().model_copy(update={"mock": True})
    else:
        config = get_config()
    if config.mock:
        console.print("[yellow]⚠️  Using mock mode - records are kept in memory only[/yellow]\n")
    return config


def _open_session(config: CatalogConfig) -> CatalogSession:
    resources = build_app_resources(config)
    session = CatalogSession(
        resources.repository, resources.blob_store, languages=config.get_languages()
    )
    session.refresh()
    return session


def _fail(error: Exception, verbose: bool) -> None:
    message = error.message if isinstance(error, ContractError) else str(error)
    console.print(f"\n[bold red]✗ Error:[/bold red] {message}")
    if verbose:
        import traceback

        console.print(f"[dim white]{traceback.format_exc()}[/dim white]")
    raise typer.Exit(code=1)


@app.command("list")
def list_records(
    search: str = typer.Option("", "--search", "-s", help="Match name, SKU or category"),
    company: str = typer.Option("all", "--company", help="Company filter"),
    category: str = typer.Option("all", "--category", help="Category filter"),
    status: str = typer.Option("all", "--status", help="published, draft or archived"),
    stock: str = typer.Option("all", "--stock", help="all, low or out"),
    sort: str = typer.Option("updatedAt-desc", "--sort", help="<field>-<asc|desc>"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    mock: bool = typer.Option(False, "--mock", help="Use the in-memory store"),
):
    """List catalog records matching the filters."""
    config = _setup(verbose, mock)
    try:
        spec = FilterSpec(
            search=search,
            company=company,
            category=category,
            status=status,
            stock=stock,
            sort_by=sort,
        )
        session = _open_session(config)
        records = session.visible(spec)
    except Exception as e:
        _fail(e, verbose)
        return

    table = Table(title=f"Products ({len(records)} of {len(session.records)})")
    table.add_column("SKU")
    table.add_column("Name")
    table.add_column("Price", justify="right")
    table.add_column("Margin", justify="right")
    table.add_column("Stock", justify="right")
    table.add_column("Category")
    table.add_column("Status")
    for record in records:
        stock_state = classify_stock(record)
        stock_style = {"out": "red", "low": "yellow"}.get(stock_state, "")
        table.add_row(
            record.sku,
            record.display_name(session.primary_language),
            f"{record.price:.2f}",
            f"{margin(record.price, record.cost):.0%}",
            f"[{stock_style}]{record.stock}[/]" if stock_style else str(record.stock),
            record.category,
            record.status,
        )
    console.print(table)


@app.command("import")
def import_file(
    input_file: Path = typer.Argument(
        ...,
        help="CSV or XLSX product sheet",
        exists=True,
        dir_okay=False,
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Parse and normalize without writing records"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    mock: bool = typer.Option(False, "--mock", help="Use the in-memory store"),
):
    """Import products from a CSV or XLSX file."""
    config = _setup(verbose, mock)
    try:
        repository = None if dry_run else build_app_resources(config).repository
        service = CatalogImportService(config=config, repository=repository)
        summary = service.import_file(input_file.name, input_file.read_bytes(), dry_run=dry_run)
    except Exception as e:
        _fail(e, verbose)
        return

    verb = "Would import" if dry_run else "Imported"
    console.print(
        f"{verb} [bold]{summary.imported_count}[/bold] products "
        f"({summary.failed_count} failed, {summary.skipped_count} blank rows skipped)"
    )
    for error in summary.errors:
        console.print(f"  [yellow]row {error.row}:[/yellow] {error.reason}")

    if summary.status == "failed":
        raise typer.Exit(code=1)
    if summary.status == "completed":
        console.print("[bold green]✓ Import completed[/bold green]")


@app.command("export")
def export_file(
    output_file: Path = typer.Argument(..., help="Destination file", resolve_path=True),
    fmt: Optional[str] = typer.Option(
        None, "--format", "-f", help="csv or xlsx (default: from file extension)"
    ),
    search: str = typer.Option("", "--search", "-s", help="Match name, SKU or category"),
    status: str = typer.Option("all", "--status", help="published, draft or archived"),
    stock: str = typer.Option("all", "--stock", help="all, low or out"),
    sort: str = typer.Option("updatedAt-desc", "--sort", help="<field>-<asc|desc>"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    mock: bool = typer.Option(False, "--mock", help="Use the in-memory store"),
):
    """Export records matching the filters to CSV or XLSX."""
    config = _setup(verbose, mock)
    resolved_format = (fmt or output_file.suffix.lstrip(".") or "csv").lower()
    if resolved_format not in ("csv", "xlsx"):
        console.print(f"[bold red]✗ Error:[/bold red] Unsupported format: {resolved_format}")
        raise typer.Exit(code=1)

    try:
        spec = FilterSpec(search=search, status=status, stock=stock, sort_by=sort)
        session = _open_session(config)
        artifact = serialize(
            session.visible(spec), resolved_format, languages=session.languages
        )
    except Exception as e:
        _fail(e, verbose)
        return

    if artifact is None:
        console.print("[yellow]No products to export[/yellow]")
        return

    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_bytes(artifact.content)
    console.print(
        f"[bold green]✓ Exported {artifact.row_count} products[/bold green] to {output_file}"
    )


@app.command("delete")
def delete_records(
    record_ids: list[str] = typer.Argument(..., help="Record ids to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    mock: bool = typer.Option(False, "--mock", help="Use the in-memory store"),
):
    """Delete records by id in a single batch."""
    config = _setup(verbose, mock)
    if not yes:
        typer.confirm(f"Delete {len(record_ids)} records?", abort=True)
    try:
        session = _open_session(config)
        deleted = session.delete_records(record_ids)
    except Exception as e:
        _fail(e, verbose)
        return
    console.print(f"[bold green]✓ Deleted {len(deleted)} records[/bold green]")


@app.command()
def version():
    """Show version information."""
    console.print("prodcat version 0.1.0")


if __name__ == "__main__":
    app()

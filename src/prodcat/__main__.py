"""CLI entry point for the product catalog."""

from typing import Optional

import typer
from rich.console import Console

from prodcat.cli import app as cli_app
from prodcat.config import get_config

console = Console()

app = typer.Typer(
    help="Product catalog tool - CLI or API mode.",
    no_args_is_help=False,
)
app.add_typer(cli_app, name="", help="Product catalog CLI commands.")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    mode: str = typer.Option(
        "cli",
        "--mode",
        help="Run mode: cli (default) or api",
    ),
    host: Optional[str] = typer.Option(None, "--host", help="API host (default: API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="API port (default: API_PORT)"),
) -> None:
    """Product catalog tool - CLI or API mode."""
    if mode == "api":
        import uvicorn

        try:
            config = get_config()
        except ValueError as e:
            console.print(f"[bold red]✗ Cannot start API:[/bold red] {e}")
            raise typer.Exit(code=1)

        if config.mock:
            console.print("[yellow]⚠️  MOCK=true - catalog records live in memory only[/yellow]")
        bind_host = host or config.api_host
        bind_port = port or config.api_port
        console.print(f"Serving product catalog API on {bind_host}:{bind_port}")
        uvicorn.run(
            "prodcat.api:app",
            host=bind_host,
            port=bind_port,
            reload=False,
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


if __name__ == "__main__":
    app()

"""Command line interface for the DeepSRT proxy."""

from typing import Optional

import typer
from rich.console import Console

from . import __version__
from .client import PurgeClient, PurgeClientError

console = Console()

app = typer.Typer(
    name="deepsrt-proxy",
    help="Cached subtitle proxy for an R2 bucket",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"deepsrt-proxy version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """deepsrt-proxy: serve subtitles from R2 through a response cache.

    ## Commands

    * [bold cyan]serve[/bold cyan] - Run the proxy
    * [bold cyan]purge[/bold cyan] - Drop one subtitle from the proxy cache
    """


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: DEEPSRT_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port (default: DEEPSRT_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the proxy with uvicorn."""
    import uvicorn

    from .config import Settings

    settings = Settings()
    uvicorn.run(
        "deepsrt_proxy.main:app",
        host=host or settings.HOST,
        port=port or settings.PORT,
        reload=reload,
    )


@app.command()
def purge(
    path: str = typer.Argument(..., help="Subtitle path, e.g. foo.srt"),
    base_url: str = typer.Option(
        "http://localhost:8000", "--base-url", help="Proxy base URL"
    ),
    api_key: str = typer.Option(
        "", "--api-key", envvar="DEEPSRT_API_KEY", help="Purge API key"
    ),
) -> None:
    """Purge a subtitle from the proxy cache."""
    try:
        client = PurgeClient(base_url, api_key)
        result = client.purge(path)
    except (ValueError, PurgeClientError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    color = "green" if result.get("purgeResult") == "succeeded" else "yellow"
    console.print(f"[{color}]{result.get('purgeResult')}[/{color}] {result.get('purgedCacheKey')}")

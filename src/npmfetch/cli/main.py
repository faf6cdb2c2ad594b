import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import load_config, set_config_value, CONFIG_FILE
from ..domain.errors import NpmFetchError
from ..registry.handle import LazyClient
from ..registry.npm import NpmCli
from ..services.download import DownloadService
from ..services.releases import ReleasesService
from ..ui.progress import ProgressManager

app = typer.Typer(help="List npm package releases and download their tarballs.")
console = Console()
err_console = Console(stderr=True)


def get_client() -> LazyClient:
    settings = load_config()
    return LazyClient(NpmCli(
        npm_bin=settings.npm_bin,
        cache_dir=settings.npm_cache,
        registry=settings.npm_registry,
    ))


def get_releases_service() -> ReleasesService:
    return ReleasesService(get_client())


def get_download_service() -> DownloadService:
    return DownloadService(get_client())


@app.callback()
def main_callback(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log npm commands.")):
    """configure logging before every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def releases(package: str, as_json: bool = typer.Option(False, "--json", help="Print a JSON array.")):
    """list the published versions of PACKAGE."""
    service = get_releases_service()
    try:
        versions = asyncio.run(service.list_releases(package))
    except NpmFetchError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    if as_json:
        console.print_json(json.dumps(versions))
        return
    for version in versions:
        console.print(version, highlight=False)


@app.command()
def download(
    package: str,
    version: str,
    directory: Path = typer.Option(Path("."), "--dir", "-d", help="Existing directory to write the tarball into."),
):
    """download the tarball of PACKAGE at VERSION."""
    service = get_download_service()
    progress_manager = ProgressManager(err_console)
    try:
        with progress_manager.spinner(f"fetching {package}@{version}"):
            output = asyncio.run(service.download_tarball(package, version, directory))
    except NpmFetchError as e:
        progress_manager.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    console.print(str(output), highlight=False, soft_wrap=True)


@app.command()
def config(
    npm_bin: Optional[str] = typer.Option(None, "--npm-bin", help="npm executable to run."),
    cache: Optional[str] = typer.Option(None, "--cache", help="Cache directory override."),
    registry: Optional[str] = typer.Option(None, "--registry", help="Registry URL passed to npm."),
):
    """set configuration values, then show the effective settings."""
    updates = {"NPM_BIN": npm_bin, "NPM_CACHE": cache, "NPM_REGISTRY": registry}
    try:
        for key, value in updates.items():
            if value is not None:
                set_config_value(key, value)
    except RuntimeError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    settings = load_config()
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style="bold cyan", justify="right")
    grid.add_column()
    grid.add_row("Config file:", str(CONFIG_FILE))
    grid.add_row("npm:", settings.npm_bin)
    grid.add_row("Cache:", str(settings.npm_cache) if settings.npm_cache else "(npm default)")
    grid.add_row("Registry:", settings.npm_registry or "(npm default)")
    console.print(grid)


def main():
    app()


if __name__ == "__main__":
    main()

"""
Command-line interface for scribe.

Uses Typer to provide the generate, serve, create, initials and pin
commands. Supports loading .env files for API key configuration.
"""

from __future__ import annotations

from functools import partial
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

from dotenv import load_dotenv
import typer
import yaml
from rich.console import Console
from rich.markup import escape

from .config import AppConfig, load_config
from .core.errors import BuildLocked, ScribeError
from .core.types import PinRecord
from .initials import create_generator, generate_initials, parse_letters
from .runner import publish_site, run_build
from .scaffold import CONFIG_FILENAME, ProjectSettings, create_project
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False, help="A minimal static site generator with backlinks and IPFS publishing.")
console = Console()


def _fail(exc: Exception) -> typer.Exit:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    return typer.Exit(code=2 if isinstance(exc, BuildLocked) else 1)


def _load(config: Path, create_missing: bool = False) -> AppConfig:
    load_dotenv()
    try:
        return load_config(config, create_missing=create_missing)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise _fail(exc) from exc


@app.callback()
def main(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Regenerate every page, ignoring the build record."),
):
    """Scribe static site generator."""
    ctx.obj = {"force": force}


@app.command()
def generate(
    ctx: typer.Context,
    config: Path = typer.Option(Path(CONFIG_FILENAME), "--config", "-c", help="Configuration file."),
    pin: bool = typer.Option(False, "--pin", help="Publish the site to IPFS after building."),
    progress: bool = typer.Option(True, "--progress/--no-progress"),
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level."),
):
    """Build the site from the posts directory.

    A missing configuration file is created with defaults.
    """
    cfg = _load(config, create_missing=True)
    if log_level:
        cfg.logging.level = log_level
    force = bool(ctx.obj and ctx.obj.get("force"))

    try:
        result = run_build(cfg, force=force, publish=pin, show_progress=progress, console=console)
    except ScribeError as exc:
        raise _fail(exc) from exc

    stats = result.stats
    console.print(f"[green]Site generated in {cfg.output_dir}[/green]")
    console.print(f"{stats.stale} rebuilt, {stats.unchanged} unchanged, {stats.removed} removed")
    if result.pin is not None:
        _print_pin(result.pin)
    if result.failures:
        for failure in result.failures:
            console.print(f"[red]Failed to render {failure.path}:[/red] {escape(failure.error)}")
        raise typer.Exit(code=1)


@app.command()
def serve(
    dist: Path = typer.Option(Path("dist"), "--dist", "-d", help="Directory to serve."),
    port: int = typer.Option(3007, "--port", "-p"),
    host: str = typer.Option("127.0.0.1", "--host"),
):
    """Serve the generated site locally."""
    if not dist.is_dir():
        console.print(f"[red]Error:[/red] {dist} does not exist. Run 'scribe generate' first.")
        raise typer.Exit(code=1)

    handler = partial(SimpleHTTPRequestHandler, directory=str(dist))
    server = ThreadingHTTPServer((host, port), handler)
    console.print(f"Serving {dist} at [cyan]http://{host}:{port}[/cyan] (Ctrl+C to stop)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("Stopped.")
    finally:
        server.server_close()


@app.command()
def create(
    directory: Path = typer.Argument(Path("."), help="Project directory."),
):
    """Create a new project interactively."""
    console.print("[bold underline]Site Configuration[/bold underline]")
    settings = ProjectSettings(
        title=typer.prompt("Site title", default="My Blog"),
        description=typer.prompt("Site description", default="A minimal blog powered by Scribe"),
        author=typer.prompt("Author name", default="Author"),
        url=typer.prompt("Site URL (optional)", default="", show_default=False).strip() or None,
    )

    console.print()
    console.print(f"  Title: [green]{settings.title}[/green]")
    console.print(f"  Description: [green]{settings.description}[/green]")
    console.print(f"  Author: [green]{settings.author}[/green]")
    console.print(f"  URL: [green]{settings.url}[/green]" if settings.url else "  URL: [yellow]Not set[/yellow]")
    console.print(f"  Directory: [green]{directory}[/green]")
    if not typer.confirm("Create project with these settings?", default=True):
        console.print("[red]Project creation cancelled.[/red]")
        raise typer.Exit(code=0)

    created = create_project(directory, settings)
    for path in created:
        console.print(f"  [green]✓[/green] {path}")
    console.print("[green bold]Project created successfully![/green bold]")
    console.print("Next: set OPENAI_API_KEY (optional), then run [cyan]scribe generate[/cyan]")


@app.command()
def initials(
    letters: str = typer.Option(..., "--letters", "-l", help='Letters to generate, e.g. "ABC" or "a,b,c".'),
    config: Path = typer.Option(Path(CONFIG_FILENAME), "--config", "-c"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Directory for the initial assets."),
):
    """Generate illuminated initials for specific letters."""
    cfg = _load(config)
    wanted = parse_letters(letters)
    if not wanted:
        console.print("[red]Error:[/red] no letters to generate")
        raise typer.Exit(code=1)

    try:
        generator = create_generator(cfg)
    except ValueError as exc:
        console.print("[red]Error:[/red] OPENAI_API_KEY is not set")
        raise typer.Exit(code=1) from exc

    directory = output or cfg.output_dir / cfg.initials.directory
    logger = setup_logging(cfg.logging, cfg.state_dir)
    written = generate_initials(
        wanted, directory, generator, concurrency=cfg.initials.concurrency, event_logger=logger
    )
    for letter in wanted:
        path = directory / f"{letter}.txt"
        if letter in written:
            console.print(f"  [green]✓[/green] {letter} → {path}")
        elif path.exists():
            console.print(f"  [yellow]-[/yellow] {letter} already exists")
        else:
            console.print(f"  [red]✗[/red] {letter} failed")
    if any(not (directory / f"{letter}.txt").exists() for letter in wanted):
        raise typer.Exit(code=1)


@app.command()
def pin(
    dist: Path | None = typer.Option(None, "--dist", "-d", help="Directory to publish (defaults to output_dir)."),
    ipfs_api: str | None = typer.Option(None, "--ipfs-api", help="IPFS RPC API URL."),
    name: str | None = typer.Option(None, "--name", "-n", help="Pin name."),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive"),
    config: Path = typer.Option(Path(CONFIG_FILENAME), "--config", "-c"),
):
    """Publish the generated site to IPFS and pin it."""
    cfg = _load(config)
    if ipfs_api:
        cfg.publish.api_url = ipfs_api
    tree = dist or cfg.output_dir
    if not tree.is_dir():
        console.print(f"[red]Error:[/red] {tree} does not exist. Run 'scribe generate' first.")
        raise typer.Exit(code=1)

    console.print(f"Publishing {tree} via {cfg.publish.api_url}")
    try:
        record = publish_site(cfg, tree=tree, name=name, recursive=recursive)
    except ScribeError as exc:
        raise _fail(exc) from exc
    _print_pin(record)


def _print_pin(record: PinRecord) -> None:
    console.print(f"[green]Pinned[/green] CID: [bold]{record.cid}[/bold]")
    for url in record.gateway_urls():
        console.print(f"  {url}")


if __name__ == "__main__":
    app()

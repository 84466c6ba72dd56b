"""Command line entry point for webclient."""

from pathlib import Path
from typing import Annotated

from rich.markup import escape
from typer import Exit, Option, Typer

from webclient import __version__
from webclient.assets import resolve_assets
from webclient.constants import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_STOP_TIMEOUT
from webclient.errors import AssetsError, DependencyInstallError
from webclient.logging import configure_logging
from webclient.models import AssetsConfig
from webclient.server import create_app, run_server
from webclient.utils import console

app = Typer(
    name="webclient",
    help="Serve the web client's assets",
    no_args_is_help=True,
)


@app.command(name="serve", help="Serve the web client")
def serve(
    dev: Annotated[
        bool,
        Option(
            "--dev/--no-dev",
            help="Proxy assets to a Vite dev server instead of serving the pre-built tree",
        ),
    ] = False,
    host: Annotated[str, Option(help="Host to listen on")] = DEFAULT_HOST,
    port: Annotated[int, Option(help="Port to listen on")] = DEFAULT_PORT,
    repo_root: Annotated[
        Path | None,
        Option(help="Repository root for dev mode. Looked up with git if not provided"),
    ] = None,
    build_dir: Annotated[
        Path | None,
        Option(help="Pre-built asset directory. Defaults to the one shipped with the package"),
    ] = None,
    stop_timeout: Annotated[
        float,
        Option(help="Seconds to wait for the dev server to exit before killing it"),
    ] = DEFAULT_STOP_TIMEOUT,
    log_level: Annotated[str, Option(help="Log level")] = "info",
) -> None:
    """Resolve the asset handler for the chosen mode and serve it."""
    configure_logging(log_level.upper())

    config = AssetsConfig(
        repo_root=repo_root,
        build_dir=build_dir,
        stop_timeout=stop_timeout,
    )

    try:
        handler, cleanup = resolve_assets(dev, config)
    except DependencyInstallError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        if e.output:
            console.print(f"[red]{escape(e.output)}[/red]")
        raise Exit(code=1)
    except AssetsError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise Exit(code=1)

    try:
        run_server(create_app(handler, cleanup), host=host, port=port, log_level=log_level)
    finally:
        # No-op if the lifespan already ran it
        if cleanup is not None:
            cleanup()


@app.command(name="version", help="Show the webclient version")
def version() -> None:
    console.print(f"webclient {__version__}")


if __name__ == "__main__":
    app()

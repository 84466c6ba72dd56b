"""Asset handler resolution for the web client.

Production serves the pre-built tree; development proxies to a Vite dev server
started (and later stopped) by this package.
"""

from __future__ import annotations

from collections.abc import Callable

from starlette.types import ASGIApp

from webclient.assets.devserver import DevServerManager, DevServerProcess
from webclient.assets.proxy import DevProxy
from webclient.assets.static import create_static_handler
from webclient.logging import LogComponent, get_logger
from webclient.models import AssetsConfig

logger = get_logger(LogComponent.ASSETS)


def resolve_assets(
    dev_mode: bool, config: AssetsConfig | None = None
) -> tuple[ASGIApp, Callable[[], None] | None]:
    """Return the asset handler for a mode, plus a cleanup callback in dev mode.

    In dev mode this blocks while dependencies install and the dev server spawns.
    Startup failures raise an AssetsError; no handler is returned in that case.
    """
    config = config or AssetsConfig()
    if not dev_mode:
        return create_static_handler(config.build_dir), None

    # When in dev mode, proxy asset requests to the Vite dev server.
    process = DevServerManager(config).start()
    logger.info(f"Proxying web client assets to {config.dev_server_url}")
    proxy = DevProxy(config.dev_server_url, start_command=config.start_command)
    return proxy, process


__all__ = [
    "DevProxy",
    "DevServerManager",
    "DevServerProcess",
    "create_static_handler",
    "resolve_assets",
]

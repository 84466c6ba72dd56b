"""FastAPI app that owns the resolved asset handler.

Architecture:
- The asset handler (static files or dev proxy) is mounted at `/`
- A status endpoint lives under STATUS_PATH, ahead of the mount
- Lifespan shutdown closes the proxy's connections and runs the cleanup callback once
"""

import asyncio
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from starlette.types import ASGIApp

from webclient import __version__
from webclient.assets import DevProxy, DevServerProcess
from webclient.constants import DEFAULT_HOST, DEFAULT_PORT, STATUS_PATH
from webclient.logging import LogComponent, get_logger
from webclient.models import StatusResponse

logger = get_logger(LogComponent.SERVER)


def create_app(
    handler: ASGIApp, cleanup: Callable[[], None] | None = None
) -> FastAPI:
    """Create the web client app around an asset handler.

    Args:
        handler: ASGI app returned by `resolve_assets`
        cleanup: Callback stopping whatever dev mode started, invoked on shutdown

    Returns:
        FastAPI app instance
    """

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
        try:
            yield
        finally:
            if isinstance(handler, DevProxy):
                await handler.aclose()
            if cleanup is not None:
                logger.info("Stopping web client dev server...")
                # Blocks until the child exits; keep it off the event loop.
                await asyncio.to_thread(cleanup)

    app = FastAPI(
        title="Web Client",
        version=__version__,
        lifespan=lifespan,
        # Everything outside STATUS_PATH belongs to the asset handler.
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    @app.get(STATUS_PATH, response_model=StatusResponse)
    async def get_status() -> StatusResponse:
        """Report which asset mode is being served."""
        if isinstance(handler, DevProxy):
            return StatusResponse(
                mode="development",
                dev_server_pid=cleanup.pid
                if isinstance(cleanup, DevServerProcess)
                else None,
                proxy_target=handler.target_url,
            )
        return StatusResponse(mode="production")

    app.mount("/", handler, name="assets")
    return app


def run_server(
    app: FastAPI,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
    log_level: str = "info",
) -> None:
    """Serve the app with uvicorn until interrupted."""
    config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        log_level=log_level,
        # Logging is configured by webclient.logging.configure_logging
        log_config=None,
    )
    server = uvicorn.Server(config)
    logger.info(f"Serving web client on http://{host}:{port}")
    asyncio.run(server.serve())

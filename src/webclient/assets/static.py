"""Static handler serving the pre-built web client from a read-only directory."""

from __future__ import annotations

from importlib import resources
from pathlib import Path

from starlette.exceptions import HTTPException
from starlette.responses import PlainTextResponse, Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope
from typing_extensions import override

from webclient.errors import StaticAssetsError
from webclient.logging import LogComponent, get_logger

logger = get_logger(LogComponent.ASSETS)


def default_build_dir() -> Path:
    """The build/ directory shipped inside the webclient package."""
    return Path(str(resources.files("webclient"))) / "build"


class StaticAssets(StaticFiles):
    """StaticFiles that answers 404/405 itself instead of raising.

    Keeps the handler usable outside an app with exception middleware.
    """

    @override
    async def get_response(self, path: str, scope: Scope) -> Response:
        try:
            return await super().get_response(path, scope)
        except HTTPException as exc:
            return PlainTextResponse(
                exc.detail, status_code=exc.status_code, headers=exc.headers
            )


def create_static_handler(build_dir: Path | None = None) -> StaticAssets:
    """Create the handler for a pre-built asset tree.

    Fails immediately, rather than on the first request, when the tree is missing.
    Path resolution, content types, ETags and traversal rejection come from StaticFiles.
    """
    root = (build_dir or default_build_dir()).resolve()
    if not root.exists():
        raise StaticAssetsError(
            f"web client build directory {root} does not exist; "
            "build the frontend assets before serving in production mode"
        )
    if not root.is_dir():
        raise StaticAssetsError(f"web client build path {root} is not a directory")

    logger.debug(f"Serving static web client assets from {root}")
    return StaticAssets(directory=root, html=True, check_dir=True)

"""Centralized Pydantic models and type aliases for webclient."""

from __future__ import annotations

from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field

from webclient.constants import (
    DEFAULT_STOP_TIMEOUT,
    DEV_SERVER_HOST,
    DEV_SERVER_PORT,
    NODE_TOOL,
    VITE_BIN,
    WEB_CLIENT_DIR,
    YARN_TOOL,
)


# === Type Aliases ===

AssetsMode = Literal["development", "production"]


# === Base Models (Building Blocks) ===


class TrackedProcess(BaseModel):
    """A process we started and are allowed to manage.

    create_time protects against PID reuse. pgid enables POSIX process-group shutdown
    even if the original PID has already exited (common with node -> vite handoff).
    """

    pid: int | None = None
    create_time: float | None = None
    pgid: int | None = None

    model_config: ClassVar[ConfigDict] = ConfigDict(frozen=True)


class AssetsConfig(BaseModel):
    """Configuration for serving web client assets.

    This is the single source of truth for asset configuration.
    All default values are defined in `webclient.constants`.
    """

    repo_root: Path | None = Field(
        default=None,
        description="Repository root. Looked up with git when not set.",
    )
    build_dir: Path | None = Field(
        default=None,
        description="Pre-built asset tree. Defaults to the build/ directory in the package.",
    )
    web_client_dir: str = WEB_CLIENT_DIR
    yarn: str = YARN_TOOL
    node: str = NODE_TOOL
    vite: str = VITE_BIN
    dev_server_host: str = DEV_SERVER_HOST
    dev_server_port: int = DEV_SERVER_PORT
    stop_timeout: float = DEFAULT_STOP_TIMEOUT

    @property
    def dev_server_url(self) -> str:
        """Base URL the dev server listens on."""
        return f"http://{self.dev_server_host}:{self.dev_server_port}"

    @property
    def start_command(self) -> str:
        """Command (run from the repo root) that starts the dev server by hand."""
        return f"./{self.yarn} --cwd {self.web_client_dir} start"

    def web_client_path(self, root: Path) -> Path:
        return root / self.web_client_dir

    def yarn_path(self, root: Path) -> Path:
        return root / self.yarn

    def node_path(self, root: Path) -> Path:
        return root / self.node

    def vite_path(self, root: Path) -> Path:
        return self.web_client_path(root) / self.vite


# === API Response Models ===


class StatusResponse(BaseModel):
    """Response model for the status endpoint."""

    mode: AssetsMode
    dev_server_pid: int | None = None
    proxy_target: str | None = None

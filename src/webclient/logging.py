"""Centralized logging for webclient (component loggers and CLI formatting)."""

from __future__ import annotations

import logging
from enum import Enum

from webclient.utils import PrefixedLogHandler


class LogComponent(str, Enum):
    """Where a log originated (used for prefixes and filtering)."""

    SERVER = "server"
    ASSETS = "assets"
    DEVSERVER = "devserver"
    PROCESS_CONTROL = "process_control"
    PROXY = "proxy"


_COMPONENT_COLOR: dict[LogComponent, str] = {
    LogComponent.SERVER: "bright_blue",
    LogComponent.ASSETS: "green",
    LogComponent.DEVSERVER: "cyan",
    LogComponent.PROCESS_CONTROL: "cyan",
    LogComponent.PROXY: "magenta",
}

_configured: bool = False


def configure_logging(level: int | str = logging.INFO) -> None:
    """Attach prefixed console handlers to every component logger and to uvicorn."""
    global _configured

    for component in LogComponent:
        logger = logging.getLogger(f"webclient.{component.value}")
        logger.setLevel(level)
        logger.handlers.clear()
        handler = PrefixedLogHandler(
            f"[{component.value}]", _COMPONENT_COLOR.get(component, "white")
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False

    # uvicorn installs its own handlers when given a log_config; we pass None and
    # route its loggers through the same console format instead.
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv = logging.getLogger(name)
        uv.setLevel(level)
        uv.handlers.clear()
        h = PrefixedLogHandler("[uvicorn]", "bright_black")
        h.setFormatter(logging.Formatter("%(message)s"))
        uv.addHandler(h)
        uv.propagate = False

    _configured = True


def get_logger(component: LogComponent) -> logging.Logger:
    """Get the logger for a component (do not call stdlib logging directly)."""
    logger = logging.getLogger(f"webclient.{component.value}")
    if not _configured:
        # Avoid "No handlers could be found" warnings when used as a library.
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
    return logger

import logging
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

import webclient.logging as webclient_logging
from webclient.assets.devserver import DevServerManager
from webclient.logging import LogComponent


@pytest.fixture(autouse=True)
def reset_dev_server_state() -> Iterator[None]:
    """Keep dev server handles from leaking between tests or into atexit."""
    with patch("webclient.assets.devserver.atexit.register"):
        yield
    DevServerManager._active = None


@pytest.fixture(autouse=True)
def restore_loggers() -> Iterator[None]:
    """Undo configure_logging (e.g. from CLI tests) so caplog keeps working."""
    names = [f"webclient.{c.value}" for c in LogComponent] + [
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
    ]
    saved = {
        n: (logging.getLogger(n).handlers[:], logging.getLogger(n).level, logging.getLogger(n).propagate)
        for n in names
    }
    configured = webclient_logging._configured
    yield
    webclient_logging._configured = configured
    for n, (handlers, level, propagate) in saved.items():
        logger = logging.getLogger(n)
        logger.handlers[:] = handlers
        logger.setLevel(level)
        logger.propagate = propagate


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    """A pre-built asset tree with a secret file next to (not inside) it."""
    root = tmp_path / "build"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text("<html>ok</html>")
    (root / "assets" / "app.js").write_text("console.log('hi')")
    (tmp_path / "secret.txt").write_text("top secret")
    return root

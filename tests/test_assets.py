"""Tests for resolving the asset handler per mode."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from starlette.testclient import TestClient

from webclient.assets import DevProxy, DevServerManager, DevServerProcess, resolve_assets
from webclient.assets.static import StaticAssets
from webclient.errors import (
    DependencyInstallError,
    DevServerStartError,
    RepoRootError,
    StaticAssetsError,
)
from webclient.models import AssetsConfig


@pytest.fixture
def fake_dev_server() -> Mock:
    proc = Mock(spec=DevServerProcess)
    proc.pid = 4242
    return proc


class TestProductionMode:
    def test_static_handler_without_cleanup(self, build_dir: Path) -> None:
        handler, cleanup = resolve_assets(False, AssetsConfig(build_dir=build_dir))
        assert isinstance(handler, StaticAssets)
        assert cleanup is None

    def test_serves_index(self, build_dir: Path) -> None:
        handler, _ = resolve_assets(False, AssetsConfig(build_dir=build_dir))
        resp = TestClient(handler).get("/index.html")
        assert resp.status_code == 200
        assert resp.text == "<html>ok</html>"

    def test_never_starts_dev_server(self, build_dir: Path) -> None:
        with patch.object(DevServerManager, "start") as start:
            resolve_assets(False, AssetsConfig(build_dir=build_dir))
        start.assert_not_called()

    def test_missing_tree_fails_at_resolve(self, tmp_path: Path) -> None:
        with pytest.raises(StaticAssetsError):
            resolve_assets(False, AssetsConfig(build_dir=tmp_path / "missing"))


class TestDevelopmentMode:
    def test_proxy_with_cleanup(self, fake_dev_server: Mock) -> None:
        with patch.object(DevServerManager, "start", return_value=fake_dev_server):
            handler, cleanup = resolve_assets(True, AssetsConfig(repo_root=Path("/repo")))
        assert isinstance(handler, DevProxy)
        assert handler.target_url == "http://127.0.0.1:4000"
        assert handler.start_command == "./tool/yarn --cwd client/web start"
        assert cleanup is fake_dev_server

    def test_cleanup_stops_dev_server(self, fake_dev_server: Mock) -> None:
        with patch.object(DevServerManager, "start", return_value=fake_dev_server):
            _, cleanup = resolve_assets(True)
        assert cleanup is not None
        cleanup()
        fake_dev_server.assert_called_once()

    def test_proxy_follows_configured_address(self, fake_dev_server: Mock) -> None:
        config = AssetsConfig(dev_server_host="localhost", dev_server_port=5173)
        with patch.object(DevServerManager, "start", return_value=fake_dev_server):
            handler, _ = resolve_assets(True, config)
        assert isinstance(handler, DevProxy)
        assert handler.target_url == "http://localhost:5173"

    @pytest.mark.parametrize(
        "error",
        [
            RepoRootError("no git"),
            DependencyInstallError("yarn install failed", output="boom", returncode=1),
            DevServerStartError("no node"),
        ],
    )
    def test_startup_failure_returns_no_handler(self, error: Exception) -> None:
        with patch.object(DevServerManager, "start", side_effect=error):
            with pytest.raises(type(error)):
                resolve_assets(True)


@pytest.mark.parametrize("dev_mode", [False, True])
def test_cleanup_only_in_dev_mode(
    dev_mode: bool, build_dir: Path, fake_dev_server: Mock
) -> None:
    with patch.object(DevServerManager, "start", return_value=fake_dev_server):
        handler, cleanup = resolve_assets(dev_mode, AssetsConfig(build_dir=build_dir))
    assert handler is not None
    assert (cleanup is not None) == dev_mode

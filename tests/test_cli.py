from pathlib import Path
from unittest.mock import Mock, patch

from typer.testing import CliRunner

from webclient.__main__ import app
from webclient.errors import DependencyInstallError, RepoRootError
from webclient.models import AssetsConfig

runner: CliRunner = CliRunner()


def test_serve_production(build_dir: Path) -> None:
    with patch("webclient.__main__.run_server") as run_server:
        result = runner.invoke(
            app,
            ["serve", "--build-dir", str(build_dir), "--port", "9123"],
            catch_exceptions=False,
        )
    assert result.exit_code == 0, result.output
    run_server.assert_called_once()
    assert run_server.call_args.kwargs["port"] == 9123
    assert run_server.call_args.kwargs["host"] == "127.0.0.1"


def test_serve_production_missing_build(tmp_path: Path) -> None:
    with patch("webclient.__main__.run_server") as run_server:
        result = runner.invoke(app, ["serve", "--build-dir", str(tmp_path / "missing")])
    assert result.exit_code == 1
    assert "❌" in result.output
    run_server.assert_not_called()


def test_serve_dev_passes_config_and_cleans_up(tmp_path: Path) -> None:
    cleanup = Mock()
    with (
        patch("webclient.__main__.resolve_assets", return_value=(Mock(), cleanup)) as resolve,
        patch("webclient.__main__.run_server") as run_server,
    ):
        result = runner.invoke(
            app,
            ["serve", "--dev", "--repo-root", str(tmp_path), "--stop-timeout", "3"],
            catch_exceptions=False,
        )
    assert result.exit_code == 0, result.output
    dev_mode, config = resolve.call_args.args
    assert dev_mode is True
    assert isinstance(config, AssetsConfig)
    assert config.repo_root == tmp_path
    assert config.stop_timeout == 3.0
    run_server.assert_called_once()
    cleanup.assert_called_once_with()


def test_serve_dev_install_failure_shows_output() -> None:
    error = DependencyInstallError(
        "error running web client's yarn install: exit status 1",
        output="boom: lockfile out of date",
        returncode=1,
    )
    with (
        patch("webclient.__main__.resolve_assets", side_effect=error),
        patch("webclient.__main__.run_server") as run_server,
    ):
        result = runner.invoke(app, ["serve", "--dev"])
    assert result.exit_code == 1
    assert "boom: lockfile out of date" in result.output
    run_server.assert_not_called()


def test_serve_dev_repo_root_failure() -> None:
    with (
        patch("webclient.__main__.resolve_assets", side_effect=RepoRootError("no git")),
        patch("webclient.__main__.run_server") as run_server,
    ):
        result = runner.invoke(app, ["serve", "--dev"])
    assert result.exit_code == 1
    assert "no git" in result.output
    run_server.assert_not_called()


def test_cleanup_runs_when_server_fails() -> None:
    cleanup = Mock()
    with (
        patch("webclient.__main__.resolve_assets", return_value=(Mock(), cleanup)),
        patch("webclient.__main__.run_server", side_effect=OSError("address in use")),
    ):
        result = runner.invoke(app, ["serve", "--dev"])
    assert result.exit_code != 0
    cleanup.assert_called_once_with()


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "webclient" in result.output

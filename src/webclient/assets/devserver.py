"""Lifecycle of the Vite dev server that rebuilds web client assets on demand.

Startup is strictly sequential and blocking:
1. Locate the repository root (git)
2. Install JavaScript dependencies with the repo's pinned yarn
3. Spawn `node vite` in the web client directory, detached from our terminal

The returned DevServerProcess is the only owner of the child. Stopping it is
one-shot: interrupt, wait, log the exit.
"""

from __future__ import annotations

import atexit
import os
import signal
import subprocess
import threading
import time
from contextlib import suppress
from pathlib import Path
from typing import ClassVar

from webclient.assets import process_control
from webclient.errors import (
    DependencyInstallError,
    DevServerAlreadyRunningError,
    DevServerStartError,
    RepoRootError,
)
from webclient.logging import LogComponent, get_logger
from webclient.models import AssetsConfig, TrackedProcess
from webclient.utils import format_elapsed_ms

logger = get_logger(LogComponent.DEVSERVER)


def git_root_dir(cwd: Path | None = None) -> Path:
    """Return the top level of the git checkout containing cwd."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=cwd,
            capture_output=True,
            text=True,
        )
    except OSError as e:
        raise RepoRootError(f"failed to find git top level: {e}") from e
    if result.returncode != 0:
        raise RepoRootError(
            f"failed to find git top level (not in a git checkout?): {result.stderr.strip()}"
        )
    return Path(result.stdout.strip())


def install_dependencies(config: AssetsConfig, root: Path) -> None:
    """Run `yarn install` for the web client, raising with its output on failure."""
    yarn = config.yarn_path(root)
    web_client_path = config.web_client_path(root)

    logger.info(f"installing JavaScript deps using {yarn}... (might take ~30s)")
    start_time_perf = time.perf_counter()
    try:
        result = subprocess.run(
            [str(yarn), "--non-interactive", "-s", "--cwd", str(web_client_path), "install"],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise DependencyInstallError(f"error running web client's yarn install: {e}") from e

    if result.returncode != 0:
        raise DependencyInstallError(
            f"error running web client's yarn install: exit status {result.returncode}",
            output=result.stdout or "",
            returncode=result.returncode,
        )
    logger.info(f"JavaScript deps installed ({format_elapsed_ms(start_time_perf)})")


def describe_exit(returncode: int | None) -> str:
    if returncode is None:
        return "still running"
    if returncode < 0:
        try:
            return f"signal: {signal.Signals(-returncode).name}"
        except ValueError:
            return f"signal: {-returncode}"
    return f"exit status {returncode}"


class DevServerProcess:
    """Handle to a running dev server child process.

    Attributes:
        command: The argv the process was started with
        cwd: Working directory of the process
        tracked: pid/create_time/pgid captured right after spawn
    """

    name: str = "JavaScript dev server"

    def __init__(
        self,
        popen: subprocess.Popen[bytes],
        *,
        command: list[str],
        cwd: Path,
        stop_timeout: float | None = None,
    ) -> None:
        self.command: list[str] = command
        self.cwd: Path = cwd
        self.stop_timeout: float | None = stop_timeout
        self.pid: int = popen.pid
        self.tracked: TrackedProcess = process_control.track_process(
            popen.pid
        ) or TrackedProcess(pid=popen.pid)

        self._popen: subprocess.Popen[bytes] | None = popen
        self._returncode: int | None = None
        self._lock: threading.Lock = threading.Lock()

    @property
    def stopped(self) -> bool:
        return self._popen is None

    @property
    def running(self) -> bool:
        popen = self._popen
        return popen is not None and popen.poll() is None

    @property
    def returncode(self) -> int | None:
        return self._returncode

    def stop(self) -> int | None:
        """Interrupt the dev server and wait for it to exit.

        Safe to call more than once and from several threads; only the first
        call signals the process. Returns the exit code.
        """
        with self._lock:
            popen = self._popen
            if popen is None:
                return self._returncode

            if popen.poll() is None:
                if not process_control.send_interrupt(self.tracked):
                    # Tracking failed at spawn; signal the root directly.
                    with suppress(ProcessLookupError):
                        popen.send_signal(
                            signal.CTRL_BREAK_EVENT  # type: ignore[attr-defined]
                            if os.name == "nt"
                            else signal.SIGINT
                        )
                try:
                    popen.wait(timeout=self.stop_timeout)
                except subprocess.TimeoutExpired:
                    process_control.force_stop(self.tracked, name=self.name)
                    if popen.poll() is None:
                        popen.kill()
                    popen.wait()
            process_control.reap_group(self.tracked, name=self.name)

            self._returncode = popen.returncode
            self._popen = None

        atexit.unregister(self.stop)
        logger.info(f"{self.name} exited: {describe_exit(self._returncode)}")
        return self._returncode

    def __call__(self) -> None:
        self.stop()


class DevServerManager:
    """Starts the dev server; at most one may be live per interpreter.

    Vite binds a fixed port, so a second instance could never serve anyway.
    """

    _lock: ClassVar[threading.Lock] = threading.Lock()
    _active: ClassVar[DevServerProcess | None] = None

    def __init__(self, config: AssetsConfig | None = None) -> None:
        self.config: AssetsConfig = config or AssetsConfig()

    @classmethod
    def active(cls) -> DevServerProcess | None:
        """The live dev server, if one was started and not yet stopped."""
        proc = cls._active
        if proc is not None and proc.stopped:
            return None
        return proc

    def start(self) -> DevServerProcess:
        """Install deps and launch the dev server. Blocks until both are done."""
        with DevServerManager._lock:
            current = DevServerManager.active()
            if current is not None:
                raise DevServerAlreadyRunningError(
                    f"{current.name} already running as pid {current.pid}; stop it first"
                )

            root = self.config.repo_root or git_root_dir()
            install_dependencies(self.config, root)
            proc = self._launch(root)

            DevServerManager._active = proc
            # The child is in its own session and won't see our Ctrl+C.
            atexit.register(proc.stop)
            return proc

    def _launch(self, root: Path) -> DevServerProcess:
        web_client_path = self.config.web_client_path(root)
        command = [
            str(self.config.node_path(root)),
            str(self.config.vite_path(root)),
        ]

        # New session/process group so the whole vite tree can be signalled together.
        creationflags = 0
        start_new_session = False
        if os.name == "nt":
            creationflags = subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
        else:
            start_new_session = True

        logger.info("starting JavaScript dev server...")
        try:
            popen = subprocess.Popen(
                command,
                cwd=web_client_path,
                stdin=subprocess.DEVNULL,
                start_new_session=start_new_session,
                creationflags=creationflags,
            )
        except OSError as e:
            raise DevServerStartError(f"Starting JS dev server: {e}") from e

        logger.info(f"JavaScript dev server running as pid {popen.pid}")
        return DevServerProcess(
            popen,
            command=command,
            cwd=web_client_path,
            stop_timeout=self.config.stop_timeout,
        )

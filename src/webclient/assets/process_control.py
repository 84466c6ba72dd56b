"""Cross-platform process tracking and stop helpers for the JS dev server.

Design goals:
- Only stop processes we started (tracked by pid + create_time).
- Interrupt first (SIGINT), escalate deterministically.
- Verify the whole process group is gone, not just the root.
- Work on POSIX + Windows (best-effort graceful on Windows).
"""

from __future__ import annotations

import os
import signal
import time

import psutil

from webclient.logging import LogComponent, get_logger
from webclient.models import TrackedProcess

logger = get_logger(LogComponent.PROCESS_CONTROL)


def _get_pgid_safe(pid: int) -> int | None:
    # Windows doesn't have pgid.
    if os.name == "nt":
        return None
    try:
        return os.getpgid(pid)
    except OSError:
        return None


def track_process(pid: int) -> TrackedProcess | None:
    """Create a TrackedProcess for a running PID, recording create_time and pgid."""
    try:
        proc = psutil.Process(pid)
        return TrackedProcess(
            pid=pid,
            create_time=float(proc.create_time()),
            pgid=_get_pgid_safe(pid),
        )
    except psutil.Error:
        return None


def validate_tracked(tp: TrackedProcess) -> psutil.Process | None:
    """Return a psutil.Process only if PID matches create_time (prevents PID reuse bugs)."""
    if tp.pid is None or tp.create_time is None:
        return None
    try:
        proc = psutil.Process(tp.pid)
        if abs(float(proc.create_time()) - float(tp.create_time)) > 0.001:
            return None
        return proc
    except psutil.Error:
        return None


def _list_pgid_members(pgid: int) -> list[int]:
    """Return live (non-zombie) PIDs in a process group (POSIX only)."""
    if os.name == "nt":
        return []
    pids: list[int] = []
    for proc in psutil.process_iter(["pid", "status"]):
        try:
            if proc.info["status"] == psutil.STATUS_ZOMBIE:
                continue
            pid = int(proc.pid)
            if _get_pgid_safe(pid) == pgid:
                pids.append(pid)
        except psutil.Error:
            continue
    return pids


def _wait_for_pgid_empty(pgid: int, timeout: float, poll: float = 0.1) -> bool:
    deadline = time.time() + timeout
    while time.time() < deadline:
        if not _list_pgid_members(pgid):
            return True
        time.sleep(poll)
    return not _list_pgid_members(pgid)


def send_interrupt(tp: TrackedProcess) -> bool:
    """Send an interrupt to a tracked process (its whole group on POSIX).

    Returns True if a signal was delivered.
    """
    if os.name == "nt":
        if validate_tracked(tp) is None or tp.pid is None:
            return False
        # CTRL_BREAK_EVENT only reaches processes started in a new process group.
        try:
            os.kill(tp.pid, signal.CTRL_BREAK_EVENT)  # type: ignore[attr-defined]
            return True
        except OSError:
            return False

    if tp.pgid is not None:
        try:
            os.killpg(tp.pgid, signal.SIGINT)
            return True
        except ProcessLookupError:
            return False

    proc = validate_tracked(tp)
    if proc is None:
        return False
    try:
        proc.send_signal(signal.SIGINT)
        return True
    except psutil.NoSuchProcess:
        return False


def _terminate_tree(root: psutil.Process, timeout: float) -> None:
    """Terminate a process tree, killing whatever survives the timeout."""
    try:
        children = root.children(recursive=True)
    except psutil.Error:
        children = []

    # Children first, so the root gets a chance to exit cleanly.
    for p in children + [root]:
        try:
            p.terminate()
        except psutil.Error:
            pass

    _, alive = psutil.wait_procs(children + [root], timeout=timeout)
    if alive:
        for p in alive:
            try:
                p.kill()
            except psutil.Error:
                pass
        psutil.wait_procs(alive, timeout=max(0.5, timeout / 2))


def force_stop(
    tp: TrackedProcess,
    *,
    name: str,
    sigterm_timeout: float = 1.5,
    sigkill_timeout: float = 1.0,
) -> None:
    """Stop a tracked process that ignored its interrupt.

    Behavior:
    - POSIX with a pgid: SIGTERM the group, then SIGKILL it.
    - Otherwise: terminate/kill the process tree.
    """
    logger.warning(f"{name} did not exit after interrupt, terminating pid={tp.pid}")

    if os.name == "nt" or tp.pgid is None:
        proc = validate_tracked(tp)
        if proc is not None:
            _terminate_tree(proc, timeout=sigterm_timeout + sigkill_timeout)
        return

    try:
        os.killpg(tp.pgid, signal.SIGTERM)
    except ProcessLookupError:
        return
    if _wait_for_pgid_empty(tp.pgid, sigterm_timeout):
        return

    logger.warning(f"{name} ignored SIGTERM, killing process group {tp.pgid}")
    try:
        os.killpg(tp.pgid, signal.SIGKILL)
    except ProcessLookupError:
        return
    _wait_for_pgid_empty(tp.pgid, sigkill_timeout)


def reap_group(tp: TrackedProcess, *, name: str, timeout: float = 2.0) -> int:
    """Kill group members left behind after the root exited. Returns count killed."""
    if os.name == "nt" or tp.pgid is None:
        return 0
    if _wait_for_pgid_empty(tp.pgid, timeout):
        return 0
    leftovers = _list_pgid_members(tp.pgid)
    for pid in leftovers:
        try:
            os.kill(pid, signal.SIGKILL)
        except ProcessLookupError:
            continue
    if leftovers:
        logger.debug(f"Killed {len(leftovers)} leftover {name} pid(s): {leftovers}")
    return len(leftovers)

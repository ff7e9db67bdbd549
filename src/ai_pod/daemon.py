"""Notification daemon lifecycle.

The daemon is a detached `ai-pod serve-notifications` process. Its PID file is
the single-instance lock: a PID file naming a live notification server means
the daemon is running, anything else is stale and gets replaced.

Two CLI invocations racing through `ensure` can both spawn a server; the one
that loses the port bind exits on its own.
"""

import os
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import psutil
import structlog

logger = structlog.get_logger()

SERVE_COMMAND = "serve-notifications"
TERMINATE_TIMEOUT = 3  # seconds


def serve_argv(port: int, config_file: Path | None = None) -> list[str]:
    """Command line that re-invokes this tool as the notification server."""
    argv = [sys.executable, "-m", "ai_pod.main", "--notify-port", str(port)]
    if config_file is not None:
        argv += ["--config", str(config_file)]
    return [*argv, SERVE_COMMAND]


class DaemonState(str, Enum):
    RUNNING = "running"
    STALE = "stale"
    NOT_RUNNING = "not_running"


@dataclass(frozen=True)
class DaemonStatus:
    state: DaemonState
    port: int
    pid: int | None = None

    def describe(self) -> str:
        if self.state is DaemonState.RUNNING:
            return f"running (pid {self.pid}, port {self.port})"
        if self.state is DaemonState.STALE:
            return f"stale pid file (process {self.pid} not found)"
        return "not running"


class PidFile:
    """Plain-text file holding the daemon's process id."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> int | None:
        try:
            raw = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("Ignoring unreadable pid file", path=str(self.path), content=raw[:32])
            return None

    def write(self, pid: int) -> None:
        """Replace the file atomically so readers never see a partial pid."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(f"{pid}\n")
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def remove(self) -> None:
        self.path.unlink(missing_ok=True)


class ProcessTable:
    """OS process queries and detached spawning, backed by psutil."""

    def is_serving(self, pid: int) -> bool:
        """Whether pid is a live ai-pod notification server."""
        try:
            proc = psutil.Process(pid)
            if proc.status() == psutil.STATUS_ZOMBIE:
                return False
            return SERVE_COMMAND in proc.cmdline()
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            # Alive but not inspectable; a daemon we spawned is always inspectable
            return False

    def terminate(self, pid: int) -> None:
        try:
            proc = psutil.Process(pid)
            proc.terminate()
            proc.wait(timeout=TERMINATE_TIMEOUT)
        except psutil.NoSuchProcess:
            pass
        except psutil.TimeoutExpired:
            logger.warning("Daemon did not exit after SIGTERM, killing", pid=pid)
            proc.kill()

    def spawn_detached(self, argv: list[str], log_file: Path) -> int:
        """Start argv in its own session with output appended to log_file.

        The child is not waited for. Returns its pid.
        """
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with open(log_file, "ab") as log:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=log,
                stderr=subprocess.STDOUT,
                start_new_session=True,
                close_fds=True,
            )
        return proc.pid


class NotificationDaemon:
    """Start, stop and inspect the singleton notification server."""

    def __init__(
        self,
        pid_file: Path,
        log_file: Path,
        port: int,
        processes: ProcessTable | None = None,
        config_file: Path | None = None,
    ) -> None:
        self.pid_file = PidFile(pid_file)
        self.log_file = log_file
        self.port = port
        self.config_file = config_file
        self.processes = processes or ProcessTable()

    def status(self) -> DaemonStatus:
        """Observe the daemon without changing anything."""
        pid = self.pid_file.read()
        if pid is None:
            return DaemonStatus(DaemonState.NOT_RUNNING, self.port)
        if self.processes.is_serving(pid):
            return DaemonStatus(DaemonState.RUNNING, self.port, pid)
        return DaemonStatus(DaemonState.STALE, self.port, pid)

    def ensure(self) -> DaemonStatus:
        """Make sure a server is running, spawning one if needed."""
        current = self.status()
        if current.state is DaemonState.RUNNING:
            logger.debug("Notification daemon already running", pid=current.pid)
            return current

        if current.state is DaemonState.STALE:
            logger.info("Replacing stale pid file", pid=current.pid)

        pid = self.processes.spawn_detached(serve_argv(self.port, self.config_file), self.log_file)
        self.pid_file.write(pid)
        logger.info("Notification daemon started", pid=pid, port=self.port, log=str(self.log_file))
        return DaemonStatus(DaemonState.RUNNING, self.port, pid)

    def stop(self) -> DaemonStatus:
        """Stop the daemon if it is running. Returns the status before stopping."""
        current = self.status()
        if current.state is DaemonState.RUNNING and current.pid is not None:
            logger.info("Stopping notification daemon", pid=current.pid)
            self.processes.terminate(current.pid)
        self.pid_file.remove()
        return current


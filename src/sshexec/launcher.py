"""Detached launch of a deployed binary with PID-file capture."""
from __future__ import annotations

import logging
import time
from typing import Optional

from sshexec import commands
from sshexec.errors import ConnectivityError, LaunchError
from sshexec.ssh import RemoteShellClient
from sshexec.types import CommandResult, RemoteProcessHandle, RemoteTarget

logger = logging.getLogger(__name__)

DEFAULT_LAUNCH_SETTLE_SECONDS = 0.5


def parse_pid(output: str) -> Optional[int]:
    """Parse PID file contents; returns None unless they are a positive integer."""
    text = output.strip()
    if not text.isdigit():
        return None
    pid = int(text)
    return pid if pid > 0 else None


class ProcessLauncher:
    """Starts the remote binary detached from the SSH session.

    The launch command backgrounds the binary and writes ``$!`` to
    ``<remote_dir>/app.pid`` in the same invocation; the PID is read back with
    a second invocation after a short settle delay. If that read fails, the
    launch still counts as successful and the handle carries no PID.
    """

    def __init__(self, client: RemoteShellClient, settle_seconds: float = DEFAULT_LAUNCH_SETTLE_SECONDS) -> None:
        if client is None:
            raise ValueError("client must be a RemoteShellClient")
        if settle_seconds < 0:
            raise ValueError("settle_seconds must be non-negative")
        self.client = client
        self.settle_seconds = settle_seconds

    def launch(self, target: RemoteTarget, binary_name: str) -> RemoteProcessHandle:
        """
        Launch binary_name from target.remote_dir.

        Returns:
            Handle believed running, with the captured PID or None if capture failed.

        Raises:
            LaunchError: If the backgrounding command fails or the host is unreachable.
        """
        if not binary_name or not isinstance(binary_name, str):
            raise ValueError("binary_name must be a non-empty string")

        self._remove_stale_pid_file(target)

        logger.info("Starting %s on %s...", binary_name, target.host)
        try:
            result = self.client.run_detached(target, commands.launch_command(target, binary_name))
        except ConnectivityError as exc:
            logger.error("Failed to start application: %s", exc)
            raise LaunchError(f"Failed to start {binary_name} on {target.host}: {exc}") from exc

        if not result.ok:
            logger.error("Failed to start application (exit %s): %s", result.exit_code, result.output.strip())
            raise LaunchError(
                f"Failed to start {binary_name} on {target.host} (exit {result.exit_code}): {result.output.strip()}"
            )

        if self.settle_seconds:
            time.sleep(self.settle_seconds)

        handle = RemoteProcessHandle(binary_name=binary_name)
        pid, raw = self._read_pid(target)
        handle.mark_running(pid)
        if pid is not None:
            logger.info("Started %s with PID %s", binary_name, pid)
        else:
            logger.warning("Started %s (PID unknown, output: %s); falling back to name-based tracking", binary_name, raw)
        return handle

    def _remove_stale_pid_file(self, target: RemoteTarget) -> None:
        try:
            result = self.client.run(target, commands.remove_pid_file_command(target))
        except ConnectivityError as exc:
            logger.warning("Could not remove stale PID file %s: %s", target.pid_file, exc)
            return
        if not result.ok:
            logger.warning("Could not remove stale PID file %s: %s", target.pid_file, result.output.strip())

    def _read_pid(self, target: RemoteTarget) -> tuple[Optional[int], str]:
        try:
            result: CommandResult = self.client.run(target, commands.read_pid_command(target))
        except ConnectivityError as exc:
            return None, str(exc)
        if not result.ok:
            return None, result.output.strip()
        return parse_pid(result.last_line()), result.output.strip()

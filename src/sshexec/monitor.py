"""Liveness probing of the managed remote process."""
from __future__ import annotations

import logging

from sshexec import commands
from sshexec.errors import ConnectivityError
from sshexec.ssh import RemoteShellClient
from sshexec.types import ProcessState, RemoteProcessHandle, RemoteTarget

logger = logging.getLogger(__name__)

RUNNING_MARKER = "running"


class ProcessMonitor:
    """Reconciles a handle's belief with what the remote host reports."""

    def __init__(self, client: RemoteShellClient) -> None:
        if client is None:
            raise ValueError("client must be a RemoteShellClient")
        self.client = client

    def probe(self, target: RemoteTarget, handle: RemoteProcessHandle) -> ProcessState:
        """
        Determine whether the process behind handle is alive.

        A handle not believed running short-circuits to STOPPED with no remote
        call. A confirmed "stopped" answer clears the handle. UNKNOWN is returned
        when the host cannot be reached, and the handle is left untouched.
        """
        if not handle.believed_running:
            return ProcessState.STOPPED

        if handle.pid is not None:
            command = commands.pid_alive_command(handle.pid)
        else:
            command = commands.name_alive_command(handle.binary_name)

        try:
            result = self.client.run(target, command)
        except ConnectivityError as exc:
            logger.warning("Could not determine status of %s on %s: %s", handle.binary_name, target.host, exc)
            return ProcessState.UNKNOWN

        if not result.ok:
            logger.warning(
                "Status probe for %s on %s failed (exit %s): %s",
                handle.binary_name, target.host, result.exit_code, result.output.strip(),
            )
            return ProcessState.UNKNOWN

        if result.last_line() == RUNNING_MARKER:
            return ProcessState.RUNNING

        logger.info("%s is no longer running on %s", handle.binary_name, target.host)
        handle.mark_stopped()
        return ProcessState.STOPPED

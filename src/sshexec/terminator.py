"""Idempotent force-stop of the managed remote process."""
from __future__ import annotations

import logging
import time

from sshexec import commands
from sshexec.errors import ConnectivityError
from sshexec.ssh import RemoteShellClient
from sshexec.types import RemoteProcessHandle, RemoteTarget

logger = logging.getLogger(__name__)

DEFAULT_STOP_SETTLE_SECONDS = 1.0


class ProcessTerminator:
    """Kills every instance of the binary by name and always clears the handle."""

    def __init__(self, client: RemoteShellClient, settle_seconds: float = DEFAULT_STOP_SETTLE_SECONDS) -> None:
        if client is None:
            raise ValueError("client must be a RemoteShellClient")
        if settle_seconds < 0:
            raise ValueError("settle_seconds must be non-negative")
        self.client = client
        self.settle_seconds = settle_seconds

    def terminate(self, target: RemoteTarget, handle: RemoteProcessHandle) -> None:
        """
        Force-kill all processes matching handle.binary_name on target.

        Never raises for remote failures: "no matching process" and unreachable
        hosts are logged, and the handle converges to stopped either way.
        """
        # Kill by name even when nothing is believed running, to clear strays holding ports.
        try:
            result = self.client.run(target, commands.force_kill_command(handle.binary_name))
            if not result.ok:
                logger.warning(
                    "pkill for %s on %s exited %s: %s",
                    handle.binary_name, target.host, result.exit_code, result.output.strip(),
                )
        except ConnectivityError as exc:
            logger.warning("Could not reach %s to stop %s: %s", target.host, handle.binary_name, exc)

        handle.mark_stopped()
        logger.info("Stopped application %s (pkill)", handle.binary_name)

        if self.settle_seconds:
            time.sleep(self.settle_seconds)

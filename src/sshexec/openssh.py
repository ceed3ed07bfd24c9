"""Transport that shells out to the system ``ssh`` and ``scp`` binaries."""
from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from sshexec import commands
from sshexec.errors import ConnectivityError
from sshexec.ssh import RemoteShellClient
from sshexec.types import CommandResult, RemoteTarget

logger = logging.getLogger(__name__)

# ssh reserves 255 for its own (connection/auth) failures.
SSH_TRANSPORT_FAILURE = 255


class OpenSSHClient(RemoteShellClient):
    """Runs each command through a fresh ``ssh`` process."""

    def __init__(self, ssh_binary: str = "ssh", scp_binary: str = "scp") -> None:
        self.ssh_binary = ssh_binary
        self.scp_binary = scp_binary

    def _ssh_args(self, target: RemoteTarget, command: str, background: bool = False) -> List[str]:
        args = [self.ssh_binary]
        if background:
            args.append("-f")
        args += ["-p", str(target.port), *target.ssh_options, target.destination, command]
        return args

    def _scp_args(self, target: RemoteTarget, local_path: str, remote_path: str) -> List[str]:
        return [
            self.scp_binary,
            "-P", str(target.port),
            *target.ssh_options,
            local_path,
            f"{target.destination}:{remote_path}",
        ]

    def _invoke(
        self,
        args: List[str],
        target: RemoteTarget,
        timeout: Optional[float],
        capture: bool = True,
    ) -> CommandResult:
        logger.debug("Running: %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                stdout=subprocess.PIPE if capture else subprocess.DEVNULL,
                stderr=subprocess.STDOUT if capture else subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise ConnectivityError(f"{args[0]} to {target.host} timed out after {timeout}s") from exc
        except FileNotFoundError as exc:
            raise ConnectivityError(f"{args[0]} executable not found") from exc

        output = completed.stdout or ""
        if completed.returncode == SSH_TRANSPORT_FAILURE and args[0] == self.ssh_binary:
            raise ConnectivityError(
                f"ssh to {target.destination}:{target.port} failed: {output.strip()}"
            )
        logger.debug("Exit code %s", completed.returncode)
        return CommandResult(exit_code=completed.returncode, output=output)

    def run(self, target: RemoteTarget, command: str, timeout: Optional[float] = None) -> CommandResult:
        if not command or not isinstance(command, str):
            raise ValueError("command must be a non-empty string")
        timeout = timeout if timeout is not None else target.command_timeout
        return self._invoke(self._ssh_args(target, command), target, timeout)

    def run_detached(self, target: RemoteTarget, command: str) -> CommandResult:
        """Run with ``ssh -f`` so ssh backgrounds itself right after authentication."""
        if not command or not isinstance(command, str):
            raise ValueError("command must be a non-empty string")
        # The forked ssh keeps inherited descriptors open, so nothing is captured.
        timeout = target.connect_timeout + target.command_timeout
        return self._invoke(self._ssh_args(target, command, background=True), target, timeout, capture=False)

    def copy_to(self, target: RemoteTarget, local_paths: Iterable[str], remote_dir: str) -> CommandResult:
        if not remote_dir or not isinstance(remote_dir, str):
            raise ValueError("remote_dir must be a non-empty string")
        paths = [str(path) for path in local_paths]
        if not paths:
            raise ValueError("local_paths must contain at least one file")
        moves = []
        for path in paths:
            name = Path(path).name
            staged = commands.staged_path(remote_dir, name)
            # Transfers scale with file size, so only the connect timeout guards them.
            result = self._invoke(self._scp_args(target, path, staged), target, timeout=None)
            if not result.ok:
                return result
            moves.append((staged, f"{remote_dir.rstrip('/')}/{name}"))

        # Renaming over the destination leaves a running binary on its old inode.
        return self.run(target, commands.replace_files_command(moves))

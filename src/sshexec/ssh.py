"""SSH transport for executing single commands on a remote Linux target."""
import logging
import socket
import time
from pathlib import Path
from typing import Iterable, Optional

import paramiko

from sshexec import commands
from sshexec.errors import ConnectivityError
from sshexec.types import CommandResult, RemoteTarget

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (paramiko.SSHException, socket.timeout, OSError)


class RemoteShellClient:
    """Contract shared by every remote-shell transport.

    Each call is independent: no connection is kept open between calls.
    A non-zero remote exit code is returned in the ``CommandResult``; only
    transport failures (DNS, refused connection, auth, timeout) raise
    ``ConnectivityError``.
    """

    def run(self, target: RemoteTarget, command: str, timeout: Optional[float] = None) -> CommandResult:
        raise NotImplementedError

    def run_detached(self, target: RemoteTarget, command: str) -> CommandResult:
        raise NotImplementedError

    def copy_to(self, target: RemoteTarget, local_paths: Iterable[str], remote_dir: str) -> CommandResult:
        raise NotImplementedError


class SSHClient(RemoteShellClient):
    """Paramiko-backed transport using key-based authentication only."""

    def __init__(self, private_key_path: Optional[str] = None):
        """
        Initialize SSH transport.

        Args:
            private_key_path: Path to private SSH key file. Optional; the agent,
                the ``IdentityFile`` option and default keys are tried otherwise.

        Raises:
            FileNotFoundError: If private_key_path is given but does not exist.
        """
        if private_key_path is not None:
            key_path = Path(private_key_path).expanduser()
            if not key_path.exists():
                raise FileNotFoundError(f"Private key file not found: {private_key_path}")
            private_key_path = str(key_path)
        self.private_key_path = private_key_path

    def connect(self, target: RemoteTarget) -> paramiko.SSHClient:
        """
        Open a new SSH connection to the target.

        Raises:
            ConnectivityError: If the host is unreachable, rejects the host key,
                refuses authentication, or the connection times out.
        """
        options = target.option_map
        client = paramiko.SSHClient()

        try:
            client.load_system_host_keys()
        except OSError as e:
            logger.debug(f"Could not load system host keys: {e}")
        known_hosts = options.get("userknownhostsfile")
        if known_hosts and known_hosts != "/dev/null":
            known_hosts_path = Path(known_hosts).expanduser()
            if known_hosts_path.exists():
                client.load_host_keys(str(known_hosts_path))

        if options.get("stricthostkeychecking", "accept-new").lower() == "yes":
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())

        key_filename = self.private_key_path
        if key_filename is None and options.get("identityfile"):
            key_filename = str(Path(options["identityfile"]).expanduser())

        timeout = target.connect_timeout
        try:
            client.connect(
                hostname=target.host,
                port=target.port,
                username=target.user,
                key_filename=key_filename,
                timeout=timeout,
                banner_timeout=timeout,
                auth_timeout=timeout,
                allow_agent=True,
                look_for_keys=True,
            )
        except _TRANSPORT_ERRORS as e:
            client.close()
            raise ConnectivityError(f"Cannot connect to {target.destination}:{target.port}: {e}") from e

        logger.debug(f"SSH connection established to {target.destination}:{target.port}")
        return client

    def run(self, target: RemoteTarget, command: str, timeout: Optional[float] = None) -> CommandResult:
        """
        Execute a command on the remote host.

        Args:
            target: Remote host to connect to. Required.
            command: Shell command to execute. Required.
            timeout: Bound on total command execution. Defaults to target.command_timeout.

        Returns:
            CommandResult with the exit code and merged stdout/stderr.

        Raises:
            ValueError: If command is empty.
            ConnectivityError: If the connection fails or the command times out.
        """
        if not command or not isinstance(command, str):
            raise ValueError("command must be a non-empty string")

        timeout = timeout if timeout is not None else target.command_timeout
        client = self.connect(target)
        try:
            channel = client.get_transport().open_session(timeout=target.connect_timeout)
            channel.set_combine_stderr(True)
            channel.settimeout(timeout)
            channel.exec_command(command)
            output = channel.makefile("rb").read().decode("utf-8", errors="replace")
            exit_code = channel.recv_exit_status()
        except _TRANSPORT_ERRORS as e:
            logger.error(f"Command execution failed on {target.host}: {e}")
            raise ConnectivityError(f"Command execution failed on {target.host}: {e}") from e
        finally:
            client.close()

        logger.debug(f"Command executed: {command} (exit code: {exit_code})")
        return CommandResult(exit_code=exit_code, output=output)

    def run_detached(self, target: RemoteTarget, command: str) -> CommandResult:
        """
        Dispatch a command whose effect outlives the connection.

        Only the remote shell's exit status is awaited, never EOF on the
        session, so a backgrounded child holding the session open cannot
        block the caller. The wait is bounded by the connect timeout.

        Raises:
            ValueError: If command is empty.
            ConnectivityError: If the connection fails or dispatch times out.
        """
        if not command or not isinstance(command, str):
            raise ValueError("command must be a non-empty string")

        client = self.connect(target)
        try:
            channel = client.get_transport().open_session(timeout=target.connect_timeout)
            channel.set_combine_stderr(True)
            channel.exec_command(command)

            deadline = time.monotonic() + target.connect_timeout
            while not channel.exit_status_ready():
                if time.monotonic() >= deadline:
                    raise ConnectivityError(f"Detached command dispatch timed out on {target.host}")
                time.sleep(0.05)

            exit_code = channel.recv_exit_status()
            output = channel.recv(65536).decode("utf-8", errors="replace") if channel.recv_ready() else ""
        except _TRANSPORT_ERRORS as e:
            logger.error(f"Detached command failed on {target.host}: {e}")
            raise ConnectivityError(f"Detached command failed on {target.host}: {e}") from e
        finally:
            client.close()

        logger.debug(f"Detached command dispatched: {command} (exit code: {exit_code})")
        return CommandResult(exit_code=exit_code, output=output)

    def copy_to(self, target: RemoteTarget, local_paths: Iterable[str], remote_dir: str) -> CommandResult:
        """
        Upload local files into a remote directory, replacing existing files.

        Each file is written to a hidden staged sibling and renamed over the
        destination, so a binary that is currently executing keeps its old
        inode instead of failing the upload with ETXTBSY.

        Returns:
            CommandResult with exit code 0 when every file was uploaded, 1 otherwise.

        Raises:
            FileNotFoundError: If a local file does not exist.
            ConnectivityError: If the connection fails.
        """
        if not remote_dir or not isinstance(remote_dir, str):
            raise ValueError("remote_dir must be a non-empty string")

        local_files = [Path(path) for path in local_paths]
        for local_file in local_files:
            if not local_file.is_file():
                raise FileNotFoundError(f"Local file not found: {local_file}")

        client = self.connect(target)
        try:
            sftp = client.open_sftp()
        except _TRANSPORT_ERRORS as e:
            client.close()
            raise ConnectivityError(f"Cannot open SFTP session to {target.host}: {e}") from e

        staged = None
        try:
            for local_file in local_files:
                remote_path = f"{remote_dir.rstrip('/')}/{local_file.name}"
                staged = commands.staged_path(remote_dir, local_file.name)
                sftp.put(str(local_file), staged)
                sftp.posix_rename(staged, remote_path)
                staged = None
                logger.debug(f"File uploaded: {local_file} -> {target.host}:{remote_path}")
        except socket.timeout as e:
            raise ConnectivityError(f"File upload to {target.host} timed out: {e}") from e
        except (IOError, paramiko.SSHException) as e:
            logger.error(f"File upload failed: {e}")
            if staged is not None:
                self._discard_staged(sftp, staged)
            return CommandResult(exit_code=1, output=str(e))
        finally:
            sftp.close()
            client.close()

        logger.info(f"Uploaded {len(local_files)} file(s) to {target.host}:{remote_dir}")
        return CommandResult(exit_code=0, output="")

    @staticmethod
    def _discard_staged(sftp: paramiko.SFTPClient, staged: str) -> None:
        try:
            sftp.remove(staged)
        except (IOError, paramiko.SSHException) as e:
            logger.debug(f"Could not remove staged upload {staged}: {e}")

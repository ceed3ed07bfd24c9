"""Deployment of an executable and its shared libraries to a remote target."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from sshexec import commands
from sshexec.errors import ConnectivityError, DeployError
from sshexec.ssh import RemoteShellClient
from sshexec.types import DeploymentArtifact, RemoteTarget

logger = logging.getLogger(__name__)

LIBRARY_PATTERN = "*.so*"
_SAFE_BINARY_NAME = re.compile(r"^[A-Za-z0-9._+-]+$")


def find_shared_libraries(library_dir: Optional[str]) -> List[Path]:
    """Return the shared-library files directly inside library_dir, sorted by name."""
    if not library_dir:
        return []
    directory = Path(library_dir).expanduser()
    if not directory.is_dir():
        return []
    return sorted(path for path in directory.glob(LIBRARY_PATTERN) if path.is_file())


class ArtifactDeployer:
    """Creates the remote layout, uploads the artifact, and makes it executable."""

    def __init__(self, client: RemoteShellClient) -> None:
        if client is None:
            raise ValueError("client must be a RemoteShellClient")
        self.client = client

    def deploy(self, target: RemoteTarget, artifact: DeploymentArtifact) -> str:
        """
        Deploy the artifact to target.remote_dir.

        Redeploying over a running instance is allowed; the running process keeps
        its old inode until it is restarted.

        Args:
            target: Remote host and directory. Required.
            artifact: Local executable and optional library directory. Required.

        Returns:
            The bare binary name used by later launch/probe/stop steps.

        Raises:
            DeployError: If directory creation, executable transfer, or chmod fails.
            ConnectivityError: If the host cannot be reached during a fatal step.
        """
        binary_name = artifact.binary_name
        if not _SAFE_BINARY_NAME.match(binary_name):
            raise DeployError(f"Unsupported executable name: {binary_name!r}")

        local_executable = Path(artifact.local_executable_path).expanduser()
        if not local_executable.is_file():
            raise DeployError(f"Executable not found: {local_executable}")

        logger.info(f"Creating remote directories on {target.host}...")
        result = self.client.run(target, commands.mkdir_command(target))
        if not result.ok:
            logger.error(f"Failed to create remote directory (exit {result.exit_code}): {result.output.strip()}")
            raise DeployError(f"Failed to create {target.remote_dir} on {target.host}: {result.output.strip()}")

        logger.info(f"Deploying {binary_name} to {target.destination}:{target.remote_dir}...")
        result = self.client.copy_to(target, [str(local_executable)], target.remote_dir)
        if not result.ok:
            logger.error(f"Failed to copy executable (exit {result.exit_code}): {result.output.strip()}")
            raise DeployError(f"Failed to copy {binary_name} to {target.host}: {result.output.strip()}")

        self._sync_libraries(target, artifact.local_library_dir)

        result = self.client.run(target, commands.chmod_command(target, binary_name))
        if not result.ok:
            logger.error(f"Failed to set executable permissions (exit {result.exit_code}): {result.output.strip()}")
            raise DeployError(f"Failed to chmod {target.remote_dir}/{binary_name}: {result.output.strip()}")

        return binary_name

    def _sync_libraries(self, target: RemoteTarget, library_dir: Optional[str]) -> bool:
        """Best-effort library upload; returns False when libraries were not synced."""
        if not library_dir:
            logger.warning("No local library directory configured; deploying executable only")
            return False

        if not Path(library_dir).expanduser().is_dir():
            logger.warning(f"Local lib directory not found at {library_dir}")
            return False

        libraries = find_shared_libraries(library_dir)
        if not libraries:
            logger.warning(f"No shared libraries ({LIBRARY_PATTERN}) found in {library_dir}")
            return False

        logger.info(f"Syncing {len(libraries)} libraries from {library_dir}...")
        try:
            result = self.client.copy_to(target, [str(path) for path in libraries], target.lib_dir)
        except (ConnectivityError, OSError) as e:
            logger.warning(f"Failed to copy libraries: {e}")
            return False

        if not result.ok:
            logger.warning(f"Failed to copy libraries (exit {result.exit_code}): {result.output.strip()}")
            return False
        return True

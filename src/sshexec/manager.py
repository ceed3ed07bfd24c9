"""Start/stop/status lifecycle of one executable on one remote target."""
from __future__ import annotations

import logging
from typing import Optional, Tuple

from sshexec.deploy import ArtifactDeployer
from sshexec.errors import ConnectivityError, DeployError, LaunchError
from sshexec.launcher import DEFAULT_LAUNCH_SETTLE_SECONDS, ProcessLauncher
from sshexec.monitor import ProcessMonitor
from sshexec.ssh import RemoteShellClient, SSHClient
from sshexec.terminator import DEFAULT_STOP_SETTLE_SECONDS, ProcessTerminator
from sshexec.types import DeploymentArtifact, ProcessState, RemoteProcessHandle, RemoteTarget

logger = logging.getLogger(__name__)


class RemoteProcessManager:
    """Execution-tool facade over deploy, launch, probe and terminate.

    The manager owns a single RemoteProcessHandle and is its only writer.
    Calls on one manager must not overlap: the PID-file protocol assumes a
    single launcher per remote directory.

    ``start``, ``stop`` and ``status`` follow the execution-tool contract and
    report failures through an error flag instead of raising.
    """

    def __init__(
        self,
        target: RemoteTarget,
        artifact: DeploymentArtifact,
        client: Optional[RemoteShellClient] = None,
        handle: Optional[RemoteProcessHandle] = None,
        launch_settle_seconds: float = DEFAULT_LAUNCH_SETTLE_SECONDS,
        stop_settle_seconds: float = DEFAULT_STOP_SETTLE_SECONDS,
    ) -> None:
        if not isinstance(target, RemoteTarget):
            raise ValueError("target must be a RemoteTarget")
        if not isinstance(artifact, DeploymentArtifact):
            raise ValueError("artifact must be a DeploymentArtifact")
        if handle is not None and handle.binary_name != artifact.binary_name:
            raise ValueError(
                f"handle tracks {handle.binary_name!r} but artifact deploys {artifact.binary_name!r}"
            )

        self.target = target
        self.artifact = artifact
        self.client = client if client is not None else SSHClient()
        self.deployer = ArtifactDeployer(self.client)
        self.launcher = ProcessLauncher(self.client, settle_seconds=launch_settle_seconds)
        self.monitor = ProcessMonitor(self.client)
        self.terminator = ProcessTerminator(self.client, settle_seconds=stop_settle_seconds)
        self._handle = handle if handle is not None else RemoteProcessHandle(binary_name=artifact.binary_name)

    @property
    def handle(self) -> RemoteProcessHandle:
        return self._handle

    @property
    def binary_name(self) -> str:
        return self.artifact.binary_name

    def deploy(self) -> str:
        """Deploy the artifact; raises DeployError or ConnectivityError."""
        return self.deployer.deploy(self.target, self.artifact)

    def launch(self) -> RemoteProcessHandle:
        """Launch the deployed binary and adopt the resulting handle; raises LaunchError."""
        if self._handle.believed_running:
            logger.warning("%s is believed running already; launching another instance", self.binary_name)
        self._handle = self.launcher.launch(self.target, self.binary_name)
        return self._handle

    def probe(self) -> ProcessState:
        return self.monitor.probe(self.target, self._handle)

    def terminate(self) -> None:
        self.terminator.terminate(self.target, self._handle)

    def start(self) -> bool:
        """Deploy and launch. Returns True on failure, leaving the belief unchanged."""
        try:
            self.deploy()
            self.launch()
        except (DeployError, LaunchError, ConnectivityError) as exc:
            logger.error("Failed to start %s on %s: %s", self.binary_name, self.target.host, exc)
            return True
        return False

    def stop(self) -> bool:
        """Force-stop the process. Never fails; the belief always ends up stopped."""
        self.terminate()
        return False

    def status(self) -> Tuple[ProcessState, bool]:
        """Return (state, error_flag); the flag is set when the state is UNKNOWN."""
        state = self.probe()
        return state, state is ProcessState.UNKNOWN

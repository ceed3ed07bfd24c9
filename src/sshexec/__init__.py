"""Deploy, start, probe and stop an executable on a remote Linux host over SSH."""

from sshexec.config import SSHExecConfig, create_client, get_sshexec_config
from sshexec.deploy import ArtifactDeployer
from sshexec.errors import ConnectivityError, DeployError, LaunchError, SSHExecError
from sshexec.launcher import ProcessLauncher
from sshexec.manager import RemoteProcessManager
from sshexec.monitor import ProcessMonitor
from sshexec.openssh import OpenSSHClient
from sshexec.ssh import RemoteShellClient, SSHClient
from sshexec.state import HandleStore
from sshexec.terminator import ProcessTerminator
from sshexec.types import (
    CommandResult,
    DeploymentArtifact,
    ProcessState,
    RemoteProcessHandle,
    RemoteTarget,
)

__all__ = [
    "RemoteTarget",
    "DeploymentArtifact",
    "RemoteProcessHandle",
    "CommandResult",
    "ProcessState",
    "RemoteShellClient",
    "SSHClient",
    "OpenSSHClient",
    "ArtifactDeployer",
    "ProcessLauncher",
    "ProcessMonitor",
    "ProcessTerminator",
    "RemoteProcessManager",
    "HandleStore",
    "SSHExecConfig",
    "get_sshexec_config",
    "create_client",
    "SSHExecError",
    "ConnectivityError",
    "DeployError",
    "LaunchError",
]

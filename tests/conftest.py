from unittest.mock import MagicMock

import pytest

from sshexec.ssh import RemoteShellClient
from sshexec.types import CommandResult, DeploymentArtifact, RemoteTarget


@pytest.fixture
def target():
    return RemoteTarget(user="bob", host="10.0.0.5", port=22, remote_dir="/tmp/app")


@pytest.fixture
def client():
    mock_client = MagicMock(spec=RemoteShellClient)
    mock_client.run.return_value = CommandResult(0, "")
    mock_client.run_detached.return_value = CommandResult(0, "")
    mock_client.copy_to.return_value = CommandResult(0, "")
    return mock_client


@pytest.fixture
def executable(tmp_path):
    path = tmp_path / "agent"
    path.write_bytes(b"\x7fELF-agent")
    return path


@pytest.fixture
def library_dir(tmp_path):
    lib_dir = tmp_path / "lib"
    lib_dir.mkdir()
    (lib_dir / "libfranka.so").write_bytes(b"so")
    (lib_dir / "libfranka.so.0.9").write_bytes(b"so.0.9")
    (lib_dir / "README.txt").write_text("not a library")
    return lib_dir


@pytest.fixture
def artifact(executable):
    return DeploymentArtifact(local_executable_path=str(executable))


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep SSHEXEC_* variables from the developer's shell out of the tests."""
    for name in (
        "SSHEXEC_USER",
        "SSHEXEC_HOST",
        "SSHEXEC_PORT",
        "SSHEXEC_REMOTE_DIR",
        "SSHEXEC_SSH_OPTIONS",
        "SSHEXEC_LIBRARY_DIR",
        "SSHEXEC_TRANSPORT",
        "SSHEXEC_TARGETS_FILE",
    ):
        # setenv first so teardown restores the original value, including "unset".
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)

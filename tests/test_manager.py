from unittest.mock import patch

import pytest

from sshexec.errors import ConnectivityError
from sshexec.manager import RemoteProcessManager
from sshexec.types import (
    CommandResult,
    DeploymentArtifact,
    ProcessState,
    RemoteProcessHandle,
    RemoteTarget,
)


def _manager(target, artifact, client, **kwargs):
    return RemoteProcessManager(
        target, artifact, client=client, launch_settle_seconds=0, stop_settle_seconds=0, **kwargs
    )


class TestRemoteProcessManager:
    """Execution-tool contract: start/stop/status with error flags."""

    def test_initial_handle_is_stopped(self, client, target, artifact):
        manager = _manager(target, artifact, client)

        assert manager.handle.binary_name == "agent"
        assert manager.handle.believed_running is False
        assert manager.status() == (ProcessState.STOPPED, False)
        client.run.assert_not_called()

    def test_start_success(self, client, target, artifact):
        client.run.side_effect = [
            CommandResult(0, ""),        # mkdir
            CommandResult(0, ""),        # chmod
            CommandResult(0, ""),        # rm -f app.pid
            CommandResult(0, "4821\n"),  # cat app.pid
        ]
        manager = _manager(target, artifact, client)

        assert manager.start() is False
        assert (manager.handle.pid, manager.handle.believed_running) == (4821, True)

    def test_start_deploy_failure_sets_error_flag(self, client, target, artifact):
        client.run.return_value = CommandResult(1, "mkdir: Permission denied")
        manager = _manager(target, artifact, client)

        assert manager.start() is True
        assert manager.handle.believed_running is False
        client.run_detached.assert_not_called()

    def test_start_launch_failure_sets_error_flag(self, client, target, artifact):
        client.run_detached.return_value = CommandResult(127, "nohup: failed to run command")
        manager = _manager(target, artifact, client)

        assert manager.start() is True
        assert manager.handle.believed_running is False

    def test_start_unreachable_host_sets_error_flag(self, client, target, artifact):
        client.run.side_effect = ConnectivityError("Connection refused")
        manager = _manager(target, artifact, client)

        assert manager.start() is True

    def test_start_with_degraded_pid_probes_by_name(self, client, target, artifact):
        client.run.side_effect = [
            CommandResult(0, ""),
            CommandResult(0, ""),
            CommandResult(0, ""),
            CommandResult(0, "No such file"),
            CommandResult(0, "running\n"),
        ]
        manager = _manager(target, artifact, client)

        assert manager.start() is False
        assert (manager.handle.pid, manager.handle.believed_running) == (None, True)
        assert manager.status() == (ProcessState.RUNNING, False)
        assert client.run.call_args_list[-1].args[1] == (
            "pgrep -f 'agent' >/dev/null && echo running || echo stopped"
        )

    def test_stop_is_idempotent(self, client, target, artifact):
        manager = _manager(target, artifact, client)

        assert manager.stop() is False
        assert manager.stop() is False
        assert manager.handle.believed_running is False
        assert client.run.call_count == 2

    def test_stop_never_fails_when_unreachable(self, client, target, artifact):
        client.run.side_effect = ConnectivityError("Host is down")
        handle = RemoteProcessHandle(binary_name="agent", pid=10, believed_running=True)
        manager = _manager(target, artifact, client, handle=handle)

        assert manager.stop() is False
        assert (handle.pid, handle.believed_running) == (None, False)

    def test_status_unknown_sets_error_flag_and_keeps_belief(self, client, target, artifact):
        client.run.side_effect = ConnectivityError("Connection timed out")
        handle = RemoteProcessHandle(binary_name="agent", pid=10, believed_running=True)
        manager = _manager(target, artifact, client, handle=handle)

        assert manager.status() == (ProcessState.UNKNOWN, True)
        assert (handle.pid, handle.believed_running) == (10, True)

    def test_status_reconciles_stopped_process(self, client, target, artifact):
        client.run.return_value = CommandResult(0, "stopped\n")
        handle = RemoteProcessHandle(binary_name="agent", pid=10, believed_running=True)
        manager = _manager(target, artifact, client, handle=handle)

        assert manager.status() == (ProcessState.STOPPED, False)
        assert (handle.pid, handle.believed_running) == (None, False)

    def test_rejects_handle_for_other_binary(self, client, target, artifact):
        with pytest.raises(ValueError, match="tracks"):
            _manager(target, artifact, client, handle=RemoteProcessHandle(binary_name="other"))

    def test_defaults_to_paramiko_transport(self, target, artifact):
        with patch("sshexec.manager.SSHClient") as mock_ssh_client:
            manager = RemoteProcessManager(target, artifact)
        assert manager.client is mock_ssh_client.return_value


class TestEndToEnd:
    """deploy -> launch -> probe -> terminate -> probe against a scripted remote host."""

    @patch("pathlib.Path.is_file", return_value=True)
    def test_full_lifecycle(self, mock_is_file, client):
        target = RemoteTarget(user="bob", host="10.0.0.5", port=22, remote_dir="/tmp/app")
        artifact = DeploymentArtifact(local_executable_path="/build/agent")
        replies = {
            "mkdir -p /tmp/app /tmp/app/lib": CommandResult(0, ""),
            "chmod +x /tmp/app/agent": CommandResult(0, ""),
            "rm -f /tmp/app/app.pid": CommandResult(0, ""),
            "cat /tmp/app/app.pid": CommandResult(0, "9001\n"),
            "kill -0 9001 2>/dev/null && echo running || echo stopped": CommandResult(0, "running\n"),
            "pkill -9 -f 'agent' 2>/dev/null || true": CommandResult(0, ""),
        }
        client.run.side_effect = lambda _target, command, timeout=None: replies[command]
        manager = _manager(target, artifact, client)

        assert manager.deploy() == "agent"
        client.copy_to.assert_called_once_with(target, ["/build/agent"], "/tmp/app")

        handle = manager.launch()
        assert (handle.pid, handle.believed_running) == (9001, True)

        assert manager.probe() is ProcessState.RUNNING
        assert manager.handle.pid == 9001

        manager.terminate()
        calls_after_terminate = client.run.call_count

        assert manager.probe() is ProcessState.STOPPED
        assert client.run.call_count == calls_after_terminate
        assert (manager.handle.pid, manager.handle.believed_running) == (None, False)

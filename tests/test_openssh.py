import subprocess
from unittest.mock import MagicMock, patch

import pytest

from sshexec.errors import ConnectivityError
from sshexec.openssh import OpenSSHClient

SSH_PREFIX = [
    "ssh", "-p", "22",
    "-o", "BatchMode=yes",
    "-o", "StrictHostKeyChecking=accept-new",
    "-o", "ConnectTimeout=10",
    "bob@10.0.0.5",
]


@patch("sshexec.openssh.subprocess.run")
class TestOpenSSHClient:
    """Command lines passed to the system ssh/scp binaries."""

    def test_run_builds_ssh_command_line(self, mock_run, target):
        mock_run.return_value = MagicMock(returncode=0, stdout="running\n")

        result = OpenSSHClient().run(target, "echo running")

        assert (result.exit_code, result.output) == (0, "running\n")
        args, kwargs = mock_run.call_args
        assert args[0] == SSH_PREFIX + ["echo running"]
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["timeout"] == 30.0

    def test_remote_nonzero_exit_is_returned(self, mock_run, target):
        mock_run.return_value = MagicMock(returncode=1, stdout="")

        assert OpenSSHClient().run(target, "false").exit_code == 1

    def test_exit_255_is_connectivity_error(self, mock_run, target):
        mock_run.return_value = MagicMock(returncode=255, stdout="ssh: connect to host 10.0.0.5 port 22: No route to host\n")

        with pytest.raises(ConnectivityError, match="No route to host"):
            OpenSSHClient().run(target, "true")

    def test_timeout_is_connectivity_error(self, mock_run, target):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ssh", timeout=30)

        with pytest.raises(ConnectivityError, match="timed out"):
            OpenSSHClient().run(target, "true")

    def test_missing_ssh_binary(self, mock_run, target):
        mock_run.side_effect = FileNotFoundError("ssh")

        with pytest.raises(ConnectivityError, match="not found"):
            OpenSSHClient().run(target, "true")

    def test_run_detached_uses_background_flag(self, mock_run, target):
        mock_run.return_value = MagicMock(returncode=0, stdout=None)

        result = OpenSSHClient().run_detached(target, "nohup ./agent &")

        assert result.ok
        assert result.output == ""
        args, kwargs = mock_run.call_args
        assert args[0] == ["ssh", "-f"] + SSH_PREFIX[1:] + ["nohup ./agent &"]
        assert kwargs["stdout"] == subprocess.DEVNULL
        assert kwargs["stderr"] == subprocess.DEVNULL

    def test_copy_to_stages_each_file_then_renames(self, mock_run, target):
        mock_run.return_value = MagicMock(returncode=0, stdout="")

        OpenSSHClient().copy_to(target, ["/build/lib/liba.so", "/build/lib/libb.so.1"], "/tmp/app/lib")

        commands = [c.args[0] for c in mock_run.call_args_list]
        assert commands[0] == [
            "scp", "-P", "22",
            "-o", "BatchMode=yes",
            "-o", "StrictHostKeyChecking=accept-new",
            "-o", "ConnectTimeout=10",
            "/build/lib/liba.so",
            "bob@10.0.0.5:/tmp/app/lib/.liba.so.part",
        ]
        assert commands[1][-2:] == ["/build/lib/libb.so.1", "bob@10.0.0.5:/tmp/app/lib/.libb.so.1.part"]
        assert commands[2] == SSH_PREFIX + [
            "mv -f /tmp/app/lib/.liba.so.part /tmp/app/lib/liba.so && "
            "mv -f /tmp/app/lib/.libb.so.1.part /tmp/app/lib/libb.so.1"
        ]
        assert mock_run.call_args_list[0].kwargs["timeout"] is None

    def test_scp_failure_is_returned(self, mock_run, target):
        mock_run.return_value = MagicMock(returncode=1, stdout="scp: /tmp/app/: Permission denied\n")

        result = OpenSSHClient().copy_to(target, ["/build/agent"], "/tmp/app")

        assert result.exit_code == 1
        assert mock_run.call_count == 1

    def test_copy_to_requires_files(self, mock_run, target):
        with pytest.raises(ValueError):
            OpenSSHClient().copy_to(target, [], "/tmp/app")

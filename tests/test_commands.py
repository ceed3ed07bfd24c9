from sshexec import commands
from sshexec.types import RemoteTarget


class TestCommandTemplates:
    """Remote shell command strings must stay byte-for-byte stable."""

    def setup_method(self):
        self.target = RemoteTarget(user="bob", host="10.0.0.5", remote_dir="/tmp/app")

    def test_mkdir(self):
        assert commands.mkdir_command(self.target) == "mkdir -p /tmp/app /tmp/app/lib"

    def test_chmod(self):
        assert commands.chmod_command(self.target, "agent") == "chmod +x /tmp/app/agent"

    def test_remove_pid_file(self):
        assert commands.remove_pid_file_command(self.target) == "rm -f /tmp/app/app.pid"

    def test_launch(self):
        assert commands.launch_command(self.target, "agent") == (
            "cd /tmp/app && export LD_LIBRARY_PATH=./lib:$LD_LIBRARY_PATH && "
            "nohup ./agent > /dev/null 2>&1 < /dev/null & echo $! > /tmp/app/app.pid"
        )

    def test_read_pid(self):
        assert commands.read_pid_command(self.target) == "cat /tmp/app/app.pid"

    def test_pid_alive(self):
        assert commands.pid_alive_command(9001) == "kill -0 9001 2>/dev/null && echo running || echo stopped"

    def test_name_alive(self):
        assert commands.name_alive_command("agent") == (
            "pgrep -f 'agent' >/dev/null && echo running || echo stopped"
        )

    def test_force_kill(self):
        assert commands.force_kill_command("agent") == "pkill -9 -f 'agent' 2>/dev/null || true"

    def test_staged_path_is_hidden_sibling(self):
        assert commands.staged_path("/tmp/app/", "agent") == "/tmp/app/.agent.part"

    def test_replace_files(self):
        moves = [("/tmp/app/.agent.part", "/tmp/app/agent"), ("/tmp/app/lib/.a.so.part", "/tmp/app/lib/a.so")]
        assert commands.replace_files_command(moves) == (
            "mv -f /tmp/app/.agent.part /tmp/app/agent && mv -f /tmp/app/lib/.a.so.part /tmp/app/lib/a.so"
        )

"""Remote shell command templates.

The strings produced here are what the remote login shell parses, so they are
kept byte-for-byte stable across releases.
"""
from __future__ import annotations

from typing import Iterable, Tuple

from sshexec.types import RemoteTarget

STAGED_SUFFIX = ".part"


def mkdir_command(target: RemoteTarget) -> str:
    return f"mkdir -p {target.remote_dir} {target.lib_dir}"


def staged_path(remote_dir: str, file_name: str) -> str:
    """Hidden sibling that an upload is written to before it replaces file_name."""
    return f"{remote_dir.rstrip('/')}/.{file_name}{STAGED_SUFFIX}"


def replace_files_command(moves: Iterable[Tuple[str, str]]) -> str:
    return " && ".join(f"mv -f {staged} {final}" for staged, final in moves)


def chmod_command(target: RemoteTarget, binary_name: str) -> str:
    return f"chmod +x {target.remote_dir}/{binary_name}"


def remove_pid_file_command(target: RemoteTarget) -> str:
    return f"rm -f {target.pid_file}"


def launch_command(target: RemoteTarget, binary_name: str) -> str:
    """Background the binary with ``nohup`` and record ``$!`` in the PID file."""
    return (
        f"cd {target.remote_dir} && export LD_LIBRARY_PATH=./lib:$LD_LIBRARY_PATH && "
        f"nohup ./{binary_name} > /dev/null 2>&1 < /dev/null & echo $! > {target.pid_file}"
    )


def read_pid_command(target: RemoteTarget) -> str:
    return f"cat {target.pid_file}"


def pid_alive_command(pid: int) -> str:
    return f"kill -0 {pid} 2>/dev/null && echo running || echo stopped"


# The remote shell wrapping the two name-based templates below carries the
# binary name in its own command line, so `pgrep -f` always matches at least
# that shell and `pkill -f` also kills it. A name-based probe therefore never
# reports stopped while the host answers.
def name_alive_command(binary_name: str) -> str:
    return f"pgrep -f '{binary_name}' >/dev/null && echo running || echo stopped"


def force_kill_command(binary_name: str) -> str:
    return f"pkill -9 -f '{binary_name}' 2>/dev/null || true"

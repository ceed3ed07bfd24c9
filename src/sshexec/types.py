"""Type definitions for remote process deployment and lifecycle tracking."""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Tuple

DEFAULT_SSH_OPTIONS: Tuple[str, ...] = (
    "-o", "BatchMode=yes",
    "-o", "StrictHostKeyChecking=accept-new",
    "-o", "ConnectTimeout=10",
)
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_COMMAND_TIMEOUT = 30.0
PID_FILE_NAME = "app.pid"

# Remote paths are embedded unquoted in the shell templates.
_UNSAFE_PATH_CHARS = re.compile(r"[\s'\"`$;&|<>\\]")


class ProcessState(str, Enum):
    """Observed state of the managed remote process."""

    STOPPED = "stopped"
    RUNNING = "running"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class RemoteTarget:
    """Connection details and deployment directory of a remote Linux host."""

    user: str
    host: str
    port: int = 22
    remote_dir: str = "/tmp/simwork"
    ssh_options: Tuple[str, ...] = DEFAULT_SSH_OPTIONS
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT

    def __post_init__(self) -> None:
        if not self.user or not isinstance(self.user, str):
            raise ValueError("user must be a non-empty string")
        if not self.host or not isinstance(self.host, str):
            raise ValueError("host must be a non-empty string")
        if not isinstance(self.port, int) or self.port <= 0 or self.port > 65535:
            raise ValueError("port must be an integer between 1 and 65535")
        if not self.remote_dir or not self.remote_dir.startswith("/"):
            raise ValueError(f"remote_dir must be an absolute path: {self.remote_dir!r}")
        if _UNSAFE_PATH_CHARS.search(self.remote_dir):
            raise ValueError(f"remote_dir contains unsupported characters: {self.remote_dir!r}")
        if self.command_timeout <= 0:
            raise ValueError("command_timeout must be positive")

        normalized = self.remote_dir.rstrip("/") or "/"
        object.__setattr__(self, "remote_dir", normalized)
        object.__setattr__(self, "ssh_options", tuple(self.ssh_options))

    @property
    def destination(self) -> str:
        return f"{self.user}@{self.host}"

    @property
    def lib_dir(self) -> str:
        return f"{self.remote_dir.rstrip('/')}/lib"

    @property
    def pid_file(self) -> str:
        return f"{self.remote_dir.rstrip('/')}/{PID_FILE_NAME}"

    @property
    def option_map(self) -> Dict[str, str]:
        """Return ``-o Key=Value`` options as a dict keyed by lowercased option name."""
        options: Dict[str, str] = {}
        tokens = list(self.ssh_options)
        index = 0
        while index < len(tokens):
            token = tokens[index]
            value: Optional[str] = None
            if token == "-o" and index + 1 < len(tokens):
                value = tokens[index + 1]
                index += 1
            elif token.startswith("-o") and len(token) > 2:
                value = token[2:]
            index += 1
            if value and "=" in value:
                key, _, option_value = value.partition("=")
                options[key.strip().lower()] = option_value.strip()
        return options

    @property
    def connect_timeout(self) -> float:
        raw = self.option_map.get("connecttimeout")
        if raw is None:
            return DEFAULT_CONNECT_TIMEOUT
        try:
            timeout = float(raw)
        except ValueError:
            return DEFAULT_CONNECT_TIMEOUT
        return timeout if timeout > 0 else DEFAULT_CONNECT_TIMEOUT


@dataclass(frozen=True, slots=True)
class DeploymentArtifact:
    """Local files to deploy: the executable and an optional shared-library directory."""

    local_executable_path: str
    local_library_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.local_executable_path or not isinstance(self.local_executable_path, str):
            raise ValueError("local_executable_path must be a non-empty string")

    @property
    def binary_name(self) -> str:
        return Path(self.local_executable_path).name


@dataclass(slots=True)
class RemoteProcessHandle:
    """Local belief about the managed remote process.

    A handle that is not believed running never carries a PID.
    """

    binary_name: str
    pid: Optional[int] = None
    believed_running: bool = False

    def __post_init__(self) -> None:
        if self.pid is not None:
            if not isinstance(self.pid, int) or self.pid <= 0:
                raise ValueError(f"pid must be a positive integer, got {self.pid!r}")
            if not self.believed_running:
                raise ValueError("a handle with a pid must be believed running")

    def mark_running(self, pid: Optional[int] = None) -> None:
        if pid is not None and (not isinstance(pid, int) or pid <= 0):
            raise ValueError(f"pid must be a positive integer, got {pid!r}")
        self.pid = pid
        self.believed_running = True

    def mark_stopped(self) -> None:
        self.pid = None
        self.believed_running = False

    @property
    def state(self) -> ProcessState:
        return ProcessState.RUNNING if self.believed_running else ProcessState.STOPPED


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Exit code and merged stdout/stderr of one remote command."""

    exit_code: int
    output: str = field(default="")

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def last_line(self) -> str:
        for line in reversed(self.output.splitlines()):
            stripped = line.strip()
            if stripped:
                return stripped
        return ""

"""
Configuration module for remote targets.
Loads target profiles from YAML and applies environment overrides (.env supported).
"""
import logging
import os
import shlex
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from sshexec.openssh import OpenSSHClient
from sshexec.ssh import RemoteShellClient, SSHClient
from sshexec.types import DEFAULT_COMMAND_TIMEOUT, RemoteTarget

logger = logging.getLogger(__name__)

DEFAULT_TARGETS_FILE = Path(__file__).parent / "targets.yaml"
TRANSPORTS = ("paramiko", "openssh")

BUILTIN_DEFAULTS: Dict[str, Any] = {
    "user": "servobox-usr",
    "host": "192.168.122.100",
    "port": 22,
    "remote_dir": "/tmp/simwork",
    "ssh_options": "-o BatchMode=yes -o StrictHostKeyChecking=accept-new -o ConnectTimeout=10",
    "command_timeout": DEFAULT_COMMAND_TIMEOUT,
    "transport": "paramiko",
    "library_dir": None,
}

ENV_OVERRIDES = {
    "user": "SSHEXEC_USER",
    "host": "SSHEXEC_HOST",
    "port": "SSHEXEC_PORT",
    "remote_dir": "SSHEXEC_REMOTE_DIR",
    "ssh_options": "SSHEXEC_SSH_OPTIONS",
    "library_dir": "SSHEXEC_LIBRARY_DIR",
    "transport": "SSHEXEC_TRANSPORT",
}


class SSHExecConfig:
    """Load and validate remote target configuration."""

    def __init__(self, config_path: Optional[Path] = None, env_file: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to a targets YAML file. If None, uses SSHEXEC_TARGETS_FILE
                or the packaged targets.yaml.
            env_file: Path to .env file. If None, looks for .env in the working directory.

        Raises:
            ValueError: If the targets file is malformed.
        """
        self._load_env_file(env_file)
        self.config_path = self._resolve_config_path(config_path)
        self.settings = self._load_settings(self.config_path)

    @staticmethod
    def _load_env_file(env_file: Optional[Path]) -> None:
        """Load .env file if it exists; variables already set are kept."""
        if env_file is None:
            env_file = Path.cwd() / ".env"
        if Path(env_file).exists():
            load_dotenv(env_file, override=False)

    @staticmethod
    def _resolve_config_path(config_path: Optional[Path]) -> Path:
        if config_path is not None:
            return Path(config_path).expanduser()
        env_path = os.getenv("SSHEXEC_TARGETS_FILE")
        if env_path:
            return Path(env_path).expanduser()
        return DEFAULT_TARGETS_FILE

    @staticmethod
    def _load_settings(config_path: Path) -> Dict[str, Any]:
        if not config_path.exists():
            logger.debug(f"Targets file not found at {config_path}; using built-in defaults")
            return {"defaults": {}, "targets": {}}

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Targets file {config_path} must contain a mapping")
        defaults = data.get("defaults") or {}
        targets = data.get("targets") or {}
        if not isinstance(defaults, dict) or not isinstance(targets, dict):
            raise ValueError(f"'defaults' and 'targets' in {config_path} must be mappings")
        for name, profile in targets.items():
            if not isinstance(profile, dict):
                raise ValueError(f"Target '{name}' in {config_path} must be a mapping")

        return {
            "defaults": defaults,
            "targets": targets,
            "default_target": data.get("default_target"),
        }

    def target_names(self) -> List[str]:
        return sorted(self.settings["targets"])

    def _default_target_name(self) -> Optional[str]:
        default_name = self.settings.get("default_target")
        if default_name:
            return default_name
        names = self.target_names()
        return names[0] if len(names) == 1 else None

    def profile(self, name: Optional[str] = None) -> Dict[str, Any]:
        """
        Return the merged settings for a target profile.

        Precedence: environment > profile > file defaults > built-in defaults.

        Raises:
            ValueError: If name is not a configured target.
        """
        if name is None:
            name = self._default_target_name()

        merged: Dict[str, Any] = dict(BUILTIN_DEFAULTS)
        merged.update(self.settings["defaults"])
        if name is not None:
            targets = self.settings["targets"]
            if name not in targets:
                raise ValueError(
                    f"Unknown target '{name}'. Configured targets: {', '.join(self.target_names()) or 'none'}"
                )
            merged.update(targets[name])

        for key, env_var in ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if value is not None and value.strip():
                merged[key] = value.strip()
        return merged

    def target(self, name: Optional[str] = None, **overrides: Any) -> RemoteTarget:
        """Build a RemoteTarget for a profile; non-None keyword overrides win."""
        merged = self.profile(name)
        merged.update({key: value for key, value in overrides.items() if value is not None})

        try:
            port = int(merged["port"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid port: {merged['port']!r}") from e
        try:
            command_timeout = float(merged["command_timeout"])
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid command_timeout: {merged['command_timeout']!r}") from e

        return RemoteTarget(
            user=str(merged["user"]),
            host=str(merged["host"]),
            port=port,
            remote_dir=str(merged["remote_dir"]),
            ssh_options=parse_ssh_options(merged["ssh_options"]),
            command_timeout=command_timeout,
        )

    def library_dir(self, name: Optional[str] = None) -> Optional[str]:
        value = self.profile(name).get("library_dir")
        return str(Path(value).expanduser()) if value else None

    def transport(self, name: Optional[str] = None) -> str:
        value = str(self.profile(name).get("transport") or "paramiko").lower()
        if value not in TRANSPORTS:
            raise ValueError(f"Unsupported transport '{value}'. Choose from: {', '.join(TRANSPORTS)}")
        return value


def parse_ssh_options(value: Any) -> tuple:
    """Accept either an ssh-style option string or a list of tokens."""
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(shlex.split(value))
    if isinstance(value, (list, tuple)):
        return tuple(str(token) for token in value)
    raise ValueError(f"ssh_options must be a string or a list, got {type(value).__name__}")


def create_client(transport: str = "paramiko", private_key_path: Optional[str] = None) -> RemoteShellClient:
    """Instantiate the remote-shell transport named by transport."""
    transport = (transport or "paramiko").lower()
    if transport == "paramiko":
        return SSHClient(private_key_path=private_key_path)
    if transport == "openssh":
        if private_key_path:
            logger.warning("private_key_path is ignored by the openssh transport; use -o IdentityFile=...")
        return OpenSSHClient()
    raise ValueError(f"Unsupported transport '{transport}'. Choose from: {', '.join(TRANSPORTS)}")


def get_sshexec_config(config_path: Optional[Path] = None, env_file: Optional[Path] = None) -> SSHExecConfig:
    """
    Get remote target configuration.

    Args:
        config_path: Path to targets YAML (for testing or custom setups).
        env_file: Path to .env file (for testing).

    Returns:
        SSHExecConfig instance.
    """
    return SSHExecConfig(config_path=config_path, env_file=env_file)

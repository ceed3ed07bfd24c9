"""JSON persistence of process handles between CLI invocations."""
from __future__ import annotations

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Optional

from sshexec.types import RemoteProcessHandle

logger = logging.getLogger(__name__)

DEFAULT_STATE_DIR = Path("~/.sshexec/state")


class HandleStore:
    """Stores one handle per target/binary pair as a small JSON file."""

    def __init__(self, state_dir: Optional[Path] = None) -> None:
        self.state_dir = Path(state_dir or DEFAULT_STATE_DIR).expanduser()

    def path_for(self, target_key: str, binary_name: str) -> Path:
        key = f"{target_key}__{binary_name}"
        readable = re.sub(r"[^A-Za-z0-9._-]+", "_", key)
        # The readable part is lossy; the digest keeps distinct keys apart.
        digest = hashlib.sha256(f"{target_key}\0{binary_name}".encode("utf-8")).hexdigest()[:12]
        return self.state_dir / f"{readable}-{digest}.json"

    def load(self, target_key: str, binary_name: str) -> RemoteProcessHandle:
        """Load a handle; a missing or unreadable state file yields an empty handle."""
        state_file = self.path_for(target_key, binary_name)
        if not state_file.exists():
            return RemoteProcessHandle(binary_name=binary_name)

        try:
            with open(state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            handle = RemoteProcessHandle(
                binary_name=binary_name,
                pid=data.get("pid"),
                believed_running=bool(data.get("believed_running", False)),
            )
        except (json.JSONDecodeError, IOError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable state file {state_file}: {e}")
            return RemoteProcessHandle(binary_name=binary_name)
        return handle

    def save(self, target_key: str, handle: RemoteProcessHandle) -> Path:
        state_file = self.path_for(target_key, handle.binary_name)
        state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(state_file, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "binary_name": handle.binary_name,
                    "pid": handle.pid,
                    "believed_running": handle.believed_running,
                },
                f,
                indent=2,
            )
        return state_file

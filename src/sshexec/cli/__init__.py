"""CLI for deploying, starting, probing and stopping a remote executable."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Callable, Optional

from sshexec.config import SSHExecConfig, create_client
from sshexec.errors import ConnectivityError, DeployError
from sshexec.manager import RemoteProcessManager
from sshexec.state import HandleStore
from sshexec.types import DeploymentArtifact, ProcessState

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s")
    else:
        root.setLevel(level)


def _add_target_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("executable", type=str, help="Local path to the executable to manage")
    parser.add_argument("--target", type=str, default=None, help="Target profile name from the targets file")
    parser.add_argument("--config", dest="config_path", type=str, default=None, help="Path to targets YAML (default: packaged targets.yaml)")
    parser.add_argument("--user", type=str, default=None, help="SSH user override")
    parser.add_argument("--host", type=str, default=None, help="SSH host override")
    parser.add_argument("--port", type=int, default=None, help="SSH port override")
    parser.add_argument("--remote-dir", dest="remote_dir", type=str, default=None, help="Remote deployment directory override")
    parser.add_argument("--library-dir", dest="library_dir", type=str, default=None, help="Local directory with shared libraries (*.so*)")
    parser.add_argument("--transport", type=str, default=None, choices=["paramiko", "openssh"], help="Remote shell transport")
    parser.add_argument("--ssh-key", dest="ssh_key", type=str, default=None, help="Path to SSH private key (paramiko transport)")
    parser.add_argument("--state-dir", dest="state_dir", type=str, default=None, help="Directory for persisted process state (default: ~/.sshexec/state)")


def _load_config(args: argparse.Namespace) -> SSHExecConfig:
    config_path = Path(args.config_path) if args.config_path else None
    return SSHExecConfig(config_path=config_path)


def _build_manager(args: argparse.Namespace) -> tuple[RemoteProcessManager, HandleStore, str]:
    config = _load_config(args)
    target = config.target(
        args.target,
        user=args.user,
        host=args.host,
        port=args.port,
        remote_dir=args.remote_dir,
    )
    artifact = DeploymentArtifact(
        local_executable_path=str(Path(args.executable).expanduser()),
        local_library_dir=args.library_dir or config.library_dir(args.target),
    )
    client = create_client(
        args.transport or config.transport(args.target),
        private_key_path=str(Path(args.ssh_key).expanduser()) if args.ssh_key else None,
    )

    store = HandleStore(Path(args.state_dir) if args.state_dir else None)
    target_key = f"{target.destination}_{target.port}{target.remote_dir}"
    handle = store.load(target_key, artifact.binary_name)
    manager = RemoteProcessManager(target, artifact, client=client, handle=handle)
    return manager, store, target_key


def handle_deploy(args: argparse.Namespace) -> int:
    manager, _, _ = _build_manager(args)
    try:
        binary_name = manager.deploy()
    except (DeployError, ConnectivityError) as exc:
        logger.error("Deployment failed: %s", exc)
        return 1
    print(f"Deployed {binary_name} to {manager.target.destination}:{manager.target.remote_dir}")
    return 0


def handle_start(args: argparse.Namespace) -> int:
    manager, store, target_key = _build_manager(args)
    failed = manager.start()
    store.save(target_key, manager.handle)
    if failed:
        return 1

    pid = manager.handle.pid if manager.handle.pid is not None else "unknown"
    print(f"Started {manager.binary_name} on {manager.target.host} (PID {pid})")
    return 0


def handle_stop(args: argparse.Namespace) -> int:
    manager, store, target_key = _build_manager(args)
    failed = manager.stop()
    store.save(target_key, manager.handle)
    print(f"Stopped {manager.binary_name} on {manager.target.host}")
    return 1 if failed else 0


def handle_status(args: argparse.Namespace) -> int:
    manager, store, target_key = _build_manager(args)
    state, failed = manager.status()
    store.save(target_key, manager.handle)

    print(state.value)
    if state is ProcessState.RUNNING and manager.handle.pid is not None:
        logger.info("PID %s", manager.handle.pid)
    return 1 if failed else 0


def handle_targets(args: argparse.Namespace) -> int:
    config = _load_config(args)
    names = config.target_names()
    if not names:
        print(f"No targets configured in {config.config_path}")
        return 0

    header = f"{'Target':<20}  {'Destination':<32}  {'Port':>5}  {'Remote dir':<30}"
    print(header)
    print("-" * len(header))
    for name in names:
        target = config.target(name)
        print(f"{name:<20}  {target.destination:<32}  {target.port:>5}  {target.remote_dir:<30}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Deploy and control an executable on a remote Linux target over SSH")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # deploy
    deploy_parser = subparsers.add_parser("deploy", help="Copy the executable and libraries without starting it")
    _add_target_arguments(deploy_parser)
    deploy_parser.set_defaults(handler=handle_deploy)

    # start
    start_parser = subparsers.add_parser("start", help="Deploy and start the executable detached")
    _add_target_arguments(start_parser)
    start_parser.set_defaults(handler=handle_start)

    # stop
    stop_parser = subparsers.add_parser("stop", help="Force-stop every instance of the executable")
    _add_target_arguments(stop_parser)
    stop_parser.set_defaults(handler=handle_stop)

    # status
    status_parser = subparsers.add_parser("status", help="Report whether the executable is running")
    _add_target_arguments(status_parser)
    status_parser.set_defaults(handler=handle_status)

    # targets
    targets_parser = subparsers.add_parser("targets", help="List configured target profiles")
    targets_parser.add_argument("--config", dest="config_path", type=str, default=None, help="Path to targets YAML")
    targets_parser.set_defaults(handler=handle_targets)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    handler: Callable[[argparse.Namespace], int] = args.handler
    try:
        return handler(args)
    except Exception as exc:  # pragma: no cover - CLI safety net
        logger.error("Command failed: %s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

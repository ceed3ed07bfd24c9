"""Exceptions raised by the remote process lifecycle layers."""


class SSHExecError(RuntimeError):
    """Base class for remote deployment and execution failures."""


class ConnectivityError(SSHExecError):
    """Raised when the remote host cannot be reached, authenticated, or times out."""


class DeployError(SSHExecError):
    """Raised when a fatal deployment step fails."""


class LaunchError(SSHExecError):
    """Raised when the detached launch command itself fails."""

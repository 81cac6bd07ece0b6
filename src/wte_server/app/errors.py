"""
Error taxonomy for the web terminal exec server.

Every error raised by the session-init pipeline derives from ExecServiceError
and carries the HTTP status it maps to. Conversion to a response happens in a
single exception handler registered by wte_server.app.main.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "ExecServiceError",
    "ValidationError",
    "RequestTooLargeError",
    "ContainerNotFoundError",
    "AuthorizationError",
    "MissingTokenError",
    "ResolutionError",
    "PodNotFoundError",
    "NoSuitableContainerError",
    "InternalError",
    "RemoteExecError",
    "KubeconfigError",
    "ShellDetectionError",
    "SuspendError",
]


class ExecServiceError(Exception):
    """Base class; status_code is the HTTP status reported to the caller."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# Validation: malformed request or an explicitly named container that does not exist.

class ValidationError(ExecServiceError):
    status_code = 400


class RequestTooLargeError(ValidationError):
    status_code = 413


class ContainerNotFoundError(ValidationError):
    def __init__(self, container_name: str, pod_name: str) -> None:
        super().__init__(f"container '{container_name}' not found in pod '{pod_name}'")
        self.container_name = container_name
        self.pod_name = pod_name


# Authorization

class AuthorizationError(ExecServiceError):
    status_code = 401


class MissingTokenError(AuthorizationError):
    def __init__(self, message: str = "authorization header is missing") -> None:
        super().__init__(message)


# Resolution: the target pod or container cannot be determined.

class ResolutionError(ExecServiceError):
    status_code = 400


class PodNotFoundError(ResolutionError):
    pass


class NoSuitableContainerError(ResolutionError):
    def __init__(self, pod_name: str) -> None:
        super().__init__(f"no suitable container found in pod '{pod_name}'")
        self.pod_name = pod_name


# Internal / remote execution

class InternalError(ExecServiceError):
    status_code = 500


class RemoteExecError(InternalError):
    """
    A command could not be run in a container or exited non-zero.

    stdout/stderr hold whatever output was collected before the failure.
    """

    def __init__(self, message: str, stdout: str = "", stderr: str = "", exit_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code


class KubeconfigError(InternalError):
    pass


class ShellDetectionError(InternalError):
    pass


class SuspendError(InternalError):
    """Stopping the DevWorkspace failed. Never reported to an HTTP caller."""

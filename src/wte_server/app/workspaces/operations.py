from __future__ import annotations

"""
Kubernetes operations used by the session pipeline and the idle controller.

This module provides:
- The remote exec primitive (PodExecutor protocol + websocket implementation)
- Workspace pod lookup with a pluggable tie-break for multiple running pods
- Stopping the DevWorkspace (merge patch)
- Looking up the uid of the user behind a bearer token

All functions are blocking; async callers run them with asyncio.to_thread.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol

from kubernetes.client import CoreV1Api, CustomObjectsApi
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream
from urllib3.exceptions import HTTPError as Urllib3HTTPError

from wte_server.app.errors import (
    AuthorizationError,
    InternalError,
    PodNotFoundError,
    RemoteExecError,
    SuspendError,
)
from wte_server.app.workspaces.core import (
    CURRENT_USER_NAME,
    DEVWORKSPACE_GROUP,
    DEVWORKSPACE_PLURAL,
    DEVWORKSPACE_VERSION,
    RUNNING_POD_FIELD_SELECTOR,
    USER_GROUP,
    USER_PLURAL,
    USER_VERSION,
    PodInfo,
    stop_devworkspace_patch,
)

logger = logging.getLogger(__name__)

__all__ = [
    "ExecOutput",
    "PodExecutor",
    "KubernetesPodExecutor",
    "PodSelector",
    "HostnamePodSelector",
    "get_current_workspace_pod",
    "stop_devworkspace",
    "get_current_user_uid",
]

# Shell that reads the command from stdin.
_EXEC_SHELL = ["/bin/sh"]
_POLL_INTERVAL_S = 1


# --------------------------
# Remote exec primitive
# --------------------------

@dataclass(frozen=True)
class ExecOutput:
    stdout: str
    stderr: str


class PodExecutor(Protocol):
    def exec(self, pod_name: str, container_name: str, command: str) -> ExecOutput:
        """
        Run `command` with /bin/sh in the given container and return its output.

        Raises:
            RemoteExecError if the stream cannot be opened, the command exits
            non-zero or does not finish in time. The error carries the output
            collected so far.
        """
        ...


class KubernetesPodExecutor:
    """
    PodExecutor backed by the pods/exec websocket API.

    The command is written to the shell's stdin followed by `exit`, so the
    shell terminates without needing to half-close the stream.
    """

    def __init__(self, core_v1: CoreV1Api, namespace: str, timeout_seconds: int = 30) -> None:
        self._core_v1 = core_v1
        self._namespace = namespace
        self._timeout_seconds = timeout_seconds

    def exec(self, pod_name: str, container_name: str, command: str) -> ExecOutput:
        stdout: List[str] = []
        stderr: List[str] = []

        def _output() -> ExecOutput:
            return ExecOutput(stdout="".join(stdout), stderr="".join(stderr))

        try:
            resp = stream(
                self._core_v1.connect_get_namespaced_pod_exec,
                pod_name,
                self._namespace,
                container=container_name,
                command=_EXEC_SHELL,
                stdin=True,
                stdout=True,
                stderr=True,
                tty=False,
                _preload_content=False,
                _request_timeout=self._timeout_seconds,
            )
        except Exception as exc:
            raise RemoteExecError(f"error setting up executor for command: {exc}") from exc

        deadline = time.monotonic() + self._timeout_seconds
        try:
            resp.write_stdin(command.rstrip("\n") + "\nexit\n")
            while resp.is_open():
                resp.update(timeout=_POLL_INTERVAL_S)
                if resp.peek_stdout():
                    stdout.append(resp.read_stdout())
                if resp.peek_stderr():
                    stderr.append(resp.read_stderr())
                if time.monotonic() > deadline:
                    out = _output()
                    raise RemoteExecError(
                        f"command did not finish within {self._timeout_seconds}s",
                        stdout=out.stdout,
                        stderr=out.stderr,
                    )
            if resp.peek_stdout():
                stdout.append(resp.read_stdout())
            if resp.peek_stderr():
                stderr.append(resp.read_stderr())
            try:
                exit_code = resp.returncode
            except (TypeError, KeyError, IndexError, ValueError) as exc:
                out = _output()
                raise RemoteExecError(
                    f"error executing command in container: exit status unavailable ({exc})",
                    stdout=out.stdout,
                    stderr=out.stderr,
                ) from exc
        except RemoteExecError:
            raise
        except Exception as exc:
            out = _output()
            raise RemoteExecError(
                f"error executing command in container: {exc}",
                stdout=out.stdout,
                stderr=out.stderr,
            ) from exc
        finally:
            resp.close()

        out = _output()
        if exit_code != 0:
            raise RemoteExecError(
                f"error executing command in container: command terminated with exit code {exit_code}",
                stdout=out.stdout,
                stderr=out.stderr,
                exit_code=exit_code,
            )
        return out


# --------------------------
# Workspace pod lookup
# --------------------------

# Picks one pod out of several running candidates, or None if it cannot decide.
PodSelector = Callable[[List[Any]], Optional[Any]]


class HostnamePodSelector:
    """
    Prefer the pod this server runs in, identified by its host name.

    Only meaningful when the terminal runs in a dedicated pod; with no host
    name configured nothing is selected.
    """

    def __init__(self, hostname: Optional[str]) -> None:
        self.hostname = hostname

    def __call__(self, pods: List[Any]) -> Optional[Any]:
        if not self.hostname:
            return None
        matches = [p for p in pods if p.metadata.name == self.hostname]
        return matches[0] if len(matches) == 1 else None


def get_current_workspace_pod(
    core_v1: CoreV1Api,
    namespace: str,
    pod_selector: str,
    tie_break: Optional[PodSelector] = None,
) -> PodInfo:
    """
    Find the running workspace pod.

    Raises:
        InternalError if the pods cannot be listed.
        PodNotFoundError if no pod, or no single pod, can be determined.
    """
    try:
        pod_list = core_v1.list_namespaced_pod(
            namespace,
            label_selector=pod_selector,
            field_selector=RUNNING_POD_FIELD_SELECTOR,
        )
    except ApiException as exc:
        raise InternalError(f"failed to list pods in namespace '{namespace}': {exc.reason or exc}") from exc
    except (OSError, Urllib3HTTPError) as exc:
        raise InternalError(f"failed to list pods in namespace '{namespace}': {exc}") from exc

    pods = list(pod_list.items or [])
    if not pods:
        raise PodNotFoundError(f"no workspace pods found in namespace '{namespace}'")
    if len(pods) == 1:
        return PodInfo.from_v1_pod(pods[0])

    logger.debug("Found %d running pods for selector %s; applying tie-break", len(pods), pod_selector)
    chosen = tie_break(pods) if tie_break is not None else None
    if chosen is None:
        raise PodNotFoundError(f"could not determine workspace pod among {len(pods)} running pods in namespace '{namespace}'")
    return PodInfo.from_v1_pod(chosen)


# --------------------------
# DevWorkspace and user API
# --------------------------

def stop_devworkspace(custom_api: CustomObjectsApi, namespace: str, name: str) -> None:
    """
    Set spec.started=false on the DevWorkspace, annotated as stopped by inactivity.

    Raises:
        SuspendError if the patch is rejected or the API is unreachable.
    """
    try:
        custom_api.patch_namespaced_custom_object(
            DEVWORKSPACE_GROUP,
            DEVWORKSPACE_VERSION,
            namespace,
            DEVWORKSPACE_PLURAL,
            name,
            stop_devworkspace_patch(),
            _content_type="application/merge-patch+json",
        )
    except ApiException as exc:
        raise SuspendError(f"failed to patch DevWorkspace {namespace}/{name}: {exc.reason or exc}") from exc
    except (OSError, Urllib3HTTPError) as exc:
        raise SuspendError(f"failed to patch DevWorkspace {namespace}/{name}: {exc}") from exc


def get_current_user_uid(user_api: CustomObjectsApi) -> str:
    """
    Return the uid of the OpenShift user the client's token belongs to.

    Raises:
        AuthorizationError if the user cannot be looked up.
    """
    try:
        user = user_api.get_cluster_custom_object(USER_GROUP, USER_VERSION, USER_PLURAL, CURRENT_USER_NAME)
    except ApiException as exc:
        raise AuthorizationError(f"unable to verify user: failed to get current user information: {exc.reason or exc}") from exc
    except (OSError, Urllib3HTTPError) as exc:
        raise AuthorizationError(f"unable to verify user: {exc}") from exc
    metadata = (user or {}).get("metadata") or {}
    return str(metadata.get("uid") or "")

from __future__ import annotations

"""
Core definitions shared by the workspace helpers: well-known names, the
DevWorkspace and OpenShift user resource coordinates, and the pod/container
snapshots the session pipeline works on.

This module is side-effect free and does not talk to the cluster.
"""

from dataclasses import dataclass, field
from typing import Any, List

# --------------------------
# Well-known container names
# --------------------------

# Container running this server; present only to support exec, never picked implicitly.
WEB_TERMINAL_EXEC_CONTAINER_NAME = "web-terminal-exec"
# Preferred interactive container when the pod has several candidates.
WEB_TERMINAL_TOOLING_CONTAINER_NAME = "web-terminal-tooling"

# --------------------------
# Resource coordinates
# --------------------------

DEVWORKSPACE_GROUP = "workspace.devfile.io"
DEVWORKSPACE_VERSION = "v1alpha2"
DEVWORKSPACE_PLURAL = "devworkspaces"

USER_GROUP = "user.openshift.io"
USER_VERSION = "v1"
USER_PLURAL = "users"
CURRENT_USER_NAME = "~"

STOPPED_BY_ANNOTATION = "controller.devfile.io/stopped-by"
STOPPED_BY_INACTIVITY = "inactivity"

RUNNING_POD_FIELD_SELECTOR = "status.phase=Running"


# --------------------------
# Snapshots
# --------------------------

@dataclass(frozen=True)
class ContainerInfo:
    name: str
    infrastructure_only: bool = False


@dataclass(frozen=True)
class PodInfo:
    """
    Read-only view of a workspace pod, taken once per request.
    """
    name: str
    containers: List[ContainerInfo] = field(default_factory=list)

    @classmethod
    def from_v1_pod(cls, pod: Any) -> "PodInfo":
        """
        Build a PodInfo from a kubernetes.client.V1Pod, keeping container order.
        """
        spec_containers = (pod.spec.containers if pod.spec else None) or []
        return cls(
            name=pod.metadata.name,
            containers=[
                ContainerInfo(
                    name=c.name,
                    infrastructure_only=c.name == WEB_TERMINAL_EXEC_CONTAINER_NAME,
                )
                for c in spec_containers
            ],
        )


def stop_devworkspace_patch() -> dict:
    """
    Merge patch that stops a DevWorkspace and records why.
    """
    return {
        "metadata": {
            "annotations": {
                STOPPED_BY_ANNOTATION: STOPPED_BY_INACTIVITY,
            },
        },
        "spec": {
            "started": False,
        },
    }


__all__ = [
    "WEB_TERMINAL_EXEC_CONTAINER_NAME",
    "WEB_TERMINAL_TOOLING_CONTAINER_NAME",
    "DEVWORKSPACE_GROUP",
    "DEVWORKSPACE_VERSION",
    "DEVWORKSPACE_PLURAL",
    "USER_GROUP",
    "USER_VERSION",
    "USER_PLURAL",
    "CURRENT_USER_NAME",
    "STOPPED_BY_ANNOTATION",
    "STOPPED_BY_INACTIVITY",
    "RUNNING_POD_FIELD_SELECTOR",
    "ContainerInfo",
    "PodInfo",
    "stop_devworkspace_patch",
]

"""Container selection for exec sessions."""

from __future__ import annotations

from typing import Optional

from wte_server.app.errors import ContainerNotFoundError, NoSuitableContainerError
from wte_server.app.workspaces.core import WEB_TERMINAL_TOOLING_CONTAINER_NAME, PodInfo

__all__ = ["resolve_container"]


def resolve_container(requested_name: Optional[str], pod: PodInfo) -> str:
    """
    Pick the container the terminal should exec into.

    1. A requested name must match a container exactly (case-sensitive).
    2. Otherwise infrastructure-only containers are skipped; a single
       remaining container wins.
    3. Among several, the tooling container wins, else the first one in pod order.

    Raises:
        ContainerNotFoundError if the requested container is not in the pod.
        NoSuitableContainerError if no candidate remains.
    """
    if requested_name:
        for container in pod.containers:
            if container.name == requested_name:
                return container.name
        raise ContainerNotFoundError(requested_name, pod.name)

    candidates = [c for c in pod.containers if not c.infrastructure_only]
    if not candidates:
        raise NoSuitableContainerError(pod.name)
    if len(candidates) == 1:
        return candidates[0].name
    for container in candidates:
        if container.name == WEB_TERMINAL_TOOLING_CONTAINER_NAME:
            return container.name
    return candidates[0].name

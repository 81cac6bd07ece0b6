from __future__ import annotations

"""
Session initialization pipeline for POST /exec/init.

Stages run strictly in order and the first failure aborts the pipeline:
1) token-scoped API client
2) running workspace pod
3) target container
4) kubeconfig written into the container
5) login shell detection

Nothing is retained between requests; the pod is looked up every time.
A kubeconfig written before a later stage fails is left in place and simply
overwritten by the next attempt.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from wte_server.app.config import ServerConfig
from wte_server.app.errors import InternalError
from wte_server.app.models import DEFAULT_USERNAME
from wte_server.app.workspaces.clients import ClientProvider
from wte_server.app.workspaces.containers import resolve_container
from wte_server.app.workspaces.kubeconfig import KubeconfigProvisioner
from wte_server.app.workspaces.operations import (
    HostnamePodSelector,
    PodSelector,
    get_current_workspace_pod,
)
from wte_server.app.workspaces.shell import ShellDetector

logger = logging.getLogger(__name__)

__all__ = ["SessionInitRequest", "SessionInitResult", "SessionInitializer"]


@dataclass(frozen=True)
class SessionInitRequest:
    token: str
    container_name: str = ""
    namespace: str = ""
    username: str = DEFAULT_USERNAME


@dataclass(frozen=True)
class SessionInitResult:
    pod_name: str
    container_name: str
    command: List[str] = field(default_factory=list)


class SessionInitializer:
    """
    Answers "which pod/container/command should the terminal attach to".

    pod_selector breaks ties when several running pods match the workspace
    selector; by default it picks the pod named after this host.
    """

    def __init__(
        self,
        settings: ServerConfig,
        client_provider: ClientProvider,
        pod_selector: Optional[PodSelector] = None,
    ) -> None:
        self.settings = settings
        self.client_provider = client_provider
        self.pod_selector = pod_selector or HostnamePodSelector(settings.hostname)
        self.provisioner = KubeconfigProvisioner(settings.kubernetes_server_url())

    def initialize(self, request: SessionInitRequest) -> SessionInitResult:
        namespace = self.settings.devworkspace_namespace
        try:
            core_v1 = self.client_provider.core_v1(request.token)
            executor = self.client_provider.pod_executor(request.token, namespace)
        except Exception as exc:
            logger.error("Failed to create client: %s", exc)
            raise InternalError("failed to create API client") from exc

        pod = get_current_workspace_pod(core_v1, namespace, self.settings.pod_selector, self.pod_selector)
        logger.debug("Found workspace pod %s", pod.name)

        container = resolve_container(request.container_name, pod)
        logger.debug("Found container name %s", container)

        self.provisioner.provision(
            executor,
            pod.name,
            container,
            token=request.token,
            namespace=request.namespace,
            username=request.username or DEFAULT_USERNAME,
        )

        shell = ShellDetector(executor).detect(pod.name, container)
        logger.debug("Detected shell %s in container %s", shell, container)

        return SessionInitResult(pod_name=pod.name, container_name=container, command=[shell])

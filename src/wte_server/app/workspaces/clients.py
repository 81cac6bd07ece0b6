from __future__ import annotations

"""
Kubernetes client factory.

The server talks to the cluster with two identities:
- the pod's service account, to stop the DevWorkspace on inactivity;
- the terminal user's bearer token, for everything done on the user's behalf
  (pod lookup, exec, current-user lookup).

ClientProvider is the seam tests replace with fakes.
"""

import logging
from typing import Optional, Protocol

from kubernetes import client, config

from wte_server.app.workspaces.operations import KubernetesPodExecutor, PodExecutor

logger = logging.getLogger(__name__)

__all__ = ["ClientProvider", "KubernetesClientProvider"]


class ClientProvider(Protocol):
    def core_v1(self, token: str) -> client.CoreV1Api: ...

    def user_api(self, token: str) -> client.CustomObjectsApi: ...

    def devworkspace_api(self) -> client.CustomObjectsApi: ...

    def pod_executor(self, token: str, namespace: str) -> PodExecutor: ...


class KubernetesClientProvider:
    """
    Builds clients from the in-cluster configuration.

    Token-scoped clients replace the service account credentials with the
    user's token and never refresh it from the service account token file.
    """

    def __init__(self, exec_timeout_seconds: int = 30) -> None:
        self.exec_timeout_seconds = exec_timeout_seconds

    def _api_client(self, token: Optional[str] = None) -> client.ApiClient:
        if token is not None and not token:
            raise ValueError("failed to create client -- token must not be empty")
        configuration = client.Configuration()
        config.load_incluster_config(client_configuration=configuration, try_refresh_token=token is None)
        if token is not None:
            configuration.api_key = {"authorization": f"Bearer {token}"}
            configuration.api_key_prefix = {}
        return client.ApiClient(configuration)

    def core_v1(self, token: str) -> client.CoreV1Api:
        return client.CoreV1Api(self._api_client(token))

    def user_api(self, token: str) -> client.CustomObjectsApi:
        return client.CustomObjectsApi(self._api_client(token))

    def devworkspace_api(self) -> client.CustomObjectsApi:
        return client.CustomObjectsApi(self._api_client())

    def pod_executor(self, token: str, namespace: str) -> PodExecutor:
        # Separate ApiClient: the stream helper swaps the client's request method for a websocket one.
        return KubernetesPodExecutor(
            client.CoreV1Api(self._api_client(token)),
            namespace,
            timeout_seconds=self.exec_timeout_seconds,
        )

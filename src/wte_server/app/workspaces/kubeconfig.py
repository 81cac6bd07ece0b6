from __future__ import annotations

"""
Kubeconfig generation and provisioning.

The terminal user gets a kubeconfig inside the target container so in-container
tooling (oc, kubectl, odo) talks to the cluster with the user's own token. The
document is built here, serialized with PyYAML and written by a small shell
script run through the remote exec primitive; it never touches the server's
filesystem.
"""

import logging
from typing import Any, Dict, Optional

import yaml

from wte_server.app.errors import KubeconfigError, RemoteExecError
from wte_server.app.workspaces.operations import PodExecutor

logger = logging.getLogger(__name__)

__all__ = [
    "SERVICE_ACCOUNT_CA_PATH",
    "generate_kubeconfig",
    "create_kubeconfig_text",
    "create_kubeconfig_command",
    "KubeconfigProvisioner",
]

SERVICE_ACCOUNT_CA_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"

# Uses $KUBECONFIG when the container sets it, else ~/.kube/config.
_CREATE_KUBECONFIG_SCRIPT = """set -e
if [ -z "$KUBECONFIG" ]; then
	KUBECONFIG_DIR="$HOME/.kube"
	KUBECONFIG_FILE="config"
else
	KUBECONFIG_DIR="$(dirname "$KUBECONFIG")"
	KUBECONFIG_FILE="$(basename "$KUBECONFIG")"
fi
mkdir -p "$KUBECONFIG_DIR"
cat <<'EOF' > "$KUBECONFIG_DIR/$KUBECONFIG_FILE"
{kubeconfig}
EOF
"""


def generate_kubeconfig(token: str, server: str, namespace: str, username: str) -> Dict[str, Any]:
    current_context = f"{username}-context"
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [
            {
                "name": server,
                "cluster": {
                    "server": server,
                    "certificate-authority": SERVICE_ACCOUNT_CA_PATH,
                },
            },
        ],
        "users": [
            {
                "name": username,
                "user": {"token": token},
            },
        ],
        "contexts": [
            {
                "name": current_context,
                "context": {
                    "cluster": server,
                    "namespace": namespace,
                    "user": username,
                },
            },
        ],
        "current-context": current_context,
    }


def create_kubeconfig_text(token: str, server: str, namespace: str, username: str) -> str:
    try:
        return yaml.safe_dump(
            generate_kubeconfig(token, server, namespace, username),
            default_flow_style=False,
            sort_keys=False,
        )
    except yaml.YAMLError as exc:
        raise KubeconfigError(f"failed to marshal kubeconfig: {exc}") from exc


def create_kubeconfig_command(kubeconfig_text: str) -> str:
    return _CREATE_KUBECONFIG_SCRIPT.format(kubeconfig=kubeconfig_text.rstrip("\n"))


class KubeconfigProvisioner:
    """
    Writes a user kubeconfig into a container.

    server_url is the API server address reachable from inside the pod; when
    it is unknown provisioning fails with KubeconfigError.
    """

    def __init__(self, server_url: Optional[str]) -> None:
        self.server_url = server_url

    def provision(
        self,
        executor: PodExecutor,
        pod_name: str,
        container_name: str,
        *,
        token: str,
        namespace: str,
        username: str,
    ) -> None:
        if not self.server_url:
            raise KubeconfigError("could not find $KUBERNETES_SERVICE_HOST or $KUBERNETES_SERVICE_PORT")

        text = create_kubeconfig_text(token, self.server_url, namespace, username)
        try:
            executor.exec(pod_name, container_name, create_kubeconfig_command(text))
        except RemoteExecError as exc:
            logger.error("Failed to create kubeconfig in container %s of pod %s: %s", container_name, pod_name, exc)
            logger.debug("Command stdout: %s", exc.stdout)
            logger.debug("Command stderr: %s", exc.stderr)
            raise RemoteExecError(
                f"failed to create kubeconfig in container '{container_name}'",
                stdout=exc.stdout,
                stderr=exc.stderr,
                exit_code=exc.exit_code,
            ) from exc
        logger.debug("Created kubeconfig in container %s", container_name)

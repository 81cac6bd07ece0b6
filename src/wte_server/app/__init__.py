"""
Web Terminal Exec (FastAPI) - README-lite

Overview
- This package provides the server side of a web terminal that runs inside a
  DevWorkspace. A browser terminal calls it to find out which pod/container/
  command to attach to, and reports user activity so the DevWorkspace can be
  stopped once the user goes idle.
- Session init is stateless: the pod is looked up on every request and no
  session object is retained. The Kubernetes API is the source of truth.
- Idle shutdown is a single background task per process.

Request flow for POST /exec/init
1) Authenticate the bearer token against the OpenShift user API.
2) Find the running workspace pod (label selector + status.phase=Running).
3) Pick the container to exec into.
4) Write a kubeconfig for the user into that container.
5) Detect the user's login shell in that container.

Authentication
- The token is read from X-Access-Token (a "Bearer " prefix is stripped) or
  X-Forwarded-Access-Token (used verbatim).
- The uid of the token's user must equal AUTHENTICATED_USER_ID.

Endpoints
- POST /exec/init
    Request: { container?, kubeconfig: { namespace?, username? } }
    Response: { pod, container, cmd: [shell] }
- POST /activity/tick
    Response: 204; postpones the idle shutdown.
- GET /healthz
    Unauthenticated health probe.

Environment Configuration (.env support)
- The service loads environment variables from WTE_ENV_FILE (default
  .env.server) when present; the process environment always wins.
- API_URL, AUTHENTICATED_USER_ID, DEVWORKSPACE_NAME, DEVWORKSPACE_NAMESPACE,
  DEVWORKSPACE_ID, POD_SELECTOR, IDLE_TIMEOUT, STOP_RETRY_PERIOD,
  EXEC_TIMEOUT_SECONDS, MAX_BODY_BYTES, USE_TLS, TLS_CERT_FILE, TLS_KEY_FILE,
  LOG_LEVEL. See wte_server.app.config for defaults.

Runtime Notes
- The service must run in-cluster: Kubernetes clients are built from the pod's
  service account configuration.
- IDLE_TIMEOUT=-1 disables idle shutdown entirely.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

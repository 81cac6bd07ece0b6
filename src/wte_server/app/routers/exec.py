from __future__ import annotations

"""
Exec session router.

POST /exec/init answers which pod, container and command the terminal should
attach to. Preparing the session (pod lookup, kubeconfig, shell detection) is
blocking Kubernetes I/O and runs in a worker thread.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from wte_server.app.config import ServerConfig
from wte_server.app.deps import (
    get_client_provider,
    get_settings,
    read_init_params,
    require_token,
)
from wte_server.app.models import ExecInitResponse, InitParams
from wte_server.app.workspaces.clients import ClientProvider
from wte_server.app.workspaces.session import SessionInitializer, SessionInitRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exec", tags=["exec"])


@router.post("/init", response_model=ExecInitResponse)
async def exec_init(
    token: str = Depends(require_token),
    params: InitParams = Depends(read_init_params),
    settings: ServerConfig = Depends(get_settings),
    client_provider: ClientProvider = Depends(get_client_provider),
) -> ExecInitResponse:
    request = SessionInitRequest(
        token=token,
        container_name=params.container,
        namespace=params.kubeconfig.namespace,
        username=params.effective_username,
    )
    initializer = SessionInitializer(settings, client_provider)
    result = await asyncio.to_thread(initializer.initialize, request)
    logger.info("Prepared terminal session in pod %s container %s", result.pod_name, result.container_name)
    return ExecInitResponse(pod=result.pod_name, container=result.container_name, cmd=list(result.command))

from __future__ import annotations

"""
Activity router: the terminal reports user activity to postpone idle shutdown.
"""

from fastapi import APIRouter, Depends, Response, status

from wte_server.app.deps import get_activity_manager, require_token
from wte_server.app.workspaces.lifecycle import ActivityManager

router = APIRouter(prefix="/activity", tags=["activity"], dependencies=[Depends(require_token)])


@router.post("/tick", status_code=status.HTTP_204_NO_CONTENT)
async def activity_tick(manager: ActivityManager = Depends(get_activity_manager)) -> Response:
    manager.tick()
    return Response(status_code=status.HTTP_204_NO_CONTENT)

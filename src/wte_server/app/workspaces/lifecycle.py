from __future__ import annotations

"""
Idle lifecycle management for the DevWorkspace.

The activity manager owns one background asyncio task per process. The task
keeps a single deadline: idle timeout after the last reported activity, or the
stop retry period after a failed stop attempt. When the deadline passes it
stops the DevWorkspace; on failure it logs and tries again later, on success
it exits. A shutdown request ends the task without stopping the workspace.

Activity reports (tick) go through a one-slot queue: when a report is already
pending, new ones are dropped, so any request rate costs O(1) memory.

Usage:
    manager = new_activity_manager(settings, client_provider)
    manager.start()          # inside the running event loop
    manager.tick()           # from request handlers
    await manager.shutdown() # on process shutdown
"""

import asyncio
import enum
import functools
import logging
from typing import Callable, Optional, Protocol

from wte_server.app.config import ConfigError, ServerConfig
from wte_server.app.errors import InternalError
from wte_server.app.workspaces.clients import ClientProvider
from wte_server.app.workspaces.operations import stop_devworkspace

logger = logging.getLogger(__name__)

__all__ = [
    "ManagerState",
    "ActivityManager",
    "NoOpActivityManager",
    "IdleActivityManager",
    "new_activity_manager",
]


class ManagerState(str, enum.Enum):
    disabled = "disabled"
    idle = "idle"  # created, start() not called yet
    running = "running"
    terminated = "terminated"


class ActivityManager(Protocol):
    state: ManagerState

    def start(self) -> None: ...

    def tick(self) -> None: ...

    async def shutdown(self) -> None: ...


class NoOpActivityManager:
    """Used when idling is disabled; never stops the workspace."""

    state = ManagerState.disabled

    def start(self) -> None:
        pass

    def tick(self) -> None:
        pass

    async def shutdown(self) -> None:
        pass


class IdleActivityManager:
    def __init__(
        self,
        idle_timeout: float,
        stop_retry_period: float,
        stop_workspace: Callable[[], None],
    ) -> None:
        if stop_retry_period <= 0:
            raise ConfigError("stop retry period must be greater than 0 if idling is enabled")
        self.idle_timeout = idle_timeout
        self.stop_retry_period = stop_retry_period
        self._stop_workspace = stop_workspace
        self._activity: asyncio.Queue[bool] = asyncio.Queue(maxsize=1)
        self._shutdown = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.state = ManagerState.idle

    def start(self) -> None:
        """
        Start tracking activity. Must be called once, from the running event loop.
        """
        if self._task is not None:
            raise RuntimeError("activity manager already started")
        logger.info("DevWorkspace will be stopped automatically in %ss if there is no activity", self.idle_timeout)
        self.state = ManagerState.running
        self._task = asyncio.get_running_loop().create_task(self._run(), name="wte-activity-manager")

    def tick(self) -> None:
        """
        Register user activity. Never blocks; dropped if a tick is already pending.
        """
        if self.state is not ManagerState.running:
            return
        try:
            self._activity.put_nowait(True)
        except asyncio.QueueFull:
            logger.debug("Activity manager is temporarily busy; dropping tick")

    async def shutdown(self) -> None:
        """
        Stop the background task without stopping the workspace. Waits for an
        in-flight stop attempt to return.
        """
        self._shutdown.set()
        task = self._task
        if task is not None and not task.done():
            await task

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.idle_timeout
        shutdown_waiter = loop.create_task(self._shutdown.wait())
        activity_waiter: Optional[asyncio.Task] = None
        try:
            while True:
                if activity_waiter is None:
                    activity_waiter = loop.create_task(self._activity.get())
                timeout = max(0.0, deadline - loop.time())
                done, _ = await asyncio.wait(
                    {shutdown_waiter, activity_waiter},
                    timeout=timeout,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if shutdown_waiter in done:
                    logger.info("Received shutdown request: shutting down activity manager")
                    return
                if activity_waiter in done:
                    logger.debug("Activity is reported. Resetting timer")
                    activity_waiter = None
                    deadline = loop.time() + self.idle_timeout
                    continue

                try:
                    await asyncio.to_thread(self._stop_workspace)
                except Exception as exc:
                    logger.error("Failed to stop workspace. Will retry in %ss. Cause: %s", self.stop_retry_period, exc)
                    deadline = loop.time() + self.stop_retry_period
                    continue
                logger.info("Workspace is successfully stopped by inactivity")
                return
        finally:
            for waiter in (shutdown_waiter, activity_waiter):
                if waiter is not None and not waiter.done():
                    waiter.cancel()
            self.state = ManagerState.terminated


def new_activity_manager(settings: ServerConfig, client_provider: ClientProvider) -> ActivityManager:
    """
    Build the activity manager for this process.

    Raises:
        ConfigError if idling is enabled with a non-positive stop retry period.
        InternalError if the DevWorkspace API client cannot be created.
    """
    if not settings.idling_enabled:
        logger.info("Idle timeout is disabled; DevWorkspace will not be stopped by inactivity")
        return NoOpActivityManager()
    if settings.stop_retry_period_seconds <= 0:
        raise ConfigError("stop retry period must be greater than 0 if idling is enabled")
    try:
        devworkspace_api = client_provider.devworkspace_api()
    except Exception as exc:
        raise InternalError(f"failed to get Kubernetes API client: {exc}") from exc

    stop = functools.partial(
        stop_devworkspace,
        devworkspace_api,
        settings.devworkspace_namespace,
        settings.devworkspace_name,
    )
    return IdleActivityManager(
        idle_timeout=settings.idle_timeout_seconds,
        stop_retry_period=settings.stop_retry_period_seconds,
        stop_workspace=stop,
    )

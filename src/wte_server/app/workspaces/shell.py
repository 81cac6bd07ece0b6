"""
Login shell detection for a container.

Most images export $SHELL through their entrypoint, so that is tried first.
Minimal images often don't, and fall back to the passwd entry of the current
uid.
"""

from __future__ import annotations

import logging
from typing import Optional

from wte_server.app.errors import RemoteExecError, ShellDetectionError
from wte_server.app.workspaces.operations import PodExecutor

logger = logging.getLogger(__name__)

__all__ = ["ShellDetector", "parse_shell_from_passwd"]

GET_SHELL_COMMAND = "echo $SHELL"
GET_USER_ID_COMMAND = "id -u"
READ_PASSWD_COMMAND = "cat /etc/passwd"

_PASSWD_FIELDS = 7
_UID_FIELD = 2
_SHELL_FIELD = 6


def parse_shell_from_passwd(passwd: str, user_id: str) -> Optional[str]:
    """
    Return the shell of the passwd row whose uid field equals user_id, or None.
    """
    for line in passwd.splitlines():
        fields = line.split(":")
        if len(fields) != _PASSWD_FIELDS:
            continue
        if fields[_UID_FIELD] == user_id:
            return fields[_SHELL_FIELD] or None
    return None


class ShellDetector:
    def __init__(self, executor: PodExecutor) -> None:
        self.executor = executor

    def detect(self, pod_name: str, container_name: str) -> str:
        """
        Detect the login shell in a container.

        Raises:
            ShellDetectionError if the uid or passwd database cannot be read,
            or no shell is recorded for the uid.
        """
        try:
            out = self.executor.exec(pod_name, container_name, GET_SHELL_COMMAND)
        except RemoteExecError as exc:
            logger.info("Failed to read $SHELL environment variable in container %s in pod %s: %s", container_name, pod_name, exc)
            self._log_output(exc)
        else:
            shell = out.stdout.rstrip("\n")
            logger.debug("Detected shell '%s' from $SHELL environment variable", shell)
            if shell:
                return shell

        try:
            out = self.executor.exec(pod_name, container_name, GET_USER_ID_COMMAND)
        except RemoteExecError as exc:
            logger.error("Failed to get user ID in container %s in pod %s: %s", container_name, pod_name, exc)
            self._log_output(exc)
            raise ShellDetectionError(f"failed to get user id in container {container_name} in pod {pod_name}") from exc
        user_id = out.stdout.strip()
        logger.debug("Detected user ID: '%s'", user_id)

        try:
            out = self.executor.exec(pod_name, container_name, READ_PASSWD_COMMAND)
        except RemoteExecError as exc:
            logger.error("Failed to read /etc/passwd in container %s in pod %s: %s", container_name, pod_name, exc)
            self._log_output(exc)
            raise ShellDetectionError(f"failed to read passwd database in container {container_name} in pod {pod_name}") from exc

        shell = parse_shell_from_passwd(out.stdout, user_id) if user_id else None
        if not shell:
            logger.error("No shell found for uid '%s' in /etc/passwd of container %s", user_id, container_name)
            raise ShellDetectionError(f"failed to parse shell from /etc/passwd in container {container_name}")
        logger.debug("Detected shell %s from /etc/passwd", shell)
        return shell

    @staticmethod
    def _log_output(exc: RemoteExecError) -> None:
        logger.debug("Command stdout: %s", exc.stdout)
        logger.debug("Command stderr: %s", exc.stderr)

from __future__ import annotations

"""
Bearer token extraction and user authorization.

Overview
- The OpenShift OAuth proxy in front of the server forwards the user's token
  in X-Forwarded-Access-Token. Direct callers may send X-Access-Token with a
  "Bearer " prefix instead; when both are present X-Access-Token wins.
- A token is authorized when the uid of the user it belongs to equals the
  configured AUTHENTICATED_USER_ID. Only the DevWorkspace owner may open a
  terminal or keep the workspace alive.

Usage
    token = extract_token(request.headers)
    uid = authenticate(token, settings, client_provider)
"""

import logging
from typing import Mapping, Optional

from wte_server.app.config import ServerConfig
from wte_server.app.errors import AuthorizationError, MissingTokenError
from wte_server.app.workspaces.clients import ClientProvider
from wte_server.app.workspaces.operations import get_current_user_uid

logger = logging.getLogger(__name__)

__all__ = [
    "ACCESS_TOKEN_HEADER",
    "FORWARDED_ACCESS_TOKEN_HEADER",
    "BEARER_PREFIX",
    "extract_token",
    "authenticate",
]

ACCESS_TOKEN_HEADER = "X-Access-Token"
FORWARDED_ACCESS_TOKEN_HEADER = "X-Forwarded-Access-Token"
BEARER_PREFIX = "Bearer "


def extract_token(headers: Mapping[str, str]) -> str:
    """
    Return the bearer token carried by the request headers.

    Header lookup is case-insensitive when given Starlette's Headers.

    Raises:
        MissingTokenError if neither header yields a non-empty token.
    """
    token: Optional[str] = headers.get(ACCESS_TOKEN_HEADER)
    if token:
        if token.startswith(BEARER_PREFIX):
            token = token[len(BEARER_PREFIX):]
        token = token.strip()
        if token:
            return token

    # An X-Access-Token that is empty after trimming counts as absent.
    forwarded = headers.get(FORWARDED_ACCESS_TOKEN_HEADER)
    if forwarded:
        return forwarded
    raise MissingTokenError()


def authenticate(token: str, settings: ServerConfig, client_provider: ClientProvider) -> str:
    """
    Verify the token belongs to the workspace owner and return its uid.

    Blocking; call through asyncio.to_thread from request handlers.

    Raises:
        AuthorizationError if the user cannot be looked up or is not the owner.
    """
    try:
        user_api = client_provider.user_api(token)
    except Exception as exc:
        logger.error("Failed to create user API client: %s", exc)
        raise AuthorizationError("unable to verify user: failed to create API client") from exc

    uid = get_current_user_uid(user_api)
    if not uid or uid != settings.authenticated_user_id:
        logger.debug("Rejected request from user uid '%s'", uid)
        raise AuthorizationError("the current user is not authorized to access this web terminal")
    logger.debug("Authorized user uid '%s'", uid)
    return uid

from __future__ import annotations

"""
Shared FastAPI dependencies for the web terminal exec server.

Contents:
- get_settings(), get_client_provider(), get_activity_manager(): accessors for
  the objects create_app() stores on app.state.
- require_token(): bearer token authentication dependency for routes.
- read_init_params(): bounded parsing of the POST /exec/init body.

Project policy notes:
- No lazy imports.
- No try/except guards around imports; failures should be explicit.
"""

import asyncio
from typing import Optional

from fastapi import Depends, Request, Security
from fastapi.security.api_key import APIKeyHeader
from pydantic import ValidationError as PydanticValidationError

from wte_server.app.config import ServerConfig
from wte_server.app.errors import RequestTooLargeError, ValidationError
from wte_server.app.models import InitParams
from wte_server.app.security import (
    ACCESS_TOKEN_HEADER,
    FORWARDED_ACCESS_TOKEN_HEADER,
    authenticate,
    extract_token,
)
from wte_server.app.workspaces.clients import ClientProvider
from wte_server.app.workspaces.lifecycle import ActivityManager


# -------------
# App state accessors
# -------------

def get_settings(request: Request) -> ServerConfig:
    return request.app.state.settings


def get_client_provider(request: Request) -> ClientProvider:
    return request.app.state.client_provider


def get_activity_manager(request: Request) -> ActivityManager:
    return request.app.state.activity_manager


# -------------------
# Token auth (FastAPI)
# -------------------

# Declared for the OpenAPI schema; extract_token() applies the precedence rules.
access_token_header = APIKeyHeader(name=ACCESS_TOKEN_HEADER, auto_error=False)
forwarded_access_token_header = APIKeyHeader(name=FORWARDED_ACCESS_TOKEN_HEADER, auto_error=False)


async def require_token(
    request: Request,
    _access_token: Optional[str] = Security(access_token_header),
    _forwarded_token: Optional[str] = Security(forwarded_access_token_header),
    settings: ServerConfig = Depends(get_settings),
    client_provider: ClientProvider = Depends(get_client_provider),
) -> str:
    """
    Authenticate the caller and return its bearer token.

    Raises MissingTokenError / AuthorizationError (401), rendered by the app's
    exception handler.
    """
    token = extract_token(request.headers)
    await asyncio.to_thread(authenticate, token, settings, client_provider)
    return token


# -------------------
# Request body
# -------------------

async def read_init_params(
    request: Request,
    settings: ServerConfig = Depends(get_settings),
) -> InitParams:
    """
    Parse the /exec/init body. An empty body means all defaults.

    Raises:
        RequestTooLargeError if the body exceeds MAX_BODY_BYTES.
        ValidationError if the body is not a valid request object.
    """
    limit = settings.max_body_bytes
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise RequestTooLargeError("Request body too large")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise RequestTooLargeError("Request body too large")

    if not body.strip():
        return InitParams()
    try:
        return InitParams.model_validate_json(bytes(body))
    except PydanticValidationError as exc:
        raise ValidationError(f"failed to parse request body: {_first_error(exc)}") from exc


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    err = errors[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
    msg = err.get("msg", "invalid value")
    return f"{loc}: {msg}" if loc else msg


__all__ = [
    "get_settings",
    "get_client_provider",
    "get_activity_manager",
    "require_token",
    "read_init_params",
]

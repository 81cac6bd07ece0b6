from __future__ import annotations

"""
Pydantic models for the web terminal exec API.

These models define the API contracts for:
- POST /exec/init request and response
- Health probe response

Notes:
- Every request field is optional; an empty body is a valid init request.
- Unknown fields are ignored so older terminal clients keep working.
"""

from typing import List

from pydantic import BaseModel, Field, field_validator

DEFAULT_USERNAME = "Developer"


class KubeConfigParams(BaseModel):
    """
    Parameters for the kubeconfig generated inside the container.
    """
    namespace: str = Field(default="", description="Namespace set in the kubeconfig context (may be empty).")
    username: str = Field(default="", description="User name in the kubeconfig; defaults to 'Developer'.")

    @field_validator("namespace", "username", mode="before")
    def v_strip(cls, v):
        if v is None:
            return ""
        if not isinstance(v, str):
            raise ValueError("must be a string")
        return v.strip()


class InitParams(BaseModel):
    """
    Request model for POST /exec/init.
    """
    container: str = Field(default="", description="Container to exec into; picked automatically when empty.")
    kubeconfig: KubeConfigParams = Field(default_factory=KubeConfigParams)

    @field_validator("container", mode="before")
    def v_container(cls, v):
        if v is None:
            return ""
        if not isinstance(v, str):
            raise ValueError("container must be a string")
        return v

    @property
    def effective_username(self) -> str:
        return self.kubeconfig.username or DEFAULT_USERNAME


class ExecInitResponse(BaseModel):
    pod: str
    container: str
    cmd: List[str]


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str


__all__ = [
    "DEFAULT_USERNAME",
    "KubeConfigParams",
    "InitParams",
    "ExecInitResponse",
    "HealthResponse",
]

"""Pydantic response models for the kubegraph REST API."""

from __future__ import annotations

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error envelope returned for every non-2xx response."""

    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    collaborator_url: str = ""
    placeholder_enabled: bool = True

# wealthdesk/schemas/errors.py
"""
Error response bodies.

Every handler in main.py answers with one of these two shapes, so the
dashboard only has to parse `error` / `message` / `details`.
"""

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Body of every 4xx/5xx produced from a service-layer exception."""

    error: str = Field(
        ...,
        description="Exception class name (e.g. 'OversellError', 'ProfileNotFoundError')"
    )
    message: str = Field(
        ...,
        description="Message safe to show in the dashboard"
    )
    details: dict | None = Field(
        default=None,
        description="Structured context such as the ticker and quantities of an oversell"
    )


class ValidationErrorDetail(BaseModel):
    """Body of a 422: one entry per invalid request field."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict] = Field(
        ...,
        description="Entries of {field, message, type}"
    )

"""Error response schemas for consistent API error formatting."""

from typing import Any

from pydantic import BaseModel, Field


class ErrorBody(BaseModel):
    code: str
    message: str
    message_localized: str | None = Field(default=None, alias="messageLocalized")
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error envelope.

    All API errors return this format; ``messageLocalized`` carries the
    Arabic text shown to end users.
    """

    error: ErrorBody

"""
App-wide constants for route configuration and email templates.

Single source of truth for route prefixes, tags and the OpenAPI error
responses shared by every router.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, select_autoescape

from gatekeeper.models.error import ErrorResponse


@dataclass(frozen=True)
class RouteConfig:
    """Configuration for a route group."""

    prefix: str
    tag: str


class Routes:
    """Route configurations for all API endpoints."""

    AUTH = RouteConfig(prefix="/auth", tag="auth")
    USER = RouteConfig(prefix="/users", tag="users")
    ADMIN = RouteConfig(prefix="/admin", tag="admin")
    HEALTH = RouteConfig(prefix="/health", tag="health")


def _error(description: str) -> dict[str, Any]:
    return {"description": description, "model": ErrorResponse}


class CommonResponses:
    """Standard HTTP error response definitions for OpenAPI documentation."""

    BAD_REQUEST: dict[int, dict[str, Any]] = {400: _error("Invalid request data")}
    UNAUTHORIZED: dict[int, dict[str, Any]] = {
        401: _error("Missing, invalid or expired credentials")
    }
    FORBIDDEN: dict[int, dict[str, Any]] = {
        403: _error("Account not active or lacks role, permission or ownership")
    }
    NOT_FOUND: dict[int, dict[str, Any]] = {404: _error("Resource not found")}
    CONFLICT: dict[int, dict[str, Any]] = {409: _error("Resource already exists")}
    RATE_LIMITED: dict[int, dict[str, Any]] = {
        429: _error("Too many requests; see Retry-After")
    }


EmailTemplatesDir = Path(__file__).parent.parent / "templates" / "emails"

JinjaEmailTemplatesEnv = Environment(
    loader=FileSystemLoader(str(EmailTemplatesDir)),
    autoescape=select_autoescape(["html", "xml"]),
)

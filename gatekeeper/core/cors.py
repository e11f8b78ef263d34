from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gatekeeper.core.settings import get_settings


def add_cors_middleware(app: FastAPI) -> None:
    """Allow configured origins to send auth cookies and read throttling and tracing headers."""
    settings = get_settings()
    origins = settings.cors_origins_list

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers refuse credentialed responses for a wildcard origin.
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept-Language"],
        expose_headers=["Retry-After", "X-Request-ID"],
    )

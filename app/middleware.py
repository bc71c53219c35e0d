"""
Middleware configuration for the FastAPI app.
"""

from __future__ import annotations

from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware

import core.config as config


def configure_middleware(app) -> None:
    """Configure host allowlist and CORS middleware for the FastAPI app."""
    # Optional host allowlist for production deployments
    if config.TRUSTED_HOSTS:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=list(config.TRUSTED_HOSTS),
        )

    if config.CORS_ALLOWED_ORIGINS:
        allow_origins = list(config.CORS_ALLOWED_ORIGINS)
    else:
        allow_origins = [config.FRONTEND_URL, "http://localhost:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

"""
Shared configuration for the homestash core.
"""

from __future__ import annotations

import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("homestash")


def _get_bool(env_name: str, default: bool) -> bool:
    value = os.environ.get(env_name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(env_name: str, default: int) -> int:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(env_name: str, default: float) -> float:
    value = os.environ.get(env_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_list(env_name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    value = os.environ.get(env_name)
    if value is None or not value.strip():
        return default
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


# Database settings
DB_BACKEND = os.environ.get("DB_BACKEND", "postgres").strip().lower()
SQLITE_PATH = os.environ.get("SQLITE_PATH", "/data/homestash.db")
DATABASE_URL = os.environ.get("DATABASE_URL")

# Database initialization controls
AUTO_MIGRATE_ON_STARTUP = _get_bool("AUTO_MIGRATE_ON_STARTUP", True)
DB_STATEMENT_TIMEOUT_MS = _get_int("DB_STATEMENT_TIMEOUT_MS", 5000)
ENABLE_RLS = _get_bool("HOMESTASH_ENABLE_RLS", True)

# Tenancy: the identity gateway passes the verified tenant id in this header
TENANT_HEADER = os.environ.get("TENANT_HEADER", "X-Tenant-Id").strip()
MAX_TENANT_ID_LENGTH = 255

# Field limits (mirrored by schema check constraints)
MAX_NAME_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 10000
MAX_STORAGE_PATH_LENGTH = 1024
MAX_IMAGES_PER_PARENT = 5

# Listing and dashboard
RECENT_ITEMS_LIMIT = _get_int("HOMESTASH_RECENT_ITEMS_LIMIT", 5)
DEFAULT_PAGE_SIZE = _get_int("HOMESTASH_DEFAULT_PAGE_SIZE", 20)
MAX_PAGE_SIZE = _get_int("HOMESTASH_MAX_PAGE_SIZE", 100)
STATS_PARALLEL_QUERIES = _get_bool("STATS_PARALLEL_QUERIES", True)

# HTTP surface
SERVER_HOST = os.environ.get("HOST", "0.0.0.0")
SERVER_PORT = _get_int("PORT", 8080)
TRUSTED_HOSTS = tuple(host.strip() for host in os.environ.get("TRUSTED_HOSTS", "").split(",") if host.strip())
CORS_ALLOWED_ORIGINS = tuple(
    origin.strip() for origin in os.environ.get("CORS_ALLOWED_ORIGINS", "").split(",") if origin.strip()
)
FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:3000")

# Blob storage collaborator
BLOB_STORAGE_URL = os.environ.get("BLOB_STORAGE_URL", "")
BLOB_STORAGE_API_KEY = os.environ.get("BLOB_STORAGE_API_KEY")
BLOB_STORAGE_TIMEOUT_SECONDS = _get_float("BLOB_STORAGE_TIMEOUT_SECONDS", 30.0)
BLOB_MAX_UPLOAD_BYTES = _get_int("BLOB_MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
BLOB_ALLOWED_CONTENT_TYPES = _get_list(
    "BLOB_ALLOWED_CONTENT_TYPES",
    ("image/jpeg", "image/png", "image/webp"),
)


def validate_and_prepare_config() -> None:
    """Validate configuration and apply derived settings at startup."""
    global DATABASE_URL

    errors = []
    if DB_BACKEND not in {"postgres", "sqlite"}:
        errors.append("DB_BACKEND must be 'postgres' or 'sqlite'")

    if not DATABASE_URL:
        if DB_BACKEND == "sqlite":
            if not SQLITE_PATH:
                errors.append("SQLITE_PATH environment variable is required for sqlite")
            else:
                DATABASE_URL = f"sqlite:///{SQLITE_PATH}"
        else:
            errors.append("DATABASE_URL environment variable is required")
    else:
        url_lower = DATABASE_URL.lower()
        is_sqlite_url = url_lower.startswith("sqlite")
        if DB_BACKEND == "sqlite" and not is_sqlite_url:
            errors.append("DATABASE_URL must be a sqlite URL when DB_BACKEND=sqlite")
        if DB_BACKEND == "postgres" and is_sqlite_url:
            errors.append("DATABASE_URL must be a postgres URL when DB_BACKEND=postgres")

    if DB_STATEMENT_TIMEOUT_MS < 0:
        errors.append("DB_STATEMENT_TIMEOUT_MS must be >= 0")
    if DEFAULT_PAGE_SIZE <= 0 or DEFAULT_PAGE_SIZE > MAX_PAGE_SIZE:
        errors.append("HOMESTASH_DEFAULT_PAGE_SIZE must be between 1 and HOMESTASH_MAX_PAGE_SIZE")
    if RECENT_ITEMS_LIMIT <= 0:
        errors.append("HOMESTASH_RECENT_ITEMS_LIMIT must be positive")
    if not TENANT_HEADER:
        errors.append("TENANT_HEADER must not be empty")

    if not BLOB_STORAGE_URL:
        logger.warning("BLOB_STORAGE_URL is not configured; image uploads are disabled.")

    if errors:
        raise RuntimeError("Configuration invalid: " + "; ".join(errors))

"""
Client for the external blob storage service.

The service persists image bytes and derives thumbnails; this side only
keeps the opaque relative path it returns. Metadata is written after the
upload is confirmed, and an upload whose metadata cannot be written is
deleted again so no orphan survives on either side.
"""

from __future__ import annotations

from typing import Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

import core.config as config
from core.context import RequestContext, resolve_tenant_id
from core.errors import BlobStorageError, InventoryIssue, ValidationIssue
from core.models import ParentKind
from core.services.images import attach_image, check_capacity
from core.services.inventory_shared import _parse_parent_kind, service_tool, logger
from core.validators import validate_id, validate_storage_path

BLOB_UNAVAILABLE_MESSAGE = "Image storage is unavailable"


def upload_too_large() -> ValidationIssue:
    limit_mb = config.BLOB_MAX_UPLOAD_BYTES / (1024 * 1024)
    return ValidationIssue(
        f"file exceeds the {limit_mb:g} MB upload limit",
        field="file",
        error_type="max_length",
    )


def validate_upload(content: bytes, content_type: Optional[str]) -> None:
    """Pre-flight checks run before any bytes leave the process."""
    if not isinstance(content, (bytes, bytearray)) or not content:
        raise ValidationIssue("file must not be empty", field="file", error_type="required")
    if len(content) > config.BLOB_MAX_UPLOAD_BYTES:
        raise upload_too_large()
    normalized = (content_type or "").split(";", 1)[0].strip().lower()
    if normalized not in config.BLOB_ALLOWED_CONTENT_TYPES:
        allowed = ", ".join(config.BLOB_ALLOWED_CONTENT_TYPES)
        raise ValidationIssue(
            f"content type must be one of: {allowed}",
            field="content_type",
            error_type="invalid_value",
        )


class BlobStorageClient:
    """Thin synchronous wrapper around the blob service HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        base_url = base_url if base_url is not None else config.BLOB_STORAGE_URL
        if not base_url:
            raise BlobStorageError("BLOB_STORAGE_URL is not configured")
        api_key = api_key if api_key is not None else config.BLOB_STORAGE_API_KEY
        headers = {}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout if timeout is not None else config.BLOB_STORAGE_TIMEOUT_SECONDS),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "BlobStorageClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def upload(
        self,
        owner_id: str,
        parent_kind: ParentKind,
        parent_id: str,
        filename: str,
        content: bytes,
        content_type: str,
    ) -> str:
        """Store the bytes and return the relative storage path."""
        validate_upload(content, content_type)
        try:
            response = self._client.post(
                "/objects",
                data={
                    "owner_id": owner_id,
                    "parent_kind": parent_kind.value,
                    "parent_id": parent_id,
                },
                files={"file": (filename or "upload", bytes(content), content_type)},
            )
        except httpx.RequestError as exc:
            raise BlobStorageError(f"upload failed: {exc}") from exc
        if response.status_code >= 400:
            raise BlobStorageError(f"upload rejected with status {response.status_code}")
        try:
            path = response.json()["path"]
        except (ValueError, KeyError, TypeError) as exc:
            raise BlobStorageError("upload response did not include a path") from exc
        try:
            return validate_storage_path(path)
        except ValidationIssue as exc:
            raise BlobStorageError(f"upload returned an unusable path: {exc}") from exc

    def delete(self, storage_path: str) -> None:
        try:
            response = self._client.delete(f"/objects/{storage_path}")
        except httpx.RequestError as exc:
            raise BlobStorageError(f"delete failed: {exc}") from exc
        # Already gone is fine
        if response.status_code >= 400 and response.status_code != 404:
            raise BlobStorageError(f"delete rejected with status {response.status_code}")

    def delete_many(self, storage_paths) -> list[str]:
        """Best-effort purge; returns the paths that could not be removed."""
        failed = []
        for path in storage_paths:
            try:
                self.delete(path)
            except BlobStorageError as exc:
                logger.warning("blob_delete_failed", extra={"storage_path": path, "detail": str(exc)})
                failed.append(path)
        return failed


blob_client: Optional[BlobStorageClient] = None


def get_blob_client() -> BlobStorageClient:
    global blob_client
    if blob_client is None:
        blob_client = BlobStorageClient()
        logger.info("Blob storage client initialized")
    return blob_client


def cleanup_blob_client() -> None:
    global blob_client
    if blob_client is not None:
        blob_client.close()
        blob_client = None
        logger.info("Blob storage client closed")


def _blob_unavailable(tool_name: str) -> dict:
    return {
        "status": "error",
        "error_type": "storage_unavailable",
        "tool": tool_name,
        "message": BLOB_UNAVAILABLE_MESSAGE,
    }


@service_tool
def image_upload_and_attach(
    parent_kind: str,
    parent_id: str,
    filename: str,
    content: bytes,
    content_type: str,
    context: Optional[RequestContext] = None,
    client: Optional[BlobStorageClient] = None,
) -> dict:
    """Upload bytes to blob storage, then attach the returned path.

    Parent and capacity are checked before the upload so a doomed request
    never transfers bytes. If the attach still fails the blob is deleted.
    """
    kind = _parse_parent_kind(parent_kind)
    parent_id = validate_id(parent_id, "parent_id")
    validate_upload(content, content_type)
    tenant_id = resolve_tenant_id(context)
    check_capacity(tenant_id, kind, parent_id)

    try:
        client = client or get_blob_client()
        storage_path = client.upload(tenant_id, kind, parent_id, filename, content, content_type)
    except BlobStorageError as exc:
        logger.warning(
            "blob_upload_failed",
            extra={"tenant_id": tenant_id, "parent_kind": kind.value, "parent_id": parent_id, "detail": str(exc)},
        )
        return _blob_unavailable("image_upload_and_attach")

    try:
        image = attach_image(tenant_id, kind, parent_id, storage_path)
    except (InventoryIssue, SQLAlchemyError):
        try:
            client.delete(storage_path)
        except BlobStorageError as cleanup_exc:
            logger.error(
                "blob_compensation_failed",
                extra={"tenant_id": tenant_id, "storage_path": storage_path, "detail": str(cleanup_exc)},
            )
        else:
            logger.info("blob_compensated", extra={"tenant_id": tenant_id, "storage_path": storage_path})
        raise

    logger.info(
        "image_uploaded",
        extra={"tenant_id": tenant_id, "parent_kind": kind.value, "image_id": image["id"]},
    )
    return {"status": "created", "image": image}

"""
Shared helpers and configuration for inventory services.
"""

from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import Callable, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import core.config as config
from core.context import resolve_tenant_context
from core.errors import (
    ConflictIssue,
    InvalidReferenceIssue,
    InventoryIssue,
    NotFoundIssue,
    ValidationIssue,
)
from core.models import (
    CATEGORY_NAME_INDEX,
    IMAGE_SLOT_INDEX,
    Image,
    ParentKind,
    Profile,
)

# =============================================================================
# Configuration
# =============================================================================

logger = config.logger

MAX_NAME_LENGTH = config.MAX_NAME_LENGTH
MAX_DESCRIPTION_LENGTH = config.MAX_DESCRIPTION_LENGTH
MAX_STORAGE_PATH_LENGTH = config.MAX_STORAGE_PATH_LENGTH
MAX_IMAGES_PER_PARENT = config.MAX_IMAGES_PER_PARENT
RECENT_ITEMS_LIMIT = config.RECENT_ITEMS_LIMIT

SERVER_ERROR_MESSAGE = "An unexpected error occurred"


# =============================================================================
# Result payloads
# =============================================================================

def _tool_error_payload(tool_name: str, exc: InventoryIssue) -> dict:
    payload = {
        "status": "error",
        "error_type": exc.error_type,
        "tool": tool_name,
        "message": str(exc),
    }
    payload.update(exc.payload())
    return payload


def _server_error_payload(tool_name: str) -> dict:
    return {
        "status": "error",
        "error_type": "server_error",
        "tool": tool_name,
        "message": SERVER_ERROR_MESSAGE,
    }


def _operation_context(tool_name: str, kwargs: dict) -> dict:
    tenant_ctx = resolve_tenant_context(kwargs.get("context"))
    entity_ids = {
        key: str(value)
        for key, value in kwargs.items()
        if key.endswith("_id") and value is not None
    }
    return {
        "tool": tool_name,
        "tenant_id": tenant_ctx.tenant_id if tenant_ctx else None,
        "entity_kind": tool_name.split("_", 1)[0],
        "entity_ids": entity_ids,
    }


def _log_issue(tool_name: str, exc: InventoryIssue) -> None:
    payload = {
        "tool": tool_name,
        "error_type": exc.error_type,
        "detail": str(exc),
    }
    if isinstance(exc, ValidationIssue):
        payload["field"] = exc.field
    elif isinstance(exc, ConflictIssue):
        payload["reason"] = exc.reason
    logger.info("tool_issue", extra=payload)


def _tool_error_handler(fn: Callable[..., dict]) -> Callable[..., dict]:
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except InventoryIssue as exc:
            _log_issue(fn.__name__, exc)
            return _tool_error_payload(fn.__name__, exc)
        except SQLAlchemyError:
            logger.exception("tool_storage_fault", extra=_operation_context(fn.__name__, kwargs))
            return _server_error_payload(fn.__name__)
    return wrapper


def service_tool(fn: Callable[..., dict]) -> Callable[..., dict]:
    return _tool_error_handler(fn)


# =============================================================================
# Helper Functions
# =============================================================================

def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_parent_kind(value) -> ParentKind:
    if isinstance(value, ParentKind):
        return value
    try:
        return ParentKind(value)
    except ValueError as exc:
        raise ValidationIssue(
            "parent_kind must be 'item' or 'container'",
            field="parent_kind",
            error_type="invalid_value",
        ) from exc


def _ensure_profile(db, tenant_id: str) -> Profile:
    """Create the tenant's profile row on first access."""
    profile = db.get(Profile, tenant_id)
    if profile is not None:
        return profile
    try:
        with db.begin_nested():
            profile = Profile(id=tenant_id)
            db.add(profile)
    except IntegrityError:
        # Another request created it first
        profile = db.get(Profile, tenant_id)
        if profile is None:
            raise
    else:
        logger.info("profile_created", extra={"tenant_id": tenant_id})
    return profile


def _get_owned(
    db,
    model,
    tenant_id: str,
    entity_id,
    entity: str,
    *,
    for_update: bool = False,
    for_share: bool = False,
):
    """Load a row by id within the tenant, or raise NotFoundIssue."""
    if not isinstance(entity_id, str) or not entity_id:
        raise NotFoundIssue(entity, entity_id)
    query = (
        db.query(model)
        .filter(model.owner_id == tenant_id)
        .filter(model.id == entity_id)
    )
    if for_update:
        query = query.with_for_update()
    elif for_share:
        query = query.with_for_update(read=True)
    row = query.first()
    if row is None:
        raise NotFoundIssue(entity, entity_id)
    return row


def _require_reference(db, model, tenant_id: str, entity_id, field: str, entity: str):
    """Resolve a reference field within the tenant, or raise InvalidReferenceIssue.

    The row is share-locked so a concurrent delete waits for this transaction.
    """
    try:
        return _get_owned(db, model, tenant_id, entity_id, entity, for_share=True)
    except NotFoundIssue as exc:
        raise InvalidReferenceIssue(field, entity, entity_id) from exc


def _apply_sort(query, model, sort: str, order: str):
    column = getattr(model, sort)
    if sort == "name":
        column = func.lower(column)
    if order == "desc":
        return query.order_by(column.desc(), model.id.desc())
    return query.order_by(column.asc(), model.id.asc())


def _paginate(query, page: int, limit: int) -> tuple[list, dict]:
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    total_pages = (total + limit - 1) // limit if total else 0
    return rows, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
    }


def _integrity_reason(exc: IntegrityError) -> Optional[str]:
    """Classify a store constraint violation into a conflict reason."""
    message = str(exc.orig) if exc.orig is not None else str(exc)
    lowered = message.lower()
    if CATEGORY_NAME_INDEX in message or "categories.name_key" in lowered:
        return "duplicate_name"
    if IMAGE_SLOT_INDEX in message or "images.display_order" in lowered:
        return "slot_taken"
    if "ck_images_display_order_range" in message:
        return "image_limit_exceeded"
    if "foreign key" in lowered:
        return "restricted"
    return None


# =============================================================================
# Attachment lookups shared by listings and the dashboard
# =============================================================================

def _thumbnail_paths(db, tenant_id: str, parent_kind: ParentKind, parent_ids: Iterable[str]) -> dict:
    ids = list(set(parent_ids))
    if not ids:
        return {}
    rows = (
        db.query(Image.parent_id, Image.storage_path)
        .filter(Image.owner_id == tenant_id)
        .filter(Image.parent_kind == parent_kind)
        .filter(Image.parent_id.in_(ids))
        .filter(Image.display_order == 1)
        .all()
    )
    return {parent_id: storage_path for parent_id, storage_path in rows}


def _image_counts(db, tenant_id: str, parent_kind: ParentKind, parent_ids: Iterable[str]) -> dict:
    ids = list(set(parent_ids))
    if not ids:
        return {}
    rows = (
        db.query(Image.parent_id, func.count(Image.id))
        .filter(Image.owner_id == tenant_id)
        .filter(Image.parent_kind == parent_kind)
        .filter(Image.parent_id.in_(ids))
        .group_by(Image.parent_id)
        .all()
    )
    return {parent_id: count for parent_id, count in rows}


def _images_for(db, tenant_id: str, parent_kind: ParentKind, parent_id: str) -> list[Image]:
    return (
        db.query(Image)
        .filter(Image.owner_id == tenant_id)
        .filter(Image.parent_kind == parent_kind)
        .filter(Image.parent_id == parent_id)
        .order_by(Image.display_order.asc())
        .all()
    )


def _image_payload(image: Image) -> dict:
    return {
        "id": image.id,
        "parent_kind": image.parent_kind.value,
        "parent_id": image.parent_id,
        "storage_path": image.storage_path,
        "display_order": image.display_order,
        "created_at": _iso(image.created_at),
        "updated_at": _iso(image.updated_at),
    }

"""
Category services.

Category names are unique per tenant under case-insensitive comparison.
Names are compared by their casefolded key, which the model keeps in
name_key. The unique index on (owner_id, name_key) is the authoritative
guard; the lookup before insert/update only produces a friendlier conflict.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from core.context import RequestContext, resolve_tenant_id
from core.db import tenant_session
from core.errors import ConflictIssue, ValidationIssue
from core.models import Category, Item, category_name_key
from core.services.integrity import delete_if_unreferenced
from core.services.inventory_shared import (
    _apply_sort,
    _ensure_profile,
    _get_owned,
    _integrity_reason,
    _iso,
    service_tool,
    logger,
)
from core.validators import validate_id, validate_name, validate_sort

CATEGORY_SORT_FIELDS = ("name", "created_at")
DUPLICATE_NAME_MESSAGE = "A category with this name already exists"


def _category_payload(category: Category, item_count: int) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "item_count": item_count,
        "created_at": _iso(category.created_at),
        "updated_at": _iso(category.updated_at),
    }


def _duplicate_name(name: str) -> ConflictIssue:
    return ConflictIssue(DUPLICATE_NAME_MESSAGE, reason="duplicate_name", details={"name": name})


def _find_by_name(db, tenant_id: str, name: str, exclude_id: Optional[str] = None) -> Optional[Category]:
    query = (
        db.query(Category)
        .filter(Category.owner_id == tenant_id)
        .filter(Category.name_key == category_name_key(name))
    )
    if exclude_id is not None:
        query = query.filter(Category.id != exclude_id)
    return query.first()


def _commit_name_change(db, name: str) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _integrity_reason(exc) == "duplicate_name":
            raise _duplicate_name(name) from exc
        raise


def _item_count(db, tenant_id: str, category_id: str) -> int:
    return (
        db.query(func.count(Item.id))
        .filter(Item.owner_id == tenant_id)
        .filter(Item.category_id == category_id)
        .scalar()
    ) or 0


@service_tool
def category_create(
    name: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Create a category; names differing only by case conflict."""
    clean_name = validate_name(name)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        _ensure_profile(db, tenant_id)
        if _find_by_name(db, tenant_id, clean_name) is not None:
            raise _duplicate_name(clean_name)
        category = Category(owner_id=tenant_id, name=clean_name)
        db.add(category)
        _commit_name_change(db, clean_name)
        logger.info("category_created", extra={"tenant_id": tenant_id, "category_id": category.id})
        return {"status": "created", "category": _category_payload(category, 0)}


@service_tool
def category_list(
    sort: str = "name",
    order: str = "asc",
    context: Optional[RequestContext] = None,
) -> dict:
    """List all of the caller's categories with item counts."""
    sort, order = validate_sort(sort, order, CATEGORY_SORT_FIELDS)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        query = db.query(Category).filter(Category.owner_id == tenant_id)
        categories = _apply_sort(query, Category, sort, order).all()
        counts = {}
        if categories:
            counts = dict(
                db.query(Item.category_id, func.count(Item.id))
                .filter(Item.owner_id == tenant_id)
                .filter(Item.category_id.in_([category.id for category in categories]))
                .group_by(Item.category_id)
                .all()
            )
        return {
            "status": "ok",
            "categories": [
                _category_payload(category, counts.get(category.id, 0))
                for category in categories
            ],
        }


@service_tool
def category_get(
    category_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        category = _get_owned(db, Category, tenant_id, category_id, "category")
        return {
            "status": "ok",
            "category": _category_payload(category, _item_count(db, tenant_id, category.id)),
        }


@service_tool
def category_update(
    category_id: str,
    changes: dict,
    context: Optional[RequestContext] = None,
) -> dict:
    """Rename a category, re-checking uniqueness against every other category."""
    if not isinstance(changes, dict) or not changes:
        raise ValidationIssue("changes must be a non-empty object", field="changes", error_type="required")
    unknown = sorted(set(changes) - {"name"})
    if unknown:
        raise ValidationIssue(f"Unknown fields: {unknown}", field=unknown[0], error_type="unknown_field")
    clean_name = validate_name(changes.get("name"))
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        category = _get_owned(db, Category, tenant_id, category_id, "category")
        if _find_by_name(db, tenant_id, clean_name, exclude_id=category.id) is not None:
            raise _duplicate_name(clean_name)
        category.name = clean_name
        _commit_name_change(db, clean_name)
        return {
            "status": "updated",
            "category": _category_payload(category, _item_count(db, tenant_id, category.id)),
        }


@service_tool
def category_delete(
    category_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Delete a category that no item references."""
    category_id = validate_id(category_id, "category_id")
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        name = delete_if_unreferenced(db, tenant_id, "category", category_id)

    logger.info("category_deleted", extra={"tenant_id": tenant_id, "category_id": category_id})
    return {"status": "deleted", "id": category_id, "name": name}

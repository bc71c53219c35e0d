"""
Item services.

An item always references a category and a container owned by the same
tenant. Deleting an item removes its image rows in the same transaction and
hands the storage paths back so the caller can purge the blobs.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from core.context import RequestContext, resolve_tenant_id
from core.db import tenant_session
from core.errors import InvalidReferenceIssue, ValidationIssue
from core.models import Category, Container, Image, Item, ParentKind
from core.services.inventory_shared import (
    _apply_sort,
    _ensure_profile,
    _get_owned,
    _image_payload,
    _images_for,
    _integrity_reason,
    _iso,
    _paginate,
    _require_reference,
    _thumbnail_paths,
    MAX_NAME_LENGTH,
    service_tool,
    logger,
)
from core.validators import (
    validate_description,
    validate_flag,
    validate_id,
    validate_name,
    validate_optional_text,
    validate_page,
    validate_quantity,
    validate_sort,
)

ITEM_SORT_FIELDS = ("name", "created_at", "updated_at")
ITEM_UPDATE_FIELDS = {"name", "description", "category_id", "container_id", "is_in", "quantity"}


def _item_payload(
    item: Item,
    category_name: Optional[str] = None,
    container_name: Optional[str] = None,
    thumbnail: Optional[str] = None,
) -> dict:
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "quantity": item.quantity,
        "is_in": item.is_in,
        "category": {"id": item.category_id, "name": category_name},
        "container": {"id": item.container_id, "name": container_name},
        "thumbnail": thumbnail,
        "created_at": _iso(item.created_at),
        "updated_at": _iso(item.updated_at),
    }


def _commit_references(db, values: dict) -> None:
    """Commit; a reference deleted underneath us surfaces as InvalidReference."""
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _integrity_reason(exc) != "restricted":
            raise
        field = "category_id" if "category_id" in values else "container_id"
        entity = field[:-3]
        raise InvalidReferenceIssue(field, entity, values.get(field)) from exc


@service_tool
def item_create(
    name: str,
    category_id: str,
    container_id: str,
    is_in: bool = True,
    description: Optional[str] = None,
    quantity: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    """Create an item inside an existing category and container."""
    clean_name = validate_name(name)
    category_id = validate_id(category_id, "category_id")
    container_id = validate_id(container_id, "container_id")
    is_in = validate_flag(is_in, "is_in")
    clean_description = validate_description(description)
    quantity = validate_quantity(quantity)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        _ensure_profile(db, tenant_id)
        category = _require_reference(db, Category, tenant_id, category_id, "category_id", "category")
        container = _require_reference(db, Container, tenant_id, container_id, "container_id", "container")
        item = Item(
            owner_id=tenant_id,
            name=clean_name,
            category_id=category.id,
            container_id=container.id,
            is_in=is_in,
            description=clean_description,
            quantity=quantity,
        )
        db.add(item)
        _commit_references(db, {"category_id": category_id, "container_id": container_id})
        logger.info("item_created", extra={"tenant_id": tenant_id, "item_id": item.id})
        return {"status": "created", "item": _item_payload(item, category.name, container.name)}


@service_tool
def item_list(
    name: Optional[str] = None,
    category_id: Optional[str] = None,
    container_id: Optional[str] = None,
    is_in: Optional[bool] = None,
    sort: str = "created_at",
    order: str = "desc",
    page: Optional[int] = None,
    limit: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    """List items; all supplied filters are ANDed."""
    validate_optional_text(name, "name", MAX_NAME_LENGTH)
    if category_id is not None:
        category_id = validate_id(category_id, "category_id")
    if container_id is not None:
        container_id = validate_id(container_id, "container_id")
    if is_in is not None:
        validate_flag(is_in, "is_in")
    sort, order = validate_sort(sort, order, ITEM_SORT_FIELDS)
    page, limit = validate_page(page, limit)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        query = (
            db.query(Item, Category.name, Container.name)
            .join(Category, Category.id == Item.category_id)
            .join(Container, Container.id == Item.container_id)
            .filter(Item.owner_id == tenant_id)
        )
        if name and name.strip():
            query = query.filter(func.lower(Item.name).contains(name.strip().lower(), autoescape=True))
        if category_id is not None:
            query = query.filter(Item.category_id == category_id)
        if container_id is not None:
            query = query.filter(Item.container_id == container_id)
        if is_in is not None:
            query = query.filter(Item.is_in == is_in)
        query = _apply_sort(query, Item, sort, order)
        rows, pagination = _paginate(query, page, limit)

        thumbnails = _thumbnail_paths(db, tenant_id, ParentKind.item, [item.id for item, _, _ in rows])
        return {
            "status": "ok",
            "items": [
                _item_payload(item, category_name, container_name, thumbnails.get(item.id))
                for item, category_name, container_name in rows
            ],
            "pagination": pagination,
        }


@service_tool
def item_get(
    item_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Item detail with its images in display order."""
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        item = _get_owned(db, Item, tenant_id, item_id, "item")
        images = _images_for(db, tenant_id, ParentKind.item, item.id)
        thumbnail = images[0].storage_path if images else None
        payload = _item_payload(item, item.category.name, item.container.name, thumbnail)
        payload["images"] = [_image_payload(image) for image in images]
        return {"status": "ok", "item": payload}


@service_tool
def item_update(
    item_id: str,
    changes: dict,
    context: Optional[RequestContext] = None,
) -> dict:
    """Apply a partial update; moving an item re-validates the new references.

    Setting is_in is the check-in/check-out toggle and touches nothing else.
    """
    if not isinstance(changes, dict) or not changes:
        raise ValidationIssue("changes must be a non-empty object", field="changes", error_type="required")
    unknown = sorted(set(changes) - ITEM_UPDATE_FIELDS)
    if unknown:
        raise ValidationIssue(f"Unknown fields: {unknown}", field=unknown[0], error_type="unknown_field")

    values = {}
    if "name" in changes:
        values["name"] = validate_name(changes["name"])
    if "description" in changes:
        values["description"] = validate_description(changes["description"])
    if "category_id" in changes:
        values["category_id"] = validate_id(changes["category_id"], "category_id")
    if "container_id" in changes:
        values["container_id"] = validate_id(changes["container_id"], "container_id")
    if "is_in" in changes:
        values["is_in"] = validate_flag(changes["is_in"], "is_in")
    if "quantity" in changes:
        values["quantity"] = validate_quantity(changes["quantity"])
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        item = _get_owned(db, Item, tenant_id, item_id, "item", for_update=True)
        if "category_id" in values:
            _require_reference(db, Category, tenant_id, values["category_id"], "category_id", "category")
        if "container_id" in values:
            _require_reference(db, Container, tenant_id, values["container_id"], "container_id", "container")
        for key, value in values.items():
            setattr(item, key, value)
        _commit_references(db, values)

        db.refresh(item)
        thumbnails = _thumbnail_paths(db, tenant_id, ParentKind.item, [item.id])
        return {
            "status": "updated",
            "item": _item_payload(item, item.category.name, item.container.name, thumbnails.get(item.id)),
        }


@service_tool
def item_delete(
    item_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Delete an item and its image rows in one transaction."""
    item_id = validate_id(item_id, "item_id")
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        item = _get_owned(db, Item, tenant_id, item_id, "item", for_update=True)
        name = item.name
        removed_paths = [
            image.storage_path
            for image in _images_for(db, tenant_id, ParentKind.item, item_id)
        ]
        (
            db.query(Image)
            .filter(Image.owner_id == tenant_id)
            .filter(Image.parent_kind == ParentKind.item)
            .filter(Image.parent_id == item_id)
            .delete(synchronize_session=False)
        )
        db.delete(item)
        db.commit()

    logger.info(
        "item_deleted",
        extra={"tenant_id": tenant_id, "item_id": item_id, "images_removed": len(removed_paths)},
    )
    return {
        "status": "deleted",
        "id": item_id,
        "name": name,
        "removed_storage_paths": removed_paths,
    }

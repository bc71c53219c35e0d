"""
Container services.

Containers are flat storage locations. Each owns items (by reference from
the item) and up to five images through the polymorphic attachment table.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func

from core.context import RequestContext, resolve_tenant_id
from core.db import tenant_session
from core.errors import ValidationIssue
from core.models import Category, Container, Image, Item, ParentKind
from core.services.integrity import delete_if_unreferenced
from core.services.inventory_shared import (
    _apply_sort,
    _ensure_profile,
    _get_owned,
    _image_counts,
    _image_payload,
    _images_for,
    _iso,
    _paginate,
    _thumbnail_paths,
    MAX_NAME_LENGTH,
    service_tool,
    logger,
)
from core.validators import (
    validate_description,
    validate_id,
    validate_name,
    validate_optional_text,
    validate_page,
    validate_sort,
)

CONTAINER_SORT_FIELDS = ("name", "created_at")
CONTAINER_UPDATE_FIELDS = {"name", "description"}


def _container_payload(
    container: Container,
    *,
    item_count: Optional[int] = None,
    image_count: Optional[int] = None,
    thumbnail: Optional[str] = None,
) -> dict:
    payload = {
        "id": container.id,
        "name": container.name,
        "description": container.description,
        "created_at": _iso(container.created_at),
        "updated_at": _iso(container.updated_at),
    }
    if item_count is not None:
        payload["item_count"] = item_count
    if image_count is not None:
        payload["image_count"] = image_count
        payload["thumbnail"] = thumbnail
    return payload


def _item_counts(db, tenant_id: str, container_ids: list[str]) -> dict:
    if not container_ids:
        return {}
    rows = (
        db.query(Item.container_id, func.count(Item.id))
        .filter(Item.owner_id == tenant_id)
        .filter(Item.container_id.in_(container_ids))
        .group_by(Item.container_id)
        .all()
    )
    return {container_id: count for container_id, count in rows}


@service_tool
def container_create(
    name: str,
    description: Optional[str] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    """Create a container for the caller."""
    clean_name = validate_name(name)
    clean_description = validate_description(description)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        _ensure_profile(db, tenant_id)
        container = Container(
            owner_id=tenant_id,
            name=clean_name,
            description=clean_description,
        )
        db.add(container)
        db.commit()
        logger.info("container_created", extra={"tenant_id": tenant_id, "container_id": container.id})
        return {
            "status": "created",
            "container": _container_payload(container, item_count=0, image_count=0),
        }


@service_tool
def container_list(
    name: Optional[str] = None,
    sort: str = "name",
    order: str = "asc",
    page: Optional[int] = None,
    limit: Optional[int] = None,
    context: Optional[RequestContext] = None,
) -> dict:
    """List the caller's containers with item/image counts and thumbnails."""
    validate_optional_text(name, "name", MAX_NAME_LENGTH)
    sort, order = validate_sort(sort, order, CONTAINER_SORT_FIELDS)
    page, limit = validate_page(page, limit)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        query = db.query(Container).filter(Container.owner_id == tenant_id)
        if name and name.strip():
            query = query.filter(func.lower(Container.name).contains(name.strip().lower(), autoescape=True))
        query = _apply_sort(query, Container, sort, order)
        rows, pagination = _paginate(query, page, limit)

        ids = [row.id for row in rows]
        item_counts = _item_counts(db, tenant_id, ids)
        image_counts = _image_counts(db, tenant_id, ParentKind.container, ids)
        thumbnails = _thumbnail_paths(db, tenant_id, ParentKind.container, ids)
        return {
            "status": "ok",
            "containers": [
                _container_payload(
                    row,
                    item_count=item_counts.get(row.id, 0),
                    image_count=image_counts.get(row.id, 0),
                    thumbnail=thumbnails.get(row.id),
                )
                for row in rows
            ],
            "pagination": pagination,
        }


@service_tool
def container_get(
    container_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Container detail with its images and a summary of its items."""
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        container = _get_owned(db, Container, tenant_id, container_id, "container")
        images = _images_for(db, tenant_id, ParentKind.container, container.id)
        items = (
            db.query(Item.id, Item.name, Item.is_in, Category.name)
            .join(Category, Category.id == Item.category_id)
            .filter(Item.owner_id == tenant_id)
            .filter(Item.container_id == container.id)
            .order_by(func.lower(Item.name).asc(), Item.id.asc())
            .all()
        )
        thumbnails = _thumbnail_paths(db, tenant_id, ParentKind.item, [row[0] for row in items])

        payload = _container_payload(container, item_count=len(items))
        payload["images"] = [_image_payload(image) for image in images]
        payload["items"] = [
            {
                "id": item_id,
                "name": item_name,
                "thumbnail": thumbnails.get(item_id),
                "category": category_name,
                "is_in": is_in,
            }
            for item_id, item_name, is_in, category_name in items
        ]
        return {"status": "ok", "container": payload}


@service_tool
def container_update(
    container_id: str,
    changes: dict,
    context: Optional[RequestContext] = None,
) -> dict:
    """Apply a partial update (name, description)."""
    if not isinstance(changes, dict) or not changes:
        raise ValidationIssue("changes must be a non-empty object", field="changes", error_type="required")
    unknown = sorted(set(changes) - CONTAINER_UPDATE_FIELDS)
    if unknown:
        raise ValidationIssue(f"Unknown fields: {unknown}", field=unknown[0], error_type="unknown_field")
    values = {}
    if "name" in changes:
        values["name"] = validate_name(changes["name"])
    if "description" in changes:
        values["description"] = validate_description(changes["description"])
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        container = _get_owned(db, Container, tenant_id, container_id, "container")
        for key, value in values.items():
            setattr(container, key, value)
        db.commit()
        return {"status": "updated", "container": _container_payload(container)}


@service_tool
def container_delete(
    container_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Delete a container that no item references, together with its images."""
    container_id = validate_id(container_id, "container_id")
    tenant_id = resolve_tenant_id(context)
    removed_paths: list[str] = []

    def _drop_images(db) -> None:
        images = _images_for(db, tenant_id, ParentKind.container, container_id)
        removed_paths.extend(image.storage_path for image in images)
        (
            db.query(Image)
            .filter(Image.owner_id == tenant_id)
            .filter(Image.parent_kind == ParentKind.container)
            .filter(Image.parent_id == container_id)
            .delete(synchronize_session=False)
        )

    with tenant_session(tenant_id) as db:
        name = delete_if_unreferenced(db, tenant_id, "container", container_id, on_delete=_drop_images)

    logger.info("container_deleted", extra={"tenant_id": tenant_id, "container_id": container_id})
    return {
        "status": "deleted",
        "id": container_id,
        "name": name,
        "removed_storage_paths": removed_paths,
    }

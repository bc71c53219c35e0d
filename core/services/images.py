"""
Image attachment services.

Images hang off either an item or a container through (parent_kind,
parent_id). Each parent holds at most five images in display slots 1..5,
slot 1 being the thumbnail. The unique (parent_kind, parent_id,
display_order) constraint plus the 1..5 check constraint are the
authoritative guards; the count here only picks a slot and produces the
friendlier conflict.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from core.context import RequestContext, resolve_tenant_id
from core.db import tenant_session
from core.errors import ConflictIssue, InvalidReferenceIssue, NotFoundIssue, ValidationIssue
from core.models import Image, PARENT_MODELS, ParentKind, utcnow
from core.services.inventory_shared import (
    _get_owned,
    _image_payload,
    _images_for,
    _integrity_reason,
    _parse_parent_kind,
    MAX_IMAGES_PER_PARENT,
    service_tool,
    logger,
)
from core.validators import validate_id, validate_storage_path

SLOT_RANGE = range(1, MAX_IMAGES_PER_PARENT + 1)


def _limit_exceeded(parent_kind: ParentKind, parent_id: str) -> ConflictIssue:
    return ConflictIssue(
        f"Maximum of {MAX_IMAGES_PER_PARENT} images per {parent_kind.value}",
        reason="image_limit_exceeded",
        details={
            "parent_kind": parent_kind.value,
            "parent_id": parent_id,
            "limit": MAX_IMAGES_PER_PARENT,
        },
    )


def _get_parent(db, tenant_id: str, parent_kind: ParentKind, parent_id: str, *, for_update: bool = False):
    model = PARENT_MODELS[parent_kind]
    return _get_owned(db, model, tenant_id, parent_id, parent_kind.value, for_update=for_update)


def _require_parent(db, tenant_id: str, parent_kind: ParentKind, parent_id: str, *, for_update: bool = False):
    try:
        return _get_parent(db, tenant_id, parent_kind, parent_id, for_update=for_update)
    except NotFoundIssue as exc:
        raise InvalidReferenceIssue("parent_id", parent_kind.value, parent_id) from exc


def _used_slots(db, tenant_id: str, parent_kind: ParentKind, parent_id: str) -> set[int]:
    rows = (
        db.query(Image.display_order)
        .filter(Image.owner_id == tenant_id)
        .filter(Image.parent_kind == parent_kind)
        .filter(Image.parent_id == parent_id)
        .all()
    )
    return {display_order for (display_order,) in rows}


def check_capacity(tenant_id: str, parent_kind: ParentKind, parent_id: str) -> int:
    """Return the number of free slots, raising if the parent is missing or full."""
    with tenant_session(tenant_id) as db:
        _require_parent(db, tenant_id, parent_kind, parent_id)
        free = MAX_IMAGES_PER_PARENT - len(_used_slots(db, tenant_id, parent_kind, parent_id))
    if free <= 0:
        raise _limit_exceeded(parent_kind, parent_id)
    return free


def attach_image(tenant_id: str, parent_kind: ParentKind, parent_id: str, storage_path: str) -> dict:
    """Insert an image row in the lowest free slot; returns the image payload.

    A concurrent attach can take the chosen slot between the read and the
    insert. The store rejects the loser, which then re-reads and retries.
    Each lost race means another slot was filled, so MAX_IMAGES_PER_PARENT
    attempts are always enough to either succeed or observe a full parent.
    """
    for attempt in range(MAX_IMAGES_PER_PARENT):
        with tenant_session(tenant_id) as db:
            _require_parent(db, tenant_id, parent_kind, parent_id, for_update=True)
            used = _used_slots(db, tenant_id, parent_kind, parent_id)
            free = [slot for slot in SLOT_RANGE if slot not in used]
            if not free:
                raise _limit_exceeded(parent_kind, parent_id)

            image = Image(
                owner_id=tenant_id,
                parent_kind=parent_kind,
                parent_id=parent_id,
                storage_path=storage_path,
                display_order=free[0],
            )
            db.add(image)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                if _integrity_reason(exc) not in {"slot_taken", "image_limit_exceeded"}:
                    raise
                logger.info(
                    "image_slot_collision",
                    extra={"parent_kind": parent_kind.value, "parent_id": parent_id, "attempt": attempt + 1},
                )
                continue
            return _image_payload(image)
    raise _limit_exceeded(parent_kind, parent_id)


@service_tool
def image_attach(
    parent_kind: str,
    parent_id: str,
    storage_path: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Record an already-stored blob as the parent's next image."""
    kind = _parse_parent_kind(parent_kind)
    parent_id = validate_id(parent_id, "parent_id")
    storage_path = validate_storage_path(storage_path)
    tenant_id = resolve_tenant_id(context)

    image = attach_image(tenant_id, kind, parent_id, storage_path)
    logger.info(
        "image_attached",
        extra={"tenant_id": tenant_id, "parent_kind": kind.value, "image_id": image["id"]},
    )
    return {"status": "created", "image": image}


@service_tool
def image_list(
    parent_kind: str,
    parent_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """List a parent's images by display order."""
    kind = _parse_parent_kind(parent_kind)
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        parent = _get_parent(db, tenant_id, kind, parent_id)
        images = _images_for(db, tenant_id, kind, parent.id)
        return {
            "status": "ok",
            "parent_kind": kind.value,
            "parent_id": parent.id,
            "images": [_image_payload(image) for image in images],
        }


def _validate_new_order(order) -> dict:
    if not isinstance(order, dict) or not order:
        raise ValidationIssue(
            "order must map every image id to its new display order",
            field="order",
            error_type="required",
        )
    for image_id, position in order.items():
        if not isinstance(image_id, str):
            raise ValidationIssue("order keys must be image ids", field="order", error_type="invalid_type")
        if isinstance(position, bool) or not isinstance(position, int):
            raise ValidationIssue("display orders must be integers", field="order", error_type="invalid_type")
    return order


def _misplaced_position(order: dict) -> Optional[int]:
    """First position breaking the 1..N sequence, or None for a permutation."""
    for expected, position in enumerate(sorted(order.values()), start=1):
        if position != expected:
            return position
    return None


@service_tool
def image_reorder(
    parent_kind: str,
    parent_id: str,
    order: dict,
    context: Optional[RequestContext] = None,
) -> dict:
    """Apply a full permutation of display orders atomically.

    order maps each current image id of the parent to its new slot. A
    mismatched id set or positions other than 1..N are both reported as
    invalid references on the order field. The rows are rewritten in one
    transaction because swapping slots in place would trip the per-slot
    unique constraint mid-way.
    """
    kind = _parse_parent_kind(parent_kind)
    new_order = _validate_new_order(order)
    tenant_id = resolve_tenant_id(context)
    table = Image.__table__

    with tenant_session(tenant_id) as db:
        parent = _get_parent(db, tenant_id, kind, parent_id, for_update=True)
        current = (
            db.execute(
                select(table)
                .where(table.c.owner_id == tenant_id)
                .where(table.c.parent_kind == kind)
                .where(table.c.parent_id == parent.id)
            )
            .mappings()
            .all()
        )
        current_ids = {row["id"] for row in current}
        if set(new_order) != current_ids:
            unknown = sorted(set(new_order) - current_ids)
            missing = sorted(current_ids - set(new_order))
            offending = unknown[0] if unknown else missing[0]
            raise InvalidReferenceIssue("order", "image", offending)
        misplaced = _misplaced_position(new_order)
        if misplaced is not None:
            raise InvalidReferenceIssue(
                "order",
                "display order",
                misplaced,
                message=f"display orders must be a permutation of 1..{len(new_order)}",
            )

        now = utcnow()
        rows = []
        for row in current:
            values = dict(row)
            position = new_order[values["id"]]
            if values["display_order"] != position:
                values["display_order"] = position
                values["updated_at"] = now
            rows.append(values)

        db.execute(table.delete().where(table.c.id.in_(sorted(current_ids))))
        db.execute(table.insert(), rows)
        db.commit()

        images = _images_for(db, tenant_id, kind, parent.id)
        logger.info(
            "images_reordered",
            extra={"tenant_id": tenant_id, "parent_kind": kind.value, "parent_id": parent.id},
        )
        return {
            "status": "updated",
            "parent_kind": kind.value,
            "parent_id": parent.id,
            "images": [_image_payload(image) for image in images],
        }


@service_tool
def image_detach(
    parent_kind: str,
    parent_id: str,
    image_id: str,
    context: Optional[RequestContext] = None,
) -> dict:
    """Remove one image and compact the remaining slots to 1..N."""
    kind = _parse_parent_kind(parent_kind)
    image_id = validate_id(image_id, "image_id")
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        parent = _get_parent(db, tenant_id, kind, parent_id, for_update=True)
        image = (
            db.query(Image)
            .filter(Image.owner_id == tenant_id)
            .filter(Image.parent_kind == kind)
            .filter(Image.parent_id == parent.id)
            .filter(Image.id == image_id)
            .first()
        )
        if image is None:
            raise NotFoundIssue("image", image_id)
        storage_path = image.storage_path
        db.delete(image)
        db.flush()

        # Ascending, one row per flush: each target slot is already free
        remaining = _images_for(db, tenant_id, kind, parent.id)
        for position, remaining_image in enumerate(remaining, start=1):
            if remaining_image.display_order != position:
                remaining_image.display_order = position
                db.flush()
        db.commit()

        logger.info(
            "image_detached",
            extra={"tenant_id": tenant_id, "parent_kind": kind.value, "image_id": image_id},
        )
        return {
            "status": "deleted",
            "id": image_id,
            "removed_storage_path": storage_path,
            "images": [_image_payload(image) for image in _images_for(db, tenant_id, kind, parent.id)],
        }


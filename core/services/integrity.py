"""
Referential integrity checks for container and category deletion.

A container or category may only be removed while no item references it.
The count below produces the user-facing message; the restrict-on-delete
foreign keys on items remain the final guard against a concurrent insert.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from core.errors import ConflictIssue, ValidationIssue
from core.models import Category, Container, Item
from core.services.inventory_shared import _get_owned, _integrity_reason, logger


DELETABLE_KINDS = {
    "container": (Container, Item.container_id),
    "category": (Category, Item.category_id),
}


@dataclass(frozen=True)
class Allowed:
    entity_name: str


@dataclass(frozen=True)
class Blocked:
    dependent_count: int
    entity_name: str

    @property
    def message(self) -> str:
        return f"Cannot delete {self.entity_name} because it contains {self.dependent_count} item(s)"


DeleteCheck = Union[Allowed, Blocked]


def _deletable_kind(entity_kind: str):
    kind = DELETABLE_KINDS.get(entity_kind)
    if kind is None:
        raise ValidationIssue(
            "entity_kind must be 'container' or 'category'",
            field="entity_kind",
            error_type="invalid_value",
        )
    return kind


def count_dependents(db, tenant_id: str, entity_kind: str, entity_id: str) -> int:
    _, fk_column = _deletable_kind(entity_kind)
    return (
        db.query(func.count(Item.id))
        .filter(Item.owner_id == tenant_id)
        .filter(fk_column == entity_id)
        .scalar()
    ) or 0


def check_deletable(db, tenant_id: str, entity_kind: str, entity_id: str, *, lock: bool = False) -> DeleteCheck:
    """Return Allowed or Blocked for the entity; NotFoundIssue if it is not the tenant's."""
    model, _ = _deletable_kind(entity_kind)
    row = _get_owned(db, model, tenant_id, entity_id, entity_kind, for_update=lock)
    count = count_dependents(db, tenant_id, entity_kind, entity_id)
    if count > 0:
        return Blocked(dependent_count=count, entity_name=row.name)
    return Allowed(entity_name=row.name)


def _blocked_conflict(entity_kind: str, entity_id: str, blocked: Blocked) -> ConflictIssue:
    return ConflictIssue(
        blocked.message,
        reason="has_dependents",
        details={
            "entity": entity_kind,
            "id": entity_id,
            "name": blocked.entity_name,
            "dependent_count": blocked.dependent_count,
        },
    )


def delete_if_unreferenced(
    db,
    tenant_id: str,
    entity_kind: str,
    entity_id: str,
    on_delete: Optional[Callable[[object], None]] = None,
) -> str:
    """Check dependents and delete in one transaction; returns the deleted name.

    on_delete runs inside the same transaction just before the row is removed.
    """
    model, _ = _deletable_kind(entity_kind)
    result = check_deletable(db, tenant_id, entity_kind, entity_id, lock=True)
    if isinstance(result, Blocked):
        db.rollback()
        raise _blocked_conflict(entity_kind, entity_id, result)

    try:
        if on_delete is not None:
            on_delete(db)
        (
            db.query(model)
            .filter(model.owner_id == tenant_id)
            .filter(model.id == entity_id)
            .delete(synchronize_session=False)
        )
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if _integrity_reason(exc) != "restricted":
            raise
        # An item was assigned between the count and the delete
        count = count_dependents(db, tenant_id, entity_kind, entity_id)
        logger.info(
            "delete_restricted_by_store",
            extra={"entity_kind": entity_kind, "entity_id": entity_id, "dependent_count": count},
        )
        raise _blocked_conflict(
            entity_kind,
            entity_id,
            Blocked(dependent_count=max(count, 1), entity_name=result.entity_name),
        ) from exc
    return result.entity_name

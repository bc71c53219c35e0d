"""
Tenant profile services.

Profiles are created lazily on first authenticated access and removed,
together with every owned row, when the account is deleted upstream.
"""

from __future__ import annotations

from typing import Optional

from core.context import RequestContext, resolve_tenant_id
from core.db import tenant_session
from core.errors import NotFoundIssue
from core.models import Category, Container, Image, Item, Profile
from core.services.inventory_shared import (
    _ensure_profile,
    _iso,
    service_tool,
    logger,
)


def ensure_profile(tenant_id: str) -> None:
    """Create the profile for tenant_id if it does not exist yet."""
    with tenant_session(tenant_id) as db:
        _ensure_profile(db, tenant_id)
        db.commit()


@service_tool
def tenant_get_profile(
    context: Optional[RequestContext] = None,
) -> dict:
    """Return the caller's profile, creating it on first access."""
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        profile = _ensure_profile(db, tenant_id)
        db.commit()
        return {
            "status": "ok",
            "profile": {
                "id": profile.id,
                "created_at": _iso(profile.created_at),
                "updated_at": _iso(profile.updated_at),
            },
        }


@service_tool
def tenant_delete_account(
    context: Optional[RequestContext] = None,
) -> dict:
    """Hard-delete the tenant and everything it owns.

    Rows are removed in dependency order in a single transaction so the
    restrict foreign keys from items never fire. The removed image paths are
    returned for the caller to purge from blob storage.
    """
    tenant_id = resolve_tenant_id(context)

    with tenant_session(tenant_id) as db:
        profile = db.get(Profile, tenant_id)
        if profile is None:
            raise NotFoundIssue("profile", tenant_id)

        storage_paths = [
            path for (path,) in (
                db.query(Image.storage_path)
                .filter(Image.owner_id == tenant_id)
                .all()
            )
        ]
        deleted = {}
        for key, model in (
            ("images", Image),
            ("items", Item),
            ("categories", Category),
            ("containers", Container),
        ):
            deleted[key] = (
                db.query(model)
                .filter(model.owner_id == tenant_id)
                .delete(synchronize_session=False)
            )
        db.query(Profile).filter(Profile.id == tenant_id).delete(synchronize_session=False)
        db.commit()

    logger.info("tenant_deleted", extra={"tenant_id": tenant_id, "deleted": deleted})
    return {
        "status": "deleted",
        "tenant_id": tenant_id,
        "deleted": deleted,
        "removed_storage_paths": storage_paths,
    }

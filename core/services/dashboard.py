"""
Dashboard statistics.

Every figure is computed from live rows on each call; nothing is cached or
denormalized. The reads are independent, so they run side by side on a
small thread pool, each in its own tenant-scoped session.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from sqlalchemy import false, func

import core.config as config
from core.context import RequestContext, resolve_tenant_id
from core.db import tenant_session
from core.models import Category, Container, Item, ParentKind
from core.services.inventory_shared import (
    _iso,
    _thumbnail_paths,
    RECENT_ITEMS_LIMIT,
    service_tool,
)


def _count(tenant_id: str, model, *criteria) -> int:
    with tenant_session(tenant_id) as db:
        query = db.query(func.count(model.id)).filter(model.owner_id == tenant_id)
        for criterion in criteria:
            query = query.filter(criterion)
        return query.scalar() or 0


def _recent_items(tenant_id: str, limit: int) -> list[dict]:
    with tenant_session(tenant_id) as db:
        rows = (
            db.query(Item, Category.name, Container.name)
            .join(Category, Category.id == Item.category_id)
            .join(Container, Container.id == Item.container_id)
            .filter(Item.owner_id == tenant_id)
            .order_by(Item.created_at.desc(), Item.id.desc())
            .limit(limit)
            .all()
        )
        thumbnails = _thumbnail_paths(db, tenant_id, ParentKind.item, [item.id for item, _, _ in rows])
        return [
            {
                "id": item.id,
                "name": item.name,
                "is_in": item.is_in,
                "category_name": category_name,
                "container_name": container_name,
                "thumbnail": thumbnails.get(item.id),
                "created_at": _iso(item.created_at),
            }
            for item, category_name, container_name in rows
        ]


@service_tool
def get_statistics(
    context: Optional[RequestContext] = None,
) -> dict:
    """Totals, checked-out count and the most recently added items."""
    tenant_id = resolve_tenant_id(context)
    reads = {
        "total_items": (_count, tenant_id, Item),
        "total_containers": (_count, tenant_id, Container),
        "total_categories": (_count, tenant_id, Category),
        "items_checked_out": (_count, tenant_id, Item, Item.is_in == false()),
        "recent_items": (_recent_items, tenant_id, RECENT_ITEMS_LIMIT),
    }

    if config.STATS_PARALLEL_QUERIES:
        with ThreadPoolExecutor(max_workers=len(reads), thread_name_prefix="stats") as executor:
            futures = {key: executor.submit(fn, *args) for key, (fn, *args) in reads.items()}
            results = {key: future.result() for key, future in futures.items()}
    else:
        results = {key: fn(*args) for key, (fn, *args) in reads.items()}

    return {"status": "ok", "statistics": results}

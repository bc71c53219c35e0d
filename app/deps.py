"""
Dependency helpers for the FastAPI app.
"""

from __future__ import annotations

import uuid

from fastapi import HTTPException, Request
from starlette.concurrency import run_in_threadpool

import core.config as config
from core.context import AuthContext, RequestContext, TenantContext, require_tenant_id_value
from core.errors import ValidationIssue
from core.services.tenants import ensure_profile


async def get_tenant_id(request: Request) -> str:
    """Tenant id as verified and forwarded by the upstream identity gateway."""
    raw = request.headers.get(config.TENANT_HEADER)
    try:
        return require_tenant_id_value(raw.strip() if raw else raw)
    except ValidationIssue as exc:
        raise HTTPException(status_code=401, detail="Missing or invalid tenant identity") from exc


async def get_request_context(request: Request) -> RequestContext:
    tenant_id = await get_tenant_id(request)
    # Profiles are created lazily on first authenticated access
    await run_in_threadpool(ensure_profile, tenant_id)
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    return RequestContext(
        auth=AuthContext(tenant_id=tenant_id, actor="gateway"),
        tenant=TenantContext.from_values(tenant_id, source="header"),
        request_id=request_id,
    )

"""
Dashboard and account endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from app.deps import get_request_context
from app.responses import call_deleting_service, call_service
from core.context import RequestContext
from core.services import dashboard, tenants


router = APIRouter(prefix="/api", tags=["dashboard"])


@router.get("/dashboard/stats")
async def dashboard_stats(
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(dashboard.get_statistics, context=context)


@router.get("/account")
async def get_account(
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(tenants.tenant_get_profile, context=context)


@router.delete("/account")
async def delete_account(
    background_tasks: BackgroundTasks,
    context: RequestContext = Depends(get_request_context),
):
    return await call_deleting_service(background_tasks, tenants.tenant_delete_account, context=context)

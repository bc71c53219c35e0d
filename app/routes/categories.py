"""
Category endpoints.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends
from pydantic import BaseModel

from app.deps import get_request_context
from app.responses import call_service
from core.context import RequestContext
from core.services import categories


router = APIRouter(prefix="/api/categories", tags=["categories"])


class CategoryCreateBody(BaseModel):
    name: str


@router.post("")
async def create_category(
    payload: CategoryCreateBody,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(categories.category_create, name=payload.name, context=context)


@router.get("")
async def list_categories(
    sort: str = "name",
    order: str = "asc",
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(categories.category_list, sort=sort, order=order, context=context)


@router.get("/{category_id}")
async def get_category(
    category_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(categories.category_get, category_id=category_id, context=context)


@router.patch("/{category_id}")
async def update_category(
    category_id: str,
    changes: Dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(
        categories.category_update,
        category_id=category_id,
        changes=changes,
        context=context,
    )


@router.delete("/{category_id}")
async def delete_category(
    category_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(categories.category_delete, category_id=category_id, context=context)

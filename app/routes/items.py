"""
Item endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query
from pydantic import BaseModel

from app.deps import get_request_context
from app.responses import call_deleting_service, call_service
from core.context import RequestContext
from core.services import items


router = APIRouter(prefix="/api/items", tags=["items"])


class ItemCreateBody(BaseModel):
    name: str
    category_id: str
    container_id: str
    is_in: bool = True
    description: Optional[str] = None
    quantity: Optional[int] = None


@router.post("")
async def create_item(
    payload: ItemCreateBody,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(
        items.item_create,
        name=payload.name,
        category_id=payload.category_id,
        container_id=payload.container_id,
        is_in=payload.is_in,
        description=payload.description,
        quantity=payload.quantity,
        context=context,
    )


@router.get("")
async def list_items(
    name: Optional[str] = None,
    category_id: Optional[str] = None,
    container_id: Optional[str] = None,
    is_in: Optional[bool] = None,
    sort: str = "created_at",
    order: str = "desc",
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(
        items.item_list,
        name=name,
        category_id=category_id,
        container_id=container_id,
        is_in=is_in,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
        context=context,
    )


@router.get("/{item_id}")
async def get_item(
    item_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(items.item_get, item_id=item_id, context=context)


@router.patch("/{item_id}")
async def update_item(
    item_id: str,
    changes: Dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(items.item_update, item_id=item_id, changes=changes, context=context)


@router.delete("/{item_id}")
async def delete_item(
    item_id: str,
    background_tasks: BackgroundTasks,
    context: RequestContext = Depends(get_request_context),
):
    return await call_deleting_service(
        background_tasks,
        items.item_delete,
        item_id=item_id,
        context=context,
    )

"""
Container endpoints.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query
from pydantic import BaseModel

from app.deps import get_request_context
from app.responses import call_deleting_service, call_service
from core.context import RequestContext
from core.services import containers


router = APIRouter(prefix="/api/containers", tags=["containers"])


class ContainerCreateBody(BaseModel):
    name: str
    description: Optional[str] = None


@router.post("")
async def create_container(
    payload: ContainerCreateBody,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(
        containers.container_create,
        name=payload.name,
        description=payload.description,
        context=context,
    )


@router.get("")
async def list_containers(
    name: Optional[str] = None,
    sort: str = "name",
    order: str = "asc",
    page: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None),
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(
        containers.container_list,
        name=name,
        sort=sort,
        order=order,
        page=page,
        limit=limit,
        context=context,
    )


@router.get("/{container_id}")
async def get_container(
    container_id: str,
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(containers.container_get, container_id=container_id, context=context)


@router.patch("/{container_id}")
async def update_container(
    container_id: str,
    changes: Dict[str, Any] = Body(...),
    context: RequestContext = Depends(get_request_context),
):
    return await call_service(
        containers.container_update,
        container_id=container_id,
        changes=changes,
        context=context,
    )


@router.delete("/{container_id}")
async def delete_container(
    container_id: str,
    background_tasks: BackgroundTasks,
    context: RequestContext = Depends(get_request_context),
):
    return await call_deleting_service(
        background_tasks,
        containers.container_delete,
        container_id=container_id,
        context=context,
    )

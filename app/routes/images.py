"""
Image attachment endpoints, mounted under both parent kinds:
/api/items/{parent_id}/images and /api/containers/{parent_id}/images.
"""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from pydantic import BaseModel

from app.deps import get_request_context
from app.responses import call_deleting_service, call_service, issue_response
import core.config as config
from core.context import RequestContext
from core.models import ParentKind
from core.services import blob_storage, images


class ImageAttachBody(BaseModel):
    storage_path: str


class ImageReorderBody(BaseModel):
    order: Dict[str, int]


async def _read_upload(request: Request) -> Optional[bytes]:
    """Body bytes, or None as soon as they pass the upload limit."""
    limit = config.BLOB_MAX_UPLOAD_BYTES
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > limit:
        return None
    content = bytearray()
    async for chunk in request.stream():
        content.extend(chunk)
        if len(content) > limit:
            return None
    return bytes(content)


def _build_router(parent_kind: ParentKind) -> APIRouter:
    router = APIRouter(
        prefix=f"/api/{parent_kind.value}s/{{parent_id}}/images",
        tags=["images"],
    )
    kind = parent_kind.value

    @router.get("")
    async def list_images(
        parent_id: str,
        context: RequestContext = Depends(get_request_context),
    ):
        return await call_service(images.image_list, parent_kind=kind, parent_id=parent_id, context=context)

    @router.post("")
    async def attach_image(
        parent_id: str,
        payload: ImageAttachBody,
        context: RequestContext = Depends(get_request_context),
    ):
        return await call_service(
            images.image_attach,
            parent_kind=kind,
            parent_id=parent_id,
            storage_path=payload.storage_path,
            context=context,
        )

    @router.post("/upload")
    async def upload_image(
        parent_id: str,
        request: Request,
        filename: Optional[str] = None,
        context: RequestContext = Depends(get_request_context),
    ):
        """Raw image bytes in the body; Content-Type names the format."""
        content = await _read_upload(request)
        if content is None:
            return issue_response(
                blob_storage.image_upload_and_attach.__name__,
                blob_storage.upload_too_large(),
            )
        return await call_service(
            blob_storage.image_upload_and_attach,
            parent_kind=kind,
            parent_id=parent_id,
            filename=filename or "upload",
            content=content,
            content_type=request.headers.get("content-type"),
            context=context,
        )

    @router.put("/order")
    async def reorder_images(
        parent_id: str,
        payload: ImageReorderBody,
        context: RequestContext = Depends(get_request_context),
    ):
        return await call_service(
            images.image_reorder,
            parent_kind=kind,
            parent_id=parent_id,
            order=payload.order,
            context=context,
        )

    @router.delete("/{image_id}")
    async def detach_image(
        parent_id: str,
        image_id: str,
        background_tasks: BackgroundTasks,
        context: RequestContext = Depends(get_request_context),
    ):
        return await call_deleting_service(
            background_tasks,
            images.image_detach,
            parent_kind=kind,
            parent_id=parent_id,
            image_id=image_id,
            context=context,
        )

    return router


item_images_router = _build_router(ParentKind.item)
container_images_router = _build_router(ParentKind.container)

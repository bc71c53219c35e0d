"""
Translate service result payloads into HTTP responses.
"""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import BackgroundTasks
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

import core.config as config
from core.errors import BlobStorageError, InventoryIssue
from core.services import blob_storage
from core.services.inventory_shared import _log_issue, _tool_error_payload

ERROR_STATUS_CODES = {
    "validation_error": 400,
    "not_found": 404,
    "conflict": 409,
    "invalid_reference": 422,
    "storage_unavailable": 502,
    "server_error": 500,
}


def to_response(result: dict) -> JSONResponse:
    status = result.get("status")
    if status == "error":
        status_code = ERROR_STATUS_CODES.get(result.get("error_type"), 500)
    elif status == "created":
        status_code = 201
    else:
        status_code = 200
    return JSONResponse(status_code=status_code, content=result)


def issue_response(tool_name: str, issue: InventoryIssue) -> JSONResponse:
    """Map an issue raised in the route itself, before any service ran."""
    _log_issue(tool_name, issue)
    return to_response(_tool_error_payload(tool_name, issue))


async def call_service(fn: Callable[..., dict], *args, **kwargs) -> JSONResponse:
    """Run a blocking service call off the event loop and map its result."""
    result = await run_in_threadpool(fn, *args, **kwargs)
    return to_response(result)


def purge_blobs(storage_paths: Iterable[str]) -> None:
    """Background task: remove blobs whose metadata rows were deleted."""
    paths = list(storage_paths)
    if not paths or not config.BLOB_STORAGE_URL:
        return
    try:
        failed = blob_storage.get_blob_client().delete_many(paths)
    except BlobStorageError as exc:
        config.logger.warning("blob_purge_failed", extra={"count": len(paths), "detail": str(exc)})
        return
    if failed:
        config.logger.warning("blob_purge_incomplete", extra={"failed": failed})


async def call_deleting_service(
    background_tasks: BackgroundTasks,
    fn: Callable[..., dict],
    *args,
    **kwargs,
) -> JSONResponse:
    """Like call_service, and schedules blob purging for removed image rows."""
    result = await run_in_threadpool(fn, *args, **kwargs)
    if result.get("status") == "deleted":
        paths = list(result.get("removed_storage_paths") or [])
        if result.get("removed_storage_path"):
            paths.append(result["removed_storage_path"])
        if paths:
            background_tasks.add_task(purge_blobs, paths)
    return to_response(result)

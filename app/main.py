"""
FastAPI app wiring for homestash.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.db import DB, init_db
from core.services import blob_storage
from app.middleware import configure_middleware
from app.routes.categories import router as categories_router
from app.routes.containers import router as containers_router
from app.routes.dashboard import router as dashboard_router
from app.routes.health import router as health_router
from app.routes.images import container_images_router, item_images_router
from app.routes.items import router as items_router
from app.routes.root import router as root_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize on startup, cleanup on shutdown."""
    init_db()
    try:
        yield
    finally:
        blob_storage.cleanup_blob_client()
        if DB.engine:
            DB.engine.dispose()


app = FastAPI(title="homestash", redirect_slashes=False, lifespan=lifespan)
configure_middleware(app)

# Health and root endpoints
app.include_router(health_router)
app.include_router(root_router)

# Inventory API
app.include_router(containers_router)
app.include_router(categories_router)
app.include_router(items_router)
app.include_router(item_images_router)
app.include_router(container_images_router)
app.include_router(dashboard_router)

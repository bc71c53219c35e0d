"""
Root endpoint with service metadata.
"""

from __future__ import annotations

from fastapi import APIRouter

import core.config as config


router = APIRouter()


@router.get("/")
async def root():
    """Root endpoint with service info."""
    return {
        "service": "homestash",
        "version": "0.1.0",
        "description": "Multi-tenant home inventory: containers, categories, items and images",
        "tenant_header": config.TENANT_HEADER,
        "endpoints": {
            "health": "/health",
            "containers": "/api/containers",
            "categories": "/api/categories",
            "items": "/api/items",
            "item_images": "/api/items/{item_id}/images",
            "container_images": "/api/containers/{container_id}/images",
            "dashboard": "/api/dashboard/stats",
            "account": "/api/account",
        },
    }

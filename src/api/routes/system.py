"""System-level routes such as health checks."""

from __future__ import annotations

import httpx
from fastapi import APIRouter

from src.config import settings

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Hello World endpoint used by smoke tests."""

    return {"message": "Storefront view service"}


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint with API gateway connectivity check."""

    try:
        async with httpx.AsyncClient() as client:
            response = await client.get(
                f"{settings.API_BASE_URL.rstrip('/')}/categories/",
                timeout=5.0,
            )
            gateway_status = (
                "connected" if response.status_code == 200 else "disconnected"
            )
    except httpx.HTTPError:
        gateway_status = "disconnected"

    return {
        "status": "healthy",
        "gateway": gateway_status,
        "environment": settings.ENVIRONMENT,
    }

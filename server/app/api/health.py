"""Health check endpoints for monitoring service and dependency status."""
from typing import Any

from fastapi import APIRouter
from sqlalchemy import text

from app.core.config import get_settings
from app.core.db import engine

router = APIRouter(tags=["health"])
settings = get_settings()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint.

    Returns:
        Simple status response for load balancers
    """
    return {"status": "ok"}


@router.get("/health/detailed")
async def detailed_health_check() -> dict[str, Any]:
    """Detailed health check for the service dependencies.

    Checks:
    - Database connectivity
    - Webhook delivery configuration

    Returns:
        Detailed health status for each component
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "components": {},
    }

    # Check Database
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        health_status["components"]["database"] = {
            "status": "healthy",
            "message": f"{engine.dialect.name} connection successful",
        }
    except Exception as e:
        health_status["status"] = "unhealthy"
        health_status["components"]["database"] = {
            "status": "unhealthy",
            "message": f"Database connection failed: {str(e)}",
        }

    health_status["components"]["webhooks"] = {
        "status": "healthy" if settings.webhooks_enabled else "disabled",
        "timeout": settings.webhooks_timeout,
        "max_retries": settings.webhooks_max_retries,
    }

    return health_status

"""
Health and Monitoring Router.

This module provides public endpoints for health checks and monitoring of the
Roast API.

Endpoints Provided:
- `/healthcheck`: A basic, lightweight health check to confirm that the service
  is running.
- `/monitoring/ping`: A simple ping endpoint for basic connectivity testing.
- `/monitoring/detailed`: A health check that also reports database
  connectivity and whether a completion API key is configured.

Architectural Design:
- Separation of Concerns: Health and monitoring endpoints are grouped into their
  own routers (`health_router` and `monitoring_router`) to keep them separate
  from the roast endpoints.
- Graceful Degradation: The detailed health check reports individual
  components, so a missing API key or an unreachable database shows up as a
  "degraded" state rather than a failed request.
"""

from fastapi import APIRouter, Depends
from datetime import datetime
from typing import Dict, Any

from core.logging_config import get_logger
from core.database import get_database_info
from providers.llm_provider import CompletionProvider
from .dependencies import get_completion_provider

logger = get_logger(__name__)

SERVICE_NAME = "Xiaohongshu Roast API"
SERVICE_VERSION = "1.0.0"

health_router = APIRouter(tags=["Health & Monitoring"])

monitoring_router = APIRouter(prefix="/monitoring", tags=["Health & Monitoring"])


@health_router.get("/healthcheck")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint

    Returns:
        Dict with status, timestamp, and version info
    """
    logger.debug("Health check requested")

    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": SERVICE_VERSION,
        "service": SERVICE_NAME,
    }


@monitoring_router.get("/ping")
async def ping() -> Dict[str, str]:
    """Simple ping endpoint for connectivity testing"""
    logger.debug("Ping requested")
    return {
        "message": "pong",
        "timestamp": datetime.utcnow().isoformat(),
        "version": SERVICE_VERSION,
    }


@monitoring_router.get("/detailed")
async def detailed_health_check(
    provider: CompletionProvider = Depends(get_completion_provider),
) -> Dict[str, Any]:
    """
    Detailed health check with component status

    Does not call the completion API; use `/api/test` for that.
    """
    logger.info("Detailed health check requested")

    health_status = {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": SERVICE_VERSION,
        "service": SERVICE_NAME,
        "components": {},
    }

    db_info = await get_database_info()
    health_status["components"]["database"] = {
        "status": "healthy" if db_info["connection_healthy"] else "unhealthy",
        "info": db_info,
    }
    if not db_info["connection_healthy"]:
        health_status["status"] = "degraded"

    if provider.has_credentials:
        health_status["components"]["completion_api"] = {"status": "configured"}
    else:
        logger.warning("Completion API key is not configured")
        health_status["components"]["completion_api"] = {"status": "unconfigured"}
        health_status["status"] = "degraded"

    return health_status

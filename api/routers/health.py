"""Health check endpoints for the Docsmith API.

This module provides a liveness endpoint that never touches external
services and a readiness endpoint that checks Neo4j and the ingestion
supervisor.
"""

from enum import Enum

import structlog
from fastapi import APIRouter, Response, status
from neo4j.exceptions import DriverError, Neo4jError
from pydantic import BaseModel, Field

from api.dependencies import GraphConnectionDep, SettingsDep, SupervisorDep

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """Response model for the liveness endpoint."""

    status: HealthStatus = Field(..., description="Health status")
    message: str | None = Field(None, description="Optional status message")


class ReadinessResponse(BaseModel):
    """Response model for readiness check.

    Attributes:
        status: Overall readiness status.
        checks: Individual service check results.
    """

    status: HealthStatus = Field(..., description="Overall readiness status")
    checks: dict[str, dict[str, str]] = Field(
        default_factory=dict,
        description="Individual service check results",
    )


@router.get(
    "",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic health status of the API.",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """Report that the API process is running.

    Returns:
        HealthResponse with healthy status.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        message=f"{settings.app_name} is running",
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness check",
    description="Checks if the application is ready to accept push notifications.",
    responses={
        status.HTTP_200_OK: {"description": "Application is ready"},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Application is not ready"},
    },
)
async def readiness_check(
    response: Response,
    settings: SettingsDep,
    graph_connection: GraphConnectionDep,
    supervisor: SupervisorDep,
) -> ReadinessResponse:
    """Check that Neo4j is reachable and the supervisor accepts runs.

    Args:
        response: Outgoing response, set to 503 when not ready.
        settings: Application settings.
        graph_connection: Neo4j connection for health check.
        supervisor: Ingestion supervisor.

    Returns:
        ReadinessResponse with check results for each service.
    """
    checks: dict[str, dict[str, str]] = {}
    overall_healthy = True

    try:
        neo4j_health = await graph_connection.health_check()
    except (Neo4jError, DriverError) as e:
        logger.warning("Neo4j health check failed", error=str(e))
        neo4j_health = {"status": "unhealthy", "message": str(e)}

    if neo4j_health.get("status") == "healthy":
        checks["neo4j"] = {"status": "healthy", "uri": settings.neo4j_uri}
    else:
        checks["neo4j"] = {
            "status": "unhealthy",
            "message": str(neo4j_health.get("message", "Unknown error")),
        }
        overall_healthy = False

    checks["ingestion"] = {
        "status": "healthy",
        "inflight": str(len(supervisor.inflight())),
    }

    if not overall_healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status=HealthStatus.HEALTHY if overall_healthy else HealthStatus.UNHEALTHY,
        checks=checks,
    )

"""Health check and metrics endpoints."""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from hcm_webhooks import __version__
from hcm_webhooks.api.dependencies import ServicesDep
from hcm_webhooks.api.schemas.health import (
    ComponentHealth,
    HealthDetailResponse,
    HealthResponse,
    HealthStatus,
)
from hcm_webhooks.core.metrics import get_metrics
from hcm_webhooks.webhooks.factory import WebhookServices
from hcm_webhooks.webhooks.pipeline import ProcessingPipeline

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Basic health check",
    description="Returns basic liveness status. No authentication required.",
)
async def health_check() -> HealthResponse:
    """Basic liveness check endpoint.

    Returns 200 if the application is running, regardless of
    dependency health. Use /health/ready for full readiness check.
    """
    return HealthResponse(
        status=HealthStatus.HEALTHY,
        version=__version__,
        timestamp=datetime.now(UTC),
    )


@router.get(
    "/health/db",
    response_model=HealthDetailResponse,
    summary="Database health check",
    description="Checks database connectivity. No authentication required.",
)
async def health_db(services: ServicesDep) -> HealthDetailResponse:
    """Database connectivity check with latency."""
    db_health = await _check_database(services)
    return HealthDetailResponse(
        status=db_health.status,
        version=__version__,
        timestamp=datetime.now(UTC),
        database=db_health,
    )


@router.get(
    "/health/ready",
    response_model=HealthDetailResponse,
    summary="Full readiness check",
    description="Checks the database and the processing pipeline.",
)
async def health_ready(services: ServicesDep) -> HealthDetailResponse:
    """Full readiness check endpoint for load balancer probes."""
    db_health = await _check_database(services)
    pipeline_health = _check_pipeline(services.pipeline)

    return HealthDetailResponse(
        status=_aggregate_health([db_health, pipeline_health]),
        version=__version__,
        timestamp=datetime.now(UTC),
        database=db_health,
        pipeline=pipeline_health,
        details={
            "checks_performed": ["database", "pipeline"],
            "queue_depth": services.pipeline.queue_depth,
        },
    )


@router.get(
    "/metrics",
    summary="Prometheus metrics",
    include_in_schema=False,
)
async def metrics() -> Response:
    body, content_type = get_metrics()
    return Response(content=body, media_type=content_type)


async def _check_database(services: WebhookServices) -> ComponentHealth:
    start = time.perf_counter()
    try:
        async with services.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return ComponentHealth(
            status=HealthStatus.UNHEALTHY,
            message=f"Database connection failed: {str(e)[:100]}",
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
    return ComponentHealth(
        status=HealthStatus.HEALTHY,
        message="Database connection successful",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
    )


def _check_pipeline(pipeline: ProcessingPipeline) -> ComponentHealth:
    if not pipeline.running:
        return ComponentHealth(status=HealthStatus.UNHEALTHY, message="Pipeline not running")
    if pipeline.queue_depth >= pipeline.settings.queue_size:
        return ComponentHealth(status=HealthStatus.DEGRADED, message="Processing queue is full")
    return ComponentHealth(status=HealthStatus.HEALTHY, message="Pipeline running")


def _aggregate_health(components: list[ComponentHealth]) -> HealthStatus:
    """UNHEALTHY if any component is, else DEGRADED if any is, else HEALTHY."""
    statuses = [c.status for c in components]
    if HealthStatus.UNHEALTHY in statuses:
        return HealthStatus.UNHEALTHY
    if HealthStatus.DEGRADED in statuses:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY

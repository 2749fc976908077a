"""
Health check and metrics endpoints.
PII-safe: no user data in responses.
"""
from typing import Any, Dict

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from app.core.config import get_settings
from app.core.metrics import get_metrics_collector
from app.schemas.wellness_plan import get_plan_schema_hash
from app.services.model_client import get_model_client
from app.services.safety import get_safety_rules_hash

SERVICE_NAME = "wellness-plan-service"
SERVICE_VERSION = "0.1.0"

router = APIRouter(tags=["health"])


# === Response Models ===

class HealthResponse(BaseModel):
    """Basic health check response."""
    ok: bool


class ReadyResponse(BaseModel):
    """Readiness check response."""
    ready: bool
    checks: Dict[str, bool]


class DetailedHealthResponse(BaseModel):
    """Detailed health response for /v1/health."""
    ok: bool
    service: str = Field(default=SERVICE_NAME)
    version: str
    model_version: str = Field(alias="modelVersion")
    backend: str
    plan_store_backend: str = Field(alias="planStoreBackend")
    safety_rules_hash: str = Field(alias="safetyRulesHash")
    plan_schema_hash: str = Field(alias="planSchemaHash")
    checks: Dict[str, bool]

    class Config:
        populate_by_name = True


class MetricsResponse(BaseModel):
    """Metrics response."""
    uptime_seconds: int = Field(alias="uptimeSeconds")
    total_requests: int = Field(alias="totalRequests")
    success_count: int = Field(alias="successCount")
    error_count: int = Field(alias="errorCount")
    error_codes: Dict[str, int] = Field(alias="errorCodes")
    latency: Dict[str, Any]
    inference_latency: Dict[str, Any] = Field(alias="inferenceLatency")
    plan_sources: Dict[str, int] = Field(alias="planSources")
    safety_verdicts: Dict[str, int] = Field(alias="safetyVerdicts")
    tier_failures: Dict[str, int] = Field(alias="tierFailures")
    rate_limited: int = Field(alias="rateLimited")

    class Config:
        populate_by_name = True


async def check_backend_health() -> Dict[str, bool]:
    """Reachability of the configured model backend, keyed '{backend}_reachable'."""
    client = get_model_client()
    return {f"{client.backend}_reachable": await client.check_health()}


# === Endpoints ===

@router.get(
    "/healthz",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
    description="Returns 200 if the service is alive"
)
async def health_check() -> HealthResponse:
    """Liveness probe for Kubernetes/Cloud Run."""
    return HealthResponse(ok=True)


@router.get(
    "/readyz",
    response_model=ReadyResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness probe",
    description="Returns 200 with ready=false when the model backend is unreachable"
)
async def readiness_check() -> ReadyResponse:
    """
    Readiness probe.

    Plan generation still succeeds through the fallback when the backend is
    down, but the service reports not-ready so traffic can shift elsewhere.
    """
    checks = await check_backend_health()
    return ReadyResponse(ready=all(checks.values()), checks=checks)


@router.get(
    "/v1/health",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Detailed health check",
    description="Returns model version, backend reachability and rule fingerprints"
)
async def detailed_health_check() -> DetailedHealthResponse:
    settings = get_settings()
    client = get_model_client()
    checks = await check_backend_health()

    return DetailedHealthResponse(
        ok=all(checks.values()),
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        model_version=client.model_version,
        backend=client.backend,
        plan_store_backend=settings.plan_store_backend,
        safety_rules_hash=get_safety_rules_hash(),
        plan_schema_hash=get_plan_schema_hash(),
        checks=checks
    )


@router.get(
    "/v1/metrics",
    response_model=MetricsResponse,
    status_code=status.HTTP_200_OK,
    summary="Service metrics",
    description="Returns aggregated service metrics (PII-safe)"
)
async def get_metrics() -> MetricsResponse:
    """
    Get aggregated metrics.
    All values are counters or sums; no user identifiers.
    """
    snapshot = get_metrics_collector().get_snapshot()

    return MetricsResponse(
        uptime_seconds=snapshot["uptime_seconds"],
        total_requests=snapshot["total_requests"],
        success_count=snapshot["success_count"],
        error_count=snapshot["error_count"],
        error_codes=snapshot["error_codes"],
        latency=snapshot["latency"],
        inference_latency=snapshot["inference_latency"],
        plan_sources=snapshot["plan_sources"],
        safety_verdicts=snapshot["safety_verdicts"],
        tier_failures=snapshot["tier_failures"],
        rate_limited=snapshot["rate_limited"]
    )

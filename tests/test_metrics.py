import pytest
from fastapi import status
from httpx import AsyncClient, ASGITransport

from app.core.metrics import get_metrics_collector
from app.main import app


def test_record_request_success_and_error():
    metrics = get_metrics_collector()

    metrics.record_request(latency_ms=100, inference_ms=80, success=True)
    metrics.record_request(latency_ms=50, inference_ms=0, success=True)
    metrics.record_request(latency_ms=30, inference_ms=0, success=False, error_code="MODEL_ERROR")

    snapshot = metrics.get_snapshot()
    assert snapshot["total_requests"] == 3
    assert snapshot["success_count"] == 2
    assert snapshot["error_count"] == 1
    assert snapshot["error_codes"] == {"MODEL_ERROR": 1}
    assert snapshot["latency"]["sum_ms"] == 180
    # Crisis/fallback runs report 0 and are kept out of inference latency
    assert snapshot["inference_latency"]["count"] == 1
    assert snapshot["inference_latency"]["avg_ms"] == 80


def test_record_plan_counters():
    metrics = get_metrics_collector()

    metrics.record_plan(source="structured", verdict="none")
    metrics.record_plan(
        source="fallback",
        verdict="concerning",
        tier_failures=[
            {"tier": "structured", "reason": "timeout"},
            {"tier": "freeform", "reason": "timeout"},
        ],
    )
    metrics.record_plan(source="crisis", verdict="critical")

    snapshot = metrics.get_snapshot()
    assert snapshot["plan_sources"] == {"structured": 1, "fallback": 1, "crisis": 1}
    assert snapshot["safety_verdicts"] == {"none": 1, "concerning": 1, "critical": 1}
    assert snapshot["tier_failures"] == {"structured": 1, "freeform": 1}


def test_reset():
    metrics = get_metrics_collector()
    metrics.record_rate_limited()
    metrics.reset()

    snapshot = metrics.get_snapshot()
    assert snapshot["rate_limited"] == 0
    assert snapshot["total_requests"] == 0


@pytest.mark.asyncio
async def test_metrics_endpoint_shape():
    get_metrics_collector().record_plan(source="freeform", verdict="none")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/v1/metrics")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["planSources"] == {"freeform": 1}

    # Counters only: no user identifiers or text
    assert set(data.keys()) == {
        "uptimeSeconds",
        "totalRequests",
        "successCount",
        "errorCount",
        "errorCodes",
        "latency",
        "inferenceLatency",
        "planSources",
        "safetyVerdicts",
        "tierFailures",
        "rateLimited",
    }

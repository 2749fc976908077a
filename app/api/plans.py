"""
Wellness plan API endpoints.
PII-safe: No logging of request body, plan content, titles or user identifiers.
"""
import time
import uuid
from typing import Annotated, Union

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.core.auth import get_current_user_id, verify_auth_header
from app.core.logging import get_safe_logger
from app.core.metrics import get_metrics_collector
from app.core.rate_limiter import get_rate_limiter
from app.schemas.request import GeneratePlanRequest, RenamePlanRequest, SavePlanRequest
from app.schemas.response import (
    ErrorDetail,
    ErrorResponse,
    GeneratePlanResponse,
    PlanMetadata,
    ResponseMetadata,
    SavedPlanListResponse,
    SavedPlanResponse,
)
from app.services.exceptions import ServiceError
from app.services.model_client import get_model_version
from app.services.plan_store import get_plan_store
from app.services.wellness_pipeline import run_wellness_pipeline

# Model version reported when no model produced the plan (crisis or fallback)
RULES_MODEL_VERSION = "rules-v1"

logger = get_safe_logger(__name__)


def get_request_id(
    x_request_id: Annotated[str | None, Header(alias="X-Request-ID")] = None
) -> str:
    """
    Get or generate request ID from header.
    """
    if x_request_id and len(x_request_id) <= 100:
        return x_request_id
    return str(uuid.uuid4())


async def check_rate_limit(request: Request) -> None:
    """
    FastAPI dependency to check the per-user rate limit.

    Raises HTTPException 429 if the limit is exceeded.
    PII-safe: Does not log the user id.
    """
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        return

    rate_limiter = get_rate_limiter()
    allowed, remaining = rate_limiter.check_and_record(user_id)

    if not allowed:
        get_metrics_collector().record_rate_limited()
        reset_seconds = rate_limiter.get_reset_time(user_id)

        logger.warning(
            "Rate limit exceeded",
            error_code="RATE_LIMITED",
            reset_seconds=reset_seconds
        )

        error_response = ErrorResponse(
            success=False,
            error=ErrorDetail(
                code="RATE_LIMITED",
                message=f"Rate limit exceeded. Try again in {reset_seconds} seconds.",
                retryable=True
            ),
            metadata=ResponseMetadata(
                modelVersion=get_model_version(),
                inferenceMs=0,
                requestId=request.headers.get("X-Request-ID", str(uuid.uuid4()))
            )
        )
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=error_response.model_dump(by_alias=True)
        )

    request.state.rate_limit_remaining = remaining


# Auth then rate limit, both at router level - executes BEFORE body parsing
router = APIRouter(
    prefix="/v1/plans",
    tags=["plans"],
    dependencies=[Depends(verify_auth_header), Depends(check_rate_limit)],
)


def _metadata(request_id: str) -> ResponseMetadata:
    return ResponseMetadata(modelVersion=RULES_MODEL_VERSION, inferenceMs=0, requestId=request_id)


def _service_error_response(e: ServiceError, request_id: str) -> JSONResponse:
    error_response = ErrorResponse(
        success=False,
        error=ErrorDetail(
            code=e.error_code.value,
            message=e.message,
            retryable=e.retryable
        ),
        metadata=_metadata(request_id)
    )
    return JSONResponse(
        status_code=e.status_code,
        content=error_response.model_dump(by_alias=True)
    )


@router.post(
    "/generate",
    response_model=GeneratePlanResponse,
    status_code=status.HTTP_200_OK,
    summary="Generate a wellness plan",
    description="Runs the safety-gated pipeline: sanitize, classify, crisis or generate with fallback",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid request"},
        401: {"model": ErrorResponse, "description": "Unauthorized"},
        429: {"model": ErrorResponse, "description": "Rate limited"},
        500: {"model": ErrorResponse, "description": "Internal error"},
    },
)
async def generate_wellness_plan(
    request_body: GeneratePlanRequest,
    request_id: Annotated[str, Depends(get_request_id)],
) -> Union[GeneratePlanResponse, JSONResponse]:
    """
    Generate a plan from free text.

    PII Safety:
    - Auth verified at router level BEFORE body parsing
    - request_body is NEVER logged
    - Model failures degrade to the fallback plan and never surface here
    """
    start_time = time.perf_counter()
    metrics = get_metrics_collector()

    logger.info(
        "Generate request started",
        request_id=request_id,
        method="POST",
        path="/v1/plans/generate"
    )

    try:
        output, pipeline_metrics = await run_wellness_pipeline(request_body.user_input)
    except Exception as e:
        latency_ms = int((time.perf_counter() - start_time) * 1000)
        logger.error(
            "Generate request failed",
            error_code="MODEL_ERROR",
            request_id=request_id,
            status="error",
            status_code=500,
            latency_ms=latency_ms,
            exception_class=type(e).__name__
        )
        metrics.record_request(
            latency_ms=latency_ms,
            inference_ms=0,
            success=False,
            error_code="MODEL_ERROR"
        )
        error_response = ErrorResponse(
            success=False,
            error=ErrorDetail(code="MODEL_ERROR", message="Internal processing error", retryable=True),
            metadata=_metadata(request_id)
        )
        return JSONResponse(status_code=500, content=error_response.model_dump(by_alias=True))

    latency_ms = int((time.perf_counter() - start_time) * 1000)
    inference_ms = pipeline_metrics["inferenceMs"]
    model_version = pipeline_metrics["modelVersion"] or RULES_MODEL_VERSION

    logger.info(
        "Generate request completed",
        request_id=request_id,
        status="success",
        status_code=200,
        latency_ms=latency_ms,
        inference_ms=inference_ms,
        model_version=model_version,
        plan_source=pipeline_metrics["planSource"],
        safety_verdict=pipeline_metrics["safetyVerdict"]
    )
    metrics.record_request(latency_ms=latency_ms, inference_ms=inference_ms, success=True)
    metrics.record_plan(
        source=pipeline_metrics["planSource"],
        verdict=pipeline_metrics["safetyVerdict"],
        tier_failures=pipeline_metrics["tierFailures"],
    )

    return GeneratePlanResponse(
        success=True,
        data=output,
        metadata=PlanMetadata(
            modelVersion=model_version,
            inferenceMs=inference_ms,
            requestId=request_id,
            planSource=pipeline_metrics["planSource"],
            safetyVerdict=pipeline_metrics["safetyVerdict"],
            inputTruncated=pipeline_metrics["inputTruncated"],
        )
    )


@router.post(
    "",
    response_model=SavedPlanResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a plan",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def save_plan(
    request_body: SavePlanRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> Union[SavedPlanResponse, JSONResponse]:
    """Persist a generated plan, optionally under a custom title."""
    try:
        saved = await run_in_threadpool(
            get_plan_store().save_plan, user_id, request_body.plan, request_body.title
        )
    except ServiceError as e:
        return _service_error_response(e, request_id)

    logger.info("Plan saved", request_id=request_id, status_code=201)
    return SavedPlanResponse(data=saved, metadata=_metadata(request_id))


@router.get(
    "",
    response_model=SavedPlanListResponse,
    summary="List saved plans, newest first",
    responses={503: {"model": ErrorResponse}},
)
async def list_plans(
    user_id: Annotated[str, Depends(get_current_user_id)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> Union[SavedPlanListResponse, JSONResponse]:
    try:
        plans = await run_in_threadpool(get_plan_store().list_plans, user_id)
    except ServiceError as e:
        return _service_error_response(e, request_id)

    logger.info("Plans listed", request_id=request_id, plan_count=len(plans))
    return SavedPlanListResponse(data=plans, metadata=_metadata(request_id))


@router.get(
    "/{plan_id}",
    response_model=SavedPlanResponse,
    summary="Get one saved plan",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def get_plan(
    plan_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> Union[SavedPlanResponse, JSONResponse]:
    try:
        saved = await run_in_threadpool(get_plan_store().get_plan, user_id, plan_id)
    except ServiceError as e:
        return _service_error_response(e, request_id)
    return SavedPlanResponse(data=saved, metadata=_metadata(request_id))


@router.patch(
    "/{plan_id}",
    response_model=SavedPlanResponse,
    summary="Rename a saved plan",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def rename_plan(
    plan_id: str,
    request_body: RenamePlanRequest,
    user_id: Annotated[str, Depends(get_current_user_id)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> Union[SavedPlanResponse, JSONResponse]:
    """Rename updates personalizedPlan.title only."""
    try:
        saved = await run_in_threadpool(
            get_plan_store().rename_plan, user_id, plan_id, request_body.title
        )
    except ServiceError as e:
        return _service_error_response(e, request_id)

    logger.info("Plan renamed", request_id=request_id, status_code=200)
    return SavedPlanResponse(data=saved, metadata=_metadata(request_id))


@router.delete(
    "/{plan_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a saved plan",
    responses={404: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def delete_plan(
    plan_id: str,
    user_id: Annotated[str, Depends(get_current_user_id)],
    request_id: Annotated[str, Depends(get_request_id)],
) -> Response:
    try:
        await run_in_threadpool(get_plan_store().delete_plan, user_id, plan_id)
    except ServiceError as e:
        return _service_error_response(e, request_id)

    logger.info("Plan deleted", request_id=request_id, status_code=204)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

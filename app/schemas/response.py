"""
Response schemas for the plans API.
PII note: plan payloads are derived from user text - NEVER log.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from app.schemas.wellness_plan import WellnessPlanOutput


class SavedPlan(WellnessPlanOutput):
    """
    A persisted plan: the full WellnessPlanOutput plus the store-assigned id
    and creation timestamp.
    """
    id: str = Field(..., description="Store-assigned document id")
    created_at: datetime = Field(..., alias="createdAt", description="Creation time (UTC)")

    class Config:
        populate_by_name = True


# === API Response Wrappers ===

class ResponseMetadata(BaseModel):
    """Metadata included in all responses."""
    model_version: str = Field(..., alias="modelVersion", description="Model version used")
    inference_ms: int = Field(..., alias="inferenceMs", description="Inference time in ms")
    request_id: str = Field(..., alias="requestId", description="Request ID for tracing")

    class Config:
        populate_by_name = True


class PlanMetadata(ResponseMetadata):
    """Metadata for plan generation responses."""
    plan_source: Literal["crisis", "structured", "freeform", "fallback"] = Field(
        ...,
        alias="planSource",
        description="Pipeline tier that produced the plan"
    )
    safety_verdict: Literal["none", "concerning", "critical"] = Field(
        ...,
        alias="safetyVerdict",
        description="Safety classifier verdict for the input"
    )
    input_truncated: bool = Field(
        default=False,
        alias="inputTruncated",
        description="Whether the input was capped before processing"
    )

    class Config:
        populate_by_name = True


class ErrorDetail(BaseModel):
    """Error details for failed requests."""
    code: Literal[
        "UNAUTHORIZED",
        "BAD_REQUEST",
        "NOT_FOUND",
        "MODEL_ERROR",
        "BACKEND_UNAVAILABLE",
        "TIMEOUT",
        "RATE_LIMITED",
        "STORE_ERROR",
    ] = Field(
        ...,
        description="Error code"
    )
    message: str = Field(..., description="Human-readable error message")
    retryable: bool = Field(default=False, description="Whether the request can be retried")


class GeneratePlanResponse(BaseModel):
    """Successful plan generation response."""
    success: Literal[True] = True
    data: WellnessPlanOutput = Field(..., description="Generated plan")
    metadata: PlanMetadata = Field(..., description="Response metadata")

    class Config:
        populate_by_name = True


class SavedPlanResponse(BaseModel):
    """A single saved plan."""
    success: Literal[True] = True
    data: SavedPlan
    metadata: ResponseMetadata

    class Config:
        populate_by_name = True


class SavedPlanListResponse(BaseModel):
    """Saved plans, newest first."""
    success: Literal[True] = True
    data: List[SavedPlan] = Field(default_factory=list)
    metadata: ResponseMetadata

    class Config:
        populate_by_name = True


class ErrorResponse(BaseModel):
    """Error response."""
    success: Literal[False] = False
    error: ErrorDetail = Field(..., description="Error details")
    metadata: Optional[ResponseMetadata] = Field(default=None, description="Response metadata")

    class Config:
        populate_by_name = True

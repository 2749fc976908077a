"""
Request schemas with strict Pydantic validation.
PII note: these schemas carry user text - NEVER log instances.
"""
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from app.schemas.wellness_plan import WellnessPlanOutput

MAX_TITLE_CHARS = 120


class GeneratePlanRequest(BaseModel):
    """
    Request body for POST /v1/plans/generate.
    The input is never rejected for content; the pipeline masks and caps it.
    CRITICAL: Never log this object.
    """

    user_input: str = Field(
        ...,
        alias="userInput",
        description="Free-text description of how the user feels"
    )

    class Config:
        populate_by_name = True


class SavePlanRequest(BaseModel):
    """Request body for POST /v1/plans."""

    plan: WellnessPlanOutput = Field(..., description="Plan to persist, as returned by generate")
    title: Optional[str] = Field(
        default=None,
        max_length=MAX_TITLE_CHARS,
        description="Optional title overriding personalizedPlan.title"
    )

    @field_validator("title", mode="after")
    @classmethod
    def blank_title_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    class Config:
        populate_by_name = True


class RenamePlanRequest(BaseModel):
    """Request body for PATCH /v1/plans/{planId}."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=MAX_TITLE_CHARS,
        description="New plan title"
    )

    @field_validator("title", mode="after")
    @classmethod
    def title_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title must not be blank")
        return v.strip()

    class Config:
        populate_by_name = True

"""
WellnessPlanOutput schema.
Single source of truth for both model-output validation and the JSON shape
described in generation prompts.

PII note: plan text is derived from user input - NEVER log instances.
"""
import hashlib
import json
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

StepCategory = Literal[
    "movement",
    "sleep",
    "hydration",
    "nutrition",
    "social",
    "breathing",
    "cognitive",
    "other",
]
Level = Literal["low", "medium", "high"]

STEP_CATEGORIES: tuple[str, ...] = StepCategory.__args__
MIN_STEPS = 3
MAX_STEPS = 8
MIN_BULLETS = 3
MAX_BULLETS = 6
MAX_STEP_TEXT_CHARS = 120


class PlanStep(BaseModel):
    """One actionable micro-action inside a plan."""
    id: str = Field(..., min_length=1, description="Step identifier, unique within the plan")
    text: str = Field(
        ...,
        min_length=1,
        description=f"Imperative action, at most {MAX_STEP_TEXT_CHARS} characters"
    )
    category: StepCategory = Field(..., description="Wellness category of the step")
    duration_minutes: Optional[int] = Field(
        default=None,
        ge=0,
        alias="durationMinutes",
        description="Expected duration in minutes"
    )
    frequency: Optional[str] = Field(default=None, description="How often, e.g. 'daily'")
    priority: Optional[Level] = Field(default=None, description="Relative priority")
    when: Optional[str] = Field(default=None, description="Timing hint, e.g. 'before bed'")
    safety: Optional[str] = Field(default=None, description="Safety caveat if relevant")
    follow_up_question: Optional[str] = Field(
        default=None,
        alias="followUpQuestion",
        description="Short reflective question for the user"
    )

    class Config:
        populate_by_name = True


class PersonalizedPlan(BaseModel):
    """A short personalized plan: overview, bullets and 3-8 steps."""
    id: str = Field(..., min_length=1, description="Plan identifier")
    title: str = Field(..., min_length=1, description="Short plan title")
    overview: str = Field(..., description="One or two sentence overview")
    summary_bullets: List[str] = Field(
        ...,
        min_length=MIN_BULLETS,
        max_length=MAX_BULLETS,
        alias="summaryBullets",
        description=f"{MIN_BULLETS}-{MAX_BULLETS} summary bullets"
    )
    steps: List[PlanStep] = Field(
        ...,
        min_length=MIN_STEPS,
        max_length=MAX_STEPS,
        description=f"{MIN_STEPS}-{MAX_STEPS} actionable steps"
    )
    estimated_effort: Level = Field(..., alias="estimatedEffort", description="Overall effort")
    timeframe: str = Field(..., min_length=1, description="Human-readable timeframe, e.g. '1 week'")

    @field_validator("steps")
    @classmethod
    def validate_unique_step_ids(cls, v: List[PlanStep]) -> List[PlanStep]:
        ids = [step.id for step in v]
        if len(ids) != len(set(ids)):
            raise ValueError("Step ids must be unique within a plan")
        return v

    class Config:
        populate_by_name = True


class WellnessPlanOutput(BaseModel):
    """
    Top-level pipeline response.
    Invariant: safety_flag is True if and only if safety_message is not None.
    """
    emotional_support: str = Field(
        ...,
        alias="emotionalSupport",
        description="Validation, empathy and gentle coping strategies"
    )
    wellness_tips: str = Field(
        ...,
        alias="wellnessTips",
        description="Safe, actionable tips on hydration, sleep, movement and nutrition"
    )
    personalized_plan: PersonalizedPlan = Field(
        ...,
        alias="personalizedPlan",
        description="The personalized plan"
    )
    safety_flag: bool = Field(
        default=False,
        alias="safetyFlag",
        description="True only when the response is a safety redirect"
    )
    safety_message: Optional[str] = Field(
        default=None,
        alias="safetyMessage",
        description="Present exactly when safetyFlag is true"
    )

    @field_validator("safety_flag", mode="before")
    @classmethod
    def coerce_missing_flag(cls, v):
        return False if v is None else v

    @field_validator("safety_message", mode="before")
    @classmethod
    def blank_message_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def validate_safety_pair(self) -> "WellnessPlanOutput":
        if self.safety_flag != (self.safety_message is not None):
            raise ValueError("safetyFlag must be true exactly when safetyMessage is set")
        return self

    class Config:
        populate_by_name = True


@lru_cache()
def get_plan_json_schema() -> dict:
    """JSON schema (camelCase aliases) of WellnessPlanOutput."""
    return WellnessPlanOutput.model_json_schema(by_alias=True)


@lru_cache()
def get_plan_schema_hash() -> str:
    """Short deterministic hash of the plan schema, used to spot prompt/schema drift."""
    canonical = json.dumps(get_plan_json_schema(), sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]

"""
Plan generator: ordered generation strategies with a guaranteed fallback.

Tiers (strictly sequential, each only after the previous definitely failed):
1. structured - schema-constrained generation, validated against WellnessPlanOutput
2. freeform   - stricter JSON-only prompt at lower temperature, manual extraction
3. fallback   - rule-based synthesis, never fails

Every exception raised inside tiers 1-2 becomes a tier failure and is logged
with a PII-safe reason code. PII-safe: NEVER log prompts or model output.
"""
import json
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from app.core.config import get_settings
from app.core.logging import get_safe_logger
from app.schemas.wellness_plan import (
    WellnessPlanOutput,
    get_plan_json_schema,
    get_plan_schema_hash,
)
from app.services.exceptions import ModelError, ServiceError
from app.services.fallback_synthesizer import synthesize_fallback_plan
from app.services.model_client import ModelClient
from app.services.prompt_builder import build_retry_prompt
from app.services.safety.safety_classifier import SafetyVerdict
from app.services.telemetry import emit_event

logger = get_safe_logger(__name__)

_SLUG_INVALID = re.compile(r"[^a-z0-9]+")


@dataclass
class GenerationRequest:
    """Inputs shared by all strategies. Contains user text - never log."""
    sanitized: str
    verdict: SafetyVerdict
    prompt: str


@dataclass
class StrategyResult:
    """Result-or-failure value returned by each strategy."""
    output: Optional[WellnessPlanOutput] = None
    failure_reason: Optional[str] = None
    model_version: Optional[str] = None
    inference_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.output is not None


@dataclass
class GenerationOutcome:
    """Final generator result. `source` names the tier that produced it."""
    output: WellnessPlanOutput
    source: str
    failures: List[Dict[str, str]] = field(default_factory=list)
    model_version: Optional[str] = None
    inference_ms: int = 0


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (``` or ```json) if present."""
    output = text.strip()
    if output.startswith("```"):
        lines = output.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        output = "\n".join(lines)
    return output.strip()


def extract_json_object(text: Optional[str]) -> Dict[str, Any]:
    """
    Extract the outermost JSON object from raw model text.

    Raises:
        ModelError: If no object is found or it does not parse
    """
    if not text:
        raise ModelError("Empty model output")

    output = strip_code_fences(text)

    start_idx = output.find("{")
    end_idx = output.rfind("}") + 1
    if start_idx == -1 or end_idx == 0:
        raise ModelError("No JSON object found in output")

    try:
        data = json.loads(output[start_idx:end_idx])
    except json.JSONDecodeError:
        raise ModelError("Invalid JSON in model output")

    if not isinstance(data, dict):
        raise ModelError("Model output is not a JSON object")
    return data


def failure_reason(exc: Exception) -> str:
    """PII-safe reason code for an exception raised inside a tier."""
    if isinstance(exc, ValidationError):
        return "schema_validation"
    if isinstance(exc, ServiceError):
        return exc.error_code.value.lower()
    return f"error_{type(exc).__name__}"


def _stamp_plan_id(output: WellnessPlanOutput) -> WellnessPlanOutput:
    """Make model-chosen plan ids collision-resistant with a millisecond suffix."""
    slug = _SLUG_INVALID.sub("-", output.personalized_plan.id.lower()).strip("-") or "plan"
    output.personalized_plan.id = f"{slug[:48]}-{int(time.time() * 1000)}"
    return output


class GenerationStrategy:
    """One attempt in the ordered tier list."""

    name = "base"

    async def attempt(self, request: GenerationRequest, client: ModelClient) -> StrategyResult:
        raise NotImplementedError


class StructuredStrategy(GenerationStrategy):
    """Tier 1: schema-constrained output."""

    name = "structured"

    async def attempt(self, request: GenerationRequest, client: ModelClient) -> StrategyResult:
        settings = get_settings()
        result = await client.generate(
            request.prompt,
            output_schema=get_plan_json_schema(),
            temperature=settings.structured_temperature,
            top_p=settings.top_p,
            top_k=settings.top_k,
        )
        if result.output is None:
            return StrategyResult(failure_reason="no_structured_output")

        output = WellnessPlanOutput.model_validate(result.output)
        return StrategyResult(
            output=output,
            model_version=result.model_version,
            inference_ms=result.inference_ms,
        )


class FreeformRetryStrategy(GenerationStrategy):
    """Tier 2: JSON-only instruction, raw text, manual extraction."""

    name = "freeform"

    async def attempt(self, request: GenerationRequest, client: ModelClient) -> StrategyResult:
        settings = get_settings()
        result = await client.generate(
            build_retry_prompt(request.sanitized, request.verdict),
            output_schema=None,
            temperature=settings.retry_temperature,
            top_p=settings.top_p,
            top_k=settings.top_k,
        )
        data = extract_json_object(result.text)
        output = WellnessPlanOutput.model_validate(data)
        return StrategyResult(
            output=output,
            model_version=result.model_version,
            inference_ms=result.inference_ms,
        )


DEFAULT_STRATEGIES: Sequence[GenerationStrategy] = (StructuredStrategy(), FreeformRetryStrategy())


class PlanGenerator:
    """
    Iterates strategies in order and stops at the first success.
    Falls through to the rule-based fallback, which is total.
    """

    def __init__(
        self,
        client: ModelClient,
        strategies: Optional[Sequence[GenerationStrategy]] = None,
    ):
        self._client = client
        self._strategies = list(strategies) if strategies is not None else list(DEFAULT_STRATEGIES)

    async def generate(self, request: GenerationRequest) -> GenerationOutcome:
        settings = get_settings()
        failures: List[Dict[str, str]] = []

        for strategy in self._strategies:
            try:
                result = await strategy.attempt(request, self._client)
            except Exception as exc:
                result = StrategyResult(failure_reason=failure_reason(exc))
                logger.warning(
                    "Generation tier raised",
                    tier=strategy.name,
                    exception_class=type(exc).__name__,
                )

            if result.ok:
                output = _stamp_plan_id(result.output)
                logger.info(
                    "Generation tier succeeded",
                    tier=strategy.name,
                    step_count=len(output.personalized_plan.steps),
                    bullet_count=len(output.personalized_plan.summary_bullets),
                    inference_ms=result.inference_ms,
                )
                return GenerationOutcome(
                    output=output,
                    source=strategy.name,
                    failures=failures,
                    model_version=result.model_version,
                    inference_ms=result.inference_ms,
                )

            reason = result.failure_reason or "unknown"
            failures.append({"tier": strategy.name, "reason": reason})
            logger.warning(
                "Generation tier failed, moving to next tier",
                tier=strategy.name,
                failure_reason=reason,
            )
            emit_event(
                name=f"{strategy.name}_tier_failed",
                payload={
                    "tier": strategy.name,
                    "reason": reason,
                    "planSchemaHash": get_plan_schema_hash(),
                    "safetyVerdict": request.verdict.value,
                },
                cooldown_s=settings.telemetry_cooldown_s,
            )

        # Terminal tier is pure and total; errors here propagate
        output = synthesize_fallback_plan(request.sanitized)
        logger.info(
            "Fallback plan synthesized",
            tier="fallback",
            step_count=len(output.personalized_plan.steps),
        )
        return GenerationOutcome(output=output, source="fallback", failures=failures)

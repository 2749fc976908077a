"""
Safety-gated wellness plan pipeline.

Stages:
1. Sanitize (PII masking, length cap)
2. Classify (two-tier crisis-language scan)
3. Crisis short-circuit (critical verdict, no model call)
4. Build prompt (optional safety annotation)
5. Generate (structured -> freeform retry -> fallback)

Effectively total: model-client failures never reach the caller.
PII-safe: metrics only, no content logging.
"""
import time
from typing import Any, Dict, Optional

from app.core.config import get_settings
from app.core.logging import get_safe_logger
from app.schemas.wellness_plan import WellnessPlanOutput, get_plan_schema_hash
from app.services.model_client import ModelClient, get_model_client
from app.services.plan_generator import GenerationRequest, PlanGenerator
from app.services.prompt_builder import build_plan_prompt
from app.services.safety import (
    SafetyVerdict,
    build_crisis_response,
    get_safety_rules_hash,
    is_truncated,
    sanitize_input,
    scan_safety,
)

logger = get_safe_logger(__name__)


async def run_wellness_pipeline(
    raw_input: Optional[str],
    client: Optional[ModelClient] = None,
) -> tuple[WellnessPlanOutput, Dict[str, Any]]:
    """
    Run the full pipeline for one user submission.

    Args:
        raw_input: Untrusted free text from the user (NEVER logged)
        client: Model client override; defaults to the configured backend.
            Not constructed at all on the crisis path.

    Returns:
        tuple[WellnessPlanOutput, dict]: A fresh plan and PII-safe metrics.
    """
    pipeline_start = time.perf_counter()
    settings = get_settings()
    metrics: Dict[str, Any] = {
        "planSource": None,
        "safetyVerdict": None,
        "safetyCategories": [],
        "inputTruncated": False,
        "tierFailures": [],
        "modelVersion": None,
        "inferenceMs": 0,
        "safetyRulesHash": get_safety_rules_hash(),
        "planSchemaHash": get_plan_schema_hash(),
        "totalPipelineMs": 0,
    }

    sanitized = sanitize_input(raw_input, max_chars=settings.input_max_chars)
    metrics["inputTruncated"] = is_truncated(sanitized)

    scan = scan_safety(sanitized)
    metrics["safetyVerdict"] = scan.verdict.value
    metrics["safetyCategories"] = list(scan.categories)

    if scan.verdict == SafetyVerdict.CRITICAL:
        output = build_crisis_response(scan.categories)
        metrics["planSource"] = "crisis"
        metrics["totalPipelineMs"] = int((time.perf_counter() - pipeline_start) * 1000)
        logger.warning(
            "Critical safety language detected, returning crisis response",
            safety_verdict=scan.verdict.value,
            safety_categories=",".join(scan.categories),
            plan_source="crisis",
        )
        return output, metrics

    prompt = build_plan_prompt(sanitized, scan.verdict)
    generator = PlanGenerator(client if client is not None else get_model_client())
    outcome = await generator.generate(
        GenerationRequest(sanitized=sanitized, verdict=scan.verdict, prompt=prompt)
    )

    metrics["planSource"] = outcome.source
    metrics["tierFailures"] = outcome.failures
    metrics["modelVersion"] = outcome.model_version
    metrics["inferenceMs"] = outcome.inference_ms
    metrics["totalPipelineMs"] = int((time.perf_counter() - pipeline_start) * 1000)

    logger.info(
        "Wellness pipeline completed",
        plan_source=outcome.source,
        safety_verdict=scan.verdict.value,
        input_truncated=metrics["inputTruncated"],
        latency_ms=metrics["totalPipelineMs"],
    )
    return outcome.output, metrics


async def generate_plan(
    raw_input: Optional[str],
    client: Optional[ModelClient] = None,
) -> WellnessPlanOutput:
    """Convenience wrapper returning only the plan."""
    output, _ = await run_wellness_pipeline(raw_input, client=client)
    return output

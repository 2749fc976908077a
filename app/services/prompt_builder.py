"""
Prompt construction for wellness plan generation.

The JSON shape shown to the model is rendered from the WellnessPlanOutput
JSON schema, so prompt and validator cannot drift apart silently.
PII-safe: prompts contain (sanitized) user text and are NEVER logged.
"""
import json
import re
from functools import lru_cache
from typing import List

from app.schemas.wellness_plan import (
    MAX_BULLETS,
    MAX_STEPS,
    MAX_STEP_TEXT_CHARS,
    MIN_BULLETS,
    MIN_STEPS,
    STEP_CATEGORIES,
    PersonalizedPlan,
    PlanStep,
    WellnessPlanOutput,
    get_plan_json_schema,
)
from app.services.safety.safety_classifier import SafetyVerdict

SAFETY_ANNOTATION = (
    "SAFETY NOTE: The user's message shows signs of emotional distress. "
    "Respond especially gently, validate their feelings, and include a clear, "
    "kind suggestion to reach out to a mental health professional or someone they trust."
)

# (context, pattern, rule). Rules for every matched context are added to the prompt.
CONTEXT_RULES = (
    (
        "work_stress",
        r"\b(?:work|job|boss|deadlines?|office|meetings?|shifts?)\b",
        "Work stress: favour desk-friendly actions that fit a workday "
        "(2-5 minute breaks, posture resets, stepping away from the screen).",
    ),
    (
        "stress",
        r"\b(?:stress\w*|overwhelm\w*|pressure)\b",
        "Stress: include at least one short breathing or movement break.",
    ),
    (
        "anxiety",
        r"\b(?:anxious|anxiety|panic\w*|worr(?:y|ied|ying)|nervous)\b",
        "Anxiety: include at least one breathing-focused step (box breathing, 4-7-8 breathing).",
    ),
    (
        "sleep",
        r"\b(?:sleep\w*|insomnia|awake at night)\b",
        "Sleep difficulty: include at least one sleep-category step "
        "(wind-down routine, consistent bedtime, screens off before bed).",
    ),
    (
        "fatigue",
        r"\b(?:tired|exhausted|fatigue\w*|drained|no energy|low energy)\b",
        "Low energy: prefer gentle movement, daylight and hydration over demanding workouts.",
    ),
    (
        "loneliness",
        r"\b(?:lonely|loneliness|isolated|alone)\b",
        "Loneliness: include one small social-connection step.",
    ),
    (
        "nutrition",
        r"\b(?:eat\w*|food|junk|diet|meals?|snack\w*|appetite)\b",
        "Eating: suggest one simple, non-restrictive nutrition step. "
        "Never recommend diets or calorie targets.",
    ),
)

_COMPILED_CONTEXT_RULES = [(c, re.compile(p, re.IGNORECASE), r) for c, p, r in CONTEXT_RULES]

GENERAL_RULES = (
    f"personalizedPlan.steps must contain {MIN_STEPS} to {MAX_STEPS} steps.",
    f"personalizedPlan.summaryBullets must contain {MIN_BULLETS} to {MAX_BULLETS} short bullets.",
    f"Each step text is one imperative action of at most {MAX_STEP_TEXT_CHARS} characters.",
    "Step ids are unique within the plan (step-1, step-2, ...).",
    f"Step category is one of: {', '.join(STEP_CATEGORIES)}.",
    "Keep steps concrete, small and safe; most should take under 30 minutes.",
    "Be supportive and non-diagnostic. Do not name conditions, medications or dosages.",
    "personalizedPlan.id is a short lowercase slug describing the plan.",
    "Set safetyFlag to false and safetyMessage to null unless the user may be in danger.",
)


# ---------------------------------------------------------------------------
# Schema rendering
# ---------------------------------------------------------------------------

def _bounds(node: dict) -> str:
    lo, hi = node.get("minItems"), node.get("maxItems")
    if lo is not None and hi is not None:
        return f" ({lo}-{hi} items)"
    if lo is not None:
        return f" (at least {lo} items)"
    if hi is not None:
        return f" (at most {hi} items)"
    return ""


def _render_type(node: dict, defs: dict, indent: int) -> str:
    if "$ref" in node:
        return _render_object(defs[node["$ref"].split("/")[-1]], defs, indent)
    if "allOf" in node and len(node["allOf"]) == 1:
        return _render_type(node["allOf"][0], defs, indent)
    if "anyOf" in node:
        return " | ".join(_render_type(n, defs, indent) for n in node["anyOf"])
    if "enum" in node:
        return " | ".join(json.dumps(v) for v in node["enum"])

    node_type = node.get("type")
    if node_type == "array":
        item = _render_type(node.get("items", {}), defs, indent)
        rendered = f"[{item}]" if item.startswith("{") else f"{item}[]"
        return rendered + _bounds(node)
    if node_type == "object" and "properties" in node:
        return _render_object(node, defs, indent)
    if node_type == "integer" and "minimum" in node:
        return f"integer (>= {node['minimum']})"
    return node_type or "any"


def _render_object(node: dict, defs: dict, indent: int) -> str:
    pad = "  " * (indent + 1)
    required = set(node.get("required", []))
    lines = []
    for name, prop in node.get("properties", {}).items():
        suffix = "" if name in required else " (optional)"
        lines.append(f'{pad}"{name}": {_render_type(prop, defs, indent + 1)}{suffix}')
    return "{\n" + ",\n".join(lines) + "\n" + "  " * indent + "}"


@lru_cache()
def describe_output_shape() -> str:
    """Render the plan JSON schema as a compact shape description."""
    schema = get_plan_json_schema()
    return _render_object(schema, schema.get("$defs", {}), 0)


@lru_cache()
def _few_shot_example() -> str:
    # Validated on construction, so the example always satisfies the schema
    example = WellnessPlanOutput(
        emotional_support=(
            "Exam season can feel like a lot, and it makes sense that you're anxious. "
            "Taking care of your basics is a real way to take care of your studying too."
        ),
        wellness_tips=(
            "Keep water on your desk, eat something with protein before long study blocks, "
            "and take a short walk between sessions."
        ),
        personalized_plan=PersonalizedPlan(
            id="calm-exam-week",
            title="Calm Exam Week",
            overview="A gentle routine to steady your nerves and keep your energy up while you study.",
            summary_bullets=[
                "Breathe slowly before each study block",
                "Eat regular, simple meals",
                "Move a little between sessions",
            ],
            steps=[
                PlanStep(id="step-1", text="Do 4 rounds of box breathing before you open your notes.",
                         category="breathing", duration_minutes=2, frequency="before each study block",
                         priority="high"),
                PlanStep(id="step-2", text="Eat a simple breakfast with protein, even if it's small.",
                         category="nutrition", frequency="daily", when="morning", priority="medium"),
                PlanStep(id="step-3", text="Take a 10-minute walk after every second study session.",
                         category="movement", duration_minutes=10, frequency="twice a day",
                         follow_up_question="How did your focus feel after the walk?"),
            ],
            estimated_effort="low",
            timeframe="1 week",
        ),
    )
    return json.dumps(example.model_dump(by_alias=True, exclude_none=True), indent=2)


# ---------------------------------------------------------------------------
# Prompt assembly
# ---------------------------------------------------------------------------

def detect_life_contexts(sanitized: str) -> List[str]:
    """Return the life-context keys whose keywords appear in the text."""
    if not sanitized:
        return []
    return [context for context, pattern, _ in _COMPILED_CONTEXT_RULES if pattern.search(sanitized)]


def _personalization_section(sanitized: str) -> str:
    matched = detect_life_contexts(sanitized)
    if not matched:
        return "- No specific life context detected: build a balanced, gentle starter plan."
    rules = [rule for context, _, rule in _COMPILED_CONTEXT_RULES if context in matched]
    return "\n".join(f"- {rule}" for rule in rules)


def _compose(sanitized: str, verdict: SafetyVerdict, strict: bool) -> str:
    general = "\n".join(f"{i}. {rule}" for i, rule in enumerate(GENERAL_RULES, start=1))

    if strict:
        output_rule = (
            "Return ONLY one JSON object. JSON only: no prose, no explanations, "
            "no markdown, no code fences. The first character must be '{' and the last '}'."
        )
    else:
        output_rule = "Respond with ONLY the JSON object."

    sections = []
    if verdict == SafetyVerdict.CONCERNING:
        sections.append(SAFETY_ANNOTATION)

    sections.append(
        "You are DAMII, a warm and practical wellness assistant. You support people who "
        "feel down or unwell with empathy and small, safe, everyday actions. "
        "You are not a doctor and you never diagnose."
    )
    sections.append(
        "## TASK\n"
        "Read the user's description of how they feel and return:\n"
        "- emotionalSupport: validation, empathy and gentle coping strategies\n"
        "- wellnessTips: safe, actionable tips on hydration, sleep, movement and nutrition\n"
        "- personalizedPlan: a short, personalized plan the user can start today"
    )
    sections.append(f"## OUTPUT FORMAT\nReturn one JSON object with exactly this shape:\n{describe_output_shape()}")
    sections.append(f"## RULES\n{general}")
    sections.append(f"## PERSONALIZATION\n{_personalization_section(sanitized)}")
    sections.append(f"## EXAMPLE OUTPUT\n{_few_shot_example()}")
    sections.append(f"## USER INPUT\n{sanitized or '(empty)'}")
    sections.append(f"## FINAL INSTRUCTION\n{output_rule}")

    return "\n\n".join(sections)


def build_plan_prompt(sanitized: str, verdict: SafetyVerdict) -> str:
    """Build the generation instruction for the structured-output attempt."""
    return _compose(sanitized, verdict, strict=False)


def build_retry_prompt(sanitized: str, verdict: SafetyVerdict) -> str:
    """Build the stricter JSON-only instruction for the freeform retry."""
    return _compose(sanitized, verdict, strict=True)

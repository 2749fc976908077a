"""
Fixed crisis response for critical safety verdicts.
Terminal path: the generative model is never called when this is used.
"""
import time
from typing import List, Optional

from app.schemas.wellness_plan import PersonalizedPlan, PlanStep, WellnessPlanOutput

CRISIS_PLAN_TITLE = "Immediate Crisis Support"

CRISIS_RESOURCES = (
    "988 Suicide & Crisis Lifeline (US): call or text 988, available 24/7",
    "Crisis Text Line: text HOME to 741741",
    "Emergency services: call 911 or your local emergency number if you are in immediate danger",
    "Outside the US: find a local helpline at https://findahelpline.com",
)

_CATEGORY_LABELS = {
    "suicidal_ideation": "suicidal thoughts",
    "self_harm": "self-harm",
    "crisis_intent": "crisis intent",
}

_EMOTIONAL_SUPPORT = (
    "I'm really sorry you're going through this, and I'm glad you reached out. "
    "What you're feeling matters, and you don't have to face it alone. "
    "Trained people are ready to listen and help right now."
)


def _describe_categories(categories: Optional[List[str]]) -> str:
    labels = [_CATEGORY_LABELS.get(c, c.replace("_", " ")) for c in categories or []]
    return ", ".join(labels) if labels else "crisis language"


def build_crisis_response(categories: Optional[List[str]] = None) -> WellnessPlanOutput:
    """
    Build the fixed crisis payload.

    Args:
        categories: Critical categories matched by the safety classifier

    Returns:
        A fresh WellnessPlanOutput with safety_flag=True
    """
    detected = _describe_categories(categories)
    resources = "\n".join(f"- {r}" for r in CRISIS_RESOURCES)

    plan = PersonalizedPlan(
        id=f"crisis-{int(time.time() * 1000)}",
        title=CRISIS_PLAN_TITLE,
        overview=(
            "Your safety comes first. Please reach out to a crisis line or "
            "emergency services right now."
        ),
        summary_bullets=[
            "Call or text 988 to talk with a trained crisis counselor",
            "Move away from anything you could use to hurt yourself",
            "Stay with someone you trust until you feel safer",
        ],
        steps=[
            PlanStep(
                id="crisis-1",
                text="Contact a crisis line immediately: call or text 988, or text HOME to 741741.",
                category="social",
                priority="high",
                when="Right now",
                safety="If you are in immediate danger, call 911 or your local emergency number.",
            ),
            PlanStep(
                id="crisis-2",
                text="Make your space safe: put distance between you and anything you could use to hurt yourself.",
                category="other",
                priority="high",
                when="Right now",
            ),
            PlanStep(
                id="crisis-3",
                text="Stay with someone you trust, or call them and keep talking until help arrives.",
                category="social",
                priority="high",
                when="Until you feel safer",
                follow_up_question="Who is one person you could reach out to right now?",
            ),
        ],
        estimated_effort="low",
        timeframe="Right now",
    )

    return WellnessPlanOutput(
        emotional_support=_EMOTIONAL_SUPPORT,
        wellness_tips=f"Please contact one of these resources now:\n{resources}",
        personalized_plan=plan,
        safety_flag=True,
        safety_message=(
            f"Critical safety language detected ({detected}). "
            "Please contact a crisis line or emergency services immediately."
        ),
    )

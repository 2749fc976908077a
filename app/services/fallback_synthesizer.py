"""
Rule-based fallback plan, used when every generation tier failed.

Pure and total: always returns a valid WellnessPlanOutput for any sanitized
text. Themes are detected independently and applied in a fixed order
(stress -> sleep -> energy -> mood -> nutrition); stress, sleep and nutrition
also override title/overview, so the last of those three to match wins.
"""
import hashlib
import re
from typing import List

from app.schemas.wellness_plan import PersonalizedPlan, PlanStep, WellnessPlanOutput

THEME_ORDER = ("stress", "sleep", "energy", "mood", "nutrition")

THEME_PATTERNS = {
    "stress": r"\b(?:stress\w*|overwhelm\w*|anxious|anxiety|pressure|tense|worr(?:y|ied|ying))\b",
    "sleep": r"\b(?:sleep\w*|insomnia|awake at night|nightmares?)\b",
    "energy": r"\b(?:tired|exhausted|fatigue\w*|drained|sluggish|lethargic|no energy|low energy)\b",
    "mood": r"\b(?:sad|sadness|unhappy|lonely|depress\w*|low mood|feel(?:ing)? down|cry(?:ing)?)\b",
    "nutrition": r"\b(?:eat\w*|food|junk|diet|meals?|snack\w*|appetite|sugar\w*|hungry)\b",
}

_COMPILED_THEMES = {t: re.compile(p, re.IGNORECASE) for t, p in THEME_PATTERNS.items()}

# Theme additions. "step" is always appended; "bullet", "title" and
# "overview" only where present.
THEME_ADDITIONS = {
    "stress": {
        "step": dict(
            text="Try box breathing: in for 4, hold 4, out for 4, hold 4, for two minutes.",
            category="breathing", duration_minutes=2, frequency="twice a day", priority="high",
        ),
        "bullet": "Use short breathing breaks to release tension",
        "title": "Stress Relief Reset",
        "overview": "A calm, simple routine to lower tension and give your mind short breaks.",
        "support": "Feeling under pressure is exhausting, and slowing your breath is a quick way to get some relief.",
        "tip": "When tension builds, pause for a few slow breaths before your next task.",
    },
    "sleep": {
        "step": dict(
            text="Put screens away 30 minutes before bed and keep the lights low.",
            category="sleep", duration_minutes=30, frequency="nightly", when="before bed", priority="high",
        ),
        "bullet": "Protect a screen-free wind-down before bed",
        "title": "Restful Nights Plan",
        "overview": "A gentle routine to help your body wind down and rest more easily.",
        "support": "Poor sleep makes everything feel harder; a steady wind-down can help your body settle.",
        "tip": "Aim for a consistent bedtime and a cool, dark room.",
    },
    "energy": {
        "step": dict(
            text="Get 10 minutes of daylight soon after waking, even by an open window.",
            category="movement", duration_minutes=10, frequency="daily", when="morning",
        ),
        "support": "Low energy is real, so start small and be kind to yourself.",
        "tip": "Daylight and light movement early in the day can lift your energy.",
    },
    "mood": {
        "step": dict(
            text="Send a short message to someone you feel comfortable with.",
            category="social", frequency="every other day",
            follow_up_question="How did you feel after reaching out?",
        ),
        "support": "It's okay to feel low. Connecting with someone, even briefly, can lighten the load.",
        "tip": "A short chat or message with a friend counts as self-care.",
    },
    "nutrition": {
        "step": dict(
            text="Add one fruit or vegetable to a meal you already eat.",
            category="nutrition", frequency="daily", priority="medium",
        ),
        "bullet": "Add one simple, nourishing food each day",
        "title": "Nourish and Recharge Plan",
        "overview": "Small, easy food and water habits to keep your energy steadier through the day.",
        "support": "Eating well is hard when you're busy or tired; one small swap is enough to start.",
        "tip": "Keep easy snacks like fruit, nuts or yogurt within reach.",
    },
}

_BASELINE_STEPS = (
    dict(text="Drink a full glass of water when you wake up.",
         category="hydration", frequency="daily", when="morning", priority="medium"),
    dict(text="Keep a water bottle nearby and refill it twice during the day.",
         category="hydration", frequency="daily"),
    dict(text="Take a gentle 10-minute walk, outside if you can.",
         category="movement", duration_minutes=10, frequency="daily",
         follow_up_question="How did your body feel after the walk?"),
)

_BASELINE_BULLETS = (
    "Start each day with a glass of water",
    "Keep water within reach",
    "Move gently for 10 minutes a day",
)

_BASELINE_SUPPORT = (
    "Thank you for sharing how you're feeling. Whatever you're going through, "
    "taking a moment to check in with yourself is a good first step."
)
_BASELINE_TIPS = "Stay hydrated through the day and add a little gentle movement."


def detect_themes(text: str) -> List[str]:
    """Return matched themes in THEME_ORDER."""
    if not text:
        return []
    return [theme for theme in THEME_ORDER if _COMPILED_THEMES[theme].search(text)]


def synthesize_fallback_plan(sanitized: str) -> WellnessPlanOutput:
    """
    Build a deterministic plan from keyword themes.

    Baseline: two hydration steps and one movement step, low effort, one week.
    Each matched theme appends its step (and bullet/title where defined).
    """
    themes = detect_themes(sanitized)

    title = "Gentle Daily Reset"
    overview = "A light routine of water and movement to help you feel a little better each day."
    step_specs = list(_BASELINE_STEPS)
    bullets = list(_BASELINE_BULLETS)
    support = [_BASELINE_SUPPORT]
    tips = [_BASELINE_TIPS]

    for theme in themes:
        addition = THEME_ADDITIONS[theme]
        step_specs.append(addition["step"])
        if "bullet" in addition:
            bullets.append(addition["bullet"])
        if "title" in addition:
            title = addition["title"]
            overview = addition["overview"]
        support.append(addition["support"])
        tips.append(addition["tip"])

    steps = [PlanStep(id=f"step-{i}", **spec) for i, spec in enumerate(step_specs, start=1)]

    digest = hashlib.sha256((sanitized or "").encode("utf-8")).hexdigest()[:8]
    plan_id = f"fallback-{'-'.join(themes) if themes else 'general'}-{digest}"

    plan = PersonalizedPlan(
        id=plan_id,
        title=title,
        overview=overview,
        summary_bullets=bullets,
        steps=steps,
        estimated_effort="medium" if len(themes) >= 3 else "low",
        timeframe="1 week",
    )

    return WellnessPlanOutput(
        emotional_support=" ".join(support),
        wellness_tips=" ".join(tips),
        personalized_plan=plan,
        safety_flag=False,
        safety_message=None,
    )

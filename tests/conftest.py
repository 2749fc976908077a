"""
Shared fixtures.
Environment is pinned before app modules read (and cache) settings.
"""
import copy
import os

os.environ.setdefault("SERVICE_ENV", "dev")
os.environ.setdefault("MODEL_BACKEND", "mock")
os.environ.setdefault("PLAN_STORE_BACKEND", "memory")
os.environ.setdefault("TELEMETRY_COOLDOWN_S", "0")
os.environ.setdefault("RATE_LIMIT_PER_HOUR", "120")

import pytest

from app.core.metrics import get_metrics_collector
from app.core.rate_limiter import get_rate_limiter
from app.services.plan_store import reset_plan_store
from app.services.telemetry import reset_rate_limits

VALID_PLAN = {
    "emotionalSupport": "That sounds like a heavy week. It makes sense that you feel worn out.",
    "wellnessTips": "Drink water regularly and take short breaks to stretch.",
    "personalizedPlan": {
        "id": "calm-week",
        "title": "Calm Week",
        "overview": "Short daily habits to ease stress and sleep better.",
        "summaryBullets": [
            "Breathe slowly when tense",
            "Move a little every day",
            "Wind down before bed",
        ],
        "steps": [
            {"id": "step-1", "text": "Take 5 slow breaths.", "category": "breathing",
             "durationMinutes": 2, "priority": "high"},
            {"id": "step-2", "text": "Walk for 10 minutes after lunch.", "category": "movement",
             "durationMinutes": 10, "frequency": "daily"},
            {"id": "step-3", "text": "Turn off screens 30 minutes before bed.", "category": "sleep",
             "when": "before bed"},
        ],
        "estimatedEffort": "low",
        "timeframe": "1 week",
    },
    "safetyFlag": False,
    "safetyMessage": None,
}


@pytest.fixture
def plan_dict():
    """A fresh, schema-valid camelCase plan payload."""
    return copy.deepcopy(VALID_PLAN)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset in-memory singletons between tests."""
    metrics = get_metrics_collector()
    limiter = get_rate_limiter()
    metrics.reset()
    limiter.reset()
    limiter.set_limit(120)
    reset_rate_limits()
    reset_plan_store()
    yield
    metrics.reset()
    limiter.reset()
    limiter.set_limit(120)
    reset_rate_limits()
    reset_plan_store()

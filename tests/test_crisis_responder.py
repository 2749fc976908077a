"""
Tests for the fixed crisis response.
"""
from app.services.safety.crisis_responder import (
    CRISIS_PLAN_TITLE,
    build_crisis_response,
)


def test_crisis_response_is_flagged():
    output = build_crisis_response(["suicidal_ideation"])

    assert output.safety_flag is True
    assert output.safety_message is not None
    assert "suicidal thoughts" in output.safety_message


def test_crisis_plan_shape():
    plan = build_crisis_response(["self_harm"]).personalized_plan

    assert plan.title == CRISIS_PLAN_TITLE
    assert 3 <= len(plan.steps) <= 8
    assert 3 <= len(plan.summary_bullets) <= 6
    assert plan.id.startswith("crisis-")
    assert "immediately" in plan.steps[0].text
    assert "crisis line" in plan.steps[0].text.lower()


def test_crisis_resources_listed():
    output = build_crisis_response()
    assert "988" in output.wellness_tips
    assert "741741" in output.wellness_tips
    assert "crisis language" in output.safety_message


def test_each_call_returns_a_fresh_value():
    first = build_crisis_response(["crisis_intent"])
    second = build_crisis_response(["crisis_intent"])

    first.personalized_plan.steps[0].text = "changed"

    assert first is not second
    assert second.personalized_plan.steps[0].text != "changed"


def test_serializes_with_camel_case():
    data = build_crisis_response().model_dump(by_alias=True)
    assert data["safetyFlag"] is True
    assert data["personalizedPlan"]["summaryBullets"]

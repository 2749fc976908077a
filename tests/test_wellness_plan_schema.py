"""
Tests for WellnessPlanOutput invariants.
"""
import pytest
from pydantic import ValidationError

from app.schemas.wellness_plan import (
    WellnessPlanOutput,
    get_plan_json_schema,
    get_plan_schema_hash,
)


def test_valid_plan_parses(plan_dict):
    output = WellnessPlanOutput.model_validate(plan_dict)
    assert output.personalized_plan.estimated_effort == "low"
    assert output.safety_flag is False
    assert output.safety_message is None


def test_dump_uses_camel_case(plan_dict):
    data = WellnessPlanOutput.model_validate(plan_dict).model_dump(by_alias=True)
    assert "personalizedPlan" in data
    assert "summaryBullets" in data["personalizedPlan"]
    assert "durationMinutes" in data["personalizedPlan"]["steps"][0]


class TestSafetyPair:

    def test_flag_without_message_rejected(self, plan_dict):
        plan_dict["safetyFlag"] = True
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_message_without_flag_rejected(self, plan_dict):
        plan_dict["safetyMessage"] = "Please reach out for help."
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_flag_with_message_accepted(self, plan_dict):
        plan_dict["safetyFlag"] = True
        plan_dict["safetyMessage"] = "Please reach out for help."
        output = WellnessPlanOutput.model_validate(plan_dict)
        assert output.safety_flag is True

    def test_blank_message_normalized(self, plan_dict):
        plan_dict["safetyMessage"] = "   "
        assert WellnessPlanOutput.model_validate(plan_dict).safety_message is None

    def test_missing_flag_defaults_false(self, plan_dict):
        del plan_dict["safetyFlag"]
        del plan_dict["safetyMessage"]
        assert WellnessPlanOutput.model_validate(plan_dict).safety_flag is False

    def test_null_flag_treated_as_false(self, plan_dict):
        plan_dict["safetyFlag"] = None
        assert WellnessPlanOutput.model_validate(plan_dict).safety_flag is False


class TestBounds:

    def test_too_few_steps(self, plan_dict):
        plan_dict["personalizedPlan"]["steps"] = plan_dict["personalizedPlan"]["steps"][:2]
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_too_many_steps(self, plan_dict):
        base = plan_dict["personalizedPlan"]["steps"][0]
        plan_dict["personalizedPlan"]["steps"] = [
            {**base, "id": f"step-{i}"} for i in range(1, 10)
        ]
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_eight_steps_allowed(self, plan_dict):
        base = plan_dict["personalizedPlan"]["steps"][0]
        plan_dict["personalizedPlan"]["steps"] = [
            {**base, "id": f"step-{i}"} for i in range(1, 9)
        ]
        assert len(WellnessPlanOutput.model_validate(plan_dict).personalized_plan.steps) == 8

    @pytest.mark.parametrize("count", [2, 7])
    def test_bullet_bounds(self, plan_dict, count):
        plan_dict["personalizedPlan"]["summaryBullets"] = [f"bullet {i}" for i in range(count)]
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_duplicate_step_ids(self, plan_dict):
        plan_dict["personalizedPlan"]["steps"][1]["id"] = "step-1"
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_unknown_category(self, plan_dict):
        plan_dict["personalizedPlan"]["steps"][0]["category"] = "meditation"
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_negative_duration(self, plan_dict):
        plan_dict["personalizedPlan"]["steps"][0]["durationMinutes"] = -5
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)

    def test_unknown_effort(self, plan_dict):
        plan_dict["personalizedPlan"]["estimatedEffort"] = "extreme"
        with pytest.raises(ValidationError):
            WellnessPlanOutput.model_validate(plan_dict)


def test_json_schema_uses_aliases():
    schema = get_plan_json_schema()
    assert set(schema["required"]) == {"emotionalSupport", "wellnessTips", "personalizedPlan"}


def test_schema_hash_is_stable():
    assert get_plan_schema_hash() == get_plan_schema_hash()
    assert len(get_plan_schema_hash()) == 16

"""Tests for the plan orchestrator: deterministic synthesis and the AI text path."""

import json

import pytest

from engagement.core.engagement_config import EngagementConfig
from engagement.core.errors import ProtocolContractError
from engagement.schemas.models import COMPLIANCE_DISCLAIMER, NOT_SPECIFIED
from engagement.services.compliance import validate_engagement_plan
from engagement.services.llm.response_parser import PARSE_FAILURE
from engagement.services.llm.schemas import ENGAGEMENT_PLAN_SCHEMA
from engagement.services.planner import (
    generation_settings,
    parse_and_validate_ai_plan,
    synthesize_engagement_plan,
)


class TestSynthesize:
    def test_scenario_plan_validates_clean(self, scenario_protocol):
        plan = synthesize_engagement_plan(scenario_protocol)

        assert plan.generated_method == "deterministic_mirror"
        assert plan.phases[0].clinical_elements[0].name == "ADD: Vitamin D3"
        report = validate_engagement_plan(plan, scenario_protocol)
        assert report.is_valid is True
        assert report.issues == []

    def test_header_fields(self, rich_protocol):
        plan = synthesize_engagement_plan(
            rich_protocol, protocol_title="Detox Reset", client_name="J. Doe", created_date="2024-03-01",
        )
        assert plan.title == "Engagement Plan: Detox Reset"
        assert plan.protocol_reference.client_name == "J. Doe"
        assert plan.protocol_reference.created_date == "2024-03-01"
        assert plan.total_weeks == 12
        assert plan.duration_specified_in_protocol is True
        assert plan.overview.phases_included == ["Foundation", "Expansion", "Optimization"]
        assert plan.compliance_disclaimer == COMPLIANCE_DISCLAIMER

    def test_defaults_when_header_missing(self, empty_protocol):
        plan = synthesize_engagement_plan(empty_protocol)
        assert plan.title == "Engagement Plan: Protocol"
        assert plan.protocol_reference.client_name == NOT_SPECIFIED
        assert plan.total_weeks is None
        assert plan.overview.success_criteria == [NOT_SPECIFIED]

    def test_explicit_duration_overrides_phases(self, rich_protocol):
        assert synthesize_engagement_plan(rich_protocol, duration_weeks=16).total_weeks == 16

    def test_idempotent(self, rich_protocol):
        first = synthesize_engagement_plan(rich_protocol).model_dump(mode="json")
        second = synthesize_engagement_plan(rich_protocol).model_dump(mode="json")
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)

    @pytest.mark.parametrize("protocol_name", ["scenario_protocol", "rich_protocol", "empty_protocol"])
    def test_generated_plans_never_fail_their_own_protocol(self, request, protocol_name):
        protocol = request.getfixturevalue(protocol_name)
        plan = synthesize_engagement_plan(protocol)
        report = validate_engagement_plan(plan, protocol, EngagementConfig(threshold_severity="issue"))
        assert report.issues == []

    def test_awkward_names_stay_self_consistent(self):
        protocol = {
            "supplements": [{"name": "Curcumin 500 mg (take if lab results allow)", "start_week": 2}],
            "lifestyle_protocols": ["Walk 3 times per week"],
            "retest_schedule": [{"name": "HbA1c >= 6.5 check"}],
            "phases": [{"name": "Stop when ready", "start_week": 1, "duration_weeks": 3}],
        }
        plan = synthesize_engagement_plan(protocol)
        report = validate_engagement_plan(plan, protocol, EngagementConfig(threshold_severity="issue"))
        assert report.issues == []

    def test_none_protocol_raises(self):
        with pytest.raises(ProtocolContractError):
            synthesize_engagement_plan(None)


class TestAIPath:
    def test_fenced_json_is_parsed_and_validated(self, scenario_protocol):
        plan = synthesize_engagement_plan(scenario_protocol).model_dump(mode="json")
        plan["generated_method"] = "ai_strict_mirror"
        raw = "```json\n" + json.dumps(plan) + "\n```"

        result = parse_and_validate_ai_plan(raw, scenario_protocol)
        assert result.success is True
        assert result.engagement_plan["generated_method"] == "ai_strict_mirror"
        assert result.validation.is_valid is True

    def test_success_even_when_plan_has_issues(self, scenario_protocol):
        result = parse_and_validate_ai_plan('{"title": "x"}', scenario_protocol)
        assert result.success is True
        assert result.validation.is_valid is False

    def test_unparseable_text(self, scenario_protocol):
        raw = "Here is your plan: " + "x" * 1000
        result = parse_and_validate_ai_plan(raw, scenario_protocol)

        assert result.success is False
        assert result.error == PARSE_FAILURE
        assert result.parseError
        assert result.rawResponse == raw[:500]
        assert result.engagement_plan is None

    def test_preview_length_from_config(self, scenario_protocol):
        result = parse_and_validate_ai_plan("nope" * 50, scenario_protocol, EngagementConfig(raw_preview_chars=10))
        assert result.rawResponse == "nopenopeno"

    def test_json_array_is_a_parse_failure(self, scenario_protocol):
        result = parse_and_validate_ai_plan("[]", scenario_protocol)
        assert result.success is False

    @pytest.mark.parametrize("name", [5, ["ADD: Zinc"], {"n": "ADD: Zinc"}])
    def test_non_string_element_name_is_reported_not_raised(self, scenario_protocol, name):
        raw = json.dumps({
            "title": "t",
            "phases": [{"clinical_elements": [{"name": name, "source": "protocol_supplement"}]}],
        })
        result = parse_and_validate_ai_plan(raw, scenario_protocol)

        assert result.success is True
        assert result.validation.is_valid is False
        assert result.validation.checks_passed["no_invented_supplements"] is False

    def test_none_text_raises(self, scenario_protocol):
        with pytest.raises(ProtocolContractError):
            parse_and_validate_ai_plan(None, scenario_protocol)


class TestGenerationSettings:
    def test_known_model(self):
        settings = generation_settings("claude-3-5-haiku")
        assert settings["max_tokens"] == 4096
        assert settings["temperature"] == 0.1
        assert settings["response_schema"] is ENGAGEMENT_PLAN_SCHEMA

    def test_unknown_model_falls_back_to_default_limits(self):
        settings = generation_settings("some-other-model")
        assert settings["model"] == "some-other-model"
        assert settings["max_tokens"] == 8000

    def test_default_model(self):
        assert generation_settings(config=EngagementConfig(default_model="claude-opus-4"))["model"] == "claude-opus-4"

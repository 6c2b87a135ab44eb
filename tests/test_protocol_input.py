"""Tests for normalize_protocol(): partial JSON in, canonical ProtocolElements out."""

import pytest

from engagement.core.errors import ProtocolContractError
from engagement.schemas.models import ProtocolElements, ProtocolPhase
from engagement.services.protocol_input import compute_total_weeks, normalize_protocol


class TestNormalizeProtocol:
    def test_empty_object_gives_empty_lists(self, empty_protocol):
        p = normalize_protocol(empty_protocol)
        assert p.supplements == []
        assert p.phases == []
        assert p.safety_constraints == []
        assert p.total_weeks is None
        assert p.duration_specified is False

    def test_none_is_a_contract_error(self):
        with pytest.raises(ProtocolContractError):
            normalize_protocol(None)

    def test_non_object_is_a_contract_error(self):
        with pytest.raises(ProtocolContractError):
            normalize_protocol("[1, 2, 3]")

    def test_invalid_json_string_is_treated_as_empty(self):
        p = normalize_protocol("{not json")
        assert p == ProtocolElements()

    def test_json_string_is_accepted(self):
        p = normalize_protocol('{"supplements": [{"name": "Omega-3"}]}')
        assert [s.name for s in p.supplements] == ["Omega-3"]

    def test_bare_strings_become_named_items(self, rich_protocol):
        p = normalize_protocol(rich_protocol)
        assert [lp.name for lp in p.lifestyle_protocols] == ["Hydration protocol", "Sleep optimization"]

    def test_retest_accepts_test_key(self, rich_protocol):
        p = normalize_protocol(rich_protocol)
        assert [t.name for t in p.retest_schedule] == ["Comprehensive metabolic panel", "Vitamin D level"]

    def test_invalid_weeks_become_none(self):
        p = normalize_protocol({"supplements": [
            {"name": "A", "start_week": "soon"},
            {"name": "B", "start_week": 0},
            {"name": "C", "start_week": True},
            {"name": "D", "start_week": "3"},
        ]})
        assert [s.start_week for s in p.supplements] == [None, None, None, 3]

    def test_nameless_items_are_dropped(self):
        p = normalize_protocol({"supplements": [{"dosage": "100 mg"}, {"name": "  "}, 42, {"name": "Zinc"}]})
        assert [s.name for s in p.supplements] == ["Zinc"]

    def test_unknown_safety_type_is_dropped(self):
        p = normalize_protocol({"safety_constraints": [
            {"type": "vibes", "constraint": "Feel good"},
            {"type": "Warning_Sign", "constraint": "Rash"},
        ]})
        assert [(c.type, c.constraint) for c in p.safety_constraints] == [("warning_sign", "Rash")]

    def test_phase_name_alias(self):
        p = normalize_protocol({"phases": [{"phase_name": "Reset", "readiness_criteria": "Sleeping well"}]})
        assert p.phases[0].name == "Reset"
        assert p.phases[0].readiness_criteria == ["Sleeping well"]

    def test_model_passes_through(self, scenario_protocol):
        p = normalize_protocol(scenario_protocol)
        assert normalize_protocol(p) is p


class TestTotalWeeks:
    def test_explicit_duration_wins(self, rich_protocol):
        p = normalize_protocol(rich_protocol, duration_weeks=20)
        assert p.total_weeks == 20
        assert p.duration_specified is True

    def test_explicit_duration_in_payload(self):
        p = normalize_protocol({"duration_weeks": 8})
        assert p.total_weeks == 8
        assert p.duration_specified is True

    def test_derived_from_last_phase(self, rich_protocol):
        p = normalize_protocol(rich_protocol)
        assert p.total_weeks == 12

    def test_last_phase_needs_both_fields(self):
        phases = [ProtocolPhase(start_week=1, duration_weeks=4), ProtocolPhase(start_week=5)]
        assert compute_total_weeks(phases, None) is None

    def test_no_phases_no_duration(self):
        assert compute_total_weeks([], None) is None


class TestMalformedListFields:
    def test_lone_string_is_one_item(self):
        p = normalize_protocol({"supplements": "Vitamin D3"})
        assert [s.name for s in p.supplements] == ["Vitamin D3"]

    def test_lone_object_is_one_item(self):
        p = normalize_protocol({"retest_schedule": {"name": "Ferritin", "timing": "Week 6"}})
        assert [(t.name, t.timing) for t in p.retest_schedule] == [("Ferritin", "Week 6")]

    @pytest.mark.parametrize("value", [5, 4.5, True])
    def test_scalar_list_field_is_empty(self, value):
        p = normalize_protocol({"supplements": value, "phases": value, "safety_constraints": value})
        assert p.supplements == []
        assert p.phases == []
        assert p.safety_constraints == []

    def test_scalar_readiness_criteria_is_empty(self):
        p = normalize_protocol({"phases": [{"name": "A", "readiness_criteria": 5}]})
        assert p.phases[0].readiness_criteria == []

    def test_non_string_criteria_entries_are_dropped(self):
        p = normalize_protocol({"phases": [{"name": "A", "readiness_criteria": ["Sleeping well", 3, None]}]})
        assert p.phases[0].readiness_criteria == ["Sleeping well"]

"""Tests for check_alignment(): every protocol item shows up in the plan."""

from engagement.services.alignment import check_alignment, name_variants
from engagement.services.planner import synthesize_engagement_plan


def test_generated_plan_is_fully_aligned(rich_protocol):
    report = check_alignment(synthesize_engagement_plan(rich_protocol), rich_protocol)

    assert report.is_aligned is True
    assert report.overall_coverage == 100
    assert report.coverage["supplements"] == 5


def test_missing_items_are_reported(rich_protocol):
    plan = synthesize_engagement_plan(rich_protocol).model_dump(mode="json")
    plan["phases"] = plan["phases"][:1]
    plan["testing_schedule"] = None

    report = check_alignment(plan, rich_protocol)
    assert report.is_aligned is False
    assert report.missing_supplements == ["Omega-3", "CoQ10"]
    assert report.missing_retests == ["Comprehensive metabolic panel", "Vitamin D level"]
    assert report.coverage_percentage["supplements"] == 60
    assert report.coverage_percentage["retest_schedule"] == 0


def test_synonyms_count_as_present():
    protocol = {"supplements": [{"name": "Coenzyme Q10"}]}
    plan = {"phases": [{"clinical_elements": [{"name": "ADD: CoQ10 (ubiquinol)"}]}]}
    assert check_alignment(plan, protocol).missing_supplements == []


def test_plan_without_elements_is_not_structurally_valid():
    report = check_alignment({"phases": ["bad", {}]}, {})
    assert report.structure_valid is False
    assert report.is_aligned is False


def test_name_variants_drop_parentheses():
    variants = name_variants("Vitamin D3 (cholecalciferol)")
    assert "vitamin d3" in variants
    assert "vit d" in variants


def test_malformed_plan_sections_do_not_raise(scenario_protocol):
    plan = {
        "phases": [{"clinical_elements": [7, {"name": 3}, "ADD: Vitamin D3", {"name": "ADD: Vitamin D3"}]}],
        "clinic_treatments": "none",
        "testing_schedule": [{"name": ["Ferritin"]}, "Ferritin"],
    }
    report = check_alignment(plan, scenario_protocol)

    assert report.structure_valid is True
    assert report.missing_supplements == []
    assert report.is_aligned is True


def test_non_object_plan_is_not_aligned(scenario_protocol):
    report = check_alignment(["phases"], scenario_protocol)
    assert report.structure_valid is False
    assert report.missing_supplements == ["Vitamin D3"]

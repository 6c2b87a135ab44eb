# engagement/services/sections.py
from typing import Dict, List, Optional

from engagement.schemas.models import (
    NOT_SPECIFIED,
    AlignmentVerification,
    ClinicTreatmentItem,
    ClinicTreatmentsSection,
    EngagementPhase,
    MaintenancePath,
    ProtocolElements,
    SafetyRule,
    SafetyRules,
    TestingScheduleEntry,
)
from engagement.utils.text_scan import has_add_prefix

CLINIC_NOTE = "All clinic treatments require clinician approval before scheduling."
SAFETY_NOT_SPECIFIED = "Not specified in protocol - follow clinic standard"

# declared constraint type -> safety bucket
SAFETY_BUCKETS: Dict[str, str] = {
    "absolute_contraindication": "stop_immediately",
    "safety_gate": "hold_and_contact",
    "readiness_criteria": "hold_and_contact",
    "hold_condition": "hold_and_contact",
    "warning_sign": "escalation_triggers",
}
LISTED_ONLY = ("monitoring_requirement", "precaution")

def _sentinel_rule() -> SafetyRule:
    return SafetyRule(rule=SAFETY_NOT_SPECIFIED, source="not_specified_in_protocol")

def build_clinic_treatments_section(protocol: ProtocolElements) -> Optional[ClinicTreatmentsSection]:
    if not protocol.clinic_treatments:
        return None
    items = [
        ClinicTreatmentItem(
            name=t.name,
            timing=f"Earliest: Week {t.start_week}" if t.start_week is not None else NOT_SPECIFIED,
            indication=t.indication or NOT_SPECIFIED,
            frequency=t.frequency or NOT_SPECIFIED,
        )
        for t in protocol.clinic_treatments
    ]
    return ClinicTreatmentsSection(note=CLINIC_NOTE, items=items)

def build_testing_schedule_section(protocol: ProtocolElements) -> Optional[List[TestingScheduleEntry]]:
    if not protocol.retest_schedule:
        return None
    return [
        TestingScheduleEntry(
            name=t.name,
            timing=t.timing or NOT_SPECIFIED,
            purpose=t.purpose or NOT_SPECIFIED,
            # engagement mechanics only: schedule -> complete -> review
            sequence=[
                f"Schedule {t.name}",
                f"Complete {t.name}",
                f"Review {t.name} results with practitioner",
            ],
        )
        for t in protocol.retest_schedule
    ]

def build_safety_rules_section(protocol: ProtocolElements) -> SafetyRules:
    """Buckets constraints by declared type only; never inferred from the text."""
    buckets: Dict[str, List[SafetyRule]] = {
        "stop_immediately": [],
        "hold_and_contact": [],
        "escalation_triggers": [],
    }
    listed: List[str] = []

    for c in protocol.safety_constraints:
        bucket = SAFETY_BUCKETS.get(c.type)
        if bucket:
            buckets[bucket].append(SafetyRule(rule=c.constraint, source="protocol_safety_constraint", type=c.type))
        elif c.type in LISTED_ONLY and c.constraint not in listed:
            listed.append(c.constraint)

    has_real = any(buckets.values())
    for name, rules in buckets.items():
        if not rules:
            rules.append(_sentinel_rule())

    return SafetyRules(
        stop_immediately=buckets["stop_immediately"],
        hold_and_contact=buckets["hold_and_contact"],
        escalation_triggers=buckets["escalation_triggers"],
        monitoring_as_per_protocol=listed,
        safety_summary_in_protocol="Yes" if has_real else "No",
    )

def build_maintenance_path() -> MaintenancePath:
    return MaintenancePath(
        description="Non-medical exit path once the final phase is completed.",
        steps=[
            "Book a wrap-up consultation with your practitioner",
            "Agree on ongoing check-in frequency with your care team",
            "Keep your engagement records for future reference",
        ],
    )

def build_alignment_verification(
    protocol: ProtocolElements,
    phases: List[EngagementPhase],
    clinic: Optional[ClinicTreatmentsSection],
    tests: Optional[List[TestingScheduleEntry]],
) -> AlignmentVerification:
    added = sum(
        1
        for p in phases
        for el in p.clinical_elements
        if el.source == "protocol_supplement" and has_add_prefix(el.name)
    )
    lifestyle = sum(1 for p in phases for el in p.clinical_elements if el.source == "protocol_lifestyle")
    return AlignmentVerification(
        protocol_supplements_count=len(protocol.supplements),
        engagement_plan_supplements_count=added,
        protocol_lifestyle_count=len(protocol.lifestyle_protocols),
        engagement_plan_lifestyle_count=lifestyle,
        protocol_clinic_treatments_count=len(protocol.clinic_treatments),
        engagement_plan_clinic_treatments_count=len(clinic.items) if clinic else 0,
        protocol_tests_count=len(protocol.retest_schedule),
        engagement_plan_tests_count=len(tests or []),
        protocol_safety_constraints_count=len(protocol.safety_constraints),
        generated_deterministically=True,
    )

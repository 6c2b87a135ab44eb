# engagement/services/planner.py
import logging
from typing import Any, Dict, Optional

from engagement.core.engagement_config import DEFAULT_CONFIG, EngagementConfig
from engagement.core.errors import require_present
from engagement.schemas.models import (
    NOT_SPECIFIED,
    EngagementPlan,
    ParseResult,
    PlanOverview,
    ProtocolElements,
    ProtocolReference,
)
from engagement.services.compliance import validate_engagement_plan
from engagement.services.llm.response_parser import PlanParseError, parse_failure, parse_plan_json
from engagement.services.llm.schemas import ENGAGEMENT_PLAN_SCHEMA
from engagement.services.phase_synthesizer import build_phases
from engagement.services.protocol_input import RawProtocol, normalize_protocol
from engagement.services.sections import (
    build_alignment_verification,
    build_clinic_treatments_section,
    build_maintenance_path,
    build_safety_rules_section,
    build_testing_schedule_section,
)

logger = logging.getLogger(__name__)

def _overview(protocol: ProtocolElements, phase_titles) -> PlanOverview:
    goals = [p.goal for p in protocol.phases if p.goal]
    return PlanOverview(
        purpose="Organize the protocol into an engagement timeline of phases and check-ins.",
        phases_included=list(phase_titles),
        success_criteria=goals or [NOT_SPECIFIED],
        check_in_cadence=(
            "Check-in once per week" if protocol.duration_specified else "Check-ins scheduled per clinic standard."
        ),
    )

def _summary(protocol: ProtocolElements, n_phases: int) -> str:
    span = f"{protocol.total_weeks}-week" if protocol.total_weeks else "Duration not specified in protocol;"
    noun = "phase" if n_phases == 1 else "phases"
    return (
        f"{span} engagement plan in {n_phases} {noun}. "
        "Every clinical item is taken by name from the source protocol."
    )

def synthesize_engagement_plan(
    protocol: RawProtocol,
    *,
    protocol_title: Optional[str] = None,
    client_name: Optional[str] = None,
    created_date: Optional[str] = None,
    duration_weeks: Optional[int] = None,
    config: EngagementConfig = DEFAULT_CONFIG,
) -> EngagementPlan:
    """
    Deterministic path: mechanically derives the plan from the protocol.
    Same input -> same output (no clocks, no randomness).
    """
    elements = normalize_protocol(protocol, duration_weeks=duration_weeks)
    title = (protocol_title or "").strip() or "Protocol"

    phases = build_phases(elements)
    clinic = build_clinic_treatments_section(elements)
    tests = build_testing_schedule_section(elements)

    plan = EngagementPlan(
        title=f"Engagement Plan: {title}",
        generated_method="deterministic_mirror",
        protocol_reference=ProtocolReference(
            protocol_title=title,
            client_name=(client_name or "").strip() or NOT_SPECIFIED,
            created_date=(created_date or "").strip() or NOT_SPECIFIED,
        ),
        overview=_overview(elements, [p.title for p in phases]),
        summary=_summary(elements, len(phases)),
        total_weeks=elements.total_weeks,
        duration_specified_in_protocol=elements.duration_specified,
        phases=phases,
        clinic_treatments=clinic,
        testing_schedule=tests,
        safety_rules=build_safety_rules_section(elements),
        maintenance_path=build_maintenance_path(),
        alignment_verification=build_alignment_verification(elements, phases, clinic, tests),
    )
    logger.info(
        "Synthesized engagement plan %r: %d phases, threshold severity=%s",
        plan.title, len(phases), config.threshold_severity,
    )
    return plan

def parse_and_validate_ai_plan(
    raw_text: str,
    protocol: RawProtocol,
    config: EngagementConfig = DEFAULT_CONFIG,
) -> ParseResult:
    """
    AI path: text -> structure, then the same compliance check as the deterministic path.
    Never raises on bad text; returns a structured failure instead.
    """
    require_present(raw_text, "AI response text")
    require_present(protocol, "protocol elements")
    try:
        plan = parse_plan_json(raw_text)
    except PlanParseError as e:
        return ParseResult(**parse_failure(raw_text, e, config.raw_preview_chars))

    validation = validate_engagement_plan(plan, protocol, config)
    return ParseResult(success=True, engagement_plan=plan, validation=validation)

def generation_settings(model: Optional[str] = None, config: EngagementConfig = DEFAULT_CONFIG) -> Dict[str, Any]:
    """Settings for the external caller that produces ai_strict_mirror text."""
    limits = config.limits_for(model)
    return {
        "model": model or config.default_model,
        "temperature": limits.temperature,
        "max_tokens": limits.max_tokens,
        "response_schema": ENGAGEMENT_PLAN_SCHEMA,
    }

# engagement/services/phase_synthesizer.py
import logging
from typing import Dict, List, Optional, Tuple

from engagement.schemas.models import (
    NOT_SPECIFIED,
    ClinicalElement,
    EngagementPhase,
    ProtocolElements,
    ProtocolPhase,
    SafetyGate,
    Supplement,
)
from engagement.utils.text_scan import normalize_name

logger = logging.getLogger(__name__)

EXTRACTION_ISSUE_NAME = "No clinical elements extracted from protocol"
DEFAULT_PHASE_TITLE = "Core Protocol"

UNSPECIFIED_GATE = {
    "conditions": ["Safety gate criteria not specified in protocol"],
    "if_pass": "Progress per clinician guidance",
    "if_fail": "Consult clinician",
    "source": "not_specified_in_protocol",
}
ACTION_NOT_SPECIFIED = "Action not specified in protocol. Managed per supervising clinician."
PROTOCOL_COMPLETE = "Protocol complete"

def phase_title(phase: ProtocolPhase, index: int) -> str:
    return phase.name or f"Phase {index + 1}"

def phase_bounds(phase: ProtocolPhase) -> Optional[Tuple[int, int]]:
    if phase.start_week is None or phase.duration_weeks is None:
        return None
    return phase.start_week, phase.start_week + phase.duration_weeks - 1

def week_range(phase: ProtocolPhase) -> str:
    bounds = phase_bounds(phase)
    if bounds:
        return f"{bounds[0]}-{bounds[1]}"
    if phase.start_week is not None:
        return f"Starts Week {phase.start_week}"
    return NOT_SPECIFIED

def _duration_text(phase: ProtocolPhase) -> str:
    if phase.duration_weeks is None:
        return NOT_SPECIFIED
    return f"{phase.duration_weeks} week" + ("" if phase.duration_weeks == 1 else "s")

def _starts_week(s: Supplement) -> Optional[str]:
    return f"Starts Week {s.start_week}" if s.start_week is not None else None

def assign_supplements(protocol: ProtocolElements) -> Dict[int, List[Tuple[Supplement, Optional[str]]]]:
    """
    Maps phase index -> [(supplement, timing note)] in input order.
      - start_week inside a phase's week range -> first such phase
      - no start_week -> phase 1 only (no distribution is inferred)
      - start_week outside every range -> phase 1, annotated "Starts Week N"
    """
    slots: Dict[int, List[Tuple[Supplement, Optional[str]]]] = {i: [] for i in range(len(protocol.phases))}
    bounds = [phase_bounds(p) for p in protocol.phases]

    for s in protocol.supplements:
        if s.start_week is None:
            slots[0].append((s, None))
            continue
        target = next(
            (i for i, b in enumerate(bounds) if b and b[0] <= s.start_week <= b[1]),
            None,
        )
        if target is None:
            logger.info("Supplement %r (week %s) matches no phase range; attached to phase 1", s.name, s.start_week)
            slots[0].append((s, _starts_week(s)))
        else:
            slots[target].append((s, None))
    return slots

def _safety_gate(protocol: ProtocolElements, index: int) -> SafetyGate:
    phase = protocol.phases[index]
    if not phase.readiness_criteria:
        return SafetyGate(**UNSPECIFIED_GATE)

    if index + 1 < len(protocol.phases):
        if_pass = f"Proceed to {phase_title(protocol.phases[index + 1], index + 1)}"
    else:
        if_pass = PROTOCOL_COMPLETE
    return SafetyGate(
        conditions=list(phase.readiness_criteria),
        if_pass=if_pass,
        if_fail=ACTION_NOT_SPECIFIED,
        source="protocol_readiness_criteria",
    )

def engagement_actions(protocol: ProtocolElements, has_elements: bool) -> List[str]:
    actions = ["Schedule a phase kick-off check-in with your care team"]
    if protocol.duration_specified:
        actions.append("Check-in once per week for the length of this phase")
    else:
        actions.append("Check-ins scheduled per clinic standard.")
    if has_elements:
        actions.append("Review the items listed for this phase with your care team before starting")
    actions.append("Confirm readiness to move on with your practitioner at the end of this phase")
    return actions

def _trace_add(trace: List[str], name: str) -> None:
    if name not in trace:
        trace.append(name)

def _default_phase(protocol: ProtocolElements) -> EngagementPhase:
    elements: List[ClinicalElement] = []
    trace: List[str] = []
    seen = set()

    for s in protocol.supplements:
        key = normalize_name(s.name)
        if key in seen:
            continue
        seen.add(key)
        elements.append(ClinicalElement(
            name=f"ADD: {s.name}", source="protocol_supplement", timing=_starts_week(s),
        ))
        _trace_add(trace, s.name)

    for lp in protocol.lifestyle_protocols:
        elements.append(ClinicalElement(name=lp.name, source="protocol_lifestyle"))
        _trace_add(trace, lp.name)

    if not elements:
        logger.warning("Protocol has no phases, supplements or lifestyle items; flagging for review")
        elements.append(ClinicalElement(
            name=EXTRACTION_ISSUE_NAME, status="REVIEW_REQUIRED", source="extraction_issue",
        ))

    return EngagementPhase(
        phase_number=1,
        title=DEFAULT_PHASE_TITLE,
        week_range=NOT_SPECIFIED,
        duration=NOT_SPECIFIED,
        phase_goal=NOT_SPECIFIED,
        clinical_elements=elements,
        engagement_actions=engagement_actions(protocol, bool(trace)),
        protocol_trace=trace,
        safety_gate=SafetyGate(**UNSPECIFIED_GATE),
    )

def build_phases(protocol: ProtocolElements) -> List[EngagementPhase]:
    """Phase-by-phase timeline; every name in it comes from the protocol."""
    if not protocol.phases:
        return [_default_phase(protocol)]

    slots = assign_supplements(protocol)
    introduced: Dict[str, str] = {}  # normalized -> verbatim, insertion ordered
    out: List[EngagementPhase] = []

    for idx, phase in enumerate(protocol.phases):
        elements: List[ClinicalElement] = []
        trace: List[str] = []

        for name in introduced.values():
            elements.append(ClinicalElement(name=f"Continue: {name}", source="protocol_supplement"))
            _trace_add(trace, name)

        for supp, timing in slots[idx]:
            key = normalize_name(supp.name)
            if key in introduced:
                continue
            introduced[key] = supp.name
            elements.append(ClinicalElement(name=f"ADD: {supp.name}", source="protocol_supplement", timing=timing))
            _trace_add(trace, supp.name)

        if idx == 0:
            for lp in protocol.lifestyle_protocols:
                elements.append(ClinicalElement(name=lp.name, source="protocol_lifestyle"))
                _trace_add(trace, lp.name)

        out.append(EngagementPhase(
            phase_number=idx + 1,
            title=phase_title(phase, idx),
            week_range=week_range(phase),
            duration=_duration_text(phase),
            phase_goal=phase.goal or NOT_SPECIFIED,
            clinical_elements=elements,
            engagement_actions=engagement_actions(protocol, bool(elements)),
            protocol_trace=trace,
            safety_gate=_safety_gate(protocol, idx),
        ))

    logger.debug("Built %d engagement phases (%d supplements introduced)", len(out), len(introduced))
    return out

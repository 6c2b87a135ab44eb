# engagement/services/compliance.py
"""
Compliance validator shared by the deterministic and the AI-authored paths.

The protocol is the only source of medical content. A plan is scanned for:
  - items whose names are not in the protocol (issues)
  - dosage / threshold / frequency text not in the protocol (warnings by default)
  - stop / hold / pause / escalate logic and symptom/lab/safety conditionals
    not stated verbatim in the protocol (issues)
  - missing top-level sections and safety buckets (issues)
  - phases without a protocol_trace (warnings)
"""
import logging
import re
from typing import Any, Dict, List, Set, Tuple, Union

from engagement.core.engagement_config import DEFAULT_CONFIG, EngagementConfig
from engagement.core.errors import require_present
from engagement.schemas.models import EngagementPlan, ProtocolElements, ValidationReport
from engagement.services.protocol_input import RawProtocol, normalize_protocol
from engagement.utils.text_scan import haystack, has_add_prefix, iter_strings, normalize_name

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("title", "phases", "safety_rules", "compliance_disclaimer")
SAFETY_BUCKET_KEYS = ("stop_immediately", "hold_and_contact", "escalation_triggers")
GENERATED_METHODS = ("deterministic_mirror", "ai_strict_mirror")

THRESHOLD_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("dosage", re.compile(r"\b\d+(?:[.,]\d+)?\s*(?:mg|mcg|µg|iu|g|ml)\b", re.IGNORECASE)),
    ("threshold", re.compile(r"[<>=≤≥]=?\s*\d+(?:\.\d+)?")),
    ("frequency", re.compile(r"\b\d+\s*(?:x|times?)\s*(?:per|a|/)\s*(?:day|week|month)\b", re.IGNORECASE)),
]

DECISION_PATTERNS: List[Tuple[str, "re.Pattern[str]"]] = [
    ("STOP decision logic", re.compile(r"\bSTOP\s+(?:if|when|immediately)\b", re.IGNORECASE)),
    ("HOLD decision logic", re.compile(r"\bHOLD\s+(?:if|when|and\s+contact)\b", re.IGNORECASE)),
    ("PAUSE decision logic", re.compile(r"\bPAUSE\s+(?:if|when)\b", re.IGNORECASE)),
    ("ESCALATE decision logic", re.compile(r"\bESCALATE\s+(?:if|when|within)\b", re.IGNORECASE)),
    (
        "IF/THEN conditional",
        re.compile(r"\bif\s+(?:\d[.,]\d|[^.;\n])*?\b(?:symptom|lab|toleran|tolerat|safety|adverse)\w*", re.IGNORECASE),
    ),
]

PlanInput = Union[EngagementPlan, Dict[str, Any]]

def _as_dict(plan: PlanInput) -> Any:
    if isinstance(plan, EngagementPlan):
        return plan.model_dump(mode="json")
    return plan

def _protocol_text(raw: RawProtocol, protocol: ProtocolElements) -> str:
    # raw input may carry fields the canonical model drops (notes, contraindications)
    parts = [haystack(protocol.model_dump(mode="json"))]
    if isinstance(raw, str):
        parts.append(raw)
    elif isinstance(raw, dict):
        parts.append(haystack(raw))
    return "\n".join(parts)

def _dict_list(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]

def _clinic_items(plan: Dict[str, Any]) -> List[Dict[str, Any]]:
    section = plan.get("clinic_treatments")
    if isinstance(section, list):
        return _dict_list(section)
    if isinstance(section, dict):
        return _dict_list(section.get("items")) + _dict_list(section.get("treatments"))
    return []

class _Findings:
    def __init__(self) -> None:
        self.issues: List[str] = []
        self.warnings: List[str] = []
        self.failed: Set[str] = set()

    def issue(self, check: str, msg: str) -> None:
        self.issues.append(msg)
        self.failed.add(check)

    def warn(self, check: str, msg: str) -> None:
        self.warnings.append(msg)
        self.failed.add(check)

def _check_names(plan: Dict[str, Any], protocol: ProtocolElements, f: _Findings) -> None:
    supplements = {normalize_name(s.name) for s in protocol.supplements}
    lifestyle = {normalize_name(l.name) for l in protocol.lifestyle_protocols}
    treatments = {normalize_name(t.name) for t in protocol.clinic_treatments}
    tests = {normalize_name(t.name) for t in protocol.retest_schedule}

    for idx, phase in enumerate(_dict_list(plan.get("phases"))):
        for el in _dict_list(phase.get("clinical_elements")):
            name = el.get("name")
            key = normalize_name(name)
            source = el.get("source")
            if source == "protocol_supplement" and key not in supplements:
                f.issue("no_invented_supplements", f'Phase {idx + 1}: Supplement "{name}" not in protocol input')
            elif source == "protocol_lifestyle" and key not in lifestyle:
                f.issue("no_invented_lifestyle", f'Phase {idx + 1}: Lifestyle item "{name}" not in protocol input')

    for t in _clinic_items(plan):
        if normalize_name(t.get("name")) not in treatments:
            f.issue("no_invented_treatments", f'Clinic treatment "{t.get("name")}" not in protocol input')

    for t in _dict_list(plan.get("testing_schedule")):
        if normalize_name(t.get("name")) not in tests:
            f.issue("no_invented_tests", f'Test "{t.get("name")}" not in protocol input')

def _check_thresholds(plan: Dict[str, Any], protocol_text: str, config: EngagementConfig, f: _Findings) -> None:
    reported: Set[str] = set()
    for text in iter_strings(plan):
        for kind, pattern in THRESHOLD_PATTERNS:
            for m in pattern.finditer(text):
                match = m.group(0)
                if match in protocol_text or match in reported:
                    continue
                reported.add(match)
                msg = f"Potential invented {kind}: {match}"
                if config.threshold_severity == "issue":
                    f.issue("no_invented_thresholds", msg)
                else:
                    f.warn("no_invented_thresholds", msg)

def _check_decision_logic(plan: Dict[str, Any], protocol_text: str, f: _Findings) -> None:
    lowered = protocol_text.lower()
    reported: Set[str] = set()
    for text in iter_strings(plan):
        for kind, pattern in DECISION_PATTERNS:
            for m in pattern.finditer(text):
                match = m.group(0)
                if match.lower() in lowered or match.lower() in reported:
                    continue
                reported.add(match.lower())
                f.issue(
                    "no_prohibited_decision_logic",
                    f'CRITICAL: Prohibited {kind} detected: "{match}" - must use verbatim protocol text '
                    f'or "Action not specified in protocol"',
                )

def _check_structure(plan: Dict[str, Any], f: _Findings) -> None:
    # present means set; an empty list still counts as present
    for field in REQUIRED_FIELDS:
        if plan.get(field) in (None, ""):
            f.issue("has_required_fields", f"Missing required field: {field}")

    rules = plan.get("safety_rules")
    if isinstance(rules, dict):
        for bucket in SAFETY_BUCKET_KEYS:
            # buckets carry a sentinel rule rather than being left empty
            if not rules.get(bucket):
                f.issue("has_required_fields", f"Missing required field: safety_rules.{bucket}")

def _check_traceability(plan: Dict[str, Any], f: _Findings) -> None:
    allowed = ("protocol_supplement", "protocol_lifestyle", "not_specified", "extraction_issue")
    for idx, phase in enumerate(_dict_list(plan.get("phases"))):
        elements = _dict_list(phase.get("clinical_elements"))
        if elements and not phase.get("protocol_trace"):
            f.warn("protocol_traceability", f"Phase {idx + 1}: Missing protocol_trace")
        for el in elements:
            if el.get("source") not in allowed:
                f.warn(
                    "protocol_traceability",
                    f'Phase {idx + 1}: Element "{el.get("name")}" has no recognized protocol_trace source',
                )

def _check_introductions(plan: Dict[str, Any], f: _Findings) -> None:
    first_seen: Dict[str, int] = {}
    for idx, phase in enumerate(_dict_list(plan.get("phases"))):
        added_here: Set[str] = set()
        for el in _dict_list(phase.get("clinical_elements")):
            name = el.get("name")
            if isinstance(name, str) and has_add_prefix(name):
                added_here.add(normalize_name(name))
        for key in sorted(added_here):
            if key in first_seen:
                f.issue(
                    "monotonic_introduction",
                    f'Phase {idx + 1}: "{key}" is ADDed again (first introduced in phase {first_seen[key] + 1})',
                )
            else:
                first_seen[key] = idx

def validate_engagement_plan(
    plan: PlanInput,
    protocol: RawProtocol,
    config: EngagementConfig = DEFAULT_CONFIG,
) -> ValidationReport:
    """Pure check of a plan (either path) against the protocol it claims to mirror."""
    require_present(plan, "engagement plan")
    require_present(protocol, "protocol elements")

    elements = normalize_protocol(protocol)
    data = _as_dict(plan)
    f = _Findings()

    if not isinstance(data, dict):
        f.issue("has_required_fields", "Engagement plan must be a JSON object")
    else:
        protocol_text = _protocol_text(protocol, elements)
        _check_names(data, elements, f)
        _check_thresholds(data, protocol_text, config, f)
        _check_decision_logic(data, protocol_text, f)
        _check_structure(data, f)
        _check_traceability(data, f)
        _check_introductions(data, f)

        method = data.get("generated_method")
        if method and method not in GENERATED_METHODS:
            f.warnings.append(f"Unrecognized generated_method: {method}")

    checks = (
        "no_invented_supplements",
        "no_invented_lifestyle",
        "no_invented_treatments",
        "no_invented_tests",
        "no_invented_thresholds",
        "no_prohibited_decision_logic",
        "has_required_fields",
        "protocol_traceability",
        "monotonic_introduction",
    )
    report = ValidationReport(
        is_valid=not f.issues,
        issues=f.issues,
        warnings=f.warnings,
        checks_passed={c: c not in f.failed for c in checks},
    )
    logger.info(
        "Plan validation: valid=%s issues=%d warnings=%d",
        report.is_valid, len(report.issues), len(report.warnings),
    )
    return report

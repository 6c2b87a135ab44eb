# engagement/services/protocol_input.py
import json
import logging
from typing import Any, Dict, List, Optional, Union, get_args

from engagement.core.errors import ProtocolContractError, require_present
from engagement.schemas.models import (
    ClinicTreatment,
    LifestyleProtocol,
    ProtocolElements,
    ProtocolPhase,
    RetestItem,
    SafetyConstraint,
    SafetyConstraintType,
    Supplement,
)

logger = logging.getLogger(__name__)

_SAFETY_TYPES = set(get_args(SafetyConstraintType))

RawProtocol = Union[ProtocolElements, Dict[str, Any], str]

def _text(v: Any) -> Optional[str]:
    if v is None:
        return None
    s = str(v).strip()
    return s or None

def _week(v: Any) -> Optional[int]:
    """Positive whole week number, else None."""
    if v is None or isinstance(v, bool):
        return None
    try:
        n = int(float(v))
    except (TypeError, ValueError):
        return None
    return n if n >= 1 else None

def _as_list(value: Any, what: str) -> List[Any]:
    """A list field; a lone string or object counts as one entry, anything else as empty."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, (str, dict)):
        return [value]
    logger.debug("Ignoring non-list %s: %r", what, value)
    return []

def _items(raw: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    # bare strings are accepted as {"name": "..."}
    out: List[Dict[str, Any]] = []
    for it in _as_list(raw.get(key), key):
        if isinstance(it, str):
            out.append({"name": it})
        elif isinstance(it, dict):
            out.append(it)
        else:
            logger.debug("Dropping non-object %s entry: %r", key, it)
    return out

def _named(raw: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    out = []
    for it in _items(raw, key):
        # retest entries from older extractors use "test" for the name
        name = _text(it.get("name")) or _text(it.get("test"))
        if not name:
            logger.debug("Dropping %s entry without a name", key)
            continue
        out.append({**it, "name": name})
    return out

def _supplements(raw: Dict[str, Any]) -> List[Supplement]:
    return [
        Supplement(
            name=it["name"],
            start_week=_week(it.get("start_week")),
            dosage=_text(it.get("dosage")),
            timing=_text(it.get("timing")),
        )
        for it in _named(raw, "supplements")
    ]

def _clinic_treatments(raw: Dict[str, Any]) -> List[ClinicTreatment]:
    return [
        ClinicTreatment(
            name=it["name"],
            start_week=_week(it.get("start_week")),
            frequency=_text(it.get("frequency")),
            indication=_text(it.get("indication")),
        )
        for it in _named(raw, "clinic_treatments")
    ]

def _retests(raw: Dict[str, Any]) -> List[RetestItem]:
    return [
        RetestItem(name=it["name"], timing=_text(it.get("timing")), purpose=_text(it.get("purpose")))
        for it in _named(raw, "retest_schedule")
    ]

def _safety_constraints(raw: Dict[str, Any]) -> List[SafetyConstraint]:
    out: List[SafetyConstraint] = []
    for it in _items(raw, "safety_constraints"):
        ctype = (_text(it.get("type")) or "").lower()
        text = _text(it.get("constraint"))
        if not text:
            continue
        if ctype not in _SAFETY_TYPES:
            # classification is by declared type only; never guessed from text
            logger.warning("Dropping safety constraint with unknown type %r", ctype)
            continue
        out.append(SafetyConstraint(type=ctype, constraint=text, phase=_text(it.get("phase"))))
    return out

def _phases(raw: Dict[str, Any]) -> List[ProtocolPhase]:
    out: List[ProtocolPhase] = []
    for it in _items(raw, "phases"):
        criteria = [c for c in _as_list(it.get("readiness_criteria"), "readiness_criteria") if isinstance(c, str)]
        out.append(ProtocolPhase(
            name=_text(it.get("name")) or _text(it.get("phase_name")),
            start_week=_week(it.get("start_week")),
            duration_weeks=_week(it.get("duration_weeks")),
            goal=_text(it.get("goal")),
            readiness_criteria=[c for c in (_text(x) for x in criteria) if c],
        ))
    return out

def compute_total_weeks(phases: List[ProtocolPhase], explicit: Optional[int]) -> Optional[int]:
    """
    Precedence:
      1) explicit duration always wins
      2) last phase start_week + duration_weeks - 1 (both required)
      3) unspecified
    """
    if explicit is not None:
        return explicit
    if phases:
        last = phases[-1]
        if last.start_week is not None and last.duration_weeks is not None:
            return last.start_week + last.duration_weeks - 1
    return None

def normalize_protocol(raw: RawProtocol, duration_weeks: Optional[int] = None) -> ProtocolElements:
    """
    Converts arbitrary/partial protocol JSON into ProtocolElements.
    Missing fields are data, not errors: lists default to [] and scalars to None.
    """
    require_present(raw, "protocol elements")

    if isinstance(raw, ProtocolElements):
        if duration_weeks is None:
            return raw
        raw = raw.model_dump()

    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            logger.warning("Protocol elements string is not valid JSON; treating as empty")
            raw = {}

    if not isinstance(raw, dict):
        raise ProtocolContractError(f"protocol elements must be an object, got {type(raw).__name__}")

    phases = _phases(raw)
    explicit = _week(duration_weeks) if duration_weeks is not None else _week(raw.get("duration_weeks"))
    total = compute_total_weeks(phases, explicit)

    elements = ProtocolElements(
        supplements=_supplements(raw),
        clinic_treatments=_clinic_treatments(raw),
        lifestyle_protocols=[LifestyleProtocol(name=it["name"]) for it in _named(raw, "lifestyle_protocols")],
        retest_schedule=_retests(raw),
        safety_constraints=_safety_constraints(raw),
        phases=phases,
        duration_weeks=explicit,
        total_weeks=total,
        duration_specified=total is not None,
    )
    logger.debug(
        "Normalized protocol: %d supplements, %d phases, total_weeks=%s",
        len(elements.supplements), len(elements.phases), elements.total_weeks,
    )
    return elements

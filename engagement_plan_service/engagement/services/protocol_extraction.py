# engagement/services/protocol_extraction.py
import json
import logging
import re
from typing import Any, Dict, List, Optional

from engagement.core.errors import ProtocolContractError, require_present

logger = logging.getLogger(__name__)

_WEEK_RE = re.compile(r"week\s*(\d+)", re.IGNORECASE)

_CLINIC_KEYWORDS = [
    "iv ", " iv", "infusion", "push", "drip",
    "hbot", "hyperbaric",
    "ozone", "autohemotherapy", "eboo", "mah",
    "red light", "photobiomodulation",
    "cold plunge", "cryotherapy", "cryo",
    "sauna", "infrared",
    "peptide therapy", "injection",
    "nad+",
    "pemf", "pulsed electromagnetic",
]

_LIFESTYLE_KEYWORDS = [
    "hydration", "water intake",
    "elimination", "bowel",
    "sleep", "circadian",
    "exercise", "movement", "resistance training", "strength training",
    "stress", "meditation",
    "diet", "food", "eating", "nutrition",
    "fasting", "intermittent",
    "sunlight", "light exposure",
]

_CATEGORY_MAP = {
    "supplement": "supplements", "supplements": "supplements", "binder": "supplements",
    "clinic_treatment": "clinic_treatments", "clinic": "clinic_treatments",
    "iv": "clinic_treatments", "therapy": "clinic_treatments",
    "lifestyle": "lifestyle_protocols", "diet": "lifestyle_protocols", "protocol": "lifestyle_protocols",
}

def is_clinic_treatment(name: str) -> bool:
    low = (name or "").lower()
    return any(kw in low for kw in _CLINIC_KEYWORDS)

def is_lifestyle_protocol(name: str) -> bool:
    low = (name or "").lower()
    return any(kw in low for kw in _LIFESTYLE_KEYWORDS)

def guess_bucket(name: str) -> str:
    if is_clinic_treatment(name):
        return "clinic_treatments"
    if is_lifestyle_protocol(name):
        return "lifestyle_protocols"
    return "supplements"

def _start_week_from_label(label: Any) -> Optional[int]:
    if not isinstance(label, str):
        return None
    m = _WEEK_RE.search(label)
    return int(m.group(1)) if m else None

def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        logger.debug("Skipping non-object %s section: %r", key, value)
        return {}
    return value

def _entries(value: Any, what: str) -> List[Dict[str, Any]]:
    # bare strings are read as {"name": "..."}; other non-objects are skipped
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    out: List[Dict[str, Any]] = []
    for it in value:
        if isinstance(it, str):
            out.append({"name": it})
        elif isinstance(it, dict):
            out.append(it)
        else:
            logger.debug("Skipping non-object %s entry: %r", what, it)
    return out

def _texts(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]

def _name(obj: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = obj.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""

def _categorize(obj: Dict[str, Any], elements: Dict[str, List[Dict[str, Any]]], phase: Optional[str], start_week: Optional[int]) -> None:
    name = _name(obj, "name")
    if not name:
        return

    category = obj.get("category")
    category = category.lower().strip() if isinstance(category, str) else ""
    bucket = _CATEGORY_MAP.get(category) or guess_bucket(name)

    enriched = {**obj, "name": name, "phase": phase}
    if start_week is not None:
        enriched["start_week"] = start_week
    if bucket == "lifestyle_protocols":
        enriched = {"name": name}
    elements[bucket].append(enriched)

def _add_phase(
    phase: Dict[str, Any],
    elements: Dict[str, List[Dict[str, Any]]],
    default_name: Optional[str] = None,
) -> None:
    phase_name = _name(phase, "phase_name", "name") or default_name
    criteria = _texts(phase.get("readiness_criteria"))
    elements["phases"].append({
        "name": phase_name,
        "start_week": phase.get("start_week"),
        "duration_weeks": phase.get("duration_weeks"),
        "goal": phase.get("goal"),
        "readiness_criteria": criteria,
    })
    for it in _entries(phase.get("items"), "items"):
        _categorize(it, elements, phase_name, phase.get("start_week"))
    for gate in _texts(phase.get("safety_gates")):
        elements["safety_constraints"].append({"constraint": gate, "phase": phase_name, "type": "safety_gate"})
    for c in criteria:
        elements["safety_constraints"].append({"constraint": c, "phase": phase_name, "type": "readiness_criteria"})

def extract_protocol_elements(document: Any) -> Dict[str, Any]:
    """
    Flattens a clinician-authored protocol document into raw protocol elements:
      core_protocol / phased_expansion / modules  -> items + phases
      clinic_treatments.available_modalities      -> clinic_treatments
      retest_schedule[].test                      -> retest_schedule
      safety_summary / precautions                -> safety_constraints
    Only values present in the document are carried; no default weeks are filled in.
    Sections of the wrong shape are skipped, not raised on.
    """
    require_present(document, "protocol document")
    data = json.loads(document) if isinstance(document, str) else document
    if not isinstance(data, dict):
        raise ProtocolContractError(f"protocol document must be an object, got {type(data).__name__}")

    elements: Dict[str, List[Dict[str, Any]]] = {
        "supplements": [],
        "clinic_treatments": [],
        "lifestyle_protocols": [],
        "retest_schedule": [],
        "safety_constraints": [],
        "phases": [],
    }

    core = _section(data, "core_protocol")
    if core.get("items"):
        _add_phase(core, elements, default_name="Core Protocol")

    for phase in _entries(data.get("phased_expansion"), "phased_expansion"):
        _add_phase(phase, elements)

    clinic = _section(data, "clinic_treatments")
    label = clinic.get("phase")
    clinic_start = _start_week_from_label(label)
    for t in _entries(clinic.get("available_modalities"), "available_modalities"):
        elements["clinic_treatments"].append({
            "name": t.get("name"),
            "indication": t.get("indication"),
            "frequency": t.get("frequency"),
            "start_week": clinic_start,
            "phase": label,
        })

    for test in _entries(data.get("retest_schedule"), "retest_schedule"):
        elements["retest_schedule"].append({
            "name": _name(test, "test", "name") or None,
            "timing": test.get("timing"),
            "purpose": test.get("purpose"),
        })

    summary = _section(data, "safety_summary")
    for key, ctype in (
        ("absolute_contraindications", "absolute_contraindication"),
        ("monitoring_requirements", "monitoring_requirement"),
        ("warning_signs", "warning_sign"),
        ("hold_conditions", "hold_condition"),
    ):
        for c in _texts(summary.get(key)):
            elements["safety_constraints"].append({"constraint": c, "type": ctype})

    for p in _texts(data.get("precautions")):
        elements["safety_constraints"].append({"constraint": p, "type": "precaution"})

    for module in _entries(data.get("modules"), "modules"):
        for it in _entries(module.get("items"), "items"):
            _categorize(it, elements, _name(module, "name") or None, None)

    logger.info(
        "Extracted protocol elements: %s",
        {k: len(v) for k, v in elements.items()},
    )
    return elements

# engagement/services/alignment.py
import logging
import re
from typing import Any, Dict, List

from engagement.core.errors import require_present
from engagement.schemas.models import AlignmentReport, EngagementPlan
from engagement.services.protocol_input import RawProtocol, normalize_protocol

logger = logging.getLogger(__name__)

_PARENS_RE = re.compile(r"\s*\([^)]*\)")

# spelling variants of common item names, used only for matching
NAME_SYNONYMS: Dict[str, List[str]] = {
    "magnesium glycinate": ["magnesium", "mag glycinate"],
    "vitamin d3": ["vitamin d", "d3", "vit d"],
    "vitamin d": ["vitamin d3", "d3", "vit d"],
    "omega-3": ["omega 3", "fish oil", "epa/dha", "epa dha"],
    "omega 3": ["omega-3", "fish oil", "epa/dha", "epa dha"],
    "coenzyme q10": ["coq10", "ubiquinol", "ubiquinone"],
    "coq10": ["coenzyme q10", "ubiquinol", "ubiquinone"],
    "alpha-lipoic acid": ["lipoic acid", "alpha lipoic"],
    "iv glutathione": ["glutathione iv", "glutathione push", "iv glutathione push"],
    "glutathione iv": ["iv glutathione", "glutathione push"],
    "ozone therapy": ["ozone", "autohemotherapy", "ozone treatment"],
    "hydration protocol": ["hydration", "water intake", "hydration support"],
    "elimination support": ["elimination", "bowel support", "bowel regularity"],
    "infrared sauna": ["ir sauna", "sauna", "infrared"],
    "red light therapy": ["red light", "photobiomodulation", "rlt"],
    "pemf": ["pulsed electromagnetic", "pemf therapy", "pulsed emf"],
    "resistance training": ["strength training", "weight training", "resistance exercise"],
    "sleep optimization": ["sleep hygiene", "sleep protocol"],
}

def name_variants(name: str) -> List[str]:
    if not name:
        return []
    low = name.lower().strip()
    variants = [low]
    without_parens = _PARENS_RE.sub("", low).strip()
    if without_parens and without_parens != low:
        variants.append(without_parens)
    for key, values in NAME_SYNONYMS.items():
        if key in low or any(v in low for v in values):
            variants.append(key)
            variants.extend(values)
    return list(dict.fromkeys(variants))

def _found(name: str, haystack: List[str]) -> bool:
    return any(v in h for v in name_variants(name) for h in haystack)

def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []

def _dict_list(value: Any) -> List[Dict[str, Any]]:
    return [v for v in _as_list(value) if isinstance(v, dict)]

def _names(items: List[Dict[str, Any]]) -> List[str]:
    return [t["name"].lower() for t in items if isinstance(t.get("name"), str)]

def _percent(found: int, total: int) -> int:
    return round(found / total * 100) if total else 100

def check_alignment(plan: Any, protocol: RawProtocol) -> AlignmentReport:
    """
    Coverage in the other direction from the compliance check: every protocol
    item must show up, by name, in the section where it belongs.
    """
    require_present(plan, "engagement plan")
    elements = normalize_protocol(protocol)
    data = plan.model_dump(mode="json") if isinstance(plan, EngagementPlan) else (plan or {})

    if not isinstance(data, dict):
        data = {}

    element_names: List[str] = []
    for phase in _dict_list(data.get("phases")):
        for el in _as_list(phase.get("clinical_elements")):
            name = el if isinstance(el, str) else (el.get("name") if isinstance(el, dict) else None)
            if isinstance(name, str) and name:
                element_names.append(name.lower())

    section = data.get("clinic_treatments")
    if isinstance(section, dict):
        clinic_items = _dict_list(section.get("items"))
    else:
        clinic_items = _dict_list(section)
    clinic_names = _names(clinic_items)
    test_names = _names(_dict_list(data.get("testing_schedule")))

    missing_supp = [s.name for s in elements.supplements if not _found(s.name, element_names)]
    missing_life = [l.name for l in elements.lifestyle_protocols if not _found(l.name, element_names)]
    missing_clinic = [t.name for t in elements.clinic_treatments if not _found(t.name, clinic_names)]
    missing_tests = [t.name for t in elements.retest_schedule if not _found(t.name, test_names)]

    totals = {
        "supplements": len(elements.supplements),
        "clinic_treatments": len(elements.clinic_treatments),
        "lifestyle_protocols": len(elements.lifestyle_protocols),
        "retest_schedule": len(elements.retest_schedule),
    }
    coverage = {
        "supplements": totals["supplements"] - len(missing_supp),
        "clinic_treatments": totals["clinic_treatments"] - len(missing_clinic),
        "lifestyle_protocols": totals["lifestyle_protocols"] - len(missing_life),
        "retest_schedule": totals["retest_schedule"] - len(missing_tests),
    }
    pct = {k: _percent(coverage[k], totals[k]) for k in totals}

    structure_valid = bool(element_names)
    report = AlignmentReport(
        is_aligned=structure_valid and not (missing_supp or missing_life or missing_clinic or missing_tests),
        structure_valid=structure_valid,
        missing_supplements=missing_supp,
        missing_clinic_treatments=missing_clinic,
        missing_lifestyle_protocols=missing_life,
        missing_retests=missing_tests,
        coverage=coverage,
        coverage_percentage=pct,
        overall_coverage=round(sum(pct.values()) / len(pct)),
    )
    logger.info("Alignment: aligned=%s overall_coverage=%d%%", report.is_aligned, report.overall_coverage)
    return report

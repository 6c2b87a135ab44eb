# engagement/agent/nodes.py
from typing import Any, Dict

from engagement.agent.state import EngagementState
from engagement.core.engagement_config import EngagementConfig
from engagement.services.compliance import validate_engagement_plan
from engagement.services.llm.response_parser import PlanParseError, parse_failure, parse_plan_json
from engagement.services.planner import synthesize_engagement_plan
from engagement.services.protocol_input import normalize_protocol

def _audit(state: EngagementState, event: str, extra: Dict[str, Any] | None = None) -> Dict[str, Any]:
    audit = list(state.get("audit") or [])
    audit.append({"event": event, **(extra or {})})
    return {"audit": audit}

def normalize_node(state: EngagementState) -> Dict[str, Any]:
    raw = state.get("protocol_elements")
    if raw is None:
        raw = {}
    protocol = normalize_protocol(raw, duration_weeks=state.get("duration_weeks"))
    return {
        "protocol": protocol.model_dump(mode="json"),
        **_audit(state, "normalize.done", {
            "supplements": len(protocol.supplements),
            "phases": len(protocol.phases),
            "duration_specified": protocol.duration_specified,
        }),
    }

def route_after_normalize(state: EngagementState) -> str:
    return "parse_ai" if state.get("mode") == "ai" else "synthesize"

def synthesize_node(state: EngagementState, config: EngagementConfig) -> Dict[str, Any]:
    plan = synthesize_engagement_plan(
        state["protocol"],
        protocol_title=state.get("protocol_title"),
        client_name=state.get("client_name"),
        created_date=state.get("created_date"),
        config=config,
    )
    return {
        "engagement_plan": plan.model_dump(mode="json"),
        **_audit(state, "synthesize.done", {"phase_count": len(plan.phases)}),
    }

def parse_ai_node(state: EngagementState, config: EngagementConfig) -> Dict[str, Any]:
    text = state.get("raw_response") or ""
    try:
        plan = parse_plan_json(text)
    except PlanParseError as e:
        return {
            "parse_failure": parse_failure(text, e, config.raw_preview_chars),
            **_audit(state, "parse_ai.failed", {"error": str(e)}),
        }
    return {
        "engagement_plan": plan,
        **_audit(state, "parse_ai.done", {"phase_count": len(plan.get("phases") or [])}),
    }

def route_after_plan(state: EngagementState) -> str:
    # conditional edge target
    if state.get("parse_failure"):
        return "end"
    if state.get("mode") != "ai" and state.get("validate_plan") is False:
        return "end"
    return "validate"

def validate_node(state: EngagementState, config: EngagementConfig) -> Dict[str, Any]:
    # raw input keeps fields the canonical model drops, so verbatim lookups see them too
    source = state.get("protocol_elements") or state.get("protocol") or {}
    report = validate_engagement_plan(state["engagement_plan"], source, config)
    return {
        "validation": report.model_dump(),
        **_audit(state, "validate.done", {"issues": len(report.issues), "warnings": len(report.warnings)}),
    }

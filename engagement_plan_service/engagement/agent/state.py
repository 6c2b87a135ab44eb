from typing import Any, Dict, List, Literal, Optional, TypedDict

class EngagementState(TypedDict, total=False):
    # inputs
    mode: Literal["deterministic", "ai"]
    protocol_elements: Dict[str, Any]   # raw, possibly partial protocol JSON
    protocol: Dict[str, Any]            # canonical ProtocolElements dump
    protocol_title: Optional[str]
    client_name: Optional[str]
    created_date: Optional[str]
    duration_weeks: Optional[int]
    raw_response: str                   # generator output (ai mode only)
    validate_plan: bool

    # outputs
    engagement_plan: Dict[str, Any]
    validation: Dict[str, Any]
    parse_failure: Dict[str, Any]       # structured failure from the text adapter
    audit: List[Dict[str, Any]]

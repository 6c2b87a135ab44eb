# engagement/api/routes_engagement.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException

from engagement.agent.graph import create_graph
from engagement.core.engagement_config import load_engagement_config
from engagement.core.errors import ProtocolContractError
from engagement.schemas.models import (
    AIPlanRequest,
    AlignmentReport,
    PlanRequest,
    PlanResponse,
    ValidateRequest,
    ValidationReport,
)
from engagement.services.alignment import check_alignment
from engagement.services.compliance import validate_engagement_plan
from engagement.services.planner import generation_settings

router = APIRouter(prefix="/engagement", tags=["engagement"])

engagement_config = load_engagement_config()
engagement_graph = create_graph(engagement_config)

def _response(result: Dict[str, Any]) -> PlanResponse:
    failure = result.get("parse_failure")
    if failure:
        return PlanResponse(**failure, audit=result.get("audit", []))

    plan = result.get("engagement_plan")
    if not plan:
        raise HTTPException(status_code=500, detail="Engagement plan missing from graph state.")
    return PlanResponse(
        success=True,
        engagement_plan=plan,
        validation=result.get("validation"),
        audit=result.get("audit", []),
    )

@router.post("/plan", response_model=PlanResponse)
def engagement_plan(req: PlanRequest):
    initial_state = {
        "mode": "deterministic",
        "protocol_elements": req.protocol_elements,
        "protocol_title": req.protocol_title,
        "client_name": req.client_name,
        "created_date": req.created_date,
        "duration_weeks": req.duration_weeks,
        "validate_plan": req.validate_plan,
        "audit": [],
    }
    return _response(engagement_graph.invoke(initial_state))

@router.post("/plan/ai", response_model=PlanResponse)
def engagement_plan_ai(req: AIPlanRequest):
    initial_state = {
        "mode": "ai",
        "protocol_elements": req.protocol_elements,
        "raw_response": req.raw_response,
        "audit": [],
    }
    return _response(engagement_graph.invoke(initial_state))

@router.post("/validate", response_model=ValidationReport)
def engagement_validate(req: ValidateRequest):
    try:
        return validate_engagement_plan(req.engagement_plan, req.protocol_elements, engagement_config)
    except ProtocolContractError as e:
        raise HTTPException(status_code=422, detail=str(e))

@router.post("/alignment", response_model=AlignmentReport)
def engagement_alignment(req: ValidateRequest):
    try:
        return check_alignment(req.engagement_plan, req.protocol_elements)
    except ProtocolContractError as e:
        raise HTTPException(status_code=422, detail=str(e))

@router.get("/generation-settings")
def engagement_generation_settings(model: Optional[str] = None):
    return generation_settings(model, engagement_config)

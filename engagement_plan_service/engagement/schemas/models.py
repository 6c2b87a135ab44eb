from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

SafetyConstraintType = Literal[
    "absolute_contraindication",
    "safety_gate",
    "readiness_criteria",
    "hold_condition",
    "warning_sign",
    # listed verbatim, never bucketed
    "monitoring_requirement",
    "precaution",
]
GeneratedMethod = Literal["deterministic_mirror", "ai_strict_mirror"]
ElementSource = Literal["protocol_supplement", "protocol_lifestyle", "not_specified", "extraction_issue"]
ElementStatus = Literal["SCHEDULED", "REVIEW_REQUIRED"]
GateSource = Literal["protocol_readiness_criteria", "not_specified_in_protocol"]
RuleSource = Literal["protocol_safety_constraint", "not_specified_in_protocol"]

NOT_SPECIFIED = "Not specified in protocol"

COMPLIANCE_DISCLAIMER = (
    "This engagement plan is derived from the provided protocol text. "
    "It does not introduce new medical recommendations. "
    "Implementation must be supervised by a licensed healthcare practitioner."
)


# ---------------------------
# Protocol (input)
# ---------------------------

class _ProtocolItem(BaseModel):
    model_config = ConfigDict(frozen=True)

class Supplement(_ProtocolItem):
    name: str
    start_week: Optional[int] = None
    # opaque descriptive text, never parsed
    dosage: Optional[str] = None
    timing: Optional[str] = None

class ClinicTreatment(_ProtocolItem):
    name: str
    start_week: Optional[int] = None
    frequency: Optional[str] = None
    indication: Optional[str] = None

class LifestyleProtocol(_ProtocolItem):
    name: str

class RetestItem(_ProtocolItem):
    name: str
    timing: Optional[str] = None
    purpose: Optional[str] = None

class SafetyConstraint(_ProtocolItem):
    type: SafetyConstraintType
    constraint: str
    phase: Optional[str] = None

class ProtocolPhase(_ProtocolItem):
    name: Optional[str] = None
    start_week: Optional[int] = None
    duration_weeks: Optional[int] = None
    goal: Optional[str] = None
    readiness_criteria: List[str] = Field(default_factory=list)

class ProtocolElements(_ProtocolItem):
    supplements: List[Supplement] = Field(default_factory=list)
    clinic_treatments: List[ClinicTreatment] = Field(default_factory=list)
    lifestyle_protocols: List[LifestyleProtocol] = Field(default_factory=list)
    retest_schedule: List[RetestItem] = Field(default_factory=list)
    safety_constraints: List[SafetyConstraint] = Field(default_factory=list)
    phases: List[ProtocolPhase] = Field(default_factory=list)

    # explicit duration (if the protocol states one) + derived totals
    duration_weeks: Optional[int] = None
    total_weeks: Optional[int] = None
    duration_specified: bool = False


# ---------------------------
# Engagement plan (output)
# ---------------------------

class ClinicalElement(BaseModel):
    name: str
    status: ElementStatus = "SCHEDULED"
    source: ElementSource
    timing: Optional[str] = None

class SafetyGate(BaseModel):
    conditions: List[str]
    if_pass: str
    if_fail: str
    source: GateSource

class EngagementPhase(BaseModel):
    phase_number: int
    title: str
    week_range: str
    duration: str
    phase_goal: str
    clinical_elements: List[ClinicalElement] = Field(default_factory=list)
    engagement_actions: List[str] = Field(default_factory=list)
    protocol_trace: List[str] = Field(default_factory=list)
    safety_gate: SafetyGate

class ClinicTreatmentItem(BaseModel):
    name: str
    status: Literal["CLINICIAN DECISION"] = "CLINICIAN DECISION"
    timing: str
    indication: str
    frequency: str

class ClinicTreatmentsSection(BaseModel):
    note: str
    items: List[ClinicTreatmentItem]

class TestingScheduleEntry(BaseModel):
    name: str
    timing: str
    purpose: str
    sequence: List[str]

class SafetyRule(BaseModel):
    rule: str
    source: RuleSource
    type: Optional[SafetyConstraintType] = None

class SafetyRules(BaseModel):
    stop_immediately: List[SafetyRule]
    hold_and_contact: List[SafetyRule]
    escalation_triggers: List[SafetyRule]
    monitoring_as_per_protocol: List[str] = Field(default_factory=list)
    safety_summary_in_protocol: Literal["Yes", "No"]

class ProtocolReference(BaseModel):
    protocol_title: str
    client_name: str = NOT_SPECIFIED
    created_date: str = NOT_SPECIFIED
    source: str = "Structured protocol elements supplied with the request"

class PlanOverview(BaseModel):
    purpose: str
    phases_included: List[str]
    success_criteria: List[str]
    check_in_cadence: str

class MaintenancePath(BaseModel):
    description: str
    steps: List[str]

class AlignmentVerification(BaseModel):
    protocol_supplements_count: int
    engagement_plan_supplements_count: int
    protocol_lifestyle_count: int
    engagement_plan_lifestyle_count: int
    protocol_clinic_treatments_count: int
    engagement_plan_clinic_treatments_count: int
    protocol_tests_count: int
    engagement_plan_tests_count: int
    protocol_safety_constraints_count: int
    generated_deterministically: bool

class EngagementPlan(BaseModel):
    title: str
    generated_method: GeneratedMethod
    protocol_reference: ProtocolReference
    overview: PlanOverview
    summary: str
    total_weeks: Optional[int] = None
    duration_specified_in_protocol: bool = False
    phases: List[EngagementPhase]
    clinic_treatments: Optional[ClinicTreatmentsSection] = None
    testing_schedule: Optional[List[TestingScheduleEntry]] = None
    safety_rules: SafetyRules
    maintenance_path: MaintenancePath
    compliance_disclaimer: str = COMPLIANCE_DISCLAIMER
    alignment_verification: AlignmentVerification


# ---------------------------
# Reports
# ---------------------------

class ValidationReport(BaseModel):
    is_valid: bool
    issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    checks_passed: Dict[str, bool] = Field(default_factory=dict)

class ParseResult(BaseModel):
    success: bool
    engagement_plan: Optional[Dict[str, Any]] = None
    validation: Optional[ValidationReport] = None
    error: Optional[str] = None
    parseError: Optional[str] = None
    rawResponse: Optional[str] = None

class AlignmentReport(BaseModel):
    is_aligned: bool
    structure_valid: bool
    missing_supplements: List[str] = Field(default_factory=list)
    missing_clinic_treatments: List[str] = Field(default_factory=list)
    missing_lifestyle_protocols: List[str] = Field(default_factory=list)
    missing_retests: List[str] = Field(default_factory=list)
    coverage: Dict[str, int] = Field(default_factory=dict)
    coverage_percentage: Dict[str, int] = Field(default_factory=dict)
    overall_coverage: int = 100


# ---------------------------
# API bodies
# ---------------------------

class PlanRequest(BaseModel):
    protocol_elements: Dict[str, Any]
    protocol_title: Optional[str] = None
    client_name: Optional[str] = None
    created_date: Optional[str] = None
    duration_weeks: Optional[int] = Field(default=None, ge=1)
    validate_plan: bool = True

class AIPlanRequest(BaseModel):
    raw_response: str
    protocol_elements: Dict[str, Any]

class ValidateRequest(BaseModel):
    engagement_plan: Dict[str, Any]
    protocol_elements: Dict[str, Any]

class PlanResponse(BaseModel):
    success: bool
    engagement_plan: Optional[Dict[str, Any]] = None
    validation: Optional[ValidationReport] = None
    error: Optional[str] = None
    parseError: Optional[str] = None
    rawResponse: Optional[str] = None
    audit: List[Dict[str, Any]] = []

import os
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from engagement.core.env import load_env

Severity = Literal["warning", "issue"]

class ModelLimits(BaseModel):
    model_config = ConfigDict(frozen=True)

    temperature: float = 0.1
    max_tokens: int = 8000

# generation limits handed to the external caller of the LLM path
DEFAULT_MODEL_LIMITS: Dict[str, ModelLimits] = {
    "claude-sonnet-4": ModelLimits(temperature=0.1, max_tokens=8000),
    "claude-opus-4": ModelLimits(temperature=0.1, max_tokens=8000),
    "claude-3-5-haiku": ModelLimits(temperature=0.1, max_tokens=4096),
}

class EngagementConfig(BaseModel):
    """Immutable settings passed explicitly into the planner and validator."""

    model_config = ConfigDict(frozen=True)

    # severity for dosage/threshold/frequency matches not found in the protocol
    threshold_severity: Severity = "warning"
    raw_preview_chars: int = Field(default=500, ge=0)
    default_model: str = "claude-sonnet-4"
    model_limits: Dict[str, ModelLimits] = Field(default_factory=lambda: dict(DEFAULT_MODEL_LIMITS))

    def limits_for(self, model: Optional[str] = None) -> ModelLimits:
        name = model or self.default_model
        return self.model_limits.get(name) or self.model_limits.get(self.default_model) or ModelLimits()

def load_engagement_config() -> EngagementConfig:
    load_env()
    severity = os.getenv("ENGAGEMENT_THRESHOLD_SEVERITY", "warning").lower().strip()
    if severity not in ("warning", "issue"):
        severity = "warning"
    return EngagementConfig(
        threshold_severity=severity,
        raw_preview_chars=int(os.getenv("ENGAGEMENT_RAW_PREVIEW_CHARS", "500")),
        default_model=os.getenv("ENGAGEMENT_DEFAULT_MODEL", "claude-sonnet-4"),
    )

DEFAULT_CONFIG = EngagementConfig()

# engagement/services/llm/response_parser.py
import json
import logging
import re
from typing import Any, Dict

from engagement.core.errors import require_present

logger = logging.getLogger(__name__)

PARSE_FAILURE = "Failed to parse AI response as JSON"

# a ```json fence may be followed by a second bare ``` line
_OPEN_FENCE_RE = re.compile(r"^(?:```(?:json)?\s*){1,2}", re.IGNORECASE)
_CLOSE_FENCE_RE = re.compile(r"\s*```\s*$")

class PlanParseError(ValueError):
    pass

def strip_code_fence(text: str) -> str:
    """Removes a leading ```json / ``` fence and a trailing ``` fence, if present."""
    clean = (text or "").strip()
    clean = _OPEN_FENCE_RE.sub("", clean, count=1)
    clean = _CLOSE_FENCE_RE.sub("", clean, count=1)
    return clean.strip()

def parse_plan_json(text: str) -> Dict[str, Any]:
    """Strict JSON parse of generator output (no brace hunting, no repair)."""
    require_present(text, "AI response text")
    clean = strip_code_fence(text)
    try:
        data = json.loads(clean)
    except json.JSONDecodeError as e:
        raise PlanParseError(str(e)) from e
    if not isinstance(data, dict):
        raise PlanParseError(f"Expected a JSON object, got {type(data).__name__}")
    return data

def parse_failure(text: str, error: Exception, preview_chars: int = 500) -> Dict[str, Any]:
    logger.warning("AI engagement plan could not be parsed: %s", error)
    return {
        "success": False,
        "error": PARSE_FAILURE,
        "parseError": str(error),
        "rawResponse": (text or "")[:preview_chars],
    }

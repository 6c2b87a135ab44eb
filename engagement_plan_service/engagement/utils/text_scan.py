# engagement/utils/text_scan.py
from __future__ import annotations

import json
import re
from typing import Any, Iterator, List

_PREFIX_RE = re.compile(r"^\s*(ADD:|Continue:)\s*", re.IGNORECASE)
_ADD_RE = re.compile(r"^\s*ADD:", re.IGNORECASE)
_WS_RE = re.compile(r"\s+")

def strip_phase_prefix(name: Any) -> str:
    if not isinstance(name, str):
        return ""
    return _PREFIX_RE.sub("", name, count=1)

def has_add_prefix(name: Any) -> bool:
    if not isinstance(name, str):
        return False
    return bool(_ADD_RE.match(name))

def normalize_name(name: Any) -> str:
    """
    Comparison key for protocol item names:
      - drops a leading ADD:/Continue: marker
      - collapses whitespace, lowercases
    """
    if name is None:
        return ""
    text = strip_phase_prefix(str(name))
    return _WS_RE.sub(" ", text).strip().lower()

def iter_strings(value: Any) -> Iterator[str]:
    """
    Yields every dict key and every scalar leaf of a JSON-like value as text.
    Each string is scanned on its own so a pattern never spans two values.
    """
    if isinstance(value, dict):
        for k, v in value.items():
            yield str(k)
            yield from iter_strings(v)
    elif isinstance(value, (list, tuple)):
        for v in value:
            yield from iter_strings(v)
    elif isinstance(value, bool) or value is None:
        return
    elif isinstance(value, (str, int, float)):
        yield str(value)

def serialize(value: Any) -> str:
    """Serialized form used for verbatim lookups (non-ASCII kept as-is)."""
    return json.dumps(value, ensure_ascii=False, sort_keys=True)

def haystack(value: Any) -> str:
    """All strings of a value joined by newlines: a search space for substring checks."""
    parts: List[str] = list(iter_strings(value))
    parts.append(serialize(value))
    return "\n".join(parts)

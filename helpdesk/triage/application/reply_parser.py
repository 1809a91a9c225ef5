"""
Classifier Reply Parsing
========================

The classification service is told to answer with bare JSON, but replies
drift: markdown fences, commentary around the object, camelCase vs.
snake_case keys, or the object nested one level down. Everything here maps
those variants onto one shape.
"""

import json
import re
from typing import Any, Dict, Optional, Tuple

_FENCE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)

SUMMARY_KEYS: Tuple[str, ...] = ("summary",)
PRIORITY_KEYS: Tuple[str, ...] = ("priority",)
NOTES_KEYS: Tuple[str, ...] = ("notes", "helpfulNotes", "helpful_notes")
SKILLS_KEYS: Tuple[str, ...] = ("skills", "relatedSkills", "related_skills")

KNOWN_KEYS = frozenset(SUMMARY_KEYS + PRIORITY_KEYS + NOTES_KEYS + SKILLS_KEYS)


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return value if isinstance(value, dict) else None


def _largest_embedded_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Find the largest JSON object inside free text.

    The span from the first ``{`` to the last ``}`` is tried first; when that
    does not parse, every ``{`` is tried as a start and the longest object
    that decodes wins.
    """
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None

    greedy = _loads_object(text[start:end + 1])
    if greedy is not None:
        return greedy

    decoder = json.JSONDecoder()
    best: Optional[Dict[str, Any]] = None
    best_length = 0

    index = start
    while index != -1:
        try:
            value, stop = decoder.raw_decode(text, index)
        except ValueError:
            value, stop = None, index
        if isinstance(value, dict) and stop - index > best_length:
            best, best_length = value, stop - index
        index = text.find("{", index + 1)

    return best


def extract_json_object(text: Any) -> Optional[Dict[str, Any]]:
    """
    Extract the JSON object from a classifier reply.

    Returns:
        The parsed object, or None when the reply holds no JSON object
    """
    if not isinstance(text, str) or not text.strip():
        return None

    fence = _FENCE.search(text)
    if fence:
        parsed = _loads_object(fence.group(1).strip())
        if parsed is not None:
            return parsed

    parsed = _loads_object(text.strip())
    if parsed is not None:
        return parsed

    return _largest_embedded_object(text)


def unwrap_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Return the single nested object holding the fields, if that is the shape."""
    if KNOWN_KEYS & payload.keys():
        return payload

    nested = [
        value for value in payload.values()
        if isinstance(value, dict) and KNOWN_KEYS & value.keys()
    ]
    if len(nested) == 1:
        return nested[0]
    return payload


def pick(payload: Dict[str, Any], keys: Tuple[str, ...]) -> Any:
    """First non-null value among the accepted spellings of a field."""
    for key in keys:
        if payload.get(key) is not None:
            return payload[key]
    return None

"""
Classification Normalization
============================

Turns whatever the classifier produced into a ``NormalizedResult`` that is
safe to write on a ticket. ``normalize`` is pure and total: any input,
including ``None`` and ``ClassifierFailure``, yields a result.
"""

from typing import Any, Optional, Tuple, Union

from helpdesk.config import Priority
from helpdesk.triage.domain.entities import (
    ClassificationResult,
    ClassifierFailure,
    NormalizedResult,
    skill_key,
)

SUMMARY_UNAVAILABLE = "AI analysis unavailable or failed."
NOTES_MANUAL_REVIEW = "The AI could not complete analysis. Manual review required."

_PRIORITIES = {p.value: p for p in Priority}


def normalize_priority(value: Any) -> Priority:
    """Case-insensitive match against low/medium/high, else medium."""
    if isinstance(value, Priority):
        return value
    if isinstance(value, str):
        return _PRIORITIES.get(value.strip().lower(), Priority.MEDIUM)
    return Priority.MEDIUM


def normalize_skills(value: Any) -> Tuple[str, ...]:
    """
    Clean a raw skills value into a sorted, de-duplicated tuple.

    Non-list input gives an empty tuple. Entries are trimmed; empty and
    non-string entries are dropped. Duplicates differing only in case keep
    the first spelling.
    """
    if not isinstance(value, (list, tuple)):
        return ()

    seen = {}
    for entry in value:
        if not isinstance(entry, str):
            continue
        skill = entry.strip()
        if skill and skill_key(skill) not in seen:
            seen[skill_key(skill)] = skill

    return tuple(seen[key] for key in sorted(seen))


def _text_or(value: Any, sentinel: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return sentinel


def normalize(
    raw: Optional[Union[ClassificationResult, ClassifierFailure]]
) -> Tuple[NormalizedResult, bool]:
    """
    Normalize a raw classification.

    Returns:
        (result, used_fallback). ``used_fallback`` is True when there was no
        usable summary, i.e. the ticket carries no real AI triage.
    """
    if not isinstance(raw, ClassificationResult):
        return (
            NormalizedResult(
                summary=SUMMARY_UNAVAILABLE,
                priority=Priority.MEDIUM,
                notes=NOTES_MANUAL_REVIEW,
                skills=(),
            ),
            True,
        )

    summary = _text_or(raw.summary, SUMMARY_UNAVAILABLE)
    result = NormalizedResult(
        summary=summary,
        priority=normalize_priority(raw.priority),
        notes=_text_or(raw.notes, NOTES_MANUAL_REVIEW),
        skills=normalize_skills(raw.skills),
    )
    return result, summary == SUMMARY_UNAVAILABLE

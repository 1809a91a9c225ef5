"""
Fallback Classifier
===================

Deterministic keyword classifier used when the classification service is
unavailable or its reply is unusable. No I/O, no randomness: the same ticket
text always yields the same result, so re-running a workflow is safe.
"""

import re
from typing import List, Pattern, Tuple

from helpdesk.config import Priority
from helpdesk.triage.domain.entities import NormalizedResult
from helpdesk.triage.domain.normalization import (
    NOTES_MANUAL_REVIEW,
    SUMMARY_UNAVAILABLE,
)


def _rule(pattern: str) -> Pattern[str]:
    return re.compile(pattern)


# (pattern, skill) - matched against lower-cased ticket text
SKILL_RULES: List[Tuple[Pattern[str], str]] = [
    (_rule(r"\b(printer|paper jam|toner|scanner|keyboard|monitor|laptop|hardware)\b"), "hardware"),
    (_rule(r"\b(wi-?fi|network|vpn|dns|router|firewall|latency|packet loss)\b"), "networking"),
    (_rule(r"\b(password|login|log in|sign in|2fa|mfa|sso|locked out|account)\b"), "account management"),
    (_rule(r"\b(database|sql|mongo(db)?|postgres(ql)?|query|migration)\b"), "database"),
    (_rule(r"\b(email|e-mail|outlook|smtp|inbox|mailbox)\b"), "email"),
    (_rule(r"\b(invoice|billing|payment|refund|charge|subscription)\b"), "billing"),
    (_rule(r"\b(javascript|typescript|react|css|html|frontend|browser|page)\b"), "javascript"),
    (_rule(r"\b(api|backend|server|endpoint|node(\.js)?|500 error)\b"), "backend"),
    (_rule(r"\b(breach|phishing|malware|virus|security|vulnerability)\b"), "security"),
]

# Any match escalates the ticket to high priority
URGENT_RULES: List[Pattern[str]] = [
    _rule(r"\b(outage|down|offline|unreachable|crash(es|ed|ing)?)\b"),
    _rule(r"\b(urgent|asap|emergency|critical|blocking|blocker|blocked)\b"),
    _rule(r"\b(data loss|lost data|breach|security incident|ransomware)\b"),
    _rule(r"\b(cannot|can't|unable to) (log ?in|sign in|access|work)\b"),
    _rule(r"\b(production|prod) (is )?(down|broken|error)\b"),
]


class FallbackClassifier:
    """
    Keyword rule classifier.

    Summary and notes are the "analysis unavailable" sentinels: this is not an
    AI analysis and the ticket still needs a human read.
    """

    def __init__(
        self,
        skill_rules: List[Tuple[Pattern[str], str]] = SKILL_RULES,
        urgent_rules: List[Pattern[str]] = URGENT_RULES
    ):
        self._skill_rules = skill_rules
        self._urgent_rules = urgent_rules

    def classify(self, title: str, description: str) -> NormalizedResult:
        text = f"{title}\n{description}".lower()

        skills = sorted({skill for pattern, skill in self._skill_rules if pattern.search(text)})
        urgent = any(pattern.search(text) for pattern in self._urgent_rules)

        return NormalizedResult(
            summary=SUMMARY_UNAVAILABLE,
            priority=Priority.HIGH if urgent else Priority.MEDIUM,
            notes=NOTES_MANUAL_REVIEW,
            skills=tuple(skills),
        )

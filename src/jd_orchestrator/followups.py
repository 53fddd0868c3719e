from __future__ import annotations

import re
from dataclasses import dataclass

from .classifier import InputClassification, InputMode
from .vocabulary import FOLLOW_UP_FIELDS

MAX_FOLLOW_UPS = 3


@dataclass(frozen=True)
class _FieldCheck:
    field: str
    essential: bool
    question: str
    patterns: tuple[re.Pattern[str], ...]

    def present_in(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


_CHECKS: tuple[_FieldCheck, ...] = tuple(
    _FieldCheck(
        field=name,
        essential=essential,
        question=question,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
    )
    for name, essential, question, patterns in FOLLOW_UP_FIELDS
)


class FollowUpAdvisor:
    """
    Lists standard fields a brief does not mention, as questions.

    Optional fields (compensation, deadline) are only raised alongside a
    missing essential one, so a brief that covers the essentials is
    accepted without further questions.
    """

    def __init__(self, *, max_questions: int = MAX_FOLLOW_UPS):
        # The cap can only narrow the default three.
        self.max_questions = max(0, min(MAX_FOLLOW_UPS, max_questions))

    def missing_fields(self, classification: InputClassification) -> list[str]:
        if classification.mode not in (InputMode.BRIEF, InputMode.BRIEF_WITH_LINK):
            return []
        text = classification.brief_text or ""
        missing: list[_FieldCheck] = []
        for check in _CHECKS:
            # The link stands in for organization context.
            if check.field == "organization" and classification.mode is InputMode.BRIEF_WITH_LINK:
                continue
            if not check.present_in(text):
                missing.append(check)
        if not any(c.essential for c in missing):
            return []
        return [c.field for c in missing]

    def follow_ups(self, classification: InputClassification) -> list[str]:
        questions = {c.field: c.question for c in _CHECKS}
        return [questions[f] for f in self.missing_fields(classification)][: self.max_questions]

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl, urlsplit

from .errors import ValidationFailedError
from .metrics import classifications_total
from .vocabulary import BRIEF_REQUIRED_TERMS, JOB_BOARD_DOMAINS, JOB_PATH_SEGMENTS, JOB_QUERY_PARAMS, ROLE_TERMS

# Empirically chosen; due for recalibration against real submissions.
MIN_INPUT_CHARS = 10
SUBSTANTIAL_MIN_WORDS = 10
SUBSTANTIAL_MIN_SENTENCES = 2
SUBSTANTIAL_DENSE_TERMS = 3
LINKED_BRIEF_MIN_WORDS = 5
RELIABLE_CONFIDENCE = 0.7

BRIEF_MIN_CHARS = 20
BRIEF_MIN_WORDS = 5
UPLOAD_MIN_CHARS = 50

_URL_RE = re.compile(r"https?://[^\s<>\"'`]+", re.IGNORECASE)
_TRAILING_PUNCT = ".,;:!?)]}'\""
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_ROLE_TERM_RES = tuple(re.compile(rf"\b{re.escape(t)}", re.IGNORECASE) for t in ROLE_TERMS)
_BRIEF_TERM_RES = tuple(re.compile(rf"\b{re.escape(t)}", re.IGNORECASE) for t in BRIEF_REQUIRED_TERMS)


class InputMode(str, Enum):
    BRIEF = "brief"
    REFERENCE_LINK = "reference_link"
    BRIEF_WITH_LINK = "brief_with_link"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class InputClassification:
    mode: InputMode
    confidence: float
    brief_text: str | None = None
    url: str | None = None

    @property
    def is_reliable(self) -> bool:
        return self.mode is not InputMode.UNKNOWN and self.confidence >= RELIABLE_CONFIDENCE


def _clean_url(candidate: str) -> str | None:
    url = candidate.rstrip(_TRAILING_PUNCT)
    try:
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.hostname:
        return None
    return url


def extract_urls(text: str) -> list[str]:
    """Well-formed absolute http(s) URLs in order of appearance."""
    out: list[str] = []
    for match in _URL_RE.finditer(text):
        url = _clean_url(match.group(0))
        if url:
            out.append(url)
    return out


def strip_urls(text: str) -> str:
    return " ".join(_URL_RE.sub(" ", text).split())


def word_count(text: str) -> int:
    return len(text.split())


def sentence_count(text: str) -> int:
    return sum(1 for piece in _SENTENCE_SPLIT_RE.split(text) if piece.strip())


def role_terms_in(text: str) -> int:
    """Number of distinct role-vocabulary terms present."""
    return sum(1 for term_re in _ROLE_TERM_RES if term_re.search(text))


def is_substantial_brief(text: str) -> bool:
    if word_count(text) < SUBSTANTIAL_MIN_WORDS:
        return False
    terms = role_terms_in(text)
    if terms == 0:
        return False
    # A single dense sentence carries as much as two thin ones.
    return sentence_count(text) >= SUBSTANTIAL_MIN_SENTENCES or terms >= SUBSTANTIAL_DENSE_TERMS


def is_job_related_url(url: str) -> bool:
    try:
        parts = urlsplit(url)
    except ValueError:
        return False
    host = (parts.hostname or "").lower()
    if any(host == d or host.endswith("." + d) for d in JOB_BOARD_DOMAINS):
        return True
    segments = {s for s in parts.path.lower().split("/") if s}
    if segments.intersection(JOB_PATH_SEGMENTS):
        return True
    params = {k.lower() for k, _ in parse_qsl(parts.query, keep_blank_values=True)}
    return bool(params.intersection(JOB_QUERY_PARAMS))


class InputClassifier:
    """
    Decides which submission mode free text represents.

    Pure and deterministic: the same text always yields the same
    classification. Only the first URL in the text is considered.
    """

    def classify(self, text: str) -> InputClassification:
        result = self._classify(text or "")
        classifications_total.labels(mode=result.mode.value).inc()
        return result

    def _classify(self, text: str) -> InputClassification:
        trimmed = text.strip()
        if len(trimmed) < MIN_INPUT_CHARS:
            return InputClassification(mode=InputMode.UNKNOWN, confidence=1.0)

        urls = extract_urls(trimmed)
        url = urls[0] if urls else None
        remainder = strip_urls(trimmed) if url else trimmed
        substantial = is_substantial_brief(remainder)
        has_terms = role_terms_in(remainder) > 0

        if url:
            # Prose typed next to a link is meant to matter.
            if substantial or (has_terms and word_count(remainder) >= LINKED_BRIEF_MIN_WORDS):
                return InputClassification(
                    mode=InputMode.BRIEF_WITH_LINK, confidence=0.9, brief_text=remainder, url=url
                )
            return InputClassification(
                mode=InputMode.REFERENCE_LINK,
                confidence=0.9 if is_job_related_url(url) else 0.7,
                brief_text=remainder or None,
                url=url,
            )
        if substantial:
            return InputClassification(mode=InputMode.BRIEF, confidence=0.9, brief_text=trimmed)
        if has_terms:
            return InputClassification(mode=InputMode.BRIEF, confidence=0.6, brief_text=trimmed)
        confidence = 0.8 if word_count(trimmed) >= SUBSTANTIAL_MIN_WORDS else 0.5
        return InputClassification(mode=InputMode.UNKNOWN, confidence=confidence)


_default_classifier = InputClassifier()


def classify(text: str) -> InputClassification:
    return _default_classifier.classify(text)


def validate_brief(text: str) -> str:
    trimmed = (text or "").strip()
    if len(trimmed) < BRIEF_MIN_CHARS:
        raise ValidationFailedError("Please provide at least 20 characters describing the role.")
    if word_count(trimmed) < BRIEF_MIN_WORDS:
        raise ValidationFailedError("Please provide at least 5 words describing the role.")
    if not any(term_re.search(trimmed) for term_re in _BRIEF_TERM_RES):
        raise ValidationFailedError("Please include more details about the role or position.")
    return trimmed


def validate_link(url: str) -> str:
    cleaned = _clean_url((url or "").strip())
    if cleaned is None:
        raise ValidationFailedError("Please provide a valid HTTP or HTTPS URL.")
    return cleaned


def validate_upload(text: str) -> str:
    trimmed = (text or "").strip()
    if len(trimmed) < UPLOAD_MIN_CHARS:
        raise ValidationFailedError(
            "The uploaded content seems too short. Please ensure it contains a complete job description."
        )
    return trimmed


def describe(classification: InputClassification) -> str:
    pct = int(round(classification.confidence * 100))
    if classification.mode is InputMode.BRIEF_WITH_LINK:
        return f"Job brief with organization link detected ({pct}% confidence)"
    if classification.mode is InputMode.BRIEF:
        return f"Job brief detected ({pct}% confidence)"
    if classification.mode is InputMode.REFERENCE_LINK:
        return f"Reference job posting link detected ({pct}% confidence)"
    return "Input type unclear - please provide a job brief, a link, or existing job description text."

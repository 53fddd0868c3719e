from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import structlog

from .vocabulary import (
    ACCESSIBILITY_TERMS,
    BIAS_TERMS,
    CONTRACT_TYPES,
    GENDERED_TERMS,
    INCLUSIVE_TERMS,
    JARGON_TERMS,
    PASSIVE_AUXILIARIES,
    SDG_KEYWORDS,
    SDG_NAMES,
    SECTION_CATALOG,
    SECTOR_KEYWORDS,
)

log = structlog.get_logger()

PLACEHOLDER_TITLE = "Job Opportunity"
PLACEHOLDER_SUMMARY = "Mission-driven opportunity to create positive impact."
PLACEHOLDER_SECTION = "Mission-driven opportunity to create positive impact in the nonprofit sector."

# Heuristic constants; coarse by nature and due for recalibration.
SCORE_FLOOR = 60
SCORE_CEILING = 100
TOP_TAGS = 3
TITLE_SCAN_LINES = 5
MAX_TITLE_CHARS = 120
MAX_SUMMARY_CHARS = 600
MAX_FIELD_CHARS = 120
MAX_LABEL_WORDS = 6

LONG_SENTENCE_WORDS = 25
MEDIUM_SENTENCE_WORDS = 20
PASSIVE_RATIO_LIMIT = 0.3

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
# Line patterns run on right-stripped lines and capture through the last non-space character.
_MD_HEADER_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(\S.*)$")
_BOLD_LINE_RE = re.compile(r"^\s*\*\*(.+)\*\*\s*:?$")
_LABEL_LINE_RE = re.compile(r"^\s*([A-Z][^:\n]{0,80}):\s*$")
_TITLE_LABEL_RE = re.compile(
    r"^\s*(?:\*\*\s*)?(?:job title|position title|position|role|title)\s*(?:\*\*\s*)?:\s*(\S.*)$",
    re.IGNORECASE,
)
_BULLET_RE = re.compile(r"^[ \t]*(?:[-•*]|\d+[.)])\s+", re.MULTILINE)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_WORD_RE = re.compile(r"[A-Za-z]+(?:['’][A-Za-z]+)?")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")
_PASSIVE_RE = re.compile(rf"\b(?:{'|'.join(PASSIVE_AUXILIARIES)})\s+\w+ed\b", re.IGNORECASE)

_SECTION_RES: tuple[tuple[str, str, tuple[re.Pattern[str], ...]], ...] = tuple(
    (sid, title, tuple(re.compile(p, re.IGNORECASE) for p in patterns)) for sid, title, patterns in SECTION_CATALOG
)


def _terms_re(terms: tuple[str, ...]) -> re.Pattern[str]:
    ordered = sorted(terms, key=len, reverse=True)
    return re.compile(r"\b(?:" + "|".join(re.escape(t) for t in ordered) + r")\b", re.IGNORECASE)


def _term_re(term: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)


_SECTOR_RES = tuple((tag, _terms_re(words)) for tag, words in SECTOR_KEYWORDS)
_SDG_RES = tuple((tag, _terms_re(words)) for tag, words in SDG_KEYWORDS)
_GENDERED_RES = tuple(_term_re(t) for t in GENDERED_TERMS)
_INCLUSIVE_RES = tuple(_term_re(t) for t in INCLUSIVE_TERMS)
_ACCESSIBILITY_RE = _terms_re(ACCESSIBILITY_TERMS)
_BIAS_RES = tuple(_term_re(t) for t in BIAS_TERMS)
_JARGON_RES = tuple((term, hint, _term_re(term)) for term, hint in JARGON_TERMS)
_CONTRACT_RES = tuple((re.compile(p, re.IGNORECASE), label) for p, label in CONTRACT_TYPES)

_LINE_FLAGS = re.IGNORECASE | re.MULTILINE
_ORGANIZATION_RES = (re.compile(r"^[ \t]*(?:organi[sz]ation(?: name)?|company|employer)[ \t]*:\s*(.+)$", _LINE_FLAGS),)
_LOCATION_RES = (
    re.compile(r"^[ \t]*(?:location|duty station|country|city)[ \t]*:\s*(.+)$", _LINE_FLAGS),
    re.compile(r"\bbased in ([^.,\n]+)", re.IGNORECASE),
)
_WORK_MODE_RE = re.compile(r"\b(remote|hybrid|on-?site)\b", re.IGNORECASE)
_DEADLINE_RES = (
    re.compile(r"^[ \t]*(?:application )?deadline[ \t]*:\s*(.+)$", _LINE_FLAGS),
    re.compile(r"^[ \t]*closing date[ \t]*:\s*(.+)$", _LINE_FLAGS),
    re.compile(r"\bapply by ([^.\n]+)", re.IGNORECASE),
    re.compile(r"\bapplications close (?:on )?([^.\n]+)", re.IGNORECASE),
)
_SALARY_LABEL_RE = re.compile(r"^[ \t]*(?:salary(?: range)?|compensation)[ \t]*:\s*(.+)$", _LINE_FLAGS)
_SALARY_RANGE_RE = re.compile(r"[$€£]\s?[\d,]+(?:\s*(?:-|–|to)\s*[$€£]?\s?[\d,]+)?")
_COMPETITIVE_RE = re.compile(r"\bcompetitive salary\b", re.IGNORECASE)
_TO_APPLY_RE = re.compile(r"\bto apply[:,]?\s+([^\n]+)", re.IGNORECASE)


@dataclass(frozen=True)
class Section:
    id: str
    title: str
    content: str


@dataclass(frozen=True)
class DocumentScores:
    clarity: int
    dei_friendliness: int
    reading_level: int
    reading_level_label: str


@dataclass(frozen=True)
class StructuredDocument:
    title: str
    summary: str
    sections: tuple[Section, ...]
    category_tags: tuple[str, ...]
    sdg_tags: tuple[str, ...]
    scores: DocumentScores
    organization: str | None = None
    location: str | None = None
    contract_type: str | None = None
    application_deadline: str | None = None
    salary_range: str | None = None
    how_to_apply: str | None = None
    jargon_warnings: tuple[str, ...] = ()

    @property
    def sdg_labels(self) -> tuple[str, ...]:
        return tuple(f"{code}: {SDG_NAMES[code]}" if code in SDG_NAMES else code for code in self.sdg_tags)

    def section(self, section_id: str) -> Section | None:
        for section in self.sections:
            if section.id == section_id:
                return section
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "summary": self.summary,
            "sections": [{"id": s.id, "title": s.title, "content": s.content} for s in self.sections],
            "category_tags": list(self.category_tags),
            "sdg_tags": list(self.sdg_tags),
            "sdg_labels": list(self.sdg_labels),
            "scores": {
                "clarity": self.scores.clarity,
                "dei_friendliness": self.scores.dei_friendliness,
                "reading_level": self.scores.reading_level,
                "reading_level_label": self.scores.reading_level_label,
            },
            "organization": self.organization,
            "location": self.location,
            "contract_type": self.contract_type,
            "application_deadline": self.application_deadline,
            "salary_range": self.salary_range,
            "how_to_apply": self.how_to_apply,
            "jargon_warnings": list(self.jargon_warnings),
        }


def _coerce_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        value = bytes(value).decode("utf-8", errors="replace")
    elif not isinstance(value, str):
        value = str(value)
    value = value.replace("\r\n", "\n").replace("\r", "\n")
    return _CONTROL_RE.sub(" ", value)


def _clamp(score: float) -> int:
    return int(max(SCORE_FLOOR, min(SCORE_CEILING, round(score))))


def _clean_header(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("*", "").replace("#", "")).strip().rstrip(":").rstrip()


def _header_text(line: str) -> str | None:
    """Header label for a header-like line, else None."""
    line = line.rstrip()
    m = _MD_HEADER_RE.match(line)
    if m:
        return _clean_header(m.group(2)) or None
    m = _BOLD_LINE_RE.match(line)
    if m:
        return _clean_header(m.group(1)) or None
    m = _LABEL_LINE_RE.match(line)
    if m and len(m.group(1).split()) <= MAX_LABEL_WORDS:
        return _clean_header(m.group(1)) or None
    return None


def _catalog_match(header: str) -> tuple[str, str] | None:
    for sid, title, patterns in _SECTION_RES:
        if any(p.search(header) for p in patterns):
            return sid, title
    return None


def _first_value(patterns: tuple[re.Pattern[str], ...], text: str) -> str | None:
    for pattern in patterns:
        m = pattern.search(text)
        if m:
            value = _tidy_value(m.group(1))
            if value:
                return value
    return None


def _tidy_value(value: str) -> str:
    value = value.split("\n", 1)[0].strip().rstrip(".").strip()
    if len(value) > MAX_FIELD_CHARS:
        value = value[: MAX_FIELD_CHARS - 3].rstrip() + "..."
    return value


def _first_paragraph(content: str, limit: int = MAX_SUMMARY_CHARS) -> str:
    for para in re.split(r"\n\s*\n", content):
        cleaned = " ".join(para.replace("#", "").replace("*", " ").split())
        if cleaned:
            if len(cleaned) > limit:
                cut = cleaned[:limit].rsplit(" ", 1)[0] or cleaned[:limit]
                cleaned = cut.rstrip(",;:") + "..."
            return cleaned
    return ""


def _rank_tags(table: tuple[tuple[str, re.Pattern[str]], ...], text: str) -> tuple[str, ...]:
    hits = [(len(pattern.findall(text)), index, tag) for index, (tag, pattern) in enumerate(table)]
    ranked = sorted((h for h in hits if h[0] > 0), key=lambda h: (-h[0], h[1]))
    return tuple(tag for _, _, tag in ranked[:TOP_TAGS])


def reading_ease(text: str) -> float:
    """Simplified Flesch reading ease; 100.0 when there are no words."""
    words = _WORD_RE.findall(text)
    if not words:
        return 100.0
    sentences = max(1, sum(1 for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()))
    syllables = sum(max(1, len(_VOWEL_GROUP_RE.findall(w.lower()))) for w in words)
    return 206.835 - 1.015 * (len(words) / sentences) - 84.6 * (syllables / len(words))


def reading_level_label(ease: float) -> str:
    if ease >= 90:
        return "Elementary"
    if ease >= 80:
        return "Middle School"
    if ease >= 70:
        return "High School"
    if ease >= 60:
        return "College"
    return "Graduate"


def clarity_score(text: str, *, has_headers: bool) -> int:
    sentences = max(1, sum(1 for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()))
    words = len(text.split())
    score = 100.0
    avg = words / sentences
    if avg > LONG_SENTENCE_WORDS:
        score -= 20
    elif avg > MEDIUM_SENTENCE_WORDS:
        score -= 10
    if len(_PASSIVE_RE.findall(text)) / sentences > PASSIVE_RATIO_LIMIT:
        score -= 15
    if has_headers:
        score += 10
    if _BULLET_RE.search(text):
        score += 5
    return _clamp(score)


def dei_score(text: str) -> int:
    score = 100.0
    score -= 10 * sum(1 for p in _GENDERED_RES if p.search(text))
    score += 5 * sum(1 for p in _INCLUSIVE_RES if p.search(text))
    if _ACCESSIBILITY_RE.search(text):
        score += 10
    score -= 8 * sum(1 for p in _BIAS_RES if p.search(text))
    return _clamp(score)


def jargon_warnings(text: str) -> tuple[str, ...]:
    return tuple(f'Consider replacing "{term}" with "{hint}"' for term, hint, p in _JARGON_RES if p.search(text))


class DocumentExtractor:
    """
    Parses generated free text into a StructuredDocument.

    Deterministic, recomputed in full on every call, and tolerant of any
    input: anything unrecognizable falls back to a placeholder title, a
    single overview section and empty tag sets.
    """

    def extract(self, generated_text: Any) -> StructuredDocument:
        text = _coerce_text(generated_text)
        lines = text.split("\n")
        headers = [_header_text(line) for line in lines]

        title, title_index = self._find_title(lines, headers)
        sections = self._sections(lines, headers, title_index)
        plain = text.replace("**", "")

        summary = ""
        overview = next((s for s in sections if s.id == "overview"), None)
        if overview is not None:
            summary = _first_paragraph(overview.content)
        if not summary and sections:
            summary = _first_paragraph(sections[0].content)
        if not sections:
            sections = [Section(id="overview", title="Role Overview", content=PLACEHOLDER_SECTION)]

        ease = reading_ease(plain)
        scores = DocumentScores(
            clarity=clarity_score(text, has_headers=any(h is not None for h in headers)),
            dei_friendliness=dei_score(plain),
            reading_level=_clamp(ease),
            reading_level_label=reading_level_label(ease),
        )
        application = next((s for s in sections if s.id == "application_process"), None)
        doc = StructuredDocument(
            title=title,
            summary=summary or PLACEHOLDER_SUMMARY,
            sections=tuple(sections),
            category_tags=_rank_tags(_SECTOR_RES, plain),
            sdg_tags=_rank_tags(_SDG_RES, plain),
            scores=scores,
            organization=_first_value(_ORGANIZATION_RES, plain),
            location=self._location(plain),
            contract_type=next((label for p, label in _CONTRACT_RES if p.search(plain)), None),
            application_deadline=_first_value(_DEADLINE_RES, plain),
            salary_range=self._salary(plain),
            how_to_apply=(
                _first_paragraph(application.content) if application is not None else _first_value((_TO_APPLY_RE,), plain)
            ),
            jargon_warnings=jargon_warnings(plain),
        )
        log.debug("document_extracted", sections=len(doc.sections), chars=len(text))
        return doc

    def _find_title(self, lines: list[str], headers: list[str | None]) -> tuple[str, int | None]:
        scanned = 0
        for index, line in enumerate(lines):
            if not line.strip():
                continue
            if scanned >= TITLE_SCAN_LINES:
                break
            scanned += 1
            stripped = line.rstrip()
            h1 = _MD_HEADER_RE.match(stripped)
            if h1 and len(h1.group(1)) == 1 and headers[index] and _catalog_match(headers[index] or "") is None:
                return self._clean_title(headers[index] or ""), index
            labeled = _TITLE_LABEL_RE.match(stripped)
            if labeled:
                return self._clean_title(labeled.group(1)), index
        for index, header in enumerate(headers):
            if header is None:
                continue
            if _catalog_match(header) is None:
                return self._clean_title(header), index
            break
        return PLACEHOLDER_TITLE, None

    @staticmethod
    def _clean_title(raw: str) -> str:
        title = _clean_header(raw)
        if len(title) > MAX_TITLE_CHARS:
            title = title[: MAX_TITLE_CHARS - 3].rstrip() + "..."
        return title or PLACEHOLDER_TITLE

    def _sections(self, lines: list[str], headers: list[str | None], title_index: int | None) -> list[Section]:
        chunks: list[tuple[str | None, list[str]]] = [(None, [])]
        for index, line in enumerate(lines):
            if index == title_index:
                # Text under the title reads as the overview.
                chunks.append((None, []))
                continue
            header = headers[index]
            if header is not None:
                chunks.append((header, []))
            else:
                chunks[-1][1].append(line)

        order: list[str] = []
        merged: dict[str, tuple[str, list[str]]] = {}
        custom = 0
        for header, body in chunks:
            content = "\n".join(line.rstrip() for line in body).replace("**", "").strip()
            if not content:
                continue
            if header is None:
                sid, title = "overview", "Role Overview"
            else:
                match = _catalog_match(header)
                if match is None:
                    custom += 1
                    sid, title = f"custom_{custom}", header
                else:
                    sid, title = match
            if sid in merged:
                merged[sid][1].append(content)
            else:
                order.append(sid)
                merged[sid] = (title, [content])
        return [Section(id=sid, title=merged[sid][0], content="\n\n".join(merged[sid][1])) for sid in order]

    @staticmethod
    def _location(plain: str) -> str | None:
        value = _first_value(_LOCATION_RES, plain)
        if value:
            return value
        m = _WORK_MODE_RE.search(plain)
        return m.group(1).capitalize() if m else None

    @staticmethod
    def _salary(plain: str) -> str | None:
        m = _SALARY_LABEL_RE.search(plain)
        if m:
            value = _tidy_value(m.group(1))
            if value:
                return value
        m = _SALARY_RANGE_RE.search(plain)
        if m:
            return m.group(0).strip()
        m = _COMPETITIVE_RE.search(plain)
        return "Competitive salary" if m else None


_default_extractor = DocumentExtractor()


def extract(generated_text: Any) -> StructuredDocument:
    return _default_extractor.extract(generated_text)

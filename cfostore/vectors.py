"""Vector documents, structured filters and the text helpers used for retrieval."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

from cfostore.paths import IndustryType, is_valid_industry_type
from cfostore.records import _format_time, _parse_time

_ZERO_TIME_TEXT = "0001-01-01T00:00:00Z"

_STOP_WORDS = frozenset(
    {
        "the", "a", "an", "is", "are",
        "was", "were", "be", "been",
        "have", "has", "had", "do", "does",
        "what", "how", "why", "when", "where",
        "who", "which", "that", "this",
        "and", "or", "but", "if",
        "of", "to", "in", "on", "at",
        "by", "for", "with", "about", "from",
    }
)

_ASCII_LOWER = str.maketrans(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZ", "abcdefghijklmnopqrstuvwxyz"
)


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


def _industry_from(value: Any) -> IndustryType | str:
    text = _text(value)
    return IndustryType(text) if is_valid_industry_type(text) else text


def _ascii_lower(text: str) -> str:
    return text.translate(_ASCII_LOWER)


@dataclass
class VectorDocument:
    """A text chunk with its embedding and the fields used for filtering."""

    id: str = ""
    document_id: str = ""
    industry_type: IndustryType | str = ""
    doc_type: str = ""
    period_start: str = ""
    period_end: str = ""
    source: str = ""
    text: str = ""
    embedding: list[float] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "document_id": self.document_id,
            "industry_type": _text(self.industry_type),
        }
        if self.doc_type:
            out["doc_type"] = _text(self.doc_type)
        if self.period_start:
            out["period_start"] = self.period_start
        if self.period_end:
            out["period_end"] = self.period_end
        if self.source:
            out["source"] = self.source
        out["text"] = self.text
        out["embedding"] = [float(value) for value in self.embedding]
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        out["created_at"] = (
            _format_time(self.created_at) if self.created_at is not None else _ZERO_TIME_TEXT
        )
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VectorDocument":
        return cls(
            id=data.get("id") or "",
            document_id=data.get("document_id") or "",
            industry_type=_industry_from(data.get("industry_type")),
            doc_type=data.get("doc_type") or "",
            period_start=data.get("period_start") or "",
            period_end=data.get("period_end") or "",
            source=data.get("source") or "",
            text=data.get("text") or "",
            embedding=[float(value) for value in data.get("embedding") or []],
            metadata=dict(data.get("metadata") or {}),
            created_at=_parse_time(data.get("created_at")),
        )


@dataclass
class SimilarityResult:
    """A matched document and its similarity to the query."""

    document: VectorDocument
    similarity: float


@dataclass
class VectorFilter:
    """Structured pre-retrieval filter; empty fields impose no constraint."""

    industry: IndustryType | str = ""
    doc_type: str = ""
    source: str = ""
    document_ids: list[str] = field(default_factory=list)
    period_start: str = ""
    period_end: str = ""

    def is_zero(self) -> bool:
        """Report whether the filter imposes no constraint at all."""
        return not (
            _text(self.industry)
            or _text(self.doc_type)
            or self.source
            or self.document_ids
            or self.period_start
            or self.period_end
        )


@dataclass
class SearchQuery:
    """All inputs of one vector search."""

    text: str = ""
    top_k: int = 0
    min_score: float = 0.0
    vector_filter: VectorFilter = field(default_factory=VectorFilter)


def periods_overlap(a_start: str, a_end: str, b_start: str, b_end: str) -> bool:
    """Overlap test on YYYY-MM-DD strings; a missing bound counts as overlapping."""
    if not (a_start and a_end and b_start and b_end):
        return True
    return not (a_end < b_start or b_end < a_start)


def matches_filter(doc: VectorDocument, vector_filter: VectorFilter) -> bool:
    """Decide whether ``doc`` passes every constraint of ``vector_filter``."""
    industry = _text(vector_filter.industry)
    if industry and _text(doc.industry_type) != industry:
        return False
    doc_type = _text(vector_filter.doc_type)
    if doc_type and _text(doc.doc_type) != doc_type:
        return False
    if vector_filter.source and doc.source != vector_filter.source:
        return False
    if vector_filter.document_ids and doc.document_id not in vector_filter.document_ids:
        return False
    if vector_filter.period_start and vector_filter.period_end:
        # A chunk without a period never matches a period-scoped query.
        if not doc.period_start or not doc.period_end:
            return False
        if not periods_overlap(
            doc.period_start, doc.period_end, vector_filter.period_start, vector_filter.period_end
        ):
            return False
    return True


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0 for empty, unequal or zero vectors."""
    if not a or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def split_words(text: str) -> list[str]:
    """Split on every character that is not an ASCII letter or digit."""
    words: list[str] = []
    current: list[str] = []
    for ch in text:
        if ("a" <= ch <= "z") or ("A" <= ch <= "Z") or ("0" <= ch <= "9"):
            current.append(ch)
        elif current:
            words.append("".join(current))
            current = []
    if current:
        words.append("".join(current))
    return words


def is_stop_word(word: str) -> bool:
    """Report whether ``word`` is a common English stop word (case-insensitive)."""
    return _ascii_lower(word) in _STOP_WORDS


def extract_search_keywords(query: str) -> list[str]:
    """Words longer than two characters that are not stop words."""
    return [word for word in split_words(query) if len(word) > 2 and not is_stop_word(word)]


def score_text_with_keywords(text: str, keywords: Iterable[str]) -> int:
    """Count the keywords that occur in ``text``, ignoring ASCII case."""
    lowered = _ascii_lower(text)
    return sum(1 for keyword in keywords if _ascii_lower(keyword) in lowered)
"""Company, document and parsed-data records with their JSON shapes."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

_TIME_PATTERN = re.compile(
    r"^(?P<main>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)
_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def _format_time(value: datetime) -> str:
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def _parse_time(value: Any) -> datetime | None:
    """Parse an RFC 3339 timestamp; the zero time and null give ``None``."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError(f"invalid timestamp: {value!r}")
    match = _TIME_PATTERN.match(value)
    if match is None:
        raise ValueError(f"invalid timestamp: {value!r}")
    text = match["main"]
    if match["frac"]:
        text += "." + match["frac"][:6].ljust(6, "0")
    tz = match["tz"]
    if tz:
        text += "+00:00" if tz == "Z" else tz
    parsed = datetime.fromisoformat(text)
    return None if parsed == _ZERO_TIME else parsed


def _put_time(out: dict[str, Any], key: str, value: datetime | None) -> None:
    if value is not None:
        out[key] = _format_time(value)


def _text(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return "" if value is None else str(value)


@dataclass
class Company:
    """The company whose finances are stored."""

    name: str = ""
    industry: str = ""
    industry_type: str = ""
    fiscal_year_end: str = ""
    currency: str = ""
    setup_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "name": self.name,
            "industry": self.industry,
            "industry_type": _text(self.industry_type),
            "fiscal_year_end": self.fiscal_year_end,
            "currency": self.currency,
            "setup_completed": bool(self.setup_completed),
        }
        _put_time(out, "created_at", self.created_at)
        _put_time(out, "updated_at", self.updated_at)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Company":
        return cls(
            name=data.get("name") or "",
            industry=data.get("industry") or "",
            industry_type=data.get("industry_type") or "",
            fiscal_year_end=data.get("fiscal_year_end") or "",
            currency=data.get("currency") or "",
            setup_completed=bool(data.get("setup_completed", False)),
            created_at=_parse_time(data.get("created_at")),
            updated_at=_parse_time(data.get("updated_at")),
        )


@dataclass
class Document:
    """Metadata of one uploaded document."""

    id: str = ""
    filename: str = ""
    doc_type: str = ""
    period_start: str = ""
    period_end: str = ""
    file_path: str = ""
    parsed_path: str = ""
    uploaded_at: datetime | None = None
    file_size: int = 0
    mime_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "filename": self.filename,
            "doc_type": _text(self.doc_type),
            "period_start": self.period_start,
            "period_end": self.period_end,
            "file_path": self.file_path,
            "parsed_path": self.parsed_path,
        }
        _put_time(out, "uploaded_at", self.uploaded_at)
        out["file_size"] = int(self.file_size)
        out["mime_type"] = self.mime_type
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Document":
        return cls(
            id=data.get("id") or "",
            filename=data.get("filename") or "",
            doc_type=data.get("doc_type") or "",
            period_start=data.get("period_start") or "",
            period_end=data.get("period_end") or "",
            file_path=data.get("file_path") or "",
            parsed_path=data.get("parsed_path") or "",
            uploaded_at=_parse_time(data.get("uploaded_at")),
            file_size=int(data.get("file_size") or 0),
            mime_type=data.get("mime_type") or "",
        )


@dataclass
class DocumentList:
    """The index of all uploaded documents."""

    documents: list[Document] = field(default_factory=list)
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"documents": [doc.to_dict() for doc in self.documents]}
        _put_time(out, "updated_at", self.updated_at)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DocumentList":
        return cls(
            documents=[Document.from_dict(item) for item in data.get("documents") or []],
            updated_at=_parse_time(data.get("updated_at")),
        )


@dataclass
class Period:
    """A reporting period given as YYYY-MM-DD bounds."""

    start: str = ""
    end: str = ""


@dataclass
class ParsedDocument:
    """Numeric data extracted from one document."""

    document_id: str = ""
    doc_type: str = ""
    period: Period = field(default_factory=Period)
    data: dict[str, float] = field(default_factory=dict)
    raw_text: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    parsed_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "document_id": self.document_id,
            "doc_type": _text(self.doc_type),
            "period": {"start": self.period.start, "end": self.period.end},
            "data": {key: float(value) for key, value in self.data.items()},
            "raw_text": self.raw_text,
            "metadata": dict(self.metadata),
        }
        _put_time(out, "parsed_at", self.parsed_at)
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParsedDocument":
        period = data.get("period") or {}
        return cls(
            document_id=data.get("document_id") or "",
            doc_type=data.get("doc_type") or "",
            period=Period(start=period.get("start") or "", end=period.get("end") or ""),
            data={key: float(value) for key, value in (data.get("data") or {}).items()},
            raw_text=data.get("raw_text") or "",
            metadata=dict(data.get("metadata") or {}),
            parsed_at=_parse_time(data.get("parsed_at")),
        )
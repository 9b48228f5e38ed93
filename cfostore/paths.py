"""Directory layout, industry types and path sanitisation for the data store."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum

MAX_FILENAME_LENGTH = 255
MAX_DOCUMENT_ID_LENGTH = 128

_SEPARATORS = "".join(sep for sep in (os.sep, os.altsep) if sep)
_UNSAFE_ID_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


class IndustryType(str, Enum):
    """Industry verticals that get their own retrieval directory."""

    GENERIC = "generic"
    EDUCATION = "education"
    ECOMMERCE = "ecommerce"
    PHARMA = "pharma"

    def __str__(self) -> str:
        return self.value


_VALID_INDUSTRY_VALUES = frozenset(member.value for member in IndustryType)


def _industry_value(value: object) -> str | None:
    if isinstance(value, IndustryType):
        return value.value
    if isinstance(value, str):
        return value
    return None


def valid_industry_types() -> list[IndustryType]:
    """Return every supported industry type in canonical order."""
    return list(IndustryType)


def is_valid_industry_type(value: object) -> bool:
    """Report whether ``value`` names a supported industry type (case-sensitive)."""
    text = _industry_value(value)
    return text is not None and text in _VALID_INDUSTRY_VALUES


def _base(path: str) -> str:
    """Last element of ``path``; trailing separators are ignored."""
    if not path:
        return "."
    stripped = path.rstrip(_SEPARATORS)
    if not stripped:
        return os.sep
    cut = max(stripped.rfind(sep) for sep in _SEPARATORS)
    return stripped[cut + 1:]


def _ext(name: str) -> str:
    """Extension of ``name`` including the leading dot, or an empty string."""
    dot = name.rfind(".")
    if dot < 0 or any(sep in name[dot:] for sep in _SEPARATORS):
        return ""
    return name[dot:]


def sanitize_filename(filename: str) -> str:
    """Reduce ``filename`` to a safe base name with no traversal sequences."""
    if not filename:
        return "unnamed_file"

    name = _base(filename)
    name = "".join(ch for ch in name if ord(ch) >= 32 and ord(ch) != 127)
    name = name.replace("/", "_").replace("\\", "_")
    while ".." in name:
        name = name.replace("..", "_")

    encoded = name.encode("utf-8", "ignore")
    if len(encoded) > MAX_FILENAME_LENGTH:
        ext = _ext(name)
        ext_bytes = ext.encode("utf-8", "ignore")
        base_bytes = encoded[: len(encoded) - len(ext_bytes)]
        max_base = MAX_FILENAME_LENGTH - len(ext_bytes)
        if max_base > 0 and len(base_bytes) > max_base:
            base_bytes = base_bytes[:max_base]
        name = base_bytes.decode("utf-8", "ignore") + ext

    if name in ("", ".", "_"):
        return "unnamed_file"
    return name


def sanitize_document_id(document_id: str) -> str:
    """Reduce ``document_id`` to letters, digits, underscores and hyphens."""
    if not document_id:
        return "unnamed_document"

    cleaned = _UNSAFE_ID_CHARS.sub("_", _base(document_id)).strip("_")
    cleaned = cleaned[:MAX_DOCUMENT_ID_LENGTH]
    return cleaned or "unnamed_document"


def is_path_within_directory(base_path: str, target_path: str) -> bool:
    """Report whether ``target_path`` resolves to ``base_path`` or below it."""
    try:
        abs_base = os.path.abspath(base_path)
        abs_target = os.path.abspath(target_path)
        rel = os.path.relpath(abs_target, abs_base)
    except ValueError:
        return False
    return not rel.startswith("..") and not os.path.isabs(rel)


@dataclass(frozen=True)
class Paths:
    """All directories used for data storage under one data directory."""

    data_dir: str
    documents_dir: str
    parsed_dir: str
    state_dir: str
    rag_dir: str

    @classmethod
    def from_data_dir(cls, data_dir: str) -> "Paths":
        """Build the layout rooted at ``data_dir``."""
        root = os.path.normpath(data_dir) if data_dir else "."
        return cls(
            data_dir=root,
            documents_dir=os.path.join(root, "documents"),
            parsed_dir=os.path.join(root, "parsed"),
            state_dir=os.path.join(root, "state"),
            rag_dir=os.path.join(root, "rag"),
        )

    def company_file_path(self) -> str:
        return os.path.join(self.state_dir, "company.json")

    def documents_file_path(self) -> str:
        return os.path.join(self.state_dir, "documents.json")

    def document_file_path(self, filename: str) -> str:
        """Storage path for an uploaded file; the name is sanitised."""
        return os.path.join(self.documents_dir, sanitize_filename(filename))

    def parsed_file_path(self, document_id: str) -> str:
        """Storage path for parsed data; the document ID is sanitised."""
        return os.path.join(self.parsed_dir, sanitize_document_id(document_id) + ".json")

    def rag_path(self, industry_type: object) -> str:
        """Retrieval directory for an industry; unknown types map to generic."""
        if is_valid_industry_type(industry_type):
            name = _industry_value(industry_type)
        else:
            name = IndustryType.GENERIC.value
        return os.path.join(self.rag_dir, name)

    def rag_chunk_path(self, industry_type: object, document_id: str) -> str:
        """Chunk file path for a document within an industry directory."""
        safe_id = sanitize_document_id(document_id)
        return os.path.join(self.rag_path(industry_type), safe_id + "_chunks.json")

    def all_rag_paths(self) -> list[str]:
        return [self.rag_path(industry) for industry in valid_industry_types()]

    def validate_rag_path(self, path: str) -> bool:
        return is_path_within_directory(self.rag_dir, path)

    def validate_document_path(self, path: str) -> bool:
        return is_path_within_directory(self.documents_dir, path)

    def validate_parsed_path(self, path: str) -> bool:
        return is_path_within_directory(self.parsed_dir, path)
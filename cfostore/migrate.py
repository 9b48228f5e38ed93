"""One-shot, idempotent import of the file-based JSON layout into the SQLite store."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from cfostore.records import _parse_time
from cfostore.sqlstore import CompanyRow, DocumentRow, LineItemRow, SQLStore, SQLStoreError

logger = logging.getLogger(__name__)


@dataclass
class MigrationResult:
    """Tally of what one migration run imported and what it had to skip."""

    company_imported: bool = False
    documents_imported: int = 0
    line_items_imported: int = 0
    errors: list[str] = field(default_factory=list)


def _string(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a string, got {type(value).__name__}")
    return value


def _boolean(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"field {key!r}: expected a boolean, got {type(value).__name__}")
    return value


def _integer(data: Mapping[str, Any], key: str) -> int:
    value = data.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field {key!r}: expected an integer, got {type(value).__name__}")
    return value


def _number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"value of {key!r}: expected a number, got {type(value).__name__}")
    return float(value)


def _time(data: Mapping[str, Any], key: str) -> datetime | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"field {key!r}: expected a time string, got {type(value).__name__}")
    return _parse_time(value)


def _object(raw: str) -> dict[str, Any]:
    data = json.loads(raw)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def _read_optional(path: str, what: str) -> str | None:
    """File contents, ``None`` when the file does not exist."""
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    except FileNotFoundError:
        return None
    except OSError as err:
        raise SQLStoreError(f"read {what}: {err}") from err


def _migrate_company(store: SQLStore, data_dir: str, result: MigrationResult) -> None:
    raw = _read_optional(os.path.join(data_dir, "state", "company.json"), "company.json")
    if raw is None:
        return
    try:
        data = _object(raw)
        row = CompanyRow(
            name=_string(data, "name"),
            industry=_string(data, "industry"),
            industry_type=_string(data, "industry_type"),
            fiscal_year_end=_string(data, "fiscal_year_end"),
            currency=_string(data, "currency"),
            setup_completed=_boolean(data, "setup_completed"),
        )
    except (ValueError, TypeError) as err:
        result.errors.append(f"company.json unmarshal: {err}")
        return
    try:
        store.upsert_company(row)
    except SQLStoreError as err:
        raise SQLStoreError(f"upsert company: {err}") from err
    result.company_imported = True


def _document_rows(raw: str) -> list[DocumentRow]:
    data = _object(raw)
    entries = data.get("documents") or []
    if not isinstance(entries, list):
        raise ValueError("field 'documents': expected an array")
    rows = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise ValueError("document entry: expected an object")
        rows.append(
            DocumentRow(
                id=_string(entry, "id"),
                filename=_string(entry, "filename"),
                doc_type=_string(entry, "doc_type"),
                period_start=_string(entry, "period_start"),
                period_end=_string(entry, "period_end"),
                file_path=_string(entry, "file_path"),
                parsed_path=_string(entry, "parsed_path"),
                file_size=_integer(entry, "file_size"),
                mime_type=_string(entry, "mime_type"),
                uploaded_at=_time(entry, "uploaded_at"),
            )
        )
    return rows


def _migrate_documents(store: SQLStore, data_dir: str, result: MigrationResult) -> None:
    raw = _read_optional(os.path.join(data_dir, "state", "documents.json"), "documents.json")
    if raw is None:
        return
    try:
        rows = _document_rows(raw)
    except (ValueError, TypeError) as err:
        result.errors.append(f"documents.json unmarshal: {err}")
        return
    for row in rows:
        try:
            store.upsert_document(row)
        except SQLStoreError as err:
            result.errors.append(f"upsert doc {row.id}: {err}")
            continue
        result.documents_imported += 1


def _migrate_one_parsed_doc(store: SQLStore, path: str, doc_id: str) -> int:
    with open(path, "r", encoding="utf-8") as handle:
        data = _object(handle.read())
    values = data.get("data") or {}
    if not isinstance(values, dict):
        raise ValueError("field 'data': expected an object")
    items = [
        LineItemRow(document_id=doc_id, key=key, value=_number(key, value))
        for key, value in values.items()
    ]
    store.replace_line_items_for_document(doc_id, items)
    return len(items)


def _migrate_parsed_docs(store: SQLStore, data_dir: str, result: MigrationResult) -> None:
    parsed_dir = os.path.join(data_dir, "parsed")
    try:
        names = sorted(os.listdir(parsed_dir))
    except FileNotFoundError:
        return
    except OSError as err:
        raise SQLStoreError(f"read parsed dir: {err}") from err
    for name in names:
        path = os.path.join(parsed_dir, name)
        if os.path.isdir(path) or not name.endswith(".json"):
            continue
        doc_id = name[: -len(".json")]
        try:
            result.line_items_imported += _migrate_one_parsed_doc(store, path, doc_id)
        except (OSError, ValueError, TypeError, SQLStoreError) as err:
            result.errors.append(f"parsed {doc_id}: {err}")


def migrate_from_json(store: SQLStore, data_dir: str) -> MigrationResult:
    """Import company, document index and parsed line items found under ``data_dir``.

    Missing files are not errors; malformed files are recorded in the result.
    Re-running is safe because every write is an upsert or a replace.
    """
    result = MigrationResult()
    _migrate_company(store, data_dir, result)
    _migrate_documents(store, data_dir, result)
    _migrate_parsed_docs(store, data_dir, result)
    logger.info(
        "migrate done: company=%s docs=%d line_items=%d errors=%d",
        result.company_imported,
        result.documents_imported,
        result.line_items_imported,
        len(result.errors),
    )
    return result
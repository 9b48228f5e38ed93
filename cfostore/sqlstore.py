"""SQLite store for companies, documents, parsed line items and the ask audit log."""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from cfostore.records import _parse_time

logger = logging.getLogger(__name__)

DEFAULT_RECENT_ASKS = 50
_ZERO_TIME_TEXT = "0001-01-01T00:00:00.000000Z"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS companies (
    id              INTEGER PRIMARY KEY,
    name            TEXT NOT NULL DEFAULT '',
    industry        TEXT NOT NULL DEFAULT '',
    industry_type   TEXT NOT NULL DEFAULT '',
    fiscal_year_end TEXT NOT NULL DEFAULT '',
    currency        TEXT NOT NULL DEFAULT '',
    setup_completed INTEGER NOT NULL DEFAULT 0,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS documents (
    id           TEXT PRIMARY KEY,
    filename     TEXT NOT NULL DEFAULT '',
    doc_type     TEXT NOT NULL DEFAULT '',
    period_start TEXT NOT NULL DEFAULT '',
    period_end   TEXT NOT NULL DEFAULT '',
    file_path    TEXT NOT NULL DEFAULT '',
    parsed_path  TEXT NOT NULL DEFAULT '',
    file_size    INTEGER NOT NULL DEFAULT 0,
    mime_type    TEXT NOT NULL DEFAULT '',
    uploaded_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_documents_period ON documents (period_start, period_end);

CREATE TABLE IF NOT EXISTS line_items (
    document_id  TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    metric_key   TEXT NOT NULL,
    metric_value REAL NOT NULL,
    PRIMARY KEY (document_id, metric_key)
);

CREATE INDEX IF NOT EXISTS idx_line_items_key ON line_items (metric_key);

CREATE TABLE IF NOT EXISTS ask_audit (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    at           TEXT NOT NULL,
    question     TEXT NOT NULL DEFAULT '',
    period       TEXT NOT NULL DEFAULT '',
    numbers_used TEXT NOT NULL DEFAULT '',
    evidence_ids TEXT NOT NULL DEFAULT '',
    confidence   TEXT NOT NULL DEFAULT '',
    conflicts    INTEGER NOT NULL DEFAULT 0,
    error_msg    TEXT NOT NULL DEFAULT ''
);

CREATE INDEX IF NOT EXISTS idx_ask_audit_at ON ask_audit (at);
"""


class SQLStoreError(Exception):
    """Raised when a database operation fails or is refused."""


def _db_time(value: datetime | None) -> str:
    """Fixed-width UTC text so that string order matches time order."""
    if value is None:
        return _ZERO_TIME_TEXT
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CompanyRow:
    """The stored company."""

    name: str = ""
    industry: str = ""
    industry_type: str = ""
    fiscal_year_end: str = ""
    currency: str = ""
    setup_completed: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class DocumentRow:
    """Metadata of one document; periods are YYYY-MM-DD."""

    id: str = ""
    filename: str = ""
    doc_type: str = ""
    period_start: str = ""
    period_end: str = ""
    file_path: str = ""
    parsed_path: str = ""
    file_size: int = 0
    mime_type: str = ""
    uploaded_at: datetime | None = None


@dataclass
class LineItemRow:
    """One numeric metric value of one document."""

    document_id: str
    key: str
    value: float


@dataclass
class LineItemHit:
    """A metric value together with the period of its document."""

    document_id: str
    value: float
    period_start: str
    period_end: str


@dataclass
class AskAuditRow:
    """One recorded question and what was used to answer it."""

    question: str = ""
    period: str = ""
    numbers_used: list[str] = field(default_factory=list)
    evidence_ids: list[str] = field(default_factory=list)
    confidence: str = ""
    conflicts: int = 0
    error_msg: str = ""


class SQLStore:
    """SQLite-backed source of truth, safe to share between threads."""

    def __init__(self, connection: sqlite3.Connection, path: str) -> None:
        self._conn: sqlite3.Connection | None = connection
        self.path = path
        self._lock = threading.RLock()

    @classmethod
    def open(cls, db_path: str) -> "SQLStore":
        """Open or create the database at ``db_path`` and apply the schema."""
        if not db_path:
            raise SQLStoreError("sqlstore: empty db path")
        try:
            conn = sqlite3.connect(
                os.path.normpath(db_path),
                isolation_level=None,
                check_same_thread=False,
                timeout=5.0,
            )
        except sqlite3.Error as err:
            raise SQLStoreError(f"sqlstore: open: {err}") from err
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA busy_timeout=5000")
        except sqlite3.Error as err:
            conn.close()
            raise SQLStoreError(f"sqlstore: open: {err}") from err
        store = cls(conn, db_path)
        try:
            store.apply_schema()
        except SQLStoreError:
            conn.close()
            raise
        logger.info("opened %s", db_path)
        return store

    def close(self) -> None:
        """Release the connection; calling it again does nothing."""
        with self._lock:
            if self._conn is None:
                return
            conn, self._conn = self._conn, None
            try:
                conn.close()
            except sqlite3.Error as err:
                raise SQLStoreError(f"sqlstore: close: {err}") from err

    def __enter__(self) -> "SQLStore":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            if self._conn is None:
                raise SQLStoreError("sqlstore: store is closed")
            try:
                yield self._conn
            except sqlite3.Error as err:
                raise SQLStoreError(f"sqlstore: {err}") from err

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connection() as conn:
            conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def apply_schema(self) -> None:
        """Create any missing tables; safe to run repeatedly."""
        with self._lock:
            if self._conn is None:
                raise SQLStoreError("sqlstore: store is closed")
            try:
                self._conn.executescript(_SCHEMA)
            except sqlite3.Error as err:
                raise SQLStoreError(f"sqlstore: apply schema: {err}") from err

    # ----- companies -----

    def upsert_company(self, company: CompanyRow) -> None:
        """Insert or update the single company row, keeping its creation time."""
        now = _db_time(_now())
        with self._transaction() as conn:
            conn.execute(
                """
INSERT INTO companies (id, name, industry, industry_type, fiscal_year_end, currency,
                       setup_completed, created_at, updated_at)
VALUES (1, ?, ?, ?, ?, ?, ?, COALESCE((SELECT created_at FROM companies WHERE id=1), ?), ?)
ON CONFLICT(id) DO UPDATE SET
  name=excluded.name,
  industry=excluded.industry,
  industry_type=excluded.industry_type,
  fiscal_year_end=excluded.fiscal_year_end,
  currency=excluded.currency,
  setup_completed=excluded.setup_completed,
  updated_at=excluded.updated_at""",
                (
                    company.name,
                    company.industry,
                    str(company.industry_type),
                    company.fiscal_year_end,
                    company.currency,
                    1 if company.setup_completed else 0,
                    now,
                    now,
                ),
            )

    def get_company(self) -> CompanyRow | None:
        """Return the company row, or ``None`` if there is none."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT name, industry, industry_type, fiscal_year_end, currency, "
                "setup_completed, created_at, updated_at FROM companies WHERE id=1"
            ).fetchone()
        if row is None:
            return None
        name, industry, industry_type, fiscal, currency, completed, created, updated = row
        return CompanyRow(
            name=name,
            industry=industry,
            industry_type=industry_type,
            fiscal_year_end=fiscal,
            currency=currency,
            setup_completed=completed != 0,
            created_at=_parse_time(created),
            updated_at=_parse_time(updated),
        )

    # ----- documents -----

    def upsert_document(self, document: DocumentRow) -> None:
        """Insert or replace a document's metadata; the upload time is kept."""
        with self._transaction() as conn:
            conn.execute(
                """
INSERT INTO documents (id, filename, doc_type, period_start, period_end, file_path,
                       parsed_path, file_size, mime_type, uploaded_at)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(id) DO UPDATE SET
  filename=excluded.filename,
  doc_type=excluded.doc_type,
  period_start=excluded.period_start,
  period_end=excluded.period_end,
  file_path=excluded.file_path,
  parsed_path=excluded.parsed_path,
  file_size=excluded.file_size,
  mime_type=excluded.mime_type""",
                (
                    document.id,
                    document.filename,
                    str(document.doc_type),
                    document.period_start,
                    document.period_end,
                    document.file_path,
                    document.parsed_path,
                    int(document.file_size),
                    document.mime_type,
                    _db_time(document.uploaded_at),
                ),
            )

    def list_documents(self) -> list[DocumentRow]:
        """All documents, newest upload first."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT id, filename, doc_type, period_start, period_end, file_path, "
                "parsed_path, file_size, mime_type, uploaded_at "
                "FROM documents ORDER BY uploaded_at DESC"
            ).fetchall()
        return [
            DocumentRow(
                id=doc_id,
                filename=filename,
                doc_type=doc_type,
                period_start=start,
                period_end=end,
                file_path=file_path,
                parsed_path=parsed_path,
                file_size=size,
                mime_type=mime,
                uploaded_at=_parse_time(uploaded),
            )
            for doc_id, filename, doc_type, start, end, file_path, parsed_path, size, mime, uploaded
            in rows
        ]

    def delete_document(self, document_id: str) -> None:
        """Remove a document and, by cascade, its line items."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM documents WHERE id=?", (document_id,))

    # ----- line items -----

    def replace_line_items_for_document(
        self, document_id: str, items: Iterable[LineItemRow]
    ) -> None:
        """Atomically replace every line item of one document."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM line_items WHERE document_id=?", (document_id,))
            for item in items:
                if item.document_id != document_id:
                    raise SQLStoreError(
                        f"sqlstore: line item document id mismatch: "
                        f"{item.document_id} vs {document_id}"
                    )
                try:
                    conn.execute(
                        "INSERT INTO line_items (document_id, metric_key, metric_value) "
                        "VALUES (?, ?, ?)",
                        (item.document_id, item.key, float(item.value)),
                    )
                except sqlite3.Error as err:
                    raise SQLStoreError(
                        f"sqlstore: insert line item {item.key}={item.value}: {err}"
                    ) from err

    def query_metric(
        self, metric_key: str, start_date: str = "", end_date: str = ""
    ) -> list[LineItemHit]:
        """Values of one metric, limited to overlapping periods when both dates are given."""
        sql = (
            "SELECT li.document_id, li.metric_value, d.period_start, d.period_end "
            "FROM line_items li JOIN documents d ON d.id = li.document_id "
            "WHERE li.metric_key = ?"
        )
        args: list[Any] = [metric_key]
        if start_date and end_date:
            sql += " AND NOT (d.period_end < ? OR ? < d.period_start)"
            args += [start_date, end_date]
        sql += " ORDER BY d.period_end DESC"
        with self._connection() as conn:
            rows = conn.execute(sql, args).fetchall()
        return [LineItemHit(doc_id, value, start, end) for doc_id, value, start, end in rows]

    # ----- ask audit -----

    def record_ask_event(self, row: AskAuditRow) -> None:
        """Append one audit row stamped with the current time."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO ask_audit (at, question, period, numbers_used, evidence_ids, "
                "confidence, conflicts, error_msg) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    _db_time(_now()),
                    row.question,
                    row.period,
                    "\n".join(row.numbers_used),
                    ",".join(row.evidence_ids),
                    row.confidence,
                    int(row.conflicts),
                    row.error_msg,
                ),
            )

    def recent_asks(self, limit: int = DEFAULT_RECENT_ASKS) -> list[AskAuditRow]:
        """The most recent audit rows, newest first; a non-positive limit means 50."""
        if limit <= 0:
            limit = DEFAULT_RECENT_ASKS
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT question, period, numbers_used, evidence_ids, confidence, conflicts, "
                "error_msg FROM ask_audit ORDER BY at DESC, id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            AskAuditRow(
                question=question,
                period=period,
                numbers_used=numbers.split("\n") if numbers else [],
                evidence_ids=evidence.split(",") if evidence else [],
                confidence=confidence,
                conflicts=conflicts,
                error_msg=error_msg,
            )
            for question, period, numbers, evidence, confidence, conflicts, error_msg in rows
        ]
import os
from datetime import date

import pytest

from cfostore.migrate import MigrationResult, migrate_from_json
from cfostore.sqlstore import SQLStore

COMPANY_JSON = """{
    "name": "Acme",
    "industry": "SaaS",
    "industry_type": "generic",
    "fiscal_year_end": "12-31",
    "currency": "USD",
    "setup_completed": true
}"""

DOCUMENTS_JSON = """{
    "documents": [
        {
            "id": "doc_q1",
            "filename": "q1.xlsx",
            "doc_type": "P&L",
            "period_start": "2024-01-01",
            "period_end": "2024-03-31",
            "file_path": "/tmp/q1.xlsx",
            "parsed_path": "/tmp/q1.json",
            "uploaded_at": "2024-04-01T00:00:00Z",
            "file_size": 10,
            "mime_type": "x"
        }
    ]
}"""

PARSED_JSON = """{
    "document_id": "doc_q1",
    "data": {"revenue": 1234567.89, "cash": 500000}
}"""


def write_file(path, contents):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(contents)


@pytest.fixture
def store(tmp_path):
    opened = SQLStore.open(str(tmp_path / "test.db"))
    yield opened
    opened.close()


@pytest.fixture
def data_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    return str(directory)


def populate(data_dir):
    write_file(os.path.join(data_dir, "state", "company.json"), COMPANY_JSON)
    write_file(os.path.join(data_dir, "state", "documents.json"), DOCUMENTS_JSON)
    write_file(os.path.join(data_dir, "parsed", "doc_q1.json"), PARSED_JSON)


def test_happy_path(store, data_dir):
    populate(data_dir)
    result = migrate_from_json(store, data_dir)

    assert result.company_imported is True
    assert result.documents_imported == 1
    assert result.line_items_imported == 2
    assert result.errors == []

    company = store.get_company()
    assert company is not None
    assert company.name == "Acme"
    assert company.setup_completed is True

    hits = store.query_metric("revenue", "2024-01-01", "2024-03-31")
    assert len(hits) == 1
    assert hits[0].value == pytest.approx(1234567.89)


def test_rerun_is_idempotent(store, data_dir):
    populate(data_dir)
    migrate_from_json(store, data_dir)
    again = migrate_from_json(store, data_dir)

    assert again.errors == []
    assert again.documents_imported == 1
    assert len(store.list_documents()) == 1
    assert len(store.query_metric("revenue", "", "")) == 1
    assert len(store.query_metric("cash", "", "")) == 1


def test_document_fields_are_imported(store, data_dir):
    populate(data_dir)
    migrate_from_json(store, data_dir)
    docs = store.list_documents()
    assert len(docs) == 1
    doc = docs[0]
    assert doc.id == "doc_q1"
    assert doc.filename == "q1.xlsx"
    assert doc.doc_type == "P&L"
    assert doc.period_end == "2024-03-31"
    assert doc.file_size == 10
    assert doc.uploaded_at.date() == date(2024, 4, 1)


def test_missing_files(store, data_dir):
    result = migrate_from_json(store, data_dir)
    assert result == MigrationResult()
    assert store.get_company() is None


def test_bad_company_json_is_recorded(store, data_dir):
    write_file(os.path.join(data_dir, "state", "company.json"), "{not json")
    result = migrate_from_json(store, data_dir)
    assert result.company_imported is False
    assert len(result.errors) == 1
    assert result.errors[0].startswith("company.json unmarshal")
    assert store.get_company() is None


def test_wrong_field_type_in_documents_is_recorded(store, data_dir):
    write_file(
        os.path.join(data_dir, "state", "documents.json"),
        '{"documents": [{"id": "d1", "file_size": "big"}]}',
    )
    result = migrate_from_json(store, data_dir)
    assert result.documents_imported == 0
    assert any(err.startswith("documents.json unmarshal") for err in result.errors)


def test_parsed_doc_without_document_row_is_recorded(store, data_dir):
    write_file(os.path.join(data_dir, "parsed", "orphan.json"), '{"data": {"revenue": 1}}')
    result = migrate_from_json(store, data_dir)
    assert result.line_items_imported == 0
    assert len(result.errors) == 1
    assert result.errors[0].startswith("parsed orphan")


def test_non_json_entries_are_ignored(store, data_dir):
    populate(data_dir)
    write_file(os.path.join(data_dir, "parsed", "notes.txt"), "ignored")
    os.makedirs(os.path.join(data_dir, "parsed", "sub.json"))
    result = migrate_from_json(store, data_dir)
    assert result.errors == []
    assert result.line_items_imported == 2


def test_one_bad_parsed_file_does_not_block_others(store, data_dir):
    populate(data_dir)
    write_file(os.path.join(data_dir, "parsed", "broken.json"), "[1, 2")
    result = migrate_from_json(store, data_dir)
    assert result.line_items_imported == 2
    assert len(result.errors) == 1
    assert "broken" in result.errors[0]
# cfostore

Storage pieces for an assistant that answers questions about a company's
financial documents. It uses only the standard library.

## Modules

- `cfostore.paths`: the on-disk layout (`Paths`), the supported industries
  (`IndustryType`: generic, education, ecommerce, pharma), and the helpers
  `sanitize_filename`, `sanitize_document_id` and `is_path_within_directory`.
  These keep names from escaping their directories.
- `cfostore.records`: the `Company`, `Document`, `DocumentList`, `Period` and
  `ParsedDocument` dataclasses. Each record has `to_dict` and `from_dict` for
  its JSON shape.
- `cfostore.vectors`: `VectorDocument`, `VectorFilter`, `SearchQuery` and
  `SimilarityResult`, plus the helpers `matches_filter`, `periods_overlap`,
  `cosine_similarity`, `split_words`, `is_stop_word`,
  `extract_search_keywords` and `score_text_with_keywords`.
- `cfostore.sqlstore`: `SQLStore`, a thread-safe SQLite store. It holds the
  company, document metadata, per-document line items and an append-only
  log of questions asked. Failures raise `SQLStoreError`.
- `cfostore.migrate`: `migrate_from_json`, which imports
  `state/company.json`, `state/documents.json` and `parsed/*.json` from a
  data directory into a `SQLStore`. It returns a `MigrationResult`. A missing
  file is skipped. A malformed file is recorded in `MigrationResult.errors`.
  Running the import again is safe.

## Installing

```
pip install .
```

## Examples

Paths and sanitising:

```python
from cfostore.paths import IndustryType, Paths, sanitize_filename

paths = Paths.from_data_dir("data")
sanitize_filename("../../../etc/passwd")          # "passwd"
paths.rag_chunk_path(IndustryType.EDUCATION, "doc_123")
# "data/rag/education/doc_123_chunks.json"
paths.rag_path("unknown")                         # "data/rag/generic"
```

Filtering and scoring chunks:

```python
from cfostore.vectors import VectorDocument, VectorFilter, matches_filter, cosine_similarity

doc = VectorDocument(id="c1", document_id="doc1", industry_type="generic",
                     period_start="2024-01-01", period_end="2024-03-31",
                     text="Total revenue for Q1 was $25 million.")
matches_filter(doc, VectorFilter(period_start="2024-02-01", period_end="2024-06-30"))  # True
cosine_similarity([1, 0, 0], [1, 0, 0])          # 1.0
```

SQLite store and JSON import:

```python
from cfostore.migrate import migrate_from_json
from cfostore.sqlstore import AskAuditRow, SQLStore

with SQLStore.open("data/cfo.db") as db:
    result = migrate_from_json(db, "data")
    hits = db.query_metric("revenue", "2024-01-01", "2024-03-31")
    db.record_ask_event(AskAuditRow(question="What was revenue in Q1?", confidence="high"))
    latest = db.recent_asks(10)
```

## What the package does not do

- It has no store that writes the records to JSON files or reads them back.
  The records only convert to and from dictionaries, and `Paths` only
  computes where such files would go. Nothing creates the directories.
- It has no vector index that holds documents and runs searches. It does not
  compute embeddings. `cfostore.vectors` gives the document types, the filter
  logic and the similarity and keyword-scoring functions that such an index
  would use.
- There is no command-line tool or server.

## Running the tests

```
pip install .[test]
pytest
```
from datetime import datetime, timezone

import pytest

from cfostore.paths import IndustryType
from cfostore.vectors import (
    SearchQuery,
    SimilarityResult,
    VectorDocument,
    VectorFilter,
    cosine_similarity,
    extract_search_keywords,
    is_stop_word,
    matches_filter,
    periods_overlap,
    score_text_with_keywords,
    split_words,
)


@pytest.mark.parametrize(
    "a, b, expected, epsilon",
    [
        ([1, 0, 0], [1, 0, 0], 1.0, 0.001),
        ([1, 0, 0], [0, 1, 0], 0.0, 0.001),
        ([1, 0, 0], [-1, 0, 0], -1.0, 0.001),
        ([1, 1, 0], [1, 0, 0], 0.707, 0.01),
        ([], [], 0.0, 0.001),
        ([1, 0], [1, 0, 0], 0.0, 0.001),
    ],
    ids=["identical", "orthogonal", "opposite", "similar", "empty", "different_lengths"],
)
def test_cosine_similarity(a, b, expected, epsilon):
    assert abs(cosine_similarity(a, b) - expected) <= epsilon


def test_cosine_similarity_zero_vector():
    assert cosine_similarity([0, 0], [1, 1]) == 0.0


@pytest.mark.parametrize(
    "query, minimum",
    [
        ("What is the revenue?", 1),
        ("Show me the cash flow analysis", 2),
        ("the a an is are", 0),
        ("student enrollment retention", 3),
    ],
)
def test_extract_search_keywords_minimum(query, minimum):
    assert len(extract_search_keywords(query)) >= minimum


def test_extract_search_keywords_values():
    assert extract_search_keywords("What is the revenue?") == ["revenue"]
    assert extract_search_keywords("the a an is are") == []
    assert extract_search_keywords("student enrollment retention") == [
        "student",
        "enrollment",
        "retention",
    ]


def test_split_words():
    assert split_words("Q4 revenue: $25,000 up-15%") == ["Q4", "revenue", "25", "000", "up", "15"]
    assert split_words("") == []
    assert split_words("caf\u00e9 bar") == ["caf", "bar"]


def test_is_stop_word_case_insensitive():
    assert is_stop_word("The")
    assert is_stop_word("about")
    assert not is_stop_word("revenue")


def test_score_text_with_keywords():
    text = "Total Revenue for Q4 2024 was $25 million"
    assert score_text_with_keywords(text, ["revenue", "million", "cash"]) == 2
    assert score_text_with_keywords(text, []) == 0
    assert score_text_with_keywords(text, ["REVENUE"]) == 1


def test_periods_overlap():
    assert periods_overlap("2024-01-01", "2024-03-31", "2024-03-01", "2024-06-30")
    assert not periods_overlap("2024-01-01", "2024-03-31", "2024-04-01", "2024-06-30")
    assert periods_overlap("2024-01-01", "2024-03-31", "2024-03-31", "2024-06-30")
    assert periods_overlap("", "2024-03-31", "2025-01-01", "2025-03-31")


def _doc(**kwargs):
    base = dict(
        id="c1",
        document_id="doc1",
        industry_type=IndustryType.EDUCATION,
        doc_type="P&L",
        source="report.csv",
        period_start="2024-01-01",
        period_end="2024-03-31",
        text="Revenue grew",
    )
    base.update(kwargs)
    return VectorDocument(**base)


def test_filter_is_zero():
    assert VectorFilter().is_zero()
    assert not VectorFilter(source="x.csv").is_zero()
    assert not VectorFilter(document_ids=["a"]).is_zero()
    assert not VectorFilter(period_end="2024-01-01").is_zero()


def test_matches_zero_filter():
    assert matches_filter(_doc(), VectorFilter())


def test_matches_industry():
    assert matches_filter(_doc(), VectorFilter(industry=IndustryType.EDUCATION))
    assert matches_filter(_doc(), VectorFilter(industry="education"))
    assert not matches_filter(_doc(), VectorFilter(industry=IndustryType.PHARMA))


def test_matches_doc_type_and_source():
    assert matches_filter(_doc(), VectorFilter(doc_type="P&L", source="report.csv"))
    assert not matches_filter(_doc(), VectorFilter(doc_type="BalanceSheet"))
    assert not matches_filter(_doc(), VectorFilter(source="other.csv"))


def test_matches_document_ids():
    assert matches_filter(_doc(), VectorFilter(document_ids=["x", "doc1"]))
    assert not matches_filter(_doc(), VectorFilter(document_ids=["x", "y"]))


def test_matches_period():
    q1 = VectorFilter(period_start="2024-02-01", period_end="2024-02-28")
    q3 = VectorFilter(period_start="2024-07-01", period_end="2024-09-30")
    assert matches_filter(_doc(), q1)
    assert not matches_filter(_doc(), q3)
    assert not matches_filter(_doc(period_start="", period_end=""), q1)


def test_period_needs_both_bounds():
    only_start = VectorFilter(period_start="2030-01-01")
    assert matches_filter(_doc(period_start="", period_end=""), only_start)


def test_vector_document_round_trip():
    created = datetime(2024, 4, 1, 12, 0, tzinfo=timezone.utc)
    doc = _doc(embedding=[0.5, -1.0], metadata={"page": 3}, created_at=created)
    data = doc.to_dict()
    assert data["industry_type"] == "education"
    assert data["created_at"] == "2024-04-01T12:00:00Z"
    restored = VectorDocument.from_dict(data)
    assert restored == doc
    assert restored.industry_type is IndustryType.EDUCATION


def test_vector_document_omits_empty_fields():
    data = VectorDocument(id="a", text="t").to_dict()
    assert "doc_type" not in data
    assert "source" not in data
    assert "metadata" not in data
    assert data["embedding"] == []
    assert data["created_at"] == "0001-01-01T00:00:00Z"
    assert VectorDocument.from_dict(data).created_at is None


def test_vector_document_from_null_embedding():
    doc = VectorDocument.from_dict({"id": "a", "text": "t", "embedding": None})
    assert doc.embedding == []
    assert doc.id == "a"


def test_search_query_and_result_defaults():
    query = SearchQuery(text="cash")
    assert query.top_k == 0
    assert query.min_score == 0.0
    assert query.vector_filter.is_zero()
    result = SimilarityResult(document=_doc(), similarity=0.5)
    assert result.document.id == "c1"
    assert result.similarity == 0.5
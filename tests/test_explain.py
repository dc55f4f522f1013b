import pytest

from bm25lab.corpus import CorpusManager
from bm25lab.database import Database
from bm25lab.errors import DatabaseError
from bm25lab.explain import (
    average_document_length,
    calculate_field_score,
    calculate_length_normalization,
    calculate_term_score,
    format_comparison,
    format_score_explanations,
    generate_comparison,
    generate_score_explanations,
)
from bm25lab.models import BM25_B, BM25_K1, Document, SearchOptions, SearchResult
from bm25lab.search import search


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "corpus.db")
    database.init_schema()
    yield database
    database.close()


@pytest.fixture
def filled(db):
    manager = CorpusManager(db)
    docs = [
        Document(title="Cloud Computing Basics", content="cloud servers scale well",
                 category="technology"),
        Document(title="Database Indexing", content="btree index pages", category="database"),
        Document(title="Cloud Storage", content="object storage in the cloud",
                 category="technology"),
    ]
    manager.batch_insert_documents(docs)
    return db, docs


def test_length_normalization_at_average_is_k1():
    assert calculate_length_normalization(100, 100.0) == pytest.approx(BM25_K1)


def test_length_normalization_of_empty_document():
    assert calculate_length_normalization(0, 50.0) == pytest.approx(BM25_K1 * (1 - BM25_B))


def test_length_normalization_grows_with_length():
    assert calculate_length_normalization(200, 100.0) > calculate_length_normalization(50, 100.0)


def test_term_score_counts_occurrences():
    result = SearchResult(title="Cloud Cloud", content="", category="x", length=2)
    score = calculate_term_score("cloud", result, 2.0)
    assert score.tf == 2.0
    assert score.field_tf == score.tf
    assert score.idf < 3.0
    assert score.score > 0


def test_term_score_idf_is_clamped():
    result = SearchResult(title="", content="a " * 60, category="", length=60)
    score = calculate_term_score("a", result, 60.0)
    assert score.idf == 0.1


def test_term_score_absent_term_scores_zero():
    result = SearchResult(title="alpha", content="beta", category="gamma", length=2)
    assert calculate_term_score("delta", result, 2.0).score == 0.0


def test_field_score_uses_given_weight():
    fs = calculate_field_score("title", "Cloud cloud", ["cloud", "web"], {"title": 2.0})
    assert fs.weight == 2.0
    assert [t.term for t in fs.terms] == ["cloud", "web"]
    assert fs.score == pytest.approx(sum(t.score for t in fs.terms))
    assert fs.terms[1].score == 0.0


def test_field_score_default_weight():
    fs = calculate_field_score("content", "x", ["x"], {"title": 3.0})
    assert fs.weight == 1.0
    assert calculate_field_score("content", "x", ["x"], None).weight == 1.0


def test_average_document_length(filled):
    db, docs = filled
    expected = sum(d.length for d in docs) / len(docs)
    assert average_document_length(db) == pytest.approx(expected)


def test_average_document_length_empty_corpus(db):
    with pytest.raises(DatabaseError):
        average_document_length(db)


def test_generate_score_explanations(filled):
    db, _ = filled
    options = SearchOptions(query="cloud", include_snippet=False)
    results = search(db, options)
    explanations = generate_score_explanations(db, results, options)
    assert [e.document_id for e in explanations] == [r.id for r in results]
    for explanation, result in zip(explanations, results):
        assert explanation.total_score == result.score
        assert set(explanation.field_scores) == {"title", "content", "category"}
        assert explanation.document_stats.field_lengths["title"] == len(result.title.split())
        assert [t.term for t in explanation.query_terms] == ["cloud"]


def test_format_score_explanations_default_weights(filled):
    db, _ = filled
    options = SearchOptions(query="cloud", include_snippet=False)
    explanations = generate_score_explanations(db, search(db, options), options)
    text = format_score_explanations(explanations, options)
    assert 'Score Explanations for: "cloud"' in text
    assert "Using default FTS5 column weights (all fields weighted equally)" in text
    assert "BM25 parameters: k1=1.2, b=0.75 (SQLite FTS5 defaults)" in text
    assert text.count("Document ") >= len(explanations)


def test_format_score_explanations_custom_weights():
    options = SearchOptions(query="q", column_weights={"title": 1.5, "content": 2.0})
    text = format_score_explanations([], options)
    assert "Custom column weights: map[content:2 title:1.5]" in text


def _result(doc_id, score, title="Doc"):
    return SearchResult(id=doc_id, title=title, score=score)


def test_comparison_without_weights_has_only_baseline():
    baseline = [_result(1, -2.0), _result(2, -1.0)]
    comp = generate_comparison("q", baseline, baseline, None)
    assert list(comp.strategies) == ["baseline"]
    assert comp.common_docs == []
    assert comp.unique_docs == {}
    assert comp.strategies["baseline"].config.max_results == 2


def test_comparison_overlap():
    baseline = [_result(1, -2.0), _result(2, -1.0)]
    weighted = [_result(2, -3.0), _result(3, -0.5)]
    comp = generate_comparison("q", baseline, weighted, {"title": 2.0})
    assert [d.id for d in comp.common_docs] == [2]
    assert [d.id for d in comp.unique_docs["baseline"]] == [1]
    assert [d.id for d in comp.unique_docs["weighted"]] == [3]
    assert comp.strategies["weighted"].config.column_weights == {"title": 2.0}


def test_comparison_copies_results():
    baseline = [_result(1, -2.0)]
    comp = generate_comparison("q", baseline, baseline, None)
    comp.strategies["baseline"].results[0].score = 5.0
    assert baseline[0].score == -2.0


def test_format_comparison_changes():
    baseline = [_result(1, -2.0, "A"), _result(2, -1.0, "B"), _result(4, -1.0, "D")]
    weighted = [_result(1, -2.0, "A"), _result(3, -1.0, "C")]
    text = format_comparison(generate_comparison("q", baseline, weighted, {"title": 2.0}))
    assert "Ranking Comparison:" in text
    assert "same" in text
    assert "reordered" in text
    assert "dropped" in text
    assert "Common documents: 1" in text
    assert "Unique to baseline: 2 documents" in text


def test_format_comparison_new_rows_and_truncation():
    long_title = "T" * 40
    weighted = [_result(1, -2.0, "A"), _result(2, -1.0, long_title)]
    text = format_comparison(generate_comparison("q", [_result(1, -1.0, "A")], weighted, {}))
    assert "new" in text
    assert "T" * 25 + "..." in text
    assert "T" * 26 not in text
import io
import json
from datetime import timedelta

import pytest

from bm25lab.corpus import CorpusManager
from bm25lab.database import Database
from bm25lab.errors import ValidationError
from bm25lab.models import Document, SearchOptions, SearchResult
from bm25lab.report import (
    format_search_results,
    format_search_stats,
    run_compare,
    run_explain,
    run_query,
    run_search_stats,
)
from bm25lab.search import search_stats


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "corpus.db")
    database.init_schema()
    CorpusManager(database).batch_insert_documents(
        [
            Document(title="Cloud Computing Basics", content="cloud servers scale well",
                     category="technology"),
            Document(title="Database Indexing", content="btree index pages",
                     category="database"),
            Document(title="Cloud Storage", content="object storage in the cloud",
                     category="technology"),
        ]
    )
    yield database
    database.close()


def _results():
    return [
        SearchResult(id=7, title="A", category="b", score=-1.5, relevance="good", length=3),
        SearchResult(id=8, title="C", category="d", score=-3.0, relevance="fair", length=4),
    ]


def test_csv_results():
    text = format_search_results(_results(), SearchOptions(query="q"), fmt="csv")
    lines = text.splitlines()
    assert lines[0] == "id,title,category,score,relevance"
    assert lines[1] == '7,"A","b",-1.5000,good'
    assert len(lines) == 3


def test_json_results():
    text = format_search_results(
        _results(), SearchOptions(query="q"), timedelta(microseconds=1500), fmt="json"
    )
    data = json.loads(text)
    assert data["query"] == "q"
    assert data["total_results"] == 2
    assert data["execution_time"] == "1.5ms"
    assert [r["id"] for r in data["results"]] == [7, 8]


def test_json_zero_duration():
    data = json.loads(format_search_results([], SearchOptions(query="q"), fmt="json"))
    assert data["execution_time"] == "0s"
    assert data["results"] == []


def test_text_results_empty():
    text = format_search_results([], SearchOptions(query="nothing"))
    assert 'Search Results for: "nothing"' in text
    assert "No documents found." in text


def test_text_results_verbose_and_weights():
    options = SearchOptions(query="q", column_weights={"title": 2.0})
    text = format_search_results(_results(), options, verbose=True)
    assert "1. A" in text
    assert "   Score: -1.5000 (good relevance)" in text
    assert "ID: 7" in text
    assert "Column weights: map[title:2]" in text


def test_stats_csv():
    stats = search_stats(_results(), "q")
    lines = format_search_stats(stats, "csv").splitlines()
    assert lines[0] == "metric,value"
    assert 'query,"q"' in lines
    assert "total_results,2" in lines
    assert "score_best,-3.0000" in lines
    assert "score_worst,-1.5000" in lines


def test_stats_json_round_trip():
    stats = search_stats(_results(), "q")
    data = json.loads(format_search_stats(stats, "json"))
    assert data["total_results"] == 2
    assert data["category_breakdown"] == {"b": 1, "d": 1}


def test_stats_text_empty():
    text = format_search_stats(search_stats([], "q"))
    assert "Results: 0 documents" in text
    assert "Percentiles:" not in text


def test_stats_text_full():
    text = format_search_stats(search_stats(_results(), "q"))
    assert "Percentiles:" in text
    assert "Category Breakdown:" in text
    assert "Score Distribution Buckets:" in text


def test_run_query(db):
    out = io.StringIO()
    results = run_query(db, SearchOptions(query="cloud"), out=out)
    assert len(results) == 2
    assert all("cloud" in r.title.lower() for r in results)
    assert 'Search Results for: "cloud"' in out.getvalue()


def test_run_query_category_filter(db):
    out = io.StringIO()
    results = run_query(db, SearchOptions(query="index", category_filter="technology"), out=out)
    assert results == []
    assert "No documents found." in out.getvalue()


def test_run_search_stats(db):
    out = io.StringIO()
    stats = run_search_stats(db, SearchOptions(query="cloud", max_results=1), out=out)
    assert stats.total_results == 2
    assert stats.category_breakdown == {"technology": 2}
    assert 'Search Statistics for: "cloud"' in out.getvalue()


def test_run_explain_no_results(db):
    out = io.StringIO()
    assert run_explain(db, SearchOptions(query="zebra"), out=out) == []
    assert 'No results found for query: "zebra"' in out.getvalue()


def test_run_explain(db):
    out = io.StringIO()
    explanations = run_explain(db, SearchOptions(query="cloud"), out=out)
    assert len(explanations) == 2
    assert "Field Contributions:" in out.getvalue()


def test_run_compare_invalid_weights(db):
    with pytest.raises(ValidationError):
        run_compare(db, "cloud", "title=2", out=io.StringIO())


def test_run_compare(db):
    out = io.StringIO()
    comp = run_compare(db, "cloud", "title:2.0, content:0.5", out=out)
    assert set(comp.strategies) == {"baseline", "weighted"}
    assert comp.strategies["weighted"].config.column_weights == {"title": 2.0, "content": 0.5}
    assert len(comp.common_docs) == 2
    assert "Summary:" in out.getvalue()


def test_run_compare_without_weights(db):
    comp = run_compare(db, "cloud", "", out=io.StringIO())
    assert list(comp.strategies) == ["baseline"]
    assert len(comp.strategies["baseline"].results) == 2
import statistics
from datetime import datetime, timedelta

import pytest

from bm25lab.corpus import CorpusManager
from bm25lab.database import Database
from bm25lab.errors import FTS5Error
from bm25lab.models import Document, SearchOptions, SearchResult
from bm25lab.search import (
    build_search_query,
    calculate_score_distribution,
    classify_relevance,
    column_weights,
    create_score_buckets,
    generate_snippet,
    parse_weights,
    search,
    search_stats,
)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "corpus.db")
    database.init_schema()
    CorpusManager(database).batch_insert_documents(
        [
            Document(
                title="SQL Query Optimization",
                content="database index query performance database",
                category="database",
                created=datetime(2024, 1, 2, 3, 4, 5),
            ),
            Document(
                title="Graph Algorithms",
                content="graph traversal and search",
                category="algorithms",
                created=datetime(2024, 1, 3, 3, 4, 5),
            ),
            Document(
                title="Database Systems",
                content="relational database design",
                category="technology",
                created=datetime(2024, 1, 4, 3, 4, 5),
            ),
        ]
    )
    yield database
    database.close()


def test_column_weights_keeps_positive_only():
    assert column_weights(2.0, 0.0, 0.5) == {"title": 2.0, "category": 0.5}
    assert column_weights() is None


def test_build_query_default_scoring():
    sql, args = build_search_query(SearchOptions(query="graph"))
    assert "bm25(documents_fts)" in sql
    assert sql.endswith("ORDER BY score LIMIT ?")
    assert args == ["graph", 20]


def test_build_query_weights_and_filter():
    options = SearchOptions(
        query="graph", max_results=0, column_weights={"title": 2.0}, category_filter="science"
    )
    sql, args = build_search_query(options)
    assert "bm25(documents_fts, 2.00, 1.0, 1.0)" in sql
    assert "AND d.category = ?" in sql
    assert "LIMIT" not in sql
    assert args == ["graph", "science"]


@pytest.mark.parametrize(
    "score,label",
    [(-1.0, "excellent"), (-2.0, "good"), (-4.0, "fair"), (-4.5, "poor"), (0.5, "excellent")],
)
def test_classify_relevance(score, label):
    assert classify_relevance(score) == label


def test_distribution_matches_statistics():
    scores = [-3.5, -1.25, -0.5, -2.0, -4.75]
    distrib = calculate_score_distribution(scores)
    assert distrib.mean == pytest.approx(statistics.mean(scores))
    assert distrib.median == pytest.approx(statistics.median(scores))
    assert distrib.std_dev == pytest.approx(statistics.pstdev(scores))
    assert sorted(distrib.percentiles) == [25, 50, 75, 90, 95, 99]
    assert distrib.percentiles[50] == pytest.approx(distrib.median)
    values = [distrib.percentiles[p] for p in sorted(distrib.percentiles)]
    assert values == sorted(values)
    assert sum(b.count for b in distrib.buckets) == len(scores)


def test_distribution_of_nothing_is_empty():
    distrib = calculate_score_distribution([])
    assert distrib.percentiles == {} and distrib.buckets == [] and distrib.mean == 0.0


def test_distribution_does_not_mutate_input():
    scores = [-1.0, -3.0, -2.0]
    calculate_score_distribution(scores)
    assert scores == [-1.0, -3.0, -2.0]


def test_buckets_cover_range():
    scores = [-5.0, -4.0, -3.3, -2.2, -1.0, -1.0]
    buckets = create_score_buckets(scores, 4)
    assert len(buckets) == 4
    assert buckets[0].min == -5.0
    assert buckets[-1].max == pytest.approx(-1.0)
    assert sum(b.count for b in buckets) == len(scores)
    assert buckets[-1].count >= 2
    assert buckets[0].label == f"{buckets[0].min:.2f} to {buckets[0].max:.2f}"


def test_buckets_identical_scores():
    buckets = create_score_buckets([-1.5, -1.5, -1.5], 10)
    assert len(buckets) == 1
    assert buckets[0].count == 3
    assert buckets[0].label == f"{-1.5:.2f}"


def test_buckets_empty_and_invalid():
    assert create_score_buckets([], 10) == []
    with pytest.raises(ValueError):
        create_score_buckets([-1.0, -2.0], 0)


def test_snippet_short_content_returned_whole():
    assert generate_snippet("  short text here ", "text", 200) == "short text here"


def test_snippet_around_term():
    content = "filler " * 100 + "needle " + "filler " * 100
    snippet = generate_snippet(content, "Needle", 80)
    assert "needle" in snippet
    assert snippet.startswith("...") and snippet.endswith("...")
    assert len(snippet) <= 80 + 6


def test_snippet_without_match_starts_at_beginning():
    content = "abcdefghij" * 30
    snippet = generate_snippet(content, "zzz", 0)
    assert snippet == content[:200] + "..."


def test_parse_weights():
    assert parse_weights("title:2.0, content : 1.5") == {"title": 2.0, "content": 1.5}
    assert parse_weights("") is None


@pytest.mark.parametrize("text", ["title", "title:1:2", "title:abc", "title:1,content"])
def test_parse_weights_rejects_malformed(text):
    with pytest.raises(ValueError):
        parse_weights(text)


def test_search_finds_and_ranks(db):
    results = search(db, SearchOptions(query="database"))
    assert {r.title for r in results} == {"SQL Query Optimization", "Database Systems"}
    scores = [r.score for r in results]
    assert scores == sorted(scores)
    for r in results:
        assert r.relevance == classify_relevance(r.score)
        assert "database" in r.snippet.lower()
        assert isinstance(r.created, datetime)


def test_search_category_filter_and_limit(db):
    filtered = search(db, SearchOptions(query="database", category_filter="technology"))
    assert [r.title for r in filtered] == ["Database Systems"]
    limited = search(db, SearchOptions(query="database", max_results=1))
    assert len(limited) == 1


def test_search_without_snippets_and_weighted(db):
    options = SearchOptions(
        query="graph", include_snippet=False, column_weights={"title": 5.0}
    )
    results = search(db, options)
    assert [r.title for r in results] == ["Graph Algorithms"]
    assert results[0].snippet == ""
    assert results[0].length == len("Graph Algorithms graph traversal and search".split())


def test_search_bad_syntax_raises(db):
    with pytest.raises(FTS5Error):
        search(db, SearchOptions(query='"unclosed'))


def test_search_stats_summary():
    results = [
        SearchResult(id=1, category="a", score=-3.0),
        SearchResult(id=2, category="b", score=-1.0),
        SearchResult(id=3, category="a", score=-2.0),
    ]
    stats = search_stats(results, "q", timedelta(milliseconds=5))
    assert stats.total_results == 3
    assert stats.score_range.best == -3.0
    assert stats.score_range.worst == -1.0
    assert stats.score_range.mean == pytest.approx(statistics.mean([-3.0, -1.0, -2.0]))
    assert stats.category_breakdown == {"a": 2, "b": 1}
    assert stats.execution_time == timedelta(milliseconds=5)


def test_search_stats_empty():
    stats = search_stats([], "nothing")
    assert stats.total_results == 0
    assert stats.query == "nothing"
    assert stats.category_breakdown == {}
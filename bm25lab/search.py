"""FTS5 search with BM25 scoring and statistics over the scores."""

from __future__ import annotations

import math
import re
import sqlite3
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .database import Database
from .errors import DatabaseError, FTS5Error
from .models import (
    ScoreBucket,
    ScoreDistribution,
    SearchOptions,
    SearchResult,
    SearchStats,
)

PERCENTILES = (25, 50, 75, 90, 95, 99)
DEFAULT_SNIPPET_LENGTH = 200
HISTOGRAM_BUCKETS = 10

_BASE_QUERY = (
    "SELECT d.id, d.title, d.content, d.category, d.length, d.created, "
    "{score} AS score "
    "FROM documents d "
    "JOIN documents_fts fts ON d.id = fts.rowid "
    "WHERE documents_fts MATCH ?"
)

_FIELDS = ("title", "content", "category")

_FLOAT_PATTERN = re.compile(
    r"[+-]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|inf(?:inity)?|nan)",
    re.IGNORECASE,
)


def column_weights(
    title: float = 0.0, content: float = 0.0, category: float = 0.0
) -> Optional[Dict[str, float]]:
    """Collect the positive field weights; None when none is positive."""
    given = {"title": title, "content": content, "category": category}
    weights = {name: value for name, value in given.items() if value > 0}
    return weights or None


def build_search_query(options: SearchOptions) -> Tuple[str, List[Any]]:
    """Build the SQL and its parameters for a BM25-ranked FTS5 search."""
    if options.column_weights:
        parts = [
            f"{options.column_weights[name]:.2f}" if name in options.column_weights else "1.0"
            for name in _FIELDS
        ]
        score_expr = f"bm25(documents_fts, {', '.join(parts)})"
    else:
        score_expr = "bm25(documents_fts)"

    clauses = [_BASE_QUERY.format(score=score_expr)]
    args: List[Any] = [options.query]
    if options.category_filter:
        clauses.append("AND d.category = ?")
        args.append(options.category_filter)
    # FTS5 BM25 scores are negative: lower means more relevant.
    clauses.append("ORDER BY score")
    if options.max_results > 0:
        clauses.append("LIMIT ?")
        args.append(options.max_results)
    return " ".join(clauses), args


def classify_relevance(score: float) -> str:
    """Label a (negative) FTS5 BM25 score as excellent, good, fair or poor."""
    if score >= -1.0:
        return "excellent"
    if score >= -2.0:
        return "good"
    if score >= -4.0:
        return "fair"
    return "poor"


def create_score_buckets(scores: Sequence[float], num_buckets: int) -> List[ScoreBucket]:
    """Split scores into equal-width histogram buckets."""
    if not scores:
        return []
    low, high = min(scores), max(scores)
    if low == high:
        return [ScoreBucket(min=low, max=high, count=len(scores), label=f"{low:.2f}")]
    if num_buckets < 1:
        raise ValueError("number of buckets must be at least 1")

    width = (high - low) / num_buckets
    buckets = []
    for i in range(num_buckets):
        lower = low + i * width
        upper = low + (i + 1) * width
        buckets.append(
            ScoreBucket(min=lower, max=upper, label=f"{lower:.2f} to {upper:.2f}")
        )
    for score in scores:
        index = min(int((score - low) / width), num_buckets - 1)
        buckets[index].count += 1
    return buckets


def _percentile(ordered: Sequence[float], p: int) -> float:
    index = p / 100.0 * (len(ordered) - 1)
    lower, upper = math.floor(index), math.ceil(index)
    if lower == upper:
        return ordered[lower]
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def calculate_score_distribution(scores: Sequence[float]) -> ScoreDistribution:
    """Mean, median, population deviation, percentiles and histogram of scores."""
    ordered = sorted(scores)
    distrib = ScoreDistribution()
    n = len(ordered)
    if n == 0:
        return distrib

    distrib.mean = sum(ordered) / n
    middle = n // 2
    if n % 2 == 0:
        distrib.median = (ordered[middle - 1] + ordered[middle]) / 2
    else:
        distrib.median = ordered[middle]
    distrib.std_dev = math.sqrt(sum((s - distrib.mean) ** 2 for s in ordered) / n)
    distrib.percentiles = {p: _percentile(ordered, p) for p in PERCENTILES}
    distrib.buckets = create_score_buckets(ordered, HISTOGRAM_BUCKETS)
    return distrib


def generate_snippet(content: str, query: str, max_length: int = DEFAULT_SNIPPET_LENGTH) -> str:
    """Cut a window of content around the first occurrence of any query term."""
    if max_length <= 0:
        max_length = DEFAULT_SNIPPET_LENGTH

    lowered = content.lower()
    positions = [lowered.find(term) for term in query.lower().split()]
    found = [pos for pos in positions if pos != -1]
    earliest = min(found) if found else 0

    start = max(earliest - max_length // 4, 0)
    end = start + max_length
    if end > len(content):
        end = len(content)
        start = max(end - max_length, 0)

    snippet = content[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet += "..."
    return snippet.strip()


def parse_weights(weight_str: str) -> Optional[Dict[str, float]]:
    """Parse "field:weight,field:weight"; an empty string gives None.

    Raises ValueError on a malformed pair or weight.
    """
    if not weight_str:
        return None
    weights: Dict[str, float] = {}
    for pair in weight_str.split(","):
        parts = pair.strip().split(":")
        if len(parts) != 2:
            raise ValueError(f"invalid weight pair: {pair}")
        name, value = (part.strip() for part in parts)
        if not _FLOAT_PATTERN.fullmatch(value):
            raise ValueError(f"invalid weight value for {name}: {value!r}")
        weights[name] = float(value)
    return weights


def _parse_created(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def search(database: Database, options: SearchOptions) -> List[SearchResult]:
    """Run an FTS5 query and return results ranked by BM25 score."""
    sql, args = build_search_query(options)
    try:
        rows = database.connection.execute(sql, args).fetchall()
    except sqlite3.Error as exc:
        raise FTS5Error(f"search query failed: {exc}") from exc

    results = []
    for row in rows:
        try:
            doc_id, title, content, category, length, created, score = row
            result = SearchResult(
                id=int(doc_id),
                title=title,
                content=content,
                category=category,
                length=int(length),
                created=_parse_created(created),
                score=float(score),
            )
        except (TypeError, ValueError) as exc:
            raise DatabaseError(f"failed to scan search result: {exc}") from exc
        if options.include_snippet:
            result.snippet = generate_snippet(
                result.content, options.query, options.snippet_length
            )
        result.relevance = classify_relevance(result.score)
        results.append(result)
    return results


def search_stats(
    results: Sequence[SearchResult],
    query: str,
    execution_time: timedelta = timedelta(),
) -> SearchStats:
    """Summarise the scores and categories of a result list."""
    stats = SearchStats(query=query, total_results=len(results), execution_time=execution_time)
    if not results:
        return stats

    for result in results:
        stats.category_breakdown[result.category] = (
            stats.category_breakdown.get(result.category, 0) + 1
        )
    scores = sorted(result.score for result in results)
    distrib = calculate_score_distribution(scores)
    stats.score_distribution = distrib
    stats.score_range.best = scores[0]
    stats.score_range.worst = scores[-1]
    stats.score_range.mean = distrib.mean
    stats.score_range.median = distrib.median
    stats.score_range.std_dev = distrib.std_dev
    return stats
"""Score distribution, category and range visualisations of search results."""

from __future__ import annotations

import dataclasses
import math
import sys
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, TextIO, Union

from .asciichart import plot
from .database import Database
from .errors import AnalysisError
from .explain import _weights_text
from .models import ScoreBucket, SearchOptions, SearchResult
from .search import PERCENTILES, _percentile, search

_KEY_PERCENTILES = (25, 50, 75, 90, 95)
_VERBOSE_SCORE_LIMIT = 20


@dataclass
class CategoryData:
    """Scores of the results that fall in one category."""

    name: str
    scores: List[float] = field(default_factory=list)
    count: int = 0
    avg_score: float = 0.0
    min_score: float = math.inf
    max_score: float = -math.inf


@dataclass
class RangeAnalysis:
    """Range, centre, spread, percentiles and quartiles of a score set."""

    scores: List[float] = field(default_factory=list)
    min: float = 0.0
    max: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    percentiles: Dict[int, float] = field(default_factory=dict)
    quartiles: List[float] = field(default_factory=list)


def _population_std_dev(scores: Sequence[float]) -> float:
    mean = sum(scores) / len(scores)
    return math.sqrt(sum((s - mean) ** 2 for s in scores) / len(scores))


def generate_score_distribution(
    results: Sequence[SearchResult], num_buckets: int = 10
) -> List[ScoreBucket]:
    """Split result scores into equal-width histogram buckets."""
    if not results:
        return []
    scores = sorted(r.score for r in results)
    low, high = scores[0], scores[-1]
    if low == high:
        return [ScoreBucket(min=low, max=high, count=len(scores), label=f"{low:.3f}")]
    if num_buckets < 1:
        raise ValueError("number of buckets must be at least 1")

    width = (high - low) / num_buckets
    buckets = []
    for i in range(num_buckets):
        lower = low + i * width
        upper = low + (i + 1) * width
        buckets.append(ScoreBucket(min=lower, max=upper, label=f"{lower:.3f} to {upper:.3f}"))
    for score in scores:
        buckets[min(int((score - low) / width), num_buckets - 1)].count += 1
    return buckets


def _split_categories(filter_categories: Union[str, Sequence[str], None]) -> List[str]:
    if not filter_categories:
        return []
    items = (
        filter_categories.split(",") if isinstance(filter_categories, str) else filter_categories
    )
    return [item.strip() for item in items]


def generate_category_comparison(
    results: Sequence[SearchResult],
    filter_categories: Union[str, Sequence[str], None] = None,
) -> Dict[str, CategoryData]:
    """Group result scores by category, optionally keeping only some categories."""
    wanted = set(_split_categories(filter_categories))
    categories: Dict[str, CategoryData] = {}
    for result in results:
        if wanted and result.category not in wanted:
            continue
        data = categories.setdefault(result.category, CategoryData(name=result.category))
        data.scores.append(result.score)
        data.count += 1
        data.min_score = min(data.min_score, result.score)
        data.max_score = max(data.max_score, result.score)
    for data in categories.values():
        data.avg_score = sum(data.scores) / data.count
    return categories


def generate_range_analysis(results: Sequence[SearchResult]) -> RangeAnalysis:
    """Compute range, mean, median, deviation, percentiles and quartiles."""
    if not results:
        raise AnalysisError("no search results to analyze")
    scores = sorted(r.score for r in results)
    n = len(scores)
    mean = sum(scores) / n
    middle = n // 2
    median = (scores[middle - 1] + scores[middle]) / 2 if n % 2 == 0 else scores[middle]
    percentiles = {p: _percentile(scores, p) for p in PERCENTILES}
    return RangeAnalysis(
        scores=scores,
        min=scores[0],
        max=scores[-1],
        mean=mean,
        median=median,
        std_dev=_population_std_dev(scores),
        percentiles=percentiles,
        quartiles=[percentiles[25], percentiles[50], percentiles[75]],
    )


def _weights_lines(options: SearchOptions) -> List[str]:
    if options.column_weights:
        return [f"Column weights: {_weights_text(options.column_weights)}", ""]
    return []


def format_distribution_histogram(
    buckets: Sequence[ScoreBucket], options: SearchOptions
) -> str:
    """Render a histogram chart and a table of the buckets."""
    lines = [
        f'Score Distribution Histogram for: "{options.query}"',
        "==========================================",
        "",
    ]
    lines += _weights_lines(options)
    if not buckets:
        lines.append("No data to display.")
        return "\n".join(lines) + "\n"

    total = sum(b.count for b in buckets)
    lines.append(
        plot([b.count for b in buckets], height=15, width=70,
             caption="Document Count per Score Range")
    )
    lines += [
        "",
        "Detailed Distribution:",
        f"{'Score Range':<20s} │ {'Count':>8s} │ {'Percentage':>10s}",
        "-" * 42,
    ]
    for bucket in buckets:
        if bucket.count > 0:
            share = bucket.count * 100.0 / total
            lines.append(f"{bucket.label:<20s} │ {bucket.count:8d} │ {share:9.1f}%")
    lines += [
        "",
        f"Total documents: {total}",
        "Note: Lower scores indicate better relevance (SQLite FTS5 uses negative BM25)",
    ]
    return "\n".join(lines) + "\n"


def format_category_comparison(
    categories: Dict[str, CategoryData], options: SearchOptions
) -> str:
    """Render average-score and count charts and a table per category."""
    lines = [
        f'Category Score Comparison for: "{options.query}"',
        "==========================================",
        "",
    ]
    lines += _weights_lines(options)
    if not categories:
        lines.append("No categories to display.")
        return "\n".join(lines) + "\n"

    ordered = sorted(categories.values(), key=lambda data: data.avg_score, reverse=True)
    lines.append("Average Score by Category:")
    lines.append(
        plot([data.avg_score for data in ordered], height=12, width=60,
             caption="Average BM25 Scores (higher is better)")
    )
    lines += [
        "",
        "Category Details:",
        f"{'Category':<15s} │ {'Avg Score':>8s} │ {'Count':>5s} │ "
        f"{'Score Range':>12s} │ {'Std Dev':>8s}",
        "-" * 70,
    ]
    for data in ordered:
        std_dev = _population_std_dev(data.scores) if len(data.scores) > 1 else 0.0
        lines.append(
            f"{data.name:<15s} │ {data.avg_score:8.3f} │ {data.count:5d} │ "
            f"{data.min_score:5.3f}-{data.max_score:5.3f} │ {std_dev:8.3f}"
        )
    if len(ordered) > 1:
        lines += ["", "Document Count by Category:"]
        lines.append(
            plot([data.count for data in ordered], height=8, width=60,
                 caption="Number of Documents per Category")
        )
        lines.append("")
    lines.append("Note: Higher positioned categories have better average relevance")
    return "\n".join(lines) + "\n"


def format_range_visualization(
    analysis: RangeAnalysis, options: SearchOptions, verbose: bool = False
) -> str:
    """Render the statistical summary, percentiles, range chart and quartiles."""
    lines = [
        f'Score Range Analysis for: "{options.query}"',
        "=====================================",
        "",
    ]
    lines += _weights_lines(options)
    span = analysis.max - analysis.min
    lines += [
        "Statistical Summary:",
        f"  Range:     {analysis.min:.4f} to {analysis.max:.4f} (span: {span:.4f})",
        f"  Mean:      {analysis.mean:.4f}",
        f"  Median:    {analysis.median:.4f}",
        f"  Std Dev:   {analysis.std_dev:.4f}",
        "",
        "Percentiles:",
    ]
    lines += [
        f"  {p:2d}th:     {analysis.percentiles[p]:.4f}"
        for p in PERCENTILES
        if p in analysis.percentiles
    ]
    lines += ["", "Score Range Visualization:"]

    if span > 0:
        points = [analysis.percentiles[p] for p in _KEY_PERCENTILES if p in analysis.percentiles]
        points.append(analysis.mean)
        if len(points) > 1:
            lines.append(
                plot(points, height=8, width=60,
                     caption="Score Distribution (Percentiles and Mean)")
            )
            lines.append("")
        lines += [
            "Range Breakdown:",
            f"  Min (worst):  {analysis.min:.4f}",
            f"  Q1 (25th):    {analysis.percentiles.get(25, 0.0):.4f}",
            f"  Median:       {analysis.median:.4f}",
            f"  Q3 (75th):    {analysis.percentiles.get(75, 0.0):.4f}",
            f"  Max (best):   {analysis.max:.4f}",
            f"  Mean:         {analysis.mean:.4f}",
            f"  Range span:   {span:.4f}",
            "",
        ]
    else:
        lines += [f"  All scores are identical: {analysis.min:.4f}", ""]

    if len(analysis.quartiles) >= 3:
        q1, q2, q3 = analysis.quartiles[:3]
        iqr = q3 - q1
        lines += [
            "Quartile Analysis:",
            f"  Q1 (25th): {q1:.4f}",
            f"  Q2 (50th): {q2:.4f} (Median)",
            f"  Q3 (75th): {q3:.4f}",
            f"  IQR:       {iqr:.4f}",
            f"  Outliers:  < {q1 - 1.5 * iqr:.4f} or > {q3 + 1.5 * iqr:.4f}",
        ]

    if verbose:
        lines += ["", f"Detailed Score List (first {_VERBOSE_SCORE_LIMIT}):"]
        for number, score in enumerate(analysis.scores[:_VERBOSE_SCORE_LIMIT], start=1):
            lines.append(f"  {number:2d}: {score:.4f}")
        extra = len(analysis.scores) - _VERBOSE_SCORE_LIMIT
        if extra > 0:
            lines.append(f"  ... and {extra} more scores")
    return "\n".join(lines) + "\n"


def _output(out: Optional[TextIO]) -> TextIO:
    return out if out is not None else sys.stdout


def _search_without_snippets(
    database: Database, options: SearchOptions, out: TextIO
) -> List[SearchResult]:
    results = search(database, options)
    if not results:
        out.write(f'No results found for query: "{options.query}"\n')
    return results


def run_distribution(
    database: Database,
    options: SearchOptions,
    buckets: int = 10,
    out: Optional[TextIO] = None,
) -> List[ScoreBucket]:
    """Search, print a histogram of the scores and return its buckets."""
    out = _output(out)
    options = dataclasses.replace(options, include_snippet=False)
    results = _search_without_snippets(database, options, out)
    if not results:
        return []
    distribution = generate_score_distribution(results, buckets)
    out.write(format_distribution_histogram(distribution, options))
    return distribution


def run_categories(
    database: Database,
    options: SearchOptions,
    filter_categories: Union[str, Sequence[str], None] = None,
    out: Optional[TextIO] = None,
) -> Dict[str, CategoryData]:
    """Search across all categories, print a per-category comparison and return it."""
    out = _output(out)
    options = dataclasses.replace(options, include_snippet=False, category_filter="")
    results = _search_without_snippets(database, options, out)
    if not results:
        return {}
    comparison = generate_category_comparison(results, filter_categories)
    out.write(format_category_comparison(comparison, options))
    return comparison


def run_range(
    database: Database,
    options: SearchOptions,
    verbose: bool = False,
    out: Optional[TextIO] = None,
) -> Optional[RangeAnalysis]:
    """Search, print a range analysis of the scores and return it."""
    out = _output(out)
    options = dataclasses.replace(options, include_snippet=False)
    results = _search_without_snippets(database, options, out)
    if not results:
        return None
    analysis = generate_range_analysis(results)
    out.write(format_range_visualization(analysis, options, verbose))
    return analysis
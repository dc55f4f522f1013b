"""Rendering of search results and statistics, and the search commands."""

from __future__ import annotations

import dataclasses
import json
import sys
import time
from datetime import timedelta
from typing import List, Optional, TextIO

from .database import Database
from .errors import ValidationError
from .explain import (
    _weights_text,
    format_comparison,
    format_score_explanations,
    generate_comparison,
    generate_score_explanations,
)
from .models import (
    ScoreExplanation,
    SearchComparison,
    SearchOptions,
    SearchResult,
    SearchStats,
    to_jsonable,
)
from .search import PERCENTILES, parse_weights, search, search_stats

_STATS_MAX_RESULTS = 1000


def _decimal(value: int, digits: int) -> str:
    whole, frac = divmod(value, 10 ** digits)
    text = str(whole)
    if frac:
        text += "." + str(frac).rjust(digits, "0").rstrip("0")
    return text


def _duration_text(duration: timedelta) -> str:
    """Render a duration as e.g. "1.5ms", "2.25s" or "1m30s"."""
    ns = (duration // timedelta(microseconds=1)) * 1000
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_decimal(ns, 3)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_decimal(ns, 6)}ms"
    hours, rest = divmod(ns, 3600 * 10 ** 9)
    minutes, rest = divmod(rest, 60 * 10 ** 9)
    seconds = _decimal(rest, 9) + "s"
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds}"
    if minutes:
        return f"{sign}{minutes}m{seconds}"
    return sign + seconds


def format_search_results(
    results: List[SearchResult],
    options: SearchOptions,
    execution_time: timedelta = timedelta(),
    fmt: str = "text",
    verbose: bool = False,
) -> str:
    """Render search results as json, csv or text."""
    if fmt == "json":
        payload = {
            "execution_time": _duration_text(execution_time),
            "query": options.query,
            "results": to_jsonable(list(results)),
            "total_results": len(results),
        }
        return json.dumps(payload, indent=2) + "\n"
    if fmt == "csv":
        lines = ["id,title,category,score,relevance"]
        lines += [
            f'{r.id},"{r.title}","{r.category}",{r.score:.4f},{r.relevance}' for r in results
        ]
        return "\n".join(lines) + "\n"

    lines = [
        f'Search Results for: "{options.query}"',
        f"Found {len(results)} documents in {_duration_text(execution_time)}",
    ]
    if options.column_weights:
        lines.append(f"Column weights: {_weights_text(options.column_weights)}")
    lines.append("")
    if not results:
        lines.append("No documents found.")
        return "\n".join(lines) + "\n"
    for number, result in enumerate(results, start=1):
        lines.append(f"{number}. {result.title}")
        lines.append(f"   Score: {result.score:.4f} ({result.relevance} relevance)")
        lines.append(f"   Category: {result.category} | Length: {result.length} tokens")
        if result.snippet:
            lines.append(f"   Snippet: {result.snippet}")
        if verbose:
            created = result.created.strftime("%Y-%m-%d %H:%M") if result.created else ""
            lines.append(f"   ID: {result.id} | Created: {created}")
        lines.append("")
    return "\n".join(lines) + "\n"


def format_search_stats(stats: SearchStats, fmt: str = "text") -> str:
    """Render search statistics as json, csv or text."""
    if fmt == "json":
        return json.dumps(to_jsonable(stats), indent=2) + "\n"
    score_range = stats.score_range
    if fmt == "csv":
        return "".join(
            [
                "metric,value\n",
                f'query,"{stats.query}"\n',
                f"total_results,{stats.total_results}\n",
                f"execution_time,{_duration_text(stats.execution_time)}\n",
                f"score_best,{score_range.best:.4f}\n",
                f"score_worst,{score_range.worst:.4f}\n",
                f"score_mean,{score_range.mean:.4f}\n",
                f"score_median,{score_range.median:.4f}\n",
                f"score_stddev,{score_range.std_dev:.4f}\n",
            ]
        )

    lines = [
        f'Search Statistics for: "{stats.query}"',
        "========================================",
        "",
        f"Results: {stats.total_results} documents in {_duration_text(stats.execution_time)}",
        "",
    ]
    if stats.total_results == 0:
        return "\n".join(lines) + "\n"
    lines += [
        "Score Distribution:",
        f"  Range:     {score_range.best:.4f} to {score_range.worst:.4f}",
        f"  Mean:      {score_range.mean:.4f}",
        f"  Median:    {score_range.median:.4f}",
        f"  Std Dev:   {score_range.std_dev:.4f}",
        "",
        "Percentiles:",
    ]
    percentiles = stats.score_distribution.percentiles
    lines += [f"  {p:2d}th:     {percentiles[p]:.4f}" for p in PERCENTILES if p in percentiles]
    lines.append("")
    if stats.category_breakdown:
        lines.append("Category Breakdown:")
        for category, count in stats.category_breakdown.items():
            share = count * 100.0 / stats.total_results
            lines.append(f"  {category:<15s}: {count:3d} documents ({share:.1f}%)")
        lines.append("")
    buckets = stats.score_distribution.buckets
    if buckets:
        lines.append("Score Distribution Buckets:")
        lines += [f"  {b.label}: {b.count} documents" for b in buckets if b.count > 0]
    return "\n".join(lines) + "\n"


def _output(out: Optional[TextIO]) -> TextIO:
    return out if out is not None else sys.stdout


def run_query(
    database: Database,
    options: SearchOptions,
    fmt: str = "text",
    verbose: bool = False,
    out: Optional[TextIO] = None,
) -> List[SearchResult]:
    """Search, print the results and return them."""
    started = time.perf_counter()
    results = search(database, options)
    elapsed = timedelta(seconds=time.perf_counter() - started)
    _output(out).write(format_search_results(results, options, elapsed, fmt, verbose))
    return results


def run_search_stats(
    database: Database,
    options: SearchOptions,
    fmt: str = "text",
    out: Optional[TextIO] = None,
) -> SearchStats:
    """Search up to 1000 results, print their statistics and return them."""
    options = dataclasses.replace(
        options, max_results=_STATS_MAX_RESULTS, include_snippet=False
    )
    started = time.perf_counter()
    results = search(database, options)
    elapsed = timedelta(seconds=time.perf_counter() - started)
    stats = search_stats(results, options.query, elapsed)
    _output(out).write(format_search_stats(stats, fmt))
    return stats


def run_explain(
    database: Database, options: SearchOptions, out: Optional[TextIO] = None
) -> List[ScoreExplanation]:
    """Search, print an explanation of every score and return the explanations."""
    options = dataclasses.replace(options, include_snippet=False, explain_scores=True)
    results = search(database, options)
    if not results:
        _output(out).write(f'No results found for query: "{options.query}"\n')
        return []
    explanations = generate_score_explanations(database, results, options)
    _output(out).write(format_score_explanations(explanations, options))
    return explanations


def run_compare(
    database: Database,
    query: str,
    compare_weights: str = "",
    max_results: int = 20,
    out: Optional[TextIO] = None,
) -> SearchComparison:
    """Compare default ranking with ranking under "field:weight,..." weights."""
    baseline_options = SearchOptions(query=query, max_results=max_results,
                                      include_snippet=False)
    baseline = search(database, baseline_options)
    comparison = baseline
    weights = None
    if compare_weights:
        try:
            weights = parse_weights(compare_weights)
        except ValueError as exc:
            raise ValidationError(f"invalid weight format: {exc}") from exc
        weighted_options = dataclasses.replace(baseline_options, column_weights=weights)
        comparison = search(database, weighted_options)
    comp = generate_comparison(query, baseline, comparison, weights)
    _output(out).write(format_comparison(comp))
    return comp
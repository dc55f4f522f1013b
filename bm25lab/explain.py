"""Per-document BM25 score explanations and comparison of weighting strategies."""

from __future__ import annotations

import dataclasses
import math
import sqlite3
from typing import Dict, List, Mapping, Optional, Sequence

from .database import Database
from .errors import DatabaseError
from .models import (
    BM25_B,
    BM25_K1,
    DocumentStats,
    FieldScore,
    ScoreExplanation,
    SearchComparison,
    SearchOptions,
    SearchResult,
    SearchStrategy,
    StrategyConfig,
    TermScore,
)

_FIELDS = ("title", "content", "category")
_TITLE_WIDTH = 25


def _float_text(value: float) -> str:
    text = repr(float(value))
    return text[:-2] if text.endswith(".0") else text


def _weights_text(weights: Optional[Mapping[str, float]]) -> str:
    """Render a weight mapping as "map[key:value ...]" with sorted keys."""
    items = sorted((weights or {}).items())
    return "map[" + " ".join(f"{key}:{_float_text(value)}" for key, value in items) + "]"


def calculate_length_normalization(doc_length: int, avg_length: float) -> float:
    """BM25 length normalisation: k1 * ((1 - b) + b * |d| / avgdl)."""
    if avg_length == 0:
        ratio = math.inf if doc_length > 0 else math.nan
    else:
        ratio = doc_length / avg_length
    return BM25_K1 * ((1 - BM25_B) + BM25_B * ratio)


def average_document_length(database: Database) -> float:
    """Average token length of the documents in the corpus."""
    try:
        row = database.connection.execute("SELECT AVG(length) FROM documents").fetchone()
    except sqlite3.Error as exc:
        raise DatabaseError(f"failed to get average document length: {exc}") from exc
    if row is None or row[0] is None:
        raise DatabaseError("failed to get average document length: corpus is empty")
    return float(row[0])


def calculate_term_score(term: str, result: SearchResult, avg_doc_length: float) -> TermScore:
    """Approximate BM25 contribution of one term to one document."""
    text = f"{result.title} {result.content} {result.category}".lower()
    tf = float(text.count(term))
    # Frequent terms get a lower, mock IDF; corpus-wide counts are not used.
    idf = max(3.0 - tf * 0.1, 0.1)
    norm = calculate_length_normalization(result.length, avg_doc_length)
    return TermScore(term=term, tf=tf, idf=idf, field_tf=tf, score=(idf * tf) / norm)


def calculate_field_score(
    field_name: str,
    field_content: str,
    query_terms: Sequence[str],
    weights: Optional[Mapping[str, float]] = None,
) -> FieldScore:
    """Weighted term-frequency contribution of one field."""
    weight = (weights or {}).get(field_name, 1.0)
    text = field_content.lower()
    terms: List[TermScore] = []
    for term in query_terms:
        tf = float(text.count(term))
        terms.append(TermScore(term=term, tf=tf, field_tf=tf, score=tf * weight * 0.1))
    return FieldScore(score=sum(t.score for t in terms), weight=weight, terms=terms)


def generate_score_explanations(
    database: Database, results: Sequence[SearchResult], options: SearchOptions
) -> List[ScoreExplanation]:
    """Explain the score of each result in terms of its fields and query terms."""
    avg_length = average_document_length(database)
    query_terms = options.query.lower().split()
    explanations = []
    for result in results:
        field_text = {"title": result.title, "content": result.content,
                      "category": result.category}
        explanations.append(
            ScoreExplanation(
                document_id=result.id,
                total_score=result.score,
                field_scores={
                    name: calculate_field_score(
                        name, field_text[name], query_terms, options.column_weights
                    )
                    for name in _FIELDS
                },
                query_terms=[
                    calculate_term_score(term, result, avg_length) for term in query_terms
                ],
                document_stats=DocumentStats(
                    length=result.length,
                    avg_length=avg_length,
                    length_norm=calculate_length_normalization(result.length, avg_length),
                    field_lengths={name: len(field_text[name].split()) for name in _FIELDS},
                ),
            )
        )
    return explanations


def format_score_explanations(
    explanations: Sequence[ScoreExplanation], options: SearchOptions
) -> str:
    """Render score explanations as text."""
    lines = [f'Score Explanations for: "{options.query}"',
             "=====================================", ""]
    if options.column_weights:
        lines.append(f"Custom column weights: {_weights_text(options.column_weights)}")
    else:
        lines.append("Using default FTS5 column weights (all fields weighted equally)")
    lines += [f"BM25 parameters: k1={BM25_K1}, b={BM25_B} (SQLite FTS5 defaults)", ""]

    for number, explanation in enumerate(explanations, start=1):
        doc_stats = explanation.document_stats
        lines += [
            f"Document {number} (ID: {explanation.document_id})",
            f"Total Score: {explanation.total_score:.4f}",
            f"Document Length: {doc_stats.length} tokens (avg: {doc_stats.avg_length:.1f})",
            f"Length Normalization Factor: {doc_stats.length_norm:.3f}",
            "",
            "Field Contributions:",
        ]
        for name, field_score in explanation.field_scores.items():
            lines.append(
                f"  {name}: score={field_score.score:.4f}, weight={field_score.weight:.2f}, "
                f"length={doc_stats.field_lengths.get(name, 0)} tokens"
            )
        lines += ["", "Query Term Analysis:"]
        for term in explanation.query_terms:
            lines.append(
                f'  "{term.term}": tf={term.tf:.3f}, idf={term.idf:.3f}, score={term.score:.4f}'
            )
        lines += ["", "-" * 50, ""]
    return "\n".join(lines) + "\n"


def _analyze_overlap(comp: SearchComparison) -> None:
    if len(comp.strategies) < 2:
        return
    baseline = {r.id: r for r in comp.strategies["baseline"].results}
    weighted = {r.id: r for r in comp.strategies["weighted"].results}
    comp.common_docs = [result for doc_id, result in baseline.items() if doc_id in weighted]
    comp.unique_docs["baseline"] = [
        result for doc_id, result in baseline.items() if doc_id not in weighted
    ]
    comp.unique_docs["weighted"] = [
        result for doc_id, result in weighted.items() if doc_id not in baseline
    ]


def generate_comparison(
    query: str,
    baseline: Sequence[SearchResult],
    comparison: Sequence[SearchResult],
    weights: Optional[Dict[str, float]] = None,
) -> SearchComparison:
    """Compare default BM25 results with results under custom weights."""
    comp = SearchComparison(query=query)
    comp.strategies["baseline"] = SearchStrategy(
        name="Default FTS5",
        description="Standard FTS5 BM25 scoring with equal field weights",
        config=StrategyConfig(column_weights=None, max_results=len(baseline)),
        results=[dataclasses.replace(r) for r in baseline],
    )
    if weights is not None:
        comp.strategies["weighted"] = SearchStrategy(
            name="Custom Weighted",
            description=f"BM25 scoring with custom field weights: {_weights_text(weights)}",
            config=StrategyConfig(column_weights=weights, max_results=len(comparison)),
            results=[dataclasses.replace(r) for r in comparison],
        )
    _analyze_overlap(comp)
    return comp


def _short_title(title: str) -> str:
    return title[:_TITLE_WIDTH] + "..." if len(title) > _TITLE_WIDTH else title


def _change(base: Optional[SearchResult], weighted: Optional[SearchResult]) -> str:
    if base is not None and weighted is not None:
        if base.id != weighted.id:
            return "reordered"
        diff = weighted.score - base.score
        if diff > 0.001:
            return f"+{diff:.3f}"
        if diff < -0.001:
            return f"{diff:.3f}"
        return "same"
    return "dropped" if base is not None else "new"


def format_comparison(comp: SearchComparison) -> str:
    """Render a strategy comparison with its ranking table and summary."""
    lines = [f'Search Strategy Comparison for: "{comp.query}"',
             "===============================================", ""]
    for key, strategy in comp.strategies.items():
        lines.append(f"Strategy: {strategy.name} ({key})")
        lines.append(f"Description: {strategy.description}")
        if strategy.config.column_weights:
            lines.append(f"Weights: {_weights_text(strategy.config.column_weights)}")
        lines += [f"Results: {len(strategy.results)} documents", ""]

    baseline = comp.strategies.get("baseline")
    weighted = comp.strategies.get("weighted")
    if baseline is not None and weighted is not None:
        lines.append("Ranking Comparison:")
        lines.append(f"{'Rank':<4s} {'Document':<30s} {'Baseline':<12s} "
                     f"{'Weighted':<12s} {'Change':<10s}")
        lines.append("-" * 70)
        rows = max(len(baseline.results), len(weighted.results))
        for rank in range(rows):
            base = baseline.results[rank] if rank < len(baseline.results) else None
            other = weighted.results[rank] if rank < len(weighted.results) else None
            title = "N/A"
            if base is not None:
                title = _short_title(base.title)
            elif other is not None:
                title = _short_title(other.title)
            base_score = base.score if base is not None else 0.0
            other_score = other.score if other is not None else 0.0
            lines.append(
                f"{rank + 1:<4d} {title:<30s} {base_score:<12.4f} {other_score:<12.4f} "
                f"{_change(base, other):<10s}"
            )
        lines.append("")

    lines.append("Summary:")
    lines.append(f"Common documents: {len(comp.common_docs)}")
    for key, docs in comp.unique_docs.items():
        if docs:
            lines.append(f"Unique to {key}: {len(docs)} documents")
    return "\n".join(lines) + "\n"
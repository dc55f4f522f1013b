"""Data records shared by the corpus, search and visualisation layers."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional

APP_NAME = "bm25-fundamentals"

# BM25 parameters used by SQLite FTS5; listed for reference in explanations.
BM25_K1 = 1.2
BM25_B = 0.75

_OMIT_EMPTY = {"omitempty": True}


def _omit_empty(**kwargs: Any) -> Any:
    """A dataclass field left out of JSON output when it holds a falsy value."""
    return field(metadata=_OMIT_EMPTY, **kwargs)


def _default_categories() -> List[str]:
    return ["technology", "science", "programming", "database", "algorithms"]


@dataclass
class Document:
    """A document in the corpus."""

    id: int = 0
    title: str = ""
    content: str = ""
    category: str = ""
    length: int = 0
    created: Optional[datetime] = None


@dataclass
class DocumentInfo:
    """Metadata about a document used in analysis."""

    id: int = 0
    title: str = ""
    category: str = ""
    token_count: int = 0
    unique_terms: int = 0
    avg_term_length: float = 0.0
    created: Optional[datetime] = None


@dataclass
class SearchResult(Document):
    """A document together with its BM25 score."""

    score: float = 0.0
    snippet: str = _omit_empty(default="")
    relevance: str = _omit_empty(default="")


@dataclass
class ScoreRange:
    """Summary statistics of a set of scores."""

    best: float = 0.0
    worst: float = 0.0
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0


@dataclass
class ScoreBucket:
    """One histogram bucket of a score distribution."""

    min: float = 0.0
    max: float = 0.0
    count: int = 0
    label: str = ""


@dataclass
class TermFreq:
    """Frequency information about one term."""

    term: str = ""
    frequency: int = 0
    documents: int = 0
    idf: float = 0.0


@dataclass
class CategoryStats:
    """Scoring statistics for one category."""

    document_count: int = 0
    average_score: float = 0.0
    score_range: ScoreRange = field(default_factory=ScoreRange)


@dataclass
class ScoreAnalysis:
    """Detailed analysis of the scores of one query."""

    query: str = ""
    total_results: int = 0
    score_range: ScoreRange = field(default_factory=ScoreRange)
    distribution: List[ScoreBucket] = field(default_factory=list)
    top_terms: List[TermFreq] = field(default_factory=list)
    category_breakdown: Dict[str, CategoryStats] = _omit_empty(default_factory=dict)


@dataclass
class StrategyConfig:
    """Configuration of one search strategy."""

    column_weights: Optional[Dict[str, float]] = _omit_empty(default=None)
    max_results: int = 0
    field_filter: str = _omit_empty(default="")


@dataclass
class SearchStrategy:
    """A search configuration with its results."""

    name: str = ""
    description: str = ""
    config: StrategyConfig = field(default_factory=StrategyConfig)
    results: List[SearchResult] = field(default_factory=list)
    analysis: ScoreAnalysis = field(default_factory=ScoreAnalysis)


@dataclass
class SearchComparison:
    """Results of several search strategies side by side."""

    query: str = ""
    strategies: Dict[str, SearchStrategy] = field(default_factory=dict)
    common_docs: List[SearchResult] = field(default_factory=list)
    unique_docs: Dict[str, List[SearchResult]] = field(default_factory=dict)


@dataclass
class TermScore:
    """Scoring details for one query term."""

    term: str = ""
    tf: float = 0.0
    idf: float = 0.0
    field_tf: float = 0.0
    score: float = 0.0


@dataclass
class FieldScore:
    """Scoring contribution of one field."""

    score: float = 0.0
    weight: float = 0.0
    terms: List[TermScore] = field(default_factory=list)


@dataclass
class DocumentStats:
    """Document-level figures that affect BM25."""

    length: int = 0
    avg_length: float = 0.0
    length_norm: float = 0.0
    field_lengths: Dict[str, int] = field(default_factory=dict)


@dataclass
class ScoreExplanation:
    """Breakdown of the BM25 score of one document."""

    document_id: int = 0
    total_score: float = 0.0
    field_scores: Dict[str, FieldScore] = field(default_factory=dict)
    query_terms: List[TermScore] = field(default_factory=list)
    document_stats: DocumentStats = field(default_factory=DocumentStats)


@dataclass
class ScoreDistribution:
    """Mean, median, deviation, percentiles and histogram of scores."""

    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    percentiles: Dict[int, float] = field(default_factory=dict)
    buckets: List[ScoreBucket] = field(default_factory=list)


@dataclass
class TimeRange:
    """A span of time; None stands for an unset end."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None


@dataclass
class CorpusStats:
    """Statistics about the document corpus."""

    total_documents: int = 0
    total_tokens: int = 0
    average_doc_length: float = 0.0
    median_doc_length: float = 0.0
    min_doc_length: int = 0
    max_doc_length: int = 0
    unique_terms: int = 0
    categories: List[str] = field(default_factory=list)
    category_counts: Dict[str, int] = field(default_factory=dict)
    created_range: TimeRange = field(default_factory=TimeRange)
    last_updated: Optional[datetime] = None


@dataclass
class CorpusOptions:
    """Options for synthetic corpus generation; seed 0 means time-based."""

    size: int = 100
    categories: List[str] = field(default_factory=_default_categories)
    min_tokens: int = 50
    max_tokens: int = 500
    title_min_tokens: int = 2
    title_max_tokens: int = 8
    seed: int = _omit_empty(default=0)


@dataclass
class SearchOptions:
    """Parameters of a search query."""

    query: str = ""
    max_results: int = 20
    column_weights: Optional[Dict[str, float]] = _omit_empty(default=None)
    category_filter: str = _omit_empty(default="")
    include_snippet: bool = True
    snippet_length: int = 200
    explain_scores: bool = False


@dataclass
class SearchStats:
    """Statistics about the results of one search."""

    query: str = ""
    total_results: int = 0
    execution_time: timedelta = field(default_factory=timedelta)
    score_range: ScoreRange = field(default_factory=ScoreRange)
    score_distribution: ScoreDistribution = field(default_factory=ScoreDistribution)
    category_breakdown: Dict[str, int] = field(default_factory=dict)


def to_jsonable(obj: Any) -> Any:
    """Convert records and their contents into JSON-serialisable values.

    Durations become integer nanoseconds, datetimes ISO 8601 strings and
    mapping keys strings; fields marked as omit-empty are dropped when falsy.
    """
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        out: Dict[str, Any] = {}
        for f in dataclasses.fields(obj):
            value = getattr(obj, f.name)
            if f.metadata.get("omitempty") and not value:
                continue
            out[f.name] = to_jsonable(value)
        return out
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return (obj // timedelta(microseconds=1)) * 1000
    if isinstance(obj, Enum):
        return to_jsonable(obj.value)
    if isinstance(obj, dict):
        return {str(key): to_jsonable(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(item) for item in obj]
    return obj
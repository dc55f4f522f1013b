"""Synthetic corpus generation, storage and corpus-level statistics."""

from __future__ import annotations

import json
import random
import sqlite3
import sys
import time
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence, TextIO, Union

from .database import Database
from .errors import DatabaseError, FTS5Error, ValidationError
from .models import CorpusOptions, CorpusStats, Document, to_jsonable

_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_TITLE_TEMPLATES = {
    "technology": (
        "Advanced {} Development Techniques",
        "Understanding {} Architecture",
        "Modern {} Best Practices",
        "Introduction to {} Programming",
        "{} Performance Optimization",
    ),
    "science": (
        "Research in {} Methods",
        "Scientific Analysis of {}",
        "Experimental {} Studies",
        "Theoretical {} Frameworks",
        "Applications of {} Theory",
    ),
    "programming": (
        "Mastering {} Algorithms",
        "Efficient {} Implementation",
        "Advanced {} Patterns",
        "Learning {} Programming",
        "{} Code Optimization",
    ),
    "database": (
        "Optimizing {} Queries",
        "Advanced {} Indexing",
        "{} Transaction Management",
        "Scaling {} Systems",
        "{} Performance Tuning",
    ),
    "algorithms": (
        "Efficient {} Algorithms",
        "Complex {} Analysis",
        "Optimized {} Solutions",
        "Advanced {} Techniques",
        "Comparative {} Study",
    ),
}

_TITLE_TERMS = {
    "technology": ("Cloud", "Mobile", "Web", "AI", "Blockchain", "IoT"),
    "science": ("Data", "Machine Learning", "Statistics", "Analytics", "Research"),
    "programming": ("Object-Oriented", "Functional", "Concurrent", "Distributed", "Reactive"),
    "database": ("SQL", "NoSQL", "Relational", "Graph", "Time-Series"),
    "algorithms": ("Sorting", "Search", "Graph", "Dynamic Programming", "Greedy"),
}

_VOCABULARY = {
    "technology": (
        "system", "development", "architecture", "framework", "platform", "solution",
        "design", "implementation", "scalable", "efficient", "robust", "secure",
        "modern", "advanced", "innovative",
    ),
    "science": (
        "research", "analysis", "methodology", "hypothesis", "experiment", "data",
        "results", "conclusion", "theory", "evidence", "statistical", "empirical",
        "quantitative", "qualitative", "validation",
    ),
    "programming": (
        "function", "variable", "algorithm", "optimization", "performance", "debugging",
        "testing", "refactoring", "maintainable", "readable", "efficient", "scalable",
        "object", "method", "interface",
    ),
    "database": (
        "query", "index", "transaction", "optimization", "performance", "schema",
        "normalization", "relational", "primary", "foreign", "key", "table", "column",
        "constraint", "integrity",
    ),
    "algorithms": (
        "complexity", "efficiency", "optimization", "iteration", "recursion", "sorting",
        "searching", "traversal", "comparison", "analysis", "space", "time", "linear",
        "logarithmic", "polynomial",
    ),
}

_CONNECTORS = (
    "and", "the", "of", "in", "to", "for", "with", "by", "from", "on", "at", "as",
    "is", "are", "can", "will", "this", "that", "these", "those",
)

_FALLBACK = "technology"


def _token_length(doc: Document) -> int:
    return len(f"{doc.title} {doc.content}".split())


def _format_created(created: Optional[datetime]) -> Optional[str]:
    return created.strftime(_TIME_FORMAT) if created is not None else None


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.strptime(value, _TIME_FORMAT)
    except ValueError:
        return None


class CorpusGenerator:
    """Produces synthetic documents for BM25 experiments."""

    def __init__(self, options: CorpusOptions, rng: Optional[random.Random] = None) -> None:
        self.options = options
        if rng is None:
            rng = random.Random(options.seed or time.time_ns())
        self.rng = rng

    def generate_document(self) -> Document:
        """Create one document in a random category, dated within the last 30 days."""
        category = self.rng.choice(self.options.categories)
        title = self.generate_title(category)
        content = self.generate_content(category)
        offset = timedelta(minutes=self.rng.randrange(30 * 24 * 60))
        return Document(
            title=title,
            content=content,
            category=category,
            created=datetime.now() - offset,
        )

    def generate_title(self, category: str) -> str:
        """Create a title from the category's templates and terms."""
        templates = _TITLE_TEMPLATES.get(category) or _TITLE_TEMPLATES[_FALLBACK]
        terms = _TITLE_TERMS.get(category) or _TITLE_TERMS[_FALLBACK]
        template = self.rng.choice(templates)
        term = self.rng.choice(terms)
        return template.format(term)

    def generate_content(self, category: str) -> str:
        """Create body text whose token count lies between the configured bounds."""
        low, high = self.options.min_tokens, self.options.max_tokens
        target = low + self.rng.randrange(high - low + 1)
        vocabulary = _VOCABULARY.get(category) or _VOCABULARY[_FALLBACK]
        words: List[str] = []
        while len(words) < target:
            if self.rng.random() < 0.3:
                words.append(self.rng.choice(vocabulary))
            else:
                words.append(self.rng.choice(_CONNECTORS))
        return " ".join(words)


class CorpusManager:
    """Stores documents and reports on the corpus held in a database."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def insert_document(self, doc: Document) -> Document:
        """Insert one document, filling in its length and id."""
        doc.length = _token_length(doc)
        try:
            cursor = self.database.connection.execute(
                "INSERT INTO documents (title, content, category, length, created) "
                "VALUES (?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))",
                (doc.title, doc.content, doc.category, doc.length, _format_created(doc.created)),
            )
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to insert document: {exc}") from exc
        doc.id = cursor.lastrowid
        return doc

    def batch_insert_documents(self, docs: Iterable[Document]) -> None:
        """Insert many documents in one transaction."""
        docs = list(docs)
        if not docs:
            return
        with self.database.transaction() as conn:
            for doc in docs:
                doc.length = _token_length(doc)
                try:
                    conn.execute(
                        "INSERT INTO documents (title, content, category, length, created) "
                        "VALUES (?, ?, ?, ?, COALESCE(?, CURRENT_TIMESTAMP))",
                        (doc.title, doc.content, doc.category, doc.length,
                         _format_created(doc.created)),
                    )
                except sqlite3.Error as exc:
                    raise DatabaseError(f"failed to insert document in batch: {exc}") from exc

    def document_count(self) -> int:
        """Number of documents in the corpus."""
        try:
            row = self.database.connection.execute("SELECT COUNT(*) FROM documents").fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to get document count: {exc}") from exc
        return row[0]

    def clear_documents(self) -> None:
        """Delete every document and optimise the full-text index."""
        with self.database.transaction() as conn:
            try:
                conn.execute("DELETE FROM documents")
            except sqlite3.Error as exc:
                raise DatabaseError(f"failed to clear documents: {exc}") from exc
            try:
                conn.execute("DELETE FROM sqlite_sequence WHERE name='documents'")
            except sqlite3.Error:
                pass  # no autoincrement sequence exists yet
            try:
                conn.execute("INSERT INTO documents_fts(documents_fts) VALUES('optimize')")
            except sqlite3.Error as exc:
                raise FTS5Error(f"failed to optimize FTS5 index: {exc}") from exc

    def corpus_stats(self) -> CorpusStats:
        """Compute counts, length figures, categories and time range of the corpus."""
        conn = self.database.connection
        stats = CorpusStats(last_updated=datetime.now())
        try:
            row = conn.execute(
                "SELECT COUNT(*), SUM(length), AVG(length), MIN(length), MAX(length), "
                "MIN(created), MAX(created) FROM documents"
            ).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to get basic corpus stats: {exc}") from exc
        total, tokens, average, shortest, longest, earliest, latest = row
        stats.total_documents = total
        stats.total_tokens = tokens or 0
        stats.average_doc_length = float(average or 0.0)
        stats.min_doc_length = shortest or 0
        stats.max_doc_length = longest or 0
        stats.created_range.start = _parse_time(earliest)
        stats.created_range.end = _parse_time(latest)

        try:
            median = conn.execute(
                "SELECT length FROM documents ORDER BY length LIMIT 1 "
                "OFFSET (SELECT (COUNT(*) - 1) / 2 FROM documents)"
            ).fetchone()
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to get median document length: {exc}") from exc
        if median is not None:
            stats.median_doc_length = float(median[0])

        try:
            rows = conn.execute(
                "SELECT category, COUNT(*) FROM documents GROUP BY category "
                "ORDER BY COUNT(*) DESC"
            ).fetchall()
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to get category breakdown: {exc}") from exc
        for category, count in rows:
            stats.categories.append(category)
            stats.category_counts[category] = count

        try:
            unique = conn.execute(
                "SELECT COUNT(DISTINCT term) FROM documents_fts_data WHERE col = '*'"
            ).fetchone()
            stats.unique_terms = unique[0] if unique else 0
        except sqlite3.Error:
            stats.unique_terms = 0
        return stats

    def generate_corpus(self, options: CorpusOptions) -> List[Document]:
        """Generate and store a synthetic corpus; returns the generated documents."""
        seed = options.seed or time.time_ns()
        generator = CorpusGenerator(options, random.Random(seed))
        docs = [generator.generate_document() for _ in range(options.size)]
        self.batch_insert_documents(docs)
        return docs


def resolve_corpus_options(
    size: int = 0,
    categories: Union[str, Sequence[str], None] = None,
    min_tokens: int = 0,
    max_tokens: int = 0,
    title_min_tokens: int = 0,
    title_max_tokens: int = 0,
    seed: int = 0,
) -> CorpusOptions:
    """Apply user overrides to the default options; zero or empty keeps a default."""
    options = CorpusOptions()
    if size > 0:
        options.size = size
    if options.size < 1:
        raise ValidationError("corpus size must be at least 1")
    if categories:
        items = categories.split(",") if isinstance(categories, str) else categories
        options.categories = [item.strip() for item in items]
    if min_tokens > 0:
        options.min_tokens = min_tokens
    if max_tokens > 0:
        options.max_tokens = max_tokens
    if title_min_tokens > 0:
        options.title_min_tokens = title_min_tokens
    if title_max_tokens > 0:
        options.title_max_tokens = title_max_tokens
    if seed != 0:
        options.seed = seed
    if options.min_tokens >= options.max_tokens:
        raise ValidationError(
            f"min-tokens ({options.min_tokens}) must be less than "
            f"max-tokens ({options.max_tokens})"
        )
    return options


def format_corpus_stats(stats: CorpusStats, fmt: str = "text") -> str:
    """Render corpus statistics as json, csv or text."""
    if fmt == "json":
        return json.dumps(to_jsonable(stats), indent=2) + "\n"
    if fmt == "csv":
        return "".join(
            [
                "metric,value\n",
                f"total_documents,{stats.total_documents}\n",
                f"total_tokens,{stats.total_tokens}\n",
                f"average_doc_length,{stats.average_doc_length:.2f}\n",
                f"median_doc_length,{stats.median_doc_length:.2f}\n",
                f"min_doc_length,{stats.min_doc_length}\n",
                f"max_doc_length,{stats.max_doc_length}\n",
                f"unique_terms,{stats.unique_terms}\n",
                f"categories,{len(stats.categories)}\n",
            ]
        )

    lines = [
        "Corpus Statistics",
        "=================",
        "",
        f"Document Count: {stats.total_documents}",
        f"Total Tokens: {stats.total_tokens}",
        f"Unique Terms: {stats.unique_terms}",
        "",
        "Document Length Distribution:",
        f"  Average: {stats.average_doc_length:.1f} tokens",
        f"  Median:  {stats.median_doc_length:.1f} tokens",
        f"  Range:   {stats.min_doc_length} - {stats.max_doc_length} tokens",
        "",
    ]
    if stats.categories:
        lines.append(f"Categories ({len(stats.categories)}):")
        for category in stats.categories:
            count = stats.category_counts.get(category, 0)
            share = count * 100.0 / stats.total_documents if stats.total_documents else 0.0
            lines.append(f"  {category:<15s}: {count:5d} documents ({share:.1f}%)")
        lines.append("")
    created = stats.created_range
    if created.start is not None:
        lines.append("Creation Time Range:")
        lines.append(f"  From: {created.start.strftime(_TIME_FORMAT)}")
        end = created.end.strftime(_TIME_FORMAT) if created.end is not None else ""
        lines.append(f"  To:   {end}")
        lines.append("")
    if stats.last_updated is not None:
        lines.append(f"Last Updated: {stats.last_updated.strftime(_TIME_FORMAT)}")
    return "\n".join(lines) + "\n"


def _read_line() -> str:
    return sys.stdin.readline()


def _confirmed(question: str, out: TextIO, prompt: Callable[[], str]) -> bool:
    out.write(question)
    out.flush()
    answer = (prompt() or "").strip().lower()
    return answer in ("y", "yes")


def run_generate(
    manager: CorpusManager,
    options: CorpusOptions,
    confirm: bool = False,
    verbose: bool = False,
    out: Optional[TextIO] = None,
    prompt: Optional[Callable[[], str]] = None,
) -> Optional[int]:
    """Generate a corpus, asking before replacing an existing one.

    Returns the final document count, or None when the user declines.
    """
    out = out if out is not None else sys.stdout
    prompt = prompt if prompt is not None else _read_line
    manager.database.init_schema()

    existing = manager.document_count()
    if existing > 0 and not confirm:
        out.write(f"Corpus already contains {existing} documents.\n")
        if not _confirmed("Do you want to clear the existing corpus? (y/N): ", out, prompt):
            out.write("Corpus generation cancelled.\n")
            return None
        manager.clear_documents()
        out.write("Existing corpus cleared.\n")

    out.write(f"Generating corpus with {options.size} documents...\n")
    if verbose:
        out.write("Configuration:\n")
        out.write(f"  Categories: [{' '.join(options.categories)}]\n")
        out.write(f"  Document length: {options.min_tokens}-{options.max_tokens} tokens\n")
        out.write(
            f"  Title length: {options.title_min_tokens}-{options.title_max_tokens} tokens\n"
        )
        if options.seed != 0:
            out.write(f"  Random seed: {options.seed}\n")

    manager.generate_corpus(options)
    final = manager.document_count()
    out.write(f"✓ Successfully generated {final} documents\n")

    if verbose:
        try:
            stats = manager.corpus_stats()
        except DatabaseError:
            stats = None
        if stats is not None:
            out.write("\nCorpus Statistics:\n")
            out.write(f"  Average document length: {stats.average_doc_length:.1f} tokens\n")
            out.write(f"  Categories: {len(stats.categories)}\n")
            for category in stats.categories:
                out.write(f"    {category}: {stats.category_counts[category]} documents\n")
    return final


def run_stats(manager: CorpusManager, fmt: str = "text", out: Optional[TextIO] = None) -> None:
    """Print corpus statistics in the chosen format."""
    out = out if out is not None else sys.stdout
    stats = manager.corpus_stats()
    if stats.total_documents == 0:
        out.write(
            "No documents in corpus. Use 'corpus generate' to create a synthetic corpus.\n"
        )
        return
    out.write(format_corpus_stats(stats, fmt))


def run_clear(
    manager: CorpusManager,
    confirm: bool = False,
    out: Optional[TextIO] = None,
    prompt: Optional[Callable[[], str]] = None,
) -> bool:
    """Delete the corpus after confirmation; returns whether anything was deleted."""
    out = out if out is not None else sys.stdout
    prompt = prompt if prompt is not None else _read_line
    count = manager.document_count()
    if count == 0:
        out.write("Corpus is already empty.\n")
        return False
    if not confirm:
        out.write(f"This will delete all {count} documents from the corpus.\n")
        if not _confirmed("Are you sure? (y/N): ", out, prompt):
            out.write("Operation cancelled.\n")
            return False
    out.write(f"Clearing {count} documents...\n")
    manager.clear_documents()
    out.write("✓ Corpus cleared successfully\n")
    return True
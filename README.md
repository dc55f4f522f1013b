# bm25lab

A small laboratory for studying BM25 ranking as SQLite FTS5 implements it.
It builds a synthetic document corpus in an SQLite database, runs full-text
searches scored with `bm25()`, and reports on what comes back: score
statistics, percentiles, histograms, per-category comparisons and
side-by-side comparisons of column weightings.

Only the Python standard library is used. Python's `sqlite3` module must be
built with FTS5: `Database.verify_fts5_support()` checks the compile options
(and, failing that, tries to create a temporary FTS5 table) and raises
`FTS5Error` when FTS5 is unavailable.

## A note on scores

FTS5 returns BM25 scores as negative numbers: the lower the score, the better
the match, and results are ordered ascending by score.
`bm25lab.search.classify_relevance` labels a score `"excellent"` (>= -1),
`"good"` (>= -2), `"fair"` (>= -4) or `"poor"`. FTS5 fixes the BM25
parameters at `k1 = 1.2` and `b = 0.75` (`bm25lab.models.BM25_K1`,
`BM25_B`).

## The database

`bm25lab.database.Database(path)` opens an SQLite connection (WAL journal,
in-memory temp store, foreign keys on) and is a context manager that closes
it on exit. `init_schema()` creates the `documents` table, the
`documents_fts` virtual table (porter + unicode61 tokenizer), the triggers
that keep it in sync, and two indexes. `transaction()` is a context manager
that commits on success and rolls back on error; `connection` gives the raw
`sqlite3.Connection`.

## Building a corpus

```python
from bm25lab.corpus import CorpusManager, format_corpus_stats, resolve_corpus_options
from bm25lab.database import Database

with Database("lab.db") as db:
    db.init_schema()
    manager = CorpusManager(db)
    options = resolve_corpus_options(
        size=200,
        categories="technology,database,algorithms",
        min_tokens=50,
        max_tokens=300,
        seed=42,
    )
    manager.generate_corpus(options)
    print(manager.document_count())
    print(format_corpus_stats(manager.corpus_stats(), "text"))
```

`resolve_corpus_options` starts from the `CorpusOptions` defaults (100
documents, five categories, 50–500 tokens) and overrides each value that is
positive (or non-empty); it raises `ValidationError` when the size is below 1
or `min_tokens >= max_tokens`. A non-zero seed makes generation reproducible;
seed 0 seeds from the clock. Titles come from per-category templates, so the
title token bounds are recorded but do not shape the titles.

`CorpusManager` also offers `insert_document`, `batch_insert_documents`,
`clear_documents` and `corpus_stats`. `format_corpus_stats(stats, fmt)`
renders `"text"`, `"json"` or `"csv"`.

The functions `run_generate`, `run_stats` and `run_clear` print progress to a
stream (`out`, standard output by default). `run_generate` and `run_clear`
ask before deleting an existing corpus unless `confirm=True`; the answer is
read by the `prompt` callable (a line from standard input by default).

## Searching

```python
from bm25lab.database import Database
from bm25lab.models import SearchOptions
from bm25lab.search import column_weights, search, search_stats

with Database("lab.db") as db:
    options = SearchOptions(
        query="query optimization",
        max_results=20,
        column_weights=column_weights(2.0, 1.0, 0.0),
    )
    results = search(db, options)
    for result in results:
        print(f"{result.score:.4f}  {result.relevance:9}  {result.title}")
    print(search_stats(results, options.query).score_range)
```

`column_weights(title, content, category)` keeps only positive weights and
returns `None` when there are none; unweighted columns count as 1.0.
`parse_weights("title:2.0,content:1.0")` turns a specification string into
such a mapping and raises `ValueError` when it is malformed. Snippets
(`include_snippet`, `snippet_length`) are cut around the first query term by
`generate_snippet`. `calculate_score_distribution` and `create_score_buckets`
give mean, median, population standard deviation, percentiles (25, 50, 75,
90, 95, 99) and histogram buckets.

## Explanations and comparisons

`bm25lab.explain` builds `ScoreExplanation` records per result: length
normalisation, weighted term counts per field, and per-term figures. The
per-term IDF is a simple approximation from the term's count in the
document, not a corpus-wide statistic. `generate_comparison` sets the default
ranking beside a weighted one and finds common and unique documents;
`format_comparison` renders it rank by rank.

## Reports

`bm25lab.report` runs a search and writes the result to a stream:

- `run_query` – ranked results as text, JSON or CSV
- `run_search_stats` – statistics over up to 1000 results
- `run_explain` – a per-document score breakdown
- `run_compare` – default scoring against `"field:weight,..."` weights;
  malformed weights raise `ValidationError`

`format_search_results` and `format_search_stats` return the same text
without searching.

## Visualisation

`bm25lab.visualize` draws ASCII line charts with
`bm25lab.asciichart.plot(data, height, width, caption)` and tables:

- `run_distribution` – a histogram of scores across buckets
- `run_categories` – average score and document count per category,
  optionally limited to a comma-separated list of categories
- `run_range` – range, percentiles, quartiles, IQR and outlier bounds

Each has a `generate_*` function that computes the data and a `format_*`
function that renders it.

## Errors

Failures raise subclasses of `bm25lab.errors.Bm25Error`: `ValidationError`,
`DatabaseError`, `FTS5Error`, `NotFoundError`, `TransactionError`,
`AnalysisError` and `VisualizationError`. `format_error(err, verbose)`
produces a short message with a hint, or the full cause chain when `verbose`
is true; `display_error` writes it to a stream (standard error by default).

`bm25lab.models.to_jsonable` converts any of the record classes into values
`json.dumps` accepts.

## What it does not do

The package installs no command-line program. The `run_*` functions do the
work of each command, but argument parsing, configuration files and an entry
point are left to the caller.
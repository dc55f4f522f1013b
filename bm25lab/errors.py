"""Error categories and their user-facing rendering."""

from __future__ import annotations

import sys
from typing import Optional, TextIO


class Bm25Error(Exception):
    """Base class of all errors raised by the package."""

    prefix = "operation failed"
    label = "Error"
    hint: Optional[str] = None
    description = "Uncategorized Error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        if self.message:
            return f"{self.prefix}: {self.message}"
        return self.prefix


class ValidationError(Bm25Error):
    """Input validation failed."""

    prefix = "validation failed"
    label = "Validation Error"
    description = "Validation Error - Input validation failed"


class DatabaseError(Bm25Error):
    """A SQLite operation failed."""

    prefix = "database operation failed"
    label = "Database Error"
    hint = "Check that the database file exists and is accessible"
    description = "Database Error - SQLite operation failed"


class FTS5Error(Bm25Error):
    """A full-text search operation failed."""

    prefix = "FTS5 operation failed"
    label = "FTS5 Error"
    hint = "Ensure SQLite is compiled with FTS5 support"
    description = "FTS5 Error - Full-text search operation failed"


class NotFoundError(Bm25Error):
    """A requested resource does not exist."""

    prefix = "not found"
    label = "Not Found"
    description = "Not Found Error - Requested resource does not exist"


class TransactionError(Bm25Error):
    """A database transaction failed."""

    prefix = "transaction failed"
    label = "Transaction Error"
    hint = "The operation was rolled back; no changes were made"
    description = "Transaction Error - Database transaction failed"


class AnalysisError(Bm25Error):
    """A score analysis failed."""

    prefix = "analysis failed"
    label = "Analysis Error"
    hint = "Check that you have search results to analyze"
    description = "Analysis Error - Score analysis operation failed"


class VisualizationError(Bm25Error):
    """Chart rendering failed."""

    prefix = "visualization failed"
    label = "Visualization Error"
    hint = "Check terminal width and visualization settings"
    description = "Visualization Error - Chart rendering failed"


def _format_simple(err: BaseException) -> str:
    if isinstance(err, Bm25Error) and type(err) is not Bm25Error:
        text = f"{err.label}: {err.message}\n"
        if err.hint:
            text += f"Hint: {err.hint}\n"
        return text
    return f"Error: {err}\n"


def _format_verbose(err: BaseException) -> str:
    kind = type(err)
    lines = [
        "=== VERBOSE ERROR OUTPUT ===",
        f"Error Type: {kind.__module__}.{kind.__qualname__}",
        "",
        "Error Chain:",
    ]
    current: Optional[BaseException] = err
    depth = 0
    while current is not None:
        lines.append(f"{'  ' * depth}└─ {current}")
        current = current.__cause__
        depth += 1
    description = err.description if isinstance(err, Bm25Error) else Bm25Error.description
    lines += ["", "Error Category:", f"  {description}", "", "=== END VERBOSE OUTPUT ==="]
    return "\n".join(lines) + "\n"


def format_error(err: BaseException, verbose: bool = False) -> str:
    """Render an error as the text shown to the user."""
    return _format_verbose(err) if verbose else _format_simple(err)


def display_error(
    err: Optional[BaseException], verbose: bool = False, stream: Optional[TextIO] = None
) -> None:
    """Write an error to a stream, standard error by default; None writes nothing."""
    if err is None:
        return
    (stream if stream is not None else sys.stderr).write(format_error(err, verbose))
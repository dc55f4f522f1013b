"""SQLite connection with the FTS5 schema for the document corpus."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional, Union

from .errors import DatabaseError, FTS5Error, TransactionError

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA cache_size=10000",
    "PRAGMA foreign_keys=ON",
    "PRAGMA temp_store=MEMORY",
)

_SCHEMA = (
    """CREATE TABLE IF NOT EXISTS documents (
        id INTEGER PRIMARY KEY,
        title TEXT NOT NULL,
        content TEXT NOT NULL,
        category TEXT NOT NULL DEFAULT 'general',
        length INTEGER NOT NULL DEFAULT 0,
        created DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
        title,
        content,
        category,
        content='documents',
        content_rowid='id',
        tokenize='porter unicode61 remove_diacritics 1'
    )""",
    """CREATE TRIGGER IF NOT EXISTS documents_after_insert
     AFTER INSERT ON documents BEGIN
        INSERT INTO documents_fts(rowid, title, content, category)
        VALUES (new.id, new.title, new.content, new.category);
     END""",
    """CREATE TRIGGER IF NOT EXISTS documents_after_update
     AFTER UPDATE ON documents BEGIN
        INSERT INTO documents_fts(documents_fts, rowid, title, content, category)
        VALUES('delete', old.id, old.title, old.content, old.category);
        INSERT INTO documents_fts(rowid, title, content, category)
        VALUES (new.id, new.title, new.content, new.category);
     END""",
    """CREATE TRIGGER IF NOT EXISTS documents_after_delete
     AFTER DELETE ON documents BEGIN
        INSERT INTO documents_fts(documents_fts, rowid, title, content, category)
        VALUES('delete', old.id, old.title, old.content, old.category);
     END""",
    "CREATE INDEX IF NOT EXISTS idx_documents_category ON documents(category)",
    "CREATE INDEX IF NOT EXISTS idx_documents_created ON documents(created)",
)


class Database:
    """A SQLite connection configured for FTS5 work."""

    def __init__(self, path: Union[str, "os.PathLike[str]"]) -> None:
        try:
            conn = sqlite3.connect(path, isolation_level=None)
        except sqlite3.Error as exc:
            raise DatabaseError(f"failed to open database: {exc}") from exc
        try:
            for pragma in _PRAGMAS:
                conn.execute(pragma)
        except sqlite3.Error as exc:
            conn.close()
            raise DatabaseError(f"failed to configure SQLite: {exc}") from exc
        self._conn: Optional[sqlite3.Connection] = conn

    @property
    def connection(self) -> sqlite3.Connection:
        """The underlying connection, for direct queries."""
        if self._conn is None:
            raise DatabaseError("database is closed")
        return self._conn

    def close(self) -> None:
        """Close the connection; closing twice is harmless."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def verify_fts5_support(self) -> None:
        """Raise FTS5Error unless this SQLite build provides FTS5."""
        conn = self.connection
        try:
            row = conn.execute(
                "SELECT COUNT(*) > 0 FROM pragma_compile_options "
                "WHERE compile_options = 'ENABLE_FTS5'"
            ).fetchone()
        except sqlite3.Error as exc:
            raise FTS5Error(f"failed to check FTS5 support: {exc}") from exc
        if not row[0] and not self._fts5_module_usable():
            raise FTS5Error("SQLite not compiled with FTS5 support")

    def _fts5_module_usable(self) -> bool:
        conn = self.connection
        try:
            conn.execute("CREATE VIRTUAL TABLE temp._fts5_probe USING fts5(x)")
            conn.execute("DROP TABLE temp._fts5_probe")
        except sqlite3.OperationalError:
            return False
        return True

    def init_schema(self) -> None:
        """Create the documents table, its FTS5 index, triggers and indexes."""
        self.verify_fts5_support()
        with self.transaction() as conn:
            for statement in _SCHEMA:
                try:
                    conn.execute(statement)
                except sqlite3.Error as exc:
                    raise DatabaseError(f"failed to create schema: {exc}") from exc

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block in a transaction: commit on success, roll back on error."""
        conn = self.connection
        try:
            conn.execute("BEGIN")
        except sqlite3.Error as exc:
            raise TransactionError(f"failed to begin transaction: {exc}") from exc
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise TransactionError(f"failed to commit transaction: {exc}") from exc

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
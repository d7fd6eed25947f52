"""
SQLite driver boundary.

The only place that talks to the sqlite3 module. Exposes the narrow
open / exec / close capability the engine is built on; `exec` mirrors
sqlite3_exec by running every statement of a script and reporting each
result row through a callback.
"""
import os
import re
import sqlite3
import logging
from typing import Any, Callable, List, Sequence


logger = logging.getLogger(__name__)

RowCallback = Callable[[Sequence[Any], Sequence[str]], int]

_COMMENT_RE = re.compile(r"--[^\n]*|/\*.*?(?:\*/|\Z)", re.DOTALL)


def split_statements(sql: str) -> List[str]:
    """
    Split a script into complete statements.

    Uses sqlite3.complete_statement so semicolons inside string literals,
    comments and trigger bodies do not end a statement. Statements that
    hold only whitespace or comments are dropped; an unterminated trailing
    statement is kept as-is and left for SQLite to accept or reject.
    """
    statements = []
    buffer = ""
    pieces = sql.split(";")

    for index, piece in enumerate(pieces):
        buffer += piece
        if index < len(pieces) - 1:
            buffer += ";"
            if not sqlite3.complete_statement(buffer):
                continue
        if _COMMENT_RE.sub("", buffer).strip(" \t\r\n;"):
            statements.append(buffer.strip())
        buffer = ""

    return statements


class SQLiteDriver:
    """Thin adapter over the sqlite3 module."""

    def open(self, path: str) -> sqlite3.Connection:
        """
        Open (or create) a database file.

        The connection runs with isolation_level=None so that sqlite3 never
        issues BEGIN/COMMIT on its own; transaction boundaries belong to the
        caller.

        Raises:
            sqlite3.Error: if the file cannot be opened
        """
        if path and path != ":memory:" and os.path.isdir(path):
            raise sqlite3.OperationalError(f"Path points to a directory, expected file: {path}")

        logger.debug(f"Opening SQLite database: {path or '<temporary>'}")
        try:
            return sqlite3.connect(path, isolation_level=None)
        except UnicodeEncodeError as e:
            raise sqlite3.OperationalError(f"Path is not valid UTF-8: {e}") from e

    def exec(self, conn: sqlite3.Connection, sql: str, row_callback: RowCallback) -> None:
        """
        Run every statement in `sql`, calling row_callback(values, column_names)
        for each result row. A truthy return from the callback aborts.

        Raises:
            sqlite3.Error: on the first failing statement; earlier statements
                and rows already reported are not undone
        """
        try:
            statements = split_statements(sql)
        except UnicodeEncodeError as e:
            raise _not_utf8(e) from e

        for statement in statements:
            try:
                cursor = conn.execute(statement)
            except UnicodeEncodeError as e:
                raise _not_utf8(e) from e
            try:
                if cursor.description is None:
                    continue
                column_names = [desc[0] for desc in cursor.description]
                for row in cursor:
                    if row_callback(row, column_names):
                        raise sqlite3.OperationalError("query aborted")
            finally:
                cursor.close()

    def close(self, conn: sqlite3.Connection) -> None:
        conn.close()


def _not_utf8(error: UnicodeEncodeError) -> sqlite3.ProgrammingError:
    # sqlite3 sends SQL as UTF-8, so lone surrogates (e.g. from argv) cannot pass
    return sqlite3.ProgrammingError(f"SQL is not valid UTF-8: {error}")

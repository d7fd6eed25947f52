"""SQL execution engine - one connection, one always-open transaction."""

import sys
import sqlite3
import logging
from typing import Optional, TextIO, Union
from datetime import datetime, UTC

from .binder import MissingBinding, QueryBinder
from .driver import SQLiteDriver
from .models import EngineError, EngineStatus, ErrorKind
from .results import ResultTable, RowCollector


logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("sqliteplus_audit")

BEGIN_MODES = ("DEFERRED", "IMMEDIATE", "EXCLUSIVE")


class ConnectionOpenError(RuntimeError):
    """Raised when an engine constructed with a path cannot open it."""

    def __init__(self, error: EngineError):
        super().__init__(error.message)
        self.error = error


class ExecutionEngine:
    """
    Transaction-wrapped SQL execution against a single SQLite database.

    A transaction is opened together with the connection and every commit()
    immediately opens the next one, so statements always run inside a
    transaction and commit boundaries are controlled by the caller.

    Every public operation returns an EngineStatus instead of raising. The
    latest failure is also kept in `last_error` (overwritten, never stacked;
    successful calls leave it alone).

    A failed execute() keeps whatever rows were collected before the
    failure. The table is not rolled back to empty, so callers can see how
    far the statement got.

    Not thread-safe: one engine, one thread.
    """

    def __init__(
        self,
        path: str = "",
        *,
        begin_mode: str = "DEFERRED",
        driver: Optional[SQLiteDriver] = None,
    ):
        begin_mode = begin_mode.upper()
        if begin_mode not in BEGIN_MODES:
            raise ValueError(
                f"Invalid begin_mode '{begin_mode}': expected one of {', '.join(BEGIN_MODES)}"
            )

        self.begin_mode = begin_mode
        self.driver = driver or SQLiteDriver()
        self.path: Optional[str] = None
        self._conn: Optional[sqlite3.Connection] = None
        self._result = ResultTable()
        self._last_error: Optional[EngineError] = None

        if path:
            status = self.open(path)
            if not status:
                raise ConnectionOpenError(status.error)

    # --- Lifecycle ------------------------------------------------------------------

    def open(self, path: str) -> EngineStatus:
        """
        Open the database at `path` and begin the first transaction.

        Fails with ALREADY_OPEN if this engine already holds a connection
        (the existing one is kept), OPEN_FAILED if SQLite cannot open the
        file, or EXECUTION_FAILED if the initial BEGIN is rejected. On any
        failure no connection is retained.
        """
        if self._conn is not None:
            logger.warning(f"Refusing to open {path}: already connected to {self.path}")
            return self._fail(EngineError.already_open())

        try:
            conn = self.driver.open(path)
        except sqlite3.Error as e:
            logger.error(f"Failed to open database {path}: {e}")
            return self._fail(EngineError.open_failed(path, str(e)))

        try:
            self.driver.exec(conn, self._begin_sql, _ignore_rows)
        except sqlite3.Error as e:
            logger.error(f"Failed to begin transaction on {path}: {e}")
            self._close_quietly(conn)
            return self._fail(EngineError.execution_failed(str(e), self._begin_sql))

        self._conn = conn
        self.path = path
        logger.info(f"Opened database {path} ({self.begin_mode} transactions)")
        return EngineStatus.ok(path=path)

    def commit(self) -> EngineStatus:
        """
        Commit the current transaction and begin a new one.

        Safe to call with nothing pending. If COMMIT itself fails no new
        transaction is started; SQLite's own state is left as it is.
        """
        if self._conn is None:
            return self._fail(EngineError.not_connected())

        try:
            self.driver.exec(self._conn, "COMMIT;", _ignore_rows)
        except sqlite3.Error as e:
            logger.error(f"Commit failed on {self.path}: {e}")
            return self._fail(EngineError.execution_failed(str(e), "COMMIT;"))

        try:
            self.driver.exec(self._conn, self._begin_sql, _ignore_rows)
        except sqlite3.Error as e:
            logger.error(f"Committed, but failed to begin next transaction on {self.path}: {e}")
            return self._fail(EngineError.execution_failed(str(e), self._begin_sql))

        logger.info(f"Committed transaction on {self.path}")
        return EngineStatus.ok()

    def close(self):
        """
        Release the connection. Idempotent; safe on an engine that never opened.
        Uncommitted work is discarded.
        """
        conn, self._conn = self._conn, None
        if conn is None:
            return
        if conn.in_transaction:
            logger.debug(f"Closing {self.path} with an open transaction; uncommitted work is discarded")
        self._close_quietly(conn)
        logger.info(f"Closed database {self.path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __del__(self):
        # __init__ may have raised before _conn existed
        if getattr(self, "_conn", None) is not None:
            self.close()

    # --- Execution ------------------------------------------------------------------

    def execute(self, query: Union[QueryBinder, str]) -> EngineStatus:
        """
        Run a query inside the current transaction and capture its rows.

        Args:
            query: QueryBinder (resolved first) or raw SQL; may hold several
                statements, which run in order

        Returns:
            EngineStatus. On EXECUTION_FAILED, `results` still holds the rows
            collected before SQLite reported the error.
        """
        if isinstance(query, QueryBinder):
            sql = None
        elif isinstance(query, str):
            sql = query
        else:
            raise TypeError(f"Expected QueryBinder or str, got {type(query).__name__}")

        if self._conn is None:
            return self._fail(EngineError.not_connected())

        if sql is None:
            try:
                sql = query.bind().sql
            except MissingBinding as e:
                logger.warning(f"Binding failed: {e}")
                self._audit_log(query.template.text, success=False, error=str(e))
                return self._fail(EngineError.binding_failed(e.key, query.template.text))

        self._result._clear()

        start_time = datetime.now(UTC)
        with RowCollector(self._result) as collector:
            try:
                self.driver.exec(self._conn, sql, collector)
            except sqlite3.Error as e:
                logger.warning(f"Statement failed after {collector.count} rows: {e}")
                self._audit_log(sql, success=False, row_count=collector.count, error=str(e))
                return self._fail(
                    EngineError.execution_failed(str(e), sql),
                    row_count=collector.count,
                )
        execution_time = (datetime.now(UTC) - start_time).total_seconds()

        self._audit_log(sql, success=True, row_count=len(self._result))
        logger.debug(f"Query successful: {len(self._result)} rows in {execution_time:.4f}s")

        return EngineStatus.ok(
            row_count=len(self._result),
            execution_time_seconds=execution_time,
        )

    # --- Accessors ------------------------------------------------------------------

    @property
    def results(self) -> ResultTable:
        return self._result

    @property
    def row_count(self) -> int:
        return len(self._result)

    @property
    def connection(self) -> Optional[sqlite3.Connection]:
        """The raw sqlite3 connection, for features this layer does not wrap."""
        return self._conn

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def in_transaction(self) -> bool:
        return self._conn is not None and self._conn.in_transaction

    @property
    def last_error(self) -> Optional[EngineError]:
        return self._last_error

    @property
    def last_error_code(self) -> Optional[ErrorKind]:
        return self._last_error.kind if self._last_error else None

    def describe_error(self) -> str:
        """Human-readable text for the latest error, or "" if none."""
        return self._last_error.message if self._last_error else ""

    def print_error(self, stream: Optional[TextIO] = None):
        """Write describe_error() to stream (stderr by default) if an error is set."""
        if self._last_error is None:
            return
        stream = stream or sys.stderr
        stream.write(self.describe_error() + "\n")

    def print_result(self, stream: Optional[TextIO] = None):
        """Write the result table as |a|b| lines to stream (stdout by default)."""
        stream = stream or sys.stdout
        if self._result:
            stream.write(self._result.render() + "\n")

    # --- Internal -------------------------------------------------------------------

    @property
    def _begin_sql(self) -> str:
        return f"BEGIN {self.begin_mode};"

    def _fail(self, error: EngineError, **metadata) -> EngineStatus:
        self._last_error = error
        return EngineStatus.failed(error, **metadata)

    def _close_quietly(self, conn: sqlite3.Connection):
        try:
            self.driver.close(conn)
        except sqlite3.Error as e:
            logger.error(f"Error closing connection {self.path}: {e}")

    def _audit_log(self, sql: str, success: bool, row_count: int = 0, error: Optional[str] = None):
        """Log execution for audit trail."""
        audit_logger.info(
            f"db={self.path} sql={sql!r} success={success} rows={row_count} error={error}"
        )

    def __repr__(self):
        state = "open" if self._conn is not None else "unopened"
        return f"ExecutionEngine(path={self.path!r}, {state})"


def _ignore_rows(values, column_names) -> int:
    return 0

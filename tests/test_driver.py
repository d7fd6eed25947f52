"""Tests for sqliteplus.engine.driver module."""

import sqlite3
import pytest

from sqliteplus.engine import ResultTable, RowCollector, SQLiteDriver, split_statements
from sqliteplus.engine.results import cell_to_text


class TestSplitStatements:
    """Tests for split_statements."""

    def test_two_statements(self):
        """Test a simple script splits on semicolons."""
        assert split_statements("CREATE TABLE t(a,b); INSERT INTO t VALUES(1,2);") == [
            "CREATE TABLE t(a,b);",
            "INSERT INTO t VALUES(1,2);",
        ]

    def test_unterminated_trailing_statement_kept(self):
        """Test a final statement without a semicolon is kept."""
        assert split_statements("SELECT 1; SELECT 2") == ["SELECT 1;", "SELECT 2"]

    def test_semicolon_in_string(self):
        """Test semicolons inside literals do not split."""
        assert split_statements("SELECT 'a;b'; SELECT 2;") == ["SELECT 'a;b';", "SELECT 2;"]

    def test_trigger_body(self):
        """Test a trigger body stays one statement."""
        sql = (
            "CREATE TRIGGER tr AFTER INSERT ON t BEGIN "
            "INSERT INTO log VALUES(1); INSERT INTO log VALUES(2); END;"
        )
        assert split_statements(sql) == [sql]

    def test_empty_statements_dropped(self):
        """Test blank input and stray semicolons produce nothing."""
        assert split_statements("") == []
        assert split_statements("  ;; ;\n") == []
        assert split_statements("SELECT 1;;") == ["SELECT 1;"]

    def test_comment_only_chunks_dropped(self):
        """Test trailing or standalone comments are not statements."""
        assert split_statements("SELECT 1; -- done") == ["SELECT 1;"]
        assert split_statements("/* header */; SELECT 2;") == ["SELECT 2;"]
        assert split_statements("-- lead\nSELECT 3;") == ["-- lead\nSELECT 3;"]


class TestSQLiteDriver:
    """Tests for SQLiteDriver."""

    @pytest.fixture
    def conn(self):
        driver = SQLiteDriver()
        conn = driver.open(":memory:")
        yield conn
        driver.close(conn)

    def test_open_has_no_implicit_transactions(self, conn):
        """Test sqlite3 is not managing transactions."""
        assert conn.isolation_level is None
        conn.execute("CREATE TABLE t(a)")
        assert not conn.in_transaction

    def test_exec_reports_rows_with_names(self, conn):
        """Test the callback receives values and column names."""
        seen = []
        SQLiteDriver().exec(
            conn, "SELECT 1 AS x, 'y' AS y; SELECT 2 AS z;",
            lambda values, names: seen.append((tuple(values), list(names))) or 0,
        )
        assert seen == [((1, "y"), ["x", "y"]), ((2,), ["z"])]

    def test_exec_no_rows_no_callback(self, conn):
        """Test statements without output never call back."""
        calls = []
        SQLiteDriver().exec(conn, "CREATE TABLE t(a);", lambda v, n: calls.append(v) or 0)
        assert calls == []

    def test_exec_callback_abort(self, conn):
        """Test a nonzero callback return aborts the call."""
        with pytest.raises(sqlite3.OperationalError, match="query aborted"):
            SQLiteDriver().exec(conn, "SELECT 1 UNION ALL SELECT 2", lambda v, n: 1)

    def test_exec_error_propagates(self, conn):
        """Test SQLite errors surface as sqlite3.Error."""
        with pytest.raises(sqlite3.Error, match="no such table"):
            SQLiteDriver().exec(conn, "SELECT * FROM missing", lambda v, n: 0)

    def test_exec_sql_not_utf8(self, conn):
        """Test unencodable SQL raises ProgrammingError, not UnicodeEncodeError."""
        with pytest.raises(sqlite3.ProgrammingError, match="not valid UTF-8"):
            SQLiteDriver().exec(conn, "SELECT '\udcff'", lambda v, n: 0)
        with pytest.raises(sqlite3.ProgrammingError, match="not valid UTF-8"):
            SQLiteDriver().exec(conn, "SELECT 1; SELECT '\udcff';", lambda v, n: 0)

    def test_open_directory_rejected(self, tmp_path):
        """Test directory paths raise OperationalError."""
        with pytest.raises(sqlite3.OperationalError, match="directory"):
            SQLiteDriver().open(str(tmp_path))


class TestRowCollector:
    """Tests for RowCollector and ResultTable."""

    def test_collects_text_rows(self):
        """Test values are converted to text in order."""
        table = ResultTable()
        collector = RowCollector(table)
        assert collector((1, None, b"ab", 2.5), ("a", "b", "c", "d")) == 0
        assert table.rows == (("1", "NULL", "ab", "2.5"),)
        assert table.columns == ("a", "b", "c", "d")
        assert collector.count == 1

    def test_released_collector_rejects_rows(self):
        """Test a collector cannot write after its execute call ends."""
        table = ResultTable()
        with RowCollector(table) as collector:
            collector(("x",), ("c",))
        with pytest.raises(RuntimeError):
            collector(("y",), ("c",))
        assert table.to_list() == [["x"]]

    def test_table_render_and_equality(self):
        """Test render output and list comparison."""
        table = ResultTable()
        collector = RowCollector(table)
        collector(("1", "2"), ("a", "b"))
        collector(("3",), ("a",))
        assert table.render() == "|1|2|\n|3|"
        assert table == [["1", "2"], ["3"]]
        assert list(table) == [("1", "2"), ("3",)]
        assert bool(table)

    def test_empty_table(self):
        """Test a fresh table is empty."""
        table = ResultTable()
        assert len(table) == 0
        assert not table
        assert table.render() == ""

    def test_real_cells_match_sqlite_text(self):
        """Test REAL values render like CAST(x AS TEXT) in SQLite."""
        assert cell_to_text(1.5) == "1.5"
        assert cell_to_text(100.0) == "100.0"
        assert cell_to_text(1e20) == "1.0e+20"
        assert cell_to_text(1.5e-7) == "1.5e-07"
        assert cell_to_text(1 / 3) == "0.333333333333333"
        assert cell_to_text(float("inf")) == "Inf"
        assert cell_to_text(float("-inf")) == "-Inf"

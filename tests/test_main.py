"""Tests for the sqliteplus command line."""

import os
import pytest
from pathlib import Path
from unittest.mock import patch

from sqliteplus.engine import ExecutionEngine, QueryBinder
from sqliteplus.main import build_query, main, parse_args, parse_params


@pytest.fixture(autouse=True)
def clean_env():
    """Isolate each test from the caller's environment and .env files."""
    with patch.dict(os.environ, {}, clear=True), patch("sqliteplus.config.load_dotenv"):
        yield


class TestParseParams:
    """Tests for KEY=VALUE parsing."""

    def test_named_and_positional(self):
        """Test digit keys become integers."""
        assert parse_params(["id=5", "1='x'", "expr=a=b"]) == {"id": "5", 1: "'x'", "expr": "a=b"}

    def test_invalid_pair(self):
        """Test a missing '=' is rejected."""
        with pytest.raises(ValueError, match="KEY=VALUE"):
            parse_params(["oops"])


class TestBuildQuery:
    """Tests for build_query."""

    def test_raw_sql(self):
        """Test plain SQL passes through."""
        assert build_query(parse_args(["SELECT 1"]), None) == "SELECT 1"

    def test_sql_with_params(self):
        """Test params turn SQL into a binder."""
        query = build_query(parse_args(["SELECT :id", "-p", "id=5"]), None)
        assert isinstance(query, QueryBinder)
        assert query.bind().sql == "SELECT 5"

    def test_sql_file(self, tmp_path):
        """Test --file reads the script."""
        script = tmp_path / "script.sql"
        script.write_text("SELECT 2;")
        assert build_query(parse_args(["--file", str(script)]), None) == "SELECT 2;"

    def test_no_sql(self):
        """Test a missing source is a usage error."""
        with pytest.raises(ValueError, match="No SQL"):
            build_query(parse_args([]), None)

    def test_named_query(self, tmp_path):
        """Test --query loads from the queries directory."""
        (tmp_path / "one.yaml").write_text(
            'name: "One"\nsql: "SELECT :v"\nparameters:\n  - name: v\n'
        )
        query = build_query(parse_args(["--query", "one", "-p", "v=1"]), str(tmp_path))
        assert query.bind().sql == "SELECT 1"

    def test_named_query_missing_required(self, tmp_path):
        """Test --query without a required value is rejected before running."""
        (tmp_path / "pair.yaml").write_text(
            'name: "Pair"\nsql: "SELECT :a, :b"\nparameters:\n  - name: a\n  - name: b\n'
        )
        with pytest.raises(ValueError, match="needs values for: b"):
            build_query(parse_args(["--query", "pair", "-p", "a=1"]), str(tmp_path))


class TestMain:
    """Tests for main()."""

    def test_select_prints_rows(self, db_path, capsys):
        """Test rows are printed pipe-delimited."""
        code = main(["-d", db_path, "SELECT 1, NULL"])
        assert code == 0
        assert capsys.readouterr().out == "|1|NULL|\n"

    def test_commits_by_default(self, db_path):
        """Test changes persist after a run."""
        assert main(["-d", db_path, "CREATE TABLE t(a); INSERT INTO t VALUES(7);"]) == 0

        with ExecutionEngine(db_path) as engine:
            engine.execute("SELECT a FROM t")
            assert engine.results.to_list() == [["7"]]

    def test_no_commit_discards(self, db_path):
        """Test --no-commit leaves the database unchanged."""
        assert main(["-d", db_path, "--no-commit", "CREATE TABLE t(a);"]) == 0

        with ExecutionEngine(db_path) as engine:
            assert not engine.execute("SELECT * FROM t")

    def test_database_from_environment(self, db_path, capsys):
        """Test SQLITEPLUS_DATABASE supplies the path."""
        with patch.dict(os.environ, {"SQLITEPLUS_DATABASE": db_path}):
            assert main(["SELECT 'env'"]) == 0
        assert capsys.readouterr().out == "|env|\n"

    def test_execution_error(self, db_path, capsys):
        """Test a failing statement prints SQLite's message and partial rows."""
        code = main(["-d", db_path, "SELECT 1; SELECT * FROM missing;"])
        captured = capsys.readouterr()
        assert code == 1
        assert captured.out == "|1|\n"
        assert "no such table: missing" in captured.err

    def test_binding_error(self, db_path, capsys):
        """Test an unbound placeholder fails the run."""
        code = main(["-d", db_path, "SELECT :a, :b", "-p", "a=1"])
        assert code == 1
        assert "no value bound for :b" in capsys.readouterr().err

    def test_open_error(self, tmp_path, capsys):
        """Test an unopenable database exits with 1."""
        code = main(["-d", str(tmp_path / "missing" / "db.sqlite"), "SELECT 1"])
        assert code == 1
        assert "Database open failure" in capsys.readouterr().err

    def test_no_database(self):
        """Test running without a database is a usage error."""
        assert main(["SELECT 1"]) == 2

    def test_usage_error(self, db_path):
        """Test malformed params are a usage error."""
        assert main(["-d", db_path, "SELECT 1", "-p", "bad"]) == 2

    def test_named_query_with_positional_param(self, db_path, tmp_path):
        """Test a positional -p for a named query is a usage error."""
        (tmp_path / "one.yaml").write_text(
            'name: "One"\nsql: "SELECT :v"\nparameters:\n  - name: v\n'
        )
        with patch.dict(os.environ, {"QUERY_DEFINITIONS_PATH": str(tmp_path)}):
            assert main(["-d", db_path, "--query", "one", "-p", "1=5"]) == 2

    def test_named_query_missing_required(self, db_path, tmp_path):
        """Test a named query without its required value is a usage error."""
        (tmp_path / "one.yaml").write_text(
            'name: "One"\nsql: "SELECT :v"\nparameters:\n  - name: v\n'
        )
        with patch.dict(os.environ, {"QUERY_DEFINITIONS_PATH": str(tmp_path)}):
            assert main(["-d", db_path, "--query", "one"]) == 2

    def test_sql_not_encodable(self, db_path, capsys):
        """Test SQL holding a lone surrogate fails the run instead of crashing."""
        code = main(["-d", db_path, "SELECT '\udcff'"])
        assert code == 1
        assert "not valid UTF-8" in capsys.readouterr().err

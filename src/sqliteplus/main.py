"""
Command-line front end: run SQL, a SQL file, or a named query against a
database, print the rows, then commit.
"""
import sys
import logging
import argparse
from pathlib import Path
from typing import Dict, List, Optional, Union

from sqliteplus.config import LOG_LEVELS, load_config, setup_logging
from sqliteplus.engine import (
    ConnectionOpenError,
    ExecutionEngine,
    QueryBinder,
    QueryLoader,
)

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog='sqliteplus',
        description='Run SQL against a SQLite database inside a transaction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m sqliteplus -d app.db "SELECT * FROM t"
  python -m sqliteplus -d app.db "SELECT * FROM t WHERE id = :id" -p id=5
  python -m sqliteplus -d app.db --file schema.sql
  python -m sqliteplus -d app.db --query user_by_id -p id=5

  # Environment variables (if no CLI args provided):
  SQLITEPLUS_DATABASE=app.db QUERY_DEFINITIONS_PATH=queries/ python -m sqliteplus --query user_by_id -p id=5

Note: bound values are substituted verbatim. Quote strings yourself, e.g. -p "name='bob'".
        """
    )

    parser.add_argument('sql', nargs='?', help='SQL text (may contain placeholders)')
    parser.add_argument(
        '-d', '--database',
        help='Database file (overrides SQLITEPLUS_DATABASE env var)'
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument('-f', '--file', help='Read SQL from a file')
    source.add_argument('-q', '--query', help='Run a named query from QUERY_DEFINITIONS_PATH')

    parser.add_argument(
        '-p', '--param',
        action='append',
        default=[],
        metavar='KEY=VALUE',
        help='Bind a placeholder value (repeatable; numeric keys bind ?N)'
    )
    parser.add_argument(
        '--no-commit',
        action='store_true',
        help='Discard changes instead of committing'
    )
    parser.add_argument(
        '--log-level',
        type=str.upper,
        choices=LOG_LEVELS,
        help='Override LOG_LEVEL env var'
    )

    return parser.parse_args(argv)


def parse_params(pairs: List[str]) -> Dict[Union[str, int], str]:
    """Turn KEY=VALUE strings into a binding map; digit keys become positions."""
    params: Dict[Union[str, int], str] = {}
    for pair in pairs:
        key, sep, value = pair.partition('=')
        key = key.strip()
        if not sep or not key:
            raise ValueError(f"Invalid parameter '{pair}': expected KEY=VALUE")
        params[int(key) if key.isdigit() else key] = value
    return params


def build_query(args: argparse.Namespace, queries_dir: Optional[str]) -> Union[QueryBinder, str]:
    """Resolve the CLI arguments into something ExecutionEngine.execute accepts."""
    params = parse_params(args.param)

    if args.query:
        if args.sql:
            raise ValueError("Give either SQL text or --query, not both")
        loader = QueryLoader(queries_dir=queries_dir)
        binder = loader.binder(args.query, params)
        missing = loader.get_query_by_id(args.query).missing_required(params)
        if missing:
            raise ValueError(
                f"Query '{args.query}' needs values for: {', '.join(missing)}"
            )
        return binder

    if args.file:
        if args.sql:
            raise ValueError("Give either SQL text or --file, not both")
        sql = Path(args.file).read_text()
    elif args.sql:
        sql = args.sql
    else:
        raise ValueError("No SQL given: pass SQL text, --file or --query")

    if params:
        return QueryBinder(sql, params)
    return sql


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one query and return a process exit code.

    0 on success, 1 when the database or the query fails, 2 for usage errors.
    Rows collected before a failure are still printed. Nothing is committed
    when the query fails.
    """
    args = parse_args(argv)
    config = load_config()
    setup_logging(args.log_level or config.log_level)

    database = args.database or config.database_path
    if not database:
        logger.error("No database given. Use --database or set SQLITEPLUS_DATABASE")
        return 2

    try:
        query = build_query(args, config.queries_dir)
    except (ValueError, KeyError, OSError) as e:
        logger.error(f"Invalid arguments: {e}")
        return 2

    try:
        engine = ExecutionEngine(database, begin_mode=config.begin_mode)
    except ConnectionOpenError as e:
        sys.stderr.write(f"{e}\n")
        return 1

    with engine:
        status = engine.execute(query)
        engine.print_result(sys.stdout)
        if not status:
            engine.print_error(sys.stderr)
            return 1

        if args.no_commit:
            logger.info("Changes discarded (--no-commit)")
            return 0

        if not engine.commit():
            engine.print_error(sys.stderr)
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

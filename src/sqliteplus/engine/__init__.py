"""Transaction-wrapped SQLite execution with template binding."""
from .binder import (
    MissingBinding,
    Placeholder,
    QueryBinder,
    QueryTemplate,
    ResolvedQuery,
)
from .models import (
    EngineError,
    EngineStatus,
    ErrorKind,
    QueryDefinition,
    QueryParameter,
)
from .results import ResultTable, RowCollector
from .driver import SQLiteDriver, split_statements
from .executor import ConnectionOpenError, ExecutionEngine
from .loader import QueryLoader

__all__ = [
    "MissingBinding",
    "Placeholder",
    "QueryBinder",
    "QueryTemplate",
    "ResolvedQuery",
    "EngineError",
    "EngineStatus",
    "ErrorKind",
    "QueryDefinition",
    "QueryParameter",
    "ResultTable",
    "RowCollector",
    "SQLiteDriver",
    "split_statements",
    "ConnectionOpenError",
    "ExecutionEngine",
    "QueryLoader",
]

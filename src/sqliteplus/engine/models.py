"""
Domain models for query binding and execution.
Provides the error taxonomy, call status, and YAML query definitions.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any, Mapping, Optional
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict

from .binder import Key, QueryBinder, QueryTemplate, format_key


class ErrorKind(str, Enum):
    """Kinds of failure an ExecutionEngine can report."""
    OPEN_FAILED = "OPEN_FAILED"
    ALREADY_OPEN = "ALREADY_OPEN"
    BINDING_FAILED = "BINDING_FAILED"
    NOT_CONNECTED = "NOT_CONNECTED"
    EXECUTION_FAILED = "EXECUTION_FAILED"


@dataclass
class EngineError:
    """
    Latest failure recorded by an engine.
    `message` is what describe_error() shows; for EXECUTION_FAILED it is
    SQLite's own diagnostic, verbatim.
    """
    kind: ErrorKind
    message: str
    key: Optional[Key] = None
    sql: Optional[str] = None

    @classmethod
    def open_failed(cls, path: str, reason: str) -> "EngineError":
        return cls(ErrorKind.OPEN_FAILED, f"Database open failure: {path}: {reason}")

    @classmethod
    def already_open(cls) -> "EngineError":
        return cls(
            ErrorKind.ALREADY_OPEN,
            "Database already opened, create a new engine for a new database",
        )

    @classmethod
    def binding_failed(cls, key: Key, template: Optional[str] = None) -> "EngineError":
        return cls(
            ErrorKind.BINDING_FAILED,
            f"Query binding failed: no value bound for {format_key(key)}",
            key=key,
            sql=template,
        )

    @classmethod
    def not_connected(cls) -> "EngineError":
        return cls(ErrorKind.NOT_CONNECTED, "No database connected")

    @classmethod
    def execution_failed(cls, message: str, sql: Optional[str] = None) -> "EngineError":
        return cls(ErrorKind.EXECUTION_FAILED, message, sql=sql)

    def __str__(self):
        return self.message


@dataclass
class EngineStatus:
    """
    Outcome of one engine call.
    Truthy on success so callers can write `if not engine.commit(): ...`.
    """
    success: bool
    error: Optional[EngineError] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **metadata) -> "EngineStatus":
        return cls(success=True, metadata=metadata)

    @classmethod
    def failed(cls, error: EngineError, **metadata) -> "EngineStatus":
        return cls(success=False, error=error, metadata=metadata)

    @property
    def error_code(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    def __bool__(self):
        return self.success

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict (for logging and CLI output)."""
        return {
            'success': self.success,
            'error': self.error.message if self.error else None,
            'error_code': self.error.kind.value if self.error else None,
            'metadata': self.metadata,
        }


class QueryParameter(BaseModel):
    """Parameter declaration for a named query."""
    name: str
    required: bool = True
    default: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.lstrip(':@$')
        if not v or not all(c.isalnum() or c == '_' for c in v):
            raise ValueError(f"Invalid parameter name: {v!r}")
        return v


class QueryDefinition(BaseModel):
    """Named query template loaded from YAML."""
    model_config = ConfigDict(extra='forbid')  # Catch typos in YAML

    name: str
    description: str = ""
    enabled: bool = True
    sql: str
    parameters: List[QueryParameter] = Field(default_factory=list)

    @field_validator('sql')
    @classmethod
    def validate_sql(cls, v):
        if not v.strip():
            raise ValueError("SQL cannot be empty")
        return v.strip()

    @model_validator(mode='after')
    def check_placeholders(self):
        placeholders = QueryTemplate(self.sql).placeholders
        if any(isinstance(key, int) for key in placeholders):
            raise ValueError(
                f"Query '{self.name}': named queries must use named placeholders (:name)"
            )
        named = set(placeholders)
        declared = [p.name for p in self.parameters]

        duplicates = {n for n in declared if declared.count(n) > 1}
        if duplicates:
            raise ValueError(f"Duplicate parameters: {', '.join(sorted(duplicates))}")

        undeclared = named - set(declared)
        if undeclared:
            raise ValueError(
                f"Query '{self.name}': placeholders not declared as parameters: "
                f"{', '.join(sorted(undeclared))}"
            )
        unused = set(declared) - named
        if unused:
            raise ValueError(
                f"Query '{self.name}': parameters not used in SQL: "
                f"{', '.join(sorted(unused))}"
            )
        return self

    @property
    def template(self) -> QueryTemplate:
        return QueryTemplate(self.sql)

    def binder(self, values: Optional[Mapping[str, Any]] = None) -> QueryBinder:
        """
        Build a QueryBinder from caller values plus declared defaults.
        Optional parameters without a default bind to NULL. Unknown value
        names are rejected; missing required ones are left for bind() to
        report as MissingBinding.
        """
        values = self._named_values(values or {})
        known = {p.name for p in self.parameters}
        unknown = set(values) - known
        if unknown:
            raise ValueError(
                f"Query '{self.name}': unknown parameters: {', '.join(sorted(unknown))}"
            )

        bindings: Dict[str, Any] = {}
        for param in self.parameters:
            if param.name in values:
                bindings[param.name] = values[param.name]
            elif param.default is not None:
                bindings[param.name] = param.default
            elif not param.required:
                bindings[param.name] = None
        return QueryBinder(self.template, bindings)

    def missing_required(self, values: Mapping[str, Any]) -> List[str]:
        """Required parameters without a value or default."""
        values = self._named_values(values)
        return [
            p.name for p in self.parameters
            if p.required and p.default is None and p.name not in values
        ]

    def _named_values(self, values: Mapping[Any, Any]) -> Dict[str, Any]:
        named = {}
        for key, value in values.items():
            if not isinstance(key, str):
                raise ValueError(
                    f"Query '{self.name}': named queries take named parameters, "
                    f"got {key!r}"
                )
            named[key.lstrip(':@$')] = value
        return named

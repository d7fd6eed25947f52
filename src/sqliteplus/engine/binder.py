"""
Query templates and placeholder binding.

Placeholders follow SQLite's parameter syntax (``:name``, ``@name``,
``$name``, ``?NNN`` and bare ``?``). Binding is plain text substitution:
bound values are inserted exactly as given, with no quoting or escaping.
Callers are trusted to supply SQL-safe values. Anything that must be quoted
has to arrive already quoted, e.g. ``{"name": "'bob'"}``.
"""
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union


Key = Union[str, int]

_NAME_PREFIXES = ":@$"

_TOKEN_RE = re.compile(
    r"""
      (?P<literal>
          '(?:[^']|'')*(?:'|\Z)
        | "(?:[^"]|"")*(?:"|\Z)
        | `(?:[^`]|``)*(?:`|\Z)
        | \[[^\]]*(?:\]|\Z)
        | --[^\n]*
        | /\*.*?(?:\*/|\Z)
      )
    | \?(?P<position>\d*)
    | (?<![:\w$])[:@$](?P<name>\w+)
    """,
    re.VERBOSE | re.DOTALL,
)


@dataclass(frozen=True)
class Placeholder:
    """A parameter marker inside a template."""
    key: Key
    token: str


class MissingBinding(KeyError):
    """Raised when a template placeholder has no bound value."""

    def __init__(self, key: Key, missing: Optional[List[Key]] = None):
        super().__init__(key)
        self.key = key
        self.missing = list(missing) if missing else [key]

    def __str__(self):
        return f"no value bound for {format_key(self.key)}"


def format_key(key: Key) -> str:
    """Render a key the way it appears in SQL (``:id`` or ``?1``)."""
    if isinstance(key, int):
        return f"?{key}"
    return f":{key}"


def normalize_key(key: Any) -> Key:
    """Strip a named-parameter prefix; positional keys stay integers."""
    if isinstance(key, bool):
        raise TypeError(f"Invalid binding key: {key!r}")
    if isinstance(key, int):
        if key < 1:
            raise ValueError(f"Positional keys start at 1, got {key}")
        return key
    if isinstance(key, str):
        if key[:1] in _NAME_PREFIXES:
            key = key[1:]
        if not key:
            raise ValueError("Binding key cannot be empty")
        return key
    raise TypeError(f"Invalid binding key: {key!r}")


def to_text(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, str):
        return value
    return str(value)


class QueryTemplate:
    """
    Immutable, pre-parsed query template.

    The text is split once into literal fragments and Placeholder tokens.
    Marker-like text inside quoted strings, quoted identifiers and comments
    stays literal.
    """

    __slots__ = ("_text", "_fragments", "_placeholders")

    def __init__(self, text: str):
        if not isinstance(text, str):
            raise TypeError(f"Template text must be str, got {type(text).__name__}")
        self._text = text
        self._fragments = self._parse(text)
        seen: Dict[Key, None] = {}
        for fragment in self._fragments:
            if isinstance(fragment, Placeholder):
                seen.setdefault(fragment.key)
        self._placeholders = tuple(seen)

    @staticmethod
    def _parse(text: str) -> Tuple[Union[str, Placeholder], ...]:
        fragments: List[Union[str, Placeholder]] = []
        literal = []
        last_end = 0
        highest = 0

        for match in _TOKEN_RE.finditer(text):
            literal.append(text[last_end:match.start()])
            last_end = match.end()

            if match.group("literal") is not None:
                literal.append(match.group("literal"))
                continue

            if match.group("name") is not None:
                key: Key = match.group("name")
            else:
                digits = match.group("position")
                if digits:
                    key = int(digits)
                    if key < 1:
                        raise ValueError(
                            f"Invalid positional placeholder {match.group(0)!r} "
                            f"at offset {match.start()}: numbering starts at ?1"
                        )
                else:
                    # bare '?' takes the next number after the largest seen
                    key = highest + 1
                highest = max(highest, key)

            if literal:
                fragments.append("".join(literal))
                literal = []
            fragments.append(Placeholder(key=key, token=match.group(0)))

        literal.append(text[last_end:])
        tail = "".join(literal)
        if tail:
            fragments.append(tail)
        return tuple(fragments)

    @property
    def text(self) -> str:
        return self._text

    @property
    def fragments(self) -> Tuple[Union[str, Placeholder], ...]:
        return self._fragments

    @property
    def placeholders(self) -> Tuple[Key, ...]:
        """Unique placeholder keys in order of first appearance."""
        return self._placeholders

    def __eq__(self, other):
        if not isinstance(other, QueryTemplate):
            return NotImplemented
        return self._text == other._text

    def __hash__(self):
        return hash(self._text)

    def __repr__(self):
        return f"QueryTemplate({self._text!r})"


@dataclass(frozen=True)
class ResolvedQuery:
    """Fully substituted SQL ready for execution."""
    sql: str
    template: str

    def __str__(self):
        return self.sql


class QueryBinder:
    """
    Pairs a QueryTemplate with a BindingMap.

    Bindings may be a mapping (named keys with or without their prefix,
    positional keys as ints) or a sequence, numbered from 1. Values are kept
    as text: None becomes "NULL", anything else goes through str().
    """

    def __init__(
        self,
        template: Union[str, QueryTemplate],
        bindings: Optional[Union[Mapping[Any, Any], Sequence[Any]]] = None,
    ):
        if isinstance(template, str):
            template = QueryTemplate(template)
        if not isinstance(template, QueryTemplate):
            raise TypeError(f"Expected str or QueryTemplate, got {type(template).__name__}")
        self._template = template
        self._bindings: Dict[Key, str] = {}

        if bindings is None:
            return
        if isinstance(bindings, Mapping):
            items = bindings.items()
        elif isinstance(bindings, (str, bytes)):
            raise TypeError("Bindings must be a mapping or a sequence of values")
        else:
            items = enumerate(bindings, start=1)

        for key, value in items:
            key = normalize_key(key)
            if key in self._bindings:
                raise ValueError(f"Duplicate binding for {format_key(key)}")
            self._bindings[key] = to_text(value)

    @property
    def template(self) -> QueryTemplate:
        return self._template

    @property
    def bindings(self) -> Mapping[Key, str]:
        return MappingProxyType(self._bindings)

    def missing(self) -> List[Key]:
        """Placeholder keys with no bound value, in template order."""
        return [key for key in self._template.placeholders if key not in self._bindings]

    def bind(self) -> ResolvedQuery:
        """
        Substitute every placeholder with its bound text.

        Raises:
            MissingBinding: if any placeholder is unbound. Nothing is produced.
        """
        missing = self.missing()
        if missing:
            raise MissingBinding(missing[0], missing)

        parts = []
        for fragment in self._template.fragments:
            if isinstance(fragment, Placeholder):
                parts.append(self._bindings[fragment.key])
            else:
                parts.append(fragment)
        return ResolvedQuery(sql="".join(parts), template=self._template.text)

    def __repr__(self):
        return f"QueryBinder({self._template.text!r}, {dict(self._bindings)!r})"

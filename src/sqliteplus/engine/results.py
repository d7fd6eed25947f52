"""In-memory capture of statement output."""
import math
from typing import Any, Iterator, List, Optional, Sequence, Tuple


Row = Tuple[str, ...]


def cell_to_text(value: Any) -> str:
    """Render one SQLite value as text; NULL becomes the literal "NULL"."""
    if value is None:
        return "NULL"
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    if isinstance(value, float):
        return real_to_text(value)
    return str(value)


def real_to_text(value: float) -> str:
    """
    Render a REAL the way SQLite casts it to TEXT (printf "%!.15g"):
    a decimal point is always present, so 100.0 stays "100.0" and
    1e20 becomes "1.0e+20". Infinities render as "Inf" and "-Inf".
    """
    if math.isinf(value):
        return "Inf" if value > 0 else "-Inf"
    if math.isnan(value):
        return "NULL"
    text = "%.15g" % value
    mantissa, sep, exponent = text.partition("e")
    if "." not in mantissa:
        mantissa += ".0"
    return mantissa + sep + exponent


class ResultTable:
    """
    Ordered rows of text cells.

    Each row holds exactly what SQLite reported for it; rows are never padded,
    so column counts may differ when one call runs several statements.
    A SQL NULL and the string 'NULL' render identically.
    """

    def __init__(self):
        self._rows: List[Row] = []
        self._columns: Tuple[str, ...] = ()

    @property
    def columns(self) -> Tuple[str, ...]:
        """Column names of the last statement that produced rows."""
        return self._columns

    @property
    def rows(self) -> Tuple[Row, ...]:
        return tuple(self._rows)

    def to_list(self) -> List[List[str]]:
        return [list(row) for row in self._rows]

    def render(self) -> str:
        """Pipe-delimited text, one line per row: |a|b|"""
        return "\n".join("|" + "".join(f"{cell}|" for cell in row) for row in self._rows)

    def _clear(self):
        self._rows.clear()
        self._columns = ()

    def _append(self, row: Row, columns: Tuple[str, ...]):
        self._rows.append(row)
        self._columns = columns

    def __len__(self):
        return len(self._rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(tuple(self._rows))

    def __getitem__(self, index):
        return self._rows[index]

    def __bool__(self):
        return bool(self._rows)

    def __eq__(self, other):
        if isinstance(other, ResultTable):
            return self._rows == other._rows
        if isinstance(other, (list, tuple)):
            return self._rows == [tuple(row) for row in other]
        return NotImplemented

    def __repr__(self):
        return f"ResultTable(rows={len(self._rows)}, columns={list(self._columns)})"


class RowCollector:
    """
    Row callback bound to one ResultTable for the duration of one execute call.
    Always returns 0 so the driver keeps iterating.
    """

    def __init__(self, table: ResultTable):
        self._table: Optional[ResultTable] = table
        self.count = 0

    def __call__(self, values: Sequence[Any], column_names: Sequence[str]) -> int:
        if self._table is None:
            raise RuntimeError("RowCollector used after release")
        self._table._append(
            tuple(cell_to_text(v) for v in values),
            tuple(column_names),
        )
        self.count += 1
        return 0

    def release(self):
        """Drop the reference to the table; later calls raise."""
        self._table = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

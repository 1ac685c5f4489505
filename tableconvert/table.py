"""Shared in-memory table: ordered column names plus string rows.

Every decoder produces a ``Table`` and every encoder consumes one. Cells are
always strings; typed interpretation lives in ``type_inference``.
"""

from __future__ import annotations

import threading
from typing import Iterable, Iterator, List, Optional, Sequence

import pandas as pd

from .errors import ConversionCancelled, ConversionWarning, shape_mismatch


class Table:
    """Column names and positionally aligned rows of raw string cells.

    ``append_row`` keeps the shape invariant: short rows are padded with empty
    strings, long rows are truncated, and either case records one
    ``SHAPE_MISMATCH`` warning on ``self.warnings``.
    """

    def __init__(
        self,
        columns: Sequence[str] = (),
        *,
        cancel: Optional[threading.Event] = None,
    ):
        self.columns: List[str] = [str(c) for c in columns]
        self.rows: List[List[str]] = []
        self.warnings: List[ConversionWarning] = []
        self.cancel = cancel

    # -----------------------------
    # Read accessors
    # -----------------------------

    @property
    def column_count(self) -> int:
        return len(self.columns)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def column_name(self, index: int) -> str:
        return self.columns[index]

    def cell(self, row: int, column: int) -> str:
        return self.rows[row][column]

    def column_values(self, index: int) -> List[str]:
        return [row[index] for row in self.rows]

    def iter_rows(self) -> Iterator[List[str]]:
        """Yield rows, honouring the cancel signal between rows."""
        for row in self.rows:
            self.checkpoint()
            yield row

    def __len__(self) -> int:
        return len(self.rows)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Table):
            return NotImplemented
        return self.columns == other.columns and self.rows == other.rows

    def __repr__(self) -> str:
        return f"Table(columns={self.columns!r}, rows={len(self.rows)})"

    # -----------------------------
    # Decoding-side mutation
    # -----------------------------

    def checkpoint(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise ConversionCancelled("conversion cancelled")

    def fit_row(
        self,
        cells: Iterable[object],
        line: Optional[int] = None,
        row_index: Optional[int] = None,
    ) -> List[str]:
        """Coerce ``cells`` to the column count, recording a warning when reshaped."""
        row = ["" if c is None else str(c) for c in cells]
        width = len(self.columns)
        if len(row) != width:
            index = len(self.rows) if row_index is None else row_index
            self.warnings.append(shape_mismatch(index, width, len(row), line))
            if len(row) < width:
                row.extend([""] * (width - len(row)))
            else:
                del row[width:]
        return row

    def append_row(self, cells: Iterable[object], line: Optional[int] = None) -> List[str]:
        self.checkpoint()
        row = self.fit_row(cells, line)
        self.rows.append(row)
        return row

    def warn(self, warning: ConversionWarning) -> None:
        self.warnings.append(warning)

    def add_column(self, name: str) -> int:
        """Append a column, padding existing rows. Used by decoders that union keys."""
        self.columns.append(str(name))
        for row in self.rows:
            row.append("")
        return len(self.columns) - 1

    # -----------------------------
    # pandas bridge
    # -----------------------------

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.rows, columns=list(self.columns), dtype=object)

    @classmethod
    def from_records(cls, columns: Sequence[str], rows: Iterable[Iterable[object]]) -> "Table":
        table = cls(columns)
        for row in rows:
            table.append_row(row)
        return table


__all__ = ["Table"]

"""Table reshaping and header helpers shared by the pipeline and the formats.

Pieces:
  - Header helpers (build_headers, _dedupe_headers)
  - Blank-row filtering on decoded frames (_drop_fully_blank_rows)
  - Whole-table transforms (apply_transforms) and their row-wise counterpart
    used in streaming mode (RowTransformer)
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set
import re

import pandas as pd

from .table import Table

# -----------------------------
# Transform names, in application order
# -----------------------------
TRANSFORM_ORDER = (
    "transpose",
    "delete_empty",
    "deduplicate",
    "uppercase",
    "lowercase",
    "capitalize",
)
ROW_TRANSFORMS = set(TRANSFORM_ORDER) - {"transpose"}


def normalize_transforms(transforms: Optional[Iterable[str]]) -> List[str]:
    """Validate names (``-`` or ``_`` accepted) and return them in application order."""
    requested = {str(t).strip().lower().replace("-", "_") for t in (transforms or ())}
    requested.discard("")
    unknown = requested - set(TRANSFORM_ORDER)
    if unknown:
        raise ValueError(f"unknown transform(s): {', '.join(sorted(unknown))}")
    return [t for t in TRANSFORM_ORDER if t in requested]


# -----------------------------
# Headers
# -----------------------------


def _dedupe_headers(headers: List[str]) -> List[str]:
    """Unique names for repeated headers; generated suffixes skip names already in use."""
    taken = set(headers)
    emitted: Set[str] = set()
    counts: Dict[str, int] = {}
    out: List[str] = []
    for h in headers:
        name = h
        if name in emitted:
            n = counts.get(h, 0)
            while name in emitted or name in taken:
                n += 1
                name = f"{h}_{n}"
            counts[h] = n
        emitted.add(name)
        out.append(name)
    return out


def build_headers(values: Sequence[object]) -> List[str]:
    """Header cells from a raw row: whitespace collapsed, blanks named ``Column_i``."""
    headers: List[str] = []
    for i, val in enumerate(values):
        if val is None or (not isinstance(val, str) and pd.isna(val)):
            headers.append(f"Column_{i+1}")
        else:
            s = re.sub(r"\s+", " ", str(val).strip())
            headers.append(s or f"Column_{i+1}")
    return headers


# -----------------------------
# Blank rows
# -----------------------------


def _is_blank(cell: object) -> bool:
    if cell is None:
        return True
    if isinstance(cell, str):
        return cell.strip() == ""
    return bool(pd.isna(cell))


def _drop_fully_blank_rows(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty:
        return df
    is_blank = df.apply(lambda s: s.map(_is_blank), axis=0)
    keep_mask = ~is_blank.all(axis=1)
    return df.loc[keep_mask].reset_index(drop=True)


# -----------------------------
# Case transforms
# -----------------------------


def _capitalize_first(s: str) -> str:
    return s[:1].upper() + s[1:]


def _case_function(transforms: Sequence[str]) -> Optional[Callable[[str], str]]:
    funcs = []
    if "uppercase" in transforms:
        funcs.append(str.upper)
    if "lowercase" in transforms:
        funcs.append(str.lower)
    if "capitalize" in transforms:
        funcs.append(_capitalize_first)
    if not funcs:
        return None

    def apply(s: str) -> str:
        for f in funcs:
            s = f(s)
        return s

    return apply


# -----------------------------
# Whole-table transforms
# -----------------------------


def transpose(table: Table) -> Table:
    """Columns become rows; the first column holds the old headers."""
    if not table.columns:
        return table
    frame = table.to_frame()
    frame.columns = range(frame.shape[1])
    flipped = frame.T
    columns = [""] + [f"Row_{i+1}" for i in range(table.row_count)]
    rows = [[name] + list(values) for name, values in zip(table.columns, flipped.itertuples(index=False))]
    out = Table.from_records(columns, rows)
    out.warnings = table.warnings
    out.cancel = table.cancel
    return out


def apply_transforms(table: Table, transforms: Optional[Iterable[str]]) -> Table:
    """Apply the requested transforms to a fully decoded table."""
    names = normalize_transforms(transforms)
    if not names:
        return table
    if "transpose" in names:
        table = transpose(table)
    frame = table.to_frame()
    frame.columns = range(frame.shape[1])
    if "delete_empty" in names:
        frame = _drop_fully_blank_rows(frame)
    if "deduplicate" in names:
        frame = frame.drop_duplicates(keep="first").reset_index(drop=True)
    rows = [list(r) for r in frame.itertuples(index=False)]
    case = _case_function(names)
    if case is not None:
        table.columns = [case(c) for c in table.columns]
        rows = [[case(c) for c in r] for r in rows]
    table.rows = rows
    return table


class RowTransformer:
    """Row-at-a-time version of the non-reshaping transforms, for streaming."""

    def __init__(self, transforms: Optional[Iterable[str]]):
        self.names = normalize_transforms(transforms)
        if "transpose" in self.names:
            raise ValueError("transpose needs the whole table and cannot be applied row by row")
        self._case = _case_function(self.names)
        self._seen = set()

    def headers(self, columns: Sequence[str]) -> List[str]:
        if self._case is None:
            return list(columns)
        return [self._case(c) for c in columns]

    def apply(self, row: List[str]) -> Optional[List[str]]:
        """Return the transformed row, or ``None`` when it is filtered out."""
        if "delete_empty" in self.names and all(c.strip() == "" for c in row):
            return None
        if "deduplicate" in self.names:
            key = tuple(row)
            if key in self._seen:
                return None
            self._seen.add(key)
        if self._case is not None:
            row = [self._case(c) for c in row]
        return row


__all__ = [
    "TRANSFORM_ORDER",
    "ROW_TRANSFORMS",
    "normalize_transforms",
    "build_headers",
    "_dedupe_headers",
    "_drop_fully_blank_rows",
    "transpose",
    "apply_transforms",
    "RowTransformer",
]

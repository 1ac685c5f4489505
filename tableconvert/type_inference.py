"""Column type inference.

Classifies a column's raw strings as integer, float, boolean, date or string
(first match wins, empty values ignored) and turns that classification into
per-cell rendering hints for encoders that can emit typed values.
"""

from __future__ import annotations

import re
import warnings
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from .errors import ConversionWarning, WarningCode

INT64_MIN = int(np.iinfo(np.int64).min)
INT64_MAX = int(np.iinfo(np.int64).max)

INT_PATTERN = r"[+-]?\d+"
FLOAT_PATTERN = r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
_INT_RE = re.compile(INT_PATTERN)
_FLOAT_RE = re.compile(FLOAT_PATTERN)
# Float literals written back verbatim by the numeric encoders.
_CANONICAL_FLOAT_RE = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")
CANONICAL_BOOLEANS = ("true", "false")

BOOLEAN_TOKENS = {"true", "false", "yes", "no", "1", "0"}
TRUE_TOKENS = {"true", "yes", "1"}

DEFAULT_DATE_PATTERNS = [
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S.%f",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y/%m/%d",
    "%d.%m.%Y",
    "%m/%d/%Y",
]

# Share of non-empty values that must parse as numbers before a string
# classification is reported as ambiguous.
AMBIGUITY_RATIO = 0.9


class DataKind(str, Enum):
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    DATE = "date"
    NULL = "null"
    STRING = "string"


NUMERIC_KINDS = {DataKind.INTEGER, DataKind.FLOAT}
UNQUOTED_KINDS = {DataKind.INTEGER, DataKind.FLOAT, DataKind.BOOLEAN}


class TypedCell(NamedTuple):
    raw: str
    kind: DataKind
    value: Any


# -----------------------------
# Scalar parsers (per-cell re-checks)
# -----------------------------


def parse_int(text: str) -> Optional[int]:
    text = text.strip()
    if not _INT_RE.fullmatch(text):
        return None
    value = int(text)
    if INT64_MIN <= value <= INT64_MAX:
        return value
    return None


def parse_float(text: str) -> Optional[float]:
    text = text.strip()
    if not _FLOAT_RE.fullmatch(text):
        return None
    return float(text)


def parse_bool(text: str) -> Optional[bool]:
    token = text.strip().lower()
    if token not in BOOLEAN_TOKENS:
        return None
    return token in TRUE_TOKENS


def parse_date(text: str, patterns: Sequence[str] = DEFAULT_DATE_PATTERNS) -> Optional[datetime]:
    text = text.strip()
    for fmt in patterns:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


# -----------------------------
# Column classification
# -----------------------------


@dataclass
class ColumnInference:
    name: str
    detected_type: DataKind
    non_empty: int
    confidence_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "detected_type": self.detected_type.value,
            "non_empty": self.non_empty,
            "confidence_score": round(self.confidence_score, 4),
        }


class TypeInferencer:
    """Classify columns of raw strings into a single ``DataKind`` each."""

    def __init__(self, date_patterns: Optional[Sequence[str]] = None):
        self.date_patterns = list(date_patterns or DEFAULT_DATE_PATTERNS)

    def _non_empty(self, values: Iterable[str]) -> pd.Series:
        s = pd.Series(list(values), dtype=object).fillna("").astype(str).str.strip()
        return s[s != ""].reset_index(drop=True)

    def _all_int64(self, s: pd.Series) -> bool:
        if not s.str.fullmatch(INT_PATTERN).all():
            return False
        return all(INT64_MIN <= int(v) <= INT64_MAX for v in s)

    def _date_mask(self, s: pd.Series) -> pd.Series:
        matched = pd.Series(False, index=s.index)
        for fmt in self.date_patterns:
            remaining = s[~matched]
            if remaining.empty:
                break
            with warnings.catch_warnings():
                warnings.simplefilter("ignore")
                parsed = pd.to_datetime(
                    remaining, format=fmt, errors="coerce", utc="%z" in fmt
                )
            matched.loc[remaining.index] = parsed.notna().to_numpy()
        return matched

    def classify(self, s: pd.Series) -> DataKind:
        """Classify an already stripped series of non-empty values."""
        if s.empty:
            return DataKind.STRING
        if self._all_int64(s):
            return DataKind.INTEGER
        if s.str.fullmatch(FLOAT_PATTERN).all():
            return DataKind.FLOAT
        if s.str.lower().isin(BOOLEAN_TOKENS).all():
            return DataKind.BOOLEAN
        if self._date_mask(s).all():
            return DataKind.DATE
        return DataKind.STRING

    def infer_column(self, values: Iterable[str]) -> DataKind:
        return self.classify(self._non_empty(values))

    def infer_types(self, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> List[ColumnInference]:
        """Classify every column of ``rows``; result is positional, like the columns."""
        results: List[ColumnInference] = []
        for index, name in enumerate(columns):
            s = self._non_empty(row[index] for row in rows)
            kind = self.classify(s)
            if s.empty:
                confidence = 0.0
            elif kind is DataKind.STRING:
                confidence = float(s.str.fullmatch(FLOAT_PATTERN).mean())
            else:
                confidence = 1.0
            results.append(ColumnInference(name, kind, int(len(s)), confidence))
        return results

    def hints_for(self, columns: Sequence[str], rows: Sequence[Sequence[str]]) -> "TypeHints":
        inferred = self.infer_types(columns, rows)
        return TypeHints(columns, [c.detected_type for c in inferred], self.date_patterns, inferred)


def ambiguity_warnings(inferred: Sequence[ColumnInference]) -> List[ConversionWarning]:
    """Report string columns that are almost entirely numeric."""
    out = []
    for col in inferred:
        if col.detected_type is DataKind.STRING and AMBIGUITY_RATIO <= col.confidence_score < 1.0:
            out.append(
                ConversionWarning(
                    code=WarningCode.AMBIGUOUS_TYPE,
                    message=(
                        f"column '{col.name}' is {col.confidence_score:.0%} numeric; "
                        "rendered as string"
                    ),
                )
            )
    return out


# -----------------------------
# Encoder-facing hints
# -----------------------------


class TypeHints:
    """Per-column types with per-cell coercion."""

    def __init__(
        self,
        columns: Sequence[str],
        types: Sequence[DataKind],
        date_patterns: Optional[Sequence[str]] = None,
        inferred: Optional[Sequence[ColumnInference]] = None,
    ):
        self.columns = list(columns)
        self.types = list(types)
        self.date_patterns = list(date_patterns or DEFAULT_DATE_PATTERNS)
        self.inferred = list(inferred or [])

    @classmethod
    def untyped(cls, columns: Sequence[str]) -> "TypeHints":
        return cls(columns, [DataKind.STRING] * len(columns))

    def kind(self, index: int) -> DataKind:
        return self.types[index]

    @property
    def is_typed(self) -> bool:
        return any(t is not DataKind.STRING for t in self.types)

    def cell(self, index: int, raw: str) -> TypedCell:
        """Typed value of a cell, or the raw string when a typed value would not
        reproduce the text (``007``, ``+5``, ``yes``).
        """
        kind = self.types[index]
        if kind is DataKind.STRING:
            return TypedCell(raw, DataKind.STRING, raw)
        if raw.strip() == "":
            return TypedCell(raw, DataKind.NULL, None)
        if kind is DataKind.INTEGER:
            value = parse_int(raw)
            if value is not None and str(value) != raw:
                value = None
        elif kind is DataKind.FLOAT:
            value = parse_float(raw) if _CANONICAL_FLOAT_RE.fullmatch(raw) else None
        elif kind is DataKind.BOOLEAN:
            value = parse_bool(raw) if raw in CANONICAL_BOOLEANS else None
        else:
            value = parse_date(raw, self.date_patterns)
        if value is None:
            return TypedCell(raw, DataKind.STRING, raw)
        return TypedCell(raw, kind, value)

    def as_dict(self) -> Dict[str, str]:
        return {name: kind.value for name, kind in zip(self.columns, self.types)}


__all__ = [
    "DataKind",
    "TypedCell",
    "TypeInferencer",
    "TypeHints",
    "ColumnInference",
    "ambiguity_warnings",
    "parse_int",
    "parse_float",
    "parse_bool",
    "parse_date",
    "DEFAULT_DATE_PATTERNS",
]

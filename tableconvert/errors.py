"""Error taxonomy and non-fatal warning records shared by every format.

Fatal conditions are exceptions and abort a conversion. Non-fatal conditions
(ragged rows, skipped records in best-effort mode) are ``ConversionWarning``
records collected alongside the data and returned with the result.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Optional


class Severity(Enum):
    FATAL = "FATAL"
    ERROR = "ERROR"
    WARNING = "WARNING"


class WarningCode(str, Enum):
    SHAPE_MISMATCH = "SHAPE_MISMATCH"
    SKIPPED_RECORD = "SKIPPED_RECORD"
    DROPPED_COLUMN = "DROPPED_COLUMN"
    AMBIGUOUS_TYPE = "AMBIGUOUS_TYPE"


@dataclass
class ConversionWarning:
    """Non-fatal condition recorded during a conversion."""

    code: WarningCode
    message: str
    row_index: Optional[int] = None
    line: Optional[int] = None
    severity: Severity = Severity.WARNING

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["code"] = self.code.value
        data["severity"] = self.severity.value
        return data

    def __str__(self) -> str:
        where = []
        if self.row_index is not None:
            where.append(f"row {self.row_index}")
        if self.line is not None:
            where.append(f"line {self.line}")
        prefix = f"[{', '.join(where)}] " if where else ""
        return f"{prefix}{self.code.value}: {self.message}"


# -----------------------------
# Warning factories
# -----------------------------


def shape_mismatch(row_index: int, expected: int, actual: int, line: Optional[int] = None):
    action = "padded" if actual < expected else "truncated"
    return ConversionWarning(
        code=WarningCode.SHAPE_MISMATCH,
        message=f"row has {actual} cells, expected {expected}; {action}",
        row_index=row_index,
        line=line,
    )


def skipped_record(reason: str, row_index: Optional[int] = None, line: Optional[int] = None):
    return ConversionWarning(
        code=WarningCode.SKIPPED_RECORD,
        message=f"record skipped: {reason}",
        row_index=row_index,
        line=line,
        severity=Severity.ERROR,
    )


# -----------------------------
# Exceptions
# -----------------------------


class TableConvertError(Exception):
    """Base exception for conversion failures."""

    def __init__(self, message: str, *, format_name: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.format_name = format_name
        self.stage: Optional[str] = None

    def __str__(self) -> str:
        parts = []
        if self.stage:
            parts.append(self.stage)
        if self.format_name:
            parts.append(self.format_name)
        prefix = f"[{' '.join(parts)}] " if parts else ""
        return f"{prefix}{self.message}"


class DecodeError(TableConvertError):
    """Malformed input. Carries whatever location the decoder could determine."""

    def __init__(
        self,
        message: str,
        *,
        line: Optional[int] = None,
        column: Optional[int] = None,
        offset: Optional[int] = None,
        statement: Optional[int] = None,
        format_name: Optional[str] = None,
    ):
        super().__init__(message, format_name=format_name)
        self.line = line
        self.column = column
        self.offset = offset
        self.statement = statement

    def location(self) -> str:
        parts = []
        if self.statement is not None:
            parts.append(f"statement {self.statement}")
        if self.line is not None:
            parts.append(f"line {self.line}")
        if self.column is not None:
            parts.append(f"column {self.column}")
        if self.offset is not None:
            parts.append(f"offset {self.offset}")
        return ", ".join(parts)

    def __str__(self) -> str:
        base = super().__str__()
        loc = self.location()
        return f"{base} ({loc})" if loc else base


class EncodeError(TableConvertError):
    """The target format cannot represent the table."""

    def __init__(
        self,
        message: str,
        *,
        row_index: Optional[int] = None,
        column: Optional[str] = None,
        format_name: Optional[str] = None,
    ):
        super().__init__(message, format_name=format_name)
        self.row_index = row_index
        self.column = column


class UnknownFormat(TableConvertError):
    """Format identifier not present in the registry."""


class UnsupportedCapability(TableConvertError):
    """Requested behaviour (streaming, reading a write-only format) is unavailable."""


class RegistryFrozen(TableConvertError):
    """Registration attempted after the registry was frozen."""


class ConversionCancelled(TableConvertError):
    """The caller's cancel signal was set while rows were being processed."""


__all__ = [
    "Severity",
    "WarningCode",
    "ConversionWarning",
    "shape_mismatch",
    "skipped_record",
    "TableConvertError",
    "DecodeError",
    "EncodeError",
    "UnknownFormat",
    "UnsupportedCapability",
    "RegistryFrozen",
    "ConversionCancelled",
]

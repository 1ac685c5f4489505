"""Excel workbooks (.xlsx) through pandas and openpyxl."""

from __future__ import annotations

import datetime as dt
import io
import logging
import math
import re
import zipfile
from typing import Any, List

import pandas as pd
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from ..cleaning_utils import _drop_fully_blank_rows, build_headers
from ..errors import EncodeError
from ..table import Table
from ..type_inference import DataKind
from .base import BaseDecoder, BaseEncoder, synthetic_columns

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet1"
MAX_AUTO_WIDTH = 80

_STRFTIME_TO_EXCEL = {
    "%Y": "yyyy",
    "%y": "yy",
    "%m": "mm",
    "%d": "dd",
    "%H": "hh",
    "%M": "mm",
    "%S": "ss",
    "%b": "mmm",
    "%B": "mmmm",
}


def excel_number_format(fmt: str) -> str:
    """Translate a strftime pattern into an Excel number format."""
    return re.sub(r"%[A-Za-z]", lambda m: _STRFTIME_TO_EXCEL.get(m.group(0), ""), fmt)


def _has_time(value: dt.datetime) -> bool:
    return bool(value.hour or value.minute or value.second or value.microsecond)


def excel_cell_text(value: Any, date_format: str) -> str:
    """Stringify a value read from a worksheet according to its stored type."""
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    if value is pd.NaT:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dt.datetime):
        fmt = date_format + " %H:%M:%S" if _has_time(value) else date_format
        return value.strftime(fmt)
    if isinstance(value, dt.date):
        return value.strftime(date_format)
    if isinstance(value, dt.time):
        return value.isoformat()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


class ExcelDecoder(BaseDecoder):
    format_name = "excel"

    def decode(self, stream, options, cancel=None):
        data = stream.read()
        table = Table(cancel=cancel)
        if not data:
            return table
        sheet = options.sheet if options.sheet is not None else 0
        try:
            frame = pd.read_excel(
                io.BytesIO(data), sheet_name=sheet, header=None, dtype=object, engine="openpyxl"
            )
        except (ValueError, IndexError, KeyError) as e:
            raise self.error(f"cannot read sheet {sheet!r}: {e}") from e
        except (zipfile.BadZipFile, InvalidFileException, OSError) as e:
            raise self.error(f"not a readable xlsx workbook: {e}") from e

        frame = _drop_fully_blank_rows(frame)
        if frame.empty:
            return table
        rows: List[List[str]] = [
            [excel_cell_text(v, options.date_format) for v in record]
            for record in frame.itertuples(index=False, name=None)
        ]
        if options.header:
            table.columns = build_headers(rows[0])
            body = rows[1:]
        else:
            table.columns = synthetic_columns(frame.shape[1])
            body = rows
        for row in body:
            table.append_row(row)
        logger.debug("Read sheet %r: %d rows x %d columns", sheet, table.row_count, table.column_count)
        return table


class ExcelEncoder(BaseEncoder):
    """Extras: ``sheet_name`` (default ``Sheet1``), ``auto_width``."""

    format_name = "excel"

    def _value(self, hints, index: int, raw: str, date_format: str) -> Any:
        """Typed cell value, kept only when reading it back yields ``raw``."""
        typed = hints.cell(index, raw)
        if typed.kind is DataKind.NULL:
            return None
        if typed.kind is DataKind.DATE:
            value = typed.value.replace(tzinfo=None)
            value = value if _has_time(value) else value.date()
        elif typed.kind in (DataKind.INTEGER, DataKind.FLOAT, DataKind.BOOLEAN):
            value = typed.value
        else:
            return raw
        return value if excel_cell_text(value, date_format) == raw else raw

    def encode(self, table, options, hints):
        sheet_name = options.extra_str("sheet_name", DEFAULT_SHEET_NAME)
        rows = [
            [self._value(hints, i, c, options.date_format) for i, c in enumerate(row)]
            for row in table.iter_rows()
        ]
        frame = pd.DataFrame(rows, columns=list(table.columns), dtype=object)

        date_fmt = excel_number_format(options.date_format)
        buf = io.BytesIO()
        try:
            with pd.ExcelWriter(
                buf,
                engine="openpyxl",
                date_format=date_fmt,
                datetime_format=date_fmt + " hh:mm:ss",
            ) as writer:
                frame.to_excel(writer, sheet_name=sheet_name, index=False, header=options.header)
                if options.extra_bool("auto_width", False):
                    self._auto_width(writer.sheets[sheet_name], table, options.header)
        except ValueError as e:
            raise EncodeError(f"cannot write worksheet: {e}", format_name=self.format_name) from e
        return buf.getvalue()

    @staticmethod
    def _auto_width(sheet, table, header: bool) -> None:
        for index in range(table.column_count):
            values = table.column_values(index)
            if header:
                values.append(table.columns[index])
            width = max((len(v) for v in values), default=0)
            letter = get_column_letter(index + 1)
            sheet.column_dimensions[letter].width = min(width + 2, MAX_AUTO_WIDTH)

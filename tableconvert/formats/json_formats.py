"""JSON and JSON Lines.

Numbers are read with their source text preserved (``RawNumber``) so that a
decimal such as ``1.10`` survives a CSV -> JSON -> CSV trip unchanged. The
writer is a small recursive serializer for the same reason: typed numbers are
emitted verbatim when their text is already valid JSON.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional, Sequence

from ..cleaning_utils import _dedupe_headers
from ..errors import ConversionWarning, EncodeError, WarningCode, skipped_record
from ..table import Table
from ..type_inference import DataKind
from .base import (
    BaseDecoder,
    BaseEncoder,
    RowStream,
    StreamingDecoder,
    StreamingEncoder,
    read_text,
    synthetic_columns,
    text_stream,
)

logger = logging.getLogger(__name__)

JSON_NUMBER = re.compile(r"-?(?:0|[1-9]\d*)(?:\.\d+)?(?:[eE][+-]?\d+)?")


class RawNumber(str):
    """A JSON number kept as the text it was written with."""


def loads(text: str) -> Any:
    return json.loads(
        text, parse_int=RawNumber, parse_float=RawNumber, parse_constant=RawNumber
    )


# -----------------------------
# Serialisation
# -----------------------------


def dumps(value: Any, indent: Optional[int] = None, _level: int = 0) -> str:
    """Serialise plain JSON data; ``RawNumber`` values are written unquoted."""
    if value is None:
        return "null"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, RawNumber):
        return str(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isfinite(value):
            return repr(value)
        return json.dumps(str(value))
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, dict):
        items = [(json.dumps(str(k), ensure_ascii=False), v) for k, v in value.items()]
        if not items:
            return "{}"
        if indent is None:
            return "{" + ",".join(f"{k}:{dumps(v)}" for k, v in items) + "}"
        pad = " " * (indent * (_level + 1))
        body = ",\n".join(f"{pad}{k}: {dumps(v, indent, _level + 1)}" for k, v in items)
        return "{\n" + body + "\n" + " " * (indent * _level) + "}"
    if isinstance(value, (list, tuple)):
        if not value:
            return "[]"
        if indent is None:
            return "[" + ",".join(dumps(v) for v in value) + "]"
        pad = " " * (indent * (_level + 1))
        body = ",\n".join(pad + dumps(v, indent, _level + 1) for v in value)
        return "[\n" + body + "\n" + " " * (indent * _level) + "]"
    return json.dumps(str(value), ensure_ascii=False)


def cell_text(value: Any) -> str:
    """Flatten a decoded JSON value into a cell string."""
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, (dict, list)):
        return dumps(value)
    return str(value)


def json_number(raw: str, value: Any) -> Any:
    """The JSON form of a typed numeric cell: source text when already valid."""
    text = raw.strip()
    if JSON_NUMBER.fullmatch(text):
        return RawNumber(text)
    if isinstance(value, float) and not math.isfinite(value):
        return raw
    return value


def typed_value(hints, index: int, raw: str) -> Any:
    typed = hints.cell(index, raw)
    if typed.kind is DataKind.NULL:
        return None
    if typed.kind in (DataKind.INTEGER, DataKind.FLOAT):
        return json_number(raw, typed.value)
    if typed.kind is DataKind.BOOLEAN:
        return typed.value
    return raw


# -----------------------------
# Decoding
# -----------------------------


class _KeyUnion:
    """Ordered union of object keys; rows are built against the final key list."""

    def __init__(self):
        self.keys: List[str] = []
        self._index: Dict[str, int] = {}

    def add(self, obj: Dict[str, Any]) -> None:
        for key in obj:
            if key not in self._index:
                self._index[key] = len(self.keys)
                self.keys.append(key)

    def row(self, obj: Dict[str, Any]) -> List[str]:
        cells = [""] * len(self.keys)
        for key, value in obj.items():
            cells[self._index[key]] = cell_text(value)
        return cells


class JsonDecoder(BaseDecoder):
    format_name = "json"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        try:
            data = loads(text) if text.strip() else []
        except json.JSONDecodeError as e:
            raise self.error(f"invalid JSON: {e.msg}", line=e.lineno, column=e.colno, offset=e.pos) from e

        table = Table(cancel=cancel)
        if isinstance(data, dict):
            self._decode_columnar(table, data)
        elif isinstance(data, list):
            self._decode_array(table, data, options)
        else:
            raise self.error("expected a JSON array or object at the top level", offset=0)
        return table

    def _decode_array(self, table, data: List[Any], options) -> None:
        if not data:
            return
        if all(isinstance(item, dict) for item in data):
            columnar = (options.extra_str("format") or "").lower() == "column"
            if columnar and all(
                len(item) == 1 and isinstance(next(iter(item.values())), list) for item in data
            ):
                merged: Dict[str, Any] = {}
                for item in data:
                    merged.update(item)
                self._decode_columnar(table, merged)
                return
            keys = _KeyUnion()
            for item in data:
                keys.add(item)
            table.columns = list(keys.keys)
            for item in data:
                table.append_row(keys.row(item))
            return
        if all(isinstance(item, list) for item in data):
            first = [cell_text(v) for v in data[0]]
            if options.header:
                table.columns = first
                body = data[1:]
            else:
                table.columns = synthetic_columns(max(len(r) for r in data))
                body = data
            for item in body:
                table.append_row([cell_text(v) for v in item])
            return
        for index, item in enumerate(data):
            if not isinstance(item, (dict, list)):
                raise self.error(f"array element {index} is a scalar; expected objects or arrays")
        raise self.error("array mixes objects and arrays")

    def _decode_columnar(self, table, data: Dict[str, Any]) -> None:
        if not all(isinstance(v, list) for v in data.values()):
            table.columns = list(data.keys())
            table.append_row([cell_text(v) for v in data.values()])
            return
        table.columns = list(data.keys())
        height = max((len(v) for v in data.values()), default=0)
        for i in range(height):
            table.append_row([cell_text(col[i]) if i < len(col) else "" for col in data.values()])


class JsonlDecoder(StreamingDecoder):
    """One object per line.

    ``decode`` unions keys across all lines; ``open_rows`` fixes the columns
    from the first object and reports keys that appear later.
    """

    format_name = "jsonl"

    def _objects(self, stream, options, warnings):
        for lineno, line in enumerate(text_stream(stream, options), start=1):
            if not line.strip():
                continue
            try:
                obj = loads(line)
            except json.JSONDecodeError as e:
                if not options.best_effort:
                    raise self.error(f"invalid JSON: {e.msg}", line=lineno, column=e.colno) from e
                logger.warning("Skipping invalid JSON line %d: %s", lineno, e.msg)
                warnings.append(skipped_record(f"invalid JSON: {e.msg}", line=lineno))
                continue
            if not isinstance(obj, dict):
                if not options.best_effort:
                    raise self.error("expected a JSON object", line=lineno)
                warnings.append(skipped_record("expected a JSON object", line=lineno))
                continue
            yield obj, lineno

    def decode(self, stream, options, cancel=None):
        table = Table(cancel=cancel)
        keys = _KeyUnion()
        objects = []
        for obj, lineno in self._objects(stream, options, table.warnings):
            table.checkpoint()
            keys.add(obj)
            objects.append((obj, lineno))
        table.columns = list(keys.keys)
        for obj, lineno in objects:
            table.append_row(keys.row(obj), lineno)
        return table

    def open_rows(self, stream, options, warnings):
        objects = self._objects(stream, options, warnings)
        first = next(objects, None)
        if first is None:
            return RowStream([], iter(()))
        columns = list(first[0].keys())

        def rows():
            known = set(columns)
            reported = set()
            for obj, lineno in _chain(first, objects):
                extra = [k for k in obj if k not in known and k not in reported]
                for key in extra:
                    reported.add(key)
                    warnings.append(
                        ConversionWarning(
                            code=WarningCode.DROPPED_COLUMN,
                            message=f"key '{key}' first seen after the header was fixed; dropped",
                            line=lineno,
                        )
                    )
                yield [cell_text(obj.get(c)) for c in columns], lineno

        return RowStream(columns, rows())


def _chain(first, rest):
    yield first
    yield from rest


# -----------------------------
# Encoding
# -----------------------------


class JsonEncoder(BaseEncoder):
    """``format`` extra: ``object`` (default), ``2d`` or ``column``."""

    format_name = "json"

    def encode(self, table, options, hints):
        layout = (options.extra_str("format", "object") or "object").lower()
        indent = 2 if options.pretty and not options.extra_bool("minify", False) else None
        keys = _dedupe_headers(list(table.columns))

        def values(row: Sequence[str]) -> List[Any]:
            return [typed_value(hints, i, cell) for i, cell in enumerate(row)]

        if layout == "2d":
            data: Any = [list(table.columns)] + [values(r) for r in table.iter_rows()]
        elif layout == "column":
            cols: Dict[str, List[Any]] = {k: [] for k in keys}
            for row in table.iter_rows():
                for key, value in zip(keys, values(row)):
                    cols[key].append(value)
            data = cols
        elif layout == "object":
            data = [dict(zip(keys, values(r))) for r in table.iter_rows()]
        else:
            raise EncodeError(
                f"unknown JSON layout {layout!r}; expected object, 2d or column",
                format_name=self.format_name,
            )
        return self.to_bytes(dumps(data, indent) + "\n", options)


class JsonlEncoder(StreamingEncoder):
    format_name = "jsonl"

    def begin(self, columns, options, hints, out):
        super().begin(columns, options, hints, out)
        self._keys = _dedupe_headers(list(columns))

    def write_row(self, row, index):
        obj = {k: typed_value(self.hints, i, cell) for i, (k, cell) in enumerate(zip(self._keys, row))}
        self.write_text(dumps(obj) + "\n")

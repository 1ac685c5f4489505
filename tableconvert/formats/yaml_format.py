"""YAML: a list of mappings, or a mapping of column name to list of values."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List

import yaml

from ..cleaning_utils import _dedupe_headers
from ..table import Table
from ..type_inference import DataKind
from .base import BaseDecoder, BaseEncoder, read_text, synthetic_columns
from .json_formats import dumps


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


def scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, dt.datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, (dict, list, tuple)):
        return dumps(_jsonable(value))
    return str(value)


class YamlDecoder(BaseDecoder):
    format_name = "yaml"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            location = {}
            if mark is not None:
                location = {"line": mark.line + 1, "column": mark.column + 1}
            raise self.error(f"invalid YAML: {e}", **location) from e

        table = Table(cancel=cancel)
        if data is None:
            return table
        if isinstance(data, dict):
            self._decode_mapping(table, data)
        elif isinstance(data, list):
            self._decode_list(table, data, options)
        else:
            raise self.error("expected a list of mappings or a mapping of columns")
        return table

    def _decode_mapping(self, table, data: Dict[Any, Any]) -> None:
        table.columns = [scalar_text(k) for k in data]
        columns = list(data.values())
        if not all(isinstance(v, list) for v in columns):
            table.append_row([scalar_text(v) for v in columns])
            return
        height = max((len(v) for v in columns), default=0)
        for i in range(height):
            table.append_row([scalar_text(c[i]) if i < len(c) else "" for c in columns])

    def _decode_list(self, table, data: List[Any], options) -> None:
        if not data:
            return
        if all(isinstance(item, dict) for item in data):
            keys: Dict[str, None] = {}
            for item in data:
                for key in item:
                    keys.setdefault(scalar_text(key), None)
            table.columns = list(keys)
            for item in data:
                values = {scalar_text(k): v for k, v in item.items()}
                table.append_row([scalar_text(values.get(c)) for c in table.columns])
        elif all(isinstance(item, list) for item in data):
            if options.header:
                table.columns = [scalar_text(v) for v in data[0]]
                body = data[1:]
            else:
                table.columns = synthetic_columns(max(len(r) for r in data))
                body = data
            for item in body:
                table.append_row([scalar_text(v) for v in item])
        else:
            raise self.error("list items must all be mappings or all be lists")


class YamlEncoder(BaseEncoder):
    format_name = "yaml"

    def encode(self, table, options, hints):
        keys = _dedupe_headers(list(table.columns))
        records = []
        for row in table.iter_rows():
            record = {}
            for i, (key, raw) in enumerate(zip(keys, row)):
                typed = hints.cell(i, raw)
                if typed.kind is DataKind.NULL:
                    record[key] = None
                elif typed.kind in (DataKind.INTEGER, DataKind.FLOAT, DataKind.BOOLEAN) and (
                    scalar_text(typed.value) == raw
                ):
                    # YAML re-reads floats as Python floats, so "1.10" stays a string
                    record[key] = typed.value
                else:
                    record[key] = raw
            records.append(record)
        text = yaml.safe_dump(
            records,
            allow_unicode=True,
            sort_keys=False,
            default_flow_style=not options.pretty,
            width=80 if options.pretty else 10**6,
        )
        return self.to_bytes(text, options)

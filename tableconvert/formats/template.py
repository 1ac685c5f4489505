"""Write-only output rendered through a user supplied Jinja2 template.

The template source comes from the ``template`` extra. Context:

    columns  list of column names
    rows     list of rows (lists of strings)
    records  list of dicts keyed by column name (duplicates disambiguated)
    types    column name -> inferred type name
"""

from __future__ import annotations

import html

from jinja2 import Environment, StrictUndefined, TemplateError

from ..cleaning_utils import _dedupe_headers
from ..errors import EncodeError
from .base import BaseEncoder
from .latex import escape as latex_escape
from .markdown_table import escape as markdown_escape
from .sql_insert import quote_identifier, quote_string


def csv_quote(value: str, delimiter: str = ",") -> str:
    if any(ch in value for ch in (delimiter, '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def csv_force_quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def sql_value(value: str, dialect: str = "mysql") -> str:
    if value.strip().upper() == "NULL":
        return "NULL"
    return quote_string(value, dialect)


FILTERS = {
    "csv_quote": csv_quote,
    "csv_force_quote": csv_force_quote,
    "html_escape": lambda s: html.escape(s, quote=True),
    "markdown_escape": lambda s: markdown_escape(s, full=True),
    "latex_escape": latex_escape,
    "sql_value": sql_value,
    "sql_identifier": lambda s, dialect="mysql": quote_identifier(s, dialect),
}


def build_environment() -> Environment:
    env = Environment(undefined=StrictUndefined, keep_trailing_newline=True, autoescape=False)
    env.filters.update(FILTERS)
    return env


class TemplateEncoder(BaseEncoder):
    format_name = "template"

    def encode(self, table, options, hints):
        source = options.extra_str("template")
        if not source:
            raise EncodeError("the template format needs a 'template' option", format_name=self.format_name)
        env = build_environment()
        keys = _dedupe_headers(list(table.columns))
        rows = list(table.iter_rows())
        context = {
            "columns": list(table.columns),
            "rows": rows,
            "records": [dict(zip(keys, r)) for r in rows],
            "types": hints.as_dict(),
        }
        try:
            text = env.from_string(source).render(**context)
        except TemplateError as e:
            raise EncodeError(f"template error: {e}", format_name=self.format_name) from e
        return self.to_bytes(text, options)

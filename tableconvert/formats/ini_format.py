"""INI files and plain ``key=value`` property files."""

from __future__ import annotations

import configparser
import io
import re

from ..errors import EncodeError
from ..table import Table
from .base import BaseDecoder, BaseEncoder, read_text

SECTION_COLUMN = "section"
KEY_VALUE_COLUMNS = ["key", "value"]

_SECTION_RE = re.compile(r"^\s*\[[^\]]*\]")
_COMMENT_PREFIXES = ("#", ";")


def _has_sections(text: str) -> bool:
    for line in text.splitlines():
        s = line.strip()
        if not s or s.startswith(_COMMENT_PREFIXES):
            continue
        return bool(_SECTION_RE.match(s))
    return False


def _parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(interpolation=None, strict=True)
    parser.optionxform = str
    return parser


class IniDecoder(BaseDecoder):
    """Sections become rows keyed by a ``section`` column; a file without
    sections becomes a two-column ``key``/``value`` table."""

    format_name = "ini"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        if not text.strip():
            return table
        sectioned = _has_sections(text)
        parser = _parser()
        source = text if sectioned else "[__root__]\n" + text
        try:
            parser.read_string(source)
        except configparser.Error as e:
            line = getattr(e, "lineno", None)
            if line is None and getattr(e, "errors", None):
                line = e.errors[0][0]
            if line is not None and not sectioned:
                line -= 1
            raise self.error(f"invalid INI: {e.message}", line=line) from e

        if not sectioned:
            table.columns = list(KEY_VALUE_COLUMNS)
            for key, value in parser.items("__root__", raw=True):
                table.append_row([key, value])
            return table

        columns = [SECTION_COLUMN]
        index = {SECTION_COLUMN: 0}
        records = []
        for section in parser.sections():
            items = parser.items(section, raw=True)
            for key, _ in items:
                if key not in index:
                    index[key] = len(columns)
                    columns.append(key)
            records.append((section, items))
        table.columns = columns
        for section, items in records:
            cells = [""] * len(columns)
            cells[0] = section
            for key, value in items:
                cells[index[key]] = value
            table.append_row(cells)
        return table


class IniEncoder(BaseEncoder):
    format_name = "ini"

    def encode(self, table, options, hints):
        if table.column_count == 0:
            raise EncodeError("INI output needs at least one column", format_name=self.format_name)
        if [c.lower() for c in table.columns] == KEY_VALUE_COLUMNS:
            return self._key_values(table, options)

        parser = _parser()
        keys = table.columns[1:]
        for key in keys:
            if not key.strip() or any(ch in key for ch in "=:[]\n"):
                raise EncodeError(f"column {key!r} cannot be used as an INI key", column=key, format_name=self.format_name)
        for index, row in enumerate(table.iter_rows()):
            section = row[0].strip()
            if not section:
                raise EncodeError(
                    "INI sections need a non-empty first column",
                    row_index=index,
                    column=table.columns[0],
                    format_name=self.format_name,
                )
            try:
                parser.add_section(section)
            except (configparser.DuplicateSectionError, ValueError) as e:
                raise EncodeError(str(e), row_index=index, format_name=self.format_name) from e
            for key, value in zip(keys, row[1:]):
                parser.set(section, key, value)
        buf = io.StringIO()
        parser.write(buf)
        return self.to_bytes(buf.getvalue(), options)

    def _key_values(self, table, options):
        lines = []
        for index, (key, value) in enumerate(table.iter_rows()):
            if not key.strip() or any(ch in key for ch in "=:[\n"):
                raise EncodeError(f"{key!r} cannot be used as an INI key", row_index=index, format_name=self.format_name)
            lines.append(f"{key} = " + value.replace("\n", "\n\t"))
        return self.to_bytes("\n".join(lines) + "\n", options)

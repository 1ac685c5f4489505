"""TWiki / Foswiki tables: ``|=Header=|`` or ``| *Header* |`` rows followed by ``| cell |`` rows."""

from __future__ import annotations

import re
from typing import List

from ..errors import EncodeError
from ..table import Table
from .base import BaseDecoder, BaseEncoder, read_text, synthetic_columns
from .text_grid import strip_closing_pipe

_BOLD_RE = re.compile(r"^\*(.*)\*$", re.DOTALL)
_BR_RE = re.compile(r"<br\s*/?>|%BR%", re.IGNORECASE)


def split_row(line: str) -> List[str]:
    body = strip_closing_pipe(line.strip()[1:])
    cells, current, i = [], [], 0
    while i < len(body):
        if body[i] == "\\" and i + 1 < len(body) and body[i + 1] in "|\\":
            current.append(body[i + 1])
            i += 2
            continue
        if body[i] == "|":
            cells.append("".join(current))
            current = []
        else:
            current.append(body[i])
        i += 1
    cells.append("".join(current))
    return cells


def header_cell(raw: str) -> tuple:
    """Return ``(text, is_header)`` for a raw cell."""
    s = raw.strip()
    if len(s) >= 2 and s.startswith("=") and s.endswith("="):
        return s[1:-1].strip(), True
    m = _BOLD_RE.match(s)
    if m:
        return m.group(1).strip(), True
    return s, False


def _text(raw: str) -> str:
    return _BR_RE.sub("\n", raw)


class TwikiDecoder(BaseDecoder):
    format_name = "twiki"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        rows = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            s = line.strip()
            if not s:
                if rows:
                    break
                continue
            if not s.startswith("|"):
                if rows:
                    break
                continue
            rows.append((split_row(s), lineno))

        if not rows:
            if text.strip():
                raise self.error("no TWiki table rows found")
            return table
        first = rows[0][0]
        parsed = [header_cell(c) for c in first]
        if options.header:
            table.columns = [_text(t) for t, _ in parsed]
            body = rows[1:]
        else:
            table.columns = synthetic_columns(len(first))
            body = rows
        for cells, lineno in body:
            table.append_row([_text(c.strip()) for c in cells], lineno)
        return table


def _escape(cell: str) -> str:
    cell = cell.replace("\\", "\\\\").replace("|", "\\|")
    return cell.replace("\r\n", "<br />").replace("\n", "<br />")


class TwikiEncoder(BaseEncoder):
    format_name = "twiki"

    def encode(self, table, options, hints):
        if table.column_count == 0:
            raise EncodeError("a TWiki table needs at least one column", format_name=self.format_name)
        lines = []
        if options.header:
            lines.append("|" + "|".join(f"={_escape(c)}=" for c in table.columns) + "|")
        for row in table.iter_rows():
            lines.append("|" + "|".join(f" {_escape(c)} " for c in row) + "|")
        return self.to_bytes("\n".join(lines) + "\n", options)

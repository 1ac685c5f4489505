"""GitHub-flavoured Markdown pipe tables."""

from __future__ import annotations

import re
from typing import List

from ..errors import EncodeError
from ..table import Table
from .base import BaseDecoder, BaseEncoder, read_text, synthetic_columns
from .text_grid import column_widths, pad, parse_alignments, strip_closing_pipe

MARKDOWN_SPECIAL = "\\`*_{}[]()#+-.!|~"
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_ESCAPE_RE = re.compile(r"\\([!-/:-@\[-`{-~])")
_SEPARATOR_CELL_RE = re.compile(r"^:?-+:?$")


def split_row(line: str) -> List[str]:
    """Split a ``| a | b |`` line on unescaped pipes; escapes are kept for ``unescape``."""
    body = line.strip()
    if body.startswith("|"):
        body = body[1:]
    body = strip_closing_pipe(body)
    cells, current, i = [], [], 0
    while i < len(body):
        ch = body[i]
        if ch == "\\" and i + 1 < len(body):
            current.append(body[i : i + 2])
            i += 2
            continue
        if ch == "|":
            cells.append("".join(current))
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current))
    return cells


def unescape(cell: str) -> str:
    cell = _BR_RE.sub("\n", cell.strip())
    return _ESCAPE_RE.sub(r"\1", cell)


def escape(cell: str, full: bool = False) -> str:
    specials = MARKDOWN_SPECIAL if full else "\\|"
    out = "".join("\\" + ch if ch in specials else ch for ch in cell)
    return out.replace("\r\n", "<br>").replace("\n", "<br>").replace("\r", "<br>")


def is_separator(line: str) -> bool:
    cells = [c.strip() for c in split_row(line)]
    return bool(cells) and all(_SEPARATOR_CELL_RE.match(c) for c in cells)


class MarkdownDecoder(BaseDecoder):
    format_name = "markdown"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        header = None
        header_line = 0
        found_separator = False
        saw_content = False

        for lineno, line in enumerate(text.splitlines(), start=1):
            stripped = line.strip()
            if stripped.startswith("```"):
                if found_separator:
                    break
                continue
            if not stripped:
                if found_separator:
                    break
                continue
            saw_content = True
            if header is None:
                if stripped.startswith("|"):
                    header = [unescape(c) for c in split_row(stripped)]
                    header_line = lineno
                continue
            if not found_separator:
                if not is_separator(stripped):
                    raise self.error("expected a separator row such as |---|---| after the header", line=lineno)
                width = len(split_row(stripped))
                if width != len(header):
                    raise self.error(
                        f"separator row has {width} columns, header has {len(header)}", line=lineno
                    )
                found_separator = True
                if options.header:
                    table.columns = header
                else:
                    table.columns = synthetic_columns(len(header))
                    table.append_row(header, header_line)
                continue
            if not stripped.startswith("|"):
                break
            table.append_row([unescape(c) for c in split_row(stripped)], lineno)

        if header is None:
            if saw_content:
                raise self.error("no Markdown table found in input")
            return table
        if not found_separator:
            raise self.error("header row is not followed by a separator row", line=header_line)
        return table


class MarkdownEncoder(BaseEncoder):
    """Extras: ``align`` (``l,c,r`` per column), ``escape``, ``bold_header``,
    ``bold_first_column``. ``pretty=false`` drops the padding."""

    format_name = "markdown"

    def encode(self, table, options, hints):
        full_escape = options.extra_bool("escape", False)
        bold_header = options.extra_bool("bold_header", False)
        bold_first = options.extra_bool("bold_first_column", False)
        count = table.column_count
        if count == 0:
            raise EncodeError("a Markdown table needs at least one column", format_name=self.format_name)
        aligns = parse_alignments(options.extra_str("align"), count)

        headers = []
        for i, name in enumerate(table.columns):
            cell = escape(name, full_escape)
            if bold_header or (bold_first and i == 0):
                cell = f"**{cell}**"
            headers.append(cell)
        rows = []
        for row in table.iter_rows():
            cells = [escape(c, full_escape) for c in row]
            if bold_first and cells and cells[0]:
                cells[0] = f"**{cells[0]}**"
            rows.append(cells)

        lines = []
        if options.pretty:
            widths = column_widths([headers] + rows, count, minimum=1)
            lines.append(self._line(headers, widths, aligns))
            lines.append("|" + "|".join(self._rule(w, a) for w, a in zip(widths, aligns)) + "|")
            lines.extend(self._line(r, widths, aligns) for r in rows)
        else:
            lines.append("|" + "|".join(headers) + "|")
            lines.append("|" + "|".join(self._rule(1, a) for a in aligns) + "|")
            lines.extend("|" + "|".join(r) + "|" for r in rows)
        return self.to_bytes("\n".join(lines) + "\n", options)

    @staticmethod
    def _line(cells, widths, aligns) -> str:
        return "|" + "|".join(f" {pad(c, w, a)} " for c, w, a in zip(cells, widths, aligns)) + "|"

    @staticmethod
    def _rule(width: int, align: str) -> str:
        if align == "c":
            return ":" + "-" * width + ":"
        if align == "r":
            return "-" * (width + 1) + ":"
        return "-" * (width + 2)

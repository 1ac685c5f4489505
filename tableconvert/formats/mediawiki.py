"""MediaWiki table markup (``{| ... |}``)."""

from __future__ import annotations

import re
from typing import List, Optional

from ..errors import EncodeError
from ..table import Table
from .base import BaseDecoder, BaseEncoder, read_text, synthetic_columns

PIPE_TEMPLATE = "{{!}}"
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_ATTR_RE = re.compile(r"^\s*[\w-]+\s*=")


def _cell_value(raw: str) -> str:
    # "style=... | value": attributes precede a single pipe
    if "|" in raw:
        attrs, value = raw.split("|", 1)
        if _ATTR_RE.match(attrs):
            raw = value
    return _BR_RE.sub("\n", raw.strip().replace(PIPE_TEMPLATE, "|"))


def _escape(cell: str) -> str:
    return cell.replace("|", PIPE_TEMPLATE).replace("\r\n", "<br />").replace("\n", "<br />")


class MediaWikiDecoder(BaseDecoder):
    format_name = "mediawiki"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        rows: List[tuple] = []  # (cells, line)
        current: Optional[List[str]] = None
        current_line = 0
        in_table = False
        found = False

        def close_row():
            nonlocal current
            if current:
                rows.append((current, current_line))
            current = None

        for lineno, line in enumerate(text.splitlines(), start=1):
            s = line.strip()
            if s.startswith("{|"):
                if found:
                    break
                in_table = found = True
                continue
            if not in_table:
                continue
            if s.startswith("|}"):
                close_row()
                in_table = False
                break
            if s.startswith("|+"):
                continue
            if s.startswith("|-"):
                close_row()
                continue
            if s.startswith("!") or s.startswith("|"):
                if current is None:
                    current, current_line = [], lineno
                is_header = s.startswith("!")
                body = s[1:]
                parts = body.split("!!") if is_header else body.split("||")
                if is_header and len(parts) == 1 and "||" in body:
                    parts = body.split("||")
                current.extend(_cell_value(p) for p in parts)
            elif current:
                current[-1] = (current[-1] + "\n" + _cell_value(s)).strip("\n")

        if not found:
            if text.strip():
                raise self.error("no {| ... |} table found")
            return table
        if in_table:
            close_row()

        if not rows:
            return table
        if options.header:
            table.columns = rows[0][0]
            body_rows = rows[1:]
        else:
            table.columns = synthetic_columns(len(rows[0][0]))
            body_rows = rows
        for cells, line in body_rows:
            table.append_row(cells, line)
        return table


class MediaWikiEncoder(BaseEncoder):
    """Extras: ``class`` (default ``wikitable``), ``caption``."""

    format_name = "mediawiki"

    def encode(self, table, options, hints):
        if table.column_count == 0:
            raise EncodeError("a wiki table needs at least one column", format_name=self.format_name)
        css = options.extra_str("class", "wikitable")
        lines = [f'{{| class="{css}"' if css else "{|"]
        caption = options.extra_str("caption")
        if caption:
            lines.append("|+ " + _escape(caption))
        need_rule = False
        if options.header:
            lines.append("! " + " !! ".join(_escape(c) for c in table.columns))
            need_rule = True
        for row in table.iter_rows():
            if need_rule:
                lines.append("|-")
            lines.append("| " + " || ".join(_escape(c) for c in row))
            need_rule = True
        lines.append("|}")
        return self.to_bytes("\n".join(lines) + "\n", options)

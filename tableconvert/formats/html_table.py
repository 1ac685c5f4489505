"""HTML ``<table>`` markup."""

from __future__ import annotations

import html
import logging
import re
from html.parser import HTMLParser
from typing import Any, Dict, List, Optional

from ..table import Table
from .base import BaseDecoder, StreamingEncoder, read_text, synthetic_columns

logger = logging.getLogger(__name__)

_WS_RE = re.compile(r"\s+")


class _ParsedTable:
    def __init__(self, table_id: Optional[str]):
        self.id = table_id
        self.rows: List[tuple] = []  # (cells, line)


class _TableCollector(HTMLParser):
    """Collect every ``<table>`` in the document, nested tables included."""

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.tables: List[_ParsedTable] = []
        self._stack: List[Dict[str, Any]] = []

    @property
    def _current(self) -> Optional[Dict[str, Any]]:
        return self._stack[-1] if self._stack else None

    def handle_starttag(self, tag, attrs):
        attrs = dict(attrs)
        cur = self._current
        if tag == "table":
            parsed = _ParsedTable(attrs.get("id"))
            self.tables.append(parsed)
            self._stack.append(
                {"table": parsed, "row": None, "cell": None, "line": 0}
            )
        elif cur is None:
            return
        elif tag == "tr":
            self._close_row()
            cur["row"] = []
            cur["line"] = self.getpos()[0]
        elif tag in ("td", "th"):
            self._close_cell()
            if cur["row"] is None:
                cur["row"] = []
                cur["line"] = self.getpos()[0]
            try:
                span = max(1, int(attrs.get("colspan") or 1))
            except ValueError:
                span = 1
            cur["cell"] = {"lines": [[]], "span": span}
        elif tag == "br" and cur["cell"] is not None:
            cur["cell"]["lines"].append([])

    def handle_startendtag(self, tag, attrs):
        self.handle_starttag(tag, attrs)

    def handle_endtag(self, tag):
        cur = self._current
        if cur is None:
            return
        if tag in ("td", "th"):
            self._close_cell()
        elif tag == "tr":
            self._close_row()
        elif tag == "thead":
            self._close_row()
        elif tag == "table":
            self._close_row()
            self._stack.pop()

    def handle_data(self, data):
        cur = self._current
        if cur is not None and cur["cell"] is not None:
            cur["cell"]["lines"][-1].append(data)

    def _close_cell(self):
        cur = self._current
        cell = cur["cell"]
        if cell is None:
            return
        text = "\n".join(_WS_RE.sub(" ", "".join(parts)).strip() for parts in cell["lines"])
        cur["row"].append(text)
        cur["row"].extend([""] * (cell["span"] - 1))
        cur["cell"] = None

    def _close_row(self):
        cur = self._current
        self._close_cell()
        if cur["row"] is not None:
            row = cur["row"]
            cur["table"].rows.append((row, cur["line"]))
            cur["row"] = None

    def close(self):
        super().close()
        while self._stack:
            self._close_row()
            self._stack.pop()


class HtmlDecoder(BaseDecoder):
    """``sheet`` selects a table by position (0-based) or by ``id``."""

    format_name = "html"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        if not text.strip():
            return table
        collector = _TableCollector()
        collector.feed(text)
        collector.close()
        if not collector.tables:
            raise self.error("no <table> element found")
        parsed = self._select(collector.tables, options.sheet)

        rows = [r for r in parsed.rows if r[0]]
        if not rows:
            return table
        if options.header:
            table.columns = list(rows[0][0])
            body = rows[1:]
        else:
            table.columns = synthetic_columns(max(len(r[0]) for r in rows))
            body = rows
        for cells, line in body:
            table.append_row(cells, line)
        logger.debug("Decoded HTML table %r with %d rows", parsed.id, table.row_count)
        return table

    def _select(self, tables: List[_ParsedTable], sheet) -> _ParsedTable:
        if sheet is None:
            return tables[0]
        if isinstance(sheet, int):
            if 0 <= sheet < len(tables):
                return tables[sheet]
            raise self.error(f"table index {sheet} out of range; document has {len(tables)} table(s)")
        for parsed in tables:
            if parsed.id == sheet:
                return parsed
        raise self.error(f"no table with id {sheet!r}")


class HtmlEncoder(StreamingEncoder):
    """Extras: ``thead``, ``div``, ``minify``, ``escape`` (default true), ``id``."""

    format_name = "html"

    def begin(self, columns, options, hints, out):
        super().begin(columns, options, hints, out)
        self._minify = options.extra_bool("minify", False) or not options.pretty
        self._escape = options.extra_bool("escape", True)
        self._div = options.extra_bool("div", False)
        self._thead = options.extra_bool("thead", False)
        self._nl = "" if self._minify else "\n"
        self._indent = "" if self._minify else "  "
        self._body_open = False

        table_id = options.extra_str("id")
        attr = f' id="{html.escape(table_id)}"' if table_id else ""
        if self._div:
            self._emit(0, f'<div class="table"{attr}>')
        else:
            self._emit(0, f"<table{attr}>")
        if options.header:
            if self._thead:
                self._emit(1, self._open("thead"))
            self._write_cells(self.columns, "th")
            if self._thead:
                self._emit(1, self._close("thead"))
        if self._thead:
            self._emit(1, self._open("tbody"))
            self._body_open = True

    def _open(self, name: str) -> str:
        return f'<div class="{name}">' if self._div else f"<{name}>"

    def _close(self, name: str) -> str:
        return "</div>" if self._div else f"</{name}>"

    def _emit(self, depth: int, text: str) -> None:
        self.write_text(self._indent * depth + text + self._nl)

    def _cell_text(self, cell: str) -> str:
        if not self._escape:
            return cell
        text = html.escape(cell, quote=False)
        return text.replace("\r\n", "<br>").replace("\n", "<br>")

    def _write_cells(self, cells, tag: str) -> None:
        depth = 2 if self._thead else 1
        self._emit(depth, self._open("tr"))
        for cell in cells:
            if self._div:
                self._emit(depth + 1, f'<div class="{tag}">{self._cell_text(cell)}</div>')
            else:
                self._emit(depth + 1, f"<{tag}>{self._cell_text(cell)}</{tag}>")
        self._emit(depth, self._close("tr"))

    def write_row(self, row, index):
        self._write_cells(row, "td")

    def finish(self):
        if self._body_open:
            self._emit(1, self._close("tbody"))
        self._emit(0, self._close("table"))

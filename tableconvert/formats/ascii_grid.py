"""MySQL client style ``+---+`` bordered tables."""

from __future__ import annotations

from typing import List, Optional

from ..errors import EncodeError
from ..table import Table
from ..type_inference import NUMERIC_KINDS
from .base import BaseDecoder, BaseEncoder, read_text, synthetic_columns
from .text_grid import column_widths, display_width, pad, parse_alignments


def is_border(line: str) -> bool:
    s = line.strip()
    return len(s) >= 2 and s[0] == "+" and s[-1] == "+" and set(s) <= {"+", "-", "="}


def is_data(line: str) -> bool:
    s = line.strip()
    return len(s) >= 2 and s[0] == "|" and s[-1] == "|"


def border_anchors(line: str) -> List[int]:
    s = line.strip()
    return [i for i, ch in enumerate(s) if ch == "+"]


def split_by_anchors(line: str, anchors: List[int]) -> Optional[List[str]]:
    """Cut a data line at the border's ``+`` columns, measured in display width.

    Returns ``None`` when the line does not have a ``|`` at every anchor.
    """
    s = line.strip()
    cells: List[str] = []
    column = 0
    current: List[str] = []
    next_anchor = 0
    for ch in s:
        if next_anchor < len(anchors) and column == anchors[next_anchor]:
            if ch != "|":
                return None
            if next_anchor > 0:
                cells.append("".join(current).strip())
            current = []
            next_anchor += 1
        else:
            current.append(ch)
        column += max(display_width(ch), 0)
    if next_anchor != len(anchors):
        return None
    return cells


class AsciiGridDecoder(BaseDecoder):
    format_name = "ascii"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        anchors: List[int] = []
        header: Optional[List[str]] = None
        state = "start"

        for lineno, line in enumerate(text.splitlines(), start=1):
            if not line.strip():
                continue
            if state == "start":
                if is_border(line):
                    anchors = border_anchors(line)
                    state = "header"
                continue
            if state == "header":
                if not is_data(line):
                    raise self.error("expected a header row after the top border", line=lineno)
                header = self._cells(line, anchors)
                state = "separator"
            elif state == "separator":
                if not is_border(line):
                    raise self.error("expected a border line after the header row", line=lineno)
                if options.header:
                    table.columns = header
                else:
                    table.columns = synthetic_columns(len(header))
                    table.append_row(header, lineno - 1)
                state = "data"
            elif state == "data":
                if is_border(line):
                    break
                if not is_data(line):
                    raise self.error("expected a data row or the bottom border", line=lineno)
                table.append_row(self._cells(line, anchors), lineno)

        if state == "header":
            raise self.error("table has a top border but no header row")
        if state == "separator":
            table.columns = header if options.header else synthetic_columns(len(header))
        return table

    @staticmethod
    def _cells(line: str, anchors: List[int]) -> List[str]:
        cells = split_by_anchors(line, anchors)
        if cells is None:
            cells = [c.strip() for c in line.strip()[1:-1].split("|")]
        return cells


class AsciiGridEncoder(BaseEncoder):
    """Numeric columns are right-aligned, as the MySQL client does; ``align`` overrides."""

    format_name = "ascii"

    def encode(self, table, options, hints):
        count = table.column_count
        if count == 0:
            raise EncodeError("a bordered table needs at least one column", format_name=self.format_name)
        if options.extra_str("align"):
            aligns = parse_alignments(options.extra_str("align"), count)
        else:
            aligns = ["r" if hints.kind(i) in NUMERIC_KINDS else "l" for i in range(count)]

        rows = [[_flatten(c) for c in row] for row in table.iter_rows()]
        headers = [_flatten(c) for c in table.columns]
        widths = column_widths([headers] + rows, count)
        border = "+" + "+".join("-" * (w + 2) for w in widths) + "+"

        def line(cells, header=False):
            return "|" + "|".join(
                f" {pad(c, w, 'l' if header else a)} " for c, w, a in zip(cells, widths, aligns)
            ) + "|"

        lines = [border, line(headers, header=True), border]
        lines.extend(line(r) for r in rows)
        lines.append(border)
        return self.to_bytes("\n".join(lines) + "\n", options)


def _flatten(cell: str) -> str:
    return cell.replace("\r\n", " ").replace("\n", " ").replace("\r", " ")

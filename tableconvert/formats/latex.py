"""LaTeX ``tabular`` environments."""

from __future__ import annotations

import re
from typing import List

from ..errors import EncodeError
from ..table import Table
from .base import BaseDecoder, BaseEncoder, read_text, synthetic_columns
from .text_grid import parse_alignments

_ESCAPES = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_UNESCAPE_RE = re.compile(
    r"\\textbackslash(?:\{\})?|\\textasciitilde(?:\{\})?|\\textasciicircum(?:\{\})?"
    r"|\\\^\{\}|\\~\{\}|\\([&%$#_{} ])"
)
_UNESCAPES = {
    "\\textbackslash": "\\",
    "\\textasciitilde": "~",
    "\\textasciicircum": "^",
    "\\^": "^",
    "\\~": "~",
}
_BEGIN_RE = re.compile(r"\\begin\{tabular\*?\}")
_END_RE = re.compile(r"\\end\{tabular\*?\}")
_RULE_RE = re.compile(r"\\(?:hline|toprule|midrule|bottomrule)\b|\\cline\{[^}]*\}")


def escape(text: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def unescape(text: str) -> str:
    def repl(m: re.Match) -> str:
        if m.group(1) is not None:
            return m.group(1)
        token = m.group(0)
        if token.endswith("{}"):
            token = token[:-2]
        return _UNESCAPES[token]

    return _UNESCAPE_RE.sub(repl, text)


def _skip_group(text: str, pos: int) -> int:
    """Return the index just past the balanced ``{...}`` group starting at ``pos``."""
    depth = 0
    for i in range(pos, len(text)):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return i + 1
    return len(text)


def _split_unescaped(text: str, sep: str) -> List[str]:
    parts, current, i = [], [], 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            if text.startswith(sep, i):
                parts.append("".join(current))
                current = []
                i += len(sep)
                continue
            current.append(text[i : i + 2])
            i += 2
            continue
        if text.startswith(sep, i):
            parts.append("".join(current))
            current = []
            i += len(sep)
            continue
        current.append(text[i])
        i += 1
    parts.append("".join(current))
    return parts


class LatexDecoder(BaseDecoder):
    format_name = "latex"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        table = Table(cancel=cancel)
        begin = _BEGIN_RE.search(text)
        if begin is None:
            if text.strip():
                raise self.error("no tabular environment found")
            return table
        pos = begin.end()
        if begin.group(0).endswith("*}"):
            pos = _skip_group(text, pos)
        while pos < len(text) and text[pos] in " \t":
            pos += 1
        if pos < len(text) and text[pos] == "[":
            pos = text.index("]", pos) + 1
        pos = _skip_group(text, pos)
        end = _END_RE.search(text, pos)
        if end is None:
            raise self.error("tabular environment is not closed", line=text.count("\n", 0, begin.start()) + 1)

        body = _RULE_RE.sub("", text[pos : end.start()])
        base_line = text.count("\n", 0, pos) + 1
        offset = 0
        rows = []
        for chunk in _split_unescaped(body, "\\\\"):
            line = base_line + body.count("\n", 0, offset + len(chunk) - len(chunk.lstrip()))
            offset += len(chunk) + 2
            if not chunk.strip():
                continue
            cells = [unescape(c.strip()) for c in _split_unescaped(chunk.strip(), "&")]
            rows.append((cells, line))
        if not rows:
            return table
        if options.header:
            table.columns = rows[0][0]
            rows = rows[1:]
        else:
            table.columns = synthetic_columns(len(rows[0][0]))
        for cells, line in rows:
            table.append_row(cells, line)
        return table


class LatexEncoder(BaseEncoder):
    """Extras: ``align`` (``l,c,r``), ``borders`` (vertical rules between columns)."""

    format_name = "latex"

    def encode(self, table, options, hints):
        count = table.column_count
        if count == 0:
            raise EncodeError("a tabular needs at least one column", format_name=self.format_name)
        aligns = parse_alignments(options.extra_str("align"), count)
        if options.extra_bool("borders", False):
            spec = "|" + "|".join(aligns) + "|"
        else:
            spec = "".join(aligns)

        lines = [f"\\begin{{tabular}}{{{spec}}}", "\\hline"]
        if options.header:
            lines.append(" & ".join(escape(c) for c in table.columns) + " \\\\")
            lines.append("\\hline")
        for row in table.iter_rows():
            lines.append(" & ".join(escape(c) for c in row) + " \\\\")
            lines.append("\\hline")
        lines.append("\\end{tabular}")
        return self.to_bytes("\n".join(lines) + "\n", options)

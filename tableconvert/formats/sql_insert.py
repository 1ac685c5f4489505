"""SQL ``INSERT`` / ``REPLACE`` statements.

The decoder understands dump files: statements other than inserts (``CREATE``,
``SET``, ``LOCK``, comments) are skipped, and column lists from separate
statements are merged in the order they are first seen.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Dict, Iterator, List, NamedTuple, Optional, Tuple

from ..errors import EncodeError, skipped_record
from ..table import Table
from ..type_inference import DataKind
from .base import BaseDecoder, StreamingEncoder, read_text, synthetic_columns

logger = logging.getLogger(__name__)

DIALECTS = ("mysql", "postgresql", "oracle", "mssql", "sqlite", "none")
DIALECT_ALIASES = {"postgres": "postgresql", "pg": "postgresql", "sqlserver": "mssql"}

_INSERT_RE = re.compile(
    r"^\s*(?:INSERT|REPLACE)\s+(?:(?:LOW_PRIORITY|DELAYED|HIGH_PRIORITY|IGNORE)\s+)*INTO\b",
    re.IGNORECASE,
)
_SQL_NUMBER = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")
# Keywords that may start a clause after the VALUES list.
_TRAILING_CLAUSES = ("ON", "RETURNING")

_MYSQL_UNESCAPE = {"0": "\0", "b": "\b", "n": "\n", "r": "\r", "t": "\t", "Z": "\x1a"}
_MYSQL_ESCAPE = {"\\": "\\\\", "'": "\\'", "\0": "\\0", "\n": "\\n", "\r": "\\r", "\x1a": "\\Z"}


def normalize_dialect(name: Optional[str]) -> str:
    dialect = (name or "mysql").strip().lower()
    dialect = DIALECT_ALIASES.get(dialect, dialect)
    if dialect not in DIALECTS:
        raise ValueError(f"unknown SQL dialect {name!r}; expected one of {', '.join(DIALECTS)}")
    return dialect


# -----------------------------
# Escaping
# -----------------------------


def quote_identifier(name: str, dialect: str) -> str:
    if dialect == "mysql":
        return "`" + name.replace("`", "``") + "`"
    if dialect in ("postgresql", "oracle", "sqlite"):
        return '"' + name.replace('"', '""') + '"'
    if dialect == "mssql":
        return "[" + name.replace("]", "]]") + "]"
    return name


def quote_string(value: str, dialect: str) -> str:
    if dialect == "mysql":
        return "'" + "".join(_MYSQL_ESCAPE.get(ch, ch) for ch in value) + "'"
    return "'" + value.replace("'", "''") + "'"


# -----------------------------
# Tokenizer
# -----------------------------


class Token(NamedTuple):
    kind: str  # string, qident, number, punct, word
    value: str
    start: int
    end: int


def split_statements(text: str, backslash_escapes: bool = True) -> Iterator[Tuple[str, int]]:
    """Yield ``(statement, start_line)`` split on semicolons outside quotes and comments.

    ``backslash_escapes`` must match the tokenizer: only MySQL treats ``\\`` as an
    escape inside string literals.
    """
    start = 0
    i = 0
    n = len(text)
    buf: List[str] = []
    while i < n:
        ch = text[i]
        if ch in "'\"`":
            j = i + 1
            while j < n:
                if backslash_escapes and text[j] == "\\" and ch != "`":
                    j += 2
                    continue
                if text[j] == ch:
                    if j + 1 < n and text[j + 1] == ch:
                        j += 2
                        continue
                    break
                j += 1
            buf.append(text[i : j + 1])
            i = j + 1
            continue
        if ch == "-" and text.startswith("--", i) or ch == "#":
            j = text.find("\n", i)
            i = n if j < 0 else j
            continue
        if ch == "/" and text.startswith("/*", i):
            j = text.find("*/", i + 2)
            i = n if j < 0 else j + 2
            continue
        if ch == ";":
            stmt = "".join(buf)
            if stmt.strip():
                yield stmt, _line_of(text, start, stmt)
            buf = []
            start = i + 1
            i += 1
            continue
        buf.append(ch)
        i += 1
    stmt = "".join(buf)
    if stmt.strip():
        yield stmt, _line_of(text, start, stmt)


def _line_of(text: str, start: int, stmt: str) -> int:
    leading = len(stmt) - len(stmt.lstrip())
    return text.count("\n", 0, start) + stmt.count("\n", 0, leading) + 1


class _Tokenizer:
    _PUNCT = "(),.;="
    _WORD_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
    _NUM_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

    def __init__(self, text: str, backslash_escapes: bool):
        self.text = text
        self.backslash_escapes = backslash_escapes

    def tokens(self) -> List[Token]:
        text, i, n = self.text, 0, len(self.text)
        out: List[Token] = []
        while i < n:
            ch = text[i]
            if ch.isspace():
                i += 1
            elif ch == "'":
                value, end = self._string(i)
                out.append(Token("string", value, i, end))
                i = end
            elif ch in '"`[':
                close = {'"': '"', "`": "`", "[": "]"}[ch]
                j = i + 1
                chars = []
                while True:
                    if j >= n:
                        raise ValueError(f"unterminated identifier starting at offset {i}")
                    if text[j] == close:
                        if j + 1 < n and text[j + 1] == close:
                            chars.append(close)
                            j += 2
                            continue
                        break
                    chars.append(text[j])
                    j += 1
                out.append(Token("qident", "".join(chars), i, j + 1))
                i = j + 1
            elif ch in self._PUNCT:
                out.append(Token("punct", ch, i, i + 1))
                i += 1
            else:
                m = self._NUM_RE.match(text, i) if (ch.isdigit() or ch in "+-.") else None
                if m:
                    out.append(Token("number", m.group(0), i, m.end()))
                    i = m.end()
                    continue
                m = self._WORD_RE.match(text, i)
                if m:
                    out.append(Token("word", m.group(0), i, m.end()))
                    i = m.end()
                    continue
                out.append(Token("punct", ch, i, i + 1))
                i += 1
        return out

    def _string(self, i: int) -> Tuple[str, int]:
        text, n = self.text, len(self.text)
        j = i + 1
        chars = []
        while j < n:
            ch = text[j]
            if ch == "\\" and self.backslash_escapes and j + 1 < n:
                nxt = text[j + 1]
                chars.append(_MYSQL_UNESCAPE.get(nxt, nxt))
                j += 2
                continue
            if ch == "'":
                if j + 1 < n and text[j + 1] == "'":
                    chars.append("'")
                    j += 2
                    continue
                return "".join(chars), j + 1
            chars.append(ch)
            j += 1
        raise ValueError(f"unterminated string literal starting at offset {i}")


# -----------------------------
# Decoding
# -----------------------------


class _Insert(NamedTuple):
    columns: Optional[List[str]]
    rows: List[List[str]]


class SqlDecoder(BaseDecoder):
    """Extras: ``dialect`` (backslash escapes are honoured for ``mysql``)."""

    format_name = "sql"

    def decode(self, stream, options, cancel=None):
        text = read_text(stream, options, self.format_name)
        try:
            dialect = normalize_dialect(options.extra_str("dialect"))
        except ValueError as e:
            raise self.error(str(e)) from e
        table = Table(cancel=cancel)
        index_of: Dict[str, int] = {}

        for number, (statement, line) in enumerate(split_statements(text, dialect == "mysql"), start=1):
            table.checkpoint()
            if not _INSERT_RE.match(statement):
                logger.debug("Skipping non-insert statement %d at line %d", number, line)
                continue
            try:
                insert = self._parse_insert(statement, dialect == "mysql")
            except ValueError as e:
                if not options.best_effort:
                    raise self.error(f"malformed INSERT: {e}", statement=number, line=line) from e
                logger.warning("Skipping malformed statement %d at line %d: %s", number, line, e)
                table.warn(skipped_record(f"statement {number}: {e}", line=line))
                continue

            if insert.columns is None:
                if not table.columns and insert.rows:
                    table.columns = synthetic_columns(len(insert.rows[0]))
                    index_of = {c: i for i, c in enumerate(table.columns)}
                for row in insert.rows:
                    table.append_row(row, line)
                continue

            for name in insert.columns:
                if name not in index_of:
                    index_of[name] = table.add_column(name)
            for row in insert.rows:
                cells = [""] * table.column_count
                for name, value in zip(insert.columns, row):
                    cells[index_of[name]] = value
                table.append_row(cells, line)
        return table

    def _parse_insert(self, statement: str, backslash_escapes: bool) -> _Insert:
        tokens = _Tokenizer(statement, backslash_escapes).tokens()
        pos = 0

        def peek() -> Optional[Token]:
            return tokens[pos] if pos < len(tokens) else None

        def expect_punct(ch: str) -> None:
            nonlocal pos
            tok = peek()
            if tok is None or tok.kind != "punct" or tok.value != ch:
                found = "end of statement" if tok is None else repr(tok.value)
                raise ValueError(f"expected {ch!r}, found {found}")
            pos += 1

        while pos < len(tokens) and not (tokens[pos].kind == "word" and tokens[pos].value.upper() == "INTO"):
            pos += 1
        pos += 1
        # table name, possibly schema-qualified
        if peek() is None or peek().kind not in ("word", "qident"):
            raise ValueError("missing table name")
        pos += 1
        while peek() is not None and peek().kind == "punct" and peek().value == ".":
            pos += 2

        columns = None
        tok = peek()
        if tok is not None and tok.kind == "punct" and tok.value == "(":
            pos += 1
            columns = []
            while True:
                tok = peek()
                if tok is None or tok.kind not in ("word", "qident"):
                    raise ValueError("invalid column list")
                columns.append(tok.value)
                pos += 1
                tok = peek()
                if tok is not None and tok.kind == "punct" and tok.value == ",":
                    pos += 1
                    continue
                expect_punct(")")
                break

        tok = peek()
        if tok is None or tok.kind != "word" or tok.value.upper() not in ("VALUES", "VALUE"):
            raise ValueError("only INSERT ... VALUES statements are supported")
        pos += 1

        rows: List[List[str]] = []
        while True:
            expect_punct("(")
            row: List[str] = []
            while True:
                value, pos = self._value(statement, tokens, pos)
                row.append(value)
                tok = peek()
                if tok is not None and tok.kind == "punct" and tok.value == ",":
                    pos += 1
                    continue
                expect_punct(")")
                break
            if columns is not None and len(row) != len(columns):
                raise ValueError(f"{len(row)} values for {len(columns)} columns")
            rows.append(row)
            tok = peek()
            if tok is not None and tok.kind == "punct" and tok.value == ",":
                pos += 1
                continue
            break
        tok = peek()
        if tok is not None and not (tok.kind == "word" and tok.value.upper() in _TRAILING_CLAUSES):
            raise ValueError(f"unexpected tokens after VALUES: {statement[tok.start:].strip()[:40]!r}")
        return _Insert(columns, rows)

    @staticmethod
    def _value(statement: str, tokens: List[Token], pos: int) -> Tuple[str, int]:
        """Read one value expression; returns its text and the next position."""
        start = pos
        depth = 0
        while pos < len(tokens):
            tok = tokens[pos]
            if tok.kind == "punct":
                if tok.value == "(":
                    depth += 1
                elif tok.value == ")":
                    if depth == 0:
                        break
                    depth -= 1
                elif tok.value == "," and depth == 0:
                    break
            pos += 1
        span = tokens[start:pos]
        if not span:
            raise ValueError("empty value")
        if len(span) == 1:
            tok = span[0]
            if tok.kind == "string":
                return tok.value, pos
            if tok.kind == "word":
                word = tok.value.upper()
                if word == "NULL":
                    return "", pos
                if word in ("TRUE", "FALSE"):
                    return word.lower(), pos
        return statement[span[0].start : span[-1].end], pos


# -----------------------------
# Encoding
# -----------------------------

_COLUMN_TYPES = {
    "mysql": {
        DataKind.INTEGER: "BIGINT",
        DataKind.FLOAT: "DOUBLE",
        DataKind.BOOLEAN: "BOOLEAN",
        DataKind.DATE: "DATETIME",
        DataKind.STRING: "TEXT",
    },
    "postgresql": {
        DataKind.INTEGER: "BIGINT",
        DataKind.FLOAT: "DOUBLE PRECISION",
        DataKind.BOOLEAN: "BOOLEAN",
        DataKind.DATE: "TIMESTAMP",
        DataKind.STRING: "TEXT",
    },
    "oracle": {
        DataKind.INTEGER: "NUMBER(19)",
        DataKind.FLOAT: "BINARY_DOUBLE",
        DataKind.BOOLEAN: "NUMBER(1)",
        DataKind.DATE: "TIMESTAMP",
        DataKind.STRING: "CLOB",
    },
    "mssql": {
        DataKind.INTEGER: "BIGINT",
        DataKind.FLOAT: "FLOAT",
        DataKind.BOOLEAN: "BIT",
        DataKind.DATE: "DATETIME2",
        DataKind.STRING: "NVARCHAR(MAX)",
    },
}


class SqlEncoder(StreamingEncoder):
    """Extras: ``table``, ``dialect``, ``replace``, ``one_insert``, ``create_table``.

    ``batch_size`` rows share one multi-row ``VALUES`` list.
    """

    format_name = "sql"

    def begin(self, columns, options, hints, out):
        super().begin(columns, options, hints, out)
        if not columns:
            raise EncodeError("SQL output needs at least one column", format_name=self.format_name)
        try:
            self._dialect = normalize_dialect(options.extra_str("dialect"))
        except ValueError as e:
            raise EncodeError(str(e), format_name=self.format_name) from e
        self._table = quote_identifier(options.extra_str("table", "table_name"), self._dialect)
        self._verb = "REPLACE" if options.extra_bool("replace", False) else "INSERT"
        self._one_insert = options.extra_bool("one_insert", False)
        self._batch_size = options.batch_size
        self._column_list = ", ".join(quote_identifier(c, self._dialect) for c in self.columns)
        self._pending: List[str] = []
        if options.extra_bool("create_table", False):
            self._create_table()

    def _create_table(self) -> None:
        types = _COLUMN_TYPES.get(self._dialect, _COLUMN_TYPES["postgresql"])
        defs = [
            f"  {quote_identifier(name, self._dialect)} {types[self.hints.kind(i)]}"
            for i, name in enumerate(self.columns)
        ]
        self.write_text(f"CREATE TABLE {self._table} (\n" + ",\n".join(defs) + "\n);\n")

    def _literal(self, index: int, raw: str) -> str:
        typed = self.hints.cell(index, raw)
        if typed.kind is DataKind.NULL:
            return "NULL"
        if typed.kind is DataKind.BOOLEAN:
            if self._dialect in ("mssql", "oracle", "sqlite"):
                return "1" if typed.value else "0"
            return "TRUE" if typed.value else "FALSE"
        if typed.kind is DataKind.INTEGER:
            return str(typed.value)
        if typed.kind is DataKind.FLOAT:
            text = raw.strip()
            if _SQL_NUMBER.fullmatch(text):
                return text
            if math.isfinite(typed.value):
                return repr(typed.value)
        return quote_string(raw, self._dialect)

    def write_row(self, row, index):
        values = ", ".join(self._literal(i, cell) for i, cell in enumerate(row))
        self._pending.append(f"({values})")
        if not self._one_insert and len(self._pending) >= self._batch_size:
            self._flush()

    def _flush(self) -> None:
        if not self._pending:
            return
        head = f"{self._verb} INTO {self._table} ({self._column_list}) VALUES"
        if len(self._pending) == 1:
            self.write_text(f"{head} {self._pending[0]};\n")
        else:
            self.write_text(head + "\n" + ",\n".join(self._pending) + ";\n")
        self._pending = []

    def finish(self):
        self._flush()

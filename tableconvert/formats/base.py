"""Decoder/encoder interfaces every format implements.

A format provides a decoder class, an encoder class, or both. Instances are
created per conversion by the registry, so encoders may keep state between
``begin`` / ``write_row`` / ``finish``.
"""

from __future__ import annotations

import io
import threading
from abc import ABC, abstractmethod
from typing import BinaryIO, Iterator, List, NamedTuple, Optional, Sequence, Tuple

from ..errors import ConversionWarning, DecodeError
from ..options import DecodeOptions, EncodeOptions
from ..table import Table
from ..type_inference import TypeHints


class RowStream(NamedTuple):
    """Header plus a lazy iterator of ``(cells, line_number)`` pairs."""

    columns: List[str]
    rows: Iterator[Tuple[List[str], Optional[int]]]


def synthetic_columns(width: int) -> List[str]:
    return [f"Column_{i + 1}" for i in range(width)]


def read_text(stream: BinaryIO, options: DecodeOptions, format_name: str = "") -> str:
    """Read and decode the whole stream, reporting the byte offset of bad input."""
    data = stream.read()
    if isinstance(data, str):
        return data
    try:
        return data.decode(options.encoding)
    except UnicodeDecodeError as e:
        raise DecodeError(
            f"input is not valid {options.encoding}: {e.reason}",
            offset=e.start,
            format_name=format_name,
        ) from e


def text_stream(stream: BinaryIO, options: DecodeOptions) -> Iterator[str]:
    """Lines of ``stream`` split on \\n, \\r and \\r\\n only; the stream is left open.

    ``newline=""`` keeps line endings inside quoted CSV fields intact and does
    not break records on U+2028 or form feeds.
    """
    if isinstance(stream, io.TextIOBase):
        yield from stream
        return
    wrapper = io.TextIOWrapper(stream, encoding=options.encoding, newline="")
    try:
        yield from wrapper
    finally:
        wrapper.detach()


class BaseDecoder(ABC):
    """Parse format-specific bytes into a ``Table``."""

    format_name: str = ""

    @abstractmethod
    def decode(
        self,
        stream: BinaryIO,
        options: DecodeOptions,
        cancel: Optional[threading.Event] = None,
    ) -> Table:
        pass

    def error(self, message: str, **location) -> DecodeError:
        return DecodeError(message, format_name=self.format_name, **location)


class StreamingDecoder(BaseDecoder):
    """Decoder for record-oriented input that can hand rows out one at a time."""

    @abstractmethod
    def open_rows(
        self,
        stream: BinaryIO,
        options: DecodeOptions,
        warnings: List[ConversionWarning],
    ) -> RowStream:
        pass

    def decode(self, stream, options, cancel=None) -> Table:
        table = Table(cancel=cancel)
        row_stream = self.open_rows(stream, options, table.warnings)
        table.columns = list(row_stream.columns)
        for cells, line in row_stream.rows:
            table.append_row(cells, line)
        return table


class BaseEncoder(ABC):
    """Render a ``Table`` as format-specific bytes."""

    format_name: str = ""

    @abstractmethod
    def encode(self, table: Table, options: EncodeOptions, hints: TypeHints) -> bytes:
        pass

    def to_bytes(self, text: str, options: EncodeOptions) -> bytes:
        return text.encode(options.encoding)


class StreamingEncoder(BaseEncoder):
    """Encoder that can write rows as they arrive."""

    def __init__(self):
        self.out: Optional[BinaryIO] = None
        self.options: Optional[EncodeOptions] = None
        self.hints: Optional[TypeHints] = None
        self.columns: List[str] = []

    def begin(
        self,
        columns: Sequence[str],
        options: EncodeOptions,
        hints: TypeHints,
        out: BinaryIO,
    ) -> None:
        self.columns = list(columns)
        self.options = options
        self.hints = hints
        self.out = out

    @abstractmethod
    def write_row(self, row: Sequence[str], index: int) -> None:
        pass

    def finish(self) -> None:
        pass

    def write_text(self, text: str) -> None:
        self.out.write(text.encode(self.options.encoding))

    def encode(self, table, options, hints) -> bytes:
        buf = io.BytesIO()
        self.begin(table.columns, options, hints, buf)
        for index, row in enumerate(table.iter_rows()):
            self.write_row(row, index)
        self.finish()
        return buf.getvalue()


__all__ = [
    "RowStream",
    "BaseDecoder",
    "StreamingDecoder",
    "BaseEncoder",
    "StreamingEncoder",
    "read_text",
    "text_stream",
    "synthetic_columns",
]

"""CSV and TSV.

Both sides stream: the decoder hands rows out as the ``csv`` reader produces
them and the encoder writes each row as soon as it arrives.
"""

from __future__ import annotations

import csv
import io
import logging
from typing import Iterator, List, Tuple

from ..errors import skipped_record
from .base import RowStream, StreamingDecoder, StreamingEncoder, synthetic_columns, text_stream

logger = logging.getLogger(__name__)

UTF8_BOM = "\ufeff"


class CsvDecoder(StreamingDecoder):
    format_name = "csv"
    default_delimiter = ","

    def _records(self, reader, options, warnings) -> Iterator[Tuple[List[str], int]]:
        """Yield ``(cells, first_line)`` for every non-blank record."""
        while True:
            start = reader.line_num + 1
            try:
                record = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                if not options.best_effort:
                    raise self.error(f"malformed record: {e}", line=start) from e
                logger.warning("Skipping malformed CSV record at line %d: %s", start, e)
                warnings.append(skipped_record(str(e), line=start))
                continue
            except UnicodeDecodeError as e:
                raise self.error(
                    f"input is not valid {options.encoding}: {e.reason}", line=start
                ) from e
            if not record:
                continue
            yield record, start

    def open_rows(self, stream, options, warnings) -> RowStream:
        delimiter = options.delimiter or self.default_delimiter
        reader = csv.reader(text_stream(stream, options), delimiter=delimiter, strict=True)
        records = self._records(reader, options, warnings)

        first = next(records, None)
        if first is None:
            return RowStream([], iter(()))
        cells, _ = first
        if options.header:
            columns = list(cells)
            rows = records
        else:
            columns = synthetic_columns(len(cells))
            rows = _prepend(first, records)
        return RowStream(columns, rows)


def _prepend(first, rest):
    yield first
    yield from rest


class TsvDecoder(CsvDecoder):
    format_name = "tsv"
    default_delimiter = "\t"


class CsvEncoder(StreamingEncoder):
    format_name = "csv"
    default_delimiter = ","

    def begin(self, columns, options, hints, out):
        super().begin(columns, options, hints, out)
        self._buf = io.StringIO()
        self._writer = csv.writer(
            self._buf,
            delimiter=options.delimiter or self.default_delimiter,
            lineterminator="\n",
            quoting=csv.QUOTE_MINIMAL,
        )
        if options.extra_bool("bom", False):
            self.write_text(UTF8_BOM)
        if options.header:
            self._emit(self.columns)

    def _emit(self, cells) -> None:
        self._writer.writerow(cells)
        self.write_text(self._buf.getvalue())
        self._buf.seek(0)
        self._buf.truncate()

    def write_row(self, row, index):
        self._emit(row)


class TsvEncoder(CsvEncoder):
    format_name = "tsv"
    default_delimiter = "\t"

"""Conversion orchestrator: decode -> transform -> infer types -> encode.

Two execution modes share the same stages. *Buffered* materialises the whole
table before encoding. *Streaming* hands rows from a ``StreamingDecoder`` to a
``StreamingEncoder`` one at a time, inferring types from a look-ahead window.
Output is staged and copied to the target only once the conversion succeeded.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, BinaryIO, Dict, Iterable, List, Optional, Union

from .cleaning_utils import RowTransformer, apply_transforms, normalize_transforms
from .errors import (
    ConversionCancelled,
    ConversionWarning,
    DecodeError,
    EncodeError,
    TableConvertError,
    UnsupportedCapability,
)
from .options import DecodeOptions, EncodeOptions
from .registry import Capability, FormatRegistry, build_default_registry
from .table import Table
from .type_inference import DEFAULT_DATE_PATTERNS, TypeHints, TypeInferencer, ambiguity_warnings

logger = logging.getLogger(__name__)

# Staged output beyond this size spills to a temporary file.
SPOOL_MAX_SIZE = 16 * 1024 * 1024

Source = Union[BinaryIO, str, os.PathLike]


class PipelineState(str, Enum):
    IDLE = "IDLE"
    DECODING = "DECODING"
    INFERRING = "INFERRING"
    ENCODING = "ENCODING"
    DONE = "DONE"
    FAILED = "FAILED"


class ExecutionMode(str, Enum):
    BUFFERED = "buffered"
    STREAMING = "streaming"


@dataclass
class ConversionResult:
    bytes_written: int
    rows_processed: int
    warnings: List[ConversionWarning]
    mode: ExecutionMode
    source_format: str
    target_format: str
    column_types: Dict[str, str] = field(default_factory=dict)
    states: List[PipelineState] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bytes_written": self.bytes_written,
            "rows_processed": self.rows_processed,
            "columns": list(self.columns),
            "mode": self.mode.value,
            "source_format": self.source_format,
            "target_format": self.target_format,
            "column_types": dict(self.column_types),
            "warnings": [w.to_dict() for w in self.warnings],
            "states": [s.value for s in self.states],
        }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


class _Run:
    """State history of one conversion."""

    def __init__(self):
        self.states: List[PipelineState] = [PipelineState.IDLE]

    @property
    def state(self) -> PipelineState:
        return self.states[-1]

    def enter(self, state: PipelineState) -> None:
        logger.debug("pipeline %s -> %s", self.state.value, state.value)
        self.states.append(state)


def _tag(exc: Exception, stage: str, format_name: str) -> TableConvertError:
    """Attach stage and format to a taxonomy error, wrapping library errors."""
    if isinstance(exc, TableConvertError):
        err = exc
    elif stage == "decoding":
        err = DecodeError(str(exc), format_name=format_name)
        err.__cause__ = exc
    else:
        err = EncodeError(str(exc), format_name=format_name)
        err.__cause__ = exc
    if err.stage is None and not isinstance(err, ConversionCancelled):
        err.stage = stage
    if err.format_name is None:
        err.format_name = format_name
    return err


@contextmanager
def _stage(stage: str, format_name: str):
    try:
        yield
    except (TableConvertError, ValueError) as e:
        err = _tag(e, stage, format_name)
        if err is e:
            raise
        raise err from e


@contextmanager
def _open_source(source: Source):
    if isinstance(source, (str, os.PathLike)):
        with open(source, "rb") as fh:
            yield fh
    else:
        yield source


def _input_size(stream: BinaryIO) -> Optional[int]:
    """Remaining byte count of a seekable stream, else ``None``."""
    try:
        if not stream.seekable():
            return None
        pos = stream.tell()
        end = stream.seek(0, os.SEEK_END)
        stream.seek(pos)
        return end - pos
    except (AttributeError, OSError, ValueError):
        return None


def _date_patterns(encode_opts: EncodeOptions) -> List[str]:
    patterns = [encode_opts.date_format]
    patterns.extend(p for p in DEFAULT_DATE_PATTERNS if p != encode_opts.date_format)
    return patterns


def _hints(columns, rows, encode_opts: EncodeOptions, typed_target: bool, warnings: List[ConversionWarning]) -> TypeHints:
    if not (typed_target and encode_opts.infer_types):
        return TypeHints.untyped(columns)
    hints = TypeInferencer(_date_patterns(encode_opts)).hints_for(columns, rows)
    warnings.extend(ambiguity_warnings(hints.inferred))
    return hints


def _choose_mode(
    source_desc,
    target_desc,
    decode_opts: DecodeOptions,
    transforms: List[str],
    size: Optional[int],
) -> ExecutionMode:
    can_stream = source_desc.supports(Capability.STREAMING_DECODE) and target_desc.supports(
        Capability.STREAMING_ENCODE
    )
    if decode_opts.streaming is True and not can_stream:
        raise UnsupportedCapability(
            f"streaming is not available for {source_desc.id} -> {target_desc.id}",
            format_name=target_desc.id if source_desc.supports(Capability.STREAMING_DECODE) else source_desc.id,
        )
    if "transpose" in transforms:
        if decode_opts.streaming:
            logger.info("transpose requested; falling back to buffered mode")
        return ExecutionMode.BUFFERED
    if not can_stream or decode_opts.streaming is False:
        return ExecutionMode.BUFFERED
    if decode_opts.streaming or (size is not None and size > decode_opts.streaming_threshold):
        return ExecutionMode.STREAMING
    return ExecutionMode.BUFFERED


def _check_cancel(cancel: Optional[threading.Event]) -> None:
    if cancel is not None and cancel.is_set():
        raise ConversionCancelled("conversion cancelled")


# ---------------------------------------------------------------------------
# Execution modes
# ---------------------------------------------------------------------------


def _run_buffered(run, stream, staged, decoder, encoder, source_desc, target_desc, decode_opts, encode_opts, transforms, cancel):
    run.enter(PipelineState.DECODING)
    with _stage("decoding", source_desc.id):
        table = decoder.decode(stream, decode_opts, cancel)
        table.cancel = cancel
    logger.info("decoded %d rows x %d columns from %s", table.row_count, table.column_count, source_desc.id)
    if transforms:
        table = apply_transforms(table, transforms)
        logger.debug("applied transforms %s", transforms)

    warnings = table.warnings
    typed = target_desc.supports(Capability.TYPED_OUTPUT)
    if typed and encode_opts.infer_types:
        run.enter(PipelineState.INFERRING)
    hints = _hints(table.columns, table.rows, encode_opts, typed, warnings)

    run.enter(PipelineState.ENCODING)
    with _stage("encoding", target_desc.id):
        payload = encoder.encode(table, encode_opts, hints)
    staged.write(payload)
    return table.columns, table.row_count, warnings, hints


def _run_streaming(run, stream, staged, decoder, encoder, source_desc, target_desc, decode_opts, encode_opts, transforms, cancel):
    run.enter(PipelineState.DECODING)
    table = Table(cancel=cancel)
    transformer = RowTransformer(transforms)
    with _stage("decoding", source_desc.id):
        row_stream = decoder.open_rows(stream, decode_opts, table.warnings)
    table.columns = list(row_stream.columns)
    columns = transformer.headers(table.columns)
    rows_iter = iter(row_stream.rows)

    def next_row():
        # Rows filtered by transforms are skipped; the index counts decoded rows.
        nonlocal decoded
        while True:
            _check_cancel(cancel)
            with _stage("decoding", source_desc.id):
                item = next(rows_iter, None)
            if item is None:
                return None
            cells, line = item
            row = table.fit_row(cells, line, decoded)
            decoded += 1
            row = transformer.apply(row)
            if row is not None:
                return row

    decoded = 0
    window: List[List[str]] = []
    typed = target_desc.supports(Capability.TYPED_OUTPUT)
    while len(window) < encode_opts.inference_window:
        row = next_row()
        if row is None:
            break
        window.append(row)

    if typed and encode_opts.infer_types:
        run.enter(PipelineState.INFERRING)
    hints = _hints(columns, window, encode_opts, typed, table.warnings)

    run.enter(PipelineState.ENCODING)
    written = 0
    with _stage("encoding", target_desc.id):
        encoder.begin(columns, encode_opts, hints, staged)
        for row in window:
            _check_cancel(cancel)
            encoder.write_row(row, written)
            written += 1
    while True:
        row = next_row()
        if row is None:
            break
        with _stage("encoding", target_desc.id):
            encoder.write_row(row, written)
        written += 1
    with _stage("encoding", target_desc.id):
        encoder.finish()
    logger.info("streamed %d rows from %s to %s", written, source_desc.id, target_desc.id)
    return columns, written, table.warnings, hints


# ---------------------------------------------------------------------------
# Public entry point
# ---------------------------------------------------------------------------


def run_conversion_pipeline(
    source: Source,
    source_format: str,
    target: Union[BinaryIO, str, os.PathLike],
    target_format: str,
    *,
    decode_config: Optional[Dict[str, Any]] = None,
    encode_config: Optional[Dict[str, Any]] = None,
    transforms: Optional[Iterable[str]] = None,
    registry: Optional[FormatRegistry] = None,
    cancel: Optional[threading.Event] = None,
) -> ConversionResult:
    """Convert a table from one format to another.

    Parameters
    ----------
    source : binary stream or path
        Input document. Paths are opened (and closed) here.
    source_format, target_format : str
        Format ids or aliases known to ``registry``.
    target : binary stream or path
        Receives the encoded output only if the conversion succeeds. A path is
        opened for writing at that point, so a failed run creates no file.
    decode_config, encode_config : dict, optional
        Option maps (``header``, ``delimiter``, ``sheet``, ``streaming``,
        ``best_effort``, ``pretty``, ``batch_size``, format extras ...).
        camelCase keys are accepted.
    transforms : iterable of str, optional
        Any of transpose, delete_empty, deduplicate, uppercase, lowercase,
        capitalize.
    registry : FormatRegistry, optional
        Defaults to a fresh ``build_default_registry()``.
    cancel : threading.Event, optional
        Checked between rows; when set the run fails with ``ConversionCancelled``.

    Returns
    -------
    ConversionResult
    """
    reg = registry or build_default_registry()
    run = _Run()
    try:
        decode_opts = DecodeOptions.from_config(decode_config)
        encode_opts = EncodeOptions.from_config(encode_config)
        names = normalize_transforms(transforms)
        source_desc = reg.resolve(source_format)
        target_desc = reg.resolve(target_format)
        decoder = reg.decoder_for(source_desc.id)
        encoder = reg.encoder_for(target_desc.id)
    except (TableConvertError, ValueError) as e:
        run.enter(PipelineState.FAILED)
        e.states = run.states
        raise

    with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as staged:
        try:
            with _open_source(source) as stream:
                mode = _choose_mode(source_desc, target_desc, decode_opts, names, _input_size(stream))
                logger.info("converting %s -> %s (%s)", source_desc.id, target_desc.id, mode.value)
                runner = _run_streaming if mode is ExecutionMode.STREAMING else _run_buffered
                columns, rows, warnings, hints = runner(
                    run, stream, staged, decoder, encoder, source_desc, target_desc,
                    decode_opts, encode_opts, names, cancel,
                )
        except TableConvertError as e:
            run.enter(PipelineState.FAILED)
            e.states = run.states
            logger.debug("conversion failed: %s", e)
            raise

        bytes_written = staged.tell()
        staged.seek(0)
        if isinstance(target, (str, os.PathLike)):
            with open(target, "wb") as fh:
                shutil.copyfileobj(staged, fh)
        else:
            shutil.copyfileobj(staged, target)

    run.enter(PipelineState.DONE)
    for w in warnings:
        logger.debug("warning: %s", w)
    if warnings:
        logger.info("%d warning(s) during conversion", len(warnings))
    return ConversionResult(
        bytes_written=bytes_written,
        rows_processed=rows,
        warnings=list(warnings),
        mode=mode,
        source_format=source_desc.id,
        target_format=target_desc.id,
        column_types=hints.as_dict() if hints.is_typed or hints.inferred else {},
        states=list(run.states),
        columns=list(columns),
    )


__all__ = [
    "run_conversion_pipeline",
    "ConversionResult",
    "PipelineState",
    "ExecutionMode",
    "SPOOL_MAX_SIZE",
]

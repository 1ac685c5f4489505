"""Command-line interface for table conversion.

Usage (examples):
    python -m tableconvert.cli data.csv --to json
    python -m tableconvert.cli data.csv --output data.md --summary
    python -m tableconvert.cli dump.sql --to excel --output users.xlsx -o sheet_name=Users
    cat data.tsv | python -m tableconvert.cli - --from tsv --to markdown -o align=c

Formats default from file extensions. The converted document goes to --output
or stdout; --summary prints rows, columns and warnings to stderr.
"""

from __future__ import annotations

import argparse
import io
import json
import logging
import sys
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from .cleaning_utils import TRANSFORM_ORDER
from .errors import TableConvertError
from .pipeline import ConversionResult, run_conversion_pipeline
from .registry import build_default_registry, detect_format, sniff_format

logger = logging.getLogger(__name__)


def _summarize(result: ConversionResult) -> str:
    cols = result.columns
    preview_cols = cols[:8]
    more = "" if len(cols) <= 8 else f" (+{len(cols)-8} more)"
    lines = [
        f"Rows: {result.rows_processed}  Columns: {len(cols)}",
        f"Columns: {', '.join(preview_cols)}{more}",
        f"{result.source_format} -> {result.target_format}  Mode: {result.mode.value}  Bytes: {result.bytes_written}",
    ]
    if result.column_types:
        typed = [f"{k}={v}" for k, v in result.column_types.items() if v != "string"]
        if typed:
            lines.append(f"Typed columns: {', '.join(typed[:8])}")
    lines.append(f"Warnings: {len(result.warnings)}")
    for w in result.warnings[:10]:
        lines.append(f"  - {w}")
    if len(result.warnings) > 10:
        lines.append(f"  ... {len(result.warnings) - 10} more")
    return "\n".join(lines)


def _parse_pairs(pairs: Optional[Sequence[str]], flag: str) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for pair in pairs or ():
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise SystemExit(f"{flag} expects key=value, got {pair!r}")
        out[key.strip()] = value
    return out


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Convert tables between CSV, JSON, Markdown, HTML, Excel, SQL and other formats."
    )
    parser.add_argument("file", nargs="?", help="Input file path, or '-' for stdin")
    parser.add_argument("--from", "-f", dest="source_format", help="Input format (default: from extension)")
    parser.add_argument("--to", "-t", dest="target_format", help="Output format (default: from --output extension)")
    parser.add_argument("--output", help="Write the converted document here instead of stdout")
    parser.add_argument("--no-header", action="store_true", help="Treat the first input row as data")
    parser.add_argument("--delimiter", help="Field delimiter for CSV-like input and output (e.g. ';', TAB)")
    parser.add_argument("--sheet", help="Sheet name or 0-based index (Excel), table index or id (HTML)")
    parser.add_argument("--best-effort", action="store_true", help="Skip malformed records instead of failing")
    parser.add_argument("--streaming", action="store_true", help="Force streaming mode (fails if unsupported)")
    parser.add_argument("--minify", action="store_true", help="Compact output where the format allows it")
    parser.add_argument("--batch-size", type=int, default=1, help="Rows per SQL INSERT statement (default: 1)")
    parser.add_argument("--no-infer-types", action="store_true", help="Render every cell as a string")
    parser.add_argument("--template", help="Jinja2 template file for --to template")
    for name in TRANSFORM_ORDER:
        flag = "--" + name.replace("_", "-")
        parser.add_argument(flag, dest=f"transform_{name}", action="store_true", help=f"Apply the {name} transform")
    parser.add_argument(
        "-o",
        "--option",
        action="append",
        metavar="KEY=VALUE",
        help="Output format option (repeatable), e.g. -o table=users -o dialect=postgresql",
    )
    parser.add_argument(
        "-i",
        "--input-option",
        action="append",
        metavar="KEY=VALUE",
        help="Input format option (repeatable), e.g. -i row_element=item",
    )
    parser.add_argument("--summary", action="store_true", help="Print a conversion summary to stderr")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument(
        "--suppress-warnings",
        action="store_true",
        help="Suppress Python runtime warnings (e.g., date parsing).",
    )
    parser.add_argument("--list-formats", action="store_true", help="List available formats and exit")
    return parser


def _format_list() -> str:
    lines = []
    for info in build_default_registry().list_formats():
        access = ("r" if info["read"] else "-") + ("w" if info["write"] else "-")
        aliases = ", ".join(info["aliases"])
        exts = " ".join(info["extensions"])
        lines.append(f"{info['id']:<10} {access}  {exts:<22} {aliases}")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if args.suppress_warnings:
        warnings.filterwarnings("ignore", category=UserWarning)
        warnings.filterwarnings("ignore", category=DeprecationWarning)

    if args.list_formats:
        print(_format_list())
        return
    if not args.file:
        parser.error("an input file (or '-') is required")

    if args.file == "-":
        source: Any = io.BytesIO(sys.stdin.buffer.read())
    else:
        path = Path(args.file)
        if not path.exists():
            raise SystemExit(f"File not found: {path}")
        source = path

    source_format = args.source_format
    if not source_format and args.file != "-":
        source_format = detect_format(source)
    if not source_format:
        if isinstance(source, Path):
            with open(source, "rb") as fh:
                source_format = sniff_format(fh.read(64 * 1024))
        else:
            source_format = sniff_format(source.getvalue()[: 64 * 1024])
        if source_format:
            logger.info("detected input format %s from content", source_format)
    if not source_format:
        raise SystemExit("Cannot determine the input format; pass --from")

    target_format = args.target_format or (detect_format(args.output) if args.output else None)
    if not target_format:
        raise SystemExit("Cannot determine the output format; pass --to")

    decode_config: Dict[str, Any] = {
        "header": not args.no_header,
        "best_effort": args.best_effort,
    }
    encode_config: Dict[str, Any] = {
        "batch_size": args.batch_size,
        "infer_types": not args.no_infer_types,
    }
    if args.streaming:
        decode_config["streaming"] = True
    if args.delimiter:
        decode_config["delimiter"] = args.delimiter
        encode_config["delimiter"] = args.delimiter
    if args.sheet is not None:
        decode_config["sheet"] = args.sheet
    if args.minify:
        encode_config["pretty"] = False
        encode_config["minify"] = True
    if args.template:
        template_path = Path(args.template)
        if not template_path.exists():
            raise SystemExit(f"Template not found: {template_path}")
        encode_config["template"] = template_path.read_text(encoding="utf-8")
    decode_config.update(_parse_pairs(args.input_option, "-i"))
    encode_config.update(_parse_pairs(args.option, "-o"))

    transforms = [name for name in TRANSFORM_ORDER if getattr(args, f"transform_{name}")]
    target: Any = args.output if args.output else sys.stdout.buffer

    try:
        result = run_conversion_pipeline(
            source,
            source_format,
            target,
            target_format,
            decode_config=decode_config,
            encode_config=encode_config,
            transforms=transforms,
        )
    except (TableConvertError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        raise SystemExit(1)

    if not args.output:
        sys.stdout.flush()
    if args.summary:
        print(_summarize(result), file=sys.stderr)
        if args.verbose:
            print(json.dumps(result.to_dict(), indent=2, default=str), file=sys.stderr)


if __name__ == "__main__":  # pragma: no cover
    main()

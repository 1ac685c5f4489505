import sys
from pathlib import Path as _P

import pytest

_project_root = _P(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from tableconvert.errors import RegistryFrozen, UnknownFormat, UnsupportedCapability
from tableconvert.formats.delimited import CsvDecoder, CsvEncoder
from tableconvert.formats.markdown_table import MarkdownDecoder, MarkdownEncoder
from tableconvert.options import DecodeOptions, EncodeOptions, normalize_delimiter
from tableconvert.registry import (
    Capability,
    FormatRegistry,
    build_default_registry,
    detect_format,
    sniff_format,
)


# -----------------------------
# Options
# -----------------------------


def test_decode_options_accept_camel_case_and_extras():
    opts = DecodeOptions.from_config(
        {"bestEffort": "yes", "delimiter": "TAB", "dateFormat": "%d/%m/%Y", "row-element": "item", "sheet": "2"}
    )
    assert opts.best_effort is True
    assert opts.delimiter == "\t"
    assert opts.date_format == "%d/%m/%Y"
    assert opts.sheet == 2
    assert opts.extra_str("row_element") == "item"
    assert opts.extra_str("rowElement") == "item"
    assert opts.header is True


def test_encode_options_normalise_values():
    opts = EncodeOptions.from_config({"batchSize": "3", "pretty": "false", "bom": "", "limit": "x"})
    assert opts.batch_size == 3
    assert opts.pretty is False
    assert opts.extra_bool("bom") is True
    assert opts.extra_int("limit", 5) == 5
    assert opts.inference_window == 1000


def test_delimiter_aliases():
    assert normalize_delimiter("semicolon") == ";"
    assert normalize_delimiter("\\t") == "\t"
    assert normalize_delimiter("|") == "|"
    with pytest.raises(ValueError):
        normalize_delimiter("::")


# -----------------------------
# Registry
# -----------------------------


def _small_registry():
    reg = FormatRegistry()
    reg.register(
        "csv",
        CsvDecoder,
        CsvEncoder,
        Capability.STREAMING_DECODE | Capability.STREAMING_ENCODE,
        extensions=["csv"],
    )
    return reg


def test_register_and_resolve():
    reg = _small_registry()
    reg.register("markdown", MarkdownDecoder, MarkdownEncoder, aliases=["md"], extensions=[".md"])
    assert reg.resolve("MD").id == "markdown"
    assert reg.format_for_extension(".CSV") == "csv"
    assert isinstance(reg.decoder_for("csv"), CsvDecoder)
    assert "md" in reg
    assert reg.ids() == ["csv", "markdown"]


def test_duplicate_names_are_rejected():
    reg = _small_registry()
    with pytest.raises(ValueError):
        reg.register("csv", CsvDecoder, CsvEncoder)
    with pytest.raises(ValueError):
        reg.register("other", CsvDecoder, None, aliases=["csv"])


def test_frozen_registry_rejects_registration():
    reg = _small_registry().freeze()
    with pytest.raises(RegistryFrozen):
        reg.register("markdown", MarkdownDecoder, MarkdownEncoder)


def test_streaming_capability_requires_streaming_classes():
    reg = FormatRegistry()
    with pytest.raises(ValueError):
        reg.register("markdown", MarkdownDecoder, MarkdownEncoder, Capability.STREAMING_DECODE)


def test_unknown_and_write_only_formats():
    reg = build_default_registry()
    assert reg.frozen
    with pytest.raises(UnknownFormat):
        reg.resolve("parquet")
    with pytest.raises(UnsupportedCapability):
        reg.decoder_for("template")
    assert reg.encoder_for("jinja").format_name == "template"


def test_default_registry_capabilities():
    reg = build_default_registry()
    assert reg.resolve("csv").supports(Capability.STREAMING_DECODE)
    assert reg.resolve("jsonl").supports(Capability.TYPED_OUTPUT)
    assert not reg.resolve("markdown").supports(Capability.STREAMING_ENCODE)
    assert reg.resolve("xlsx").supports(Capability.BINARY)
    assert reg.resolve("mysql").id == "ascii"
    ids = set(reg.ids())
    assert {"csv", "tsv", "json", "jsonl", "yaml", "excel", "sql", "markdown", "html",
            "ascii", "latex", "mediawiki", "twiki", "xml", "ini", "template"} <= ids


def test_registries_are_independent():
    assert build_default_registry() is not build_default_registry()


def test_detect_format_by_extension():
    assert detect_format("report.XLSX") == "excel"
    assert detect_format("dump.sql") == "sql"
    assert detect_format("notes.markdown") == "markdown"
    assert detect_format("events.ndjson") == "jsonl"
    assert detect_format("file.unknown") is None


def test_sniff_format_from_content():
    assert sniff_format(b"<table><tr><td>a</td></tr></table>") == "html"
    assert sniff_format(b"| a | b |\n|---|---|\n| 1 | 2 |\n") == "markdown"
    assert sniff_format(b"+---+\n| a |\n+---+\n") == "ascii"
    assert sniff_format(b'[{"a": 1}]') == "json"
    assert sniff_format(b"\\begin{tabular}{ll}\n") == "latex"
    assert sniff_format(b"INSERT INTO t VALUES (1);") == "sql"
    assert sniff_format(b"") is None

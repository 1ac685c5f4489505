import io
import sys
from pathlib import Path as _P

import pytest

_project_root = _P(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from tableconvert.errors import DecodeError, EncodeError, WarningCode
from tableconvert.formats.excel import ExcelDecoder, ExcelEncoder, excel_cell_text, excel_number_format
from tableconvert.formats.ini_format import IniDecoder, IniEncoder
from tableconvert.formats.sql_insert import (
    SqlDecoder,
    SqlEncoder,
    quote_identifier,
    quote_string,
    split_statements,
)
from tableconvert.formats.template import TemplateEncoder
from tableconvert.formats.xml_format import XmlDecoder, XmlEncoder
from tableconvert.formats.yaml_format import YamlDecoder, YamlEncoder
from tableconvert.options import DecodeOptions, EncodeOptions
from tableconvert.table import Table
from tableconvert.type_inference import TypeHints, TypeInferencer


def decode(decoder, data, **config):
    if isinstance(data, str):
        data = data.encode("utf-8")
    return decoder.decode(io.BytesIO(data), DecodeOptions.from_config(config))


def encode_bytes(encoder, table, /, typed=False, **config):
    hints = (
        TypeInferencer().hints_for(table.columns, table.rows) if typed else TypeHints.untyped(table.columns)
    )
    return encoder.encode(table, EncodeOptions.from_config(config), hints)


def encode(encoder, table, /, typed=False, **config):
    return encode_bytes(encoder, table, typed, **config).decode("utf-8")


PEOPLE = Table.from_records(["id", "name"], [["1", "O'Brien"], ["2", ""]])


# -----------------------------
# SQL
# -----------------------------


def test_sql_encode_one_statement_per_row():
    text = encode(SqlEncoder(), PEOPLE, typed=True, table="people")
    assert text == (
        "INSERT INTO `people` (`id`, `name`) VALUES (1, 'O\\'Brien');\n"
        "INSERT INTO `people` (`id`, `name`) VALUES (2, '');\n"
    )


def test_sql_encode_batches_and_dialects():
    text = encode(SqlEncoder(), PEOPLE, typed=True, table="people", dialect="postgresql", batch_size=2)
    assert text == (
        'INSERT INTO "people" ("id", "name") VALUES\n'
        "(1, 'O''Brien'),\n"
        "(2, '');\n"
    )
    text = encode(SqlEncoder(), PEOPLE, table="t", dialect="mssql", replace=True)
    assert text.startswith("REPLACE INTO [t] ([id], [name]) VALUES ('1', 'O''Brien');")


def test_sql_create_table_uses_inferred_types():
    text = encode(SqlEncoder(), PEOPLE, typed=True, table="people", create_table=True)
    assert text.startswith("CREATE TABLE `people` (\n  `id` BIGINT,\n  `name` TEXT\n);\n")


def test_sql_null_and_booleans():
    t = Table.from_records(["flag", "n", "note"], [["true", "", "NULL"], ["false", "3", "x"]])
    text = encode(SqlEncoder(), t, typed=True, dialect="sqlite", one_insert=True)
    assert text == (
        'INSERT INTO "table_name" ("flag", "n", "note") VALUES\n'
        "(1, NULL, 'NULL'),\n"
        "(0, 3, 'x');\n"
    )


def test_sql_null_text_round_trips_as_string():
    t = decode(SqlDecoder(), "INSERT INTO t (a) VALUES ('NULL'), ('x');")
    assert t.rows == [["NULL"], ["x"]]
    text = encode(SqlEncoder(), t, typed=True)
    assert "('NULL')" in text
    assert decode(SqlDecoder(), text) == t


def test_sql_unknown_dialect():
    with pytest.raises(EncodeError):
        encode(SqlEncoder(), PEOPLE, dialect="db2")


def test_sql_decode_dump():
    dump = """
-- MySQL dump
CREATE TABLE `people` (`id` int, `name` text);
LOCK TABLES `people` WRITE;
INSERT INTO `people` (`id`, `name`) VALUES (1,'O\\'Brien'),(2,NULL);
INSERT INTO `people` (`id`, `city`) VALUES (3, 'Oslo; Norway');
UNLOCK TABLES;
"""
    t = decode(SqlDecoder(), dump)
    assert t.columns == ["id", "name", "city"]
    assert t.rows == [
        ["1", "O'Brien", ""],
        ["2", "", ""],
        ["3", "", "Oslo; Norway"],
    ]


def test_sql_decode_positional_and_expressions():
    t = decode(SqlDecoder(), "insert into t values (1, TRUE, NOW(), -2.5);")
    assert t.columns == ["Column_1", "Column_2", "Column_3", "Column_4"]
    assert t.rows == [["1", "true", "NOW()", "-2.5"]]


def test_sql_decode_malformed_statement():
    text = "INSERT INTO t (a) VALUES (1);\nINSERT INTO t (a) VALUES (1, 2);\nINSERT INTO t (a) VALUES (3);"
    with pytest.raises(DecodeError) as excinfo:
        decode(SqlDecoder(), text)
    assert excinfo.value.statement == 2
    assert excinfo.value.line == 2
    t = decode(SqlDecoder(), text, best_effort=True)
    assert t.rows == [["1"], ["3"]]
    assert [w.code for w in t.warnings] == [WarningCode.SKIPPED_RECORD]


def test_sql_rejects_trailing_tokens():
    with pytest.raises(DecodeError) as excinfo:
        decode(SqlDecoder(), "INSERT INTO t (a) VALUES (1) garbage here;")
    assert excinfo.value.statement == 1
    t = decode(SqlDecoder(), "INSERT INTO t (a) VALUES (1) garbage;\nINSERT INTO t (a) VALUES (2);", best_effort=True)
    assert t.rows == [["2"]]
    assert [w.code for w in t.warnings] == [WarningCode.SKIPPED_RECORD]
    t = decode(SqlDecoder(), "INSERT INTO t (a) VALUES (1) ON DUPLICATE KEY UPDATE a = 1;")
    assert t.rows == [["1"]]


def test_sql_trailing_backslash_without_mysql_escapes():
    t = Table.from_records(["a"], [["C:\\"], ["x"]])
    for dialect in ("postgresql", "sqlite", "mssql", "oracle"):
        text = encode(SqlEncoder(), t, dialect=dialect)
        assert decode(SqlDecoder(), text, dialect=dialect) == t


def test_sql_round_trip_keeps_number_text():
    t = Table.from_records(["zip", "n"], [["007", "1.10"], ["+5", "2"]])
    text = encode(SqlEncoder(), t, typed=True)
    assert "('007', 1.10)" in text
    assert decode(SqlDecoder(), text) == t


def test_sql_round_trip():
    t = Table.from_records(["a", "b"], [["x'y", "back\\slash"], ["line\nbreak", "z"]])
    assert decode(SqlDecoder(), encode(SqlEncoder(), t)) == t


def test_sql_helpers():
    assert quote_identifier("we`ird", "mysql") == "`we``ird`"
    assert quote_identifier("a]b", "mssql") == "[a]]b]"
    assert quote_identifier("plain", "none") == "plain"
    assert quote_string("it's", "oracle") == "'it''s'"
    statements = list(split_statements("SELECT 1; /* ; */ SELECT ';';\n-- x;\nSELECT 2"))
    assert [s.strip() for s, _ in statements] == ["SELECT 1", "SELECT ';'", "SELECT 2"]


# -----------------------------
# XML
# -----------------------------


def test_xml_encode():
    text = encode(XmlEncoder(), Table.from_records(["a", "b"], [["1", "x<y"]]))
    assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<dataset>')
    assert "<record>" in text and "<b>x&lt;y</b>" in text


def test_xml_round_trip_and_union():
    t = Table.from_records(["a", "b"], [["1", "x & y"], ["2", ""]])
    assert decode(XmlDecoder(), encode(XmlEncoder(), t)) == t
    doc = '<rows><row id="1"><name>A</name></row><row><name>B</name><age>3</age></row></rows>'
    t = decode(XmlDecoder(), doc)
    assert t.columns == ["id", "name", "age"]
    assert t.rows == [["1", "A", ""], ["", "B", "3"]]


def test_xml_invalid_names_and_input():
    with pytest.raises(EncodeError) as excinfo:
        encode(XmlEncoder(), Table.from_records(["bad name"], [["1"]]))
    assert excinfo.value.column == "bad name"
    with pytest.raises(DecodeError) as excinfo:
        decode(XmlDecoder(), "<a>\n<b></a>")
    assert excinfo.value.line == 2


# -----------------------------
# INI
# -----------------------------


def test_ini_sections_become_rows():
    t = decode(IniDecoder(), "[db]\nhost = localhost\nport = 5432\n\n[cache]\nhost = redis\nttl = 60\n")
    assert t.columns == ["section", "host", "port", "ttl"]
    assert t.rows == [["db", "localhost", "5432", ""], ["cache", "redis", "", "60"]]


def test_ini_without_sections_is_key_value():
    t = decode(IniDecoder(), "name = demo\n# comment\nurl=http://x?a=b\n")
    assert t.columns == ["key", "value"]
    assert t.rows == [["name", "demo"], ["url", "http://x?a=b"]]


def test_ini_round_trips():
    t = Table.from_records(["section", "host"], [["db", "localhost"], ["cache", "redis"]])
    assert decode(IniDecoder(), encode(IniEncoder(), t)) == t
    kv = Table.from_records(["key", "value"], [["a", "1"], ["b", "two words"]])
    assert decode(IniDecoder(), encode(IniEncoder(), kv)) == kv


def test_ini_requires_section_names():
    with pytest.raises(EncodeError):
        encode(IniEncoder(), Table.from_records(["section", "k"], [["", "v"]]))
    with pytest.raises(EncodeError):
        encode(IniEncoder(), Table.from_records(["section", "k"], [["s", "1"], ["s", "2"]]))


def test_ini_parse_error():
    with pytest.raises(DecodeError):
        decode(IniDecoder(), "[a]\nx = 1\n[a]\ny = 2\n")


# -----------------------------
# YAML
# -----------------------------


def test_yaml_encode_typed_scalars():
    t = Table.from_records(["id", "ok", "name"], [["1", "true", "yes"], ["2", "false", "maybe"]])
    text = encode(YamlEncoder(), t, typed=True)
    assert text.startswith("- id: 1\n  ok: true\n  name: 'yes'\n")
    assert decode(YamlDecoder(), text) == t


def test_yaml_round_trip_keeps_number_text():
    t = Table.from_records(["zip", "price"], [["007", "1.10"], ["+5", "2.5"]])
    text = encode(YamlEncoder(), t, typed=True)
    assert "price: 2.5\n" in text
    assert decode(YamlDecoder(), text) == t


def test_yaml_decode_shapes():
    t = decode(YamlDecoder(), "a: [1, 2]\nb: [x]\n")
    assert t.rows == [["1", "x"], ["2", ""]]
    t = decode(YamlDecoder(), "- [a, b]\n- [1, {k: v}]\n")
    assert t.columns == ["a", "b"]
    assert t.rows == [["1", '{"k":"v"}']]
    t = decode(YamlDecoder(), "- when: 2024-01-05\n  n: null\n")
    assert t.rows == [["2024-01-05", ""]]


def test_yaml_errors():
    with pytest.raises(DecodeError) as excinfo:
        decode(YamlDecoder(), "a: [1, 2\nb: 3\n")
    assert excinfo.value.line is not None
    with pytest.raises(DecodeError):
        decode(YamlDecoder(), "just text")


# -----------------------------
# Excel
# -----------------------------


def test_excel_round_trip_with_types():
    t = Table.from_records(
        ["id", "price", "ok", "when", "name"],
        [["1", "1.5", "true", "2024-01-05", "x"], ["2", "", "false", "2024-02-01", "y"]],
    )
    data = encode_bytes(ExcelEncoder(), t, typed=True, sheet_name="People", auto_width=True)
    assert data[:2] == b"PK"
    assert decode(ExcelDecoder(), data) == t
    assert decode(ExcelDecoder(), data, sheet="People") == t


def test_excel_round_trip_keeps_number_text():
    t = Table.from_records(["zip", "price", "when"], [["007", "1.10", "05.01.2024"], ["012", "2.5", "2024-01-06"]])
    data = encode_bytes(ExcelEncoder(), t, typed=True)
    assert decode(ExcelDecoder(), data) == t


def test_excel_missing_sheet():
    data = encode_bytes(ExcelEncoder(), PEOPLE)
    with pytest.raises(DecodeError):
        decode(ExcelDecoder(), data, sheet="Nope")


def test_excel_rejects_non_workbooks():
    with pytest.raises(DecodeError):
        decode(ExcelDecoder(), b"not a zip file")


def test_excel_helpers():
    assert excel_number_format("%d.%m.%Y") == "dd.mm.yyyy"
    assert excel_cell_text(3.0, "%Y-%m-%d") == "3"
    assert excel_cell_text(float("nan"), "%Y-%m-%d") == ""
    assert excel_cell_text(True, "%Y-%m-%d") == "true"


# -----------------------------
# Template
# -----------------------------


def test_template_renders_records_and_filters():
    tpl = (
        "{% for r in records %}{{ r.name | upper }}={{ r.name | sql_value }};{% endfor %}"
        "|{{ columns | join(',') }}|{{ types.id }}"
    )
    text = encode(TemplateEncoder(), PEOPLE, typed=True, template=tpl)
    assert text == "O'BRIEN='O\\'Brien';='';|id,name|integer"


def test_template_escape_filters():
    t = Table.from_records(["v"], [["a<b & c|d"]])
    tpl = "{{ rows[0][0] | html_escape }} {{ rows[0][0] | markdown_escape }} {{ 'x,y' | csv_quote }}"
    assert encode(TemplateEncoder(), t, template=tpl) == 'a&lt;b &amp; c|d a<b & c\\|d "x,y"'


def test_template_errors():
    with pytest.raises(EncodeError):
        encode(TemplateEncoder(), PEOPLE)
    with pytest.raises(EncodeError):
        encode(TemplateEncoder(), PEOPLE, template="{{ missing }}")
    with pytest.raises(EncodeError):
        encode(TemplateEncoder(), PEOPLE, template="{% for %}")

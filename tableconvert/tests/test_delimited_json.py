import io
import json
import sys
from pathlib import Path as _P

import pytest

_project_root = _P(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from tableconvert.errors import DecodeError, EncodeError, WarningCode
from tableconvert.formats.delimited import CsvDecoder, CsvEncoder, TsvDecoder, TsvEncoder
from tableconvert.formats.json_formats import (
    JsonDecoder,
    JsonEncoder,
    JsonlDecoder,
    JsonlEncoder,
    cell_text,
    dumps,
    loads,
)
from tableconvert.options import DecodeOptions, EncodeOptions
from tableconvert.table import Table
from tableconvert.type_inference import TypeHints, TypeInferencer


def decode(decoder, text, **config):
    return decoder.decode(io.BytesIO(text.encode("utf-8")), DecodeOptions.from_config(config))


def encode(encoder, table, typed=False, **config):
    hints = (
        TypeInferencer().hints_for(table.columns, table.rows) if typed else TypeHints.untyped(table.columns)
    )
    return encoder.encode(table, EncodeOptions.from_config(config), hints).decode("utf-8")


# -----------------------------
# CSV / TSV
# -----------------------------


def test_csv_quoted_fields_and_embedded_newlines():
    t = decode(CsvDecoder(), 'a,b\n"x, y","line1\nline2"\n"say ""hi""",2\n')
    assert t.columns == ["a", "b"]
    assert t.rows == [["x, y", "line1\nline2"], ['say "hi"', "2"]]


def test_csv_bom_is_stripped():
    t = CsvDecoder().decode(io.BytesIO(b"\xef\xbb\xbfid,name\n1,x\n"), DecodeOptions())
    assert t.columns == ["id", "name"]


def test_csv_without_header_gets_synthetic_columns():
    t = decode(CsvDecoder(), "1,2\n3,4\n", header=False)
    assert t.columns == ["Column_1", "Column_2"]
    assert t.rows == [["1", "2"], ["3", "4"]]


def test_csv_custom_delimiter_and_tsv():
    assert decode(CsvDecoder(), "a;b\n1;2\n", delimiter=";").rows == [["1", "2"]]
    assert decode(TsvDecoder(), "a\tb\n1\t2\n").rows == [["1", "2"]]


def test_csv_malformed_record_fails_with_line():
    with pytest.raises(DecodeError) as excinfo:
        decode(CsvDecoder(), 'a,b\n"x"y,2\n3,4\n')
    assert excinfo.value.line == 2


def test_csv_best_effort_skips_malformed_record():
    t = decode(CsvDecoder(), 'a,b\n"x"y,2\n3,4\n', best_effort=True)
    assert t.rows == [["3", "4"]]
    assert [w.code for w in t.warnings] == [WarningCode.SKIPPED_RECORD]
    assert t.warnings[0].line == 2


def test_csv_empty_input():
    t = decode(CsvDecoder(), "")
    assert t.columns == [] and t.rows == []


def test_csv_encoder_quotes_when_needed():
    t = Table.from_records(["a", "b"], [["x,y", 'q"'], ["plain", "two\nlines"]])
    assert encode(CsvEncoder(), t) == 'a,b\n"x,y","q"""\nplain,"two\nlines"\n'


def test_csv_encoder_bom_and_no_header():
    t = Table.from_records(["a"], [["1"]])
    assert encode(CsvEncoder(), t, bom=True) == "\ufeff" + "a\n1\n"
    assert encode(CsvEncoder(), t, header=False) == "1\n"
    assert encode(TsvEncoder(), Table.from_records(["a", "b"], [["1", "2"]])) == "a\tb\n1\t2\n"


def test_csv_round_trip():
    t = Table.from_records(["a", "b"], [["1", "x, y"], ["", "z"]])
    again = decode(CsvDecoder(), encode(CsvEncoder(), t))
    assert again == t


def test_csv_unicode_line_separators_stay_inside_cells():
    t = Table.from_records(["a", "b"], [["x\u2028y", "z"], ["p\x0cq", "r\x1c"], ["s\x85", "t"]])
    again = decode(CsvDecoder(), encode(CsvEncoder(), t))
    assert again == t
    assert again.warnings == []


def test_csv_decode_leaves_stream_open():
    stream = io.BytesIO(b"a\n1\n")
    t = CsvDecoder().decode(stream, DecodeOptions())
    assert t.rows == [["1"]]
    assert not stream.closed


# -----------------------------
# JSON
# -----------------------------


def test_json_numbers_keep_their_text():
    t = decode(JsonDecoder(), '[{"v": 1.10, "n": null, "b": true, "o": {"x": [1, "é"]}}]')
    assert t.rows == [["1.10", "", "true", '{"x":[1,"é"]}']]


def test_json_key_union_in_first_seen_order():
    t = decode(JsonDecoder(), '[{"a": 1}, {"b": 2, "a": 3}]')
    assert t.columns == ["a", "b"]
    assert t.rows == [["1", ""], ["3", "2"]]


def test_json_2d_and_columnar_inputs():
    t = decode(JsonDecoder(), '[["a", "b"], [1, 2]]')
    assert t.columns == ["a", "b"] and t.rows == [["1", "2"]]
    t = decode(JsonDecoder(), '{"a": [1, 2], "b": ["x"]}')
    assert t.columns == ["a", "b"]
    assert t.rows == [["1", "x"], ["2", ""]]


def test_json_errors_carry_location():
    with pytest.raises(DecodeError) as excinfo:
        decode(JsonDecoder(), '[\n  {"a": 1,}\n]')
    assert excinfo.value.line == 2
    with pytest.raises(DecodeError):
        decode(JsonDecoder(), '"just a string"')
    with pytest.raises(DecodeError):
        decode(JsonDecoder(), "[1, 2]")


def test_json_encoder_typed_values():
    t = Table.from_records(["id", "price", "ok", "name"], [["1", "1.10", "true", "x"], ["2", "", "false", "y"]])
    out = json.loads(encode(JsonEncoder(), t, typed=True))
    assert out[0] == {"id": 1, "price": 1.1, "ok": True, "name": "x"}
    assert out[1]["price"] is None
    assert '"price": 1.10' in encode(JsonEncoder(), t, typed=True)


def test_json_encoder_layouts_and_minify():
    t = Table.from_records(["a", "a"], [["1", "2"]])
    assert encode(JsonEncoder(), t, pretty=False) == '[{"a":"1","a_1":"2"}]\n'
    assert encode(JsonEncoder(), t, pretty=False, format="2d") == '[["a","a"],["1","2"]]\n'
    assert encode(JsonEncoder(), t, pretty=False, format="column") == '{"a":["1"],"a_1":["2"]}\n'
    with pytest.raises(EncodeError):
        encode(JsonEncoder(), t, format="tree")


def test_json_round_trip_preserves_decimals():
    t = Table.from_records(["v", "s"], [["1.10", "x"], ["2.50", ""]])
    again = decode(JsonDecoder(), encode(JsonEncoder(), t, typed=True))
    assert again == t


def test_json_round_trip_keeps_leading_zeros_and_signs():
    t = Table.from_records(["zip", "n"], [["007", "+5"], ["012", "3"]])
    text = encode(JsonEncoder(), t, typed=True)
    assert json.loads(text) == [{"zip": "007", "n": "+5"}, {"zip": "012", "n": 3}]
    assert decode(JsonDecoder(), text) == t


def test_json_encoder_duplicate_headers_never_collide():
    t = Table.from_records(["a", "a", "a_1"], [["1", "2", "3"]])
    assert encode(JsonEncoder(), t, pretty=False) == '[{"a":"1","a_2":"2","a_1":"3"}]\n'


def test_dumps_and_cell_text_helpers():
    assert dumps({"a": [1, None]}) == '{"a":[1,null]}'
    assert dumps(float("nan")) == '"nan"'
    assert cell_text(False) == "false"
    assert loads("1.50") == "1.50"


# -----------------------------
# JSON Lines
# -----------------------------


def test_jsonl_decode_unions_keys():
    t = decode(JsonlDecoder(), '{"a": 1}\n\n{"a": 2, "b": "x"}\n')
    assert t.columns == ["a", "b"]
    assert t.rows == [["1", ""], ["2", "x"]]


def test_jsonl_streaming_reports_late_keys():
    warnings = []
    stream = JsonlDecoder().open_rows(
        io.BytesIO(b'{"a": 1}\n{"a": 2, "b": 3}\n'), DecodeOptions(), warnings
    )
    assert stream.columns == ["a"]
    assert [cells for cells, _ in stream.rows] == [["1"], ["2"]]
    assert [w.code for w in warnings] == [WarningCode.DROPPED_COLUMN]


def test_jsonl_line_separator_inside_string():
    t = decode(JsonlDecoder(), '{"a": "x\u2028y"}\n{"a": "z"}\n')
    assert t.rows == [["x\u2028y"], ["z"]]


def test_jsonl_bad_line():
    with pytest.raises(DecodeError) as excinfo:
        decode(JsonlDecoder(), '{"a": 1}\n{oops\n')
    assert excinfo.value.line == 2
    t = decode(JsonlDecoder(), '{"a": 1}\n{oops\n[1]\n', best_effort=True)
    assert t.rows == [["1"]]
    assert len(t.warnings) == 2


def test_jsonl_encoder():
    t = Table.from_records(["a", "b"], [["1", "x"]])
    assert encode(JsonlEncoder(), t, typed=True) == '{"a":1,"b":"x"}\n'

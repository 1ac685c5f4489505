import sys
from datetime import datetime
from pathlib import Path as _P

_project_root = _P(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from tableconvert.errors import WarningCode
from tableconvert.type_inference import (
    DataKind,
    TypeHints,
    TypeInferencer,
    ambiguity_warnings,
    parse_bool,
    parse_date,
    parse_float,
    parse_int,
)


def test_first_matching_kind_wins():
    inf = TypeInferencer()
    assert inf.infer_column(["1", "2", ""]) is DataKind.INTEGER
    assert inf.infer_column(["1", "0"]) is DataKind.INTEGER
    assert inf.infer_column(["1.5", "2"]) is DataKind.FLOAT
    assert inf.infer_column(["1e3", "-.5"]) is DataKind.FLOAT
    assert inf.infer_column(["true", "No"]) is DataKind.BOOLEAN
    assert inf.infer_column(["2024-01-01", "2024-02-03"]) is DataKind.DATE
    assert inf.infer_column(["abc", "1"]) is DataKind.STRING


def test_empty_column_is_string():
    inf = TypeInferencer()
    assert inf.infer_column([]) is DataKind.STRING
    assert inf.infer_column(["", "  "]) is DataKind.STRING


def test_integers_outside_int64_are_not_integers():
    inf = TypeInferencer()
    assert inf.infer_column(["99999999999999999999"]) is DataKind.FLOAT


def test_inference_is_idempotent():
    inf = TypeInferencer()
    cols = ["a", "b", "c"]
    rows = [["1", "x", "2024-01-01"], ["2", "y", ""]]
    first = inf.hints_for(cols, rows)
    second = inf.hints_for(cols, rows)
    assert first.types == second.types == [DataKind.INTEGER, DataKind.STRING, DataKind.DATE]


def test_custom_date_pattern():
    inf = TypeInferencer(["%d/%m/%Y"])
    assert inf.infer_column(["31/12/2024"]) is DataKind.DATE


def test_scalar_parsers():
    assert parse_int(" 42 ") == 42
    assert parse_int("4.2") is None
    assert parse_float("1e2") == 100.0
    assert parse_float("abc") is None
    assert parse_bool("YES") is True
    assert parse_bool("0") is False
    assert parse_bool("maybe") is None
    assert parse_date("2024-03-01") == datetime(2024, 3, 1)
    assert parse_date("yesterday") is None


def test_hints_recheck_each_cell():
    hints = TypeHints(["n"], [DataKind.INTEGER])
    assert hints.cell(0, "7").value == 7
    assert hints.cell(0, "").kind is DataKind.NULL
    assert hints.cell(0, "seven").kind is DataKind.STRING
    assert hints.is_typed
    assert not TypeHints.untyped(["n"]).is_typed
    assert hints.as_dict() == {"n": "integer"}


def test_hints_keep_text_that_would_not_render_back():
    hints = TypeHints(["n", "f", "b"], [DataKind.INTEGER, DataKind.FLOAT, DataKind.BOOLEAN])
    for raw in ("007", "+5", "-0", " 5"):
        assert hints.cell(0, raw) == (raw, DataKind.STRING, raw)
    assert hints.cell(0, "-12").value == -12
    assert hints.cell(1, "1.10").kind is DataKind.FLOAT
    assert hints.cell(1, "1e3").kind is DataKind.FLOAT
    assert hints.cell(1, "+1.5").kind is DataKind.STRING
    assert hints.cell(1, ".5").kind is DataKind.STRING
    assert hints.cell(2, "true").value is True
    assert hints.cell(2, "yes").kind is DataKind.STRING
    assert hints.cell(2, "False").kind is DataKind.STRING


def test_ambiguity_warning_for_mostly_numeric_strings():
    inf = TypeInferencer()
    values = [[str(i)] for i in range(19)] + [["unknown"]]
    inferred = inf.infer_types(["v"], values)
    assert inferred[0].detected_type is DataKind.STRING
    warnings = ambiguity_warnings(inferred)
    assert len(warnings) == 1
    assert warnings[0].code is WarningCode.AMBIGUOUS_TYPE


def test_no_ambiguity_for_plain_text():
    inf = TypeInferencer()
    inferred = inf.infer_types(["v"], [["a"], ["b"], ["1"]])
    assert ambiguity_warnings(inferred) == []

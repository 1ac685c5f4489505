import sys
from pathlib import Path as _P

import pytest

_project_root = _P(__file__).resolve().parents[2]
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from tableconvert.cleaning_utils import (
    RowTransformer,
    _dedupe_headers,
    apply_transforms,
    build_headers,
    normalize_transforms,
    transpose,
)
from tableconvert.table import Table


def test_normalize_transforms_orders_and_validates():
    assert normalize_transforms(["uppercase", "delete-empty", "transpose"]) == [
        "transpose",
        "delete_empty",
        "uppercase",
    ]
    assert normalize_transforms(None) == []
    with pytest.raises(ValueError):
        normalize_transforms(["reverse"])


def test_dedupe_headers():
    assert _dedupe_headers(["a", "b", "a", "a"]) == ["a", "b", "a_1", "a_2"]
    assert _dedupe_headers(["a", "a", "a_1"]) == ["a", "a_2", "a_1"]
    assert _dedupe_headers(["a_1", "a", "a"]) == ["a_1", "a", "a_2"]


def test_build_headers_names_blank_cells():
    assert build_headers(["  Name  ", None, "", "Unit\n Price"]) == [
        "Name",
        "Column_2",
        "Column_3",
        "Unit Price",
    ]


def test_transpose():
    t = Table.from_records(["a", "b"], [["1", "2"], ["3", "4"]])
    out = transpose(t)
    assert out.columns == ["", "Row_1", "Row_2"]
    assert out.rows == [["a", "1", "3"], ["b", "2", "4"]]


def test_delete_empty_and_deduplicate():
    t = Table.from_records(["a", "b"], [["x", "y"], ["", " "], ["x", "y"], ["z", "w"]])
    out = apply_transforms(t, ["delete_empty", "deduplicate"])
    assert out.rows == [["x", "y"], ["z", "w"]]


def test_case_transforms_touch_headers_and_cells():
    t = Table.from_records(["name"], [["alice smith"]])
    assert apply_transforms(t, ["capitalize"]).rows == [["Alice smith"]]
    t = Table.from_records(["name"], [["Alice"]])
    out = apply_transforms(t, ["lowercase"])
    assert out.columns == ["name"]
    assert out.rows == [["alice"]]
    t = Table.from_records(["name"], [["Alice"]])
    out = apply_transforms(t, ["uppercase"])
    assert out.columns == ["NAME"]
    assert out.rows == [["ALICE"]]


def test_no_transforms_returns_table_unchanged():
    t = Table.from_records(["a"], [["1"], ["1"]])
    assert apply_transforms(t, []) is t
    assert t.rows == [["1"], ["1"]]


def test_row_transformer():
    rt = RowTransformer(["deduplicate", "delete_empty", "uppercase"])
    assert rt.headers(["a"]) == ["A"]
    assert rt.apply(["x"]) == ["X"]
    assert rt.apply(["x"]) is None
    assert rt.apply([" "]) is None
    with pytest.raises(ValueError):
        RowTransformer(["transpose"])

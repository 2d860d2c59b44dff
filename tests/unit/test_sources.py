import json

import pytest

from py_load_loganalytics.sources import (
    open_records,
    read_csv_records,
    read_json_records,
)

pytestmark = pytest.mark.unit


def test_read_csv_records(tmp_path):
    path = tmp_path / "rows.csv"
    path.write_text("A 1,Qty,Note\ntrue,42,hi\nfalse,3.5\n", encoding="utf-8")

    rows = list(read_csv_records(path))

    assert rows == [
        {"A 1": "true", "Qty": "42", "Note": "hi"},
        {"A 1": "false", "Qty": "3.5", "Note": None},
    ]
    assert list(rows[0]) == ["A 1", "Qty", "Note"]


def test_read_csv_records_strips_bom_and_drops_extra_cells(tmp_path, caplog):
    path = tmp_path / "bom.csv"
    path.write_bytes("\ufeffName,Value\nx,1,unexpected\n".encode("utf-8"))

    rows = list(read_csv_records(path))

    assert rows == [{"Name": "x", "Value": "1"}]
    assert "Dropping 1 cell" in caplog.text


def test_read_json_array(tmp_path):
    path = tmp_path / "rows.json"
    path.write_text(
        json.dumps(
            [
                {"a": 1, "b": True, "c": None, "d": "text", "e": {"k": [1, 2]}},
                {"a": 2.5},
            ]
        )
    )

    rows = list(read_json_records(path))

    assert rows == [
        {"a": "1", "b": "true", "c": None, "d": "text", "e": '{"k":[1,2]}'},
        {"a": "2.5"},
    ]


def test_read_json_single_object(tmp_path):
    path = tmp_path / "one.json"
    path.write_text('{"x": "y"}')
    assert list(read_json_records(path)) == [{"x": "y"}]


def test_read_json_lines(tmp_path):
    path = tmp_path / "rows.jsonl"
    path.write_text('{"x": 1}\n\n{"x": 2}\n')
    assert list(read_json_records(path)) == [{"x": "1"}, {"x": "2"}]


def test_read_json_rejects_non_objects(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[1, 2]")
    with pytest.raises(ValueError, match="Expected a JSON object"):
        list(read_json_records(path))


def test_open_records_by_suffix_and_format(tmp_path):
    csv_path = tmp_path / "rows.csv"
    csv_path.write_text("a\n1\n")
    data_path = tmp_path / "rows.data"
    data_path.write_text('{"a": "1"}\n')

    assert list(open_records(csv_path)) == [{"a": "1"}]
    assert list(open_records(data_path, "jsonl")) == [{"a": "1"}]
    with pytest.raises(ValueError, match="Cannot tell"):
        open_records(data_path)

"""
Unit tests for cell materialization
"""

import itertools
import sys
import os

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from sversions.materializer import (
    DURATION_FORMULA,
    CellLinks,
    CellWritePayload,
    FormulaContent,
    LiteralValue,
    materialize_cell,
)

NAME_COLUMN = {"id": 1, "title": "Name", "format": "col-format"}


def test_duration_column_always_gets_fixed_formula():
    column = {"id": 2, "title": "Duration"}
    historical = {"value": 5, "hyperlink": {"url": "https://example.com"}}

    cell = materialize_cell(column, historical, {"formula": "=1"}, 22).to_dict()

    assert cell["formula"] == DURATION_FORMULA
    assert "value" not in cell
    assert "hyperlink" not in cell


def test_historical_formula_wins_over_current():
    cell = materialize_cell(
        NAME_COLUMN, {"formula": "=A1", "value": 3}, {"formula": "=B1"}, 11
    ).to_dict()

    assert cell == {"columnId": 11, "formula": "=A1", "format": "col-format"}


def test_current_formula_used_when_history_has_none():
    cell = materialize_cell(NAME_COLUMN, {"value": 3}, {"formula": "=B1"}, 11).to_dict()
    assert cell["formula"] == "=B1"


def test_formulas_disabled_restores_literal_value():
    cell = materialize_cell(
        NAME_COLUMN, {"formula": "=A1", "value": 3}, None, 11, include_formulas=False
    ).to_dict()

    assert cell["value"] == 3
    assert "formula" not in cell


def test_no_history_writes_explicit_null_value():
    cell = materialize_cell({"id": 1, "title": "Name"}, None, None, 11).to_dict()
    assert cell == {"columnId": 11, "value": None}


def test_object_value_replaces_literal_value():
    historical = {"value": "a@example.com", "objectValue": {"objectType": "CONTACT"}}

    cell = materialize_cell(NAME_COLUMN, historical, None, 11).to_dict()

    assert cell["objectValue"] == {"objectType": "CONTACT"}
    assert "value" not in cell


def test_format_falls_back_from_history_to_current_to_column():
    assert materialize_cell(NAME_COLUMN, {"format": "h"}, {"format": "c"}, 1).format == "h"
    assert materialize_cell(NAME_COLUMN, {"value": 1}, {"format": "c"}, 1).format == "c"
    assert materialize_cell(NAME_COLUMN, {"value": 1}, {}, 1).format == "col-format"


def test_links_prefer_history_and_fall_back_to_current():
    cell = materialize_cell(
        {"id": 1, "title": "Name"},
        {"value": "x", "hyperlink": {"url": "https://old"}},
        {"hyperlink": {"url": "https://new"}, "image": {"id": "img"}},
        11,
    ).to_dict()

    assert cell["hyperlink"] == {"url": "https://old"}
    assert cell["image"] == {"id": "img"}


def test_conditional_format_and_validation_flags_only_from_history():
    historical = {"value": 1, "conditionalFormat": "cf", "overrideValidation": True, "strict": False}
    current = {"conditionalFormat": "current-cf", "strict": True}

    cell = materialize_cell({"id": 1, "title": "Name"}, historical, current, 11).to_dict()

    assert cell["conditionalFormat"] == "cf"
    assert cell["overrideValidation"] is True
    assert cell["strict"] is False

    cell = materialize_cell({"id": 1, "title": "Name"}, {"value": 1}, current, 11).to_dict()
    assert "conditionalFormat" not in cell
    assert "strict" not in cell


def test_payload_rejects_links_alongside_formula():
    with pytest.raises(ValueError):
        CellWritePayload(
            column_id=1,
            content=FormulaContent("=1"),
            links=CellLinks(hyperlink={"url": "https://example.com"}),
        )
    # Empty links are fine
    CellWritePayload(column_id=1, content=FormulaContent("=1"), links=CellLinks())
    assert CellWritePayload(column_id=1, content=LiteralValue(2)).to_dict() == {
        "columnId": 1,
        "value": 2,
    }


def test_every_combination_yields_a_valid_write():
    """A written cell never mixes formula with value, object value or links."""
    historical_options = [
        None,
        {"value": 1},
        {"formula": "=1"},
        {"objectValue": {"objectType": "DATE"}},
        {"value": 1, "hyperlink": {"url": "u"}, "linksOutToCells": [{}]},
        {"formula": "=2", "image": {"id": "i"}, "format": "f"},
    ]
    current_options = [
        None,
        {"formula": "=3"},
        {"linkInFromCell": {"sheetId": 1}},
        {"objectValue": {"objectType": "CONTACT"}, "format": "cf"},
    ]
    columns = [{"id": 1, "title": "Name"}, {"id": 2, "title": "Duration"}]

    for column, historical, current, include_formulas in itertools.product(
        columns, historical_options, current_options, (True, False)
    ):
        cell = materialize_cell(column, historical, current, 99, include_formulas).to_dict()

        content_keys = {"value", "formula", "objectValue"} & set(cell)
        assert len(content_keys) == 1, cell
        if "formula" in cell:
            assert not {"hyperlink", "image", "linkInFromCell", "linksOutToCells"} & set(cell)
        if column["title"] == "Duration":
            assert cell["formula"] == DURATION_FORMULA
        assert cell["columnId"] == 99

"""
Unit tests for point-in-time resolution of cell history
"""

import random
import sys
import os
from datetime import datetime, timedelta, timezone

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "../..")))

from core.utils import UserInputError
from sversions.history import (
    cells_existing_at,
    history_entries,
    parse_timestamp,
    resolve_cell_value_at,
)

BASE = datetime(2025, 3, 27, 12, 0, 0, tzinfo=timezone.utc)


def _iso(dt):
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def test_parse_timestamp_accepts_trailing_z_and_naive():
    assert parse_timestamp("2025-03-27T12:00:00Z") == BASE
    assert parse_timestamp("2025-03-27T12:00:00") == BASE
    assert parse_timestamp("2025-03-27T14:00:00+02:00") == BASE


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(UserInputError):
        parse_timestamp("yesterday")
    with pytest.raises(UserInputError):
        parse_timestamp("")


def test_parse_timestamp_accepts_any_fraction_length():
    assert parse_timestamp("2025-03-27T12:00:00.5Z") == BASE.replace(microsecond=500000)
    assert parse_timestamp("2025-03-27T12:00:00.12Z") == BASE.replace(microsecond=120000)
    assert parse_timestamp("2025-03-27T12:00:00.123Z") == BASE.replace(microsecond=123000)
    assert parse_timestamp("2025-03-27T12:00:00.12345678Z") == BASE.replace(microsecond=123456)
    assert parse_timestamp("2025-03-27T14:00:00.5+02:00") == BASE.replace(microsecond=500000)


def test_resolve_uses_entries_with_short_fractions():
    entries = [
        {"modifiedAt": "2025-03-27T11:00:00.5Z", "value": "short fraction"},
        {"modifiedAt": "2025-03-27T10:00:00Z", "value": "older"},
    ]
    assert resolve_cell_value_at(entries, BASE) == {"value": "short fraction"}


def test_history_entries_unwraps_paged_and_bare_responses():
    entries = [{"value": 1}]
    assert history_entries({"data": entries, "totalCount": 1}) == entries
    assert history_entries(entries) == entries
    assert history_entries(None) == []
    assert history_entries({}) == []


def test_resolve_picks_latest_entry_not_after_target():
    entries = [
        {"modifiedAt": _iso(BASE - timedelta(hours=3)), "value": "old"},
        {"modifiedAt": _iso(BASE + timedelta(hours=1)), "value": "future"},
        {"modifiedAt": _iso(BASE - timedelta(hours=1)), "value": "recent"},
    ]

    result = resolve_cell_value_at(entries, _iso(BASE))

    assert result == {"value": "recent"}


def test_resolve_includes_entry_at_exact_target():
    entries = [{"modifiedAt": _iso(BASE), "value": "exact", "formula": "=1+1"}]
    assert resolve_cell_value_at(entries, BASE) == {"value": "exact", "formula": "=1+1"}


def test_resolve_returns_none_when_all_entries_postdate_target():
    entries = [{"modifiedAt": _iso(BASE + timedelta(minutes=1)), "value": 1}]
    assert resolve_cell_value_at(entries, BASE) is None
    assert resolve_cell_value_at([], BASE) is None


def test_resolve_drops_null_fields_and_unknown_keys():
    entries = [
        {
            "modifiedAt": _iso(BASE),
            "modifiedBy": {"email": "a@example.com"},
            "value": None,
            "displayValue": "",
            "format": ",,1,,,,,,,,,,,,,",
            "hyperlink": None,
        }
    ]

    result = resolve_cell_value_at(entries, BASE)

    assert result == {"displayValue": "", "format": ",,1,,,,,,,,,,,,,"}


def test_resolve_tie_keeps_first_entry_in_response_order():
    entries = [
        {"modifiedAt": _iso(BASE), "value": "first"},
        {"modifiedAt": _iso(BASE), "value": "second"},
    ]
    assert resolve_cell_value_at(entries, BASE) == {"value": "first"}


def test_resolve_ignores_entries_without_parseable_timestamp():
    entries = [
        {"value": "no timestamp"},
        {"modifiedAt": "not a date", "value": "bad timestamp"},
        {"modifiedAt": _iso(BASE - timedelta(days=1)), "value": "good"},
    ]
    assert resolve_cell_value_at(entries, BASE) == {"value": "good"}


def test_resolve_is_independent_of_input_order():
    rng = random.Random(1234)
    for _ in range(50):
        entries = [
            {
                "modifiedAt": _iso(BASE + timedelta(minutes=rng.randint(-500, 500))),
                "value": index,
            }
            for index in range(rng.randint(1, 12))
        ]
        target = BASE + timedelta(minutes=rng.randint(-600, 600))

        eligible = [e for e in entries if parse_timestamp(e["modifiedAt"]) <= target]
        result = resolve_cell_value_at(entries, target)

        if not eligible:
            assert result is None
            continue
        newest = max(parse_timestamp(e["modifiedAt"]) for e in eligible)
        chosen = next(e for e in entries if e["value"] == result["value"])
        assert parse_timestamp(chosen["modifiedAt"]) == newest

        shuffled = list(entries)
        rng.shuffle(shuffled)
        reshuffled = resolve_cell_value_at(shuffled, target)
        chosen_again = next(e for e in entries if e["value"] == reshuffled["value"])
        assert parse_timestamp(chosen_again["modifiedAt"]) == newest


def test_cells_existing_at_skips_rows_created_after_target():
    sheet = {
        "rows": [
            {
                "id": 1,
                "createdAt": _iso(BASE - timedelta(days=1)),
                "cells": [
                    {"columnId": 10, "value": "a"},
                    {"columnId": 11, "value": None},
                    {"columnId": 12, "value": 0},
                ],
            },
            {
                "id": 2,
                "createdAt": _iso(BASE + timedelta(days=1)),
                "cells": [{"columnId": 10, "value": "new"}],
            },
            {"id": 3, "cells": [{"columnId": 10, "value": "no createdAt"}, {"value": "x"}]},
        ]
    }

    cells = cells_existing_at(sheet, BASE)

    assert cells == [
        {"rowId": 1, "columnId": 10},
        {"rowId": 1, "columnId": 12},
        {"rowId": 3, "columnId": 10},
    ]


def test_cells_existing_at_keeps_rows_with_unparseable_created_at():
    sheet = {"rows": [{"id": 5, "createdAt": "garbage", "cells": [{"columnId": 1, "value": 1}]}]}
    assert cells_existing_at(sheet, BASE) == [{"rowId": 5, "columnId": 1}]

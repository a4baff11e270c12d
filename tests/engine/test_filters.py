from datetime import date, datetime

import pytest

from quire.engine.filters import format_date, isoformat, truncate_words


def test_format_date():
    assert format_date(date(2026, 2, 25)) == "February 25, 2026"
    assert format_date(datetime(2026, 2, 25, 9, 30), "%Y-%m-%d") == "2026-02-25"
    assert format_date(None) == ""
    assert format_date("yesterday") == "yesterday"


def test_isoformat():
    assert isoformat(date(2026, 2, 25)) == "2026-02-25"
    assert isoformat(None) == ""


@pytest.mark.parametrize(
    "text, limit, expected",
    [
        ("one two three", 5, "one two three"),
        ("one two three four", 2, "one two…"),
        ("  spaced   out  ", 5, "spaced out"),
        ("", 3, ""),
        (None, 3, ""),
    ],
)
def test_truncate_words(text, limit, expected):
    assert truncate_words(text, limit) == expected

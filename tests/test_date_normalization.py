"""
Tests for date normalization.
"""

from datetime import date

import pytest

from application_import.core.config import settings
from application_import.utils.date import days_between, is_date_like, normalize_date


class TestNormalizeDate:
    """Test the supported input formats."""

    @pytest.mark.parametrize("value,expected", [
        ("2024-01-15", "2024-01-15"),
        ("2024/01/15", "2024-01-15"),
        ("2024-1-5", "2024-01-05"),
        ("2024-01-15T10:30:00Z", "2024-01-15"),
        ("2024-01-15 10:30", "2024-01-15"),
        ("01/15/2024", "2024-01-15"),
        ("1/5/2024", "2024-01-05"),
        ("15/01/2024", "2024-01-15"),
        ("15.01.2024", "2024-01-15"),
        ("01/15/24", "2024-01-15"),
        ("15.01.99", "1999-01-15"),
        ("Jan 15, 2024", "2024-01-15"),
        ("15 January 2024", "2024-01-15"),
        ("  2024-01-15  ", "2024-01-15"),
    ])
    def test_accepted_formats(self, value, expected):
        assert normalize_date(value) == expected

    @pytest.mark.parametrize("value", [
        None,
        "",
        "   ",
        "not a date",
        "2024-02-30",
        "13/13/2024",
        "02/30/2024",
        "tomorrow",
        "12345",
    ])
    def test_rejected_values(self, value):
        assert normalize_date(value) is None

    def test_date_objects_pass_through(self):
        assert normalize_date(date(2024, 1, 15)) == "2024-01-15"

    def test_ambiguous_slash_date_is_month_first_by_default(self):
        assert normalize_date("03/04/2024") == "2024-03-04"

    def test_ambiguous_slash_date_follows_dayfirst_setting(self, monkeypatch):
        monkeypatch.setattr(settings, "date_default_dayfirst", True)
        assert normalize_date("03/04/2024") == "2024-04-03"


@pytest.mark.parametrize("value", [
    "2024-01-15",
    "01/15/2024",
    "15.01.2024",
    "2023-12-31T23:59:00",
    "Feb 29, 2024",
])
def test_round_trip(value):
    """Re-normalizing the output gives the same calendar date."""
    normalized = normalize_date(value)
    assert normalized is not None
    assert normalize_date(normalized) == normalized
    assert date.fromisoformat(normalized).isoformat() == normalized


def test_is_date_like():
    assert is_date_like("2024-01-15")
    assert is_date_like("Jan 15, 2024")
    assert not is_date_like("Spotify")
    assert not is_date_like("")
    assert not is_date_like(None)


def test_days_between():
    assert days_between("2024-01-15", "2024-01-16") == 1
    assert days_between("2024-01-16", "2024-01-15") == 1
    assert days_between("2024-01-15", "garbage") is None

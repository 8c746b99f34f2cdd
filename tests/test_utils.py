"""Tests for date, validation and pagination helpers."""

from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from app.core.config import settings
from app.core.errors import ValidationAppError
from app.utils.dates import day_bounds, ensure_aware, local_date, parse_date, window_days
from app.utils.pagination import normalize_pagination
from app.utils.validators import (
    normalize_notes,
    normalize_tags,
    normalize_user_filter,
    normalize_user_name,
)


class TestDates:
    def test_day_bounds_in_utc(self):
        start, end = day_bounds(date(2024, 5, 15))

        assert start == datetime(2024, 5, 15, tzinfo=timezone.utc)
        assert end == datetime(2024, 5, 16, tzinfo=timezone.utc)

    def test_day_bounds_follow_local_timezone(self, monkeypatch):
        monkeypatch.setattr(settings.app, "timezone", "America/New_York")

        start, end = day_bounds(date(2024, 5, 15))

        assert start == datetime(2024, 5, 15, 4, tzinfo=timezone.utc)
        assert end == datetime(2024, 5, 16, 4, tzinfo=timezone.utc)

    def test_local_date_and_naive_values(self, monkeypatch):
        monkeypatch.setattr(settings.app, "timezone", "Asia/Tokyo")

        assert local_date(datetime(2024, 5, 14, 16, tzinfo=timezone.utc)) == date(2024, 5, 15)
        assert ensure_aware(datetime(2024, 5, 15, 9)).utcoffset().total_seconds() == 9 * 3600

    def test_window_days_oldest_first(self):
        now = datetime(2024, 3, 1, 10, tzinfo=timezone.utc)

        assert window_days(3, now) == [date(2024, 2, 28), date(2024, 2, 29), date(2024, 3, 1)]
        with pytest.raises(ValueError):
            window_days(0, now)

    @pytest.mark.parametrize("value", ["", "2024-5-1", "2024-13-01", "2024-02-30", "15/05/2024"])
    def test_parse_date_rejects_bad_input(self, value):
        with pytest.raises(ValidationAppError) as exc_info:
            parse_date(value)
        assert exc_info.value.code == "invalid_date"

    def test_parse_date(self):
        assert parse_date("2024-02-29") == date(2024, 2, 29)


class TestValidators:
    def test_user_name_is_collapsed(self):
        assert normalize_user_name("  Mary \t  O'Neil-Smith ") == "Mary O'Neil-Smith"

    @pytest.mark.parametrize("value", ["", "   ", "x" * 51, "Bob!", "Zoë"])
    def test_user_name_rejections(self, value):
        with pytest.raises(ValueError):
            normalize_user_name(value)

    def test_notes(self):
        assert normalize_notes(None) is None
        assert normalize_notes("   ") is None
        assert normalize_notes(" a \n b ") == "a b"
        with pytest.raises(ValueError):
            normalize_notes("x" * 501)

    def test_tags(self):
        assert normalize_tags([" Exercise", "exercise", "", "SICK"]) == ["exercise", "sick"]
        assert normalize_tags(None) == []

    def test_user_filter(self):
        assert normalize_user_filter("  Mary   Ann ") == "Mary Ann"
        assert normalize_user_filter("   ") is None
        assert normalize_user_filter(None) is None


@pytest.mark.parametrize(
    ("page", "per_page", "expected"),
    [
        (None, None, (1, 20)),
        (0, 0, (1, 20)),
        (-3, 101, (1, 20)),
        (2, 100, (2, 100)),
        ("3", " 50 ", (3, 50)),
        ("abc", "lots", (1, 20)),
        ("1.5", "", (1, 20)),
    ],
)
def test_normalize_pagination(page, per_page, expected):
    assert normalize_pagination(page, per_page) == expected

"""Tests for duration decomposition, pretty durations and locale dates."""

from datetime import datetime

import pytest

from guild_ledger.timeparse import (
    DAY_MS,
    HOUR_MS,
    MINUTE_MS,
    format_date,
    parse_duration,
    pretty_duration,
)


@pytest.mark.unit
def test_parse_duration():
    parts = parse_duration(DAY_MS + 2 * HOUR_MS + 3 * MINUTE_MS + 4_005)

    assert parts.to_dict() == {
        "days": 1,
        "hours": 2,
        "minutes": 3,
        "seconds": 4,
        "milliseconds": 5,
    }


@pytest.mark.unit
def test_parse_duration_clamps_negative():
    assert parse_duration(-5).to_dict()["milliseconds"] == 0


@pytest.mark.unit
@pytest.mark.parametrize(
    ("ms", "expected"),
    [
        (500, "500ms"),
        (10_000, "10s"),
        (5 * MINUTE_MS, "5m"),
        (90 * MINUTE_MS, "2h"),
        (23 * HOUR_MS, "23h"),
        (DAY_MS, "1d"),
        (int(2.5 * DAY_MS), "3d"),
    ],
)
def test_pretty_duration(ms, expected):
    assert pretty_duration(ms) == expected


class TestFormatDate:
    moment = datetime(2026, 10, 8, 14, 3, 9)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("locale", "expected"),
        [
            ("ru", "08.10.2026, 14:03:09"),
            ("en", "10/8/2026, 2:03:09 PM"),
            ("en-US", "10/8/2026, 2:03:09 PM"),
            ("en_GB", "08/10/2026, 14:03:09"),
            ("de", "8.10.2026, 14:03:09"),
        ],
    )
    def test_known_locales(self, locale, expected):
        assert format_date(self.moment, locale) == expected

    @pytest.mark.unit
    def test_unknown_locale_falls_back_to_iso(self):
        assert format_date(self.moment, "xx") == "2026-10-08T14:03:09"

"""Tests for ledgerscope.dates pure functions."""

from datetime import date, datetime, time

import pytest

from ledgerscope.dates import as_timestamp, end_of_day, parse_date, parse_time


class TestParseDate:
    """Tests for parse_date."""

    @pytest.mark.parametrize("text", ["2024-01-15", "2024/01/15", "2024.01.15"])
    def test_accepts_each_separator(self, text: str) -> None:
        """Should accept dash, slash and dot separators."""
        assert parse_date(text) == date(2024, 1, 15)

    def test_single_digit_month_and_day(self) -> None:
        """Should accept unpadded month and day."""
        assert parse_date("2024-3-7") == date(2024, 3, 7)

    def test_rejects_mixed_separators(self) -> None:
        """Should reject dates mixing separators."""
        with pytest.raises(ValueError):
            parse_date("2024-01/15")

    def test_rejects_impossible_date(self) -> None:
        """Should reject dates that do not exist."""
        with pytest.raises(ValueError):
            parse_date("2023-02-29")

    def test_accepts_leap_day(self) -> None:
        """Should accept February 29 in a leap year."""
        assert parse_date("2024-02-29") == date(2024, 2, 29)


class TestParseTime:
    """Tests for parse_time."""

    def test_hours_and_minutes(self) -> None:
        """Should default seconds to zero."""
        assert parse_time("09:30") == time(9, 30)

    def test_with_seconds(self) -> None:
        """Should parse seconds when given."""
        assert parse_time("23:59:58") == time(23, 59, 58)

    def test_rejects_out_of_range(self) -> None:
        """Should reject hours past 23."""
        with pytest.raises(ValueError):
            parse_time("24:00")


class TestTimestamps:
    """Tests for end_of_day and as_timestamp."""

    def test_end_of_day_is_after_every_time(self) -> None:
        """End of day should come after any price time on that day."""
        assert end_of_day(date(2024, 1, 15)) > datetime(2024, 1, 15, 23, 59, 59)
        assert end_of_day(date(2024, 1, 15)) < datetime(2024, 1, 16)

    def test_date_means_end_of_day(self) -> None:
        """A bare date should be treated as the end of that day."""
        assert as_timestamp(date(2024, 1, 15)) == end_of_day(date(2024, 1, 15))

    def test_datetime_passes_through(self) -> None:
        """A datetime should be returned unchanged."""
        moment = datetime(2024, 1, 15, 10, 0)
        assert as_timestamp(moment) is moment

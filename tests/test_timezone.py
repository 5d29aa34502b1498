"""Tests for clinic-local <-> UTC conversion."""
from datetime import date, datetime, time, timedelta, timezone

import pytest

from app.core.errors import ValidationError
from app.core.timezone import TimeZoneNormalizer, local_weekday, parse_hhmm, to_naive_utc


@pytest.fixture
def ist():
    return TimeZoneNormalizer(330)


class TestTimeZoneNormalizer:
    def test_to_utc_applies_offset(self, ist):
        """09:00 at UTC+05:30 is 03:30 UTC the same day."""
        assert ist.to_utc(date(2026, 3, 2), "09:00") == datetime(2026, 3, 2, 3, 30)

    def test_to_utc_crosses_midnight(self, ist):
        """Early local morning maps to the previous UTC day."""
        assert ist.to_utc(date(2026, 3, 2), "02:00") == datetime(2026, 3, 1, 20, 30)

    def test_to_local(self, ist):
        assert ist.to_local(datetime(2026, 3, 2, 3, 30)) == (date(2026, 3, 2), "09:00")

    def test_round_trip_every_quarter_hour(self, ist):
        """Local -> UTC -> local reproduces the wall-clock time exactly."""
        d = date(2026, 3, 2)
        for minutes in range(0, 24 * 60, 15):
            hhmm = f"{minutes // 60:02d}:{minutes % 60:02d}"
            assert ist.to_local(ist.to_utc(d, hhmm)) == (d, hhmm)

    def test_round_trip_negative_offset(self):
        nyc = TimeZoneNormalizer(-300)
        d = date(2026, 7, 4)
        assert nyc.to_utc(d, "21:00") == datetime(2026, 7, 5, 2, 0)
        assert nyc.to_local(nyc.to_utc(d, "21:00")) == (d, "21:00")

    def test_aware_instant_converted(self, ist):
        aware = datetime(2026, 3, 2, 9, 0, tzinfo=timezone(timedelta(hours=5, minutes=30)))
        assert ist.to_local(aware) == (date(2026, 3, 2), "09:00")

    def test_day_bounds(self, ist):
        start, end = ist.day_bounds(date(2026, 3, 2))
        assert start == datetime(2026, 3, 1, 18, 30)
        assert end - start == timedelta(days=1)

    def test_label(self, ist):
        assert ist.label == "UTC+05:30"
        assert TimeZoneNormalizer(-90).label == "UTC-01:30"


class TestParsing:
    @pytest.mark.parametrize("value", ["25:00", "9", "09:60", "nine", "", "09-00"])
    def test_malformed_time_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_hhmm(value)

    def test_latest_time_of_day_is_2359(self):
        assert parse_hhmm("23:59") == time(23, 59)
        with pytest.raises(ValidationError):
            parse_hhmm("24:00")

    def test_single_digit_hour_accepted(self):
        assert parse_hhmm("9:05").hour == 9

    def test_local_weekday_sunday_is_zero(self):
        assert local_weekday(date(2026, 3, 1)) == 0  # Sunday
        assert local_weekday(date(2026, 3, 2)) == 1  # Monday
        assert local_weekday(date(2026, 3, 7)) == 6  # Saturday

    def test_naive_taken_as_utc(self):
        naive = datetime(2026, 3, 2, 10, 0)
        assert to_naive_utc(naive) is naive

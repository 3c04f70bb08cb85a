"""Tests for calendar helpers and form validation."""

from datetime import date, datetime

import pytest

from errors import InvalidInput
from models import CourseType
from utils import (
    add_days,
    difference_in_days,
    format_date,
    parse_date,
    projections_to_csv_bytes,
    to_iso,
    today,
    validate_customer_inputs,
)


class TestParseDate:
    """Parsing accepts ISO and DD/MM/YYYY and never raises."""

    def test_iso(self):
        assert parse_date("2024-02-29") == date(2024, 2, 29)

    def test_day_month_year(self):
        assert parse_date("05/03/2024") == date(2024, 3, 5)

    def test_single_digit_day_month(self):
        assert parse_date("5/3/2024") == date(2024, 3, 5)

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2024-02-30", "31/02/2024", "2024/01/01"])
    def test_unparseable_returns_none(self, value):
        assert parse_date(value) is None

    def test_passes_dates_through(self):
        assert parse_date(date(2024, 1, 1)) == date(2024, 1, 1)
        assert parse_date(datetime(2024, 1, 1, 13, 45)) == date(2024, 1, 1)

    @pytest.mark.parametrize(
        "d", [date(2024, 1, 1), date(2024, 2, 29), date(1999, 12, 31), date(2030, 7, 4), date(999, 5, 6), date(1, 1, 1)]
    )
    def test_format_then_parse_is_identity(self, d):
        assert parse_date(format_date(d)) == d


class TestFormatting:
    def test_format_date(self):
        assert format_date(date(2024, 3, 5)) == "05/03/2024"
        assert format_date("2024-03-05") == "05/03/2024"

    def test_format_pads_short_years(self):
        assert format_date(date(999, 5, 6)) == "06/05/0999"

    def test_format_unresolvable(self):
        assert format_date(None) == "-"
        assert format_date("garbage") == "-"

    def test_to_iso(self):
        assert to_iso(date(2024, 3, 5)) == "2024-03-05"
        assert to_iso(None) == ""


class TestArithmetic:
    def test_add_days(self):
        assert add_days(date(2024, 1, 1), 29) == date(2024, 1, 30)
        assert add_days(date(2024, 1, 1), -1) == date(2023, 12, 31)

    def test_add_days_rejects_non_dates(self):
        with pytest.raises(InvalidInput):
            add_days("2024-01-01", 1)
        with pytest.raises(InvalidInput):
            add_days(None, 1)

    @pytest.mark.parametrize("d,days", [(date(9999, 12, 31), 1), (date(1, 1, 1), -1), (date(2024, 1, 1), 10**12)])
    def test_add_days_out_of_range(self, d, days):
        with pytest.raises(InvalidInput):
            add_days(d, days)

    def test_difference_in_days(self):
        assert difference_in_days(date(2024, 1, 30), date(2024, 1, 20)) == 10
        assert difference_in_days(date(2024, 1, 20), date(2024, 1, 30)) == -10
        assert difference_in_days(date(2024, 1, 20), date(2024, 1, 20)) == 0

    def test_difference_ignores_time_of_day(self):
        assert difference_in_days(datetime(2024, 1, 2, 0, 1), datetime(2024, 1, 1, 23, 59)) == 1

    def test_difference_with_invalid_input_is_none(self):
        assert difference_in_days(None, date(2024, 1, 1)) is None
        assert difference_in_days(date(2024, 1, 1), "2024-01-01") is None

    def test_today_is_a_date(self):
        t = today()
        assert isinstance(t, date) and not isinstance(t, datetime)


class TestValidateCustomerInputs:
    def _valid(self, **overrides):
        fields = dict(
            full_name="สมหญิง",
            phone="0812345678",
            start_date="2024-01-01",
            course_type=CourseType.MONTHLY,
            duration_or_package="1 เดือน",
        )
        fields.update(overrides)
        return validate_customer_inputs(**fields)

    def test_valid_input(self):
        assert self._valid() == {}

    def test_plain_string_course_type_accepted(self):
        assert self._valid(course_type="รายครั้ง", duration_or_package="10 ครั้ง / 2 เดือน") == {}

    def test_missing_name(self):
        assert "FullName" in self._valid(full_name="  ")

    @pytest.mark.parametrize("phone", ["12345", "08123456789", "081-234-567"])
    def test_bad_phone(self, phone):
        assert "Phone" in self._valid(phone=phone)

    def test_phone_optional(self):
        assert self._valid(phone="") == {}
        assert self._valid(phone=None) == {}

    def test_bad_start_date(self):
        assert "StartDate" in self._valid(start_date="2024-13-01")

    def test_unknown_course_type(self):
        assert "CourseType" in self._valid(course_type="yearly")

    def test_negative_sessions(self):
        errors = self._valid(remaining_sessions=-1, bonus_sessions="x")
        assert "RemainingSessions" in errors
        assert "BonusSessions" in errors

    @pytest.mark.parametrize("value", [2.7, "2.5", "1e400", float("nan")])
    def test_fractional_sessions(self, value):
        assert "RemainingSessions" in self._valid(remaining_sessions=value)

    @pytest.mark.parametrize("value", [3, "3", " 3 ", 3.0, "3.0"])
    def test_whole_number_sessions(self, value):
        assert self._valid(remaining_sessions=value) == {}

    def test_bad_manual_end_date(self):
        assert "ManualEndDate" in self._valid(manual_end_date="32/01/2024")


class TestExport:
    def test_projections_to_csv(self, make_customer):
        from projector import project

        p = project(make_customer(), date(2024, 1, 20))
        text = projections_to_csv_bytes([p]).decode("utf-8-sig")
        header, row = text.strip().splitlines()
        assert header.startswith("CustomerID,FullName,Phone,CourseType")
        assert "c-1" in row and "30/01/2024" in row and "ใช้งาน" in row

"""Tests for the customer row store and row coercion."""

import json
from dataclasses import replace
from datetime import date

import pytest

import db
from errors import StoreError
from models import CUSTOMER_COLUMNS, CourseType


class TestRowCoercion:
    def test_customer_to_row_uses_sheet_headers(self, make_customer):
        row = db.customer_to_row(make_customer(check_in_history=[date(2024, 1, 5)]))
        assert list(row) == CUSTOMER_COLUMNS
        assert row["CourseType"] == "รายเดือน"
        assert row["StartDate"] == "2024-01-01"
        assert row["ManualEndDate"] == ""
        assert row["RemainingSessions"] == ""
        assert json.loads(row["CheckInHistory"]) == ["2024-01-05"]

    def test_round_trip(self, make_customer):
        c = make_customer(course_type=CourseType.PER_SESSION, check_in_history=[date(2024, 1, 5)])
        assert db.row_to_customer(db.customer_to_row(c)) == c

    def test_rows_without_id_or_name_are_skipped(self):
        assert db.row_to_customer({"CustomerID": "", "FullName": "x"}) is None
        assert db.row_to_customer({"CustomerID": "1", "FullName": "  "}) is None

    def test_loose_values_are_coerced(self):
        c = db.row_to_customer(
            {
                "CustomerID": " 42 ",
                "FullName": "ทดสอบ",
                "CourseType": "รายครั้ง",
                "StartDate": "01/01/2024",
                "OriginalEndDate": "2024-02-29",
                "ManualEndDate": "not a date",
                "TotalCompensationDays": "",
                "RemainingSessions": "abc",
                "BonusSessions": None,
                "CheckInHistory": "{broken",
            }
        )
        assert c.customer_id == "42"
        assert c.course_type == CourseType.PER_SESSION
        assert c.start_date == date(2024, 1, 1)
        assert c.manual_end_date is None
        assert c.total_compensation_days == 0
        assert c.remaining_sessions == 0
        assert c.bonus_sessions == 0
        assert c.check_in_history == []

    def test_monthly_session_fields_are_none(self):
        c = db.row_to_customer({"CustomerID": "1", "FullName": "ก", "CourseType": "รายเดือน", "RemainingSessions": "5"})
        assert c.remaining_sessions is None
        assert c.bonus_sessions is None

    def test_unknown_course_type_kept_as_text(self):
        c = db.row_to_customer({"CustomerID": "1", "FullName": "ก", "CourseType": "รายปี"})
        assert c.course_type == "รายปี"


class TestCustomerStore:
    def test_add_get_list(self, store, make_customer):
        a = make_customer(customer_id="a")
        b = make_customer(customer_id="b", course_type=CourseType.PER_SESSION)
        store.add(a)
        store.add(b)
        assert store.get("a") == a
        assert [c.customer_id for c in store.list_customers()] == ["a", "b"]

    def test_get_missing(self, store):
        assert store.get("nope") is None

    def test_save(self, store, make_customer):
        store.add(make_customer())
        assert store.save(replace(make_customer(), full_name="ชื่อใหม่")) is True
        assert store.get("c-1").full_name == "ชื่อใหม่"

    def test_save_missing_returns_false(self, store, make_customer):
        assert store.save(make_customer()) is False

    def test_delete(self, store, make_customer):
        store.add(make_customer())
        assert store.delete("c-1") is True
        assert store.delete("c-1") is False
        assert store.list_customers() == []

    def test_duplicate_id_is_store_error(self, store, make_customer):
        store.add(make_customer())
        with pytest.raises(StoreError):
            store.add(make_customer())

    def test_missing_table_is_store_error(self, tmp_path):
        store = db.CustomerStore(tmp_path / "empty.db")
        with pytest.raises(StoreError):
            store.list_customers()


class TestInitDb:
    def test_seeds_default_user_once(self, tmp_path):
        path = tmp_path / "init.db"
        db.init_db("$2b$12$hash", db_file=path)
        assert db.is_force_password_change(db_file=path)
        db.init_db("$2b$12$other", db_file=path)
        rows = db.fetch_all('SELECT * FROM "auth"', db_file=path)
        assert len(rows) == 1
        assert rows[0]["Password"] == "$2b$12$hash"

    def test_clear_force_password_change(self, tmp_path):
        path = tmp_path / "init.db"
        db.init_db("$2b$12$hash", db_file=path)
        db.clear_force_password_change(db_file=path)
        assert not db.is_force_password_change(db_file=path)

"""Pytest configuration and fixtures."""

from datetime import date

import pytest

import db
from db import CustomerStore
from models import CourseType, Customer


@pytest.fixture
def db_file(tmp_path):
    """Fresh SQLite file with all sheets created."""
    path = tmp_path / "gym-test.db"
    db.create_tables(path)
    return path


@pytest.fixture
def store(db_file):
    return CustomerStore(db_file)


@pytest.fixture
def make_customer():
    def _make(**overrides):
        base = dict(
            customer_id="c-1",
            full_name="สมชาย ใจดี",
            phone="0812345678",
            course_type=CourseType.MONTHLY,
            start_date=date(2024, 1, 1),
            duration_or_package="1 เดือน",
            original_end_date=date(2024, 1, 30),
            manual_end_date=None,
            total_compensation_days=0,
            remaining_sessions=None,
            bonus_sessions=None,
            check_in_history=[],
        )
        if overrides.get("course_type") == CourseType.PER_SESSION:
            base.update(
                duration_or_package="10 ครั้ง / 2 เดือน",
                original_end_date=date(2024, 3, 1),
                remaining_sessions=10,
                bonus_sessions=0,
            )
        base.update(overrides)
        return Customer(**base)

    return _make

"""
models.py
Lightweight domain helpers (course types, packages, dataclasses).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from enum import Enum


class CourseType(str, Enum):
    MONTHLY = "รายเดือน"
    PER_SESSION = "รายครั้ง"


class Status(str, Enum):
    ACTIVE = "active"
    NEAR_EXPIRY = "near_expiry"
    EXPIRED_BY_DATE = "expired_by_date"
    EXPIRED_BY_SESSIONS = "expired_by_sessions"
    UNKNOWN = "unknown"


class CompensationMode(str, Enum):
    ALL_ELIGIBLE = "all-eligible"
    SELECTED_CUSTOMERS = "selected-customers"


# Pick lists for the add/renew forms
MONTHLY_DURATIONS = ["1 เดือน", "3 เดือน", "6 เดือน", "12 เดือน"]
SESSION_PACKAGES = ["10 ครั้ง / 2 เดือน", "20 ครั้ง / 4 เดือน", "30 ครั้ง / 6 เดือน"]

# Persisted column headers, in sheet order
CUSTOMER_COLUMNS = [
    "CustomerID",
    "FullName",
    "Phone",
    "CourseType",
    "StartDate",
    "DurationOrPackage",
    "OriginalEndDate",
    "ManualEndDate",
    "TotalCompensationDays",
    "RemainingSessions",
    "BonusSessions",
    "CheckInHistory",
]


@dataclass
class Customer:
    customer_id: str
    full_name: str
    phone: str | None
    course_type: CourseType | str
    start_date: date | None
    duration_or_package: str
    original_end_date: date | None
    manual_end_date: date | None = None
    total_compensation_days: int = 0
    remaining_sessions: int | None = None
    bonus_sessions: int | None = None
    check_in_history: list[date] = field(default_factory=list)

    @property
    def is_per_session(self) -> bool:
        return self.course_type == CourseType.PER_SESSION


@dataclass(frozen=True)
class Projection:
    customer: Customer
    final_end_date: date | None
    remaining_days_raw: int | None
    total_sessions: int | None
    status: Status
    status_label: str
    urgency: str  # green / yellow / orange / red / gray
    remaining_days_display: str
    remaining_sessions_display: str
    formatted_start_date: str
    formatted_original_end_date: str
    formatted_final_end_date: str
    formatted_check_in_history: list[str]

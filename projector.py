"""
projector.py
Derives what the tables show for a customer on a given day: final end date,
remaining days/sessions, status, urgency colour and list ordering.

Everything here is pure: same customer + same day gives the same Projection.
"""

from __future__ import annotations

from datetime import date

from errors import InvalidInput
from models import CourseType, Customer, Projection, Status
from utils import add_days, difference_in_days, format_date

NEAR_EXPIRY_DAYS = 7
LOW_SESSIONS = 3

# Displayed remaining days count today as a usable day (raw 1 -> "2 วัน")
DISPLAY_DAY_OFFSET = 1

STATUS_LABELS = {
    Status.ACTIVE: "ใช้งาน",
    Status.NEAR_EXPIRY: "ใกล้หมดอายุ",
    Status.EXPIRED_BY_DATE: "หมดอายุ (วัน)",
    Status.EXPIRED_BY_SESSIONS: "หมดอายุ (ครั้ง)",
    Status.UNKNOWN: "-",
}
LOW_SESSIONS_LABEL = "ใกล้หมด (ครั้ง)"

DEFAULT_STATUS_PRIORITY = {
    Status.NEAR_EXPIRY: 1,
    Status.EXPIRED_BY_SESSIONS: 2,
    Status.EXPIRED_BY_DATE: 3,
    Status.ACTIVE: 4,
    Status.UNKNOWN: 5,
}


def resolve_final_end_date(customer: Customer) -> date | None:
    if customer.manual_end_date is not None:
        return customer.manual_end_date
    if customer.original_end_date is not None:
        try:
            return add_days(customer.original_end_date, customer.total_compensation_days or 0)
        except InvalidInput:
            return None
    return None


def total_sessions(customer: Customer) -> int | None:
    if not customer.is_per_session:
        return None
    return (customer.remaining_sessions or 0) + (customer.bonus_sessions or 0)


def _days_text(raw: int) -> str:
    return f"{raw + DISPLAY_DAY_OFFSET} วัน"


def _monthly(raw: int | None) -> tuple[Status, str, str, str]:
    """Returns (status, label, urgency, remaining_days_display)."""
    if raw is None:
        return Status.UNKNOWN, STATUS_LABELS[Status.UNKNOWN], "gray", "-"
    if raw < 0:
        return Status.EXPIRED_BY_DATE, STATUS_LABELS[Status.EXPIRED_BY_DATE], "red", "หมดอายุ"
    if raw == 0:
        return Status.NEAR_EXPIRY, STATUS_LABELS[Status.NEAR_EXPIRY], "orange", "ใกล้หมด"
    if raw <= NEAR_EXPIRY_DAYS:
        return Status.NEAR_EXPIRY, STATUS_LABELS[Status.NEAR_EXPIRY], "yellow", _days_text(raw)
    return Status.ACTIVE, STATUS_LABELS[Status.ACTIVE], "green", _days_text(raw)


def _per_session(raw: int | None, total: int) -> tuple[Status, str, str, str]:
    if raw is None:
        days = "-"
    elif raw < 0:
        days = "หมดอายุ (ตามวัน)"
    elif raw == 0:
        days = "หมดวันนี้"
    else:
        days = _days_text(raw)

    # first match wins; an elapsed date outranks the session count
    if raw is not None and raw < 0:
        return Status.EXPIRED_BY_DATE, STATUS_LABELS[Status.EXPIRED_BY_DATE], "red", days
    if total <= 0:
        return Status.EXPIRED_BY_SESSIONS, STATUS_LABELS[Status.EXPIRED_BY_SESSIONS], "red", days
    if raw == 0:
        return Status.NEAR_EXPIRY, STATUS_LABELS[Status.NEAR_EXPIRY], "orange", days
    if raw is not None and raw <= NEAR_EXPIRY_DAYS:
        return Status.NEAR_EXPIRY, STATUS_LABELS[Status.NEAR_EXPIRY], "yellow", days
    if total <= LOW_SESSIONS:
        return Status.NEAR_EXPIRY, LOW_SESSIONS_LABEL, "yellow", days
    return Status.ACTIVE, STATUS_LABELS[Status.ACTIVE], "green", days


def project(customer: Customer, today: date) -> Projection:
    final_end = resolve_final_end_date(customer)
    raw = difference_in_days(final_end, today) if final_end else None
    total = total_sessions(customer)

    if customer.course_type == CourseType.MONTHLY:
        status, label, urgency, days_display = _monthly(raw)
        sessions_display = "-"
    elif customer.course_type == CourseType.PER_SESSION:
        status, label, urgency, days_display = _per_session(raw, total)
        sessions_display = "หมด (ครั้ง)" if total <= 0 else f"{total} ครั้ง"
    else:
        status, label, urgency, days_display = Status.UNKNOWN, STATUS_LABELS[Status.UNKNOWN], "gray", "-"
        sessions_display = "-"

    return Projection(
        customer=customer,
        final_end_date=final_end,
        remaining_days_raw=raw,
        total_sessions=total,
        status=status,
        status_label=label,
        urgency=urgency,
        remaining_days_display=days_display,
        remaining_sessions_display=sessions_display,
        formatted_start_date=format_date(customer.start_date),
        formatted_original_end_date=format_date(customer.original_end_date),
        formatted_final_end_date=format_date(final_end),
        formatted_check_in_history=[format_date(d) for d in customer.check_in_history],
    )


def sort_key(p: Projection, priority: dict[Status, int] | None = None) -> tuple:
    """
    Status tier first, then fewest remaining days, then fewest sessions.
    Unresolvable values sort after everything else within their tier.
    """
    priority = priority or DEFAULT_STATUS_PRIORITY
    raw = p.remaining_days_raw
    total = p.total_sessions
    return (
        priority.get(p.status, len(priority) + 1),
        raw is None,
        raw if raw is not None else 0,
        total is None,
        total if total is not None else 0,
    )


def project_all(
    customers: list[Customer],
    today: date,
    course_type: CourseType | None = None,
    priority: dict[Status, int] | None = None,
) -> list[Projection]:
    rows = [project(c, today) for c in customers if course_type is None or c.course_type == course_type]
    return sorted(rows, key=lambda p: sort_key(p, priority))

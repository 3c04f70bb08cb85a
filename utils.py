"""
utils.py
Calendar helpers, form validation, exports.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone

import pandas as pd

from errors import InvalidInput
from models import CourseType

_ISO_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_PHONE_RE = re.compile(r"^[0-9]{9,10}$")


def today() -> date:
    """
    Current calendar date at UTC midnight. Every "is it expired" comparison
    is anchored here so day boundaries do not depend on the server timezone.
    """
    return datetime.now(timezone.utc).date()


def parse_date(value) -> date | None:
    """
    Accepts YYYY-MM-DD or DD/MM/YYYY (or an existing date). Returns None
    instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    try:
        if _ISO_RE.match(s):
            return date.fromisoformat(s)
        m = _DMY_RE.match(s)
        if m:
            day, month, year = (int(g) for g in m.groups())
            return date(year, month, day)
    except ValueError:
        return None
    return None


def format_date(value) -> str:
    d = parse_date(value)
    if d is None:
        return "-"
    # strftime("%Y") does not pad years below 1000
    return f"{d.day:02d}/{d.month:02d}/{d.year:04d}"


def to_iso(value) -> str:
    d = parse_date(value)
    return d.isoformat() if d else ""


def add_days(d: date, days: int) -> date:
    if not isinstance(d, date):
        raise InvalidInput(f"Invalid date provided to add_days: {d!r}")
    try:
        return d + timedelta(days=int(days))
    except OverflowError as exc:
        raise InvalidInput(f"Date out of range: {d.isoformat()} + {days} days") from exc


def difference_in_days(a: date | None, b: date | None) -> int | None:
    # None, not NaN, so callers have to branch on it
    if not isinstance(a, date) or not isinstance(b, date):
        return None
    if isinstance(a, datetime):
        a = a.date()
    if isinstance(b, datetime):
        b = b.date()
    return (a - b).days


def to_whole_number(value):
    """None for blank input, "invalid" for anything that is not a whole number."""
    if value is None or value == "":
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        pass
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "invalid"
    if not number.is_integer():
        return "invalid"
    return int(number)


def validate_customer_inputs(
    full_name: str,
    phone: str | None,
    start_date,
    course_type,
    duration_or_package: str,
    remaining_sessions=None,
    bonus_sessions=None,
    manual_end_date=None,
    total_compensation_days=None,
) -> dict[str, list[str]]:
    """
    Field-level checks for the add/edit forms. Empty dict means valid.
    """
    errors: dict[str, list[str]] = {}

    def add(field_name: str, msg: str) -> None:
        errors.setdefault(field_name, []).append(msg)

    if not (full_name or "").strip():
        add("FullName", "กรุณากรอกชื่อลูกค้า")
    if phone and phone.strip() and not _PHONE_RE.match(phone.strip()):
        add("Phone", "เบอร์โทรศัพท์ไม่ถูกต้อง (9-10 หลัก)")
    if parse_date(start_date) is None:
        add("StartDate", "รูปแบบวันที่เริ่มไม่ถูกต้อง (YYYY-MM-DD)")
    if course_type not in (CourseType.MONTHLY, CourseType.PER_SESSION):
        add("CourseType", "ต้องระบุประเภทคอร์ส")
    if not (duration_or_package or "").strip():
        add("DurationOrPackage", "ต้องระบุระยะเวลา/แพ็กเกจ")
    for name, raw in (
        ("RemainingSessions", remaining_sessions),
        ("BonusSessions", bonus_sessions),
        ("TotalCompensationDays", total_compensation_days),
    ):
        val = to_whole_number(raw)
        if val == "invalid" or (val is not None and val < 0):
            add(name, "ต้องเป็นจำนวนเต็มไม่ติดลบ")
    if manual_end_date not in (None, "") and parse_date(manual_end_date) is None:
        add("ManualEndDate", "รูปแบบวันที่ไม่ถูกต้อง")
    return errors


def projections_to_csv_bytes(projections) -> bytes:
    df = pd.DataFrame(
        [
            {
                "CustomerID": p.customer.customer_id,
                "FullName": p.customer.full_name,
                "Phone": p.customer.phone or "",
                "CourseType": str(getattr(p.customer.course_type, "value", p.customer.course_type)),
                "DurationOrPackage": p.customer.duration_or_package,
                "StartDate": p.formatted_start_date,
                "FinalEndDate": p.formatted_final_end_date,
                "RemainingDays": p.remaining_days_display,
                "RemainingSessions": p.remaining_sessions_display,
                "Status": p.status_label,
            }
            for p in projections
        ]
    )
    return df.to_csv(index=False).encode("utf-8-sig")

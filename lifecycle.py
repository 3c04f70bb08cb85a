"""
lifecycle.py
Customer commands: create, update / renew, delete, check-in, compensation.

Every public command returns an ActionResult; CustomerError subclasses are
raised internally and converted at the command boundary.
"""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import date
from functools import wraps

from db import CustomerStore
from errors import (
    ComputationError,
    CustomerError,
    Exhausted,
    InvalidInput,
    InvalidState,
    NotFound,
    ValidationError,
)
from models import CompensationMode, CourseType, Customer
from utils import (
    add_days,
    difference_in_days,
    parse_date,
    to_whole_number,
    today as utc_today,
    validate_customer_inputs,
)

logger = logging.getLogger(__name__)

MIN_COMPENSATION_DAYS = 1
MAX_COMPENSATION_DAYS = 14

_MONTHLY_RE = re.compile(r"(\d+)\s*เดือน")
_PACKAGE_MONTHS_RE = re.compile(r"/\s*(\d+)\s*เดือน")
_PACKAGE_SESSIONS_RE = re.compile(r"^\s*(\d+)\s*ครั้ง")


@dataclass
class ActionResult:
    success: bool
    message: str = ""
    kind: str | None = None
    errors: dict[str, list[str]] = field(default_factory=dict)
    data: dict = field(default_factory=dict)


def _boundary(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs) -> ActionResult:
        try:
            return fn(*args, **kwargs)
        except CustomerError as exc:
            logger.warning("%s failed: %s: %s", fn.__name__, exc.kind, exc.message)
            return ActionResult(success=False, message=exc.message, kind=exc.kind, errors=exc.errors)

    return wrapper


# ---------- Derivations ----------

def compute_original_end_date(start_date, duration_or_package: str, course_type) -> date | None:
    """
    A course lasts N "months" of 30 days, counting the start day itself, so
    "1 เดือน" from 2024-01-01 ends 2024-01-30.
    """
    start = parse_date(start_date)
    if start is None:
        return None
    if course_type == CourseType.MONTHLY:
        m = _MONTHLY_RE.search(duration_or_package or "")
    elif course_type == CourseType.PER_SESSION:
        m = _PACKAGE_MONTHS_RE.search(duration_or_package or "")
    else:
        return None
    if not m:
        return None
    try:
        return add_days(start, int(m.group(1)) * 30 - 1)
    except InvalidInput:
        logger.warning("End date out of range for %s + %r", start, duration_or_package)
        return None


def initial_sessions(package: str) -> int:
    m = _PACKAGE_SESSIONS_RE.match(package or "")
    return int(m.group(1)) if m else 0


def _as_course_type(value):
    try:
        return CourseType(value)
    except ValueError:
        return value


def _opt_int(value) -> int | None:
    number = to_whole_number(value)
    return None if number == "invalid" else number


def _validate(**fields) -> None:
    errors = validate_customer_inputs(**fields)
    if errors:
        raise ValidationError("ข้อมูลไม่ถูกต้อง", errors)


def _require_end_date(start_date, duration_or_package, course_type) -> date:
    end = compute_original_end_date(start_date, duration_or_package, course_type)
    if end is None:
        raise ComputationError("ไม่สามารถคำนวณวันหมดอายุเริ่มต้นได้")
    return end


def _require_customer(store: CustomerStore, customer_id: str) -> Customer:
    customer = store.get(customer_id)
    if customer is None:
        raise NotFound(f"ไม่พบลูกค้า ID: {customer_id}")
    return customer


# ---------- Commands ----------

def list_customers(store: CustomerStore) -> list[Customer]:
    return store.list_customers()


@_boundary
def create_customer(
    store: CustomerStore,
    full_name: str,
    phone: str | None,
    start_date,
    course_type,
    duration_or_package: str,
    remaining_sessions=None,
    bonus_sessions=None,
) -> ActionResult:
    _validate(
        full_name=full_name,
        phone=phone,
        start_date=start_date,
        course_type=course_type,
        duration_or_package=duration_or_package,
        remaining_sessions=remaining_sessions,
        bonus_sessions=bonus_sessions,
    )
    course_type = _as_course_type(course_type)
    original_end = _require_end_date(start_date, duration_or_package, course_type)

    per_session = course_type == CourseType.PER_SESSION
    remaining = _opt_int(remaining_sessions)
    bonus = _opt_int(bonus_sessions)
    customer = Customer(
        customer_id=str(uuid.uuid4()),
        full_name=full_name.strip(),
        phone=(phone or "").strip() or None,
        course_type=course_type,
        start_date=parse_date(start_date),
        duration_or_package=duration_or_package,
        original_end_date=original_end,
        manual_end_date=original_end,
        total_compensation_days=0,
        remaining_sessions=(remaining if remaining is not None else initial_sessions(duration_or_package)) if per_session else None,
        bonus_sessions=(bonus or 0) if per_session else None,
        check_in_history=[],
    )
    store.add(customer)
    logger.info("Created customer %s (%s)", customer.customer_id, customer.course_type.value)
    return ActionResult(
        success=True,
        message=f'เพิ่มลูกค้า "{customer.full_name}" (ID: {customer.customer_id}) สำเร็จ',
        data={"customer_id": customer.customer_id},
    )


def _apply_update(
    store: CustomerStore,
    customer_id: str,
    full_name: str,
    phone: str | None,
    start_date,
    course_type,
    duration_or_package: str,
    manual_end_date=None,
    total_compensation_days=None,
    remaining_sessions=None,
    bonus_sessions=None,
    force_renewal: bool = False,
) -> ActionResult:
    _validate(
        full_name=full_name,
        phone=phone,
        start_date=start_date,
        course_type=course_type,
        duration_or_package=duration_or_package,
        remaining_sessions=remaining_sessions,
        bonus_sessions=bonus_sessions,
        manual_end_date=manual_end_date,
        total_compensation_days=total_compensation_days,
    )
    course_type = _as_course_type(course_type)
    original_end = _require_end_date(start_date, duration_or_package, course_type)
    existing = _require_customer(store, customer_id)

    new_start = parse_date(start_date)
    renewed = force_renewal or existing.start_date != new_start

    remaining = _opt_int(remaining_sessions)
    if course_type == CourseType.PER_SESSION:
        remaining = remaining if remaining is not None else initial_sessions(duration_or_package)
        bonus = _opt_int(bonus_sessions) or 0
    else:
        remaining = None
        bonus = None

    updated = replace(
        existing,
        full_name=full_name.strip(),
        phone=(phone or "").strip() or None,
        course_type=course_type,
        start_date=new_start,
        duration_or_package=duration_or_package,
        original_end_date=original_end,
        manual_end_date=parse_date(manual_end_date),
        total_compensation_days=_opt_int(total_compensation_days) or 0,
        remaining_sessions=remaining,
        bonus_sessions=bonus,
        check_in_history=[] if renewed else list(existing.check_in_history),
    )
    if not store.save(updated):
        raise NotFound(f"ไม่พบลูกค้า ID: {customer_id}")
    logger.info("Updated customer %s (renewal=%s)", customer_id, renewed)
    return ActionResult(
        success=True,
        message=f'อัปเดตข้อมูล "{updated.full_name}" เรียบร้อยแล้ว',
        data={"customer_id": customer_id, "renewed": renewed},
    )


@_boundary
def update_customer(
    store: CustomerStore,
    customer_id: str,
    full_name: str,
    phone: str | None,
    start_date,
    course_type,
    duration_or_package: str,
    manual_end_date=None,
    total_compensation_days=None,
    remaining_sessions=None,
    bonus_sessions=None,
) -> ActionResult:
    return _apply_update(
        store,
        customer_id,
        full_name,
        phone,
        start_date,
        course_type,
        duration_or_package,
        manual_end_date=manual_end_date,
        total_compensation_days=total_compensation_days,
        remaining_sessions=remaining_sessions,
        bonus_sessions=bonus_sessions,
    )


@_boundary
def renew_course(
    store: CustomerStore,
    customer_id: str,
    start_date,
    course_type,
    duration_or_package: str,
    bonus_sessions=None,
) -> ActionResult:
    """
    Re-register an existing customer on a new course. Name and phone are
    kept; the end-date override, compensation and check-in history are reset
    and session counts come from the new package.
    """
    existing = _require_customer(store, customer_id)
    return _apply_update(
        store,
        customer_id,
        existing.full_name,
        existing.phone,
        start_date,
        course_type,
        duration_or_package,
        manual_end_date=None,
        total_compensation_days=0,
        remaining_sessions=None,
        bonus_sessions=bonus_sessions,
        force_renewal=True,
    )


@_boundary
def delete_customer(store: CustomerStore, customer_id: str) -> ActionResult:
    existing = _require_customer(store, customer_id)
    if not store.delete(customer_id):
        raise NotFound(f"ไม่พบลูกค้า ID: {customer_id}")
    name = existing.full_name or f"ลูกค้า ID {customer_id}"
    logger.info("Deleted customer %s", customer_id)
    return ActionResult(success=True, message=f'ลบข้อมูล "{name}" เรียบร้อยแล้ว', data={"deleted_name": name})


@_boundary
def consume_session(store: CustomerStore, customer_id: str, today: date | None = None) -> ActionResult:
    """Check-in: draws one session from RemainingSessions only."""
    customer = _require_customer(store, customer_id)
    if customer.course_type != CourseType.PER_SESSION:
        raise InvalidState(f'"{customer.full_name}" ไม่ใช่ลูกค้ารายครั้ง')
    remaining = customer.remaining_sessions
    if not isinstance(remaining, int) or remaining <= 0:
        raise Exhausted(f'"{customer.full_name}" ไม่มีจำนวนครั้งเหลือแล้ว')

    updated = replace(
        customer,
        remaining_sessions=remaining - 1,
        check_in_history=[*customer.check_in_history, today or utc_today()],
    )
    if not store.save(updated):
        raise NotFound(f"ไม่พบลูกค้า ID: {customer_id}")
    logger.info("Check-in for %s, %d sessions left", customer_id, updated.remaining_sessions)
    return ActionResult(
        success=True,
        message=f"เช็คอิน {customer.full_name} สำเร็จ (เหลือ {updated.remaining_sessions} ครั้ง)",
        data={"remaining": updated.remaining_sessions},
    )


def is_compensation_eligible(customer: Customer, today: date) -> bool:
    diff = difference_in_days(customer.original_end_date, today)
    return diff is not None and diff >= 0


def _compensate_one(store: CustomerStore, customer: Customer, days_to_add: int) -> bool:
    base = customer.manual_end_date or customer.original_end_date
    return store.save(replace(customer, manual_end_date=add_days(base, days_to_add)))


def _count_updates(customers: list[Customer], results: list) -> int:
    updated = 0
    for customer, result in zip(customers, results):
        if isinstance(result, Exception):
            logger.warning("Compensation skipped for %s: %s", customer.customer_id, result)
        elif result:
            updated += 1
    return updated


async def _compensate_all(store: CustomerStore, customers: list[Customer], days_to_add: int) -> list:
    tasks = [asyncio.to_thread(_compensate_one, store, c, days_to_add) for c in customers]
    return await asyncio.gather(*tasks, return_exceptions=True)


def _compensate_sequential(store: CustomerStore, customers: list[Customer], days_to_add: int) -> list:
    results = []
    for customer in customers:
        try:
            results.append(_compensate_one(store, customer, days_to_add))
        except Exception as exc:
            results.append(exc)
    return results


def _run_compensation(store: CustomerStore, customers: list[Customer], days_to_add: int) -> int:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        results = asyncio.run(_compensate_all(store, customers, days_to_add))
    else:
        # asyncio.run cannot nest inside a running loop
        results = _compensate_sequential(store, customers, days_to_add)
    return _count_updates(customers, results)


@_boundary
def apply_compensation(
    store: CustomerStore,
    days_to_add,
    mode=CompensationMode.ALL_ELIGIBLE,
    target_ids: list[str] | None = None,
    today: date | None = None,
) -> ActionResult:
    """
    Push ManualEndDate forward for every eligible customer (or just the
    selected ones). Rows are written independently; a failed row is logged
    and left out of updated_count.
    """
    try:
        days = int(days_to_add)
    except (TypeError, ValueError):
        days = None
    if days is None or not MIN_COMPENSATION_DAYS <= days <= MAX_COMPENSATION_DAYS:
        raise ValidationError(
            "จำนวนวันต้องอยู่ระหว่าง 1 ถึง 14 วัน",
            {"daysToAdd": ["จำนวนวันต้องอยู่ระหว่าง 1 ถึง 14 วัน"]},
        )
    try:
        mode = CompensationMode(mode or CompensationMode.ALL_ELIGIBLE)
    except ValueError:
        raise ValidationError("Mode ไม่ถูกต้อง", {"mode": ["Mode ไม่ถูกต้อง"]}) from None

    targets = {str(t).strip() for t in (target_ids or []) if str(t).strip()}
    if mode == CompensationMode.SELECTED_CUSTOMERS and not targets:
        return ActionResult(success=True, message="ไม่ได้เลือกลูกค้า", data={"updated_count": 0})

    anchor = today or utc_today()
    eligible = [
        c
        for c in store.list_customers()
        if (mode == CompensationMode.ALL_ELIGIBLE or c.customer_id in targets) and is_compensation_eligible(c, anchor)
    ]
    updated = _run_compensation(store, eligible, days) if eligible else 0
    logger.info("Compensation +%d days (%s): %d updated", days, mode.value, updated)

    if updated:
        message = f"เพิ่มวันชดเชย {days} วัน ให้ลูกค้า {updated} คนสำเร็จ"
    elif mode == CompensationMode.SELECTED_CUSTOMERS:
        message = "ลูกค้าที่เลือกอาจไม่เข้าเกณฑ์"
    else:
        message = "ไม่พบลูกค้าที่เข้าเกณฑ์"
    return ActionResult(success=True, message=message, data={"updated_count": updated})

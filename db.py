"""
db.py
SQLite helpers + initialization, and the typed row store for customers.

Tables mirror the spreadsheet layout: one table per sheet title, one TEXT
column per header.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import config
from errors import StoreError
from models import CUSTOMER_COLUMNS, CourseType, Customer
from utils import parse_date, to_iso

logger = logging.getLogger(__name__)


@contextmanager
def get_conn(db_file: Path | str | None = None):
    conn = sqlite3.connect(db_file or config.DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = (), db_file=None) -> int:
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


def fetch_one(sql: str, params: tuple = (), db_file=None):
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = (), db_file=None) -> list[sqlite3.Row]:
    with get_conn(db_file) as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def create_tables(db_file=None) -> None:
    cols = ",\n            ".join(
        f'"{c}" TEXT PRIMARY KEY' if c == "CustomerID" else f'"{c}" TEXT' for c in CUSTOMER_COLUMNS
    )
    execute(f'CREATE TABLE IF NOT EXISTS "{config.CUSTOMERS_SHEET}" (\n            {cols}\n        )', db_file=db_file)

    execute(
        f"""
        CREATE TABLE IF NOT EXISTS "{config.AUTH_SHEET}" (
            "User" TEXT NOT NULL UNIQUE,
            "Password" TEXT NOT NULL,
            "FullName" TEXT,
            "Status" TEXT,
            "CreatedAt" TEXT NOT NULL
        )
        """,
        db_file=db_file,
    )

    # Small settings table (used to force password change on first login)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """,
        db_file=db_file,
    )


def _get_setting(key: str, default: str | None = None, db_file=None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,), db_file=db_file)
    if row:
        return str(row["value"])
    return default


def _set_setting(key: str, value: str, db_file=None) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
        db_file=db_file,
    )


def init_db(default_admin_hash: str, db_file=None) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert the default staff user if none exists
    - Force password change on first login
    """
    create_tables(db_file)

    admin = fetch_one(f'SELECT "User" FROM "{config.AUTH_SHEET}" LIMIT 1', db_file=db_file)
    if not admin:
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        execute(
            f'INSERT INTO "{config.AUTH_SHEET}"("User", "Password", "FullName", "Status", "CreatedAt") VALUES(?,?,?,?,?)',
            (config.DEFAULT_ADMIN_USER, default_admin_hash, "Administrator", "Active", now),
            db_file=db_file,
        )
        _set_setting("force_password_change", "1", db_file=db_file)
        logger.info("Seeded default staff user '%s'", config.DEFAULT_ADMIN_USER)
    elif _get_setting("force_password_change", db_file=db_file) is None:
        _set_setting("force_password_change", "0", db_file=db_file)


def is_force_password_change(db_file=None) -> bool:
    return _get_setting("force_password_change", db_file=db_file) == "1"


def clear_force_password_change(db_file=None) -> None:
    _set_setting("force_password_change", "0", db_file=db_file)


# ---------- Customer rows ----------

def _int_or_none(value) -> int | None:
    if value is None or str(value).strip() == "":
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_history(value) -> list:
    try:
        parsed = json.loads(value or "[]")
    except (TypeError, ValueError):
        return []
    if not isinstance(parsed, list) or not all(isinstance(x, str) for x in parsed):
        return []
    return [d for d in (parse_date(x) for x in parsed) if d is not None]


def row_to_customer(row) -> Customer | None:
    """
    Coerce one loosely-typed row into a Customer. Rows without an ID or a
    name are not customers and come back as None.
    """
    get = row.get if hasattr(row, "get") else (lambda k: row[k] if k in row.keys() else None)
    customer_id = str(get("CustomerID") or "").strip()
    full_name = str(get("FullName") or "").strip()
    if not customer_id or not full_name:
        return None

    raw_type = str(get("CourseType") or "").strip()
    try:
        course_type = CourseType(raw_type)
    except ValueError:
        course_type = raw_type

    per_session = course_type == CourseType.PER_SESSION
    return Customer(
        customer_id=customer_id,
        full_name=full_name,
        phone=str(get("Phone") or "").strip() or None,
        course_type=course_type,
        start_date=parse_date(get("StartDate")),
        duration_or_package=str(get("DurationOrPackage") or ""),
        original_end_date=parse_date(get("OriginalEndDate")),
        manual_end_date=parse_date(get("ManualEndDate")),
        total_compensation_days=_int_or_none(get("TotalCompensationDays")) or 0,
        remaining_sessions=(_int_or_none(get("RemainingSessions")) or 0) if per_session else None,
        bonus_sessions=(_int_or_none(get("BonusSessions")) or 0) if per_session else None,
        check_in_history=_parse_history(get("CheckInHistory")),
    )


def customer_to_row(c: Customer) -> dict[str, str]:
    return {
        "CustomerID": c.customer_id,
        "FullName": c.full_name,
        "Phone": c.phone or "",
        "CourseType": str(getattr(c.course_type, "value", c.course_type)),
        "StartDate": to_iso(c.start_date),
        "DurationOrPackage": c.duration_or_package,
        "OriginalEndDate": to_iso(c.original_end_date),
        "ManualEndDate": to_iso(c.manual_end_date),
        "TotalCompensationDays": str(c.total_compensation_days or 0),
        "RemainingSessions": "" if c.remaining_sessions is None else str(c.remaining_sessions),
        "BonusSessions": "" if c.bonus_sessions is None else str(c.bonus_sessions),
        "CheckInHistory": json.dumps([to_iso(d) for d in c.check_in_history]),
    }


class CustomerStore:
    """Row-level CRUD on the Customers sheet, keyed by CustomerID."""

    def __init__(self, db_file: Path | str | None = None, sheet: str | None = None):
        self.db_file = db_file or config.DB_FILE
        self.sheet = sheet or config.CUSTOMERS_SHEET

    def _run(self, fn, *args):
        try:
            return fn(*args, db_file=self.db_file)
        except sqlite3.Error as exc:
            logger.error("Row store failure on sheet '%s': %s", self.sheet, exc)
            raise StoreError(f"Row store error: {exc}") from exc

    def list_customers(self) -> list[Customer]:
        rows = self._run(fetch_all, f'SELECT * FROM "{self.sheet}" ORDER BY rowid ASC')
        customers = [row_to_customer(r) for r in rows]
        return [c for c in customers if c is not None]

    def get(self, customer_id: str) -> Customer | None:
        row = self._run(fetch_one, f'SELECT * FROM "{self.sheet}" WHERE "CustomerID" = ?', (str(customer_id).strip(),))
        return row_to_customer(row) if row else None

    def add(self, customer: Customer) -> None:
        data = customer_to_row(customer)
        cols = ", ".join(f'"{c}"' for c in CUSTOMER_COLUMNS)
        marks = ", ".join("?" for _ in CUSTOMER_COLUMNS)
        self._run(execute, f'INSERT INTO "{self.sheet}" ({cols}) VALUES ({marks})', tuple(data[c] for c in CUSTOMER_COLUMNS))

    def save(self, customer: Customer) -> bool:
        data = customer_to_row(customer)
        cols = [c for c in CUSTOMER_COLUMNS if c != "CustomerID"]
        assignments = ", ".join(f'"{c}" = ?' for c in cols)
        count = self._run(
            execute,
            f'UPDATE "{self.sheet}" SET {assignments} WHERE "CustomerID" = ?',
            tuple(data[c] for c in cols) + (customer.customer_id,),
        )
        return count > 0

    def delete(self, customer_id: str) -> bool:
        count = self._run(execute, f'DELETE FROM "{self.sheet}" WHERE "CustomerID" = ?', (str(customer_id).strip(),))
        return count > 0

"""
config.py
Environment-driven settings (.env is loaded once on import).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(encoding="utf-8")

DB_FILE = Path(os.getenv("GYM_DB_FILE", "").strip() or Path(__file__).with_name("gym.db"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

# Row-store "sheet" titles (table names)
CUSTOMERS_SHEET = "Customers"
AUTH_SHEET = "auth"

# Seeded on first run only
DEFAULT_ADMIN_USER = os.getenv("GYM_ADMIN_USER", "admin").strip()
DEFAULT_ADMIN_PASSWORD = os.getenv("GYM_ADMIN_PASSWORD", "admin123")

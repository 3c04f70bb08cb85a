"""
auth.py
Staff authentication (bcrypt hashing, verify, login, change password).

Credentials live in the "auth" sheet: User / Password (bcrypt) / FullName /
Status. Login state itself is kept by the caller (Streamlit session_state).
"""

from __future__ import annotations

import logging

import bcrypt

import config
import db

logger = logging.getLogger(__name__)


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    pw = password.encode("utf-8")
    if len(pw) > 72:
        pw = pw[:72]
    return pw


def hash_password(password: str) -> str:
    secret = _to_bcrypt_secret(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(secret, salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash or not password_hash.startswith("$2"):
        logger.warning("Stored password value does not look like a bcrypt hash")
        return False
    try:
        return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))
    except ValueError as exc:
        logger.error("bcrypt comparison failed: %s", exc)
        return False


def get_user_by_username(username: str, db_file=None):
    return db.fetch_one(
        f'SELECT * FROM "{config.AUTH_SHEET}" WHERE lower(trim("User")) = lower(?)',
        (username.strip(),),
        db_file=db_file,
    )


def login(username: str, password: str, db_file=None) -> dict | None:
    """
    Returns {"username", "full_name"} on success, None otherwise.
    Usernames match case-insensitively; users with a Status other than
    "Active" are refused.
    """
    username = (username or "").strip()
    if not username or not password:
        return None
    user = get_user_by_username(username, db_file=db_file)
    if not user:
        logger.info("Login failed: unknown user '%s'", username)
        return None
    if not verify_password(password, user["Password"]):
        logger.info("Login failed: bad password for '%s'", username)
        return None
    if user["Status"] and user["Status"] != "Active":
        logger.info("Login refused: user '%s' is %s", username, user["Status"])
        return None
    logger.info("Login successful for '%s'", username)
    return {"username": user["User"], "full_name": user["FullName"] or ""}


def change_password(username: str, new_password: str, db_file=None) -> None:
    db.execute(
        f'UPDATE "{config.AUTH_SHEET}" SET "Password" = ? WHERE lower(trim("User")) = lower(?)',
        (hash_password(new_password), username.strip()),
        db_file=db_file,
    )
    db.clear_force_password_change(db_file=db_file)

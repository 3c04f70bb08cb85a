"""Tests for staff login against the auth sheet."""

import pytest

import auth
import db


@pytest.fixture
def auth_db(db_file):
    def add_user(user, password, status="Active", full_name="พนักงาน"):
        db.execute(
            'INSERT INTO "auth"("User", "Password", "FullName", "Status", "CreatedAt") VALUES(?,?,?,?,?)',
            (user, auth.hash_password(password), full_name, status, "2024-01-01T00:00:00"),
            db_file=db_file,
        )

    add_user("staff", "secret1")
    add_user("former", "secret2", status="Inactive")
    return db_file


class TestPasswords:
    def test_hash_and_verify(self):
        h = auth.hash_password("pa55word")
        assert h.startswith("$2")
        assert auth.verify_password("pa55word", h)
        assert not auth.verify_password("wrong", h)

    def test_long_passwords_truncate_to_72_bytes(self):
        h = auth.hash_password("x" * 100)
        assert auth.verify_password("x" * 72, h)

    def test_non_bcrypt_value_rejected(self):
        assert not auth.verify_password("plain", "plain")


class TestLogin:
    def test_success(self, auth_db):
        user = auth.login("staff", "secret1", db_file=auth_db)
        assert user == {"username": "staff", "full_name": "พนักงาน"}

    def test_username_trimmed_and_case_insensitive(self, auth_db):
        assert auth.login("  STAFF ", "secret1", db_file=auth_db) is not None

    def test_wrong_password(self, auth_db):
        assert auth.login("staff", "nope", db_file=auth_db) is None

    def test_unknown_user(self, auth_db):
        assert auth.login("ghost", "secret1", db_file=auth_db) is None

    def test_inactive_user(self, auth_db):
        assert auth.login("former", "secret2", db_file=auth_db) is None

    def test_blank_credentials(self, auth_db):
        assert auth.login("", "secret1", db_file=auth_db) is None
        assert auth.login("staff", "", db_file=auth_db) is None

    def test_change_password(self, auth_db):
        auth.change_password("staff", "newsecret", db_file=auth_db)
        assert auth.login("staff", "newsecret", db_file=auth_db) is not None
        assert auth.login("staff", "secret1", db_file=auth_db) is None

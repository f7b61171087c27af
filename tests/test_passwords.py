"""Tests for bcrypt password hashing."""

from dadafarin.infrastructure.passwords import hash_password, verify_password


class TestPasswords:
    def test_hash_verifies(self):
        hashed = hash_password("رمز-عبور-1")

        assert hashed.startswith("$2b$12$")
        assert verify_password("رمز-عبور-1", hashed)

    def test_wrong_password(self):
        assert not verify_password("wrong", hash_password("right"))

    def test_salted(self):
        assert hash_password("same") != hash_password("same")

    def test_malformed_hash(self):
        assert verify_password("x", "not-a-bcrypt-hash") is False

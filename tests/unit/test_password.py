"""Unit tests for password hashing."""

from src.kernel.identity.password import (
    PasswordHasher,
    hash_password,
    verify_password,
)


class TestPasswordHasher:
    """Tests for PasswordHasher."""

    hasher = PasswordHasher(rounds=4)

    def test_hash_creates_different_hashes(self):
        """Same password should create different hashes (due to salt)."""
        hash1 = self.hasher.hash("TestPassword123")
        hash2 = self.hasher.hash("TestPassword123")

        assert hash1 != hash2
        assert hash1.startswith("$2b$04$")

    def test_verify_correct_password(self):
        hashed = self.hasher.hash("TestPassword123")
        assert self.hasher.verify("TestPassword123", hashed) is True

    def test_verify_wrong_password(self):
        hashed = self.hasher.hash("TestPassword123")
        assert self.hasher.verify("WrongPassword", hashed) is False

    def test_malformed_hash_is_a_mismatch(self):
        assert self.hasher.verify("TestPassword123", "not-a-bcrypt-hash") is False

    def test_bytes_past_72_are_ignored(self):
        """bcrypt only sees the first 72 bytes; longer input must not raise."""
        prefix = "A1b" * 24
        hashed = self.hasher.hash(prefix + "tail-one")
        assert self.hasher.verify(prefix + "tail-two", hashed) is True

    def test_rounds_default_to_settings(self):
        # conftest sets BCRYPT_ROUNDS=4
        assert PasswordHasher().rounds == 4

    def test_convenience_functions(self):
        hashed = hash_password("TestPassword123")

        assert verify_password("TestPassword123", hashed) is True
        assert verify_password("wrong", hashed) is False

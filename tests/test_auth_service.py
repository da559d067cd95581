"""Tests for password hashing and access tokens."""

from datetime import timedelta

import pytest
from jose import jwt

from database import get_settings
from services.auth_service import (
    Identity,
    InvalidToken,
    create_access_token,
    hash_password,
    verify_access_token,
    verify_password,
)


class TestPasswords:

    def test_hash_verifies(self):
        hashed = hash_password("s3cret")
        assert hashed != "s3cret"
        assert verify_password("s3cret", hashed) is True
        assert verify_password("guess", hashed) is False

    def test_hashes_are_salted(self):
        assert hash_password("same") != hash_password("same")


class TestAccessTokens:

    def test_round_trip_identity(self):
        token = create_access_token(12, "alice")
        assert verify_access_token(token) == Identity(12, "alice")

    def test_expired_token_rejected(self):
        token = create_access_token(12, "alice", expires_delta=timedelta(seconds=-30))
        with pytest.raises(InvalidToken):
            verify_access_token(token)

    def test_tampered_token_rejected(self):
        header, _, signature = create_access_token(12, "alice").split(".")
        _, payload, _ = create_access_token(13, "mallory").split(".")
        with pytest.raises(InvalidToken):
            verify_access_token(".".join([header, payload, signature]))

    def test_wrong_key_rejected(self):
        settings = get_settings()
        forged = jwt.encode(
            {"sub": "12", "username": "alice"}, "not-the-key", algorithm=settings.jwt_algorithm
        )
        with pytest.raises(InvalidToken):
            verify_access_token(forged)

    def test_missing_claims_rejected(self):
        settings = get_settings()
        token = jwt.encode({"sub": "12"}, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
        with pytest.raises(InvalidToken):
            verify_access_token(token)

    def test_non_numeric_subject_rejected(self):
        settings = get_settings()
        token = jwt.encode(
            {"sub": "alice", "username": "alice"},
            settings.jwt_secret_key,
            algorithm=settings.jwt_algorithm,
        )
        with pytest.raises(InvalidToken):
            verify_access_token(token)

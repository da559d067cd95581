"""
Auth service: password hashing and access tokens

The jam engine never checks credentials; it only receives the verified
(user id, username) pair produced by verify_access_token.
"""
from datetime import datetime, timedelta, timezone
from typing import NamedTuple

from jose import jwt, JWTError
from passlib.context import CryptContext

from database import get_settings

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class Identity(NamedTuple):
    user_id: int
    username: str


class InvalidToken(Exception):
    """Access token missing, expired, tampered with, or lacking claims"""
    pass


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, username: str, expires_delta: timedelta = None) -> str:
    """
    Sign an access token for a user

    Claims:
        sub: user id as a string
        username: login name
        exp: expiry, defaults to access_token_expire_minutes from settings
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "username": username,
        "exp": datetime.now(timezone.utc) + expires_delta,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def verify_access_token(token: str) -> Identity:
    """
    Verify a token and return the identity it carries

    Raises:
        InvalidToken: signature, expiry, or claim problems
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return Identity(int(payload["sub"]), payload["username"])
    except (JWTError, KeyError, ValueError, TypeError) as e:
        raise InvalidToken(str(e))

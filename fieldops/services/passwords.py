"""Password policy and hashing.

New hashes are bcrypt through passlib. PBKDF2 hashes written by the first
releases (``pbkdf2$<iterations>$<salt>$<digest>``) still verify, and
``needs_rehash`` flags them so login can replace them with bcrypt.
"""
from __future__ import annotations

import hashlib
import hmac

from fastapi import HTTPException, status
from passlib.context import CryptContext

PBKDF2_PREFIX = "pbkdf2$"
MIN_PASSWORD_LENGTH = 6
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class PasswordPolicyError(ValueError):
    pass


def check_password_policy(password: str) -> str:
    """Return ``password`` unchanged or raise :class:`PasswordPolicyError`."""
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise PasswordPolicyError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if not password.strip():
        raise PasswordPolicyError("Password cannot be blank")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise PasswordPolicyError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return password


def validate_new_password(password: str) -> str:
    """HTTP flavour of :func:`check_password_policy` for the routers."""
    try:
        return check_password_policy(password)
    except PasswordPolicyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


def is_password_hash(value: str) -> bool:
    if not value:
        return False
    if value.startswith(PBKDF2_PREFIX):
        return True
    return _pwd_context.identify(value, required=False) is not None


def hash_password(password: str) -> str:
    return _pwd_context.hash(password)


def _verify_pbkdf2(password: str, password_hash: str) -> bool:
    try:
        _, iterations, salt_hex, digest_hex = password_hash.split("$", 3)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
        rounds = int(iterations)
    except ValueError:
        return False
    computed = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return hmac.compare_digest(computed, expected)


def verify_password(password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    if password_hash.startswith(PBKDF2_PREFIX):
        return _verify_pbkdf2(password, password_hash)
    try:
        return _pwd_context.verify(password, password_hash)
    except ValueError:
        # not a hash this context understands
        return False


def needs_rehash(password_hash: str) -> bool:
    if password_hash.startswith(PBKDF2_PREFIX):
        return True
    return is_password_hash(password_hash) and _pwd_context.needs_update(password_hash)

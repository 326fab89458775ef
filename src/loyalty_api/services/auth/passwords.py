"""Salted PBKDF2 password hashing."""

from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

from loyalty_api.core.settings import settings

_ALGORITHM = "pbkdf2_sha256"
_SALT_BYTES = 16


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def hash_password(password: str, *, iterations: int | None = None) -> str:
    """Return ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` for ``password``."""

    rounds = iterations or settings.password_hash_iterations
    salt = secrets.token_bytes(_SALT_BYTES)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, rounds)
    return f"{_ALGORITHM}${rounds}${_b64(salt)}${_b64(digest)}"


def verify_password(password: str, encoded: str) -> bool:
    try:
        algorithm, rounds, salt, expected = encoded.split("$", 3)
        iterations = int(rounds)
        salt_bytes = base64.b64decode(salt)
        expected_bytes = base64.b64decode(expected)
    except ValueError:
        return False
    if algorithm != _ALGORITHM:
        return False

    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt_bytes, iterations)
    return hmac.compare_digest(digest, expected_bytes)


__all__ = ["hash_password", "verify_password"]

# core/passwords.py

import hashlib
import re
import secrets
from typing import Optional

from core.config import settings


ALGORITHM = "pbkdf2_sha256"

# Digests written by the first provisioning scripts: sha256(password + "salt")
LEGACY_SALT = "salt"
_LEGACY_DIGEST = re.compile(r"^[0-9a-f]{64}$")


def _pbkdf2(password: str, salt: str, iterations: int) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256",
        password.encode("utf-8"),
        salt.encode("utf-8"),
        iterations,
    ).hex()


def hash_password(
    password: str,
    salt: Optional[str] = None,
    iterations: Optional[int] = None,
) -> str:
    """
    Hash a password with PBKDF2-HMAC-SHA256.

    Args:
        password: Plain text password
        salt: Optional salt (a random per-account salt is generated if not provided)
        iterations: Optional iteration count (defaults to PASSWORD_HASH_ITERATIONS)

    Returns:
        Self-describing digest ``pbkdf2_sha256$<iterations>$<salt>$<hex>``.
        The same password, salt and iterations always give the same digest.
    """
    if salt is None:
        salt = secrets.token_hex(16)
    if iterations is None:
        iterations = settings.PASSWORD_HASH_ITERATIONS

    hashed = _pbkdf2(password, salt, iterations)
    return f"{ALGORITHM}${iterations}${salt}${hashed}"


def legacy_digest(password: str) -> str:
    """Fixed-salt SHA-256 digest used by rows provisioned before per-account salts."""
    return hashlib.sha256((password + LEGACY_SALT).encode("utf-8")).hexdigest()


def is_legacy_digest(digest: Optional[str]) -> bool:
    return bool(digest) and bool(_LEGACY_DIGEST.match(digest))


def verify_password(password: str, digest: Optional[str]) -> bool:
    """
    Verify a candidate password against a stored digest.

    Malformed or empty digests never verify.
    """
    if not digest or password is None:
        return False

    if is_legacy_digest(digest):
        return secrets.compare_digest(legacy_digest(password), digest)

    parts = digest.split("$")
    if len(parts) != 4 or parts[0] != ALGORITHM:
        return False

    _, raw_iterations, salt, expected = parts
    try:
        iterations = int(raw_iterations)
    except ValueError:
        return False
    if iterations < 1:
        return False

    return secrets.compare_digest(_pbkdf2(password, salt, iterations), expected)


def needs_rehash(digest: Optional[str]) -> bool:
    """
    True for legacy digests and for PBKDF2 digests weaker than the current setting.
    """
    if is_legacy_digest(digest):
        return True

    parts = (digest or "").split("$")
    if len(parts) != 4 or parts[0] != ALGORITHM:
        return False

    try:
        return int(parts[1]) < settings.PASSWORD_HASH_ITERATIONS
    except ValueError:
        return False

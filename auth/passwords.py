"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

DUMMY_HASH enables timing equalization in CredentialVerifier.verify() so
response time does not reveal whether a username exists [C1].
"""

from __future__ import annotations

import bcrypt

from core.errors import ValidationError

BCRYPT_ROUNDS = 10

# bcrypt only reads the first 72 bytes; bcrypt 5 refuses anything longer.
MAX_PASSWORD_BYTES = 72


def hash_password(plain: str, rounds: int = BCRYPT_ROUNDS) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Raises ValidationError for passwords over MAX_PASSWORD_BYTES once UTF-8
    encoded. A 40-character password can already exceed that.
    """
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    bcrypt.checkpw compares in constant time. A malformed stored hash, or a
    password bcrypt refuses as too long, counts as a mismatch rather than an
    error.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones [C1].
DUMMY_HASH: str = hash_password("userhub_timing_dummy")

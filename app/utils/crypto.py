"""
Crypto utilities — bcrypt password hashing.

Cost factor comes from ``BCRYPT_ROUNDS`` (12 by default, lowered in tests).
"""

import bcrypt
from flask import current_app

DEFAULT_ROUNDS = 12


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password with bcrypt."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", DEFAULT_ROUNDS)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(plain_password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, password_hash: str | None) -> bool:
    """Verify a plain-text password against its bcrypt hash."""
    if not password_hash or not plain_password:
        return False
    try:
        return bcrypt.checkpw(
            plain_password.encode("utf-8"),
            password_hash.encode("utf-8"),
        )
    except ValueError:
        # malformed hash
        return False

"""
User Service — registration and credential checks.
"""

import logging

from email_validator import EmailNotValidError, validate_email

from app.core.exceptions import ConflictError, ValidationError
from app.models import db
from app.models.user import User
from app.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


class AuthenticationError(Exception):
    """Raised when an email/password pair does not match. Maps to 401."""


def normalize_email(email: str) -> str:
    try:
        return validate_email(email, check_deliverability=False).normalized.lower()
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": email}) from None


def create_user(email: str, password: str, full_name: str | None = None) -> User:
    """Register a local account.

    Raises:
        ValidationError: missing/invalid email or a short password.
        ConflictError: the email is already registered.
    """
    if not email or not password:
        raise ValidationError("Email and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too_short"},
        )
    email = normalize_email(email.strip())

    if User.query.filter_by(email=email).first() is not None:
        raise ConflictError("User", "email", email)

    user = User(
        email=email,
        password_hash=hash_password(password),
        full_name=(full_name or "").strip() or None,
    )
    db.session.add(user)
    db.session.flush()
    logger.info("Registered user %s", user.id)
    return user


def authenticate_user(email: str, password: str) -> User:
    """Return the user for a matching email/password pair.

    Raises:
        AuthenticationError: unknown email or wrong password (same message).
    """
    user = User.query.filter_by(email=(email or "").strip().lower()).first()
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return user


def get_user_by_id(user_id: int) -> User | None:
    return db.session.get(User, user_id)

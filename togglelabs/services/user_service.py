"""
User Service — sign-up and credential check.

This is the identity collaborator in front of the organization and flag
stores: it turns an email/password pair into a ``User`` whose id is the
only thing the rest of the system sees.
"""

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import SQLAlchemyError

from togglelabs.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from togglelabs.models import db
from togglelabs.models.user import User
from togglelabs.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _normalize_email(email: str) -> str:
    try:
        valid = validate_email(email or "", check_deliverability=False)
    except EmailNotValidError as e:
        raise ValidationError(f"Invalid email: {e}", details={"email": str(e)})
    return valid.normalized.lower()


def create_user(
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """Register a new user with a bcrypt-hashed password."""
    email = _normalize_email(email)
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
            details={"password": "too short"},
        )

    if get_user_by_email(email):
        raise ConflictError("User", "email", email)

    user = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
    )
    try:
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError("user.create", exc) from exc

    logger.info("Created user %s", user.id)
    return user


def get_user_by_email(email: str) -> User | None:
    """Find a user by (normalized) email."""
    try:
        return User.query.filter_by(email=email.lower()).first()
    except SQLAlchemyError as exc:
        raise PersistenceError("user.find_by_email", exc) from exc


def get_user_by_id(user_id: str) -> User | None:
    """Find a user by id."""
    try:
        return db.session.get(User, user_id)
    except SQLAlchemyError as exc:
        raise PersistenceError("user.find_by_id", exc) from exc


def authenticate_user(email: str, password: str) -> User:
    """Check an email/password pair.

    Raises:
        NotFoundError: no user has this email.
        AuthenticationError: the password does not match.
    """
    user = get_user_by_email((email or "").strip())
    if user is None:
        raise NotFoundError("User")
    if not verify_password(password or "", user.password_hash):
        logger.warning("Failed sign-in for user %s", user.id)
        raise AuthenticationError("Invalid email or password")
    return user

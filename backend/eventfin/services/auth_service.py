# Overview: Service-layer operations for auth; password hashing, user creation and login.

"""
Authentication Service with Multi-Tenant Support

Every budget and expense action is attributed to a user. Passwords are
hashed with bcrypt and checked for strength at creation time.

MULTI-TENANT: Users belong to exactly one organization (org_id).
Email uniqueness is tenant-scoped.
"""

import re

import bcrypt
from flask import current_app, has_app_context

from ..extensions import db
from ..models import User, Organization
from ..permissions import UserRole
from ..time_utils import utcnow


DEFAULT_BCRYPT_ROUNDS = 12


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def _bcrypt_rounds() -> int:
    if has_app_context():
        return int(current_app.config.get("BCRYPT_LOG_ROUNDS", DEFAULT_BCRYPT_ROUNDS))
    return DEFAULT_BCRYPT_ROUNDS


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing. The cost factor comes
    from BCRYPT_LOG_ROUNDS (default 12).
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=_bcrypt_rounds())
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never verify."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    email: str,
    password: str,
    org_id: int,
    role: UserRole | str = UserRole.VIEWER,
    full_name: str | None = None,
) -> User:
    """
    Create new user with a bcrypt-hashed password and one role.

    Raises:
        ValueError: If org doesn't exist or is inactive, email is taken in the
            org, or role is unknown
        PasswordValidationError: If password doesn't meet requirements
    """
    role = UserRole.parse(role.value if isinstance(role, UserRole) else role)

    org = db.session.get(Organization, org_id)
    if not org:
        raise ValueError("Organization not found")
    if not org.is_active:
        raise ValueError("Organization is not active")

    email = email.strip().lower()
    existing = db.session.query(User).filter(
        User.org_id == org_id,
        User.email == email,
    ).first()
    if existing:
        raise ValueError("Email already exists in this organization")

    user = User(
        org_id=org_id,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role.value,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str, org_id: int | None = None) -> User | None:
    """
    Authenticate user by email and password.

    MULTI-TENANT: email is unique per organization only; pass org_id to scope
    the lookup when the same address exists in several organizations.

    Returns the User if credentials are valid and both the user and the
    organization are active, None otherwise. Updates last_login_at.
    """
    query = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    )
    if org_id is not None:
        query = query.filter(User.org_id == org_id)

    user = query.first()
    if not user:
        return None

    org = db.session.get(Organization, user.org_id)
    if not org or not org.is_active:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user

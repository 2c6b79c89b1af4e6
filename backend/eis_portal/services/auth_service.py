# Overview: Service-layer operations for ops staff accounts; password hashing and login.

"""
Ops Staff Authentication Service

Staff accounts sign in to the ops dashboard with email + password.
Founders and accountants never authenticate here; their magic-link token
is the credential (see token_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import USER_ROLES
from eis_portal.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

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


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns False for malformed hashes instead of raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(name: str, email: str, password: str, role: str = "OPS") -> User:
    """
    Create a staff user.

    Raises:
        ValueError: unknown role or email already registered
        PasswordValidationError: weak password
    """
    role = (role or "").upper()
    if role not in USER_ROLES:
        raise ValueError(f"Invalid role '{role}'. Must be one of: {', '.join(USER_ROLES)}")

    email = email.strip().lower()
    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ValueError("Email already exists")

    user = User(
        name=name.strip(),
        email=email,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate a staff user by email and password.

    Returns the User on success (and stamps last_login_at), None otherwise.
    """
    user = db.session.query(User).filter(
        User.email == email.strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None

# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..errors import AuthError, PasswordValidationError
from ..models import User
from . import session_service
from zimmet.time_utils import utcnow


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
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

    bcrypt.checkpw() is timing-safe.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in the database
        return False


def authenticate(email: str, password: str) -> User | None:
    """
    Return the active user matching the credentials, or None.

    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def login(email: str, password: str, *, user_agent: str | None = None, ip_address: str | None = None) -> dict:
    """
    Authenticate and open a session.

    Raises AuthError on bad credentials or a deactivated account.
    """
    if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
        raise AuthError("Email and password are required")

    user = authenticate(email, password)
    if not user:
        raise AuthError("Invalid credentials")

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=user_agent,
        ip_address=ip_address,
    )

    return {
        "user": user.to_dict(),
        "token": token,
        "session": session.to_dict(),
    }

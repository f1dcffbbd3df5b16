# Overview: Service-layer operations for user administration.

"""
User administration.

Users are never deleted: deactivation is a soft delete that revokes all
sessions and removes the account from the custody target directory.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Role, User
from . import session_service
from .auth_service import hash_password
from zimmet.input_utils import optional_text


def _normalize_email(email: str | None) -> str:
    return (optional_text(email, "email") or "").lower()


def _parse_role(value) -> Role:
    if isinstance(value, Role):
        return value
    try:
        return Role((optional_text(value, "role") or "").upper())
    except ValueError:
        raise ValidationError("role must be USER or ADMIN")


def get_user(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User", user_id)
    return user


def get_by_email(email: str) -> User:
    user = db.session.query(User).filter_by(email=_normalize_email(email)).first()
    if not user:
        raise NotFoundError("User", email)
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.full_name).all()


def directory() -> list[dict]:
    """Active users as custody targets (id, name, department only)."""
    return [u.summary() for u in list_users(include_inactive=False)]


def create_user(
    email: str,
    password: str,
    full_name: str,
    department: str | None = None,
    role: str | Role = Role.USER,
) -> User:
    """
    Create a new user with a bcrypt-hashed password.

    Raises:
        ValidationError: missing fields, duplicate email, bad role
        PasswordValidationError: weak password
    """
    email = _normalize_email(email)
    full_name = optional_text(full_name, "full_name")
    if not email or not full_name:
        raise ValidationError("email and full_name are required")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ValidationError("A user with this email already exists")

    user = User(
        email=email,
        full_name=full_name,
        department=optional_text(department, "department"),
        role=_parse_role(role),
        password_hash=hash_password(password),
        is_active=True,
    )

    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id: str, data: dict) -> User:
    """Apply a partial update (full_name, department, role, email)."""
    user = get_user(user_id)

    if "email" in data:
        email = _normalize_email(data["email"])
        if not email:
            raise ValidationError("email cannot be empty")
        taken = db.session.query(User).filter(User.email == email, User.id != user_id).first()
        if taken:
            raise ValidationError("Email already in use")
        user.email = email

    if "full_name" in data:
        full_name = optional_text(data["full_name"], "full_name")
        if not full_name:
            raise ValidationError("full_name cannot be empty")
        user.full_name = full_name

    if "department" in data:
        user.department = optional_text(data["department"], "department")

    if "role" in data:
        user.role = _parse_role(data["role"])

    db.session.commit()
    return user


def deactivate_user(user_id: str, acting_user_id: str) -> int:
    """
    Soft-delete a user and revoke their sessions.

    Returns the number of sessions revoked.
    """
    user = get_user(user_id)
    if not user.is_active:
        raise ValidationError("User is already deactivated")
    if user.id == acting_user_id:
        raise ValidationError("Cannot deactivate your own account")

    user.is_active = False
    revoked = session_service.revoke_all_user_sessions(user.id, reason="Account deactivated by admin")
    db.session.commit()
    return revoked


def reactivate_user(user_id: str) -> User:
    user = get_user(user_id)
    if user.is_active:
        raise ValidationError("User is already active")
    user.is_active = True
    db.session.commit()
    return user


def reset_password(user_id: str, new_password: str) -> User:
    user = get_user(user_id)
    user.password_hash = hash_password(new_password)
    session_service.revoke_all_user_sessions(user.id, reason="Password reset by admin")
    db.session.commit()
    return user

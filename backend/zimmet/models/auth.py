from __future__ import annotations

import uuid

from ..extensions import db
from zimmet.time_utils import to_utc_z, utcnow
from .enums import Role


def _new_id() -> str:
    return str(uuid.uuid4())


class User(db.Model):
    """
    Staff account that can hold documents.

    Deactivation (is_active=False) is a soft delete: the account can no longer
    log in or receive new custody, but ledger rows pointing at it stay intact.
    """
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    department = db.Column(db.String(255), nullable=True)
    role = db.Column(db.Enum(Role, native_enum=False, length=16), nullable=False, default=Role.USER)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_login_at = db.Column(db.DateTime, nullable=True)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r}>"

    def summary(self) -> dict:
        """Compact form embedded in ledger rows."""
        return {
            "id": self.id,
            "full_name": self.full_name,
            "department": self.department,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "department": self.department,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at),
        }


class SessionToken(db.Model):
    """
    Bearer session issued at login.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256)
    - Absolute and idle timeouts enforced by session_service
    - Revocable on logout or account deactivation
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_user_active", "user_id", "is_revoked"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_used_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime, nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length

    user = db.relationship("User", backref=db.backref("sessions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }

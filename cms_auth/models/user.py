"""User model for authentication and authorization."""

import uuid

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship, validates
from cms_auth.database import Base
from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.utils.clock import utcnow


def normalize_email(email: str) -> str:
    """Canonical form used for storage and every lookup."""
    return (email or "").strip().lower()


class User(Base):
    """User model for system users."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    phone_number = Column(String(20), nullable=True)
    user_type = Column(String(20), nullable=False, default=UserType.INDIVIDUAL.value)

    # Status
    status = Column(String(20), nullable=False, default=LifecycleStatus.ACTIVE.value)
    email_confirmed = Column(Boolean, nullable=False, default=False)
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    last_login_at = Column(DateTime, nullable=True)

    # Role
    user_group_id = Column(String(36), ForeignKey("user_groups.id"), nullable=True)
    user_group = relationship("UserGroup", back_populates="users", lazy="joined")

    # Audit
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_user_status", "status"),
        Index("idx_user_type", "user_type"),
        Index("idx_user_group", "user_group_id"),
    )

    @validates("email")
    def _normalize_email(self, key, value):
        value = normalize_email(value)
        if not value:
            raise ValueError("Email is required")
        return value

    @validates("password_hash")
    def _require_hash(self, key, value):
        if not value:
            raise ValueError("Password hash is required")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == LifecycleStatus.ACTIVE.value

    def update_profile(self, first_name: str, last_name: str, phone_number: str = None, now=None):
        if not first_name or not first_name.strip():
            raise ValueError("First name is required")
        self.first_name = first_name.strip()
        self.last_name = (last_name or "").strip()
        self.phone_number = phone_number.strip() if phone_number else None
        self.updated_at = now or utcnow()

    def update_password(self, password_hash: str, now=None):
        self.password_hash = password_hash
        self.updated_at = now or utcnow()

    def assign_group(self, group, now=None):
        self.user_group = group
        self.updated_at = now or utcnow()

    def record_login(self, now=None):
        now = now or utcnow()
        self.last_login_at = now
        self.updated_at = now

    def confirm_email(self, now=None):
        self.email_confirmed = True
        self.updated_at = now or utcnow()

    def set_two_factor(self, enabled: bool, now=None):
        self.two_factor_enabled = enabled
        self.updated_at = now or utcnow()

    def deactivate(self, now=None):
        self.status = LifecycleStatus.DEACTIVATED.value
        self.updated_at = now or utcnow()

    def activate(self, now=None):
        self.status = LifecycleStatus.ACTIVE.value
        self.updated_at = now or utcnow()

"""Login audit log model."""

import uuid
from datetime import timedelta
from typing import Optional

from sqlalchemy import Column, String, DateTime, Boolean, ForeignKey, Index
from sqlalchemy.orm import relationship
from cms_auth.database import Base
from cms_auth.utils.clock import utcnow


class UserLoginLog(Base):
    """One authentication attempt; successful entries double as sessions."""

    __tablename__ = "user_login_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    login_time = Column(DateTime, nullable=False, default=utcnow)
    logout_time = Column(DateTime, nullable=True)

    # Client
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    device_type = Column(String(100), nullable=True)
    browser = Column(String(100), nullable=True)
    operating_system = Column(String(100), nullable=True)

    # Result
    is_successful = Column(Boolean, nullable=False)
    failure_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("idx_login_log_user_time", "user_id", "login_time"),
    )

    @classmethod
    def successful(cls, user_id: str, client=None, now=None) -> "UserLoginLog":
        return cls._create(user_id, True, None, client, now)

    @classmethod
    def failed(cls, user_id: str, failure_reason: str, client=None, now=None) -> "UserLoginLog":
        return cls._create(user_id, False, failure_reason or "Unknown error", client, now)

    @classmethod
    def _create(cls, user_id, is_successful, failure_reason, client, now):
        now = now or utcnow()
        return cls(
            id=str(uuid.uuid4()),
            user_id=user_id,
            login_time=now,
            created_at=now,
            ip_address=getattr(client, "ip_address", None),
            user_agent=getattr(client, "user_agent", None),
            device_type=getattr(client, "device_type", None),
            browser=getattr(client, "browser", None),
            operating_system=getattr(client, "operating_system", None),
            is_successful=is_successful,
            failure_reason=failure_reason,
        )

    @property
    def is_session_active(self) -> bool:
        return self.is_successful and self.logout_time is None

    @property
    def session_duration(self) -> Optional[timedelta]:
        if self.logout_time is None:
            return None
        return self.logout_time - self.login_time

    def record_logout(self, now=None):
        self.logout_time = now or utcnow()

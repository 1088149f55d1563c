"""Persisted refresh tokens with rotation links."""

import uuid
from datetime import datetime

from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from cms_auth.database import Base
from cms_auth.utils.clock import utcnow


class RefreshToken(Base):
    """Opaque bearer credential used to mint new access tokens."""

    __tablename__ = "refresh_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    token = Column(String(255), unique=True, nullable=False)

    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    # Revocation
    revoked_at = Column(DateTime, nullable=True)
    revoked_by = Column(String(255), nullable=True)
    revoked_reason = Column(String(50), nullable=True)
    replaced_by_token_id = Column(String(36), nullable=True)

    user = relationship("User")

    __table_args__ = (
        Index("idx_refresh_token_user", "user_id", "revoked_at"),
        Index("idx_refresh_token_expires", "expires_at"),
    )

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    def is_expired(self, now: datetime = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_active(self, now: datetime = None) -> bool:
        return not self.is_revoked and not self.is_expired(now)

    def revoke(self, reason: str, revoked_by: str = None, replaced_by_token_id: str = None, now=None) -> bool:
        """Revoke this token. A revoked token keeps its first revocation stamp."""
        if self.is_revoked:
            return False
        self.revoked_at = now or utcnow()
        self.revoked_reason = reason
        self.revoked_by = revoked_by
        self.replaced_by_token_id = replaced_by_token_id
        return True

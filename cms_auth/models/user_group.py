"""User group (role) model and its permission association table."""

import uuid
from typing import Iterable, List

from sqlalchemy import Column, String, DateTime, ForeignKey, Table, Index
from sqlalchemy.orm import relationship
from cms_auth.database import Base
from cms_auth.models.enums import LifecycleStatus
from cms_auth.models.permission import Permission, PermissionCode
from cms_auth.utils.clock import utcnow


user_group_permissions = Table(
    "user_group_permissions",
    Base.metadata,
    Column("user_group_id", String(36), ForeignKey("user_groups.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", String(36), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class UserGroup(Base):
    """Named permission bundle assigned to users."""

    __tablename__ = "user_groups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), unique=True, nullable=False)
    description = Column(String(500), nullable=True)
    status = Column(String(20), nullable=False, default=LifecycleStatus.ACTIVE.value)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    permissions = relationship(
        Permission,
        secondary=user_group_permissions,
        lazy="selectin",
        order_by=Permission.permission_enum,
    )
    users = relationship("User", back_populates="user_group")

    __table_args__ = (
        Index("idx_user_group_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == LifecycleStatus.ACTIVE.value

    def update(self, name: str, description: str = None, now=None):
        if not name or not name.strip():
            raise ValueError("Name is required")
        self.name = name.strip()
        self.description = description.strip() if description else None
        self.updated_at = now or utcnow()

    def add_permission(self, permission: Permission, now=None) -> bool:
        """Add a permission; returns False when the group already holds it."""
        if permission is None:
            raise ValueError("permission is required")
        if self.has_permission(permission.permission_enum, include_inactive=True):
            return False
        self.permissions.append(permission)
        self.updated_at = now or utcnow()
        return True

    def remove_permission(self, permission: Permission, now=None) -> bool:
        """Remove a permission; returns False when the group did not hold it."""
        if permission is None:
            raise ValueError("permission is required")
        for held in list(self.permissions):
            if held.permission_enum == permission.permission_enum:
                self.permissions.remove(held)
                self.updated_at = now or utcnow()
                return True
        return False

    def replace_permissions(self, permissions: Iterable[Permission], now=None):
        """Replace the whole permission set, dropping duplicate enum values."""
        unique = {}
        for permission in permissions:
            unique.setdefault(permission.permission_enum, permission)
        self.permissions = [unique[key] for key in sorted(unique)]
        self.updated_at = now or utcnow()

    def permission_codes(self) -> List[PermissionCode]:
        """Active permissions granted by this group, sorted by enum value."""
        if not self.is_active:
            return []
        return sorted(
            {PermissionCode(p.permission_enum) for p in self.permissions if p.is_active}
        )

    def has_permission(self, code: int, include_inactive: bool = False) -> bool:
        for permission in self.permissions:
            if permission.permission_enum == int(code) and (include_inactive or permission.is_active):
                return True
        return False

    def deactivate(self, now=None):
        self.status = LifecycleStatus.DEACTIVATED.value
        self.updated_at = now or utcnow()

    def activate(self, now=None):
        self.status = LifecycleStatus.ACTIVE.value
        self.updated_at = now or utcnow()

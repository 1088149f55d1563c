"""Permission catalog seeding and default group provisioning."""

import logging
import uuid
from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from cms_auth.config import DEFAULT_GROUPS
from cms_auth.models.enums import LifecycleStatus
from cms_auth.models.permission import Permission, PermissionCode
from cms_auth.models.user_group import UserGroup
from cms_auth.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class CatalogService:
    """Keeps the permission table in step with ``PermissionCode``."""

    def __init__(self, db: Session, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def seed_permissions(self) -> int:
        """Insert any catalog entry missing from the table; returns how many."""
        existing = {p.permission_enum for p in self.db.query(Permission).all()}
        created = 0
        now = self.clock()
        for code in PermissionCode:
            if int(code) in existing:
                continue
            permission = Permission.from_code(code)
            permission.created_at = now
            permission.updated_at = now
            self.db.add(permission)
            created += 1
        if created:
            self.db.flush()
            logger.info(f"Seeded {created} permission(s)")
        return created

    def seed_default_groups(self) -> List[UserGroup]:
        return [self.ensure_group(name) for name in DEFAULT_GROUPS]

    def seed(self):
        """Seed permissions and default groups, then commit."""
        try:
            self.seed_permissions()
            self.seed_default_groups()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def ensure_group(self, name: str) -> UserGroup:
        """Return the named group, creating it if the catalog lacks it."""
        group = self.db.query(UserGroup).filter(UserGroup.name == name).first()
        if group is not None:
            return group

        now = self.clock()
        group = UserGroup(
            id=str(uuid.uuid4()),
            name=name,
            description=DEFAULT_GROUPS.get(name),
            status=LifecycleStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(group)
        self.db.flush()
        logger.info(f"Provisioned user group '{name}'")
        return group

    def resolve_permissions(self, codes: Iterable[int]) -> List[Permission]:
        """
        Map permission codes to rows, creating catalog rows on first use.

        Duplicate codes collapse to a single permission.
        """
        wanted = sorted({int(PermissionCode(code)) for code in codes})
        if not wanted:
            return []

        found: Dict[int, Permission] = {
            p.permission_enum: p
            for p in self.db.query(Permission).filter(Permission.permission_enum.in_(wanted)).all()
        }
        now = self.clock()
        for value in wanted:
            if value not in found:
                permission = Permission.from_code(PermissionCode(value))
                permission.created_at = now
                permission.updated_at = now
                self.db.add(permission)
                found[value] = permission
        self.db.flush()
        return [found[value] for value in wanted]

    def grant_all(self, group: UserGroup) -> UserGroup:
        """Give a group every permission in the catalog."""
        group.replace_permissions(self.resolve_permissions(list(PermissionCode)), now=self.clock())
        return group

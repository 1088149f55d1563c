"""User, role and permission administration."""

import logging
import uuid
from contextlib import contextmanager
from typing import List

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cms_auth.exceptions import ConflictError, NotFoundError, ValidationError
from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.models.login_log import UserLoginLog
from cms_auth.models.permission import Permission, PermissionCode
from cms_auth.models.user import User, normalize_email
from cms_auth.models.user_group import UserGroup
from cms_auth.schemas.common import PagedResponse
from cms_auth.schemas.user import (
    CreateRoleRequest,
    LoginLogResponse,
    PermissionResponse,
    UpdateRoleRequest,
    UpdateUserRequest,
    UserFilter,
    UserGroupResponse,
    UserResponse,
    UserStatistics,
)
from cms_auth.services.catalog_service import CatalogService
from cms_auth.services.notification_service import LoggingNotificationService, NotificationService
from cms_auth.services.token_service import REASON_DEACTIVATED, TokenService
from cms_auth.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "email": User.email,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "createdAt": User.created_at,
    "lastLoginAt": User.last_login_at,
}


def _escape_like(term: str) -> str:
    """Make ``%`` and ``_`` in user input match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UserService:
    """Service for administrative user and role management."""

    def __init__(
        self,
        db: Session,
        notifications: NotificationService = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.clock = clock
        self.notifications = notifications or LoggingNotificationService()
        self.catalog = CatalogService(db, clock=clock)
        self.tokens = TokenService(db, clock=clock)

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def get_user(self, user_id: str) -> UserResponse:
        return UserResponse.from_user(self._get_user(user_id))

    def get_user_by_email(self, email: str) -> UserResponse:
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            raise NotFoundError("User not found")
        return UserResponse.from_user(user)

    def list_users(self, filters: UserFilter) -> PagedResponse[UserResponse]:
        """Paged user listing; status is filtered explicitly when given."""
        query = self.db.query(User)

        if filters.search_term:
            term = f"%{_escape_like(filters.search_term.strip().lower())}%"
            query = query.filter(
                or_(
                    User.email.like(term, escape="\\"),
                    func.lower(User.first_name).like(term, escape="\\"),
                    func.lower(User.last_name).like(term, escape="\\"),
                    User.phone_number.like(term, escape="\\"),
                )
            )
        if filters.user_type is not None:
            query = query.filter(User.user_type == filters.user_type.value)
        if filters.status is not None:
            query = query.filter(User.status == filters.status.value)
        if filters.user_group_id:
            query = query.filter(User.user_group_id == filters.user_group_id)
        if filters.created_from:
            query = query.filter(User.created_at >= filters.created_from)
        if filters.created_to:
            query = query.filter(User.created_at <= filters.created_to)

        total = query.count()

        column = SORTABLE_COLUMNS.get(filters.sort_by or "", User.created_at)
        query = query.order_by(column.desc() if filters.sort_descending else column.asc(), User.id)

        users = (
            query.offset((filters.page - 1) * filters.page_size)
            .limit(filters.page_size)
            .all()
        )
        return PagedResponse[UserResponse].build(
            [UserResponse.from_user(u) for u in users], total, filters.page, filters.page_size
        )

    def search_users(self, term: str, limit: int = 20) -> List[UserResponse]:
        page = self.list_users(UserFilter(search_term=term, page_size=min(limit, 100)))
        return page.items

    def update_user(self, user_id: str, request: UpdateUserRequest) -> UserResponse:
        with self._transaction():
            user = self._get_user(user_id)
            email = normalize_email(request.email)
            if email != user.email and not self.is_email_unique(email):
                raise ConflictError("Email already exists")
            try:
                user.update_profile(request.first_name, request.last_name, request.phone_number, now=self.clock())
            except ValueError as e:
                raise ValidationError(str(e))
            user.email = email
            try:
                self.db.flush()
            except IntegrityError:
                raise ConflictError("Email already exists")
            response = UserResponse.from_user(user)
        logger.info(f"User updated: {user_id}")
        return response

    def deactivate_user(self, user_id: str, actor_id: str = None):
        """Soft delete: the row stays, the account can no longer authenticate."""
        with self._transaction():
            user = self._get_user(user_id)
            user.deactivate(now=self.clock())
            self.tokens.revoke_all_for_user(user.id, reason=REASON_DEACTIVATED, revoked_by=actor_id)
        logger.info(f"User deactivated: {user_id} by {actor_id or 'system'}")
        self._notify(self.notifications.send_account_status_changed, user.email, user.full_name, False)

    def activate_user(self, user_id: str, actor_id: str = None):
        with self._transaction():
            user = self._get_user(user_id)
            user.activate(now=self.clock())
        logger.info(f"User activated: {user_id} by {actor_id or 'system'}")
        self._notify(self.notifications.send_account_status_changed, user.email, user.full_name, True)

    def set_user_status_by_email(self, email: str, is_active: bool, actor_id: str = None):
        user = self.db.query(User).filter(User.email == normalize_email(email)).first()
        if user is None:
            raise NotFoundError("User not found")
        if is_active:
            self.activate_user(user.id, actor_id)
        else:
            self.deactivate_user(user.id, actor_id)

    def confirm_email(self, user_id: str):
        with self._transaction():
            self._get_user(user_id).confirm_email(now=self.clock())

    def set_two_factor(self, user_id: str, enabled: bool):
        with self._transaction():
            self._get_user(user_id).set_two_factor(enabled, now=self.clock())
        logger.info(f"Two-factor {'enabled' if enabled else 'disabled'} for user {user_id}")

    def enable_two_factor(self, user_id: str):
        self.set_two_factor(user_id, True)

    def disable_two_factor(self, user_id: str):
        self.set_two_factor(user_id, False)

    def is_email_unique(self, email: str) -> bool:
        return not self.db.query(
            self.db.query(User).filter(User.email == normalize_email(email)).exists()
        ).scalar()

    def get_statistics(self) -> UserStatistics:
        def count(*criteria):
            return self.db.query(func.count(User.id)).filter(*criteria).scalar() or 0

        active = count(User.status == LifecycleStatus.ACTIVE.value)
        total = count()
        return UserStatistics(
            total_users=total,
            active_users=active,
            inactive_users=total - active,
            individual_users=count(User.user_type == UserType.INDIVIDUAL.value),
            corporate_users=count(User.user_type == UserType.CORPORATE.value),
            confirmed_emails=count(User.email_confirmed.is_(True)),
        )

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def list_roles(self) -> List[UserGroupResponse]:
        groups = (
            self.db.query(UserGroup)
            .filter(UserGroup.status == LifecycleStatus.ACTIVE.value)
            .order_by(UserGroup.name)
            .all()
        )
        return [UserGroupResponse.model_validate(g) for g in groups]

    def create_role(self, request: CreateRoleRequest) -> UserGroupResponse:
        name = request.name.strip()
        with self._transaction():
            if self.db.query(UserGroup).filter(UserGroup.name == name).first() is not None:
                raise ConflictError(f"Role '{name}' already exists")
            now = self.clock()
            group = UserGroup(
                id=str(uuid.uuid4()),
                name=name,
                description=request.description,
                status=LifecycleStatus.ACTIVE.value,
                created_at=now,
                updated_at=now,
            )
            self.db.add(group)
            group.replace_permissions(self.catalog.resolve_permissions(request.permissions), now=now)
            try:
                self.db.flush()
            except IntegrityError:
                raise ConflictError(f"Role '{name}' already exists")
            response = UserGroupResponse.model_validate(group)
        logger.info(f"Role created: {name}")
        return response

    def update_role(self, role_id: str, request: UpdateRoleRequest) -> UserGroupResponse:
        """Rename a role and replace its whole permission set."""
        with self._transaction():
            group = self._get_group(role_id)
            name = request.name.strip()
            clash = (
                self.db.query(UserGroup)
                .filter(UserGroup.name == name, UserGroup.id != group.id)
                .first()
            )
            if clash is not None:
                raise ConflictError(f"Role '{name}' already exists")
            now = self.clock()
            try:
                group.update(name, request.description, now=now)
            except ValueError as e:
                raise ValidationError(str(e))
            group.replace_permissions(self.catalog.resolve_permissions(request.permissions), now=now)
            self.db.flush()
            response = UserGroupResponse.model_validate(group)
        logger.info(f"Role updated: {role_id}")
        return response

    def delete_role(self, role_id: str):
        """Roles are deactivated, never removed."""
        with self._transaction():
            self._get_group(role_id).deactivate(now=self.clock())
        logger.info(f"Role deactivated: {role_id}")

    def set_user_role(self, user_id: str, role_id: str):
        with self._transaction():
            user = self._get_user(user_id)
            group = self._get_group(role_id)
            if not group.is_active:
                raise ValidationError("Cannot assign a deactivated role")
            user.assign_group(group, now=self.clock())
        logger.info(f"User {user_id} assigned to role {group.name}")
        self._notify(self.notifications.send_role_assigned, user.email, user.full_name, group.name)

    def set_role_permissions(self, role_id: str, codes: List[PermissionCode]) -> UserGroupResponse:
        with self._transaction():
            group = self._get_group(role_id)
            group.replace_permissions(self.catalog.resolve_permissions(codes), now=self.clock())
            self.db.flush()
            response = UserGroupResponse.model_validate(group)
        logger.info(f"Permissions replaced for role {role_id}: {len(response.permissions)} granted")
        return response

    def set_user_permissions(self, user_id: str, codes: List[PermissionCode]) -> UserGroupResponse:
        """Replace the permission set of the user's group."""
        user = self._get_user(user_id)
        if user.user_group is None:
            raise ValidationError("User has no user group assigned")
        return self.set_role_permissions(user.user_group.id, codes)

    # ------------------------------------------------------------------
    # Permissions
    # ------------------------------------------------------------------

    def list_permissions(self) -> List[PermissionResponse]:
        permissions = (
            self.db.query(Permission)
            .filter(Permission.is_active.is_(True))
            .order_by(Permission.permission_enum)
            .all()
        )
        return [PermissionResponse.model_validate(p) for p in permissions]

    def get_user_permissions(self, user_id: str) -> List[PermissionResponse]:
        user = self._get_user(user_id)
        return UserResponse.from_user(user).permissions

    def user_has_permission(self, user_id: str, code: PermissionCode) -> bool:
        """Live check against the database, as opposed to a token snapshot."""
        user = self.db.get(User, user_id)
        if user is None or user.user_group is None:
            return False
        return PermissionCode(code) in user.user_group.permission_codes()

    def is_user_in_role(self, user_id: str, role_name: str) -> bool:
        user = self.db.get(User, user_id)
        if user is None or user.user_group is None or not user.user_group.is_active:
            return False
        return user.user_group.name == role_name

    # ------------------------------------------------------------------
    # Login logs
    # ------------------------------------------------------------------

    def get_login_logs(self, user_id: str, count: int = 10) -> List[LoginLogResponse]:
        self._get_user(user_id)
        logs = (
            self.db.query(UserLoginLog)
            .filter(UserLoginLog.user_id == user_id)
            .order_by(UserLoginLog.login_time.desc())
            .limit(count)
            .all()
        )
        return [LoginLogResponse.model_validate(log) for log in logs]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id) if user_id else None
        if user is None:
            raise NotFoundError("User not found")
        return user

    def _get_group(self, role_id: str) -> UserGroup:
        group = self.db.get(UserGroup, role_id) if role_id else None
        if group is None:
            raise NotFoundError("Role not found")
        return group

    def _notify(self, send, *args):
        try:
            send(*args)
        except Exception as e:
            logger.error(f"Notification {getattr(send, '__name__', send)} failed: {e}")

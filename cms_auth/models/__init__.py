"""Database models for the CMS identity backend."""

from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.models.permission import Permission, PermissionCode
from cms_auth.models.user_group import UserGroup, user_group_permissions
from cms_auth.models.user import User, normalize_email
from cms_auth.models.refresh_token import RefreshToken
from cms_auth.models.login_log import UserLoginLog

__all__ = [
    "LifecycleStatus",
    "UserType",
    "Permission",
    "PermissionCode",
    "UserGroup",
    "user_group_permissions",
    "User",
    "normalize_email",
    "RefreshToken",
    "UserLoginLog",
]

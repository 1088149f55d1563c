"""Business logic services."""

from cms_auth.services.auth_service import AuthService
from cms_auth.services.catalog_service import CatalogService
from cms_auth.services.notification_service import (
    LoggingNotificationService,
    NotificationService,
    get_notification_service,
)
from cms_auth.services.password_service import PasswordService
from cms_auth.services.permission_guard import PermissionGuard
from cms_auth.services.token_service import RefreshTokenReuseError, TokenService
from cms_auth.services.user_service import UserService

__all__ = [
    "AuthService",
    "CatalogService",
    "LoggingNotificationService",
    "NotificationService",
    "get_notification_service",
    "PasswordService",
    "PermissionGuard",
    "RefreshTokenReuseError",
    "TokenService",
    "UserService",
]

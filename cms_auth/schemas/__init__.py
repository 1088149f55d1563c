"""Pydantic schemas for request/response validation."""

from cms_auth.schemas.common import ApiResponse, PagedResponse
from cms_auth.schemas.auth import (
    AccessTokenClaims,
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    LogoutResponse,
    RefreshTokenRequest,
    RegisterRequest,
    UpdateProfileRequest,
)
from cms_auth.schemas.user import (
    CreateRoleRequest,
    LoginLogResponse,
    PermissionResponse,
    SetPermissionsRequest,
    SetUserRoleRequest,
    SetUserStatusRequest,
    UpdateRoleRequest,
    UpdateUserRequest,
    UserFilter,
    UserGroupResponse,
    UserResponse,
    UserStatistics,
)

__all__ = [
    "ApiResponse",
    "PagedResponse",
    "AccessTokenClaims",
    "AuthResponse",
    "ChangePasswordRequest",
    "LoginRequest",
    "LogoutResponse",
    "RefreshTokenRequest",
    "RegisterRequest",
    "UpdateProfileRequest",
    "CreateRoleRequest",
    "LoginLogResponse",
    "PermissionResponse",
    "SetPermissionsRequest",
    "SetUserRoleRequest",
    "SetUserStatusRequest",
    "UpdateRoleRequest",
    "UpdateUserRequest",
    "UserFilter",
    "UserGroupResponse",
    "UserResponse",
    "UserStatistics",
]

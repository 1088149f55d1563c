"""User, role and permission administration endpoints.

Every route is gated on a ``PermissionCode`` carried in the caller's token.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from cms_auth.dependencies import get_auth_service, get_user_service, require_permission
from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.models.permission import PermissionCode
from cms_auth.schemas.auth import AccessTokenClaims
from cms_auth.schemas.common import ApiResponse, PagedResponse
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
from cms_auth.services.auth_service import AuthService
from cms_auth.services.user_service import UserService

router = APIRouter()


# ----------------------------------------------------------------------
# Collection-level routes (declared before /{user_id})
# ----------------------------------------------------------------------

@router.get("", response_model=ApiResponse[PagedResponse[UserResponse]])
def list_users(
    search_term: Optional[str] = Query(None, alias="searchTerm"),
    user_type: Optional[UserType] = Query(None, alias="userType"),
    status: Optional[LifecycleStatus] = Query(None),
    user_group_id: Optional[str] = Query(None, alias="userGroupId"),
    created_from: Optional[datetime] = Query(None, alias="createdFrom"),
    created_to: Optional[datetime] = Query(None, alias="createdTo"),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100, alias="pageSize"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_descending: bool = Query(False, alias="sortDescending"),
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_USERS_BY_FILTER)),
    user_service: UserService = Depends(get_user_service),
):
    """Paged, filtered user listing."""
    filters = UserFilter(
        search_term=search_term,
        user_type=user_type,
        status=status,
        user_group_id=user_group_id,
        created_from=created_from,
        created_to=created_to,
        page=page,
        page_size=page_size,
        sort_by=sort_by,
        sort_descending=sort_descending,
    )
    return ApiResponse.ok(user_service.list_users(filters))


@router.get("/search", response_model=ApiResponse[List[UserResponse]])
def search_users(
    term: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.SEARCH_USER)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.search_users(term, limit))


@router.get("/statistics", response_model=ApiResponse[UserStatistics])
def get_statistics(
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_USERS)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.get_statistics())


@router.get("/by-email", response_model=ApiResponse[UserResponse])
def get_user_by_email(
    email: str = Query(..., min_length=3),
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_USER_BY_EMAIL)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.get_user_by_email(email))


@router.get("/email-unique", response_model=ApiResponse[bool])
def is_email_unique(
    email: str = Query(..., min_length=3),
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_USERS)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.is_email_unique(email))


@router.post("/status", response_model=ApiResponse[bool])
def set_user_status(
    request: SetUserStatusRequest,
    claims: AccessTokenClaims = Depends(require_permission(PermissionCode.DELETE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    """Activate or deactivate an account by e-mail."""
    user_service.set_user_status_by_email(request.email, request.is_active, actor_id=claims.user_id)
    state = "activated" if request.is_active else "deactivated"
    return ApiResponse.ok(True, f"User {state} successfully")


# ----------------------------------------------------------------------
# Roles and permissions
# ----------------------------------------------------------------------

@router.get("/roles", response_model=ApiResponse[List[UserGroupResponse]])
def list_roles(
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_ROLES)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.list_roles())


@router.post("/roles", response_model=ApiResponse[UserGroupResponse])
def create_role(
    request: CreateRoleRequest,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.ADD_ROLE)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.create_role(request), "Role created successfully")


@router.post("/roles/assign", response_model=ApiResponse[bool])
def set_user_role(
    request: SetUserRoleRequest,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.SET_ROLE_TO_USER)),
    user_service: UserService = Depends(get_user_service),
):
    user_service.set_user_role(request.user_id, request.user_group_id)
    return ApiResponse.ok(True, "Role assigned successfully")


@router.put("/roles/{role_id}", response_model=ApiResponse[UserGroupResponse])
def update_role(
    role_id: str,
    request: UpdateRoleRequest,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.ADD_ROLE)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.update_role(role_id, request), "Role updated successfully")


@router.delete("/roles/{role_id}", response_model=ApiResponse[bool])
def delete_role(
    role_id: str,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.ADD_ROLE)),
    user_service: UserService = Depends(get_user_service),
):
    user_service.delete_role(role_id)
    return ApiResponse.ok(True, "Role deactivated successfully")


@router.put("/roles/{role_id}/permissions", response_model=ApiResponse[UserGroupResponse])
def set_role_permissions(
    role_id: str,
    request: SetPermissionsRequest,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.SET_USER_PERMISSIONS)),
    user_service: UserService = Depends(get_user_service),
):
    result = user_service.set_role_permissions(role_id, request.permissions)
    return ApiResponse.ok(result, "Permissions updated successfully")


@router.get("/permissions", response_model=ApiResponse[List[PermissionResponse]])
def list_permissions(
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_PERMISSIONS)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.list_permissions())


# ----------------------------------------------------------------------
# Single user
# ----------------------------------------------------------------------

@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
def get_user(
    user_id: str,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_USER)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.get_user(user_id))


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
def update_user(
    user_id: str,
    request: UpdateUserRequest,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.UPDATE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.update_user(user_id, request), "User updated successfully")


@router.delete("/{user_id}", response_model=ApiResponse[bool])
def delete_user(
    user_id: str,
    claims: AccessTokenClaims = Depends(require_permission(PermissionCode.DELETE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    """Soft delete: the account is deactivated and its refresh tokens revoked."""
    user_service.deactivate_user(user_id, actor_id=claims.user_id)
    return ApiResponse.ok(True, "User deactivated successfully")


@router.post("/{user_id}/activate", response_model=ApiResponse[bool])
def activate_user(
    user_id: str,
    claims: AccessTokenClaims = Depends(require_permission(PermissionCode.DELETE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    user_service.activate_user(user_id, actor_id=claims.user_id)
    return ApiResponse.ok(True, "User activated successfully")


@router.post("/{user_id}/confirm-email", response_model=ApiResponse[bool])
def confirm_email(
    user_id: str,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.UPDATE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    user_service.confirm_email(user_id)
    return ApiResponse.ok(True, "Email confirmed")


@router.post("/{user_id}/two-factor/enable", response_model=ApiResponse[bool])
def enable_two_factor(
    user_id: str,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.UPDATE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    user_service.enable_two_factor(user_id)
    return ApiResponse.ok(True, "Two-factor authentication enabled")


@router.post("/{user_id}/two-factor/disable", response_model=ApiResponse[bool])
def disable_two_factor(
    user_id: str,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.UPDATE_USER)),
    user_service: UserService = Depends(get_user_service),
):
    user_service.disable_two_factor(user_id)
    return ApiResponse.ok(True, "Two-factor authentication disabled")


@router.post("/{user_id}/reset-password", response_model=ApiResponse[bool])
def reset_password(
    user_id: str,
    claims: AccessTokenClaims = Depends(require_permission(PermissionCode.RESET_PASSWORD)),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Generate a new password and send it to the user."""
    auth_service.reset_password(user_id, actor_id=claims.user_id)
    return ApiResponse.ok(True, "Password reset; the new password has been sent to the user")


@router.get("/{user_id}/permissions", response_model=ApiResponse[List[PermissionResponse]])
def get_user_permissions(
    user_id: str,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_PERMISSIONS_OF_USER)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.get_user_permissions(user_id))


@router.put("/{user_id}/permissions", response_model=ApiResponse[UserGroupResponse])
def set_user_permissions(
    user_id: str,
    request: SetPermissionsRequest,
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.SET_USER_PERMISSIONS)),
    user_service: UserService = Depends(get_user_service),
):
    """Replace the permission set of the user's group."""
    result = user_service.set_user_permissions(user_id, request.permissions)
    return ApiResponse.ok(result, "Permissions updated successfully")


@router.get("/{user_id}/login-logs", response_model=ApiResponse[List[LoginLogResponse]])
def get_login_logs(
    user_id: str,
    count: int = Query(10, ge=1, le=100),
    _: AccessTokenClaims = Depends(require_permission(PermissionCode.GET_USER_LOGIN_LOGS)),
    user_service: UserService = Depends(get_user_service),
):
    return ApiResponse.ok(user_service.get_login_logs(user_id, count))

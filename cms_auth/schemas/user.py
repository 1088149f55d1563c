"""User, role and permission schemas."""

from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import EmailStr, Field

from cms_auth.models.enums import LifecycleStatus, UserType
from cms_auth.models.permission import PermissionCode
from cms_auth.schemas.common import CamelModel


class PermissionResponse(CamelModel):
    id: str
    name: str
    code: str
    description: Optional[str] = None
    permission_enum: int
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserGroupResponse(CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    permissions: List[PermissionResponse] = Field(default_factory=list)


class UserResponse(CamelModel):
    """Public projection of a user; never carries the password hash."""

    id: str
    email: str
    first_name: str
    last_name: str
    full_name: str
    phone_number: Optional[str] = None
    user_type: UserType
    status: LifecycleStatus
    is_active: bool
    email_confirmed: bool
    two_factor_enabled: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None
    user_group: Optional[UserGroupResponse] = None
    roles: List[str] = Field(default_factory=list)
    permissions: List[PermissionResponse] = Field(default_factory=list)

    @classmethod
    def from_user(cls, user) -> "UserResponse":
        group = user.user_group
        group_response = UserGroupResponse.model_validate(group) if group is not None else None
        granted = [
            PermissionResponse.model_validate(p)
            for p in group.permissions
            if p.is_active
        ] if group is not None and group.is_active else []
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            full_name=user.full_name,
            phone_number=user.phone_number,
            user_type=user.user_type,
            status=user.status,
            is_active=user.is_active,
            email_confirmed=user.email_confirmed,
            two_factor_enabled=user.two_factor_enabled,
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login_at=user.last_login_at,
            user_group=group_response,
            roles=[group.name] if group is not None else [],
            permissions=granted,
        )


class UpdateUserRequest(CamelModel):
    """Administrative update of a user's profile."""
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    email: EmailStr
    phone_number: Optional[str] = Field(default=None, max_length=20)


class UserFilter(CamelModel):
    search_term: Optional[str] = None
    user_type: Optional[UserType] = None
    status: Optional[LifecycleStatus] = None
    user_group_id: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)
    sort_by: Optional[str] = None
    sort_descending: bool = False


class CreateRoleRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    permissions: List[PermissionCode] = Field(default_factory=list)


class UpdateRoleRequest(CreateRoleRequest):
    pass


class SetUserRoleRequest(CamelModel):
    user_id: str
    user_group_id: str


class SetPermissionsRequest(CamelModel):
    permissions: List[PermissionCode] = Field(default_factory=list)


class SetUserStatusRequest(CamelModel):
    email: EmailStr
    is_active: bool


class LoginLogResponse(CamelModel):
    id: str
    login_time: datetime
    logout_time: Optional[datetime] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    device_type: Optional[str] = None
    browser: Optional[str] = None
    operating_system: Optional[str] = None
    is_successful: bool
    failure_reason: Optional[str] = None
    session_duration: Optional[timedelta] = None


class UserStatistics(CamelModel):
    total_users: int
    active_users: int
    inactive_users: int
    individual_users: int
    corporate_users: int
    confirmed_emails: int

"""Authentication schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from cms_auth.models.enums import UserType
from cms_auth.models.permission import PermissionCode
from cms_auth.schemas.common import CamelModel
from cms_auth.schemas.user import UserResponse

CLAIMS_SCHEMA_VERSION = 1


class LoginRequest(CamelModel):
    """Login request schema."""
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterRequest(CamelModel):
    """Self-service registration."""
    email: EmailStr
    password: str = Field(min_length=1)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=20)
    user_type: UserType = UserType.INDIVIDUAL


class RefreshTokenRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class UpdateProfileRequest(CamelModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(default="", max_length=100)
    phone_number: Optional[str] = Field(default=None, max_length=20)


class AuthResponse(CamelModel):
    """Token pair plus the public user projection."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    user: UserResponse


class LogoutResponse(CamelModel):
    revoked_tokens: int
    session_terminated: bool = True


class AccessTokenClaims(BaseModel):
    """
    Versioned payload of an access token.

    Serialized as JWT claims with the registered names (``sub``, ``iss``,
    ``aud``, ``iat``, ``exp``, ``jti``) plus the identity fields below.
    ``permissions`` holds permission enum integers.
    """

    ver: int = CLAIMS_SCHEMA_VERSION
    sub: str
    email: str
    name: str = ""
    jti: str
    user_type: UserType
    user_group_id: Optional[str] = None
    user_group: Optional[str] = None
    permissions: List[int] = Field(default_factory=list)
    iss: str
    aud: str
    iat: int
    exp: int

    @field_validator("ver")
    @classmethod
    def _known_version(cls, value: int) -> int:
        if value != CLAIMS_SCHEMA_VERSION:
            raise ValueError(f"Unsupported claims version {value}")
        return value

    @property
    def user_id(self) -> str:
        return self.sub

    def permission_codes(self) -> List[PermissionCode]:
        """Known permission codes; unknown integers are ignored."""
        codes = []
        for value in self.permissions:
            try:
                codes.append(PermissionCode(value))
            except ValueError:
                continue
        return codes

"""Authorization decisions over validated access-token claims.

Every check denies by default: no claims, no group or an unknown permission
all evaluate to ``False``. The guard never consults the database, so a
decision reflects the permission snapshot taken when the token was minted.
"""

from typing import Iterable, Optional

from cms_auth.exceptions import ForbiddenError, UnauthorizedError
from cms_auth.models.permission import PermissionCode
from cms_auth.schemas.auth import AccessTokenClaims


def has_permission(claims: Optional[AccessTokenClaims], code: PermissionCode) -> bool:
    if claims is None:
        return False
    try:
        wanted = PermissionCode(code)
    except ValueError:
        return False
    return wanted in claims.permission_codes()


def has_any_permission(claims: Optional[AccessTokenClaims], codes: Iterable[PermissionCode]) -> bool:
    return any(has_permission(claims, code) for code in codes)


def has_all_permissions(claims: Optional[AccessTokenClaims], codes: Iterable[PermissionCode]) -> bool:
    codes = list(codes)
    if not codes:
        return False
    return all(has_permission(claims, code) for code in codes)


def has_role(claims: Optional[AccessTokenClaims], role_name: str) -> bool:
    if claims is None or not claims.user_group or not role_name:
        return False
    return claims.user_group == role_name


class PermissionGuard:
    """Raises instead of returning booleans; used by the HTTP dependencies."""

    def __init__(self, claims: Optional[AccessTokenClaims]):
        self.claims = claims

    def require_authenticated(self) -> AccessTokenClaims:
        if self.claims is None:
            raise UnauthorizedError("Authentication required")
        return self.claims

    def require_permission(self, code: PermissionCode) -> AccessTokenClaims:
        claims = self.require_authenticated()
        if not has_permission(claims, code):
            raise ForbiddenError(f"Missing permission: {PermissionCode(code).name}")
        return claims

    def require_any_permission(self, codes: Iterable[PermissionCode]) -> AccessTokenClaims:
        claims = self.require_authenticated()
        codes = list(codes)
        if not has_any_permission(claims, codes):
            raise ForbiddenError("Missing permission: one of " + ", ".join(PermissionCode(c).name for c in codes))
        return claims

    def require_role(self, role_name: str) -> AccessTokenClaims:
        claims = self.require_authenticated()
        if not has_role(claims, role_name):
            raise ForbiddenError(f"Role '{role_name}' required")
        return claims

"""FastAPI dependencies: services, current caller and permission gates."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from cms_auth.database import get_db
from cms_auth.models.permission import PermissionCode
from cms_auth.schemas.auth import AccessTokenClaims
from cms_auth.services.auth_service import AuthService
from cms_auth.services.notification_service import NotificationService, get_notification_service
from cms_auth.services.permission_guard import PermissionGuard
from cms_auth.services.token_service import TokenService
from cms_auth.services.user_service import UserService

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> AuthService:
    return AuthService(db, notifications=notifications)


def get_user_service(
    db: Session = Depends(get_db),
    notifications: NotificationService = Depends(get_notification_service),
) -> UserService:
    return UserService(db, notifications=notifications)


def get_current_claims(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AccessTokenClaims:
    """
    Claims of the calling user.

    ``AuthMiddleware`` normally validates the bearer token first and leaves
    the claims on ``request.state``; otherwise the token is decoded here.
    """
    claims = getattr(request.state, "claims", None)
    if claims is not None:
        return claims
    token = credentials.credentials if credentials else None
    return TokenService().decode_access_token(token)


def require_permission(code: PermissionCode):
    """Dependency factory gating a route on one permission."""

    def dependency(claims: AccessTokenClaims = Depends(get_current_claims)) -> AccessTokenClaims:
        return PermissionGuard(claims).require_permission(code)

    return dependency


def require_any_permission(*codes: PermissionCode):
    def dependency(claims: AccessTokenClaims = Depends(get_current_claims)) -> AccessTokenClaims:
        return PermissionGuard(claims).require_any_permission(codes)

    return dependency


def require_role(role_name: str):
    def dependency(claims: AccessTokenClaims = Depends(get_current_claims)) -> AccessTokenClaims:
        return PermissionGuard(claims).require_role(role_name)

    return dependency

"""Authentication API endpoints.

Handlers are plain ``def`` so FastAPI runs them on its thread pool; password
hashing never blocks the event loop.
"""

from fastapi import APIRouter, Depends, Request

from cms_auth.dependencies import get_auth_service, get_current_claims
from cms_auth.models.enums import UserType
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
from cms_auth.schemas.common import ApiResponse
from cms_auth.schemas.user import UserResponse
from cms_auth.services.auth_service import AuthService
from cms_auth.utils.client_info import ClientInfo

router = APIRouter()


@router.post("/register", response_model=ApiResponse[AuthResponse])
def register(request: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    """Register a new account and sign it in."""
    result = auth_service.register(request)
    return ApiResponse.ok(result, "User registered successfully")


@router.post("/register/individual", response_model=ApiResponse[AuthResponse])
def register_individual(request: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    result = auth_service.register(request, UserType.INDIVIDUAL)
    return ApiResponse.ok(result, "Individual user registered successfully")


@router.post("/register/corporate", response_model=ApiResponse[AuthResponse])
def register_corporate(request: RegisterRequest, auth_service: AuthService = Depends(get_auth_service)):
    result = auth_service.register(request, UserType.CORPORATE)
    return ApiResponse.ok(result, "Corporate user registered successfully")


@router.post("/login", response_model=ApiResponse[AuthResponse])
def login(
    request: LoginRequest,
    http_request: Request,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Authenticate user and return a token pair."""
    result = auth_service.login(request.email, request.password, ClientInfo.from_request(http_request))
    return ApiResponse.ok(result, "Login successful")


@router.post("/refresh-token", response_model=ApiResponse[AuthResponse])
def refresh_token(request: RefreshTokenRequest, auth_service: AuthService = Depends(get_auth_service)):
    result = auth_service.refresh(request.refresh_token)
    return ApiResponse.ok(result, "Token refreshed successfully")


@router.post("/revoke-token", response_model=ApiResponse[bool])
def revoke_token(
    request: RefreshTokenRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    revoked = auth_service.revoke_token(request.refresh_token, claims.user_id)
    return ApiResponse.ok(revoked, "Token revoked successfully")


@router.post("/logout", response_model=ApiResponse[LogoutResponse])
def logout(
    claims: AccessTokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Revoke the caller's refresh tokens and close the session."""
    revoked = auth_service.logout(claims.user_id)
    return ApiResponse.ok(LogoutResponse(revoked_tokens=revoked), "Successfully logged out")


@router.post("/change-password", response_model=ApiResponse[bool])
def change_password(
    request: ChangePasswordRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    auth_service.change_password(claims.user_id, request.current_password, request.new_password)
    return ApiResponse.ok(True, "Password changed successfully")


@router.get("/me", response_model=ApiResponse[UserResponse])
def get_current_user(
    claims: AccessTokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Get current authenticated user information."""
    return ApiResponse.ok(auth_service.get_profile(claims.user_id))


@router.put("/me", response_model=ApiResponse[UserResponse])
def update_current_user(
    request: UpdateProfileRequest,
    claims: AccessTokenClaims = Depends(get_current_claims),
    auth_service: AuthService = Depends(get_auth_service),
):
    result = auth_service.update_profile(claims.user_id, request)
    return ApiResponse.ok(result, "Profile updated successfully")

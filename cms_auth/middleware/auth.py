"""Bearer-token authentication middleware."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response, JSONResponse
import logging

from cms_auth.exceptions import UnauthorizedError
from cms_auth.schemas.common import ApiResponse
from cms_auth.services.token_service import TokenService

logger = logging.getLogger(__name__)

# Paths that don't require authentication
PUBLIC_PATHS = [
    "/",
    "/health",
    "/api/auth/login",
    "/api/auth/register",
    "/api/auth/refresh-token",
    "/api/docs",
    "/api/redoc",
    "/openapi.json",
]


class AuthMiddleware(BaseHTTPMiddleware):
    """Validates the access token of every non-public API request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path

        if self._is_public_path(path) or not path.startswith("/api/") or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            return self._unauthorized("Authentication required")

        try:
            request.state.claims = TokenService().decode_access_token(token.strip())
        except UnauthorizedError as e:
            logger.info(f"Rejected token on {request.method} {path}: {e.message}")
            return self._unauthorized(e.message)

        return await call_next(request)

    def _is_public_path(self, path: str) -> bool:
        for public_path in PUBLIC_PATHS:
            if path == public_path or path.startswith(public_path + "/"):
                return True
        return False

    def _unauthorized(self, message: str) -> JSONResponse:
        return JSONResponse(
            status_code=401,
            content=ApiResponse.error(message).model_dump(by_alias=True),
            headers={"WWW-Authenticate": "Bearer"},
        )

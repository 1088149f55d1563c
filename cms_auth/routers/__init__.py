"""API routers for the identity service."""

from cms_auth.routers import auth, users

__all__ = ["auth", "users"]

from cms_auth.middleware.auth import AuthMiddleware

__all__ = ["AuthMiddleware"]

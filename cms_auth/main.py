"""
Main FastAPI Application Entry Point
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from cms_auth.config import settings
from cms_auth.database import SessionLocal, health_check as database_health_check, init_db
from cms_auth.exceptions import AppError
from cms_auth.middleware.auth import AuthMiddleware
from cms_auth.routers import auth, users
from cms_auth.schemas.common import ApiResponse
from cms_auth.services.catalog_service import CatalogService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME}")

    init_db()

    if settings.SEED_CATALOG_ON_STARTUP:
        db = SessionLocal()
        try:
            CatalogService(db).seed()
            logger.info("Permission catalog and default groups verified")
        finally:
            db.close()

    yield

    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    description="Identity, token and permission service for the AS-CMS platform",
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
)


def _envelope(status_code: int, message: str, errors=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.error(message, errors).model_dump(by_alias=True),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Map service errors onto their HTTP status and the response envelope."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    response = _envelope(exc.status_code, exc.message, exc.errors)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        errors.append(f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid value"))
    return _envelope(400, "Validation failed", errors)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _envelope(exc.status_code, str(exc.detail))


# Global exception handler to catch and log all unhandled exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Log the stack trace; never leak details to the caller."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    return _envelope(500, "An unexpected error occurred")


# CORS must wrap AuthMiddleware
app.add_middleware(AuthMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/users", tags=["User Administration"])


@app.get("/health")
def health_check():
    """Health check for load balancers."""
    database_ok = database_health_check()
    content = {
        "status": "healthy" if database_ok else "unhealthy",
        "database": "ok" if database_ok else "unavailable",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }
    return JSONResponse(status_code=200 if database_ok else 503, content=content)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("cms_auth.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)

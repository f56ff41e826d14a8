import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import redis.asyncio as redis
from sqlalchemy.exc import SQLAlchemyError

from filevault import __version__
from filevault.api.router import api_router
from filevault.config import Settings, get_settings
from filevault.database import Database
from filevault.errors import FileVaultError
from filevault.services.files import FileService
from filevault.services.rate_limit import RateLimiter
from filevault.services.storage import DiskStorage
from filevault.services.tokens import TokenService

logger = logging.getLogger("filevault")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting FileVault API [%s]", settings.APP_ENV)

    app.state.storage.ensure_root()
    try:
        await app.state.db.ping()
        if settings.DB_AUTO_CREATE:
            await app.state.db.create_all()
    except (SQLAlchemyError, OSError):
        logger.exception("Database connection failed")
        raise
    logger.info("Database connected successfully")

    yield

    await app.state.db.dispose()
    if app.state.redis is not None:
        await app.state.redis.aclose()
    logger.info("FileVault API stopped")


def _error_response(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message}, headers=headers)


MISSING_FIELD_MESSAGES = {
    "/api/auth/login": "Please provide username and password",
}

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'self'; object-src 'none'; base-uri 'self'",
}

# Swagger UI loads its assets from a CDN
CSP_EXEMPT_PREFIXES = ("/docs", "/redoc")


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(FileVaultError)
    async def filevault_error_handler(request: Request, exc: FileVaultError):
        return _error_response(exc.status_code, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        fields = [str(e["loc"][-1]) for e in errors if e.get("loc")]
        if any(e.get("type") == "missing" for e in errors):
            message = MISSING_FIELD_MESSAGES.get(request.url.path, "Please provide all required fields")
        else:
            message = f"Invalid value for: {', '.join(fields)}" if fields else "Invalid request"
        return _error_response(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error_response(500, "Server error")


def register_rate_limit(app: FastAPI, limiter: RateLimiter) -> None:
    @app.middleware("http")
    async def rate_limit_middleware(request: Request, call_next):
        if not request.url.path.startswith("/api/") or request.method == "OPTIONS":
            return await call_next(request)

        identifier = request.client.host if request.client else "anonymous"
        result = await limiter.hit(identifier)
        if not result.allowed:
            logger.warning("Rate limit exceeded for %s", identifier)
            return _error_response(
                429,
                "Too many requests, please try again later",
                headers={
                    "Retry-After": str(result.retry_after),
                    "X-RateLimit-Limit": str(limiter.max_requests),
                    "X-RateLimit-Remaining": "0",
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limiter.max_requests)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return response


def register_security_headers(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)
        csp_exempt = request.url.path.startswith(CSP_EXEMPT_PREFIXES)
        for name, value in SECURITY_HEADERS.items():
            if csp_exempt and name == "Content-Security-Policy":
                continue
            response.headers.setdefault(name, value)
        return response


def create_app(settings: Optional[Settings] = None, redis_client: Optional[redis.Redis] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="FileVault API",
        description="Multi-user file storage",
        version=__version__,
        docs_url="/docs" if settings.APP_DEBUG else None,
        lifespan=lifespan,
    )

    storage = DiskStorage.from_settings(settings)
    app.state.settings = settings
    app.state.db = Database(settings)
    app.state.storage = storage
    app.state.token_service = TokenService.from_settings(settings)
    app.state.file_service = FileService(storage)

    app.state.redis = None
    if settings.RATE_LIMIT_ENABLED:
        app.state.redis = redis_client or redis.from_url(settings.REDIS_URL)
        app.state.rate_limiter = RateLimiter(
            app.state.redis,
            max_requests=settings.RATE_LIMIT_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        register_rate_limit(app, app.state.rate_limiter)

    register_security_headers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    @app.get("/health")
    async def health_check(request: Request):
        try:
            await request.app.state.db.ping()
        except SQLAlchemyError:
            logger.exception("Database health check failed")
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "version": __version__, "database": "unreachable"},
            )
        return {"status": "healthy", "version": __version__, "database": "ok"}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

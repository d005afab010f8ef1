import logging as _logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from .components.rotation.errors import RotationError
from .platform.brand import BRAND_APP_DESCRIPTION, BRAND_NAME
from .platform.config import settings
from .platform.database import SessionLocal
from .platform.logging import setup_logging
from .platform.middleware import RateLimitMiddleware, RequestLoggingMiddleware

logger = setup_logging()

_INSECURE_SECRETS = {"dev-secret-key-change-in-production", "changeme", "secret", ""}
_is_production = settings.DEPLOYMENT_ENV.strip().lower() == "production"

if _is_production and settings.SECRET_KEY in _INSECURE_SECRETS:
    raise RuntimeError(
        "CRITICAL: SECRET_KEY is set to an insecure default. "
        "Set a strong SECRET_KEY in your .env before running in production."
    )
if _is_production and not (settings.CRON_SECRET or "").strip():
    logger.warning("CRON_SECRET is not set; /api/v1/cron endpoints are open")

# FastAPI-Users error codes rewritten for the frontend
_API_ERROR_MESSAGES = {
    "REGISTER_USER_ALREADY_EXISTS": "An account with this email already exists. Sign in instead or use a different email.",
    "LOGIN_BAD_CREDENTIALS": "Incorrect email or password.",
    "LOGIN_USER_NOT_VERIFIED": "Please verify your email before signing in.",
}


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    logger.info(
        "%s API started | env=%s celery=%s",
        BRAND_NAME,
        settings.DEPLOYMENT_ENV,
        "off" if settings.mvp_flags.disable_celery else "on",
    )
    yield


app = FastAPI(
    title=f"{BRAND_NAME} API",
    description=BRAND_APP_DESCRIPTION,
    version="1.0.0",
    # No interactive docs in production
    docs_url=None if _is_production else "/api/docs",
    openapi_url=None if _is_production else "/api/openapi.json",
    lifespan=_lifespan,
)

_val_logger = _logging.getLogger("clevrs.validation")


def _json_safe(value):
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_json_safe(v) for v in value]
    return str(value)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    _val_logger.warning("Validation error on %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(status_code=422, content={"detail": [_json_safe(err) for err in errors]})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail
    if isinstance(detail, str):
        detail = _API_ERROR_MESSAGES.get(detail, detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": detail}, headers=exc.headers)


@app.exception_handler(RotationError)
async def rotation_error_handler(request: Request, exc: RotationError):
    """Rotation errors that escape a route still answer with their own status."""
    _val_logger.info("Rotation error on %s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        headers = response.headers
        headers["X-Content-Type-Options"] = "nosniff"
        headers["X-Frame-Options"] = "DENY"
        headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if _is_production:
            headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


def _cors_origins() -> list[str]:
    origins = [settings.FRONTEND_URL, "http://localhost:3000"]
    origins.extend(o.strip() for o in (settings.CORS_EXTRA_ORIGINS or "").split(","))
    return [o for o in origins if o]


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_origin_regex=settings.CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID", "X-Requested-With"],
)
# Auth, accept/reject and cron endpoints are rate limited per IP
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLoggingMiddleware)

if settings.SENTRY_DSN and settings.SENTRY_DSN.startswith("https://"):
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.DEPLOYMENT_ENV,
        traces_sample_rate=0.1,
        integrations=[FastApiIntegration(), SqlalchemyIntegration()],
    )

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from .api.v1.users_fastapi import UserCreate, UserRead, UserUpdate, auth_backend, fastapi_users
from .domains.admin.routes import router as admin_router
from .domains.assignments.routes import router as assignments_router
from .domains.billing.routes import router as billing_router
from .domains.cron.routes import router as cron_router
from .domains.developers.routes import router as developers_router
from .domains.projects.routes import router as projects_router
from .domains.skills.routes import router as skills_router

app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/api/v1/auth/jwt", tags=["auth"])
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/api/v1/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/api/v1/users", tags=["users"])

for _router in (
    skills_router,
    developers_router,
    projects_router,
    assignments_router,
    admin_router,
    billing_router,
    cron_router,
):
    app.include_router(_router, prefix="/api/v1")


def _database_ok() -> bool:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        return False
    finally:
        db.close()


def _redis_ok() -> bool:
    import redis

    try:
        client = redis.from_url(settings.REDIS_URL, socket_connect_timeout=2, socket_timeout=2)
        return bool(client.ping())
    except Exception:
        logger.warning("Health check: redis unreachable")
        return False


@app.get("/health")
def health_check():
    flags = settings.mvp_flags
    db_ok = _database_ok()
    # Redis only matters while Celery carries the notifications
    redis_ok = False if flags.disable_celery else _redis_ok()
    healthy = db_ok and (redis_ok or flags.disable_celery)
    return {
        "status": "healthy" if healthy else "degraded",
        "service": "clevrs-api",
        "database": db_ok,
        "redis": redis_ok,
        "celery_enabled": not flags.disable_celery,
        "notifications_enabled": not flags.disable_notifications,
    }

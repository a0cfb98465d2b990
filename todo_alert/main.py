# PURPOSE: FastAPI app wiring: lifespan (logging, schema, alert scheduler), routers, middleware.

from contextlib import asynccontextmanager
import logging
import os
import time
import uuid

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text

from . import __version__
from . import scheduler as alert_scheduler
from .api.errors import register_exception_handlers
from .api.v1.router import api_router
from .config import settings
from .db import Base, engine
from . import db_models  # noqa: F401  (register tables on Base.metadata)
from .logging_utils import setup_logging
from .rate_limit import limiter, _rate_limit_exceeded_handler
from .routers import auth as auth_router
from .routers import preferences as preferences_router
from .routers import stats as stats_router
from .routers import tasks as tasks_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """App startup/shutdown lifecycle."""
    # --- Startup ---
    setup_logging(settings.LOG_LEVEL)
    is_test = "PYTEST_CURRENT_TEST" in os.environ
    if settings.DATABASE_URL.startswith("sqlite") and not is_test:
        # Dev convenience; real deployments run `alembic upgrade head`
        Base.metadata.create_all(bind=engine)

    app.state.alert_scheduler = None
    if settings.SCHEDULER_ENABLED and not is_test:
        alert_engine = alert_scheduler.build_engine(settings)
        app.state.alert_engine = alert_engine
        app.state.alert_scheduler = alert_scheduler.start(alert_engine, settings)

    try:
        yield
    finally:
        # --- Shutdown ---
        if app.state.alert_scheduler is not None:
            alert_scheduler.stop(app.state.alert_scheduler, app.state.alert_engine)


tags_metadata = [
    {"name": "auth", "description": "Authentication: register, password login, OTP login, me."},
    {"name": "tasks", "description": "Task management: CRUD, filters, snooze, subtasks, bulk operations."},
    {"name": "preferences", "description": "Alert channel preferences and test messages."},
    {"name": "stats", "description": "Completion and overdue reports."},
]

app = FastAPI(
    title="Todo Alert API",
    version=__version__,
    description=(
        "Versioned JSON API exposed under /api/v1. "
        "A background scheduler sends reminders, due alerts and escalations "
        "over WhatsApp, Telegram and SMS."
    ),
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)


@app.get("/health")
def health():
    """Simple healthcheck endpoint."""
    return {"status": "ok"}


# Unversioned routes keep working but are hidden from the schema
app.include_router(auth_router.router, include_in_schema=False)
app.include_router(tasks_router.router, include_in_schema=False)
app.include_router(preferences_router.router, include_in_schema=False)
app.include_router(stats_router.router, include_in_schema=False)

# Versioned JSON API
app.include_router(api_router)

# Unified error handlers
register_exception_handlers(app)

# Rate limiting (global middleware + handler)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


# Request ID + access log middleware
@app.middleware("http")
async def request_id_and_logging(request: Request, call_next):
    start = time.perf_counter()
    incoming = request.headers.get(settings.REQUEST_ID_HEADER)
    req_id = incoming or uuid.uuid4().hex
    request.state.request_id = req_id
    response = await call_next(request)
    response.headers.setdefault(settings.REQUEST_ID_HEADER, req_id)
    duration_ms = int((time.perf_counter() - start) * 1000)
    logging.getLogger("todo_alert.request").info(
        "method=%s path=%s status=%s duration_ms=%s request_id=%s",
        request.method,
        request.url.path,
        getattr(response, "status_code", "-"),
        duration_ms,
        req_id,
    )
    return response


# --- Security: CORS and security headers ---

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "no-referrer")
    path = request.url.path
    # Swagger/ReDoc pull scripts from a CDN; the JSON API needs nothing
    if settings.SECURITY_CSP and not (path.startswith("/docs") or path.startswith("/redoc")):
        response.headers["Content-Security-Policy"] = settings.SECURITY_CSP
    if settings.SECURITY_ENABLE_HSTS:
        response.headers.setdefault("Strict-Transport-Security", "max-age=15552000; includeSubDomains; preload")
    return response


# --- Observability: liveness, readiness, metrics ---

@app.get("/live")
def live():
    return {"status": "live"}


@app.get("/ready")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready") from exc
    scheduler = getattr(app.state, "alert_scheduler", None)
    return {"status": "ready", "scheduler": "running" if scheduler is not None and scheduler.running else "off"}


# Expose Prometheus metrics at /metrics
Instrumentator().instrument(app).expose(app, include_in_schema=False)

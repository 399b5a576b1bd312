"""
Hotspot Payment Bridge — FastAPI Application Entry Point

Aggregates all routers, configures middleware and error envelopes, and
builds the long-lived collaborators (database, M-Pesa client, callback
handler) on startup.
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_settings
from app.database import SessionLocal, engine, init_db
from app.errors import APIError
from app.logging_config import configure_logging
from app.routes import payment_router, callback_router, gateway_router, admin_router
from app.services.callback_handler import CallbackHandler
from app.services.mpesa_client import MpesaClient

settings = get_settings()
logger = logging.getLogger(__name__)

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Bridges the hotspot captive portal and M-Pesa STK push: initiates payments, "
        "reconciles asynchronous callbacks, and answers entitlement checks for the "
        "MikroTik gateway."
    ),
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
)

# ─── Startup / Shutdown ──────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize logging, database tables and shared collaborators."""
    configure_logging(settings)
    init_db()

    app.state.mpesa_client = MpesaClient(settings)
    app.state.callback_handler = CallbackHandler(SessionLocal)

    logger.info(
        "%s v%s started | env=%s | M-Pesa API=%s | callback=%s | database=%s",
        settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        settings.MPESA_API_BASE_URL, settings.MPESA_CALLBACK_URL,
        engine.url.render_as_string(hide_password=True),
    )


@app.on_event("shutdown")
def on_shutdown():
    client = getattr(app.state, "mpesa_client", None)
    if client is not None:
        client.close()
    engine.dispose()
    logger.info("HTTP client and database connections closed.")


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── Error Envelopes ─────────────────────────────────────────────────
@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.kind.value)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response(expose_details=not settings.is_production),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Data validation failed.",
            "error": None if settings.is_production else details,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": str(exc.detail), "error": None},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled server error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An internal server error occurred. Please try again later.",
            "error": None if settings.is_production else repr(exc),
        },
    )


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(payment_router)
app.include_router(callback_router)
app.include_router(gateway_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"])
def deep_health():
    """Health check including database reachability."""
    from sqlalchemy import text
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        logger.exception("Health check could not reach the database")
    finally:
        db.close()

    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
        "version": settings.APP_VERSION,
    }

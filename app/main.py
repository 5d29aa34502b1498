import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import appointment_types, appointments, auth, availability, slots
from app.core.config import settings, _ENV_FILE
from app.core.db import async_session_maker
from app.core.errors import SchedulingError
from app.core.timezone import normalizer
from app.services.appointment_service import expire_stale_requests

if settings.env != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)


async def _run_request_expiry() -> None:
    """Cancel PENDING requests whose requested date is pending_expiry_days in the past."""
    try:
        async with async_session_maker() as session:
            try:
                n = await expire_stale_requests(session, settings.pending_expiry_days)
                await session.commit()
                if n:
                    logger.info("Request expiry: cancelled %d stale pending request(s)", n)
            except Exception:
                await session.rollback()
                raise
    except Exception as e:
        logger.exception("Request expiry failed: %s", e)


async def _expiry_loop() -> None:
    while True:
        await asyncio.sleep(settings.pending_expiry_interval_seconds)
        await _run_request_expiry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Clinic time %s, availability policy %s, slot interval %d min",
        normalizer.label,
        settings.availability_policy,
        settings.slot_interval_minutes,
    )
    if not settings.email_enabled:
        logger.warning("SMTP not configured; appointment notifications will be skipped")
    await _run_request_expiry()
    task = asyncio.create_task(_expiry_loop())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    title="Clinic Scheduling API",
    description="Provider availability, slot generation and appointment lifecycle",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(auth.router, prefix="/api/v1")
app.include_router(appointment_types.router, prefix="/api/v1")
app.include_router(availability.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    """Domain errors: the caller can tell a retryable conflict from a bad request or an invalid transition."""
    logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.error, exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.error},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Unexpected failures still answer with CORS headers; the exception text is hidden in production."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    if settings.env == "production":
        detail = "Internal server error"
    else:
        detail = f"{type(exc).__name__}: {exc}"
    return JSONResponse(
        status_code=500,
        content={"detail": detail, "error": "internal_error"},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}

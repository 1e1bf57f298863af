import asyncio
import logging
import os
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import appointments, availability, slots
from app.core.config import settings, _ENV_FILE
from app.core.db import async_session_maker
from app.services.appointment_service import delete_appointments_older_than

_JSON_LOG_FORMAT = '{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}'


def _configure_logging() -> None:
    if os.getenv("ENV") == "production":
        logging.basicConfig(level=logging.INFO, format=_JSON_LOG_FORMAT)
    else:
        logging.basicConfig(level=logging.DEBUG)


_configure_logging()
logger = logging.getLogger(__name__)

PURGE_EVERY_SECONDS = 24 * 60 * 60
INTERNAL_ERROR_DETAIL = "Internal server error"

CORS_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
CORS_HEADERS = ["Content-Type", "X-Admin-Key", "X-Appointment-Token"]


async def purge_expired_appointments() -> int:
    """Delete finished appointments past the retention window. Returns the number removed."""
    days = settings.appointment_retention_days
    async with async_session_maker() as session:
        try:
            removed = await delete_appointments_older_than(session, days)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    if removed:
        logger.info("Purged %d finished appointment(s) older than %d days", removed, days)
    return removed


async def _purge_safely() -> None:
    try:
        await purge_expired_appointments()
    except Exception:
        logger.exception("Appointment purge failed")


async def _purge_forever() -> None:
    while True:
        await asyncio.sleep(PURGE_EVERY_SECONDS)
        await _purge_safely()


def _log_startup_settings() -> None:
    logger.info("Settings file: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info(
        "Policy: fee %s %s within %sh, free grace window %sh, timezone %s",
        settings.reschedule_fee_amount,
        settings.fee_currency,
        settings.fee_window_hours,
        settings.grace_window_hours,
        settings.practice_timezone,
    )
    if not settings.admin_enabled:
        logger.warning("Admin endpoints disabled: set ADMIN_API_KEY in %s", _ENV_FILE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _log_startup_settings()
    await _purge_safely()
    purger = asyncio.create_task(_purge_forever())
    yield
    purger.cancel()
    with suppress(asyncio.CancelledError):
        await purger


app = FastAPI(
    title="Booking API",
    description="Slot availability, bookings and cancellation policy",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=CORS_METHODS,
    allow_headers=CORS_HEADERS,
)

for module in (slots, appointments, availability):
    app.include_router(module.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """CORS headers for responses built outside CORSMiddleware."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": ", ".join(CORS_METHODS),
        "Access-Control-Allow-Headers": ", ".join(CORS_HEADERS),
    }
    allowed = settings.cors_origins_list
    if origin in allowed:
        headers["Access-Control-Allow-Origin"] = origin
    elif allowed:
        headers["Access-Control-Allow-Origin"] = allowed[0]
    return headers


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """Generic 500; the exception itself only goes to the log."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"detail": INTERNAL_ERROR_DETAIL},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}

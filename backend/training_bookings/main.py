"""FastAPI application entry point."""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from training_bookings.config import settings
from training_bookings.database import Base, engine
from training_bookings.exceptions import ConcurrencyConflict, ReservationError
from training_bookings.logging_config import RequestIDMiddleware, init_logging

# Import routers
from training_bookings.routers import sessions, attendance, bookings

# Import all models so Base.metadata knows about them
import training_bookings.models  # noqa: F401

logger = logging.getLogger(__name__)

init_logging(settings.LOG_LEVEL)

app = FastAPI(
    title="Training Bookings",
    description="Training session reservations with capacity held back for people overdue or due soon",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIDMiddleware)

# Register routers
app.include_router(sessions.router, prefix="/api/sessions", tags=["Sessions"])
app.include_router(attendance.router, prefix="/api/sessions", tags=["Attendance"])
app.include_router(bookings.router, prefix="/api/bookings", tags=["Bookings"])


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    logger.info("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)
    headers = {}
    if isinstance(exc, ConcurrencyConflict):
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.error_code,
                "category": exc.category,
                "message": exc.message,
                **exc.details,
            }
        },
        headers=headers,
    )


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import models so every table is registered with Base before create_all
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS
from .database import Base, engine
from .domain.appointments.router import admin_router as appointments_admin_router
from .domain.appointments.router import router as appointments_router
from .domain.notifications.router import router as notifications_admin_router
from .domain.scheduling.router import admin_router as scheduling_admin_router
from .domain.scheduling.router import router as availability_router
from .domain.waitlist.router import router as waitlist_admin_router
from .errors import AppError
from .routes.cron import router as cron_router
from .routes.twilio_webhooks import router as twilio_webhooks_router

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Puppy Day Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} - {exc.status_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request body / query validation failures use the 400 envelope"""
    errors = exc.errors()
    logger.warning(f"Validation error for {request.url.path}: {errors}")
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query"))
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "error": f"{field}: {message}" if field else message,
            "code": "VALIDATION_ERROR",
            "details": [{"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors],
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} - Unhandled error: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(f"{request.method} {request.url.path} - {response.status_code} ({duration_ms:.0f}ms)")
    return response


# Log CORS configuration for debugging
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(availability_router)
app.include_router(appointments_router)
app.include_router(scheduling_admin_router)
app.include_router(appointments_admin_router)
app.include_router(waitlist_admin_router)
app.include_router(notifications_admin_router)
app.include_router(cron_router)
app.include_router(twilio_webhooks_router)


@app.get("/")
def root():
    return {"message": "Puppy Day Booking API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check Redis connectivity for monitoring"""
    try:
        from .rate_limiter import get_redis_client

        redis_client = get_redis_client()

        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000

        return {"status": "healthy", "redis": {"connected": True, "response_time_ms": round(response_time, 2)}}
    except Exception as e:
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}

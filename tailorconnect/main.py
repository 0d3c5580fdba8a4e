import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Import models to ensure they're registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, LOG_LEVEL
from .database import Base, engine
from .domain.bookings.router import admin_router as bookings_admin_router
from .domain.bookings.router import router as bookings_router
from .domain.orders.router import admin_router as orders_admin_router
from .domain.orders.router import router as orders_router
from .domain.payments.router import router as payments_router
from .domain.tailors.router import router as tailors_router
from .errors import BookingEngineError

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
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

    try:
        from .rate_limiter import get_redis_client

        if get_redis_client() is not None:
            logger.info("Redis connection configured for rate limiting")
    except Exception as e:
        logger.warning(
            f"Redis connection failed - Rate limiting will operate in fail-open mode: {e}"
        )

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Tailor Connect API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingEngineError)
async def booking_engine_error_handler(request: Request, exc: BookingEngineError):
    """Render domain errors with their kind and state context"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} - {exc.kind}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} - {exc.kind}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={
                    "detail": "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                },
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=422, content={"detail": jsonable_encoder(exc.errors()), "error": "validation_error"}
    )


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
)

# Routes
app.include_router(tailors_router)
app.include_router(bookings_router)
app.include_router(bookings_admin_router)
app.include_router(orders_router)
app.include_router(orders_admin_router)
app.include_router(payments_router)


@app.get("/")
def root():
    return {"message": "Tailor Connect API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}

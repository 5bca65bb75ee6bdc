import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.api.v1.router import api_router
from app.config import settings
from app.core.exceptions import BackOfficeException, ExternalAPIException, StorageFailureException
from app.core.circuit_breaker import CircuitBreakerOpenException
from app.core.logging_config import setup_logging, cleanup_old_logs
from app.core.logging_utils import get_request_id, mask_path, sanitize_log_message
from app.database import init_db, close_db
from app.middleware.logging_middleware import LoggingMiddleware
from app.middleware.rate_limit import setup_rate_limiting
from app.middleware.csrf import setup_csrf_protection
from app.middleware.security import setup_security_middleware

logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
)


@app.on_event("startup")
async def startup_event():
    """Initialize logging, prune old log files and optionally create tables."""
    setup_logging()
    cleanup_old_logs()
    if settings.DB_AUTO_CREATE:
        await init_db()
        logger.info("Database tables created")
    logger.info("Application startup complete")


@app.on_event("shutdown")
async def shutdown_event():
    await close_db()
    logger.info("Application shutdown complete")


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-CSRF-Token", "X-Request-ID", "Accept", "Origin"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)

# Security middleware (request size limit + security headers)
setup_security_middleware(app, max_request_size=settings.MAX_REQUEST_SIZE)

if settings.LOG_ENABLE_REQUEST_LOGGING:
    app.add_middleware(LoggingMiddleware)

setup_csrf_protection(app)
setup_rate_limiting(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


def _request_fields(request: Request) -> dict:
    return {
        "RequestID": get_request_id(request),
        "Path": mask_path(request.url.path),
        "Method": request.method,
        "IP": request.client.host if request.client else None,
    }


@app.exception_handler(BackOfficeException)
async def back_office_exception_handler(request: Request, exc: BackOfficeException):
    """
    Domain errors: respond with the message and a stable machine-readable code.
    """
    if isinstance(exc, (ExternalAPIException, StorageFailureException)):
        logger.error(
            sanitize_log_message(
                type(exc).__name__,
                StatusCode=exc.status_code,
                Detail=exc.detail,
                **_request_fields(request)
            ),
            exc_info=True
        )
    else:
        logger.warning(
            sanitize_log_message(type(exc).__name__, Detail=exc.detail, **_request_fields(request))
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "code": exc.error_code},
        headers=exc.headers
    )


@app.exception_handler(CircuitBreakerOpenException)
async def circuit_breaker_handler(request: Request, exc: CircuitBreakerOpenException):
    logger.warning(
        sanitize_log_message("Circuit breaker open", Message=exc.message, **_request_fields(request))
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Service temporarily unavailable. Please try again later.", "code": "service_unavailable"}
    )


# Generic exception handler for unhandled exceptions
@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.exception(
        sanitize_log_message(
            f"Unhandled exception: {type(exc).__name__}",
            ExceptionMessage=str(exc),
            **_request_fields(request)
        )
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error" if settings.ENVIRONMENT == "production" else str(exc),
            "code": "internal_error"
        }
    )


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.VERSION}


@app.get("/")
async def root():
    return {
        "message": "Immigration Back Office API",
        "version": settings.VERSION,
        "docs": f"{settings.API_V1_STR}/docs"
    }

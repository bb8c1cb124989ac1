# Standard library imports
import asyncio
from contextlib import asynccontextmanager, suppress

# Third-party imports
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Local imports
from app.api.routes.router import router as api_router
from app.core.config import settings
from app.core.logging_config import get_logger
from app.core.response import error_response, validation_error_response
from app.services.payments import MpesaClient, VerificationCache
from app.services.payments.verification_cache import run_cache_sweeper
from app.services.startup import log_whitelist_info

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown operations."""
    logger.info(f"Payment server running on port {settings.PORT}")
    sweeper = asyncio.create_task(
        run_cache_sweeper(app.state.verification_cache, settings.CACHE_SWEEP_INTERVAL_SECONDS)
    )
    tasks = [sweeper]
    if settings.LOG_WHITELIST_INFO:
        # Lookup runs in the background so startup never waits on ipify
        tasks.append(asyncio.create_task(log_whitelist_info()))
    try:
        yield
    finally:
        for task in tasks:
            task.cancel()
            with suppress(asyncio.CancelledError):
                await task


app = FastAPI(
    title="DFirst Payments API",
    description="Paystack and M-Pesa payment proxy for the DFirst Trader app",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.verification_cache = VerificationCache(ttl_seconds=settings.VERIFY_CACHE_TTL_SECONDS)
app.state.mpesa_client = MpesaClient()
if not settings.mpesa_configured:
    logger.warning("M-Pesa credentials not configured; M-Pesa endpoints will fail")

app.include_router(api_router)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with logging"""
    msg = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTP Exception: {exc.status_code} - {msg}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
            "client_ip": request.client.host if request.client else None
        }
    )

    return error_response(msg, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Validation error handler with structured error details and logging"""
    error_count = len(exc.errors())
    logger.warning(
        f"Validation Error: {error_count} field(s) failed validation",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": error_count,
        }
    )

    return validation_error_response(exc.errors(), status_code=422)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last-resort handler: log and answer 500 with the error message"""
    logger.error(f"Server error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(
        "Internal server error",
        status_code=500,
        error=str(exc),
        status="error",
    )


logger.info(f"Configuring CORS middleware with origins: {settings.ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)
logger.info("CORS middleware configured successfully")


# Run the app
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )

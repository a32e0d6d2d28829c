"""
Consultly Backend API Server

FastAPI application for the micro-consulting marketplace.
Serves session intake, expert matching, booking, feedback and admin vetting.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
import time

from app.api.routes import admin, experts, matching, sessions
from app.config import LOG_LEVEL
from app.database import close_redis, engine, init_redis
from app.exceptions import MarketplaceError
from app.utils.date_utils import utcnow

# Configure logging
logging.basicConfig(
    level=LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info("Starting Consultly API server...")

    redis = await init_redis()
    if redis is not None:
        logger.info("Redis connected, rating locks shared across workers")
    else:
        logger.info("REDIS_URL not set, rating locks are process-local")

    yield

    # Shutdown
    logger.info("Shutting down Consultly API server...")
    await close_redis()
    await engine.dispose()


# Create FastAPI application
app = FastAPI(
    title="Consultly API",
    description="Micro-consulting marketplace: session lifecycle and settlement",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)


# CORS middleware for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests with timing"""
    start_time = time.time()

    # Process request
    response = await call_next(request)

    # Calculate duration
    duration_ms = (time.time() - start_time) * 1000

    # Log request
    logger.info(
        f"{request.method} {request.url.path} - "
        f"Status: {response.status_code} - "
        f"Duration: {duration_ms:.2f}ms"
    )

    return response


# Marketplace rule violations
@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(request: Request, exc: MarketplaceError):
    """Render domain errors with their own status code"""
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict())
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all uncaught exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An internal server error occurred",
                "details": str(exc) if app.debug else None
            }
        }
    )


# Validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request validation errors"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": jsonable_encoder(exc.errors())
            }
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns server status and version information.
    """
    return {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "version": "1.0.0",
        "service": "consultly-api"
    }


# Include routers
app.include_router(sessions.router)
app.include_router(matching.router)
app.include_router(experts.router)
app.include_router(admin.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """API root endpoint"""
    return {
        "name": "Consultly API",
        "version": "1.0.0",
        "description": "Micro-consulting marketplace: session lifecycle and settlement",
        "docs": "/api/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )

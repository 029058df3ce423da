import logging

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.logging import setup_logging
from app.database import close_db, get_db, init_db
from app.database.session import ping
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.error_handling import ErrorHandlingMiddleware, validation_exception_handler
from app.api.endpoints import users, subscriptions, videos
from app.api.deps import cleanup_resources

settings = get_settings()

# Initialize logging system
setup_logging(log_level=settings.log_level, log_dir=settings.log_dir, console=settings.log_to_console)

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.app_version, debug=settings.debug)

# Add middleware (order matters - last added runs first)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(ErrorHandlingMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(RequestValidationError, validation_exception_handler)

app.include_router(users.router, tags=["users"])
app.include_router(subscriptions.router, tags=["subscriptions"])
app.include_router(videos.router, tags=["videos"])


# Root and health endpoints
@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": settings.app_name, "version": settings.app_version}


@app.get("/health")
async def health(db: AsyncSession = Depends(get_db)):
    """Health check endpoint."""
    database_status = "connected" if await ping(db) else "disconnected"
    return {"status": "healthy", "database": database_status}


@app.on_event("startup")
async def startup_event():
    """Initialize the database engine on startup."""
    await init_db(settings)
    logger.info(f"{settings.app_name} {settings.app_version} started")


# Shutdown event to cleanup resources
@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup resources on shutdown."""
    cleanup_resources()
    await close_db()

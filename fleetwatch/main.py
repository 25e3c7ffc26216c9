"""
FleetWatch - Geofence Console
Main FastAPI Application
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import logging

from fleetwatch.core.config import settings
from fleetwatch.core.exceptions import AuthorizationDenied, ValidationError
from fleetwatch.api import api_router
from fleetwatch.models import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def create_first_superuser():
    """Create the configured superuser if no superuser exists yet"""
    from sqlalchemy import select
    from fleetwatch.models.database import async_session_maker
    from fleetwatch.models.user import User, UserRole
    from fleetwatch.core.security import get_password_hash

    if not settings.FIRST_SUPERUSER or not settings.FIRST_SUPERUSER_PASSWORD:
        return

    try:
        async with async_session_maker() as session:
            result = await session.execute(select(User).where(User.role == UserRole.SUPERUSER))
            if result.scalars().first() is None:
                session.add(User(
                    email=settings.FIRST_SUPERUSER,
                    hashed_password=get_password_hash(settings.FIRST_SUPERUSER_PASSWORD),
                    full_name="System Administrator",
                    role=UserRole.SUPERUSER,
                    is_active=True,
                ))
                await session.commit()
                logger.info(f"Superuser created: {settings.FIRST_SUPERUSER}")
            else:
                logger.info("Superuser already exists")
    except Exception as e:
        logger.error(f"Error creating superuser: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting FleetWatch geofence console...")
    await init_db()
    logger.info("Database initialized")
    await create_first_superuser()
    yield
    logger.info("Shutting down FleetWatch geofence console...")


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    ## FleetWatch - Geofence Console

    Geofence definition and access control for the fleet-monitoring console.

    ### Features
    - Circular geofences from an address, typed coordinates or a map pin
    - Polygon geofences drawn point by point (GeoJSON longitude-first rings)
    - Entry, exit, both and speed-limit alerts
    - Global or per-client assignment depending on role
    - Per-record visibility: everyone, owner only, or assigned users
    - Audit logging of geofence changes
    """,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    openapi_url="/api/openapi.json" if settings.DEBUG else None,
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request parsing errors"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()}
    )


@app.exception_handler(ValidationError)
async def field_validation_handler(request: Request, exc: ValidationError):
    """Field-identified validation failures are shown next to the offending control"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.message, "field": exc.field}
    )


@app.exception_handler(AuthorizationDenied)
async def authorization_denied_handler(request: Request, exc: AuthorizationDenied):
    """Navigation is refused; the console follows redirect_to"""
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "redirect_to": exc.redirect_to},
        headers=headers
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An internal error occurred"}
    )


# Include API routes
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "fleetwatch.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )

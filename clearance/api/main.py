from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clearance import __version__
from clearance.common.logger import configure_logging
from clearance.core.config import get_settings
from clearance.api.routers import health, student, officer, oversight, notifications
from clearance.api.middleware import RequestLoggingMiddleware

settings = get_settings()

configure_logging(settings)

app = FastAPI(
    title=settings.app_name,
    description="University clearance workflow portal",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.portal_base_url] if not settings.debug else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request logging
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(student.router, prefix="/api")
app.include_router(officer.router, prefix="/api")
app.include_router(oversight.router, prefix="/api")
app.include_router(notifications.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }

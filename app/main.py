# app/main.py - Application factory, middleware and router registration
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import traceback
import time

from app.core.config import settings
from app.core.db import get_engine, health_check as db_health_check
from app.core.errors import AppError
from app.models import Base
from app.api.routers import auth, campuses, academic, catalog, rooms, schedules
from app.api.routers import students, admissions, enrollments, grading, attendance
from app.api.routers import finance, hr, library, notifications


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting Campus Management API...")
    logger.info(f"Environment: {settings.ENV}")
    logger.info(f"Database URL: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'local'}")

    engine = get_engine()

    # Migrations own the schema outside dev and test
    if settings.is_development or settings.ENV == "test":
        logger.info("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")

    yield

    logger.info("Shutting down Campus Management API...")


app = FastAPI(
    title=settings.API_TITLE,
    description="Multi-campus university administration: academics, finance, HR and library",
    version=settings.API_VERSION,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    lifespan=lifespan
)

logger.info(f"CORS Origins configured: {settings.CORS_ORIGINS}")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and processing time"""
    start_time = time.time()
    response = await call_next(request)
    process_time = time.time() - start_time
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({process_time:.3f}s)")
    return response


app.add_middleware(CORSMiddleware, **settings.get_cors_config(), max_age=3600)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Translate domain errors raised by services into JSON responses"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions"""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}")
    logger.error(traceback.format_exc())

    if settings.is_development:
        return JSONResponse(
            status_code=500,
            content={
                "detail": str(exc),
                "code": "INTERNAL_ERROR",
                "traceback": traceback.format_exc()
            }
        )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "code": "INTERNAL_ERROR"}
    )


@app.get("/health")
async def health_check():
    database = db_health_check()
    return {
        "status": "healthy" if database["status"] == "healthy" else "degraded",
        "environment": settings.ENV,
        "version": settings.API_VERSION,
        "database": database,
    }


# Include routers
logger.info("Registering API routers...")
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(campuses.router, prefix="/api/campuses", tags=["Campuses"])
app.include_router(academic.router, prefix="/api/academic", tags=["Academic Calendar"])
app.include_router(catalog.router, prefix="/api/catalog", tags=["Catalog"])
app.include_router(rooms.router, prefix="/api/rooms", tags=["Rooms"])
app.include_router(schedules.router, prefix="/api/schedules", tags=["Schedules"])
app.include_router(students.router, prefix="/api/students", tags=["Students"])
app.include_router(admissions.router, prefix="/api/admissions", tags=["Admissions"])
app.include_router(enrollments.router, prefix="/api/enrollments", tags=["Enrollments"])
app.include_router(grading.router, prefix="/api/grading", tags=["Grading"])
app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
app.include_router(finance.router, prefix="/api/finance", tags=["Finance"])
app.include_router(hr.router, prefix="/api/hr", tags=["Human Resources"])
app.include_router(library.router, prefix="/api/library", tags=["Library"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
logger.info("All routers registered successfully")


@app.get("/")
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs_url": "/docs" if not settings.is_production else "Documentation disabled in production",
    }

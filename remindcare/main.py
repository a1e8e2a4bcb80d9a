"""FastAPI application: main entry point."""

import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI

from remindcare.config import get_settings
from remindcare.infrastructure.database import SessionLocal, create_tables
from remindcare.core.logging import configure_logging
from remindcare.core.middleware import setup_middleware
from remindcare.core.exceptions import AppError, global_exception_handler

# Import routers
from remindcare.interfaces.api.reports import router as reports_router
from remindcare.interfaces.api.scheduler import router as scheduler_router
from remindcare.interfaces.webhooks.evolution import router as evolution_router

settings = get_settings()

# Configure logging immediately
configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    from remindcare.application.services.reconciliation import ReplyReconciler
    from remindcare.infrastructure.evolution_api import EvolutionAPIClient
    from remindcare.scheduler.jobs import start_scheduler, stop_scheduler

    logger.info("Starting RemindCare...", env=settings.ENVIRONMENT, timezone=settings.TIMEZONE)

    create_tables()
    logger.info("Database tables created/verified")

    transport = EvolutionAPIClient()
    app.state.transport = transport
    app.state.reconciler = ReplyReconciler(SessionLocal, transport, settings)
    app.state.scheduler_state = start_scheduler(transport, SessionLocal)

    yield

    stop_scheduler()
    logger.info("RemindCare stopped")


app = FastAPI(
    title="RemindCare",
    description="WhatsApp reminders for pregnancy and postpartum care",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup Middleware (Correlation ID, Logging)
setup_middleware(app)

# Global Exception Handling
app.add_exception_handler(AppError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

# Include routers
app.include_router(reports_router)
app.include_router(scheduler_router)
app.include_router(evolution_router)


@app.get("/")
def root():
    return {
        "name": "RemindCare",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
def health():
    return {"status": "healthy"}

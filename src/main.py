"""Student debt ledger FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from src.core.config import settings

# Configure logging
logging.basicConfig(
    level=settings.effective_log_level,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

from src.core.audit.router import router as audit_router
from src.core.auth.router import router as auth_router
from src.core.exceptions import AppException
from src.core.exceptions.handlers import (
    app_exception_handler,
    http_exception_handler,
    sqlalchemy_db_error_handler,
    validation_exception_handler,
)
from src.modules.clearance.router import router as clearance_router
from src.modules.dashboard.router import router as dashboard_router
from src.modules.debts.router import router as debts_router
from src.modules.payments.router import router as payments_router
from src.modules.sis_import.router import router as sis_import_router
from src.modules.students.router import router as students_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Student debt ledger starting (env=%s)", settings.app_env)
    yield
    logger.info("Student debt ledger stopped")


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="Student Debt Ledger",
        description="Student cost-sharing debt ledger, payment verification and clearance",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_db_error_handler)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    # Routers
    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(audit_router, prefix="/api/v1")
    app.include_router(students_router, prefix="/api/v1")
    app.include_router(debts_router, prefix="/api/v1")
    app.include_router(payments_router, prefix="/api/v1")
    app.include_router(clearance_router, prefix="/api/v1")
    app.include_router(sis_import_router, prefix="/api/v1")
    app.include_router(dashboard_router, prefix="/api/v1")

    return app


app = create_app()

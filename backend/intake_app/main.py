"""
Tax Intake FastAPI Application

Main application entry point for the client intake service.
"""

import logging
import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from intake_app.config import settings
from intake_app.routers import forms, intake, uploads
from intake_app.services.database_service import DatabaseService
from intake_app.services.draft_store import DatabaseDraftStore
from intake_app.services.logging_service import AuditLoggingService
from intake_app.services.storage_service import StorageService
from intake_app.services.upload_store import CloudUploadStore
from intake_app.wizard.sessions import WizardSessions

logger = logging.getLogger(__name__)

# Set Google Cloud credentials from settings (only for local development)
# Cloud Run uses the service account automatically, so this is only needed locally
if settings.GOOGLE_APPLICATION_CREDENTIALS:
    os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = settings.GOOGLE_APPLICATION_CREDENTIALS


# Create FastAPI application instance
app = FastAPI(
    title="Tax Intake API",
    description="Client intake wizard with autosaved drafts and document uploads",
    version="0.1.0"
)


@app.on_event("startup")
async def startup_event():
    """
    Run on application startup.
    Verifies configuration, connects to the database and wires the wizard services.
    """
    try:
        logger.info("=" * 60)
        logger.info("Starting Tax Intake Backend")
        logger.info("=" * 60)

        # Verify required configuration
        required_vars = ['PROJECT_ID', 'UPLOADS_BUCKET', 'AUTH_JWT_SECRET']
        if not settings.DATABASE_URL:
            required_vars += ['DB_INSTANCE_NAME', 'DB_NAME', 'DB_USER']

        missing = [var for var in required_vars if not getattr(settings, var, None)]
        if missing:
            logger.error(f"❌ Missing required environment variables: {', '.join(missing)}")
            raise RuntimeError(f"Missing environment variables: {missing}")

        logger.info("✓ Environment configuration verified")
        logger.info(f"  - Project ID: {settings.PROJECT_ID}")
        logger.info(f"  - Uploads Bucket: {settings.UPLOADS_BUCKET}")
        logger.info(f"  - Database: {'direct URL' if settings.DATABASE_URL else settings.DB_INSTANCE_NAME}")
        logger.info(f"  - Autosave quiet period: {settings.AUTOSAVE_DEBOUNCE_SECONDS}s")

        # Initialize services
        database_service = DatabaseService(
            project_id=settings.PROJECT_ID,
            region=settings.REGION,
            instance_name=settings.DB_INSTANCE_NAME,
            database_name=settings.DB_NAME,
            db_user=settings.DB_USER,
            secret_name=settings.DB_SECRET_NAME,
            database_url=settings.DATABASE_URL
        )
        logger.info("Initializing database connection...")
        database_service.initialize()
        logger.info("✓ Database connection established and schema verified")

        storage_service = StorageService(project_id=settings.PROJECT_ID)
        audit_logger = AuditLoggingService(
            project_id=settings.PROJECT_ID,
            enabled=settings.AUDIT_LOG_ENABLED
        )

        # Make services available to routers
        app.state.database_service = database_service
        app.state.storage_service = storage_service
        app.state.audit_logger = audit_logger
        app.state.wizard_sessions = WizardSessions(
            draft_store=DatabaseDraftStore(database_service),
            upload_store=CloudUploadStore(database_service, storage_service, settings.UPLOADS_BUCKET),
            debounce_seconds=settings.AUTOSAVE_DEBOUNCE_SECONDS,
            max_upload_bytes=settings.MAX_UPLOAD_BYTES,
            idle_seconds=settings.SESSION_IDLE_SECONDS,
            audit_logger=audit_logger
        )

        logger.info("=" * 60)
        logger.info("✓ Tax Intake Backend Ready")
        logger.info("=" * 60)

    except Exception as e:
        logger.error(f"❌ Startup error: {str(e)}")
        raise


@app.on_event("shutdown")
async def shutdown_event():
    """
    Run on application shutdown.
    Flushes pending autosaves and closes database connections.
    """
    try:
        logger.info("Shutting down Tax Intake Backend...")
        await app.state.wizard_sessions.close()
        logger.info("✓ Pending drafts saved")
        app.state.database_service.close()
        logger.info("✓ Database connections closed")
    except Exception as e:
        logger.error(f"Error during shutdown: {str(e)}")


# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["X-Login-Url"],
)

# Include routers
app.include_router(intake.router)
app.include_router(uploads.router)
app.include_router(forms.router)


@app.get("/", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Dictionary containing service status and configuration info
    """
    return {
        "status": "healthy",
        "service": "tax-intake-api",
        "version": "0.1.0",
        "project_id": settings.PROJECT_ID
    }


@app.get("/config", tags=["health"])
async def get_config():
    """
    Get non-sensitive configuration information.

    Returns:
        Dictionary containing configuration details
    """
    return {
        "project_id": settings.PROJECT_ID,
        "region": settings.REGION,
        "uploads_bucket": settings.UPLOADS_BUCKET,
        "login_url": settings.LOGIN_URL,
        "autosave_debounce_seconds": settings.AUTOSAVE_DEBOUNCE_SECONDS,
        "max_upload_bytes": settings.MAX_UPLOAD_BYTES
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

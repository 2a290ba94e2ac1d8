"""
Application configuration management.
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Attributes:
        PROJECT_ID: GCP project identifier
        UPLOADS_BUCKET: GCS bucket holding client intake uploads
        DATABASE_URL: Optional SQLAlchemy URL; bypasses the Cloud SQL connector when set
        DB_SECRET_NAME: Secret Manager secret name for database credentials
        DB_INSTANCE_NAME: Cloud SQL instance name
        DB_NAME: Database name
        DB_USER: Database user
        REGION: GCP region for resources
        AUTH_JWT_SECRET: Secret used to verify access tokens from the auth provider
        AUTH_JWT_AUDIENCE: Expected audience claim, if the provider sets one
        LOGIN_URL: Where unauthenticated clients are sent to sign in
        GOOGLE_APPLICATION_CREDENTIALS: Path to service account key file
        AUTOSAVE_DEBOUNCE_SECONDS: Quiet period after the last edit before a draft is saved
        MAX_UPLOAD_BYTES: Largest accepted upload
        SESSION_IDLE_SECONDS: How long an untouched wizard session stays in memory
        FORM_8879_PATH: Location of the static IRS Form 8879 PDF
        CORS_ORIGINS: Origins allowed to call the API from a browser
        AUDIT_LOG_ENABLED: Write audit events to Cloud Logging
    """
    PROJECT_ID: str
    UPLOADS_BUCKET: str = "client_uploads"
    DATABASE_URL: Optional[str] = None
    DB_SECRET_NAME: str = "tax-intake-db-credentials"
    DB_INSTANCE_NAME: str = ""
    DB_NAME: str = ""
    DB_USER: str = ""
    REGION: str = "us-central1"
    AUTH_JWT_SECRET: str
    AUTH_JWT_AUDIENCE: Optional[str] = "authenticated"
    LOGIN_URL: str = "/login"
    GOOGLE_APPLICATION_CREDENTIALS: Optional[str] = None
    AUTOSAVE_DEBOUNCE_SECONDS: float = 0.7
    MAX_UPLOAD_BYTES: int = 10 * 1024 * 1024
    SESSION_IDLE_SECONDS: float = 1800
    FORM_8879_PATH: str = "public/forms/8879.pdf"
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "https://localhost:3000",
    ]
    AUDIT_LOG_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


# Global settings instance
settings = Settings()

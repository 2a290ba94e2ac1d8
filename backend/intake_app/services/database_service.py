"""
Database service for Cloud SQL PostgreSQL connections
Handles intake submission and uploaded file metadata storage
"""

from google.cloud.sql.connector import Connector
from google.cloud import secretmanager
from sqlalchemy import create_engine, Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from datetime import datetime
from typing import Optional, Dict, Any, List
import logging

logger = logging.getLogger(__name__)

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (local SQLite)
JsonPayload = JSON().with_variant(JSONB(), "postgresql")


class IntakeSubmissionRecord(Base):
    """SQLAlchemy model for intake submissions"""
    __tablename__ = 'intake_submissions'

    id = Column(String(36), primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    status = Column(String(50), nullable=False, default='Draft')
    data = Column(JsonPayload, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class IntakeFileRecord(Base):
    """SQLAlchemy model for uploaded file metadata"""
    __tablename__ = 'intake_files'

    id = Column(String(36), primary_key=True)
    submission_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)

    # Storage location
    bucket = Column(String(255), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    path = Column(Text, nullable=False)

    # File details
    original_name = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def to_dict(self) -> dict:
        """Convert model to dictionary for API compatibility"""
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "user_id": self.user_id,
            "bucket": self.bucket,
            "category": self.category,
            "path": self.path,
            "original_name": self.original_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "created_at": self.created_at,
        }


class DatabaseService:
    """Service for managing Cloud SQL database connections and operations"""

    def __init__(
        self,
        project_id: str,
        region: str,
        instance_name: str,
        database_name: str,
        db_user: str,
        secret_name: str,
        database_url: Optional[str] = None
    ):
        """
        Initialize database service with Cloud SQL connector

        Args:
            project_id: GCP project ID
            region: Cloud SQL instance region
            instance_name: Cloud SQL instance name
            database_name: Database name
            db_user: Database user
            secret_name: Secret Manager secret name for database password
            database_url: Direct SQLAlchemy URL; skips the Cloud SQL connector when given
        """
        self.project_id = project_id
        self.region = region
        self.instance_name = instance_name
        self.database_name = database_name
        self.db_user = db_user
        self.secret_name = secret_name
        self.database_url = database_url

        self.connector = None
        self.engine = None
        self.SessionLocal = None

        logger.info(f"Initializing DatabaseService for project: {project_id}")

    def _get_db_password(self) -> str:
        """Fetch database password from Secret Manager"""
        try:
            client = secretmanager.SecretManagerServiceClient()
            secret_path = f"projects/{self.project_id}/secrets/{self.secret_name}/versions/latest"
            response = client.access_secret_version(request={"name": secret_path})
            password = response.payload.data.decode("UTF-8")
            logger.info("Successfully retrieved database password from Secret Manager")
            return password
        except Exception as e:
            logger.error(f"Failed to retrieve database password from Secret Manager: {e}")
            raise

    def _get_connection(self) -> Any:
        """Create a database connection using Cloud SQL Connector"""
        try:
            instance_connection_string = f"{self.project_id}:{self.region}:{self.instance_name}"
            conn = self.connector.connect(
                instance_connection_string,
                "pg8000",
                user=self.db_user,
                password=self._get_db_password(),
                db=self.database_name
            )
            return conn
        except Exception as e:
            logger.error(f"Failed to create database connection: {e}")
            raise

    def initialize(self):
        """Initialize database connection pool and create tables"""
        try:
            if self.database_url:
                logger.info("Using direct database URL")
                self.engine = create_engine(self.database_url)
            else:
                logger.info("Initializing Cloud SQL connector...")
                self.connector = Connector()

                # Create SQLAlchemy engine with connection pooling
                self.engine = create_engine(
                    "postgresql+pg8000://",
                    creator=self._get_connection,
                    pool_size=5,
                    max_overflow=2,
                    pool_timeout=30,
                    pool_recycle=1800,  # Recycle connections after 30 minutes
                )

            # Create session factory
            self.SessionLocal = sessionmaker(
                autocommit=False,
                autoflush=False,
                bind=self.engine
            )

            # Create tables if they don't exist
            Base.metadata.create_all(bind=self.engine)
            logger.info("Database initialization complete. Tables created/verified.")

        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    def get_session(self) -> Session:
        """Get a new database session"""
        if not self.SessionLocal:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self.SessionLocal()

    def close(self):
        """Close database connections and cleanup"""
        try:
            if self.connector:
                self.connector.close()
                logger.info("Database connector closed successfully")
            if self.engine:
                self.engine.dispose()
        except Exception as e:
            logger.error(f"Error closing database connector: {e}")

    # CRUD Operations for Intake Submissions

    def create_submission(
        self,
        submission_id: str,
        user_id: str,
        status: str,
        data: Dict[str, Any]
    ) -> IntakeSubmissionRecord:
        """
        Create a new intake submission record

        Args:
            submission_id: Unique submission identifier (UUID)
            user_id: User identifier
            status: Initial status
            data: Intake answers as JSON-compatible dict

        Returns:
            Created IntakeSubmissionRecord object
        """
        session = self.get_session()
        try:
            submission = IntakeSubmissionRecord(
                id=submission_id,
                user_id=user_id,
                status=status,
                data=data
            )

            session.add(submission)
            session.commit()
            session.refresh(submission)

            logger.info(f"Created intake submission: {submission_id}")
            return submission
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to create intake submission: {e}")
            raise
        finally:
            session.close()

    def get_latest_submission(self, user_id: str) -> Optional[IntakeSubmissionRecord]:
        """Get the most recently updated submission for a user"""
        session = self.get_session()
        try:
            return session.query(IntakeSubmissionRecord).filter(
                IntakeSubmissionRecord.user_id == user_id
            ).order_by(IntakeSubmissionRecord.updated_at.desc()).first()
        finally:
            session.close()

    def update_submission(
        self,
        submission_id: str,
        **kwargs
    ) -> Optional[IntakeSubmissionRecord]:
        """
        Update intake submission record

        Args:
            submission_id: Submission identifier
            **kwargs: Fields to update

        Returns:
            Updated IntakeSubmissionRecord object or None if not found
        """
        session = self.get_session()
        try:
            submission = session.query(IntakeSubmissionRecord).filter(
                IntakeSubmissionRecord.id == submission_id
            ).first()

            if not submission:
                return None

            for key, value in kwargs.items():
                if hasattr(submission, key):
                    setattr(submission, key, value)

            submission.updated_at = datetime.utcnow()
            session.commit()
            session.refresh(submission)
            logger.info(f"Updated intake submission: {submission_id}")
            return submission
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to update intake submission: {e}")
            raise
        finally:
            session.close()

    # CRUD Operations for Uploaded Files

    def create_file_record(
        self,
        file_id: str,
        submission_id: str,
        user_id: str,
        bucket: str,
        category: str,
        path: str,
        original_name: str,
        mime_type: str,
        size_bytes: int,
        created_at: Optional[datetime] = None
    ) -> IntakeFileRecord:
        """
        Create a new uploaded file record

        Args:
            file_id: Unique file identifier (UUID)
            submission_id: Owning submission identifier
            user_id: User identifier
            bucket: Storage bucket name
            category: Upload category (id, income, deductions, credits, general)
            path: Object path in the bucket
            original_name: Original filename
            mime_type: MIME type
            size_bytes: File size in bytes
            created_at: Upload time, defaults to now

        Returns:
            Created IntakeFileRecord object
        """
        session = self.get_session()
        try:
            record = IntakeFileRecord(
                id=file_id,
                submission_id=submission_id,
                user_id=user_id,
                bucket=bucket,
                category=category,
                path=path,
                original_name=original_name,
                mime_type=mime_type,
                size_bytes=size_bytes,
                created_at=created_at or datetime.utcnow()
            )

            session.add(record)
            session.commit()
            session.refresh(record)

            logger.info(f"Created file record: {file_id}")
            return record
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to create file record: {e}")
            raise
        finally:
            session.close()

    def get_file_record(self, file_id: str) -> Optional[IntakeFileRecord]:
        """Get file record by ID"""
        session = self.get_session()
        try:
            return session.query(IntakeFileRecord).filter(
                IntakeFileRecord.id == file_id
            ).first()
        finally:
            session.close()

    def list_file_records(self, submission_id: str, category: Optional[str] = None) -> List[IntakeFileRecord]:
        """Get a submission's files, newest first, optionally for one category"""
        session = self.get_session()
        try:
            query = session.query(IntakeFileRecord).filter(
                IntakeFileRecord.submission_id == submission_id
            )
            if category:
                query = query.filter(IntakeFileRecord.category == category)
            return query.order_by(IntakeFileRecord.created_at.desc()).all()
        finally:
            session.close()

    def has_file_record(self, submission_id: str, category: str) -> bool:
        """Check whether a submission has at least one file in a category"""
        session = self.get_session()
        try:
            record = session.query(IntakeFileRecord.id).filter(
                IntakeFileRecord.submission_id == submission_id,
                IntakeFileRecord.category == category
            ).first()
            return record is not None
        finally:
            session.close()

    def delete_file_record(self, file_id: str) -> bool:
        """Delete file record by ID"""
        session = self.get_session()
        try:
            record = session.query(IntakeFileRecord).filter(
                IntakeFileRecord.id == file_id
            ).first()

            if not record:
                return False

            session.delete(record)
            session.commit()
            logger.info(f"Deleted file record: {file_id}")
            return True
        except Exception as e:
            session.rollback()
            logger.error(f"Failed to delete file record: {e}")
            raise
        finally:
            session.close()

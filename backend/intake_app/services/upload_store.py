"""
Upload store: per-category documents attached to an intake submission.

Each document is a storage object plus a metadata row. Objects are
written before rows and removed before rows, so the only inconsistency a
crash can leave behind is an object without a row. That orphan is
harmless and can be cleaned up later; a row pointing at missing bytes is
never created.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from io import BytesIO
from typing import Callable, List, NamedTuple, Optional, Sequence

from intake_app.errors import RemoteCallFailed, UploadBatchFailed
from intake_app.models.upload import UploadedFile
from intake_app.services.database_service import DatabaseService
from intake_app.services.storage_service import StorageService
from intake_app.utils.validators import sanitize_filename

logger = logging.getLogger(__name__)


class PendingUpload(NamedTuple):
    """A file received from the client that has not been stored yet."""
    filename: str
    content: bytes
    content_type: Optional[str] = None


def build_storage_path(
    user_id: str,
    submission_id: str,
    category: str,
    filename: str,
    uploaded_at: datetime
) -> str:
    """
    Object path for an upload: {user}/{submission}/{category}/{epoch_ms}_{name}.

    Args:
        user_id: Owner of the file
        submission_id: Intake submission the file belongs to
        category: Upload category
        filename: Original filename (sanitized here)
        uploaded_at: Upload time, naive values are taken as UTC

    Returns:
        Object path inside the uploads bucket
    """
    if uploaded_at.tzinfo is None:
        uploaded_at = uploaded_at.replace(tzinfo=timezone.utc)
    millis = int(uploaded_at.timestamp() * 1000)
    return f"{user_id}/{submission_id}/{category}/{millis}_{sanitize_filename(filename)}"


class UploadStore(ABC):
    """
    Document storage used by the wizard.

    Implementations report every failure as RemoteCallFailed with the
    underlying error message. None of them check the record lock.
    """

    @abstractmethod
    def list_files(self, submission_id: str, category: str) -> List[UploadedFile]:
        """Files of one category, newest first."""

    @abstractmethod
    def has_files(self, submission_id: str, category: str) -> bool:
        """Whether at least one file exists in the category right now."""

    @abstractmethod
    def get_file(self, file_id: str) -> Optional[UploadedFile]:
        """Metadata for one file, or None."""

    @abstractmethod
    def upload(
        self,
        submission_id: str,
        user_id: str,
        category: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None
    ) -> UploadedFile:
        """Store the bytes, then insert the metadata row."""

    @abstractmethod
    def delete(self, file: UploadedFile) -> None:
        """Remove the stored bytes, then the metadata row."""

    def upload_many(
        self,
        submission_id: str,
        user_id: str,
        category: str,
        files: Sequence[PendingUpload]
    ) -> List[UploadedFile]:
        """
        Upload several files one after another.

        Stops at the first failure. Files stored before it stay stored;
        files after it are never attempted.

        Raises:
            UploadBatchFailed: Names the failing file and carries the files already stored
        """
        uploaded: List[UploadedFile] = []
        for pending in files:
            try:
                uploaded.append(self.upload(
                    submission_id,
                    user_id,
                    category,
                    pending.filename,
                    pending.content,
                    pending.content_type
                ))
            except RemoteCallFailed as e:
                raise UploadBatchFailed(e.stage, e.message, filename=pending.filename, uploaded=uploaded)
        return uploaded


class CloudUploadStore(UploadStore):
    """
    Upload store backed by a GCS bucket and the intake_files table.

    Attributes:
        database_service: DatabaseService holding the metadata rows
        storage_service: StorageService holding the bytes
        bucket: Bucket name for all intake uploads
    """

    def __init__(
        self,
        database_service: DatabaseService,
        storage_service: StorageService,
        bucket: str,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.database_service = database_service
        self.storage_service = storage_service
        self.bucket = bucket
        self.clock = clock

    def list_files(self, submission_id: str, category: str) -> List[UploadedFile]:
        try:
            records = self.database_service.list_file_records(submission_id, category)
        except Exception as e:
            raise RemoteCallFailed("list_files", str(e))
        return [UploadedFile(**record.to_dict()) for record in records]

    def has_files(self, submission_id: str, category: str) -> bool:
        try:
            return self.database_service.has_file_record(submission_id, category)
        except Exception as e:
            raise RemoteCallFailed("list_files", str(e))

    def get_file(self, file_id: str) -> Optional[UploadedFile]:
        try:
            record = self.database_service.get_file_record(file_id)
        except Exception as e:
            raise RemoteCallFailed("list_files", str(e))
        return UploadedFile(**record.to_dict()) if record else None

    def upload(
        self,
        submission_id: str,
        user_id: str,
        category: str,
        filename: str,
        content: bytes,
        content_type: Optional[str] = None
    ) -> UploadedFile:
        mime_type = content_type or "application/octet-stream"
        uploaded_at = self.clock()
        path = build_storage_path(user_id, submission_id, category, filename, uploaded_at)

        try:
            self.storage_service.upload_file(
                bucket_name=self.bucket,
                file_obj=BytesIO(content),
                destination_blob_name=path,
                content_type=mime_type
            )
        except Exception as e:
            raise RemoteCallFailed("upload_bytes", str(e))

        try:
            record = self.database_service.create_file_record(
                file_id=str(uuid.uuid4()),
                submission_id=submission_id,
                user_id=user_id,
                bucket=self.bucket,
                category=category,
                path=path,
                original_name=filename,
                mime_type=mime_type,
                size_bytes=len(content),
                created_at=uploaded_at
            )
        except Exception as e:
            logger.warning(f"Stored object has no metadata row: gs://{self.bucket}/{path}")
            raise RemoteCallFailed("insert_row", str(e))

        return UploadedFile(**record.to_dict())

    def delete(self, file: UploadedFile) -> None:
        try:
            if not self.storage_service.delete_file(file.bucket, file.path):
                logger.info(f"Object already absent: gs://{file.bucket}/{file.path}")
        except Exception as e:
            raise RemoteCallFailed("delete_object", str(e))

        try:
            self.database_service.delete_file_record(file.id)
        except Exception as e:
            raise RemoteCallFailed("delete_row", str(e))

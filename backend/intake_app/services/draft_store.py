"""
Draft store: loads, creates and saves a user's intake submission.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from intake_app.errors import RemoteCallFailed
from intake_app.models.intake import IntakeData, IntakeStatus, default_intake_data, reconcile
from intake_app.models.upload import IntakeSubmission
from intake_app.services.database_service import DatabaseService, IntakeSubmissionRecord

logger = logging.getLogger(__name__)


class DraftStore(ABC):
    """
    Persistence used by the wizard for the intake record itself.

    Implementations report every failure as RemoteCallFailed with the
    underlying error message. None of them check the record lock.
    """

    @abstractmethod
    def find_current_draft(self, user_id: str) -> Optional[IntakeSubmission]:
        """Most recently updated submission owned by the user, or None."""

    @abstractmethod
    def create_draft(self, user_id: str) -> IntakeSubmission:
        """Insert a new Draft submission with default data."""

    @abstractmethod
    def persist(self, submission_id: str, data: IntakeData) -> None:
        """Replace the stored data and refresh updated_at. Safe to replay."""

    @abstractmethod
    def mark_submitted(self, submission_id: str, data: IntakeData) -> IntakeSubmission:
        """Store the final data and set the status to Submitted."""


def _to_submission(record: IntakeSubmissionRecord) -> IntakeSubmission:
    return IntakeSubmission(
        id=record.id,
        user_id=record.user_id,
        status=record.status,
        data=reconcile(default_intake_data(), record.data),
        updated_at=record.updated_at
    )


class DatabaseDraftStore(DraftStore):
    """
    Draft store backed by the intake_submissions table.

    Attributes:
        database_service: DatabaseService used for all reads and writes
    """

    def __init__(self, database_service: DatabaseService):
        self.database_service = database_service

    def find_current_draft(self, user_id: str) -> Optional[IntakeSubmission]:
        try:
            record = self.database_service.get_latest_submission(user_id)
        except Exception as e:
            raise RemoteCallFailed("find_draft", str(e))

        return _to_submission(record) if record else None

    def create_draft(self, user_id: str) -> IntakeSubmission:
        submission_id = str(uuid.uuid4())
        try:
            record = self.database_service.create_submission(
                submission_id=submission_id,
                user_id=user_id,
                status=IntakeStatus.DRAFT.value,
                data=default_intake_data().model_dump(mode="json")
            )
        except Exception as e:
            raise RemoteCallFailed("create_draft", str(e))

        return _to_submission(record)

    def persist(self, submission_id: str, data: IntakeData) -> None:
        try:
            record = self.database_service.update_submission(
                submission_id,
                data=data.model_dump(mode="json")
            )
        except Exception as e:
            raise RemoteCallFailed("persist", str(e))

        if record is None:
            raise RemoteCallFailed("persist", f"Intake submission {submission_id} not found")

    def mark_submitted(self, submission_id: str, data: IntakeData) -> IntakeSubmission:
        try:
            record = self.database_service.update_submission(
                submission_id,
                data=data.model_dump(mode="json"),
                status=IntakeStatus.SUBMITTED.value
            )
        except Exception as e:
            raise RemoteCallFailed("submit", str(e))

        if record is None:
            raise RemoteCallFailed("submit", f"Intake submission {submission_id} not found")

        logger.info(f"Intake submission {submission_id} marked as submitted")
        return _to_submission(record)

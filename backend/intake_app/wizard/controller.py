"""
Intake wizard controller.

Drives one user's intake: which step is showing, which transitions are
allowed, field edits with debounced autosave, document uploads and the
final submission.

The lock after submission is enforced here and nowhere else. The draft
and upload stores accept writes for a submitted record, so a client that
talks to them directly is not stopped. The lock protects honest clients
from accidental edits; it is not a security boundary.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence

from intake_app.errors import (
    FileNotFound,
    IntakeError,
    RecordLocked,
    RemoteCallFailed,
    UploadBatchFailed,
    ValidationFailed,
)
from intake_app.models.intake import (
    IntakeData,
    IntakeStatus,
    add_dependent,
    default_intake_data,
    remove_dependent,
    set_field,
    update_dependent,
)
from intake_app.models.upload import UploadCategory, UploadedFile
from intake_app.services.draft_store import DraftStore
from intake_app.services.logging_service import AuditLoggingService
from intake_app.services.upload_store import PendingUpload, UploadStore
from intake_app.utils.validators import MAX_FILE_SIZE, validate_upload
from intake_app.wizard.autosave import Debouncer
from intake_app.wizard.steps import STEPS, WizardStep, upload_category_for
from intake_app.wizard.validation import (
    ID_UPLOAD_REQUIRED_MESSAGE,
    REQUIRED_FIELDS_MESSAGE,
    REQUIRED_FIELDS_ON_SUBMIT_MESSAGE,
    consent_problem,
    step_problem,
)

logger = logging.getLogger(__name__)

NO_DRAFT_MESSAGE = "Create/save a draft first to enable uploads."


class WizardController:
    """
    State machine for one user's intake wizard.

    Attributes:
        user_id: Owner of the intake
        submission_id: Stored submission being edited, None until loaded
        status: Submission status; anything but Draft locks the wizard
        data: Current intake answers
        step_index: Index into STEPS of the step being shown
        error: Last message to show the client, cleared on the next attempt
        save_error: Message of the last failed save, cleared by a successful one
        saving: True while a save or submission is running
    """

    def __init__(
        self,
        user_id: str,
        draft_store: DraftStore,
        upload_store: UploadStore,
        debounce_seconds: float = 0.7,
        max_upload_bytes: int = MAX_FILE_SIZE,
        audit_logger: Optional[AuditLoggingService] = None
    ):
        self.user_id = user_id
        self.draft_store = draft_store
        self.upload_store = upload_store
        self.max_upload_bytes = max_upload_bytes
        self.audit_logger = audit_logger

        self.submission_id: Optional[str] = None
        self.status: str = IntakeStatus.DRAFT.value
        self.data: IntakeData = default_intake_data()
        self.step_index = 0
        self.error: Optional[str] = None
        self.save_error: Optional[str] = None
        self.saving = False

        self._autosave = Debouncer(debounce_seconds, self._save, on_error=self._on_save_error)

    # State

    @property
    def loaded(self) -> bool:
        return self.submission_id is not None

    @property
    def locked(self) -> bool:
        return self.status != IntakeStatus.DRAFT.value

    @property
    def idle(self) -> bool:
        """True when no save is waiting, running or owed for unsaved edits."""
        return not self._autosave.busy and not self.saving

    @property
    def step(self) -> WizardStep:
        return STEPS[self.step_index]

    def state(self) -> Dict[str, Any]:
        """Snapshot of the wizard for the client."""
        category = upload_category_for(self.step)
        return {
            "submission_id": self.submission_id,
            "status": self.status,
            "locked": self.locked,
            "step_index": self.step_index,
            "step": self.step.value,
            "steps": [step.value for step in STEPS],
            "upload_category": category.value if category else None,
            "saving": self.saving,
            "error": self.error,
            "data": self.data.model_dump(mode="json"),
        }

    def _fail(self, error: IntakeError) -> None:
        self.error = error.message
        raise error

    def _reject(self, message: str, rule: str) -> None:
        if self.audit_logger:
            self.audit_logger.log_validation_rejected(
                user_id=self.user_id,
                submission_id=self.submission_id,
                step=self.step.value,
                message=message
            )
        self._fail(ValidationFailed(message, step=self.step.value, rule=rule))

    # Loading and saving

    async def load(self) -> None:
        """Load the user's current submission, creating a draft if there is none."""
        self.error = None
        try:
            submission = self.draft_store.find_current_draft(self.user_id)
            if submission is None:
                submission = self.draft_store.create_draft(self.user_id)
                logger.info(f"Created intake draft {submission.id} for user {self.user_id}")
                if self.audit_logger:
                    self.audit_logger.log_draft_created(self.user_id, submission.id)
        except RemoteCallFailed as e:
            self._fail(e)

        self.submission_id = submission.id
        self.status = submission.status
        self.data = submission.data

    async def _save(self, data: IntakeData) -> None:
        self.saving = True
        self.error = None
        try:
            self.draft_store.persist(self.submission_id, data)
        finally:
            self.saving = False
        self.save_error = None
        if self.audit_logger:
            self.audit_logger.log_draft_saved(self.user_id, self.submission_id)

    def _on_save_error(self, error: Exception) -> None:
        self.error = error.message if isinstance(error, IntakeError) else str(error)
        self.save_error = self.error
        if self.audit_logger:
            self.audit_logger.log_autosave_failed(self.user_id, self.submission_id, self.error)

    def _schedule_save(self) -> None:
        if not self.submission_id or self.locked:
            return
        self._autosave.schedule(self.data)

    async def save_now(self) -> None:
        """
        Send unsaved edits immediately and wait for the save to finish.

        Edits whose autosave failed are sent again here.
        """
        if not self.submission_id or self.locked:
            return
        await self._autosave.flush()

    # Field edits

    def _check_editable(self) -> None:
        if self.locked:
            self._fail(RecordLocked())

    def _edit(self, change: Callable[..., IntakeData], *args: Any) -> IntakeData:
        self._check_editable()
        try:
            data = change(self.data, *args)
        except ValidationFailed as e:
            self._fail(e)
        self.data = data
        self._schedule_save()
        return data

    def update_field(self, path: str, value: Any) -> IntakeData:
        """Set one field, e.g. "legal_name" or "consent.signature_name"."""
        return self._edit(set_field, path, value)

    def add_dependent(self) -> IntakeData:
        return self._edit(add_dependent)

    def update_dependent(self, index: int, field: str, value: Any) -> IntakeData:
        return self._edit(update_dependent, index, field, value)

    def remove_dependent(self, index: int) -> IntakeData:
        return self._edit(remove_dependent, index)

    # Navigation

    async def next(self) -> int:
        """
        Move to the following step if the current one is complete.

        The identity step also needs at least one uploaded ID document. The
        upload store is asked at the moment of the transition; nothing is
        cached.

        Returns:
            The new step index

        Raises:
            RecordLocked: The intake has been submitted
            ValidationFailed: The step is incomplete or already the last one
            RemoteCallFailed: The upload check failed
        """
        self.error = None
        self._check_editable()

        if self.step_index == len(STEPS) - 1:
            self._reject("You are already on the last step.", "last_step")

        problem = step_problem(self.step, self.data)
        if problem:
            self._reject(REQUIRED_FIELDS_MESSAGE, problem)

        if self.step == WizardStep.CONTACT_IDENTITY:
            if not self.submission_id:
                self._reject(ID_UPLOAD_REQUIRED_MESSAGE, "id_upload")
            try:
                has_id = self.upload_store.has_files(self.submission_id, UploadCategory.ID.value)
            except RemoteCallFailed as e:
                self._fail(e)
            if not has_id:
                self._reject(ID_UPLOAD_REQUIRED_MESSAGE, "id_upload")

        self.step_index += 1
        return self.step_index

    def back(self) -> int:
        self.error = None
        if self.step_index == 0:
            self._fail(ValidationFailed("You are already on the first step.", step=self.step.value, rule="first_step"))
        self.step_index -= 1
        return self.step_index

    def jump_to(self, index: int) -> int:
        """Show any step directly. Earlier steps are not validated."""
        self.error = None
        if index < 0 or index >= len(STEPS):
            self._fail(ValidationFailed(f"No step at position {index}.", rule="step_index"))
        self.step_index = index
        return self.step_index

    async def submit(self) -> None:
        """
        Submit the intake and lock it.

        Any pending autosave is replaced by the submission itself, which
        writes the final answers together with the new status.
        """
        self.error = None
        self._check_editable()

        if not self.submission_id:
            self._fail(ValidationFailed("There is no draft to submit yet.", rule="no_draft"))

        problem = consent_problem(self.data)
        if problem:
            self._reject(REQUIRED_FIELDS_ON_SUBMIT_MESSAGE, problem)

        self._autosave.cancel()
        # Wait for a save already on the wire so it cannot land after the submission
        await self._autosave.flush()

        self.saving = True
        try:
            submission = self.draft_store.mark_submitted(self.submission_id, self.data)
        except RemoteCallFailed as e:
            self._fail(e)
        finally:
            self.saving = False

        self.status = submission.status
        self.error = None
        logger.info(f"Intake {self.submission_id} submitted by user {self.user_id}")
        if self.audit_logger:
            self.audit_logger.log_intake_submitted(self.user_id, self.submission_id)

    # Documents

    def _check_category(self, category: str) -> str:
        try:
            return UploadCategory(category).value
        except ValueError:
            self._fail(ValidationFailed(f"Unknown upload category: {category}", rule="category"))

    def _require_draft(self) -> None:
        if not self.submission_id:
            self._fail(ValidationFailed(NO_DRAFT_MESSAGE, rule="no_draft"))

    async def list_files(self, category: str) -> List[UploadedFile]:
        category = self._check_category(category)
        self._require_draft()
        try:
            return self.upload_store.list_files(self.submission_id, category)
        except RemoteCallFailed as e:
            self._fail(e)

    async def upload_files(self, category: str, files: Sequence[PendingUpload]) -> List[UploadedFile]:
        """
        Validate and upload a batch of files, one at a time.

        Every file is checked before the first one is sent. Uploading stops
        at the first failure; files stored before it are kept.

        Raises:
            RecordLocked: The intake has been submitted
            ValidationFailed: A file is not acceptable, nothing was uploaded
            UploadBatchFailed: Storage failed part way through the batch
        """
        self.error = None
        self._check_editable()
        category = self._check_category(category)
        self._require_draft()

        if not files:
            self._fail(ValidationFailed("No files selected.", rule="no_files"))
        for pending in files:
            try:
                validate_upload(pending.filename, pending.content_type, len(pending.content), self.max_upload_bytes)
            except ValidationFailed as e:
                self._fail(e)

        try:
            uploaded = self.upload_store.upload_many(self.submission_id, self.user_id, category, files)
        except UploadBatchFailed as e:
            if self.audit_logger:
                self.audit_logger.log_upload_failed(
                    self.user_id, self.submission_id, category, e.filename, e.stage, e.message
                )
            self._fail(e)

        if self.audit_logger:
            for file in uploaded:
                self.audit_logger.log_file_uploaded(
                    user_id=self.user_id,
                    submission_id=self.submission_id,
                    file_id=file.id,
                    category=category,
                    filename=file.original_name,
                    file_size=file.size_bytes
                )
        return uploaded

    async def delete_file(self, file_id: str) -> UploadedFile:
        """Delete one of this intake's files: stored bytes first, then the row."""
        self.error = None
        self._check_editable()
        self._require_draft()

        try:
            file = self.upload_store.get_file(file_id)
        except RemoteCallFailed as e:
            self._fail(e)

        if file is None or file.submission_id != self.submission_id or file.user_id != self.user_id:
            if file is not None and self.audit_logger:
                self.audit_logger.log_unauthorized_access(
                    user_id=self.user_id,
                    file_id=file_id,
                    reason=f"User attempted to delete another intake's file (owner: {file.user_id})"
                )
            self._fail(FileNotFound())

        try:
            self.upload_store.delete(file)
        except RemoteCallFailed as e:
            if self.audit_logger:
                self.audit_logger.log_delete_failed(self.user_id, self.submission_id, file.id, e.stage, e.message)
            self._fail(e)

        if self.audit_logger:
            self.audit_logger.log_file_deleted(self.user_id, self.submission_id, file.id, file.path)
        return file

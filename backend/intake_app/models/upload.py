"""
Uploaded document and submission data models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from intake_app.models.intake import IntakeData, IntakeStatus


class UploadCategory(str, Enum):
    """
    Form section an uploaded document belongs to.
    """
    ID = "id"
    INCOME = "income"
    DEDUCTIONS = "deductions"
    CREDITS = "credits"
    GENERAL = "general"


class UploadedFile(BaseModel):
    """
    Metadata row for one stored document.

    Attributes:
        id: Unique identifier for the file row
        submission_id: Intake submission the file was uploaded for
        user_id: Owner of the file
        bucket: Storage bucket holding the bytes
        category: Form section the file belongs to
        path: Object path inside the bucket
        original_name: Filename as uploaded by the client
        mime_type: MIME type of the file
        size_bytes: Size of the file in bytes
        created_at: Upload timestamp
    """
    id: str = Field(..., description="Unique file identifier")
    submission_id: str = Field(..., description="Owning intake submission")
    user_id: str = Field(..., description="User who uploaded the file")
    bucket: str
    category: UploadCategory
    path: str
    original_name: str
    mime_type: str = "application/octet-stream"
    size_bytes: int = Field(0, ge=0)
    created_at: datetime = Field(
        default_factory=datetime.utcnow,
        description="Creation timestamp"
    )

    class Config:
        """Pydantic configuration."""
        use_enum_values = True


class IntakeSubmission(BaseModel):
    """
    One client's intake, as stored.

    Attributes:
        id: Submission identifier
        user_id: Owner of the submission
        status: Lifecycle status; anything other than Draft is locked
        data: Intake answers
        updated_at: Last time the row was written
    """
    id: str
    user_id: str
    status: str = IntakeStatus.DRAFT.value
    data: IntakeData = Field(default_factory=IntakeData)
    updated_at: Optional[datetime] = None

    @property
    def locked(self) -> bool:
        return self.status != IntakeStatus.DRAFT.value

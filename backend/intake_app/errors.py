"""
Intake error types.

Services and the wizard controller raise these; routers translate them
into HTTP responses. Every message is meant to be shown to the client
as-is.
"""

from typing import List, Optional


class IntakeError(Exception):
    """Base class for intake errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticated(IntakeError):
    """No active session for the request."""

    def __init__(self, message: str = "Not signed in."):
        super().__init__(message)


class ValidationFailed(IntakeError):
    """
    A step predicate or input check rejected the request.

    Attributes:
        step: Wizard step name the rule belongs to, if any
        rule: Short machine-readable rule name
    """

    def __init__(self, message: str, step: Optional[str] = None, rule: Optional[str] = None):
        super().__init__(message)
        self.step = step
        self.rule = rule


class RecordLocked(IntakeError):
    """The intake has been submitted and can no longer be changed."""

    def __init__(self, message: str = "This intake has been submitted and can no longer be changed."):
        super().__init__(message)


class FileNotFound(IntakeError):
    """The requested upload does not exist or belongs to someone else."""

    def __init__(self, message: str = "File not found."):
        super().__init__(message)


class RemoteCallFailed(IntakeError):
    """
    A call to the database or object storage failed.

    Attributes:
        stage: Which remote step failed (persist, upload_bytes, delete_object, ...)
    """

    def __init__(self, stage: str, message: str):
        super().__init__(message)
        self.stage = stage


class UploadBatchFailed(RemoteCallFailed):
    """
    A multi-file upload stopped at a failing file.

    Attributes:
        filename: Name of the file that failed
        uploaded: Files from the same batch that were stored before the failure
    """

    def __init__(self, stage: str, message: str, filename: str, uploaded: Optional[List] = None):
        super().__init__(stage, message)
        self.filename = filename
        self.uploaded = uploaded or []

"""
Helpers shared by the intake routers.
"""

from fastapi import Depends, HTTPException, Request, status
from intake_app.auth import get_current_user
from intake_app.errors import (
    FileNotFound,
    IntakeError,
    RecordLocked,
    RemoteCallFailed,
    UploadBatchFailed,
    ValidationFailed,
)
from intake_app.wizard.controller import WizardController


def http_error(error: IntakeError) -> HTTPException:
    """
    Translate an intake error into an HTTP error carrying its message.

    Args:
        error: Error raised by the wizard or one of the stores

    Returns:
        HTTPException to raise from the endpoint
    """
    if isinstance(error, UploadBatchFailed):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "message": error.message,
                "stage": error.stage,
                "filename": error.filename,
                "uploaded": [file.model_dump(mode="json") for file in error.uploaded],
            }
        )
    if isinstance(error, RemoteCallFailed):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error.message)
    if isinstance(error, ValidationFailed):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=error.message)
    if isinstance(error, RecordLocked):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=error.message)
    if isinstance(error, FileNotFound):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=error.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)


async def get_wizard(
    request: Request,
    user_id: str = Depends(get_current_user)
) -> WizardController:
    """
    Resolve the signed-in user's wizard, loading their draft on first use.

    Raises:
        HTTPException: If the draft could not be loaded or created
    """
    try:
        return await request.app.state.wizard_sessions.get(user_id)
    except IntakeError as e:
        raise http_error(e)

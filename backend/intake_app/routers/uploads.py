"""
Intake document upload endpoints.
"""

from typing import List
from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, status
from intake_app.errors import IntakeError
from intake_app.routers.common import get_wizard, http_error
from intake_app.services.upload_store import PendingUpload
from intake_app.wizard.controller import WizardController


router = APIRouter(prefix="/intake/uploads", tags=["uploads"])


@router.get("/{category}")
async def list_uploads(category: str, wizard: WizardController = Depends(get_wizard)):
    """
    List the current intake's files in one category, newest first.

    Args:
        category: id, income, deductions, credits or general
        wizard: Current user's wizard

    Returns:
        List of file metadata objects
    """
    try:
        files = await wizard.list_files(category)
    except IntakeError as e:
        raise http_error(e)
    return [file.model_dump(mode="json") for file in files]


@router.post("/{category}", status_code=status.HTTP_201_CREATED)
async def upload_documents(
    category: str,
    files: List[UploadFile] = File(...),
    wizard: WizardController = Depends(get_wizard)
):
    """
    Upload one or more documents to a category of the current intake.

    Files are stored one after another. If one fails, the ones before it
    stay uploaded and the error names the failing file.

    Args:
        category: id, income, deductions, credits or general
        files: Files to upload
        wizard: Current user's wizard

    Returns:
        Metadata of the uploaded files

    Raises:
        HTTPException: If the intake is locked, a file is invalid or storage fails
    """
    try:
        pending = []
        for file in files:
            content = await file.read()
            pending.append(PendingUpload(
                filename=file.filename or "",
                content=content,
                content_type=file.content_type
            ))

        uploaded = await wizard.upload_files(category, pending)

        return {
            "status": "uploaded",
            "category": category,
            "files": [f.model_dump(mode="json") for f in uploaded]
        }

    except IntakeError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        # Handle unexpected errors
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to upload file: {str(e)}"
        )


@router.delete("/{file_id}")
async def delete_upload(file_id: str, wizard: WizardController = Depends(get_wizard)):
    """
    Delete an uploaded document: the stored file first, then its record.

    If the stored file cannot be removed the record is kept and the error
    is returned.

    Args:
        file_id: File identifier
        wizard: Current user's wizard

    Returns:
        Deletion confirmation
    """
    try:
        file = await wizard.delete_file(file_id)
    except IntakeError as e:
        raise http_error(e)

    return {
        "status": "success",
        "message": f"File {file.original_name} deleted successfully",
        "file_id": file.id
    }

"""
Static form downloads.
"""

import logging
from pathlib import Path
from fastapi import APIRouter
from fastapi.responses import FileResponse, PlainTextResponse
from intake_app.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/forms", tags=["forms"])

NO_STORE = {"Cache-Control": "no-store"}


@router.get("/8879")
@router.get("/8879.pdf", include_in_schema=False)
async def download_form_8879():
    """
    Download IRS Form 8879 (e-file signature authorization).

    Returns:
        The PDF as an attachment, or 404 if the file is not deployed
    """
    path = Path(settings.FORM_8879_PATH)
    if not path.is_file():
        logger.warning(f"Form 8879 not found at {path}")
        return PlainTextResponse("8879 PDF not found", status_code=404, headers=NO_STORE)

    return FileResponse(
        path,
        media_type="application/pdf",
        filename="IRS-Form-8879.pdf",
        headers=NO_STORE
    )

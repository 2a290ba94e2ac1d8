"""
File validation utilities.
"""

import os
import re
from typing import Optional

from intake_app.errors import ValidationFailed


# Allowed file types for upload
ALLOWED_EXTENSIONS = {
    ".pdf", ".png", ".jpg", ".jpeg", ".heic", ".tiff", ".tif",
    ".csv", ".txt", ".doc", ".docx", ".xls", ".xlsx",
}
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/heic",
    "image/tiff",
    "text/csv",
    "text/plain",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/octet-stream",
}

# Default maximum file size: 10MB
MAX_FILE_SIZE = 10 * 1024 * 1024


def validate_file_extension(filename: str) -> bool:
    """
    Validate that a filename has an allowed extension.

    Args:
        filename: Name of the file to validate

    Returns:
        True if extension is allowed, False otherwise
    """
    _, ext = os.path.splitext(filename.lower())
    return ext in ALLOWED_EXTENSIONS


def validate_mime_type(content_type: str) -> bool:
    """
    Validate that a MIME type is allowed.

    Args:
        content_type: MIME type to validate

    Returns:
        True if MIME type is allowed, False otherwise
    """
    return content_type in ALLOWED_MIME_TYPES


def validate_file_size(file_size: int, max_size: int = MAX_FILE_SIZE) -> bool:
    """
    Validate that a file size is within limits.

    Args:
        file_size: Size of the file in bytes
        max_size: Largest accepted size in bytes

    Returns:
        True if size is within limits, False otherwise
    """
    return 0 < file_size <= max_size


def validate_upload(
    filename: Optional[str],
    content_type: Optional[str],
    file_size: int,
    max_size: int = MAX_FILE_SIZE
) -> None:
    """
    Validate one file of an upload before anything is sent to storage.

    Documents, images and spreadsheets are accepted. Executables, archives
    and web pages are not, whatever MIME type the client claims.

    Args:
        filename: Original filename
        content_type: MIME type reported by the client
        file_size: Size of the file in bytes
        max_size: Largest accepted size in bytes

    Raises:
        ValidationFailed: If the file is not acceptable
    """
    if not filename:
        raise ValidationFailed("No filename provided", rule="filename")

    if not validate_file_extension(filename):
        raise ValidationFailed(
            f"{filename}: file type not allowed. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
            rule="extension"
        )

    if content_type and not validate_mime_type(content_type):
        raise ValidationFailed(
            f"{filename}: MIME type not allowed. Allowed types: {', '.join(sorted(ALLOWED_MIME_TYPES))}",
            rule="mime_type"
        )

    if not validate_file_size(file_size, max_size):
        max_size_mb = max_size / (1024 * 1024)
        raise ValidationFailed(
            f"{filename}: file is empty or too large. Maximum size: {max_size_mb:g}MB",
            rule="file_size"
        )


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename for use in a storage path.

    Args:
        filename: Original filename

    Returns:
        Sanitized filename
    """
    # Get just the basename (remove any path components)
    filename = os.path.basename(filename.replace("\\", "/"))

    # Replace anything that isn't alphanumeric, dot, dash or underscore
    filename = re.sub(r'[^a-zA-Z0-9.\-_]', '_', filename)

    # Ensure filename isn't empty after sanitization
    if not filename or filename in ('.', '..'):
        filename = "unnamed_file"

    return filename

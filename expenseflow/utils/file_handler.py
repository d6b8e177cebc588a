"""
File Handler Utilities
Receipt upload validation
"""

from fastapi import UploadFile

from expenseflow.config.settings import settings
from expenseflow.utils.exceptions import ValidationError
from expenseflow.utils.logger import setup_logger

logger = setup_logger()


def file_extension(filename: str) -> str:
    """Lower-case extension without the dot, or '' when absent"""
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def validate_receipt(file: UploadFile) -> int:
    """
    Validate an uploaded receipt

    Args:
        file: Uploaded file

    Returns:
        int: File size in bytes

    Raises:
        ValidationError: If the type is not allowed, or the file is empty or too large
    """
    ext = file_extension(file.filename)
    allowed = settings.allowed_receipt_extensions_list
    if ext not in allowed:
        raise ValidationError(
            f"File type '{ext or 'unknown'}' not allowed. Allowed types: {', '.join(allowed)}"
        )

    file.file.seek(0, 2)  # Seek to end
    file_size = file.file.tell()
    file.file.seek(0)

    if file_size == 0:
        raise ValidationError("File is empty")

    if file_size > settings.MAX_FILE_SIZE:
        max_size_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
        raise ValidationError(f"File size exceeds maximum allowed size of {max_size_mb:.0f}MB")

    logger.info(f"Receipt accepted: {file.filename} ({file_size} bytes)")
    return file_size

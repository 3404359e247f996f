"""
NoteDigest Backend — Upload Validation and Transient File Storage
==================================================================

What:  Validates PDF uploads and stages their bytes in a temporary file for
       the parser.
How:   Cheap checks first (presence, declared type, size), then the `%PDF-`
       signature; bytes are written with aiofiles under a UUID name and the
       file is removed on every exit path.
Who:   Called by the ingestion service during POST /api/summaries.

Security Model:
    1. Declared type:   Content-Type must be application/pdf
    2. Size check:      ≤ MAX_FILE_SIZE (10 MiB by default), non-empty
    3. Signature:       `%PDF-` within the first KiB (catches renamed files)
    4. UUID filename:   No user input reaches the file system path
    5. Transient:       Nothing is kept on disk after the request
"""

import logging
import os
import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

import aiofiles

from notedigest.config import settings
from notedigest.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPE = "application/pdf"
PDF_SIGNATURE = b"%PDF-"
# Some producers put junk before the header; readers accept it within 1 KiB
SIGNATURE_SEARCH_WINDOW = 1024


class FileService:
    """
    Manages upload validation and the temporary-file lifecycle.

    Lifecycle of an uploaded PDF:
        1. validate_upload() rejects bad input before any expensive work
        2. temporary_file() writes the bytes and yields the path
        3. The parser reads the path
        4. On exit (success or failure) the file is deleted
    """

    def __init__(self, temp_dir: Optional[str] = None, max_file_size: Optional[int] = None):
        self.temp_dir = Path(temp_dir or settings.temp_dir or tempfile.gettempdir()).resolve()
        self.max_file_size = max_file_size or settings.max_file_size

    def validate_upload(
        self,
        filename: Optional[str],
        content_type: Optional[str],
        content: Optional[bytes],
    ) -> None:
        """
        Raises:
            ValidationError with a user-facing message for the first failed check.
        """
        if content is None or not filename:
            raise ValidationError("No file provided.", field="file")

        declared = (content_type or "").split(";")[0].strip().lower()
        if declared != ALLOWED_MIME_TYPE:
            raise ValidationError(
                "Invalid file type. Please upload a PDF file.",
                field="file",
                context={"content_type": content_type},
            )

        if len(content) == 0:
            raise ValidationError("The uploaded file is empty.", field="file")

        if len(content) > self.max_file_size:
            max_mb = self.max_file_size / (1024 * 1024)
            raise ValidationError(
                f"File is too large. Max size is {max_mb:.0f}MB.",
                field="file",
                context={"max_size": self.max_file_size, "actual_size": len(content)},
            )

        if PDF_SIGNATURE not in content[:SIGNATURE_SEARCH_WINDOW]:
            raise ValidationError(
                "The uploaded file is not a valid PDF.",
                field="file",
                context={"filename": filename},
            )

    @asynccontextmanager
    async def temporary_file(self, content: bytes, suffix: str = ".pdf") -> AsyncIterator[Path]:
        """
        Write `content` to a uniquely named file and yield its path.

        Raises:
            FileStorageError: The directory or file could not be written.
        """
        path = self.temp_dir / f"notedigest-{uuid.uuid4()}{suffix}"
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to stage upload at %s: %s", path, str(e))
            await self.cleanup_file(path)
            raise FileStorageError(
                message="Failed to process uploaded file. Please try again.",
                context={"os_error": str(e)},
            ) from e

        logger.debug("Staged upload %s (%d bytes)", path.name, len(content))
        try:
            yield path
        finally:
            await self.cleanup_file(path)

    async def cleanup_file(self, file_path: Path) -> None:
        """
        Remove a staged file. Failures are logged and never raised: the
        request outcome does not depend on cleanup.
        """
        try:
            if file_path.exists():
                os.remove(file_path)
                logger.debug("Cleaned up file: %s", file_path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path.name, str(e))

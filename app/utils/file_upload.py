"""
File Upload Utility - Validate resume uploads before parsing.

Checks, in order:
- file present and non-empty name
- size limit (MAX_FILE_SIZE_MB from settings, default 10MB)
- extension and declared MIME type
- suspicious filenames (directory traversal, reserved characters, hidden files)
- file signature (magic numbers) matches the declared type
"""

import os
import time
import secrets
from dataclasses import dataclass, field
from typing import Optional, Tuple

from fastapi import UploadFile, HTTPException

from app.core.config import get_settings
from app.services.file_parser import MIME_PDF, MIME_DOCX, MIME_DOC, MIME_TXT, get_file_type

settings = get_settings()

ALLOWED_EXTENSIONS = {".pdf", ".docx", ".doc", ".txt"}
ALLOWED_MIME_TYPES = {MIME_PDF, MIME_DOCX, MIME_DOC, MIME_TXT}
SUSPICIOUS_FILENAME_PATTERNS = ["..", "<", ">", ":", '"', "|", "?", "*"]


@dataclass
class FileValidationResult:
    is_valid: bool
    error: Optional[str] = None
    file_info: dict = field(default_factory=dict)


def get_file_extension(filename: str) -> str:
    """Get lowercase file extension."""
    if "." not in filename:
        return ""
    return "." + filename.rsplit(".", 1)[1].lower()


def validate_file(
    filename: Optional[str],
    content: Optional[bytes],
    mime_type: Optional[str] = None,
    max_size: Optional[int] = None,
) -> FileValidationResult:
    """
    Validate an uploaded resume.

    mime_type defaults to the type implied by the extension when the client
    did not send one.
    """
    if not filename or content is None:
        return FileValidationResult(is_valid=False, error="No file provided")

    max_size = max_size or settings.max_file_size_bytes
    if len(content) > max_size:
        return FileValidationResult(
            is_valid=False,
            error=f"File size exceeds maximum limit of {max_size // (1024 * 1024)}MB",
        )

    extension = get_file_extension(filename)
    if extension not in ALLOWED_EXTENSIONS:
        return FileValidationResult(
            is_valid=False,
            error=f"File type not supported. Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    mime_type = mime_type or get_file_type(filename)
    if mime_type not in ALLOWED_MIME_TYPES:
        return FileValidationResult(
            is_valid=False,
            error="Invalid file type. Allowed types: PDF, DOCX, DOC, TXT",
        )

    if _is_suspicious_filename(filename):
        return FileValidationResult(is_valid=False, error="Invalid or suspicious filename")

    if not validate_file_signature(content, mime_type):
        return FileValidationResult(
            is_valid=False,
            error="File signature does not match declared type",
        )

    return FileValidationResult(
        is_valid=True,
        file_info={
            "original_name": filename,
            "mime_type": mime_type,
            "size": len(content),
            "extension": extension,
        },
    )


def _is_suspicious_filename(filename: str) -> bool:
    if filename.startswith("."):
        return True
    return any(pattern in filename for pattern in SUSPICIOUS_FILENAME_PATTERNS)


def validate_file_signature(content: bytes, mime_type: str) -> bool:
    """Check magic numbers against the declared MIME type."""
    if len(content) < 4:
        return False

    if mime_type == MIME_PDF:
        return content[:4] == b"%PDF"

    # DOCX is a ZIP container
    if mime_type == MIME_DOCX:
        return content[0] == 0x50 and content[1] == 0x4B

    # DOC is an OLE compound file
    if mime_type == MIME_DOC:
        return content[0] == 0xD0 and content[1] == 0xCF

    if mime_type == MIME_TXT:
        sample = content[:1000].decode("utf-8", errors="replace")
        if not sample:
            return False
        printable = sum(1 for ch in sample if 32 <= ord(ch) <= 126 or ch in "\n\r\t")
        return printable / len(sample) > 0.7

    return True


async def read_upload(file: UploadFile) -> Tuple[bytes, str, str]:
    """
    Read and validate an UploadFile.

    Returns:
        Tuple of (content, filename, mime_type)

    Raises:
        HTTPException 413 when too large, 400 on any other validation error
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No filename provided")

    content = await file.read()
    if len(content) > settings.max_file_size_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum size: {settings.max_file_size_mb}MB",
        )

    # Browsers often send application/octet-stream; trust the extension then
    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = get_file_type(file.filename)

    result = validate_file(file.filename, content, mime_type)
    if not result.is_valid:
        raise HTTPException(status_code=400, detail=result.error)

    return content, file.filename, mime_type


def generate_secure_filename(original_name: str, user_id: str) -> str:
    """Storage name that cannot collide or traverse directories."""
    extension = os.path.splitext(original_name)[1]
    timestamp = int(time.time() * 1000)
    return f"{user_id}_{timestamp}_{secrets.token_hex(3)}{extension}"


def ensure_upload_directory() -> str:
    """Create uploads/resumes and uploads/temp if missing; return the root."""
    upload_dir = settings.upload_directory
    for sub_dir in ("resumes", "temp"):
        os.makedirs(os.path.join(upload_dir, sub_dir), exist_ok=True)
    return upload_dir


def store_original_file(content: bytes, original_name: str, user_id: str) -> str:
    """Keep the uploaded bytes under uploads/resumes; return the stored path."""
    upload_dir = ensure_upload_directory()
    path = os.path.join(upload_dir, "resumes", generate_secure_filename(original_name, user_id))
    with open(path, "wb") as fh:
        fh.write(content)
    return path


def get_supported_formats() -> dict:
    """Get info about supported file formats."""
    return {
        "supported_formats": [
            {"extension": ".pdf", "available": True, "name": "PDF"},
            {"extension": ".docx", "available": True, "name": "Word Document"},
            {"extension": ".doc", "available": False, "name": "Legacy Word (convert to DOCX)"},
            {"extension": ".txt", "available": True, "name": "Plain Text"},
        ],
        "max_size_mb": settings.max_file_size_mb,
    }

"""
File Parser - Extract text and metadata from resume documents.

Supported formats:
- PDF (.pdf) using PyPDF2
- Word (.docx) using python-docx
- Plain Text (.txt)

Legacy Word (.doc) is accepted by upload validation but cannot be parsed;
users are asked to convert it to DOCX.

Works on raw bytes so the same code runs in the API process and in the
queue workers (bulk uploads are parsed inside the worker).
"""

import io
import re
from typing import Optional

from PyPDF2 import PdfReader
from docx import Document

from app.core.exceptions import FileParseError


MIME_PDF = "application/pdf"
MIME_DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MIME_DOC = "application/msword"
MIME_TXT = "text/plain"
MIME_UNKNOWN = "application/octet-stream"

EXTENSION_MIME_TYPES = {
    "pdf": MIME_PDF,
    "docx": MIME_DOCX,
    "doc": MIME_DOC,
    "txt": MIME_TXT,
}

EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_PATTERN = re.compile(r"(\+?1?[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})")
LINKEDIN_PATTERN = re.compile(r"linkedin\.com/in/[a-zA-Z0-9-]+")
NAME_PATTERN = re.compile(r"^[A-Z][a-z]+ [A-Z][a-z]+")


def get_file_type(filename: str) -> str:
    """Map a filename to its MIME type by extension."""
    if not filename or "." not in filename:
        return MIME_UNKNOWN
    extension = filename.rsplit(".", 1)[1].lower()
    return EXTENSION_MIME_TYPES.get(extension, MIME_UNKNOWN)


def parse_file(content: bytes, mime_type: str) -> dict:
    """
    Extract text from document bytes.

    Returns:
        {"text": "...", "metadata": {...}}

    Raises:
        FileParseError on unsupported type or unreadable document
    """
    if mime_type == MIME_PDF:
        return parse_pdf(content)
    if mime_type == MIME_DOCX:
        return parse_docx(content)
    if mime_type == MIME_DOC:
        raise FileParseError("Legacy DOC format not supported. Please convert to DOCX.")
    if mime_type == MIME_TXT:
        return parse_txt(content)
    raise FileParseError(f"Unsupported file type: {mime_type}")


def parse_pdf(content: bytes) -> dict:
    """Extract text from PDF bytes."""
    try:
        reader = PdfReader(io.BytesIO(content))
        text_parts = []
        for page in reader.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)

        info = reader.metadata
        metadata = {"pages": len(reader.pages)}
        if info is not None:
            metadata["title"] = info.title
            metadata["author"] = info.author
        return {"text": "\n".join(text_parts), "metadata": metadata}
    except Exception as e:
        raise FileParseError(f"Failed to parse PDF: {e}") from e


def parse_docx(content: bytes) -> dict:
    """Extract text from DOCX bytes (paragraphs, then table rows)."""
    try:
        doc = Document(io.BytesIO(content))
        text_parts = []

        for para in doc.paragraphs:
            if para.text.strip():
                text_parts.append(para.text)

        for table in doc.tables:
            for row in table.rows:
                row_text = [cell.text.strip() for cell in row.cells if cell.text.strip()]
                if row_text:
                    text_parts.append(" | ".join(row_text))

        return {"text": "\n".join(text_parts), "metadata": {}}
    except Exception as e:
        raise FileParseError(f"Failed to parse DOCX: {e}") from e


def parse_txt(content: bytes) -> dict:
    """Decode TXT bytes, trying common encodings in order."""
    for encoding in ["utf-8", "latin-1", "cp1252"]:
        try:
            return {"text": content.decode(encoding), "metadata": {}}
        except UnicodeDecodeError:
            continue
    raise FileParseError("Failed to parse TXT: could not decode text file")


def clean_text(text: str) -> str:
    """Normalize line endings and collapse excessive whitespace."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r"\n{3,}", "\n\n", text)
    text = re.sub(r"\s{2,}", " ", text)
    return text.strip()


def extract_metadata(text: str) -> dict:
    """
    Pull contact details out of resume text with simple regexes.

    Only keys that were found are present in the result.
    """
    metadata = {}

    email_match = EMAIL_PATTERN.search(text)
    if email_match:
        metadata["email"] = email_match.group(0)

    phone_match = PHONE_PATTERN.search(text)
    if phone_match:
        metadata["phone"] = phone_match.group(0).strip()

    linkedin_match = LINKEDIN_PATTERN.search(text)
    if linkedin_match:
        metadata["linkedin"] = f"https://{linkedin_match.group(0)}"

    name = _find_name_line(text)
    if name:
        metadata["name"] = name

    return metadata


def _find_name_line(text: str) -> Optional[str]:
    for line in text.split("\n"):
        line = line.strip()
        if line and NAME_PATTERN.match(line):
            return line
    return None

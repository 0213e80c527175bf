"""
Resume Analysis Service - upload pipeline on the API side.

Single upload:
1. Parse document (PDF/DOCX/TXT) -> clean text -> contact metadata
2. Create resume row/document and version 1
3. Keep the original bytes under uploads/resumes
4. Queue AI analysis (resume-analysis queue) and return immediately

Bulk upload validates every file, drops invalid ones and queues a
single batch job; parsing happens inside the worker.
"""

import logging
import time
from typing import List, Optional, Tuple

from app.core.config import get_settings
from app.core.exceptions import NotFoundError, InvalidRequestError
from app.queues.queue_service import QueueService, get_queue_service
from app.queues.queue_types import ResumeAnalysisJob, BulkResumeAnalysisJob, BulkResumeFile
from app.services.file_parser import parse_file, clean_text, extract_metadata
from app.services.resume_service import ResumeService, get_resume_service
from app.services.resume_versions_service import ResumeVersionsService, get_resume_versions_service
from app.utils.file_upload import validate_file, store_original_file

logger = logging.getLogger(__name__)


class ResumeAnalysisService:

    def __init__(
        self,
        resume_service: ResumeService = None,
        versions_service: ResumeVersionsService = None,
        queue_service: QueueService = None,
        default_provider: Optional[str] = None,
    ):
        self.resume_service = resume_service or get_resume_service()
        self.versions_service = versions_service or get_resume_versions_service()
        self.queue_service = queue_service or get_queue_service()
        self.default_provider = default_provider or get_settings().default_ai_provider

    def process_upload(self, user_id: str, file_name: str, content: bytes, mime_type: str) -> dict:
        """
        Raises:
            FileParseError when the document cannot be read
        """
        parsed = parse_file(content, mime_type)
        cleaned = clean_text(parsed["text"])
        parsed_content = {
            "metadata": parsed["metadata"],
            "extracted_info": extract_metadata(cleaned),
        }

        resume_id = self.resume_service.create_resume(
            user_id=user_id,
            file_name=file_name,
            file_size=len(content),
            file_type=mime_type,
            content=cleaned,
            parsed_content=parsed_content,
        )
        self.versions_service.create_version(
            user_id,
            resume_id,
            file_name=file_name,
            content=cleaned,
            parsed_content=parsed_content,
            file_size=len(content),
        )
        store_original_file(content, file_name, user_id)

        job = self.queue_service.add_resume_analysis_job(
            ResumeAnalysisJob(resume_id=resume_id, user_id=user_id, provider=self.default_provider)
        )
        logger.info("Resume %s uploaded, analysis job %s", resume_id, job.id)

        return {
            "resume_id": resume_id,
            "job_id": job.id,
            "message": "Resume uploaded successfully and queued for analysis",
            "status": "processing",
        }

    def process_bulk_upload(self, user_id: str, files: List[Tuple[str, bytes, Optional[str]]]) -> dict:
        """
        files: (file_name, content, mime_type) tuples.

        Raises:
            InvalidRequestError when no file is provided or none is valid
        """
        if not files:
            raise InvalidRequestError("No files provided for bulk upload")

        now_ms = int(time.time() * 1000)
        batch_id = f"bulk_{now_ms}_{user_id}"

        valid_files = []
        skipped = []
        for file_name, content, mime_type in files:
            result = validate_file(file_name, content, mime_type)
            if result.is_valid:
                valid_files.append(BulkResumeFile(id=f"{file_name}_{now_ms}", file_name=file_name, content=content))
            else:
                logger.info("Skipping %s in batch %s: %s", file_name, batch_id, result.error)
                skipped.append({"file_name": file_name, "error": result.error})

        if not valid_files:
            raise InvalidRequestError("No valid files found in bulk upload")

        self.queue_service.add_bulk_analysis_job(
            BulkResumeAnalysisJob(
                batch_id=batch_id,
                user_id=user_id,
                resume_files=valid_files,
                provider=self.default_provider,
            )
        )

        return {
            "batch_id": batch_id,
            "total_files": len(valid_files),
            "skipped_files": skipped,
            "message": "Bulk upload queued for processing",
            "status": "queued",
        }

    def get_analysis(self, resume_id: str, user_id: str) -> dict:
        resume = self.resume_service.get_resume(resume_id, user_id)
        if not resume:
            raise NotFoundError("Resume analysis not found")

        document = self.resume_service.get_document(resume_id) or {}
        versions = self.versions_service.get_version_stats(user_id, resume_id)["total_versions"]

        return {
            "resume_id": resume["resume_id"],
            "file_name": resume["file_name"],
            "uploaded_at": resume["uploaded_at"],
            "is_processed": resume["is_processed"],
            "ats_score": resume["ats_score"],
            "suggestions": document.get("suggestions") or [],
            "parsed_content": document.get("parsed_content"),
            "analysis_results": document.get("analysis_results"),
            "error": document.get("error"),
            "versions": versions,
        }

    def list_resumes(self, user_id: str, page: int = 1, limit: int = 10) -> dict:
        return self.resume_service.list_user_resumes(user_id, page, limit)


# Singleton instance
_analysis_service: Optional[ResumeAnalysisService] = None


def get_resume_analysis_service() -> ResumeAnalysisService:
    global _analysis_service
    if _analysis_service is None:
        _analysis_service = ResumeAnalysisService()
    return _analysis_service

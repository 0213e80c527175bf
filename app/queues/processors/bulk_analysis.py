"""
Bulk analysis worker (queue: bulk-analysis, job: bulk-analyze).

Every file in the batch becomes its own resume + version 1. A failing
file is recorded in the results and the batch carries on.
"""

import logging
from datetime import datetime

from app.core.exceptions import FileParseError
from app.queues.processors import report_progress
from app.services.ai_provider_service import get_ai_provider_service
from app.services.ats_scoring import calculate_bulk_ats_score, BULK_SUGGESTIONS
from app.services.file_parser import parse_file, clean_text, extract_metadata, get_file_type
from app.services.resume_service import get_resume_service
from app.services.resume_versions_service import get_resume_versions_service

logger = logging.getLogger(__name__)

MAX_BULK_SUGGESTIONS = 5


def parse_file_content(content: bytes, file_name: str) -> dict:
    """Parse by extension; fall back to a plain utf-8 decode."""
    try:
        return parse_file(content, get_file_type(file_name))
    except FileParseError as e:
        logger.warning("Parser failed for %s, using raw text: %s", file_name, e)
        return {
            "text": content.decode("utf-8", errors="replace"),
            "metadata": {"file_name": file_name, "file_size": len(content)},
        }


class BulkAnalysisProcessor:

    def __init__(self, ai_service=None, resume_service=None, versions_service=None):
        self.ai_service = ai_service or get_ai_provider_service()
        self.resume_service = resume_service or get_resume_service()
        self.versions_service = versions_service or get_resume_versions_service()

    def _process_file(self, batch_id: str, user_id: str, file: dict, provider) -> dict:
        file_name = file["file_name"]
        content = file["content"]

        parsed = parse_file_content(content, file_name)
        cleaned = clean_text(parsed["text"])
        parsed_content = {
            "metadata": parsed["metadata"],
            "extracted_info": extract_metadata(cleaned),
            "batch_id": batch_id,
        }

        resume_id = self.resume_service.create_resume(
            user_id=user_id,
            file_name=file_name,
            file_size=len(content),
            file_type=get_file_type(file_name),
            content=cleaned,
            parsed_content=parsed_content,
            batch_id=batch_id,
        )
        self.versions_service.create_version(
            user_id,
            resume_id,
            file_name=file_name,
            content=cleaned,
            parsed_content=parsed_content,
            file_size=len(content),
        )

        analysis = self.ai_service.analyze_resume(cleaned, file_name, provider)
        ats_score = calculate_bulk_ats_score(analysis)

        analysis_results = dict(analysis)
        analysis_results.update({
            "processed_at": datetime.utcnow().isoformat(),
            "provider": provider,
            "is_bulk_processed": True,
        })
        suggestions = [dict(s) for s in BULK_SUGGESTIONS[:MAX_BULK_SUGGESTIONS]]
        self.resume_service.save_analysis(resume_id, ats_score, suggestions, analysis_results)

        return {
            "file_name": file_name,
            "resume_id": resume_id,
            "ats_score": ats_score,
            "status": "completed",
        }

    def process(self, data: dict) -> dict:
        batch_id = data["batch_id"]
        user_id = data["user_id"]
        files = data.get("resume_files") or []
        provider = data.get("provider")
        total = len(files)

        logger.info("Starting bulk analysis for batch %s with %d files", batch_id, total)

        results = []
        for processed, file in enumerate(files):
            report_progress(int(processed / total * 100))
            try:
                results.append(self._process_file(batch_id, user_id, file, provider))
            except Exception as e:
                logger.error("Failed to process file %s in batch %s: %s", file.get("file_name"), batch_id, e)
                results.append({
                    "file_name": file.get("file_name"),
                    "error": str(e) or "Processing failed",
                    "status": "failed",
                })

        report_progress(100)
        logger.info("Bulk analysis completed for batch %s. Processed: %d/%d", batch_id, len(results), total)

        return {
            "batch_id": batch_id,
            "total_files": total,
            "processed_files": len(results),
            "successful_files": sum(1 for r in results if r["status"] == "completed"),
            "failed_files": sum(1 for r in results if r["status"] == "failed"),
            "results": results,
        }


def handle_bulk_analysis(payload: dict) -> dict:
    """RQ entry point."""
    return BulkAnalysisProcessor().process(payload)

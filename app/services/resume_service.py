"""
Resume Service - resume rows (PostgreSQL) plus their documents (MongoDB).

PostgreSQL `resumes` keeps what listing and scoring need: file info,
cleaned text, ats_score, is_processed, batch_id.
MongoDB `resume_documents` keeps parsed content, AI analysis and error
state (see ResumeDocumentService).
"""

import logging
import math
import uuid
from typing import List, Optional

from sqlalchemy import text

from app.db.postgres import get_db_session, execute_raw_sql
from app.services.mongo_service import ResumeDocumentService

logger = logging.getLogger(__name__)

RESUME_COLUMNS = """
    resume_id, user_id, file_name, file_size, file_type, content,
    ats_score, is_processed, batch_id, uploaded_at, updated_at
"""


def _row_to_resume(row: dict) -> dict:
    resume = dict(row)
    if resume.get("ats_score") is not None:
        resume["ats_score"] = float(resume["ats_score"])
    return resume


class ResumeService:
    """CRUD over resumes. Ownership is always checked with user_id."""

    def __init__(self, documents: ResumeDocumentService = None):
        self.documents = documents or ResumeDocumentService()

    def create_resume(
        self,
        user_id: str,
        file_name: str,
        file_size: int,
        file_type: str,
        content: str,
        parsed_content: Optional[dict] = None,
        batch_id: Optional[str] = None,
    ) -> str:
        """Insert the row and its document; returns the new resume_id."""
        resume_id = str(uuid.uuid4())
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO resumes (resume_id, user_id, file_name, file_size, file_type,
                                         content, is_processed, batch_id)
                    VALUES (:resume_id, :user_id, :file_name, :file_size, :file_type,
                            :content, FALSE, :batch_id)
                """),
                {
                    "resume_id": resume_id,
                    "user_id": user_id,
                    "file_name": file_name,
                    "file_size": file_size,
                    "file_type": file_type,
                    "content": content,
                    "batch_id": batch_id,
                }
            )
        self.documents.insert(resume_id, user_id, parsed_content or {})
        logger.info("Created resume %s for user %s", resume_id, user_id)
        return resume_id

    def get_resume(self, resume_id: str, user_id: str) -> Optional[dict]:
        rows = execute_raw_sql(
            f"SELECT {RESUME_COLUMNS} FROM resumes WHERE resume_id = :resume_id AND user_id = :user_id",
            {"resume_id": resume_id, "user_id": user_id}
        )
        return _row_to_resume(rows[0]) if rows else None

    def list_user_resumes(self, user_id: str, page: int = 1, limit: int = 10) -> dict:
        """Newest first, without the (large) content column."""
        offset = (page - 1) * limit
        rows = execute_raw_sql("""
            SELECT resume_id, file_name, file_size, file_type, ats_score,
                   is_processed, batch_id, uploaded_at, updated_at
            FROM resumes
            WHERE user_id = :user_id
            ORDER BY uploaded_at DESC
            LIMIT :limit OFFSET :offset
        """, {"user_id": user_id, "limit": limit, "offset": offset})
        total = execute_raw_sql(
            "SELECT COUNT(*) AS total FROM resumes WHERE user_id = :user_id",
            {"user_id": user_id}
        )[0]["total"]

        return {
            "resumes": [_row_to_resume(r) for r in rows],
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    def list_resume_ids(self, user_id: Optional[str] = None) -> List[str]:
        if user_id:
            rows = execute_raw_sql(
                "SELECT resume_id FROM resumes WHERE user_id = :user_id", {"user_id": user_id}
            )
        else:
            rows = execute_raw_sql("SELECT resume_id FROM resumes")
        return [r["resume_id"] for r in rows]

    def save_analysis(
        self,
        resume_id: str,
        ats_score: float,
        suggestions: List[dict],
        analysis_results: dict,
    ) -> None:
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE resumes
                    SET ats_score = :ats_score, is_processed = TRUE, updated_at = CURRENT_TIMESTAMP
                    WHERE resume_id = :resume_id
                """),
                {"ats_score": ats_score, "resume_id": resume_id}
            )
        self.documents.save_analysis(resume_id, analysis_results, suggestions)

    def mark_failed(self, resume_id: str, message: str, provider: Optional[str] = None) -> None:
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE resumes SET is_processed = FALSE, updated_at = CURRENT_TIMESTAMP
                    WHERE resume_id = :resume_id
                """),
                {"resume_id": resume_id}
            )
        self.documents.save_error(resume_id, message, provider)

    def update_content(self, resume_id: str, content: str, ats_score: Optional[float]) -> None:
        """Used when an older version is restored."""
        with get_db_session() as db:
            db.execute(
                text("""
                    UPDATE resumes
                    SET content = :content, ats_score = :ats_score, updated_at = CURRENT_TIMESTAMP
                    WHERE resume_id = :resume_id
                """),
                {"content": content, "ats_score": ats_score, "resume_id": resume_id}
            )

    def get_document(self, resume_id: str) -> Optional[dict]:
        return self.documents.get(resume_id)


# Singleton instance
_resume_service: Optional[ResumeService] = None


def get_resume_service() -> ResumeService:
    global _resume_service
    if _resume_service is None:
        _resume_service = ResumeService()
    return _resume_service

"""
JD Matching Service - resume vs job description matching, API side.

A matching request is only queued here; the jd-matching worker computes
the scores and writes the result. Until then the analysis_id resolves
through the queue status endpoint, not through get_matching_result.

Storage:
- PostgreSQL jd_matching_results: ids, truncated texts, scores, error
- MongoDB jd_match_details: keyword/semantic payloads, suggestions
"""

import logging
import math
import uuid
from collections import Counter
from typing import List, Optional

from sqlalchemy import text

from app.core.exceptions import NotFoundError, InvalidRequestError
from app.db.postgres import get_db_session, execute_raw_sql
from app.queues.queue_service import QueueService, get_queue_service
from app.queues.queue_types import JDMatchingJob, SuggestionGenerationJob
from app.services.mongo_service import MatchDetailService
from app.services.resume_service import ResumeService, get_resume_service

logger = logging.getLogger(__name__)

HIGH_SCORE_THRESHOLD = 70
MAX_COMPARE = 5
MAX_SUGGESTION_GENERATIONS = 3
STORED_TEXT_LIMIT = 5000
ERROR_TEXT_LIMIT = 1000
SUGGESTION_CONTEXT_LIMIT = 2000


def _row_to_matching(row: dict) -> dict:
    matching = dict(row)
    for key in ("overall_score", "keyword_score", "semantic_score"):
        if matching.get(key) is not None:
            matching[key] = float(matching[key])
    matching["status"] = "error" if matching.get("error") else "completed"
    return matching


class JDMatchingService:

    def __init__(
        self,
        resume_service: ResumeService = None,
        queue_service: QueueService = None,
        details: MatchDetailService = None,
    ):
        self.resume_service = resume_service or get_resume_service()
        self._queue_service = queue_service
        self.details = details or MatchDetailService()

    @property
    def queue_service(self) -> QueueService:
        # workers persist results through this service but never enqueue
        if self._queue_service is None:
            self._queue_service = get_queue_service()
        return self._queue_service

    # ============================================================
    # API OPERATIONS
    # ============================================================

    def create_matching(
        self,
        user_id: str,
        resume_id: str,
        job_description: str,
        use_semantic_matching: bool = True,
    ) -> dict:
        resume = self.resume_service.get_resume(resume_id, user_id)
        if not resume:
            raise NotFoundError("Resume not found")
        if not resume["is_processed"]:
            raise InvalidRequestError("Resume must be processed before matching can be performed")

        analysis_id = str(uuid.uuid4())
        self.queue_service.add_jd_matching_job(
            JDMatchingJob(
                analysis_id=analysis_id,
                user_id=user_id,
                resume_id=resume_id,
                resume_content=resume["content"],
                job_description=job_description,
                use_semantic_matching=use_semantic_matching,
            )
        )
        return {
            "analysis_id": analysis_id,
            "message": "JD matching analysis queued for processing",
        }

    def _fetch_row(self, user_id: str, analysis_id: str) -> dict:
        rows = execute_raw_sql("""
            SELECT analysis_id, user_id, resume_id, resume_content, job_description,
                   overall_score, keyword_score, semantic_score, error, created_at
            FROM jd_matching_results
            WHERE analysis_id = :analysis_id AND user_id = :user_id
        """, {"analysis_id": analysis_id, "user_id": user_id})
        if not rows:
            raise NotFoundError("JD matching result not found")
        return _row_to_matching(rows[0])

    def get_matching_result(self, user_id: str, analysis_id: str) -> dict:
        matching = self._fetch_row(user_id, analysis_id)
        details = self.details.get(analysis_id) or {}
        matching.update({
            "keyword_matching": details.get("keyword_matching"),
            "semantic_matching": details.get("semantic_matching"),
            "suggestions": details.get("suggestions") or [],
            "matched_keywords": details.get("matched_keywords") or [],
            "missing_keywords": details.get("missing_keywords") or [],
        })
        return matching

    def get_user_matchings(self, user_id: str, page: int = 1, limit: int = 10) -> dict:
        rows = execute_raw_sql("""
            SELECT analysis_id, resume_id, overall_score, error, created_at
            FROM jd_matching_results
            WHERE user_id = :user_id
            ORDER BY created_at DESC
            LIMIT :limit OFFSET :offset
        """, {"user_id": user_id, "limit": limit, "offset": (page - 1) * limit})
        total = execute_raw_sql(
            "SELECT COUNT(*) AS total FROM jd_matching_results WHERE user_id = :user_id",
            {"user_id": user_id}
        )[0]["total"]

        matchings = []
        for row in rows:
            matching = _row_to_matching(row)
            matching["has_error"] = bool(matching.pop("error"))
            matchings.append(matching)

        return {
            "matchings": matchings,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": math.ceil(total / limit) if limit else 0,
        }

    def delete_matching(self, user_id: str, analysis_id: str) -> None:
        self._fetch_row(user_id, analysis_id)
        with get_db_session() as db:
            db.execute(
                text("DELETE FROM jd_matching_results WHERE analysis_id = :analysis_id"),
                {"analysis_id": analysis_id}
            )
        self.details.delete(analysis_id)

    def get_matching_stats(self, user_id: str) -> dict:
        stats = execute_raw_sql("""
            SELECT COUNT(*) AS total,
                   COALESCE(AVG(overall_score), 0) AS average,
                   COUNT(*) FILTER (WHERE overall_score >= :threshold) AS high_score
            FROM jd_matching_results
            WHERE user_id = :user_id AND error IS NULL
        """, {"user_id": user_id, "threshold": HIGH_SCORE_THRESHOLD})[0]

        if not stats["total"]:
            return {
                "total_matchings": 0,
                "average_score": 0,
                "high_score_matchings": 0,
                "recent_matchings": [],
            }

        recent = execute_raw_sql("""
            SELECT analysis_id, overall_score, error, created_at
            FROM jd_matching_results
            WHERE user_id = :user_id
            ORDER BY created_at DESC
            LIMIT 5
        """, {"user_id": user_id})

        return {
            "total_matchings": stats["total"],
            "average_score": round(float(stats["average"]), 2),
            "high_score_matchings": stats["high_score"],
            "recent_matchings": [_row_to_matching(r) for r in recent],
        }

    def compare_matchings(self, user_id: str, analysis_ids: List[str]) -> dict:
        if len(analysis_ids) > MAX_COMPARE:
            raise InvalidRequestError(f"Maximum {MAX_COMPARE} matchings can be compared at once")

        comparisons = []
        for analysis_id in analysis_ids:
            try:
                matching = self.get_matching_result(user_id, analysis_id)
            except NotFoundError:
                logger.debug("Skipping unknown matching %s in comparison", analysis_id)
                continue
            comparisons.append({
                "analysis_id": matching["analysis_id"],
                "overall_score": matching["overall_score"],
                "keyword_score": matching["keyword_score"],
                "semantic_score": matching["semantic_score"],
                "matched_keywords": matching["matched_keywords"],
                "missing_keywords": matching["missing_keywords"],
                "created_at": matching["created_at"],
            })
        return {"comparisons": comparisons}

    def get_top_keywords(self, user_id: str, limit: int = 20) -> dict:
        matched = Counter()
        missing = Counter()
        for doc in self.details.list_for_user(user_id):
            matched.update(doc.get("matched_keywords") or [])
            missing.update(doc.get("missing_keywords") or [])

        return {
            "most_matched": [{"keyword": k, "frequency": n} for k, n in matched.most_common(limit)],
            "most_missing": [{"keyword": k, "frequency": n} for k, n in missing.most_common(limit)],
        }

    def request_suggestions(self, user_id: str, analysis_id: str) -> dict:
        """
        Queue AI suggestions for the keywords this matching is missing.

        The generation is counted before the job is queued, so concurrent
        requests cannot exceed MAX_SUGGESTION_GENERATIONS.
        """
        matching = self.get_matching_result(user_id, analysis_id)
        if matching["status"] == "error":
            raise InvalidRequestError("Suggestions are unavailable for a failed matching")

        used = self.details.reserve_generation(analysis_id, MAX_SUGGESTION_GENERATIONS)
        if used is None:
            raise InvalidRequestError("No suggestion generations remaining for this matching")

        try:
            job = self.queue_service.add_suggestion_job(
                SuggestionGenerationJob(
                    analysis_id=analysis_id,
                    user_id=user_id,
                    missed_skills=matching["missing_keywords"],
                    context=matching["job_description"][:SUGGESTION_CONTEXT_LIMIT],
                    # includes the generation this job performs
                    remaining_generations=MAX_SUGGESTION_GENERATIONS - used + 1,
                )
            )
        except Exception:
            self.details.release_generation(analysis_id)
            raise
        return {"job_id": job.id, "remaining_generations": MAX_SUGGESTION_GENERATIONS - used}

    # ============================================================
    # WORKER-SIDE PERSISTENCE
    # ============================================================

    def save_result(
        self,
        analysis_id: str,
        user_id: str,
        resume_id: Optional[str],
        resume_content: str,
        job_description: str,
        overall_score: float,
        keyword_matching: dict,
        semantic_matching: Optional[dict],
        suggestions: List[dict],
    ) -> None:
        """Upsert, so a retried job overwrites its earlier error row."""
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO jd_matching_results (analysis_id, user_id, resume_id, resume_content,
                        job_description, overall_score, keyword_score, semantic_score, error)
                    VALUES (:analysis_id, :user_id, :resume_id, :resume_content,
                        :job_description, :overall_score, :keyword_score, :semantic_score, NULL)
                    ON CONFLICT (analysis_id) DO UPDATE SET
                        resume_content = EXCLUDED.resume_content,
                        job_description = EXCLUDED.job_description,
                        overall_score = EXCLUDED.overall_score,
                        keyword_score = EXCLUDED.keyword_score,
                        semantic_score = EXCLUDED.semantic_score,
                        error = NULL
                """),
                {
                    "analysis_id": analysis_id,
                    "user_id": user_id,
                    "resume_id": resume_id,
                    "resume_content": resume_content[:STORED_TEXT_LIMIT],
                    "job_description": job_description[:STORED_TEXT_LIMIT],
                    "overall_score": overall_score,
                    "keyword_score": keyword_matching["score"],
                    "semantic_score": semantic_matching["score"] if semantic_matching else None,
                }
            )
        self.details.upsert(analysis_id, user_id, {
            "keyword_matching": keyword_matching,
            "semantic_matching": semantic_matching,
            "suggestions": suggestions,
            "matched_keywords": keyword_matching["matched_keywords"],
            "missing_keywords": keyword_matching["missing_keywords"],
        })

    def save_error(
        self,
        analysis_id: str,
        user_id: str,
        resume_id: Optional[str],
        resume_content: str,
        job_description: str,
        message: str,
    ) -> None:
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO jd_matching_results (analysis_id, user_id, resume_id, resume_content,
                        job_description, overall_score, error)
                    VALUES (:analysis_id, :user_id, :resume_id, :resume_content,
                        :job_description, 0, :error)
                    ON CONFLICT (analysis_id) DO UPDATE SET overall_score = 0, error = EXCLUDED.error
                """),
                {
                    "analysis_id": analysis_id,
                    "user_id": user_id,
                    "resume_id": resume_id,
                    "resume_content": resume_content[:ERROR_TEXT_LIMIT],
                    "job_description": job_description[:ERROR_TEXT_LIMIT],
                    "error": message,
                }
            )

    def append_suggestions(self, analysis_id: str, suggestions: List[dict]) -> None:
        if not self.details.append_suggestions(analysis_id, suggestions):
            raise NotFoundError(f"Match details for {analysis_id} not found")


# Singleton instance
_jd_matching_service: Optional[JDMatchingService] = None


def get_jd_matching_service() -> JDMatchingService:
    global _jd_matching_service
    if _jd_matching_service is None:
        _jd_matching_service = JDMatchingService()
    return _jd_matching_service

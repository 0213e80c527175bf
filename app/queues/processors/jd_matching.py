"""
JD matching worker (queue: jd-matching, job: match-jd).

Stage 1 keyword matching always runs. Stage 2 semantic matching is
optional; when it fails the keyword score stands alone.
"""

import logging

from app.core.config import get_settings
from app.queues.processors import report_progress
from app.services.ai_provider_service import get_ai_provider_service
from app.services.jd_matching_service import get_jd_matching_service
from app.services.keyword_matching import perform_keyword_matching, generate_improvement_suggestions
from app.services.matching_service import perform_semantic_matching, combine_scores

logger = logging.getLogger(__name__)

MAX_STORED_SUGGESTIONS = 10


class JDMatchingProcessor:

    def __init__(self, ai_service=None, matching_service=None, semantic_provider=None):
        self.ai_service = ai_service or get_ai_provider_service()
        self.matching_service = matching_service or get_jd_matching_service()
        self.semantic_provider = semantic_provider or get_settings().default_ai_provider

    def process(self, data: dict) -> dict:
        analysis_id = data["analysis_id"]
        user_id = data["user_id"]
        resume_id = data.get("resume_id")
        resume_content = data["resume_content"]
        job_description = data["job_description"]

        logger.info("Starting JD matching for analysis %s", analysis_id)
        try:
            report_progress(10)

            keyword_matching = perform_keyword_matching(resume_content, job_description)

            report_progress(30)

            semantic_matching = None
            if data.get("use_semantic_matching", True):
                try:
                    semantic_matching = perform_semantic_matching(
                        self.ai_service, resume_content, job_description, self.semantic_provider
                    )
                except Exception as e:
                    logger.warning("Semantic matching failed, using keyword matching only: %s", e)

            overall_score = combine_scores(
                keyword_matching["score"], semantic_matching["score"] if semantic_matching else None
            )

            report_progress(70)

            suggestions = generate_improvement_suggestions(keyword_matching, semantic_matching)

            report_progress(90)

            self.matching_service.save_result(
                analysis_id=analysis_id,
                user_id=user_id,
                resume_id=resume_id,
                resume_content=resume_content,
                job_description=job_description,
                overall_score=overall_score,
                keyword_matching=keyword_matching,
                semantic_matching=semantic_matching,
                suggestions=suggestions[:MAX_STORED_SUGGESTIONS],
            )

            report_progress(100)
            logger.info("JD matching completed for analysis %s with score %d", analysis_id, overall_score)

            return {
                "analysis_id": analysis_id,
                "overall_score": overall_score,
                "keyword_score": keyword_matching["score"],
                "semantic_score": semantic_matching["score"] if semantic_matching else None,
                "matched_keywords": len(keyword_matching["matched_keywords"]),
                "missing_keywords": len(keyword_matching["missing_keywords"]),
                "suggestions_count": len(suggestions),
                "status": "completed",
            }
        except Exception as e:
            logger.error("JD matching failed for analysis %s: %s", analysis_id, e)
            self.matching_service.save_error(
                analysis_id, user_id, resume_id, resume_content, job_description,
                str(e) or "Matching failed",
            )
            raise


def handle_jd_matching(payload: dict) -> dict:
    """RQ entry point."""
    return JDMatchingProcessor().process(payload)

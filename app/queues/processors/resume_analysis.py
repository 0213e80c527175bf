"""
Resume analysis worker (queue: resume-analysis, job: analyze-resume).

Progress milestones: 10 start, 20 resume loaded, 60 AI done,
80 metrics extracted, 100 stored.
"""

import logging
from datetime import datetime

from app.core.exceptions import NotFoundError
from app.queues.processors import report_progress
from app.services.ai_provider_service import get_ai_provider_service
from app.services.ats_scoring import (
    calculate_ats_score,
    extract_suggestions,
    extract_skills,
    extract_keywords,
)
from app.services.resume_service import get_resume_service

logger = logging.getLogger(__name__)

MAX_STORED_SUGGESTIONS = 10


class ResumeAnalysisProcessor:

    def __init__(self, ai_service=None, resume_service=None):
        self.ai_service = ai_service or get_ai_provider_service()
        self.resume_service = resume_service or get_resume_service()

    def process(self, data: dict) -> dict:
        resume_id = data["resume_id"]
        user_id = data["user_id"]
        provider = data.get("provider")

        logger.info("Starting resume analysis for resume %s by user %s", resume_id, user_id)
        try:
            report_progress(10)

            resume = self.resume_service.get_resume(resume_id, user_id)
            if not resume:
                raise NotFoundError(f"Resume {resume_id} not found for user {user_id}")

            report_progress(20)

            analysis = self.ai_service.analyze_resume(resume["content"], resume["file_name"], provider)

            report_progress(60)

            ats_score = calculate_ats_score(analysis)
            suggestions = extract_suggestions(analysis)
            skills = extract_skills(analysis)
            keywords = extract_keywords(resume["content"])

            report_progress(80)

            analysis_results = dict(analysis)
            analysis_results.update({
                "skills": skills,
                "keywords": keywords,
                "processed_at": datetime.utcnow().isoformat(),
                "provider": provider,
            })
            self.resume_service.save_analysis(
                resume_id, ats_score, suggestions[:MAX_STORED_SUGGESTIONS], analysis_results
            )

            report_progress(100)
            logger.info("Resume analysis completed for resume %s (ATS %d)", resume_id, ats_score)

            return {
                "resume_id": resume_id,
                "ats_score": ats_score,
                "suggestions_count": len(suggestions),
                "skills_count": len(skills),
                "status": "completed",
            }
        except Exception as e:
            logger.error("Resume analysis failed for resume %s: %s", resume_id, e)
            self.resume_service.mark_failed(resume_id, str(e) or "Analysis failed", provider)
            raise


def handle_resume_analysis(payload: dict) -> dict:
    """RQ entry point."""
    return ResumeAnalysisProcessor().process(payload)

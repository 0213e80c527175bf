"""
Suggestion generation worker (queue: suggestion-generation, job: generate-suggestions).

Asks the AI service for suggestions focused on the skills a matching
found missing and appends them to that matching's suggestions.
"""

import logging

from app.queues.processors import report_progress
from app.services.ai_provider_service import get_ai_provider_service
from app.services.ats_scoring import determine_suggestion_type
from app.services.jd_matching_service import get_jd_matching_service

logger = logging.getLogger(__name__)


class SuggestionGenerationProcessor:

    def __init__(self, ai_service=None, matching_service=None):
        self.ai_service = ai_service or get_ai_provider_service()
        self.matching_service = matching_service or get_jd_matching_service()

    def process(self, data: dict) -> dict:
        analysis_id = data["analysis_id"]
        remaining = data.get("remaining_generations", 0)

        if remaining <= 0:
            logger.info("No suggestion generations remaining for analysis %s", analysis_id)
            return {"analysis_id": analysis_id, "suggestions_added": 0, "status": "skipped"}

        report_progress(10)
        matching = self.matching_service.get_matching_result(data["user_id"], analysis_id)

        report_progress(30)
        generated = self.ai_service.generate_suggestions(
            matching["resume_content"],
            data.get("context") or matching["job_description"],
            {"missed_skills": data.get("missed_skills") or []},
        )

        suggestions = [
            {
                "type": determine_suggestion_type(text),
                "priority": "medium",
                "title": f"AI Suggestion {index + 1}",
                "description": text,
            }
            for index, text in enumerate(generated)
        ]

        report_progress(80)
        if suggestions:
            self.matching_service.append_suggestions(analysis_id, suggestions)

        report_progress(100)
        logger.info("Added %d AI suggestions to analysis %s", len(suggestions), analysis_id)

        return {
            "analysis_id": analysis_id,
            "suggestions_added": len(suggestions),
            "remaining_generations": remaining - 1,
            "status": "completed",
        }


def handle_suggestion_generation(payload: dict) -> dict:
    """RQ entry point."""
    return SuggestionGenerationProcessor().process(payload)

"""
Semantic Matching Service - second stage of resume vs JD matching.

PURPOSE:
Keyword matching misses transferable experience ("built REST services in
Flask" vs "backend API development"). This stage asks an AI provider for
a 0-100 similarity score and averages it with the keyword score.

COST OPTIMIZATION:
- Both texts truncated to 2000 chars before prompting
- max_tokens=100: the model only has to answer with a number
- Results cached by AIProviderService like every other AI call
"""

import logging
import re
from typing import Optional

from app.services.keyword_matching import round_half_up

logger = logging.getLogger(__name__)

SEMANTIC_TEXT_LIMIT = 2000
DEFAULT_SEMANTIC_SCORE = 50
SEMANTIC_MAX_TOKENS = 100


def build_semantic_prompt(resume_content: str, job_description: str) -> str:
    return f"""Compare the following resume content with the job description and provide a semantic similarity score from 0-100:

RESUME:
{resume_content[:SEMANTIC_TEXT_LIMIT]}

JOB DESCRIPTION:
{job_description[:SEMANTIC_TEXT_LIMIT]}

Please analyze:
1. Skill relevance and transferability
2. Experience alignment
3. Industry context matching
4. Role requirements fulfillment

Respond with just a number from 0-100 representing the semantic match score."""


def parse_semantic_score(text: Optional[str]) -> int:
    """First integer in the response, clamped to 0..100."""
    match = re.search(r"(\d+)", text or "")
    if not match:
        return DEFAULT_SEMANTIC_SCORE
    return min(max(int(match.group(1)), 0), 100)


def perform_semantic_matching(
    ai_service,
    resume_content: str,
    job_description: str,
    provider: Optional[str] = None,
) -> dict:
    """
    Ask the AI service for a similarity score.

    Raises whatever the AI service raises; callers fall back to the
    keyword score.
    """
    result = ai_service.analyze_text(
        build_semantic_prompt(resume_content, job_description),
        provider=provider,
        max_tokens=SEMANTIC_MAX_TOKENS,
    )
    text = result.get("text")
    score = parse_semantic_score(text)
    logger.debug("Semantic match score %d (raw: %r)", score, (text or "")[:50])
    return {
        "score": score,
        "analysis": text,
        "matching_method": "semantic-ai",
    }


def combine_scores(keyword_score: float, semantic_score: Optional[float] = None) -> int:
    """Mean of both stages, or the keyword score when semantic matching is unavailable."""
    if semantic_score is None:
        return round_half_up(keyword_score)
    return round_half_up((keyword_score + semantic_score) / 2)

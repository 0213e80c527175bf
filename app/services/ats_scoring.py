"""
ATS Scoring - heuristics applied on top of an AI analysis result.

The provider already returns an ats_score; these helpers decide which
score to trust, turn raw suggestions into typed/prioritised items and
pull skills and keywords out of the response text.
"""

import logging
import re
from collections import Counter
from typing import List

logger = logging.getLogger(__name__)


DEFAULT_ATS_SCORE = 65
DEFAULT_BULK_ATS_SCORE = 50

ATS_SCORE_PATTERNS = [
    re.compile(r"ATS.*?(\d+)%?", re.IGNORECASE),
    re.compile(r"score.*?(\d+)%?", re.IGNORECASE),
]

SKILL_PATTERNS = [
    re.compile(r"(?:JavaScript|TypeScript|Python|Java|C\+\+|React|Angular|Vue|Node\.js|Express|Django|Flask)", re.IGNORECASE),
    re.compile(r"(?:SQL|PostgreSQL|MySQL|MongoDB|Redis|GraphQL)", re.IGNORECASE),
    re.compile(r"(?:AWS|Azure|Docker|Kubernetes|Jenkins|Git)", re.IGNORECASE),
    re.compile(r"(?:HTML|CSS|SASS|Bootstrap|Tailwind)", re.IGNORECASE),
]

SUGGESTION_LINE_PATTERN = re.compile(r"suggestions?:?\s*(.+?)(?:\n|$)", re.IGNORECASE)

COMMON_WORDS = {
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had", "her",
    "was", "one", "our", "out", "day", "get", "has", "him", "his", "how", "its",
    "may", "new", "now", "old", "see", "two", "way", "who", "boy", "did", "use",
    "your", "work", "life", "them", "well", "were",
}

DEFAULT_SUGGESTIONS = [
    {
        "type": "keywords",
        "priority": "high",
        "title": "Optimize Keywords",
        "description": "Include more industry-relevant keywords to improve ATS compatibility",
    },
    {
        "type": "content",
        "priority": "medium",
        "title": "Quantify Achievements",
        "description": "Add specific numbers and metrics to demonstrate impact",
    },
    {
        "type": "structure",
        "priority": "medium",
        "title": "Improve Structure",
        "description": "Organize sections with clear headings and consistent formatting",
    },
]

BULK_SUGGESTIONS = [
    {
        "type": "content",
        "priority": "high",
        "title": "Review Content",
        "description": "Review and optimize your resume content for better ATS compatibility",
    },
    {
        "type": "keywords",
        "priority": "medium",
        "title": "Add Keywords",
        "description": "Include relevant industry keywords to improve matching",
    },
]


# ============================================================
# ATS SCORE
# ============================================================

def calculate_ats_score(analysis: dict) -> int:
    """
    Score priority:
    1. provider ats_score when it is in 1..100
    2. a number following "ATS"/"score" in the raw response
    3. 50 plus bonuses for the resume sections the response mentions
    """
    try:
        provider_score = analysis.get("ats_score")
        if provider_score is not None and 1 <= float(provider_score) <= 100:
            return int(round(float(provider_score)))

        text = analysis.get("text") or ""
        for pattern in ATS_SCORE_PATTERNS:
            match = pattern.search(text)
            if match:
                return min(max(int(match.group(1)), 0), 100)

        content = text.lower()
        score = 50
        if "contact" in content or "email" in content or "phone" in content:
            score += 10
        if "experience" in content or "work" in content:
            score += 15
        if "education" in content or "degree" in content:
            score += 10
        if "skills" in content or "technical" in content:
            score += 10
        if "achievement" in content or "accomplishment" in content:
            score += 5
        return min(score, 100)
    except (AttributeError, TypeError, ValueError):
        logger.warning("Failed to calculate ATS score, using default")
        return DEFAULT_ATS_SCORE


def calculate_bulk_ats_score(analysis: dict) -> int:
    """Simplified scoring for bulk uploads."""
    try:
        content = (analysis.get("text") or "").lower()
        score = 40
        if "contact" in content or "@" in content:
            score += 15
        if "experience" in content or "work" in content:
            score += 20
        if "education" in content:
            score += 10
        if "skills" in content:
            score += 15
        return min(score, 100)
    except (AttributeError, TypeError):
        return DEFAULT_BULK_ATS_SCORE


# ============================================================
# SUGGESTIONS
# ============================================================

def determine_suggestion_type(suggestion: str) -> str:
    lower = suggestion.lower()
    if "format" in lower or "font" in lower or "spacing" in lower:
        return "formatting"
    if "keyword" in lower or "term" in lower or "phrase" in lower:
        return "keywords"
    if "section" in lower or "order" in lower or "organize" in lower:
        return "structure"
    return "content"


def _priority_for(index: int) -> str:
    if index < 3:
        return "high"
    if index < 6:
        return "medium"
    return "low"


def extract_suggestions(analysis: dict) -> List[dict]:
    """
    Turn the provider's suggestions into typed, prioritised items.

    Falls back to "suggestion: ..." lines in the raw response, then to
    DEFAULT_SUGGESTIONS.
    """
    descriptions = [s for s in analysis.get("suggestions") or [] if isinstance(s, str) and s.strip()]

    if not descriptions:
        content = analysis.get("text") or ""
        if "improve" in content or "add" in content or "consider" in content:
            descriptions = [m.strip() for m in SUGGESTION_LINE_PATTERN.findall(content) if m.strip()]

    if not descriptions:
        return [dict(s) for s in DEFAULT_SUGGESTIONS]

    return [
        {
            "type": determine_suggestion_type(description),
            "priority": _priority_for(index),
            "title": f"Improvement {index + 1}",
            "description": description.strip(),
        }
        for index, description in enumerate(descriptions)
    ]


# ============================================================
# SKILLS / KEYWORDS
# ============================================================

def extract_skills(analysis: dict) -> List[str]:
    """Provider skill names plus technology names found in the response."""
    skills = []
    for skill in analysis.get("skills") or []:
        name = skill.get("name") if isinstance(skill, dict) else skill
        if name:
            skills.append(str(name).strip())

    text = analysis.get("text") or ""
    for pattern in SKILL_PATTERNS:
        skills.extend(match.strip() for match in pattern.findall(text))

    # dict.fromkeys keeps first-seen order
    return list(dict.fromkeys(skills))


def extract_keywords(text: str, limit: int = 20) -> List[str]:
    """Most frequent non-trivial words (length > 3, not a stop-word)."""
    words = re.sub(r"[^\w\s]", " ", (text or "").lower()).split()
    counts = Counter(w for w in words if len(w) > 3 and w not in COMMON_WORDS)
    return [word for word, _ in counts.most_common(limit)]

"""
Keyword Matching - first stage of resume vs job description matching.

HOW IT WORKS:
1. Pull skill/technology words out of both texts
2. Rank JD keywords: words from requirement sentences first ("must have",
   "experience", "certification", ...), then the rest, max 50
3. Score = matched resume keywords / important JD keywords

Pure functions; no AI calls, no database access.
"""

import math
import re
from typing import List, Optional

MAX_IMPORTANT_KEYWORDS = 50
MIN_SUBSTRING_MATCH_LENGTH = 4

COMMON_WORDS = {
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
    "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
    "how", "its", "may", "new", "now", "old", "see", "two", "way", "who",
    "boy", "did", "use", "your", "work", "life", "them", "well", "were",
    "will", "with", "have", "this", "that", "from", "they", "know", "want",
    "been", "good", "much", "some", "time", "very", "when", "come", "here",
    "just", "like", "long", "make", "many", "over", "such", "take", "than",
    "only", "think", "also", "back", "after", "first", "year",
}

SKILL_KEYWORDS = {
    "javascript", "python", "java", "react", "angular", "vue", "node", "express",
    "sql", "nosql", "mongodb", "postgresql", "mysql", "redis", "docker", "kubernetes",
    "aws", "azure", "git", "jenkins", "ci/cd", "agile", "scrum", "devops",
    "html", "css", "sass", "bootstrap", "tailwind", "webpack", "babel",
    "typescript", "graphql", "rest", "api", "microservices", "cloud",
}

TECH_PATTERNS = [
    re.compile(r"^[a-z]+\.[a-z]+$"),          # framework.js style
    re.compile(r"^[a-z]{2,}sql$"),            # SQL variants
    re.compile(r"^(?:aws|azure|gcp)$"),       # cloud platforms
    re.compile(r"^[a-z]+\.?(?:js|py|php|rb)$"),
]

IMPORTANT_SENTENCE_PATTERNS = [
    re.compile(r"(?:require[ds]?|must have|essential|mandatory|critical)", re.IGNORECASE),
    re.compile(r"(?:skills?|experience|proficien[ct]|expert)", re.IGNORECASE),
    re.compile(r"(?:certification|certified|license)", re.IGNORECASE),
]

SYNONYM_GROUPS = [
    {"javascript", "js", "ecmascript"},
    {"typescript", "ts"},
    {"python", "py"},
    {"react", "reactjs", "react.js"},
    {"angular", "angularjs"},
    {"vue", "vuejs", "vue.js"},
]


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def is_skill_or_technology(word: str) -> bool:
    word = word.lower()
    if any(pattern.match(word) for pattern in TECH_PATTERNS):
        return True
    return word in SKILL_KEYWORDS


def extract_keywords(text: str) -> List[str]:
    """Unique skill/technology words in first-seen order."""
    clean = re.sub(r"[^\w\s\-.]", " ", (text or "").lower())
    keywords = []
    for word in clean.split():
        # sentence punctuation is not part of the word ("python." -> "python")
        word = word.strip(".-")
        if len(word) < 3 or word in COMMON_WORDS:
            continue
        if is_skill_or_technology(word):
            keywords.append(word)
    return list(dict.fromkeys(keywords))


def extract_important_keywords(job_description: str) -> List[str]:
    """JD keywords, requirement sentences first, capped at 50."""
    important = []
    for sentence in re.split(r"[.!?]+\s", job_description or ""):
        if any(p.search(sentence) for p in IMPORTANT_SENTENCE_PATTERNS):
            important.extend(extract_keywords(sentence))

    combined = list(dict.fromkeys(important + extract_keywords(job_description)))
    return combined[:MAX_IMPORTANT_KEYWORDS]


def is_word_match(word1: str, word2: str) -> bool:
    word1, word2 = word1.lower(), word2.lower()
    if word1 == word2:
        return True

    # Partial match for compound words
    if word1 in word2 or word2 in word1:
        return min(len(word1), len(word2)) >= MIN_SUBSTRING_MATCH_LENGTH

    return any(word1 in group and word2 in group for group in SYNONYM_GROUPS)


def perform_keyword_matching(resume_content: str, job_description: str) -> dict:
    resume_words = extract_keywords(resume_content)
    job_words = extract_keywords(job_description)

    matched = [w for w in resume_words if any(is_word_match(w, jw) for jw in job_words)]

    important = extract_important_keywords(job_description)
    missing = [k for k in important if not any(is_word_match(rw, k) for rw in resume_words)]

    score = round_half_up(len(matched) / max(len(important), 1) * 100)

    return {
        "score": min(score, 100),
        "matched_keywords": matched,
        "missing_keywords": missing,
        "total_job_keywords": len(important),
        "matching_method": "keyword-based",
    }


def generate_improvement_suggestions(keyword_matching: dict, semantic_matching: Optional[dict] = None) -> List[dict]:
    suggestions = []

    missing = keyword_matching.get("missing_keywords") or []
    if missing:
        top_missing = missing[:5]
        suggestions.append({
            "type": "keywords",
            "priority": "high",
            "title": "Add Missing Keywords",
            "description": f"Include these important keywords: {', '.join(top_missing)}",
            "keywords": top_missing,
        })

    if keyword_matching.get("score", 0) < 50:
        suggestions.append({
            "type": "content",
            "priority": "high",
            "title": "Improve Keyword Alignment",
            "description": (
                "Your resume matches less than 50% of the job requirements. "
                "Consider adding more relevant skills and experience."
            ),
        })

    if semantic_matching and semantic_matching.get("score", 100) < 60:
        suggestions.append({
            "type": "content",
            "priority": "medium",
            "title": "Enhance Experience Relevance",
            "description": "Highlight experiences that more closely align with the role requirements.",
        })

    suggestions.append({
        "type": "structure",
        "priority": "medium",
        "title": "Tailor Resume Section",
        "description": "Create a dedicated skills section highlighting technologies mentioned in the job posting.",
    })

    return suggestions

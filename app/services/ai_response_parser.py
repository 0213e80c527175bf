"""
AI Response Parser - turn raw model text into validated dicts.

Models wrap JSON in markdown fences, add commentary before/after, or
return numbers as strings. Everything coming back from a provider goes
through these helpers before it is stored, so downstream code can rely
on field names and value ranges.
"""

import json
import re
from typing import Any, List, Optional


SKILL_CATEGORIES = {"technical", "soft", "language", "certification", "tool", "framework"}
SKILL_LEVELS = {"beginner", "intermediate", "advanced", "expert"}
MAX_SUGGESTIONS = 8


# ============================================================
# JSON EXTRACTION
# ============================================================

def strip_code_fences(text: str) -> str:
    """Remove ```json ... ``` wrappers if present."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def extract_json_object(text: str) -> dict:
    """
    Find the outermost {...} in a response and parse it.

    Raises:
        ValueError when no JSON object can be found or parsed
    """
    text = strip_code_fences(text or "")
    match = re.search(r"\{[\s\S]*\}", text)
    if not match:
        raise ValueError("No valid JSON found in response")
    parsed = json.loads(match.group(0))
    if not isinstance(parsed, dict):
        raise ValueError("Response JSON is not an object")
    return parsed


def extract_json_array(text: str) -> Optional[list]:
    """Find the outermost [...] in a response; None when absent or invalid."""
    text = strip_code_fences(text or "")
    match = re.search(r"\[[\s\S]*\]", text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, list) else None


# ============================================================
# VALIDATION HELPERS
# ============================================================

def _clamp(value: Any, low: float, high: float, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return min(high, max(low, number))


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if item]


def _dict_list(value: Any) -> List[dict]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def validate_skill(data: Any) -> Optional[dict]:
    if isinstance(data, str):
        data = {"name": data}
    if not isinstance(data, dict):
        return None
    name = str(data.get("name") or "").strip()
    if not name:
        return None

    category = str(data.get("category") or "technical").lower()
    level = str(data.get("level") or "intermediate").lower()
    years = data.get("yearsExperience", data.get("years_experience"))
    try:
        years = float(years) if years is not None else None
    except (TypeError, ValueError):
        years = None

    return {
        "name": name,
        "category": category if category in SKILL_CATEGORIES else "technical",
        "confidence": _clamp(data.get("confidence"), 0, 1, 0.5),
        "years_experience": years,
        "level": level if level in SKILL_LEVELS else "intermediate",
    }


def validate_analysis_result(data: dict, raw_text: str = "") -> dict:
    """
    Validate and sanitize a resume analysis response.

    Accepts both camelCase (as prompted) and snake_case keys.
    """
    skills = [validate_skill(s) for s in data.get("skills", []) or []]
    personal_info = data.get("personalInfo", data.get("personal_info")) or {}

    return {
        "ats_score": _clamp(data.get("atsScore", data.get("ats_score")), 0, 100, 0),
        "skills": [s for s in skills if s],
        "suggestions": _string_list(data.get("suggestions")),
        "personal_info": personal_info if isinstance(personal_info, dict) else {},
        "experience": _dict_list(data.get("experience")),
        "education": _dict_list(data.get("education")),
        "summary": str(data.get("summary") or ""),
        "confidence": _clamp(data.get("confidence"), 0, 1, 0.7),
        "processing_time": 0,
        "text": raw_text,
    }


def validate_match_result(data: dict) -> dict:
    """Validate and sanitize a JD matching response."""
    skill_matches = []
    for item in _dict_list(data.get("skillMatches", data.get("skill_matches"))):
        skill_matches.append({
            "skill": str(item.get("skill", "")).strip(),
            "resume_strength": _clamp(item.get("resumeStrength", item.get("resume_strength")), 0, 100, 0),
            "jd_requirement": _clamp(item.get("jdRequirement", item.get("jd_requirement")), 0, 100, 0),
            "is_match": bool(item.get("isMatch", item.get("is_match", False))),
            "gap": item.get("gap"),
        })

    return {
        "overall_score": _clamp(data.get("overallScore", data.get("overall_score")), 0, 100, 0),
        "skill_matches": skill_matches,
        "missing_skills": _string_list(data.get("missingSkills", data.get("missing_skills"))),
        "strength_areas": _string_list(data.get("strengthAreas", data.get("strength_areas"))),
        "improvement_areas": _string_list(data.get("improvementAreas", data.get("improvement_areas"))),
        "recommendations": _string_list(data.get("recommendations")),
        "confidence": _clamp(data.get("confidence"), 0, 1, 0.7),
    }


def parse_suggestions_response(text: str) -> List[str]:
    """
    Suggestions come back as a JSON array, or as free text when the
    model ignores the format; fall back to substantial lines.
    """
    parsed = extract_json_array(text)
    if parsed is not None:
        return [str(s).strip() for s in parsed if s][:MAX_SUGGESTIONS]

    lines = [line.strip() for line in (text or "").split("\n")]
    return [line for line in lines if len(line) > 10][:MAX_SUGGESTIONS]

"""
AI Providers - resume analysis, suggestions and JD matching backends.

Three providers, tried in priority order by AIProviderService:
1. Gemini  (google-genai SDK)            - primary, cheapest
2. OpenAI  (openai SDK)                  - secondary
3. Claude  (openai SDK, Anthropic's OpenAI-compatible endpoint) - tertiary

Every provider shares the same prompts and response validation; the
subclasses only implement _call_api(). A failed call flips is_healthy to
False so the service skips the provider until health is reset.
"""

import logging
import time
from typing import List, Optional

from openai import OpenAI
from google import genai

from app.core.config import Settings, get_settings
from app.core.exceptions import AIProviderError
from app.services.ai_response_parser import (
    extract_json_object,
    validate_analysis_result,
    validate_match_result,
    parse_suggestions_response,
)

logger = logging.getLogger(__name__)


# ============================================================
# PROMPTS
# ============================================================

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert resume analyzer. Provide detailed, accurate analysis "
    "in the exact JSON format requested."
)

SUGGESTION_SYSTEM_PROMPT = (
    "You are a career coach specializing in resume optimization. "
    "Provide actionable, specific suggestions."
)

MATCHING_SYSTEM_PROMPT = (
    "You are an expert at analyzing job-resume compatibility. "
    "Provide detailed matching analysis."
)

TEXT_SYSTEM_PROMPT = "You are a concise assistant for resume and job analysis."


def build_analysis_prompt(resume_text: str) -> str:
    return f"""Analyze this resume and provide comprehensive analysis in strict JSON format:

RESUME:
{resume_text}

Return ONLY valid JSON in this exact structure:
{{
  "atsScore": <number 0-100>,
  "skills": [
    {{"name": "<skill>", "category": "<technical|soft|language|certification|tool|framework>",
      "confidence": <0-1>, "yearsExperience": <number or null>,
      "level": "<beginner|intermediate|advanced|expert>"}}
  ],
  "suggestions": ["<actionable suggestion>"],
  "personalInfo": {{"name": null, "email": null, "phone": null, "location": null,
                   "linkedin": null, "github": null}},
  "experience": [{{"company": "", "position": "", "startDate": "", "endDate": null,
                  "description": "", "achievements": [], "skills": []}}],
  "education": [{{"institution": "", "degree": "", "field": "", "startDate": "",
                 "endDate": "", "gpa": null}}],
  "summary": "<professional summary>",
  "confidence": <0-1>
}}"""


def build_suggestion_prompt(
    resume_text: str,
    job_description: Optional[str] = None,
    options: Optional[dict] = None,
) -> str:
    prompt = f"Generate 5-8 specific resume improvement suggestions for this resume:\n\n{resume_text}"
    if job_description:
        prompt += f"\n\nTarget Job:\n{job_description}\n\nFocus on aligning with this job."
    focus_skills = (options or {}).get("missed_skills")
    if focus_skills:
        prompt += f"\n\nThe resume is missing these skills: {', '.join(focus_skills)}."
    prompt += '\n\nReturn as JSON array: ["suggestion 1", "suggestion 2", ...]'
    return prompt


def build_matching_prompt(resume_text: str, job_description: str) -> str:
    return f"""Analyze resume-job match:

RESUME:
{resume_text}

JOB:
{job_description}

Return JSON:
{{
  "overallScore": <0-100>,
  "skillMatches": [{{"skill": "", "resumeStrength": <0-100>, "jdRequirement": <0-100>,
                    "isMatch": <boolean>, "gap": <0-100 or null>}}],
  "missingSkills": [],
  "strengthAreas": [],
  "improvementAreas": [],
  "recommendations": [],
  "confidence": <0-1>
}}"""


# ============================================================
# BASE PROVIDER
# ============================================================

class AIProvider:
    """
    Common provider behaviour. Subclasses set name/priority/cost and
    implement _call_api(system_prompt, user_content, max_tokens, temperature).
    """

    name: str = "base"
    priority: int = 99
    cost_per_token: float = 0.0  # USD per 1K tokens

    def __init__(self, configured: bool = True):
        self.is_configured = configured
        self.is_healthy = configured

    def _call_api(
        self,
        system_prompt: str,
        user_content: str,
        max_tokens: int = 1000,
        temperature: float = 0.3,
    ) -> str:
        raise NotImplementedError

    def _request(self, system_prompt: str, user_content: str, max_tokens: int, temperature: float) -> str:
        if not self.is_configured:
            raise AIProviderError(self.name, "provider not configured")
        try:
            response = self._call_api(system_prompt, user_content, max_tokens, temperature)
        except AIProviderError:
            self.is_healthy = False
            raise
        except Exception as e:
            self.is_healthy = False
            raise AIProviderError(self.name, str(e)) from e
        if not response:
            self.is_healthy = False
            raise AIProviderError(self.name, "empty response")
        return response

    def analyze(self, text: str, options: Optional[dict] = None) -> dict:
        """Full resume analysis -> validated analysis dict."""
        start_time = time.time()
        response = self._request(
            ANALYSIS_SYSTEM_PROMPT, build_analysis_prompt(text), max_tokens=4000, temperature=0.3
        )
        try:
            analysis = validate_analysis_result(extract_json_object(response), raw_text=response)
        except ValueError as e:
            raise AIProviderError(self.name, f"Invalid response format: {e}") from e

        analysis["processing_time"] = int((time.time() - start_time) * 1000)
        logger.info("%s resume analysis completed in %dms", self.name, analysis["processing_time"])
        return analysis

    def complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        """Free-form prompt -> raw text."""
        return self._request(TEXT_SYSTEM_PROMPT, prompt, max_tokens=max_tokens or 500, temperature=0.2)

    def generate_suggestions(
        self,
        resume_text: str,
        job_description: Optional[str] = None,
        options: Optional[dict] = None,
    ) -> List[str]:
        response = self._request(
            SUGGESTION_SYSTEM_PROMPT,
            build_suggestion_prompt(resume_text, job_description, options),
            max_tokens=1500,
            temperature=0.4,
        )
        return parse_suggestions_response(response)

    def match_job_description(
        self,
        resume_text: str,
        job_description: str,
        options: Optional[dict] = None,
    ) -> dict:
        response = self._request(
            MATCHING_SYSTEM_PROMPT,
            build_matching_prompt(resume_text, job_description),
            max_tokens=3000,
            temperature=0.2,
        )
        try:
            return validate_match_result(extract_json_object(response))
        except ValueError as e:
            raise AIProviderError(self.name, f"Invalid response format: {e}") from e

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} priority={self.priority} healthy={self.is_healthy}>"


# ============================================================
# CONCRETE PROVIDERS
# ============================================================

class GeminiProvider(AIProvider):
    name = "gemini"
    priority = 1
    cost_per_token = 0.000125

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        super().__init__(configured=bool(settings.gemini_api_key))
        self.model = settings.gemini_model
        self.client = None
        if not self.is_configured:
            logger.warning("Gemini API key not configured")
            return
        self.client = genai.Client(api_key=settings.gemini_api_key)

    def _call_api(self, system_prompt, user_content, max_tokens=1000, temperature=0.3) -> str:
        response = self.client.models.generate_content(
            model=self.model,
            contents=user_content,
            config=genai.types.GenerateContentConfig(
                system_instruction=system_prompt,
                temperature=temperature,
                max_output_tokens=max_tokens,
            ),
        )
        return response.text


class OpenAICompatibleProvider(AIProvider):
    """Chat-completions provider; base_url selects the vendor."""

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None):
        super().__init__(configured=bool(api_key))
        self.model = model
        self.client = None
        if not self.is_configured:
            logger.warning("%s API key not configured", self.name)
            return
        self.client = OpenAI(api_key=api_key, base_url=base_url)

    def _call_api(self, system_prompt, user_content, max_tokens=1000, temperature=0.3) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
        )
        return response.choices[0].message.content


class OpenAIProvider(OpenAICompatibleProvider):
    name = "openai"
    priority = 2
    cost_per_token = 0.002

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        super().__init__(settings.openai_api_key, settings.openai_model)


class ClaudeProvider(OpenAICompatibleProvider):
    name = "claude"
    priority = 3
    cost_per_token = 0.003

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        super().__init__(
            settings.anthropic_api_key,
            settings.claude_model,
            base_url=settings.anthropic_base_url,
        )


def build_default_providers(settings: Optional[Settings] = None) -> List[AIProvider]:
    """All known providers, configured from settings."""
    settings = settings or get_settings()
    return [GeminiProvider(settings), OpenAIProvider(settings), ClaudeProvider(settings)]

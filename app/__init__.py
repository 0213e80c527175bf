"""
Resume Analysis Platform
Resume upload, ATS scoring and job description matching.

Architecture:
- PostgreSQL: Structured data (users, resumes, versions, matching scores)
- MongoDB: Documents (parsed content, AI analysis, suggestions)
- Redis + RQ: Background jobs, AI result cache, usage counters
- AI providers: Gemini, OpenAI, Claude with fallback
"""

__version__ = "1.0.0"

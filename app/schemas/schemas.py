"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class SuggestionType(str, Enum):
    content = "content"
    formatting = "formatting"
    keywords = "keywords"
    structure = "structure"


class SuggestionPriority(str, Enum):
    high = "high"
    medium = "medium"
    low = "low"


class RetentionPolicy(str, Enum):
    resume_versions = "resume_versions"
    temporary_files = "temporary_files"


class VersionSortField(str, Enum):
    created_at = "created_at"
    version_number = "version_number"
    file_name = "file_name"
    ats_score = "ats_score"


class SortOrder(str, Enum):
    asc = "ASC"
    desc = "DESC"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    full_name: Optional[str] = Field(None, max_length=200)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str

class UserResponse(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime


# ============================================================
# RESUME SCHEMAS
# ============================================================

class Suggestion(BaseModel):
    type: SuggestionType
    priority: SuggestionPriority
    title: str
    description: str
    keywords: Optional[List[str]] = None

class ResumeUploadResponse(BaseModel):
    resume_id: str
    job_id: Optional[str] = None
    message: str
    status: str

class BulkUploadResponse(BaseModel):
    batch_id: str
    total_files: int
    skipped_files: List[dict] = []
    message: str
    status: str

class ResumeSummary(BaseModel):
    resume_id: str
    file_name: str
    file_size: int
    file_type: str
    ats_score: Optional[float] = None
    is_processed: bool
    batch_id: Optional[str] = None
    uploaded_at: datetime
    updated_at: datetime

class ResumeListResponse(BaseModel):
    resumes: List[ResumeSummary]
    total: int
    page: int
    limit: int
    total_pages: int

class ResumeAnalysisResponse(BaseModel):
    resume_id: str
    file_name: str
    uploaded_at: datetime
    is_processed: bool
    ats_score: Optional[float] = None
    suggestions: List[Suggestion] = []
    parsed_content: Optional[dict] = None
    analysis_results: Optional[dict] = None
    error: Optional[dict] = None
    versions: int = 0


# ============================================================
# RESUME VERSION SCHEMAS
# ============================================================

class VersionCreate(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    tag: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

class VersionUpdate(BaseModel):
    tag: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None

class VersionResponse(BaseModel):
    version_id: str
    resume_id: str
    file_name: str
    file_size: int
    file_type: str
    content: str
    parsed_content: Optional[dict] = None
    ats_score: Optional[float] = None
    tag: Optional[str] = None
    notes: Optional[str] = None
    version_number: int
    created_at: datetime

class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int

class VersionListResponse(BaseModel):
    data: List[VersionResponse]
    pagination: Pagination

class VersionCompareRequest(BaseModel):
    version1_id: str
    version2_id: str

class VersionStatsResponse(BaseModel):
    total_versions: int
    average_score: float
    score_improvement: float
    best_version: Optional[VersionResponse] = None
    recent_versions: List[VersionResponse] = []


# ============================================================
# JD MATCHING SCHEMAS
# ============================================================

class JDMatchingCreate(BaseModel):
    resume_id: str
    job_description: str = Field(..., min_length=1, max_length=10000)
    use_semantic_matching: bool = True

class JDMatchingQueued(BaseModel):
    analysis_id: str
    message: str

class JDMatchingCompareRequest(BaseModel):
    analysis_ids: List[str] = Field(..., min_length=1)

class JDMatchingResult(BaseModel):
    analysis_id: str
    user_id: str
    resume_id: Optional[str] = None
    resume_content: str
    job_description: str
    overall_score: float
    keyword_score: Optional[float] = None
    semantic_score: Optional[float] = None
    keyword_matching: Optional[dict] = None
    semantic_matching: Optional[dict] = None
    suggestions: List[Suggestion] = []
    matched_keywords: List[str] = []
    missing_keywords: List[str] = []
    error: Optional[str] = None
    status: str
    created_at: datetime


# ============================================================
# QUEUE / AI SCHEMAS
# ============================================================

class JobStatusResponse(BaseModel):
    job_id: str
    queue: str
    name: Optional[str] = None
    status: str
    progress: int = 0
    result: Optional[Any] = None
    error: Optional[str] = None
    retries_left: Optional[int] = None
    enqueued_at: Optional[str] = None
    ended_at: Optional[str] = None

class QueueStatsResponse(BaseModel):
    queue: str
    waiting: int
    active: int
    completed: int
    failed: int
    scheduled: int

class RetentionJobRequest(BaseModel):
    policy: RetentionPolicy = RetentionPolicy.resume_versions
    retention_days: int = Field(0, ge=0)
    dry_run: bool = False

class JobQueuedResponse(BaseModel):
    job_id: str
    message: str


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

class ErrorResponse(BaseModel):
    detail: str

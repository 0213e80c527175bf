"""
Queue names and job payloads.

Payloads are dataclasses on the producer side; they travel through RQ as
plain dicts (asdict) so workers do not depend on pickled class layout.
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional


class QueueNames:
    RESUME_ANALYSIS = "resume-analysis"
    BULK_ANALYSIS = "bulk-analysis"
    JD_MATCHING = "jd-matching"
    SUGGESTION_GENERATION = "suggestion-generation"
    DATA_RETENTION = "data-retention"


ALL_QUEUES = [
    QueueNames.RESUME_ANALYSIS,
    QueueNames.BULK_ANALYSIS,
    QueueNames.JD_MATCHING,
    QueueNames.SUGGESTION_GENERATION,
    QueueNames.DATA_RETENTION,
]


@dataclass
class ResumeAnalysisJob:
    resume_id: str
    user_id: str
    provider: Optional[str] = None


@dataclass
class BulkResumeFile:
    id: str
    file_name: str
    content: bytes


@dataclass
class BulkResumeAnalysisJob:
    batch_id: str
    user_id: str
    resume_files: List[BulkResumeFile] = field(default_factory=list)
    provider: Optional[str] = None


@dataclass
class JDMatchingJob:
    analysis_id: str
    user_id: str
    resume_id: Optional[str]
    resume_content: str
    job_description: str
    use_semantic_matching: bool = True


@dataclass
class SuggestionGenerationJob:
    analysis_id: str
    user_id: str
    missed_skills: List[str]
    context: str
    remaining_generations: int


@dataclass
class DataRetentionJob:
    policy: str = "resume_versions"  # resume_versions | temporary_files
    retention_days: int = 0
    dry_run: bool = False


def to_payload(job) -> dict:
    return asdict(job)

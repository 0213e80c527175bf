"""
Queue Service - enqueue background jobs on RQ and inspect their state.

One RQ queue per task type. Each task type carries its own retry policy:

| queue                  | job name             | attempts | backoff start |
|------------------------|----------------------|----------|---------------|
| resume-analysis        | analyze-resume       | 3        | 2s            |
| bulk-analysis          | bulk-analyze         | 2        | 5s            |
| jd-matching            | match-jd             | 3        | 2s            |
| suggestion-generation  | generate-suggestions | 2        | 3s            |
| data-retention         | cleanup-data         | 1        | -             |

Retry delays double on every attempt (2s, 4s, ...). Delayed retries are
fired by the worker's scheduler (see app.worker).
"""

import logging
from typing import List, Optional

from redis import Redis
from rq import Queue, Retry
from rq.exceptions import NoSuchJobError
from rq.job import Job
from rq.results import Result

from app.core.config import get_settings
from app.db.redis_client import get_redis
from app.queues.queue_types import (
    QueueNames,
    ALL_QUEUES,
    ResumeAnalysisJob,
    BulkResumeAnalysisJob,
    JDMatchingJob,
    SuggestionGenerationJob,
    DataRetentionJob,
    to_payload,
)

logger = logging.getLogger(__name__)

# Handlers are referenced by dotted path so producers never import worker code
HANDLERS = {
    QueueNames.RESUME_ANALYSIS: "app.queues.processors.resume_analysis.handle_resume_analysis",
    QueueNames.BULK_ANALYSIS: "app.queues.processors.bulk_analysis.handle_bulk_analysis",
    QueueNames.JD_MATCHING: "app.queues.processors.jd_matching.handle_jd_matching",
    QueueNames.SUGGESTION_GENERATION: "app.queues.processors.suggestion_generation.handle_suggestion_generation",
    QueueNames.DATA_RETENTION: "app.queues.processors.data_retention.handle_data_retention",
}

JOB_NAMES = {
    QueueNames.RESUME_ANALYSIS: "analyze-resume",
    QueueNames.BULK_ANALYSIS: "bulk-analyze",
    QueueNames.JD_MATCHING: "match-jd",
    QueueNames.SUGGESTION_GENERATION: "generate-suggestions",
    QueueNames.DATA_RETENTION: "cleanup-data",
}

# (attempts, initial backoff in seconds)
RETRY_POLICIES = {
    QueueNames.RESUME_ANALYSIS: (3, 2),
    QueueNames.BULK_ANALYSIS: (2, 5),
    QueueNames.JD_MATCHING: (3, 2),
    QueueNames.SUGGESTION_GENERATION: (2, 3),
    QueueNames.DATA_RETENTION: (1, 0),
}


def backoff_intervals(attempts: int, delay: int) -> List[int]:
    """Exponential retry delays: one entry per retry (attempts - 1)."""
    return [delay * 2 ** i for i in range(attempts - 1)]


def build_retry(queue_name: str) -> Optional[Retry]:
    attempts, delay = RETRY_POLICIES[queue_name]
    if attempts <= 1:
        return None
    return Retry(max=attempts - 1, interval=backoff_intervals(attempts, delay))


class QueueService:
    """
    Producer side of the job pipeline.

    Usage:
        service = get_queue_service()
        job = service.add_resume_analysis_job(ResumeAnalysisJob(resume_id, user_id))
        service.get_job_status("resume-analysis", job.id)
    """

    def __init__(self, connection: Optional[Redis] = None):
        settings = get_settings()
        self.connection = connection if connection is not None else get_redis()
        self.result_ttl = settings.queue_result_ttl
        self.failure_ttl = settings.queue_failure_ttl
        self.job_timeout = settings.job_timeout
        self.queues = {name: Queue(name, connection=self.connection) for name in ALL_QUEUES}

    def get_queue(self, queue_name: str) -> Queue:
        if queue_name not in self.queues:
            raise ValueError(f"Unknown queue: {queue_name}")
        return self.queues[queue_name]

    def _enqueue(self, queue_name: str, payload: dict, priority: int = 0, job_id: Optional[str] = None) -> Job:
        queue = self.get_queue(queue_name)
        job = queue.enqueue(
            HANDLERS[queue_name],
            payload,
            job_id=job_id,
            retry=build_retry(queue_name),
            result_ttl=self.result_ttl,
            failure_ttl=self.failure_ttl,
            job_timeout=self.job_timeout,
            description=JOB_NAMES[queue_name],
            meta={"progress": 0, "priority": priority},
            at_front=priority > 0,
        )
        logger.info("Queued %s job %s on %s (priority %d)", JOB_NAMES[queue_name], job.id, queue_name, priority)
        return job

    # ============================================================
    # PRODUCERS
    # ============================================================

    def add_resume_analysis_job(self, data: ResumeAnalysisJob, priority: int = 0) -> Job:
        return self._enqueue(QueueNames.RESUME_ANALYSIS, to_payload(data), priority)

    def add_bulk_analysis_job(self, data: BulkResumeAnalysisJob, priority: int = 0) -> Job:
        return self._enqueue(QueueNames.BULK_ANALYSIS, to_payload(data), priority, job_id=data.batch_id)

    def add_jd_matching_job(self, data: JDMatchingJob, priority: int = 0) -> Job:
        return self._enqueue(QueueNames.JD_MATCHING, to_payload(data), priority, job_id=data.analysis_id)

    def add_suggestion_job(self, data: SuggestionGenerationJob, priority: int = 0) -> Job:
        return self._enqueue(QueueNames.SUGGESTION_GENERATION, to_payload(data), priority)

    def add_retention_job(self, data: DataRetentionJob, priority: int = 0) -> Job:
        return self._enqueue(QueueNames.DATA_RETENTION, to_payload(data), priority)

    # ============================================================
    # STATUS
    # ============================================================

    def get_queue_stats(self, queue_name: str) -> dict:
        queue = self.get_queue(queue_name)
        return {
            "queue": queue_name,
            "waiting": queue.count,
            "active": queue.started_job_registry.count,
            "completed": queue.finished_job_registry.count,
            "failed": queue.failed_job_registry.count,
            "scheduled": queue.scheduled_job_registry.count,
        }

    def get_all_queue_stats(self) -> List[dict]:
        return [self.get_queue_stats(name) for name in ALL_QUEUES]

    def get_job_status(self, queue_name: str, job_id: str) -> Optional[dict]:
        """
        Returns None when the job does not exist (or expired) in this queue.
        """
        self.get_queue(queue_name)
        try:
            job = Job.fetch(job_id, connection=self.connection)
        except NoSuchJobError:
            return None
        if job.origin != queue_name:
            return None

        status = job.get_status()
        error = None
        latest = job.latest_result()
        if latest is not None and latest.type == Result.Type.FAILED and latest.exc_string:
            # last line of the traceback is the exception message
            error = latest.exc_string.strip().splitlines()[-1]

        return {
            "job_id": job.id,
            "queue": queue_name,
            "name": job.description,
            "status": getattr(status, "value", status),
            "progress": job.meta.get("progress", 0),
            "result": job.return_value(),
            "error": error,
            "retries_left": job.retries_left,
            "enqueued_at": job.enqueued_at.isoformat() if job.enqueued_at else None,
            "ended_at": job.ended_at.isoformat() if job.ended_at else None,
        }


# Singleton instance
_queue_service: Optional[QueueService] = None


def get_queue_service() -> QueueService:
    """Get or create queue service instance."""
    global _queue_service
    if _queue_service is None:
        _queue_service = QueueService()
    return _queue_service

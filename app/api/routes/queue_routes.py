"""
Queue Routes

GET /queues - Stats for every queue
GET /queues/{queue_name}/stats - Stats for one queue
GET /queues/{queue_name}/jobs/{job_id} - Job status, progress and result
POST /queues/retention - Queue a data retention run (admin only)
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from app.core.auth import get_current_user, get_current_admin
from app.queues import get_queue_service
from app.queues.queue_types import DataRetentionJob
from app.schemas.schemas import (
    JobStatusResponse, QueueStatsResponse, RetentionJobRequest, JobQueuedResponse
)

router = APIRouter(prefix="/queues", tags=["Queues"])


@router.get("", response_model=List[QueueStatsResponse])
async def all_queue_stats(user: dict = Depends(get_current_user)):
    return get_queue_service().get_all_queue_stats()


@router.get("/{queue_name}/stats", response_model=QueueStatsResponse)
async def queue_stats(queue_name: str, user: dict = Depends(get_current_user)):
    try:
        return get_queue_service().get_queue_stats(queue_name)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{queue_name}/jobs/{job_id}", response_model=JobStatusResponse)
async def job_status(queue_name: str, job_id: str, user: dict = Depends(get_current_user)):
    """
    Poll a background job.
    
    For JD matching the job id is the analysis_id; for bulk uploads it is the batch_id.
    """
    try:
        status = get_queue_service().get_job_status(queue_name, job_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    
    if status is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return status


@router.post("/retention", response_model=JobQueuedResponse, status_code=202)
async def queue_retention(request: RetentionJobRequest, admin: dict = Depends(get_current_admin)):
    job = get_queue_service().add_retention_job(
        DataRetentionJob(
            policy=request.policy.value,
            retention_days=request.retention_days,
            dry_run=request.dry_run
        )
    )
    return JobQueuedResponse(job_id=job.id, message=f"{request.policy.value} retention queued")

"""
JD Matching Routes

POST /jd-matching - Queue resume vs job description matching
GET /jd-matching - List own matchings
GET /jd-matching/stats - Matching statistics
GET /jd-matching/keywords - Most matched / missing keywords
POST /jd-matching/compare - Compare up to 5 matchings
GET /jd-matching/{analysis_id} - Matching result
DELETE /jd-matching/{analysis_id} - Delete matching
POST /jd-matching/{analysis_id}/suggestions - Queue AI suggestions for missing skills
"""

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_user
from app.services.jd_matching_service import get_jd_matching_service
from app.schemas.schemas import (
    JDMatchingCreate, JDMatchingQueued, JDMatchingCompareRequest, JDMatchingResult,
    JobQueuedResponse, MessageResponse
)

router = APIRouter(prefix="/jd-matching", tags=["JD Matching"])


@router.post("", response_model=JDMatchingQueued, status_code=202)
async def create_matching(request: JDMatchingCreate, user: dict = Depends(get_current_user)):
    """
    Match a processed resume against a job description.
    
    Keyword matching always runs; semantic (AI) matching is optional.
    The returned analysis_id is also the job id on the jd-matching queue.
    """
    return get_jd_matching_service().create_matching(
        user["user_id"], request.resume_id, request.job_description, request.use_semantic_matching
    )


@router.get("")
async def list_matchings(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user)
):
    return get_jd_matching_service().get_user_matchings(user["user_id"], page, limit)


@router.get("/stats")
async def matching_stats(user: dict = Depends(get_current_user)):
    return get_jd_matching_service().get_matching_stats(user["user_id"])


@router.get("/keywords")
async def top_keywords(limit: int = Query(20, ge=1, le=100), user: dict = Depends(get_current_user)):
    return get_jd_matching_service().get_top_keywords(user["user_id"], limit)


@router.post("/compare")
async def compare_matchings(request: JDMatchingCompareRequest, user: dict = Depends(get_current_user)):
    return get_jd_matching_service().compare_matchings(user["user_id"], request.analysis_ids)


@router.get("/{analysis_id}", response_model=JDMatchingResult)
async def get_matching(analysis_id: str, user: dict = Depends(get_current_user)):
    return get_jd_matching_service().get_matching_result(user["user_id"], analysis_id)


@router.delete("/{analysis_id}", response_model=MessageResponse)
async def delete_matching(analysis_id: str, user: dict = Depends(get_current_user)):
    get_jd_matching_service().delete_matching(user["user_id"], analysis_id)
    return MessageResponse(message="JD matching result deleted")


@router.post("/{analysis_id}/suggestions", response_model=JobQueuedResponse, status_code=202)
async def request_suggestions(analysis_id: str, user: dict = Depends(get_current_user)):
    queued = get_jd_matching_service().request_suggestions(user["user_id"], analysis_id)
    return JobQueuedResponse(
        job_id=queued["job_id"],
        message=f"Suggestion generation queued ({queued['remaining_generations']} generations left)"
    )

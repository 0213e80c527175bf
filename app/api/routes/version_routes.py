"""
Resume Version Routes

POST /resumes/{resume_id}/versions - Save a new version
GET /resumes/{resume_id}/versions - List versions (paged, filter by tag)
GET /resumes/{resume_id}/versions/stats - Score statistics across versions
POST /resumes/{resume_id}/versions/compare - Compare two versions
GET /resumes/{resume_id}/versions/{version_id} - Get one version
PATCH /resumes/{resume_id}/versions/{version_id} - Update tag/notes
POST /resumes/{resume_id}/versions/{version_id}/restore - Restore as newest version
DELETE /resumes/{resume_id}/versions/{version_id} - Delete a version
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import get_current_user
from app.services.resume_versions_service import get_resume_versions_service
from app.schemas.schemas import (
    VersionCreate, VersionUpdate, VersionResponse, VersionListResponse,
    VersionCompareRequest, VersionStatsResponse, VersionSortField, SortOrder, MessageResponse
)

router = APIRouter(prefix="/resumes/{resume_id}/versions", tags=["Resume Versions"])


@router.post("", response_model=VersionResponse, status_code=201)
async def create_version(resume_id: str, version: VersionCreate, user: dict = Depends(get_current_user)):
    """Save edited resume text as a new version. Only the 10 newest are kept."""
    return get_resume_versions_service().create_version(
        user["user_id"], resume_id,
        file_name=version.file_name, content=version.content,
        tag=version.tag, notes=version.notes
    )


@router.get("", response_model=VersionListResponse)
async def list_versions(
    resume_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    tag: Optional[str] = None,
    sort_by: VersionSortField = VersionSortField.created_at,
    sort_order: SortOrder = SortOrder.desc,
    user: dict = Depends(get_current_user)
):
    return get_resume_versions_service().get_versions(
        user["user_id"], resume_id, page=page, limit=limit, tag=tag,
        sort_by=sort_by.value, sort_order=sort_order.value
    )


@router.get("/stats", response_model=VersionStatsResponse)
async def version_stats(resume_id: str, user: dict = Depends(get_current_user)):
    return get_resume_versions_service().get_version_stats(user["user_id"], resume_id)


@router.post("/compare")
async def compare_versions(resume_id: str, request: VersionCompareRequest, user: dict = Depends(get_current_user)):
    """Score, size and length differences between two versions."""
    return get_resume_versions_service().compare_versions(
        user["user_id"], resume_id, request.version1_id, request.version2_id
    )


@router.get("/{version_id}", response_model=VersionResponse)
async def get_version(resume_id: str, version_id: str, user: dict = Depends(get_current_user)):
    return get_resume_versions_service().get_version(user["user_id"], resume_id, version_id)


@router.patch("/{version_id}", response_model=VersionResponse)
async def update_version(
    resume_id: str, version_id: str, update: VersionUpdate, user: dict = Depends(get_current_user)
):
    return get_resume_versions_service().update_version(
        user["user_id"], resume_id, version_id, tag=update.tag, notes=update.notes
    )


@router.post("/{version_id}/restore", response_model=VersionResponse, status_code=201)
async def restore_version(resume_id: str, version_id: str, user: dict = Depends(get_current_user)):
    """Copy an old version forward as the newest one and make it the resume's content."""
    return get_resume_versions_service().restore_version(user["user_id"], resume_id, version_id)


@router.delete("/{version_id}", response_model=MessageResponse)
async def delete_version(resume_id: str, version_id: str, user: dict = Depends(get_current_user)):
    get_resume_versions_service().delete_version(user["user_id"], resume_id, version_id)
    return MessageResponse(message="Version deleted")

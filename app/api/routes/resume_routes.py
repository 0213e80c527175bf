"""
Resume Routes

POST /resumes/upload - Upload one resume, queue ATS analysis
POST /resumes/bulk-upload - Upload several resumes as one batch
GET /resumes - List own resumes
GET /resumes/formats - Supported file formats
GET /resumes/{resume_id} - Analysis result for one resume
"""

from typing import List

from fastapi import APIRouter, Depends, File, Query, UploadFile

from app.core.auth import get_current_user
from app.services.resume_analysis_service import get_resume_analysis_service
from app.utils.file_upload import read_upload, get_supported_formats
from app.schemas.schemas import (
    ResumeUploadResponse, BulkUploadResponse, ResumeListResponse, ResumeAnalysisResponse
)

router = APIRouter(prefix="/resumes", tags=["Resumes"])


@router.post("/upload", response_model=ResumeUploadResponse, status_code=202)
async def upload_resume(file: UploadFile = File(...), user: dict = Depends(get_current_user)):
    """
    Upload a resume (PDF/DOCX/TXT).
    
    The file is parsed right away; ATS scoring runs in the background.
    Poll GET /resumes/{resume_id} or the returned job for the result.
    """
    content, file_name, mime_type = await read_upload(file)
    return get_resume_analysis_service().process_upload(user["user_id"], file_name, content, mime_type)


@router.post("/bulk-upload", response_model=BulkUploadResponse, status_code=202)
async def bulk_upload(files: List[UploadFile] = File(...), user: dict = Depends(get_current_user)):
    """Upload several resumes; invalid files are skipped and reported."""
    uploads = []
    for upload in files:
        content = await upload.read()
        mime_type = upload.content_type
        if mime_type == "application/octet-stream":
            mime_type = None
        uploads.append((upload.filename, content, mime_type))
    return get_resume_analysis_service().process_bulk_upload(user["user_id"], uploads)


@router.get("", response_model=ResumeListResponse)
async def list_resumes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user: dict = Depends(get_current_user)
):
    return get_resume_analysis_service().list_resumes(user["user_id"], page, limit)


@router.get("/formats")
async def supported_formats():
    return get_supported_formats()


@router.get("/{resume_id}", response_model=ResumeAnalysisResponse)
async def get_resume_analysis(resume_id: str, user: dict = Depends(get_current_user)):
    return get_resume_analysis_service().get_analysis(resume_id, user["user_id"])

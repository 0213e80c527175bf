"""
API Routes - Combines all route modules into single router.
"""

from fastapi import APIRouter

from app.api.routes.auth_routes import router as auth_router
from app.api.routes.resume_routes import router as resume_router
from app.api.routes.version_routes import router as version_router
from app.api.routes.jd_matching_routes import router as jd_matching_router
from app.api.routes.queue_routes import router as queue_router
from app.api.routes.ai_routes import router as ai_router

# Main API router
api_router = APIRouter()

# Include all sub-routers
api_router.include_router(auth_router)
api_router.include_router(resume_router)
api_router.include_router(version_router)
api_router.include_router(jd_matching_router)
api_router.include_router(queue_router)
api_router.include_router(ai_router)

"""
AI Provider Routes

GET /ai/providers/health - Health of each configured provider
POST /ai/providers/reset - Mark all providers healthy again (admin only)
GET /ai/costs - Daily token/cost usage per provider (admin only)
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from app.core.auth import get_current_user, get_current_admin
from app.services.ai_provider_service import get_ai_provider_service
from app.schemas.schemas import MessageResponse

router = APIRouter(prefix="/ai", tags=["AI Providers"])


@router.get("/providers/health")
async def provider_health(user: dict = Depends(get_current_user)):
    return get_ai_provider_service().get_provider_health()


@router.post("/providers/reset", response_model=MessageResponse)
async def reset_providers(admin: dict = Depends(get_current_admin)):
    get_ai_provider_service().reset_provider_health()
    return MessageResponse(message="Provider health reset")


@router.get("/costs")
async def cost_analytics(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    admin: dict = Depends(get_current_admin)
):
    """Defaults to the last 30 days."""
    return get_ai_provider_service().get_cost_analytics(start_date, end_date)

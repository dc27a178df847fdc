"""
Campaign admin API — analytics, status changes, guarded delete.

Security:
  - Requires an admin API key
  - Delete is refused (409) while any link references the campaign
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.serializers import campaign_json, period_json, progress_json, report_json
from app.core.entities import CampaignStatus
from app.middleware.auth import AuthContext, require_admin_key
from app.models.repository import EventRepository, get_repository
from app.services import campaigns as campaign_service

router = APIRouter(prefix="/v1/campaigns", tags=["campaigns"])


class CampaignStatusRequest(BaseModel):
    status: CampaignStatus


@router.get("/{campaign_id}/analytics")
async def get_campaign_analytics(
    campaign_id: UUID,
    period: str = Query("30d", description="7d, 14d, 30d, 90d or all; anything else means 30d"),
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    result = await campaign_service.campaign_analytics(repo, campaign_id, period)
    analytics = report_json(result.report)
    analytics["progress"] = progress_json(result.progress)
    return {
        "campaign": campaign_json(result.campaign),
        "period": period_json(result.period),
        "analytics": analytics,
    }


@router.patch("/{campaign_id}/status")
async def update_campaign_status(
    campaign_id: UUID,
    req: CampaignStatusRequest,
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    campaign = await campaign_service.change_campaign_status(repo, campaign_id, req.status)
    return {"campaign": campaign_json(campaign)}


@router.delete("/{campaign_id}")
async def delete_campaign(
    campaign_id: UUID,
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    await campaign_service.delete_campaign(repo, campaign_id)
    return {"success": True}

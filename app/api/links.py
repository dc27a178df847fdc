"""
Link analytics API — the campaign rollup scoped to a single tracked link.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.serializers import link_json, period_json, report_json
from app.middleware.auth import AuthContext, require_admin_key
from app.models.repository import EventRepository, get_repository
from app.services.campaigns import link_analytics

router = APIRouter(prefix="/v1/links", tags=["links"])


@router.get("/{link_id}/analytics")
async def get_link_analytics(
    link_id: UUID,
    period: str = Query("30d"),
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    result = await link_analytics(repo, link_id, period)
    return {
        "link": link_json(result.link),
        "period": period_json(result.period),
        "analytics": report_json(result.report),
    }

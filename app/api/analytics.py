"""
Program analytics API — totals across every partner for the admin overview.
"""

from fastapi import APIRouter, Depends, Query

from app.api.serializers import period_json, program_json
from app.core.periods import normalize_period
from app.middleware.auth import AuthContext, require_admin_key
from app.models.repository import EventRepository, get_repository
from app.services.analytics import program_analytics

router = APIRouter(prefix="/v1/analytics", tags=["analytics"])


@router.get("")
async def get_program_analytics(
    period: str = Query("30d", description="7d, 14d, 30d, 90d or all; anything else means 30d"),
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    effective, report = await program_analytics(repo, period)
    body = program_json(report)
    body["period"] = {"key": normalize_period(period), **period_json(effective)}
    return body

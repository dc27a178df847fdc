"""
Conversion API — ingestion + lifecycle.

Security:
  - POST requires any valid key (ingest or admin)
  - status / payout changes require an admin key
  - Amount is validated before anything is looked up or written
"""

import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.serializers import conversion_json
from app.core.entities import PayoutStatus
from app.middleware.auth import AuthContext, require_admin_key, require_ingest_key
from app.models.repository import EventRepository, get_repository
from app.services import conversions as conversion_service

router = APIRouter(prefix="/v1/conversions", tags=["conversions"])


# --- Request schemas ---

class ConversionPayload(BaseModel):
    link_id: UUID | None = None
    short_code: str | None = None
    sale_amount: float | str | None = None
    product_id: UUID | None = None
    order_id: str | None = None
    click_id: UUID | None = None
    converted_at: datetime.datetime | None = None


class ConversionActionRequest(BaseModel):
    action: Literal["approve", "reject", "reverse"]
    notes: str | None = None


class PayoutRequest(BaseModel):
    payout_status: Literal["processing", "paid"]


# --- Endpoints ---

@router.post("", status_code=201)
async def ingest_conversion(
    payload: ConversionPayload,
    auth: AuthContext = Depends(require_ingest_key),
    repo: EventRepository = Depends(get_repository),
):
    conversion = await conversion_service.record_conversion(
        repo,
        link_id=payload.link_id,
        short_code=payload.short_code,
        sale_amount=payload.sale_amount,
        product_id=payload.product_id,
        order_id=payload.order_id,
        click_id=payload.click_id,
        converted_at=payload.converted_at,
    )
    return {"status": "ok", "conversion": conversion_json(conversion)}


@router.patch("/{conversion_id}/status")
async def update_conversion_status(
    conversion_id: UUID,
    req: ConversionActionRequest,
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    conversion = await conversion_service.apply_conversion_action(
        repo, conversion_id, req.action, req.notes,
    )
    return {"conversion": conversion_json(conversion)}


@router.patch("/{conversion_id}/payout")
async def update_payout_status(
    conversion_id: UUID,
    req: PayoutRequest,
    auth: AuthContext = Depends(require_admin_key),
    repo: EventRepository = Depends(get_repository),
):
    conversion = await conversion_service.advance_payout(
        repo, conversion_id, PayoutStatus(req.payout_status),
    )
    return {"conversion": conversion_json(conversion)}

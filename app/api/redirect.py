"""
Click intake endpoint — /go/{short_code}

Flow:
  1. Look up link by short code
  2. Refuse (fallback redirect, nothing recorded) if the link is unknown,
     not active, past expires_at, or its partner is not active
  3. Capture IP, device, country, referrer
  4. Append click event
  5. Set session cookie + per-partner attribution cookie (max-age = window)
  6. 302 to the destination
"""

import uuid
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from app.config import get_settings
from app.core.attribution import attribution_window
from app.core.devices import classify_device
from app.core.entities import Click, LinkStatus, PartnerStatus
from app.models.repository import EventRepository, get_repository

import structlog

logger = structlog.get_logger()
router = APIRouter()


def _get_real_ip(request: Request) -> str | None:
    """Client IP from x-forwarded-for / x-real-ip / socket. Stored verbatim."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


def _country_code(request: Request) -> str | None:
    """Edge-provided country (Cloudflare). No local GeoIP database."""
    code = request.headers.get("cf-ipcountry")
    if not code or code.upper() in ("XX", "T1"):
        return None
    return code.upper()[:2]


def _fallback(reason: str, short_code: str) -> RedirectResponse:
    logger.info("click_refused", short_code=short_code, reason=reason)
    return RedirectResponse(url=get_settings().redirect_fallback_url, status_code=302)


@router.get("/go/{short_code}")
async def redirect_click(
    request: Request,
    short_code: str,
    repo: EventRepository = Depends(get_repository),
):
    settings = get_settings()
    now = datetime.now(timezone.utc)

    # --- 1. Look up link ---
    link = await repo.get_link_by_short_code(short_code)
    if link is None:
        return _fallback("unknown_link", short_code)

    # --- 2. Eligibility ---
    if link.status != LinkStatus.ACTIVE:
        return _fallback("link_inactive", short_code)
    if link.is_expired_at(now):
        return _fallback("link_expired", short_code)

    partner = await repo.get_partner(link.partner_id)
    if partner is None or partner.status != PartnerStatus.ACTIVE:
        return _fallback("partner_inactive", short_code)

    # --- 3. Visitor ---
    session_id = request.cookies.get(settings.session_cookie_name)
    new_session = not session_id
    if new_session:
        session_id = uuid.uuid4().hex

    ua = request.headers.get("user-agent")
    click = Click(
        id=uuid.uuid4(),
        link_id=link.id,
        clicked_at=now,
        ip_address=_get_real_ip(request),
        device_type=classify_device(ua).value,
        country_code=_country_code(request),
        referrer=request.headers.get("referer") or None,
        session_id=session_id,
        user_agent=ua,
    )

    # --- 4. Append ---
    await repo.add_click(click)

    logger.info("click_recorded",
                click_id=str(click.id),
                short_code=short_code,
                link_id=str(link.id),
                device=click.device_type,
                country=click.country_code,
                new_session=new_session)

    # --- 5. Cookies + redirect ---
    response = RedirectResponse(url=link.destination_url, status_code=302)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session_id,
        max_age=settings.session_cookie_max_age,
        path="/",
        samesite="lax",
        secure=not settings.debug,
        httponly=True,
    )
    response.set_cookie(
        key=f"cl_partner_{partner.id.hex}",
        value=str(click.id),
        max_age=int(attribution_window(link, partner).total_seconds()),
        path="/",
        samesite="lax",
        secure=not settings.debug,
        httponly=True,
    )
    return response

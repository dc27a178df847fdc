"""
Conversion finalization — attribution + commission + persistence.

record_conversion() is the only way a conversion enters the store. The
amount is validated before any lookup, the commission is computed once here
and never again; analytics only ever sums what was written.

Idempotency: order_id, when given, is unique per partner. Conversions
without one are not deduplicated (at-least-once from the caller's side).
"""

import datetime
from uuid import UUID, uuid4

from app.config import get_settings
from app.core.attribution import resolve
from app.core.commission import ZERO, compute_commission, validate_sale_amount
from app.core.entities import Conversion, ConversionStatus, Link, PayoutStatus
from app.core.errors import DuplicateConversion, MissingOrderId, NotFound
from app.core.lifecycle import CONVERSION_ACTIONS, next_conversion_status, next_payout_status
from app.models.repository import EventRepository

import structlog

logger = structlog.get_logger()


async def _load_link(
    repo: EventRepository,
    link_id: UUID | None,
    short_code: str | None,
) -> Link:
    link = None
    if link_id is not None:
        link = await repo.get_link(link_id)
    elif short_code:
        link = await repo.get_link_by_short_code(short_code)
    if link is None:
        raise NotFound("link", link_id or short_code)
    return link


async def record_conversion(
    repo: EventRepository,
    *,
    link_id: UUID | None = None,
    short_code: str | None = None,
    sale_amount=None,
    product_id: UUID | None = None,
    order_id: str | None = None,
    click_id: UUID | None = None,
    converted_at: datetime.datetime | None = None,
) -> Conversion:
    amount = validate_sale_amount(sale_amount)
    if get_settings().require_order_id and not order_id:
        raise MissingOrderId()

    converted_at = converted_at or datetime.datetime.now(datetime.timezone.utc)
    if converted_at.tzinfo is None:
        converted_at = converted_at.replace(tzinfo=datetime.timezone.utc)

    link = await _load_link(repo, link_id, short_code)
    partner = await repo.get_partner(link.partner_id)
    if partner is None:
        raise NotFound("partner", link.partner_id)

    if order_id:
        existing = await repo.find_conversion_by_order(partner.id, order_id)
        if existing is not None:
            logger.info("conversion_duplicate", order_id=order_id, conversion_id=str(existing.id))
            raise DuplicateConversion(order_id, existing.id)

    product_id = product_id or link.product_id
    product = None
    if product_id is not None:
        product = await repo.get_product(product_id)
        if product is None:
            raise NotFound("product", product_id)

    campaign = None
    if link.campaign_id is not None:
        campaign = await repo.get_campaign(link.campaign_id)

    clicks = None
    if click_id is not None:
        click = await repo.get_click(click_id)
        if click is None or click.link_id != link.id:
            raise NotFound("click", click_id)
        clicks = [click]

    result = resolve(converted_at, link, partner, campaign, clicks)

    if result.attributed:
        bonus_campaign = campaign if campaign is not None and campaign.is_running_at(converted_at) else None
        commission = compute_commission(amount, partner, bonus_campaign, product)
        status = ConversionStatus.PENDING
    else:
        commission = ZERO
        status = ConversionStatus.REJECTED

    conversion = Conversion(
        id=uuid4(),
        link_id=link.id,
        partner_id=partner.id,
        converted_at=converted_at,
        commission_amount=commission,
        sale_amount=amount,
        product_id=product_id,
        click_id=click_id,
        order_id=order_id,
        status=status,
        attributed=result.attributed,
        counts_toward_targets=result.counts_toward_targets,
        notes=result.reason,
    )
    await repo.add_conversion(conversion)

    if result.attributed:
        logger.info("conversion_recorded",
                    conversion_id=str(conversion.id),
                    link_id=str(link.id),
                    partner_id=str(partner.id),
                    sale_amount=str(amount) if amount is not None else None,
                    commission=str(commission),
                    counts_toward_targets=result.counts_toward_targets,
                    reason=result.reason)
    else:
        logger.warning("conversion_not_attributed",
                       conversion_id=str(conversion.id),
                       link_id=str(link.id),
                       reason=result.reason)
    return conversion


async def _load_conversion(repo: EventRepository, conversion_id: UUID) -> Conversion:
    conversion = await repo.get_conversion(conversion_id)
    if conversion is None:
        raise NotFound("conversion", conversion_id)
    return conversion


async def apply_conversion_action(
    repo: EventRepository,
    conversion_id: UUID,
    action: str,
    notes: str | None = None,
) -> Conversion:
    """approve / reject / reverse. Amounts are untouched."""
    conversion = await _load_conversion(repo, conversion_id)
    target = CONVERSION_ACTIONS[action]
    conversion.status = next_conversion_status(conversion.status, target, conversion.payout_status)
    if notes is not None:
        conversion.notes = notes
    await repo.save_conversion_state(conversion)

    logger.info("conversion_status_changed",
                conversion_id=str(conversion_id), action=action, status=conversion.status.value)
    return conversion


async def advance_payout(
    repo: EventRepository,
    conversion_id: UUID,
    target: PayoutStatus,
) -> Conversion:
    conversion = await _load_conversion(repo, conversion_id)
    conversion.payout_status = next_payout_status(
        conversion.payout_status, target, conversion.status,
    )
    await repo.save_conversion_state(conversion)

    logger.info("conversion_payout_advanced",
                conversion_id=str(conversion_id), payout_status=conversion.payout_status.value)
    return conversion

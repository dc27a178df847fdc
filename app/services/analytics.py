"""
Program-wide analytics: every partner, one period.

Pending / processing / paid commission are the live payout position and are
not restricted to the requested period.
"""

import datetime

from app.core.analytics import Period, ProgramReport, summarize_program
from app.core.periods import EPOCH, requested_range
from app.models.repository import EventRepository

import structlog

logger = structlog.get_logger()


async def program_analytics(
    repo: EventRepository,
    period: str | None = None,
    now: datetime.datetime | None = None,
) -> tuple[Period, ProgramReport]:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    effective = requested_range(period, now, floor=EPOCH)

    clicks = await repo.list_all_clicks(effective.start, effective.end)
    conversions = await repo.list_all_conversions(effective.start, effective.end)
    links = await repo.get_links({c.link_id for c in clicks})
    partner_ids = {c.partner_id for c in conversions} | {l.partner_id for l in links.values()}
    partner_names = await repo.partner_names(partner_ids)
    payout_totals = await repo.approved_commission_by_payout()

    report = summarize_program(
        clicks,
        conversions,
        effective,
        link_partners={link_id: link.partner_id for link_id, link in links.items()},
        partner_names=partner_names,
        payout_totals=payout_totals,
    )

    logger.info("program_analytics",
                period=period,
                clicks=report.overview.total_clicks,
                conversions=report.overview.total_conversions,
                partners=len(report.top_partners))
    return effective, report

"""
Campaign read-side analytics + administrative lifecycle.

Analytics are a snapshot read: no locking, concurrent writes may or may not
be visible. Every query is bounded by an explicit period.
"""

import datetime
from dataclasses import dataclass, field
from uuid import UUID

from app.core.analytics import AnalyticsReport, Period, aggregate
from app.core.entities import Campaign, CampaignStatus, Link
from app.core.errors import DeletionConflict, NotFound
from app.core.lifecycle import next_campaign_status
from app.core.periods import campaign_range, requested_range
from app.core.progress import CampaignProgress, compute_progress
from app.models.repository import EventRepository

import structlog

logger = structlog.get_logger()


@dataclass
class CampaignAnalytics:
    campaign: Campaign
    period: Period
    report: AnalyticsReport = field(default_factory=AnalyticsReport)
    progress: CampaignProgress = field(default_factory=CampaignProgress)


@dataclass
class LinkAnalytics:
    link: Link
    period: Period
    report: AnalyticsReport = field(default_factory=AnalyticsReport)


async def _load_campaign(repo: EventRepository, campaign_id: UUID) -> Campaign:
    campaign = await repo.get_campaign(campaign_id)
    if campaign is None:
        raise NotFound("campaign", campaign_id)
    return campaign


async def _report_for_links(repo: EventRepository, links: list[Link], period: Period) -> AnalyticsReport:
    if not links or period.is_empty:
        return AnalyticsReport()

    link_ids = [link.id for link in links]
    clicks = await repo.list_clicks(link_ids, period.start, period.end)
    conversions = await repo.list_conversions(link_ids, period.start, period.end)
    product_names = await repo.product_names({c.product_id for c in conversions if c.product_id})

    return aggregate(
        clicks,
        conversions,
        period,
        link_ids=link_ids,
        links={link.id: link for link in links},
        product_names=product_names,
    )


async def campaign_analytics(
    repo: EventRepository,
    campaign_id: UUID,
    period: str | None = None,
    now: datetime.datetime | None = None,
) -> CampaignAnalytics:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    campaign = await _load_campaign(repo, campaign_id)
    effective = campaign_range(campaign, period, now)

    links = await repo.list_campaign_links(campaign_id)
    report = await _report_for_links(repo, links, effective)

    logger.info("campaign_analytics",
                campaign_id=str(campaign_id),
                period=period,
                links=len(links),
                clicks=report.overview.total_clicks,
                conversions=report.overview.total_conversions)

    return CampaignAnalytics(
        campaign=campaign,
        period=effective,
        report=report,
        progress=compute_progress(campaign, report.overview),
    )


async def link_analytics(
    repo: EventRepository,
    link_id: UUID,
    period: str | None = None,
    now: datetime.datetime | None = None,
) -> LinkAnalytics:
    now = now or datetime.datetime.now(datetime.timezone.utc)
    link = await repo.get_link(link_id)
    if link is None:
        raise NotFound("link", link_id)

    effective = requested_range(period, now, floor=link.created_at)
    report = await _report_for_links(repo, [link], effective)
    return LinkAnalytics(link=link, period=effective, report=report)


async def change_campaign_status(
    repo: EventRepository,
    campaign_id: UUID,
    status: CampaignStatus,
) -> Campaign:
    campaign = await _load_campaign(repo, campaign_id)
    previous = campaign.status
    campaign.status = next_campaign_status(previous, status)
    await repo.set_campaign_status(campaign_id, campaign.status)

    logger.info("campaign_status_changed",
                campaign_id=str(campaign_id), previous=previous.value, status=campaign.status.value)
    return campaign


async def delete_campaign(repo: EventRepository, campaign_id: UUID) -> None:
    """Hard delete, only for campaigns no link references. Never cascades."""
    await _load_campaign(repo, campaign_id)
    links_count = await repo.count_campaign_links(campaign_id)
    if links_count > 0:
        logger.warning("campaign_delete_rejected", campaign_id=str(campaign_id), links=links_count)
        raise DeletionConflict(links_count)

    await repo.delete_campaign(campaign_id)
    logger.info("campaign_deleted", campaign_id=str(campaign_id))

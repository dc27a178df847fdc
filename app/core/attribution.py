"""
Attribution resolver — decides whether a conversion is billable to a link.

Two modes:

  1. Click-correlated: the conversion names the click it came from (or the
     caller passes the link's prior clicks). Billable iff the latest click at
     or before the conversion is within the attribution window:
         converted_at - last_click_at <= window

  2. Link-level (no per-click data persisted with the conversion): every
     conversion submitted against a link is attributed to that link.

In both modes, a conversion recorded after the link's expires_at, or outside
the campaign's [start_date, end_date], is still attributed (it counts toward
raw totals) but is flagged so it does not count toward campaign targets.
"""

import datetime
from dataclasses import dataclass
from typing import Iterable

from app.config import get_settings
from app.core.entities import Campaign, Click, Link, Partner


@dataclass(frozen=True)
class AttributionResult:
    attributed: bool
    counts_toward_targets: bool
    reason: str | None = None
    last_click_at: datetime.datetime | None = None


def attribution_window(link: Link, partner: Partner | None = None) -> datetime.timedelta:
    """Cookie duration: link override, else partner, else the configured default."""
    days = link.attribution_window_days
    if days is None and partner is not None:
        days = partner.cookie_duration_days
    if days is None:
        days = get_settings().default_attribution_window_days
    return datetime.timedelta(days=days)


def last_qualifying_click(
    converted_at: datetime.datetime,
    link: Link,
    clicks: Iterable[Click],
) -> Click | None:
    """Most recent click on `link` at or before `converted_at`. Single pass."""
    latest = None
    for click in clicks:
        if click.link_id != link.id or click.clicked_at > converted_at:
            continue
        if latest is None or click.clicked_at > latest.clicked_at:
            latest = click
    return latest


def _target_exclusion(
    converted_at: datetime.datetime,
    link: Link,
    campaign: Campaign | None,
) -> str | None:
    if link.is_expired_at(converted_at):
        return "link_expired"
    if campaign is not None:
        if converted_at < campaign.start_date:
            return "before_campaign_start"
        if campaign.end_date is not None and converted_at > campaign.end_date:
            return "after_campaign_end"
    return None


def resolve(
    converted_at: datetime.datetime,
    link: Link,
    partner: Partner | None = None,
    campaign: Campaign | None = None,
    clicks: Iterable[Click] | None = None,
) -> AttributionResult:
    """Attribute a conversion to `link`.

    Pass `clicks` only when per-click correlation exists; None means the
    link-level rule applies.
    """
    last_click_at = None

    if clicks is not None:
        click = last_qualifying_click(converted_at, link, clicks)
        if click is None:
            return AttributionResult(
                attributed=False, counts_toward_targets=False, reason="no_prior_click",
            )
        last_click_at = click.clicked_at
        if converted_at - last_click_at > attribution_window(link, partner):
            return AttributionResult(
                attributed=False,
                counts_toward_targets=False,
                reason="outside_attribution_window",
                last_click_at=last_click_at,
            )

    exclusion = _target_exclusion(converted_at, link, campaign)
    return AttributionResult(
        attributed=True,
        counts_toward_targets=exclusion is None,
        reason=exclusion,
        last_click_at=last_click_at,
    )

"""
Period keywords → concrete [start, end] ranges.

  7d / 14d / 30d / 90d  → the last N days ending now
  all                   → from the floor (campaign start, link creation)
  anything else         → the configured default (30d)

For campaigns the range is then intersected with
[start_date, end_date ?? now]. A campaign that has not started yet yields
an inverted range, which the aggregator turns into the empty report.
"""

import datetime

from app.config import get_settings
from app.core.analytics import Period
from app.core.entities import Campaign

PERIOD_DAYS: dict[str, int] = {"7d": 7, "14d": 14, "30d": 30, "90d": 90}
ALL = "all"
EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)  # floor of "all" with no owner


def normalize_period(period: str | None) -> str:
    if period in PERIOD_DAYS or period == ALL:
        return period
    fallback = get_settings().default_analytics_period
    return fallback if fallback in PERIOD_DAYS else "30d"


def requested_range(
    period: str | None,
    now: datetime.datetime,
    floor: datetime.datetime | None = None,
) -> Period:
    key = normalize_period(period)
    if key == ALL:
        return Period(start=floor if floor is not None else now, end=now)
    return Period(start=now - datetime.timedelta(days=PERIOD_DAYS[key]), end=now)


def campaign_range(campaign: Campaign, period: str | None, now: datetime.datetime) -> Period:
    """Requested period ∩ [campaign.start_date, campaign.end_date ?? now]."""
    requested = requested_range(period, now, floor=campaign.start_date)
    end_cap = campaign.end_date if campaign.end_date is not None else now
    return Period(
        start=max(requested.start, campaign.start_date),
        end=min(requested.end, end_cap),
    )

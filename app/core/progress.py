"""
Campaign progress against declared targets.

An entry exists only when the campaign sets that target. Percentages are
rounded half-up to whole numbers and never clamped: 137 of 100 is 137%.
Conversions recorded after their link expired are excluded here even though
they appear in the raw totals.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from app.core.analytics import Overview
from app.core.entities import Campaign


@dataclass(frozen=True)
class TargetProgress:
    current: int | Decimal
    target: int | Decimal
    percentage: int


@dataclass(frozen=True)
class CampaignProgress:
    clicks: TargetProgress | None = None
    conversions: TargetProgress | None = None
    revenue: TargetProgress | None = None


def percentage_of(current, target) -> int:
    """round(current / target * 100), 0 when target is zero."""
    target = Decimal(target)
    if target == 0:
        return 0
    value = Decimal(current) * 100 / target
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _entry(current, target) -> TargetProgress | None:
    if target is None:
        return None
    return TargetProgress(current=current, target=target, percentage=percentage_of(current, target))


def compute_progress(campaign: Campaign, overview: Overview) -> CampaignProgress:
    return CampaignProgress(
        clicks=_entry(overview.total_clicks, campaign.target_clicks),
        conversions=_entry(overview.target_conversions, campaign.target_conversions),
        revenue=_entry(overview.target_revenue, campaign.target_revenue),
    )

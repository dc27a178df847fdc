"""
Analytics aggregator — pure read-side rollups over already-fetched events.

Input: clicks + conversions for a link set, an inclusive [start, end] period,
and name lookups for links/products. Output: overview totals, sparse daily
series (UTC days, no zero-filled gaps), categorical breakdowns and top-N
tables.

summarize_program() is the program-wide variant: every partner, approved money
only, plus the all-time payout position.

Nothing here touches storage or recomputes commission: totals are sums of
the stored amounts, so historical reports stay reproducible. Running
aggregate() twice over the same input yields the same report.
"""

import datetime
from collections import Counter
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Iterable, Mapping, TypeVar
from uuid import UUID

from app.config import get_settings
from app.core.commission import ZERO, round_money
from app.core.dedupe import ClickScope, unique_count
from app.core.entities import Click, Conversion, ConversionStatus, Link, PayoutStatus

UNKNOWN = "Unknown"
DIRECT = "Direct"

E = TypeVar("E")
A = TypeVar("A")


# ---------------------------------------------------------------------------
# Report shapes
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Period:
    start: datetime.datetime
    end: datetime.datetime

    @property
    def is_empty(self) -> bool:
        return self.start > self.end

    @property
    def days(self) -> int:
        if self.is_empty:
            return 0
        seconds = (self.end - self.start).total_seconds()
        return -int(-seconds // 86400)  # ceil

    def contains(self, moment: datetime.datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass
class Overview:
    total_clicks: int = 0
    unique_clicks: int = 0
    total_conversions: int = 0
    total_revenue: Decimal = ZERO
    total_commission: Decimal = ZERO
    conversion_rate: float = 0.0
    average_order_value: Decimal = ZERO
    # subset eligible for campaign-target progress (excludes post-expiry conversions)
    target_conversions: int = 0
    target_revenue: Decimal = ZERO


@dataclass(frozen=True)
class DailyClicks:
    date: datetime.date
    count: int


@dataclass(frozen=True)
class DailyConversions:
    date: datetime.date
    count: int
    revenue: Decimal


@dataclass(frozen=True)
class BreakdownEntry:
    key: str
    count: int
    percentage: float


@dataclass(frozen=True)
class ProductPerformance:
    product_id: UUID | None
    product_name: str
    conversions: int
    revenue: Decimal


@dataclass(frozen=True)
class LinkPerformance:
    link_id: UUID
    short_code: str
    name: str
    clicks: int


@dataclass
class AnalyticsReport:
    overview: Overview = field(default_factory=Overview)
    clicks_over_time: list[DailyClicks] = field(default_factory=list)
    conversions_over_time: list[DailyConversions] = field(default_factory=list)
    device_breakdown: list[BreakdownEntry] = field(default_factory=list)
    country_breakdown: list[BreakdownEntry] = field(default_factory=list)
    referrer_breakdown: list[BreakdownEntry] = field(default_factory=list)
    top_products: list[ProductPerformance] = field(default_factory=list)
    top_links: list[LinkPerformance] = field(default_factory=list)


@dataclass(frozen=True)
class AnalyticsLimits:
    devices: int = 5
    countries: int = 10
    referrers: int = 10
    products: int = 10
    links: int = 10

    @classmethod
    def from_settings(cls) -> "AnalyticsLimits":
        settings = get_settings()
        return cls(
            devices=settings.device_breakdown_limit,
            countries=settings.country_breakdown_limit,
            referrers=settings.referrer_breakdown_limit,
            products=settings.top_products_limit,
            links=settings.top_links_limit,
        )


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def utc_day(moment: datetime.datetime) -> datetime.date:
    """Calendar day in UTC. Naive timestamps are taken to already be UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(datetime.timezone.utc)
    return moment.date()


def bucket_by_day(
    events: Iterable[E],
    timestamp: Callable[[E], datetime.datetime],
    fold: Callable[[A, E], A],
    initial: A,
) -> dict[datetime.date, A]:
    """Group events into {utc_day: accumulator}, ordered by day. Sparse."""
    buckets: dict[datetime.date, A] = {}
    for event in events:
        day = utc_day(timestamp(event))
        buckets[day] = fold(buckets.get(day, initial), event)
    return dict(sorted(buckets.items()))


def apportion_percentages(counts: list[int], total: int) -> list[float]:
    """Percentages at one decimal that never over-allocate.

    Largest-remainder on tenths of a percent: if `counts` covers every event
    the result sums to exactly 100.0, and any prefix sums to at most 100.0.
    """
    if total <= 0:
        return [0.0 for _ in counts]
    scaled = [count * 1000 for count in counts]
    floors = [s // total for s in scaled]
    remainders = [s % total for s in scaled]
    extra = sum(scaled) // total - sum(floors)
    by_remainder = sorted(range(len(counts)), key=lambda i: -remainders[i])
    for i in by_remainder[:extra]:
        floors[i] += 1
    return [tenths / 10 for tenths in floors]


def breakdown(labels: Iterable[str], total: int, limit: int) -> list[BreakdownEntry]:
    """Count per label, sorted by count desc (label asc on ties), top `limit`.

    Percentages come from apportion_percentages(), so an entry may sit one
    tenth above or below its plainly rounded count/total×100 (three equal
    labels give 33.4, 33.3, 33.3) to keep the column summing to 100.
    """
    counts = Counter(labels)
    ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    percentages = apportion_percentages([count for _, count in ordered], total)
    return [
        BreakdownEntry(key=label, count=count, percentage=pct)
        for (label, count), pct in zip(ordered, percentages)
    ][:limit]


def _rate(numerator: int, denominator: int) -> float:
    if denominator <= 0:
        return 0.0
    value = Decimal(numerator) * 100 / Decimal(denominator)
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def build_overview(clicks: list[Click], conversions: list[Conversion]) -> Overview:
    total_clicks = len(clicks)
    total_conversions = len(conversions)
    total_revenue = sum((c.sale_amount or ZERO for c in conversions), ZERO)
    total_commission = sum((c.commission_amount for c in conversions), ZERO)
    eligible = [c for c in conversions if c.counts_toward_targets]

    return Overview(
        total_clicks=total_clicks,
        unique_clicks=unique_count(clicks),
        total_conversions=total_conversions,
        total_revenue=total_revenue,
        total_commission=total_commission,
        conversion_rate=_rate(total_conversions, total_clicks),
        average_order_value=(
            round_money(total_revenue / total_conversions) if total_conversions else ZERO
        ),
        target_conversions=len(eligible),
        target_revenue=sum((c.sale_amount or ZERO for c in eligible), ZERO),
    )


def top_products(
    conversions: list[Conversion],
    product_names: Mapping[UUID, str],
    limit: int,
) -> list[ProductPerformance]:
    grouped: dict[UUID | None, tuple[int, Decimal]] = {}
    for conv in conversions:
        count, revenue = grouped.get(conv.product_id, (0, ZERO))
        grouped[conv.product_id] = (count + 1, revenue + (conv.sale_amount or ZERO))

    rows = [
        ProductPerformance(
            product_id=pid,
            product_name=product_names.get(pid, UNKNOWN) if pid is not None else UNKNOWN,
            conversions=count,
            revenue=revenue,
        )
        for pid, (count, revenue) in grouped.items()
    ]
    rows.sort(key=lambda r: (-r.revenue, -r.conversions, str(r.product_id)))
    return rows[:limit]


def top_links(
    clicks: list[Click],
    links: Mapping[UUID, Link],
    limit: int,
) -> list[LinkPerformance]:
    counts = Counter(click.link_id for click in clicks)
    rows = []
    for link_id, count in counts.items():
        link = links.get(link_id)
        if link is None:
            rows.append(LinkPerformance(link_id=link_id, short_code="", name=UNKNOWN, clicks=count))
        else:
            rows.append(LinkPerformance(
                link_id=link_id,
                short_code=link.short_code,
                name=link.name or link.short_code,
                clicks=count,
            ))
    rows.sort(key=lambda r: (-r.clicks, r.short_code, str(r.link_id)))
    return rows[:limit]


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def aggregate(
    clicks: Iterable[Click],
    conversions: Iterable[Conversion],
    period: Period,
    link_ids: Iterable[UUID] | None = None,
    links: Mapping[UUID, Link] | None = None,
    product_names: Mapping[UUID, str] | None = None,
    limits: AnalyticsLimits | None = None,
) -> AnalyticsReport:
    """Roll up events for `link_ids` within `period` (inclusive both ends).

    An inverted period (start after end) or an empty link set gives the
    zeroed report, never an error. Non-attributed conversions are ignored.
    """
    if period.is_empty:
        return AnalyticsReport()

    limits = limits or AnalyticsLimits.from_settings()
    links = links or {}
    product_names = product_names or {}
    scope = ClickScope(
        link_ids=frozenset(link_ids) if link_ids is not None else None,
        start=period.start,
        end=period.end,
    )

    clicks = [c for c in clicks if scope.contains(c)]
    conversions = [
        c for c in conversions
        if c.attributed
        and period.contains(c.converted_at)
        and (scope.link_ids is None or c.link_id in scope.link_ids)
    ]

    overview = build_overview(clicks, conversions)
    total = overview.total_clicks

    clicks_by_day = bucket_by_day(clicks, lambda c: c.clicked_at, lambda n, _: n + 1, 0)
    conversions_by_day = bucket_by_day(
        conversions,
        lambda c: c.converted_at,
        lambda acc, c: (acc[0] + 1, acc[1] + (c.sale_amount or ZERO)),
        (0, ZERO),
    )

    return AnalyticsReport(
        overview=overview,
        clicks_over_time=[DailyClicks(date=d, count=n) for d, n in clicks_by_day.items()],
        conversions_over_time=[
            DailyConversions(date=d, count=n, revenue=rev)
            for d, (n, rev) in conversions_by_day.items()
        ],
        device_breakdown=breakdown(
            (c.device_type or UNKNOWN for c in clicks), total, limits.devices,
        ),
        country_breakdown=breakdown(
            (c.country_code or UNKNOWN for c in clicks), total, limits.countries,
        ),
        referrer_breakdown=breakdown(
            (c.referrer or DIRECT for c in clicks), total, limits.referrers,
        ),
        top_products=top_products(conversions, product_names, limits.products),
        top_links=top_links(clicks, links, limits.links),
    )


# ---------------------------------------------------------------------------
# Program-wide summary (every partner)
# ---------------------------------------------------------------------------

@dataclass
class ProgramOverview:
    total_clicks: int = 0
    total_conversions: int = 0
    approved_revenue: Decimal = ZERO
    approved_commission: Decimal = ZERO
    # all-time, approved conversions only
    pending_commission: Decimal = ZERO
    processing_commission: Decimal = ZERO
    paid_commission: Decimal = ZERO
    conversion_rate: float = 0.0


@dataclass(frozen=True)
class PartnerPerformance:
    partner_id: UUID
    name: str
    clicks: int
    conversions: int
    revenue: Decimal
    commission: Decimal


@dataclass
class ProgramReport:
    overview: ProgramOverview = field(default_factory=ProgramOverview)
    clicks_over_time: list[DailyClicks] = field(default_factory=list)
    conversions_over_time: list[DailyConversions] = field(default_factory=list)
    top_partners: list[PartnerPerformance] = field(default_factory=list)


def top_partners(
    clicks: list[Click],
    conversions: list[Conversion],
    link_partners: Mapping[UUID, UUID],
    partner_names: Mapping[UUID, str],
    limit: int,
) -> list[PartnerPerformance]:
    """Partners with activity in the period, by conversions then approved revenue.

    Clicks reach a partner through their link; a click whose link cannot be
    resolved is left out of the per-partner counts.
    """
    click_counts = Counter(
        link_partners[c.link_id] for c in clicks if c.link_id in link_partners
    )
    conversion_counts = Counter(c.partner_id for c in conversions)
    approved: dict[UUID, tuple[Decimal, Decimal]] = {}
    for conv in conversions:
        if conv.status != ConversionStatus.APPROVED:
            continue
        revenue, commission = approved.get(conv.partner_id, (ZERO, ZERO))
        approved[conv.partner_id] = (
            revenue + (conv.sale_amount or ZERO),
            commission + conv.commission_amount,
        )

    rows = []
    for partner_id in set(click_counts) | set(conversion_counts):
        revenue, commission = approved.get(partner_id, (ZERO, ZERO))
        rows.append(PartnerPerformance(
            partner_id=partner_id,
            name=partner_names.get(partner_id, UNKNOWN),
            clicks=click_counts[partner_id],
            conversions=conversion_counts[partner_id],
            revenue=revenue,
            commission=commission,
        ))
    rows.sort(key=lambda r: (-r.conversions, -r.revenue, -r.clicks, str(r.partner_id)))
    return rows[:limit]


def summarize_program(
    clicks: Iterable[Click],
    conversions: Iterable[Conversion],
    period: Period,
    link_partners: Mapping[UUID, UUID] | None = None,
    partner_names: Mapping[UUID, str] | None = None,
    payout_totals: Mapping[PayoutStatus, Decimal] | None = None,
    limit: int | None = None,
) -> ProgramReport:
    """Roll up every partner's events within `period`.

    `payout_totals` is approved commission per payout status over all time;
    it is reported as-is and not filtered by the period.
    """
    payout_totals = payout_totals or {}
    overview = ProgramOverview(
        pending_commission=payout_totals.get(PayoutStatus.UNPAID, ZERO),
        processing_commission=payout_totals.get(PayoutStatus.PROCESSING, ZERO),
        paid_commission=payout_totals.get(PayoutStatus.PAID, ZERO),
    )
    if period.is_empty:
        return ProgramReport(overview=overview)

    limit = limit if limit is not None else get_settings().top_partners_limit
    clicks = [c for c in clicks if period.contains(c.clicked_at)]
    conversions = [c for c in conversions if c.attributed and period.contains(c.converted_at)]
    approved = [c for c in conversions if c.status == ConversionStatus.APPROVED]

    overview.total_clicks = len(clicks)
    overview.total_conversions = len(conversions)
    overview.approved_revenue = sum((c.sale_amount or ZERO for c in approved), ZERO)
    overview.approved_commission = sum((c.commission_amount for c in approved), ZERO)
    overview.conversion_rate = _rate(len(conversions), len(clicks))

    clicks_by_day = bucket_by_day(clicks, lambda c: c.clicked_at, lambda n, _: n + 1, 0)
    conversions_by_day = bucket_by_day(
        conversions,
        lambda c: c.converted_at,
        lambda acc, c: (acc[0] + 1, acc[1] + (c.sale_amount or ZERO)),
        (0, ZERO),
    )

    return ProgramReport(
        overview=overview,
        clicks_over_time=[DailyClicks(date=d, count=n) for d, n in clicks_by_day.items()],
        conversions_over_time=[
            DailyConversions(date=d, count=n, revenue=rev)
            for d, (n, rev) in conversions_by_day.items()
        ],
        top_partners=top_partners(
            clicks, conversions, link_partners or {}, partner_names or {}, limit,
        ),
    )

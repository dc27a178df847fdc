"""
JSON shapes for analytics responses.

Internal money is Decimal; the admin UI expects plain JSON numbers, so the
conversion happens here at the HTTP edge and nowhere else.
"""

import datetime
from decimal import Decimal

from app.core.analytics import AnalyticsReport, Period, ProgramReport
from app.core.entities import Campaign, Conversion, Link
from app.core.progress import CampaignProgress, TargetProgress


def money(value: Decimal | None) -> float | None:
    return float(value) if value is not None else None


def iso(value: datetime.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def period_json(period: Period) -> dict:
    return {"start": iso(period.start), "end": iso(period.end), "days": period.days}


def campaign_json(campaign: Campaign) -> dict:
    return {
        "id": str(campaign.id),
        "name": campaign.name,
        "status": campaign.status.value,
        "startDate": iso(campaign.start_date),
        "endDate": iso(campaign.end_date),
        "bonusCommissionRate": money(campaign.bonus_commission_rate),
    }


def link_json(link: Link) -> dict:
    return {
        "id": str(link.id),
        "shortCode": link.short_code,
        "name": link.name,
        "status": link.status.value,
        "expiresAt": iso(link.expires_at),
    }


def _target_json(entry: TargetProgress) -> dict:
    current, target = entry.current, entry.target
    if isinstance(current, Decimal):
        current = money(current)
    if isinstance(target, Decimal):
        target = money(target)
    return {"current": current, "target": target, "percentage": entry.percentage}


def progress_json(progress: CampaignProgress) -> dict:
    """Only targets the campaign declares appear."""
    out = {}
    for name in ("clicks", "conversions", "revenue"):
        entry = getattr(progress, name)
        if entry is not None:
            out[name] = _target_json(entry)
    return out


def report_json(report: AnalyticsReport) -> dict:
    o = report.overview
    return {
        "overview": {
            "totalClicks": o.total_clicks,
            "uniqueClicks": o.unique_clicks,
            "conversions": o.total_conversions,
            "revenue": money(o.total_revenue),
            "commission": money(o.total_commission),
            "conversionRate": o.conversion_rate,
            "averageOrderValue": money(o.average_order_value),
        },
        "charts": {
            "clicksOverTime": [
                {"date": d.date.isoformat(), "count": d.count} for d in report.clicks_over_time
            ],
            "conversionsOverTime": [
                {"date": d.date.isoformat(), "count": d.count, "revenue": money(d.revenue)}
                for d in report.conversions_over_time
            ],
            "deviceBreakdown": [
                {"device": e.key, "count": e.count, "percentage": e.percentage}
                for e in report.device_breakdown
            ],
            "countryBreakdown": [
                {"country": e.key, "count": e.count, "percentage": e.percentage}
                for e in report.country_breakdown
            ],
            "referrerBreakdown": [
                {"referrer": e.key, "count": e.count, "percentage": e.percentage}
                for e in report.referrer_breakdown
            ],
        },
        "topProducts": [
            {
                "productId": str(p.product_id) if p.product_id else None,
                "productName": p.product_name,
                "conversions": p.conversions,
                "revenue": money(p.revenue),
            }
            for p in report.top_products
        ],
        "topLinks": [
            {"linkId": str(l.link_id), "shortCode": l.short_code, "name": l.name, "clicks": l.clicks}
            for l in report.top_links
        ],
    }


def conversion_json(conversion: Conversion) -> dict:
    return {
        "id": str(conversion.id),
        "linkId": str(conversion.link_id),
        "partnerId": str(conversion.partner_id),
        "productId": str(conversion.product_id) if conversion.product_id else None,
        "orderId": conversion.order_id,
        "convertedAt": iso(conversion.converted_at),
        "saleAmount": money(conversion.sale_amount),
        "commissionAmount": money(conversion.commission_amount),
        "status": conversion.status.value,
        "payoutStatus": conversion.payout_status.value,
        "attributed": conversion.attributed,
        "countsTowardTargets": conversion.counts_toward_targets,
        "notes": conversion.notes,
    }


def program_json(report: ProgramReport) -> dict:
    o = report.overview
    return {
        "overview": {
            "totalClicks": o.total_clicks,
            "totalConversions": o.total_conversions,
            "totalRevenue": money(o.approved_revenue),
            "totalCommission": money(o.approved_commission),
            "pendingCommission": money(o.pending_commission),
            "processingCommission": money(o.processing_commission),
            "paidCommission": money(o.paid_commission),
            "conversionRate": o.conversion_rate,
        },
        "topPartners": [
            {
                "id": str(p.partner_id),
                "name": p.name,
                "clicks": p.clicks,
                "conversions": p.conversions,
                "revenue": money(p.revenue),
                "commission": money(p.commission),
            }
            for p in report.top_partners
        ],
        "charts": {
            "clicksByDay": [
                {"date": d.date.isoformat(), "clicks": d.count} for d in report.clicks_over_time
            ],
            "conversionsByDay": [
                {"date": d.date.isoformat(), "conversions": d.count, "revenue": money(d.revenue)}
                for d in report.conversions_over_time
            ],
        },
    }

"""Service-level tests against the in-memory event store."""

from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from app.core.entities import (
    CampaignStatus,
    Click,
    ConversionStatus,
    Link,
    Partner,
    PayoutStatus,
    Product,
)
from app.core.errors import (
    DeletionConflict,
    DuplicateConversion,
    InvalidAmount,
    InvalidTransition,
    MissingOrderId,
    NotFound,
)
from app.services import analytics as analytics_service
from app.services import campaigns as campaign_service
from app.services import conversions as conversion_service

from tests.conftest import utc

NOW = utc(2024, 3, 31, 12)


def _click(link, at, ip="10.0.0.1", **kwargs) -> Click:
    return Click(id=uuid4(), link_id=link.id, clicked_at=at, ip_address=ip, **kwargs)


# ---------------------------------------------------------------------------
# record_conversion
# ---------------------------------------------------------------------------

class TestRecordConversion:
    @pytest.mark.asyncio
    async def test_percentage_plus_running_campaign_bonus(self, repo, link):
        conv = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=1000, converted_at=utc(2024, 3, 10),
        )
        assert conv.commission_amount == Decimal("100.00")
        assert conv.status == ConversionStatus.PENDING
        assert conv.attributed and conv.counts_toward_targets
        assert conv.id in repo.conversions

    @pytest.mark.asyncio
    async def test_no_bonus_outside_campaign_dates(self, repo, link):
        conv = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=1000, converted_at=utc(2024, 4, 5),
        )
        assert conv.commission_amount == Decimal("80.00")
        assert conv.attributed
        assert not conv.counts_toward_targets
        assert conv.notes == "after_campaign_end"

    @pytest.mark.asyncio
    async def test_no_bonus_when_campaign_paused(self, repo, link, campaign):
        repo.campaigns[campaign.id].status = CampaignStatus.PAUSED
        conv = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=1000, converted_at=utc(2024, 3, 10),
        )
        assert conv.commission_amount == Decimal("80.00")

    @pytest.mark.asyncio
    async def test_lookup_by_short_code(self, repo, link):
        conv = await conversion_service.record_conversion(
            repo, short_code="spring1", sale_amount="50", converted_at=utc(2024, 3, 10),
        )
        assert conv.link_id == link.id

    @pytest.mark.asyncio
    async def test_link_product_is_default(self, repo, partner, link):
        product = repo.add_product(Product(
            id=uuid4(), partner_id=partner.id, name="Hoodie", commission_override=Decimal("20"),
        ))
        link.product_id = product.id
        conv = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=100, converted_at=utc(2024, 3, 10),
        )
        assert conv.product_id == product.id
        assert conv.commission_amount == Decimal("22.00")

    @pytest.mark.asyncio
    async def test_sale_rounded_before_commission(self, repo):
        partner = repo.add_partner(Partner(id=uuid4(), name="Half", commission_rate=Decimal("50")))
        link = repo.add_link(Link(
            id=uuid4(), short_code="half", partner_id=partner.id, destination_url="https://x.test",
        ))
        conv = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount="10.005", converted_at=utc(2024, 3, 10),
        )
        stored = repo.conversions[conv.id]
        assert stored.sale_amount == Decimal("10.01")
        assert stored.commission_amount == Decimal("5.01")

    @pytest.mark.asyncio
    async def test_oversized_amount_rejected(self, repo, link):
        with pytest.raises(InvalidAmount):
            await conversion_service.record_conversion(repo, link_id=link.id, sale_amount=1e15)
        assert repo.conversions == {}

    @pytest.mark.asyncio
    async def test_invalid_amount_writes_nothing(self, repo, link):
        with pytest.raises(InvalidAmount):
            await conversion_service.record_conversion(repo, link_id=link.id, sale_amount=-5)
        assert repo.conversions == {}

    @pytest.mark.asyncio
    async def test_unknown_link(self, repo):
        with pytest.raises(NotFound):
            await conversion_service.record_conversion(repo, link_id=uuid4(), sale_amount=10)

    @pytest.mark.asyncio
    async def test_unknown_product(self, repo, link):
        with pytest.raises(NotFound):
            await conversion_service.record_conversion(
                repo, link_id=link.id, sale_amount=10, product_id=uuid4(),
            )

    @pytest.mark.asyncio
    async def test_duplicate_order_rejected(self, repo, link):
        first = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=10, order_id="ORD-1", converted_at=utc(2024, 3, 10),
        )
        with pytest.raises(DuplicateConversion) as exc:
            await conversion_service.record_conversion(
                repo, link_id=link.id, sale_amount=10, order_id="ORD-1", converted_at=utc(2024, 3, 11),
            )
        assert exc.value.conversion_id == first.id
        assert len(repo.conversions) == 1

    @pytest.mark.asyncio
    async def test_order_id_required_when_configured(self, repo, link):
        settings = MagicMock(require_order_id=True)
        with patch("app.services.conversions.get_settings", return_value=settings):
            with pytest.raises(MissingOrderId):
                await conversion_service.record_conversion(repo, link_id=link.id, sale_amount=10)

    @pytest.mark.asyncio
    async def test_click_outside_window_is_not_attributed(self, repo, link):
        click = _click(link, utc(2024, 1, 1))
        await repo.add_click(click)
        conv = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=100, click_id=click.id, converted_at=utc(2024, 3, 10),
        )
        assert not conv.attributed
        assert conv.commission_amount == Decimal("0.00")
        assert conv.status == ConversionStatus.REJECTED
        assert conv.notes == "outside_attribution_window"

    @pytest.mark.asyncio
    async def test_click_on_another_link(self, repo, partner, link):
        other = repo.add_link(Link(
            id=uuid4(), short_code="other", partner_id=partner.id, destination_url="https://x.test",
        ))
        click = _click(other, utc(2024, 3, 9))
        await repo.add_click(click)
        with pytest.raises(NotFound):
            await conversion_service.record_conversion(
                repo, link_id=link.id, sale_amount=10, click_id=click.id, converted_at=utc(2024, 3, 10),
            )


# ---------------------------------------------------------------------------
# Conversion lifecycle
# ---------------------------------------------------------------------------

class TestConversionLifecycle:
    async def _recorded(self, repo, link):
        return await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=200, converted_at=utc(2024, 3, 10),
        )

    @pytest.mark.asyncio
    async def test_approve_then_pay(self, repo, link):
        conv = await self._recorded(repo, link)
        await conversion_service.apply_conversion_action(repo, conv.id, "approve", "looks good")
        await conversion_service.advance_payout(repo, conv.id, PayoutStatus.PROCESSING)
        paid = await conversion_service.advance_payout(repo, conv.id, PayoutStatus.PAID)

        stored = repo.conversions[conv.id]
        assert paid.payout_status == PayoutStatus.PAID
        assert stored.status == ConversionStatus.APPROVED
        assert stored.notes == "looks good"
        assert stored.commission_amount == conv.commission_amount

    @pytest.mark.asyncio
    async def test_paid_conversion_cannot_be_reversed(self, repo, link):
        conv = await self._recorded(repo, link)
        await conversion_service.apply_conversion_action(repo, conv.id, "approve")
        await conversion_service.advance_payout(repo, conv.id, PayoutStatus.PROCESSING)
        await conversion_service.advance_payout(repo, conv.id, PayoutStatus.PAID)
        with pytest.raises(InvalidTransition):
            await conversion_service.apply_conversion_action(repo, conv.id, "reverse")

    @pytest.mark.asyncio
    async def test_pending_cannot_enter_payout(self, repo, link):
        conv = await self._recorded(repo, link)
        with pytest.raises(InvalidTransition):
            await conversion_service.advance_payout(repo, conv.id, PayoutStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_unknown_conversion(self, repo):
        with pytest.raises(NotFound):
            await conversion_service.apply_conversion_action(repo, uuid4(), "approve")


# ---------------------------------------------------------------------------
# Campaign analytics + lifecycle
# ---------------------------------------------------------------------------

class TestCampaignAnalytics:
    @pytest.mark.asyncio
    async def test_scenario_totals_and_progress(self, repo, link):
        ips = ["10.0.0.1"] * 5 + ["10.0.0.2"] * 4 + ["10.0.0.3"] * 3
        for i, ip in enumerate(ips):
            await repo.add_click(_click(link, utc(2024, 3, 5 + i % 3, 10), ip=ip))
        await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=1000, converted_at=utc(2024, 3, 7, 15),
        )

        result = await campaign_service.campaign_analytics(repo, link.campaign_id, "all", now=NOW)
        o = result.report.overview
        assert o.total_clicks == 12
        assert o.unique_clicks == 3
        assert o.total_conversions == 1
        assert o.total_commission == Decimal("100.00")
        assert o.conversion_rate == 8.33
        assert [d.count for d in result.report.clicks_over_time] == [4, 4, 4]
        assert result.progress.clicks.percentage == 12
        assert result.progress.conversions.percentage == 10
        assert result.progress.revenue.percentage == 20

    @pytest.mark.asyncio
    async def test_campaign_without_links_is_zeroed(self, repo, campaign):
        result = await campaign_service.campaign_analytics(repo, campaign.id, "30d", now=NOW)
        assert result.report.overview.total_clicks == 0
        assert result.report.clicks_over_time == []
        assert result.progress.clicks.percentage == 0

    @pytest.mark.asyncio
    async def test_period_clipped_to_campaign(self, repo, link, campaign):
        await repo.add_click(_click(link, utc(2024, 2, 25)))
        await repo.add_click(_click(link, utc(2024, 3, 2)))
        result = await campaign_service.campaign_analytics(
            repo, campaign.id, "90d", now=utc(2024, 4, 10),
        )
        assert result.period.start == campaign.start_date
        assert result.period.end == campaign.end_date
        assert result.report.overview.total_clicks == 1

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, repo):
        with pytest.raises(NotFound):
            await campaign_service.campaign_analytics(repo, uuid4(), "30d", now=NOW)

    @pytest.mark.asyncio
    async def test_link_analytics(self, repo, link):
        await repo.add_click(_click(link, utc(2024, 3, 20), referrer="https://news.example"))
        result = await campaign_service.link_analytics(repo, link.id, "7d", now=NOW)
        assert result.report.overview.total_clicks == 0
        result = await campaign_service.link_analytics(repo, link.id, "30d", now=NOW)
        assert result.report.referrer_breakdown[0].key == "https://news.example"


class TestCampaignLifecycle:
    @pytest.mark.asyncio
    async def test_delete_refused_while_links_exist(self, repo, link, campaign):
        with pytest.raises(DeletionConflict) as exc:
            await campaign_service.delete_campaign(repo, campaign.id)
        assert exc.value.links_count == 1
        assert campaign.id in repo.campaigns

    @pytest.mark.asyncio
    async def test_delete_without_links(self, repo, campaign):
        await campaign_service.delete_campaign(repo, campaign.id)
        assert campaign.id not in repo.campaigns

    @pytest.mark.asyncio
    async def test_status_change(self, repo, campaign):
        updated = await campaign_service.change_campaign_status(repo, campaign.id, CampaignStatus.PAUSED)
        assert updated.status == CampaignStatus.PAUSED
        assert repo.campaigns[campaign.id].status == CampaignStatus.PAUSED

    @pytest.mark.asyncio
    async def test_terminal_status_rejected(self, repo, campaign):
        await campaign_service.change_campaign_status(repo, campaign.id, CampaignStatus.CANCELLED)
        with pytest.raises(InvalidTransition):
            await campaign_service.change_campaign_status(repo, campaign.id, CampaignStatus.ACTIVE)


# ---------------------------------------------------------------------------
# Program analytics
# ---------------------------------------------------------------------------

class TestProgramAnalytics:
    @pytest.mark.asyncio
    async def test_totals_across_partners(self, repo, partner, link):
        other_partner = repo.add_partner(Partner(id=uuid4(), name="Beta Media", commission_rate=Decimal("10")))
        other_link = repo.add_link(Link(
            id=uuid4(), short_code="beta", partner_id=other_partner.id, destination_url="https://b.test",
        ))
        for _ in range(3):
            await repo.add_click(_click(link, utc(2024, 3, 20)))
        await repo.add_click(_click(other_link, utc(2024, 3, 21)))

        first = await conversion_service.record_conversion(
            repo, link_id=link.id, sale_amount=1000, converted_at=utc(2024, 3, 20, 12),
        )
        await conversion_service.record_conversion(
            repo, link_id=other_link.id, sale_amount=200, converted_at=utc(2024, 3, 21, 12),
        )
        await conversion_service.apply_conversion_action(repo, first.id, "approve")
        await conversion_service.advance_payout(repo, first.id, PayoutStatus.PROCESSING)

        period, report = await analytics_service.program_analytics(repo, "30d", now=NOW)
        o = report.overview
        assert o.total_clicks == 4
        assert o.total_conversions == 2
        assert o.approved_revenue == Decimal("1000.00")
        assert o.approved_commission == Decimal("100.00")
        assert o.processing_commission == Decimal("100.00")
        assert o.pending_commission == Decimal("0")
        assert o.conversion_rate == 50.0
        assert [p.name for p in report.top_partners] == ["Acme Creators", "Beta Media"]
        assert report.top_partners[0].clicks == 3
        assert report.top_partners[1].revenue == Decimal("0")

    @pytest.mark.asyncio
    async def test_empty_program(self, repo):
        period, report = await analytics_service.program_analytics(repo, "7d", now=NOW)
        assert report.overview.total_clicks == 0
        assert report.top_partners == []
        assert period.days == 7

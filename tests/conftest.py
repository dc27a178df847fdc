"""Pytest configuration + an in-memory event store for service and API tests."""

import datetime
import os
from dataclasses import replace
from decimal import Decimal
from uuid import uuid4

import pytest

# Ensure test environment
os.environ.setdefault("CL_DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("CL_DEBUG", "true")

from app.core.entities import (  # noqa: E402
    Campaign,
    CampaignStatus,
    CommissionType,
    ConversionStatus,
    Link,
    Partner,
    Product,
)
from app.core.errors import DuplicateConversion  # noqa: E402

UTC = datetime.timezone.utc


def utc(*args) -> datetime.datetime:
    return datetime.datetime(*args, tzinfo=UTC)


class InMemoryEventRepository:
    """Dict-backed EventRepository. Mirrors the SQL store's visible behavior."""

    def __init__(self):
        self.partners = {}
        self.products = {}
        self.campaigns = {}
        self.links = {}
        self.clicks = []
        self.conversions = {}

    # --- seeding ---

    def add_partner(self, partner: Partner) -> Partner:
        self.partners[partner.id] = partner
        return partner

    def add_product(self, product: Product) -> Product:
        self.products[product.id] = product
        return product

    def add_campaign(self, campaign: Campaign) -> Campaign:
        self.campaigns[campaign.id] = campaign
        return campaign

    def add_link(self, link: Link) -> Link:
        self.links[link.id] = link
        return link

    # --- reads ---

    async def get_partner(self, partner_id):
        return self.partners.get(partner_id)

    async def get_product(self, product_id):
        return self.products.get(product_id)

    async def get_campaign(self, campaign_id):
        campaign = self.campaigns.get(campaign_id)
        return replace(campaign) if campaign is not None else None

    async def get_link(self, link_id):
        return self.links.get(link_id)

    async def get_link_by_short_code(self, short_code):
        return next((l for l in self.links.values() if l.short_code == short_code), None)

    async def get_click(self, click_id):
        return next((c for c in self.clicks if c.id == click_id), None)

    async def get_conversion(self, conversion_id):
        conversion = self.conversions.get(conversion_id)
        return replace(conversion) if conversion is not None else None

    async def find_conversion_by_order(self, partner_id, order_id):
        return next(
            (c for c in self.conversions.values()
             if c.partner_id == partner_id and c.order_id == order_id),
            None,
        )

    async def list_campaign_links(self, campaign_id):
        return [l for l in self.links.values() if l.campaign_id == campaign_id]

    async def count_campaign_links(self, campaign_id):
        return len(await self.list_campaign_links(campaign_id))

    async def get_links(self, link_ids):
        return {i: self.links[i] for i in link_ids if i in self.links}

    async def product_names(self, product_ids):
        return {i: self.products[i].name for i in product_ids if i in self.products}

    async def list_clicks(self, link_ids, start, end):
        ids = set(link_ids)
        return [c for c in self.clicks if c.link_id in ids and start <= c.clicked_at <= end]

    async def list_conversions(self, link_ids, start, end):
        ids = set(link_ids)
        return [
            c for c in self.conversions.values()
            if c.link_id in ids and start <= c.converted_at <= end
        ]

    async def partner_names(self, partner_ids):
        return {i: self.partners[i].name for i in partner_ids if i in self.partners}

    async def list_all_clicks(self, start, end):
        return [c for c in self.clicks if start <= c.clicked_at <= end]

    async def list_all_conversions(self, start, end):
        return [c for c in self.conversions.values() if start <= c.converted_at <= end]

    async def approved_commission_by_payout(self):
        totals = {}
        for conv in self.conversions.values():
            if conv.status == ConversionStatus.APPROVED:
                totals[conv.payout_status] = (
                    totals.get(conv.payout_status, Decimal("0.00")) + conv.commission_amount
                )
        return totals

    # --- writes ---

    async def add_click(self, click):
        self.clicks.append(click)

    async def add_conversion(self, conversion):
        if conversion.order_id:
            existing = await self.find_conversion_by_order(conversion.partner_id, conversion.order_id)
            if existing is not None:
                raise DuplicateConversion(conversion.order_id, existing.id)
        self.conversions[conversion.id] = replace(conversion)

    async def save_conversion_state(self, conversion):
        stored = self.conversions[conversion.id]
        stored.status = conversion.status
        stored.payout_status = conversion.payout_status
        stored.notes = conversion.notes

    async def set_campaign_status(self, campaign_id, status):
        self.campaigns[campaign_id].status = status

    async def delete_campaign(self, campaign_id):
        del self.campaigns[campaign_id]


@pytest.fixture
def repo():
    return InMemoryEventRepository()


@pytest.fixture
def partner(repo):
    return repo.add_partner(Partner(
        id=uuid4(),
        name="Acme Creators",
        commission_rate=Decimal("8"),
        commission_type=CommissionType.PERCENTAGE,
        cookie_duration_days=30,
    ))


@pytest.fixture
def campaign(repo, partner):
    return repo.add_campaign(Campaign(
        id=uuid4(),
        name="Spring Launch",
        partner_id=partner.id,
        start_date=utc(2024, 3, 1),
        end_date=utc(2024, 3, 31, 23, 59, 59),
        bonus_commission_rate=Decimal("2"),
        target_clicks=100,
        target_conversions=10,
        target_revenue=Decimal("5000"),
        status=CampaignStatus.ACTIVE,
    ))


@pytest.fixture
def link(repo, partner, campaign):
    return repo.add_link(Link(
        id=uuid4(),
        short_code="spring1",
        partner_id=partner.id,
        destination_url="https://shop.example.com/spring",
        campaign_id=campaign.id,
        name="Spring hero",
        created_at=utc(2024, 2, 20),
    ))

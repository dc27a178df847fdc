"""
Event store access.

EventRepository is the only data-access contract the services use. The
SQLAlchemy implementation maps ORM rows to the plain records in
app.core.entities, so JSON columns, Numeric columns and status strings are
converted here and nowhere else.
"""

import datetime
from decimal import Decimal
from typing import Iterable, Protocol
from uuid import UUID

from fastapi import Depends
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.entities import (
    Campaign,
    CampaignStatus,
    Click,
    CommissionType,
    Conversion,
    ConversionStatus,
    Link,
    LinkStatus,
    Partner,
    PartnerStatus,
    PayoutStatus,
    Product,
)
from app.core.errors import DuplicateConversion
from app.models import tables
from app.models.database import get_db


class EventRepository(Protocol):
    async def get_partner(self, partner_id: UUID) -> Partner | None: ...
    async def get_product(self, product_id: UUID) -> Product | None: ...
    async def get_campaign(self, campaign_id: UUID) -> Campaign | None: ...
    async def get_link(self, link_id: UUID) -> Link | None: ...
    async def get_link_by_short_code(self, short_code: str) -> Link | None: ...
    async def get_click(self, click_id: UUID) -> Click | None: ...
    async def get_conversion(self, conversion_id: UUID) -> Conversion | None: ...
    async def find_conversion_by_order(self, partner_id: UUID, order_id: str) -> Conversion | None: ...

    async def list_campaign_links(self, campaign_id: UUID) -> list[Link]: ...
    async def count_campaign_links(self, campaign_id: UUID) -> int: ...
    async def get_links(self, link_ids: Iterable[UUID]) -> dict[UUID, Link]: ...
    async def product_names(self, product_ids: Iterable[UUID]) -> dict[UUID, str]: ...
    async def partner_names(self, partner_ids: Iterable[UUID]) -> dict[UUID, str]: ...

    async def list_clicks(
        self, link_ids: Iterable[UUID], start: datetime.datetime, end: datetime.datetime,
    ) -> list[Click]: ...
    async def list_conversions(
        self, link_ids: Iterable[UUID], start: datetime.datetime, end: datetime.datetime,
    ) -> list[Conversion]: ...
    async def list_all_clicks(self, start: datetime.datetime, end: datetime.datetime) -> list[Click]: ...
    async def list_all_conversions(
        self, start: datetime.datetime, end: datetime.datetime,
    ) -> list[Conversion]: ...
    async def approved_commission_by_payout(self) -> dict[PayoutStatus, Decimal]: ...

    async def add_click(self, click: Click) -> None: ...
    async def add_conversion(self, conversion: Conversion) -> None: ...
    async def save_conversion_state(self, conversion: Conversion) -> None: ...
    async def set_campaign_status(self, campaign_id: UUID, status: CampaignStatus) -> None: ...
    async def delete_campaign(self, campaign_id: UUID) -> None: ...


# ---------------------------------------------------------------------------
# Row → record mapping
# ---------------------------------------------------------------------------

def _decimal(value) -> Decimal | None:
    return Decimal(value) if value is not None else None


def _utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """SQLite hands back naive timestamps; everything stored is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def _to_partner(row: tables.Partner) -> Partner:
    return Partner(
        id=row.id,
        name=row.name,
        commission_rate=Decimal(row.commission_rate),
        commission_type=CommissionType(row.commission_type),
        status=PartnerStatus(row.status),
        cookie_duration_days=row.cookie_duration_days,
    )


def _to_product(row: tables.Product) -> Product:
    return Product(
        id=row.id,
        partner_id=row.partner_id,
        name=row.name,
        commission_override=_decimal(row.commission_override),
    )


def _to_campaign(row: tables.Campaign) -> Campaign:
    return Campaign(
        id=row.id,
        name=row.name,
        partner_id=row.partner_id,
        start_date=_utc(row.start_date),
        end_date=_utc(row.end_date),
        bonus_commission_rate=_decimal(row.bonus_commission_rate),
        target_clicks=row.target_clicks,
        target_conversions=row.target_conversions,
        target_revenue=_decimal(row.target_revenue),
        status=CampaignStatus(row.status),
        creatives_urls=list(row.creatives_urls or []),
        notification_emails=list(row.notification_emails or []),
    )


def _to_link(row: tables.Link) -> Link:
    return Link(
        id=row.id,
        short_code=row.short_code,
        partner_id=row.partner_id,
        destination_url=row.destination_url,
        campaign_id=row.campaign_id,
        product_id=row.product_id,
        name=row.name,
        status=LinkStatus(row.status),
        expires_at=_utc(row.expires_at),
        attribution_window_days=row.attribution_window_days,
        created_at=_utc(row.created_at),
    )


def _to_click(row: tables.ClickEvent) -> Click:
    return Click(
        id=row.id,
        link_id=row.link_id,
        clicked_at=_utc(row.clicked_at),
        ip_address=row.ip_address,
        device_type=row.device_type,
        country_code=row.country_code,
        referrer=row.referrer,
        session_id=row.session_id,
        user_agent=row.user_agent,
    )


def _to_conversion(row: tables.ConversionEvent) -> Conversion:
    return Conversion(
        id=row.id,
        link_id=row.link_id,
        partner_id=row.partner_id,
        converted_at=_utc(row.converted_at),
        commission_amount=Decimal(row.commission_amount),
        sale_amount=_decimal(row.sale_amount),
        product_id=row.product_id,
        click_id=row.click_id,
        order_id=row.order_id,
        status=ConversionStatus(row.status),
        payout_status=PayoutStatus(row.payout_status),
        attributed=row.attributed,
        counts_toward_targets=row.counts_toward_targets,
        notes=row.notes,
    )


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------

class SqlAlchemyEventRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _one(self, stmt):
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_partner(self, partner_id: UUID) -> Partner | None:
        row = await self._one(select(tables.Partner).where(tables.Partner.id == partner_id))
        return _to_partner(row) if row else None

    async def get_product(self, product_id: UUID) -> Product | None:
        row = await self._one(select(tables.Product).where(tables.Product.id == product_id))
        return _to_product(row) if row else None

    async def get_campaign(self, campaign_id: UUID) -> Campaign | None:
        row = await self._one(select(tables.Campaign).where(tables.Campaign.id == campaign_id))
        return _to_campaign(row) if row else None

    async def get_link(self, link_id: UUID) -> Link | None:
        row = await self._one(select(tables.Link).where(tables.Link.id == link_id))
        return _to_link(row) if row else None

    async def get_link_by_short_code(self, short_code: str) -> Link | None:
        row = await self._one(select(tables.Link).where(tables.Link.short_code == short_code))
        return _to_link(row) if row else None

    async def get_click(self, click_id: UUID) -> Click | None:
        row = await self._one(select(tables.ClickEvent).where(tables.ClickEvent.id == click_id))
        return _to_click(row) if row else None

    async def get_conversion(self, conversion_id: UUID) -> Conversion | None:
        row = await self._one(
            select(tables.ConversionEvent).where(tables.ConversionEvent.id == conversion_id)
        )
        return _to_conversion(row) if row else None

    async def find_conversion_by_order(self, partner_id: UUID, order_id: str) -> Conversion | None:
        row = await self._one(
            select(tables.ConversionEvent).where(
                tables.ConversionEvent.partner_id == partner_id,
                tables.ConversionEvent.order_id == order_id,
            )
        )
        return _to_conversion(row) if row else None

    async def list_campaign_links(self, campaign_id: UUID) -> list[Link]:
        result = await self.db.execute(
            select(tables.Link).where(tables.Link.campaign_id == campaign_id)
        )
        return [_to_link(row) for row in result.scalars().all()]

    async def count_campaign_links(self, campaign_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(tables.Link.id)).where(tables.Link.campaign_id == campaign_id)
        )
        return result.scalar_one()

    async def get_links(self, link_ids: Iterable[UUID]) -> dict[UUID, Link]:
        ids = list(link_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(tables.Link).where(tables.Link.id.in_(ids)))
        return {row.id: _to_link(row) for row in result.scalars().all()}

    async def product_names(self, product_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = [pid for pid in product_ids if pid is not None]
        if not ids:
            return {}
        result = await self.db.execute(
            select(tables.Product.id, tables.Product.name).where(tables.Product.id.in_(ids))
        )
        return {row.id: row.name for row in result.all()}

    async def list_clicks(
        self, link_ids: Iterable[UUID], start: datetime.datetime, end: datetime.datetime,
    ) -> list[Click]:
        ids = list(link_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(tables.ClickEvent)
            .where(
                tables.ClickEvent.link_id.in_(ids),
                tables.ClickEvent.clicked_at >= start,
                tables.ClickEvent.clicked_at <= end,
            )
            .order_by(tables.ClickEvent.clicked_at.asc())
        )
        return [_to_click(row) for row in result.scalars().all()]

    async def list_conversions(
        self, link_ids: Iterable[UUID], start: datetime.datetime, end: datetime.datetime,
    ) -> list[Conversion]:
        ids = list(link_ids)
        if not ids:
            return []
        result = await self.db.execute(
            select(tables.ConversionEvent)
            .where(
                tables.ConversionEvent.link_id.in_(ids),
                tables.ConversionEvent.converted_at >= start,
                tables.ConversionEvent.converted_at <= end,
            )
            .order_by(tables.ConversionEvent.converted_at.asc())
        )
        return [_to_conversion(row) for row in result.scalars().all()]

    async def partner_names(self, partner_ids: Iterable[UUID]) -> dict[UUID, str]:
        ids = [pid for pid in partner_ids if pid is not None]
        if not ids:
            return {}
        result = await self.db.execute(
            select(tables.Partner.id, tables.Partner.name).where(tables.Partner.id.in_(ids))
        )
        return {row.id: row.name for row in result.all()}

    async def list_all_clicks(self, start: datetime.datetime, end: datetime.datetime) -> list[Click]:
        result = await self.db.execute(
            select(tables.ClickEvent)
            .where(tables.ClickEvent.clicked_at >= start, tables.ClickEvent.clicked_at <= end)
            .order_by(tables.ClickEvent.clicked_at.asc())
        )
        return [_to_click(row) for row in result.scalars().all()]

    async def list_all_conversions(
        self, start: datetime.datetime, end: datetime.datetime,
    ) -> list[Conversion]:
        result = await self.db.execute(
            select(tables.ConversionEvent)
            .where(
                tables.ConversionEvent.converted_at >= start,
                tables.ConversionEvent.converted_at <= end,
            )
            .order_by(tables.ConversionEvent.converted_at.asc())
        )
        return [_to_conversion(row) for row in result.scalars().all()]

    async def approved_commission_by_payout(self) -> dict[PayoutStatus, Decimal]:
        result = await self.db.execute(
            select(
                tables.ConversionEvent.payout_status,
                func.coalesce(func.sum(tables.ConversionEvent.commission_amount), 0).label("commission"),
            )
            .where(tables.ConversionEvent.status == ConversionStatus.APPROVED.value)
            .group_by(tables.ConversionEvent.payout_status)
        )
        return {
            PayoutStatus(row.payout_status): Decimal(str(row.commission)).quantize(Decimal("0.01"))
            for row in result.all()
        }

    async def add_click(self, click: Click) -> None:
        self.db.add(tables.ClickEvent(
            id=click.id,
            link_id=click.link_id,
            session_id=click.session_id,
            ip_address=click.ip_address,
            user_agent=click.user_agent,
            device_type=click.device_type,
            country_code=click.country_code,
            referrer=click.referrer,
            clicked_at=click.clicked_at,
        ))
        await self.db.commit()

    async def add_conversion(self, conversion: Conversion) -> None:
        """Insert in its own transaction. A lost (partner, order_id) race surfaces
        as DuplicateConversion pointing at the winner."""
        self.db.add(tables.ConversionEvent(
            id=conversion.id,
            link_id=conversion.link_id,
            partner_id=conversion.partner_id,
            product_id=conversion.product_id,
            click_id=conversion.click_id,
            order_id=conversion.order_id,
            sale_amount=conversion.sale_amount,
            commission_amount=conversion.commission_amount,
            attributed=conversion.attributed,
            counts_toward_targets=conversion.counts_toward_targets,
            status=conversion.status.value,
            payout_status=conversion.payout_status.value,
            notes=conversion.notes,
            converted_at=conversion.converted_at,
        ))
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            if conversion.order_id is None:
                raise
            existing = await self.find_conversion_by_order(conversion.partner_id, conversion.order_id)
            raise DuplicateConversion(conversion.order_id, existing.id if existing else None)

    async def save_conversion_state(self, conversion: Conversion) -> None:
        await self.db.execute(
            update(tables.ConversionEvent)
            .where(tables.ConversionEvent.id == conversion.id)
            .values(
                status=conversion.status.value,
                payout_status=conversion.payout_status.value,
                notes=conversion.notes,
            )
        )
        await self.db.commit()

    async def set_campaign_status(self, campaign_id: UUID, status: CampaignStatus) -> None:
        await self.db.execute(
            update(tables.Campaign)
            .where(tables.Campaign.id == campaign_id)
            .values(status=status.value)
        )
        await self.db.commit()

    async def delete_campaign(self, campaign_id: UUID) -> None:
        await self.db.execute(delete(tables.Campaign).where(tables.Campaign.id == campaign_id))
        await self.db.commit()


async def get_repository(db: AsyncSession = Depends(get_db)) -> EventRepository:
    """FastAPI dependency — repository bound to the request's session."""
    return SqlAlchemyEventRepository(db)

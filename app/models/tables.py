"""
Database models — the "truth layer."

Design principles:
  - clicks are append-only (no updates/deletes)
  - conversions: amounts written once at creation; only status columns move
  - campaigns/links/partners are mutable by admin action
  - list-valued campaign fields are JSON text on disk, list[str] everywhere else
"""

import json
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase, relationship
from sqlalchemy.types import TypeDecorator


class Base(DeclarativeBase):
    pass


class JSONList(TypeDecorator):
    """Ordered list of strings stored as JSON text. Unparseable rows read as []."""
    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return json.dumps([str(v) for v in value])

    def process_result_value(self, value, dialect):
        if not value:
            return []
        try:
            parsed = json.loads(value)
        except ValueError:
            return []
        if not isinstance(parsed, list):
            return []
        return [str(v) for v in parsed]


# ---------------------------------------------------------------------------
# Entity tables
# ---------------------------------------------------------------------------

class Partner(Base):
    __tablename__ = "partners"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    commission_rate = Column(Numeric(12, 2), nullable=False, default=0)
    commission_type = Column(String(20), nullable=False, default="percentage")
    cookie_duration_days = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    links = relationship("Link", back_populates="partner")


class Product(Base):
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    partner_id = Column(UUID(as_uuid=True), ForeignKey("partners.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    commission_override = Column(Numeric(12, 2), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Campaign(Base):
    __tablename__ = "campaigns"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    partner_id = Column(UUID(as_uuid=True), ForeignKey("partners.id"), nullable=True)  # NULL = house campaign
    name = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=True)
    bonus_commission_rate = Column(Numeric(12, 2), nullable=True)
    target_clicks = Column(Integer, nullable=True)
    target_conversions = Column(Integer, nullable=True)
    target_revenue = Column(Numeric(14, 2), nullable=True)
    creatives_urls = Column(JSONList, nullable=True)
    notification_emails = Column(JSONList, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    links = relationship("Link", back_populates="campaign")


class Link(Base):
    __tablename__ = "links"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    short_code = Column(String(32), nullable=False, unique=True, index=True)
    partner_id = Column(UUID(as_uuid=True), ForeignKey("partners.id"), nullable=False, index=True)
    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id"), nullable=True, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True)
    name = Column(String(255), nullable=True)
    destination_url = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="active")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    attribution_window_days = Column(Integer, nullable=True)  # NULL = inherit partner cookie duration
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    partner = relationship("Partner", back_populates="links")
    campaign = relationship("Campaign", back_populates="links")


# ---------------------------------------------------------------------------
# Event tables
# ---------------------------------------------------------------------------

class ClickEvent(Base):
    """One row per click through /go/{short_code}. Never updated."""
    __tablename__ = "clicks"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    link_id = Column(UUID(as_uuid=True), ForeignKey("links.id"), nullable=False)
    session_id = Column(String(64), nullable=True)
    ip_address = Column(String(45), nullable=True)            # as received, not normalized
    user_agent = Column(Text, nullable=True)
    device_type = Column(String(20), nullable=True)
    country_code = Column(String(2), nullable=True)
    referrer = Column(Text, nullable=True)                     # NULL = direct
    clicked_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("ix_clicks_link_clicked", "link_id", "clicked_at"),
    )


class ConversionEvent(Base):
    __tablename__ = "conversions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    link_id = Column(UUID(as_uuid=True), ForeignKey("links.id"), nullable=False)
    partner_id = Column(UUID(as_uuid=True), ForeignKey("partners.id"), nullable=False, index=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=True)
    click_id = Column(UUID(as_uuid=True), ForeignKey("clicks.id"), nullable=True)
    order_id = Column(String(255), nullable=True)             # idempotency key, unique per partner
    sale_amount = Column(Numeric(14, 2), nullable=True)
    commission_amount = Column(Numeric(14, 2), nullable=False)
    attributed = Column(Boolean, nullable=False, default=True)
    counts_toward_targets = Column(Boolean, nullable=False, default=True)
    status = Column(String(20), nullable=False, default="pending")
    payout_status = Column(String(20), nullable=False, default="unpaid")
    notes = Column(Text, nullable=True)
    converted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_conversions_link_converted", "link_id", "converted_at"),
        UniqueConstraint("partner_id", "order_id", name="uq_conversions_partner_order"),
    )

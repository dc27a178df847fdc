"""
Domain records for the attribution engine.

These are plain dataclasses handed out by the repository. Business code
never touches ORM rows or JSON-encoded columns — the storage edge
converts both ways.

Lifecycle:
  - Click: immutable once written
  - Conversion: amounts fixed at creation; only status/payout_status move
  - Campaign/Link/Partner: mutable by administrative action only
"""

import datetime
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from uuid import UUID


class CommissionType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PartnerStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"
    PAUSED = "paused"
    TERMINATED = "terminated"


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LinkStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    ARCHIVED = "archived"


class ConversionStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVERSED = "reversed"


class PayoutStatus(str, Enum):
    UNPAID = "unpaid"
    PROCESSING = "processing"
    PAID = "paid"


class DeviceType(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    BOT = "bot"
    UNKNOWN = "unknown"


@dataclass
class Partner:
    id: UUID
    name: str
    commission_rate: Decimal
    commission_type: CommissionType = CommissionType.PERCENTAGE
    status: PartnerStatus = PartnerStatus.ACTIVE
    cookie_duration_days: int | None = None


@dataclass
class Product:
    id: UUID
    partner_id: UUID
    name: str
    commission_override: Decimal | None = None


@dataclass
class Campaign:
    id: UUID
    name: str
    start_date: datetime.datetime
    partner_id: UUID | None = None  # None = house campaign
    end_date: datetime.datetime | None = None
    bonus_commission_rate: Decimal | None = None
    target_clicks: int | None = None
    target_conversions: int | None = None
    target_revenue: Decimal | None = None
    status: CampaignStatus = CampaignStatus.DRAFT
    creatives_urls: list[str] = field(default_factory=list)
    notification_emails: list[str] = field(default_factory=list)

    def is_running_at(self, moment: datetime.datetime) -> bool:
        """True if the campaign is active and `moment` lies in [start_date, end_date]."""
        if self.status != CampaignStatus.ACTIVE:
            return False
        if moment < self.start_date:
            return False
        return self.end_date is None or moment <= self.end_date


@dataclass
class Link:
    id: UUID
    short_code: str
    partner_id: UUID
    destination_url: str
    campaign_id: UUID | None = None
    product_id: UUID | None = None
    name: str | None = None
    status: LinkStatus = LinkStatus.ACTIVE
    expires_at: datetime.datetime | None = None
    attribution_window_days: int | None = None  # overrides the partner's cookie duration
    created_at: datetime.datetime | None = None

    def is_expired_at(self, moment: datetime.datetime) -> bool:
        return self.expires_at is not None and moment > self.expires_at


@dataclass(frozen=True)
class Click:
    id: UUID
    link_id: UUID
    clicked_at: datetime.datetime
    ip_address: str | None
    device_type: str | None = None
    country_code: str | None = None
    referrer: str | None = None
    session_id: str | None = None
    user_agent: str | None = None


@dataclass
class Conversion:
    id: UUID
    link_id: UUID
    partner_id: UUID
    converted_at: datetime.datetime
    commission_amount: Decimal
    sale_amount: Decimal | None = None
    product_id: UUID | None = None
    click_id: UUID | None = None
    order_id: str | None = None
    status: ConversionStatus = ConversionStatus.PENDING
    payout_status: PayoutStatus = PayoutStatus.UNPAID
    attributed: bool = True             # False: outside the attribution window, never billed
    counts_toward_targets: bool = True  # False when recorded after link expiry / outside campaign
    notes: str | None = None

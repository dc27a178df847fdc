"""
Status machines for campaigns, conversions and payouts.

  campaign:    draft -> active -> {paused, completed, cancelled}
               paused -> {active, completed, cancelled}
               completed / cancelled are terminal
  conversion:  pending -> {approved, rejected, reversed}
               approved -> reversed
  payout:      unpaid -> processing -> paid   (monotonic)
"""

from app.core.entities import CampaignStatus, ConversionStatus, PayoutStatus
from app.core.errors import InvalidTransition

CAMPAIGN_TRANSITIONS: dict[CampaignStatus, frozenset[CampaignStatus]] = {
    CampaignStatus.DRAFT: frozenset({CampaignStatus.ACTIVE, CampaignStatus.CANCELLED}),
    CampaignStatus.ACTIVE: frozenset({
        CampaignStatus.PAUSED, CampaignStatus.COMPLETED, CampaignStatus.CANCELLED,
    }),
    CampaignStatus.PAUSED: frozenset({
        CampaignStatus.ACTIVE, CampaignStatus.COMPLETED, CampaignStatus.CANCELLED,
    }),
    CampaignStatus.COMPLETED: frozenset(),
    CampaignStatus.CANCELLED: frozenset(),
}

CONVERSION_TRANSITIONS: dict[ConversionStatus, frozenset[ConversionStatus]] = {
    ConversionStatus.PENDING: frozenset({
        ConversionStatus.APPROVED, ConversionStatus.REJECTED, ConversionStatus.REVERSED,
    }),
    ConversionStatus.APPROVED: frozenset({ConversionStatus.REVERSED}),
    ConversionStatus.REJECTED: frozenset(),
    ConversionStatus.REVERSED: frozenset(),
}

PAYOUT_ORDER: tuple[PayoutStatus, ...] = (
    PayoutStatus.UNPAID,
    PayoutStatus.PROCESSING,
    PayoutStatus.PAID,
)

# action verb -> resulting conversion status
CONVERSION_ACTIONS: dict[str, ConversionStatus] = {
    "approve": ConversionStatus.APPROVED,
    "reject": ConversionStatus.REJECTED,
    "reverse": ConversionStatus.REVERSED,
}


def next_campaign_status(current: CampaignStatus, target: CampaignStatus) -> CampaignStatus:
    if target not in CAMPAIGN_TRANSITIONS[current]:
        raise InvalidTransition("campaign", current.value, target.value)
    return target


def next_conversion_status(
    current: ConversionStatus,
    target: ConversionStatus,
    payout_status: PayoutStatus = PayoutStatus.UNPAID,
) -> ConversionStatus:
    if target not in CONVERSION_TRANSITIONS[current]:
        raise InvalidTransition("conversion", current.value, target.value)
    if target == ConversionStatus.REVERSED and payout_status == PayoutStatus.PAID:
        raise InvalidTransition("conversion", f"{current.value} (paid)", target.value)
    return target


def next_payout_status(
    current: PayoutStatus,
    target: PayoutStatus,
    conversion_status: ConversionStatus,
) -> PayoutStatus:
    """Advance exactly one step. Only approved conversions enter payout."""
    if conversion_status != ConversionStatus.APPROVED:
        raise InvalidTransition("payout", f"{current.value} ({conversion_status.value})", target.value)
    if PAYOUT_ORDER.index(target) != PAYOUT_ORDER.index(current) + 1:
        raise InvalidTransition("payout", current.value, target.value)
    return target

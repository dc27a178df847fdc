"""
Commission calculator.

A partner's commission terms are a tagged variant:
  - PercentageTerms(rate)  → sale_amount × (rate + campaign bonus) / 100
  - FixedTerms(amount)     → amount, regardless of sale size

Rules:
  - sale_amount None (lead-gen, no transaction value) → 0 for percentage, the
    flat amount for fixed
  - negative / NaN / infinite sale amounts raise InvalidAmount, never clamped
  - sale amounts are rounded to cents before any commission is derived from
    them, and must fit the stored Numeric(14, 2) column
  - every result is rounded half-up to cents, once, at creation time
  - a product commission_override replaces the partner base rate (percentage only)
  - the campaign bonus is only ever added to percentage terms
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.core.entities import Campaign, CommissionType, Partner, Product
from app.core.errors import InvalidAmount

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_SALE_AMOUNT = Decimal("999999999999.99")  # Numeric(14, 2)


@dataclass(frozen=True)
class PercentageTerms:
    rate: Decimal


@dataclass(frozen=True)
class FixedTerms:
    amount: Decimal


CommissionTerms = PercentageTerms | FixedTerms


def round_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places."""
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def to_decimal(value) -> Decimal | None:
    """Coerce an incoming amount to Decimal. Floats go through str() to avoid binary noise."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidAmount(value)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(value)


def validate_sale_amount(value) -> Decimal | None:
    amount = to_decimal(value)
    if amount is None:
        return None
    if not amount.is_finite() or amount < 0 or amount > MAX_SALE_AMOUNT:
        raise InvalidAmount(value)
    return round_money(amount)


def terms_for(partner: Partner, product: Product | None = None) -> CommissionTerms:
    if partner.commission_type == CommissionType.FIXED:
        return FixedTerms(amount=Decimal(partner.commission_rate))
    if partner.commission_type == CommissionType.PERCENTAGE:
        rate = partner.commission_rate
        if product is not None and product.commission_override is not None:
            rate = product.commission_override
        return PercentageTerms(rate=Decimal(rate))
    raise ValueError(f"Unsupported commission type: {partner.commission_type!r}")


def compute_commission(
    sale_amount,
    partner: Partner,
    campaign: Campaign | None = None,
    product: Product | None = None,
) -> Decimal:
    """Commission owed for one conversion.

    `campaign` must already be the campaign whose bonus applies (i.e. running
    at conversion time) or None. Eligibility is decided by the caller.
    """
    amount = validate_sale_amount(sale_amount)
    terms = terms_for(partner, product)

    if isinstance(terms, FixedTerms):
        return round_money(terms.amount)

    if isinstance(terms, PercentageTerms):
        if amount is None:
            return ZERO
        bonus = Decimal(0)
        if campaign is not None and campaign.bonus_commission_rate is not None:
            bonus = Decimal(campaign.bonus_commission_rate)
        return round_money(amount * (terms.rate + bonus) / 100)

    raise TypeError(f"Unhandled commission terms: {terms!r}")

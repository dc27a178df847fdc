"""Tests for campaign, conversion and payout status machines."""

import pytest

from app.core.entities import CampaignStatus, ConversionStatus, PayoutStatus
from app.core.errors import InvalidTransition
from app.core.lifecycle import next_campaign_status, next_conversion_status, next_payout_status


class TestCampaign:
    @pytest.mark.parametrize("current,target", [
        (CampaignStatus.DRAFT, CampaignStatus.ACTIVE),
        (CampaignStatus.DRAFT, CampaignStatus.CANCELLED),
        (CampaignStatus.ACTIVE, CampaignStatus.PAUSED),
        (CampaignStatus.PAUSED, CampaignStatus.ACTIVE),
        (CampaignStatus.ACTIVE, CampaignStatus.COMPLETED),
    ])
    def test_allowed(self, current, target):
        assert next_campaign_status(current, target) == target

    @pytest.mark.parametrize("current,target", [
        (CampaignStatus.COMPLETED, CampaignStatus.ACTIVE),
        (CampaignStatus.CANCELLED, CampaignStatus.ACTIVE),
        (CampaignStatus.DRAFT, CampaignStatus.PAUSED),
        (CampaignStatus.ACTIVE, CampaignStatus.DRAFT),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransition):
            next_campaign_status(current, target)


class TestConversion:
    def test_pending_to_approved(self):
        assert next_conversion_status(
            ConversionStatus.PENDING, ConversionStatus.APPROVED,
        ) == ConversionStatus.APPROVED

    def test_approved_can_be_reversed(self):
        assert next_conversion_status(
            ConversionStatus.APPROVED, ConversionStatus.REVERSED,
        ) == ConversionStatus.REVERSED

    def test_paid_cannot_be_reversed(self):
        with pytest.raises(InvalidTransition):
            next_conversion_status(
                ConversionStatus.APPROVED, ConversionStatus.REVERSED, PayoutStatus.PAID,
            )

    def test_rejected_is_terminal(self):
        with pytest.raises(InvalidTransition):
            next_conversion_status(ConversionStatus.REJECTED, ConversionStatus.APPROVED)


class TestPayout:
    def test_one_step_forward(self):
        assert next_payout_status(
            PayoutStatus.UNPAID, PayoutStatus.PROCESSING, ConversionStatus.APPROVED,
        ) == PayoutStatus.PROCESSING

    def test_cannot_skip(self):
        with pytest.raises(InvalidTransition):
            next_payout_status(PayoutStatus.UNPAID, PayoutStatus.PAID, ConversionStatus.APPROVED)

    def test_cannot_go_back(self):
        with pytest.raises(InvalidTransition):
            next_payout_status(PayoutStatus.PAID, PayoutStatus.PROCESSING, ConversionStatus.APPROVED)

    def test_only_approved_conversions(self):
        with pytest.raises(InvalidTransition):
            next_payout_status(PayoutStatus.UNPAID, PayoutStatus.PROCESSING, ConversionStatus.PENDING)

"""Campaign service - the single active bonus campaign."""

import logging
from datetime import date
from decimal import Decimal
from fractions import Fraction

from django.db import transaction

from starman.accrual import ONE, CampaignWindow, resolve_multiplier
from starman.gates import Gates
from starman.models import BonusCampaign

logger = logging.getLogger(__name__)


def current() -> BonusCampaign | None:
    """The enabled campaign, if any."""
    return BonusCampaign.objects.filter(enabled=True).order_by("-updated_at").first()


def snapshot() -> CampaignWindow | None:
    """Freeze the enabled campaign for a batch of accrual computations."""
    campaign = current()
    return campaign.as_window() if campaign else None


def active_campaign_on(on_date: date, campaign: BonusCampaign | None = None) -> BonusCampaign | None:
    """
    The campaign if it is enabled and `on_date` falls inside its window.

    Category is not considered here; see multiplier_for().
    """
    campaign = campaign if campaign is not None else current()
    if campaign is None or not campaign.enabled:
        return None
    if campaign.start_date and on_date < campaign.start_date:
        return None
    if campaign.end_date and on_date > campaign.end_date:
        return None
    return campaign


def multiplier_for(category: str, on_date: date) -> Fraction:
    """Campaign multiplier for `category` on `on_date`, else 1."""
    window = snapshot()
    if window is None:
        return ONE
    multiplier, _, warning = resolve_multiplier(window, category, on_date)
    if warning:
        logger.warning("%s: %s", warning.code, warning.message)
    return multiplier


def activate(
    category: str,
    multiplier: Decimal | int | str,
    start_date: date | None = None,
    end_date: date | None = None,
    description: str = "",
) -> BonusCampaign:
    """
    Create and enable a campaign, disabling any other.

    Raises:
        GateError: If the multiplier or window is invalid (G3)
    """
    Gates.campaign_window(multiplier, start_date, end_date)

    with transaction.atomic():
        campaign = BonusCampaign.objects.create(
            category=category,
            multiplier=Decimal(str(multiplier)),
            start_date=start_date,
            end_date=end_date,
            description=description,
            enabled=True,
        )
        Gates.single_active_campaign()

    logger.info("Bonus campaign enabled: %s", campaign)
    return campaign


def deactivate() -> int:
    """Disable every campaign. Returns how many were enabled."""
    count = BonusCampaign.objects.filter(enabled=True).update(enabled=False)
    if count:
        logger.info("Bonus campaign disabled")
    return count

"""
Accrual - how many stars a single sale earns.

Pure computation: no database access, no Django imports. Every write path
(record, edit, approve, preview, reconcile) calls into this module with
snapshots of the catalog rule and the bonus campaign.

Rules:
- Non-stacking service (stack_size == 1):
      floor(base_stars * m)
- Stacking service (stack_size == k > 1), sale at position n of its
  (staff, category, service) sequence ordered by (occurred_at, id):
      A(n) = floor(n * m / k) * base_stars
      credited(n) = A(n) - A(n - 1)
  Sales inside an incomplete stack earn zero; the sale that completes a
  stack (or several, when m > 1) receives the whole release.
- Recurring service: only position 1 earns floor(base_stars * m).

m is the campaign multiplier for the sale's own calendar date, or 1.
A multiplier that resolves to <= 0 is floored to 1 and reported.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from fractions import Fraction
from typing import Iterable, Optional

from starman.exceptions import ConsistencyWarning

ONE = Fraction(1)


@dataclass(frozen=True)
class AccrualRule:
    """Snapshot of a catalog entry, as far as accrual is concerned."""

    category: str
    service: str
    base_stars: int
    stack_size: int = 1
    recurring: bool = False

    @property
    def is_stacking(self) -> bool:
        return self.stack_size > 1 and not self.recurring


@dataclass(frozen=True)
class CampaignWindow:
    """Snapshot of the bonus campaign."""

    category: str
    multiplier: Fraction
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    enabled: bool = True
    all_token: str = "all"

    def covers(self, category: str, on_date: date) -> bool:
        """True if a sale of `category` on `on_date` is under bonus."""
        if not self.enabled:
            return False
        if self.start_date and on_date < self.start_date:
            return False
        if self.end_date and on_date > self.end_date:
            return False
        if self.category.lower() == self.all_token.lower():
            return True
        return self.category == category


@dataclass(frozen=True)
class Accrual:
    """Stars credited to one sale and how they were derived."""

    stars: int
    position: int
    multiplier: Fraction = ONE
    under_bonus: bool = False
    warnings: tuple[ConsistencyWarning, ...] = field(default_factory=tuple)


def as_fraction(value) -> Optional[Fraction]:
    """Exact rational for a multiplier, or None if it is not a finite number."""
    if value is None:
        return None
    if isinstance(value, Fraction):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Fraction(str(value))
    if isinstance(value, Decimal):
        if not value.is_finite():
            return None
        return Fraction(value)
    try:
        return Fraction(value)
    except (TypeError, ValueError):
        return None


def _as_date(on_date) -> date:
    if isinstance(on_date, datetime):
        return on_date.date()
    return on_date


def resolve_multiplier(
    campaign: Optional[CampaignWindow],
    category: str,
    on_date,
) -> tuple[Fraction, bool, Optional[ConsistencyWarning]]:
    """
    Multiplier for a sale of `category` on `on_date`.

    Returns:
        (multiplier, under_bonus, warning). warning is set when the
        campaign multiplier was unusable and floored to 1.
    """
    if campaign is None or not campaign.covers(category, _as_date(on_date)):
        return ONE, False, None

    multiplier = as_fraction(campaign.multiplier)
    if multiplier is None or multiplier <= 0:
        warning = ConsistencyWarning(
            "MULTIPLIER_FLOORED",
            "Campaign multiplier is not positive; using 1",
            {"multiplier": str(campaign.multiplier), "category": category},
        )
        return ONE, True, warning
    return multiplier, True, None


def cumulative_award(
    count: int,
    multiplier: Fraction,
    stack_size: int,
    base_stars: int,
) -> int:
    """A(count): stars released by the first `count` sales of a stack."""
    if count <= 0:
        return 0
    return math.floor(Fraction(count) * multiplier / stack_size) * base_stars


def accrue(
    rule: AccrualRule,
    position: int,
    on_date,
    campaign: Optional[CampaignWindow] = None,
) -> Accrual:
    """
    Credit for the sale at `position` (1-based) of its sequence.

    Args:
        rule: Catalog snapshot for the sale's (category, service)
        position: 1-based index among the staff member's sales of the
            same (category, service), ordered by (occurred_at, id)
        on_date: Calendar date of the sale (datetime is truncated)
        campaign: Current bonus campaign snapshot, if any

    Returns:
        Accrual with the credited stars
    """
    if position < 1:
        raise ValueError(f"position must be >= 1, got {position}")

    multiplier, under_bonus, warning = resolve_multiplier(campaign, rule.category, on_date)

    if rule.recurring:
        stars = math.floor(rule.base_stars * multiplier) if position == 1 else 0
    elif rule.stack_size > 1:
        stars = cumulative_award(
            position, multiplier, rule.stack_size, rule.base_stars
        ) - cumulative_award(position - 1, multiplier, rule.stack_size, rule.base_stars)
    else:
        stars = math.floor(rule.base_stars * multiplier)

    return Accrual(
        stars=stars,
        position=position,
        multiplier=multiplier,
        under_bonus=under_bonus,
        warnings=(warning,) if warning else (),
    )


def compute_stars(
    rule: AccrualRule,
    position: int,
    on_date,
    campaign: Optional[CampaignWindow] = None,
) -> int:
    """Stars credited to one sale. See accrue()."""
    return accrue(rule, position, on_date, campaign).stars


def replay(
    rule: AccrualRule,
    dates: Iterable,
    campaign: Optional[CampaignWindow] = None,
) -> list[Accrual]:
    """Credit every sale of one sequence; `dates` must already be in order."""
    return [
        accrue(rule, position, on_date, campaign)
        for position, on_date in enumerate(dates, start=1)
    ]

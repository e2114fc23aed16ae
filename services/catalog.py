"""Catalog service - reward rule lookup and bracket resolution.

Lookups return None when nothing matches; callers decide whether that
rejects the write (it always does for the ledger).
"""

import logging
import math
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from django.db import transaction

from starman.accrual import AccrualRule
from starman.models import CatalogEntry

logger = logging.getLogger(__name__)


# Default catalog. A trailing " xN" in the service name is the stack size.
# Forsikring tiers are bracket-mapped: (min, max, stars); max None = open-ended.
DEFAULT_BRACKETS = {
    "Forsikring": {
        "Mindre enn 100kr x3": (Decimal("0"), Decimal("99.99"), 1),
        "100-299kr x2": (Decimal("100"), Decimal("299"), 1),
        "300-499kr": (Decimal("300"), Decimal("499"), 1),
        "500-999kr": (Decimal("500"), Decimal("999"), 2),
        "1000-1499kr": (Decimal("1000"), Decimal("1499"), 3),
        "1500kr+": (Decimal("1500"), None, 4),
    },
}

DEFAULT_SERVICES = {
    "AVS/Support": {
        "MOBOFUSM": 1,
        "Teletime15 x3": 1,
        "Pctime15 x3": 1,
        "Mdatime15 x3": 1,
        "Teletime30 x2": 1,
        "Pctime30 x2": 1,
        "Mdatime30 x2": 1,
        "Teletime60": 1,
        "Pctime60": 1,
        "Mdatime60": 1,
        "RTGWEARABLES x2": 1,
        "Annen RTG": 1,
        "SUPPORTAVTALE 6mnd": 2,
        "SUPPORTAVTALE 12mnd": 3,
        "SUPPORTAVTALE 24mnd": 4,
        "SUPPORTAVTALE 36mnd": 5,
        "Installasjon hvitevare": 3,
        "Returgreen": 1,
    },
    "Kundeklubb": {
        "20%": 1,
        "40%": 2,
        "60%": 3,
        "80%": 4,
        "100%": 5,
    },
    "Annet": {
        "Kunnskap Sjekkliste": 3,
        "Todolist - Fylt ut 1 uke": 1,
        "Todolist - Alt JA 1 uke": 2,
    },
}

_STACK_SUFFIX = re.compile(r"\sx(\d+)$")


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable view of the active catalog for accrual."""

    rules: dict[tuple[str, str], AccrualRule] = field(default_factory=dict)

    def rule_for(self, category: str, service: str) -> AccrualRule | None:
        return self.rules.get((category, service))

    def __contains__(self, key) -> bool:
        return key in self.rules

    def __len__(self) -> int:
        return len(self.rules)


def stack_size_from_name(service: str) -> int:
    """Stack size encoded by the " xN" naming convention (1 if absent)."""
    match = _STACK_SUFFIX.search(service)
    return int(match.group(1)) if match else 1


def coerce_amount(value) -> Decimal | None:
    """Decimal amount, or None if missing, malformed, non-finite or negative."""
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, float):
            if not math.isfinite(value):
                return None
            amount = Decimal(str(value))
        else:
            amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def resolve_entry(category: str, service: str) -> CatalogEntry | None:
    """Active catalog entry for (category, service)."""
    try:
        return CatalogEntry.objects.get(category=category, service=service, is_active=True)
    except CatalogEntry.DoesNotExist:
        return None


def bracket_for(category: str, amount, recurring: bool = False) -> CatalogEntry | None:
    """
    Select the unique bracket of `category` containing `amount`.

    Bounds are inclusive. Returns None for negative, non-finite or
    malformed amounts, for amounts falling in no bracket, and for
    categories without brackets.
    """
    value = coerce_amount(amount)
    if value is None:
        return None

    brackets = CatalogEntry.objects.filter(
        category=category,
        recurring=recurring,
        is_active=True,
        min_amount__isnull=False,
    ).order_by("min_amount")

    matches = [entry for entry in brackets if entry.matches_amount(value)]
    if len(matches) != 1:
        if len(matches) > 1:
            logger.warning(
                "Amount %s matches %d brackets in %s; refusing to pick one",
                value,
                len(matches),
                category,
            )
        return None
    return matches[0]


def categories() -> list[str]:
    """Categories with at least one active entry."""
    return list(
        CatalogEntry.objects.filter(is_active=True)
        .order_by("category")
        .values_list("category", flat=True)
        .distinct()
    )


def entries(category: str) -> list[CatalogEntry]:
    """Active entries of one category."""
    return list(CatalogEntry.objects.filter(category=category, is_active=True))


def snapshot() -> CatalogSnapshot:
    """Freeze the active catalog for a batch of accrual computations."""
    return CatalogSnapshot(
        rules={
            (entry.category, entry.service): entry.as_rule()
            for entry in CatalogEntry.objects.filter(is_active=True)
        }
    )


def seed_defaults() -> int:
    """
    Install the default catalog.

    Idempotent: existing (category, service) pairs are left untouched.

    Returns:
        Number of entries created
    """
    created_count = 0
    with transaction.atomic():
        for category, services in DEFAULT_SERVICES.items():
            for service, stars in services.items():
                _, created = CatalogEntry.objects.get_or_create(
                    category=category,
                    service=service,
                    defaults={
                        "base_stars": stars,
                        "stack_size": stack_size_from_name(service),
                    },
                )
                created_count += created

        for category, brackets in DEFAULT_BRACKETS.items():
            for service, (low, high, stars) in brackets.items():
                _, created = CatalogEntry.objects.get_or_create(
                    category=category,
                    service=service,
                    defaults={
                        "base_stars": stars,
                        "stack_size": stack_size_from_name(service),
                        "min_amount": low,
                        "max_amount": high,
                    },
                )
                created_count += created

    logger.info("Seeded %d catalog entries", created_count)
    return created_count

"""Pytest fixtures for Starman tests."""

from datetime import datetime
from decimal import Decimal

import pytest
from django.utils import timezone

from starman.models import CatalogEntry, Staff


def _at(day: int, hour: int = 12, minute: int = 0) -> datetime:
    return timezone.make_aware(datetime(2026, 3, day, hour, minute))


@pytest.fixture
def at():
    """Factory for aware local timestamps in March 2026: at(day, hour=12)."""
    return _at


@pytest.fixture
def staff(db):
    """Create a test staff member."""
    return Staff.objects.create(code="ANS-001", name="Kari Nordmann")


@pytest.fixture
def staff_b(db):
    """Create a second staff member."""
    return Staff.objects.create(code="ANS-002", name="Ola Hansen")


@pytest.fixture
def catalog(db):
    """
    Small catalog covering every kind of entry.

    - AVS/Support: two stacking services and one fixed-price service
    - Kundeklubb: fixed-price
    - Forsikring: one-off brackets (gap between 299 and 300)
      and one recurring bracket
    """
    entries = [
        CatalogEntry(category="AVS/Support", service="Teletime15 x3", base_stars=1, stack_size=3),
        CatalogEntry(category="AVS/Support", service="Teletime30 x2", base_stars=2, stack_size=2),
        CatalogEntry(category="AVS/Support", service="SUPPORTAVTALE 12mnd", base_stars=3),
        CatalogEntry(category="Kundeklubb", service="40%", base_stars=2),
        CatalogEntry(
            category="Forsikring",
            service="1-99kr",
            base_stars=1,
            min_amount=Decimal("1"),
            max_amount=Decimal("99"),
        ),
        CatalogEntry(
            category="Forsikring",
            service="100-299kr",
            base_stars=1,
            min_amount=Decimal("100"),
            max_amount=Decimal("299"),
        ),
        CatalogEntry(
            category="Forsikring",
            service="300-499kr",
            base_stars=2,
            min_amount=Decimal("300"),
            max_amount=Decimal("499"),
        ),
        CatalogEntry(
            category="Forsikring",
            service="Gjentakende - 100-299kr",
            base_stars=2,
            recurring=True,
            min_amount=Decimal("100"),
            max_amount=Decimal("299"),
        ),
    ]
    CatalogEntry.objects.bulk_create(entries)
    return {entry.service: entry for entry in CatalogEntry.objects.all()}

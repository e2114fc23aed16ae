"""Tests for catalog lookup and bracket resolution."""

from decimal import Decimal
from io import StringIO

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.management import call_command

from starman.gates import Gates
from starman.models import CatalogEntry
from starman.services import catalog as catalog_service


pytestmark = pytest.mark.django_db


class TestBracketSelection:
    """Tests for amount-to-bracket mapping."""

    @pytest.mark.parametrize(
        "amount,service",
        [
            (50, "1-99kr"),
            (1, "1-99kr"),
            (99, "1-99kr"),
            (100, "100-299kr"),
            ("250.00", "100-299kr"),
            (299, "100-299kr"),
            (300, "300-499kr"),
            (Decimal("499"), "300-499kr"),
        ],
    )
    def test_inclusive_bounds(self, catalog, amount, service):
        assert catalog_service.bracket_for("Forsikring", amount).service == service

    @pytest.mark.parametrize("amount", [Decimal("299.50"), 0, 500, -5, "abc", float("inf"), None])
    def test_no_bracket(self, catalog, amount):
        assert catalog_service.bracket_for("Forsikring", amount) is None

    def test_recurring_table(self, catalog):
        entry = catalog_service.bracket_for("Forsikring", 150, recurring=True)
        assert entry.service == "Gjentakende - 100-299kr"

    def test_category_without_brackets(self, catalog):
        assert catalog_service.bracket_for("Kundeklubb", 50) is None

    def test_inactive_bracket_is_skipped(self, catalog):
        CatalogEntry.objects.filter(service="1-99kr").update(is_active=False)
        assert catalog_service.bracket_for("Forsikring", 50) is None

    def test_overlap_refuses_to_pick(self, catalog):
        # Written around clean() on purpose
        CatalogEntry.objects.create(
            category="Forsikring",
            service="250-350kr",
            base_stars=1,
            min_amount=Decimal("250"),
            max_amount=Decimal("350"),
        )
        assert catalog_service.bracket_for("Forsikring", 260) is None
        assert catalog_service.bracket_for("Forsikring", 150).service == "100-299kr"


class TestCatalogLookup:
    def test_resolve_entry(self, catalog):
        entry = catalog_service.resolve_entry("AVS/Support", "Teletime15 x3")
        assert entry.stack_size == 3

    def test_resolve_entry_needs_matching_category(self, catalog):
        assert catalog_service.resolve_entry("Kundeklubb", "Teletime15 x3") is None

    def test_snapshot(self, catalog):
        snapshot = catalog_service.snapshot()
        assert len(snapshot) == len(catalog)
        assert ("AVS/Support", "Teletime15 x3") in snapshot
        assert snapshot.rule_for("AVS/Support", "Teletime15 x3").is_stacking
        assert snapshot.rule_for("Ukjent", "Ukjent") is None

    def test_categories(self, catalog):
        assert catalog_service.categories() == ["AVS/Support", "Forsikring", "Kundeklubb"]

    def test_entries(self, catalog):
        services = {e.service for e in catalog_service.entries("Kundeklubb")}
        assert services == {"40%"}

    @pytest.mark.parametrize(
        "name,size",
        [("Teletime15 x3", 3), ("RTGWEARABLES x2", 2), ("Teletime60", 1), ("SUPPORTAVTALE 6mnd", 1)],
    )
    def test_stack_size_from_name(self, name, size):
        assert catalog_service.stack_size_from_name(name) == size

    def test_coerce_amount(self):
        assert catalog_service.coerce_amount(" 12.50 ") == Decimal("12.50")
        assert catalog_service.coerce_amount(0) == Decimal("0")
        assert catalog_service.coerce_amount("-1") is None
        assert catalog_service.coerce_amount("NaN") is None
        assert catalog_service.coerce_amount(True) is None


class TestCatalogEntryModel:
    def test_clean_rejects_overlap(self, catalog):
        entry = CatalogEntry(
            category="Forsikring",
            service="250-350kr",
            base_stars=1,
            min_amount=Decimal("250"),
            max_amount=Decimal("350"),
        )
        with pytest.raises(DjangoValidationError):
            entry.clean()

    def test_clean_accepts_edit_in_place(self, catalog):
        entry = catalog["100-299kr"]
        entry.max_amount = Decimal("290")
        entry.clean()

    def test_clean_rejects_upper_without_lower(self, db):
        entry = CatalogEntry(category="Forsikring", service="x", base_stars=1, max_amount=Decimal("5"))
        with pytest.raises(DjangoValidationError):
            entry.clean()

    def test_matches_amount_open_ended(self):
        entry = CatalogEntry(min_amount=Decimal("1500"), max_amount=None)
        assert entry.matches_amount(Decimal("1500"))
        assert entry.matches_amount(Decimal("100000"))
        assert not entry.matches_amount(Decimal("1499.99"))


class TestSeedDefaults:
    def test_seed_is_idempotent(self, db):
        first = catalog_service.seed_defaults()
        assert first == CatalogEntry.objects.count()
        assert catalog_service.seed_defaults() == 0

    def test_seeded_brackets_are_consistent(self, db):
        catalog_service.seed_defaults()
        assert Gates.bracket_integrity("Forsikring").passed
        assert catalog_service.bracket_for("Forsikring", 99.99).service == "Mindre enn 100kr x3"
        assert catalog_service.bracket_for("Forsikring", 99.995) is None
        assert catalog_service.bracket_for("Forsikring", 20000).service == "1500kr+"

    def test_seeded_stack_sizes(self, db):
        catalog_service.seed_defaults()
        assert CatalogEntry.objects.get(service="Mindre enn 100kr x3").stack_size == 3
        assert CatalogEntry.objects.get(service="Teletime30 x2").stack_size == 2
        assert CatalogEntry.objects.get(service="SUPPORTAVTALE 36mnd").base_stars == 5

    def test_seed_command(self, db):
        out = StringIO()
        call_command("starman_seed_catalog", stdout=out)
        assert f"Created {CatalogEntry.objects.count()} catalog entries." in out.getvalue()

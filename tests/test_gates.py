"""
Starman gates tests.

Tests for:
- G1 BracketIntegrity (overlap, inverted, candidate check)
- G2 SingleActiveCampaign
- G3 CampaignWindow
- G4 AggregateConsistency
"""

from datetime import date
from decimal import Decimal

import pytest

from starman.gates import GateError, Gates
from starman.models import BonusCampaign, CatalogEntry, Staff
from starman.services.ledger import LedgerService


pytestmark = pytest.mark.django_db


# ═══════════════════════════════════════════════════════════════════
# G1: Bracket Integrity
# ═══════════════════════════════════════════════════════════════════


class TestG1BracketIntegrity:
    def test_valid_brackets_with_gap(self, catalog):
        result = Gates.bracket_integrity("Forsikring")
        assert result.passed is True
        assert result.gate_name == "G1_BracketIntegrity"

    def test_recurring_table_checked_separately(self, catalog):
        # The recurring 100-299 bracket does not overlap the one-off one
        assert Gates.check_bracket_integrity("Forsikring", recurring=True)

    def test_shared_bound_overlaps(self, catalog):
        CatalogEntry.objects.create(
            category="Forsikring",
            service="499-999kr",
            base_stars=2,
            min_amount=Decimal("499"),
            max_amount=Decimal("999"),
        )
        with pytest.raises(GateError) as exc:
            Gates.bracket_integrity("Forsikring")
        assert exc.value.details["services"] == ["300-499kr", "499-999kr"]

    def test_open_ended_bracket_must_be_last(self, catalog):
        CatalogEntry.objects.filter(service="100-299kr").update(max_amount=None)
        assert Gates.check_bracket_integrity("Forsikring") is False

    def test_inverted_bracket(self, db):
        CatalogEntry.objects.create(
            category="Forsikring",
            service="Feil",
            base_stars=1,
            min_amount=Decimal("500"),
            max_amount=Decimal("100"),
        )
        with pytest.raises(GateError, match="ends before it starts"):
            Gates.bracket_integrity("Forsikring")

    def test_candidate(self, catalog):
        candidate = CatalogEntry(
            category="Forsikring",
            service="500-999kr",
            base_stars=2,
            min_amount=Decimal("500"),
            max_amount=Decimal("999"),
        )
        assert Gates.check_bracket_integrity("Forsikring", candidate=candidate)

        candidate.min_amount = Decimal("450")
        assert not Gates.check_bracket_integrity("Forsikring", candidate=candidate)

    def test_inactive_bracket_ignored(self, catalog):
        CatalogEntry.objects.create(
            category="Forsikring",
            service="Gammel 250-350kr",
            base_stars=1,
            min_amount=Decimal("250"),
            max_amount=Decimal("350"),
            is_active=False,
        )
        assert Gates.check_bracket_integrity("Forsikring")


# ═══════════════════════════════════════════════════════════════════
# G2: Single Active Campaign
# ═══════════════════════════════════════════════════════════════════


class TestG2SingleActiveCampaign:
    def test_none_enabled(self, db):
        assert Gates.single_active_campaign().passed

    def test_two_enabled(self, db):
        BonusCampaign.objects.bulk_create([
            BonusCampaign(category="AVS/Support", enabled=True),
            BonusCampaign(category="Kundeklubb", enabled=True),
        ])
        with pytest.raises(GateError) as exc:
            Gates.single_active_campaign()
        assert exc.value.details == {"count": 2}
        assert Gates.check_single_active_campaign() is False


# ═══════════════════════════════════════════════════════════════════
# G3: Campaign Window
# ═══════════════════════════════════════════════════════════════════


class TestG3CampaignWindow:
    @pytest.mark.parametrize("multiplier", [1, 2, Decimal("1.5"), "3"])
    def test_valid_multiplier(self, multiplier):
        assert Gates.campaign_window(multiplier).passed

    @pytest.mark.parametrize("multiplier", [0, Decimal("0.99"), -2, float("nan"), None])
    def test_invalid_multiplier(self, multiplier):
        assert Gates.check_campaign_window(multiplier) is False

    def test_same_day_window(self):
        assert Gates.check_campaign_window(2, date(2026, 3, 11), date(2026, 3, 11))

    def test_inverted_window(self):
        with pytest.raises(GateError) as exc:
            Gates.campaign_window(2, date(2026, 3, 12), date(2026, 3, 11))
        assert exc.value.gate_name == "G3_CampaignWindow"

    def test_model_clean(self):
        from django.core.exceptions import ValidationError as DjangoValidationError

        campaign = BonusCampaign(category="all", multiplier=Decimal("0.5"))
        with pytest.raises(DjangoValidationError):
            campaign.clean()


# ═══════════════════════════════════════════════════════════════════
# G4: Aggregate Consistency
# ═══════════════════════════════════════════════════════════════════


class TestG4AggregateConsistency:
    def test_consistent(self, staff, catalog):
        LedgerService.record_sale("ANS-001", "AVS/Support", "SUPPORTAVTALE 12mnd")
        assert Gates.aggregate_consistency(staff.pk).passed

    def test_drift(self, staff, catalog):
        LedgerService.record_sale("ANS-001", "AVS/Support", "SUPPORTAVTALE 12mnd")
        Staff.objects.filter(pk=staff.pk).update(stars=1)

        with pytest.raises(GateError) as exc:
            Gates.aggregate_consistency(staff.pk)
        assert exc.value.details == {"cached": 1, "ledger": 3, "drift": -2}

        LedgerService.sync_aggregate("ANS-001")
        assert Gates.check_aggregate_consistency(staff.pk)

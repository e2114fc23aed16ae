"""Tests for ledger reconciliation."""

from datetime import date
from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import CommandError, call_command
from django.db.models import F

from starman.exceptions import ConfigurationError
from starman.gates import Gates
from starman.models import CatalogEntry, Sale, Staff
from starman.services import campaign as campaign_service
from starman.services import reconciliation
from starman.services.ledger import LedgerService
from starman.services.reconciliation import reconcile
from starman.signals import ledger_reconciled


pytestmark = pytest.mark.django_db


# ═══════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════


@pytest.fixture
def teletime_sales(staff, catalog, at):
    """Three Teletime15 x3 sales on 10-12 March: stars [0, 0, 1]."""
    return [
        LedgerService.record_sale("ANS-001", "AVS/Support", "Teletime15 x3", occurred_at=at(day))
        for day in (10, 11, 12)
    ]


def stars_of(sales):
    return [Sale.objects.get(pk=s.pk).stars for s in sales]


# ═══════════════════════════════════════════════════════════════════
# Core behaviour
# ═══════════════════════════════════════════════════════════════════


class TestReconcile:
    def test_nothing_to_do(self, teletime_sales):
        report = reconcile()
        assert report.updated_count == 0
        assert report.staged_count == 0
        assert report.complete

    def test_campaign_enabled_after_the_sales(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)

        report = reconcile()

        assert stars_of(teletime_sales) == [1, 1, 1]
        assert report.updated_count == 2
        assert report.per_staff_delta == {"ANS-001": 2}
        assert report.committed == ["ANS-001"]
        assert LedgerService.balance("ANS-001") == 3
        assert Gates.aggregate_consistency(Staff.objects.get(code="ANS-001").pk).passed

    def test_idempotent(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        reconcile()
        again = reconcile()
        assert again.updated_count == 0
        assert LedgerService.balance("ANS-001") == 3

    def test_versions_are_bumped(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        reconcile()
        assert [Sale.objects.get(pk=s.pk).version for s in teletime_sales] == [2, 2, 1]

    def test_campaign_window_is_per_sale_date(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3, date(2026, 3, 11), date(2026, 3, 11))
        report = reconcile()
        assert stars_of(teletime_sales) == [0, 1, 1]
        assert report.updated_count == 1
        assert LedgerService.balance("ANS-001") == 2

    def test_backdated_sale_shifts_the_stack(self, teletime_sales, at):
        backdated = LedgerService.record_sale(
            "ANS-001", "AVS/Support", "Teletime15 x3", occurred_at=at(9)
        )
        assert backdated.stars == 0

        report = reconcile()

        # Ordered: 9 (new), 10, 11, 12 -> the 11th now completes the stack
        assert stars_of([backdated] + teletime_sales) == [0, 0, 1, 0]
        assert report.updated_count == 2
        assert report.per_staff_delta == {"ANS-001": 0}
        assert LedgerService.balance("ANS-001") == 1

    def test_backdated_recurring_sale_stays_single_credit(self, staff, catalog, at):
        later = LedgerService.record_sale(
            "ANS-001", "Forsikring", amount=150, recurring=True, occurred_at=at(12)
        )
        backdated = LedgerService.record_sale(
            "ANS-001", "Forsikring", amount=150, recurring=True, occurred_at=at(10)
        )

        assert reconcile().updated_count == 0
        assert LedgerService.balance("ANS-001") == 2

        # A full replay moves the credit to the earliest sale
        report = reconcile(include_all=True)
        assert stars_of([backdated, later]) == [2, 0]
        assert report.per_staff_delta == {"ANS-001": 0}
        assert LedgerService.balance("ANS-001") == 2

    def test_mid_sequence_insert_keeps_the_lossless_sum(self, staff, catalog, at):
        sales = [
            LedgerService.record_sale("ANS-001", "AVS/Support", "Teletime15 x3", occurred_at=at(day))
            for day in (10, 20, 25, 22)
        ]
        assert LedgerService.balance("ANS-001") == 1

        reconcile()
        assert stars_of(sales) == [0, 0, 0, 1]
        assert LedgerService.balance("ANS-001") == 1

    def test_catalog_change_is_applied(self, teletime_sales):
        CatalogEntry.objects.filter(service="Teletime15 x3").update(stack_size=2, base_stars=2)
        reconcile()
        assert stars_of(teletime_sales) == [0, 2, 0]
        assert LedgerService.balance("ANS-001") == 2

    def test_single_staff(self, teletime_sales, staff_b, at):
        LedgerService.record_sale("ANS-002", "AVS/Support", "Teletime15 x3", occurred_at=at(10))
        campaign_service.activate("all", 3)

        report = reconcile(staff_code="ANS-002")

        assert report.committed == ["ANS-002"]
        assert LedgerService.balance("ANS-002") == 1
        assert LedgerService.balance("ANS-001") == 1

    def test_unknown_staff(self, db):
        with pytest.raises(ConfigurationError) as exc:
            reconcile(staff_code="ANS-999")
        assert exc.value.code == "STAFF_NOT_FOUND"

    def test_inactive_staff_skipped_in_full_run(self, teletime_sales):
        Staff.objects.filter(code="ANS-001").update(is_active=False)
        campaign_service.activate("AVS/Support", 3)
        assert reconcile().updated_count == 0

    def test_signal(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        received = []

        def handler(sender, staff, delta, corrections, **kwargs):
            received.append((staff.code, delta, len(corrections)))

        ledger_reconciled.connect(handler)
        try:
            reconcile()
        finally:
            ledger_reconciled.disconnect(handler)
        assert received == [("ANS-001", 2, 2)]


# ═══════════════════════════════════════════════════════════════════
# Scope
# ═══════════════════════════════════════════════════════════════════


class TestScope:
    @pytest.fixture
    def fixed_sale(self, staff, catalog, at):
        return LedgerService.record_sale(
            "ANS-001", "AVS/Support", "SUPPORTAVTALE 12mnd", occurred_at=at(10)
        )

    def test_stacking_only_by_default(self, fixed_sale):
        campaign_service.activate("AVS/Support", 2)
        assert reconcile().updated_count == 0
        assert stars_of([fixed_sale]) == [3]

    def test_include_all(self, fixed_sale):
        campaign_service.activate("AVS/Support", 2)
        report = reconcile(include_all=True)
        assert report.updated_count == 1
        assert stars_of([fixed_sale]) == [6]

    def test_include_all_from_settings(self, settings, fixed_sale):
        settings.STARMAN = {"RECONCILE_STACKING_ONLY": False}
        campaign_service.activate("AVS/Support", 2)
        assert reconcile().updated_count == 1

    def test_manual_awards_untouched(self, staff, catalog):
        manual = LedgerService.award_manual("ANS-001", 5, "B-1001")
        campaign_service.activate("all", 2)
        reconcile(include_all=True)
        assert stars_of([manual]) == [5]
        assert LedgerService.balance("ANS-001") == 5

    def test_missing_catalog_entry_is_reported(self, teletime_sales):
        CatalogEntry.objects.filter(service="Teletime15 x3").update(is_active=False)
        report = reconcile()
        assert report.updated_count == 0
        assert [w.code for w in report.warnings] == ["ENTRY_MISSING"]
        assert stars_of(teletime_sales) == [0, 0, 1]

    def test_floored_multiplier_is_reported_once(self, teletime_sales):
        from decimal import Decimal

        from starman.models import BonusCampaign

        BonusCampaign.objects.create(category="AVS/Support", multiplier=Decimal("0"), enabled=True)
        report = reconcile()
        assert report.updated_count == 0
        assert [w.code for w in report.warnings] == ["MULTIPLIER_FLOORED"]


# ═══════════════════════════════════════════════════════════════════
# Dry run and failures
# ═══════════════════════════════════════════════════════════════════


class TestDryRun:
    def test_dry_run_writes_nothing(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        report = reconcile(dry_run=True)

        assert report.dry_run is True
        assert report.staged_count == 2
        assert report.updated_count == 0
        assert report.committed == []
        assert stars_of(teletime_sales) == [0, 0, 1]
        assert LedgerService.balance("ANS-001") == 1

    def test_audit_lines(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        report = reconcile(dry_run=True)
        first = teletime_sales[0]
        assert report.lines()[0] == f"#{first.pk} Kari Nordmann - Teletime15 x3: 0 → 1 (+1)"
        assert report.details[0].as_dict()["delta"] == 1


class TestVersionConflict:
    def _racing_edit(self):
        """stage_corrections that lets another writer bump the first staged sale."""
        real_stage = reconciliation.stage_corrections

        def racing(*args, **kwargs):
            corrections = real_stage(*args, **kwargs)
            if corrections:
                Sale.objects.filter(pk=corrections[0].sale_id).update(version=F("version") + 1)
            return corrections

        return patch.object(reconciliation, "stage_corrections", side_effect=racing)

    def test_conflict_rolls_back_the_staff_batch(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)

        with self._racing_edit():
            report = reconcile()

        assert not report.complete
        assert report.error.code == "VERSION_CONFLICT"
        assert report.failed_staff == "ANS-001"
        assert report.updated_count == 0
        assert report.staged_count == 2
        assert stars_of(teletime_sales) == [0, 0, 1]
        assert LedgerService.balance("ANS-001") == 1

    def test_conflict_stops_the_run(self, teletime_sales, staff_b, at):
        LedgerService.record_sale("ANS-002", "AVS/Support", "Teletime15 x3", occurred_at=at(10))
        campaign_service.activate("AVS/Support", 3)

        with self._racing_edit():
            report = reconcile()

        assert report.committed == []
        assert LedgerService.balance("ANS-002") == 0

    def test_rerun_after_conflict(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        with self._racing_edit():
            reconcile()

        report = reconcile()
        assert report.complete
        assert report.updated_count == 2
        assert LedgerService.balance("ANS-001") == 3


# ═══════════════════════════════════════════════════════════════════
# Management command
# ═══════════════════════════════════════════════════════════════════


class TestReconcileCommand:
    def test_command(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        out = StringIO()
        call_command("starman_reconcile", stdout=out)
        assert "Corrected 2 sales." in out.getvalue()
        assert LedgerService.balance("ANS-001") == 3

    def test_command_dry_run(self, teletime_sales):
        campaign_service.activate("AVS/Support", 3)
        out = StringIO()
        call_command("starman_reconcile", "--dry-run", stdout=out)
        assert "Dry run: 2 sales would be corrected." in out.getvalue()
        assert "Teletime15 x3: 0 → 1 (+1)" in out.getvalue()
        assert LedgerService.balance("ANS-001") == 1

    def test_command_all_services(self, staff, catalog, at):
        LedgerService.record_sale("ANS-001", "Kundeklubb", "40%", occurred_at=at(10))
        campaign_service.activate("Kundeklubb", 2)
        out = StringIO()
        call_command("starman_reconcile", "--staff", "ANS-001", "--all-services", stdout=out)
        assert "Corrected 1 sales." in out.getvalue()

    def test_command_unknown_staff(self, db):
        with pytest.raises(CommandError):
            call_command("starman_reconcile", "--staff", "ANS-999", stdout=StringIO())

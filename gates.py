"""
Starman Gates - Integrity rules.

G1: BracketIntegrity - Amount brackets in a category never overlap
G2: SingleActiveCampaign - At most one bonus campaign is enabled
G3: CampaignWindow - Multiplier >= 1 and start_date <= end_date
G4: AggregateConsistency - Staff.stars equals the sum of the staff's sales
"""

from dataclasses import dataclass
from decimal import Decimal

from django.db.models import Sum


class GateError(Exception):
    """Gate validation error."""

    def __init__(self, gate_name: str, message: str, details: dict | None = None):
        self.gate_name = gate_name
        self.message = message
        self.details = details or {}
        super().__init__(f"[{gate_name}] {message}")


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Starman integrity gates."""

    # =========================================================================
    # G1: Bracket Integrity
    # =========================================================================

    @classmethod
    def bracket_integrity(
        cls,
        category: str,
        recurring: bool = False,
        candidate=None,
    ) -> GateResult:
        """
        G1: Brackets of a category (per recurring flag) never overlap.

        Bounds are inclusive, so 100-299 and 299-499 overlap while
        100-299 and 300-499 do not. Gaps are allowed.

        Args:
            category: Catalog category
            recurring: Which bracket table (one-off or recurring)
            candidate: Unsaved/edited CatalogEntry to check in place of
                its stored version

        Raises:
            GateError: If a bracket is inverted or two brackets overlap
        """
        from starman.models import CatalogEntry

        query = CatalogEntry.objects.filter(
            category=category,
            recurring=recurring,
            is_active=True,
            min_amount__isnull=False,
        )
        brackets = list(query)
        if candidate is not None:
            brackets = [b for b in brackets if candidate.pk is None or b.pk != candidate.pk]
            if candidate.is_active:
                brackets.append(candidate)

        for bracket in brackets:
            if bracket.max_amount is not None and bracket.max_amount < bracket.min_amount:
                raise GateError(
                    "G1_BracketIntegrity",
                    f"Bracket '{bracket.service}' ends before it starts.",
                    {"service": bracket.service},
                )

        brackets.sort(key=lambda b: Decimal(b.min_amount))
        for lower, upper in zip(brackets, brackets[1:]):
            if lower.max_amount is None or lower.max_amount >= upper.min_amount:
                raise GateError(
                    "G1_BracketIntegrity",
                    f"Brackets '{lower.service}' and '{upper.service}' overlap.",
                    {"category": category, "services": [lower.service, upper.service]},
                )

        return GateResult(True, "G1_BracketIntegrity")

    @classmethod
    def check_bracket_integrity(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.bracket_integrity(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G2: Single Active Campaign
    # =========================================================================

    @classmethod
    def single_active_campaign(cls) -> GateResult:
        """
        G2: At most one enabled campaign.

        Raises:
            GateError: If several campaigns are enabled
        """
        from starman.models import BonusCampaign

        count = BonusCampaign.objects.filter(enabled=True).count()
        if count > 1:
            raise GateError(
                "G2_SingleActiveCampaign",
                "More than one campaign is enabled.",
                {"count": count},
            )

        return GateResult(True, "G2_SingleActiveCampaign")

    @classmethod
    def check_single_active_campaign(cls) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.single_active_campaign()
            return True
        except GateError:
            return False

    # =========================================================================
    # G3: Campaign Window
    # =========================================================================

    @classmethod
    def campaign_window(cls, multiplier, start_date=None, end_date=None) -> GateResult:
        """
        G3: Multiplier is a finite number >= 1 and the window is not inverted.

        Raises:
            GateError: If the multiplier or the dates are invalid
        """
        from starman.accrual import as_fraction

        value = as_fraction(multiplier)
        if value is None or value < 1:
            raise GateError(
                "G3_CampaignWindow",
                f"Multiplier must be at least 1: {multiplier}",
                {"multiplier": str(multiplier)},
            )

        if start_date and end_date and start_date > end_date:
            raise GateError(
                "G3_CampaignWindow",
                "Campaign ends before it starts.",
                {"start_date": str(start_date), "end_date": str(end_date)},
            )

        return GateResult(True, "G3_CampaignWindow")

    @classmethod
    def check_campaign_window(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.campaign_window(*args, **kwargs)
            return True
        except GateError:
            return False

    # =========================================================================
    # G4: Aggregate Consistency
    # =========================================================================

    @classmethod
    def aggregate_consistency(cls, staff_id) -> GateResult:
        """
        G4: Staff.stars equals the sum of stars over the staff's sales.

        Drift is an expected, correctable condition; this gate only
        detects it. Use LedgerService.sync_aggregate() or reconcile()
        to repair it.

        Raises:
            GateError: If the cached total differs from the ledger sum
        """
        from starman.models import Sale, Staff

        cached = Staff.objects.values_list("stars", flat=True).get(pk=staff_id)
        ledger = Sale.objects.filter(staff_id=staff_id).aggregate(total=Sum("stars"))["total"] or 0

        if cached != ledger:
            raise GateError(
                "G4_AggregateConsistency",
                f"Cached total {cached} differs from ledger sum {ledger}.",
                {"cached": cached, "ledger": ledger, "drift": cached - ledger},
            )

        return GateResult(True, "G4_AggregateConsistency")

    @classmethod
    def check_aggregate_consistency(cls, staff_id) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.aggregate_consistency(staff_id)
            return True
        except GateError:
            return False

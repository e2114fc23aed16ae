"""
Starman public API.

CORE (essential):
    StarService.record_sale(...)   - Log a sale and credit its stars
    StarService.edit_sale(...)     - Move a sale to another service
    StarService.delete_sale(id)    - Remove a sale
    StarService.record_many(...)   - Import a batch of sales
    StarService.adjust_stars(...)  - Signed moderator correction
    StarService.reset_period(...)  - Delete a period's ledger rows
    StarService.compute_stars(...) - Pure accrual for one sale
    StarService.reconcile(...)     - Replay the ledger under current rules

CONVENIENCE (helpers):
    StarService.balance(code)      - Cached star total
    StarService.history(code)      - Recent sales
    StarService.stack_progress(...) - Progress towards the next release
"""

from datetime import date

from starman.accrual import AccrualRule, CampaignWindow, compute_stars
from starman.models import Sale, Staff
from starman.services import campaign as campaign_service
from starman.services import catalog as catalog_service
from starman.services import staff as staff_service
from starman.services.ledger import (
    AggregateCheck,
    LedgerService,
    PeriodReset,
    SaleChange,
    StackProgress,
)
from starman.services.reconciliation import ReconciliationReport, reconcile


class StarService:
    """
    Starman public API.

    Uses @classmethod for extensibility. Write paths delegate to
    LedgerService, reconciliation to services.reconciliation.
    """

    # ======================================================================
    # CORE API
    # ======================================================================

    @classmethod
    def record_sale(
        cls,
        staff_code: str,
        category: str,
        service: str | None = None,
        amount=None,
        occurred_at=None,
        **kwargs,
    ) -> Sale:
        """Log a sale; see LedgerService.record_sale()."""
        return LedgerService.record_sale(
            staff_code,
            category,
            service=service,
            amount=amount,
            occurred_at=occurred_at,
            **kwargs,
        )

    @classmethod
    def record_many(cls, staff_code: str, entries, created_by: str = "") -> list[Sale]:
        """Import a batch of sales; see LedgerService.record_many()."""
        return LedgerService.record_many(staff_code, entries, created_by=created_by)

    @classmethod
    def edit_sale(
        cls,
        sale_id: int,
        category: str,
        service: str | None = None,
        amount=None,
        **kwargs,
    ) -> SaleChange:
        return LedgerService.edit_sale(sale_id, category, service=service, amount=amount, **kwargs)

    @classmethod
    def delete_sale(cls, sale_id: int) -> SaleChange:
        return LedgerService.delete_sale(sale_id)

    @classmethod
    def award_manual(cls, staff_code: str, stars: int, reference: str, **kwargs) -> Sale:
        return LedgerService.award_manual(staff_code, stars, reference, **kwargs)

    @classmethod
    def adjust_stars(cls, staff_code: str, delta: int, reason: str = "", **kwargs) -> SaleChange:
        return LedgerService.adjust_stars(staff_code, delta, reason, **kwargs)

    @classmethod
    def reset_period(cls, start: date, end: date, staff_code: str | None = None) -> PeriodReset:
        return LedgerService.reset_period(start, end, staff_code=staff_code)

    @classmethod
    def compute_stars(
        cls,
        rule: AccrualRule,
        position: int,
        on_date: date,
        campaign: CampaignWindow | None = None,
    ) -> int:
        """
        Stars for the sale at `position` of its sequence.

        Pure: takes a catalog rule and campaign snapshot, touches nothing.
        """
        return compute_stars(rule, position, on_date, campaign)

    @classmethod
    def reconcile(
        cls,
        staff_code: str | None = None,
        include_all: bool | None = None,
        dry_run: bool = False,
    ) -> ReconciliationReport:
        return reconcile(staff_code=staff_code, include_all=include_all, dry_run=dry_run)

    # ======================================================================
    # CONVENIENCE API
    # ======================================================================

    @classmethod
    def staff(cls, code: str) -> Staff | None:
        return staff_service.get(code)

    @classmethod
    def balance(cls, staff_code: str) -> int:
        return LedgerService.balance(staff_code)

    @classmethod
    def history(cls, staff_code: str, limit: int | None = None) -> list[Sale]:
        return LedgerService.history(staff_code, limit=limit)

    @classmethod
    def stack_progress(cls, staff_code: str, category: str, service: str) -> StackProgress:
        return LedgerService.stack_progress(staff_code, category, service)

    @classmethod
    def check_aggregate(cls, staff_code: str) -> AggregateCheck:
        return LedgerService.check_aggregate(staff_code)

    @classmethod
    def catalog_snapshot(cls) -> catalog_service.CatalogSnapshot:
        return catalog_service.snapshot()

    @classmethod
    def campaign_snapshot(cls) -> CampaignWindow | None:
        return campaign_service.snapshot()

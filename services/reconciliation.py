"""Reconciliation - replay the ledger under the current rules.

For each staff member the live sales are grouped by (category, service),
ordered by (occurred_at, id) and re-credited through the accrual function
with the current catalog and the current campaign (resolved per sale
date). Every mismatch becomes a Correction. The corrections and the net
delta on Staff.stars are committed together, one staff member per
transaction.atomic() block, so a long run never holds a global lock and
can be resumed per staff.

Sale rows are updated with a version check; a concurrent edit makes the
batch fail with VERSION_CONFLICT, rolls it back, and stops the run.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from starman.accrual import CampaignWindow, accrue
from starman.conf import starman_settings
from starman.exceptions import CommitError, ConfigurationError, ConsistencyWarning
from starman.models import Sale, SaleKind, Staff
from starman.services import campaign as campaign_service
from starman.services import catalog as catalog_service
from starman.services.catalog import CatalogSnapshot
from starman.signals import ledger_reconciled

logger = logging.getLogger(__name__)


@dataclass
class Correction:
    """One staged change to a sale's stars."""

    sale_id: int
    staff_code: str
    staff_name: str
    category: str
    service: str
    old_stars: int
    new_stars: int
    version: int
    committed: bool = False

    @property
    def delta(self) -> int:
        return self.new_stars - self.old_stars

    def line(self) -> str:
        return (
            f"#{self.sale_id} {self.staff_name} - {self.service}: "
            f"{self.old_stars} → {self.new_stars} ({self.delta:+d})"
        )

    def as_dict(self) -> dict:
        return {
            "sale_id": self.sale_id,
            "staff_code": self.staff_code,
            "staff_name": self.staff_name,
            "category": self.category,
            "service": self.service,
            "old_stars": self.old_stars,
            "new_stars": self.new_stars,
            "delta": self.delta,
            "committed": self.committed,
        }


@dataclass
class ReconciliationReport:
    """Result of a reconciliation run."""

    dry_run: bool = False
    details: list[Correction] = field(default_factory=list)
    per_staff_delta: dict[str, int] = field(default_factory=dict)
    committed: list[str] = field(default_factory=list)
    warnings: list[ConsistencyWarning] = field(default_factory=list)
    failed_staff: str | None = None
    error: CommitError | None = None

    @property
    def updated_count(self) -> int:
        """Sales whose stars were actually rewritten."""
        return sum(1 for c in self.details if c.committed)

    @property
    def staged_count(self) -> int:
        return len(self.details)

    @property
    def complete(self) -> bool:
        return self.error is None

    def lines(self) -> list[str]:
        """Human-readable audit lines."""
        return [c.line() for c in self.details]

    def warn(self, warning: ConsistencyWarning) -> None:
        if warning not in self.warnings:
            self.warnings.append(warning)


def reconcile(
    staff_code: str | None = None,
    include_all: bool | None = None,
    dry_run: bool = False,
) -> ReconciliationReport:
    """
    Recompute stored stars and repair the staff totals.

    Args:
        staff_code: Reconcile one staff member (default: all active staff)
        include_all: Also reconsider non-stacking and recurring services
            (default: the inverse of RECONCILE_STACKING_ONLY)
        dry_run: Stage and report corrections without writing

    Returns:
        ReconciliationReport. On a commit failure the run stops; the
        report carries the error, the staff member that failed, and the
        corrections staged so far (including the uncommitted ones).

    Raises:
        ConfigurationError: If staff_code is given and unknown
    """
    if include_all is None:
        include_all = not starman_settings.RECONCILE_STACKING_ONLY

    if staff_code is not None:
        try:
            staff_ids = [Staff.objects.values_list("pk", flat=True).get(code=staff_code)]
        except Staff.DoesNotExist:
            raise ConfigurationError("STAFF_NOT_FOUND", staff_code=staff_code)
    else:
        staff_ids = list(
            Staff.objects.filter(is_active=True).order_by("pk").values_list("pk", flat=True)
        )

    catalog = catalog_service.snapshot()
    campaign = campaign_service.snapshot()
    report = ReconciliationReport(dry_run=dry_run)

    for staff_id in staff_ids:
        try:
            _reconcile_staff(staff_id, catalog, campaign, include_all, report)
        except CommitError as e:
            report.error = e
            report.failed_staff = e.data.get("staff_code")
            logger.error("Reconciliation stopped at staff %s: %s", report.failed_staff, e)
            break

    for warning in report.warnings:
        logger.warning("%s: %s %s", warning.code, warning.message, warning.data)
    logger.info(
        "Reconciliation %s: %d corrections staged, %d committed across %d staff",
        "dry run" if dry_run else "finished",
        report.staged_count,
        report.updated_count,
        len(report.committed),
    )
    return report


def stage_corrections(
    staff: Staff,
    sales: list[Sale],
    catalog: CatalogSnapshot,
    campaign: CampaignWindow | None,
    include_all: bool,
    report: ReconciliationReport | None = None,
) -> list[Correction]:
    """
    Replay one staff member's sales and list the ones whose stars differ.

    `sales` must be ordered by (occurred_at, id). Manual rows are ignored.
    """
    groups: dict[tuple[str, str], list[Sale]] = defaultdict(list)
    for sale in sales:
        if sale.kind == SaleKind.SALE:
            groups[sale.stack_key].append(sale)

    corrections = []
    for (category, service), group in groups.items():
        rule = catalog.rule_for(category, service)
        if rule is None:
            if report is not None:
                report.warn(ConsistencyWarning(
                    "ENTRY_MISSING",
                    "Sales reference a service that is no longer in the catalog",
                    {"category": category, "service": service},
                ))
            continue
        if not include_all and not rule.is_stacking:
            continue

        for position, sale in enumerate(group, start=1):
            accrual = accrue(rule, position, timezone.localdate(sale.occurred_at), campaign)
            if report is not None:
                for warning in accrual.warnings:
                    report.warn(warning)
            if accrual.stars != sale.stars:
                corrections.append(Correction(
                    sale_id=sale.pk,
                    staff_code=staff.code,
                    staff_name=staff.name,
                    category=category,
                    service=service,
                    old_stars=sale.stars,
                    new_stars=accrual.stars,
                    version=sale.version,
                ))
    return corrections


def _reconcile_staff(
    staff_id: int,
    catalog: CatalogSnapshot,
    campaign: CampaignWindow | None,
    include_all: bool,
    report: ReconciliationReport,
) -> None:
    """Stage and commit one staff member's corrections as a single unit."""
    staff_code = None
    try:
        with transaction.atomic():
            staff = Staff.objects.select_for_update().get(pk=staff_id)
            staff_code = staff.code
            sales = list(Sale.objects.filter(staff=staff).order_by("occurred_at", "id"))

            corrections = stage_corrections(staff, sales, catalog, campaign, include_all, report)
            report.details.extend(corrections)
            if report.dry_run or not corrections:
                return

            now = timezone.now()
            for correction in corrections:
                updated = Sale.objects.filter(
                    pk=correction.sale_id,
                    version=correction.version,
                ).update(
                    stars=correction.new_stars,
                    version=F("version") + 1,
                    updated_at=now,
                )
                if updated != 1:
                    raise CommitError(
                        "VERSION_CONFLICT",
                        staff_code=staff.code,
                        sale_id=correction.sale_id,
                    )

            delta = sum(c.delta for c in corrections)
            target = staff.stars + delta
            if target < 0:
                report.warn(ConsistencyWarning(
                    "AGGREGATE_CLAMPED",
                    "Staff total would go negative; clamped to 0",
                    {"staff_code": staff.code, "stars": staff.stars, "delta": delta},
                ))
                target = 0
            staff.stars = target
            staff.save(update_fields=["stars", "updated_at"])
    except DatabaseError as e:
        raise CommitError("COMMIT_FAILED", staff_code=staff_code, detail=str(e)) from e

    for correction in corrections:
        correction.committed = True
    report.per_staff_delta[staff.code] = delta
    report.committed.append(staff.code)
    logger.info("Reconciled %s: %d corrections, total %+d", staff.code, len(corrections), delta)
    ledger_reconciled.send(sender=Staff, staff=staff, delta=delta, corrections=corrections)

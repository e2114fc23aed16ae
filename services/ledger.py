"""Ledger service - sale write paths and the cached staff total.

Every write that touches a Sale and Staff.stars runs in one
transaction.atomic() block with the staff row locked first, so:
- the sale and the staff total are never visible half-applied;
- concurrent sales for the same staff serialize and never compute the
  same stack position.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from django.db import DatabaseError, transaction
from django.db.models import Q, Sum
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from starman.accrual import Accrual, accrue
from starman.conf import starman_settings
from starman.exceptions import (
    CommitError,
    ConfigurationError,
    ConsistencyWarning,
    StarmanError,
    ValidationError,
)
from starman.models import CatalogEntry, Sale, SaleKind, Staff
from starman.services import campaign as campaign_service
from starman.services import catalog as catalog_service
from starman.signals import sale_changed, sale_deleted, sale_recorded

logger = logging.getLogger(__name__)

MANUAL_CATEGORY = "Manuell registrering"
MANUAL_SERVICES = {
    "bilag": "Bilagsnummer",
    "comment": "Kommentar",
    "adjustment": "Justering",
}
DEFAULT_ADJUSTMENT_REASON = "Moderator justering"


@dataclass
class SaleChange:
    """Outcome of an edit, delete or adjustment."""

    sale_id: int
    staff_code: str
    old_stars: int
    new_stars: int
    applied_delta: int
    staff_stars: int
    sale: Sale | None = None
    warnings: list[ConsistencyWarning] = field(default_factory=list)


@dataclass
class StackProgress:
    """How far a staff member is into the current stack of a service."""

    category: str
    service: str
    stack_size: int
    count: int
    next_stars: int

    @property
    def in_stack(self) -> int:
        return self.count % self.stack_size

    @property
    def remaining(self) -> int:
        return self.stack_size - self.in_stack

    @property
    def completed_stacks(self) -> int:
        return self.count // self.stack_size


@dataclass
class AggregateCheck:
    """Cached staff total versus the ledger sum."""

    staff_code: str
    cached: int
    ledger: int

    @property
    def drift(self) -> int:
        return self.cached - self.ledger

    @property
    def consistent(self) -> bool:
        return self.drift == 0


@dataclass
class PeriodReset:
    """Outcome of reset_period()."""

    start: date
    end: date
    deleted_count: int = 0
    per_staff_delta: dict[str, int] = field(default_factory=dict)
    warnings: list[ConsistencyWarning] = field(default_factory=list)


class LedgerService:
    """
    Ledger operations: record, edit, delete and inspect sales.

    Uses @classmethod for extensibility (consistent with other services).
    All star mutations use transaction.atomic().
    """

    # ======================================================================
    # Write paths
    # ======================================================================

    @classmethod
    def record_sale(
        cls,
        staff_code: str,
        category: str,
        service: str | None = None,
        amount=None,
        occurred_at=None,
        reference: str = "",
        recurring: bool = False,
        created_by: str = "",
        metadata: dict | None = None,
    ) -> Sale:
        """
        Record a sale and credit its stars.

        The service is looked up by name, or selected from the amount
        bracket when only `amount` is given. The sale joins the end of the
        staff member's sequence for that service, even when backdated, and
        is credited for that position.

        Args:
            staff_code: Staff code
            category: Catalog category
            service: Service name (optional when amount is given)
            amount: Sale amount, used for bracket-mapped categories
            occurred_at: When the sale happened (default: now)
            reference: Receipt number or comment
            recurring: Select from the recurring bracket table
            created_by: Who recorded the sale

        Returns:
            Created Sale. `sale.accrual` holds the Accrual it was credited
            with.

        Raises:
            ConfigurationError: Unknown staff, service or bracket
            ValidationError: Bad amount or timestamp
            CommitError: The write failed; nothing was applied
        """
        entry, amount_value = cls.resolve_entry(category, service, amount, recurring)
        when = cls._coerce_timestamp(occurred_at)

        try:
            with transaction.atomic():
                staff = cls._get_staff_for_update(staff_code)
                accrual = cls._accrue_at(staff, entry, when)

                sale = Sale.objects.create(
                    staff=staff,
                    kind=SaleKind.SALE,
                    category=entry.category,
                    service=entry.service,
                    amount=amount_value,
                    reference=reference,
                    stars=accrual.stars,
                    occurred_at=when,
                    created_by=created_by,
                    metadata=metadata or {},
                )

                staff.stars += accrual.stars
                staff.save(update_fields=["stars", "updated_at"])
        except DatabaseError as e:
            raise CommitError("COMMIT_FAILED", staff_code=staff_code, detail=str(e)) from e

        sale.accrual = accrual
        cls._report(accrual.warnings, sale_id=sale.pk)
        logger.info(
            "Sale %s recorded for %s: %s / %s (#%d) = %d stars",
            sale.pk,
            staff.code,
            sale.category,
            sale.service,
            accrual.position,
            accrual.stars,
        )
        sale_recorded.send(sender=Sale, sale=sale, warnings=list(accrual.warnings))
        return sale

    @classmethod
    def record_many(cls, staff_code: str, entries, created_by: str = "") -> list[Sale]:
        """
        Record a batch of sales for one staff member (bulk import).

        Every entry is resolved and validated before anything is written.
        Sales are then inserted in entry order, each positioned after the
        ones before it, and the staff total is incremented once.

        Args:
            staff_code: Staff code
            entries: Iterable of dicts with `category` and any of `service`,
                `amount`, `occurred_at`, `reference`, `recurring`
            created_by: Who imported the batch

        Returns:
            Created sales in entry order (empty for an empty batch)

        Raises:
            ConfigurationError, ValidationError: A bad entry; `data["row"]`
                is its 0-based index and nothing was written
            CommitError: The write failed; nothing was applied
        """
        resolved = []
        for row, item in enumerate(entries):
            try:
                entry, amount_value = cls.resolve_entry(
                    item.get("category"),
                    item.get("service"),
                    item.get("amount"),
                    item.get("recurring", False),
                )
                when = cls._coerce_timestamp(item.get("occurred_at"))
            except StarmanError as e:
                raise type(e)(e.code, e.message, row=row, **e.data) from e
            resolved.append((entry, amount_value, when, item.get("reference", "")))

        if not resolved:
            return []

        sales = []
        try:
            with transaction.atomic():
                staff = cls._get_staff_for_update(staff_code)
                total = 0
                for entry, amount_value, when, reference in resolved:
                    accrual = cls._accrue_at(staff, entry, when)
                    sale = Sale.objects.create(
                        staff=staff,
                        kind=SaleKind.SALE,
                        category=entry.category,
                        service=entry.service,
                        amount=amount_value,
                        reference=reference,
                        stars=accrual.stars,
                        occurred_at=when,
                        created_by=created_by,
                        metadata={"imported": True},
                    )
                    sale.accrual = accrual
                    sales.append(sale)
                    total += accrual.stars

                staff.stars += total
                staff.save(update_fields=["stars", "updated_at"])
        except DatabaseError as e:
            raise CommitError("COMMIT_FAILED", staff_code=staff_code, detail=str(e)) from e

        logger.info("Imported %d sales for %s = %d stars", len(sales), staff.code, total)
        for sale in sales:
            cls._report(sale.accrual.warnings, sale_id=sale.pk)
            sale_recorded.send(sender=Sale, sale=sale, warnings=list(sale.accrual.warnings))
        return sales

    @classmethod
    def award_manual(
        cls,
        staff_code: str,
        stars: int,
        reference: str,
        reference_type: str = "bilag",
        occurred_at=None,
        created_by: str = "",
    ) -> Sale:
        """
        Award stars outside the catalog (moderator registration).

        Recorded as a manual ledger row so the staff total keeps matching
        the ledger. Reconciliation never touches manual rows.

        Raises:
            ValidationError: If stars is not a positive integer or
                reference is empty
        """
        if isinstance(stars, bool) or not isinstance(stars, int) or stars < 1:
            raise ValidationError("INVALID_STARS", stars=stars)
        if not reference or not reference.strip():
            raise ValidationError("MISSING_REFERENCE")
        service = MANUAL_SERVICES.get(reference_type, MANUAL_SERVICES["comment"])
        when = cls._coerce_timestamp(occurred_at)

        try:
            with transaction.atomic():
                staff = cls._get_staff_for_update(staff_code)
                sale = Sale.objects.create(
                    staff=staff,
                    kind=SaleKind.MANUAL,
                    category=MANUAL_CATEGORY,
                    service=service,
                    reference=reference.strip(),
                    stars=stars,
                    occurred_at=when,
                    created_by=created_by,
                )
                staff.stars += stars
                staff.save(update_fields=["stars", "updated_at"])
        except DatabaseError as e:
            raise CommitError("COMMIT_FAILED", staff_code=staff_code, detail=str(e)) from e

        logger.info("Manual award of %d stars to %s (%s)", stars, staff.code, reference)
        sale_recorded.send(sender=Sale, sale=sale, warnings=[])
        return sale

    @classmethod
    def adjust_stars(
        cls,
        staff_code: str,
        delta: int,
        reason: str = "",
        created_by: str = "",
    ) -> SaleChange:
        """
        Add or deduct stars by moderator decision.

        The total is clamped at 0. The manual ledger row records the delta
        actually applied, so it can be negative and the ledger sum keeps
        matching the total.

        Raises:
            ValidationError: If delta is not a non-zero integer
        """
        if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
            raise ValidationError("INVALID_ADJUSTMENT", delta=delta)
        reason = (reason or "").strip() or DEFAULT_ADJUSTMENT_REASON
        warnings: list[ConsistencyWarning] = []

        try:
            with transaction.atomic():
                staff = cls._get_staff_for_update(staff_code)
                applied, warning = cls._apply_delta(staff, delta)
                if warning:
                    warnings.append(warning)
                sale = Sale.objects.create(
                    staff=staff,
                    kind=SaleKind.MANUAL,
                    category=MANUAL_CATEGORY,
                    service=MANUAL_SERVICES["adjustment"],
                    reference=reason,
                    stars=applied,
                    occurred_at=timezone.now(),
                    created_by=created_by,
                    metadata={"requested": delta},
                )
        except DatabaseError as e:
            raise CommitError("COMMIT_FAILED", staff_code=staff_code, detail=str(e)) from e

        cls._report(warnings, sale_id=sale.pk)
        logger.info("Stars for %s adjusted by %+d (%s)", staff.code, applied, reason)
        sale_recorded.send(sender=Sale, sale=sale, warnings=list(warnings))

        return SaleChange(
            sale_id=sale.pk,
            staff_code=staff.code,
            old_stars=0,
            new_stars=applied,
            applied_delta=applied,
            staff_stars=staff.stars,
            sale=sale,
            warnings=warnings,
        )

    @classmethod
    def edit_sale(
        cls,
        sale_id: int,
        category: str,
        service: str | None = None,
        amount=None,
        recurring: bool = False,
    ) -> SaleChange:
        """
        Move a sale to another (category, service) and re-credit it.

        A sale moved to another service joins the end of that sequence; one
        that stays in its sequence keeps its place.
        Other sales of the old and new sequences keep their stars unless
        AUTO_RECONCILE_ON_EDIT is enabled, in which case the staff member
        is reconciled right after the edit commits.

        The signed difference is applied to the staff total, clamped at 0.

        Raises:
            ConfigurationError: Unknown sale, service or bracket
            ValidationError: Bad amount, or the sale is a manual award
            CommitError: The write failed; nothing was applied
        """
        entry, amount_value = cls.resolve_entry(category, service, amount, recurring)
        warnings: list[ConsistencyWarning] = []

        try:
            with transaction.atomic():
                staff_id = cls._get_sale(sale_id).staff_id
                staff = Staff.objects.select_for_update().get(pk=staff_id)
                sale = Sale.objects.select_for_update().get(pk=sale_id)

                if sale.kind == SaleKind.MANUAL:
                    raise ValidationError("MANUAL_SALE_NOT_EDITABLE", sale_id=sale_id)

                accrual = cls._accrue_at(staff, entry, sale.occurred_at, sale=sale)
                warnings.extend(accrual.warnings)

                old_stars = sale.stars
                sale.category = entry.category
                sale.service = entry.service
                if amount_value is not None:
                    sale.amount = amount_value
                sale.stars = accrual.stars
                sale.version += 1
                sale.save()

                applied, warning = cls._apply_delta(staff, accrual.stars - old_stars)
                if warning:
                    warnings.append(warning)
        except DatabaseError as e:
            raise CommitError("COMMIT_FAILED", sale_id=sale_id, detail=str(e)) from e

        cls._report(warnings, sale_id=sale.pk)
        logger.info(
            "Sale %s edited: %d -> %d stars (aggregate %+d)",
            sale.pk,
            old_stars,
            sale.stars,
            applied,
        )
        sale_changed.send(sender=Sale, sale=sale, old_stars=old_stars, delta=applied)

        if starman_settings.AUTO_RECONCILE_ON_EDIT:
            from starman.services import reconciliation

            report = reconciliation.reconcile(staff_code=staff.code, include_all=True)
            warnings.extend(report.warnings)
            if report.error is not None:
                warnings.append(ConsistencyWarning(
                    "RECONCILE_FAILED",
                    report.error.message,
                    {"code": report.error.code, "staff_code": staff.code, **report.error.data},
                ))
                logger.warning(
                    "Reconciliation after editing sale %s failed: %s", sale.pk, report.error
                )
            staff.refresh_from_db(fields=["stars"])
            sale.refresh_from_db()

        return SaleChange(
            sale_id=sale.pk,
            staff_code=staff.code,
            old_stars=old_stars,
            new_stars=sale.stars,
            applied_delta=applied,
            staff_stars=staff.stars,
            sale=sale,
            warnings=warnings,
        )

    @classmethod
    def delete_sale(cls, sale_id: int) -> SaleChange:
        """
        Remove a sale and subtract its stars from the staff total.

        The total is clamped at 0. Stars are not re-released to later
        sales that would now complete a stack sooner; that needs
        reconciliation.

        Raises:
            ConfigurationError: Unknown sale
            CommitError: The write failed; nothing was applied
        """
        warnings: list[ConsistencyWarning] = []

        try:
            with transaction.atomic():
                staff_id = cls._get_sale(sale_id).staff_id
                staff = Staff.objects.select_for_update().get(pk=staff_id)
                sale = Sale.objects.select_for_update().get(pk=sale_id)
                stars = sale.stars

                sale.delete()
                applied, warning = cls._apply_delta(staff, -stars)
                if warning:
                    warnings.append(warning)
        except DatabaseError as e:
            raise CommitError("COMMIT_FAILED", sale_id=sale_id, detail=str(e)) from e

        cls._report(warnings, sale_id=sale_id)
        logger.info("Sale %s deleted: %d stars removed from %s", sale_id, -applied, staff.code)
        sale_deleted.send(sender=Sale, sale_id=sale_id, staff=staff, stars=stars)

        return SaleChange(
            sale_id=sale_id,
            staff_code=staff.code,
            old_stars=stars,
            new_stars=0,
            applied_delta=applied,
            staff_stars=staff.stars,
            warnings=warnings,
        )

    @classmethod
    def reset_period(cls, start: date, end: date, staff_code: str | None = None) -> PeriodReset:
        """
        Delete every ledger row dated within [start, end] (local dates).

        Sales and manual rows alike are removed and their stars subtracted
        from each staff total, clamped at 0. Each staff member is a
        separate atomic block. Remaining sales keep their stars; run
        reconciliation to re-credit shifted stack positions.

        Raises:
            ValidationError: If start is after end
            ConfigurationError: If staff_code is given and unknown
            CommitError: A staff block failed; staff before it stay committed
        """
        if start > end:
            raise ValidationError("INVALID_PERIOD", start=str(start), end=str(end))

        window = Sale.objects.filter(
            occurred_at__gte=timezone.make_aware(datetime.combine(start, time.min)),
            occurred_at__lt=timezone.make_aware(datetime.combine(end + timedelta(days=1), time.min)),
        )
        if staff_code is not None:
            if not Staff.objects.filter(code=staff_code).exists():
                raise ConfigurationError("STAFF_NOT_FOUND", staff_code=staff_code)
            window = window.filter(staff__code=staff_code)

        result = PeriodReset(start=start, end=end)
        staff_ids = sorted(set(window.values_list("staff_id", flat=True)))
        for staff_id in staff_ids:
            try:
                with transaction.atomic():
                    staff = Staff.objects.select_for_update().get(pk=staff_id)
                    rows = list(window.filter(staff_id=staff_id).values_list("pk", "stars"))
                    removed = sum(stars for _, stars in rows)
                    Sale.objects.filter(pk__in=[pk for pk, _ in rows]).delete()
                    applied, warning = cls._apply_delta(staff, -removed)
            except DatabaseError as e:
                raise CommitError(
                    "COMMIT_FAILED", staff_id=staff_id, start=str(start), end=str(end), detail=str(e)
                ) from e

            result.deleted_count += len(rows)
            result.per_staff_delta[staff.code] = applied
            if warning:
                result.warnings.append(warning)
            for pk, stars in rows:
                sale_deleted.send(sender=Sale, sale_id=pk, staff=staff, stars=stars)

        cls._report(result.warnings, start=str(start), end=str(end))
        logger.info(
            "Reset %s..%s: %d rows deleted for %d staff",
            start,
            end,
            result.deleted_count,
            len(result.per_staff_delta),
        )
        return result

    @classmethod
    def sync_aggregate(cls, staff_code: str) -> int:
        """
        Reset the cached staff total to the ledger sum.

        Repairs drift that reconciliation cannot see (clamped deletes,
        writes made outside the ledger).

        Returns:
            Correction applied to the cached total
        """
        with transaction.atomic():
            staff = cls._get_staff_for_update(staff_code)
            ledger = cls._ledger_sum(staff)
            drift = ledger - staff.stars
            if drift:
                staff.stars = ledger
                staff.save(update_fields=["stars", "updated_at"])

        if drift:
            logger.warning("Staff %s total resynced to ledger (%+d)", staff.code, drift)
        return drift

    # ======================================================================
    # Read paths
    # ======================================================================

    @classmethod
    def preview(
        cls,
        staff_code: str,
        category: str,
        service: str | None = None,
        amount=None,
        occurred_at=None,
        recurring: bool = False,
    ) -> Accrual:
        """Stars a sale would earn if recorded now. Writes nothing."""
        entry, _ = cls.resolve_entry(category, service, amount, recurring)
        when = cls._coerce_timestamp(occurred_at)
        staff = cls._get_staff(staff_code)
        return cls._accrue_at(staff, entry, when)

    @classmethod
    def stack_progress(cls, staff_code: str, category: str, service: str) -> StackProgress:
        """Progress towards the next stack release for a service."""
        entry, _ = cls.resolve_entry(category, service, None, False)
        staff = cls._get_staff(staff_code)
        count = Sale.objects.filter(
            staff=staff,
            kind=SaleKind.SALE,
            category=entry.category,
            service=entry.service,
        ).count()
        accrual = cls._accrue_at(staff, entry, timezone.now())
        return StackProgress(
            category=entry.category,
            service=entry.service,
            stack_size=entry.stack_size,
            count=count,
            next_stars=accrual.stars,
        )

    @classmethod
    def balance(cls, staff_code: str) -> int:
        """Cached star total. Returns 0 for unknown staff."""
        try:
            return Staff.objects.values_list("stars", flat=True).get(code=staff_code)
        except Staff.DoesNotExist:
            return 0

    @classmethod
    def history(cls, staff_code: str, limit: int | None = None) -> list[Sale]:
        """Most recent sales first."""
        limit = limit or starman_settings.HISTORY_LIMIT
        return list(
            Sale.objects.filter(staff__code=staff_code).order_by("-occurred_at", "-id")[:limit]
        )

    @classmethod
    def check_aggregate(cls, staff_code: str) -> AggregateCheck:
        """Compare the cached total against the ledger sum."""
        staff = cls._get_staff(staff_code)
        return AggregateCheck(
            staff_code=staff.code,
            cached=staff.stars,
            ledger=cls._ledger_sum(staff),
        )

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def resolve_entry(cls, category, service, amount, recurring) -> tuple[CatalogEntry, object]:
        """Catalog entry for the sale plus the validated amount (or None)."""
        amount_value = None
        if amount is not None and amount != "":
            amount_value = catalog_service.coerce_amount(amount)
            if amount_value is None:
                raise ValidationError("INVALID_AMOUNT", amount=str(amount))

        if service:
            entry = catalog_service.resolve_entry(category, service)
            if entry is None:
                raise ConfigurationError(
                    "CATALOG_ENTRY_NOT_FOUND", category=category, service=service
                )
        elif amount_value is not None:
            entry = catalog_service.bracket_for(category, amount_value, recurring=recurring)
            if entry is None:
                raise ConfigurationError(
                    "BRACKET_NOT_FOUND", category=category, amount=str(amount_value)
                )
        else:
            raise ValidationError("MISSING_SERVICE", category=category)

        return entry, amount_value

    @classmethod
    def _coerce_timestamp(cls, value) -> datetime:
        """Aware datetime for a sale, default now."""
        if value is None:
            return timezone.now()
        if isinstance(value, str):
            try:
                parsed = parse_datetime(value)
            except ValueError:
                parsed = None
            if parsed is None:
                raise ValidationError("INVALID_TIMESTAMP", value=value)
            value = parsed
        if not isinstance(value, datetime):
            raise ValidationError("INVALID_TIMESTAMP", value=str(value))
        if timezone.is_naive(value):
            value = timezone.make_aware(value)
        return value

    @classmethod
    def _position(cls, staff: Staff, category: str, service: str, sale: Sale | None = None) -> int:
        """
        1-based position a sale takes in its (category, service) sequence.

        A sale joining the sequence (new, or moved in by an edit) goes after
        every sale already in it, whatever its timestamp. A sale that already
        belongs to the sequence keeps its (occurred_at, id) place.
        Reconciliation restores timestamp order.
        """
        query = Sale.objects.filter(
            staff=staff,
            kind=SaleKind.SALE,
            category=category,
            service=service,
        )
        if sale is not None and sale.stack_key == (category, service):
            query = query.filter(
                Q(occurred_at__lt=sale.occurred_at) | Q(occurred_at=sale.occurred_at, pk__lt=sale.pk)
            )
        return query.count() + 1

    @classmethod
    def _accrue_at(cls, staff: Staff, entry: CatalogEntry, when, sale: Sale | None = None) -> Accrual:
        position = cls._position(staff, entry.category, entry.service, sale)
        return accrue(
            entry.as_rule(),
            position,
            timezone.localdate(when),
            campaign_service.snapshot(),
        )

    @classmethod
    def _apply_delta(cls, staff: Staff, delta: int) -> tuple[int, ConsistencyWarning | None]:
        """
        Add `delta` to the locked staff row, clamping the total at 0.

        Returns:
            (delta actually applied, warning if the total was clamped)
        """
        warning = None
        target = staff.stars + delta
        if target < 0:
            warning = ConsistencyWarning(
                "AGGREGATE_CLAMPED",
                "Staff total would go negative; clamped to 0",
                {"staff_code": staff.code, "stars": staff.stars, "delta": delta},
            )
            target = 0
        applied = target - staff.stars
        if applied:
            staff.stars = target
            staff.save(update_fields=["stars", "updated_at"])
        return applied, warning

    @classmethod
    def _ledger_sum(cls, staff: Staff) -> int:
        return Sale.objects.filter(staff=staff).aggregate(total=Sum("stars"))["total"] or 0

    @classmethod
    def _report(cls, warnings, **context) -> None:
        for warning in warnings:
            logger.warning("%s: %s %s %s", warning.code, warning.message, warning.data, context)

    @classmethod
    def _get_sale(cls, sale_id: int) -> Sale:
        try:
            return Sale.objects.get(pk=sale_id)
        except Sale.DoesNotExist:
            raise ConfigurationError("SALE_NOT_FOUND", sale_id=sale_id)

    @classmethod
    def _get_staff(cls, staff_code: str) -> Staff:
        try:
            return Staff.objects.get(code=staff_code, is_active=True)
        except Staff.DoesNotExist:
            raise ConfigurationError("STAFF_NOT_FOUND", staff_code=staff_code)

    @classmethod
    def _get_staff_for_update(cls, staff_code: str) -> Staff:
        """
        Get active staff row with row-level lock for mutation.

        MUST be called inside transaction.atomic().
        Prevents lost updates on the total and duplicate stack positions.
        """
        try:
            return Staff.objects.select_for_update().get(code=staff_code, is_active=True)
        except Staff.DoesNotExist:
            raise ConfigurationError("STAFF_NOT_FOUND", staff_code=staff_code)

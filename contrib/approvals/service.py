"""Approval service - sale requests reviewed by a moderator."""

import logging

from django.db import transaction
from django.utils import timezone

from starman.contrib.approvals.models import RequestStatus, SaleRequest
from starman.exceptions import ConfigurationError, ValidationError
from starman.models import Sale
from starman.services import staff as staff_service
from starman.services.ledger import LedgerService

logger = logging.getLogger(__name__)


class ApprovalService:
    """
    Service for sale requests.

    Uses @classmethod for extensibility (consistent with other services).
    Nothing is credited until a request is approved; approval records the
    sale through LedgerService so it is positioned and credited like any
    other sale.
    """

    @classmethod
    def submit(
        cls,
        staff_code: str,
        category: str,
        service: str | None = None,
        amount=None,
        reference: str = "",
        recurring: bool = False,
    ) -> SaleRequest:
        """
        Submit a sale for approval.

        The service is resolved up front (by name or amount bracket) so a
        request can never point at a service that did not exist when it
        was sent.

        Raises:
            ValidationError: Missing reference, bad amount
            ConfigurationError: Unknown staff, service or bracket
        """
        if not reference or not reference.strip():
            raise ValidationError("MISSING_REFERENCE")

        entry, amount_value = LedgerService.resolve_entry(category, service, amount, recurring)
        accrual = LedgerService.preview(
            staff_code, entry.category, entry.service, recurring=recurring
        )
        staff = staff_service.get(staff_code)

        request = SaleRequest.objects.create(
            staff=staff,
            category=entry.category,
            service=entry.service,
            amount=amount_value,
            recurring=recurring,
            reference=reference.strip(),
            preview_stars=accrual.stars,
        )
        logger.info(
            "Sale request %s submitted by %s: %s / %s",
            request.pk,
            staff.code,
            request.category,
            request.service,
        )
        return request

    @classmethod
    def edit(
        cls,
        request_id: int,
        category: str,
        service: str | None = None,
        amount=None,
    ) -> SaleRequest:
        """
        Change the service of a pending request and refresh its preview.

        Omitting `amount` keeps the one already on the request.
        """
        request = cls._get_pending(request_id)
        if amount is None:
            amount = request.amount

        entry, amount_value = LedgerService.resolve_entry(
            category, service, amount, request.recurring
        )
        accrual = LedgerService.preview(request.staff.code, entry.category, entry.service)

        request.category = entry.category
        request.service = entry.service
        request.amount = amount_value
        request.preview_stars = accrual.stars
        request.save(update_fields=["category", "service", "amount", "preview_stars"])
        return request

    @classmethod
    def approve(cls, request_id: int, decided_by: str = "") -> Sale:
        """
        Approve a pending request and record its sale.

        The sale takes the approval time as its timestamp. Request and
        sale commit together.

        Raises:
            ConfigurationError: Unknown request (or its service vanished)
            ValidationError: Request already decided
        """
        with transaction.atomic():
            request = cls._get_pending(request_id, for_update=True)
            sale = LedgerService.record_sale(
                request.staff.code,
                request.category,
                service=request.service,
                amount=request.amount,
                reference=request.reference,
                created_by=decided_by,
                metadata={"request_id": request.pk},
            )

            request.status = RequestStatus.APPROVED
            request.sale = sale
            request.decided_at = timezone.now()
            request.decided_by = decided_by
            request.save(update_fields=["status", "sale", "decided_at", "decided_by"])

        logger.info("Sale request %s approved by %s (%d stars)", request.pk, decided_by, sale.stars)
        return sale

    @classmethod
    def decline(cls, request_id: int, decided_by: str = "", reason: str = "") -> SaleRequest:
        with transaction.atomic():
            request = cls._get_pending(request_id, for_update=True)
            request.status = RequestStatus.DECLINED
            request.decided_at = timezone.now()
            request.decided_by = decided_by
            request.decline_reason = reason
            request.save(update_fields=["status", "decided_at", "decided_by", "decline_reason"])

        logger.info("Sale request %s declined by %s", request.pk, decided_by)
        return request

    @classmethod
    def pending(cls, staff_code: str | None = None) -> list[SaleRequest]:
        """Pending requests, oldest first."""
        qs = SaleRequest.objects.select_related("staff").filter(status=RequestStatus.PENDING)
        if staff_code:
            qs = qs.filter(staff__code=staff_code)
        return list(qs.order_by("requested_at", "id"))

    @classmethod
    def _get_pending(cls, request_id: int, for_update: bool = False) -> SaleRequest:
        qs = SaleRequest.objects.select_related("staff")
        if for_update:
            qs = qs.select_for_update()
        try:
            request = qs.get(pk=request_id)
        except SaleRequest.DoesNotExist:
            raise ConfigurationError("REQUEST_NOT_FOUND", request_id=request_id)
        if not request.is_pending:
            raise ValidationError(
                "REQUEST_NOT_PENDING", request_id=request_id, status=request.status
            )
        return request

"""SaleRequest model - a sale waiting for a moderator."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class RequestStatus(models.TextChoices):
    PENDING = "pending", _("Venter")
    APPROVED = "approved", _("Godkjent")
    DECLINED = "declined", _("Avslått")


class SaleRequest(models.Model):
    """
    Sale submitted by a staff member, pending approval.

    preview_stars is informational only: stars are computed again when
    the request is approved, against the ledger as it is then.
    """

    staff = models.ForeignKey(
        "starman.Staff",
        on_delete=models.CASCADE,
        related_name="sale_requests",
        verbose_name=_("ansatt"),
    )

    category = models.CharField(_("kategori"), max_length=100)
    service = models.CharField(_("tjeneste"), max_length=200)
    amount = models.DecimalField(
        _("beløp"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    recurring = models.BooleanField(_("gjentakende"), default=False)
    reference = models.CharField(
        _("bilagsnummer"),
        max_length=200,
        help_text=_("Bilagsnummer for salget"),
    )

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RequestStatus.choices,
        default=RequestStatus.PENDING,
        db_index=True,
    )
    preview_stars = models.PositiveIntegerField(_("forventede stjerner"), default=0)

    sale = models.OneToOneField(
        "starman.Sale",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="request",
        verbose_name=_("salg"),
    )

    requested_at = models.DateTimeField(_("sendt"), auto_now_add=True, db_index=True)
    decided_at = models.DateTimeField(_("behandlet"), null=True, blank=True)
    decided_by = models.CharField(_("behandlet av"), max_length=100, blank=True)
    decline_reason = models.CharField(_("begrunnelse"), max_length=200, blank=True)

    class Meta:
        verbose_name = _("bilagsforespørsel")
        verbose_name_plural = _("bilagsforespørsler")
        ordering = ["-requested_at"]

    def __str__(self):
        return f"{self.reference}: {self.category} / {self.service} [{self.status}]"

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING

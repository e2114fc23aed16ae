"""Sale model - ledger entry carrying the stars it earned."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class SaleKind(models.TextChoices):
    SALE = "sale", _("Salg")
    MANUAL = "manual", _("Manuell registrering")


class Sale(models.Model):
    """
    One logged sale (ledger entry).

    Identity is immutable. `stars` holds the value currently believed
    correct and reflected in Staff.stars; it only changes through an
    edit of category/service or through reconciliation, both of which
    bump `version`.

    Sequence order within a (staff, category, service) stack is
    (occurred_at, id): the auto-increment id breaks timestamp ties.
    """

    staff = models.ForeignKey(
        "starman.Staff",
        on_delete=models.CASCADE,
        related_name="sales",
        verbose_name=_("ansatt"),
    )
    kind = models.CharField(
        _("type"),
        max_length=20,
        choices=SaleKind.choices,
        default=SaleKind.SALE,
    )

    category = models.CharField(_("kategori"), max_length=100)
    service = models.CharField(_("tjeneste"), max_length=200)
    amount = models.DecimalField(
        _("beløp"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Beløp brukt til å velge tjeneste (forsikring)"),
    )
    reference = models.CharField(
        _("referanse"),
        max_length=200,
        blank=True,
        help_text=_("Bilagsnummer eller kommentar"),
    )

    stars = models.IntegerField(
        _("stjerner"),
        default=0,
        help_text=_("Negativ kun for manuelle justeringer"),
    )
    occurred_at = models.DateTimeField(_("tidspunkt"), default=timezone.now, db_index=True)
    version = models.PositiveIntegerField(_("versjon"), default=1)

    metadata = models.JSONField(_("metadata"), default=dict, blank=True)
    created_at = models.DateTimeField(_("opprettet"), auto_now_add=True)
    updated_at = models.DateTimeField(_("oppdatert"), auto_now=True)
    created_by = models.CharField(_("registrert av"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("salg")
        verbose_name_plural = _("salg")
        ordering = ["occurred_at", "id"]
        indexes = [
            models.Index(
                fields=["staff", "category", "service", "occurred_at"],
                name="starman_sal_staff_i_3c1f0a_idx",
            ),
            models.Index(fields=["staff", "-occurred_at"], name="starman_sal_staff_i_9d2e4b_idx"),
        ]

    def __str__(self):
        return f"{self.category} / {self.service}: {self.stars}★"

    @property
    def stack_key(self) -> tuple[str, str]:
        return (self.category, self.service)

"""BonusCampaign model - time-bounded star multiplier."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from starman.accrual import CampaignWindow, as_fraction


class BonusCampaign(models.Model):
    """
    Bonus campaign scaling accrual for one category (or all of them).

    At most one campaign is enabled at a time: enabling one disables the
    others. Dates are inclusive calendar days; either bound may be empty.
    """

    category = models.CharField(
        _("kategori"),
        max_length=100,
        help_text=_("Kategorinavn, eller 'all' for alle kategorier"),
    )
    multiplier = models.DecimalField(
        _("multiplikator"),
        max_digits=6,
        decimal_places=2,
        default=Decimal("2"),
    )
    start_date = models.DateField(_("startdato"), null=True, blank=True)
    end_date = models.DateField(_("sluttdato"), null=True, blank=True)
    enabled = models.BooleanField(_("aktiv"), default=False, db_index=True)
    description = models.CharField(_("beskrivelse"), max_length=200, blank=True)

    created_at = models.DateTimeField(_("opprettet"), auto_now_add=True)
    updated_at = models.DateTimeField(_("oppdatert"), auto_now=True)

    class Meta:
        verbose_name = _("bonuskampanje")
        verbose_name_plural = _("bonuskampanjer")
        ordering = ["-enabled", "-start_date"]

    def __str__(self):
        window = f"{self.start_date or '…'} – {self.end_date or '…'}"
        return f"{self.category} x{self.multiplier} ({window})"

    def save(self, *args, **kwargs):
        if self.enabled:
            BonusCampaign.objects.filter(enabled=True).exclude(pk=self.pk).update(
                enabled=False
            )
        super().save(*args, **kwargs)

    def as_window(self) -> CampaignWindow:
        from starman.conf import starman_settings

        return CampaignWindow(
            category=self.category,
            multiplier=as_fraction(self.multiplier),
            start_date=self.start_date,
            end_date=self.end_date,
            enabled=self.enabled,
            all_token=starman_settings.ALL_CATEGORIES,
        )

    def clean(self):
        from django.core.exceptions import ValidationError as DjangoValidationError

        from starman.gates import GateError, Gates

        try:
            Gates.campaign_window(self.multiplier, self.start_date, self.end_date)
        except GateError as e:
            raise DjangoValidationError(e.message)

"""Staff model - owner of the cached star total."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Staff(models.Model):
    """
    Staff member taking part in the incentive program.

    Staff.stars is a cache: the source of truth is the set of Sale rows
    for this staff member. The cache is updated in the same atomic unit
    as every ledger write and repaired by reconciliation when it drifts.
    """

    code = models.CharField(
        _("kode"),
        max_length=50,
        unique=True,
        help_text=_("Unik kode for den ansatte (f.eks. ANS-001)"),
    )
    name = models.CharField(_("navn"), max_length=200)

    stars = models.IntegerField(
        _("stjerner"),
        default=0,
        help_text=_("Sum av stjerner for alle registrerte salg (cache)"),
    )

    is_active = models.BooleanField(_("aktiv"), default=True, db_index=True)
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    created_at = models.DateTimeField(_("opprettet"), auto_now_add=True)
    updated_at = models.DateTimeField(_("oppdatert"), auto_now=True)

    class Meta:
        verbose_name = _("ansatt")
        verbose_name_plural = _("ansatte")
        ordering = ["name"]

    def __str__(self):
        return f"{self.name} ({self.code}): {self.stars}★"

"""CatalogEntry model - reward rule per (category, service)."""

from decimal import Decimal

from django.core.validators import MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from starman.accrual import AccrualRule


class CatalogEntry(models.Model):
    """
    Reward rule for one service in one category.

    Fixed-price services are looked up by name. Bracket-mapped services
    (insurance-type products) carry an inclusive amount range and are
    selected from the sale amount instead; max_amount empty means
    open-ended ("1500kr+").
    """

    category = models.CharField(_("kategori"), max_length=100, db_index=True)
    service = models.CharField(_("tjeneste"), max_length=200)

    base_stars = models.PositiveIntegerField(
        _("stjerner"),
        validators=[MinValueValidator(1)],
    )
    stack_size = models.PositiveIntegerField(
        _("antall per stabel"),
        default=1,
        validators=[MinValueValidator(1)],
        help_text=_("Antall salg av samme tjeneste før stjerner utløses"),
    )
    recurring = models.BooleanField(
        _("gjentakende"),
        default=False,
        help_text=_("Stjerner gis kun for første salg per ansatt og tjeneste"),
    )

    # Amount bracket (bracket-mapped categories only)
    min_amount = models.DecimalField(
        _("fra beløp"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
    )
    max_amount = models.DecimalField(
        _("til beløp"),
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Tom betyr ingen øvre grense"),
    )

    is_active = models.BooleanField(_("aktiv"), default=True)

    created_at = models.DateTimeField(_("opprettet"), auto_now_add=True)
    updated_at = models.DateTimeField(_("oppdatert"), auto_now=True)

    class Meta:
        verbose_name = _("katalogtjeneste")
        verbose_name_plural = _("katalogtjenester")
        ordering = ["category", "min_amount", "service"]
        constraints = [
            models.UniqueConstraint(
                fields=["category", "service"],
                name="starman_catalog_unique_service",
            ),
        ]

    def __str__(self):
        suffix = f" x{self.stack_size}"
        if self.stack_size == 1 or self.service.endswith(suffix):
            suffix = ""
        return f"{self.category} / {self.service}{suffix}: {self.base_stars}★"

    @property
    def is_bracket(self) -> bool:
        return self.min_amount is not None

    def matches_amount(self, amount: Decimal) -> bool:
        """Inclusive bracket match. Non-bracket entries never match."""
        if not self.is_bracket:
            return False
        if amount < self.min_amount:
            return False
        return self.max_amount is None or amount <= self.max_amount

    def as_rule(self) -> AccrualRule:
        return AccrualRule(
            category=self.category,
            service=self.service,
            base_stars=self.base_stars,
            stack_size=self.stack_size,
            recurring=self.recurring,
        )

    def clean(self):
        from django.core.exceptions import ValidationError as DjangoValidationError

        from starman.gates import GateError, Gates

        if self.max_amount is not None and self.min_amount is None:
            raise DjangoValidationError({"min_amount": _("Fra-beløp mangler.")})
        if self.is_bracket:
            try:
                Gates.bracket_integrity(
                    self.category,
                    recurring=self.recurring,
                    candidate=self,
                )
            except GateError as e:
                raise DjangoValidationError(e.message)

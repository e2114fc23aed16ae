# Generated migration for Staff, CatalogEntry, BonusCampaign and Sale

from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Staff",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Unik kode for den ansatte (f.eks. ANS-001)",
                        max_length=50,
                        unique=True,
                        verbose_name="kode",
                    ),
                ),
                ("name", models.CharField(max_length=200, verbose_name="navn")),
                (
                    "stars",
                    models.IntegerField(
                        default=0,
                        help_text="Sum av stjerner for alle registrerte salg (cache)",
                        verbose_name="stjerner",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="aktiv")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="opprettet")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="oppdatert")),
            ],
            options={
                "verbose_name": "ansatt",
                "verbose_name_plural": "ansatte",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="CatalogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("category", models.CharField(db_index=True, max_length=100, verbose_name="kategori")),
                ("service", models.CharField(max_length=200, verbose_name="tjeneste")),
                (
                    "base_stars",
                    models.PositiveIntegerField(
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="stjerner",
                    ),
                ),
                (
                    "stack_size",
                    models.PositiveIntegerField(
                        default=1,
                        help_text="Antall salg av samme tjeneste før stjerner utløses",
                        validators=[django.core.validators.MinValueValidator(1)],
                        verbose_name="antall per stabel",
                    ),
                ),
                (
                    "recurring",
                    models.BooleanField(
                        default=False,
                        help_text="Stjerner gis kun for første salg per ansatt og tjeneste",
                        verbose_name="gjentakende",
                    ),
                ),
                (
                    "min_amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="fra beløp"
                    ),
                ),
                (
                    "max_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Tom betyr ingen øvre grense",
                        max_digits=12,
                        null=True,
                        verbose_name="til beløp",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="aktiv")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="opprettet")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="oppdatert")),
            ],
            options={
                "verbose_name": "katalogtjeneste",
                "verbose_name_plural": "katalogtjenester",
                "ordering": ["category", "min_amount", "service"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("category", "service"),
                        name="starman_catalog_unique_service",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BonusCampaign",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "category",
                    models.CharField(
                        help_text="Kategorinavn, eller 'all' for alle kategorier",
                        max_length=100,
                        verbose_name="kategori",
                    ),
                ),
                (
                    "multiplier",
                    models.DecimalField(
                        decimal_places=2, default=Decimal("2"), max_digits=6, verbose_name="multiplikator"
                    ),
                ),
                ("start_date", models.DateField(blank=True, null=True, verbose_name="startdato")),
                ("end_date", models.DateField(blank=True, null=True, verbose_name="sluttdato")),
                ("enabled", models.BooleanField(db_index=True, default=False, verbose_name="aktiv")),
                ("description", models.CharField(blank=True, max_length=200, verbose_name="beskrivelse")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="opprettet")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="oppdatert")),
            ],
            options={
                "verbose_name": "bonuskampanje",
                "verbose_name_plural": "bonuskampanjer",
                "ordering": ["-enabled", "-start_date"],
            },
        ),
        migrations.CreateModel(
            name="Sale",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[("sale", "Salg"), ("manual", "Manuell registrering")],
                        default="sale",
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                ("category", models.CharField(max_length=100, verbose_name="kategori")),
                ("service", models.CharField(max_length=200, verbose_name="tjeneste")),
                (
                    "amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Beløp brukt til å velge tjeneste (forsikring)",
                        max_digits=12,
                        null=True,
                        verbose_name="beløp",
                    ),
                ),
                (
                    "reference",
                    models.CharField(
                        blank=True,
                        help_text="Bilagsnummer eller kommentar",
                        max_length=200,
                        verbose_name="referanse",
                    ),
                ),
                (
                    "stars",
                    models.IntegerField(
                        default=0,
                        help_text="Negativ kun for manuelle justeringer",
                        verbose_name="stjerner",
                    ),
                ),
                (
                    "occurred_at",
                    models.DateTimeField(
                        db_index=True, default=django.utils.timezone.now, verbose_name="tidspunkt"
                    ),
                ),
                ("version", models.PositiveIntegerField(default=1, verbose_name="versjon")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="opprettet")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="oppdatert")),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="registrert av")),
                (
                    "staff",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sales",
                        to="starman.staff",
                        verbose_name="ansatt",
                    ),
                ),
            ],
            options={
                "verbose_name": "salg",
                "verbose_name_plural": "salg",
                "ordering": ["occurred_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["staff", "category", "service", "occurred_at"],
                        name="starman_sal_staff_i_3c1f0a_idx",
                    ),
                    models.Index(
                        fields=["staff", "-occurred_at"],
                        name="starman_sal_staff_i_9d2e4b_idx",
                    ),
                ],
            },
        ),
    ]

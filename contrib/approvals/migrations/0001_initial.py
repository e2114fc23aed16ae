# Generated migration for SaleRequest

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("starman", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SaleRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("category", models.CharField(max_length=100, verbose_name="kategori")),
                ("service", models.CharField(max_length=200, verbose_name="tjeneste")),
                (
                    "amount",
                    models.DecimalField(
                        blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="beløp"
                    ),
                ),
                ("recurring", models.BooleanField(default=False, verbose_name="gjentakende")),
                (
                    "reference",
                    models.CharField(
                        help_text="Bilagsnummer for salget", max_length=200, verbose_name="bilagsnummer"
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Venter"), ("approved", "Godkjent"), ("declined", "Avslått")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("preview_stars", models.PositiveIntegerField(default=0, verbose_name="forventede stjerner")),
                ("requested_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="sendt")),
                ("decided_at", models.DateTimeField(blank=True, null=True, verbose_name="behandlet")),
                ("decided_by", models.CharField(blank=True, max_length=100, verbose_name="behandlet av")),
                ("decline_reason", models.CharField(blank=True, max_length=200, verbose_name="begrunnelse")),
                (
                    "sale",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="request",
                        to="starman.sale",
                        verbose_name="salg",
                    ),
                ),
                (
                    "staff",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="sale_requests",
                        to="starman.staff",
                        verbose_name="ansatt",
                    ),
                ),
            ],
            options={
                "verbose_name": "bilagsforespørsel",
                "verbose_name_plural": "bilagsforespørsler",
                "ordering": ["-requested_at"],
            },
        ),
    ]

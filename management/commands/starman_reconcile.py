"""Management command to replay the ledger and repair star totals."""

from django.core.management.base import BaseCommand, CommandError

from starman.exceptions import ConfigurationError
from starman.services.reconciliation import reconcile


class Command(BaseCommand):
    help = "Recompute stored stars under the current catalog and campaign"

    def add_arguments(self, parser):
        parser.add_argument(
            "--staff",
            default=None,
            help="Reconcile a single staff code (default: all active staff)",
        )
        parser.add_argument(
            "--all-services",
            action="store_true",
            help="Also reconsider non-stacking and recurring services",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report corrections without writing them",
        )

    def handle(self, *args, **options):
        try:
            report = reconcile(
                staff_code=options["staff"],
                include_all=True if options["all_services"] else None,
                dry_run=options["dry_run"],
            )
        except ConfigurationError as e:
            raise CommandError(e.message)

        for line in report.lines():
            self.stdout.write(line)
        for warning in report.warnings:
            self.stdout.write(self.style.WARNING(f"{warning.code}: {warning.message} {warning.data}"))

        if report.error is not None:
            raise CommandError(
                f"Stopped at staff {report.failed_staff}: {report.error.message}. "
                f"{report.updated_count} sales corrected before the failure."
            )

        if report.dry_run:
            self.stdout.write(
                self.style.SUCCESS(f"Dry run: {report.staged_count} sales would be corrected.")
            )
        else:
            self.stdout.write(
                self.style.SUCCESS(f"Corrected {report.updated_count} sales.")
            )

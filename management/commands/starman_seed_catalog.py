"""Management command to install the default service catalog."""

from django.core.management.base import BaseCommand

from starman.services.catalog import seed_defaults


class Command(BaseCommand):
    help = "Install the default service catalog (existing services are kept)"

    def handle(self, *args, **options):
        created = seed_defaults()
        self.stdout.write(self.style.SUCCESS(f"Created {created} catalog entries."))

from django.core.management.base import BaseCommand

from dispatch.services.invoices import mark_overdue_invoices


class Command(BaseCommand):
    help = "Mark pending invoices past their due date as overdue. Safe to run from cron."

    def handle(self, *args, **options):
        n = mark_overdue_invoices()
        self.stdout.write(self.style.SUCCESS(f"Marked {n} invoices overdue"))

"""Marketplace housekeeping: expire stale offers and flag overdue invoices."""

from django.core.management.base import BaseCommand

from marketplace.services.invoices import mark_overdue_invoices
from marketplace.services.offers import expire_stale_offers


class Command(BaseCommand):
    help = "Expire pending offers past their deadline and mark unpaid invoices overdue"

    def handle(self, *args, **options):
        expired = expire_stale_offers()
        overdue = mark_overdue_invoices()
        self.stdout.write(
            self.style.SUCCESS(f"Expired offers: {expired}, overdue invoices: {overdue}")
        )

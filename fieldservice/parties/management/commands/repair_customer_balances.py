from django.core.management.base import BaseCommand
from django.db import transaction
from fieldservice.parties.models import Customer
from fieldservice.parties.utils import compute_customer_balance


class Command(BaseCommand):
    help = 'Recomputes every customer account balance from completed jobs, invoices and payments'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Perform a dry run without saving changes',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if dry_run:
            self.stdout.write(self.style.WARNING("DRY RUN MODE: No changes will be saved."))

        customers = Customer.objects.all().order_by('id')
        self.stdout.write(f"Starting balance repair for {customers.count()} customers...")

        changed = 0
        with transaction.atomic():
            for c in customers.select_for_update():
                new_balance = compute_customer_balance(c)
                if c.account_balance != new_balance:
                    changed += 1
                    self.stdout.write(self.style.SUCCESS(f"  - {c.name} (ID: {c.id}): {c.account_balance} -> {new_balance}"))
                    c.account_balance = new_balance
                    c.save(update_fields=['account_balance', 'updated_at'])

            if dry_run:
                self.stdout.write(self.style.WARNING(f"\nDry run complete. {changed} balance(s) would change. Rolling back."))
                transaction.set_rollback(True)
            else:
                self.stdout.write(self.style.SUCCESS(f"\nBalance repair complete: {changed} balance(s) updated."))

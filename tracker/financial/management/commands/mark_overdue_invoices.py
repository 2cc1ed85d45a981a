"""
Management command to flag unpaid invoices past their due date as OVERDUE
Usage: python manage.py mark_overdue_invoices [--dry-run] [--as-of YYYY-MM-DD]
"""
import logging
from datetime import datetime

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from tracker.core.cache_utils import invalidate_reports_cache
from tracker.financial.models import Invoice

logger = logging.getLogger('tracker.financial')


class Command(BaseCommand):
    help = 'Mark PENDING/SENT invoices whose due date has passed as OVERDUE'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List the invoices that would change without saving',
        )
        parser.add_argument(
            '--as-of',
            type=str,
            help='Reference date (YYYY-MM-DD), defaults to today',
        )

    def handle(self, *args, **options):
        as_of = timezone.localdate()
        if options.get('as_of'):
            try:
                as_of = datetime.strptime(options['as_of'], '%Y-%m-%d').date()
            except ValueError:
                raise CommandError(f"Invalid --as-of date: {options['as_of']}")

        invoices = Invoice.objects.filter(
            status__in=[Invoice.STATUS_PENDING, Invoice.STATUS_SENT],
            due_date__lt=as_of,
        ).select_related('project').order_by('due_date')

        count = invoices.count()
        self.stdout.write(f'Found {count} invoice(s) past due as of {as_of}')
        for invoice in invoices:
            self.stdout.write(
                f'  - {invoice.invoice_number} ({invoice.project.project_code}) '
                f'due {invoice.due_date}, {invoice.days_overdue(as_of)} day(s) overdue'
            )

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('Dry run, nothing saved.'))
            return

        updated = invoices.update(status=Invoice.STATUS_OVERDUE, updated_at=timezone.now())
        if updated:
            # queryset.update() bypasses post_save
            invalidate_reports_cache()
        logger.info(f"Marked {updated} invoice(s) overdue as of {as_of}")
        self.stdout.write(self.style.SUCCESS(f'Marked {updated} invoice(s) as OVERDUE'))

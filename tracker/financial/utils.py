"""
Invoice numbering and budget arithmetic shared by the financial and
milestone endpoints and the reports.
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction, IntegrityError
from django.db.models import Sum

from tracker.core.cache_utils import cached_report
from tracker.projects.models import Project
from .models import Expense, Invoice

logger = logging.getLogger(__name__)

BUDGET_WARNING_RATIO = Decimal('0.8')


def raise_invoice(project, amount, issue_date, due_date=None, milestone=None, status=Invoice.STATUS_PENDING):
    """
    Create an invoice with the next free INV- number.

    Without a due date the configured payment terms apply.
    """
    if due_date is None:
        due_date = issue_date + timedelta(days=settings.INVOICE_PAYMENT_TERMS_DAYS)
    for attempt in range(3):
        try:
            with transaction.atomic():
                return Invoice.objects.create(
                    invoice_number=Invoice.generate_invoice_number(),
                    project=project,
                    milestone=milestone,
                    amount=amount,
                    issue_date=issue_date,
                    due_date=due_date,
                    status=status,
                )
        except IntegrityError:
            # Another request took the same number
            logger.warning(f"Invoice number collision for project {project.project_code}, retrying")
            if attempt == 2:
                raise


def get_resource_cost(allocations):
    """Planned cost of allocations: days x 8h x allocation% x hourly rate"""
    return sum((a.get_cost() for a in allocations), Decimal('0'))


def build_budget_analysis(project):
    """Budget position of one project including planned resource cost"""
    expenses = project.expenses.all()
    total_expenses = expenses.aggregate(total=Sum('amount'))['total'] or Decimal('0')
    by_category = {
        row['category']: float(row['total'])
        for row in expenses.values('category').annotate(total=Sum('amount')).order_by('category')
    }

    allocations = project.allocations.filter(is_active=True).select_related('resource')
    resource_cost = get_resource_cost(allocations)

    budget = project.budget
    total_spent = total_expenses + resource_cost
    utilization = (total_spent / budget * 100) if budget else Decimal('0')

    total_invoiced = project.get_total_invoiced()
    total_paid = project.get_total_paid()

    return {
        'project': {
            'id': project.id,
            'name': project.name,
            'project_code': project.project_code,
            'budget': float(budget),
            'po_amount': float(project.po_amount),
        },
        'expenses': {
            'total': float(total_expenses),
            'by_category': by_category,
        },
        'resource_cost': float(resource_cost),
        'budget_analysis': {
            'total_spent': float(total_spent),
            'remaining_budget': float(budget - total_spent),
            'budget_utilization': float(utilization),
        },
        'invoicing': {
            'total_invoiced': float(total_invoiced),
            'total_paid': float(total_paid),
            'outstanding': float(total_invoiced - total_paid),
        },
        'alerts': {
            'budget_overrun': total_spent > budget,
            'budget_warning': bool(budget) and total_spent / budget > BUDGET_WARNING_RATIO,
        },
    }


@cached_report('financial_summary')
def build_financial_summary():
    """Totals across all projects that are not archived"""
    projects = Project.objects.exclude(status=Project.STATUS_ARCHIVED)
    totals = projects.aggregate(budget=Sum('budget'), po_amount=Sum('po_amount'))

    expenses = Expense.objects.filter(project__in=projects)
    invoices = Invoice.objects.filter(project__in=projects)
    total_expenses = expenses.aggregate(total=Sum('amount'))['total'] or Decimal('0')
    total_invoiced = invoices.aggregate(total=Sum('amount'))['total'] or Decimal('0')
    total_paid = invoices.filter(status=Invoice.STATUS_PAID).aggregate(total=Sum('amount'))['total'] or Decimal('0')

    spent_by_project = dict(
        expenses.values('project').annotate(total=Sum('amount')).values_list('project', 'total')
    )
    over_budget = [
        p.id for p in projects.only('id', 'budget')
        if spent_by_project.get(p.id, Decimal('0')) > p.budget
    ]

    return {
        'total_projects': projects.count(),
        'total_budget': float(totals['budget'] or 0),
        'total_po_amount': float(totals['po_amount'] or 0),
        'total_expenses': float(total_expenses),
        'total_invoiced': float(total_invoiced),
        'total_paid': float(total_paid),
        'outstanding': float(total_invoiced - total_paid),
        'projects_over_budget': len(over_budget),
    }


def get_overdue_invoices(as_of):
    """Open invoices due before `as_of`, oldest due first"""
    return (
        Invoice.objects
        .filter(status__in=Invoice.OPEN_STATUSES, due_date__lt=as_of)
        .select_related('project', 'milestone')
        .order_by('due_date', 'id')
    )


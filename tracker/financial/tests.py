"""
Test suite for the financial module
Tests: expenses, invoices, overdue tracking, budget analysis, summary, overdue command
"""
from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from tracker.core.models import User, AuditLog
from tracker.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tracker.financial.models import Expense, Invoice


class ExpenseAPITests(TestCase):
    """Expense endpoints"""

    def setUp(self):
        self.finance = TestDataFactory.create_user(role=User.ROLE_FINANCE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.finance)
        self.project = TestDataFactory.create_project()

    def test_create_expense(self):
        data = {
            'project': self.project.id,
            'description': 'Cloud hosting',
            'amount': '1200.50',
            'category': 'INFRASTRUCTURE',
            'date': '2024-02-12',
        }
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['project_code'], self.project.project_code)
        self.assertTrue(AuditLog.objects.filter(model_name='Expense', action='create').exists())

    def test_non_positive_amount(self):
        data = {
            'project': self.project.id, 'description': 'Refund', 'amount': '-5.00',
            'category': 'OTHER', 'date': '2024-02-12',
        }
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data)

    def test_unknown_category(self):
        data = {
            'project': self.project.id, 'description': 'Lunch', 'amount': '15.00',
            'category': 'FOOD', 'date': '2024-02-12',
        }
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_executive_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_EXECUTIVE))
        data = {
            'project': self.project.id, 'description': 'Books', 'amount': '15.00',
            'category': 'MATERIAL', 'date': '2024-02-12',
        }
        response = self.client.post('/api/v1/expenses/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters(self):
        other = TestDataFactory.create_project()
        TestDataFactory.create_expense(self.project, category='TRAVEL', expense_date=date(2024, 2, 5))
        TestDataFactory.create_expense(self.project, category='LICENSE', expense_date=date(2024, 3, 5))
        TestDataFactory.create_expense(other, category='TRAVEL', expense_date=date(2024, 2, 20))

        response = self.client.get('/api/v1/expenses/', {'project': self.project.id})
        self.assertEqual([e['date'] for e in response.data], ['2024-03-05', '2024-02-05'])

        response = self.client.get('/api/v1/expenses/', {'category': 'TRAVEL'})
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/expenses/', {'date_from': '2024-02-10', 'date_to': '2024-02-28'})
        self.assertEqual(len(response.data), 1)

    def test_invalid_filter(self):
        response = self.client.get('/api/v1/expenses/', {'date_from': 'soon'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_and_delete(self):
        expense = TestDataFactory.create_expense(self.project)
        response = self.client.patch(f'/api/v1/expenses/{expense.id}/', {'amount': '250.00'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        expense.refresh_from_db()
        self.assertEqual(expense.amount, Decimal('250.00'))

        response = self.client.delete(f'/api/v1/expenses/{expense.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Expense.objects.filter(pk=expense.id).exists())


class InvoiceAPITests(TestCase):
    """Invoice endpoints"""

    def setUp(self):
        self.finance = TestDataFactory.create_user(role=User.ROLE_FINANCE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.finance)
        self.project = TestDataFactory.create_project()

    def test_create_invoice_numbering(self):
        data = {'project': self.project.id, 'amount': '5000.00', 'issue_date': '2024-03-01'}
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['invoice_number'], 'INV-000001')
        self.assertEqual(response.data['status'], 'PENDING')
        self.assertEqual(response.data['due_date'], '2024-03-31')

        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.data['invoice_number'], 'INV-000002')

    def test_create_with_milestone(self):
        milestone = TestDataFactory.create_milestone(self.project, name='Design sign-off')
        data = {
            'project': self.project.id, 'milestone': milestone.id, 'amount': '5000.00',
            'issue_date': '2024-03-01', 'due_date': '2024-03-15',
        }
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['milestone_name'], 'Design sign-off')

    def test_milestone_from_other_project(self):
        milestone = TestDataFactory.create_milestone(TestDataFactory.create_project())
        data = {
            'project': self.project.id, 'milestone': milestone.id, 'amount': '5000.00',
            'issue_date': '2024-03-01',
        }
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Milestone does not belong to this project')

    def test_missing_project_and_milestone(self):
        data = {'project': 99999, 'amount': '5000.00', 'issue_date': '2024-03-01'}
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        data = {'project': self.project.id, 'milestone': 99999, 'amount': '5000.00', 'issue_date': '2024-03-01'}
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_due_before_issue(self):
        data = {
            'project': self.project.id, 'amount': '5000.00',
            'issue_date': '2024-03-01', 'due_date': '2024-02-01',
        }
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('due_date', response.data)

    def test_project_manager_cannot_create(self):
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER))
        data = {'project': self.project.id, 'amount': '5000.00', 'issue_date': '2024-03-01'}
        response = self.client.post('/api/v1/invoices/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_by_status(self):
        TestDataFactory.create_invoice(self.project, status='PAID')
        TestDataFactory.create_invoice(self.project)
        response = self.client.get('/api/v1/invoices/', {'status': 'PAID'})
        self.assertEqual(len(response.data), 1)

    def test_mark_paid(self):
        invoice = TestDataFactory.create_invoice(self.project)
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'PAID'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['paid_date'], timezone.localdate().isoformat())

    def test_mark_paid_on_date(self):
        invoice = TestDataFactory.create_invoice(self.project)
        response = self.client.patch(
            f'/api/v1/invoices/{invoice.id}/status/', {'status': 'PAID', 'paid_date': '2024-03-20'}, format='json'
        )
        self.assertEqual(response.data['paid_date'], '2024-03-20')

    def test_reopen_clears_paid_date(self):
        invoice = TestDataFactory.create_invoice(self.project, status='PAID', paid_date=date(2024, 3, 20))
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'SENT'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['paid_date'])
        invoice.refresh_from_db()
        self.assertIsNone(invoice.paid_date)

    def test_invalid_status(self):
        invoice = TestDataFactory.create_invoice(self.project)
        response = self.client.patch(f'/api/v1/invoices/{invoice.id}/status/', {'status': 'LOST'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid status')

    def test_overdue(self):
        TestDataFactory.create_invoice(self.project, due_date=date(2024, 3, 31))
        TestDataFactory.create_invoice(self.project, due_date=date(2024, 3, 10), status='SENT')
        TestDataFactory.create_invoice(self.project, due_date=date(2024, 3, 1), status='PAID')
        TestDataFactory.create_invoice(self.project, due_date=date(2024, 5, 1))

        response = self.client.get('/api/v1/invoices/overdue/', {'as_of': '2024-04-10'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([i['due_date'] for i in response.data], ['2024-03-10', '2024-03-31'])
        self.assertEqual(response.data[0]['days_overdue'], 31)
        self.assertEqual(response.data[1]['days_overdue'], 10)


class BudgetAnalysisTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_EXECUTIVE))
        self.project = TestDataFactory.create_project(budget=Decimal('10000.00'))
        resource = TestDataFactory.create_resource()
        # 10 days x 8h x 50% x 100 = 4000
        TestDataFactory.create_allocation(
            resource, self.project, start_date=date(2024, 2, 1), end_date=date(2024, 2, 11),
            allocation=Decimal('50.00'), hourly_rate=Decimal('100.00')
        )
        TestDataFactory.create_allocation(
            resource, self.project, start_date=date(2024, 3, 1), end_date=date(2024, 3, 11),
            allocation=Decimal('50.00'), hourly_rate=Decimal('100.00'), is_active=False
        )
        TestDataFactory.create_expense(self.project, amount=Decimal('3000.00'), category='LICENSE')
        TestDataFactory.create_expense(self.project, amount=Decimal('1500.00'), category='TRAVEL')
        TestDataFactory.create_invoice(self.project, amount=Decimal('6000.00'), status='PAID')
        TestDataFactory.create_invoice(self.project, amount=Decimal('2000.00'))

    def test_budget_figures(self):
        response = self.client.get(f'/api/v1/financial/budget/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['expenses']['total'], 4500.0)
        self.assertEqual(response.data['expenses']['by_category'], {'LICENSE': 3000.0, 'TRAVEL': 1500.0})
        self.assertEqual(response.data['resource_cost'], 4000.0)
        self.assertEqual(response.data['budget_analysis']['total_spent'], 8500.0)
        self.assertEqual(response.data['budget_analysis']['remaining_budget'], 1500.0)
        self.assertEqual(response.data['budget_analysis']['budget_utilization'], 85.0)
        self.assertEqual(response.data['invoicing']['outstanding'], 2000.0)
        self.assertTrue(response.data['alerts']['budget_warning'])
        self.assertFalse(response.data['alerts']['budget_overrun'])

    def test_overrun(self):
        TestDataFactory.create_expense(self.project, amount=Decimal('2000.00'))
        response = self.client.get(f'/api/v1/financial/budget/{self.project.id}/')
        self.assertTrue(response.data['alerts']['budget_overrun'])
        self.assertEqual(response.data['budget_analysis']['remaining_budget'], -500.0)

    def test_missing_project(self):
        response = self.client.get('/api/v1/financial/budget/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class FinancialSummaryTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_EXECUTIVE))
        over = TestDataFactory.create_project(budget=Decimal('1000.00'), po_amount=Decimal('2000.00'))
        under = TestDataFactory.create_project(budget=Decimal('5000.00'), po_amount=Decimal('6000.00'))
        archived = TestDataFactory.create_project(status='ARCHIVED')
        TestDataFactory.create_expense(over, amount=Decimal('1500.00'))
        TestDataFactory.create_expense(under, amount=Decimal('500.00'))
        TestDataFactory.create_expense(archived, amount=Decimal('99999.00'))
        TestDataFactory.create_invoice(over, amount=Decimal('3000.00'), status='PAID')
        TestDataFactory.create_invoice(under, amount=Decimal('1000.00'))

    def test_summary(self):
        response = self.client.get('/api/v1/financial/summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_projects'], 2)
        self.assertEqual(response.data['total_budget'], 6000.0)
        self.assertEqual(response.data['total_po_amount'], 8000.0)
        self.assertEqual(response.data['total_expenses'], 2000.0)
        self.assertEqual(response.data['total_invoiced'], 4000.0)
        self.assertEqual(response.data['total_paid'], 3000.0)
        self.assertEqual(response.data['outstanding'], 1000.0)
        self.assertEqual(response.data['projects_over_budget'], 1)

    def test_summary_refreshes_after_write(self):
        self.client.get('/api/v1/financial/summary/')
        TestDataFactory.create_project(budget=Decimal('100.00'))
        response = self.client.get('/api/v1/financial/summary/')
        self.assertEqual(response.data['total_projects'], 3)


class MarkOverdueInvoicesCommandTests(TestCase):

    def setUp(self):
        project = TestDataFactory.create_project()
        self.pending = TestDataFactory.create_invoice(project, due_date=date(2024, 3, 10))
        self.sent = TestDataFactory.create_invoice(project, due_date=date(2024, 3, 20), status='SENT')
        self.paid = TestDataFactory.create_invoice(project, due_date=date(2024, 3, 1), status='PAID')
        self.future = TestDataFactory.create_invoice(project, due_date=date(2024, 6, 1))

    def test_dry_run(self):
        out = StringIO()
        call_command('mark_overdue_invoices', '--dry-run', '--as-of', '2024-04-01', stdout=out)
        self.assertIn('Found 2 invoice(s)', out.getvalue())
        self.assertFalse(Invoice.objects.filter(status=Invoice.STATUS_OVERDUE).exists())

    def test_marks_overdue(self):
        out = StringIO()
        call_command('mark_overdue_invoices', '--as-of', '2024-04-01', stdout=out)
        self.assertEqual(
            set(Invoice.objects.filter(status=Invoice.STATUS_OVERDUE).values_list('id', flat=True)),
            {self.pending.id, self.sent.id}
        )
        self.paid.refresh_from_db()
        self.assertEqual(self.paid.status, Invoice.STATUS_PAID)

    def test_invalid_date(self):
        with self.assertRaises(CommandError):
            call_command('mark_overdue_invoices', '--as-of', '01/04/2024', stdout=StringIO())

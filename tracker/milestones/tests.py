"""
Test suite for the milestones module
Tests: CRUD, billing rules, status transitions, invoice generation, timeline, delays
"""
from datetime import date, timedelta
from decimal import Decimal

from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from tracker.core.models import User
from tracker.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tracker.financial.models import Invoice
from tracker.milestones.models import Milestone


class MilestoneModelTests(TestCase):

    def setUp(self):
        self.project = TestDataFactory.create_project()

    def test_completed_late(self):
        milestone = TestDataFactory.create_milestone(
            self.project, scheduled_date=date(2024, 3, 1), status='COMPLETED', actual_date=date(2024, 3, 6)
        )
        self.assertEqual(milestone.get_slippage(date(2024, 6, 1)), (Milestone.SLIPPAGE_COMPLETED_LATE, 5))
        self.assertTrue(milestone.is_delayed(date(2024, 6, 1)))

    def test_completed_early(self):
        milestone = TestDataFactory.create_milestone(
            self.project, scheduled_date=date(2024, 3, 10), status='COMPLETED', actual_date=date(2024, 3, 8)
        )
        self.assertEqual(milestone.get_slippage(date(2024, 6, 1)), (Milestone.SLIPPAGE_COMPLETED_ON_TIME, -2))
        self.assertFalse(milestone.is_delayed(date(2024, 6, 1)))

    def test_open_past_schedule(self):
        milestone = TestDataFactory.create_milestone(self.project, scheduled_date=date(2024, 3, 1))
        self.assertEqual(milestone.get_slippage(date(2024, 3, 11)), (Milestone.SLIPPAGE_DELAYED, 10))

    def test_open_on_track(self):
        milestone = TestDataFactory.create_milestone(self.project, scheduled_date=date(2024, 3, 1))
        self.assertEqual(milestone.get_slippage(date(2024, 3, 1)), (Milestone.SLIPPAGE_ON_TRACK, 0))
        self.assertFalse(milestone.is_delayed(date(2024, 3, 1)))


class MilestoneAPITests(TestCase):
    """Milestone endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.project = TestDataFactory.create_project()

    def test_create_milestone(self):
        data = {'project': self.project.id, 'name': 'Kickoff', 'scheduled_date': '2024-02-15'}
        response = self.client.post('/api/v1/milestones/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], 'PLANNED')
        self.assertEqual(response.data['invoices'], [])

    def test_create_for_missing_project(self):
        data = {'project': 99999, 'name': 'Kickoff', 'scheduled_date': '2024-02-15'}
        response = self.client.post('/api/v1/milestones/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_billing_requires_amount(self):
        data = {
            'project': self.project.id, 'name': 'Phase 1', 'scheduled_date': '2024-03-01',
            'is_billing_milestone': True,
        }
        response = self.client.post('/api/v1/milestones/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('billing_amount', response.data)

    def test_create_forbidden_for_finance(self):
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_FINANCE_MANAGER))
        data = {'project': self.project.id, 'name': 'Kickoff', 'scheduled_date': '2024-02-15'}
        response = self.client.post('/api/v1/milestones/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_filters_and_order(self):
        other = TestDataFactory.create_project()
        TestDataFactory.create_milestone(self.project, name='Late', scheduled_date=date(2024, 5, 1))
        TestDataFactory.create_milestone(self.project, name='Early', scheduled_date=date(2024, 3, 1), status='COMPLETED')
        TestDataFactory.create_milestone(other, name='Elsewhere')

        response = self.client.get('/api/v1/milestones/', {'project': self.project.id})
        self.assertEqual([m['name'] for m in response.data], ['Early', 'Late'])

        response = self.client.get('/api/v1/milestones/', {'status': 'COMPLETED'})
        self.assertEqual([m['name'] for m in response.data], ['Early'])

    def test_update(self):
        milestone = TestDataFactory.create_milestone(self.project)
        response = self.client.patch(
            f'/api/v1/milestones/{milestone.id}/', {'scheduled_date': '2024-04-01'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        milestone.refresh_from_db()
        self.assertEqual(milestone.scheduled_date, date(2024, 4, 1))

    def test_delete(self):
        milestone = TestDataFactory.create_milestone(self.project)
        response = self.client.delete(f'/api/v1/milestones/{milestone.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Milestone.objects.filter(pk=milestone.id).exists())

    def test_delete_blocked_by_invoice(self):
        milestone = TestDataFactory.create_milestone(
            self.project, is_billing_milestone=True, billing_amount=Decimal('5000.00')
        )
        TestDataFactory.create_invoice(self.project, milestone=milestone)
        response = self.client.delete(f'/api/v1/milestones/{milestone.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot delete milestone with associated invoices')
        self.assertTrue(Milestone.objects.filter(pk=milestone.id).exists())


class MilestoneStatusTests(TestCase):
    """Status transitions and invoice generation"""

    def setUp(self):
        self.manager = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)
        self.project = TestDataFactory.create_project()
        self.milestone = TestDataFactory.create_milestone(
            self.project, is_billing_milestone=True, billing_amount=Decimal('25000.00')
        )
        self.url = f'/api/v1/milestones/{self.milestone.id}/status/'

    def test_invalid_status(self):
        response = self.client.patch(self.url, {'status': 'FINISHED'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid status')

    def test_complete_with_given_date(self):
        response = self.client.patch(self.url, {'status': 'COMPLETED', 'actual_date': '2024-03-05'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['actual_date'], '2024-03-05')
        self.assertNotIn('generated_invoice', response.data)
        self.assertFalse(Invoice.objects.exists())

    def test_complete_defaults_to_today(self):
        response = self.client.patch(self.url, {'status': 'COMPLETED'}, format='json')
        self.assertEqual(response.data['actual_date'], timezone.localdate().isoformat())

    @override_settings(INVOICE_PAYMENT_TERMS_DAYS=15)
    def test_complete_generates_invoice(self):
        response = self.client.patch(
            self.url, {'status': 'COMPLETED', 'actual_date': '2024-03-05', 'generate_invoice': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        invoice = Invoice.objects.get()
        self.assertEqual(invoice.milestone, self.milestone)
        self.assertEqual(invoice.amount, Decimal('25000.00'))
        self.assertEqual(invoice.status, Invoice.STATUS_PENDING)
        self.assertEqual(invoice.issue_date, date(2024, 3, 5))
        self.assertEqual(invoice.due_date, date(2024, 3, 5) + timedelta(days=15))
        self.assertEqual(response.data['generated_invoice']['invoice_number'], invoice.invoice_number)
        self.assertEqual(len(response.data['invoices']), 1)

    def test_second_invoice_request_rejected(self):
        payload = {'status': 'COMPLETED', 'actual_date': '2024-03-05', 'generate_invoice': True}
        self.client.patch(self.url, payload, format='json')
        response = self.client.patch(self.url, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(Invoice.objects.filter(milestone=self.milestone).count(), 1)

    def test_invoice_again_after_cancellation(self):
        TestDataFactory.create_invoice(self.project, milestone=self.milestone, status='CANCELLED')
        response = self.client.patch(
            self.url, {'status': 'COMPLETED', 'generate_invoice': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('generated_invoice', response.data)
        self.assertEqual(Invoice.objects.filter(milestone=self.milestone).count(), 2)

    def test_cannot_move_invoiced_milestone(self):
        other = TestDataFactory.create_project()
        self.client.patch(
            self.url, {'status': 'COMPLETED', 'generate_invoice': True}, format='json'
        )
        response = self.client.patch(
            f'/api/v1/milestones/{self.milestone.id}/', {'project': other.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('project', response.data)
        self.milestone.refresh_from_db()
        self.assertEqual(self.milestone.project, self.project)

    def test_move_milestone_without_invoices(self):
        other = TestDataFactory.create_project()
        response = self.client.patch(
            f'/api/v1/milestones/{self.milestone.id}/', {'project': other.id}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['project'], other.id)

    def test_no_invoice_for_non_billing(self):
        milestone = TestDataFactory.create_milestone(self.project)
        response = self.client.patch(
            f'/api/v1/milestones/{milestone.id}/status/',
            {'status': 'COMPLETED', 'generate_invoice': True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Invoice.objects.exists())

    def test_no_invoice_unless_completed(self):
        self.client.patch(self.url, {'status': 'IN_PROGRESS', 'generate_invoice': True}, format='json')
        self.assertFalse(Invoice.objects.exists())


class MilestoneTimelineTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_EXECUTIVE))
        self.project = TestDataFactory.create_project()
        TestDataFactory.create_milestone(
            self.project, name='Done late', scheduled_date=date(2024, 3, 1),
            status='COMPLETED', actual_date=date(2024, 3, 4),
        )
        TestDataFactory.create_milestone(self.project, name='Open past', scheduled_date=date(2024, 4, 1))
        TestDataFactory.create_milestone(self.project, name='Future', scheduled_date=date(2024, 9, 1))
        TestDataFactory.create_milestone(
            self.project, name='Cancelled', scheduled_date=date(2024, 4, 10), status='CANCELLED'
        )
        TestDataFactory.create_milestone(
            self.project, name='Flagged', scheduled_date=date(2024, 12, 1), status='DELAYED'
        )

    def test_project_milestones(self):
        response = self.client.get(f'/api/v1/milestones/project/{self.project.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 5)

    def test_timeline_flags(self):
        response = self.client.get(
            f'/api/v1/milestones/project/{self.project.id}/timeline/', {'as_of': '2024-05-01'}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        flags = {m['name']: m['is_delayed'] for m in response.data['milestones']}
        self.assertTrue(flags['Done late'])
        self.assertTrue(flags['Open past'])
        self.assertFalse(flags['Future'])
        self.assertEqual(response.data['project']['start_date'], '2024-02-01')

    def test_timeline_missing_project(self):
        response = self.client.get('/api/v1/milestones/project/99999/timeline/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_delayed(self):
        response = self.client.get('/api/v1/milestones/delayed/', {'as_of': '2024-05-01'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        by_name = {m['name']: m for m in response.data}
        self.assertEqual(set(by_name), {'Open past', 'Flagged'})
        self.assertEqual(by_name['Open past']['days_delayed'], 30)
        self.assertEqual(by_name['Flagged']['days_delayed'], 0)

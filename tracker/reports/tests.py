"""
Test suite for the reports module
Tests: project status, utilization, financial summary, slippage, dashboard, custom reports
"""
from datetime import date
from decimal import Decimal

from django.core.cache import cache
from django.test import TestCase
from rest_framework import status

from tracker.core.models import User
from tracker.core.test_utils import TestDataFactory, AuthenticatedAPIClient


class ReportTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_EXECUTIVE))


class ProjectStatusReportTests(ReportTestCase):

    def setUp(self):
        super().setUp()
        self.project = TestDataFactory.create_project(name='Alpha', budget=Decimal('10000.00'))
        TestDataFactory.create_project(name='Beta', status='COMPLETED')
        TestDataFactory.create_expense(self.project, amount=Decimal('2500.00'))
        TestDataFactory.create_milestone(
            self.project, scheduled_date=date(2024, 3, 1), status='COMPLETED', actual_date=date(2024, 3, 1)
        )
        TestDataFactory.create_milestone(self.project, scheduled_date=date(2024, 3, 20))
        TestDataFactory.create_milestone(self.project, scheduled_date=date(2024, 3, 5), status='CANCELLED')
        resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(resource, self.project)
        TestDataFactory.create_allocation(
            resource, self.project, start_date=date(2024, 4, 1), end_date=date(2024, 4, 30)
        )

    def test_report(self):
        response = self.client.get('/api/v1/reports/project-status/', {'as_of': '2024-04-01'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)
        alpha = next(p for p in response.data if p['name'] == 'Alpha')
        self.assertEqual(alpha['total_expenses'], 2500.0)
        self.assertEqual(alpha['budget_utilization'], 25.0)
        self.assertEqual(alpha['milestones']['total'], 3)
        self.assertEqual(alpha['milestones']['completed'], 1)
        self.assertEqual(alpha['milestones']['delayed'], 1)
        self.assertEqual(alpha['resources'], 1)

    def test_status_filter(self):
        response = self.client.get('/api/v1/reports/project-status/', {'status': 'COMPLETED'})
        self.assertEqual([p['name'] for p in response.data], ['Beta'])


class ResourceUtilizationReportTests(ReportTestCase):

    def setUp(self):
        super().setUp()
        project = TestDataFactory.create_project()
        other = TestDataFactory.create_project()
        self.busy = TestDataFactory.create_resource(name='Busy')
        TestDataFactory.create_resource(name='Retired', is_active=False)
        TestDataFactory.create_allocation(self.busy, project, allocation=Decimal('60.00'))
        TestDataFactory.create_allocation(self.busy, other, allocation=Decimal('50.00'))
        TestDataFactory.create_allocation(
            self.busy, project, start_date=date(2024, 6, 1), end_date=date(2024, 6, 30),
            allocation=Decimal('30.00')
        )

    def test_report(self):
        response = self.client.get('/api/v1/reports/resource-utilization/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['name'] for r in response.data], ['Busy'])
        busy = response.data[0]
        self.assertEqual(busy['utilization']['total'], 140.0)
        self.assertTrue(busy['utilization']['is_overallocated'])
        self.assertEqual(busy['active_projects'], 2)
        self.assertEqual(len(busy['allocations']), 3)

    def test_window(self):
        response = self.client.get(
            '/api/v1/reports/resource-utilization/', {'date_from': '2024-06-01', 'date_to': '2024-06-30'}
        )
        busy = response.data[0]
        self.assertEqual(busy['utilization']['total'], 30.0)
        self.assertFalse(busy['utilization']['is_overallocated'])

    def test_reversed_window(self):
        response = self.client.get(
            '/api/v1/reports/resource-utilization/', {'date_from': '2024-06-30', 'date_to': '2024-06-01'}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class FinancialSummaryReportTests(ReportTestCase):

    def setUp(self):
        super().setUp()
        over = TestDataFactory.create_project(budget=Decimal('1000.00'))
        TestDataFactory.create_project(status='COMPLETED')
        TestDataFactory.create_expense(over, amount=Decimal('800.00'), category='TRAVEL',
                                       expense_date=date(2024, 2, 1))
        TestDataFactory.create_expense(over, amount=Decimal('700.00'), category='LICENSE',
                                       expense_date=date(2024, 5, 1))
        TestDataFactory.create_invoice(over, amount=Decimal('4000.00'), status='PAID',
                                       issue_date=date(2024, 2, 15))
        TestDataFactory.create_invoice(over, amount=Decimal('1000.00'), issue_date=date(2024, 5, 15))

    def test_report(self):
        response = self.client.get('/api/v1/reports/financial-summary/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overview']['total_projects'], 2)
        self.assertEqual(response.data['overview']['active_projects'], 1)
        self.assertEqual(response.data['overview']['completed_projects'], 1)
        self.assertEqual(response.data['expenses']['total'], 1500.0)
        self.assertEqual(response.data['invoicing']['total_invoiced'], 5000.0)
        self.assertEqual(response.data['invoicing']['total_paid'], 4000.0)
        self.assertEqual(response.data['invoicing']['pending_invoices'], 1)
        self.assertEqual(response.data['project_health'], {'on_budget': 1, 'over_budget': 1})

    def test_window(self):
        response = self.client.get(
            '/api/v1/reports/financial-summary/', {'date_from': '2024-01-01', 'date_to': '2024-03-31'}
        )
        self.assertEqual(response.data['expenses']['by_category'], {'TRAVEL': 800.0})
        self.assertEqual(response.data['invoicing']['total_invoiced'], 4000.0)
        self.assertEqual(response.data['project_health']['over_budget'], 0)
        self.assertEqual(response.data['date_from'], '2024-01-01')

    def test_invalid_date(self):
        response = self.client.get('/api/v1/reports/financial-summary/', {'date_from': '2024-02-30'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class MilestoneSlippageReportTests(ReportTestCase):

    def setUp(self):
        super().setUp()
        self.project = TestDataFactory.create_project()
        TestDataFactory.create_milestone(
            self.project, name='Late', scheduled_date=date(2024, 3, 1),
            status='COMPLETED', actual_date=date(2024, 3, 6),
        )
        TestDataFactory.create_milestone(
            self.project, name='Early', scheduled_date=date(2024, 3, 10),
            status='COMPLETED', actual_date=date(2024, 3, 8),
        )
        TestDataFactory.create_milestone(self.project, name='Open', scheduled_date=date(2024, 4, 1))
        TestDataFactory.create_milestone(self.project, name='Upcoming', scheduled_date=date(2024, 5, 1))
        TestDataFactory.create_milestone(TestDataFactory.create_project(), name='Elsewhere')

    def test_report(self):
        response = self.client.get(
            '/api/v1/reports/milestone-slippage/', {'as_of': '2024-04-16', 'project': self.project.id}
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        rows = {m['name']: m for m in response.data['milestones']}
        self.assertEqual(response.data['total_milestones'], 4)
        self.assertEqual(rows['Late']['slippage_status'], 'COMPLETED_LATE')
        self.assertEqual(rows['Late']['slippage_days'], 5)
        self.assertEqual(rows['Early']['slippage_status'], 'COMPLETED_ON_TIME')
        self.assertEqual(rows['Early']['slippage_days'], -2)
        self.assertEqual(rows['Open']['slippage_status'], 'DELAYED')
        self.assertEqual(rows['Open']['slippage_days'], 15)
        self.assertEqual(rows['Upcoming']['slippage_status'], 'ON_TRACK')
        self.assertEqual(response.data['slipped_milestones'], 2)
        self.assertEqual(response.data['average_slippage'], 10)

    def test_invalid_project(self):
        response = self.client.get('/api/v1/reports/milestone-slippage/', {'project': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class DashboardTests(ReportTestCase):

    def setUp(self):
        super().setUp()
        over = TestDataFactory.create_project(budget=Decimal('1000.00'))
        TestDataFactory.create_project(status='COMPLETED')
        TestDataFactory.create_expense(over, amount=Decimal('1500.00'))
        TestDataFactory.create_milestone(over, scheduled_date=date(2024, 3, 1))
        TestDataFactory.create_milestone(over, scheduled_date=date(2024, 3, 2), status='CANCELLED')
        TestDataFactory.create_invoice(over, amount=Decimal('2000.00'), due_date=date(2024, 3, 31))
        TestDataFactory.create_resource()
        TestDataFactory.create_resource(is_active=False)

    def test_metrics(self):
        response = self.client.get('/api/v1/reports/dashboard/', {'as_of': '2024-04-10'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        metrics = response.data['metrics']
        self.assertEqual(metrics['projects'], {'total': 2, 'active': 1, 'over_budget': 1})
        self.assertEqual(metrics['resources']['total'], 1)
        self.assertEqual(metrics['milestones'], {'total': 2, 'delayed': 1})
        self.assertEqual(metrics['financial']['total_expenses'], 1500.0)
        self.assertEqual(metrics['financial']['overdue_invoices'], 1)
        self.assertEqual(len(response.data['recent_activity']['projects']), 2)
        self.assertTrue(all(response.data['alerts'].values()))

    def test_no_alerts_before_due_dates(self):
        response = self.client.get('/api/v1/reports/dashboard/', {'as_of': '2024-02-15'})
        self.assertFalse(response.data['alerts']['overdue_invoices'])
        self.assertFalse(response.data['alerts']['delayed_milestones'])

    def test_refreshes_after_write(self):
        self.client.get('/api/v1/reports/dashboard/', {'as_of': '2024-04-10'})
        TestDataFactory.create_project()
        response = self.client.get('/api/v1/reports/dashboard/', {'as_of': '2024-04-10'})
        self.assertEqual(response.data['metrics']['projects']['total'], 3)


class CustomReportTests(ReportTestCase):

    def setUp(self):
        super().setUp()
        self.alpha = TestDataFactory.create_project(client_name='Initech')
        self.beta = TestDataFactory.create_project(client_name='Globex', status='COMPLETED')
        self.resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(self.resource, self.alpha, allocation=Decimal('40.00'))
        TestDataFactory.create_allocation(self.resource, self.beta, allocation=Decimal('30.00'))
        TestDataFactory.create_expense(self.alpha, amount=Decimal('100.00'), category='TRAVEL',
                                       expense_date=date(2024, 2, 5))
        TestDataFactory.create_expense(self.alpha, amount=Decimal('250.00'), category='LICENSE',
                                       expense_date=date(2024, 3, 5))
        TestDataFactory.create_expense(self.beta, amount=Decimal('50.00'), category='TRAVEL',
                                       expense_date=date(2024, 3, 20))

    def post(self, data):
        return self.client.post('/api/v1/reports/custom/', data, format='json')

    def test_project_performance(self):
        response = self.post({'report_type': 'PROJECT_PERFORMANCE', 'project_ids': [self.alpha.id]})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['data']), 1)
        self.assertEqual(response.data['data'][0]['total_expenses'], 350.0)
        self.assertEqual(response.data['data'][0]['active_allocations'], 1)
        self.assertNotIn('groups', response.data)

    def test_project_performance_by_client(self):
        response = self.post({'report_type': 'PROJECT_PERFORMANCE', 'group_by': 'client'})
        self.assertEqual(response.data['groups']['Initech'], {'count': 1, 'total': 350.0})
        self.assertEqual(response.data['groups']['Globex'], {'count': 1, 'total': 50.0})

    def test_resource_allocation_by_resource(self):
        response = self.post({
            'report_type': 'RESOURCE_ALLOCATION', 'resource_ids': [self.resource.id], 'group_by': 'resource',
        })
        self.assertEqual(len(response.data['data']), 2)
        self.assertEqual(response.data['groups'][self.resource.resource_code], {'count': 2, 'total': 70.0})

    def test_financial_analysis_by_month(self):
        response = self.post({
            'report_type': 'FINANCIAL_ANALYSIS', 'date_from': '2024-03-01', 'group_by': 'month',
        })
        self.assertEqual(len(response.data['data']), 2)
        self.assertEqual(response.data['groups'], {'2024-03': {'count': 2, 'total': 300.0}})
        self.assertEqual(response.data['filters']['date_from'], '2024-03-01')

    def test_invalid_report_type(self):
        response = self.post({'report_type': 'HEADCOUNT'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid report type')

    def test_invalid_group_by(self):
        response = self.post({'report_type': 'FINANCIAL_ANALYSIS', 'group_by': 'resource'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('group_by', response.data)

    def test_reversed_dates(self):
        response = self.post({
            'report_type': 'FINANCIAL_ANALYSIS', 'date_from': '2024-03-01', 'date_to': '2024-02-01',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

"""
Test suite for the projects module
Tests: CRUD, role checks, archive-on-delete, status changes, dashboard
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from tracker.core.models import User, AuditLog
from tracker.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tracker.projects.models import Project


def project_payload(**overrides):
    data = {
        'name': 'Website Rebuild',
        'project_code': 'PROJ-2024-100',
        'description': 'New marketing site',
        'po_number': 'PO-100',
        'po_date': '2024-01-10',
        'po_amount': '120000.00',
        'client_name': 'Globex',
        'start_date': '2024-02-01',
        'end_date': '2024-06-30',
        'budget': '90000.00',
    }
    data.update(overrides)
    return data


class ProjectModelTests(TestCase):

    def test_budget_utilization(self):
        project = TestDataFactory.create_project(budget=Decimal('10000.00'))
        TestDataFactory.create_expense(project, amount=Decimal('2500.00'))
        self.assertEqual(project.get_total_expenses(), Decimal('2500.00'))
        self.assertEqual(project.get_budget_utilization(), 25.0)

    def test_totals_invoiced_and_paid(self):
        project = TestDataFactory.create_project()
        TestDataFactory.create_invoice(project, amount=Decimal('1000.00'), status='PAID')
        TestDataFactory.create_invoice(project, amount=Decimal('500.00'))
        self.assertEqual(project.get_total_invoiced(), Decimal('1500.00'))
        self.assertEqual(project.get_total_paid(), Decimal('1000.00'))


class ProjectAPITests(TestCase):
    """Project endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_project(self):
        response = self.client.post('/api/v1/projects/', project_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Project.STATUS_PLANNED)
        self.assertEqual(response.data['created_by']['id'], self.manager.id)
        self.assertTrue(AuditLog.objects.filter(model_name='Project', action='create').exists())

    def test_create_duplicate_code(self):
        TestDataFactory.create_project(project_code='PROJ-2024-100')
        response = self.client.post('/api/v1/projects/', project_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('project_code', response.data)

    def test_create_end_before_start(self):
        response = self.client.post(
            '/api/v1/projects/', project_payload(end_date='2024-01-01'), format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)

    def test_create_non_positive_budget(self):
        response = self.client.post('/api/v1/projects/', project_payload(budget='0'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('budget', response.data)

    def test_create_forbidden_for_executive(self):
        executive = TestDataFactory.create_user(role=User.ROLE_EXECUTIVE)
        self.client.authenticate_user(executive)
        response = self.client.post('/api/v1/projects/', project_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'Access denied. Insufficient permissions.')

    def test_list_with_counts_and_filters(self):
        project = TestDataFactory.create_project(name='Alpha', client_name='Initech')
        TestDataFactory.create_project(name='Beta', status='COMPLETED')
        TestDataFactory.create_milestone(project)
        TestDataFactory.create_expense(project)

        response = self.client.get('/api/v1/projects/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/projects/', {'status': 'IN_PROGRESS'})
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['milestone_count'], 1)
        self.assertEqual(response.data[0]['expense_count'], 1)

        response = self.client.get('/api/v1/projects/', {'search': 'initech'})
        self.assertEqual([p['name'] for p in response.data], ['Alpha'])

    def test_detail_includes_related(self):
        project = TestDataFactory.create_project()
        resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(resource, project)
        TestDataFactory.create_milestone(project, scheduled_date=date(2024, 5, 1))
        TestDataFactory.create_milestone(project, scheduled_date=date(2024, 3, 1))
        response = self.client.get(f'/api/v1/projects/{project.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(
            [m['scheduled_date'] for m in response.data['milestones']],
            ['2024-03-01', '2024-05-01']
        )
        self.assertEqual(response.data['allocations'][0]['resource_name'], resource.name)

    def test_update_project(self):
        project = TestDataFactory.create_project()
        response = self.client.patch(f'/api/v1/projects/{project.id}/', {'name': 'Renamed'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        project.refresh_from_db()
        self.assertEqual(project.name, 'Renamed')

    def test_update_to_taken_code(self):
        TestDataFactory.create_project(project_code='PROJ-A')
        project = TestDataFactory.create_project(project_code='PROJ-B')
        response = self.client.patch(
            f'/api/v1/projects/{project.id}/', {'project_code': 'PROJ-A'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_archives(self):
        project = TestDataFactory.create_project()
        response = self.client.delete(f'/api/v1/projects/{project.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('message', response.data)
        project.refresh_from_db()
        self.assertEqual(project.status, Project.STATUS_ARCHIVED)

    def test_status_change(self):
        project = TestDataFactory.create_project()
        response = self.client.patch(
            f'/api/v1/projects/{project.id}/status/', {'status': 'ON_HOLD'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ON_HOLD')
        self.assertTrue(AuditLog.objects.filter(action='status_change', model_name='Project').exists())

    def test_invalid_status(self):
        project = TestDataFactory.create_project()
        response = self.client.patch(
            f'/api/v1/projects/{project.id}/status/', {'status': 'DONE'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Invalid status')

    def test_missing_project(self):
        response = self.client.get('/api/v1/projects/99999/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ProjectDashboardTests(TestCase):

    def setUp(self):
        self.user = TestDataFactory.create_user(role=User.ROLE_EXECUTIVE)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_dashboard_figures(self):
        project = TestDataFactory.create_project(budget=Decimal('10000.00'))
        TestDataFactory.create_expense(project, amount=Decimal('2000.00'))
        TestDataFactory.create_invoice(project, amount=Decimal('3000.00'))
        TestDataFactory.create_milestone(
            project, scheduled_date=date(2024, 3, 1), status='COMPLETED', actual_date=date(2024, 3, 1)
        )
        TestDataFactory.create_milestone(project, scheduled_date=date(2024, 3, 15))
        first = TestDataFactory.create_resource()
        second = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(first, project, allocation=Decimal('60.00'))
        TestDataFactory.create_allocation(second, project, allocation=Decimal('40.00'))

        response = self.client.get(f'/api/v1/projects/{project.id}/dashboard/', {'as_of': '2024-04-01'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['financial']['total_expenses'], 2000.0)
        self.assertEqual(response.data['financial']['total_invoiced'], 3000.0)
        self.assertEqual(response.data['financial']['budget_utilization'], 20.0)
        self.assertEqual(response.data['financial']['remaining_budget'], 8000.0)
        self.assertEqual(response.data['milestones']['total'], 2)
        self.assertEqual(response.data['milestones']['completed'], 1)
        self.assertEqual(response.data['milestones']['delayed'], 1)
        self.assertEqual(response.data['milestones']['completion_rate'], 50.0)
        self.assertEqual(response.data['resources']['total'], 2)
        self.assertEqual(response.data['resources']['total_allocation'], 100.0)
        self.assertEqual(response.data['resources']['average_allocation'], 50.0)

    def test_dashboard_invalid_as_of(self):
        project = TestDataFactory.create_project()
        response = self.client.get(f'/api/v1/projects/{project.id}/dashboard/', {'as_of': 'yesterday'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

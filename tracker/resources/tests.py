"""
Test suite for the resources module
Tests: resource CRUD, activation, allocation capacity checks, utilization
"""
from datetime import date
from decimal import Decimal
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from rest_framework import status

from tracker.core.models import User, AuditLog
from tracker.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tracker.resources.models import Resource, ResourceAllocation
from tracker.resources.utils import (
    check_allocation_capacity, get_overlapping_allocations, format_percent, OverallocationError
)


class AllocationModelTests(TestCase):

    def setUp(self):
        self.project = TestDataFactory.create_project()
        self.resource = TestDataFactory.create_resource(hourly_rate=Decimal('100.00'))

    def test_cost_uses_exclusive_day_count(self):
        """10 days between start and end at 50% and 100/h"""
        allocation = TestDataFactory.create_allocation(
            self.resource, self.project,
            start_date=date(2024, 3, 1), end_date=date(2024, 3, 11),
            allocation=Decimal('50.00'),
        )
        self.assertEqual(allocation.get_planned_hours(), Decimal('40'))
        self.assertEqual(allocation.get_cost(), Decimal('4000.00'))


class CapacityCheckTests(TestCase):
    """Direct tests of the over-allocation rule"""

    def setUp(self):
        self.project = TestDataFactory.create_project()
        self.resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(
            self.resource, self.project,
            start_date=date(2024, 3, 1), end_date=date(2024, 3, 31), allocation=Decimal('60.00'),
        )

    def test_over_capacity_raises(self):
        with self.assertRaises(OverallocationError) as ctx:
            check_allocation_capacity(self.resource, date(2024, 3, 15), date(2024, 4, 15), Decimal('50'))
        self.assertEqual(ctx.exception.total, Decimal('110.00'))
        self.assertEqual(str(ctx.exception), 'Resource overallocated. Current allocation: 110%')

    def test_exactly_full_is_allowed(self):
        total = check_allocation_capacity(self.resource, date(2024, 3, 15), date(2024, 4, 15), Decimal('40'))
        self.assertEqual(total, Decimal('100.00'))

    def test_inactive_allocations_ignored(self):
        ResourceAllocation.objects.update(is_active=False)
        total = check_allocation_capacity(self.resource, date(2024, 3, 1), date(2024, 3, 31), Decimal('100'))
        self.assertEqual(total, Decimal('100'))

    def test_excluded_allocation_not_counted(self):
        existing = ResourceAllocation.objects.get()
        overlapping = get_overlapping_allocations(
            self.resource, date(2024, 3, 1), date(2024, 3, 31), exclude_id=existing.id
        )
        self.assertFalse(overlapping.exists())

    def test_format_percent(self):
        self.assertEqual(format_percent(Decimal('110.00')), '110')
        self.assertEqual(format_percent(Decimal('62.50')), '62.5')


class ResourceAPITests(TestCase):
    """Resource endpoints"""

    def setUp(self):
        self.manager = TestDataFactory.create_user(role=User.ROLE_RESOURCE_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.manager)

    def test_create_resource(self):
        data = {
            'resource_code': 'RES-100',
            'name': 'Ada Lovelace',
            'email': 'ada@company.com',
            'hourly_rate': '90.00',
            'years_of_exp': 10,
            'skills': ['Python', 'Math'],
            'certifications': ['PMP'],
        }
        response = self.client.post('/api/v1/resources/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['skills'], ['Python', 'Math'])
        self.assertEqual(response.data['current_utilization'], 0.0)

    def test_duplicate_code_and_email(self):
        TestDataFactory.create_resource(resource_code='RES-100', email='ada@company.com')
        data = {'resource_code': 'RES-100', 'name': 'Other', 'email': 'ada@company.com'}
        response = self.client.post('/api/v1/resources/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('resource_code', response.data)
        self.assertIn('email', response.data)

    def test_project_manager_cannot_create_resource(self):
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER))
        data = {'resource_code': 'RES-100', 'name': 'Ada', 'email': 'ada@company.com'}
        response = self.client.post('/api/v1/resources/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_with_utilization_and_filters(self):
        project = TestDataFactory.create_project()
        busy = TestDataFactory.create_resource(name='Busy', skills=['Go'])
        TestDataFactory.create_resource(name='Idle', skills=['Python'])
        TestDataFactory.create_resource(name='Gone', skills=['Rust'], is_active=False)
        TestDataFactory.create_allocation(busy, project, allocation=Decimal('30.00'))
        TestDataFactory.create_allocation(
            busy, project, allocation=Decimal('20.00'),
            start_date=date(2024, 4, 1), end_date=date(2024, 4, 30),
        )

        response = self.client.get('/api/v1/resources/')
        self.assertEqual([r['name'] for r in response.data], ['Busy', 'Gone', 'Idle'])
        self.assertEqual(response.data[0]['current_utilization'], 50.0)
        self.assertEqual(len(response.data[0]['allocations']), 2)

        response = self.client.get('/api/v1/resources/', {'is_active': 'true'})
        self.assertEqual([r['name'] for r in response.data], ['Busy', 'Idle'])

        response = self.client.get('/api/v1/resources/', {'skill': 'python'})
        self.assertEqual([r['name'] for r in response.data], ['Idle'])

    def test_update_resource(self):
        resource = TestDataFactory.create_resource()
        response = self.client.patch(
            f'/api/v1/resources/{resource.id}/', {'hourly_rate': '120.00'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        resource.refresh_from_db()
        self.assertEqual(resource.hourly_rate, Decimal('120.00'))

    def test_deactivate_ends_allocations(self):
        project = TestDataFactory.create_project()
        resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(resource, project)
        response = self.client.patch(f'/api/v1/resources/{resource.id}/deactivate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])
        self.assertEqual(response.data['current_utilization'], 0.0)
        self.assertFalse(resource.allocations.filter(is_active=True).exists())
        self.assertTrue(AuditLog.objects.filter(action='deactivate').exists())

    def test_deactivate_rolls_back_when_allocations_fail(self):
        project = TestDataFactory.create_project()
        resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(resource, project)
        with mock.patch(
            'tracker.resources.views.deactivate_resource_allocations', side_effect=DatabaseError('boom')
        ):
            with self.assertRaises(DatabaseError):
                self.client.patch(f'/api/v1/resources/{resource.id}/deactivate/')
        resource.refresh_from_db()
        self.assertTrue(resource.is_active)
        self.assertTrue(resource.allocations.filter(is_active=True).exists())

    def test_activate(self):
        resource = TestDataFactory.create_resource(is_active=False)
        response = self.client.patch(f'/api/v1/resources/{resource.id}/activate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(Resource.objects.get(pk=resource.id).is_active)


class AllocationAPITests(TestCase):
    """Booking resources on projects"""

    def setUp(self):
        self.user = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.project = TestDataFactory.create_project()
        self.other_project = TestDataFactory.create_project()
        self.resource = TestDataFactory.create_resource(hourly_rate=Decimal('80.00'))
        self.url = f'/api/v1/resources/{self.resource.id}/allocations/'

    def allocate(self, allocation, start='2024-03-01', end='2024-03-31', project=None, **extra):
        data = {
            'project': (project or self.project).id,
            'start_date': start,
            'end_date': end,
            'allocation': allocation,
        }
        data.update(extra)
        return self.client.post(self.url, data, format='json')

    def test_allocate_defaults_hourly_rate(self):
        response = self.allocate('50')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(Decimal(response.data['hourly_rate']), Decimal('80.00'))
        self.assertEqual(response.data['project_name'], self.project.name)
        self.assertTrue(AuditLog.objects.filter(action='allocate').exists())

    def test_overlapping_overallocation_rejected(self):
        self.assertEqual(self.allocate('60').status_code, status.HTTP_201_CREATED)
        response = self.allocate('50', start='2024-03-15', end='2024-04-15', project=self.other_project)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Resource overallocated. Current allocation: 110%')
        self.assertEqual(ResourceAllocation.objects.count(), 1)

    def test_exactly_hundred_accepted(self):
        self.allocate('60')
        response = self.allocate('40', project=self.other_project)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_non_overlapping_ranges_accepted(self):
        self.allocate('100')
        response = self.allocate('100', start='2024-04-01', end='2024-04-30')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_touching_ranges_overlap(self):
        """Ranges sharing a single day count as overlapping"""
        self.allocate('80')
        response = self.allocate('30', start='2024-03-31', end='2024-04-30')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_allocations_do_not_count(self):
        TestDataFactory.create_allocation(
            self.resource, self.project,
            start_date=date(2024, 3, 1), end_date=date(2024, 3, 31),
            allocation=Decimal('90.00'), is_active=False,
        )
        response = self.allocate('90')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_allocation_bounds(self):
        self.assertEqual(self.allocate('0').status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(self.allocate('100.01').status_code, status.HTTP_400_BAD_REQUEST)

    def test_end_before_start(self):
        response = self.allocate('50', start='2024-03-31', end='2024-03-01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_inactive_resource(self):
        self.resource.is_active = False
        self.resource.save()
        response = self.allocate('50')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot allocate inactive resource')

    def test_missing_project(self):
        response = self.client.post(self.url, {
            'project': 99999, 'start_date': '2024-03-01', 'end_date': '2024-03-31', 'allocation': '10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_missing_resource(self):
        response = self.client.post('/api/v1/resources/99999/allocations/', {
            'project': self.project.id, 'start_date': '2024-03-01', 'end_date': '2024-03-31', 'allocation': '10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_missing_hourly_rate(self):
        resource = TestDataFactory.create_resource()
        resource.hourly_rate = None
        resource.save()
        response = self.client.post(f'/api/v1/resources/{resource.id}/allocations/', {
            'project': self.project.id, 'start_date': '2024-03-01', 'end_date': '2024-03-31', 'allocation': '10',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_finance_manager_forbidden(self):
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_FINANCE_MANAGER))
        self.assertEqual(self.allocate('10').status_code, status.HTTP_403_FORBIDDEN)

    def test_list_allocations_newest_first(self):
        self.allocate('20')
        self.allocate('20', start='2024-05-01', end='2024-05-31')
        response = self.client.get(self.url)
        self.assertEqual([a['start_date'] for a in response.data], ['2024-05-01', '2024-03-01'])

    def test_patch_excludes_itself(self):
        created = self.allocate('60')
        response = self.client.patch(
            f"/api/v1/allocations/{created.data['id']}/", {'allocation': '100'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Decimal(response.data['allocation']), Decimal('100.00'))

    def test_patch_rechecks_capacity(self):
        self.allocate('60')
        second = self.allocate('30', project=self.other_project)
        response = self.client.patch(
            f"/api/v1/allocations/{second.data['id']}/", {'allocation': '50'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(ResourceAllocation.objects.get(pk=second.data['id']).allocation, Decimal('30.00'))

    def test_delete_is_soft(self):
        created = self.allocate('60')
        response = self.client.delete(f"/api/v1/allocations/{created.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        allocation = ResourceAllocation.objects.get(pk=created.data['id'])
        self.assertFalse(allocation.is_active)
        self.assertEqual(self.allocate('100').status_code, status.HTTP_201_CREATED)


class UtilizationTests(TestCase):

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_user(role=User.ROLE_EXECUTIVE))
        self.project = TestDataFactory.create_project()
        self.resource = TestDataFactory.create_resource()
        TestDataFactory.create_allocation(
            self.resource, self.project,
            start_date=date(2024, 3, 1), end_date=date(2024, 3, 31), allocation=Decimal('40.00'),
        )
        TestDataFactory.create_allocation(
            self.resource, self.project,
            start_date=date(2024, 5, 1), end_date=date(2024, 5, 31), allocation=Decimal('30.00'),
        )

    def test_all_active(self):
        response = self.client.get(f'/api/v1/resources/{self.resource.id}/utilization/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_utilization'], 70.0)
        self.assertEqual(response.data['allocation_count'], 2)

    def test_window(self):
        response = self.client.get(
            f'/api/v1/resources/{self.resource.id}/utilization/',
            {'date_from': '2024-03-15', 'date_to': '2024-04-15'}
        )
        self.assertEqual(response.data['total_utilization'], 40.0)
        self.assertEqual(response.data['allocation_count'], 1)

    def test_invalid_window(self):
        response = self.client.get(
            f'/api/v1/resources/{self.resource.id}/utilization/', {'date_from': 'soon'}
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

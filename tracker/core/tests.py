"""
Test suite for the core module
Tests: registration, login, token refresh, roles, users, audit logs, report cache
"""
from io import StringIO

from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from rest_framework.test import APIClient

from tracker.core.cache_signals import suspend_cache_signals
from tracker.core.cache_utils import get_reports_generation
from tracker.core.models import User, AuditLog
from tracker.core.permissions import has_role, PROJECT_EDITORS
from tracker.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from tracker.core.utils import create_audit_log, parse_date_param, InvalidDateParam
from tracker.financial.models import Invoice
from tracker.projects.models import Project
from tracker.resources.models import ResourceAllocation


class AuthTests(TestCase):
    """Registration, login and refresh"""

    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_register_returns_tokens_and_default_role(self):
        """Self registration never takes the role from the request"""
        data = {
            'name': 'New User',
            'email': 'new@test.com',
            'password': 'secret123',
            'password_confirm': 'secret123',
            'role': User.ROLE_ADMIN,
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['role'], User.ROLE_PROJECT_MANAGER)
        self.assertEqual(User.objects.get(email='new@test.com').username, 'new@test.com')

    def test_register_password_mismatch(self):
        data = {
            'name': 'New User',
            'email': 'new@test.com',
            'password': 'secret123',
            'password_confirm': 'other123',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_register_duplicate_email(self):
        TestDataFactory.create_user(email='taken@test.com')
        data = {
            'name': 'Someone',
            'email': 'taken@test.com',
            'password': 'secret123',
            'password_confirm': 'secret123',
        }
        response = self.client.post('/api/v1/auth/register/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_login_with_email(self):
        TestDataFactory.create_user(email='login@test.com', role=User.ROLE_FINANCE_MANAGER)
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'login@test.com', 'password': 'testpass123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertEqual(response.data['user']['email'], 'login@test.com')
        self.assertEqual(response.data['user']['role'], User.ROLE_FINANCE_MANAGER)

    def test_login_wrong_password(self):
        TestDataFactory.create_user(email='login@test.com')
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'login@test.com', 'password': 'wrong'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_disabled_account(self):
        TestDataFactory.create_user(email='off@test.com', is_active=False)
        response = self.client.post(
            '/api/v1/auth/login/', {'email': 'off@test.com', 'password': 'testpass123'}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_refresh_token(self):
        TestDataFactory.create_user(email='refresh@test.com')
        login = self.client.post(
            '/api/v1/auth/login/', {'email': 'refresh@test.com', 'password': 'testpass123'}, format='json'
        )
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_token_for_deleted_user(self):
        user = TestDataFactory.create_user(email='gone@test.com')
        login = self.client.post(
            '/api/v1/auth/login/', {'email': 'gone@test.com', 'password': 'testpass123'}, format='json'
        )
        user.delete()
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_protected_route_requires_token(self):
        response = self.client.get('/api/v1/projects/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_health_is_public(self):
        response = self.client.get('/api/v1/health/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'OK')
        self.assertIn('timestamp', response.data)


class MeTests(TestCase):
    """Current user with capability flags"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()

    def test_me_for_project_manager(self):
        user = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_manage_projects'])
        self.assertFalse(response.data['can_manage_resources'])
        self.assertFalse(response.data['can_manage_finance'])
        self.assertFalse(response.data['can_manage_users'])

    def test_superuser_acts_as_admin(self):
        user = TestDataFactory.create_user(role=User.ROLE_EXECUTIVE, is_superuser=True, is_staff=True)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.data['role'], User.ROLE_ADMIN)
        self.assertTrue(response.data['can_manage_users'])

    def test_has_role(self):
        executive = TestDataFactory.create_user(role=User.ROLE_EXECUTIVE)
        manager = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.assertFalse(has_role(executive, PROJECT_EDITORS))
        self.assertTrue(has_role(manager, PROJECT_EDITORS))


class UserAPITests(TestCase):
    """ADMIN-only user management"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(role=User.ROLE_ADMIN)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_users(self):
        TestDataFactory.create_user(role=User.ROLE_EXECUTIVE)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_create_user_with_role(self):
        data = {
            'email': 'finance@test.com',
            'name': 'Finance',
            'password': 'secret123',
            'password_confirm': 'secret123',
            'role': User.ROLE_FINANCE_MANAGER,
        }
        response = self.client.post('/api/v1/users/', data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['role'], User.ROLE_FINANCE_MANAGER)
        self.assertTrue(AuditLog.objects.filter(model_name='User', action='create').exists())

    def test_change_role(self):
        user = TestDataFactory.create_user(role=User.ROLE_EXECUTIVE)
        response = self.client.patch(
            f'/api/v1/users/{user.id}/', {'role': User.ROLE_RESOURCE_MANAGER}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertEqual(user.role, User.ROLE_RESOURCE_MANAGER)

    def test_cannot_delete_self(self):
        response = self.client.delete(f'/api/v1/users/{self.admin.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_user(self):
        user = TestDataFactory.create_user(role=User.ROLE_EXECUTIVE)
        response = self.client.delete(f'/api/v1/users/{user.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user.id).exists())

    def test_non_admin_forbidden(self):
        manager = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        self.client.authenticate_user(manager)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class AuditLogTests(TestCase):
    """Audit trail visibility and helpers"""

    def setUp(self):
        self.admin = TestDataFactory.create_user(role=User.ROLE_ADMIN)
        self.manager = TestDataFactory.create_user(role=User.ROLE_PROJECT_MANAGER)
        create_audit_log(user=self.admin, action='create', model_name='Project', object_id=1)
        create_audit_log(user=self.manager, action='update', model_name='Project', object_id=1)
        self.client = AuthenticatedAPIClient()

    def test_admin_sees_all(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

    def test_non_admin_sees_own(self):
        self.client.authenticate_user(self.manager)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['action'], 'update')

    def test_non_admin_cannot_open_other_entry(self):
        entry = AuditLog.objects.get(user=self.admin)
        self.client.authenticate_user(self.manager)
        response = self.client.get(f'/api/v1/audit-logs/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_by_action(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/', {'action': 'create'})
        self.assertEqual(len(response.data), 1)

    def test_invalid_date_filter(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/', {'date_from': '2024-13-45'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_missing_fields_skip_entry(self):
        self.assertIsNone(create_audit_log(user=self.admin, action='create'))


class UtilsTests(TestCase):

    def test_parse_date_param(self):
        self.assertEqual(str(parse_date_param({'d': '2024-02-29'}, 'd')), '2024-02-29')
        self.assertIsNone(parse_date_param({}, 'd'))
        with self.assertRaises(InvalidDateParam):
            parse_date_param({'d': '29/02/2024'}, 'd')


class ReportCacheSignalTests(TestCase):
    """Writes to tracked models bump the report generation"""

    def setUp(self):
        cache.clear()

    def test_save_invalidates(self):
        before = get_reports_generation()
        TestDataFactory.create_project()
        self.assertGreater(get_reports_generation(), before)

    def test_suspended_signals_invalidate_once(self):
        before = get_reports_generation()
        with suspend_cache_signals():
            project = TestDataFactory.create_project()
            TestDataFactory.create_expense(project)
            TestDataFactory.create_expense(project)
            self.assertEqual(get_reports_generation(), before)
        self.assertEqual(get_reports_generation(), before + 1)


class SeedDemoDataCommandTests(TestCase):

    def test_seed_is_repeatable(self):
        call_command('seed_demo_data', stdout=StringIO())
        call_command('seed_demo_data', stdout=StringIO())
        self.assertEqual(User.objects.filter(email__endswith='@demo.com').count(), 5)
        self.assertEqual(Project.objects.filter(project_code='PROJ-2024-001').count(), 1)
        self.assertEqual(ResourceAllocation.objects.count(), 2)
        self.assertEqual(Invoice.objects.get().status, Invoice.STATUS_PAID)
        self.assertTrue(User.objects.get(email='finance@demo.com').check_password('password'))

    def test_clear(self):
        TestDataFactory.create_project(project_code='PROJ-OLD')
        call_command('seed_demo_data', '--clear', stdout=StringIO())
        self.assertFalse(Project.objects.filter(project_code='PROJ-OLD').exists())
        self.assertTrue(Project.objects.filter(project_code='PROJ-2024-001').exists())

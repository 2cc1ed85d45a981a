"""
Test utilities and factories for creating test data
"""
from datetime import date
from decimal import Decimal
import random
import string

from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from tracker.projects.models import Project
from tracker.resources.models import Resource, ResourceAllocation
from tracker.milestones.models import Milestone
from tracker.financial.models import Expense, Invoice

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(email=None, password='testpass123', role=User.ROLE_ADMIN, name=None,
                    is_staff=False, is_superuser=False, is_active=True):
        """Create a test user"""
        if not email:
            email = f'user_{TestDataFactory.random_string(6).lower()}@test.com'
        return User.objects.create_user(
            username=email,
            email=email,
            password=password,
            name=name or email.split('@')[0],
            role=role,
            is_staff=is_staff,
            is_superuser=is_superuser,
            is_active=is_active,
        )

    @staticmethod
    def create_project(user=None, name=None, project_code=None, budget=None, po_amount=None,
                       status='IN_PROGRESS', start_date=None, end_date=None, client_name='Acme Corp'):
        """Create a test project"""
        if not name:
            name = f'Project_{TestDataFactory.random_string(6)}'
        if not project_code:
            project_code = f'PROJ-{TestDataFactory.random_string(6).upper()}'
        return Project.objects.create(
            name=name,
            project_code=project_code,
            po_number=f'PO-{TestDataFactory.random_string(6).upper()}',
            po_date=date(2024, 1, 15),
            po_amount=po_amount if po_amount is not None else Decimal('150000.00'),
            client_name=client_name,
            start_date=start_date or date(2024, 2, 1),
            end_date=end_date or date(2024, 8, 31),
            budget=budget if budget is not None else Decimal('100000.00'),
            status=status,
            created_by=user,
        )

    @staticmethod
    def create_resource(user=None, name=None, resource_code=None, email=None,
                        hourly_rate=None, skills=None, is_active=True):
        """Create a test resource"""
        if not name:
            name = f'Resource_{TestDataFactory.random_string(6)}'
        if not resource_code:
            resource_code = f'RES-{TestDataFactory.random_string(6).upper()}'
        if not email:
            email = f'{resource_code.lower()}@company.com'
        return Resource.objects.create(
            resource_code=resource_code,
            name=name,
            email=email,
            hourly_rate=hourly_rate if hourly_rate is not None else Decimal('75.00'),
            years_of_exp=5,
            skills=skills if skills is not None else ['Python', 'Django'],
            is_active=is_active,
            created_by=user,
        )

    @staticmethod
    def create_allocation(resource, project, start_date=None, end_date=None,
                          allocation=None, hourly_rate=None, is_active=True):
        """Create a test allocation directly, bypassing the capacity check"""
        return ResourceAllocation.objects.create(
            resource=resource,
            project=project,
            start_date=start_date or date(2024, 2, 1),
            end_date=end_date or date(2024, 2, 29),
            allocation=allocation if allocation is not None else Decimal('50.00'),
            hourly_rate=hourly_rate if hourly_rate is not None else resource.hourly_rate,
            is_active=is_active,
        )

    @staticmethod
    def create_milestone(project, name=None, scheduled_date=None, status='PLANNED',
                         actual_date=None, is_billing_milestone=False, billing_amount=None):
        """Create a test milestone"""
        if not name:
            name = f'Milestone_{TestDataFactory.random_string(6)}'
        return Milestone.objects.create(
            project=project,
            name=name,
            scheduled_date=scheduled_date or date(2024, 3, 1),
            actual_date=actual_date,
            status=status,
            is_billing_milestone=is_billing_milestone,
            billing_amount=billing_amount,
        )

    @staticmethod
    def create_expense(project, amount=None, category='OTHER', expense_date=None, description=None):
        """Create a test expense"""
        return Expense.objects.create(
            project=project,
            description=description or f'Expense {TestDataFactory.random_string(6)}',
            amount=amount if amount is not None else Decimal('1000.00'),
            category=category,
            date=expense_date or date(2024, 2, 10),
        )

    @staticmethod
    def create_invoice(project, amount=None, status='PENDING', issue_date=None, due_date=None,
                       milestone=None, paid_date=None):
        """Create a test invoice"""
        return Invoice.objects.create(
            invoice_number=Invoice.generate_invoice_number(),
            project=project,
            milestone=milestone,
            amount=amount if amount is not None else Decimal('15000.00'),
            issue_date=issue_date or date(2024, 3, 1),
            due_date=due_date or date(2024, 3, 31),
            status=status,
            paid_date=paid_date,
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()

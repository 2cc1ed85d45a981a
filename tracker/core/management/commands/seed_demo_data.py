"""
Management command to load a small demo data set
Usage: python manage.py seed_demo_data [--clear]
"""
from datetime import date
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from tracker.core.cache_signals import suspend_cache_signals
from tracker.core.models import User
from tracker.financial.models import Expense, Invoice
from tracker.milestones.models import Milestone
from tracker.projects.models import Project
from tracker.resources.models import Resource, ResourceAllocation

DEMO_PASSWORD = 'password'

DEMO_USERS = [
    ('admin@demo.com', 'Admin User', User.ROLE_ADMIN),
    ('pm@demo.com', 'Project Manager', User.ROLE_PROJECT_MANAGER),
    ('rm@demo.com', 'Resource Manager', User.ROLE_RESOURCE_MANAGER),
    ('finance@demo.com', 'Finance Manager', User.ROLE_FINANCE_MANAGER),
    ('exec@demo.com', 'Executive', User.ROLE_EXECUTIVE),
]


class Command(BaseCommand):
    help = 'Create demo users, resources and a staffed project with milestones, expenses and an invoice'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete existing projects, resources, milestones, expenses and invoices first',
        )

    def handle(self, *args, **options):
        with suspend_cache_signals(), transaction.atomic():
            if options['clear']:
                self._clear()
            users = self._create_users()
            self._create_portfolio(users)

        self.stdout.write(self.style.SUCCESS('\nDemo data ready.'))
        self.stdout.write('\nDemo credentials:')
        for email, _name, role in DEMO_USERS:
            self.stdout.write(f'  {role}: {email} / {DEMO_PASSWORD}')

    def _clear(self):
        self.stdout.write('Clearing existing data...')
        Invoice.objects.all().delete()
        Expense.objects.all().delete()
        ResourceAllocation.objects.all().delete()
        Milestone.objects.all().delete()
        Project.objects.all().delete()
        Resource.objects.all().delete()
        self.stdout.write(self.style.SUCCESS('  ✓ Cleared'))

    def _create_users(self):
        users = {}
        for email, name, role in DEMO_USERS:
            user, created = User.objects.get_or_create(
                email=email,
                defaults={'username': email, 'name': name, 'role': role, 'is_staff': role == User.ROLE_ADMIN},
            )
            if created:
                user.set_password(DEMO_PASSWORD)
                user.save()
                self.stdout.write(f'  ✓ Created user {email}')
            users[role] = user
        return users

    def _create_portfolio(self, users):
        admin = users[User.ROLE_ADMIN]
        pm = users[User.ROLE_PROJECT_MANAGER]

        if Project.objects.filter(project_code='PROJ-2024-001').exists():
            self.stdout.write(self.style.WARNING('  - Demo project already exists, skipping portfolio'))
            return

        john, _ = Resource.objects.get_or_create(
            resource_code='RES-001',
            defaults={
                'name': 'John Developer',
                'email': 'john@company.com',
                'phone': '+1-555-0101',
                'hourly_rate': Decimal('75.00'),
                'years_of_exp': 5,
                'skills': ['JavaScript', 'React', 'Node.js', 'TypeScript'],
                'certifications': ['AWS Certified Developer'],
                'created_by': admin,
            },
        )
        sarah, _ = Resource.objects.get_or_create(
            resource_code='RES-002',
            defaults={
                'name': 'Sarah Designer',
                'email': 'sarah@company.com',
                'phone': '+1-555-0102',
                'hourly_rate': Decimal('65.00'),
                'years_of_exp': 3,
                'skills': ['UI/UX Design', 'Figma', 'Adobe Creative Suite'],
                'certifications': ['Google UX Design Certificate'],
                'created_by': admin,
            },
        )
        self.stdout.write('  ✓ Created resources')

        project = Project.objects.create(
            name='E-commerce Platform Development',
            project_code='PROJ-2024-001',
            description='Development of a modern e-commerce platform with advanced features',
            po_number='PO-2024-E001',
            po_date=date(2024, 1, 15),
            po_amount=Decimal('150000.00'),
            client_name='TechCorp Inc.',
            start_date=date(2024, 2, 1),
            end_date=date(2024, 8, 31),
            budget=Decimal('105000.00'),
            status=Project.STATUS_IN_PROGRESS,
            created_by=pm,
        )

        requirements = Milestone.objects.create(
            project=project,
            name='Requirements Analysis Complete',
            description='Complete analysis of functional and non-functional requirements',
            scheduled_date=date(2024, 2, 28),
            actual_date=date(2024, 2, 25),
            status=Milestone.STATUS_COMPLETED,
            is_billing_milestone=True,
            billing_amount=Decimal('15000.00'),
        )
        Milestone.objects.create(
            project=project,
            name='UI/UX Design Phase',
            description='Complete user interface and user experience design',
            scheduled_date=date(2024, 4, 15),
            status=Milestone.STATUS_IN_PROGRESS,
            is_billing_milestone=True,
            billing_amount=Decimal('25000.00'),
        )
        Milestone.objects.create(
            project=project,
            name='Backend Development',
            description='Complete backend API development and testing',
            scheduled_date=date(2024, 6, 30),
            status=Milestone.STATUS_PLANNED,
            is_billing_milestone=True,
            billing_amount=Decimal('40000.00'),
        )
        self.stdout.write('  ✓ Created project and milestones')

        ResourceAllocation.objects.create(
            project=project, resource=john,
            start_date=date(2024, 2, 1), end_date=date(2024, 8, 31),
            allocation=Decimal('80.00'), hourly_rate=Decimal('75.00'),
        )
        ResourceAllocation.objects.create(
            project=project, resource=sarah,
            start_date=date(2024, 3, 1), end_date=date(2024, 5, 31),
            allocation=Decimal('60.00'), hourly_rate=Decimal('65.00'),
        )
        self.stdout.write('  ✓ Created resource allocations')

        Expense.objects.create(
            project=project, description='AWS Infrastructure Setup', amount=Decimal('1500.00'),
            category='INFRASTRUCTURE', date=date(2024, 2, 5),
        )
        Expense.objects.create(
            project=project, description='Design Software Licenses', amount=Decimal('800.00'),
            category='LICENSE', date=date(2024, 2, 10),
        )
        self.stdout.write('  ✓ Created expenses')

        Invoice.objects.create(
            invoice_number=Invoice.generate_invoice_number(),
            project=project,
            milestone=requirements,
            amount=Decimal('15000.00'),
            issue_date=date(2024, 3, 1),
            due_date=date(2024, 3, 31),
            status=Invoice.STATUS_PAID,
            paid_date=date(2024, 3, 20),
        )
        self.stdout.write('  ✓ Created invoice')

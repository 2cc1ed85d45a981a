from django.db import models
from django.db.models import Sum
from decimal import Decimal
from tracker.core.models import User


class Project(models.Model):
    """Client project backed by a purchase order"""
    STATUS_PLANNED = 'PLANNED'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_ON_HOLD = 'ON_HOLD'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_ARCHIVED = 'ARCHIVED'

    STATUS_CHOICES = [
        (STATUS_PLANNED, 'Planned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_ON_HOLD, 'On Hold'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_ARCHIVED, 'Archived'),
    ]

    name = models.CharField(max_length=200)
    project_code = models.CharField(max_length=50, unique=True)
    description = models.TextField(blank=True, max_length=1000)
    po_number = models.CharField(max_length=100)
    po_date = models.DateField()
    po_amount = models.DecimalField(max_digits=14, decimal_places=2)
    client_name = models.CharField(max_length=200)
    start_date = models.DateField()
    end_date = models.DateField()
    budget = models.DecimalField(max_digits=14, decimal_places=2)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PLANNED)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='projects')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.project_code} - {self.name}"

    def get_total_expenses(self):
        """Sum of all recorded expenses"""
        return self.expenses.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')

    def get_total_invoiced(self):
        return self.invoices.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')

    def get_total_paid(self):
        return self.invoices.filter(status='PAID').aggregate(total=Sum('amount'))['total'] or Decimal('0.00')

    def get_budget_utilization(self):
        """Expenses as a percentage of budget"""
        if not self.budget:
            return 0.0
        return float(self.get_total_expenses() / self.budget * 100)

    class Meta:
        db_table = 'projects'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_project_status'),
            models.Index(fields=['client_name'], name='idx_project_client'),
        ]

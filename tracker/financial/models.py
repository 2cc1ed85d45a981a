from django.db import models
from tracker.projects.models import Project
from tracker.milestones.models import Milestone


class Expense(models.Model):
    """Cost booked against a project"""
    CATEGORY_CHOICES = [
        ('RESOURCE_COST', 'Resource Cost'),
        ('LICENSE', 'License'),
        ('INFRASTRUCTURE', 'Infrastructure'),
        ('TRAVEL', 'Travel'),
        ('MATERIAL', 'Material'),
        ('OTHER', 'Other'),
    ]

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='expenses')
    description = models.CharField(max_length=500)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    date = models.DateField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.description} ({self.amount})"

    class Meta:
        db_table = 'expenses'
        ordering = ['-date', '-created_at']
        indexes = [
            models.Index(fields=['project', 'date'], name='idx_expense_project_date'),
            models.Index(fields=['category'], name='idx_expense_category'),
        ]


class Invoice(models.Model):
    """Invoice raised to the client of a project"""
    STATUS_PENDING = 'PENDING'
    STATUS_SENT = 'SENT'
    STATUS_PAID = 'PAID'
    STATUS_OVERDUE = 'OVERDUE'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Statuses that still expect a payment
    OPEN_STATUSES = [STATUS_PENDING, STATUS_SENT, STATUS_OVERDUE]

    invoice_number = models.CharField(max_length=50, unique=True)
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='invoices')
    milestone = models.ForeignKey(Milestone, on_delete=models.RESTRICT, null=True, blank=True, related_name='invoices')
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    issue_date = models.DateField()
    due_date = models.DateField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    paid_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.invoice_number

    @classmethod
    def generate_invoice_number(cls):
        """Next sequential number, INV-000001 style"""
        sequence = cls.objects.count() + 1
        invoice_number = f"INV-{sequence:06d}"
        while cls.objects.filter(invoice_number=invoice_number).exists():
            sequence += 1
            invoice_number = f"INV-{sequence:06d}"
        return invoice_number

    def is_overdue(self, as_of):
        return self.status in self.OPEN_STATUSES and self.due_date < as_of

    def days_overdue(self, as_of):
        if not self.is_overdue(as_of):
            return 0
        return (as_of - self.due_date).days

    class Meta:
        db_table = 'invoices'
        ordering = ['-issue_date', '-created_at']
        indexes = [
            models.Index(fields=['status'], name='idx_invoice_status'),
            models.Index(fields=['project', 'status'], name='idx_invoice_project_status'),
            models.Index(fields=['due_date'], name='idx_invoice_due_date'),
        ]

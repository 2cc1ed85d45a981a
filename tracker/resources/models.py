from django.db import models
from decimal import Decimal
from tracker.core.models import User
from tracker.projects.models import Project

HOURS_PER_DAY = 8
MAX_ALLOCATION = Decimal('100')


class Resource(models.Model):
    """A person who can be staffed on projects"""
    resource_code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    email = models.EmailField(unique=True)
    phone = models.CharField(max_length=20, blank=True)
    salary = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    years_of_exp = models.PositiveIntegerField(default=0)
    skills = models.JSONField(default=list, blank=True)
    certifications = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='resources')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.resource_code} - {self.name}"

    class Meta:
        db_table = 'resources'
        ordering = ['name']
        indexes = [
            models.Index(fields=['is_active'], name='idx_resource_active'),
        ]


class ResourceAllocation(models.Model):
    """Share of a resource's time booked on a project over an inclusive date range"""
    resource = models.ForeignKey(Resource, on_delete=models.CASCADE, related_name='allocations')
    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='allocations')
    start_date = models.DateField()
    end_date = models.DateField()
    allocation = models.DecimalField(max_digits=5, decimal_places=2, help_text='Percentage of the resource\'s time (0-100]')
    hourly_rate = models.DecimalField(max_digits=10, decimal_places=2)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.resource} on {self.project.project_code} ({self.allocation}%)"

    def get_planned_hours(self):
        days = (self.end_date - self.start_date).days
        return Decimal(days * HOURS_PER_DAY) * self.allocation / Decimal('100')

    def get_cost(self):
        """Planned cost of this allocation at its hourly rate"""
        return self.get_planned_hours() * self.hourly_rate

    class Meta:
        db_table = 'resource_allocations'
        ordering = ['-start_date', '-created_at']
        indexes = [
            models.Index(fields=['resource', 'is_active', 'start_date', 'end_date'], name='idx_alloc_resource_range'),
            models.Index(fields=['project', 'is_active'], name='idx_alloc_project_active'),
        ]

from django.db import models
from tracker.projects.models import Project


class Milestone(models.Model):
    """Project checkpoint, optionally billable"""
    STATUS_PLANNED = 'PLANNED'
    STATUS_IN_PROGRESS = 'IN_PROGRESS'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_DELAYED = 'DELAYED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PLANNED, 'Planned'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_DELAYED, 'Delayed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    SLIPPAGE_ON_TRACK = 'ON_TRACK'
    SLIPPAGE_DELAYED = 'DELAYED'
    SLIPPAGE_COMPLETED_LATE = 'COMPLETED_LATE'
    SLIPPAGE_COMPLETED_ON_TIME = 'COMPLETED_ON_TIME'

    project = models.ForeignKey(Project, on_delete=models.CASCADE, related_name='milestones')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True, max_length=1000)
    scheduled_date = models.DateField()
    actual_date = models.DateField(null=True, blank=True)
    is_billing_milestone = models.BooleanField(default=False)
    billing_amount = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    billing_percentage = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PLANNED)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def is_delayed(self, as_of):
        """Finished after schedule, or still open past its scheduled date"""
        if self.actual_date:
            return self.actual_date > self.scheduled_date
        return as_of > self.scheduled_date and self.status != self.STATUS_COMPLETED

    def get_slippage(self, as_of):
        """
        Returns (slippage_status, slippage_days) relative to `as_of`.

        Completed milestones are measured from scheduled to actual date; open
        ones count the days since a missed scheduled date.
        """
        if self.status == self.STATUS_COMPLETED and self.actual_date:
            days = (self.actual_date - self.scheduled_date).days
            if days > 0:
                return self.SLIPPAGE_COMPLETED_LATE, days
            return self.SLIPPAGE_COMPLETED_ON_TIME, days
        if self.status != self.STATUS_COMPLETED and as_of > self.scheduled_date:
            return self.SLIPPAGE_DELAYED, (as_of - self.scheduled_date).days
        return self.SLIPPAGE_ON_TRACK, 0

    class Meta:
        db_table = 'milestones'
        ordering = ['scheduled_date', 'id']
        indexes = [
            models.Index(fields=['project', 'scheduled_date'], name='idx_milestone_project_date'),
            models.Index(fields=['status'], name='idx_milestone_status'),
        ]

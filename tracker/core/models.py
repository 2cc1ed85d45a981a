from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model, logs in with email and carries an application role"""
    ROLE_ADMIN = 'ADMIN'
    ROLE_PROJECT_MANAGER = 'PROJECT_MANAGER'
    ROLE_RESOURCE_MANAGER = 'RESOURCE_MANAGER'
    ROLE_FINANCE_MANAGER = 'FINANCE_MANAGER'
    ROLE_EXECUTIVE = 'EXECUTIVE'

    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_PROJECT_MANAGER, 'Project Manager'),
        (ROLE_RESOURCE_MANAGER, 'Resource Manager'),
        (ROLE_FINANCE_MANAGER, 'Finance Manager'),
        (ROLE_EXECUTIVE, 'Executive'),
    ]

    email = models.EmailField('email address', unique=True)
    name = models.CharField(max_length=200, blank=True)
    role = models.CharField(max_length=30, choices=ROLE_CHOICES, default=ROLE_PROJECT_MANAGER)
    phone = models.CharField(max_length=20, blank=True, null=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['username']

    def __str__(self):
        return self.name or self.email

    @property
    def effective_role(self):
        """Superusers act as admins whatever role is stored"""
        if self.is_superuser:
            return self.ROLE_ADMIN
        return self.role

    class Meta:
        db_table = 'users'


class AuditLog(models.Model):
    """Audit log for every mutation of tracked records"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('archive', 'Archive'),
        ('status_change', 'Status Change'),
        ('allocate', 'Resource Allocated'),
        ('deallocate', 'Allocation Ended'),
        ('activate', 'Activate'),
        ('deactivate', 'Deactivate'),
        ('invoice_create', 'Invoice Created'),
        ('invoice_status', 'Invoice Status Changed'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., project name)")
    object_reference = models.CharField(max_length=255, blank=True, null=True, help_text="Business identifier (e.g., project code, invoice number)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.action} {self.model_name}#{self.object_id}"

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_5f3c1a_idx'),
            models.Index(fields=['action'], name='audit_logs_action_8b2d4e_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_3e7a9c_idx'),
            models.Index(fields=['object_reference'], name='audit_logs_object__c41f2b_idx'),
        ]

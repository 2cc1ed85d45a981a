from django.contrib import admin
from .models import Milestone


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ['name', 'project', 'scheduled_date', 'actual_date', 'status', 'is_billing_milestone', 'billing_amount']
    list_filter = ['status', 'is_billing_milestone', 'scheduled_date']
    search_fields = ['name', 'project__name', 'project__project_code']
    ordering = ['scheduled_date']
    readonly_fields = ['created_at', 'updated_at']

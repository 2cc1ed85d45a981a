from django.contrib import admin
from .models import Project


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['project_code', 'name', 'client_name', 'status', 'budget', 'po_amount', 'start_date', 'end_date', 'created_by']
    list_filter = ['status', 'client_name', 'start_date']
    search_fields = ['project_code', 'name', 'client_name', 'po_number']
    ordering = ['-created_at']
    readonly_fields = ['created_at', 'updated_at']

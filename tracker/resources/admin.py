from django.contrib import admin
from .models import Resource, ResourceAllocation


class ResourceAllocationInline(admin.TabularInline):
    model = ResourceAllocation
    extra = 0
    fields = ['project', 'start_date', 'end_date', 'allocation', 'hourly_rate', 'is_active']


@admin.register(Resource)
class ResourceAdmin(admin.ModelAdmin):
    list_display = ['resource_code', 'name', 'email', 'hourly_rate', 'years_of_exp', 'is_active']
    list_filter = ['is_active']
    search_fields = ['resource_code', 'name', 'email']
    ordering = ['name']
    inlines = [ResourceAllocationInline]
    readonly_fields = ['created_at', 'updated_at']


@admin.register(ResourceAllocation)
class ResourceAllocationAdmin(admin.ModelAdmin):
    list_display = ['resource', 'project', 'start_date', 'end_date', 'allocation', 'hourly_rate', 'is_active']
    list_filter = ['is_active', 'start_date']
    search_fields = ['resource__name', 'resource__resource_code', 'project__project_code', 'project__name']
    ordering = ['-start_date']

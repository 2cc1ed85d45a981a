from django.contrib import admin
from .models import Expense, Invoice


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['description', 'project', 'category', 'amount', 'date']
    list_filter = ['category', 'date']
    search_fields = ['description', 'project__name', 'project__project_code']
    ordering = ['-date']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'project', 'milestone', 'amount', 'issue_date', 'due_date', 'status', 'paid_date']
    list_filter = ['status', 'issue_date', 'due_date']
    search_fields = ['invoice_number', 'project__name', 'project__project_code']
    ordering = ['-issue_date']
    readonly_fields = ['invoice_number', 'created_at', 'updated_at']

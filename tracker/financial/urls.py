from django.urls import path
from .views import (
    expense_list_create, expense_detail,
    invoice_list_create, invoice_detail, invoice_status, overdue_invoices,
    project_budget, financial_summary
)

urlpatterns = [
    # Expense endpoints
    path('expenses/', expense_list_create, name='expense-list-create'),
    path('expenses/<int:pk>/', expense_detail, name='expense-detail'),

    # Invoice endpoints
    path('invoices/', invoice_list_create, name='invoice-list-create'),
    path('invoices/overdue/', overdue_invoices, name='invoice-overdue'),
    path('invoices/<int:pk>/', invoice_detail, name='invoice-detail'),
    path('invoices/<int:pk>/status/', invoice_status, name='invoice-status'),

    path('financial/budget/<int:project_id>/', project_budget, name='project-budget'),
    path('financial/summary/', financial_summary, name='financial-summary'),
]

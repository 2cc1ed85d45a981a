from django.urls import path
from .views import (
    project_status_report, resource_utilization_report, financial_summary_report,
    milestone_slippage_report, dashboard, custom_report
)

urlpatterns = [
    path('reports/project-status/', project_status_report, name='report-project-status'),
    path('reports/resource-utilization/', resource_utilization_report, name='report-resource-utilization'),
    path('reports/financial-summary/', financial_summary_report, name='report-financial-summary'),
    path('reports/milestone-slippage/', milestone_slippage_report, name='report-milestone-slippage'),
    path('reports/dashboard/', dashboard, name='report-dashboard'),
    path('reports/custom/', custom_report, name='report-custom'),
]

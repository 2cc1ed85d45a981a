from django.urls import path
from .views import (
    resource_list_create, resource_detail, resource_activate, resource_deactivate,
    resource_allocations, allocation_detail, resource_utilization
)

urlpatterns = [
    path('resources/', resource_list_create, name='resource-list-create'),
    path('resources/<int:pk>/', resource_detail, name='resource-detail'),
    path('resources/<int:pk>/activate/', resource_activate, name='resource-activate'),
    path('resources/<int:pk>/deactivate/', resource_deactivate, name='resource-deactivate'),
    path('resources/<int:pk>/allocations/', resource_allocations, name='resource-allocations'),
    path('resources/<int:pk>/utilization/', resource_utilization, name='resource-utilization'),

    path('allocations/<int:pk>/', allocation_detail, name='allocation-detail'),
]

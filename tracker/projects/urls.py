from django.urls import path
from .views import project_list_create, project_detail, project_status, project_dashboard

urlpatterns = [
    path('projects/', project_list_create, name='project-list-create'),
    path('projects/<int:pk>/', project_detail, name='project-detail'),
    path('projects/<int:pk>/status/', project_status, name='project-status'),
    path('projects/<int:pk>/dashboard/', project_dashboard, name='project-dashboard'),
]

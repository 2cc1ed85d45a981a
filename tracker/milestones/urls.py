from django.urls import path
from .views import (
    milestone_list_create, milestone_detail, milestone_status,
    project_milestones, project_milestone_timeline, delayed_milestones
)

urlpatterns = [
    path('milestones/', milestone_list_create, name='milestone-list-create'),
    path('milestones/delayed/', delayed_milestones, name='milestone-delayed'),
    path('milestones/project/<int:project_id>/', project_milestones, name='project-milestones'),
    path('milestones/project/<int:project_id>/timeline/', project_milestone_timeline, name='project-milestone-timeline'),
    path('milestones/<int:pk>/', milestone_detail, name='milestone-detail'),
    path('milestones/<int:pk>/status/', milestone_status, name='milestone-status'),
]

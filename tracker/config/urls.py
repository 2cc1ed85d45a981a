"""
URL configuration for the project tracker backend.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "Project Tracker Admin Panel"
admin.site.site_title = "Project Tracker Admin Portal"
admin.site.index_title = "Projects, resources and financials"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('tracker.core.urls')),
    path('api/v1/', include('tracker.projects.urls')),
    path('api/v1/', include('tracker.resources.urls')),
    path('api/v1/', include('tracker.milestones.urls')),
    path('api/v1/', include('tracker.financial.urls')),
    path('api/v1/', include('tracker.reports.urls')),
]

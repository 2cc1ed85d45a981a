import django_filters
from django.db.models import Q
from .models import Project


class ProjectFilter(django_filters.FilterSet):
    """Filters for the project list"""
    status = django_filters.ChoiceFilter(choices=Project.STATUS_CHOICES)
    client = django_filters.CharFilter(field_name='client_name', lookup_expr='icontains')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Project
        fields = ['status', 'client', 'search']

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(project_code__icontains=value) |
            Q(client_name__icontains=value)
        )

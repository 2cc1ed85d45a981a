import django_filters
from django.db.models import Q
from .models import Resource


class ResourceFilter(django_filters.FilterSet):
    """Filters for the resource list"""
    is_active = django_filters.BooleanFilter(field_name='is_active')
    skill = django_filters.CharFilter(method='filter_skill', label='Skill')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Resource
        fields = ['is_active', 'skill', 'search']

    def filter_skill(self, queryset, name, value):
        # skills is a JSON list, matched case-insensitively
        value = value.strip().lower()
        if not value:
            return queryset
        matching = [
            pk for pk, skills in queryset.values_list('pk', 'skills')
            if any(value == str(skill).lower() for skill in (skills or []))
        ]
        return queryset.filter(pk__in=matching)

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(resource_code__icontains=value) |
            Q(email__icontains=value)
        )

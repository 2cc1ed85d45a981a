import django_filters
from .models import Expense, Invoice


class ExpenseFilter(django_filters.FilterSet):
    """Filters for the expense list"""
    project = django_filters.NumberFilter(field_name='project_id')
    category = django_filters.ChoiceFilter(choices=Expense.CATEGORY_CHOICES)
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = Expense
        fields = ['project', 'category', 'date_from', 'date_to']


class InvoiceFilter(django_filters.FilterSet):
    """Filters for the invoice list"""
    project = django_filters.NumberFilter(field_name='project_id')
    milestone = django_filters.NumberFilter(field_name='milestone_id')
    status = django_filters.ChoiceFilter(choices=Invoice.STATUS_CHOICES)
    date_from = django_filters.DateFilter(field_name='issue_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='issue_date', lookup_expr='lte')

    class Meta:
        model = Invoice
        fields = ['project', 'milestone', 'status', 'date_from', 'date_to']

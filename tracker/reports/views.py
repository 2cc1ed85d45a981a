import logging
from collections import defaultdict
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Sum, Count, Q, F, Value, DecimalField
from django.db.models.functions import Coalesce
from django.utils import timezone

from tracker.core.cache_utils import cached_report
from tracker.core.utils import parse_date_param, get_as_of_date, InvalidDateParam
from tracker.financial.models import Expense, Invoice
from tracker.financial.serializers import ExpenseSerializer
from tracker.milestones.models import Milestone
from tracker.projects.models import Project
from tracker.projects.serializers import ProjectSerializer
from tracker.resources.models import Resource, ResourceAllocation
from tracker.resources.serializers import ResourceAllocationSerializer
from .serializers import (
    CustomReportSerializer, REPORT_TYPES,
    REPORT_PROJECT_PERFORMANCE, REPORT_RESOURCE_ALLOCATION, REPORT_FINANCIAL_ANALYSIS
)

logger = logging.getLogger('tracker.reports')

ZERO = Value(Decimal('0'), output_field=DecimalField(max_digits=14, decimal_places=2))


def _date_range(params):
    """date_from/date_to query params; raises InvalidDateParam on bad input"""
    date_from = parse_date_param(params, 'date_from')
    date_to = parse_date_param(params, 'date_to')
    if date_from and date_to and date_to < date_from:
        raise InvalidDateParam('date_to', params.get('date_to'))
    return date_from, date_to


def _is_delayed(milestone, as_of):
    if milestone.status == Milestone.STATUS_DELAYED:
        return True
    if milestone.status == Milestone.STATUS_CANCELLED:
        return False
    return milestone.is_delayed(as_of)


def _over_budget_projects(projects):
    return projects.annotate(
        spent=Coalesce(Sum('expenses__amount'), ZERO)
    ).filter(spent__gt=F('budget'))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_status_report(request):
    """Per-project spend, milestone progress and staffing"""
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    projects = Project.objects.annotate(
        total_expenses=Coalesce(Sum('expenses__amount'), ZERO),
    ).prefetch_related('milestones').order_by('-created_at')

    status_filter = request.query_params.get('status', None)
    if status_filter:
        projects = projects.filter(status=status_filter)

    active_resources = dict(
        ResourceAllocation.objects.filter(is_active=True)
        .values('project').annotate(count=Count('resource', distinct=True))
        .values_list('project', 'count')
    )

    report = []
    for project in projects:
        milestones = list(project.milestones.all())
        total = len(milestones)
        completed = sum(1 for m in milestones if m.status == Milestone.STATUS_COMPLETED)
        delayed = sum(1 for m in milestones if _is_delayed(m, as_of))
        budget = float(project.budget)
        total_expenses = float(project.total_expenses)
        report.append({
            'id': project.id,
            'name': project.name,
            'project_code': project.project_code,
            'status': project.status,
            'client': project.client_name,
            'budget': budget,
            'total_expenses': total_expenses,
            'budget_utilization': (total_expenses / budget * 100) if budget else 0,
            'milestones': {
                'total': total,
                'completed': completed,
                'delayed': delayed,
                'completion_rate': (completed / total * 100) if total else 0,
            },
            'resources': active_resources.get(project.id, 0),
            'start_date': project.start_date.isoformat(),
            'end_date': project.end_date.isoformat(),
        })
    return Response(report)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def resource_utilization_report(request):
    """Active resources with their summed allocation, optionally within a date window"""
    try:
        date_from, date_to = _date_range(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    allocations = ResourceAllocation.objects.filter(is_active=True, resource__is_active=True)
    if date_to:
        allocations = allocations.filter(start_date__lte=date_to)
    if date_from:
        allocations = allocations.filter(end_date__gte=date_from)

    by_resource = defaultdict(list)
    for allocation in allocations.select_related('project').order_by('start_date'):
        by_resource[allocation.resource_id].append(allocation)

    report = []
    for resource in Resource.objects.filter(is_active=True).order_by('name'):
        resource_allocations = by_resource.get(resource.id, [])
        total = sum(float(a.allocation) for a in resource_allocations)
        count = len(resource_allocations)
        report.append({
            'id': resource.id,
            'name': resource.name,
            'resource_code': resource.resource_code,
            'email': resource.email,
            'skills': resource.skills,
            'utilization': {
                'total': total,
                'average': (total / count) if count else 0,
                'is_overallocated': total > 100,
            },
            'active_projects': len({a.project_id for a in resource_allocations}),
            'allocations': [
                {
                    'id': a.id,
                    'project': {
                        'id': a.project.id,
                        'name': a.project.name,
                        'project_code': a.project.project_code,
                        'status': a.project.status,
                    },
                    'allocation': float(a.allocation),
                    'start_date': a.start_date.isoformat(),
                    'end_date': a.end_date.isoformat(),
                    'hourly_rate': float(a.hourly_rate),
                }
                for a in resource_allocations
            ],
        })
    return Response(report)


@cached_report('reports_financial_summary')
def build_financial_summary_report(date_from, date_to):
    projects = Project.objects.all()
    expenses = Expense.objects.all()
    invoices = Invoice.objects.all()
    if date_from:
        expenses = expenses.filter(date__gte=date_from)
        invoices = invoices.filter(issue_date__gte=date_from)
    if date_to:
        expenses = expenses.filter(date__lte=date_to)
        invoices = invoices.filter(issue_date__lte=date_to)

    totals = projects.aggregate(budget=Sum('budget'), po_amount=Sum('po_amount'))
    by_status = dict(projects.values('status').annotate(count=Count('id')).values_list('status', 'count'))

    by_category = {
        row['category']: float(row['total'])
        for row in expenses.values('category').annotate(total=Sum('amount')).order_by('category')
    }
    spent_by_project = dict(expenses.values('project').annotate(total=Sum('amount')).values_list('project', 'total'))
    over_budget = sum(
        1 for project_id, budget in projects.values_list('id', 'budget')
        if spent_by_project.get(project_id, Decimal('0')) > budget
    )
    total_projects = projects.count()

    return {
        'overview': {
            'total_projects': total_projects,
            'active_projects': by_status.get(Project.STATUS_IN_PROGRESS, 0),
            'completed_projects': by_status.get(Project.STATUS_COMPLETED, 0),
            'projects_by_status': by_status,
            'total_budget': float(totals['budget'] or 0),
            'total_po_value': float(totals['po_amount'] or 0),
        },
        'expenses': {
            'total': float(expenses.aggregate(total=Sum('amount'))['total'] or 0),
            'by_category': by_category,
        },
        'invoicing': {
            'total_invoiced': float(invoices.aggregate(total=Sum('amount'))['total'] or 0),
            'total_paid': float(invoices.filter(status=Invoice.STATUS_PAID).aggregate(total=Sum('amount'))['total'] or 0),
            'pending_invoices': invoices.filter(status=Invoice.STATUS_PENDING).count(),
        },
        'project_health': {
            'on_budget': total_projects - over_budget,
            'over_budget': over_budget,
        },
        'date_from': date_from.isoformat() if date_from else None,
        'date_to': date_to.isoformat() if date_to else None,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def financial_summary_report(request):
    """Portfolio budget, expenses and invoicing, optionally within a date window"""
    try:
        date_from, date_to = _date_range(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(build_financial_summary_report(date_from, date_to))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def milestone_slippage_report(request):
    """
    Slippage of every milestone against its scheduled date.

    Completed milestones are measured to their actual date; open ones count
    the days since a missed scheduled date. The average is taken over the
    milestones that slipped.
    """
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    milestones = Milestone.objects.select_related('project').order_by('scheduled_date', 'id')
    project_filter = request.query_params.get('project', None)
    if project_filter:
        if not project_filter.isdigit():
            return Response({'error': 'Invalid project id'}, status=status.HTTP_400_BAD_REQUEST)
        milestones = milestones.filter(project_id=project_filter)

    rows = []
    for milestone in milestones:
        slippage_status, slippage_days = milestone.get_slippage(as_of)
        rows.append({
            'id': milestone.id,
            'name': milestone.name,
            'project': {
                'id': milestone.project.id,
                'name': milestone.project.name,
                'project_code': milestone.project.project_code,
                'client_name': milestone.project.client_name,
            },
            'scheduled_date': milestone.scheduled_date.isoformat(),
            'actual_date': milestone.actual_date.isoformat() if milestone.actual_date else None,
            'status': milestone.status,
            'slippage_status': slippage_status,
            'slippage_days': slippage_days,
            'is_billing_milestone': milestone.is_billing_milestone,
            'billing_amount': float(milestone.billing_amount) if milestone.billing_amount is not None else None,
        })

    slipped = sorted((r for r in rows if r['slippage_days'] > 0), key=lambda r: r['slippage_days'], reverse=True)
    return Response({
        'total_milestones': len(rows),
        'slipped_milestones': len(slipped),
        'average_slippage': (sum(r['slippage_days'] for r in slipped) / len(slipped)) if slipped else 0,
        'milestones': rows,
        'as_of': as_of.isoformat(),
    })


@cached_report('dashboard')
def build_dashboard(as_of):
    projects = Project.objects.all()
    total_projects = projects.count()
    active_projects = projects.filter(status=Project.STATUS_IN_PROGRESS).count()
    over_budget = _over_budget_projects(projects).count()

    delayed_q = Q(status=Milestone.STATUS_DELAYED) | (
        ~Q(status__in=[Milestone.STATUS_COMPLETED, Milestone.STATUS_CANCELLED]) & Q(scheduled_date__lt=as_of)
    )
    total_milestones = Milestone.objects.count()
    delayed_milestones = Milestone.objects.filter(delayed_q).count()

    overdue_invoices = Invoice.objects.filter(status__in=Invoice.OPEN_STATUSES, due_date__lt=as_of).count()

    total_budget = projects.aggregate(total=Sum('budget'))['total'] or Decimal('0')
    total_expenses = Expense.objects.aggregate(total=Sum('amount'))['total'] or Decimal('0')
    total_invoiced = Invoice.objects.aggregate(total=Sum('amount'))['total'] or Decimal('0')

    recent_projects = [
        {
            'id': p.id,
            'name': p.name,
            'project_code': p.project_code,
            'status': p.status,
            'created_at': p.created_at.isoformat(),
        }
        for p in projects.order_by('-created_at')[:5]
    ]
    recent_milestones = [
        {
            'id': m.id,
            'name': m.name,
            'status': m.status,
            'scheduled_date': m.scheduled_date.isoformat(),
            'project': {'id': m.project.id, 'name': m.project.name},
            'updated_at': m.updated_at.isoformat(),
        }
        for m in Milestone.objects.select_related('project').order_by('-updated_at')[:5]
    ]

    return {
        'metrics': {
            'projects': {
                'total': total_projects,
                'active': active_projects,
                'over_budget': over_budget,
            },
            'resources': {
                'total': Resource.objects.filter(is_active=True).count(),
            },
            'milestones': {
                'total': total_milestones,
                'delayed': delayed_milestones,
            },
            'financial': {
                'total_budget': float(total_budget),
                'total_expenses': float(total_expenses),
                'total_invoiced': float(total_invoiced),
                'overdue_invoices': overdue_invoices,
            },
        },
        'recent_activity': {
            'projects': recent_projects,
            'milestones': recent_milestones,
        },
        'alerts': {
            'delayed_milestones': delayed_milestones > 0,
            'overdue_invoices': overdue_invoices > 0,
            'over_budget_projects': over_budget > 0,
        },
        'as_of': as_of.isoformat(),
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    """Headline metrics, recent activity and alert flags"""
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    return Response(build_dashboard(as_of))


def _group(rows, key_func, amount_func):
    groups = defaultdict(lambda: {'count': 0, 'total': 0.0})
    for row in rows:
        group = groups[key_func(row)]
        group['count'] += 1
        group['total'] += amount_func(row)
    return dict(groups)


def _project_performance(filters, group_by):
    projects = Project.objects.select_related('created_by').annotate(
        total_expenses=Coalesce(Sum('expenses__amount'), ZERO),
    ).prefetch_related('milestones', 'allocations').order_by('-created_at')
    if filters.get('project_ids'):
        projects = projects.filter(id__in=filters['project_ids'])
    if filters.get('date_from'):
        projects = projects.filter(created_at__date__gte=filters['date_from'])
    if filters.get('date_to'):
        projects = projects.filter(created_at__date__lte=filters['date_to'])

    data = []
    for project in projects:
        row = ProjectSerializer(project).data
        milestones = list(project.milestones.all())
        completed = sum(1 for m in milestones if m.status == Milestone.STATUS_COMPLETED)
        row['total_expenses'] = float(project.total_expenses)
        row['budget_utilization'] = float(project.total_expenses / project.budget * 100) if project.budget else 0
        row['milestone_completion_rate'] = (completed / len(milestones) * 100) if milestones else 0
        row['active_allocations'] = sum(1 for a in project.allocations.all() if a.is_active)
        data.append(row)

    groups = None
    if group_by == 'status':
        groups = _group(data, lambda r: r['status'], lambda r: r['total_expenses'])
    elif group_by == 'client':
        groups = _group(data, lambda r: r['client_name'], lambda r: r['total_expenses'])
    return data, groups


def _resource_allocation(filters, group_by):
    allocations = ResourceAllocation.objects.select_related('resource', 'project').order_by('start_date', 'id')
    if filters.get('resource_ids'):
        allocations = allocations.filter(resource_id__in=filters['resource_ids'])
    if filters.get('project_ids'):
        allocations = allocations.filter(project_id__in=filters['project_ids'])
    if filters.get('date_to'):
        allocations = allocations.filter(start_date__lte=filters['date_to'])
    if filters.get('date_from'):
        allocations = allocations.filter(end_date__gte=filters['date_from'])

    data = ResourceAllocationSerializer(allocations, many=True).data

    groups = None
    if group_by == 'resource':
        groups = _group(data, lambda r: r['resource_code'], lambda r: float(r['allocation']))
    elif group_by == 'project':
        groups = _group(data, lambda r: r['project_code'], lambda r: float(r['allocation']))
    return data, groups


def _financial_analysis(filters, group_by):
    expenses = Expense.objects.select_related('project').order_by('-date', '-created_at')
    if filters.get('project_ids'):
        expenses = expenses.filter(project_id__in=filters['project_ids'])
    if filters.get('date_from'):
        expenses = expenses.filter(date__gte=filters['date_from'])
    if filters.get('date_to'):
        expenses = expenses.filter(date__lte=filters['date_to'])

    data = ExpenseSerializer(expenses, many=True).data

    groups = None
    if group_by == 'category':
        groups = _group(data, lambda r: r['category'], lambda r: float(r['amount']))
    elif group_by == 'project':
        groups = _group(data, lambda r: r['project_code'], lambda r: float(r['amount']))
    elif group_by == 'month':
        groups = _group(data, lambda r: r['date'][:7], lambda r: float(r['amount']))
    return data, groups


REPORT_BUILDERS = {
    REPORT_PROJECT_PERFORMANCE: _project_performance,
    REPORT_RESOURCE_ALLOCATION: _resource_allocation,
    REPORT_FINANCIAL_ANALYSIS: _financial_analysis,
}


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def custom_report(request):
    """Ad hoc report over projects, allocations or expenses"""
    serializer = CustomReportSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    filters = serializer.validated_data
    report_type = filters['report_type']
    if report_type not in REPORT_TYPES:
        return Response({'error': 'Invalid report type'}, status=status.HTTP_400_BAD_REQUEST)

    group_by = filters.get('group_by') or None
    data, groups = REPORT_BUILDERS[report_type](filters, group_by)
    logger.info(f"Custom {report_type} report generated by {request.user.email} ({len(data)} rows)")

    response_data = {
        'report_type': report_type,
        'group_by': group_by,
        'filters': {
            'project_ids': filters.get('project_ids'),
            'resource_ids': filters.get('resource_ids'),
            'date_from': filters['date_from'].isoformat() if filters.get('date_from') else None,
            'date_to': filters['date_to'].isoformat() if filters.get('date_to') else None,
        },
        'data': data,
        'generated_at': timezone.now().isoformat(),
    }
    if groups is not None:
        response_data['groups'] = groups
    return Response(response_data)

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count
from django.shortcuts import get_object_or_404

from tracker.core.permissions import has_role, permission_denied, PROJECT_EDITORS
from tracker.core.utils import create_audit_log, get_as_of_date, InvalidDateParam
from .filters import ProjectFilter
from .models import Project
from .serializers import ProjectSerializer, ProjectDetailSerializer, ProjectStatusSerializer

logger = logging.getLogger('tracker.projects')


def _project_queryset():
    return Project.objects.select_related('created_by').annotate(
        milestone_count=Count('milestones', distinct=True),
        allocation_count=Count('allocations', distinct=True),
        expense_count=Count('expenses', distinct=True),
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def project_list_create(request):
    """List all projects or create a new project"""
    if request.method == 'GET':
        filterset = ProjectFilter(request.query_params, queryset=_project_queryset())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('-created_at')
        serializer = ProjectSerializer(queryset, many=True)
        return Response(serializer.data)
    else:  # POST
        if not has_role(request.user, PROJECT_EDITORS):
            return permission_denied(request)
        serializer = ProjectSerializer(data=request.data)
        if serializer.is_valid():
            project = serializer.save(created_by=request.user)
            logger.info(f"Project {project.project_code} created by {request.user.email}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Project',
                object_id=project.id,
                object_name=project.name,
                object_reference=project.project_code,
                changes={'budget': str(project.budget), 'po_amount': str(project.po_amount), 'status': project.status}
            )
            return Response(ProjectSerializer(project).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def project_detail(request, pk):
    """Retrieve, update or archive a project"""
    project = get_object_or_404(_project_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = ProjectDetailSerializer(project)
        return Response(serializer.data)

    if not has_role(request.user, PROJECT_EDITORS):
        return permission_denied(request)

    if request.method in ('PUT', 'PATCH'):
        serializer = ProjectSerializer(project, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            changed = {
                field: str(value) for field, value in serializer.validated_data.items()
                if getattr(project, field) != value
            }
            serializer.save()
            logger.info(f"Project {project.project_code} updated by {request.user.email}")
            create_audit_log(
                request=request,
                action='update',
                model_name='Project',
                object_id=project.id,
                object_name=project.name,
                object_reference=project.project_code,
                changes=changed
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE archives, records are kept for reporting
        old_status = project.status
        project.status = Project.STATUS_ARCHIVED
        project.save(update_fields=['status', 'updated_at'])
        logger.info(f"Project {project.project_code} archived by {request.user.email}")
        create_audit_log(
            request=request,
            action='archive',
            model_name='Project',
            object_id=project.id,
            object_name=project.name,
            object_reference=project.project_code,
            changes={'old_status': old_status, 'new_status': project.status}
        )
        return Response({
            'message': 'Project archived successfully',
            'project': ProjectSerializer(project).data,
        })


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def project_status(request, pk):
    """Change the status of a project"""
    if not has_role(request.user, PROJECT_EDITORS):
        return permission_denied(request)

    project = get_object_or_404(_project_queryset(), pk=pk)
    serializer = ProjectStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response({'error': 'Invalid status'}, status=status.HTTP_400_BAD_REQUEST)

    old_status = project.status
    project.status = serializer.validated_data['status']
    project.save(update_fields=['status', 'updated_at'])
    create_audit_log(
        request=request,
        action='status_change',
        model_name='Project',
        object_id=project.id,
        object_name=project.name,
        object_reference=project.project_code,
        changes={'old_status': old_status, 'new_status': project.status}
    )
    return Response(ProjectSerializer(project).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_dashboard(request, pk):
    """Financial, milestone and staffing figures for one project"""
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    project = get_object_or_404(Project, pk=pk)

    budget = float(project.budget)
    total_expenses = float(project.get_total_expenses())
    total_invoiced = float(project.get_total_invoiced())

    milestones = list(project.milestones.all())
    total_milestones = len(milestones)
    completed = sum(1 for m in milestones if m.status == m.STATUS_COMPLETED)
    delayed = sum(
        1 for m in milestones
        if m.status == m.STATUS_DELAYED or (m.status != m.STATUS_CANCELLED and m.is_delayed(as_of))
    )

    allocations = project.allocations.filter(is_active=True)
    allocation_stats = allocations.aggregate(
        count=Count('id'),
        resources=Count('resource', distinct=True),
    )
    total_allocation = sum(float(a.allocation) for a in allocations)
    allocation_count = allocation_stats['count']

    return Response({
        'project': {
            'id': project.id,
            'name': project.name,
            'project_code': project.project_code,
            'status': project.status,
            'budget': budget,
            'po_amount': float(project.po_amount),
        },
        'financial': {
            'budget': budget,
            'total_expenses': total_expenses,
            'total_invoiced': total_invoiced,
            'budget_utilization': project.get_budget_utilization(),
            'remaining_budget': budget - total_expenses,
        },
        'milestones': {
            'total': total_milestones,
            'completed': completed,
            'delayed': delayed,
            'completion_rate': (completed / total_milestones * 100) if total_milestones else 0,
        },
        'resources': {
            'total': allocation_count,
            'distinct_resources': allocation_stats['resources'],
            'total_allocation': total_allocation,
            'average_allocation': (total_allocation / allocation_count) if allocation_count else 0,
        },
        'as_of': as_of.isoformat(),
    })

import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Prefetch
from django.shortcuts import get_object_or_404

from tracker.core.permissions import has_role, permission_denied, RESOURCE_EDITORS, ALLOCATION_EDITORS
from tracker.core.utils import create_audit_log, parse_date_param, InvalidDateParam
from tracker.projects.models import Project
from .filters import ResourceFilter
from .models import Resource, ResourceAllocation
from .serializers import (
    ResourceSerializer, ResourceAllocationSerializer,
    AllocationRequestSerializer, AllocationUpdateSerializer
)
from .utils import (
    allocate_resource, update_allocation, deactivate_resource_allocations,
    get_overlapping_allocations, OverallocationError, InactiveResourceError, format_percent
)

logger = logging.getLogger('tracker.resources')


def _resource_queryset():
    return Resource.objects.prefetch_related(
        Prefetch(
            'allocations',
            queryset=ResourceAllocation.objects.filter(is_active=True).select_related('project', 'resource'),
            to_attr='active_allocations',
        )
    )


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def resource_list_create(request):
    """List all resources with their current utilization, or create a resource"""
    if request.method == 'GET':
        filterset = ResourceFilter(request.query_params, queryset=_resource_queryset())
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('name')
        serializer = ResourceSerializer(queryset, many=True)
        return Response(serializer.data)
    else:  # POST
        if not has_role(request.user, RESOURCE_EDITORS):
            return permission_denied(request)
        serializer = ResourceSerializer(data=request.data)
        if serializer.is_valid():
            resource = serializer.save(created_by=request.user)
            logger.info(f"Resource {resource.resource_code} created by {request.user.email}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Resource',
                object_id=resource.id,
                object_name=resource.name,
                object_reference=resource.resource_code,
                changes={'hourly_rate': str(resource.hourly_rate), 'skills': resource.skills}
            )
            return Response(ResourceSerializer(resource).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def resource_detail(request, pk):
    """Retrieve or update a resource"""
    resource = get_object_or_404(_resource_queryset(), pk=pk)

    if request.method == 'GET':
        serializer = ResourceSerializer(resource)
        return Response(serializer.data)

    if not has_role(request.user, RESOURCE_EDITORS):
        return permission_denied(request)

    serializer = ResourceSerializer(resource, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        changed = {
            field: str(value) for field, value in serializer.validated_data.items()
            if getattr(resource, field) != value
        }
        serializer.save()
        create_audit_log(
            request=request,
            action='update',
            model_name='Resource',
            object_id=resource.id,
            object_name=resource.name,
            object_reference=resource.resource_code,
            changes=changed
        )
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def resource_activate(request, pk):
    """Mark a resource as available for allocation again"""
    if not has_role(request.user, RESOURCE_EDITORS):
        return permission_denied(request)

    resource = get_object_or_404(Resource, pk=pk)
    resource.is_active = True
    resource.save(update_fields=['is_active', 'updated_at'])
    create_audit_log(
        request=request,
        action='activate',
        model_name='Resource',
        object_id=resource.id,
        object_name=resource.name,
        object_reference=resource.resource_code,
    )
    return Response(ResourceSerializer(_resource_queryset().get(pk=resource.pk)).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def resource_deactivate(request, pk):
    """Deactivate a resource and end all of its active allocations"""
    if not has_role(request.user, RESOURCE_EDITORS):
        return permission_denied(request)

    resource = get_object_or_404(Resource, pk=pk)
    with transaction.atomic():
        resource.is_active = False
        resource.save(update_fields=['is_active', 'updated_at'])
        closed = deactivate_resource_allocations(resource)
    logger.info(f"Resource {resource.resource_code} deactivated, {closed} allocation(s) ended")
    create_audit_log(
        request=request,
        action='deactivate',
        model_name='Resource',
        object_id=resource.id,
        object_name=resource.name,
        object_reference=resource.resource_code,
        changes={'allocations_ended': closed}
    )
    return Response(ResourceSerializer(_resource_queryset().get(pk=resource.pk)).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def resource_allocations(request, pk):
    """List a resource's allocations or book it on a project"""
    if request.method == 'GET':
        resource = get_object_or_404(Resource, pk=pk)
        queryset = resource.allocations.select_related('project', 'resource').order_by('-start_date', '-created_at')
        serializer = ResourceAllocationSerializer(queryset, many=True)
        return Response(serializer.data)

    if not has_role(request.user, ALLOCATION_EDITORS):
        return permission_denied(request)

    resource = get_object_or_404(Resource, pk=pk)
    serializer = AllocationRequestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    project = get_object_or_404(Project, pk=data['project'])

    hourly_rate = data.get('hourly_rate')
    if hourly_rate is None:
        hourly_rate = resource.hourly_rate
    if hourly_rate is None:
        return Response(
            {'error': 'Hourly rate is required when the resource has no default rate'},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        allocation = allocate_resource(
            resource.pk,
            project,
            data['start_date'],
            data['end_date'],
            data['allocation'],
            hourly_rate,
        )
    except Resource.DoesNotExist:
        return Response({'error': 'Resource not found'}, status=status.HTTP_404_NOT_FOUND)
    except InactiveResourceError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
    except OverallocationError as e:
        return Response({
            'error': str(e),
            'current_allocation': float(e.total),
            'conflicting_allocations': [a.id for a in e.conflicting],
        }, status=status.HTTP_400_BAD_REQUEST)

    logger.info(
        f"Allocated {resource.resource_code} to {project.project_code} at "
        f"{format_percent(allocation.allocation)}% ({allocation.start_date} - {allocation.end_date})"
    )
    create_audit_log(
        request=request,
        action='allocate',
        model_name='ResourceAllocation',
        object_id=allocation.id,
        object_name=resource.name,
        object_reference=project.project_code,
        changes={
            'resource': resource.resource_code,
            'project': project.project_code,
            'start_date': str(allocation.start_date),
            'end_date': str(allocation.end_date),
            'allocation': str(allocation.allocation),
            'hourly_rate': str(allocation.hourly_rate),
        }
    )
    allocation = ResourceAllocation.objects.select_related('project', 'resource').get(pk=allocation.pk)
    return Response(ResourceAllocationSerializer(allocation).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def allocation_detail(request, pk):
    """Retrieve, update or end an allocation"""
    allocation = get_object_or_404(ResourceAllocation.objects.select_related('project', 'resource'), pk=pk)

    if request.method == 'GET':
        return Response(ResourceAllocationSerializer(allocation).data)

    if not has_role(request.user, ALLOCATION_EDITORS):
        return permission_denied(request)

    if request.method == 'PATCH':
        serializer = AllocationUpdateSerializer(allocation, data=request.data, partial=True)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        try:
            update_allocation(allocation, **serializer.validated_data)
        except InactiveResourceError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        except OverallocationError as e:
            return Response({
                'error': str(e),
                'current_allocation': float(e.total),
                'conflicting_allocations': [a.id for a in e.conflicting],
            }, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(
            request=request,
            action='update',
            model_name='ResourceAllocation',
            object_id=allocation.id,
            object_name=allocation.resource.name,
            object_reference=allocation.project.project_code,
            changes={field: str(value) for field, value in serializer.validated_data.items()}
        )
        return Response(ResourceAllocationSerializer(allocation).data)
    else:  # DELETE ends the allocation, history is kept
        allocation.is_active = False
        allocation.save(update_fields=['is_active', 'updated_at'])
        create_audit_log(
            request=request,
            action='deallocate',
            model_name='ResourceAllocation',
            object_id=allocation.id,
            object_name=allocation.resource.name,
            object_reference=allocation.project.project_code,
        )
        return Response({'message': 'Allocation removed successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def resource_utilization(request, pk):
    """Active allocations of a resource, optionally limited to a date window"""
    resource = get_object_or_404(Resource, pk=pk)
    try:
        date_from = parse_date_param(request.query_params, 'date_from')
        date_to = parse_date_param(request.query_params, 'date_to')
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    if date_from and date_to:
        if date_to < date_from:
            return Response({'error': 'date_to must not be before date_from'}, status=status.HTTP_400_BAD_REQUEST)
        allocations = get_overlapping_allocations(resource, date_from, date_to)
    else:
        allocations = resource.allocations.filter(is_active=True)
        if date_from:
            allocations = allocations.filter(end_date__gte=date_from)
        if date_to:
            allocations = allocations.filter(start_date__lte=date_to)
    allocations = list(allocations.select_related('project', 'resource').order_by('start_date'))

    total = sum(float(a.allocation) for a in allocations)
    return Response({
        'resource': {
            'id': resource.id,
            'name': resource.name,
            'resource_code': resource.resource_code,
            'is_active': resource.is_active,
        },
        'allocations': ResourceAllocationSerializer(allocations, many=True).data,
        'total_utilization': total,
        'allocation_count': len(allocations),
        'is_overallocated': total > 100,
        'date_from': date_from.isoformat() if date_from else None,
        'date_to': date_to.isoformat() if date_to else None,
    })

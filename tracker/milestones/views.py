import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.db.models import Q
from django.shortcuts import get_object_or_404
from django.utils import timezone

from tracker.core.permissions import has_role, permission_denied, PROJECT_EDITORS
from tracker.core.utils import create_audit_log, get_as_of_date, InvalidDateParam
from tracker.financial.models import Invoice
from tracker.financial.utils import raise_invoice
from tracker.projects.models import Project
from .models import Milestone
from .serializers import MilestoneSerializer, MilestoneStatusSerializer, MilestoneTimelineSerializer

logger = logging.getLogger('tracker.milestones')


def _milestone_queryset():
    return Milestone.objects.select_related('project').prefetch_related('invoices')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def milestone_list_create(request):
    """List milestones or create a new milestone"""
    if request.method == 'GET':
        queryset = _milestone_queryset()

        project_filter = request.query_params.get('project', None)
        status_filter = request.query_params.get('status', None)
        if project_filter:
            if not project_filter.isdigit():
                return Response({'error': 'Invalid project id'}, status=status.HTTP_400_BAD_REQUEST)
            queryset = queryset.filter(project_id=project_filter)
        if status_filter:
            queryset = queryset.filter(status=status_filter)

        queryset = queryset.order_by('scheduled_date', 'id')
        serializer = MilestoneSerializer(queryset, many=True)
        return Response(serializer.data)
    else:  # POST
        if not has_role(request.user, PROJECT_EDITORS):
            return permission_denied(request)
        project_id = request.data.get('project')
        if str(project_id).isdigit() and not Project.objects.filter(pk=project_id).exists():
            return Response({'error': 'Project not found'}, status=status.HTTP_404_NOT_FOUND)
        serializer = MilestoneSerializer(data=request.data)
        if serializer.is_valid():
            milestone = serializer.save()
            logger.info(f"Milestone '{milestone.name}' created on {milestone.project.project_code}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Milestone',
                object_id=milestone.id,
                object_name=milestone.name,
                object_reference=milestone.project.project_code,
                changes={
                    'scheduled_date': str(milestone.scheduled_date),
                    'is_billing_milestone': milestone.is_billing_milestone,
                    'billing_amount': str(milestone.billing_amount) if milestone.billing_amount is not None else None,
                }
            )
            return Response(MilestoneSerializer(milestone).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def milestone_detail(request, pk):
    """Retrieve, update or delete a milestone"""
    milestone = get_object_or_404(_milestone_queryset(), pk=pk)

    if request.method == 'GET':
        return Response(MilestoneSerializer(milestone).data)

    if not has_role(request.user, PROJECT_EDITORS):
        return permission_denied(request)

    if request.method in ('PUT', 'PATCH'):
        serializer = MilestoneSerializer(milestone, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            changed = {
                field: str(value) for field, value in serializer.validated_data.items()
                if getattr(milestone, field) != value
            }
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Milestone',
                object_id=milestone.id,
                object_name=milestone.name,
                object_reference=milestone.project.project_code,
                changes=changed
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if milestone.invoices.exists():
            return Response(
                {'error': 'Cannot delete milestone with associated invoices'},
                status=status.HTTP_400_BAD_REQUEST
            )
        milestone_id = milestone.id
        name = milestone.name
        project_code = milestone.project.project_code
        milestone.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Milestone',
            object_id=milestone_id,
            object_name=name,
            object_reference=project_code,
        )
        return Response({'message': 'Milestone deleted successfully'})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def milestone_status(request, pk):
    """
    Change the status of a milestone.

    Completing a milestone stamps its actual date (given or today). A completed
    billing milestone raises a PENDING invoice for its billing amount when the
    request asks for it with `generate_invoice: true`.
    """
    if not has_role(request.user, PROJECT_EDITORS):
        return permission_denied(request)

    milestone = get_object_or_404(_milestone_queryset(), pk=pk)
    serializer = MilestoneStatusSerializer(data=request.data)
    if not serializer.is_valid():
        if 'status' in serializer.errors:
            return Response({'error': 'Invalid status'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    wants_invoice = (
        data.get('generate_invoice') and data['status'] == Milestone.STATUS_COMPLETED
        and milestone.is_billing_milestone
    )
    if wants_invoice and milestone.invoices.exclude(status=Invoice.STATUS_CANCELLED).exists():
        return Response(
            {'error': 'An invoice has already been raised for this milestone'},
            status=status.HTTP_400_BAD_REQUEST
        )

    old_status = milestone.status
    invoice = None

    with transaction.atomic():
        milestone.status = data['status']
        if milestone.status == Milestone.STATUS_COMPLETED:
            milestone.actual_date = data.get('actual_date') or timezone.localdate()
        milestone.save(update_fields=['status', 'actual_date', 'updated_at'])

        if wants_invoice:
            invoice = raise_invoice(
                milestone.project,
                milestone.billing_amount,
                issue_date=milestone.actual_date,
                milestone=milestone,
            )

    create_audit_log(
        request=request,
        action='status_change',
        model_name='Milestone',
        object_id=milestone.id,
        object_name=milestone.name,
        object_reference=milestone.project.project_code,
        changes={
            'old_status': old_status,
            'new_status': milestone.status,
            'actual_date': str(milestone.actual_date) if milestone.actual_date else None,
        }
    )
    if invoice is not None:
        logger.info(f"Invoice {invoice.invoice_number} raised for milestone '{milestone.name}'")
        create_audit_log(
            request=request,
            action='invoice_create',
            model_name='Invoice',
            object_id=invoice.id,
            object_name=milestone.name,
            object_reference=invoice.invoice_number,
            changes={'amount': str(invoice.amount), 'due_date': str(invoice.due_date), 'source': 'milestone'}
        )

    milestone = _milestone_queryset().get(pk=milestone.pk)
    response_data = MilestoneSerializer(milestone).data
    if invoice is not None:
        response_data['generated_invoice'] = {
            'id': invoice.id,
            'invoice_number': invoice.invoice_number,
            'amount': str(invoice.amount),
            'due_date': invoice.due_date.isoformat(),
            'status': invoice.status,
        }
    return Response(response_data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_milestones(request, project_id):
    """Milestones of one project by scheduled date"""
    project = get_object_or_404(Project, pk=project_id)
    queryset = _milestone_queryset().filter(project=project).order_by('scheduled_date', 'id')
    return Response(MilestoneSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_milestone_timeline(request, project_id):
    """Project date range with each milestone flagged when delayed"""
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    project = get_object_or_404(Project, pk=project_id)
    milestones = project.milestones.order_by('scheduled_date', 'id')
    return Response({
        'project': {
            'id': project.id,
            'name': project.name,
            'start_date': project.start_date.isoformat(),
            'end_date': project.end_date.isoformat(),
        },
        'milestones': MilestoneTimelineSerializer(milestones, many=True, context={'as_of': as_of}).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def delayed_milestones(request):
    """Milestones marked DELAYED or still open past their scheduled date"""
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    queryset = _milestone_queryset().filter(
        Q(status=Milestone.STATUS_DELAYED) |
        (
            ~Q(status__in=[Milestone.STATUS_COMPLETED, Milestone.STATUS_CANCELLED]) &
            Q(scheduled_date__lt=as_of)
        )
    ).order_by('scheduled_date', 'id')

    results = []
    for milestone in queryset:
        data = MilestoneSerializer(milestone).data
        data['days_delayed'] = max((as_of - milestone.scheduled_date).days, 0)
        results.append(data)
    return Response(results)

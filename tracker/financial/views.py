import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404
from django.utils import timezone

from tracker.core.permissions import has_role, permission_denied, EXPENSE_EDITORS, INVOICE_EDITORS
from tracker.core.utils import create_audit_log, get_as_of_date, InvalidDateParam
from tracker.milestones.models import Milestone
from tracker.projects.models import Project
from .filters import ExpenseFilter, InvoiceFilter
from .models import Expense, Invoice
from .serializers import ExpenseSerializer, InvoiceSerializer, InvoiceCreateSerializer, InvoiceStatusSerializer
from .utils import raise_invoice, build_budget_analysis, build_financial_summary, get_overdue_invoices

logger = logging.getLogger('tracker.financial')


# Expense views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def expense_list_create(request):
    """List expenses or record a new expense"""
    if request.method == 'GET':
        filterset = ExpenseFilter(request.query_params, queryset=Expense.objects.select_related('project'))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('-date', '-created_at')
        return Response(ExpenseSerializer(queryset, many=True).data)
    else:  # POST
        if not has_role(request.user, EXPENSE_EDITORS):
            return permission_denied(request)
        serializer = ExpenseSerializer(data=request.data)
        if serializer.is_valid():
            expense = serializer.save()
            logger.info(f"Expense of {expense.amount} recorded on {expense.project.project_code}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Expense',
                object_id=expense.id,
                object_name=expense.description,
                object_reference=expense.project.project_code,
                changes={'amount': str(expense.amount), 'category': expense.category, 'date': str(expense.date)}
            )
            return Response(ExpenseSerializer(expense).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def expense_detail(request, pk):
    """Retrieve, update or delete an expense"""
    expense = get_object_or_404(Expense.objects.select_related('project'), pk=pk)

    if request.method == 'GET':
        return Response(ExpenseSerializer(expense).data)

    if not has_role(request.user, EXPENSE_EDITORS):
        return permission_denied(request)

    if request.method in ('PUT', 'PATCH'):
        serializer = ExpenseSerializer(expense, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            changed = {
                field: str(value) for field, value in serializer.validated_data.items()
                if getattr(expense, field) != value
            }
            serializer.save()
            create_audit_log(
                request=request,
                action='update',
                model_name='Expense',
                object_id=expense.id,
                object_name=expense.description,
                object_reference=expense.project.project_code,
                changes=changed
            )
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        expense_id = expense.id
        description = expense.description
        project_code = expense.project.project_code
        amount = expense.amount
        expense.delete()
        create_audit_log(
            request=request,
            action='delete',
            model_name='Expense',
            object_id=expense_id,
            object_name=description,
            object_reference=project_code,
            changes={'amount': str(amount)}
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


# Invoice views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def invoice_list_create(request):
    """List invoices or raise a new invoice"""
    if request.method == 'GET':
        filterset = InvoiceFilter(request.query_params, queryset=Invoice.objects.select_related('project', 'milestone'))
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        queryset = filterset.qs.order_by('-issue_date', '-created_at')
        return Response(InvoiceSerializer(queryset, many=True).data)

    if not has_role(request.user, INVOICE_EDITORS):
        return permission_denied(request)

    serializer = InvoiceCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    project = Project.objects.filter(pk=data['project']).first()
    if project is None:
        return Response({'error': 'Project not found'}, status=status.HTTP_404_NOT_FOUND)

    milestone = None
    if data.get('milestone'):
        milestone = Milestone.objects.filter(pk=data['milestone']).first()
        if milestone is None:
            return Response({'error': 'Milestone not found'}, status=status.HTTP_404_NOT_FOUND)
        if milestone.project_id != project.id:
            return Response(
                {'error': 'Milestone does not belong to this project'},
                status=status.HTTP_400_BAD_REQUEST
            )

    invoice = raise_invoice(
        project,
        data['amount'],
        issue_date=data['issue_date'],
        due_date=data.get('due_date'),
        milestone=milestone,
    )
    logger.info(f"Invoice {invoice.invoice_number} raised on {project.project_code} for {invoice.amount}")
    create_audit_log(
        request=request,
        action='invoice_create',
        model_name='Invoice',
        object_id=invoice.id,
        object_name=project.name,
        object_reference=invoice.invoice_number,
        changes={
            'amount': str(invoice.amount),
            'issue_date': str(invoice.issue_date),
            'due_date': str(invoice.due_date),
            'milestone': milestone.id if milestone else None,
        }
    )
    return Response(InvoiceSerializer(invoice).data, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def invoice_detail(request, pk):
    """Retrieve an invoice"""
    invoice = get_object_or_404(Invoice.objects.select_related('project', 'milestone'), pk=pk)
    return Response(InvoiceSerializer(invoice).data)


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
def invoice_status(request, pk):
    """Move an invoice to a new status; PAID stamps the paid date"""
    if not has_role(request.user, INVOICE_EDITORS):
        return permission_denied(request)

    invoice = get_object_or_404(Invoice.objects.select_related('project', 'milestone'), pk=pk)
    serializer = InvoiceStatusSerializer(data=request.data)
    if not serializer.is_valid():
        if 'status' in serializer.errors:
            return Response({'error': 'Invalid status'}, status=status.HTTP_400_BAD_REQUEST)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_status = invoice.status
    invoice.status = serializer.validated_data['status']
    if invoice.status == Invoice.STATUS_PAID:
        invoice.paid_date = serializer.validated_data.get('paid_date') or timezone.localdate()
    else:
        invoice.paid_date = None
    invoice.save(update_fields=['status', 'paid_date', 'updated_at'])

    logger.info(f"Invoice {invoice.invoice_number} moved from {old_status} to {invoice.status}")
    create_audit_log(
        request=request,
        action='invoice_status',
        model_name='Invoice',
        object_id=invoice.id,
        object_name=invoice.project.name,
        object_reference=invoice.invoice_number,
        changes={
            'old_status': old_status,
            'new_status': invoice.status,
            'paid_date': str(invoice.paid_date) if invoice.paid_date else None,
        }
    )
    return Response(InvoiceSerializer(invoice).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def overdue_invoices(request):
    """Unpaid invoices past their due date, oldest first"""
    try:
        as_of = get_as_of_date(request.query_params)
    except InvalidDateParam as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    results = []
    for invoice in get_overdue_invoices(as_of):
        data = InvoiceSerializer(invoice).data
        data['days_overdue'] = invoice.days_overdue(as_of)
        results.append(data)
    return Response(results)


# Financial analysis views
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def project_budget(request, project_id):
    """Budget analysis of one project"""
    project = get_object_or_404(Project, pk=project_id)
    return Response(build_budget_analysis(project))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def financial_summary(request):
    """Portfolio totals over all non-archived projects"""
    return Response(build_financial_summary())

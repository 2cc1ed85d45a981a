from rest_framework import serializers
from tracker.core.serializers import UserSummarySerializer
from .models import Project


class ProjectSerializer(serializers.ModelSerializer):
    created_by = UserSummarySerializer(read_only=True)
    milestone_count = serializers.IntegerField(read_only=True, required=False)
    allocation_count = serializers.IntegerField(read_only=True, required=False)
    expense_count = serializers.IntegerField(read_only=True, required=False)

    class Meta:
        model = Project
        fields = [
            'id', 'name', 'project_code', 'description', 'po_number', 'po_date', 'po_amount',
            'client_name', 'start_date', 'end_date', 'budget', 'status', 'created_by',
            'milestone_count', 'allocation_count', 'expense_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_project_code(self, value):
        value = value.strip()
        queryset = Project.objects.filter(project_code__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Project code already exists')
        return value

    def validate_budget(self, value):
        if value <= 0:
            raise serializers.ValidationError('Budget must be greater than zero')
        return value

    def validate_po_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('PO amount must be greater than zero')
        return value

    def validate(self, attrs):
        start_date = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end_date = attrs.get('end_date', getattr(self.instance, 'end_date', None))
        if start_date and end_date and end_date <= start_date:
            raise serializers.ValidationError({'end_date': 'End date must be after start date'})
        return attrs


class ProjectDetailSerializer(ProjectSerializer):
    """Project with its milestones, allocations, expenses and invoices"""
    milestones = serializers.SerializerMethodField()
    allocations = serializers.SerializerMethodField()
    expenses = serializers.SerializerMethodField()
    invoices = serializers.SerializerMethodField()

    class Meta(ProjectSerializer.Meta):
        fields = ProjectSerializer.Meta.fields + ['milestones', 'allocations', 'expenses', 'invoices']

    def get_milestones(self, obj):
        from tracker.milestones.serializers import MilestoneSerializer
        return MilestoneSerializer(obj.milestones.order_by('scheduled_date', 'id'), many=True).data

    def get_allocations(self, obj):
        from tracker.resources.serializers import ResourceAllocationSerializer
        queryset = obj.allocations.select_related('resource', 'project').order_by('-start_date')
        return ResourceAllocationSerializer(queryset, many=True).data

    def get_expenses(self, obj):
        from tracker.financial.serializers import ExpenseSerializer
        return ExpenseSerializer(obj.expenses.order_by('-date', '-created_at'), many=True).data

    def get_invoices(self, obj):
        from tracker.financial.serializers import InvoiceSerializer
        queryset = obj.invoices.select_related('project', 'milestone').order_by('-issue_date', '-created_at')
        return InvoiceSerializer(queryset, many=True).data


class ProjectStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Project.STATUS_CHOICES)

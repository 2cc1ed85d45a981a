from rest_framework import serializers
from tracker.projects.models import Project
from .models import Expense, Invoice


class ExpenseSerializer(serializers.ModelSerializer):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())
    project_name = serializers.CharField(source='project.name', read_only=True)
    project_code = serializers.CharField(source='project.project_code', read_only=True)

    class Meta:
        model = Expense
        fields = [
            'id', 'project', 'project_name', 'project_code', 'description', 'amount',
            'category', 'date', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero')
        return value


class InvoiceSerializer(serializers.ModelSerializer):
    project_name = serializers.CharField(source='project.name', read_only=True)
    project_code = serializers.CharField(source='project.project_code', read_only=True)
    milestone_name = serializers.CharField(source='milestone.name', read_only=True, default=None)

    class Meta:
        model = Invoice
        fields = [
            'id', 'invoice_number', 'project', 'project_name', 'project_code', 'milestone',
            'milestone_name', 'amount', 'issue_date', 'due_date', 'status', 'paid_date',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class InvoiceCreateSerializer(serializers.Serializer):
    """Input for raising an invoice; project and milestone are resolved by the view"""
    project = serializers.IntegerField()
    milestone = serializers.IntegerField(required=False, allow_null=True)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    issue_date = serializers.DateField()
    due_date = serializers.DateField(required=False, allow_null=True)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError('Amount must be greater than zero')
        return value

    def validate(self, attrs):
        due_date = attrs.get('due_date')
        if due_date and due_date < attrs['issue_date']:
            raise serializers.ValidationError({'due_date': 'Due date must not be before issue date'})
        return attrs


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Invoice.STATUS_CHOICES)
    paid_date = serializers.DateField(required=False, allow_null=True)

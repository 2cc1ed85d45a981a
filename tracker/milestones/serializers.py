from rest_framework import serializers
from tracker.projects.models import Project
from .models import Milestone


class MilestoneInvoiceSummarySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    invoice_number = serializers.CharField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    status = serializers.CharField()


class MilestoneSerializer(serializers.ModelSerializer):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())
    project_name = serializers.CharField(source='project.name', read_only=True)
    project_code = serializers.CharField(source='project.project_code', read_only=True)
    invoices = MilestoneInvoiceSummarySerializer(many=True, read_only=True)

    class Meta:
        model = Milestone
        fields = [
            'id', 'project', 'project_name', 'project_code', 'name', 'description',
            'scheduled_date', 'actual_date', 'is_billing_milestone', 'billing_amount',
            'billing_percentage', 'status', 'invoices', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_billing_percentage(self, value):
        if value is not None and (value < 0 or value > 100):
            raise serializers.ValidationError('Billing percentage must be between 0 and 100')
        return value

    def validate(self, attrs):
        project = attrs.get('project')
        if self.instance and project and project != self.instance.project and self.instance.invoices.exists():
            raise serializers.ValidationError({'project': 'Cannot move a milestone that has invoices'})
        is_billing = attrs.get('is_billing_milestone', getattr(self.instance, 'is_billing_milestone', False))
        billing_amount = attrs.get('billing_amount', getattr(self.instance, 'billing_amount', None))
        if is_billing and (billing_amount is None or billing_amount <= 0):
            raise serializers.ValidationError(
                {'billing_amount': 'Billing milestones require a positive billing amount'}
            )
        return attrs


class MilestoneStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Milestone.STATUS_CHOICES)
    actual_date = serializers.DateField(required=False, allow_null=True)
    generate_invoice = serializers.BooleanField(required=False, default=False)


class MilestoneTimelineSerializer(serializers.ModelSerializer):
    is_delayed = serializers.SerializerMethodField()

    class Meta:
        model = Milestone
        fields = [
            'id', 'name', 'scheduled_date', 'actual_date', 'status',
            'is_billing_milestone', 'billing_amount', 'is_delayed'
        ]

    def get_is_delayed(self, obj):
        return obj.is_delayed(self.context['as_of'])

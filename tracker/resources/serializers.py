from decimal import Decimal

from rest_framework import serializers
from tracker.projects.models import Project
from .models import Resource, ResourceAllocation, MAX_ALLOCATION


class ResourceAllocationSerializer(serializers.ModelSerializer):
    resource_name = serializers.CharField(source='resource.name', read_only=True)
    resource_code = serializers.CharField(source='resource.resource_code', read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)
    project_code = serializers.CharField(source='project.project_code', read_only=True)
    planned_hours = serializers.SerializerMethodField()
    cost = serializers.SerializerMethodField()

    class Meta:
        model = ResourceAllocation
        fields = [
            'id', 'resource', 'resource_name', 'resource_code', 'project', 'project_name', 'project_code',
            'start_date', 'end_date', 'allocation', 'hourly_rate', 'is_active',
            'planned_hours', 'cost', 'created_at', 'updated_at'
        ]
        read_only_fields = ['resource', 'created_at', 'updated_at']

    def get_planned_hours(self, obj):
        return float(obj.get_planned_hours())

    def get_cost(self, obj):
        return float(obj.get_cost())


class AllocationRequestSerializer(serializers.Serializer):
    """Input for booking a resource on a project"""
    project = serializers.IntegerField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    allocation = serializers.DecimalField(max_digits=5, decimal_places=2)
    hourly_rate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True)

    def validate_allocation(self, value):
        if value <= 0 or value > MAX_ALLOCATION:
            raise serializers.ValidationError('Allocation must be between 0 and 100')
        return value

    def validate_hourly_rate(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Hourly rate cannot be negative')
        return value

    def validate(self, attrs):
        if attrs['end_date'] < attrs['start_date']:
            raise serializers.ValidationError({'end_date': 'End date must not be before start date'})
        return attrs


class AllocationUpdateSerializer(serializers.Serializer):
    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all(), required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    allocation = serializers.DecimalField(max_digits=5, decimal_places=2, required=False)
    hourly_rate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False)
    is_active = serializers.BooleanField(required=False)

    def validate_allocation(self, value):
        if value <= 0 or value > MAX_ALLOCATION:
            raise serializers.ValidationError('Allocation must be between 0 and 100')
        return value

    def validate_hourly_rate(self, value):
        if value < 0:
            raise serializers.ValidationError('Hourly rate cannot be negative')
        return value

    def validate(self, attrs):
        start_date = attrs.get('start_date', self.instance.start_date)
        end_date = attrs.get('end_date', self.instance.end_date)
        if end_date < start_date:
            raise serializers.ValidationError({'end_date': 'End date must not be before start date'})
        return attrs


class ResourceSerializer(serializers.ModelSerializer):
    skills = serializers.ListField(child=serializers.CharField(max_length=100), required=False)
    certifications = serializers.ListField(child=serializers.CharField(max_length=200), required=False)
    allocations = serializers.SerializerMethodField()
    current_utilization = serializers.SerializerMethodField()

    class Meta:
        model = Resource
        fields = [
            'id', 'resource_code', 'name', 'email', 'phone', 'salary', 'hourly_rate', 'years_of_exp',
            'skills', 'certifications', 'is_active', 'allocations', 'current_utilization',
            'created_at', 'updated_at'
        ]
        read_only_fields = ['is_active', 'created_at', 'updated_at']

    def _active_allocations(self, obj):
        # Uses the prefetched list when the view provided one
        if hasattr(obj, 'active_allocations'):
            return obj.active_allocations
        return list(obj.allocations.filter(is_active=True).select_related('project', 'resource'))

    def get_allocations(self, obj):
        return ResourceAllocationSerializer(self._active_allocations(obj), many=True).data

    def get_current_utilization(self, obj):
        total = sum((a.allocation for a in self._active_allocations(obj)), Decimal('0'))
        return float(total)

    def validate_resource_code(self, value):
        value = value.strip()
        queryset = Resource.objects.filter(resource_code__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('Resource code already exists')
        return value

    def validate_email(self, value):
        queryset = Resource.objects.filter(email__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A resource with this email already exists')
        return value

    def validate_hourly_rate(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Hourly rate cannot be negative')
        return value

    def validate_salary(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError('Salary cannot be negative')
        return value

from rest_framework import serializers

REPORT_PROJECT_PERFORMANCE = 'PROJECT_PERFORMANCE'
REPORT_RESOURCE_ALLOCATION = 'RESOURCE_ALLOCATION'
REPORT_FINANCIAL_ANALYSIS = 'FINANCIAL_ANALYSIS'

REPORT_TYPES = [REPORT_PROJECT_PERFORMANCE, REPORT_RESOURCE_ALLOCATION, REPORT_FINANCIAL_ANALYSIS]

# Allowed group_by keys per report type
GROUP_BY_OPTIONS = {
    REPORT_PROJECT_PERFORMANCE: ['status', 'client'],
    REPORT_RESOURCE_ALLOCATION: ['resource', 'project'],
    REPORT_FINANCIAL_ANALYSIS: ['category', 'project', 'month'],
}


class CustomReportSerializer(serializers.Serializer):
    report_type = serializers.CharField()
    project_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)
    resource_ids = serializers.ListField(child=serializers.IntegerField(), required=False, allow_empty=True)
    date_from = serializers.DateField(required=False, allow_null=True)
    date_to = serializers.DateField(required=False, allow_null=True)
    group_by = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate(self, attrs):
        report_type = attrs['report_type']
        group_by = attrs.get('group_by')
        if report_type in GROUP_BY_OPTIONS and group_by and group_by not in GROUP_BY_OPTIONS[report_type]:
            raise serializers.ValidationError({
                'group_by': f"Must be one of: {', '.join(GROUP_BY_OPTIONS[report_type])}"
            })
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')
        if date_from and date_to and date_to < date_from:
            raise serializers.ValidationError({'date_to': 'date_to must not be before date_from'})
        return attrs

from rest_framework import serializers


class DailyStatsQuerySerializer(serializers.Serializer):
    startDate = serializers.CharField(max_length=10, required=False)
    endDate = serializers.CharField(max_length=10, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=366, required=False)


class TargetDateSerializer(serializers.Serializer):
    date = serializers.CharField(max_length=10, error_messages={'required': 'Date is required'})

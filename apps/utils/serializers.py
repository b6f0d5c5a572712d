# apps/utils/serializers.py
from rest_framework import serializers


class ServerInfoSerializer(serializers.Serializer):
    """
    Used by ServerInfoView.
    """
    app_name = serializers.CharField()
    version = serializers.CharField()
    debug = serializers.BooleanField()


class DateRangeSerializer(serializers.Serializer):
    """
    Query-string validation for reporting endpoints.
    """
    start_date = serializers.DateField()
    end_date = serializers.DateField()

    def validate(self, attrs):
        if attrs["start_date"] > attrs["end_date"]:
            raise serializers.ValidationError("start_date must not be after end_date.")
        return attrs

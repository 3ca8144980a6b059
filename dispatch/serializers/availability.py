from rest_framework import serializers

from dispatch.models import CREW_ROLES

from .text import clean_text


class AvailabilitySerializer(serializers.Serializer):
    date = serializers.DateField()
    unavailable = serializers.BooleanField(default=True)
    notes = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_notes(self, v):
        return clean_text(v)


class AvailableProfessionalsQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    role = serializers.ChoiceField(choices=[str(r) for r in CREW_ROLES], required=False)

from rest_framework import serializers

from dispatch.models import AmbulanceClass, CREW_ROLES, Occurrence, OccurrenceSlot, OccurrenceStatus, WorkKind

from .text import clean_text


class CrewMemberSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[str(r) for r in CREW_ROLES])
    professionalId = serializers.IntegerField(required=False, allow_null=True, min_value=1)


class OccurrenceCreateSerializer(serializers.Serializer):
    workKind = serializers.ChoiceField(choices=WorkKind.choices)
    ambulanceClass = serializers.ChoiceField(choices=AmbulanceClass.choices, required=False, allow_null=True)
    scheduledDate = serializers.DateField()
    departureTime = serializers.TimeField()
    arrivalTime = serializers.TimeField()
    endTime = serializers.TimeField(required=False, allow_null=True)
    location = serializers.CharField(max_length=255)
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)
    origin = serializers.CharField(required=False, allow_blank=True, max_length=255)
    destination = serializers.CharField(required=False, allow_blank=True, max_length=255)
    description = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    crew = CrewMemberSerializer(many=True, allow_empty=False)
    extraNurses = serializers.IntegerField(required=False, min_value=0, default=0)
    physicianRate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    nurseRate = serializers.DecimalField(max_digits=10, decimal_places=2, required=False, allow_null=True, min_value=0)
    paymentDate = serializers.DateField(required=False, allow_null=True)

    def validate_location(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('location is required')
        return v

    def validate_address(self, v):
        return clean_text(v)

    def validate_origin(self, v):
        return clean_text(v)

    def validate_destination(self, v):
        return clean_text(v)

    def validate_description(self, v):
        return clean_text(v)

    def occurrence_fields(self) -> dict:
        d = self.validated_data
        fields = {
            'work_kind': d['workKind'],
            'scheduled_date': d['scheduledDate'],
            'departure_time': d['departureTime'],
            'arrival_time': d['arrivalTime'],
            'location': d['location'],
        }
        if d.get('ambulanceClass'):
            fields['ambulance_class'] = d['ambulanceClass']
        if d.get('endTime'):
            fields['end_time'] = d['endTime']
        for name in ('address', 'origin', 'destination', 'description'):
            if d.get(name):
                fields[name] = d[name]
        return fields


class ConfirmSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[str(r) for r in CREW_ROLES], required=False)


class TransitionSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=OccurrenceStatus.choices)
    ambulanceId = serializers.IntegerField(required=False, min_value=1)
    driverId = serializers.IntegerField(required=False, min_value=1)
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255)

    def validate_reason(self, v):
        return clean_text(v)

    def payload(self) -> dict:
        d = self.validated_data
        return {
            'ambulance_id': d.get('ambulanceId'),
            'driver_id': d.get('driverId'),
            'reason': d.get('reason', ''),
        }


class MineQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=[str(r) for r in CREW_ROLES], required=False)
    date = serializers.DateField(required=False)


class SlotSerializer(serializers.ModelSerializer):
    holderId = serializers.IntegerField(source='holder_id', read_only=True)
    holderName = serializers.SerializerMethodField()
    confirmedAt = serializers.DateTimeField(source='confirmed_at', read_only=True)
    paymentAmount = serializers.DecimalField(source='payment_amount', max_digits=10, decimal_places=2, read_only=True)
    paymentDate = serializers.DateField(source='payment_date', read_only=True)

    class Meta:
        model = OccurrenceSlot
        fields = ['id', 'role', 'holderId', 'holderName', 'confirmed', 'confirmedAt', 'paymentAmount', 'paymentDate', 'paid']

    def get_holderName(self, obj):
        return obj.holder.display_name if obj.holder_id else None


class OccurrenceSerializer(serializers.ModelSerializer):
    workKind = serializers.CharField(source='work_kind', read_only=True)
    ambulanceClass = serializers.CharField(source='ambulance_class', read_only=True)
    scheduledDate = serializers.DateField(source='scheduled_date', read_only=True)
    departureTime = serializers.TimeField(source='departure_time', read_only=True)
    arrivalTime = serializers.TimeField(source='arrival_time', read_only=True)
    endTime = serializers.TimeField(source='end_time', read_only=True)
    ambulanceId = serializers.IntegerField(source='ambulance_id', read_only=True)
    driverId = serializers.IntegerField(source='driver_id', read_only=True)
    startedAt = serializers.DateTimeField(source='started_at', read_only=True)
    completedAt = serializers.DateTimeField(source='completed_at', read_only=True)
    durationMinutes = serializers.IntegerField(source='duration_minutes', read_only=True)
    slots = SlotSerializer(many=True, read_only=True)

    class Meta:
        model = Occurrence
        fields = [
            'id', 'number', 'status', 'workKind', 'ambulanceClass', 'scheduledDate', 'departureTime',
            'arrivalTime', 'endTime', 'location', 'address', 'origin', 'destination', 'description',
            'ambulanceId', 'driverId', 'startedAt', 'completedAt', 'durationMinutes', 'slots',
        ]


class OccurrenceListItemSerializer(OccurrenceSerializer):
    openCount = serializers.SerializerMethodField()
    totalCount = serializers.SerializerMethodField()

    class Meta(OccurrenceSerializer.Meta):
        fields = OccurrenceSerializer.Meta.fields + ['openCount', 'totalCount']

    def get_openCount(self, obj):
        return getattr(obj, 'open_count', None)

    def get_totalCount(self, obj):
        return getattr(obj, 'total_count', None)

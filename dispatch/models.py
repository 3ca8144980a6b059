"""
Database models for the ambulance dispatch backend.

These models capture the dispatch core: professionals (the auth user),
ambulances, occurrences with their crew slots, per-day availability
entries, and the bookkeeping rows used to issue occurrence numbers and
to audit status changes.  Table names follow the relational layout the
surrounding dashboards read directly.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q


class Role(models.TextChoices):
    PHYSICIAN = 'physician', 'Physician'
    NURSE = 'nurse', 'Nurse'
    DRIVER = 'driver', 'Driver'
    DISPATCHER = 'dispatcher', 'Dispatcher'


# Roles that can hold a crew slot on an occurrence.
CREW_ROLES = (Role.PHYSICIAN, Role.NURSE)


class WorkKind(models.TextChoices):
    EVENT = 'event', 'Event'
    DOMICILIARY = 'domiciliary', 'Domiciliary'
    EMERGENCY = 'emergency', 'Emergency'
    TRANSFER = 'transfer', 'Transfer'


class AmbulanceClass(models.TextChoices):
    BASIC = 'basic', 'Basic support'
    EMERGENCY = 'emergency', 'Emergency (physician on board)'


class OccurrenceStatus(models.TextChoices):
    OPEN = 'open', 'Open'
    CONFIRMED = 'confirmed', 'Confirmed'
    IN_PROGRESS = 'in_progress', 'In progress'
    COMPLETED = 'completed', 'Completed'


class User(AbstractUser):
    """A professional that can log in and be placed on a crew.

    The role decides which slots the professional may claim; drivers are
    assigned when an occurrence is dispatched and dispatchers create
    occurrences.
    """
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.NURSE, db_index=True)

    class Meta:
        db_table = 'professionals'

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Ambulance(models.Model):
    plate = models.CharField(max_length=16, unique=True)
    model_name = models.CharField(max_length=64, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'ambulances'

    def __str__(self) -> str:
        return self.plate


class Occurrence(models.Model):
    """One unit of dispatched transport/medical work.

    The ambulance class is derived from the crew composition when the
    occurrence is created and is not edited afterwards.  ``status`` only
    moves forward; see :mod:`dispatch.services.status`.
    """
    number = models.CharField(max_length=12, unique=True)
    work_kind = models.CharField(max_length=16, choices=WorkKind.choices)
    ambulance_class = models.CharField(max_length=16, choices=AmbulanceClass.choices)
    status = models.CharField(
        max_length=16, choices=OccurrenceStatus.choices, default=OccurrenceStatus.OPEN, db_index=True
    )

    scheduled_date = models.DateField()
    departure_time = models.TimeField()
    arrival_time = models.TimeField()
    end_time = models.TimeField(null=True, blank=True)

    location = models.CharField(max_length=255)
    address = models.CharField(max_length=500, blank=True)
    origin = models.CharField(max_length=255, blank=True)
    destination = models.CharField(max_length=255, blank=True)
    description = models.TextField(blank=True)

    ambulance = models.ForeignKey(
        Ambulance, null=True, blank=True, on_delete=models.SET_NULL, related_name='occurrences'
    )
    driver = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='driven_occurrences'
    )
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='created_occurrences'
    )

    assigned_at = models.DateTimeField(null=True, blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    duration_minutes = models.PositiveIntegerField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'occurrences'
        indexes = [
            models.Index(fields=['status', 'scheduled_date'], name='occurrences_status_8f2c1a_idx'),
            models.Index(fields=['scheduled_date', 'departure_time'], name='occurrences_schedul_4b7d90_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.number} ({self.status})"


class OccurrenceSlot(models.Model):
    """A crew vacancy on an occurrence.

    ``holder`` and ``confirmed`` are always written together; a slot
    never carries ``confirmed`` without a holder.
    """
    occurrence = models.ForeignKey(Occurrence, on_delete=models.CASCADE, related_name='slots')
    role = models.CharField(max_length=16, choices=Role.choices)
    holder = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.PROTECT, related_name='slots'
    )
    confirmed = models.BooleanField(default=False)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    payment_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    payment_date = models.DateField(null=True, blank=True)
    paid = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'occurrence_slots'
        constraints = [
            models.CheckConstraint(
                condition=Q(confirmed=False) | Q(holder__isnull=False),
                name='slot_confirmed_requires_holder',
            ),
            # NULL holders never collide, so open slots are unaffected
            models.UniqueConstraint(fields=['occurrence', 'holder'], name='slot_one_per_professional'),
        ]
        indexes = [
            models.Index(fields=['occurrence', 'role', 'confirmed'], name='occurrence__occurre_5e1f3b_idx'),
        ]

    def __str__(self) -> str:
        return f"Slot {self.role} on {self.occurrence_id} held by {self.holder_id}"


class AvailabilityEntry(models.Model):
    """Marks a professional as unavailable (day off) on a given date."""
    professional = models.ForeignKey(User, on_delete=models.CASCADE, related_name='availability_entries')
    date = models.DateField()
    unavailable = models.BooleanField(default=True)
    notes = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'availability_entries'
        constraints = [
            models.UniqueConstraint(fields=['professional', 'date'], name='availability_one_per_day'),
        ]

    def __str__(self) -> str:
        state = 'off' if self.unavailable else 'on'
        return f"{self.professional_id} {self.date:%F} {state}"


class OccurrenceSequence(models.Model):
    """Last issued occurrence sequence per month prefix (e.g. ``OC202503``)."""
    prefix = models.CharField(max_length=8, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'occurrence_sequences'

    def __str__(self) -> str:
        return f"{self.prefix}:{self.last_value:04d}"


class OccurrenceTransition(models.Model):
    """Records a status transition for an occurrence."""
    occurrence = models.ForeignKey(Occurrence, related_name='transitions', on_delete=models.CASCADE)
    from_status = models.CharField(max_length=16)
    to_status = models.CharField(max_length=16)
    operator = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='occurrence_transitions'
    )
    timestamp = models.DateTimeField(auto_now_add=True)
    reason = models.CharField(max_length=255, blank=True)

    class Meta:
        db_table = 'occurrence_transitions'

    def __str__(self) -> str:
        return f"{self.occurrence_id}: {self.from_status} → {self.to_status}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.BigIntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_events'
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_event_action_0a9c62_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_event_object__7d3e15_idx'),
        ]

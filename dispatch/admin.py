"""
Django admin registrations for the dispatch models.

Deleting occurrences and editing reference data are admin-only actions;
the API never deletes rows.
"""
from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import (
    Ambulance,
    AuditEvent,
    AvailabilityEntry,
    Occurrence,
    OccurrenceSequence,
    OccurrenceSlot,
    OccurrenceTransition,
    User,
)


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('username', 'first_name', 'last_name', 'role', 'is_active', 'is_staff')
    list_filter = ('role', 'is_active', 'is_staff')
    search_fields = ('username', 'first_name', 'last_name', 'email')
    fieldsets = BaseUserAdmin.fieldsets + (('Dispatch', {'fields': ('role',)}),)
    add_fieldsets = BaseUserAdmin.add_fieldsets + (('Dispatch', {'fields': ('role',)}),)


@admin.register(Ambulance)
class AmbulanceAdmin(admin.ModelAdmin):
    list_display = ('plate', 'model_name', 'active', 'created_at')
    list_filter = ('active',)
    search_fields = ('plate', 'model_name')


class OccurrenceSlotInline(admin.TabularInline):
    model = OccurrenceSlot
    extra = 0
    fields = ('role', 'holder', 'confirmed', 'confirmed_at', 'payment_amount', 'payment_date', 'paid')
    readonly_fields = ('confirmed_at',)
    raw_id_fields = ('holder',)


@admin.register(Occurrence)
class OccurrenceAdmin(admin.ModelAdmin):
    list_display = ('number', 'work_kind', 'ambulance_class', 'status', 'scheduled_date', 'departure_time', 'location')
    list_filter = ('status', 'work_kind', 'ambulance_class')
    search_fields = ('number', 'location', 'address')
    date_hierarchy = 'scheduled_date'
    readonly_fields = ('number', 'ambulance_class', 'created_at', 'updated_at')
    inlines = [OccurrenceSlotInline]


@admin.register(AvailabilityEntry)
class AvailabilityEntryAdmin(admin.ModelAdmin):
    list_display = ('professional', 'date', 'unavailable', 'notes')
    list_filter = ('unavailable',)
    search_fields = ('professional__username',)


@admin.register(OccurrenceSequence)
class OccurrenceSequenceAdmin(admin.ModelAdmin):
    list_display = ('prefix', 'last_value', 'updated_at')


@admin.register(OccurrenceTransition)
class OccurrenceTransitionAdmin(admin.ModelAdmin):
    list_display = ('occurrence', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('action', 'user', 'object_type', 'object_id', 'created_at')
    list_filter = ('action',)
    search_fields = ('object_type',)

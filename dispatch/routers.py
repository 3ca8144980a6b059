"""
URL mappings for the dispatch API.

Trailing slashes are omitted on API paths.
"""
from django.urls import include, path

from .views.availability import free_professionals, set_availability
from .views.health import healthz
from .views.occurrences import (
    my_occurrences,
    occurrence_confirm,
    occurrence_create,
    occurrence_detail,
    occurrence_transition,
)

urlpatterns = [
    path('healthz', healthz),
    path('', include('django_prometheus.urls')),

    path('api/occurrences', occurrence_create),
    path('api/occurrences/mine', my_occurrences),
    path('api/occurrences/<int:occurrence_id>', occurrence_detail),
    path('api/occurrences/<int:occurrence_id>/confirm', occurrence_confirm),
    path('api/occurrences/<int:occurrence_id>/transition', occurrence_transition),

    path('api/availability', set_availability),
    path('api/professionals/available', free_professionals),
]

"""
Management command to seed a development database with dispatch data.
"""
from datetime import time, timedelta
from decimal import Decimal

from django.contrib.auth.hashers import make_password
from django.core.management.base import BaseCommand
from django.utils import timezone

from dispatch.models import Ambulance, Occurrence, Role, User, WorkKind
from dispatch.services.availability import mark_unavailable
from dispatch.services.crew import RoleRequest
from dispatch.services.provisioning import dispatch_occurrence

PROFESSIONALS = [
    ("dispatcher1", "Dana", "Reis", Role.DISPATCHER),
    ("physician1", "Paulo", "Matos", Role.PHYSICIAN),
    ("physician2", "Ines", "Lobo", Role.PHYSICIAN),
    ("nurse1", "Nuno", "Sousa", Role.NURSE),
    ("nurse2", "Rita", "Cruz", Role.NURSE),
    ("nurse3", "Joana", "Alves", Role.NURSE),
    ("driver1", "Dario", "Costa", Role.DRIVER),
]


class Command(BaseCommand):
    help = "Seed professionals, an ambulance and a few occurrences (idempotent for users)."

    def add_arguments(self, parser):
        parser.add_argument('--password', default='123456')
        parser.add_argument('--occurrences', type=int, default=3)

    def handle(self, *args, **opts):
        users = {}
        for username, first, last, role in PROFESSIONALS:
            u, created = User.objects.get_or_create(
                username=username,
                defaults={
                    'first_name': first, 'last_name': last, 'role': role,
                    'password': make_password(opts['password']), 'is_active': True,
                },
            )
            if not created and u.role != role:
                u.role = role
                u.save(update_fields=['role'])
            users[username] = u
            self.stdout.write(f"professional: {username} ({role})")

        ambulance, _ = Ambulance.objects.get_or_create(plate='AA-00-01', defaults={'model_name': 'Mercedes Sprinter'})
        self.stdout.write(f"ambulance: {ambulance.plate}")

        if Occurrence.objects.exists():
            self.stdout.write(self.style.WARNING("Occurrences already present, skipping."))
            return

        today = timezone.localdate()
        dispatcher = users['dispatcher1']
        for i in range(opts['occurrences']):
            day = today + timedelta(days=i + 1)
            occurrence = dispatch_occurrence(
                {
                    'work_kind': WorkKind.EVENT,
                    'scheduled_date': day,
                    'departure_time': time(8, 0),
                    'arrival_time': time(9, 0),
                    'end_time': time(18, 0),
                    'location': f'Event venue {i + 1}',
                },
                [RoleRequest(Role.PHYSICIAN), RoleRequest(Role.NURSE)],
                extra_nurse_count=i % 2,
                physician_rate=Decimal('150.00'),
                nurse_rate=Decimal('90.00'),
                payment_date=day + timedelta(days=30),
                created_by=dispatcher,
            )
            self.stdout.write(f"occurrence: {occurrence.number} on {day}")

        mark_unavailable(users['nurse3'].id, today + timedelta(days=1), 'seeded day off')
        self.stdout.write(self.style.SUCCESS("Dispatch seed data created."))

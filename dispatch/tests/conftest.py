from datetime import date, time
from decimal import Decimal

import pytest

from dispatch.models import Ambulance, Role, User, WorkKind
from dispatch.services.crew import RoleRequest
from dispatch.services.provisioning import dispatch_occurrence

TODAY = date(2025, 3, 1)
EVENT_DAY = date(2025, 3, 10)
PAYMENT = {'physician_rate': Decimal('150.00'), 'nurse_rate': Decimal('90.00'), 'payment_date': date(2025, 4, 10)}


def _user(username, role, **extra):
    return User.objects.create_user(username=username, password='P@ssw0rd1', role=role, **extra)


@pytest.fixture
def dispatcher(db):
    return _user('dispatcher1', Role.DISPATCHER)


@pytest.fixture
def physician(db):
    return _user('physician1', Role.PHYSICIAN, first_name='Paulo', last_name='Matos')


@pytest.fixture
def nurse(db):
    return _user('nurse1', Role.NURSE)


@pytest.fixture
def other_nurse(db):
    return _user('nurse2', Role.NURSE)


@pytest.fixture
def driver(db):
    return _user('driver1', Role.DRIVER)


@pytest.fixture
def ambulance(db):
    return Ambulance.objects.create(plate='AA-00-01', model_name='Sprinter')


def event_fields(day=EVENT_DAY, **overrides):
    fields = {
        'work_kind': WorkKind.EVENT,
        'scheduled_date': day,
        'departure_time': time(8, 0),
        'arrival_time': time(9, 0),
        'end_time': time(18, 0),
        'location': 'Stadium',
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def make_occurrence(dispatcher):
    """Provision an occurrence through the real service path."""
    def make(crew=(Role.PHYSICIAN, Role.NURSE), extra_nurses=0, today=TODAY, **field_overrides):
        requests = [c if isinstance(c, RoleRequest) else RoleRequest(c) for c in crew]
        return dispatch_occurrence(
            event_fields(**field_overrides),
            requests,
            extra_nurse_count=extra_nurses,
            created_by=dispatcher,
            today=today,
            **PAYMENT,
        )
    return make

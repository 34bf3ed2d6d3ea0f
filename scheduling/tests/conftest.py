import pytest
from django.core.cache import cache
from rest_framework.authtoken.models import Token
from rest_framework.test import APIClient

from scheduling.models import Department, Doctor, User
from scheduling.services import reference

SLOTS = [
    {"startTime": "09:00", "endTime": "09:30"},
    {"startTime": "09:30", "endTime": "10:00"},
]


@pytest.fixture(autouse=True)
def _clear_cache():
    # throttle counters live in the cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def department(db):
    return Department.objects.create(name='Cardiology', code='CARD')


@pytest.fixture
def other_department(db):
    return Department.objects.create(name='Neurology', code='NEUR')


@pytest.fixture
def doctor(department):
    return Doctor.objects.create(
        name='Dana Doe',
        email='dana.doe@hospital.test',
        specialization='Cardiologist',
        department=department,
        available_days=['Monday', 'Wednesday'],
        time_slots=[dict(s) for s in SLOTS],
    )


@pytest.fixture
def other_doctor(other_department):
    return Doctor.objects.create(
        name='Noor Lee',
        email='noor.lee@hospital.test',
        specialization='Neurologist',
        department=other_department,
        available_days=['Monday'],
        time_slots=[dict(s) for s in SLOTS],
    )


@pytest.fixture
def patient(db):
    return reference.create_patient({
        'name': 'Asha Rao',
        'email': 'asha.rao@example.com',
        'contact': '9000000001',
        'age': 41,
        'gender': 'Female',
    })


@pytest.fixture
def make_user(db):
    def _make(username, role, department=None):
        user = User.objects.create_user(username=username, password='P@ssw0rd1', role=role, department=department)
        Token.objects.create(user=user)
        return user
    return _make


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def client_for():
    def _client(user):
        client = APIClient()
        client.credentials(HTTP_AUTHORIZATION=f'Token {user.auth_token.key}')
        return client
    return _client

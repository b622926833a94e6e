import json
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient

from dispatch.models import Facility, ManagedClient, Trip, User


class FakeResponse:
    """Minimal stand-in for ``requests.Response``."""

    raw = None
    encoding = 'utf-8'

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._payload is None:
            raise ValueError('no json')
        return self._payload

    def iter_content(self, chunk_size=1):
        if self._payload is not None:
            yield json.dumps(self._payload).encode()

    def close(self):
        pass


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def dispatcher(db):
    return User.objects.create_user(username='dispatcher1', email='dispatch@example.com', password='P@ssw0rd-1',
                                    role=User.ROLE_DISPATCHER, first_name='Dana', last_name='Dispatch')


@pytest.fixture
def admin_user(db):
    return User.objects.create_user(username='admin1', email='admin@example.com', password='P@ssw0rd-1',
                                    role=User.ROLE_ADMIN)


@pytest.fixture
def driver(db):
    return User.objects.create_user(username='driver1', email='driver1@example.com', password='P@ssw0rd-1',
                                    role=User.ROLE_DRIVER, first_name='Sam', last_name='Driver')


@pytest.fixture
def client_user(db):
    return User.objects.create_user(username='client1', email='client1@example.com', password='P@ssw0rd-1',
                                    role=User.ROLE_CLIENT, first_name='Casey', last_name='Client')


@pytest.fixture
def facility(db):
    return Facility.objects.create(name='Riverside Care Home', contact_email='riverside@example.com')


@pytest.fixture
def managed_client(facility):
    return ManagedClient.objects.create(facility=facility, first_name='Ruth', last_name='Resident')


@pytest.fixture
def api(dispatcher):
    c = APIClient()
    c.force_authenticate(user=dispatcher)
    return c


@pytest.fixture
def make_trip(db):
    def _make(**kwargs):
        defaults = {
            'pickup_address': '100 Main St, Columbus, OH',
            'destination_address': '200 Oak Ave, Columbus, OH',
            'pickup_time': timezone.now() + timedelta(days=1),
            'price': Decimal('45.00'),
        }
        defaults.update(kwargs)
        return Trip.objects.create(**defaults)
    return _make

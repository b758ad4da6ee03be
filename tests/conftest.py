"""
Shared fixtures for the storefront test suite.
"""
import json

import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    """The Shiprocket token lives in the cache; start every test without one."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def user(db):
    from tests.factories import UserFactory
    return UserFactory()


@pytest.fixture
def staff_user(db):
    from tests.factories import StaffUserFactory
    return StaffUserFactory()


@pytest.fixture
def auth_client(client, user):
    client.force_login(user)
    return client


@pytest.fixture
def staff_client(client, staff_user):
    client.force_login(staff_user)
    return client


@pytest.fixture
def product(db):
    from tests.factories import ProductFactory
    return ProductFactory()


@pytest.fixture
def shipping_address():
    return {
        'first_name': 'Asha',
        'last_name': 'Rao',
        'address_line1': '12 MG Road',
        'city': 'Mumbai',
        'state': 'Maharashtra',
        'postal_code': '400001',
        'phone': '+91 98765 43210',
        'email': 'asha@example.com',
    }


@pytest.fixture
def delivered_order(user):
    """A paid order delivered ten days ago, with one line (size M, Black)."""
    from tests.factories import DeliveredOrderFactory, OrderItemFactory
    order = DeliveredOrderFactory(user=user)
    OrderItemFactory(order=order)
    return order


@pytest.fixture
def send_json():
    """Call the test client with a JSON body for any HTTP method."""
    def _send(client, method, url, payload=None, **extra):
        return getattr(client, method)(
            url, data=json.dumps(payload or {}), content_type='application/json', **extra
        )
    return _send

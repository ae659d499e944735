import pytest
from notifications.publishers import InMemoryPublisher, set_publisher


@pytest.fixture
def publisher():
    """Swap the process-wide publisher for one that records pushes."""
    recorder = InMemoryPublisher()
    set_publisher(recorder)
    yield recorder
    set_publisher(None)


@pytest.fixture
def admin_user(db):
    from users.tests.factories import UserFactory

    return UserFactory(role="admin")


@pytest.fixture
def customer(db):
    from users.tests.factories import UserFactory

    return UserFactory()


@pytest.fixture
def api_client():
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def admin_client(admin_user):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=admin_user)
    return client


@pytest.fixture
def customer_client(customer):
    from rest_framework.test import APIClient

    client = APIClient()
    client.force_authenticate(user=customer)
    return client

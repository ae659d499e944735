import pytest
from common.choices import NotificationType
from notifications.models import Notification
from rest_framework.test import APIClient
from users.models import User
from users.tests.factories import UserFactory


@pytest.mark.django_db
def test_signin_with_email_then_profile():
    user = UserFactory(email="jdoe@example.com", password="StrongPass123!")
    client = APIClient()

    resp = client.post(
        "/api/v1/auth/signin/",
        {"identifier": "JDoe@Example.com", "password": "StrongPass123!"},
        format="json",
    )
    assert resp.status_code == 200
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {resp.data['access']}")

    profile = client.get("/api/v1/account/profile/")
    assert profile.status_code == 200
    assert profile.data["email"] == user.email
    assert profile.data["role"] == "customer"


@pytest.mark.django_db
def test_signin_with_phone_and_bad_password():
    UserFactory(phone="+14155552671", password="StrongPass123!")
    client = APIClient()

    ok = client.post("/api/v1/auth/signin/", {"identifier": "+14155552671", "password": "StrongPass123!"}, format="json")
    bad = client.post("/api/v1/auth/signin/", {"identifier": "+14155552671", "password": "wrong"}, format="json")

    assert ok.status_code == 200
    assert bad.status_code == 400


@pytest.mark.django_db
def test_signout_blacklists_refresh_token():
    UserFactory(email="out@example.com", password="StrongPass123!")
    client = APIClient()
    tokens = client.post(
        "/api/v1/auth/signin/", {"identifier": "out@example.com", "password": "StrongPass123!"}, format="json"
    ).data

    assert client.post("/api/v1/auth/signout/", {"refresh": tokens["refresh"]}, format="json").status_code == 205
    assert client.post("/api/v1/auth/refresh/", {"refresh": tokens["refresh"]}, format="json").status_code == 401


@pytest.mark.django_db
def test_register_creates_customer_and_notifies_admins(admin_user, api_client, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        resp = api_client.post(
            "/api/v1/auth/register/",
            {"username": "newbie", "email": "Newbie@Example.com", "password": "Sup3r-Secret-Pw"},
            format="json",
        )

    assert resp.status_code == 201
    user = User.objects.get(username="newbie")
    assert user.email == "newbie@example.com"
    assert user.role == User.ROLE_CUSTOMER
    alert = Notification.objects.get(user=admin_user, type=NotificationType.NEW_USER)
    assert "newbie" in alert.message
    assert not Notification.objects.filter(user=user).exists()


@pytest.mark.django_db
def test_register_rejects_duplicate_email(api_client):
    UserFactory(email="taken@example.com")
    resp = api_client.post(
        "/api/v1/auth/register/",
        {"username": "other", "email": "taken@example.com", "password": "Sup3r-Secret-Pw"},
        format="json",
    )
    assert resp.status_code == 400
    assert "email" in resp.json()


@pytest.mark.django_db
def test_password_change_notifies_user(customer, customer_client, django_capture_on_commit_callbacks):
    with django_capture_on_commit_callbacks(execute=True):
        resp = customer_client.post(
            "/api/v1/account/password/",
            {"current_password": "pass", "new_password": "An0ther-Strong-Pw"},
            format="json",
        )

    assert resp.status_code == 200
    customer.refresh_from_db()
    assert customer.check_password("An0ther-Strong-Pw")
    assert Notification.objects.filter(user=customer, type=NotificationType.PASSWORD_CHANGED).count() == 1


@pytest.mark.django_db
def test_password_change_requires_current_password(customer_client):
    resp = customer_client.post(
        "/api/v1/account/password/",
        {"current_password": "wrong", "new_password": "An0ther-Strong-Pw"},
        format="json",
    )
    assert resp.status_code == 400

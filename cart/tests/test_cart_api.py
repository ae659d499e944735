from decimal import Decimal

import pytest
from cart.models import Cart, CartItem
from cart.tests.factories import CartFactory, CartItemFactory, GuestCartFactory
from inventory.tests.factories import stocked_variant
from orders.models import IdempotencyKey, Order


@pytest.mark.django_db
def test_cart_requires_authentication(api_client):
    assert api_client.get("/api/v1/cart/").status_code == 401


@pytest.mark.django_db
def test_get_cart_creates_empty_cart(customer_client, customer):
    resp = customer_client.get("/api/v1/cart/")
    assert resp.status_code == 200
    assert resp.json()["items"] == []
    assert resp.json()["subtotal"] == "0.00"
    assert Cart.objects.filter(user=customer).count() == 1


@pytest.mark.django_db
def test_add_item_and_repeat_add_increments(customer_client):
    variant = stocked_variant(stock=10, price=Decimal("5.00"))
    payload = {"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2}

    assert customer_client.post("/api/v1/cart/items/", payload, format="json").status_code == 201
    resp = customer_client.post("/api/v1/cart/items/", payload, format="json")

    assert resp.status_code == 201
    body = resp.json()
    assert len(body["items"]) == 1
    assert body["items"][0]["quantity"] == 4
    assert body["items"][0]["available"] == 10
    assert body["subtotal"] == "20.00"


@pytest.mark.django_db
def test_add_item_errors_carry_codes(customer_client):
    variant = stocked_variant(stock=1)

    resp = customer_client.post(
        "/api/v1/cart/items/", {"product_id": variant.product_id, "variant_id": variant.id, "quantity": 2}, format="json"
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "insufficient_stock"
    assert resp.json()["available"] == 1

    resp = customer_client.post("/api/v1/cart/items/", {"product_id": variant.product_id}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "variant_required"

    resp = customer_client.post("/api/v1/cart/items/", {"product_id": 999999, "variant_id": 1}, format="json")
    assert resp.status_code == 404


@pytest.mark.django_db
def test_patch_and_delete_items(customer_client, customer):
    cart = CartFactory(user=customer)
    item = CartItemFactory(cart=cart, variant=stocked_variant(stock=10), quantity=1)

    resp = customer_client.patch(f"/api/v1/cart/items/{item.id}/", {"quantity": 3}, format="json")
    assert resp.status_code == 200
    assert resp.json()["items"][0]["quantity"] == 3

    resp = customer_client.patch(f"/api/v1/cart/items/{item.id}/", {"quantity": 0}, format="json")
    assert resp.status_code == 200
    assert resp.json()["items"] == []

    other = CartItemFactory(cart=cart, variant=stocked_variant(stock=10))
    assert customer_client.delete(f"/api/v1/cart/items/{other.id}/").status_code == 204
    assert customer_client.delete(f"/api/v1/cart/items/{other.id}/").status_code == 404


@pytest.mark.django_db
def test_clear_cart_endpoint(customer_client, customer):
    cart = CartFactory(user=customer)
    CartItemFactory(cart=cart, variant=stocked_variant(stock=10))

    resp = customer_client.post("/api/v1/cart/clear/")

    assert resp.status_code == 200
    assert resp.json()["items"] == []
    assert Cart.objects.filter(id=cart.id).exists()


@pytest.mark.django_db
def test_guest_cart_requires_session_header(api_client):
    resp = api_client.get("/api/v1/cart/guest/")
    assert resp.status_code == 400


@pytest.mark.django_db
def test_guest_carts_are_isolated_by_session(api_client):
    variant = stocked_variant(stock=10)
    payload = {"product_id": variant.product_id, "variant_id": variant.id, "quantity": 1}

    resp = api_client.post("/api/v1/cart/guest/items/", payload, format="json", HTTP_X_SESSION_ID="sess-a")
    assert resp.status_code == 201

    mine = api_client.get("/api/v1/cart/guest/", HTTP_X_SESSION_ID="sess-a").json()
    theirs = api_client.get("/api/v1/cart/guest/", HTTP_X_SESSION_ID="sess-b").json()
    assert len(mine["items"]) == 1
    assert theirs["items"] == []

    item_id = mine["items"][0]["id"]
    assert api_client.delete(f"/api/v1/cart/guest/items/{item_id}/", HTTP_X_SESSION_ID="sess-b").status_code == 404


@pytest.mark.django_db
def test_merge_guest_cart_endpoint(customer_client, customer):
    guest = GuestCartFactory(session_id="merge-me")
    variant = stocked_variant(stock=10)
    CartItemFactory(cart=guest, variant=variant, quantity=2)

    resp = customer_client.post("/api/v1/cart/merge-guest/", HTTP_X_SESSION_ID="merge-me")

    assert resp.status_code == 200
    assert resp.json()["items"][0]["variant_id"] == variant.id
    assert not Cart.objects.filter(id=guest.id).exists()


@pytest.mark.django_db
def test_guest_checkout_places_order_without_user(api_client, django_capture_on_commit_callbacks):
    variant = stocked_variant(stock=5, price=Decimal("9.99"))
    guest = GuestCartFactory(session_id="guest-checkout")
    CartItemFactory(cart=guest, variant=variant, quantity=2)

    with django_capture_on_commit_callbacks(execute=True):
        resp = api_client.post(
            "/api/v1/cart/guest/checkout/",
            {"payment_method": "cod", "customer": {"name": "Guest Buyer", "email": "guest@example.com"}},
            format="json",
            HTTP_X_SESSION_ID="guest-checkout",
        )

    assert resp.status_code == 201
    order = Order.objects.get(id=resp.json()["id"])
    assert order.user_id is None
    assert order.email == "guest@example.com"
    assert order.total == Decimal("19.98")
    assert not CartItem.objects.filter(cart=guest).exists()


@pytest.mark.django_db
def test_checkout_with_idempotency_key_replays_first_order(customer_client, customer, django_capture_on_commit_callbacks):
    cart = CartFactory(user=customer)
    CartItemFactory(cart=cart, variant=stocked_variant(stock=5), quantity=1)
    payload = {"payment_method": "card"}

    with django_capture_on_commit_callbacks(execute=True):
        first = customer_client.post("/api/v1/cart/checkout/", payload, format="json", HTTP_IDEMPOTENCY_KEY="k-1")
    second = customer_client.post("/api/v1/cart/checkout/", payload, format="json", HTTP_IDEMPOTENCY_KEY="k-1")

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]
    assert Order.objects.filter(user=customer).count() == 1


@pytest.mark.django_db
def test_checkout_empty_cart_returns_400(customer_client):
    resp = customer_client.post("/api/v1/cart/checkout/", {"payment_method": "cash"}, format="json")
    assert resp.status_code == 400
    assert resp.json()["code"] == "empty_cart"


@pytest.mark.django_db
def test_guest_checkout_rejects_overlong_idempotency_key(api_client):
    session_id = "s" * 64
    guest = GuestCartFactory(session_id=session_id)
    CartItemFactory(cart=guest, variant=stocked_variant(stock=5), quantity=1)

    resp = api_client.post(
        "/api/v1/cart/guest/checkout/",
        {"payment_method": "card"},
        format="json",
        HTTP_X_SESSION_ID=session_id,
        HTTP_IDEMPOTENCY_KEY="k" * 80,
    )

    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_idempotency_key"
    assert not Order.objects.exists()
    assert not IdempotencyKey.objects.exists()
    assert CartItem.objects.filter(cart=guest).count() == 1

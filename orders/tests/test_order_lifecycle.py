from datetime import timedelta

import pytest
from catalog.models import ProductVariant
from common.choices import NotificationType, OrderStatus
from common.exceptions import InvalidTransition, NotFound
from django.utils import timezone
from inventory.models import StockMovement
from notifications.models import Notification
from orders.models import IdempotencyKey, Order, OrderItem, OrderItemImmutable
from orders.services import (
    cancel_order,
    checkout,
    compute_request_hash,
    purge_expired_idempotency_keys,
    record_payment_result,
    update_order_status,
    with_idempotency,
)
from orders.tests.factories import cart_with_lines


def _order(method="card", stock=10, quantity=5, user=None):
    cart, (variant,) = cart_with_lines((stock, quantity), user=user)
    return checkout(cart=cart, payment_method=method), variant


def _stock(variant):
    return ProductVariant.objects.get(id=variant.id).stock


@pytest.mark.django_db
def test_cancel_restocks_with_new_return_row_and_keeps_sale_row():
    order, variant = _order()
    sale = StockMovement.objects.get(reference_id=order.id, movement_type=StockMovement.TYPE_SALE)
    before = (sale.quantity, sale.previous_stock, sale.new_stock, sale.reason)

    cancel_order(order_id=order.id, reason="Changed my mind")

    assert _stock(variant) == 10
    sale.refresh_from_db()
    assert (sale.quantity, sale.previous_stock, sale.new_stock, sale.reason) == before
    ret = StockMovement.objects.get(reference_id=order.id, movement_type=StockMovement.TYPE_RETURN)
    assert (ret.quantity, ret.previous_stock, ret.new_stock) == (5, 5, 10)
    order.refresh_from_db()
    assert order.status == OrderStatus.CANCELLED
    assert order.cancel_reason == "Changed my mind"
    assert order.cancelled_at is not None


@pytest.mark.django_db
def test_cancelled_order_cannot_be_cancelled_twice():
    order, variant = _order()
    cancel_order(order_id=order.id)
    with pytest.raises(InvalidTransition):
        cancel_order(order_id=order.id)
    assert _stock(variant) == 10


@pytest.mark.django_db
def test_status_machine_happy_path_and_terminal_states():
    order, _ = _order(method="card")
    for status in (OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.FULFILLED):
        order = update_order_status(order_id=order.id, status=status)
        assert order.status == status
    assert order.paid_at is not None
    assert order.is_terminal

    with pytest.raises(InvalidTransition):
        update_order_status(order_id=order.id, status=OrderStatus.CANCELLED)
    with pytest.raises(InvalidTransition):
        update_order_status(order_id=order.id, status=OrderStatus.PENDING)


@pytest.mark.django_db
def test_status_cannot_skip_payment():
    order, _ = _order(method="card")
    with pytest.raises(InvalidTransition):
        update_order_status(order_id=order.id, status=OrderStatus.SHIPPED)


@pytest.mark.django_db
def test_shipped_order_can_still_be_cancelled_and_restocked():
    order, variant = _order(method="cash")
    update_order_status(order_id=order.id, status=OrderStatus.SHIPPED)

    order = update_order_status(order_id=order.id, status=OrderStatus.CANCELLED, reason="Lost in transit")

    assert order.status == OrderStatus.CANCELLED
    assert _stock(variant) == 10


@pytest.mark.django_db
def test_unknown_order_is_not_found():
    with pytest.raises(NotFound):
        cancel_order(order_id=424242)


@pytest.mark.django_db
def test_order_items_are_immutable():
    order, _ = _order()
    item = OrderItem.objects.get(order=order)
    item.quantity = 1
    with pytest.raises(OrderItemImmutable):
        item.save()
    with pytest.raises(OrderItemImmutable):
        item.delete()


@pytest.mark.django_db
def test_status_change_notifies_buyer(customer, django_capture_on_commit_callbacks):
    order, _ = _order(method="card", user=customer)
    with django_capture_on_commit_callbacks(execute=True):
        update_order_status(order_id=order.id, status=OrderStatus.PAID)
    assert Notification.objects.filter(user=customer, type=NotificationType.ORDER_STATUS).count() == 1


@pytest.mark.django_db
def test_payment_success_marks_pending_order_paid_and_repeats_are_ignored():
    order, _ = _order(method="card")

    paid = record_payment_result(order_id=order.id, succeeded=True, reference="pi_1")
    paid_at = paid.paid_at
    again = record_payment_result(order_id=order.id, succeeded=True, reference="pi_1")

    assert paid.status == OrderStatus.PAID
    assert again.status == OrderStatus.PAID
    assert Order.objects.get(id=order.id).paid_at == paid_at


@pytest.mark.django_db
def test_payment_failure_cancels_restocks_and_alerts_admins(admin_user, django_capture_on_commit_callbacks):
    order, variant = _order(method="mpesa")

    with django_capture_on_commit_callbacks(execute=True):
        failed = record_payment_result(order_id=order.id, succeeded=False, reference="tx-9")
    record_payment_result(order_id=order.id, succeeded=False, reference="tx-9")

    assert failed.status == OrderStatus.CANCELLED
    assert failed.cancel_reason == "Payment failed"
    assert _stock(variant) == 10
    assert StockMovement.objects.filter(reference_id=order.id, movement_type=StockMovement.TYPE_RETURN).count() == 1
    alert = Notification.objects.get(user=admin_user, type=NotificationType.PAYMENT_FAILED)
    assert "tx-9" in alert.message


@pytest.mark.django_db
def test_with_idempotency_replays_and_rejects_changed_payload(customer):
    calls = []

    def handler():
        calls.append(1)
        return {"id": len(calls)}, 201

    kwargs = {"key": "abc", "user": customer, "path": "/x/", "method": "post"}
    first = with_idempotency(request_hash=compute_request_hash({"a": 1}), handler=handler, **kwargs)
    replay = with_idempotency(request_hash=compute_request_hash({"a": 1}), handler=handler, **kwargs)
    changed = with_idempotency(request_hash=compute_request_hash({"a": 2}), handler=handler, **kwargs)

    assert first == ({"id": 1}, 201)
    assert replay == ({"id": 1}, 201)
    assert changed[1] == 409
    assert len(calls) == 1


@pytest.mark.django_db
def test_with_idempotency_forgets_key_when_handler_fails(customer):
    def handler():
        raise InvalidTransition("nope")

    with pytest.raises(InvalidTransition):
        with_idempotency(key="k", user=customer, path="/x/", method="POST", handler=handler)
    assert not IdempotencyKey.objects.filter(key="k").exists()


@pytest.mark.django_db
def test_purge_expired_idempotency_keys(customer):
    with_idempotency(key="old", user=customer, path="/x/", method="POST", handler=lambda: ({}, 200))
    IdempotencyKey.objects.filter(key="old").update(expires_at=timezone.now() - timedelta(hours=1))
    with_idempotency(key="new", user=customer, path="/x/", method="POST", handler=lambda: ({}, 200))

    assert purge_expired_idempotency_keys() == 1
    assert list(IdempotencyKey.objects.values_list("key", flat=True)) == ["new"]

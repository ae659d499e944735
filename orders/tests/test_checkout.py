from decimal import Decimal

import pytest
from cart.models import CartItem
from cart.services import add_item
from cart.tests.factories import CartFactory
from catalog.models import ProductVariant
from common.choices import NotificationType, OrderStatus
from common.exceptions import EmptyCart, InsufficientStock
from django.core import mail
from inventory.models import StockMovement
from inventory.selectors import verify_ledger
from inventory.tests.factories import stocked_variant
from notifications.models import Notification
from orders.models import Order, OrderItem
from orders.services import checkout, create_order
from orders.tests.factories import cart_with_lines


def _stock(variant):
    return ProductVariant.objects.get(id=variant.id).stock


@pytest.mark.django_db
def test_checkout_fails_whole_order_when_one_line_is_short():
    cart, (a, b) = cart_with_lines((1, 1), (0, 1))

    with pytest.raises(InsufficientStock) as exc:
        checkout(cart=cart, payment_method="card")

    assert exc.value.product_id == b.product_id
    assert _stock(a) == 1
    assert Order.objects.count() == 0
    assert not StockMovement.objects.filter(movement_type=StockMovement.TYPE_SALE).exists()
    assert cart.items.count() == 2


@pytest.mark.django_db
def test_checkout_records_sale_movement_per_line(customer, django_capture_on_commit_callbacks):
    cart = CartFactory(user=customer)
    variant = stocked_variant(stock=10)
    add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=3)
    add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=2)

    with django_capture_on_commit_callbacks(execute=True):
        order = checkout(cart=cart, payment_method="card")

    assert _stock(variant) == 5
    movement = StockMovement.objects.get(variant=variant, movement_type=StockMovement.TYPE_SALE)
    assert (movement.previous_stock, movement.new_stock, movement.quantity) == (10, 5, -5)
    assert movement.reference_type == StockMovement.REFERENCE_ORDER
    assert movement.reference_id == order.id
    assert verify_ledger(variant_id=variant.id)["ok"] is True


@pytest.mark.django_db
def test_failure_inside_transaction_rolls_back_every_line(monkeypatch):
    cart, variants = cart_with_lines(*[(5, 1)] * 5)
    from inventory import services as inventory_services

    real = inventory_services.record_sale_movement
    calls = []

    def sell_out_third_line(**kwargs):
        calls.append(kwargs["variant_id"])
        if len(calls) == 3:
            # Another checkout took the last units after validation.
            ProductVariant.objects.filter(id=kwargs["variant_id"]).update(stock=0)
        return real(**kwargs)

    monkeypatch.setattr("orders.services.record_sale_movement", sell_out_third_line)

    with pytest.raises(InsufficientStock):
        checkout(cart=cart, payment_method="cash")

    assert len(calls) == 3
    assert Order.objects.count() == 0
    assert OrderItem.objects.count() == 0
    assert not StockMovement.objects.filter(movement_type=StockMovement.TYPE_SALE).exists()
    assert [_stock(v) for v in variants] == [5, 5, 5, 5, 5]


@pytest.mark.django_db
def test_empty_cart_is_rejected_before_any_write():
    with pytest.raises(EmptyCart):
        checkout(cart=CartFactory(), payment_method="cash")
    assert Order.objects.count() == 0


@pytest.mark.django_db
def test_order_freezes_price_and_variant_snapshot():
    cart, (variant,) = cart_with_lines((10, 2))
    order = checkout(cart=cart, payment_method="card")
    ProductVariant.objects.filter(id=variant.id).update(price=Decimal("99.00"))

    item = OrderItem.objects.get(order=order)
    assert item.unit_price == Decimal("10.00")
    assert item.line_total == Decimal("20.00")
    assert item.variant_sku == variant.sku
    assert item.variant_value == variant.value
    order.refresh_from_db()
    assert order.subtotal == Decimal("20.00")
    assert order.total == Decimal("20.00")


@pytest.mark.django_db
@pytest.mark.parametrize(
    "method,expected",
    [("cash", OrderStatus.PAID), ("cod", OrderStatus.PAID), ("card", OrderStatus.PENDING), ("mpesa", OrderStatus.PENDING)],
)
def test_initial_status_depends_on_payment_method(method, expected):
    cart, _ = cart_with_lines((3, 1))
    order = checkout(cart=cart, payment_method=method)
    assert order.status == expected
    assert (order.paid_at is not None) == (expected == OrderStatus.PAID)


@pytest.mark.django_db
def test_order_number_is_derived_from_id(settings):
    settings.ORDERS_NUMBER_PREFIX = "HERA"
    cart, _ = cart_with_lines((3, 1))
    order = checkout(cart=cart, payment_method="cash")
    assert order.number == f"HERA-{order.id:06d}"


@pytest.mark.django_db
def test_after_commit_cart_is_emptied_and_parties_are_notified(
    customer, admin_user, publisher, django_capture_on_commit_callbacks
):
    cart, _ = cart_with_lines((3, 1), (3, 2), user=customer)

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        order = checkout(cart=cart, payment_method="card")

    assert len(callbacks) == 2
    assert not CartItem.objects.filter(cart=cart).exists()
    assert Notification.objects.filter(user=customer, type=NotificationType.ORDER_PLACED).count() == 1
    assert Notification.objects.filter(user=admin_user, type=NotificationType.ORDER_PLACED).count() == 1
    assert publisher.events("user") == ["notification.order_placed"]
    assert len(mail.outbox) == 1
    assert order.number in mail.outbox[0].subject


@pytest.mark.django_db
def test_nothing_is_cleared_or_sent_without_commit(customer):
    cart, _ = cart_with_lines((3, 1), user=customer)
    checkout(cart=cart, payment_method="card")
    assert cart.items.count() == 1
    assert not Notification.objects.filter(type=NotificationType.ORDER_PLACED).exists()


@pytest.mark.django_db
def test_notification_failure_does_not_undo_order(customer, monkeypatch, django_capture_on_commit_callbacks):
    cart, (variant,) = cart_with_lines((3, 1), user=customer)

    def boom(**kwargs):
        raise RuntimeError("push backend down")

    monkeypatch.setattr("notifications.services.notify", boom)
    with django_capture_on_commit_callbacks(execute=True):
        order = checkout(cart=cart, payment_method="cash")

    assert Order.objects.filter(id=order.id).exists()
    assert _stock(variant) == 2
    assert not CartItem.objects.filter(cart=cart).exists()


@pytest.mark.django_db
def test_point_of_sale_order_from_explicit_lines(admin_user):
    _, (variant,) = cart_with_lines((4, 1))
    order = create_order(
        lines=[{"variant_id": variant.id, "quantity": 3}],
        payment_method="cash",
        customer={"name": "Walk-in"},
        created_by=admin_user,
    )
    assert order.user_id is None
    assert order.status == OrderStatus.PAID
    assert order.customer_name == "Walk-in"
    assert _stock(variant) == 1
    movement = StockMovement.objects.get(reference_id=order.id)
    assert movement.created_by_id == admin_user.id

    with pytest.raises(EmptyCart):
        create_order(lines=[], payment_method="cash")


@pytest.mark.django_db
def test_repeat_checkouts_by_one_customer_reuse_their_cart(customer):
    first_cart, _ = cart_with_lines((5, 2), user=customer)
    first = checkout(cart=first_cart, payment_method="card")
    second_cart, (variant,) = cart_with_lines((5, 1), user=customer)
    second = checkout(cart=second_cart, payment_method="cash")

    assert second_cart.id == first_cart.id
    assert first.user_id == second.user_id == customer.id
    assert [item.variant_id for item in second.items.all()] == [variant.id]
    assert second.total == Decimal("10.00")

from datetime import timedelta
from decimal import Decimal

import pytest
from cart.models import Cart, CartItem
from cart.selectors import cart_totals
from cart.services import (
    add_item,
    clear_cart,
    get_or_create_cart,
    merge_guest_cart,
    purge_stale_guest_carts,
    remove_item,
    update_item_quantity,
)
from cart.tests.factories import CartFactory, CartItemFactory, GuestCartFactory
from catalog.models import Product, ProductVariant
from catalog.tests.factories import ProductFactory
from common.exceptions import InsufficientStock, InvalidQuantity, NotFound, VariantRequired
from django.utils import timezone
from inventory.tests.factories import stocked_variant
from users.tests.factories import UserFactory


@pytest.mark.django_db
def test_get_or_create_cart_returns_same_cart_for_user():
    user = UserFactory()
    first = get_or_create_cart(user=user)
    assert get_or_create_cart(user=user).id == first.id
    assert Cart.objects.filter(user=user).count() == 1


@pytest.mark.django_db
def test_get_or_create_cart_requires_exactly_one_identity():
    with pytest.raises(ValueError):
        get_or_create_cart()
    with pytest.raises(ValueError):
        get_or_create_cart(user=UserFactory(), session_id="abc")


@pytest.mark.django_db
def test_concurrent_first_access_converges_on_one_cart(monkeypatch):
    user = UserFactory()
    winner = CartFactory(user=user)
    # Simulate the losing request: it saw no cart, then lost the insert race.
    monkeypatch.setattr("cart.services.find_cart", lambda **kwargs: None)

    cart = get_or_create_cart(user=user)

    assert cart.id == winner.id
    assert Cart.objects.filter(user=user).count() == 1


@pytest.mark.django_db
def test_adding_same_line_twice_increments_quantity():
    cart = CartFactory()
    variant = stocked_variant(stock=10)

    add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=2)
    item = add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=3)

    assert CartItem.objects.filter(cart=cart).count() == 1
    assert item.quantity == 5
    assert item.variant_value == variant.value


@pytest.mark.django_db
def test_add_checks_combined_quantity_against_stock():
    cart = CartFactory()
    variant = stocked_variant(stock=4)
    add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=3)

    with pytest.raises(InsufficientStock) as exc:
        add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=2)

    assert exc.value.available == 4
    assert exc.value.requested == 5
    assert CartItem.objects.get(cart=cart).quantity == 3


@pytest.mark.django_db
def test_add_without_variant_is_rejected():
    cart = CartFactory()
    variant = stocked_variant(stock=5)
    with pytest.raises(VariantRequired):
        add_item(cart=cart, product_id=variant.product_id, quantity=1)

    bare = ProductFactory()
    with pytest.raises(VariantRequired):
        add_item(cart=cart, product_id=bare.id, quantity=1)


@pytest.mark.django_db
def test_add_rejects_unpublished_product_and_inactive_variant():
    cart = CartFactory()
    variant = stocked_variant(stock=5)
    Product.objects.filter(id=variant.product_id).update(status=Product.STATUS_DRAFT)
    with pytest.raises(NotFound):
        add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=1)

    other = stocked_variant(stock=5)
    ProductVariant.objects.filter(id=other.id).update(status=ProductVariant.STATUS_INACTIVE)
    with pytest.raises(NotFound):
        add_item(cart=cart, product_id=other.product_id, variant_id=other.id, quantity=1)


@pytest.mark.django_db
def test_add_rejects_non_positive_quantity():
    cart = CartFactory()
    variant = stocked_variant(stock=5)
    with pytest.raises(InvalidQuantity):
        add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=0)


@pytest.mark.django_db
def test_totals_follow_live_price():
    cart = CartFactory()
    variant = stocked_variant(stock=10, price=Decimal("12.50"))
    add_item(cart=cart, product_id=variant.product_id, variant_id=variant.id, quantity=2)
    assert cart_totals(cart=cart)["subtotal"] == Decimal("25.00")

    ProductVariant.objects.filter(id=variant.id).update(price=Decimal("10.00"))

    totals = cart_totals(cart=cart)
    assert totals["subtotal"] == Decimal("20.00")
    assert totals["total"] == Decimal("20.00")
    assert totals["item_count"] == 2


@pytest.mark.django_db
def test_update_to_zero_removes_line():
    variant = stocked_variant(stock=10)
    item = CartItemFactory(variant=variant, quantity=2)

    assert update_item_quantity(cart=item.cart, item_id=item.id, quantity=0) is None
    assert not CartItem.objects.filter(id=item.id).exists()


@pytest.mark.django_db
def test_update_increase_rechecks_stock_but_decrease_does_not():
    variant = stocked_variant(stock=3)
    item = CartItemFactory(variant=variant, quantity=2)

    with pytest.raises(InsufficientStock):
        update_item_quantity(cart=item.cart, item_id=item.id, quantity=4)

    ProductVariant.objects.filter(id=variant.id).update(stock=0)
    updated = update_item_quantity(cart=item.cart, item_id=item.id, quantity=1)
    assert updated.quantity == 1


@pytest.mark.django_db
def test_items_of_another_cart_are_not_found():
    item = CartItemFactory(variant=stocked_variant(stock=5))
    other = CartFactory()
    with pytest.raises(NotFound):
        remove_item(cart=other, item_id=item.id)
    with pytest.raises(NotFound):
        update_item_quantity(cart=other, item_id=item.id, quantity=1)


@pytest.mark.django_db
def test_clear_cart_keeps_the_cart():
    cart = CartFactory()
    CartItemFactory(cart=cart, variant=stocked_variant(stock=5))
    CartItemFactory(cart=cart, variant=stocked_variant(stock=5))

    assert clear_cart(cart=cart) == 2
    assert Cart.objects.filter(id=cart.id).exists()
    assert cart.items.count() == 0


@pytest.mark.django_db
def test_merge_sums_quantities_caps_at_stock_and_drops_guest_cart():
    user = UserFactory()
    guest = GuestCartFactory()
    shared = stocked_variant(stock=4)
    only_guest = stocked_variant(stock=10)
    gone = stocked_variant(stock=10)
    CartItemFactory(cart=guest, variant=shared, quantity=3)
    CartItemFactory(cart=guest, variant=only_guest, quantity=2)
    CartItemFactory(cart=guest, variant=gone, quantity=1)
    ProductVariant.objects.filter(id=gone.id).update(status=ProductVariant.STATUS_INACTIVE)
    user_cart = CartFactory(user=user)
    CartItemFactory(cart=user_cart, variant=shared, quantity=2)

    merged = merge_guest_cart(session_id=guest.session_id, user=user)

    assert merged.id == user_cart.id
    quantities = dict(merged.items.values_list("variant_id", "quantity"))
    assert quantities == {shared.id: 4, only_guest.id: 2}
    assert not Cart.objects.filter(id=guest.id).exists()


@pytest.mark.django_db
def test_merge_without_guest_cart_returns_user_cart():
    user = UserFactory()
    cart = merge_guest_cart(session_id="nothing-here", user=user)
    assert cart.user_id == user.id


@pytest.mark.django_db
def test_purge_removes_only_stale_guest_carts():
    stale = GuestCartFactory()
    fresh = GuestCartFactory()
    owned = CartFactory()
    old = timezone.now() - timedelta(days=45)
    Cart.objects.filter(id__in=[stale.id, owned.id]).update(updated_at=old)

    assert purge_stale_guest_carts(older_than_days=30) == 1
    assert not Cart.objects.filter(id=stale.id).exists()
    assert Cart.objects.filter(id__in=[fresh.id, owned.id]).count() == 2

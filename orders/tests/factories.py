from decimal import Decimal

from cart.services import clear_cart, get_or_create_cart
from cart.tests.factories import CartFactory, CartItemFactory
from inventory.tests.factories import stocked_variant


def cart_with_lines(*specs, user=None):
    """Fill a cart from ``(stock, quantity)`` pairs; returns (cart, variants).

    A user keeps a single cart, so repeated calls for the same user reuse
    it and drop whatever an earlier call left behind.
    """
    if user is not None:
        cart = get_or_create_cart(user=user)
        clear_cart(cart=cart)
    else:
        cart = CartFactory()
    variants = []
    for stock, quantity in specs:
        variant = stocked_variant(stock=stock, price=Decimal("10.00"))
        CartItemFactory(cart=cart, variant=variant, quantity=quantity)
        variants.append(variant)
    return cart, variants

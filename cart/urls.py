"""Cart URL routes (v1)."""

from django.urls import path

from .views import (
    CartAddItemView,
    CartCheckoutView,
    CartClearView,
    CartDetailView,
    CartItemView,
    GuestCartAddItemView,
    GuestCartCheckoutView,
    GuestCartClearView,
    GuestCartDetailView,
    GuestCartItemView,
    MergeGuestCartView,
)

app_name = "cart"

urlpatterns = [
    path("", CartDetailView.as_view(), name="cart-detail"),
    path("items/", CartAddItemView.as_view(), name="cart-add-item"),
    path("items/<int:item_id>/", CartItemView.as_view(), name="cart-item"),
    path("clear/", CartClearView.as_view(), name="cart-clear"),
    path("checkout/", CartCheckoutView.as_view(), name="cart-checkout"),
    # Guest cart routes
    path("guest/", GuestCartDetailView.as_view(), name="guest-cart-detail"),
    path("guest/items/", GuestCartAddItemView.as_view(), name="guest-cart-add-item"),
    path("guest/items/<int:item_id>/", GuestCartItemView.as_view(), name="guest-cart-item"),
    path("guest/clear/", GuestCartClearView.as_view(), name="guest-cart-clear"),
    path("guest/checkout/", GuestCartCheckoutView.as_view(), name="guest-cart-checkout"),
    path("merge-guest/", MergeGuestCartView.as_view(), name="cart-merge-guest"),
]

"""Email utilities for the orders app.

Uses Django's email backend, with links composed from FRONTEND_URL.
"""

from django.conf import settings
from django.core.mail import send_mail


def _order_url(order) -> str:
    frontend = getattr(settings, "FRONTEND_URL", "")
    if not frontend:
        return ""
    return f"{frontend.rstrip('/')}/orders/{order.id}"


def _recipient(order):
    return order.email or getattr(order.user, "email", None)


def send_order_confirmation_email(order) -> None:
    """Send the order summary after checkout. No-ops without an address."""

    to_email = _recipient(order)
    if not to_email:
        return

    lines = "\n".join(
        f"- {item.product_title} ({item.variant_sku}) x{item.quantity} @ {item.unit_price}" for item in order.items.all()
    )
    body = (
        "Thank you for your order!\n\n"
        f"Order: {order.number}\n"
        f"Status: {order.status}\n"
        f"Payment: {order.payment_method}\n\n"
        f"{lines}\n\n"
        f"Total: {order.total}\n"
    )
    url = _order_url(order)
    if url:
        body += f"\nYou can view your order here: {url}\n"

    send_mail(
        f"Your order {order.number} has been received",
        body,
        getattr(settings, "DEFAULT_FROM_EMAIL", None),
        [to_email],
        fail_silently=True,
    )


def send_order_status_email(order) -> None:
    """Tell the buyer their order moved to a new status."""

    to_email = _recipient(order)
    if not to_email:
        return

    body = f"Order: {order.number}\nStatus: {order.status}\n"
    if order.cancel_reason:
        body += f"Reason: {order.cancel_reason}\n"
    url = _order_url(order)
    if url:
        body += f"\nYou can view your order here: {url}\n"

    send_mail(
        f"Your order {order.number} is now {order.status}",
        body,
        getattr(settings, "DEFAULT_FROM_EMAIL", None),
        [to_email],
        fail_silently=True,
    )

"""Payment method policy.

Decides at checkout whether an order starts PAID (money taken on the spot)
or PENDING until the payment provider calls back.
"""

from common.choices import OrderStatus
from django.conf import settings


def immediate_payment_methods() -> set[str]:
    raw = getattr(settings, "ORDERS_IMMEDIATE_PAYMENT_METHODS", ["cash", "cod"])
    if isinstance(raw, str):
        raw = raw.split(",")
    return {str(m).strip().lower() for m in raw if str(m).strip()}


def initial_status_for(payment_method: str) -> str:
    if str(payment_method).lower() in immediate_payment_methods():
        return OrderStatus.PAID
    return OrderStatus.PENDING

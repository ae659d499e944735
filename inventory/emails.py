"""Email utilities for the inventory app."""

from django.conf import settings
from django.core.mail import send_mail
from users.models import User
from users.selectors import admin_user_ids


def _recipients() -> list[str]:
    configured = [e for e in getattr(settings, "INVENTORY_ALERT_EMAILS", []) if e]
    if configured:
        return configured
    return list(User.objects.filter(id__in=admin_user_ids()).exclude(email="").values_list("email", flat=True))


def send_low_stock_email(*, sku: str, title: str, current_stock: int, threshold: int) -> None:
    """Email the stock team about a breached threshold. No-ops without recipients."""
    recipients = _recipients()
    if not recipients:
        return

    frontend = getattr(settings, "FRONTEND_URL", "")
    body = (
        f"{title} ({sku}) is running low.\n\n"
        f"Current stock: {current_stock}\n"
        f"Alert threshold: {threshold}\n"
    )
    if frontend:
        body += f"\nManage stock: {frontend.rstrip('/')}/admin/stock\n"

    send_mail(
        f"Low stock: {title} ({sku})",
        body,
        getattr(settings, "DEFAULT_FROM_EMAIL", None),
        recipients,
        fail_silently=True,
    )

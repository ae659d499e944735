"""Read-only user queries."""

from django.db.models import Q

from .models import User


def admin_user_ids() -> list[int]:
    """Ids of active users who receive administrator notifications."""

    return list(
        User.objects.filter(is_active=True)
        .filter(Q(role=User.ROLE_ADMIN) | Q(is_staff=True) | Q(is_superuser=True))
        .order_by("id")
        .values_list("id", flat=True)
    )

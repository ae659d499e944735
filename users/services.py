"""User account mutations that raise notifications."""

from common.choices import NotificationPriority, NotificationType
from django.db import transaction

from .models import User


@transaction.atomic
def register_user(*, username: str, email: str, password: str, first_name: str = "", last_name: str = "") -> User:
    """Create a customer account and tell the administrators about it."""
    from notifications.services import notify_admins

    user = User(username=username, email=email, first_name=first_name, last_name=last_name)
    user.set_password(password)
    user.save()
    transaction.on_commit(
        lambda: notify_admins(
            type=NotificationType.NEW_USER,
            title="New customer registered",
            message=f"{user.username} ({user.email}) created an account.",
            priority=NotificationPriority.LOW,
            related_entity="user",
            related_entity_id=user.id,
        ),
        robust=True,
    )
    return user


@transaction.atomic
def change_password(*, user: User, new_password: str) -> None:
    from notifications.services import notify

    user.set_password(new_password)
    user.save(update_fields=["password"])
    transaction.on_commit(
        lambda: notify(
            user_id=user.id,
            type=NotificationType.PASSWORD_CHANGED,
            title="Password changed",
            message="Your password was changed. If this wasn't you, contact support immediately.",
            priority=NotificationPriority.HIGH,
            related_entity="user",
            related_entity_id=user.id,
        ),
        robust=True,
    )

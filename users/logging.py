import logging

logger = logging.getLogger("hera.auth")


def log_auth_event(action: str, request, user=None, status: str = "success"):
    """Emit a structured auth event with action, user, ip, and status."""
    logger.info(
        f"auth.{action}",
        extra={
            "event": f"auth.{action}",
            "ip": request.META.get("REMOTE_ADDR"),
            "status": status,
            "user_id": getattr(user, "id", None),
        },
    )

"""Domain errors shared by the cart, inventory and orders apps.

Services raise these; the DRF exception handler below turns them into
``{"detail": ..., "code": ...}`` responses so views stay free of
try/except ladders.
"""

import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger("hera.errors")


class CommerceError(Exception):
    """Base class for domain failures surfaced to API callers."""

    code = "commerce_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Unable to complete the request."

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)

    def as_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class NotFound(CommerceError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."


class InvalidQuantity(CommerceError):
    code = "invalid_quantity"
    default_detail = "Quantity must be a positive whole number."


class VariantRequired(CommerceError):
    code = "variant_required"
    default_detail = "A variant must be selected for this product."


class EmptyCart(CommerceError):
    code = "empty_cart"
    default_detail = "Cart is empty."


class InvalidIdempotencyKey(CommerceError):
    code = "invalid_idempotency_key"
    default_detail = "Idempotency-Key is too long."


class InvalidTransition(CommerceError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Status change not allowed."


class InsufficientStock(CommerceError):
    """Requested quantity exceeds live stock for a variant."""

    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(
        self,
        *,
        product_id: int | None,
        variant_id: int | None,
        available: int,
        requested: int,
        title: str = "",
        sku: str = "",
    ):
        self.product_id = product_id
        self.variant_id = variant_id
        self.available = int(available)
        self.requested = int(requested)
        label = f'"{title}" ({sku})' if sku else f'"{title}"'
        super().__init__(f"Not enough stock for {label}. Available: {self.available}, Requested: {self.requested}")

    def as_dict(self) -> dict:
        return {
            **super().as_dict(),
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "available": self.available,
            "requested": self.requested,
        }


class TransactionAborted(CommerceError):
    """A failure inside an atomic checkout or ledger block; nothing was committed."""

    code = "transaction_aborted"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The operation was rolled back."


def api_exception_handler(exc, context):
    """DRF exception handler that also understands ``CommerceError``."""

    if isinstance(exc, CommerceError):
        view = context.get("view")
        logger.info(
            "api.domain_error",
            extra={
                "event": "api.domain_error",
                "code": exc.code,
                "view": type(view).__name__ if view is not None else None,
            },
        )
        return Response(exc.as_dict(), status=exc.status_code)
    return exception_handler(exc, context)

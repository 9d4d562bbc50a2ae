from django.core.exceptions import ValidationError

from .models import Order

FORWARD = [Order.PENDING, Order.CONFIRMED, Order.PROCESSING, Order.SHIPPED, Order.DELIVERED]
TERMINAL = {Order.DELIVERED, Order.CANCELLED, Order.REFUNDED}

STATUS_DESCRIPTIONS = {
    Order.PENDING: "Order has been placed and is awaiting confirmation",
    Order.CONFIRMED: "Order has been confirmed and is being processed",
    Order.PROCESSING: "Order is being prepared for shipment",
    Order.SHIPPED: "Order has been shipped",
    Order.DELIVERED: "Order has been delivered successfully",
    Order.CANCELLED: "Order has been cancelled",
    Order.REFUNDED: "Order has been refunded",
}
VALID_STATUSES = set(STATUS_DESCRIPTIONS)


def status_description(status: str) -> str:
    return STATUS_DESCRIPTIONS.get(status, "Order status updated")


def check_transition(current: str, new: str) -> None:
    """Raise ``ValidationError`` unless an admin may move ``current`` to ``new``.

    Forward moves along the fulfilment chain may skip steps; CANCELLED is
    reachable from any non-terminal state. REFUNDED only comes from a refund.
    """
    if new not in VALID_STATUSES:
        raise ValidationError(f"Invalid status '{new}'. Valid statuses: {', '.join(sorted(VALID_STATUSES))}")
    if new == Order.REFUNDED:
        raise ValidationError("Use the refund operation to refund an order")
    if current in TERMINAL:
        raise ValidationError(f"Order is already {current} and cannot change status")
    if new == Order.CANCELLED:
        return
    if FORWARD.index(new) <= FORWARD.index(current):
        raise ValidationError(f"Cannot move order from {current} back to {new}")


def rank(status: str) -> int:
    """Position used to check tracking history never goes backwards."""
    if status in FORWARD:
        return FORWARD.index(status)
    return len(FORWARD)

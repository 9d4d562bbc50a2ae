import logging

from django.db import transaction
from django.dispatch import Signal

logger = logging.getLogger(__name__)

# sender=Order class, order=<Order>
order_confirmed = Signal()
# sender=Order class, order=<Order>, old_status=str, new_status=str
order_status_changed = Signal()
# sender=Order class, order=<Order>, refund=dict
order_refunded = Signal()


def emit_on_commit(signal: Signal, order, using: str = "default", **kwargs) -> None:
    """Send ``signal`` once the surrounding transaction commits.

    Receivers run through ``send_robust``; their failures are logged and never
    reach the caller.
    """
    def _send():
        for receiver, result in signal.send_robust(sender=type(order), order=order, **kwargs):
            if isinstance(result, Exception):
                logger.error("Order event receiver %r failed for %s", receiver, order.order_number,
                             exc_info=(type(result), result, result.__traceback__))

    transaction.on_commit(_send, using=using)

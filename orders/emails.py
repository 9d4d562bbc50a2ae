import logging
from typing import List

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.dispatch import receiver
from django.template.loader import render_to_string

from .lifecycle import status_description
from .signals import order_confirmed, order_refunded, order_status_changed

logger = logging.getLogger(__name__)


def _fail_silently() -> bool:
    return getattr(settings, "EMAIL_FAIL_SILENTLY", True)


def _from_email():
    return getattr(settings, "DEFAULT_FROM_EMAIL", None) or getattr(settings, "EMAIL_HOST_USER", None)


def _admin_recipients() -> List[str]:
    raw = getattr(settings, "ORDERS_ADMIN_EMAILS", None) or getattr(settings, "ADMIN_EMAILS", None)
    if not raw:
        raw = getattr(settings, "DEFAULT_FROM_EMAIL", "") or ""
    if isinstance(raw, (list, tuple)):
        raw = ",".join(raw)
    emails = [e.strip() for e in raw.split(",") if e and e.strip()]
    seen = set()
    uniq: List[str] = []
    for e in emails:
        if e.lower() not in seen:
            seen.add(e.lower())
            uniq.append(e)
    return uniq


def _send(template: str, subject: str, context: dict, recipients: List[str]) -> None:
    html = render_to_string(f"emails/{template}.html", context)
    text = render_to_string(f"emails/{template}.txt", context)
    msg = EmailMultiAlternatives(subject, text, _from_email(), recipients)
    msg.attach_alternative(html, "text/html")
    msg.send(fail_silently=_fail_silently())


def _context(order) -> dict:
    items = list(order.items.select_related("product", "product_variant"))
    return {
        "order": order,
        "items": items,
        "custom_images": list(order.custom_images.all()),
        "status_text": status_description(order.status),
    }


def send_order_notifications(order) -> None:
    """Customer confirmation plus an admin heads-up for a newly confirmed order."""
    context = _context(order)

    try:
        if order.email:
            subject = f"Order confirmed: {order.order_number} – INR {order.total_amount}"
            _send("order_confirmation_customer", subject, context, [order.email])
    except Exception:
        logger.exception("Failed to send order confirmation to %s", order.email)

    try:
        admins = _admin_recipients()
        if admins:
            subject = f"New order: {order.order_number} – INR {order.total_amount} ({order.payment_method})"
            _send("order_notification_admin", subject, context, admins)
    except Exception:
        logger.exception("Failed to send admin notification for %s", order.order_number)


def send_status_update(order, old_status: str, new_status: str) -> None:
    if not order.email:
        return
    context = _context(order)
    context.update(old_status=old_status, new_status=new_status, status_text=status_description(new_status))
    try:
        _send("order_status_update", f"Order {order.order_number} is now {new_status.lower()}", context,
              [order.email])
    except Exception:
        logger.exception("Failed to send status update for %s", order.order_number)


def send_refund_notification(order, refund: dict) -> None:
    if not order.email:
        return
    context = _context(order)
    context["refund"] = refund
    try:
        _send("order_refund", f"Refund processed: {order.order_number}", context, [order.email])
    except Exception:
        logger.exception("Failed to send refund notification for %s", order.order_number)


@receiver(order_confirmed, dispatch_uid="orders.emails.confirmed")
def _on_confirmed(sender, order, **kwargs):
    send_order_notifications(order)


@receiver(order_status_changed, dispatch_uid="orders.emails.status_changed")
def _on_status_changed(sender, order, old_status, new_status, **kwargs):
    send_status_update(order, old_status, new_status)


@receiver(order_refunded, dispatch_uid="orders.emails.refunded")
def _on_refunded(sender, order, refund, **kwargs):
    send_refund_notification(order, refund)

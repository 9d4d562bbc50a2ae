"""Order lifecycle: creating orders from priced carts and moving them through
payment, fulfilment and refund.

Every path that takes inventory goes through ``_commit_inventory`` so stock and
coupon counters are only touched by conditional updates inside the order's
transaction. Notifications are emitted as signals after commit.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.db.models import F, Q
from django.utils import timezone

from catalog.models import Coupon, ProductVariant
from payments.exceptions import PaymentGatewayError
from payments.integrations import phonepe
from payments.integrations.phonepe import PhonePeGateway
from payments.integrations.razorpay import RazorpayGateway

from . import pricing
from .exceptions import (
    InsufficientStock,
    OrderNotFound,
    PaymentVerificationFailed,
    RefundNotEligible,
)
from .lifecycle import check_transition, status_description
from .models import CustomImage, Order, OrderItem, TrackingHistory
from .signals import emit_on_commit, order_confirmed, order_refunded, order_status_changed
from .uploads import StorageUploader, collect_files
from .utils import generate_order_number, money

logger = logging.getLogger(__name__)

ORDER_NUMBER_RE = re.compile(r"^ORD-\d{10,16}-[A-Z0-9]{6}$")
SYSTEM = "System"
CAPTURED_STATES = {"authorized", "captured"}


def _orders_conf() -> dict:
    return getattr(settings, "ORDERS", {}) or {}


@dataclass(frozen=True)
class PaymentOutcome:
    """What a payment path decided; everything else about creating the order is shared."""

    status: str
    payment_status: str
    history: str
    payment_method: str = Order.ONLINE
    fields: dict = field(default_factory=dict)


class OrderService:
    def __init__(self, sync_gateway=None, async_gateway=None, uploader=None, using: str = "default"):
        self.sync_gateway = sync_gateway or RazorpayGateway.from_settings()
        self.async_gateway = async_gateway or PhonePeGateway.from_settings()
        self.uploader = uploader or StorageUploader()
        self.using = using

    # ---------- helpers ----------
    def _orders(self):
        return Order.objects.using(self.using)

    def get_order(self, order_id) -> Order:
        order = self._orders().filter(pk=order_id).first()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _locked(self, order_id) -> Order:
        order = self._orders().select_for_update().filter(pk=order_id).first()
        if order is None:
            raise OrderNotFound(order_id)
        return order

    def _history(self, order, status: str, description: str, location: str | None = None):
        return TrackingHistory.objects.using(self.using).create(
            order=order, status=status, description=description[:500],
            location=order.location if location is None else location,
        )

    def _order_number(self, requested: str | None) -> str:
        # a number handed out with the quote is honoured once, then never again
        if requested and ORDER_NUMBER_RE.match(requested) \
                and not self._orders().filter(order_number=requested).exists():
            return requested
        return generate_order_number()

    def _upload(self, checkout, files, order_number: str):
        pending = collect_files(checkout.image_groups, files)
        if not pending:
            return []
        return self.uploader.upload_many(pending, destination_hint=order_number)

    # ---------- pricing ----------
    def quote(self, lines, coupon_code: str | None = None) -> pricing.Quote:
        return pricing.quote(lines, coupon_code, using=self.using)

    # ---------- inventory ----------
    def _decrement_stock(self, variant_id, quantity: int) -> None:
        updated = ProductVariant.objects.using(self.using).filter(pk=variant_id, stock__gte=quantity) \
            .update(stock=F("stock") - quantity)
        if not updated:
            available = ProductVariant.objects.using(self.using).filter(pk=variant_id) \
                .values_list("stock", flat=True).first()
            raise InsufficientStock(variant_id, available or 0, quantity)

    def _restore_stock(self, order) -> None:
        for item in order.items.all():
            if item.product_variant_id:
                ProductVariant.objects.using(self.using).filter(pk=item.product_variant_id) \
                    .update(stock=F("stock") + item.quantity)

    def _consume_coupon(self, coupon_id, strict: bool) -> None:
        qs = Coupon.objects.using(self.using).filter(pk=coupon_id)
        if strict:
            updated = qs.filter(Q(usage_limit__isnull=True) | Q(used_count__lt=F("usage_limit"))) \
                .update(used_count=F("used_count") + 1)
            if not updated:
                code = qs.values_list("code", flat=True).first()
                raise ValidationError(f"Coupon {code} is no longer available")
            return
        if not qs.filter(Q(usage_limit__isnull=True) | Q(used_count__lt=F("usage_limit"))).exists():
            logger.warning("Coupon %s used past its limit by an already paid order", coupon_id)
        qs.update(used_count=F("used_count") + 1)

    def _commit_inventory(self, order, strict_coupon: bool = True) -> None:
        """Take stock for every variant line and consume the coupon. Raises on shortfall."""
        for item in order.items.all():
            if item.product_variant_id:
                self._decrement_stock(item.product_variant_id, item.quantity)
        if order.coupon_id:
            self._consume_coupon(order.coupon_id, strict_coupon)
        self._orders().filter(pk=order.pk).update(stock_committed=True)
        order.stock_committed = True

    # ---------- order creation ----------
    def _persist(self, quote, checkout, order_number: str, user_id: str, assets, **fields) -> Order:
        order = Order(
            order_number=order_number,
            user_id=str(user_id or ""),
            subtotal=quote.subtotal,
            discount=quote.discount,
            shipping_cost=quote.shipping_cost,
            total_amount=quote.total_amount,
            coupon=quote.coupon,
            **checkout.shipping,
            **fields,
        )
        order.save(using=self.using)
        OrderItem.objects.using(self.using).bulk_create([
            OrderItem(order=order, product=line.product, product_variant=line.variant,
                      quantity=line.quantity, price=line.unit_price)
            for line in quote.lines
        ])
        if assets:
            CustomImage.objects.using(self.using).bulk_create([
                CustomImage(order=order, image_url=a.url, image_key=a.key, filename=a.filename, color=a.color)
                for a in assets
            ])
        return order

    def _finalize_order(self, quote, checkout, outcome: PaymentOutcome, user_id: str = "",
                        files=None, order_number: str | None = None) -> Order:
        """Persist a confirmed order and take its inventory in one transaction.

        Shared by every path whose payment outcome is known at creation time.
        Uploaded images are removed again if the transaction fails.
        """
        order_number = self._order_number(order_number)
        assets = self._upload(checkout, files, order_number)
        try:
            with transaction.atomic(using=self.using):
                order = self._persist(quote, checkout, order_number, user_id, assets,
                                      status=outcome.status, payment_status=outcome.payment_status,
                                      payment_method=outcome.payment_method, **outcome.fields)
                self._commit_inventory(order, strict_coupon=True)
                self._history(order, outcome.status, outcome.history)
                emit_on_commit(order_confirmed, order, using=self.using)
        except Exception:
            self.uploader.discard([a.key for a in assets])
            raise
        logger.info("Order %s created: %s/%s total=%s method=%s", order.order_number, order.status,
                    order.payment_status, order.total_amount, order.payment_method)
        return order

    # ---------- synchronous gateway ----------
    def quote_and_initiate(self, checkout) -> dict:
        """Price the cart and open a gateway intent. Nothing is stored."""
        quote = self.quote(checkout.lines, checkout.coupon_code)
        order_number = generate_order_number()
        currency = _orders_conf().get("CURRENCY", "INR")
        intent = self.sync_gateway.create_intent(quote.total_amount, currency=currency, receipt=order_number)
        pending = quote.as_dict()
        pending.update(orderNumber=order_number, razorpayOrderId=intent["id"], currency=currency)
        return {"intent": intent, "keyId": getattr(self.sync_gateway, "key_id", ""), "pendingOrder": pending}

    def _check_captured(self, razorpay_order_id: str, razorpay_payment_id: str, total: Decimal) -> None:
        """The gateway must hold a payment for this intent of exactly ``total``."""
        payment = self.sync_gateway.fetch_payment(razorpay_payment_id)
        expected = int(money(total) * 100)
        paid = payment.get("amount")
        if payment.get("order_id") != razorpay_order_id or paid != expected \
                or payment.get("status") not in CAPTURED_STATES:
            logger.warning("Payment %s does not cover order %s: paid=%s status=%s expected=%s",
                           razorpay_payment_id, razorpay_order_id, paid, payment.get("status"), expected)
            raise PaymentVerificationFailed()

    def verify_and_create(self, checkout, razorpay_order_id: str, razorpay_payment_id: str,
                          razorpay_signature: str, user_id: str = "", files=None,
                          order_number: str | None = None) -> Order:
        """Create a PAID order after checking the checkout signature.

        Totals are recomputed here and must equal what the gateway captured;
        whatever the client claims it paid is ignored.
        """
        if not self.sync_gateway.verify(razorpay_order_id, razorpay_payment_id, razorpay_signature):
            logger.warning("Razorpay signature mismatch for order %s", razorpay_order_id)
            raise PaymentVerificationFailed()

        existing = self._orders().filter(razorpay_payment_id=razorpay_payment_id).first()
        if existing is not None:
            logger.info("Payment %s already recorded on %s", razorpay_payment_id, existing.order_number)
            return existing

        quote = self.quote(checkout.lines, checkout.coupon_code)
        self._check_captured(razorpay_order_id, razorpay_payment_id, quote.total_amount)
        outcome = PaymentOutcome(
            status=Order.CONFIRMED,
            payment_status=Order.PAYMENT_PAID,
            history="Order confirmed and payment received",
            fields={
                "razorpay_order_id": razorpay_order_id,
                "razorpay_payment_id": razorpay_payment_id,
                "razorpay_signature": razorpay_signature,
            },
        )
        try:
            return self._finalize_order(quote, checkout, outcome, user_id=user_id, files=files,
                                        order_number=order_number)
        except IntegrityError:
            existing = self._orders().filter(razorpay_payment_id=razorpay_payment_id).first()
            if existing is not None:
                return existing
        # order number taken concurrently
        logger.warning("Order number %s already in use; retrying with a new one", order_number)
        return self._finalize_order(quote, checkout, outcome, user_id=user_id, files=files)

    # ---------- cash on delivery ----------
    def create_cod_order(self, checkout, user_id: str = "", files=None) -> Order:
        quote = self.quote(checkout.lines, checkout.coupon_code)
        outcome = PaymentOutcome(
            status=Order.CONFIRMED,
            payment_status=Order.PAYMENT_PENDING,
            payment_method=Order.COD,
            history="COD order confirmed",
        )
        return self._finalize_order(quote, checkout, outcome, user_id=user_id, files=files)

    # ---------- asynchronous gateway ----------
    def initiate_async(self, checkout, user_id: str = "", files=None, redirect_url: str | None = None,
                       callback_url: str | None = None) -> dict:
        """Store a PENDING order and open a hosted pay page for it.

        Stock and coupon are left alone until the payment is confirmed.
        """
        quote = self.quote(checkout.lines, checkout.coupon_code)
        order_number = generate_order_number()
        assets = self._upload(checkout, files, order_number)
        try:
            with transaction.atomic(using=self.using):
                order = self._persist(quote, checkout, order_number, user_id, assets,
                                      status=Order.PENDING, payment_status=Order.PAYMENT_PENDING,
                                      payment_method=Order.ONLINE)
        except Exception:
            self.uploader.discard([a.key for a in assets])
            raise

        try:
            result = self.async_gateway.initiate_payment(order.order_number, order.total_amount, user_id,
                                                         redirect_url=redirect_url, callback_url=callback_url)
        except PaymentGatewayError as e:
            self._orders().filter(pk=order.pk, payment_status=Order.PAYMENT_PENDING).update(
                payment_status=Order.PAYMENT_FAILED, phonepe_response_message=str(e)[:255],
                updated_at=timezone.now())
            raise

        mtid = result["merchantTransactionId"]
        self._orders().filter(pk=order.pk).update(phonepe_merchant_transaction_id=mtid, updated_at=timezone.now())
        order.phonepe_merchant_transaction_id = mtid
        logger.info("Order %s pending on PhonePe %s total=%s", order.order_number, mtid, order.total_amount)
        return {"order": order, "merchantTransactionId": mtid, "redirectUrl": result["redirectUrl"]}

    def handle_async_callback(self, merchant_transaction_id: str, advisory_code: str | None = None) -> Order:
        """Apply the gateway's authoritative status to the order.

        ``advisory_code`` (from a webhook body) is logged only; the status is
        always fetched from the gateway. Safe to call any number of times.
        """
        order = self._orders().filter(phonepe_merchant_transaction_id=merchant_transaction_id).first()
        if order is None:
            raise OrderNotFound(merchant_transaction_id)

        result = self.async_gateway.check_status(merchant_transaction_id)
        code = str(result.get("code") or "")
        data = result.get("data") or {}
        if advisory_code and advisory_code != code:
            logger.warning("Callback for %s said %s, gateway says %s", merchant_transaction_id, advisory_code, code)
        diag = {
            "phonepe_response_code": code[:64],
            "phonepe_response_message": str(result.get("message") or "")[:255],
            "updated_at": timezone.now(),
        }
        if data.get("transactionId"):
            diag["phonepe_transaction_id"] = str(data["transactionId"])[:64]
        instrument = (data.get("paymentInstrument") or {}).get("type")
        if instrument:
            diag["phonepe_payment_instrument_type"] = str(instrument)[:32]

        if code == phonepe.PAYMENT_SUCCESS:
            self._confirm_async(order, diag)
        elif code in phonepe.FAILURE_CODES:
            updated = self._orders().filter(pk=order.pk, status=Order.PENDING) \
                .exclude(payment_status=Order.PAYMENT_PAID) \
                .update(payment_status=Order.PAYMENT_FAILED, **diag)
            if updated:
                logger.info("Order %s payment failed: %s", order.order_number, code)
        else:
            self._orders().filter(pk=order.pk, payment_status=Order.PAYMENT_PENDING).update(**diag)
            logger.info("Order %s still pending at gateway: %s", order.order_number, code)

        order.refresh_from_db(using=self.using)
        return order

    def _confirm_async(self, order, diag: dict) -> None:
        with transaction.atomic(using=self.using):
            claimed = self._orders().filter(pk=order.pk, status=Order.PENDING) \
                .exclude(payment_status=Order.PAYMENT_PAID) \
                .update(status=Order.CONFIRMED, payment_status=Order.PAYMENT_PAID, **diag)
            if not claimed:
                late = self._orders().filter(pk=order.pk, status=Order.CANCELLED) \
                    .exclude(payment_status__in=[Order.PAYMENT_PAID, Order.PAYMENT_REFUNDED]) \
                    .update(payment_status=Order.PAYMENT_PAID, **diag)
                if late:
                    logger.warning("Order %s paid after it was cancelled; refund required", order.order_number)
                return

            order.refresh_from_db(using=self.using)
            try:
                with transaction.atomic(using=self.using):
                    self._commit_inventory(order, strict_coupon=False)
                    self._history(order, Order.CONFIRMED, "Order confirmed and payment received")
            except InsufficientStock as e:
                logger.warning("Order %s paid but out of stock (%s); cancelling for refund", order.order_number, e)
                self._orders().filter(pk=order.pk).update(status=Order.CANCELLED, stock_committed=False,
                                                          updated_at=timezone.now())
                order.status = Order.CANCELLED
                order.stock_committed = False
                self._history(order, Order.CANCELLED, f"Payment received but items are out of stock: {e}", SYSTEM)
                emit_on_commit(order_status_changed, order, using=self.using,
                               old_status=Order.PENDING, new_status=Order.CANCELLED)
                return
            emit_on_commit(order_confirmed, order, using=self.using)
        logger.info("Order %s confirmed via PhonePe %s", order.order_number, order.phonepe_merchant_transaction_id)

    def check_payment_status(self, merchant_transaction_id: str) -> Order:
        order = self._orders().filter(phonepe_merchant_transaction_id=merchant_transaction_id).first()
        if order is None:
            raise OrderNotFound(merchant_transaction_id)
        if order.is_paid:
            return order
        return self.handle_async_callback(merchant_transaction_id)

    def cancel_expired_pending_orders(self, hours: int | None = None, now=None) -> dict:
        if hours is None:
            hours = _orders_conf().get("PENDING_EXPIRY_HOURS", 24)
        cutoff = (now or timezone.now()) - timedelta(hours=hours)
        expired = list(self._orders().filter(status=Order.PENDING, created_at__lt=cutoff)
                       .exclude(payment_status=Order.PAYMENT_PAID))
        cancelled = []
        for order in expired:
            with transaction.atomic(using=self.using):
                updated = self._orders().filter(pk=order.pk, status=Order.PENDING) \
                    .exclude(payment_status=Order.PAYMENT_PAID) \
                    .update(status=Order.CANCELLED, payment_status=Order.PAYMENT_FAILED,
                            phonepe_response_message=f"Payment not completed within {hours} hours",
                            updated_at=timezone.now())
                if not updated:
                    continue
                self._history(order, Order.CANCELLED,
                              f"Order automatically cancelled due to incomplete payment within {hours} hours", SYSTEM)
            cancelled.append(order.order_number)
            logger.info("Auto-cancelled expired order %s", order.order_number)
        return {"cancelledCount": len(cancelled), "cancelledOrders": cancelled}

    # ---------- refunds ----------
    def _gateway_refund(self, order, amount: Decimal) -> str:
        if order.razorpay_payment_id:
            data = self.sync_gateway.refund(order.razorpay_payment_id, amount,
                                            idempotency_key=f"REFUND_{order.order_number}")
            return str(data.get("id") or "")
        if order.phonepe_merchant_transaction_id and order.phonepe_transaction_id:
            data = self.async_gateway.refund(order.phonepe_merchant_transaction_id, amount,
                                             idempotency_key=f"REFUND_{order.order_number}",
                                             user_id=order.user_id)
            body = data.get("data") or {}
            return str(body.get("transactionId") or body.get("merchantTransactionId") or "")
        raise RefundNotEligible("Order has no captured gateway payment to refund")

    def process_refund(self, order_id, amount=None, reason: str = "", admin_notes: str = "") -> Order:
        """Refund a paid order through the gateway that captured it.

        The gateway call happens under the order's row lock; if it fails
        nothing about the order or inventory changes.
        """
        with transaction.atomic(using=self.using):
            order = self._locked(order_id)
            if order.status == Order.REFUNDED or order.payment_status == Order.PAYMENT_REFUNDED:
                raise RefundNotEligible("Order has already been refunded")
            if not order.is_paid:
                raise RefundNotEligible("Cannot refund unpaid order")
            amount = money(amount) if amount not in (None, "") else order.total_amount
            if amount <= 0 or amount > order.total_amount:
                raise RefundNotEligible(f"Refund amount must be between 0.01 and {order.total_amount}")

            refund_id = self._gateway_refund(order, amount)

            old_status = order.status
            if order.stock_committed:
                self._restore_stock(order)
            order.status = Order.REFUNDED
            order.payment_status = Order.PAYMENT_REFUNDED
            order.stock_committed = False
            order.refund_id = refund_id[:64]
            order.refund_amount = amount
            order.refunded_at = timezone.now()
            if admin_notes:
                order.admin_notes = "\n".join(n for n in (order.admin_notes, admin_notes) if n)
            order.save(using=self.using, update_fields=[
                "status", "payment_status", "stock_committed", "refund_id", "refund_amount",
                "refunded_at", "admin_notes", "updated_at",
            ])
            self._history(order, Order.REFUNDED,
                          f"Order refunded. Amount: ₹{amount}. Reason: {reason or 'Not specified'}. "
                          f"Refund ID: {refund_id or '-'}", SYSTEM)
            refund = {"refund_id": refund_id, "amount": amount, "reason": reason, "old_status": old_status}
            emit_on_commit(order_refunded, order, using=self.using, refund=refund)
        logger.info("Order %s refunded %s (refund %s)", order.order_number, amount, refund_id)
        return order

    # ---------- admin transitions ----------
    def update_status(self, order_id, new_status: str, notes: str = "") -> Order:
        new_status = (new_status or "").strip().upper()
        with transaction.atomic(using=self.using):
            order = self._locked(order_id)
            old_status = order.status
            if notes:
                order.admin_notes = "\n".join(n for n in (order.admin_notes, notes) if n)
            if new_status == old_status:
                order.save(using=self.using, update_fields=["admin_notes", "updated_at"])
                return order
            check_transition(old_status, new_status)

            now = timezone.now()
            order.status = new_status
            if new_status == Order.SHIPPED and not order.shipped_at:
                order.shipped_at = now
            if new_status == Order.DELIVERED:
                order.delivered_at = order.delivered_at or now
                if order.payment_method == Order.COD and order.payment_status == Order.PAYMENT_PENDING:
                    # cash collected on delivery
                    order.payment_status = Order.PAYMENT_PAID
            if new_status == Order.CANCELLED and order.stock_committed \
                    and order.payment_status != Order.PAYMENT_PAID:
                self._restore_stock(order)
                order.stock_committed = False
            order.save(using=self.using)
            self._history(order, new_status, status_description(new_status))
            emit_on_commit(order_status_changed, order, using=self.using,
                           old_status=old_status, new_status=new_status)
        logger.info("Order %s status %s -> %s", order.order_number, old_status, new_status)
        return order

    def update_tracking(self, order_id, carrier: str, tracking_number: str, tracking_url: str = "",
                        estimated_delivery=None) -> Order:
        with transaction.atomic(using=self.using):
            order = self._locked(order_id)
            if order.status not in (Order.CONFIRMED, Order.PROCESSING, Order.SHIPPED):
                raise ValidationError(f"Cannot add tracking to a {order.status} order")
            old_status = order.status
            order.carrier = carrier
            order.tracking_number = tracking_number
            order.tracking_url = tracking_url or ""
            order.estimated_delivery = estimated_delivery
            order.status = Order.SHIPPED
            order.shipped_at = order.shipped_at or timezone.now()
            order.save(using=self.using)
            self._history(order, Order.SHIPPED, f"Order shipped via {carrier}. Tracking number: {tracking_number}")
            emit_on_commit(order_status_changed, order, using=self.using,
                           old_status=old_status, new_status=Order.SHIPPED)
        logger.info("Tracking for %s set: %s %s", order.order_number, carrier, tracking_number)
        return order


def get_service() -> OrderService:
    return OrderService()

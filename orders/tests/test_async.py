from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from orders.exceptions import OrderNotFound
from orders.models import Order
from orders.services import OrderService
from payments.exceptions import PaymentGatewayError
from payments.integrations.phonepe import PAYMENT_ERROR, PAYMENT_PENDING, PAYMENT_SUCCESS

from .factories import (
    FakeAsyncGateway,
    FakeSyncGateway,
    FakeUploader,
    line,
    make_checkout,
    make_coupon,
    make_product,
    make_variant,
)


class AsyncGatewayTests(TestCase):
    def setUp(self):
        self.gateway = FakeAsyncGateway()
        self.service = OrderService(sync_gateway=FakeSyncGateway(), async_gateway=self.gateway,
                                    uploader=FakeUploader())
        self.product = make_product(offer="100.00")
        self.variant = make_variant(self.product, stock=5)
        self.coupon = make_coupon("SAVE10")

    def _initiate(self, quantity=2, coupon="SAVE10"):
        result = self.service.initiate_async(make_checkout([line(self.product, self.variant, quantity)],
                                                          coupon=coupon), user_id="9")
        return result["order"], result["merchantTransactionId"]

    def _stock(self):
        self.variant.refresh_from_db()
        return self.variant.stock

    def _used(self):
        self.coupon.refresh_from_db()
        return self.coupon.used_count

    def test_initiate_stores_pending_order_without_inventory(self):
        order, mtid = self._initiate()
        order.refresh_from_db()
        self.assertEqual((order.status, order.payment_status), (Order.PENDING, Order.PAYMENT_PENDING))
        self.assertEqual(order.phonepe_merchant_transaction_id, mtid)
        self.assertEqual(order.total_amount, Decimal("180.00"))
        self.assertEqual(self.gateway.initiated, [(order.order_number, Decimal("180.00"), "9")])
        self.assertEqual(self._stock(), 5)
        self.assertEqual(self._used(), 0)
        self.assertFalse(order.stock_committed)

    def test_initiate_failure_marks_payment_failed(self):
        self.gateway.fail_initiate = True
        with self.assertRaises(PaymentGatewayError):
            self._initiate()
        order = Order.objects.get()
        self.assertEqual((order.status, order.payment_status), (Order.PENDING, Order.PAYMENT_FAILED))
        self.assertIsNone(order.phonepe_merchant_transaction_id)

    def test_success_confirms_and_takes_inventory(self):
        order, mtid = self._initiate()
        order = self.service.handle_async_callback(mtid, advisory_code=PAYMENT_SUCCESS)
        self.assertEqual((order.status, order.payment_status), (Order.CONFIRMED, Order.PAYMENT_PAID))
        self.assertEqual(order.phonepe_transaction_id, "T2410171234")
        self.assertEqual(order.phonepe_payment_instrument_type, "UPI")
        self.assertEqual(self._stock(), 3)
        self.assertEqual(self._used(), 1)
        self.assertEqual(order.tracking_history.get().status, Order.CONFIRMED)

    def test_duplicate_success_applies_side_effects_once(self):
        order, mtid = self._initiate()
        self.service.handle_async_callback(mtid)
        self.service.handle_async_callback(mtid)
        self.service.check_payment_status(mtid)
        self.assertEqual(self._stock(), 3)
        self.assertEqual(self._used(), 1)
        self.assertEqual(order.tracking_history.count(), 1)

    def test_error_marks_failed_without_touching_stock(self):
        self.gateway.code = PAYMENT_ERROR
        order, mtid = self._initiate()
        order = self.service.handle_async_callback(mtid)
        self.assertEqual(order.payment_status, Order.PAYMENT_FAILED)
        self.assertEqual(order.status, Order.PENDING)
        self.assertEqual(order.phonepe_response_code, PAYMENT_ERROR)
        self.assertEqual(self._stock(), 5)
        self.assertEqual(self._used(), 0)

    def test_gateway_status_beats_callback_claim(self):
        self.gateway.code = PAYMENT_ERROR
        order, mtid = self._initiate()
        order = self.service.handle_async_callback(mtid, advisory_code=PAYMENT_SUCCESS)
        self.assertEqual(order.payment_status, Order.PAYMENT_FAILED)
        self.assertEqual(self._stock(), 5)

    def test_pending_records_code_only(self):
        self.gateway.code = PAYMENT_PENDING
        order, mtid = self._initiate()
        order = self.service.handle_async_callback(mtid)
        self.assertEqual((order.status, order.payment_status), (Order.PENDING, Order.PAYMENT_PENDING))
        self.assertEqual(order.phonepe_response_code, PAYMENT_PENDING)
        self.assertFalse(order.tracking_history.exists())

    def test_failure_after_success_is_ignored(self):
        order, mtid = self._initiate()
        self.service.handle_async_callback(mtid)
        self.gateway.code = PAYMENT_ERROR
        order = self.service.handle_async_callback(mtid)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)

    def test_unknown_transaction(self):
        with self.assertRaises(OrderNotFound):
            self.service.handle_async_callback("MT_DOES_NOT_EXIST")
        self.assertEqual(self.gateway.status_calls, [])

    def test_paid_status_check_skips_gateway(self):
        order, mtid = self._initiate()
        self.service.handle_async_callback(mtid)
        calls = len(self.gateway.status_calls)
        order = self.service.check_payment_status(mtid)
        self.assertEqual(order.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(len(self.gateway.status_calls), calls)

    def test_sold_out_at_confirmation_cancels_paid_order(self):
        order, mtid = self._initiate(quantity=4)
        self.variant.stock = 1
        self.variant.save()

        order = self.service.handle_async_callback(mtid)

        self.assertEqual((order.status, order.payment_status), (Order.CANCELLED, Order.PAYMENT_PAID))
        self.assertFalse(order.stock_committed)
        self.assertEqual(self._stock(), 1)
        self.assertEqual(self._used(), 0)
        self.assertEqual(list(order.tracking_history.values_list("status", flat=True)), [Order.CANCELLED])

        order = self.service.process_refund(order.pk)
        self.assertEqual(order.status, Order.REFUNDED)
        self.assertEqual(self._stock(), 1)
        self.assertEqual(self.gateway.refunds, [(mtid, Decimal("360.00"), f"REFUND_{order.order_number}")])

    def test_async_refund_restores_stock(self):
        order, mtid = self._initiate()
        self.service.handle_async_callback(mtid)
        order = self.service.process_refund(order.pk, reason="Customer request")
        self.assertEqual(order.refund_id, "TR_REFUND_1")
        self.assertEqual(self._stock(), 5)


class ExpirySweepTests(TestCase):
    def setUp(self):
        self.gateway = FakeAsyncGateway()
        self.service = OrderService(sync_gateway=FakeSyncGateway(), async_gateway=self.gateway,
                                    uploader=FakeUploader())
        product = make_product()
        self.items = [line(product, make_variant(product, stock=5), 1)]

    def _pending(self, hours_old):
        result = self.service.initiate_async(make_checkout(self.items))
        order = result["order"]
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(hours=hours_old))
        return order, result["merchantTransactionId"]

    def test_sweeps_only_old_unpaid_orders(self):
        old, _ = self._pending(30)
        fresh, _ = self._pending(2)
        paid, paid_mtid = self._pending(30)
        self.service.handle_async_callback(paid_mtid)

        result = self.service.cancel_expired_pending_orders()

        self.assertEqual(result, {"cancelledCount": 1, "cancelledOrders": [old.order_number]})
        old.refresh_from_db()
        self.assertEqual((old.status, old.payment_status), (Order.CANCELLED, Order.PAYMENT_FAILED))
        self.assertEqual(old.phonepe_response_message, "Payment not completed within 24 hours")
        entry = old.tracking_history.get()
        self.assertEqual(entry.description, "Order automatically cancelled due to incomplete payment within 24 hours")
        self.assertEqual(entry.location, "System")
        fresh.refresh_from_db()
        self.assertEqual(fresh.status, Order.PENDING)
        paid.refresh_from_db()
        self.assertEqual(paid.status, Order.CONFIRMED)

    def test_zero_hours_is_not_the_default(self):
        order, _ = self._pending(2)
        result = self.service.cancel_expired_pending_orders(hours=0)
        self.assertEqual(result["cancelledOrders"], [order.order_number])
        order.refresh_from_db()
        self.assertEqual(order.phonepe_response_message, "Payment not completed within 0 hours")

    def test_late_payment_after_sweep_stays_cancelled_but_paid(self):
        order, mtid = self._pending(30)
        self.service.cancel_expired_pending_orders()
        order = self.service.handle_async_callback(mtid)
        self.assertEqual((order.status, order.payment_status), (Order.CANCELLED, Order.PAYMENT_PAID))
        self.assertFalse(order.stock_committed)

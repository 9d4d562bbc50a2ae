from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from orders.models import Order
from orders.services import OrderService

from .factories import FakeAsyncGateway, FakeSyncGateway, FakeUploader, line, make_checkout, make_product, make_variant


class CommandTests(TestCase):
    def setUp(self):
        self.gateway = FakeAsyncGateway()
        self.service = OrderService(sync_gateway=FakeSyncGateway(), async_gateway=self.gateway,
                                    uploader=FakeUploader())
        product = make_product()
        self.variant = make_variant(product, stock=5)
        self.items = [line(product, self.variant, 1)]

    def _pending(self, minutes_old):
        order = self.service.initiate_async(make_checkout(self.items))["order"]
        Order.objects.filter(pk=order.pk).update(created_at=timezone.now() - timedelta(minutes=minutes_old))
        return order

    def test_cancel_expired_orders(self):
        old = self._pending(26 * 60)
        self._pending(10)
        out = StringIO()
        call_command("cancel_expired_orders", stdout=out)
        self.assertIn(f"Order {old.order_number} -> CANCELLED", out.getvalue())
        self.assertIn("Cancelled 1 expired orders.", out.getvalue())
        self.assertEqual(Order.objects.filter(status=Order.CANCELLED).count(), 1)

    def test_cancel_expired_orders_custom_window(self):
        self._pending(3 * 60)
        out = StringIO()
        call_command("cancel_expired_orders", "--hours", "2", stdout=out)
        self.assertIn("Cancelled 1 expired orders.", out.getvalue())

    @patch("orders.management.commands.reconcile_pending_orders.get_service")
    def test_reconcile_confirms_paid_orders(self, mock_service):
        mock_service.return_value = self.service
        old = self._pending(30)
        recent = self._pending(1)

        out = StringIO()
        call_command("reconcile_pending_orders", stdout=out)

        self.assertIn("Checked 1, confirmed 1 orders.", out.getvalue())
        self.assertEqual(self.gateway.status_calls, [old.phonepe_merchant_transaction_id])
        old.refresh_from_db()
        recent.refresh_from_db()
        self.assertEqual(old.payment_status, Order.PAYMENT_PAID)
        self.assertEqual(recent.payment_status, Order.PAYMENT_PENDING)
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 4)

    @patch("orders.management.commands.reconcile_pending_orders.get_service")
    def test_reconcile_reports_unpaid(self, mock_service):
        mock_service.return_value = self.service
        self.gateway.code = "PAYMENT_PENDING"
        order = self._pending(30)
        out = StringIO()
        call_command("reconcile_pending_orders", "--max", "5", stdout=out)
        self.assertIn(f"Order {order.order_number}: PENDING (PAYMENT_PENDING)", out.getvalue())
        self.assertIn("Checked 1, confirmed 0 orders.", out.getvalue())

import base64
import hashlib
import json
from decimal import Decimal
from unittest.mock import Mock, patch

from django.test import TestCase
from django.urls import reverse

from orders.models import Order, OrderItem

from .factories import SHIPPING, make_coupon, make_product, make_variant

SALT = "salt-key"


def _signed(body: dict):
    encoded = base64.b64encode(json.dumps(body).encode()).decode()
    x_verify = hashlib.sha256((encoded + SALT).encode()).hexdigest() + "###1"
    return encoded, x_verify


def _status_response(code, mtid, status_code=200):
    resp = Mock(status_code=status_code, text="")
    resp.json.return_value = {
        "success": code == "PAYMENT_SUCCESS",
        "code": code,
        "message": "Your payment is successful." if code == "PAYMENT_SUCCESS" else "Payment failed",
        "data": {
            "merchantId": "MERCHANTUAT",
            "merchantTransactionId": mtid,
            "transactionId": "T2410171234",
            "amount": 20000,
            "paymentInstrument": {"type": "UPI"},
        },
    }
    return resp


class PhonePeCallbackTests(TestCase):
    def setUp(self):
        product = make_product(offer="100.00")
        self.variant = make_variant(product, stock=5)
        self.coupon = make_coupon("SAVE10")
        self.order = Order.objects.create(
            order_number="ORD-1729150000000-ABC123",
            subtotal=Decimal("200.00"), discount=Decimal("20.00"), total_amount=Decimal("180.00"),
            coupon=self.coupon, phonepe_merchant_transaction_id="MT2410171200001A2B3C4D", **SHIPPING,
        )
        OrderItem.objects.create(order=self.order, product=product, product_variant=self.variant,
                                 quantity=2, price=Decimal("100.00"))
        self.url = reverse("orders:phonepe_callback")

    def _post(self, code="PAYMENT_SUCCESS", mtid=None, x_verify=None):
        mtid = mtid or self.order.phonepe_merchant_transaction_id
        encoded, good = _signed({"success": True, "code": code, "data": {"merchantTransactionId": mtid}})
        return self.client.post(self.url, data=json.dumps({"response": encoded}), content_type="application/json",
                                HTTP_X_VERIFY=x_verify or good)

    @patch("payments.integrations.phonepe.requests.get")
    def test_success_callback_confirms_order(self, mget):
        mget.return_value = _status_response("PAYMENT_SUCCESS", self.order.phonepe_merchant_transaction_id)
        resp = self._post()
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual((self.order.status, self.order.payment_status), (Order.CONFIRMED, Order.PAYMENT_PAID))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 3)

        called_url = mget.call_args[0][0]
        self.assertTrue(called_url.endswith("/pg/v1/status/MERCHANTUAT/MT2410171200001A2B3C4D"))
        headers = mget.call_args[1]["headers"]
        path = "/pg/v1/status/MERCHANTUAT/MT2410171200001A2B3C4D"
        self.assertEqual(headers["X-VERIFY"], hashlib.sha256((path + SALT).encode()).hexdigest() + "###1")

    @patch("payments.integrations.phonepe.requests.get")
    def test_duplicate_delivery_takes_stock_once(self, mget):
        mget.return_value = _status_response("PAYMENT_SUCCESS", self.order.phonepe_merchant_transaction_id)
        self.assertEqual(self._post().status_code, 200)
        self.assertEqual(self._post().status_code, 200)
        self.variant.refresh_from_db()
        self.coupon.refresh_from_db()
        self.assertEqual(self.variant.stock, 3)
        self.assertEqual(self.coupon.used_count, 1)
        self.assertEqual(self.order.tracking_history.count(), 1)

    @patch("payments.integrations.phonepe.requests.get")
    def test_error_callback_marks_failed(self, mget):
        mget.return_value = _status_response("PAYMENT_ERROR", self.order.phonepe_merchant_transaction_id, 400)
        resp = self._post(code="PAYMENT_ERROR")
        self.assertEqual(resp.status_code, 200)
        self.order.refresh_from_db()
        self.assertEqual((self.order.status, self.order.payment_status), (Order.PENDING, Order.PAYMENT_FAILED))
        self.variant.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)

    @patch("payments.integrations.phonepe.requests.get")
    def test_bad_checksum_rejected(self, mget):
        resp = self._post(x_verify="deadbeef###1")
        self.assertEqual(resp.status_code, 401)
        mget.assert_not_called()
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    @patch("payments.integrations.phonepe.requests.get")
    def test_unknown_transaction_acknowledged(self, mget):
        resp = self._post(mtid="MT_NOT_OURS")
        self.assertEqual(resp.status_code, 202)
        mget.assert_not_called()

    @patch("payments.integrations.phonepe.requests.get")
    def test_gateway_outage_asks_for_retry(self, mget):
        mget.return_value = Mock(status_code=503, text="unavailable", json=Mock(side_effect=ValueError))
        resp = self._post()
        self.assertEqual(resp.status_code, 502)
        self.order.refresh_from_db()
        self.assertEqual(self.order.payment_status, Order.PAYMENT_PENDING)

    def test_get_not_allowed(self):
        self.assertEqual(self.client.get(self.url).status_code, 400)

    def test_invalid_json(self):
        resp = self.client.post(self.url, data="nope", content_type="application/json")
        self.assertEqual(resp.status_code, 400)

import base64
import hashlib
import hmac
import json
from decimal import Decimal
from unittest.mock import Mock, patch

from django.test import SimpleTestCase
from requests import RequestException

from payments.integrations.phonepe import PhonePeError, PhonePeGateway
from payments.integrations.razorpay import RazorpayError, RazorpayGateway


def _resp(status_code=200, payload=None, text=""):
    resp = Mock(status_code=status_code, text=text)
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


class RazorpayGatewayTests(SimpleTestCase):
    def setUp(self):
        self.gw = RazorpayGateway("rzp_key", "rzp_secret", base_url="https://rzp.example.com/")

    def test_verify_signature(self):
        sig = hmac.new(b"rzp_secret", b"order_1|pay_1", hashlib.sha256).hexdigest()
        self.assertTrue(self.gw.verify("order_1", "pay_1", sig))
        self.assertFalse(self.gw.verify("order_1", "pay_2", sig))
        self.assertFalse(self.gw.verify("order_1", "pay_1", ""))

    def test_verify_without_secret(self):
        with self.assertRaises(RazorpayError):
            RazorpayGateway("rzp_key", "").verify("order_1", "pay_1", "x")

    @patch("payments.integrations.razorpay.requests.post")
    def test_create_intent_in_paise(self, mpost):
        mpost.return_value = _resp(200, {"id": "order_ABC", "amount": 18050})
        data = self.gw.create_intent(Decimal("180.50"), receipt="ORD-1")
        self.assertEqual(data["id"], "order_ABC")
        url = mpost.call_args[0][0]
        kwargs = mpost.call_args[1]
        self.assertEqual(url, "https://rzp.example.com/v1/orders")
        self.assertEqual(kwargs["json"], {"amount": 18050, "currency": "INR", "receipt": "ORD-1",
                                          "payment_capture": 1})
        self.assertEqual((kwargs["auth"].username, kwargs["auth"].password), ("rzp_key", "rzp_secret"))

    @patch("payments.integrations.razorpay.requests.post")
    def test_create_intent_http_error(self, mpost):
        mpost.return_value = _resp(401, {"error": {"code": "BAD_REQUEST_ERROR"}})
        with self.assertRaises(RazorpayError) as ctx:
            self.gw.create_intent(100)
        self.assertIn("Check KEY_ID/KEY_SECRET", str(ctx.exception))

    @patch("payments.integrations.razorpay.requests.post")
    def test_network_failure(self, mpost):
        mpost.side_effect = RequestException("timed out")
        with self.assertRaises(RazorpayError):
            self.gw.create_intent(100)

    @patch("payments.integrations.razorpay.requests.post")
    def test_refund(self, mpost):
        mpost.return_value = _resp(200, {"id": "rfnd_1", "amount": 5000})
        data = self.gw.refund("pay_1", Decimal("50"), idempotency_key="REFUND_ORD-1")
        self.assertEqual(data["id"], "rfnd_1")
        self.assertEqual(mpost.call_args[0][0], "https://rzp.example.com/v1/payments/pay_1/refund")
        self.assertEqual(mpost.call_args[1]["json"], {"amount": 5000, "receipt": "REFUND_ORD-1"})

    @patch("payments.integrations.razorpay.requests.get")
    def test_fetch_payment(self, mget):
        mget.return_value = _resp(200, {"id": "pay_1", "order_id": "order_1", "amount": 18000,
                                        "status": "captured"})
        data = self.gw.fetch_payment("pay_1")
        self.assertEqual((data["order_id"], data["amount"]), ("order_1", 18000))
        self.assertEqual(mget.call_args[0][0], "https://rzp.example.com/v1/payments/pay_1")
        self.assertEqual(mget.call_args[1]["auth"].username, "rzp_key")

    @patch("payments.integrations.razorpay.requests.get")
    def test_fetch_unknown_payment(self, mget):
        mget.return_value = _resp(404, {"error": {"code": "BAD_REQUEST_ERROR"}})
        with self.assertRaises(RazorpayError):
            self.gw.fetch_payment("pay_missing")

    def test_missing_credentials(self):
        with self.assertRaises(RazorpayError):
            RazorpayGateway("", "").create_intent(100)


class PhonePeGatewayTests(SimpleTestCase):
    def setUp(self):
        self.gw = PhonePeGateway("MERCHANT", "salt", "2", base_url="https://pp.example.com",
                                 redirect_url="https://shop.example.com/return",
                                 callback_url="https://shop.example.com/cb")

    def _checksum(self, message):
        return hashlib.sha256((message + "salt").encode()).hexdigest() + "###2"

    def test_verify_callback(self):
        encoded = base64.b64encode(b'{"code": "PAYMENT_SUCCESS"}').decode()
        self.assertTrue(self.gw.verify_callback(encoded, self._checksum(encoded)))
        self.assertFalse(self.gw.verify_callback(encoded, self._checksum(encoded + "x")))
        self.assertFalse(self.gw.verify_callback(encoded, ""))
        self.assertEqual(self.gw.decode_callback(encoded), {"code": "PAYMENT_SUCCESS"})

    def test_decode_garbage(self):
        with self.assertRaises(PhonePeError):
            self.gw.decode_callback("not base64 at all!")

    @patch("payments.integrations.phonepe.requests.post")
    def test_initiate_payment(self, mpost):
        mpost.return_value = _resp(200, {
            "success": True,
            "code": "PAYMENT_INITIATED",
            "data": {"instrumentResponse": {"redirectInfo": {"url": "https://mercury.example.com/pay/1"}}},
        })
        result = self.gw.initiate_payment("ORD-1", Decimal("180.00"), user_id="user 9")

        self.assertEqual(result["redirectUrl"], "https://mercury.example.com/pay/1")
        self.assertTrue(result["merchantTransactionId"].startswith("MT"))
        self.assertEqual(mpost.call_args[0][0], "https://pp.example.com/pg/v1/pay")
        encoded = mpost.call_args[1]["json"]["request"]
        self.assertEqual(mpost.call_args[1]["headers"]["X-VERIFY"], self._checksum(encoded + "/pg/v1/pay"))
        sent = json.loads(base64.b64decode(encoded))
        self.assertEqual(sent["amount"], 18000)
        self.assertEqual(sent["merchantUserId"], "user9")
        self.assertEqual(sent["merchantTransactionId"], result["merchantTransactionId"])
        self.assertEqual(sent["callbackUrl"], "https://shop.example.com/cb")

    @patch("payments.integrations.phonepe.requests.post")
    def test_initiate_rejected(self, mpost):
        mpost.return_value = _resp(400, {"success": False, "code": "BAD_REQUEST", "message": "Invalid amount"})
        with self.assertRaises(PhonePeError) as ctx:
            self.gw.initiate_payment("ORD-1", 10, user_id="")
        self.assertIn("BAD_REQUEST", str(ctx.exception))

    def test_initiate_needs_urls(self):
        gw = PhonePeGateway("MERCHANT", "salt")
        with self.assertRaises(PhonePeError):
            gw.initiate_payment("ORD-1", 10, user_id="")

    @patch("payments.integrations.phonepe.requests.get")
    def test_status_non_success_is_returned(self, mget):
        mget.return_value = _resp(400, {"success": False, "code": "PAYMENT_ERROR", "message": "Failed"})
        data = self.gw.check_status("MT123")
        self.assertEqual(data["code"], "PAYMENT_ERROR")
        self.assertEqual(data["data"], {})
        headers = mget.call_args[1]["headers"]
        self.assertEqual(headers["X-VERIFY"], self._checksum("/pg/v1/status/MERCHANT/MT123"))
        self.assertEqual(headers["X-MERCHANT-ID"], "MERCHANT")

    @patch("payments.integrations.phonepe.requests.get")
    def test_status_server_error_raises(self, mget):
        mget.return_value = _resp(500, None, text="oops")
        with self.assertRaises(PhonePeError):
            self.gw.check_status("MT123")

    def test_refund_requires_idempotency_key(self):
        with self.assertRaises(PhonePeError):
            self.gw.refund("MT123", 10, idempotency_key="")

    @patch("payments.integrations.phonepe.requests.post")
    def test_refund(self, mpost):
        mpost.return_value = _resp(200, {"success": True, "code": "PAYMENT_SUCCESS",
                                         "data": {"transactionId": "TR1"}})
        data = self.gw.refund("MT123", Decimal("50.00"), idempotency_key="REFUND_ORD-1")
        self.assertEqual(data["data"]["transactionId"], "TR1")
        sent = json.loads(base64.b64decode(mpost.call_args[1]["json"]["request"]))
        self.assertEqual(sent["originalTransactionId"], "MT123")
        self.assertEqual(sent["merchantTransactionId"], "REFUND_ORD-1")
        self.assertEqual(sent["amount"], 5000)

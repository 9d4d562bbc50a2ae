import hashlib
import hmac
import json
import logging
import time
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings
from requests import RequestException
from requests.auth import HTTPBasicAuth

from payments.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.razorpay.com"
COMMON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class RazorpayError(PaymentGatewayError):
    pass


def _to_paise(amount) -> int:
    try:
        q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except Exception:
        raise RazorpayError("Invalid amount value")
    return int(q * 100)


def _hint(status_code: int) -> str:
    if status_code == 401:
        return "Check KEY_ID/KEY_SECRET."
    if status_code == 400:
        return "Bad request: amount/currency/payment id."
    if status_code in (404, 500, 502, 503):
        return f"Gateway error {status_code}."
    return f"HTTP {status_code}"


class RazorpayGateway:
    """Checkout-widget gateway: the client pays against an order id we create,
    then hands back ``order_id``/``payment_id``/``signature`` for us to verify.
    """

    def __init__(self, key_id: str, key_secret: str, base_url: str = DEFAULT_BASE_URL, timeout: float = 30):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "RazorpayGateway":
        conf = getattr(settings, "RAZORPAY", {}) or {}
        return cls(
            key_id=conf.get("KEY_ID", ""),
            key_secret=conf.get("KEY_SECRET", ""),
            base_url=conf.get("BASE_URL", DEFAULT_BASE_URL),
            timeout=conf.get("TIMEOUT", 30),
        )

    def _auth(self) -> HTTPBasicAuth:
        if not (self.key_id and self.key_secret):
            raise RazorpayError("Missing RAZORPAY KEY_ID/KEY_SECRET")
        return HTTPBasicAuth(self.key_id, self.key_secret)

    def _request(self, method: str, path: str, action: str, payload: dict | None = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            if method == "GET":
                resp = requests.get(url, headers=COMMON_HEADERS, auth=self._auth(), timeout=self.timeout)
            else:
                resp = requests.post(url, json=payload, headers=COMMON_HEADERS, auth=self._auth(),
                                     timeout=self.timeout)
        except RequestException as e:
            raise RazorpayError(f"Gateway request failed: {e}")
        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text}
        if 200 <= resp.status_code < 300:
            return data
        raise RazorpayError(f"{action} failed: {_hint(resp.status_code)} Response: {json.dumps(data)[:800]}")

    def create_intent(self, amount, currency: str = "INR", receipt: str | None = None) -> dict:
        """Create the gateway order the checkout widget pays against.

        Returns the gateway payload; ``id`` is the value the client sends back
        as ``razorpay_order_id``.
        """
        payload = {
            "amount": _to_paise(amount),
            "currency": currency or "INR",
            "receipt": receipt or f"receipt_{int(time.time() * 1000)}",
            "payment_capture": 1,
        }
        data = self._request("POST", "/v1/orders", "Create order", payload)
        if not data.get("id"):
            raise RazorpayError("Gateway did not return an order id")
        logger.info("Razorpay order %s created for %s %s", data["id"], payload["currency"], amount)
        return data

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            raise RazorpayError("Missing RAZORPAY KEY_SECRET")
        msg = f"{order_id or ''}|{payment_id or ''}".encode()
        expected = hmac.new(self.key_secret.encode(), msg, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, (signature or "").strip())

    def fetch_payment(self, payment_id: str) -> dict:
        """Payment as the gateway recorded it (``order_id``, ``amount`` in paise, ``status``)."""
        if not payment_id:
            raise RazorpayError("Missing payment id")
        return self._request("GET", f"/v1/payments/{payment_id}", "Fetch payment")

    def refund(self, payment_id: str, amount, idempotency_key: str | None = None) -> dict:
        if not payment_id:
            raise RazorpayError("Missing payment id for refund")
        payload = {"amount": _to_paise(amount)}
        if idempotency_key:
            payload["receipt"] = idempotency_key
        data = self._request("POST", f"/v1/payments/{payment_id}/refund", "Refund", payload)
        logger.info("Razorpay refund %s issued for payment %s", data.get("id"), payment_id)
        return data

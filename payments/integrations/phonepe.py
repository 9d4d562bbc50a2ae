import base64
import hashlib
import hmac
import json
import logging
import re
import secrets
from decimal import Decimal, ROUND_HALF_UP

import requests
from django.conf import settings
from django.utils import timezone
from requests import RequestException

from payments.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api-preprod.phonepe.com/apis/pg-sandbox"
PAY_PATH = "/pg/v1/pay"
REFUND_PATH = "/pg/v1/refund"

PAYMENT_SUCCESS = "PAYMENT_SUCCESS"
PAYMENT_ERROR = "PAYMENT_ERROR"
PAYMENT_FAILED = "PAYMENT_FAILED"
PAYMENT_PENDING = "PAYMENT_PENDING"
FAILURE_CODES = {PAYMENT_ERROR, PAYMENT_FAILED}


class PhonePeError(PaymentGatewayError):
    pass


def _sanitize_id(value: str, max_len: int = 35) -> str:
    return re.sub(r"[^A-Za-z0-9_-]", "", value or "")[:max_len]


def _to_paise(amount) -> int:
    try:
        q = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except Exception:
        raise PhonePeError("Invalid amount value")
    return int(q * 100)


def generate_merchant_transaction_id(prefix: str = "MT") -> str:
    ts = timezone.now().strftime("%y%m%d%H%M%S")
    return f"{prefix}{ts}{secrets.token_hex(4).upper()}"


class PhonePeGateway:
    """Redirect gateway: we create a pay page, the customer pays there and the
    result reaches us later through the server callback or a status poll.
    """

    def __init__(self, merchant_id: str, salt_key: str, salt_index: str = "1",
                 base_url: str = DEFAULT_BASE_URL, redirect_url: str = "", callback_url: str = "",
                 timeout: float = 30):
        self.merchant_id = merchant_id
        self.salt_key = salt_key
        self.salt_index = str(salt_index or "1")
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.redirect_url = redirect_url
        self.callback_url = callback_url
        self.timeout = timeout

    @classmethod
    def from_settings(cls) -> "PhonePeGateway":
        conf = getattr(settings, "PHONEPE", {}) or {}
        return cls(
            merchant_id=conf.get("MERCHANT_ID", ""),
            salt_key=conf.get("SALT_KEY", ""),
            salt_index=conf.get("SALT_INDEX", "1"),
            base_url=conf.get("BASE_URL", DEFAULT_BASE_URL),
            redirect_url=conf.get("REDIRECT_URL", ""),
            callback_url=conf.get("CALLBACK_URL", ""),
            timeout=conf.get("TIMEOUT", 30),
        )

    # ---------- checksums ----------
    def _checksum(self, message: str) -> str:
        if not (self.merchant_id and self.salt_key):
            raise PhonePeError("Missing PHONEPE MERCHANT_ID/SALT_KEY")
        digest = hashlib.sha256((message + self.salt_key).encode("utf-8")).hexdigest()
        return f"{digest}###{self.salt_index}"

    def verify_callback(self, response_b64: str, x_verify: str) -> bool:
        """Check the ``X-VERIFY`` header the gateway sends with a server callback."""
        if not (response_b64 and x_verify and self.merchant_id and self.salt_key):
            return False
        expected = self._checksum(response_b64)
        return hmac.compare_digest(expected, x_verify.strip())

    @staticmethod
    def decode_callback(response_b64: str) -> dict:
        try:
            return json.loads(base64.b64decode(response_b64).decode("utf-8"))
        except (ValueError, TypeError):
            raise PhonePeError("Malformed callback payload")

    # ---------- API calls ----------
    def _signed_post(self, path: str, payload: dict, action: str) -> dict:
        encoded = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self._checksum(encoded + path),
        }
        try:
            resp = requests.post(f"{self.base_url}{path}", json={"request": encoded}, headers=headers,
                                 timeout=self.timeout)
        except RequestException as e:
            raise PhonePeError(f"Gateway request failed: {e}")
        try:
            data = resp.json()
        except ValueError:
            raise PhonePeError(f"{action} failed: HTTP {resp.status_code}. Response: {resp.text[:800]}")
        if resp.status_code != 200 or not data.get("success"):
            raise PhonePeError(f"{action} failed: {data.get('code') or resp.status_code} {data.get('message', '')}".strip())
        return data

    def initiate_payment(self, order_id, amount, user_id, redirect_url: str | None = None,
                         callback_url: str | None = None) -> dict:
        """Create a hosted pay page for ``order_id``.

        Returns ``{"merchantTransactionId", "redirectUrl", "raw"}``; the caller
        must store the merchant transaction id before sending the customer away.
        """
        redirect_url = redirect_url or self.redirect_url
        callback_url = callback_url or self.callback_url
        if not (redirect_url and callback_url):
            raise PhonePeError("Missing redirect/callback URL")
        merchant_txn_id = generate_merchant_transaction_id()
        payload = {
            "merchantId": self.merchant_id,
            "merchantTransactionId": merchant_txn_id,
            "merchantUserId": _sanitize_id(str(user_id or ""), 36) or "GUEST",
            "amount": _to_paise(amount),
            "redirectUrl": redirect_url,
            "redirectMode": "POST",
            "callbackUrl": callback_url,
            "paymentInstrument": {"type": "PAY_PAGE"},
        }
        data = self._signed_post(PAY_PATH, payload, "Initiate payment")
        redirect = ((data.get("data") or {}).get("instrumentResponse") or {}).get("redirectInfo") or {}
        if not redirect.get("url"):
            raise PhonePeError("Gateway did not return a payment link")
        logger.info("PhonePe payment %s initiated for order %s", merchant_txn_id, order_id)
        return {"merchantTransactionId": merchant_txn_id, "redirectUrl": redirect["url"], "raw": data}

    def check_status(self, merchant_transaction_id: str) -> dict:
        """Authoritative payment status for a merchant transaction.

        The gateway answers non-success states with 4xx bodies that still carry
        a ``code``; those are returned, not raised.
        """
        mtid = _sanitize_id(merchant_transaction_id)
        if not mtid:
            raise PhonePeError("Missing merchant transaction id")
        path = f"/pg/v1/status/{self.merchant_id}/{mtid}"
        headers = {
            "Content-Type": "application/json",
            "X-VERIFY": self._checksum(path),
            "X-MERCHANT-ID": self.merchant_id,
        }
        try:
            resp = requests.get(f"{self.base_url}{path}", headers=headers, timeout=self.timeout)
        except RequestException as e:
            raise PhonePeError(f"Gateway request failed: {e}")
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 500 or not data.get("code"):
            raise PhonePeError(f"Status check failed: HTTP {resp.status_code}. Response: {resp.text[:800]}")
        data.setdefault("data", {})
        return data

    def refund(self, original_transaction_id: str, amount, idempotency_key: str,
               user_id: str = "", callback_url: str | None = None) -> dict:
        if not original_transaction_id:
            raise PhonePeError("Missing original transaction id for refund")
        if not idempotency_key:
            raise PhonePeError("Missing idempotency key for refund")
        payload = {
            "merchantId": self.merchant_id,
            "merchantUserId": _sanitize_id(str(user_id or ""), 36) or "GUEST",
            "originalTransactionId": original_transaction_id,
            "merchantTransactionId": _sanitize_id(idempotency_key),
            "amount": _to_paise(amount),
            "callbackUrl": callback_url or self.callback_url,
        }
        data = self._signed_post(REFUND_PATH, payload, "Refund")
        logger.info("PhonePe refund %s accepted for %s", payload["merchantTransactionId"], original_transaction_id)
        return data

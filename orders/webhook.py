import json
import logging

from django.http import HttpResponse, HttpResponseBadRequest
from django.views.decorators.csrf import csrf_exempt

from payments.exceptions import PaymentGatewayError
from payments.integrations.phonepe import PhonePeError

from .exceptions import OrderNotFound
from .services import get_service

logger = logging.getLogger(__name__)


@csrf_exempt
def phonepe_callback(request):
    """Server-to-server payment notification.

    The body is ``{"response": <base64 json>}`` signed through ``X-VERIFY``.
    Its status code is only a hint; the service re-checks with the gateway.
    """
    if request.method != "POST":
        return HttpResponseBadRequest("POST only")

    try:
        payload = json.loads(request.body.decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return HttpResponseBadRequest("Invalid JSON")
    if not isinstance(payload, dict):
        return HttpResponseBadRequest("Invalid JSON")
    response_b64 = payload.get("response") or ""

    service = get_service()
    gateway = service.async_gateway
    if not gateway.verify_callback(response_b64, request.headers.get("X-VERIFY", "")):
        logger.warning("Rejected PhonePe callback with bad checksum")
        return HttpResponse("Unauthorized", status=401)

    try:
        body = gateway.decode_callback(response_b64)
    except PhonePeError:
        return HttpResponseBadRequest("Invalid callback payload")

    mtid = str((body.get("data") or {}).get("merchantTransactionId") or "")
    if not mtid:
        return HttpResponse("unknown order", status=202)

    try:
        order = service.handle_async_callback(mtid, advisory_code=body.get("code"))
    except OrderNotFound:
        logger.warning("PhonePe callback for unknown transaction %s", mtid)
        return HttpResponse("unknown order", status=202)
    except PaymentGatewayError:
        # non-2xx makes the gateway retry the callback later
        logger.exception("Status check failed for PhonePe transaction %s", mtid)
        return HttpResponse("status check failed", status=502)

    logger.info("PhonePe callback %s -> %s/%s", mtid, order.status, order.payment_status)
    return HttpResponse("ok")

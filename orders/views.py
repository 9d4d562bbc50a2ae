import json
import logging
from functools import wraps

from django.contrib.admin.views.decorators import staff_member_required
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from payments.exceptions import PaymentGatewayError

from . import reports
from .exceptions import (
    CustomAssetUploadFailed,
    InsufficientStock,
    OrderNotFound,
    PaymentVerificationFailed,
    ProductNotFound,
    ProductUnavailable,
    RefundNotEligible,
)
from .forms import (
    RazorpayConfirmForm,
    RefundForm,
    StatusUpdateForm,
    TrackingForm,
    clean_form,
    parse_checkout,
    parse_items,
)
from .serializers import serialize_order
from .services import get_service

logger = logging.getLogger(__name__)


def _error(message: str, status: int, **extra) -> JsonResponse:
    body = {"ok": False, "error": message}
    body.update({k: v for k, v in extra.items() if v is not None})
    return JsonResponse(body, status=status)


def api_view(view):
    """Map order workflow exceptions onto JSON error responses."""
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ValidationError as e:
            errors = e.message_dict if hasattr(e, "error_dict") else None
            return _error("; ".join(e.messages), 400, errors=errors)
        except PaymentVerificationFailed:
            return _error("Payment verification failed", 400)
        except (OrderNotFound, ProductNotFound) as e:
            return _error(str(e), 404)
        except (ProductUnavailable, InsufficientStock) as e:
            return _error(str(e), 409)
        except (RefundNotEligible, CustomAssetUploadFailed) as e:
            return _error(str(e), 400)
        except PaymentGatewayError as e:
            logger.warning("Gateway failure in %s: %s", view.__name__, e)
            return _error(f"Payment gateway error: {e}", 502)
    return wrapper


def _json_body(request):
    try:
        data = json.loads(request.body.decode("utf-8") or "{}")
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body")
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


def _checkout_body(request):
    """JSON body, or multipart with a ``payload`` JSON field plus image files."""
    if request.content_type == "multipart/form-data":
        try:
            return json.loads(request.POST.get("payload") or "{}"), request.FILES
        except ValueError:
            raise ValidationError("Invalid payload field")
    return _json_body(request), None


def _user_id(request) -> str:
    return str(request.user.pk) if request.user.is_authenticated else ""


def _ok(status=200, **data) -> JsonResponse:
    return JsonResponse({"ok": True, **data}, status=status)


# ---------- checkout ----------
@csrf_exempt
@require_POST
@api_view
def calculate_totals_view(request):
    body = _json_body(request)
    quote = get_service().quote(parse_items(body.get("items")), body.get("couponCode"))
    return _ok(totals=quote.as_dict())


@csrf_exempt
@require_POST
@login_required
@api_view
def razorpay_create_view(request):
    checkout = parse_checkout(_json_body(request))
    return _ok(**get_service().quote_and_initiate(checkout))


@csrf_exempt
@require_POST
@login_required
@api_view
def razorpay_verify_view(request):
    body, files = _checkout_body(request)
    confirm = clean_form(RazorpayConfirmForm, body).cleaned_data
    checkout = parse_checkout(body)
    order = get_service().verify_and_create(
        checkout,
        confirm["razorpay_order_id"],
        confirm["razorpay_payment_id"],
        confirm["razorpay_signature"],
        user_id=_user_id(request),
        files=files,
        order_number=body.get("orderNumber"),
    )
    return _ok(status=201, order=serialize_order(reports.get_order(order.pk)))


@csrf_exempt
@require_POST
@login_required
@api_view
def initiate_payment_view(request):
    body, files = _checkout_body(request)
    checkout = parse_checkout(body)
    result = get_service().initiate_async(checkout, user_id=_user_id(request), files=files)
    order = result["order"]
    return _ok(
        status=201,
        orderId=order.pk,
        orderNumber=order.order_number,
        merchantTransactionId=result["merchantTransactionId"],
        redirectUrl=result["redirectUrl"],
        totalAmount=str(order.total_amount),
    )


@csrf_exempt
@require_POST
@login_required
@api_view
def create_cod_order_view(request):
    body, files = _checkout_body(request)
    order = get_service().create_cod_order(parse_checkout(body), user_id=_user_id(request), files=files)
    return _ok(status=201, order=serialize_order(reports.get_order(order.pk)))


@require_GET
@api_view
def payment_status_view(request, merchant_transaction_id):
    order = get_service().check_payment_status(merchant_transaction_id)
    return _ok(
        orderNumber=order.order_number,
        status=order.status,
        paymentStatus=order.payment_status,
        responseCode=order.phonepe_response_code or None,
    )


# ---------- customer queries ----------
@require_GET
@login_required
@api_view
def my_orders_view(request):
    result = reports.get_user_orders(_user_id(request), page=request.GET.get("page"),
                                     limit=request.GET.get("limit"), status=request.GET.get("status"))
    return _ok(orders=[serialize_order(o) for o in result["orders"]], pagination=result["pagination"])


@require_GET
@login_required
@api_view
def order_by_number_view(request, order_number):
    order = reports.get_order_by_number(order_number)
    if not request.user.is_staff and order.user_id != _user_id(request):
        raise OrderNotFound(order_number)
    return _ok(order=serialize_order(order))


# ---------- admin ----------
@require_GET
@staff_member_required
@api_view
def admin_orders_view(request):
    g = request.GET
    result = reports.list_orders(page=g.get("page"), limit=g.get("limit"), status=g.get("status"),
                                 user_id=g.get("userId"), payment_status=g.get("paymentStatus"))
    return _ok(orders=[serialize_order(o, detail=False) for o in result["orders"]],
               pagination=result["pagination"])


@require_GET
@staff_member_required
@api_view
def admin_stats_view(request):
    stats = reports.get_order_stats()
    stats["totalRevenue"] = str(stats["totalRevenue"])
    stats["monthlyRevenue"] = str(stats["monthlyRevenue"])
    return _ok(stats=stats)


@require_GET
@staff_member_required
@api_view
def admin_order_detail_view(request, order_id):
    return _ok(order=serialize_order(reports.get_order(order_id)))


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@staff_member_required
@api_view
def admin_update_status_view(request, order_id):
    data = clean_form(StatusUpdateForm, _json_body(request)).cleaned_data
    get_service().update_status(order_id, data["status"], notes=data.get("notes") or "")
    return _ok(order=serialize_order(reports.get_order(order_id)))


@csrf_exempt
@require_http_methods(["PATCH", "POST"])
@staff_member_required
@api_view
def admin_update_tracking_view(request, order_id):
    data = clean_form(TrackingForm, _json_body(request)).cleaned_data
    get_service().update_tracking(order_id, data["carrier"], data["trackingNumber"],
                                  tracking_url=data.get("trackingUrl") or "",
                                  estimated_delivery=data.get("estimatedDelivery"))
    return _ok(order=serialize_order(reports.get_order(order_id)))


@csrf_exempt
@require_POST
@staff_member_required
@api_view
def admin_refund_view(request, order_id):
    body = _json_body(request)
    data = clean_form(RefundForm, body).cleaned_data
    get_service().process_refund(order_id, amount=data.get("amount"), reason=data.get("reason") or "",
                                 admin_notes=str(body.get("adminNotes") or ""))
    return _ok(order=serialize_order(reports.get_order(order_id)))

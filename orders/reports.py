"""Read-only order listings and dashboard numbers."""
import math
from decimal import Decimal

from django.db.models import Count, Sum
from django.utils import timezone

from .exceptions import OrderNotFound
from .models import Order

MAX_LIMIT = 100


def _page_args(page, limit) -> tuple[int, int]:
    try:
        page = max(int(page or 1), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        limit = min(max(int(limit or 10), 1), MAX_LIMIT)
    except (TypeError, ValueError):
        limit = 10
    return page, limit


def _with_relations(qs):
    return qs.select_related("coupon").prefetch_related(
        "items__product", "items__product_variant", "custom_images", "tracking_history",
    )


def paginate(qs, page=1, limit=10) -> dict:
    page, limit = _page_args(page, limit)
    total = qs.count()
    start = (page - 1) * limit
    return {
        "orders": list(qs[start:start + limit]),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


def list_orders(page=1, limit=10, status=None, user_id=None, payment_status=None, using="default") -> dict:
    qs = _with_relations(Order.objects.using(using).all())
    if status:
        qs = qs.filter(status=status)
    if payment_status:
        qs = qs.filter(payment_status=payment_status)
    if user_id:
        qs = qs.filter(user_id=str(user_id))
    return paginate(qs.order_by("-created_at"), page, limit)


def get_user_orders(user_id, page=1, limit=10, status=None, using="default") -> dict:
    qs = _with_relations(Order.objects.using(using).filter(user_id=str(user_id)))
    if status:
        qs = qs.filter(status=status)
    return paginate(qs.order_by("-created_at"), page, limit)


def get_order(order_id, using="default") -> Order:
    order = _with_relations(Order.objects.using(using)).filter(pk=order_id).first()
    if order is None:
        raise OrderNotFound(order_id)
    return order


def get_order_by_number(order_number: str, using="default") -> Order:
    order = _with_relations(Order.objects.using(using)).filter(order_number=order_number).first()
    if order is None:
        raise OrderNotFound(order_number)
    return order


def get_order_stats(now=None, using="default") -> dict:
    now = timezone.localtime(now or timezone.now())
    qs = Order.objects.using(using)
    by_status = {s: 0 for s, _ in Order.STATUS_CHOICES}
    for row in qs.values("status").annotate(n=Count("id")):
        by_status[row["status"]] = row["n"]

    earning = qs.filter(payment_status=Order.PAYMENT_PAID).exclude(status=Order.CANCELLED)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)

    def _sum(q):
        return q.aggregate(v=Sum("total_amount"))["v"] or Decimal("0.00")

    return {
        "totalOrders": sum(by_status.values()),
        "statusBreakdown": by_status,
        "totalRevenue": _sum(earning),
        "monthlyRevenue": _sum(earning.filter(created_at__gte=month_start)),
        "todayOrders": qs.filter(created_at__gte=day_start).count(),
    }

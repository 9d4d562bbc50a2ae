from django.core.management.base import BaseCommand
from django.utils import timezone

from orders.models import Order
from orders.services import get_service
from payments.exceptions import PaymentGatewayError


class Command(BaseCommand):
    help = "Reconcile PENDING PhonePe orders by polling the gateway status"

    def add_arguments(self, parser):
        parser.add_argument("--max", type=int, default=100, help="Max orders to process")
        parser.add_argument("--older-than-minutes", type=int, default=5,
                            help="Skip orders created within the last N minutes")

    def handle(self, *args, **opts):
        cutoff = timezone.now() - timezone.timedelta(minutes=opts["older_than_minutes"])
        qs = (Order.objects.filter(status=Order.PENDING, payment_status=Order.PAYMENT_PENDING,
                                   phonepe_merchant_transaction_id__isnull=False, created_at__lte=cutoff)
              .order_by("created_at"))

        service = get_service()
        cnt = 0
        ok = 0
        for order in qs[: opts["max"]]:
            cnt += 1
            mtid = order.phonepe_merchant_transaction_id
            try:
                order = service.handle_async_callback(mtid)
            except PaymentGatewayError as e:
                self.stdout.write(self.style.WARNING(f"{order.order_number}: {e}"))
                continue
            if order.payment_status == Order.PAYMENT_PAID:
                ok += 1
                self.stdout.write(self.style.SUCCESS(f"Order {order.order_number} -> {order.status}"))
            else:
                self.stdout.write(f"Order {order.order_number}: {order.payment_status} "
                                  f"({order.phonepe_response_code or 'UNKNOWN'})")

        self.stdout.write(self.style.SUCCESS(f"Checked {cnt}, confirmed {ok} orders."))

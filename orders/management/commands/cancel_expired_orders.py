from django.core.management.base import BaseCommand

from orders.services import get_service


class Command(BaseCommand):
    help = "Cancel online orders whose payment was never completed"

    def add_arguments(self, parser):
        parser.add_argument("--hours", type=int, default=None,
                            help="Cancel PENDING orders older than N hours (default ORDERS['PENDING_EXPIRY_HOURS'])")

    def handle(self, *args, **opts):
        result = get_service().cancel_expired_pending_orders(hours=opts["hours"])
        for number in result["cancelledOrders"]:
            self.stdout.write(f"Order {number} -> CANCELLED")
        self.stdout.write(self.style.SUCCESS(f"Cancelled {result['cancelledCount']} expired orders."))

from datetime import timedelta
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings
from django.utils import timezone

from catalog.models import Coupon, Product
from orders.exceptions import InsufficientStock, ProductNotFound, ProductUnavailable, VariantNotFound
from orders.models import Order
from orders.pricing import CartLine, quote

from .factories import make_coupon, make_product, make_variant


class QuoteTests(TestCase):
    def setUp(self):
        self.product = make_product(normal="120.00", offer="100.00")
        self.variant = make_variant(self.product, stock=5)

    def _cart(self, quantity=2):
        return [CartLine(product_id=self.product.pk, variant_id=self.variant.pk, quantity=quantity)]

    def test_offer_price_without_coupon(self):
        q = quote(self._cart())
        self.assertEqual(q.subtotal, Decimal("200.00"))
        self.assertEqual(q.discount, Decimal("0.00"))
        self.assertEqual(q.shipping_cost, Decimal("0.00"))
        self.assertEqual(q.total_amount, Decimal("200.00"))
        self.assertIsNone(q.coupon)

    def test_percentage_coupon(self):
        make_coupon("SAVE10", Coupon.PERCENTAGE, "10", min_order_amount=Decimal("0"))
        q = quote(self._cart(), "SAVE10")
        self.assertEqual(q.discount, Decimal("20.00"))
        self.assertEqual(q.total_amount, Decimal("180.00"))
        self.assertEqual(q.coupon.code, "SAVE10")

    def test_short_stock_fails_without_creating_orders(self):
        self.variant.stock = 1
        self.variant.save()
        with self.assertRaises(InsufficientStock) as ctx:
            quote(self._cart(quantity=2))
        self.assertEqual(ctx.exception.available, 1)
        self.assertEqual(ctx.exception.requested, 2)
        self.assertIn(self.product.name, str(ctx.exception))
        self.assertEqual(Order.objects.count(), 0)

    def test_repeated_quotes_are_identical(self):
        make_coupon("SAVE10")
        first = quote(self._cart(), "SAVE10")
        second = quote(self._cart(), "SAVE10")
        self.assertEqual(first.as_dict(), second.as_dict())

    def test_normal_price_used_without_offer(self):
        product = make_product(normal="75.50", offer=None)
        q = quote([CartLine(product_id=product.pk, quantity=3)])
        self.assertEqual(q.subtotal, Decimal("226.50"))

    def test_wholesale_price_is_not_applied(self):
        product = make_product(normal="100.00", offer=None, wholesale_price=Decimal("60.00"))
        q = quote([CartLine(product_id=product.pk, quantity=1)])
        self.assertEqual(q.total_amount, Decimal("100.00"))

    def test_minimum_order_not_met_drops_coupon(self):
        make_coupon("BIG50", Coupon.FIXED, "50", min_order_amount=Decimal("500"))
        q = quote(self._cart(), "BIG50")
        self.assertIsNone(q.coupon)
        self.assertEqual(q.discount, Decimal("0.00"))
        self.assertEqual(q.total_amount, Decimal("200.00"))

    def test_percentage_capped_by_max_discount(self):
        make_coupon("HALF", Coupon.PERCENTAGE, "50", max_discount=Decimal("30"))
        q = quote(self._cart(), "HALF")
        self.assertEqual(q.discount, Decimal("30.00"))
        self.assertEqual(q.total_amount, Decimal("170.00"))

    def test_fixed_discount_never_exceeds_subtotal(self):
        make_coupon("FLAT500", Coupon.FIXED, "500")
        q = quote(self._cart(quantity=1), "FLAT500")
        self.assertEqual(q.discount, Decimal("100.00"))
        self.assertEqual(q.total_amount, Decimal("0.00"))

    def test_percentage_over_hundred_never_makes_total_negative(self):
        make_coupon("BIG", Coupon.PERCENTAGE, "150")
        q = quote(self._cart(), "BIG")
        self.assertEqual(q.discount, Decimal("200.00"))
        self.assertEqual(q.total_amount, Decimal("0.00"))

    def test_percentage_coupon_limited_to_hundred(self):
        coupon = Coupon(code="BIG", discount_type=Coupon.PERCENTAGE, discount_value=Decimal("150"),
                        valid_from=timezone.now(), valid_until=timezone.now() + timedelta(days=1))
        with self.assertRaises(ValidationError) as ctx:
            coupon.full_clean()
        self.assertIn("discount_value", ctx.exception.message_dict)

        coupon.discount_type = Coupon.FIXED
        coupon.full_clean()

    def test_expired_and_exhausted_coupons_are_ignored(self):
        make_coupon("OLD", valid_until=timezone.now() - timedelta(hours=1))
        make_coupon("USEDUP", usage_limit=2, used_count=2)
        make_coupon("OFF", is_active=False)
        for code in ("OLD", "USEDUP", "OFF", "NOPE"):
            q = quote(self._cart(), code)
            self.assertIsNone(q.coupon, code)
            self.assertEqual(q.total_amount, Decimal("200.00"))

    def test_discount_rounds_half_up(self):
        product = make_product(normal="33.35", offer=None)
        make_coupon("TEN", Coupon.PERCENTAGE, "10")
        q = quote([CartLine(product_id=product.pk, quantity=1)], "TEN")
        # 3.335 -> 3.34
        self.assertEqual(q.discount, Decimal("3.34"))
        self.assertEqual(q.total_amount, Decimal("30.01"))

    @override_settings(ORDERS={"SHIPPING_COST": "49"})
    def test_configured_shipping_is_added(self):
        q = quote(self._cart())
        self.assertEqual(q.shipping_cost, Decimal("49.00"))
        self.assertEqual(q.total_amount, Decimal("249.00"))

    def test_missing_product(self):
        with self.assertRaises(ProductNotFound):
            quote([CartLine(product_id=99999, quantity=1)])

    def test_inactive_product(self):
        product = make_product(status=Product.INACTIVE)
        with self.assertRaises(ProductUnavailable):
            quote([CartLine(product_id=product.pk, quantity=1)])

    def test_variant_must_belong_to_product(self):
        other = make_product()
        with self.assertRaises(VariantNotFound):
            quote([CartLine(product_id=other.pk, variant_id=self.variant.pk, quantity=1)])

    def test_same_variant_on_two_lines_counts_together(self):
        cart = self._cart(quantity=3) + self._cart(quantity=3)
        with self.assertRaises(InsufficientStock) as ctx:
            quote(cart)
        self.assertEqual(ctx.exception.requested, 6)

    def test_quote_has_no_side_effects(self):
        coupon = make_coupon("SAVE10")
        quote(self._cart(), "SAVE10")
        self.variant.refresh_from_db()
        coupon.refresh_from_db()
        self.assertEqual(self.variant.stock, 5)
        self.assertEqual(coupon.used_count, 0)

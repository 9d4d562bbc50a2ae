"""Cart pricing.

``quote`` is read-only: it looks products, variants and coupons up, checks
availability and returns the totals an order would be created with. The
orchestrator calls it for the upfront quote and again at confirmation time so a
client-supplied total is never trusted.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.utils import timezone

from catalog.models import Coupon, Product, ProductVariant

from .exceptions import InsufficientStock, ProductNotFound, ProductUnavailable, VariantNotFound
from .utils import money

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class CartLine:
    product_id: int
    quantity: int
    variant_id: int | None = None


@dataclass(frozen=True)
class PricedLine:
    product: Product
    variant: ProductVariant | None
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return money(self.unit_price * self.quantity)


@dataclass
class Quote:
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    coupon: Coupon | None = None
    lines: list[PricedLine] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "discount": str(self.discount),
            "shippingCost": str(self.shipping_cost),
            "totalAmount": str(self.total_amount),
            "coupon": self.coupon.code if self.coupon else None,
        }


def shipping_cost() -> Decimal:
    # flat policy; free shipping unless configured
    conf = getattr(settings, "ORDERS", {}) or {}
    return money(conf.get("SHIPPING_COST", "0"))


def coupon_discount(coupon: Coupon, subtotal: Decimal) -> Decimal | None:
    """Discount for ``subtotal``, or ``None`` when the minimum order isn't met."""
    threshold = coupon.min_order_amount or ZERO
    if subtotal < threshold:
        return None
    if coupon.discount_type == Coupon.PERCENTAGE:
        discount = subtotal * coupon.discount_value / Decimal(100)
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
        discount = min(discount, subtotal)
    else:
        discount = min(coupon.discount_value, subtotal)
    return money(discount)


def resolve_coupon(code: str | None, using: str = "default", now=None) -> Coupon | None:
    code = (code or "").strip()
    if not code:
        return None
    return Coupon.objects.using(using).redeemable(now or timezone.now()).filter(code=code).first()


def price_line(line: CartLine, using: str = "default") -> PricedLine:
    product = Product.objects.using(using).filter(pk=line.product_id).first()
    if product is None:
        raise ProductNotFound(line.product_id)
    if product.status != Product.ACTIVE:
        raise ProductUnavailable(product)
    variant = None
    if line.variant_id is not None:
        variant = ProductVariant.objects.using(using).filter(pk=line.variant_id, product=product).first()
        if variant is None:
            raise VariantNotFound(line.variant_id, product.pk)
        if variant.stock < line.quantity:
            raise InsufficientStock(variant.pk, variant.stock, line.quantity, label=_variant_label(product, variant))
    return PricedLine(product=product, variant=variant, quantity=line.quantity, unit_price=money(product.unit_price))


def quote(lines, coupon_code: str | None = None, using: str = "default", now=None) -> Quote:
    """Price ``lines`` (iterable of :class:`CartLine`) and apply ``coupon_code``.

    Raises ``ProductNotFound``/``VariantNotFound``, ``ProductUnavailable`` or
    ``InsufficientStock`` for the first failing line. An unknown, expired or
    exhausted coupon, or one whose minimum order isn't met, simply yields no
    discount and ``coupon=None``.
    """
    priced = [price_line(line, using=using) for line in lines]

    # the same variant may appear on several lines
    wanted = defaultdict(int)
    for p in priced:
        if p.variant is not None:
            wanted[p.variant.pk] += p.quantity
    for p in priced:
        if p.variant is not None and p.variant.stock < wanted[p.variant.pk]:
            raise InsufficientStock(p.variant.pk, p.variant.stock, wanted[p.variant.pk],
                                    label=_variant_label(p.product, p.variant))

    subtotal = money(sum((p.line_total for p in priced), ZERO))
    discount = ZERO
    coupon = resolve_coupon(coupon_code, using=using, now=now)
    if coupon is not None:
        amount = coupon_discount(coupon, subtotal)
        if amount is None:
            coupon = None
        else:
            discount = amount
    ship = shipping_cost()
    total = money(subtotal - discount + ship)
    return Quote(subtotal=subtotal, discount=discount, shipping_cost=ship, total_amount=total,
                 coupon=coupon, lines=priced)


def _variant_label(product, variant) -> str:
    bits = [b for b in (variant.color, variant.size) if b]
    return f"{product.name} ({', '.join(bits)})" if bits else product.name

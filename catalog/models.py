from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Product(models.Model):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (INACTIVE, "Inactive"),
        (OUT_OF_STOCK, "Out of stock"),
    ]

    name = models.CharField(max_length=200)
    product_code = models.CharField(max_length=64, unique=True)
    normal_price = models.DecimalField(max_digits=12, decimal_places=2)
    offer_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    wholesale_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product_code} {self.name}"

    @property
    def unit_price(self):
        # offer price wins when set; wholesale is never picked automatically
        return self.offer_price or self.normal_price


class ProductVariant(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="variants")
    color = models.CharField(max_length=64, blank=True, default="")
    size = models.CharField(max_length=32, blank=True, default="")
    stock = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.product_id}/{self.color or '-'}/{self.size or '-'} ({self.stock})"


class CouponQuerySet(models.QuerySet):
    def redeemable(self, now=None):
        now = now or timezone.now()
        return self.filter(
            is_active=True,
            valid_from__lte=now,
            valid_until__gte=now,
        ).filter(Q(usage_limit__isnull=True) | Q(used_count__lt=F("usage_limit")))


class Coupon(models.Model):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"
    DISCOUNT_CHOICES = [(PERCENTAGE, "Percentage"), (FIXED, "Fixed amount")]

    code = models.CharField(max_length=32, unique=True)
    discount_type = models.CharField(max_length=16, choices=DISCOUNT_CHOICES, default=PERCENTAGE)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_discount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    valid_from = models.DateTimeField()
    valid_until = models.DateTimeField()
    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = CouponQuerySet.as_manager()

    def __str__(self):
        return f"{self.code} ({self.discount_type} {self.discount_value})"

    def clean(self):
        super().clean()
        if self.discount_type == self.PERCENTAGE and self.discount_value is not None:
            try:
                MaxValueValidator(100)(self.discount_value)
            except ValidationError as e:
                raise ValidationError({"discount_value": e.messages})

from django.db import models

from catalog.models import Coupon, Product, ProductVariant


class Order(models.Model):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"
    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (CONFIRMED, "Confirmed"),
        (PROCESSING, "Processing"),
        (SHIPPED, "Shipped"),
        (DELIVERED, "Delivered"),
        (CANCELLED, "Cancelled"),
        (REFUNDED, "Refunded"),
    ]

    PAYMENT_PENDING = "PENDING"
    PAYMENT_PAID = "PAID"
    PAYMENT_FAILED = "FAILED"
    PAYMENT_REFUNDED = "REFUNDED"
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, "Pending"),
        (PAYMENT_PAID, "Paid"),
        (PAYMENT_FAILED, "Failed"),
        (PAYMENT_REFUNDED, "Refunded"),
    ]

    ONLINE = "ONLINE"
    COD = "COD"
    PAYMENT_METHOD_CHOICES = [(ONLINE, "Online"), (COD, "Cash on delivery")]

    order_number = models.CharField(max_length=40, unique=True)
    user_id = models.CharField(max_length=64, blank=True, default="", db_index=True)

    # shipping snapshot, copied at creation
    name = models.CharField(max_length=100)
    email = models.EmailField()
    phone = models.CharField(max_length=20)
    address = models.CharField(max_length=500)
    city = models.CharField(max_length=100)
    state = models.CharField(max_length=100)
    pincode = models.CharField(max_length=10)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    shipping_cost = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    coupon = models.ForeignKey(Coupon, null=True, blank=True, on_delete=models.SET_NULL, related_name="orders")

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=PENDING, db_index=True)
    payment_status = models.CharField(max_length=16, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_PENDING, db_index=True)
    payment_method = models.CharField(max_length=16, choices=PAYMENT_METHOD_CHOICES, default=ONLINE)
    stock_committed = models.BooleanField(default=False)

    # synchronous gateway
    razorpay_order_id = models.CharField(max_length=64, blank=True, default="", db_index=True)
    razorpay_payment_id = models.CharField(max_length=64, null=True, blank=True, unique=True)
    razorpay_signature = models.CharField(max_length=128, blank=True, default="")

    # asynchronous gateway
    phonepe_merchant_transaction_id = models.CharField(max_length=40, null=True, blank=True, unique=True)
    phonepe_transaction_id = models.CharField(max_length=64, blank=True, default="")
    phonepe_response_code = models.CharField(max_length=64, blank=True, default="")
    phonepe_response_message = models.CharField(max_length=255, blank=True, default="")
    phonepe_payment_instrument_type = models.CharField(max_length=32, blank=True, default="")

    carrier = models.CharField(max_length=100, blank=True, default="")
    tracking_number = models.CharField(max_length=100, blank=True, default="")
    tracking_url = models.URLField(blank=True, default="")
    estimated_delivery = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)

    refund_id = models.CharField(max_length=64, blank=True, default="")
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    admin_notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at",)

    def __str__(self):
        return f"{self.order_number} ({self.status}/{self.payment_status})"

    @property
    def is_paid(self) -> bool:
        return self.payment_status == self.PAYMENT_PAID

    @property
    def location(self) -> str:
        return f"{self.city}, {self.state}"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name="order_items")
    product_variant = models.ForeignKey(
        ProductVariant, null=True, blank=True, on_delete=models.PROTECT, related_name="order_items"
    )
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(max_digits=12, decimal_places=2)

    def __str__(self):
        return f"{self.order_id}: {self.product_id} x{self.quantity} @ {self.price}"

    @property
    def line_total(self):
        return self.price * self.quantity


class CustomImage(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="custom_images")
    image_url = models.CharField(max_length=500)
    image_key = models.CharField(max_length=255)
    filename = models.CharField(max_length=255, blank=True, default="")
    color = models.CharField(max_length=64, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)


class TrackingHistory(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="tracking_history")
    status = models.CharField(max_length=16, choices=Order.STATUS_CHOICES)
    description = models.CharField(max_length=500)
    location = models.CharField(max_length=255, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("created_at", "id")
        verbose_name_plural = "tracking history"

    def __str__(self):
        return f"{self.order_id} {self.status} @ {self.created_at:%Y-%m-%d %H:%M}"

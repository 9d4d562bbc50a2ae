from django.contrib import admin

from .models import CustomImage, Order, OrderItem, TrackingHistory


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ("product", "product_variant", "quantity", "price")
    can_delete = False


class CustomImageInline(admin.TabularInline):
    model = CustomImage
    extra = 0
    readonly_fields = ("image_url", "image_key", "filename", "color", "created_at")
    can_delete = False


class TrackingHistoryInline(admin.TabularInline):
    model = TrackingHistory
    extra = 0
    readonly_fields = ("status", "description", "location", "created_at")
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "status", "payment_status", "payment_method", "total_amount", "email", "created_at")
    search_fields = ("order_number", "email", "phone", "razorpay_payment_id", "phonepe_merchant_transaction_id")
    list_filter = ("status", "payment_status", "payment_method", "created_at")
    # status moves go through the order service so history and stock stay consistent
    readonly_fields = (
        "order_number", "user_id", "status", "payment_status", "payment_method", "stock_committed",
        "subtotal", "discount", "shipping_cost", "total_amount", "coupon",
        "razorpay_order_id", "razorpay_payment_id", "razorpay_signature",
        "phonepe_merchant_transaction_id", "phonepe_transaction_id", "phonepe_response_code",
        "phonepe_response_message", "phonepe_payment_instrument_type",
        "shipped_at", "delivered_at", "refund_id", "refund_amount", "refunded_at", "created_at", "updated_at",
    )
    inlines = [OrderItemInline, CustomImageInline, TrackingHistoryInline]

from django.contrib import admin

from .models import Coupon, Product, ProductVariant


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("product_code", "name", "normal_price", "offer_price", "wholesale_price", "status")
    search_fields = ("product_code", "name")
    list_filter = ("status",)
    inlines = [ProductVariantInline]


@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = ("id", "product", "color", "size", "stock")
    search_fields = ("product__product_code", "product__name", "color")


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "discount_type", "discount_value", "used_count", "usage_limit", "valid_until", "is_active")
    search_fields = ("code",)
    list_filter = ("discount_type", "is_active")
    readonly_fields = ("used_count", "created_at")

from django.urls import path

from . import views
from .webhook import phonepe_callback

app_name = "orders"

urlpatterns = [
    path("calculate-totals/", views.calculate_totals_view, name="calculate_totals"),
    path("razorpay/create/", views.razorpay_create_view, name="razorpay_create"),
    path("razorpay/verify/", views.razorpay_verify_view, name="razorpay_verify"),
    path("initiate-payment/", views.initiate_payment_view, name="initiate_payment"),
    path("phonepe/callback/", phonepe_callback, name="phonepe_callback"),
    path("payment-status/<str:merchant_transaction_id>/", views.payment_status_view, name="payment_status"),
    path("create-cod-order/", views.create_cod_order_view, name="create_cod_order"),
    path("my-orders/", views.my_orders_view, name="my_orders"),
    path("order-number/<str:order_number>/", views.order_by_number_view, name="order_by_number"),

    path("admin/", views.admin_orders_view, name="admin_orders"),
    path("admin/stats/", views.admin_stats_view, name="admin_stats"),
    path("admin/<int:order_id>/", views.admin_order_detail_view, name="admin_order_detail"),
    path("admin/<int:order_id>/status/", views.admin_update_status_view, name="admin_update_status"),
    path("admin/<int:order_id>/tracking/", views.admin_update_tracking_view, name="admin_update_tracking"),
    path("admin/<int:order_id>/refund/", views.admin_refund_view, name="admin_refund"),
]

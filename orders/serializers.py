def _money(v):
    return None if v is None else str(v)


def _dt(v):
    return v.isoformat() if v else None


def serialize_item(item) -> dict:
    variant = item.product_variant
    return {
        "id": item.pk,
        "productId": item.product_id,
        "productName": item.product.name,
        "productCode": item.product.product_code,
        "variantId": item.product_variant_id,
        "color": variant.color if variant else None,
        "size": variant.size if variant else None,
        "quantity": item.quantity,
        "price": _money(item.price),
        "lineTotal": _money(item.line_total),
    }


def serialize_order(order, detail: bool = True) -> dict:
    data = {
        "id": order.pk,
        "orderNumber": order.order_number,
        "userId": order.user_id or None,
        "status": order.status,
        "paymentStatus": order.payment_status,
        "paymentMethod": order.payment_method,
        "subtotal": _money(order.subtotal),
        "discount": _money(order.discount),
        "shippingCost": _money(order.shipping_cost),
        "totalAmount": _money(order.total_amount),
        "coupon": order.coupon.code if order.coupon_id and order.coupon else None,
        "createdAt": _dt(order.created_at),
        "updatedAt": _dt(order.updated_at),
    }
    if not detail:
        return data
    data.update({
        "shipping": {
            "name": order.name,
            "email": order.email,
            "phone": order.phone,
            "address": order.address,
            "city": order.city,
            "state": order.state,
            "pincode": order.pincode,
        },
        "razorpayOrderId": order.razorpay_order_id or None,
        "razorpayPaymentId": order.razorpay_payment_id,
        "phonepeMerchantTransactionId": order.phonepe_merchant_transaction_id,
        "phonepeTransactionId": order.phonepe_transaction_id or None,
        "phonepeResponseCode": order.phonepe_response_code or None,
        "phonepeResponseMessage": order.phonepe_response_message or None,
        "tracking": {
            "carrier": order.carrier or None,
            "trackingNumber": order.tracking_number or None,
            "trackingUrl": order.tracking_url or None,
            "estimatedDelivery": _dt(order.estimated_delivery),
            "shippedAt": _dt(order.shipped_at),
            "deliveredAt": _dt(order.delivered_at),
        },
        "refund": {
            "refundId": order.refund_id or None,
            "amount": _money(order.refund_amount),
            "refundedAt": _dt(order.refunded_at),
        } if order.refund_id or order.refunded_at else None,
        "items": [serialize_item(i) for i in order.items.all()],
        "customImages": [
            {"url": c.image_url, "key": c.image_key, "filename": c.filename, "color": c.color or None}
            for c in order.custom_images.all()
        ],
        "trackingHistory": [
            {"status": h.status, "description": h.description, "location": h.location,
             "createdAt": _dt(h.created_at)}
            for h in order.tracking_history.all()
        ],
    })
    return data

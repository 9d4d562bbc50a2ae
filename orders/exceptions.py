class OrderError(Exception):
    """Base class for order workflow failures."""


class ProductNotFound(OrderError):
    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class VariantNotFound(ProductNotFound):
    def __init__(self, variant_id, product_id=None):
        self.variant_id = variant_id
        OrderError.__init__(self, f"Variant {variant_id} not found")
        self.product_id = product_id


class ProductUnavailable(OrderError):
    def __init__(self, product):
        self.product_id = product.pk
        super().__init__(f"Product {product.name} is not available")


class InsufficientStock(OrderError):
    def __init__(self, variant_id, available, requested, label=""):
        self.variant_id = variant_id
        self.available = available
        self.requested = requested
        name = label or f"variant {variant_id}"
        super().__init__(f"Insufficient stock for {name}. Available: {available}, requested: {requested}")


class PaymentVerificationFailed(OrderError):
    def __init__(self, message="Payment verification failed"):
        super().__init__(message)


class CustomAssetUploadFailed(OrderError):
    pass


class OrderNotFound(OrderError):
    def __init__(self, lookup):
        self.lookup = lookup
        super().__init__(f"Order {lookup} not found")


class RefundNotEligible(OrderError):
    pass

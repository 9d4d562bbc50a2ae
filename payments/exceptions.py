class PaymentGatewayError(Exception):
    """Any failure talking to an external payment processor."""

from .phonepe import PhonePeGateway, PhonePeError
from .razorpay import RazorpayGateway, RazorpayError

__all__ = ["PhonePeGateway", "PhonePeError", "RazorpayGateway", "RazorpayError"]

import random
import string
import time
from decimal import Decimal, ROUND_HALF_UP

ALNUM = string.ascii_uppercase + string.digits
CENT = Decimal("0.01")


def generate_order_number() -> str:
    """``ORD-<epoch millis>-<6 random upper alnum>``; never reused."""
    suffix = "".join(random.choices(ALNUM, k=6))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)
